"""Small helpers shared by the domain schemas and the ORM models."""

import uuid
from datetime import datetime, timezone


def new_id() -> str:
    """Generate a new string id (UUID4 hex form with dashes)."""
    return str(uuid.uuid4())


def utcnow() -> datetime:
    """Return current UTC time (timezone-aware)."""
    return datetime.now(timezone.utc)
