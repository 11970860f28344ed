"""
SQLAlchemy declarative base for all ORM models.

Convention:
    - Each table lives in its own file under `docflow/db/models/`
    - Every model file imports `Base` from here
    - The `__init__.py` re-exports all models so `Base.metadata` sees them
    - Nested domain state (execution, steps, metadata) is stored as JSONB
      and validated back into the pydantic schemas on read
"""

from sqlalchemy.orm import DeclarativeBase

from docflow.schemas.common import new_id, utcnow


class Base(DeclarativeBase):
    """Base class for all ORM models."""
    pass


__all__ = ["Base", "new_id", "utcnow"]
