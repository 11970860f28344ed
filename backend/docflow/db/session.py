"""
Async SQLAlchemy engine / session factories.

Celery tasks run each job inside its own `asyncio.run()`, so engines are
created per runtime and disposed afterwards rather than shared at module
level (an engine's pool is bound to the loop that created it).
"""

from __future__ import annotations

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from docflow.core.config import settings
from docflow.db.models import Base


def create_session_factory(
    database_url: str | None = None,
    *,
    echo: bool | None = None,
) -> tuple[async_sessionmaker[AsyncSession], AsyncEngine]:
    """Create a fresh engine + session factory.  Caller disposes the engine."""
    engine = create_async_engine(
        database_url or settings.DATABASE_URL,
        echo=(settings.APP_ENV == "development") if echo is None else echo,
        pool_size=5,
        max_overflow=5,
        pool_pre_ping=True,
    )
    factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    return factory, engine


async def create_tables(engine: AsyncEngine) -> None:
    """Create all tables that do not exist yet."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
