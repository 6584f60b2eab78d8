"""Async engine, session factory and schema bootstrap.

One engine (and its connection pool) is created per process in the FastAPI
lifespan and shared by every store.  Each store method opens its own short
session from the factory, so a commit in one ingestion step is independent
of every later step.
"""

from __future__ import annotations

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from pdfchat.config.settings import Settings
from pdfchat.providers.database.orm import EMBEDDING_DIMENSION, Base
from pdfchat.utils.errors import ConfigurationError
from pdfchat.utils.logging import get_logger

_logger = get_logger(__name__)


def create_engine(settings: Settings) -> AsyncEngine:
    """Build the process-wide async engine from ``DATABASE_URL``."""
    if settings.embedding_dimension != EMBEDDING_DIMENSION:
        raise ConfigurationError(
            message=(
                f"EMBEDDING_DIMENSION={settings.embedding_dimension} does not match "
                f"the {EMBEDDING_DIMENSION}-wide vector column"
            ),
        )
    kwargs: dict = {"echo": settings.db_echo, "pool_pre_ping": True}
    if settings.database_url.startswith("postgresql"):
        kwargs["pool_size"] = settings.db_pool_size
    return create_async_engine(settings.database_url, **kwargs)


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


async def init_db(engine: AsyncEngine) -> None:
    """Create the pgvector extension (PostgreSQL only) and all tables."""
    async with engine.begin() as conn:
        if conn.dialect.name == "postgresql":
            await conn.execute(text("CREATE EXTENSION IF NOT EXISTS vector"))
        await conn.run_sync(Base.metadata.create_all)
    _logger.info("database_initialized", dialect=engine.dialect.name)
