"""Database connection and session factory."""

import logging

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base

from .config import settings
from .core.exceptions import DatabaseError

logger = logging.getLogger(__name__)

# Base class for models
Base = declarative_base()


def normalize_database_url(url: str) -> str:
    """Pick the async driver for plain database URLs."""
    if url.startswith("postgresql://"):
        return url.replace("postgresql://", "postgresql+asyncpg://", 1)
    if url.startswith("sqlite:///"):
        return url.replace("sqlite:///", "sqlite+aiosqlite:///", 1)
    return url


def create_engine_for(url: str) -> AsyncEngine:
    """Create an async engine with pool settings suited to the backend."""
    db_url = normalize_database_url(url)
    if db_url.startswith("sqlite"):
        return create_async_engine(db_url, echo=False, future=True)
    return create_async_engine(
        db_url,
        echo=False,
        future=True,
        pool_size=5,
        max_overflow=10,
        pool_pre_ping=True,
        pool_recycle=300,
    )


def create_session_factory(bind: AsyncEngine) -> async_sessionmaker:
    return async_sessionmaker(bind=bind, class_=AsyncSession, expire_on_commit=False, autoflush=True)


engine = create_engine_for(settings.database_url)
AsyncSessionLocal = create_session_factory(engine)


async def init_db(bind: AsyncEngine = None):
    """Create tables for all registered models."""
    bind = bind or engine
    logger.info("🔧 Checking database initialization...")

    try:
        from . import models  # noqa: F401

        async with bind.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

        async with create_session_factory(bind)() as session:
            await session.execute(text("SELECT 1"))
        logger.info("✅ Database initialized")

    except Exception as init_error:
        logger.error(f"❌ Database initialization failed: {init_error}")
        raise DatabaseError(f"Database initialization failed: {init_error}") from init_error


async def close_db_engine():
    """Properly close database engine and all connections."""
    try:
        await engine.dispose()
        logger.info("✅ Database engine disposed")
    except Exception as e:
        logger.error(f"❌ Error closing database engine: {e}")
