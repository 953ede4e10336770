"""
Database configuration for PostgreSQL.
"""

import logging

from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import DeclarativeBase
from postdeck.config import get_settings

logger = logging.getLogger(__name__)
settings = get_settings()

_engine = None
_session_maker = None
_initialized = False


class Base(DeclarativeBase):
    pass


class DatabaseUnavailableError(RuntimeError):
    """Raised when no database is configured or it failed to initialize."""


def get_engine():
    global _engine
    if _engine is None and settings.database_url:
        _engine = create_async_engine(
            settings.database_url,
            echo=settings.database_echo,
            pool_pre_ping=True,
            pool_size=3,
            max_overflow=5,
        )
        logger.info("Database engine created for: %s...", settings.database_url[:50])
    return _engine


def get_session_maker():
    global _session_maker
    if _session_maker is None:
        engine = get_engine()
        if engine:
            _session_maker = async_sessionmaker(
                engine,
                class_=AsyncSession,
                expire_on_commit=False
            )
    return _session_maker


async def init_db() -> bool:
    """Create tables. Returns False when no database is configured."""
    global _initialized
    if _initialized:
        return True

    engine = get_engine()
    if not engine:
        logger.warning("No database engine available (DATABASE_URL is not set)")
        return False

    # Tables are registered on Base.metadata by importing the models module
    from postdeck import models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    _initialized = True
    logger.info("Database tables created")
    return True


async def get_db():
    """Dependency for getting database session."""
    if not _initialized:
        success = await init_db()
        if not success:
            raise DatabaseUnavailableError("Database not configured")

    session_maker = get_session_maker()
    if session_maker is None:
        raise DatabaseUnavailableError("Database not configured")

    async with session_maker() as session:
        yield session
