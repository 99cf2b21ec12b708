"""
Database Connection Management

Async engine and session factory construction with SQLAlchemy 2.0, plus the
process-wide defaults used by the console application.
"""

from typing import Optional

import structlog
from sqlalchemy import event, text
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool

from shopdb.config import get_settings

logger = structlog.get_logger(__name__)

# Global engine and session factory
_engine: Optional[AsyncEngine] = None
_async_session_factory: Optional[async_sessionmaker[AsyncSession]] = None


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record) -> None:
    """SQLite ignores foreign keys (and therefore cascades) unless asked per connection"""
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def create_engine(url: str, echo: bool = False) -> AsyncEngine:
    """
    Create an async engine for the given URL.

    SQLite engines get foreign key enforcement on every new connection.
    """
    engine_config = {
        "echo": echo,
    }
    backend = make_url(url).get_backend_name()
    if backend == "postgresql":
        engine_config["pool_pre_ping"] = True
    elif backend == "sqlite" and ":memory:" not in url:
        # Each checkout opens the file fresh; no connection outlives its session
        engine_config["poolclass"] = NullPool

    engine = create_async_engine(url, **engine_config)

    if backend == "sqlite":
        event.listen(engine.sync_engine, "connect", _enable_sqlite_foreign_keys)

    return engine


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Session factory shared by every unit of work on this engine"""
    return async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


async def init_database(url: Optional[str] = None) -> AsyncEngine:
    """
    Initialize the process-wide engine and session factory.

    The connection is not verified here; DatabaseLifecycleManager.is_accessible
    is the probe.

    Returns:
        AsyncEngine: The initialized database engine
    """
    global _engine, _async_session_factory

    if _engine is not None:
        logger.warning("Database already initialized")
        return _engine

    settings = get_settings()
    _engine = create_engine(url or settings.database.async_url, echo=settings.database.echo)
    _async_session_factory = create_session_factory(_engine)

    logger.info(
        "Database engine created",
        backend=_engine.url.get_backend_name(),
        database=_engine.url.database,
    )
    return _engine


async def close_database() -> None:
    """
    Dispose of the process-wide engine.
    """
    global _engine, _async_session_factory

    if _engine is not None:
        await _engine.dispose()
        _engine = None
        _async_session_factory = None
        logger.info("Database connection pool closed")


def get_engine() -> AsyncEngine:
    """
    Get the database engine.

    Raises:
        RuntimeError: If database is not initialized
    """
    if _engine is None:
        raise RuntimeError("Database not initialized. Call init_database() first.")
    return _engine


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """
    Get the session factory bound to the process-wide engine.

    Raises:
        RuntimeError: If database is not initialized
    """
    if _async_session_factory is None:
        logger.error("Database not initialized when get_session_factory() called")
        raise RuntimeError("Database not initialized. Call init_database() first.")
    return _async_session_factory


async def ping(engine: AsyncEngine) -> None:
    """Round trip a trivial statement; raises whatever the driver raises"""
    async with engine.connect() as conn:
        await conn.execute(text("SELECT 1"))
