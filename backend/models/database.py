"""
Database connection and session management.

Uses SQLAlchemy async with a lazily created, process-wide engine.

Connection Strategy:
- Postgres (asyncpg): local connection pool with pre-ping and recycling
- SQLite (aiosqlite, tests and local demos): StaticPool for in-memory databases
  so every session sees the same database
- Every engine action opens exactly one session and commits once, so a failed
  action rolls back as a whole
"""

import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Optional

from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, AsyncEngine, async_sessionmaker
from sqlalchemy.orm import declarative_base
from sqlalchemy.pool import NullPool, StaticPool

from config import settings

logger = logging.getLogger(__name__)

Base = declarative_base()

# Global singletons - created once, reused until reset
_engine: Optional[AsyncEngine] = None
_session_factory: Optional[async_sessionmaker[AsyncSession]] = None
_database_url: Optional[str] = None


def _resolve_url() -> str:
    url = _database_url or settings.DATABASE_URL
    # Ensure URL uses asyncpg driver
    if url.startswith("postgresql://"):
        url = url.replace("postgresql://", "postgresql+asyncpg://", 1)
    return url


def configure_database(database_url: str) -> None:
    """
    Point the engine at a different database.

    Used by tests and scripts. Any existing engine is dropped without being
    disposed; call close_db() first when it still holds connections.
    """
    global _database_url
    reset_database_state()
    _database_url = database_url
    logger.info("Database URL configured: %s", database_url.split("@")[-1])


def reset_database_state() -> None:
    """Forget the engine and session factory so the next call recreates them."""
    global _engine, _session_factory, _database_url
    _engine = None
    _session_factory = None
    _database_url = None


def get_engine() -> AsyncEngine:
    """Get the database engine (singleton - created once, reused)."""
    global _engine
    if _engine is None:
        url = _resolve_url()
        engine_kwargs: dict[str, Any] = {"echo": settings.SQL_ECHO, "future": True}

        if url.startswith("sqlite"):
            engine_kwargs["connect_args"] = {"check_same_thread": False}
            if url.endswith(":memory:") or url in {"sqlite+aiosqlite://", "sqlite://"}:
                engine_kwargs["poolclass"] = StaticPool
            _engine = create_async_engine(url, **engine_kwargs)
            logger.info("Database engine created for SQLite (%s)", url)
        elif settings.ENVIRONMENT == "test":
            _engine = create_async_engine(url, poolclass=NullPool, **engine_kwargs)
            logger.info("Database engine created with NullPool (test environment)")
        else:
            _engine = create_async_engine(
                url,
                pool_size=5,        # Base connections kept warm
                max_overflow=10,    # Up to 15 total under burst load
                pool_recycle=300,   # Recycle connections every 5 min
                pool_pre_ping=True, # Verify connection is alive before checkout
                **engine_kwargs,
            )
            logger.info(
                "Database engine created with connection pool (pool_size=5, max_overflow=10)"
            )
    return _engine


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Get the async session factory (singleton - created once, reused)."""
    global _session_factory
    if _session_factory is None:
        _session_factory = async_sessionmaker(
            get_engine(),
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,  # Don't auto-flush, we control when to flush
        )
        logger.info("Session factory created")
    return _session_factory


@asynccontextmanager
async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """
    Yield an async database session.

    Usage:
        async with get_session() as session:
            result = await session.execute(query)
            await session.commit()  # Explicit commit if needed

    The session is automatically closed when the context exits.
    Any uncommitted changes are rolled back on error.
    """
    factory = get_session_factory()
    session: AsyncSession = factory()
    try:
        yield session
    except Exception:
        await session.rollback()
        raise
    finally:
        await session.close()


async def init_db() -> None:
    """Create all tables."""
    # Import models so they register with Base.metadata
    import models  # noqa: F401

    engine = get_engine()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def close_db() -> None:
    """
    Close the database engine and release all pooled connections.
    Call this on application shutdown.
    """
    global _engine, _session_factory
    if _engine is not None:
        pool_status = get_pool_status()
        logger.info(
            "Closing database pool: %s checked_in, %s checked_out",
            pool_status["checked_in"],
            pool_status["checked_out"],
        )
        await _engine.dispose()
        _engine = None
        _session_factory = None
        logger.info("Database engine disposed, all connections closed")


def get_pool_status() -> dict[str, int | str]:
    """Get current connection pool status for monitoring."""
    if _engine is None:
        return {"pool_type": "not_initialized", "pool_size": 0, "checked_in": 0, "checked_out": 0, "overflow": 0}

    pool = _engine.pool
    if isinstance(pool, (NullPool, StaticPool)):
        return {"pool_type": type(pool).__name__, "pool_size": 0, "checked_in": 0, "checked_out": 0, "overflow": 0}

    return {
        "pool_type": type(pool).__name__,
        "pool_size": pool.size(),
        "checked_in": pool.checkedin(),
        "checked_out": pool.checkedout(),
        "overflow": pool.overflow(),
    }
