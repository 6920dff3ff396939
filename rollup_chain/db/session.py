"""
Async database engine, session factory and autocommit connections.

Uses SQLAlchemy 2.x async engine with asyncpg driver for PostgreSQL.
Provides module-level engine and session factory singletons, an async
generator for FastAPI dependency injection, and autocommit connections
for TimescaleDB calls that refuse to run inside a transaction block
(refresh_continuous_aggregate, CREATE ... WITH DATA).

CHANGELOG:
- 2026-10-18: Initial creation

TODO:
- None
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from sqlalchemy.ext.asyncio import (
    AsyncConnection,
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from rollup_chain.config import get_settings

# Module-level singletons, initialized lazily via init_engine().
async_engine: AsyncEngine | None = None
async_session_factory: async_sessionmaker[AsyncSession] | None = None


def create_engine() -> AsyncEngine:
    """Create an async SQLAlchemy engine from configuration.

    Returns:
        AsyncEngine: Configured async engine for PostgreSQL via asyncpg.
    """
    settings = get_settings()
    return create_async_engine(settings.DATABASE_URL, echo=False)


def create_session_factory(engine: AsyncEngine | None = None) -> async_sessionmaker[AsyncSession]:
    """Create an async session factory.

    Args:
        engine: Optional async engine. If not provided, creates one from config.

    Returns:
        async_sessionmaker: Factory for creating AsyncSession instances.
    """
    if engine is None:
        engine = create_engine()
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


def init_engine() -> None:
    """Initialize the module-level async engine and session factory.

    Safe to call multiple times; subsequent calls are no-ops.
    """
    global async_engine, async_session_factory  # noqa: PLW0603
    if async_engine is None:
        async_engine = create_engine()
        async_session_factory = create_session_factory(async_engine)


def get_engine() -> AsyncEngine:
    """Return the module-level engine, initializing it on first use."""
    init_engine()
    assert async_engine is not None, "Engine not initialized"
    return async_engine


async def get_async_session() -> AsyncGenerator[AsyncSession, None]:
    """Yield an async database session for FastAPI dependency injection.

    Yields:
        AsyncSession: An async SQLAlchemy session.
    """
    init_engine()
    assert async_session_factory is not None, "Session factory not initialized"
    async with async_session_factory() as session:
        yield session


@asynccontextmanager
async def autocommit_connection(engine: AsyncEngine | None = None) -> AsyncGenerator[AsyncConnection, None]:
    """Open a connection where every statement commits on its own.

    Args:
        engine: Optional async engine. Defaults to the module-level one.

    Yields:
        AsyncConnection: Connection with AUTOCOMMIT isolation.
    """
    if engine is None:
        engine = get_engine()
    async with engine.connect() as conn:
        yield await conn.execution_options(isolation_level="AUTOCOMMIT")
