"""
FastAPI dependency injection providers.

Provides database sessions, AUTOCOMMIT connections and the aggregate
registry for use with FastAPI's Depends() mechanism.

CHANGELOG:
- 2026-10-18: Initial creation

TODO:
- None
"""

from collections.abc import AsyncGenerator
from typing import Annotated

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncSession

from rollup_chain.chain import load_registry
from rollup_chain.config import get_settings
from rollup_chain.db.session import autocommit_connection, get_async_session
from rollup_chain.registry import AggregateRegistry

# Type alias for injecting an async DB session via FastAPI Depends().
DbSession = Annotated[AsyncSession, Depends(get_async_session)]


async def get_autocommit_connection() -> AsyncGenerator[AsyncConnection, None]:
    """Yield an AUTOCOMMIT connection for DDL and refresh calls.

    Yields:
        AsyncConnection: Connection closed after the request completes.
    """
    async with autocommit_connection() as conn:
        yield conn


DbConnection = Annotated[AsyncConnection, Depends(get_autocommit_connection)]


# ---------------------------------------------------------------------------
# Registry dependency
# ---------------------------------------------------------------------------

_registry: AggregateRegistry | None = None


def init_registry() -> AggregateRegistry:
    """Load and derive the registry from AGGREGATES_FILE.

    Intended to be called at startup (via lifespan) so that configuration
    errors surface eagerly. Also called lazily on first request. Cached
    after first call.

    Returns:
        AggregateRegistry: Every derived continuous aggregate.
    """
    global _registry  # noqa: PLW0603
    if _registry is None:
        _registry = load_registry(get_settings().AGGREGATES_FILE)
    return _registry


def reset_registry() -> None:
    """Forget the cached registry; the next request reloads it."""
    global _registry  # noqa: PLW0603
    _registry = None


def get_registry() -> AggregateRegistry:
    """FastAPI dependency returning the cached registry."""
    return init_registry()


Registry = Annotated[AggregateRegistry, Depends(get_registry)]
