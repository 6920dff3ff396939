"""
Continuous aggregate lifecycle: create, drop and refresh.

Each level reads from the previous one, so creation and refresh walk a
family's chain finest first and drops walk it coarsest first. Families
are independent of one another. Statements run on an AUTOCOMMIT
connection (see ``rollup_chain.db.session.autocommit_connection``).

CHANGELOG:
- 2026-10-18: Initial creation

TODO:
- None
"""

import logging
from collections.abc import Iterable
from datetime import datetime

from sqlalchemy import TextClause
from sqlalchemy.ext.asyncio import AsyncConnection

from rollup_chain import sql
from rollup_chain.models import AggregateDefinition
from rollup_chain.registry import AggregateRegistry

logger = logging.getLogger(__name__)


async def _execute(conn: AsyncConnection, definition: AggregateDefinition, statement: TextClause) -> None:
    logger.info(
        "Executing %s",
        statement.text.split(" ", 1)[0],
        extra={"view": definition.view_name, "statement": statement.text},
    )
    await conn.execute(statement)


async def create_continuous_aggregates(
    conn: AsyncConnection,
    registry: AggregateRegistry,
    with_data: bool = False,
) -> list[str]:
    """Create every view and register its refresh policy.

    Args:
        conn: AUTOCOMMIT connection.
        registry: Derived definitions.
        with_data: Populate each view on creation.

    Returns:
        list[str]: View names, in the order they were created.
    """
    created = []
    for definition in registry.create_order():
        await _execute(conn, definition, sql.create_view(definition, with_data=with_data))
        policy = sql.add_refresh_policy(definition)
        if policy is not None:
            await _execute(conn, definition, policy)
        created.append(definition.view_name)
    return created


async def drop_continuous_aggregates(conn: AsyncConnection, registry: AggregateRegistry) -> list[str]:
    """Drop every view, dependents before their sources.

    Returns:
        list[str]: View names, in the order they were dropped.
    """
    dropped = []
    for definition in registry.drop_order():
        await _execute(conn, definition, sql.drop_view(definition))
        dropped.append(definition.view_name)
    return dropped


async def refresh_aggregate(
    conn: AsyncConnection,
    registry: AggregateRegistry,
    family: str,
    timeframe: str,
    start: datetime | None = None,
    end: datetime | None = None,
) -> str:
    """Refresh one level, optionally within [start, end).

    Returns:
        str: The refreshed view name.

    Raises:
        UnknownAggregateError: If the level was never derived.
    """
    definition = registry.get(family, timeframe)
    await _execute(conn, definition, sql.refresh_view(definition, start, end))
    return definition.view_name


async def refresh_aggregates(
    conn: AsyncConnection,
    registry: AggregateRegistry,
    timeframes: Iterable[str] | None = None,
) -> list[str]:
    """Refresh every family, finest level first.

    Args:
        conn: AUTOCOMMIT connection.
        registry: Derived definitions.
        timeframes: Timeframe names to refresh; all of each family's by
            default. Refreshed in chain order whatever order they are given.

    Returns:
        list[str]: Refreshed view names.

    Raises:
        UnknownAggregateError: If a family does not derive one of
            *timeframes*. Nothing is refreshed in that case.
    """
    wanted = None if timeframes is None else list(timeframes)
    plan: list[tuple[str, str]] = []
    for family in registry.families():
        names = registry.timeframes(family)
        if wanted is not None:
            for timeframe in wanted:
                registry.get(family, timeframe)
            names = [name for name in names if name in wanted]
        plan.extend((family, name) for name in names)
    # Every lookup has succeeded before the first refresh runs.
    return [await refresh_aggregate(conn, registry, family, name) for family, name in plan]
