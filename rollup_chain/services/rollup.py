"""
On-the-fly rollups of a materialized level to an arbitrary interval.

Reads an existing continuous aggregate and re-aggregates it into coarser
buckets without creating another view: the level's projection, bucket
column included, goes through the rule table, which rewrites the
aggregates and swaps the time_bucket width.

CHANGELOG:
- 2026-10-18: Initial creation

TODO:
- None
"""

import logging
from collections.abc import Iterable
from datetime import datetime
from typing import Any

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from rollup_chain.models import AggregateDefinition, quote_literal
from rollup_chain.registry import AggregateRegistry
from rollup_chain.rules import RuleTable

logger = logging.getLogger(__name__)


def rollup_query(
    definition: AggregateDefinition,
    interval: str,
    rule_table: RuleTable,
    filters: Iterable[str] = (),
    bounded: bool = False,
) -> str:
    """Build the SELECT rolling *definition* up to *interval*.

    Args:
        definition: Materialized level to read from.
        interval: New bucket width, e.g. ``"1 week"``.
        rule_table: Rules rewriting the level's aggregates.
        filters: Group columns compared, as text, for equality against
            bind parameters of the same name.
        bounded: Restrict buckets to ``[:start, :end)``.

    Returns:
        str: SQL text with named bind parameters.
    """
    projection = rule_table.rollup(
        f"{definition.bucket_column}, {definition.select}",
        quote_literal(interval),
    )
    # Query-string values arrive as text whatever the column type.
    conditions = [f"CAST({column} AS TEXT) = :{column}" for column in filters]
    if bounded:
        conditions.append(f"{definition.time_column} >= :start")
        conditions.append(f"{definition.time_column} < :end")

    query = f"SELECT {projection} FROM {definition.view_name}"
    if conditions:
        query += " WHERE " + " AND ".join(conditions)
    return query + f" GROUP BY {definition.group_by_clause} ORDER BY 1"


async def get_rollup(
    session: AsyncSession,
    registry: AggregateRegistry,
    family: str,
    timeframe: str,
    interval: str,
    filters: dict[str, Any] | None = None,
    start: datetime | None = None,
    end: datetime | None = None,
    rule_table: RuleTable | None = None,
) -> list[dict]:
    """Query *family* per *timeframe* re-bucketed to *interval*.

    Args:
        session: Async SQLAlchemy session for database operations.
        registry: Derived definitions.
        family: Aggregate family name.
        timeframe: Materialized level to read from.
        interval: New bucket width.
        filters: Equality filters on the level's group columns; values
            are compared as text.
        start: Inclusive lower bucket bound; needs *end*.
        end: Exclusive upper bucket bound; needs *start*.
        rule_table: Rules to use; defaults to the ones the family was
            derived with.

    Returns:
        List of row dicts keyed by column name.

    Raises:
        UnknownAggregateError: If the level was never derived.
        ValueError: If a filter is not a group column or the interval
            is empty.
    """
    definition = registry.get(family, timeframe)
    filters = filters or {}
    unknown = sorted(set(filters) - set(definition.group_by))
    if unknown:
        raise ValueError(
            f"Cannot filter {definition.view_name} on {', '.join(unknown)}; "
            f"group columns are: {', '.join(definition.group_by) or 'none'}"
        )
    if not interval.strip():
        raise ValueError("interval must not be empty")

    bounded = start is not None and end is not None
    query = rollup_query(
        definition,
        interval,
        rule_table or registry.rule_table(family),
        filters=filters,
        bounded=bounded,
    )
    params: dict[str, Any] = {column: str(value) for column, value in filters.items()}
    if bounded:
        params["start"] = start
        params["end"] = end

    logger.debug("Rollup query", extra={"view": definition.view_name, "statement": query})
    result = await session.execute(text(query), params)
    return [dict(row._mapping) for row in result.fetchall()]
