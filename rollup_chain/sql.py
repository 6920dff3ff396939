"""
TimescaleDB DDL and procedure calls for continuous aggregates.

Builds SQLAlchemy text() statements for one AggregateDefinition. Create
and drop carry IF NOT EXISTS / IF EXISTS guards so repeating them is a
no-op rather than an error.

CHANGELOG:
- 2026-10-18: Initial creation

TODO:
- None
"""

from datetime import datetime

from sqlalchemy import TextClause, text

from rollup_chain.models import AggregateDefinition, quote_literal


def _interval(value: str | None) -> str:
    if value is None:
        return "NULL"
    return f"INTERVAL {quote_literal(value)}"


def _timestamp(value: datetime | str | None) -> str:
    if value is None:
        return "null"
    if isinstance(value, datetime):
        value = value.isoformat()
    return quote_literal(value)


def create_view(definition: AggregateDefinition, with_data: bool = False) -> TextClause:
    """CREATE MATERIALIZED VIEW ... WITH (timescaledb.continuous).

    Args:
        definition: Level to create.
        with_data: Populate the view immediately (WITH DATA). Populated
            creation cannot run inside a transaction block.
    """
    return text(
        f"CREATE MATERIALIZED VIEW IF NOT EXISTS {definition.view_name} "
        "WITH (timescaledb.continuous) AS "
        f"{definition.query} "
        f"{'WITH DATA' if with_data else 'WITH NO DATA'}"
    )


def add_refresh_policy(definition: AggregateDefinition) -> TextClause | None:
    """Register the level's refresh policy, or None when it has none."""
    policy = definition.refresh_policy
    if policy is None:
        return None
    return text(
        f"SELECT add_continuous_aggregate_policy('{definition.view_name}', "
        f"start_offset => {_interval(policy.start_offset)}, "
        f"end_offset => {_interval(policy.end_offset)}, "
        f"schedule_interval => {_interval(policy.schedule_interval)}, "
        "if_not_exists => TRUE)"
    )


def remove_refresh_policy(definition: AggregateDefinition) -> TextClause:
    return text(
        f"SELECT remove_continuous_aggregate_policy('{definition.view_name}', "
        "if_exists => TRUE)"
    )


def drop_view(definition: AggregateDefinition) -> TextClause:
    """DROP MATERIALIZED VIEW ... CASCADE; dependent levels go with it."""
    return text(f"DROP MATERIALIZED VIEW IF EXISTS {definition.view_name} CASCADE")


def refresh_view(
    definition: AggregateDefinition,
    start: datetime | str | None = None,
    end: datetime | str | None = None,
) -> TextClause:
    """CALL refresh_continuous_aggregate for the level.

    The window is applied only when both bounds are given; otherwise the
    whole view is refreshed.
    """
    if start is None or end is None:
        start = end = None
    return text(
        f"CALL refresh_continuous_aggregate('{definition.view_name}', "
        f"{_timestamp(start)}, {_timestamp(end)})"
    )
