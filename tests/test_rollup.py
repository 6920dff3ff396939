"""
Tests for on-the-fly rollups of a materialized level.

CHANGELOG:
- 2026-10-18: Initial creation

TODO:
- None
"""

from datetime import UTC, datetime
from unittest.mock import AsyncMock, MagicMock

import pytest

from rollup_chain.chain import ChainBuilder
from rollup_chain.errors import UnknownAggregateError
from rollup_chain.models import Hypertable
from rollup_chain.registry import AggregateRegistry
from rollup_chain.rules import RuleTable
from rollup_chain.services.rollup import get_rollup, rollup_query

OHLCV_HOUR = (
    "symbol, first(open, time) as open, max(high) as high, min(low) as low, "
    "last(close, time) as close, sum(volume) as volume"
)


def _make_row(**mapping: object) -> MagicMock:
    """Create a mock Row object with ._mapping like a SQLAlchemy Row."""
    row = MagicMock()
    row._mapping = mapping
    return row


@pytest.fixture()
def mock_db_session() -> AsyncMock:
    """Mock AsyncSession returning one rolled-up row."""
    session = AsyncMock()
    result = MagicMock()
    result.fetchall.return_value = [
        _make_row(time="2026-10-12T00:00:00+00:00", symbol="ACME", total=42),
    ]
    session.execute.return_value = result
    return session


class TestRollupQuery:
    """rollup_query SQL construction."""

    def test_rebuckets_and_rewrites(self, registry: AggregateRegistry) -> None:
        query = rollup_query(registry.get("total_volume", "minute"), "1 hour", RuleTable())
        assert query == (
            "SELECT time_bucket('1 hour', time) as time, sum(total) as total, sum(volume) as volume "
            "FROM total_volume_per_minute GROUP BY 1 ORDER BY 1"
        )

    def test_filters_and_window(self, registry: AggregateRegistry) -> None:
        query = rollup_query(
            registry.get("ohlcv", "hour"),
            "1 week",
            RuleTable(),
            filters=["symbol"],
            bounded=True,
        )
        assert query == (
            f"SELECT time_bucket('1 week', time) as time, {OHLCV_HOUR} "
            "FROM ohlcv_per_hour "
            "WHERE CAST(symbol AS TEXT) = :symbol AND time >= :start AND time < :end "
            "GROUP BY 1, symbol ORDER BY 1"
        )

    def test_interval_is_quoted(self, registry: AggregateRegistry) -> None:
        query = rollup_query(registry.get("total_volume", "day"), "it's", RuleTable())
        assert "time_bucket('it''s', time)" in query


class TestGetRollup:
    """get_rollup execution."""

    @pytest.mark.asyncio()
    async def test_rows_and_params(self, mock_db_session: AsyncMock, registry: AggregateRegistry) -> None:
        start = datetime(2026, 10, 1, tzinfo=UTC)
        end = datetime(2026, 11, 1, tzinfo=UTC)
        rows = await get_rollup(
            mock_db_session,
            registry,
            "ohlcv",
            "day",
            "1 week",
            filters={"symbol": "ACME"},
            start=start,
            end=end,
        )

        assert rows == [{"time": "2026-10-12T00:00:00+00:00", "symbol": "ACME", "total": 42}]
        statement, params = mock_db_session.execute.call_args.args
        assert "FROM ohlcv_per_day" in statement.text
        assert params == {"symbol": "ACME", "start": start, "end": end}

    @pytest.mark.asyncio()
    async def test_half_window_is_ignored(self, mock_db_session: AsyncMock, registry: AggregateRegistry) -> None:
        await get_rollup(mock_db_session, registry, "ohlcv", "day", "1 week", start=datetime(2026, 10, 1, tzinfo=UTC))

        statement, params = mock_db_session.execute.call_args.args
        assert "WHERE" not in statement.text
        assert params == {}

    @pytest.mark.asyncio()
    async def test_unknown_filter_rejected(self, mock_db_session: AsyncMock, registry: AggregateRegistry) -> None:
        with pytest.raises(ValueError, match="exchange"):
            await get_rollup(mock_db_session, registry, "ohlcv", "day", "1 week", filters={"exchange": "X"})
        mock_db_session.execute.assert_not_called()

    @pytest.mark.asyncio()
    async def test_empty_interval_rejected(self, mock_db_session: AsyncMock, registry: AggregateRegistry) -> None:
        with pytest.raises(ValueError, match="interval"):
            await get_rollup(mock_db_session, registry, "ohlcv", "day", "  ")

    @pytest.mark.asyncio()
    async def test_unknown_level(self, mock_db_session: AsyncMock, registry: AggregateRegistry) -> None:
        with pytest.raises(UnknownAggregateError):
            await get_rollup(mock_db_session, registry, "ohlcv", "year", "1 year")

    @pytest.mark.asyncio()
    async def test_family_rules_are_used(self, mock_db_session: AsyncMock) -> None:
        """Custom rules the family was derived with also drive its rollups."""
        hypertable = Hypertable.model_validate(
            {
                "table_name": "requests",
                "time_column": "time",
                "timeframes": ["hour"],
                "scopes": [{"name": "latency", "select": ["avg(latency) as latency"]}],
                "custom_rollup_rules": {r"avg\((\w+)\)\s+as\s+(\w+)": r"avg(\2) as \2"},
            }
        )
        registry = ChainBuilder(hypertable).build()

        await get_rollup(mock_db_session, registry, "latency", "hour", "1 day")

        statement, _ = mock_db_session.execute.call_args.args
        assert statement.text.startswith("SELECT time_bucket('1 day', time) as time, avg(latency) as latency ")

    @pytest.mark.asyncio()
    async def test_filters_compare_as_text(self, mock_db_session: AsyncMock) -> None:
        """Non-text group columns are cast so string and int values both bind."""
        hypertable = Hypertable.model_validate(
            {
                "table_name": "readings",
                "time_column": "time",
                "timeframes": ["hour", "day"],
                "scopes": [
                    {
                        "name": "energy",
                        "select": ["device_id", "sum(kwh) as kwh"],
                        "group_by": ["device_id"],
                    }
                ],
            }
        )
        registry = ChainBuilder(hypertable).build()

        await get_rollup(mock_db_session, registry, "energy", "hour", "1 day", filters={"device_id": 5})

        statement, params = mock_db_session.execute.call_args.args
        assert "WHERE CAST(device_id AS TEXT) = :device_id " in statement.text
        assert params == {"device_id": "5"}
