"""
Tests for the hypertable and aggregate definition models.

CHANGELOG:
- 2026-10-18: Initial creation

TODO:
- None
"""

import pytest
from pydantic import ValidationError

from rollup_chain.errors import UnknownScopeError
from rollup_chain.models import (
    DEFAULT_TIMEFRAMES,
    AggregateDefinition,
    Granularity,
    Hypertable,
    RefreshPolicy,
    Scope,
    quote_literal,
)


class TestGranularity:
    """Granularity names, widths and literals."""

    def test_bare_string_is_accepted(self) -> None:
        """Config files may name a timeframe with a plain string."""
        assert Granularity.model_validate("hour") == Granularity(name="hour")

    def test_default_width_is_one_unit(self) -> None:
        assert Granularity(name="day").bucket_width == "1 day"
        assert Granularity(name="day").interval_literal == "'1 day'"

    def test_explicit_width(self) -> None:
        quarter = Granularity(name="quarter_hour", width="15 minutes")
        assert quarter.interval_literal == "'15 minutes'"

    def test_name_must_be_a_word(self) -> None:
        with pytest.raises(ValidationError):
            Granularity(name="one hour")


class TestRefreshPolicy:
    """Refresh policy validation."""

    def test_unknown_keys_rejected(self) -> None:
        with pytest.raises(ValidationError):
            RefreshPolicy.model_validate(
                {"start_offset": "1 day", "end_offset": "1 hour", "schedule_interval": "1 hour", "every": "x"}
            )

    def test_null_offsets_allowed(self) -> None:
        policy = RefreshPolicy(start_offset=None, end_offset="1 hour", schedule_interval="1 hour")
        assert policy.start_offset is None

    def test_schedule_interval_required(self) -> None:
        with pytest.raises(ValidationError):
            RefreshPolicy.model_validate({"start_offset": "1 day", "end_offset": "1 hour"})


class TestHypertable:
    """Hypertable defaults and validation."""

    def test_defaults(self) -> None:
        hypertable = Hypertable(table_name="events")
        assert hypertable.time_column == "created_at"
        assert [t.name for t in hypertable.timeframes] == list(DEFAULT_TIMEFRAMES)
        assert hypertable.scopes == ()
        assert hypertable.custom_rollup_rules == {}

    def test_duplicate_timeframes_rejected(self) -> None:
        """Two levels with one name would share a view name."""
        with pytest.raises(ValidationError) as exc_info:
            Hypertable(table_name="events", timeframes=["hour", "day", "hour"])
        assert "duplicate timeframes: hour" in str(exc_info.value)

    def test_invalid_custom_rule_rejected(self) -> None:
        with pytest.raises(ValidationError) as exc_info:
            Hypertable(table_name="events", custom_rollup_rules={"avg(": "x"})
        assert "invalid rollup rule pattern" in str(exc_info.value)

    def test_scope_lookup(self, ticks: Hypertable) -> None:
        assert ticks.scope("ohlcv").group_by == ("symbol",)

    def test_unknown_scope_raises(self, ticks: Hypertable) -> None:
        with pytest.raises(UnknownScopeError) as exc_info:
            ticks.scope("missing")
        assert isinstance(exc_info.value, KeyError)
        assert "missing" in str(exc_info.value)

    def test_scope_policy_overrides_hypertable_policy(self) -> None:
        """A scope's own policy map replaces the hypertable's entirely."""
        hourly = RefreshPolicy(start_offset="3 hours", end_offset="1 hour", schedule_interval="1 hour")
        daily = RefreshPolicy(start_offset="3 days", end_offset="1 day", schedule_interval="1 day")
        scope = Scope(name="own", select=("count(*) as total",), refresh_policy={"day": daily})
        hypertable = Hypertable(table_name="events", scopes=(scope,), refresh_policy={"hour": hourly})

        assert hypertable.refresh_policy_for(scope, Granularity(name="day")) == daily
        assert hypertable.refresh_policy_for(scope, Granularity(name="hour")) is None


class TestAggregateDefinition:
    """Rendering of one derived level."""

    def test_view_name_and_query(self) -> None:
        definition = AggregateDefinition(
            family="ohlcv",
            timeframe=Granularity(name="hour"),
            time_column="time",
            select="max(high) as high",
            group_by=("symbol",),
            source="ohlcv_per_minute",
        )
        assert definition.view_name == "ohlcv_per_hour"
        assert definition.group_by_clause == "1, symbol"
        assert definition.query == (
            "SELECT time_bucket('1 hour', time) as time, max(high) as high "
            'FROM "ohlcv_per_minute" GROUP BY 1, symbol'
        )

    def test_group_by_without_columns(self) -> None:
        definition = AggregateDefinition(
            family="hits",
            timeframe=Granularity(name="day"),
            time_column="created_at",
            select="count(*) as total",
            source="events",
        )
        assert definition.group_by_clause == "1"

    def test_definition_is_immutable(self) -> None:
        definition = AggregateDefinition(
            family="hits",
            timeframe=Granularity(name="day"),
            time_column="created_at",
            select="count(*) as total",
            source="events",
        )
        with pytest.raises(ValidationError):
            definition.select = "sum(total) as total"


def test_quote_literal_escapes_quotes() -> None:
    assert quote_literal("it's") == "'it''s'"
