"""
Shared test fixtures for rollup-chain tests.

Provides an isolated environment, sample hypertable definitions and a
derived registry.

CHANGELOG:
- 2026-10-18: Initial creation

TODO:
- None
"""

import json
from collections.abc import Iterator
from pathlib import Path

import pytest

from rollup_chain.api import deps
from rollup_chain.chain import ChainBuilder
from rollup_chain.models import Hypertable
from rollup_chain.registry import AggregateRegistry

# All Settings environment variable names, used for cleanup.
_ALL_ENV_VARS = (
    "DATABASE_URL",
    "AGGREGATES_FILE",
    "WITH_DATA",
    "LOG_LEVEL",
)

TICKS = {
    "table_name": "ticks",
    "time_column": "time",
    "timeframes": ["minute", "hour", "day"],
    "refresh_policy": {
        "minute": {"start_offset": "10 minutes", "end_offset": "1 minute", "schedule_interval": "1 minute"},
        "hour": {"start_offset": "4 hours", "end_offset": "1 hour", "schedule_interval": "1 hour"},
    },
    "scopes": [
        {"name": "total_volume", "select": ["count(*) as total", "sum(volume) as volume"]},
        {
            "name": "ohlcv",
            "select": [
                "symbol",
                "first(price, time) as open",
                "max(price) as high",
                "min(price) as low",
                "last(price, time) as close",
                "sum(volume) as volume",
            ],
            "group_by": ["symbol"],
        },
    ],
}


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    """Remove all settings env vars and isolate from .env files.

    Changes working directory to tmp_path so no .env file is accidentally
    loaded by Pydantic BaseSettings, then sets a dummy DATABASE_URL.
    """
    for var in _ALL_ENV_VARS:
        monkeypatch.delenv(var, raising=False)
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("DATABASE_URL", "postgresql+asyncpg://u:p@localhost/db")


@pytest.fixture(autouse=True)
def _reset_registry() -> Iterator[None]:
    """Drop the API's cached registry around every test."""
    deps.reset_registry()
    yield
    deps.reset_registry()


@pytest.fixture()
def ticks() -> Hypertable:
    """The ``ticks`` hypertable with two scopes over minute/hour/day."""
    return Hypertable.model_validate(TICKS)


@pytest.fixture()
def registry(ticks: Hypertable) -> AggregateRegistry:
    """Registry derived from the ``ticks`` hypertable."""
    return ChainBuilder(ticks).build()


@pytest.fixture()
def aggregates_file(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Write the ``ticks`` definition to a JSON file and point settings at it."""
    path = tmp_path / "aggregates.json"
    path.write_text(json.dumps([TICKS]), encoding="utf-8")
    monkeypatch.setenv("AGGREGATES_FILE", str(path))
    return path
