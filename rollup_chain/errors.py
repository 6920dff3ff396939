"""
Exceptions raised by rollup-chain.

CHANGELOG:
- 2026-10-18: Initial creation

TODO:
- None
"""


class RollupChainError(Exception):
    """Base class for all rollup-chain errors."""


class UnknownAggregateError(RollupChainError, KeyError):
    """Raised when a (family, timeframe) pair was never derived.

    Attributes:
        family: Aggregate family (scope) name that was looked up.
        timeframe: Timeframe name that was looked up.
    """

    def __init__(self, family: str, timeframe: str) -> None:
        self.family = family
        self.timeframe = timeframe
        super().__init__(f"No continuous aggregate defined for {family!r} per {timeframe!r}")

    def __str__(self) -> str:
        return self.args[0]


class UnknownScopeError(RollupChainError, KeyError):
    """Raised when a hypertable is asked for a scope it does not define."""

    def __init__(self, table_name: str, scope_name: str) -> None:
        self.table_name = table_name
        self.scope_name = scope_name
        super().__init__(f"Hypertable {table_name!r} has no scope {scope_name!r}")

    def __str__(self) -> str:
        return self.args[0]
