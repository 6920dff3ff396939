"""
Pydantic models describing hypertables and their continuous aggregates.

A Hypertable is the base entity: a time column, the named scopes whose
projections get aggregated, and the ordered timeframes each scope is
materialized at. AggregateDefinition is one derived (scope, timeframe)
level, immutable once built by the chain builder.

CHANGELOG:
- 2026-10-18: Initial creation

TODO:
- None
"""

import re
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from rollup_chain.errors import UnknownScopeError

DEFAULT_TIMEFRAMES = ("minute", "hour", "day", "week", "month", "year")


def quote_literal(value: str) -> str:
    """Render *value* as a single-quoted SQL string literal."""
    return "'" + value.replace("'", "''") + "'"


class AggregateExpression(BaseModel):
    """One ``func(args...) as alias`` fragment of a projection list.

    Attributes:
        function: Aggregate function name as written (e.g. ``count``).
        args: Ordered argument list, whitespace stripped.
        alias: Output column alias.
    """

    model_config = ConfigDict(frozen=True)

    function: str
    args: tuple[str, ...] = ()
    alias: str

    @classmethod
    def from_match(cls, match: re.Match) -> "AggregateExpression":
        """Build an expression from a rule match with named groups.

        The pattern must define ``function``, ``args`` and ``alias`` groups.
        """
        raw_args = match.group("args") or ""
        args = tuple(arg.strip() for arg in raw_args.split(",") if arg.strip())
        return cls(function=match.group("function"), args=args, alias=match.group("alias"))

    def render(self) -> str:
        """Render back to ``func(a, b) as alias`` text."""
        return f"{self.function}({', '.join(self.args)}) as {self.alias}"


class Granularity(BaseModel):
    """A named time bucket width, e.g. ``hour`` -> ``'1 hour'``.

    Config files may give a bare string instead of an object.
    """

    model_config = ConfigDict(frozen=True)

    name: str
    width: str | None = None

    @model_validator(mode="before")
    @classmethod
    def _from_name(cls, data: Any) -> Any:
        if isinstance(data, str):
            return {"name": data}
        return data

    @field_validator("name")
    @classmethod
    def name_must_be_identifier(cls, v: str) -> str:
        """Timeframe names become part of view names."""
        if not re.fullmatch(r"\w+", v):
            raise ValueError(f"timeframe name must be a word, got {v!r}")
        return v

    @property
    def bucket_width(self) -> str:
        return self.width or f"1 {self.name}"

    @property
    def interval_literal(self) -> str:
        return quote_literal(self.bucket_width)


class RefreshPolicy(BaseModel):
    """Continuous aggregate refresh policy intervals.

    ``None`` offsets are passed through as SQL NULL (open-ended window).

    Attributes:
        start_offset: Window start relative to now, e.g. ``"3 hours"``.
        end_offset: Window end relative to now, e.g. ``"1 hour"``.
        schedule_interval: How often the policy job runs.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    start_offset: str | None
    end_offset: str | None
    schedule_interval: str


class Scope(BaseModel):
    """A named projection over the hypertable that gets aggregated.

    Attributes:
        name: Aggregate family name, prefix of every derived view name.
        select: Projection expressions, without the time bucket column.
        group_by: Group columns besides the time bucket.
        source: Relation the first level reads from (defaults to the
            hypertable itself).
        refresh_policy: Per-timeframe policies; overrides the hypertable
            map when set.
    """

    model_config = ConfigDict(frozen=True)

    name: str
    select: tuple[str, ...]
    group_by: tuple[str, ...] = ()
    source: str | None = None
    refresh_policy: dict[str, RefreshPolicy] | None = None

    @field_validator("name")
    @classmethod
    def name_must_be_identifier(cls, v: str) -> str:
        """Scope names become part of view names."""
        if not re.fullmatch(r"\w+", v):
            raise ValueError(f"scope name must be a word, got {v!r}")
        return v

    @property
    def select_clause(self) -> str:
        return ", ".join(self.select)


class Hypertable(BaseModel):
    """Base entity whose scopes are materialized as continuous aggregates.

    Attributes:
        table_name: Backing hypertable.
        time_column: Column bucketed by ``time_bucket``; also the name of
            the bucket column in every derived view.
        timeframes: Ordered, coarsening granularities.
        scopes: Aggregate families to derive.
        refresh_policy: Default per-timeframe refresh policies.
        custom_rollup_rules: Extra rollup rules, regex pattern to template.
            A pattern equal to a default rule's plain spelling, such as
            ``count\\(\\*\\)\\s+as\\s+(\\w+)``, replaces that rule in
            place; other patterns run after the defaults.
    """

    model_config = ConfigDict(frozen=True)

    table_name: str
    time_column: str = "created_at"
    timeframes: tuple[Granularity, ...] = Field(
        default_factory=lambda: tuple(Granularity(name=name) for name in DEFAULT_TIMEFRAMES),
    )
    scopes: tuple[Scope, ...] = ()
    refresh_policy: dict[str, RefreshPolicy] = Field(default_factory=dict)
    custom_rollup_rules: dict[str, str] = Field(default_factory=dict)

    @field_validator("timeframes")
    @classmethod
    def timeframes_must_be_unique(cls, v: tuple[Granularity, ...]) -> tuple[Granularity, ...]:
        """Two levels with one name would collide on their view name."""
        names = [timeframe.name for timeframe in v]
        duplicates = sorted({name for name in names if names.count(name) > 1})
        if duplicates:
            raise ValueError(f"duplicate timeframes: {', '.join(duplicates)}")
        return v

    @field_validator("custom_rollup_rules")
    @classmethod
    def rules_must_compile(cls, v: dict[str, str]) -> dict[str, str]:
        """Reject invalid regex patterns at load time."""
        for pattern in v:
            try:
                re.compile(pattern)
            except re.error as exc:
                raise ValueError(f"invalid rollup rule pattern {pattern!r}: {exc}") from exc
        return v

    def scope(self, name: str) -> Scope:
        """Return the scope called *name*.

        Raises:
            UnknownScopeError: If the hypertable defines no such scope.
        """
        for scope in self.scopes:
            if scope.name == name:
                return scope
        raise UnknownScopeError(self.table_name, name)

    def refresh_policy_for(self, scope: Scope, timeframe: Granularity) -> RefreshPolicy | None:
        """Resolve the refresh policy for one level, or None for no schedule."""
        policies = scope.refresh_policy if scope.refresh_policy is not None else self.refresh_policy
        return policies.get(timeframe.name)


class AggregateDefinition(BaseModel):
    """One materialized level of an aggregate family.

    Attributes:
        family: Scope name the chain belongs to.
        timeframe: Granularity of this level.
        time_column: Bucket column name, stable across the chain.
        select: Projection after rollup rewriting, without the bucket column.
        group_by: Group columns besides the bucket ordinal.
        source: Relation this level reads from.
        refresh_policy: Automatic refresh schedule, None for none.
    """

    model_config = ConfigDict(frozen=True)

    family: str
    timeframe: Granularity
    time_column: str
    select: str
    group_by: tuple[str, ...] = ()
    source: str
    refresh_policy: RefreshPolicy | None = None

    @property
    def view_name(self) -> str:
        return f"{self.family}_per_{self.timeframe.name}"

    @property
    def bucket_column(self) -> str:
        return f"time_bucket({self.timeframe.interval_literal}, {self.time_column}) as {self.time_column}"

    @property
    def group_by_clause(self) -> str:
        return ", ".join(["1", *self.group_by])

    @property
    def query(self) -> str:
        """SELECT statement body of the materialized view."""
        return (
            f"SELECT {self.bucket_column}, {self.select} "
            f'FROM "{self.source}" '
            f"GROUP BY {self.group_by_clause}"
        )
