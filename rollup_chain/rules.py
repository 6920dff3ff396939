"""
Rollup rules: rewrite an aggregate projection for the next coarser level.

Each rule pairs a pattern over one aggregate call shape with the
continuation that re-aggregates its output column. Rules run in
declaration order over the current (possibly already rewritten) text, so
a later rule may match what an earlier one produced. Text that matches no
rule passes through verbatim.

CHANGELOG:
- 2026-10-18: Initial creation

TODO:
- None
"""

import re
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass

from rollup_chain.models import AggregateExpression

Rewrite = str | Callable[[AggregateExpression], str]

_COLUMN = r"\w+"
_TWO_COLUMNS = r"\w+,\s*\w+"
_ANY_ARGS = r"[^()]*"

_TIME_BUCKET = re.compile(r"\btime_bucket\(\s*(?P<width>[^,()]+?)\s*,\s*(?P<column>[^()]+?)\s*\)")


def call_pattern(function: str, args: str) -> re.Pattern:
    """Compile a pattern for ``function(args) as alias``.

    The pattern exposes ``function``, ``args`` and ``alias`` named groups
    so callable rewrites receive an AggregateExpression.
    """
    return re.compile(
        rf"\b(?P<function>{function})\((?P<args>{args})\)\s+as\s+(?P<alias>\w+)",
        re.IGNORECASE,
    )


@dataclass(frozen=True)
class RollupRule:
    """A (pattern, rewrite) pair.

    Attributes:
        pattern: Compiled pattern for one aggregate call shape.
        rewrite: Template string expanded against the match (``\\1``,
            ``\\g<alias>``), or a callable receiving the matched
            AggregateExpression.
        aliases: Other pattern texts a custom rule may use to override
            this one, e.g. the plain ``count\\(\\*\\)\\s+as\\s+(\\w+)``
            form of a default rule.
    """

    pattern: re.Pattern
    rewrite: Rewrite
    aliases: tuple[str, ...] = ()

    @classmethod
    def from_template(cls, pattern: str | re.Pattern, template: Rewrite) -> "RollupRule":
        if isinstance(pattern, str):
            pattern = re.compile(pattern)
        return cls(pattern=pattern, rewrite=template)

    @property
    def key(self) -> str:
        return self.pattern.pattern

    def _replace(self, match: re.Match) -> str:
        if callable(self.rewrite):
            return self.rewrite(AggregateExpression.from_match(match))
        return match.expand(self.rewrite)

    def apply(self, select: str) -> str:
        return self.pattern.sub(self._replace, select)


def _reaggregate(function: str) -> Callable[[AggregateExpression], str]:
    """``f(...) as x`` -> ``function(x) as x``."""

    def rewrite(expr: AggregateExpression) -> str:
        return AggregateExpression(function=function, args=(expr.alias,), alias=expr.alias).render()

    return rewrite


def _ordered(function: str) -> Callable[[AggregateExpression], str]:
    """``first(value, time) as x`` -> ``first(x, time) as x``."""

    def rewrite(expr: AggregateExpression) -> str:
        return AggregateExpression(
            function=function, args=(expr.alias, expr.args[1]), alias=expr.alias
        ).render()

    return rewrite


def _extreme(function: str) -> Callable[[AggregateExpression], str]:
    """``high(value, time) as x`` -> ``max(value) as value``."""

    def rewrite(expr: AggregateExpression) -> str:
        column = expr.args[0]
        return AggregateExpression(function=function, args=(column,), alias=column).render()

    return rewrite


def _rule(function: str, args: str, rewrite: Rewrite, *aliases: str) -> RollupRule:
    return RollupRule(call_pattern(function, args), rewrite, aliases=aliases)


# Aliases are the plain-regex spellings custom rules may use to override a
# default in place.
DEFAULT_ROLLUP_RULES: tuple[RollupRule, ...] = (
    _rule("count", r"\*", _reaggregate("sum"), r"count\(\*\)\s+as\s+(\w+)"),
    _rule("sum", _COLUMN, _reaggregate("sum"), r"sum\((\w+)\)\s+as\s+(\w+)"),
    _rule("min", _COLUMN, _reaggregate("min"), r"min\((\w+)\)\s+as\s+(\w+)"),
    _rule("max", _COLUMN, _reaggregate("max"), r"max\((\w+)\)\s+as\s+(\w+)"),
    _rule("first", _TWO_COLUMNS, _ordered("first"), r"first\((\w+),\s*(\w+)\)\s+as\s+(\w+)"),
    _rule("high", _TWO_COLUMNS, _extreme("max"), r"high\((\w+),\s*(\w+)\)\s+as\s+(\w+)"),
    _rule("low", _TWO_COLUMNS, _extreme("min"), r"low\((\w+),\s*(\w+)\)\s+as\s+(\w+)"),
    _rule("last", _TWO_COLUMNS, _ordered("last"), r"last\((\w+),\s*(\w+)\)\s+as\s+(\w+)"),
    # Aggregate states merge through rollup() whatever built them.
    _rule(
        "candlestick_agg", _ANY_ARGS, _reaggregate("rollup"), r"candlestick_agg\((\w+)\)\s+as\s+(\w+)"
    ),
    _rule(
        "stats_agg", _TWO_COLUMNS, _reaggregate("rollup"), r"stats_agg\((\w+),\s*(\w+)\)\s+as\s+(\w+)"
    ),
    _rule("stats_agg", _COLUMN, _reaggregate("rollup"), r"stats_agg\((\w+)\)\s+as\s+(\w+)"),
    _rule("state_agg", _ANY_ARGS, _reaggregate("rollup"), r"state_agg\((\w+)\)\s+as\s+(\w+)"),
    _rule(
        "percentile_agg",
        _ANY_ARGS,
        _reaggregate("rollup"),
        r"percentile_agg\((\w+)\)\s+as\s+(\w+)",
        r"percentile_agg\((\w+),\s*(\w+)\)\s+as\s+(\w+)",
    ),
    _rule("heartbeat_agg", _ANY_ARGS, _reaggregate("rollup"), r"heartbeat_agg\((\w+)\)\s+as\s+(\w+)"),
)


class RuleTable:
    """Ordered rollup rules, keyed by pattern text.

    A table is never mutated after construction; ``extend`` returns a new
    table so each hypertable can carry its own rules.
    """

    def __init__(self, rules: Iterable[RollupRule] = DEFAULT_ROLLUP_RULES) -> None:
        self._rules: dict[str, RollupRule] = {}
        for rule in rules:
            self._rules[rule.key] = rule

    def __iter__(self):
        return iter(self._rules.values())

    def __len__(self) -> int:
        return len(self._rules)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, RuleTable):
            return NotImplemented
        return list(self._rules.items()) == list(other._rules.items())

    def extend(self, custom: Mapping[str, Rewrite] | Iterable[RollupRule]) -> "RuleTable":
        """Return a table with *custom* rules merged in.

        A custom rule whose pattern text equals an existing rule's pattern
        or one of its aliases replaces it in place; any other custom rule
        is appended.

        Args:
            custom: Mapping of pattern to rewrite, or RollupRule objects.

        Returns:
            RuleTable: The merged table. The receiver is left unchanged.
        """
        if isinstance(custom, Mapping):
            custom = [RollupRule.from_template(pattern, rewrite) for pattern, rewrite in custom.items()]
        merged = dict(self._rules)
        aliases = {alias: key for key, rule in self._rules.items() for alias in rule.aliases}
        for rule in custom:
            merged[aliases.get(rule.key, rule.key)] = rule
        return RuleTable(merged.values())

    def apply(self, select: str) -> str:
        """Rewrite every recognized aggregate call in *select*.

        Args:
            select: Comma-joined projection list.

        Returns:
            str: The projection for the next coarser level.
        """
        for rule in self._rules.values():
            select = rule.apply(select)
        return select

    @staticmethod
    def rebucket(select: str, interval: str) -> str:
        """Swap the width argument of every ``time_bucket`` call.

        Args:
            select: Projection list.
            interval: SQL expression for the new width, e.g. ``'1 day'``.

        Returns:
            str: The projection with the bucket column kept and the width
            replaced.
        """
        return _TIME_BUCKET.sub(
            lambda match: f"time_bucket({interval}, {match.group('column')})",
            select,
        )

    def rollup(self, select: str, interval: str) -> str:
        """Roll a bucketed projection up to *interval*.

        Only projections that already carry a ``time_bucket`` call are
        rewritten; anything else is returned verbatim.
        """
        if "time_bucket(" not in select:
            return select
        return self.rebucket(self.apply(select), interval)
