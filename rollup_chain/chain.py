"""
Chain builder: derive one continuous aggregate per (scope, timeframe).

The first timeframe aggregates raw hypertable rows with the scope's own
projection. Every later timeframe reads the previous timeframe's view and
rewrites the previous projection through the rule table, so ``day`` is
rolled up from ``hour``, never from raw rows.

CHANGELOG:
- 2026-10-18: Initial creation

TODO:
- None
"""

import json
import logging
from collections.abc import Iterable
from pathlib import Path

from pydantic import TypeAdapter

from rollup_chain.models import AggregateDefinition, Hypertable, Scope
from rollup_chain.registry import AggregateRegistry
from rollup_chain.rules import RuleTable

logger = logging.getLogger(__name__)

_HYPERTABLES = TypeAdapter(list[Hypertable])


class ChainBuilder:
    """Builds the aggregate chains of one hypertable.

    Args:
        hypertable: Base entity to derive.
        rule_table: Rules used between levels. Defaults to the default
            table extended with the hypertable's custom rules.
    """

    def __init__(self, hypertable: Hypertable, rule_table: RuleTable | None = None) -> None:
        self.hypertable = hypertable
        if rule_table is None:
            rule_table = RuleTable().extend(hypertable.custom_rollup_rules)
        self.rule_table = rule_table

    def build(self) -> AggregateRegistry:
        """Derive every scope's chain.

        Returns:
            AggregateRegistry: Definitions in chain order; empty when the
            hypertable has no scopes.
        """
        registry = AggregateRegistry()
        for scope in self.hypertable.scopes:
            for definition in self.build_scope(scope):
                registry.add(definition)
            registry.set_rule_table(scope.name, self.rule_table)
        return registry

    def build_scope(self, scope: Scope) -> list[AggregateDefinition]:
        """Derive one scope's levels, finest first."""
        hypertable = self.hypertable
        levels: list[AggregateDefinition] = []
        previous: AggregateDefinition | None = None
        for timeframe in hypertable.timeframes:
            if previous is None:
                select = scope.select_clause
                source = scope.source or hypertable.table_name
            else:
                select = self.rule_table.apply(previous.select)
                source = previous.view_name
            previous = AggregateDefinition(
                family=scope.name,
                timeframe=timeframe,
                time_column=hypertable.time_column,
                select=select,
                group_by=scope.group_by,
                source=source,
                refresh_policy=hypertable.refresh_policy_for(scope, timeframe),
            )
            levels.append(previous)
        logger.debug(
            "Derived %s chain: %s",
            scope.name,
            " -> ".join(level.view_name for level in levels),
        )
        return levels


def build_registry(hypertables: Iterable[Hypertable]) -> AggregateRegistry:
    """Derive every chain of every hypertable into one registry.

    Raises:
        ValueError: If two hypertables derive the same view name.
    """
    registry = AggregateRegistry()
    for hypertable in hypertables:
        registry = registry.merge(ChainBuilder(hypertable).build())
    return registry


def load_registry(path: str | Path) -> AggregateRegistry:
    """Load hypertable definitions from a JSON file and derive them.

    The file holds a JSON list of hypertable objects.

    Args:
        path: Location of the JSON file.

    Returns:
        AggregateRegistry: Every derived level.

    Raises:
        FileNotFoundError: If *path* does not exist.
        pydantic.ValidationError: If the file content is invalid.
    """
    path = Path(path)
    hypertables = _HYPERTABLES.validate_python(json.loads(path.read_text(encoding="utf-8")))
    registry = build_registry(hypertables)
    logger.info(
        "Loaded %d continuous aggregates for %d hypertables from %s",
        len(registry),
        len(hypertables),
        path,
    )
    return registry
