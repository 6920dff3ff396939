"""
Registry of derived continuous aggregate definitions.

Maps (family, timeframe) to the AggregateDefinition built for it, keeping
chain order so lifecycle operations can walk dependencies forwards
(create, refresh) or backwards (drop).

CHANGELOG:
- 2026-10-18: Initial creation

TODO:
- None
"""

from collections.abc import Iterable, Iterator

from rollup_chain.errors import UnknownAggregateError
from rollup_chain.models import AggregateDefinition
from rollup_chain.rules import RuleTable


class AggregateRegistry:
    """Ordered mapping of (family, timeframe) to AggregateDefinition.

    Also remembers the rule table each family was derived with, so later
    rollups of its levels rewrite with the same rules.
    """

    def __init__(self, definitions: Iterable[AggregateDefinition] = ()) -> None:
        self._definitions: dict[tuple[str, str], AggregateDefinition] = {}
        self._rule_tables: dict[str, RuleTable] = {}
        for definition in definitions:
            self.add(definition)

    def add(self, definition: AggregateDefinition) -> None:
        """Register *definition*.

        Raises:
            ValueError: If the (family, timeframe) pair is already taken.
        """
        key = (definition.family, definition.timeframe.name)
        if key in self._definitions:
            raise ValueError(f"Duplicate continuous aggregate {definition.view_name!r}")
        self._definitions[key] = definition

    def merge(self, other: "AggregateRegistry") -> "AggregateRegistry":
        """Return a registry holding both registries' definitions.

        Raises:
            ValueError: If both derive the same view name.
        """
        merged = AggregateRegistry([*self, *other])
        merged._rule_tables = {**self._rule_tables, **other._rule_tables}
        return merged

    def set_rule_table(self, family: str, rule_table: RuleTable) -> None:
        self._rule_tables[family] = rule_table

    def rule_table(self, family: str) -> RuleTable:
        """Rules *family* was derived with; the default table otherwise."""
        rule_table = self._rule_tables.get(family)
        return rule_table if rule_table is not None else RuleTable()

    def __iter__(self) -> Iterator[AggregateDefinition]:
        return iter(self._definitions.values())

    def __len__(self) -> int:
        return len(self._definitions)

    def __contains__(self, key: object) -> bool:
        return key in self._definitions

    def get(self, family: str, timeframe: str) -> AggregateDefinition:
        """Look up one derived level.

        Raises:
            UnknownAggregateError: If the pair was never derived.
        """
        try:
            return self._definitions[(family, timeframe)]
        except KeyError:
            raise UnknownAggregateError(family, timeframe) from None

    def families(self) -> list[str]:
        """Family names in registration order."""
        return list(dict.fromkeys(family for family, _ in self._definitions))

    def chain(self, family: str) -> list[AggregateDefinition]:
        """The family's levels, finest first.

        Raises:
            UnknownAggregateError: If the family has no levels.
        """
        levels = [definition for definition in self if definition.family == family]
        if not levels:
            raise UnknownAggregateError(family, "*")
        return levels

    def timeframes(self, family: str) -> list[str]:
        return [definition.timeframe.name for definition in self.chain(family)]

    def create_order(self) -> list[AggregateDefinition]:
        """Every level, each after the level it reads from."""
        return [definition for family in self.families() for definition in self.chain(family)]

    def drop_order(self) -> list[AggregateDefinition]:
        """Every level, each before the level it reads from."""
        return [
            definition
            for family in self.families()
            for definition in reversed(self.chain(family))
        ]
