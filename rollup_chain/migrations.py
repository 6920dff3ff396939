"""
Alembic helpers for continuous aggregate revisions.

Call from a revision's ``upgrade()`` / ``downgrade()``::

    from rollup_chain.chain import load_registry
    from rollup_chain.migrations import (
        downgrade_continuous_aggregates,
        upgrade_continuous_aggregates,
    )

    def upgrade() -> None:
        upgrade_continuous_aggregates(load_registry("aggregates.json"))

Views are always created WITH NO DATA here: alembic runs each revision
inside a transaction, where populated creation is refused. Refresh them
afterwards through the lifecycle service.

CHANGELOG:
- 2026-10-18: Initial creation

TODO:
- None
"""

import logging

from alembic import op

from rollup_chain import sql
from rollup_chain.registry import AggregateRegistry

logger = logging.getLogger(__name__)


def upgrade_continuous_aggregates(registry: AggregateRegistry) -> None:
    """Create every view and its refresh policy, finest level first."""
    for definition in registry.create_order():
        op.execute(sql.create_view(definition, with_data=False))
        policy = sql.add_refresh_policy(definition)
        if policy is not None:
            op.execute(policy)
        logger.info("Created continuous aggregate %s", definition.view_name)


def downgrade_continuous_aggregates(registry: AggregateRegistry) -> None:
    """Drop every view, coarsest level first.

    Policies are removed along with their view.
    """
    for definition in registry.drop_order():
        op.execute(sql.drop_view(definition))
        logger.info("Dropped continuous aggregate %s", definition.view_name)
