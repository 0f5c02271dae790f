# src/catch2adapter/reconciler.py
#
"""
Merges a freshly listed tree into the previously known one so that
unchanged tests keep their ids across reloads.
"""

from collections.abc import Sequence

import structlog
from attrs import define, field

from catch2adapter.telemetry import StructLogger
from catch2adapter.tree import NodeKind, TestNode

log: StructLogger = structlog.get_logger("reconciler")


@define(slots=True)
class Reconciliation:
    """Result of one reconciliation: the new child list plus what changed (at any depth)."""

    children: list[TestNode] = field(factory=list)
    added: list[TestNode] = field(factory=list)
    removed: list[TestNode] = field(factory=list)

    @property
    def changed(self) -> bool:
        return bool(self.added or self.removed)


def _merge_into(result: Reconciliation, previous: Sequence[TestNode], fresh: Sequence[TestNode]) -> list[TestNode]:
    by_identity: dict[tuple[NodeKind, str], TestNode] = {}
    for node in previous:
        by_identity.setdefault((node.kind, node.key), node)

    merged: list[TestNode] = []
    claimed: set[int] = set()
    for node in fresh:
        prior = by_identity.pop((node.kind, node.key), None)
        if prior is None:
            result.added.append(node)
        else:
            claimed.add(id(prior))
            node.id = prior.id
            if node.is_suite:
                node.children = _merge_into(result, prior.children, node.children)
        merged.append(node)

    result.removed.extend(node for node in previous if id(node) not in claimed)
    return merged


def reconcile(previous: Sequence[TestNode], fresh: Sequence[TestNode]) -> Reconciliation:
    """
    Produces the child list that replaces `previous`.

    Nodes are matched on (kind, key). Matched fresh nodes take over the
    prior id, and their children are reconciled the same way; unmatched
    fresh nodes count as added, unmatched previous nodes as removed.
    The output follows the fresh order, since the binary's own listing
    order is authoritative. Previous nodes are never mutated.
    """
    result = Reconciliation()
    result.children = _merge_into(result, previous, fresh)
    if result.changed:
        log.debug("Tree reconciled", added=len(result.added), removed=len(result.removed))
    return result


# 🔼⚙️
