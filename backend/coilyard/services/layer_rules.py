"""Layer dependency rules.

    can_occupy(position, graph)  -> a coil may be put here
    can_vacate(position, graph)  -> the coil here may be lifted out

Both return a ``LayerCheck`` that is truthy when allowed and otherwise
names the positions in the way.  ``assume_empty`` treats the given
position ids as vacant, which lets a shuffle validate its target against
the yard as it will be once the coil has left its old position.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Collection

from coilyard.schemas.position import PositionRecord
from coilyard.services.position_graph import PositionGraph

LOWER_LAYER_INCOMPLETE = "lower layer incomplete"
UPPER_LAYER_DEPENDS = "upper layer depends on this position"


@dataclass
class LayerCheck:
    allowed: bool
    reason: str | None = None
    # placeholder ids (or location ids, for unresolved supports)
    blockers: list[str] = field(default_factory=list)

    def __bool__(self) -> bool:
        return self.allowed


def _occupied(graph: PositionGraph, position_id: str, assume_empty: Collection[str]) -> bool:
    if position_id in assume_empty:
        return False
    return graph.is_occupied(position_id)


def can_occupy(
    position: PositionRecord,
    graph: PositionGraph,
    assume_empty: Collection[str] = (),
) -> LayerCheck:
    if position.layer == 1:
        return LayerCheck(True)

    node = graph.node(position.id)
    if node is None:
        return LayerCheck(False, LOWER_LAYER_INCOMPLETE, [position.placeholder_id])

    blockers = list(node.unresolved_supports)
    for support_id in node.supports:
        if not _occupied(graph, support_id, assume_empty):
            below = graph.position(support_id)
            blockers.append(below.placeholder_id if below else support_id)

    # A bridging position with nothing beneath it can never be filled
    if not node.supports and not blockers:
        blockers.append(position.primary_ground_location_id)

    if blockers:
        return LayerCheck(False, LOWER_LAYER_INCOMPLETE, blockers)
    return LayerCheck(True)


def can_vacate(
    position: PositionRecord,
    graph: PositionGraph,
    assume_empty: Collection[str] = (),
) -> LayerCheck:
    node = graph.node(position.id)
    if node is None:
        return LayerCheck(True)

    blockers = []
    for dependent_id in node.dependents:
        if _occupied(graph, dependent_id, assume_empty):
            above = graph.position(dependent_id)
            blockers.append(above.placeholder_id if above else dependent_id)

    if blockers:
        return LayerCheck(False, UPPER_LAYER_DEPENDS, blockers)
    return LayerCheck(True)
