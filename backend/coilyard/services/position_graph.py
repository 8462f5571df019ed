"""Position graph: who rests on whom.

A bridging position at layer N sits across several ground locations (its
support set).  It can only hold a coil once every layer-(N-1) position
whose *primary* location is in that set is occupied.  The graph resolves
those references once so the layer rules and the UI queries never have to
scan the whole position list again.

    graph = build_position_graph(positions, locations, bay="A")
    node = graph.node(position_id)
    node.supports     -> layer-(N-1) positions under it
    node.dependents   -> layer-(N+1) positions resting on it

Building the graph is pure: no store access, no mutation of the inputs.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from typing import Iterable

from coilyard.schemas.location import LocationRecord
from coilyard.schemas.position import PositionRecord


@dataclass
class PositionNode:
    position: PositionRecord
    primary_location: LocationRecord | None
    supporting_locations: list[LocationRecord] = field(default_factory=list)
    # ids of the layer-(N-1) positions that must be occupied first
    supports: list[str] = field(default_factory=list)
    # ids of the layer-(N+1) positions that rest on this one
    dependents: list[str] = field(default_factory=list)
    # support location ids with no layer-(N-1) position on them
    unresolved_supports: list[str] = field(default_factory=list)

    @property
    def id(self) -> str:
        return self.position.id

    @property
    def layer(self) -> int:
        return self.position.layer


@dataclass
class PositionGraph:
    nodes: dict[str, PositionNode]
    locations: dict[str, LocationRecord]
    bay: str | None = None
    zone: str | None = None
    # positions outside bay/zone that in-scope positions rest on or carry
    outside: dict[str, PositionNode] = field(default_factory=dict)

    def __post_init__(self):
        self._by_coil: dict[str, str] = {}
        self._by_location: dict[str, list[str]] = defaultdict(list)
        for node in self.nodes.values():
            pos = node.position
            if pos.coil_barcode:
                self._by_coil[pos.coil_barcode] = pos.id
            for loc_id in _support_ids(pos):
                self._by_location[loc_id].append(pos.id)

    # ── Lookups ──────────────────────────────────────────────

    def node(self, position_id: str) -> PositionNode | None:
        return self.nodes.get(position_id) or self.outside.get(position_id)

    def position(self, position_id: str) -> PositionRecord | None:
        node = self.node(position_id)
        return node.position if node else None

    def positions(self) -> list[PositionRecord]:
        return [n.position for n in self.nodes.values()]

    def by_placeholder(self, placeholder_id: str) -> PositionRecord | None:
        for node in self.nodes.values():
            if node.position.placeholder_id == placeholder_id:
                return node.position
        return None

    def is_occupied(self, position_id: str) -> bool:
        pos = self.position(position_id)
        return bool(pos and pos.coil_barcode)

    def position_of_coil(self, barcode: str) -> PositionRecord | None:
        position_id = self._by_coil.get(barcode)
        return self.position(position_id) if position_id else None

    # ── Yard queries ─────────────────────────────────────────

    def locate_coil(self, barcode: str) -> PositionRecord | None:
        """Where the coil sits, ignoring inactive or hidden positions."""
        pos = self.position_of_coil(barcode)
        if pos is None or not pos.is_active or not pos.is_visible:
            return None
        return pos

    def positions_on(self, location_id: str) -> list[PositionRecord]:
        """Every position resting on a ground location, lowest layer first."""
        ids = self._by_location.get(location_id, [])
        return sorted(
            (self.nodes[i].position for i in ids),
            key=lambda p: (p.layer, p.placeholder_id),
        )

    def ground_occupancy(self, location_id: str) -> str:
        """'empty', 'partial' or 'full' for the stack on one location."""
        stack = [p for p in self.positions_on(location_id) if p.is_active]
        occupied = sum(1 for p in stack if p.coil_barcode)
        if occupied == 0:
            return "empty"
        if occupied == len(stack):
            return "full"
        return "partial"

    def top_coil(self, location_id: str) -> str | None:
        """Barcode of the highest occupied position on a location."""
        top = None
        for pos in self.positions_on(location_id):
            if pos.coil_barcode and pos.is_active:
                top = pos.coil_barcode
        return top

    def bay_summary(self, bay: str) -> dict:
        in_bay = [
            n.position for n in self.nodes.values()
            if n.position.bay == bay and n.position.is_active
        ]
        occupied = sum(1 for p in in_bay if p.coil_barcode)
        total = len(in_bay)
        return {
            "bay": bay,
            "occupied": occupied,
            "total": total,
            "percentage": round(occupied / total * 100, 1) if total else 0.0,
        }

    def with_occupancy(self, overrides: dict[str, str | None]) -> PositionGraph:
        """Copy of the graph with some positions' coil barcodes replaced.

        ``overrides`` maps position id to the barcode it should hold (None
        for empty).  Used to validate staged changes against the state
        they would produce.
        """
        def copy(source: dict[str, PositionNode]) -> dict[str, PositionNode]:
            out = {}
            for pid, node in source.items():
                pos = node.position
                if pid in overrides:
                    pos = pos.model_copy(update={"coil_barcode": overrides[pid]})
                out[pid] = PositionNode(
                    position=pos,
                    primary_location=node.primary_location,
                    supporting_locations=node.supporting_locations,
                    supports=node.supports,
                    dependents=node.dependents,
                    unresolved_supports=node.unresolved_supports,
                )
            return out

        return PositionGraph(
            nodes=copy(self.nodes),
            locations=self.locations,
            bay=self.bay,
            zone=self.zone,
            outside=copy(self.outside),
        )


def _support_ids(position: PositionRecord) -> list[str]:
    # Layer 1 rests on its own primary location even when the list is empty
    if position.supported_by_ground_location_ids:
        return list(position.supported_by_ground_location_ids)
    return [position.primary_ground_location_id]


def _in_scope(position: PositionRecord, bay: str | None, zone: str | None) -> bool:
    if bay is not None and position.bay != bay:
        return False
    if zone is not None and position.zone != zone:
        return False
    return True


def build_position_graph(
    positions: Iterable[PositionRecord],
    locations: Iterable[LocationRecord],
    bay: str | None = None,
    zone: str | None = None,
) -> PositionGraph:
    """Resolve primary / support references for every position.

    With ``bay`` / ``zone`` the graph only holds positions in that scope.
    Support references are always resolved against the full position list
    so that a scope boundary never hides a lower layer.
    """
    positions = list(positions)
    locations_by_id = {loc.id: loc for loc in locations}

    # (layer, primary location id) -> position ids
    primary_index: dict[tuple[int, str], list[str]] = defaultdict(list)
    for pos in positions:
        primary_index[(pos.layer, pos.primary_ground_location_id)].append(pos.id)

    nodes: dict[str, PositionNode] = {}
    dependents: dict[str, list[str]] = defaultdict(list)

    for pos in positions:
        support_ids = _support_ids(pos)
        node = PositionNode(
            position=pos,
            primary_location=locations_by_id.get(pos.primary_ground_location_id),
            supporting_locations=[
                locations_by_id[loc_id] for loc_id in support_ids if loc_id in locations_by_id
            ],
        )
        if pos.layer > 1:
            for loc_id in support_ids:
                below = primary_index.get((pos.layer - 1, loc_id))
                if not below:
                    node.unresolved_supports.append(loc_id)
                    continue
                for below_id in below:
                    node.supports.append(below_id)
                    dependents[below_id].append(pos.id)
        nodes[pos.id] = node

    for pid, deps in dependents.items():
        nodes[pid].dependents = deps

    outside: dict[str, PositionNode] = {}
    if bay is not None or zone is not None:
        outside = {pid: n for pid, n in nodes.items() if not _in_scope(n.position, bay, zone)}
        nodes = {pid: n for pid, n in nodes.items() if pid not in outside}

    return PositionGraph(
        nodes=nodes, locations=locations_by_id, bay=bay, zone=zone, outside=outside,
    )
