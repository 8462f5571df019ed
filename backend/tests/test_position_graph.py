"""Position graph construction and yard queries."""

import pytest

from coilyard.services.position_graph import build_position_graph


def _occupy(positions, **barcodes):
    return [
        p.model_copy(update={"coil_barcode": barcodes.get(p.id.replace("-", "_"))})
        for p in positions
    ]


@pytest.mark.unit
class TestBuildGraph:

    def test_supports_and_dependents(self, yard_positions, yard_locations):
        graph = build_position_graph(yard_positions, yard_locations)

        bridge = graph.node("pos-b")
        assert sorted(bridge.supports) == ["pos-a", "pos-a2"]
        assert [l.location_code for l in bridge.supporting_locations] == ["A001", "A002"]
        assert bridge.primary_location.location_code == "A001"
        assert bridge.unresolved_supports == []

        assert graph.node("pos-a").dependents == ["pos-b"]
        assert graph.node("pos-a2").dependents == ["pos-b"]
        assert graph.node("pos-a3").dependents == []
        assert graph.node("pos-a").supports == []

    def test_unresolved_support_is_recorded(self, yard_positions, yard_locations):
        # A003 has no layer-1 position once pos-a3 is gone
        positions = [p for p in yard_positions if p.id != "pos-a3"]
        positions.append(positions[0].model_copy(update={
            "id": "pos-b2",
            "placeholder_id": "A002-L2-B",
            "layer": 2,
            "primary_ground_location_id": "loc-a2",
            "supported_by_ground_location_ids": ["loc-a2", "loc-a3"],
        }))
        graph = build_position_graph(positions, yard_locations)

        assert graph.node("pos-b2").unresolved_supports == ["loc-a3"]
        assert graph.node("pos-b2").supports == ["pos-a2"]

    def test_scope_keeps_supports_outside_bay(self, yard_positions, yard_locations):
        graph = build_position_graph(yard_positions, yard_locations, bay="B")

        assert [p.id for p in graph.positions()] == ["pos-y"]
        # out-of-scope positions stay resolvable
        assert graph.position("pos-a") is not None

    def test_inputs_are_not_mutated(self, yard_positions, yard_locations):
        before = [p.model_dump() for p in yard_positions]
        build_position_graph(yard_positions, yard_locations).with_occupancy({"pos-a": "C1"})
        assert [p.model_dump() for p in yard_positions] == before


@pytest.mark.unit
class TestGraphQueries:

    def test_locate_coil(self, yard_positions, yard_locations):
        positions = _occupy(yard_positions, pos_a="C1")
        graph = build_position_graph(positions, yard_locations)

        assert graph.locate_coil("C1").placeholder_id == "A001-L1"
        assert graph.locate_coil("C2") is None

    def test_locate_ignores_hidden_positions(self, yard_positions, yard_locations):
        positions = _occupy(yard_positions, pos_a="C1")
        positions[0] = positions[0].model_copy(update={"is_visible": False})
        graph = build_position_graph(positions, yard_locations)

        assert graph.locate_coil("C1") is None

    def test_positions_on_location_by_layer(self, yard_positions, yard_locations):
        graph = build_position_graph(yard_positions, yard_locations)

        assert [p.id for p in graph.positions_on("loc-a1")] == ["pos-a", "pos-b"]
        assert [p.id for p in graph.positions_on("loc-a2")] == ["pos-a2", "pos-b"]

    def test_ground_occupancy_and_top_coil(self, yard_positions, yard_locations):
        graph = build_position_graph(yard_positions, yard_locations)
        assert graph.ground_occupancy("loc-a1") == "empty"
        assert graph.top_coil("loc-a1") is None

        graph = graph.with_occupancy({"pos-a": "C1"})
        assert graph.ground_occupancy("loc-a1") == "partial"
        assert graph.top_coil("loc-a1") == "C1"

        graph = graph.with_occupancy({"pos-a2": "C2", "pos-b": "C3"})
        assert graph.ground_occupancy("loc-a1") == "full"
        assert graph.top_coil("loc-a1") == "C3"

    def test_bay_summary(self, yard_positions, yard_locations):
        graph = build_position_graph(_occupy(yard_positions, pos_a="C1"), yard_locations)

        assert graph.bay_summary("A") == {
            "bay": "A", "occupied": 1, "total": 4, "percentage": 25.0,
        }
        assert graph.bay_summary("Q")["percentage"] == 0.0
