"""Layer dependency rules: can_occupy / can_vacate."""

import pytest

from coilyard.services.layer_rules import (
    LOWER_LAYER_INCOMPLETE,
    UPPER_LAYER_DEPENDS,
    can_occupy,
    can_vacate,
)
from coilyard.services.position_graph import build_position_graph


@pytest.fixture
def graph(yard_positions, yard_locations):
    return build_position_graph(yard_positions, yard_locations)


@pytest.mark.unit
class TestCanOccupy:

    def test_layer_one_always_occupiable(self, graph):
        assert can_occupy(graph.position("pos-a"), graph)

    def test_bridge_blocked_until_all_supports_filled(self, graph):
        bridge = graph.position("pos-b")

        check = can_occupy(bridge, graph)
        assert not check
        assert check.reason == LOWER_LAYER_INCOMPLETE
        assert sorted(check.blockers) == ["A001-L1", "A002-L1"]

        # all but one
        partial = graph.with_occupancy({"pos-a": "C1"})
        check = can_occupy(partial.position("pos-b"), partial)
        assert not check
        assert check.blockers == ["A002-L1"]

        # exactly all
        full = graph.with_occupancy({"pos-a": "C1", "pos-a2": "C2"})
        assert can_occupy(full.position("pos-b"), full)

    def test_assume_empty(self, graph):
        full = graph.with_occupancy({"pos-a": "C1", "pos-a2": "C2"})
        assert not can_occupy(full.position("pos-b"), full, assume_empty={"pos-a2"})

    def test_unresolved_support_blocks(self, yard_positions, yard_locations):
        positions = [p for p in yard_positions if p.id != "pos-a2"]
        graph = build_position_graph(positions, yard_locations).with_occupancy({"pos-a": "C1"})

        check = can_occupy(graph.position("pos-b"), graph)
        assert not check
        assert check.blockers == ["loc-a2"]


@pytest.mark.unit
class TestCanVacate:

    def test_vacate_blocked_while_dependent_occupied(self, graph):
        g = graph.with_occupancy({"pos-a": "C1", "pos-a2": "C2", "pos-b": "C3"})

        check = can_vacate(g.position("pos-a"), g)
        assert not check
        assert check.reason == UPPER_LAYER_DEPENDS
        assert check.blockers == ["A001-L2-B"]

        g = g.with_occupancy({"pos-b": None})
        assert can_vacate(g.position("pos-a"), g)

    def test_top_layer_always_vacatable(self, graph):
        g = graph.with_occupancy({"pos-a": "C1", "pos-a2": "C2", "pos-b": "C3"})
        assert can_vacate(g.position("pos-b"), g)

    def test_check_is_falsy_object(self, graph):
        g = graph.with_occupancy({"pos-a": "C1", "pos-a2": "C2", "pos-b": "C3"})
        check = can_vacate(g.position("pos-a2"), g)
        assert bool(check) is False
        assert check.allowed is False
