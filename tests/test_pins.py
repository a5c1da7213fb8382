"""Tests for the waypoint pin registry."""

import pytest

from bpmn_layout.core.errors import NotFoundError, ValidationError
from bpmn_layout.layout.pins import PinRegistry, parse_waypoints
from bpmn_layout.models.diagram import Point


def points(*coords):
    return [Point(x=x, y=y) for x, y in coords]


class TestParseWaypoints:
    """Input validation before any pin is stored."""

    def test_valid(self):
        parsed = parse_waypoints([{"x": 1, "y": 2}, {"x": 3.5, "y": 4}])
        assert [(p.x, p.y) for p in parsed] == [(1, 2), (3.5, 4)]

    def test_too_few_points(self):
        with pytest.raises(ValidationError, match="At least 2 waypoints"):
            parse_waypoints([{"x": 1, "y": 2}])

    @pytest.mark.parametrize("bad", [
        {"x": "1", "y": 2},
        {"x": 1},
        {"x": None, "y": 2},
        {"x": True, "y": 2},
    ])
    def test_non_numeric_coordinate(self, bad):
        with pytest.raises(ValidationError, match="non-numeric"):
            parse_waypoints([{"x": 0, "y": 0}, bad])

    def test_not_a_list(self):
        with pytest.raises(ValidationError):
            parse_waypoints({"x": 1, "y": 2})

    def test_point_not_an_object(self):
        with pytest.raises(ValidationError, match="must be an object"):
            parse_waypoints([[1, 2], [3, 4]])


class TestPinRegistry:
    """Pin lifecycle on a diagram."""

    @pytest.fixture
    def pins(self):
        return PinRegistry()

    def test_pin_applies_immediately(self, pins, chain_graph):
        previous = pins.pin(chain_graph, "f1", points((0, 0), (50, 0), (50, 50)))
        assert [(p.x, p.y) for p in previous] == [(76, 418), (500, 130)]
        connection = chain_graph.get_element("f1")
        assert [(p.x, p.y) for p in connection.waypoints] == [(0, 0), (50, 0), (50, 50)]
        assert pins.is_pinned("f1")
        assert "f1" in pins and len(pins) == 1

    def test_repin_overwrites(self, pins, chain_graph):
        pins.pin(chain_graph, "f1", points((0, 0), (10, 10)))
        pins.pin(chain_graph, "f1", points((5, 5), (20, 20)))
        assert [(p.x, p.y) for p in pins.get("f1")] == [(5, 5), (20, 20)]
        assert len(pins) == 1

    def test_pin_rejects_non_connection(self, pins, chain_graph):
        with pytest.raises(ValidationError, match="not a connection"):
            pins.pin(chain_graph, "task", points((0, 0), (10, 10)))
        assert len(pins) == 0

    def test_pin_unknown_connection(self, pins, chain_graph):
        with pytest.raises(NotFoundError):
            pins.pin(chain_graph, "missing", points((0, 0), (10, 10)))

    def test_restore_overwrites_engine_routes(self, pins, chain_graph):
        pins.pin(chain_graph, "f1", points((0, 0), (10, 10)))
        chain_graph.update_waypoints("f1", points((99, 99), (100, 100)))
        assert pins.restore(chain_graph) == ["f1"]
        assert [(p.x, p.y) for p in chain_graph.get_element("f1").waypoints] == [(0, 0), (10, 10)]

    def test_restore_only_requested(self, pins, chain_graph):
        pins.pin(chain_graph, "f1", points((0, 0), (10, 10)))
        pins.pin(chain_graph, "f2", points((20, 20), (30, 30)))
        assert pins.restore(chain_graph, ["f2", "not-pinned"]) == ["f2"]

    def test_restore_drops_deleted_connections(self, pins, chain_graph):
        pins.pin(chain_graph, "f1", points((0, 0), (10, 10)))
        del chain_graph.elements["f1"]
        assert pins.restore(chain_graph) == []
        assert "f1" not in pins

    def test_clear(self, pins, chain_graph):
        pins.pin(chain_graph, "f1", points((0, 0), (10, 10)))
        pins.pin(chain_graph, "f2", points((0, 0), (10, 10)))
        assert pins.clear() == 2
        assert pins.pinned_ids() == []

    def test_snapshot_is_isolated(self, pins, chain_graph):
        pins.pin(chain_graph, "f1", points((0, 0), (10, 10)))
        state = pins.snapshot()
        pins.clear()
        other = PinRegistry()
        other.load(state)
        assert other.is_pinned("f1")
        state["f1"][0].x = 500
        assert other.get("f1")[0].x == 0

    def test_pins_never_exported(self, pins, chain_graph):
        before = chain_graph.to_json()
        pins.pin(chain_graph, "f1", points((76, 418), (500, 130)))
        assert chain_graph.to_json() == before
