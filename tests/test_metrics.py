"""Tests for displacement, crossing and lane metrics."""

from bpmn_layout.layout.metrics import (
    capture_positions,
    crossing_flow_pairs,
    displacement_stats,
    lane_crossing_metrics,
)
from bpmn_layout.models.diagram import Bounds, DiagramGraph

from builders import flow, shape


def box(x, y):
    return Bounds(x=x, y=y, width=10, height=10)


class TestDisplacementStats:

    def test_no_movement(self):
        before = {"a": box(0, 0), "b": box(50, 50)}
        stats = displacement_stats(before, dict(before))
        assert stats.moved_count == 0
        assert stats.max_displacement == 0
        assert stats.avg_displacement == 0
        assert stats.top_displacements == []

    def test_one_pixel_is_not_a_move(self):
        stats = displacement_stats({"a": box(0, 0)}, {"a": box(1, 0)})
        assert stats.moved_count == 0

    def test_moves_sorted_by_distance(self):
        before = {"a": box(0, 0), "b": box(0, 0), "c": box(0, 0)}
        after = {"a": box(30, 40), "b": box(0, 10), "c": box(0, 0)}
        stats = displacement_stats(before, after)
        assert stats.total_elements == 3
        assert stats.moved_count == 2
        assert stats.max_displacement == 50
        assert stats.avg_displacement == 30
        assert stats.top_displacements[0] == {"elementId": "a", "dx": 30, "dy": 40, "distance": 50}
        assert stats.to_dict()["movedCount"] == 2

    def test_large_change(self):
        before = {"a": box(0, 0), "b": box(0, 0)}
        after = {"a": box(300, 0), "b": box(0, 300)}
        assert displacement_stats(before, after).is_large_change is True
        small = {"a": box(300, 0), "b": box(0, 0)}
        assert displacement_stats(before, small).is_large_change is False

    def test_capture_positions_excludes_connections(self, chain_graph):
        assert set(capture_positions(chain_graph)) == {"start", "task", "end"}


class TestCrossings:

    def test_crossing_pair(self):
        graph = DiagramGraph.from_dict({
            "id": "x",
            "elements": [
                shape("a", "task", 0, 0),
                shape("b", "task", 300, 300),
                shape("c", "task", 0, 300),
                shape("d", "task", 300, 0),
                flow("f1", "a", "b", waypoints=[{"x": 50, "y": 40}, {"x": 350, "y": 340}]),
                flow("f2", "c", "d", waypoints=[{"x": 50, "y": 340}, {"x": 350, "y": 40}]),
            ],
        })
        assert crossing_flow_pairs(graph) == [("f1", "f2")]

    def test_unrouted_flows_ignored(self, branching_graph):
        assert crossing_flow_pairs(branching_graph) == []


class TestLaneCrossingMetrics:

    def test_no_lanes(self, chain_graph):
        assert lane_crossing_metrics(chain_graph) == {}

    def test_three_lane_pool(self, lane_graph):
        metrics = lane_crossing_metrics(lane_graph)
        assert metrics["totalLaneFlows"] == 2
        assert metrics["crossingLaneFlows"] == 2
        assert metrics["crossingFlowIds"] == ["f1", "f2"]
        assert metrics["laneCoherenceScore"] == 25
