"""Tests for the diagram element model and element-store operations."""

import pytest
from pydantic import ValidationError as PydanticValidationError

from bpmn_layout.core.errors import ElementNotFoundError, ValidationError
from bpmn_layout.models.diagram import Bounds, DiagramGraph, Point, is_flow_node

from builders import flow, lane, pool, shape


class TestReferences:
    """Cross-element references are checked on construction."""

    def test_unknown_flow_end(self):
        with pytest.raises(PydanticValidationError, match="unknown shape"):
            DiagramGraph.from_dict({
                "id": "bad",
                "elements": [shape("a", "task", 0, 0), flow("f", "a", "ghost")],
            })

    def test_lane_needs_participant(self):
        with pytest.raises(PydanticValidationError, match="unknown participant"):
            DiagramGraph.from_dict({
                "id": "bad",
                "elements": [shape("a", "task", 0, 0), lane("l", "a", 0, ["a"])],
            })

    def test_node_in_two_lanes(self):
        with pytest.raises(PydanticValidationError, match="assigned to both"):
            DiagramGraph.from_dict({
                "id": "bad",
                "elements": [
                    pool("p", 0, 0, 600, 250),
                    lane("l1", "p", 0, ["a"]),
                    lane("l2", "p", 125, ["a"]),
                    shape("a", "task", 200, 20, parent_id="p"),
                ],
            })

    def test_missing_bounds_get_default_size(self):
        graph = DiagramGraph.from_dict({
            "id": "sizes",
            "elements": [{"kind": "shape", "id": "g", "shape_type": "exclusiveGateway"}],
        })
        assert (graph.get_element("g").bounds.width, graph.get_element("g").bounds.height) == (50, 50)


class TestLookup:

    def test_get_unknown_element(self, chain_graph):
        with pytest.raises(ElementNotFoundError) as exc_info:
            chain_graph.get_element("ghost")
        assert exc_info.value.details == {"element_id": "ghost", "diagram_id": "chain"}

    def test_flow_nodes_exclude_boundary_events(self):
        graph = DiagramGraph.from_dict({
            "id": "boundary",
            "elements": [
                shape("t", "task", 100, 100),
                shape("timer", "boundaryEvent", 132, 162, host_id="t"),
            ],
        })
        assert [n.id for n in graph.flow_nodes()] == ["t"]
        assert is_flow_node(graph.get_element("timer")) is False

    def test_descendants_of_pool(self, lane_graph):
        assert lane_graph.descendants_of("pool") == {
            "lane1", "lane2", "lane3", "t1", "t2", "t3"
        }

    def test_participant_of(self, lane_graph, chain_graph):
        assert lane_graph.participant_of("t1").id == "pool"
        assert chain_graph.participant_of("task") is None


class TestMutation:

    def test_move_carries_boundary_events_and_label(self):
        graph = DiagramGraph.from_dict({
            "id": "move",
            "elements": [
                shape("t", "task", 100, 100),
                shape("timer", "boundaryEvent", 132, 162, host_id="t"),
            ],
        })
        graph.set_label("timer", Bounds(x=120, y=200, width=90, height=20))
        moved = graph.move_elements(["t"], 10, 5)
        assert moved == {"t", "timer"}
        assert (graph.get_element("timer").bounds.x, graph.get_element("timer").bounds.y) == (142, 167)
        assert graph.get_element("timer").label.x == 130

    def test_move_container_moves_content(self, subprocess_graph):
        subprocess_graph.move_element("sub", 100, 0)
        assert subprocess_graph.get_element("sub").bounds.x == 350
        assert subprocess_graph.get_element("i_task").bounds.x == 380
        assert subprocess_graph.get_element("start").bounds.x == 100

    def test_connection_with_both_ends_moved_is_translated(self, chain_graph):
        chain_graph.move_elements(["start", "task"], 0, 10)
        assert [(p.x, p.y) for p in chain_graph.get_element("f1").waypoints] == [(76, 428), (500, 140)]
        assert [(p.x, p.y) for p in chain_graph.get_element("f2").waypoints] == [(550, 170), (278, 300)]

    def test_update_waypoints_needs_two_points(self, chain_graph):
        with pytest.raises(ValidationError):
            chain_graph.update_waypoints("f1", [Point(x=0, y=0)])

    def test_cannot_resize_connection(self, chain_graph):
        with pytest.raises(ValidationError):
            chain_graph.resize_element("f1", Bounds(x=0, y=0, width=1, height=1))

    def test_lane_cannot_carry_label(self, lane_graph):
        with pytest.raises(ValidationError):
            lane_graph.set_label("lane1", Bounds(x=0, y=0, width=1, height=1))


class TestExport:

    def test_etag_is_stable(self, chain_graph):
        copy = DiagramGraph.from_dict(chain_graph.export())
        assert copy.compute_etag() == chain_graph.compute_etag()

    def test_etag_tracks_geometry(self, chain_graph):
        before = chain_graph.compute_etag()
        chain_graph.move_element("task", 1, 0)
        assert chain_graph.compute_etag() != before

    def test_export_keeps_document_order(self, chain_graph):
        ids = [e["id"] for e in chain_graph.export()["elements"]]
        assert ids == ["start", "task", "end", "f1", "f2"]
