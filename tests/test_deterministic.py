"""Tests for linear chain detection and placement."""

from bpmn_layout.layout import constants
from bpmn_layout.layout.deterministic import chain_positions, linear_chain
from bpmn_layout.models.diagram import DiagramGraph

from builders import flow, pool, shape


def chain_of(count):
    elements = [shape(f"n{i}", "task", 0, 0) for i in range(count)]
    elements += [flow(f"f{i}", f"n{i}", f"n{i + 1}") for i in range(count - 1)]
    return DiagramGraph.from_dict({"id": f"chain{count}", "elements": elements})


class TestLinearChain:

    def test_chain_in_flow_order(self, chain_graph):
        assert linear_chain(chain_graph) == ["start", "task", "end"]

    def test_order_follows_flows_not_document(self):
        graph = DiagramGraph.from_dict({
            "id": "reversed",
            "elements": [
                shape("end", "endEvent", 0, 0),
                shape("task", "task", 0, 0),
                shape("start", "startEvent", 0, 0),
                flow("f2", "task", "end"),
                flow("f1", "start", "task"),
            ],
        })
        assert linear_chain(graph) == ["start", "task", "end"]

    def test_branching_is_not_a_chain(self, branching_graph):
        assert linear_chain(branching_graph) is None

    def test_cycle_is_not_a_chain(self):
        graph = chain_of(3)
        graph = DiagramGraph.from_dict({
            "id": "loop",
            "elements": graph.export()["elements"] + [flow("back", "n2", "n0")],
        })
        assert linear_chain(graph) is None

    def test_pools_disqualify(self, two_pool_graph, lane_graph):
        assert linear_chain(two_pool_graph) is None
        assert linear_chain(lane_graph) is None

    def test_subprocess_disqualifies(self, subprocess_graph):
        assert linear_chain(subprocess_graph) is None

    def test_disconnected_nodes_disqualify(self):
        graph = DiagramGraph.from_dict({
            "id": "split",
            "elements": [
                shape("a", "task", 0, 0),
                shape("b", "task", 0, 0),
                shape("c", "task", 0, 0),
                flow("f1", "a", "b"),
            ],
        })
        assert linear_chain(graph) is None

    def test_message_flow_disqualifies(self):
        graph = DiagramGraph.from_dict({
            "id": "message",
            "elements": [
                shape("a", "task", 0, 0),
                shape("b", "task", 0, 0),
                flow("m1", "a", "b", flow_type="messageFlow"),
            ],
        })
        assert linear_chain(graph) is None

    def test_size_threshold(self):
        assert linear_chain(chain_of(constants.DETERMINISTIC_MAX_NODES)) is not None
        assert linear_chain(chain_of(constants.DETERMINISTIC_MAX_NODES + 1)) is None

    def test_single_node(self):
        graph = DiagramGraph.from_dict({
            "id": "single",
            "elements": [shape("only", "task", 10, 10)],
        })
        assert linear_chain(graph) == ["only"]

    def test_empty_diagram(self):
        assert linear_chain(DiagramGraph(id="empty")) is None

    def test_artifact_disqualifies(self):
        graph = DiagramGraph.from_dict({
            "id": "artifact",
            "elements": [
                shape("a", "task", 0, 0),
                shape("b", "task", 0, 0),
                shape("note", "textAnnotation", 0, 0),
                flow("f1", "a", "b"),
            ],
        })
        assert linear_chain(graph) is None


class TestChainPositions:

    def test_shared_center_and_fixed_gap(self, chain_graph):
        positions = chain_positions(chain_graph, ["start", "task", "end"])
        centers = {p.center.y for p in positions.values()}
        assert centers == {constants.DETERMINISTIC_CENTER_Y}
        assert positions["start"].x == constants.DETERMINISTIC_ORIGIN_X
        assert positions["task"].x == positions["start"].right + constants.DETERMINISTIC_LAYER_GAP
        assert positions["end"].x == positions["task"].right + constants.DETERMINISTIC_LAYER_GAP

    def test_sizes_kept(self, chain_graph):
        positions = chain_positions(chain_graph, ["start", "task", "end"])
        assert (positions["task"].width, positions["task"].height) == (100, 80)

    def test_pool_without_nodes(self):
        assert linear_chain(DiagramGraph.from_dict({
            "id": "pool-only",
            "elements": [pool("p", 0, 0, 600, 250)],
        })) is None
