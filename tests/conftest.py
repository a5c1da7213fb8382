"""Shared diagram fixtures.

Diagrams are built from export-shaped dicts so the tests also exercise
``DiagramGraph.from_dict``.
"""

import pytest

from bpmn_layout.config import settings
from bpmn_layout.core.diagram_store import DiagramStore
from bpmn_layout.models.diagram import DiagramGraph

from builders import flow, lane, pool, shape


@pytest.fixture
def chain_graph():
    """Start -> Task -> End, scattered."""
    return DiagramGraph.from_dict({
        "id": "chain",
        "name": "Linear chain",
        "elements": [
            shape("start", "startEvent", 40, 400, name="Order received"),
            shape("task", "task", 500, 90, name="Check order"),
            shape("end", "endEvent", 260, 300, name="Done"),
            flow("f1", "start", "task", waypoints=[{"x": 76, "y": 418}, {"x": 500, "y": 130}]),
            flow("f2", "task", "end", waypoints=[{"x": 550, "y": 170}, {"x": 278, "y": 300}]),
        ],
    })


@pytest.fixture
def branching_graph():
    """Start -> split -> (A | B) -> join -> End."""
    return DiagramGraph.from_dict({
        "id": "branching",
        "elements": [
            shape("start", "startEvent", 0, 0),
            shape("split", "exclusiveGateway", 10, 10, name="Approved?"),
            shape("a", "task", 20, 20),
            shape("b", "task", 30, 30),
            shape("join", "exclusiveGateway", 40, 40),
            shape("end", "endEvent", 50, 50),
            flow("f1", "start", "split"),
            flow("f2", "split", "a", name="yes"),
            flow("f3", "split", "b", name="no"),
            flow("f4", "a", "join"),
            flow("f5", "b", "join"),
            flow("f6", "join", "end"),
        ],
    })


@pytest.fixture
def lane_graph():
    """3-lane pool with flow path Lane1 -> Lane3 -> Lane2 (hop cost 3)."""
    return DiagramGraph.from_dict({
        "id": "lanes",
        "elements": [
            pool("pool", 100, 100, 800, 375, name="Company"),
            lane("lane1", "pool", 100, ["t1"]),
            lane("lane2", "pool", 225, ["t2"]),
            lane("lane3", "pool", 350, ["t3"]),
            shape("t1", "task", 200, 122, parent_id="pool"),
            shape("t2", "task", 600, 247, parent_id="pool"),
            shape("t3", "task", 400, 372, parent_id="pool"),
            flow("f1", "t1", "t3"),
            flow("f2", "t3", "t2"),
        ],
    })


@pytest.fixture
def two_pool_graph():
    """Two pools joined by a message flow."""
    return DiagramGraph.from_dict({
        "id": "pools",
        "elements": [
            pool("customer", 100, 100, 600, 250),
            pool("shop", 100, 400, 600, 250),
            shape("c_start", "startEvent", 150, 150, parent_id="customer"),
            shape("c_task", "task", 300, 150, parent_id="customer"),
            shape("s_task", "task", 300, 450, parent_id="shop"),
            shape("s_end", "endEvent", 500, 470, parent_id="shop"),
            flow("f1", "c_start", "c_task"),
            flow("f2", "s_task", "s_end"),
            flow("m1", "c_task", "s_task", flow_type="messageFlow"),
        ],
    })


@pytest.fixture
def subprocess_graph():
    """Start -> Sub(inner start -> inner task -> inner end) -> End."""
    return DiagramGraph.from_dict({
        "id": "nested",
        "elements": [
            shape("start", "startEvent", 100, 200),
            {
                "kind": "subprocess",
                "id": "sub",
                "name": "Handle claim",
                "bounds": {"x": 250, "y": 120, "width": 350, "height": 200},
            },
            shape("end", "endEvent", 700, 200),
            shape("i_start", "startEvent", 600, 600, parent_id="sub"),
            shape("i_task", "task", 280, 140, parent_id="sub"),
            shape("i_end", "endEvent", 260, 300, parent_id="sub"),
            flow("f1", "start", "sub"),
            flow("f2", "sub", "end"),
            flow("i1", "i_start", "i_task"),
            flow("i2", "i_task", "i_end"),
        ],
    })


@pytest.fixture
def store():
    return DiagramStore()


@pytest.fixture
def layout_debug():
    """Enable step tracing for one test."""
    previous = settings.is_enabled("layout_debug")
    settings.set_flag("layout_debug", True)
    yield
    settings.set_flag("layout_debug", previous)
