"""Deterministic fast path for simple linear processes.

A diagram qualifies when its flow nodes form one simple path of sequence
flows: no branch, no join, no cycle, no pools, lanes or sub-processes, and
at most ``DETERMINISTIC_MAX_NODES`` nodes. Nodes are placed left to right at
a fixed gap on a shared vertical center, so the result never depends on an
external engine.
"""

import logging
from typing import Dict, List, Optional

import networkx as nx

from bpmn_layout.layout import constants
from bpmn_layout.models.diagram import Bounds, DiagramGraph, FlowType, is_flow_node

logger = logging.getLogger(__name__)


def linear_chain(graph: DiagramGraph) -> Optional[List[str]]:
    """Node ids of the diagram in path order, or None if it is not a simple path."""
    if graph.participants() or graph.lanes() or graph.subprocesses():
        return None
    shapes = graph.shapes()
    if not shapes or len(shapes) > constants.DETERMINISTIC_MAX_NODES:
        return None
    if any(not is_flow_node(shape) for shape in shapes):
        return None

    flow = nx.DiGraph()
    flow.add_nodes_from(shape.id for shape in shapes)
    for connection in graph.connections():
        if connection.flow_type != FlowType.SEQUENCE_FLOW:
            return None
        if flow.has_edge(connection.source_id, connection.target_id):
            return None
        flow.add_edge(connection.source_id, connection.target_id)

    if flow.number_of_edges() != flow.number_of_nodes() - 1:
        return None
    if not nx.is_directed_acyclic_graph(flow) or not nx.is_weakly_connected(flow):
        return None
    if any(d > 1 for _, d in flow.in_degree()) or any(d > 1 for _, d in flow.out_degree()):
        return None
    return list(nx.topological_sort(flow))


def chain_positions(graph: DiagramGraph, chain: List[str]) -> Dict[str, Bounds]:
    """Target bounds for each node of a chain."""
    positions: Dict[str, Bounds] = {}
    x = constants.DETERMINISTIC_ORIGIN_X
    for node_id in chain:
        bounds = graph.elements[node_id].bounds
        positions[node_id] = Bounds(
            x=x,
            y=constants.DETERMINISTIC_CENTER_Y - bounds.height / 2,
            width=bounds.width,
            height=bounds.height,
        )
        x += bounds.width + constants.DETERMINISTIC_LAYER_GAP
    logger.debug(f"Deterministic layout for {len(chain)} node(s)")
    return positions
