"""Connection re-docking after shapes move outside an engine pass."""

import logging
from typing import Iterable, List

from bpmn_layout.core.geometry import orthogonal_route
from bpmn_layout.models.diagram import ConnectionElement, DiagramGraph

logger = logging.getLogger(__name__)


def reroute_connections(graph: DiagramGraph, connection_ids: Iterable[str]) -> List[str]:
    """Replace waypoints with an orthogonal route between current endpoint shapes.

    Returns:
        Ids of the re-routed connections
    """
    rerouted: List[str] = []
    for connection_id in connection_ids:
        connection = graph.get_element(connection_id)
        if not isinstance(connection, ConnectionElement):
            continue
        source = graph.elements[connection.source_id]
        target = graph.elements[connection.target_id]
        graph.update_waypoints(connection_id, orthogonal_route(source.bounds, target.bounds))
        rerouted.append(connection_id)
    return rerouted
