"""Artifact placement after node layout.

Data object/store references and text annotations are not layout nodes.
Once flow nodes have their final positions, each artifact is placed next
to the flow node it is associated with:

- text annotations above the node, data references below it
- several artifacts on one node are spread horizontally, centred on it
- an artifact that would overlap one placed earlier shifts right, or
  away from the flow when shifting right runs too far past the diagram
- artifacts without an association line up below the flow (data) or above
  it (annotations), starting at the flow's left edge
"""

import logging
from typing import Dict, Iterable, List, Optional, Set

from bpmn_layout.core.geometry import rects_overlap
from bpmn_layout.layout import constants
from bpmn_layout.models.diagram import (
    ARTIFACT_TYPES,
    Bounds,
    DiagramGraph,
    FlowType,
    ShapeElement,
    ShapeType,
    is_flow_node,
)

logger = logging.getLogger(__name__)


def is_artifact(element) -> bool:
    return isinstance(element, ShapeElement) and element.shape_type in ARTIFACT_TYPES


def linked_node(graph: DiagramGraph, artifact_id: str) -> Optional[str]:
    """Flow node at the other end of the artifact's first association."""
    for connection in graph.connections_of(artifact_id):
        if connection.flow_type != FlowType.ASSOCIATION:
            continue
        other = connection.target_id if connection.source_id == artifact_id else connection.source_id
        if is_flow_node(graph.elements.get(other)):
            return other
    return None


class ArtifactPlacer:
    """Places artifacts around their associated flow nodes."""

    def __init__(self, graph: DiagramGraph):
        self.graph = graph
        self.occupied: List[Bounds] = []
        self.moved: Set[str] = set()

    def place(self, anchors: Optional[Iterable[str]] = None) -> Set[str]:
        """Place artifacts and return the ids of those that moved.

        Args:
            anchors: Only place artifacts linked to these flow nodes and
                leave unlinked ones alone (None = every artifact)
        """
        graph = self.graph
        wanted = set(anchors) if anchors is not None else None
        linked: Dict[str, List[ShapeElement]] = {}
        unlinked: List[ShapeElement] = []
        for element in graph.shapes():
            if not is_artifact(element):
                continue
            node_id = linked_node(graph, element.id)
            if node_id is None:
                unlinked.append(element)
            elif wanted is None or node_id in wanted:
                linked.setdefault(node_id, []).append(element)

        nodes = [e.bounds for e in graph.flow_nodes()]
        if not nodes:
            return self.moved
        flow = Bounds.enclosing(nodes)

        for node_id, group in linked.items():
            self._place_group(graph.elements[node_id].bounds, group, flow)
        if wanted is None:
            self._place_unlinked(unlinked, flow)

        if self.moved:
            logger.debug(f"Placed {len(self.moved)} artifact(s) in {graph.id}")
        return self.moved

    def _place_group(self, anchor: Bounds, group: List[ShapeElement], flow: Bounds) -> None:
        padding = constants.ARTIFACT_PADDING
        total = sum(a.bounds.width + padding for a in group) - padding
        x = anchor.center.x - total / 2
        for artifact in group:
            width, height = artifact.bounds.width, artifact.bounds.height
            above = artifact.shape_type == ShapeType.TEXT_ANNOTATION
            if above:
                y = anchor.y - height - constants.ARTIFACT_ABOVE_OFFSET
            else:
                y = anchor.bottom + constants.ARTIFACT_BELOW_OFFSET
            target = self._clear_of_occupied(Bounds(x=x, y=y, width=width, height=height), above, flow)
            self._move(artifact, target)
            x += width + padding

    def _clear_of_occupied(self, rect: Bounds, above: bool, flow: Bounds) -> Bounds:
        limit = flow.right + constants.ARTIFACT_SEARCH_WIDTH
        for other in self.occupied:
            if not rects_overlap(rect, other):
                continue
            right = other.right + constants.ARTIFACT_PADDING
            if right + rect.width <= limit:
                rect = Bounds(x=right, y=rect.y, width=rect.width, height=rect.height)
            elif above:
                rect = rect.translated(0, other.y - rect.height - constants.ARTIFACT_PADDING - rect.y)
            else:
                rect = rect.translated(0, other.bottom + constants.ARTIFACT_PADDING - rect.y)
        return rect

    def _place_unlinked(self, unlinked: List[ShapeElement], flow: Bounds) -> None:
        x = flow.x
        for artifact in unlinked:
            width, height = artifact.bounds.width, artifact.bounds.height
            above = artifact.shape_type == ShapeType.TEXT_ANNOTATION
            if above:
                y = flow.y - height - constants.ARTIFACT_ABOVE_OFFSET
            else:
                y = flow.bottom + constants.ARTIFACT_BELOW_OFFSET
            rect = Bounds(x=x, y=y, width=width, height=height)
            for other in self.occupied:
                if rects_overlap(rect, other):
                    if above:
                        rect = rect.translated(0, other.y - height - constants.ARTIFACT_PADDING - rect.y)
                    else:
                        rect = rect.translated(0, other.bottom + constants.ARTIFACT_PADDING - rect.y)
            self._move(artifact, rect)
            x += width + constants.ARTIFACT_PADDING

    def _move(self, artifact: ShapeElement, target: Bounds) -> None:
        dx = target.x - artifact.bounds.x
        dy = target.y - artifact.bounds.y
        if abs(dx) > constants.ARTIFACT_MOVE_THRESHOLD or abs(dy) > constants.ARTIFACT_MOVE_THRESHOLD:
            self.moved |= self.graph.move_elements([artifact.id], dx, dy)
        self.occupied.append(self.graph.elements[artifact.id].bounds)


def place_artifacts(graph: DiagramGraph, anchors: Optional[Iterable[str]] = None) -> Set[str]:
    """Place artifacts next to their associated flow nodes. Returns moved ids."""
    return ArtifactPlacer(graph).place(anchors)
