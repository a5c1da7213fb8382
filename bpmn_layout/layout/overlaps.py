"""Overlap resolution after a partial layout.

A scoped or element-subset layout places its nodes next to fixed context
it never moves. Any placed node that ends up on top of another node is
pushed clear, keeping MIN_OVERLAP_GAP between the two:

- a node inside a lane shifts right so it stays in its lane band
- any other node moves below the obstacle, or above it when its center
  is higher than the obstacle's

Only placed nodes move. Passes repeat until nothing overlaps or
MAX_OVERLAP_PASSES is reached.
"""

import logging
from typing import Iterable, Iterator, List, Set, Tuple

from bpmn_layout.core.geometry import rects_overlap
from bpmn_layout.layout import constants
from bpmn_layout.models.diagram import Bounds, DiagramGraph

logger = logging.getLogger(__name__)


def _push(graph: DiagramGraph, node_id: str, obstacle: Bounds) -> Set[str]:
    bounds = graph.elements[node_id].bounds
    gap = constants.MIN_OVERLAP_GAP
    if graph.lane_of(node_id) is not None:
        return graph.move_elements([node_id], obstacle.right + gap - bounds.x, 0)
    if bounds.center.y < obstacle.center.y:
        return graph.move_elements([node_id], 0, obstacle.y - gap - bounds.bottom)
    return graph.move_elements([node_id], 0, obstacle.bottom + gap - bounds.y)


def _overlapping(graph: DiagramGraph, movable: List[str], fixed: List[str]) -> Iterator[Tuple[str, str]]:
    """(movable, obstacle) pairs that currently overlap, checked lazily."""
    for index, node_id in enumerate(movable):
        for other_id in fixed + movable[:index]:
            if rects_overlap(graph.elements[node_id].bounds, graph.elements[other_id].bounds):
                yield node_id, other_id


def resolve_overlaps(
    graph: DiagramGraph,
    movable_ids: Iterable[str],
    fixed_ids: Iterable[str],
) -> Set[str]:
    """Push movable nodes off fixed nodes and off each other.

    Args:
        graph: Diagram to update in place
        movable_ids: Nodes placed by this layout, in placement order
        fixed_ids: Context nodes that never move

    Returns:
        Ids of every shape that moved (boundary events included)
    """
    movable: List[str] = list(dict.fromkeys(movable_ids))
    fixed = [i for i in dict.fromkeys(fixed_ids) if i not in set(movable)]
    moved: Set[str] = set()

    for _ in range(constants.MAX_OVERLAP_PASSES):
        pushed = False
        # Earlier movable nodes hold their place; later ones give way
        for node_id, other_id in _overlapping(graph, movable, fixed):
            moved |= _push(graph, node_id, graph.elements[other_id].bounds)
            pushed = True
        if not pushed:
            break

    remaining = sum(1 for _ in _overlapping(graph, movable, fixed))
    if remaining:
        logger.warning(f"{remaining} overlap(s) remain in {graph.id} after overlap resolution")

    if moved:
        logger.debug(f"Resolved overlaps in {graph.id}: {len(moved)} shape(s) moved")
    return moved
