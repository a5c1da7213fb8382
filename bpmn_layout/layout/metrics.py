"""Post-layout metrics: displacement, crossing flows and lane crossings."""

import math
from dataclasses import dataclass, field
from typing import Any, Dict, List, Tuple

from bpmn_layout.core.geometry import polylines_cross
from bpmn_layout.layout import constants
from bpmn_layout.layout.lanes import assess_flows, measure
from bpmn_layout.models.diagram import Bounds, DiagramGraph


# =============================================================================
# Displacement
# =============================================================================


def capture_positions(graph: DiagramGraph) -> Dict[str, Bounds]:
    """Bounds of every positioned element, keyed by id."""
    return {e.id: e.bounds for e in graph.positioned()}


@dataclass
class DisplacementStats:
    """How far elements moved between two position captures."""

    total_elements: int
    moved_count: int
    max_displacement: int
    avg_displacement: int
    top_displacements: List[Dict[str, Any]] = field(default_factory=list)

    @property
    def is_large_change(self) -> bool:
        if self.total_elements == 0:
            return False
        return (
            self.moved_count / self.total_elements > constants.LARGE_CHANGE_RATIO
            and self.max_displacement > constants.LARGE_CHANGE_DISTANCE
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "totalElements": self.total_elements,
            "movedCount": self.moved_count,
            "maxDisplacement": self.max_displacement,
            "avgDisplacement": self.avg_displacement,
            "topDisplacements": self.top_displacements,
        }


def displacement_stats(before: Dict[str, Bounds], after: Dict[str, Bounds]) -> DisplacementStats:
    """Compare top-left corners of elements present in both captures.

    An element counts as moved when its rounded displacement exceeds 1px.
    """
    moves: List[Tuple[str, float, float, int]] = []
    for element_id, old in before.items():
        new = after.get(element_id)
        if new is None:
            continue
        dx = new.x - old.x
        dy = new.y - old.y
        distance = int(round(math.hypot(dx, dy)))
        if distance > constants.MOVE_THRESHOLD:
            moves.append((element_id, dx, dy, distance))

    moves.sort(key=lambda m: (-m[3], m[0]))
    total = sum(m[3] for m in moves)
    return DisplacementStats(
        total_elements=len(before),
        moved_count=len(moves),
        max_displacement=moves[0][3] if moves else 0,
        avg_displacement=int(round(total / len(moves))) if moves else 0,
        top_displacements=[
            {
                "elementId": element_id,
                "dx": int(round(dx)),
                "dy": int(round(dy)),
                "distance": distance,
            }
            for element_id, dx, dy, distance in moves[: constants.TOP_DISPLACEMENTS]
        ],
    )


# =============================================================================
# Crossings
# =============================================================================


def crossing_flow_pairs(graph: DiagramGraph) -> List[Tuple[str, str]]:
    """Pairs of connections whose routes properly cross, in document order."""
    routed = [c for c in graph.connections() if len(c.waypoints) >= 2]
    pairs: List[Tuple[str, str]] = []
    for i, first in enumerate(routed):
        for second in routed[i + 1:]:
            if polylines_cross(first.waypoints, second.waypoints):
                pairs.append((first.id, second.id))
    return pairs


def lane_crossing_metrics(graph: DiagramGraph) -> Dict[str, Any]:
    """Lane crossing summary over all pools with lanes.

    Returns:
        Empty dict when no pool has lanes
    """
    total = 0
    crossing = 0
    hop = 0
    worst = 0
    crossing_ids: List[str] = []
    pools = 0
    for pool in graph.participants():
        order = [lane.id for lane in graph.lanes_of(pool.id)]
        if not order:
            continue
        pools += 1
        metrics = measure(assess_flows(graph, pool.id), order)
        total += metrics.assessed_flows
        crossing += metrics.cross_lane_flows
        hop += metrics.total_hop_cost
        worst += metrics.assessed_flows * max(len(order) - 1, 0)
        crossing_ids.extend(metrics.crossing_flow_ids)
    if not pools:
        return {}
    coherence = 100 if worst == 0 else int(round(max(0.0, 100 * (1 - hop / worst))))
    return {
        "totalLaneFlows": total,
        "crossingLaneFlows": crossing,
        "crossingFlowIds": crossing_ids,
        "laneCoherenceScore": coherence,
    }
