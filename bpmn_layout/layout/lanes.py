"""Lane order optimizer.

Reorders the lanes of a pool to minimize cross-lane sequence flow.

Cost model: a flow between lanes at vertical indices i and j costs |i - j|;
flows inside one lane cost 0. Coherence is derived from the total hop cost
H over N assessed flows in a pool of L lanes:

    coherence = 100 * (1 - H / (N * (L - 1)))

It is 100 exactly when no flow leaves its lane, never negative, equal to the
intra-lane share for two lanes, and strictly increases as H falls, so the
order with the lowest hop cost also has the highest coherence.

Search: every permutation for up to 6 lanes, pairwise-swap hill climbing
beyond that. The current order is kept unless another is strictly cheaper.
"""

import itertools
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from bpmn_layout.core.errors import ValidationError
from bpmn_layout.layout import constants
from bpmn_layout.layout.routing import reroute_connections
from bpmn_layout.models.diagram import (
    Bounds,
    DiagramGraph,
    FlowType,
    LaneElement,
    ParticipantElement,
    is_participant,
)

logger = logging.getLogger(__name__)

NO_ELIGIBLE_POOL = "No participant with at least 2 lanes found"


# =============================================================================
# Cost model
# =============================================================================


@dataclass
class AssessedFlow:
    """A sequence flow with both ends assigned to lanes of one pool."""

    flow_id: str
    source_lane: str
    target_lane: str


@dataclass
class LaneMetrics:
    """Derived, read-only metrics for one lane order."""

    total_hop_cost: int
    assessed_flows: int
    cross_lane_flows: int
    lane_count: int
    crossing_flow_ids: List[str] = field(default_factory=list)

    @property
    def intra_lane_flows(self) -> int:
        return self.assessed_flows - self.cross_lane_flows

    @property
    def coherence_score(self) -> int:
        return coherence_score(self.total_hop_cost, self.assessed_flows, self.lane_count)

    @property
    def intra_lane_percent(self) -> int:
        if self.assessed_flows == 0:
            return 100
        return round(100 * self.intra_lane_flows / self.assessed_flows)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "coherenceScore": self.coherence_score,
            "intraLanePercent": self.intra_lane_percent,
            "totalHopCost": self.total_hop_cost,
            "crossLaneFlows": self.cross_lane_flows,
            "intraLaneFlows": self.intra_lane_flows,
            "assessedFlows": self.assessed_flows,
        }


def coherence_score(total_hop_cost: int, flow_count: int, lane_count: int) -> int:
    """Hop-weighted coherence in [0, 100]."""
    if flow_count == 0 or lane_count < 2:
        return 100
    worst = flow_count * (lane_count - 1)
    score = 100 * (1 - total_hop_cost / worst)
    return int(round(min(100.0, max(0.0, score))))


def resolve_lane(graph: DiagramGraph, node_id: str) -> Optional[LaneElement]:
    """Lane of a node, following boundary-event hosts and enclosing sub-processes."""
    current = graph.elements.get(node_id)
    while current is not None:
        lane = graph.lane_of(current.id)
        if lane is not None:
            return lane
        next_id = getattr(current, "host_id", None) or getattr(current, "parent_id", None)
        current = graph.elements.get(next_id) if next_id else None
        if is_participant(current):
            return None
    return None


def assess_flows(graph: DiagramGraph, participant_id: str) -> List[AssessedFlow]:
    """Sequence flows whose both ends sit in lanes of the given pool."""
    flows: List[AssessedFlow] = []
    for flow in graph.connections():
        if flow.flow_type != FlowType.SEQUENCE_FLOW:
            continue
        source_lane = resolve_lane(graph, flow.source_id)
        target_lane = resolve_lane(graph, flow.target_id)
        if source_lane is None or target_lane is None:
            continue
        if source_lane.participant_id != participant_id or target_lane.participant_id != participant_id:
            continue
        flows.append(AssessedFlow(flow.id, source_lane.id, target_lane.id))
    return flows


def hop_cost(flows: Sequence[AssessedFlow], order: Sequence[str]) -> int:
    index = {lane_id: i for i, lane_id in enumerate(order)}
    return sum(abs(index[f.source_lane] - index[f.target_lane]) for f in flows)


def measure(flows: Sequence[AssessedFlow], order: Sequence[str]) -> LaneMetrics:
    index = {lane_id: i for i, lane_id in enumerate(order)}
    crossing = [f.flow_id for f in flows if f.source_lane != f.target_lane]
    return LaneMetrics(
        total_hop_cost=sum(abs(index[f.source_lane] - index[f.target_lane]) for f in flows),
        assessed_flows=len(flows),
        cross_lane_flows=len(crossing),
        lane_count=len(order),
        crossing_flow_ids=crossing,
    )


# =============================================================================
# Search
# =============================================================================


def best_order(flows: Sequence[AssessedFlow], order: Sequence[str]) -> List[str]:
    """Cheapest lane order; the given order wins every tie."""
    current = list(order)
    best_cost = hop_cost(flows, current)
    if best_cost == 0:
        return current

    if len(current) <= constants.MAX_EXHAUSTIVE_LANES:
        best = current
        for candidate in itertools.permutations(current):
            cost = hop_cost(flows, candidate)
            if cost < best_cost:
                best, best_cost = list(candidate), cost
        return best

    best = current
    for _ in range(constants.MAX_GREEDY_PASSES):
        improved = False
        for i, j in itertools.combinations(range(len(best)), 2):
            candidate = list(best)
            candidate[i], candidate[j] = candidate[j], candidate[i]
            cost = hop_cost(flows, candidate)
            if cost < best_cost:
                best, best_cost = candidate, cost
                improved = True
        if not improved:
            break
    return best


# =============================================================================
# Optimizer
# =============================================================================


@dataclass
class LaneOptimization:
    """Plan (and, when applied, outcome) of one optimizer run."""

    participant_id: str
    original_order: List[str]
    new_order: List[str]
    before: LaneMetrics
    after: LaneMetrics
    applied: bool = False
    rerouted: List[str] = field(default_factory=list)

    @property
    def optimized(self) -> bool:
        return self.after.total_hop_cost < self.before.total_hop_cost

    def to_dict(self, dry_run: bool = False) -> Dict[str, Any]:
        result: Dict[str, Any] = {
            "success": True,
            "participantId": self.participant_id,
            "optimized": self.optimized,
            "coherenceScore": (
                self.after.coherence_score if self.optimized else self.before.coherence_score
            ),
            "before": self.before.to_dict(),
            "laneOrder": list(self.new_order if self.optimized else self.original_order),
        }
        if self.optimized:
            result["after"] = self.after.to_dict()
            result["previousLaneOrder"] = list(self.original_order)
        if dry_run:
            result["dryRun"] = True
        else:
            result["applied"] = self.applied
        if not self.optimized:
            result["message"] = "Lane order is already optimal"
        return result


class LaneOptimizer:
    """Computes and applies lane orders for the pools of one diagram."""

    def __init__(self, graph: DiagramGraph):
        self.graph = graph

    def eligible_participants(self) -> List[ParticipantElement]:
        return [p for p in self.graph.participants() if len(self.graph.lanes_of(p.id)) >= 2]

    def select_participant(self, participant_id: Optional[str] = None) -> Optional[ParticipantElement]:
        """Resolve the pool to optimize.

        Raises:
            NotFoundError: If participant_id is unknown
            ValidationError: If participant_id is not a participant
        """
        if participant_id is None:
            eligible = self.eligible_participants()
            return eligible[0] if eligible else None
        element = self.graph.get_element(participant_id)
        if not is_participant(element):
            raise ValidationError(
                f"Element {participant_id} is not a participant, got: {element.kind}",
                details={"element_id": participant_id, "kind": element.kind},
            )
        if len(self.graph.lanes_of(participant_id)) < 2:
            return None
        return element

    def plan(self, participant_id: str) -> LaneOptimization:
        """Find the best order for one pool without touching the diagram."""
        original = [lane.id for lane in self.graph.lanes_of(participant_id)]
        flows = assess_flows(self.graph, participant_id)
        new_order = best_order(flows, original)
        plan = LaneOptimization(
            participant_id=participant_id,
            original_order=original,
            new_order=new_order,
            before=measure(flows, original),
            after=measure(flows, new_order),
        )
        logger.debug(
            f"Lane plan for {participant_id}: {original} -> {new_order} "
            f"(hop cost {plan.before.total_hop_cost} -> {plan.after.total_hop_cost})"
        )
        return plan

    def apply(self, plan: LaneOptimization) -> LaneOptimization:
        """Reposition lanes and their nodes to the planned order."""
        if plan.optimized:
            plan.rerouted = apply_lane_order(self.graph, plan.participant_id, plan.new_order)
            plan.applied = True
            logger.info(
                f"Reordered lanes of {plan.participant_id}: coherence "
                f"{plan.before.coherence_score} -> {plan.after.coherence_score}"
            )
        return plan

    def optimize(self, participant_id: Optional[str] = None, dry_run: bool = False) -> Dict[str, Any]:
        """Optimize one pool and report the result.

        Returns:
            Result dict; ``success`` is False when no pool has 2 or more lanes
        """
        pool = self.select_participant(participant_id)
        if pool is None:
            return {"success": False, "optimized": False, "message": NO_ELIGIBLE_POOL}
        plan = self.plan(pool.id)
        if not dry_run:
            self.apply(plan)
        return plan.to_dict(dry_run=dry_run)


def apply_lane_order(graph: DiagramGraph, participant_id: str, order: Sequence[str]) -> List[str]:
    """Tile lanes top to bottom in ``order``, carrying each lane's nodes along.

    Returns:
        Connections re-routed because their ends moved by different amounts
    """
    pool = graph.get_element(participant_id)
    lanes: Dict[str, LaneElement] = {lane.id: lane for lane in graph.lanes_of(participant_id)}
    if set(order) != set(lanes):
        raise ValidationError(
            f"Lane order for {participant_id} must list each of its lanes exactly once",
            details={"participant_id": participant_id, "order": list(order)},
        )

    top = min(lane.bounds.y for lane in lanes.values())
    deltas: Dict[str, float] = {}
    y = top
    for lane_id in order:
        lane = lanes[lane_id]
        dy = y - lane.bounds.y
        if dy:
            moved = graph.move_elements(lane.node_ids, 0, dy)
            for node_id in moved:
                deltas[node_id] = dy
        graph.resize_element(
            lane_id,
            Bounds(x=lane.bounds.x, y=y, width=lane.bounds.width, height=lane.bounds.height),
        )
        y += lane.bounds.height

    stale = [
        c.id for c in graph.connections()
        if deltas.get(c.source_id, 0) != deltas.get(c.target_id, 0)
    ]
    _fit_pool_height(graph, pool, top, y)
    return reroute_connections(graph, stale)


def _fit_pool_height(graph: DiagramGraph, pool: ParticipantElement, lanes_top: float, lanes_bottom: float) -> None:
    bottom = max(pool.bounds.bottom, lanes_bottom)
    top = min(pool.bounds.y, lanes_top)
    if (top, bottom) != (pool.bounds.y, pool.bounds.bottom):
        graph.resize_element(
            pool.id,
            Bounds(x=pool.bounds.x, y=top, width=pool.bounds.width, height=bottom - top),
        )
