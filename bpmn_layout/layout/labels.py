"""Label placement resolver.

Places floating labels (external labels of events, gateways and data
references, and midpoint labels of named flows) after node and edge
geometry is final.

For every label, in document order:

1. Generate 4 candidate rectangles around the anchor: top, bottom, left, right.
2. Score each candidate (lower is better):
   - +1 per connection segment crossing it, +2 more if the segment belongs
     to one of the owner's own flows
   - +2 per already-placed label it overlaps
   - +5 per shape it overlaps, +1 per shape closer than 10px
   - +10 if it overlaps the host activity of a boundary event
   - +100 if it leaves the canvas (negative coordinates)
3. Pick the lowest score; ties go bottom > right > left > top.
4. Apply it and treat it as an obstacle for the labels that follow.

Repeated runs over unchanged geometry move nothing.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Sequence, Set, Tuple

from bpmn_layout.core.geometry import (
    Segment,
    polyline_midpoint,
    rects_nearby,
    rects_overlap,
    segment_intersects_rect,
    segments_of,
)
from bpmn_layout.layout import constants
from bpmn_layout.models.diagram import (
    Bounds,
    ConnectionElement,
    DiagramGraph,
    ShapeElement,
    has_external_label,
    has_flow_label,
    is_boundary_event,
)

logger = logging.getLogger(__name__)

ORIENTATIONS = ("top", "bottom", "left", "right")

# Labels within this distance of the winning rect are considered unmoved
POSITION_TOLERANCE = 0.5


@dataclass
class LabelCandidate:
    """One candidate position for a label. Never persisted."""

    orientation: str
    rect: Bounds
    score: float = 0.0


@dataclass
class LabelPlacement:
    """Outcome for one label."""

    element_id: str
    orientation: str
    rect: Bounds
    score: float
    previous: Optional[Bounds]
    moved: bool


@dataclass
class _Setting:
    """Candidates and obstacles for one label."""

    candidates: List[LabelCandidate]
    segments: List[Segment]
    host: Optional[Bounds] = None
    shapes: List[Bounds] = field(default_factory=list)
    own_segments: List[Segment] = field(default_factory=list)


def candidate_positions(
    anchor: Bounds,
    gap: float = constants.ELEMENT_LABEL_DISTANCE,
    bottom_extra: float = constants.ELEMENT_LABEL_BOTTOM_EXTRA,
    size: Tuple[float, float] = (constants.DEFAULT_LABEL_WIDTH, constants.DEFAULT_LABEL_HEIGHT),
) -> List[LabelCandidate]:
    """Four candidate rectangles centred on each side of the anchor."""
    width, height = size
    mid = anchor.center
    rects = {
        "top": Bounds(x=mid.x - width / 2, y=anchor.y - gap - height, width=width, height=height),
        "bottom": Bounds(
            x=mid.x - width / 2,
            y=anchor.bottom + gap + bottom_extra,
            width=width,
            height=height,
        ),
        "left": Bounds(x=anchor.x - gap - width, y=mid.y - height / 2, width=width, height=height),
        "right": Bounds(x=anchor.right + gap, y=mid.y - height / 2, width=width, height=height),
    }
    return [LabelCandidate(orientation=o, rect=rects[o]) for o in ORIENTATIONS]


def score_label_position(
    candidate: Bounds,
    segments: Sequence[Segment],
    placed_labels: Sequence[Bounds],
    host: Optional[Bounds] = None,
    shapes: Sequence[Bounds] = (),
    own_segments: Sequence[Segment] = (),
) -> float:
    """Score a candidate rectangle. Zero means collision-free.

    Args:
        candidate: Candidate label rectangle
        segments: Connection segments to avoid
        placed_labels: Labels already placed in this pass
        host: Host activity for boundary-event labels
        shapes: Shapes other than the label owner
        own_segments: Segments of the owner's own flows, also present in
            ``segments``; each crossing adds OWN_FLOW_CROSSING_PENALTY on top

    Returns:
        Non-negative penalty
    """
    score = 0.0
    if candidate.x < 0 or candidate.y < 0:
        score += constants.OFF_CANVAS_PENALTY
    for p1, p2 in segments:
        if segment_intersects_rect(p1, p2, candidate):
            score += constants.CROSSING_PENALTY
    for p1, p2 in own_segments:
        if segment_intersects_rect(p1, p2, candidate):
            score += constants.OWN_FLOW_CROSSING_PENALTY
    for other in placed_labels:
        if rects_overlap(candidate, other):
            score += constants.LABEL_OVERLAP_PENALTY
    if host is not None and rects_overlap(candidate, host):
        score += constants.HOST_OVERLAP_PENALTY
    for shape in shapes:
        if rects_overlap(candidate, shape):
            score += constants.SHAPE_OVERLAP_PENALTY
        elif rects_nearby(candidate, shape, constants.LABEL_SHAPE_PROXIMITY_MARGIN):
            score += constants.SHAPE_PROXIMITY_PENALTY
    return score


def choose_candidate(candidates: Sequence[LabelCandidate]) -> LabelCandidate:
    """Lowest score wins; ties follow the fixed orientation priority."""
    return min(
        candidates,
        key=lambda c: (c.score, constants.LABEL_ORIENTATION_PRIORITY[c.orientation]),
    )


def _same_rect(a: Optional[Bounds], b: Bounds) -> bool:
    if a is None:
        return False
    return (
        abs(a.x - b.x) <= POSITION_TOLERANCE
        and abs(a.y - b.y) <= POSITION_TOLERANCE
        and abs(a.width - b.width) <= POSITION_TOLERANCE
        and abs(a.height - b.height) <= POSITION_TOLERANCE
    )


class LabelResolver:
    """Runs one placement pass over a diagram's floating labels."""

    def __init__(self, graph: DiagramGraph):
        self.graph = graph

    def label_bearers(self) -> List[str]:
        """Ids of elements with a floating label, in document order."""
        return [
            e.id for e in self.graph.elements.values()
            if has_external_label(e) or (has_flow_label(e) and len(e.waypoints) >= 2)
        ]

    def _segments_by_connection(self) -> Dict[str, List[Segment]]:
        return {
            c.id: segments_of(c.waypoints)
            for c in self.graph.connections()
            if len(c.waypoints) >= 2
        }

    def resolve(self, element_ids: Optional[Iterable[str]] = None) -> List[LabelPlacement]:
        """Place labels and apply winners to the diagram.

        Args:
            element_ids: Restrict the pass to these label owners; other
                labels stay put and act as obstacles

        Returns:
            One placement per processed label
        """
        bearers = self.label_bearers()
        selected: Set[str] = set(bearers) if element_ids is None else set(element_ids) & set(bearers)

        placed: List[Bounds] = [
            self.graph.elements[eid].label
            for eid in bearers
            if eid not in selected and self.graph.elements[eid].label is not None
        ]
        segments = self._segments_by_connection()
        all_segments = [s for segs in segments.values() for s in segs]
        shape_rects = {s.id: s.bounds for s in self.graph.shapes()}

        placements: List[LabelPlacement] = []
        for element_id in bearers:
            if element_id not in selected:
                continue
            element = self.graph.elements[element_id]
            if isinstance(element, ConnectionElement):
                setting = self._flow_setting(element, segments, shape_rects)
            else:
                setting = self._shape_setting(element, segments, all_segments, shape_rects)

            for candidate in setting.candidates:
                candidate.score = score_label_position(
                    candidate.rect,
                    setting.segments,
                    placed,
                    setting.host,
                    setting.shapes,
                    setting.own_segments,
                )
            winner = choose_candidate(setting.candidates)

            previous = element.label
            moved = not _same_rect(previous, winner.rect)
            if moved:
                self.graph.set_label(element_id, winner.rect)
            placed.append(winner.rect if moved else previous)
            placements.append(
                LabelPlacement(
                    element_id=element_id,
                    orientation=winner.orientation,
                    rect=winner.rect,
                    score=winner.score,
                    previous=previous,
                    moved=moved,
                )
            )

        moved_count = sum(1 for p in placements if p.moved)
        logger.debug(f"Label pass: {len(placements)} label(s), {moved_count} moved")
        return placements

    def _shape_setting(
        self,
        element: ShapeElement,
        segments: Dict[str, List[Segment]],
        all_segments: List[Segment],
        shape_rects: Dict[str, Bounds],
    ) -> _Setting:
        host = None
        if is_boundary_event(element) and element.host_id is not None:
            host = self.graph.elements[element.host_id].bounds
        own = [
            s for c in self.graph.connections_of(element.id)
            for s in segments.get(c.id, [])
        ]
        return _Setting(
            candidates=candidate_positions(element.bounds),
            segments=all_segments,
            host=host,
            shapes=[b for sid, b in shape_rects.items() if sid != element.id],
            own_segments=own,
        )

    def _flow_setting(
        self,
        connection: ConnectionElement,
        segments: Dict[str, List[Segment]],
        shape_rects: Dict[str, Bounds],
    ) -> _Setting:
        mid = polyline_midpoint(connection.waypoints)
        anchor = Bounds(x=mid.x, y=mid.y, width=0, height=0)
        # A flow label sits on its own flow and next to its end shapes
        ends = {connection.source_id, connection.target_id}
        return _Setting(
            candidates=candidate_positions(anchor, gap=constants.FLOW_LABEL_INDENT, bottom_extra=0),
            segments=[s for cid, segs in segments.items() if cid != connection.id for s in segs],
            shapes=[b for sid, b in shape_rects.items() if sid not in ends],
        )


def adjust_labels(graph: DiagramGraph, element_ids: Optional[Iterable[str]] = None) -> int:
    """Run a placement pass and return how many labels moved."""
    placements = LabelResolver(graph).resolve(element_ids)
    return sum(1 for p in placements if p.moved)
