"""Tests for the label placement resolver."""

import pytest

from bpmn_layout.core.geometry import rects_overlap
from bpmn_layout.layout import constants
from bpmn_layout.layout.labels import (
    LabelCandidate,
    LabelResolver,
    adjust_labels,
    candidate_positions,
    choose_candidate,
    score_label_position,
)
from bpmn_layout.models.diagram import Bounds, DiagramGraph, Point

from builders import flow, shape


def rect(x, y, w, h):
    return Bounds(x=x, y=y, width=w, height=h)


class TestScoreLabelPosition:
    """Penalty scoring of one candidate rectangle."""

    @pytest.fixture
    def candidate(self):
        return rect(100, 100, 90, 20)

    def test_free_candidate_scores_zero(self, candidate):
        assert score_label_position(candidate, [], [], None) == 0

    def test_crossing_segment_scores_positive(self, candidate):
        segment = (Point(x=0, y=110), Point(x=300, y=110))
        assert score_label_position(candidate, [segment], [], None) > 0

    def test_each_crossing_counts(self, candidate):
        segments = [
            (Point(x=0, y=105), Point(x=300, y=105)),
            (Point(x=0, y=115), Point(x=300, y=115)),
        ]
        assert score_label_position(candidate, segments, [], None) == 2 * constants.CROSSING_PENALTY

    def test_overlapping_label(self, candidate):
        score = score_label_position(candidate, [], [rect(150, 110, 90, 20)], None)
        assert score == constants.LABEL_OVERLAP_PENALTY

    def test_touching_label_is_free(self, candidate):
        assert score_label_position(candidate, [], [rect(190, 100, 90, 20)], None) == 0

    def test_host_overlap_dominates_crossing(self, candidate):
        host_score = score_label_position(candidate, [], [], rect(120, 90, 100, 80))
        segment = (Point(x=0, y=110), Point(x=300, y=110))
        crossing_score = score_label_position(candidate, [segment], [], None)
        assert host_score >= 10 * crossing_score

    def test_off_canvas(self):
        assert score_label_position(rect(-5, 10, 90, 20), [], [], None) == constants.OFF_CANVAS_PENALTY

    def test_shape_overlap(self, candidate):
        score = score_label_position(candidate, [], [], None, shapes=[rect(150, 90, 100, 80)])
        assert score == constants.SHAPE_OVERLAP_PENALTY

    def test_nearby_shape(self, candidate):
        # 5px right of the candidate
        score = score_label_position(candidate, [], [], None, shapes=[rect(195, 100, 36, 36)])
        assert score == constants.SHAPE_PROXIMITY_PENALTY

    def test_distant_shape_is_free(self, candidate):
        assert score_label_position(candidate, [], [], None, shapes=[rect(300, 100, 36, 36)]) == 0

    def test_own_flow_costs_more_than_other_flows(self, candidate):
        segment = (Point(x=0, y=110), Point(x=300, y=110))
        other = score_label_position(candidate, [segment], [])
        own = score_label_position(candidate, [segment], [], own_segments=[segment])
        assert own == other + constants.OWN_FLOW_CROSSING_PENALTY


class TestCandidates:

    def test_four_candidates_around_anchor(self):
        anchor = rect(100, 100, 36, 36)
        candidates = candidate_positions(anchor)
        assert [c.orientation for c in candidates] == ["top", "bottom", "left", "right"]
        by_side = {c.orientation: c.rect for c in candidates}
        assert by_side["top"].bottom == anchor.y - constants.ELEMENT_LABEL_DISTANCE
        assert by_side["bottom"].y == (
            anchor.bottom + constants.ELEMENT_LABEL_DISTANCE + constants.ELEMENT_LABEL_BOTTOM_EXTRA
        )
        assert by_side["left"].right == anchor.x - constants.ELEMENT_LABEL_DISTANCE
        assert by_side["right"].x == anchor.right + constants.ELEMENT_LABEL_DISTANCE
        for c in candidates:
            assert (c.rect.width, c.rect.height) == (
                constants.DEFAULT_LABEL_WIDTH, constants.DEFAULT_LABEL_HEIGHT
            )

    def test_ties_prefer_bottom_then_right(self):
        r = rect(0, 0, 1, 1)
        candidates = [LabelCandidate(o, r, 0) for o in ("top", "bottom", "left", "right")]
        assert choose_candidate(candidates).orientation == "bottom"
        candidates[1].score = 1
        assert choose_candidate(candidates).orientation == "right"

    def test_lowest_score_wins(self):
        r = rect(0, 0, 1, 1)
        candidates = [
            LabelCandidate("top", r, 0),
            LabelCandidate("bottom", r, 2),
            LabelCandidate("left", r, 1),
            LabelCandidate("right", r, 1),
        ]
        assert choose_candidate(candidates).orientation == "top"


class TestLabelResolver:
    """Placement passes over whole diagrams."""

    @pytest.fixture
    def graph(self):
        return DiagramGraph.from_dict({
            "id": "labels",
            "elements": [
                shape("start", "startEvent", 100, 100, name="Start"),
                shape("task", "task", 300, 78),
                shape("gw", "exclusiveGateway", 500, 93, name="OK?"),
                flow("f1", "start", "task", waypoints=[{"x": 136, "y": 118}, {"x": 300, "y": 118}]),
                flow(
                    "f2", "task", "gw", name="checked",
                    waypoints=[{"x": 400, "y": 118}, {"x": 500, "y": 118}],
                ),
            ],
        })

    def test_label_bearers_in_document_order(self, graph):
        assert LabelResolver(graph).label_bearers() == ["start", "gw", "f2"]

    def test_unobstructed_label_goes_below(self, graph):
        LabelResolver(graph).resolve()
        start = graph.get_element("start")
        assert start.label.y > start.bounds.bottom

    def test_flow_label_below_midpoint(self, graph):
        LabelResolver(graph).resolve()
        label = graph.get_element("f2").label
        assert label.y == 118 + constants.FLOW_LABEL_INDENT
        assert label.center.x == 450

    def test_adjust_labels_counts_moves_and_is_idempotent(self, graph):
        assert adjust_labels(graph) == 3
        assert adjust_labels(graph) == 0

    def test_partial_pass_leaves_other_labels(self, graph):
        adjust_labels(graph, ["start"])
        assert graph.get_element("start").label is not None
        assert graph.get_element("gw").label is None

    def test_placed_labels_are_obstacles(self):
        graph = DiagramGraph.from_dict({
            "id": "crowded",
            "elements": [
                shape("e1", "intermediateEvent", 100, 100, name="First"),
                shape("e2", "intermediateEvent", 170, 100, name="Second"),
            ],
        })
        placements = LabelResolver(graph).resolve()
        assert placements[0].orientation == "bottom"
        # e2's bottom candidate would overlap e1's label
        by_side = {c.orientation: c.rect for c in candidate_positions(graph.get_element("e2").bounds)}
        e2_bottom = by_side["bottom"]
        assert score_label_position(e2_bottom, [], [placements[0].rect]) > 0
        assert placements[1].orientation == "right"
        assert placements[1].score == 0

    def test_boundary_event_label_avoids_host(self):
        graph = DiagramGraph.from_dict({
            "id": "boundary",
            "elements": [
                shape("task", "task", 100, 100),
                shape("timer", "boundaryEvent", 132, 82, name="2 days", host_id="task"),
            ],
        })
        placements = LabelResolver(graph).resolve()
        assert placements[0].orientation == "top"
        assert placements[0].score == 0

    def test_no_labels_moves_nothing(self):
        graph = DiagramGraph.from_dict({
            "id": "plain",
            "elements": [shape("task", "task", 100, 100)],
        })
        assert adjust_labels(graph) == 0

    def test_event_label_stays_off_adjacent_task(self):
        graph = DiagramGraph.from_dict({
            "id": "stacked",
            "elements": [
                shape("ev", "startEvent", 100, 100, name="Request"),
                shape("task", "task", 68, 150),
            ],
        })
        adjust_labels(graph)
        label = graph.get_element("ev").label
        assert not rects_overlap(label, graph.get_element("task").bounds)
        assert label.x == 146

    def test_label_avoids_outgoing_flow(self):
        graph = DiagramGraph.from_dict({
            "id": "own",
            "elements": [
                shape("gw", "exclusiveGateway", 100, 100, name="Approved?"),
                shape("task", "task", 75, 300),
                flow("f1", "gw", "task", waypoints=[{"x": 125, "y": 150}, {"x": 125, "y": 300}]),
            ],
        })
        placements = LabelResolver(graph).resolve()
        assert placements[0].orientation == "right"
        assert placements[0].score == 0
