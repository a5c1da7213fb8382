"""Tests for the lane order optimizer."""

import pytest

from bpmn_layout.core.errors import ValidationError
from bpmn_layout.layout.lanes import (
    NO_ELIGIBLE_POOL,
    AssessedFlow,
    LaneOptimizer,
    assess_flows,
    best_order,
    coherence_score,
    hop_cost,
    resolve_lane,
)
from bpmn_layout.models.diagram import DiagramGraph

from builders import flow, lane, pool, shape


class TestCoherenceScore:
    """Hop-weighted coherence."""

    def test_no_flows_is_fully_coherent(self):
        assert coherence_score(0, 0, 3) == 100

    def test_single_lane_is_fully_coherent(self):
        assert coherence_score(0, 5, 1) == 100

    def test_two_lanes_match_intra_lane_share(self):
        # 1 of 4 flows crosses -> 75% intra-lane
        assert coherence_score(1, 4, 2) == 75

    def test_bounds(self):
        assert coherence_score(8, 4, 3) == 0
        assert coherence_score(0, 4, 3) == 100

    def test_lower_hop_cost_scores_higher(self):
        assert coherence_score(2, 2, 3) > coherence_score(3, 2, 3)


class TestSearch:

    def test_three_lane_scenario(self):
        flows = [AssessedFlow("f1", "L1", "L3"), AssessedFlow("f2", "L3", "L2")]
        assert hop_cost(flows, ["L1", "L2", "L3"]) == 3
        order = best_order(flows, ["L1", "L2", "L3"])
        assert order == ["L1", "L3", "L2"]
        assert hop_cost(flows, order) == 2

    def test_optimal_order_kept(self):
        flows = [AssessedFlow("f1", "L1", "L2")]
        assert best_order(flows, ["L1", "L2", "L3"]) == ["L1", "L2", "L3"]

    def test_greedy_search_for_many_lanes(self):
        lanes = [f"L{i}" for i in range(8)]
        flows = [AssessedFlow("f1", "L0", "L7"), AssessedFlow("f2", "L7", "L1")]
        before = hop_cost(flows, lanes)
        order = best_order(flows, lanes)
        assert sorted(order) == sorted(lanes)
        assert hop_cost(flows, order) < before


class TestLaneOptimizer:
    """Optimizer over the 3-lane fixture pool."""

    def test_assessed_flows(self, lane_graph):
        flows = assess_flows(lane_graph, "pool")
        assert [(f.source_lane, f.target_lane) for f in flows] == [
            ("lane1", "lane3"),
            ("lane3", "lane2"),
        ]

    def test_plan(self, lane_graph):
        plan = LaneOptimizer(lane_graph).plan("pool")
        assert plan.optimized is True
        assert plan.new_order == ["lane1", "lane3", "lane2"]
        assert plan.before.total_hop_cost == 3
        assert plan.after.total_hop_cost == 2
        assert plan.before.coherence_score == 25
        assert plan.after.coherence_score == 50

    def test_optimize_applies_and_repositions(self, lane_graph):
        result = LaneOptimizer(lane_graph).optimize()
        assert result["success"] is True
        assert result["optimized"] is True
        assert result["applied"] is True
        assert result["after"]["coherenceScore"] >= result["before"]["coherenceScore"]
        assert result["coherenceScore"] == 50
        assert result["laneOrder"] == ["lane1", "lane3", "lane2"]

        lanes = lane_graph.lanes_of("pool")
        assert [l.id for l in lanes] == ["lane1", "lane3", "lane2"]
        assert lanes[1].bounds.y == lanes[0].bounds.bottom
        assert lanes[2].bounds.y == lanes[1].bounds.bottom
        for lane_element in lanes:
            for node_id in lane_element.node_ids:
                cy = lane_graph.get_element(node_id).bounds.center.y
                assert lane_element.bounds.y <= cy <= lane_element.bounds.bottom

    def test_second_call_not_optimized(self, lane_graph):
        optimizer = LaneOptimizer(lane_graph)
        assert optimizer.optimize()["optimized"] is True
        second = optimizer.optimize()
        assert second["success"] is True
        assert second["optimized"] is False
        assert "after" not in second

    def test_dry_run_changes_nothing(self, lane_graph):
        before = lane_graph.to_json()
        result = LaneOptimizer(lane_graph).optimize(dry_run=True)
        assert result["dryRun"] is True
        assert result["optimized"] is True
        assert lane_graph.to_json() == before

    def test_cross_lane_flow_rerouted(self, lane_graph):
        plan = LaneOptimizer(lane_graph).plan("pool")
        LaneOptimizer(lane_graph).apply(plan)
        assert set(plan.rerouted) == {"f1", "f2"}
        f1 = lane_graph.get_element("f1")
        assert len(f1.waypoints) >= 2

    def test_no_eligible_pool(self, chain_graph):
        result = LaneOptimizer(chain_graph).optimize()
        assert result == {"success": False, "optimized": False, "message": NO_ELIGIBLE_POOL}

    def test_participant_with_one_lane(self):
        graph = DiagramGraph.from_dict({
            "id": "single",
            "elements": [
                pool("p", 0, 0, 600, 125),
                lane("only", "p", 0, ["t"]),
                shape("t", "task", 100, 20, parent_id="p"),
            ],
        })
        assert LaneOptimizer(graph).optimize("p")["success"] is False

    def test_participant_id_must_be_participant(self, lane_graph):
        with pytest.raises(ValidationError, match="not a participant"):
            LaneOptimizer(lane_graph).optimize("t1")


class TestResolveLane:

    def test_boundary_event_follows_host(self):
        graph = DiagramGraph.from_dict({
            "id": "boundary",
            "elements": [
                pool("p", 0, 0, 600, 250),
                lane("a", "p", 0, ["t"], x=30, width=570),
                lane("b", "p", 125, ["u"], x=30, width=570),
                shape("t", "task", 100, 20, parent_id="p"),
                shape("u", "task", 300, 145, parent_id="p"),
                shape("timer", "boundaryEvent", 132, 82, host_id="t"),
                flow("f1", "timer", "u"),
            ],
        })
        assert resolve_lane(graph, "timer").id == "a"
        flows = assess_flows(graph, "p")
        assert [(f.source_lane, f.target_lane) for f in flows] == [("a", "b")]

    def test_orphan_nodes_assigned_to_nearest_lane(self):
        graph = DiagramGraph.from_dict({
            "id": "orphans",
            "elements": [
                pool("p", 0, 0, 600, 250),
                lane("a", "p", 0, [], x=30, width=570),
                lane("b", "p", 125, [], x=30, width=570),
                shape("t", "task", 100, 150, parent_id="p"),
            ],
        })
        assert resolve_lane(graph, "t").id == "b"
