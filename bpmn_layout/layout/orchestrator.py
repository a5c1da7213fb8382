"""Layout orchestrator.

Decides layout strategy and scope, calls the layout engine, writes node
positions and edge routes back onto the diagram and reports metrics.

Pipeline of one layout call:

1. Validate scope and element ids (nothing has run yet).
2. Deterministic fast path for simple linear chains, else:
   a. optional lane order optimization of the pools in scope
   b. one engine call per region (diagram root, pool or sub-process),
      innermost regions first so sub-processes are sized before their parent
   c. partial layouts push placed nodes off the fixed context
   d. lane re-banding, pool sizing and pool stacking
3. Optional grid snapping, then artifacts next to their associated nodes.
4. Connection routing: engine routes where both ends kept their relative
   offset, orthogonal re-docking otherwise.
5. Pin restoration; a full unscoped layout then clears all pins.
6. Label placement and metrics.

Every mutating call runs inside a command-log record, so an engine failure
leaves the diagram exactly as it was. Dry runs lay out a deep copy and only
report displacement.
"""

import logging
import time
from contextlib import contextmanager
from typing import Any, Awaitable, Callable, Dict, Iterator, List, Literal, Optional, Set, Tuple

from pydantic import BaseModel, Field

from bpmn_layout.config import settings
from bpmn_layout.core.diagram_store import DiagramSession
from bpmn_layout.core.errors import ValidationError
from bpmn_layout.core.geometry import orthogonal_route, translate_points
from bpmn_layout.layout import constants
from bpmn_layout.layout.artifacts import is_artifact, place_artifacts
from bpmn_layout.layout.deterministic import chain_positions, linear_chain
from bpmn_layout.layout.engines import resolve_engine
from bpmn_layout.layout.engines.base import LayoutEngine
from bpmn_layout.layout.labels import adjust_labels
from bpmn_layout.layout.lanes import NO_ELIGIBLE_POOL, LaneOptimizer, assess_flows, measure
from bpmn_layout.layout.metrics import (
    DisplacementStats,
    capture_positions,
    crossing_flow_pairs,
    displacement_stats,
    lane_crossing_metrics,
)
from bpmn_layout.layout.overlaps import resolve_overlaps
from bpmn_layout.layout.pins import PinRegistry, parse_waypoints
from bpmn_layout.models.diagram import (
    Bounds,
    DiagramGraph,
    ParticipantElement,
    Point,
    SubProcessElement,
    is_connection,
    is_container,
    is_flow_node,
    is_lane,
    is_participant,
    is_subprocess,
)
from bpmn_layout.models.layout_metadata import LayoutEdge, LayoutNode, LayoutRequest

logger = logging.getLogger(__name__)

EngineProvider = Callable[[], Awaitable[LayoutEngine]]


# =============================================================================
# Options and tracing
# =============================================================================


class LayoutOptions(BaseModel):
    """Options of one layout call. Accepts camelCase or snake_case keys."""

    model_config = {"populate_by_name": True, "protected_namespaces": ()}

    scope_element_id: Optional[str] = Field(
        default=None,
        alias="scopeElementId",
        description="Participant or sub-process restricting the layout",
    )
    element_ids: Optional[List[str]] = Field(
        default=None, alias="elementIds", description="Subset of nodes to lay out"
    )
    layout_strategy: Literal["full", "deterministic"] = Field(default="full", alias="layoutStrategy")
    lane_strategy: Literal["preserve", "optimize"] = Field(default="preserve", alias="laneStrategy")
    dry_run: bool = Field(default=False, alias="dryRun")
    direction: Literal["RIGHT", "DOWN", "LEFT", "UP"] = "RIGHT"
    node_spacing: float = Field(default=constants.NODE_SPACING, gt=0, alias="nodeSpacing")
    layer_spacing: float = Field(default=constants.LAYER_SPACING, gt=0, alias="layerSpacing")
    grid_snap: Optional[float] = Field(
        default=None, gt=0, alias="gridSnap", description="Snap node corners to this grid"
    )

    @property
    def is_full(self) -> bool:
        """Whole diagram: no scope and no element subset."""
        return self.scope_element_id is None and not self.element_ids


class LayoutTrace:
    """Per-step timing of one layout call."""

    def __init__(self) -> None:
        self.steps: List[Dict[str, Any]] = []

    @contextmanager
    def step(self, name: str) -> Iterator[Dict[str, Any]]:
        entry: Dict[str, Any] = {"step": name, "moved": 0}
        start = time.perf_counter()
        try:
            yield entry
        finally:
            entry["durationMs"] = round((time.perf_counter() - start) * 1000, 2)
            self.steps.append(entry)
            if settings.is_enabled("layout_debug"):
                logger.debug(
                    f"Layout step {name}: {entry['moved']} moved in {entry['durationMs']}ms"
                )


# =============================================================================
# Layout pass
# =============================================================================


class LayoutPass:
    """One layout computation over a graph and its pins.

    The orchestrator hands in either the live session state or a deep copy
    (dry run); the pass itself never knows which.
    """

    def __init__(
        self,
        graph: DiagramGraph,
        pins: PinRegistry,
        options: LayoutOptions,
        trace: LayoutTrace,
        engine_provider: EngineProvider,
    ):
        self.graph = graph
        self.pins = pins
        self.options = options
        self.trace = trace
        self.engine_provider = engine_provider
        self.moved: Set[str] = set()
        # Node top-left right after engine placement, and engine routes in diagram space
        self.placed: Dict[str, Tuple[float, float]] = {}
        self.routes: Dict[str, List[Point]] = {}

    async def run(self) -> Tuple[Dict[str, Any], DisplacementStats]:
        graph = self.graph
        before = capture_positions(graph)
        targets = self.target_nodes()
        result: Dict[str, Any] = {"success": True, "elementCount": len(targets)}

        strategy = "full"
        if self.options.layout_strategy == "deterministic":
            chain = linear_chain(graph) if self.options.is_full else None
            if chain is not None:
                with self.trace.step("deterministic") as step:
                    step["moved"] = self._place_chain(chain)
                strategy = "deterministic"
            else:
                logger.info(f"Diagram {graph.id} is not a simple chain, using full layout")

        if strategy == "full":
            if self.options.lane_strategy == "optimize":
                with self.trace.step("lane_optimization") as step:
                    lane_results = self._optimize_lanes()
                    step["moved"] = sum(1 for r in lane_results if r.get("applied"))
                result["laneOptimization"] = lane_results
            with self.trace.step("engine") as step:
                await self._place_regions(targets)
                step["moved"] = len(self.moved)

        if self.options.grid_snap:
            with self.trace.step("grid_snap") as step:
                step["moved"] = self._snap_to_grid(targets, self.options.grid_snap)

        if any(is_artifact(e) for e in graph.shapes()):
            with self.trace.step("artifacts") as step:
                anchors = None if self.options.is_full else set(self.moved)
                placed_artifacts = place_artifacts(graph, anchors)
                self.moved |= placed_artifacts
                step["moved"] = len(placed_artifacts)

        with self.trace.step("routing") as step:
            step["moved"] = len(self._route_connections())

        with self.trace.step("pins") as step:
            if self.options.is_full:
                restored = self.pins.restore(graph)
                cleared = self.pins.clear()
                if cleared:
                    result["pinsCleared"] = cleared
            else:
                restored = self.pins.restore(graph, self._touched_connections())
            step["moved"] = len(restored)
            if restored:
                result["pinsRestored"] = len(restored)

        with self.trace.step("labels") as step:
            owners = None if self.options.is_full else self.moved | set(self._touched_connections())
            labels_moved = adjust_labels(graph, owners)
            step["moved"] = labels_moved

        stats = displacement_stats(before, capture_positions(graph))
        pairs = crossing_flow_pairs(graph)
        result.update({
            "movedCount": stats.moved_count,
            "crossingFlows": len(pairs),
            "crossingFlowPairs": [list(pair) for pair in pairs],
            "layoutStrategy": strategy,
            "labelsMoved": labels_moved,
        })
        if strategy == "deterministic":
            result["deterministic"] = True
        lane_metrics = lane_crossing_metrics(graph)
        if lane_metrics:
            result["laneCrossingMetrics"] = lane_metrics
        if pairs:
            result["warning"] = f"{len(pairs)} pair(s) of flows cross after layout"
        if settings.is_enabled("layout_debug"):
            result["steps"] = self.trace.steps

        logger.info(
            f"Layout of {graph.id} ({strategy}): {stats.moved_count} moved, "
            f"{len(pairs)} crossing pair(s), {labels_moved} label(s) moved"
        )
        return result, stats

    # ------------------------------------------------------------------
    # Targets and regions
    # ------------------------------------------------------------------

    def target_nodes(self) -> List[str]:
        """Flow nodes the engine may move, in document order."""
        graph = self.graph
        scope_id = self.options.scope_element_id
        inside = graph.descendants_of(scope_id) if scope_id else None
        if self.options.element_ids:
            requested = set(self.options.element_ids)
            return [e.id for e in graph.flow_nodes() if e.id in requested]
        if inside is not None:
            return [e.id for e in graph.flow_nodes() if e.id in inside]
        return [e.id for e in graph.flow_nodes()]

    def _depth(self, container_id: Optional[str]) -> int:
        depth = 0
        while container_id is not None:
            depth += 1
            container_id = getattr(self.graph.elements[container_id], "parent_id", None)
        return depth

    def _regions(self, targets: List[str]) -> List[Tuple[Optional[str], List[str]]]:
        """Targets grouped by container, innermost containers first."""
        groups: Dict[Optional[str], List[str]] = {}
        for node_id in targets:
            groups.setdefault(self.graph.elements[node_id].parent_id, []).append(node_id)
        return sorted(groups.items(), key=lambda item: -self._depth(item[0]))

    async def _place_regions(self, targets: List[str]) -> None:
        stacked = False
        for container_id, node_ids in self._regions(targets):
            if container_id is None and self.options.is_full and not stacked:
                self._stack_pools()
                stacked = True
            await self._place_region(container_id, node_ids)
        if self.options.is_full and not stacked:
            self._stack_pools()

    def _lane_partitions(self, container_id: Optional[str]) -> Dict[str, int]:
        if container_id is None or not is_participant(self.graph.elements[container_id]):
            return {}
        return {
            node_id: index
            for index, lane in enumerate(self.graph.lanes_of(container_id))
            for node_id in lane.node_ids
        }

    def build_request(self, container_id: Optional[str], node_ids: List[str]) -> LayoutRequest:
        """Engine request for one region.

        Siblings outside the region travel as fixed nodes; pinned connections
        travel as fixed edges with their stored route.
        """
        graph = self.graph
        region = set(node_ids)
        partitions = self._lane_partitions(container_id)

        nodes: List[LayoutNode] = []
        for node_id in node_ids:
            bounds = graph.elements[node_id].bounds
            nodes.append(LayoutNode(
                id=node_id,
                width=max(bounds.width, 1),
                height=max(bounds.height, 1),
                partition=partitions.get(node_id),
            ))
        context = [e for e in graph.children_of(container_id) if e.id not in region]
        for element in context:
            nodes.append(LayoutNode(
                id=element.id,
                width=max(element.bounds.width, 1),
                height=max(element.bounds.height, 1),
                fixed=True,
                x=element.bounds.x,
                y=element.bounds.y,
            ))

        known = region | {e.id for e in context}
        edges: List[LayoutEdge] = []
        for connection in graph.connections():
            source, target = connection.source_id, connection.target_id
            if source == target or source not in known or target not in known:
                continue
            if source not in region and target not in region:
                continue
            pinned = self.pins.get(connection.id)
            edges.append(LayoutEdge(
                id=connection.id,
                source=source,
                target=target,
                fixed=pinned is not None,
                waypoints=[p.to_tuple() for p in pinned] if pinned else [],
            ))

        return LayoutRequest(
            nodes=nodes,
            edges=edges,
            direction=self.options.direction,
            node_spacing=self.options.node_spacing,
            layer_spacing=self.options.layer_spacing,
        )

    def _region_origin(self, container: Optional[Any], node_ids: List[str]) -> Point:
        """Diagram position of the region's top-left corner."""
        if self.options.element_ids:
            box = Bounds.enclosing(self.graph.elements[n].bounds for n in node_ids)
            return Point(x=box.x, y=box.y)
        if container is None:
            pools = self.graph.participants()
            if pools and self.options.is_full:
                y = max(p.bounds.bottom for p in pools) + constants.POOL_GAP
            else:
                y = constants.ORIGIN_Y
            return Point(x=constants.ORIGIN_X, y=y)
        x = container.bounds.x + constants.CONTAINER_PADDING_X
        if is_participant(container):
            x += constants.POOL_LABEL_BAND
        return Point(x=x, y=container.bounds.y + constants.CONTAINER_PADDING_Y)

    async def _place_region(self, container_id: Optional[str], node_ids: List[str]) -> None:
        graph = self.graph
        container = graph.elements[container_id] if container_id else None
        request = self.build_request(container_id, node_ids)
        engine = await self.engine_provider()
        layout = await engine.layout(request)

        sizes = {n.id: (n.width, n.height) for n in request.movable_nodes}
        box = layout.bounding_box(sizes)
        if box is None:
            return
        origin = self._region_origin(container, node_ids)
        dx, dy = origin.x - box.min_x, origin.y - box.min_y

        for node_id in node_ids:
            position = layout.positions[node_id]
            bounds = graph.elements[node_id].bounds
            x, y = position.x + dx, position.y + dy
            self.moved |= graph.move_elements([node_id], x - bounds.x, y - bounds.y)
            self.placed[node_id] = (x, y)

        region = set(node_ids)
        for edge_id, route in layout.edges.items():
            connection = graph.elements.get(edge_id)
            if route.fixed or not is_connection(connection):
                continue
            if connection.source_id in region and connection.target_id in region:
                points = route.get_all_points()
                if len(points) >= 2:
                    self.routes[edge_id] = [Point(x=px + dx, y=py + dy) for px, py in points]

        logger.debug(
            f"Placed region {container_id or 'root'} with {engine.name}: {len(node_ids)} node(s)"
        )

        if self.options.element_ids:
            self._keep_in_lanes(node_ids)
        if not self.options.is_full:
            context = [e.id for e in graph.children_of(container_id) if e.id not in region]
            self.moved |= resolve_overlaps(graph, node_ids, context)
        if self.options.element_ids:
            return
        if is_subprocess(container):
            self._fit_subprocess(container)
        elif is_participant(container):
            self._fit_participant(container)

    # ------------------------------------------------------------------
    # Containers
    # ------------------------------------------------------------------

    def _content_bounds(self, container_id: str) -> Optional[Bounds]:
        rects = [
            self.graph.elements[i].bounds
            for i in self.graph.descendants_of(container_id)
            if not is_lane(self.graph.elements[i])
        ]
        return Bounds.enclosing(rects) if rects else None

    def _fit_subprocess(self, subprocess: SubProcessElement) -> None:
        content = self._content_bounds(subprocess.id)
        if content is None:
            return
        bounds = subprocess.bounds
        self.graph.resize_element(subprocess.id, Bounds(
            x=bounds.x,
            y=bounds.y,
            width=content.right + constants.CONTAINER_PADDING_X - bounds.x,
            height=content.bottom + constants.CONTAINER_PADDING_Y - bounds.y,
        ))

    def _fit_participant(self, pool: ParticipantElement) -> None:
        lanes = self.graph.lanes_of(pool.id)
        if lanes:
            bottom = self._reband_lanes(pool, lanes)
        else:
            content = self._content_bounds(pool.id)
            bottom = content.bottom + constants.CONTAINER_PADDING_Y if content else pool.bounds.bottom
            bottom = max(bottom, pool.bounds.y + constants.MIN_LANE_HEIGHT)

        content = self._content_bounds(pool.id)
        width = pool.bounds.width
        if content is not None:
            width = max(constants.MIN_POOL_WIDTH, content.right + constants.CONTAINER_PADDING_X - pool.bounds.x)
        self.graph.resize_element(pool.id, Bounds(
            x=pool.bounds.x, y=pool.bounds.y, width=width, height=bottom - pool.bounds.y,
        ))
        for lane in lanes:
            self.graph.resize_element(lane.id, Bounds(
                x=pool.bounds.x + constants.POOL_LABEL_BAND,
                y=lane.bounds.y,
                width=width - constants.POOL_LABEL_BAND,
                height=lane.bounds.height,
            ))

    def _reband_lanes(self, pool: ParticipantElement, lanes: List[Any]) -> float:
        """Stack lanes from the pool top, centering each lane's nodes in its band.

        Returns:
            Bottom edge of the last lane
        """
        y = pool.bounds.y
        for lane in lanes:
            members = [
                node_id for node_id in lane.node_ids
                if self.graph.elements[node_id].parent_id == pool.id
            ]
            band = constants.MIN_LANE_HEIGHT
            if members:
                content = Bounds.enclosing(
                    self.graph.elements[node_id].bounds for node_id in members
                )
                band = max(
                    content.height + 2 * constants.LANE_VERTICAL_PADDING,
                    constants.MIN_LANE_HEIGHT,
                )
                shift = y + (band - content.height) / 2 - content.y
                if shift:
                    self.moved |= self.graph.move_elements(members, 0, shift)
            self.graph.resize_element(lane.id, Bounds(
                x=pool.bounds.x + constants.POOL_LABEL_BAND,
                y=y,
                width=lane.bounds.width,
                height=band,
            ))
            y += band
        return y

    def _stack_pools(self) -> None:
        """Stack pools top to bottom at the layout origin, in document order."""
        y = constants.ORIGIN_Y
        for pool in self.graph.participants():
            dx = constants.ORIGIN_X - pool.bounds.x
            dy = y - pool.bounds.y
            if dx or dy:
                self.moved |= self.graph.move_elements([pool.id], dx, dy)
            y = self.graph.elements[pool.id].bounds.bottom + constants.POOL_GAP

    def _keep_in_lanes(self, node_ids: List[str]) -> None:
        """Pull partially laid-out nodes back into their lane band."""
        for node_id in node_ids:
            lane = self.graph.lane_of(node_id)
            if lane is None:
                continue
            bounds = self.graph.elements[node_id].bounds
            cy = bounds.center.y
            if lane.bounds.y <= cy <= lane.bounds.bottom:
                continue
            self.moved |= self.graph.move_elements([node_id], 0, lane.bounds.center.y - cy)

    # ------------------------------------------------------------------
    # Deterministic, lanes, snapping
    # ------------------------------------------------------------------

    def _place_chain(self, chain: List[str]) -> int:
        moved = 0
        for node_id, target in chain_positions(self.graph, chain).items():
            bounds = self.graph.elements[node_id].bounds
            dx, dy = target.x - bounds.x, target.y - bounds.y
            self.moved |= self.graph.move_elements([node_id], dx, dy)
            if dx or dy:
                moved += 1
        return moved

    def _optimize_lanes(self) -> List[Dict[str, Any]]:
        """Reorder lanes of the pools in scope before the engine runs."""
        optimizer = LaneOptimizer(self.graph)
        scope_id = self.options.scope_element_id
        if self.options.is_full:
            pools = optimizer.eligible_participants()
        elif scope_id and not self.options.element_ids and is_participant(self.graph.elements[scope_id]):
            pools = [p for p in optimizer.eligible_participants() if p.id == scope_id]
        else:
            pools = []
        results = []
        for pool in pools:
            plan = optimizer.apply(optimizer.plan(pool.id))
            results.append(plan.to_dict())
        return results

    def _snap_to_grid(self, targets: List[str], grid: float) -> int:
        snapped = 0
        for node_id in targets:
            bounds = self.graph.elements[node_id].bounds
            dx = round(bounds.x / grid) * grid - bounds.x
            dy = round(bounds.y / grid) * grid - bounds.y
            if dx or dy:
                self.moved |= self.graph.move_elements([node_id], dx, dy)
                snapped += 1
        return snapped

    # ------------------------------------------------------------------
    # Connections
    # ------------------------------------------------------------------

    def _touched_connections(self) -> List[str]:
        return [
            c.id for c in self.graph.connections()
            if c.source_id in self.moved or c.target_id in self.moved
        ]

    def _drift(self, node_id: str) -> Optional[Tuple[float, float]]:
        """How far a node moved since engine placement."""
        placed = self.placed.get(node_id)
        if placed is None:
            return None
        bounds = self.graph.elements[node_id].bounds
        return (round(bounds.x - placed[0], 6), round(bounds.y - placed[1], 6))

    def _route_connections(self) -> List[str]:
        """Write routes for every unpinned connection touching a moved shape."""
        graph = self.graph
        routed: List[str] = []
        for connection_id in self._touched_connections():
            if connection_id in self.pins:
                continue
            connection = graph.elements[connection_id]
            route = self.routes.get(connection_id)
            drift = self._drift(connection.source_id)
            if route is not None and drift is not None and drift == self._drift(connection.target_id):
                graph.update_waypoints(connection_id, translate_points(route, *drift))
            else:
                source = graph.elements[connection.source_id]
                target = graph.elements[connection.target_id]
                graph.update_waypoints(connection_id, orthogonal_route(source.bounds, target.bounds))
            routed.append(connection_id)
        return routed


# =============================================================================
# Orchestrator
# =============================================================================


class LayoutOrchestrator:
    """Entry point for layout, pin, lane and label operations on a session."""

    def __init__(self, engine: Optional[LayoutEngine] = None, engine_name: Optional[str] = None):
        """Initialize orchestrator.

        Args:
            engine: Engine instance to use (resolved from settings if None)
            engine_name: Engine name to resolve when no instance is given
        """
        self._engine = engine
        self.engine_name = engine_name

    async def get_engine(self) -> LayoutEngine:
        """Lazy engine resolution (falls back to 'layered' when allowed)."""
        if self._engine is None:
            self._engine = await resolve_engine(self.engine_name)
        return self._engine

    def validate(self, graph: DiagramGraph, options: LayoutOptions) -> None:
        """Precondition checks run before any computation.

        Raises:
            NotFoundError: Unknown scope or element id
            ValidationError: Scope is not a container, or element ids outside the scope
        """
        scope_id = options.scope_element_id
        if scope_id is not None:
            scope = graph.get_element(scope_id)
            if not is_container(scope):
                kind = getattr(scope, "shape_type", None)
                kind = kind.value if kind is not None else scope.kind
                raise ValidationError(
                    f"Scope element must be a Participant or SubProcess, got: {kind}",
                    details={"scope_element_id": scope_id, "kind": kind},
                )
        if options.element_ids:
            for element_id in options.element_ids:
                graph.get_element(element_id)
            if not any(is_flow_node(graph.elements[i]) for i in options.element_ids):
                raise ValidationError(
                    "elementIds contains no flow node that can be laid out",
                    details={"element_ids": list(options.element_ids)},
                )
            if scope_id is not None:
                inside = graph.descendants_of(scope_id)
                outside = [i for i in options.element_ids if i not in inside]
                if outside:
                    raise ValidationError(
                        f"Elements {outside} are outside scope {scope_id}",
                        details={"scope_element_id": scope_id, "element_ids": outside},
                    )

    async def layout(self, session: DiagramSession, options: LayoutOptions) -> Dict[str, Any]:
        """Lay out a diagram session.

        Raises:
            ValidationError, NotFoundError: Invalid request, diagram untouched
            EngineFailure: Engine error, diagram untouched
        """
        self.validate(session.graph, options)
        trace = LayoutTrace()

        if options.dry_run:
            graph = session.graph.model_copy(deep=True)
            pins = PinRegistry()
            pins.load(session.pins.snapshot())
            result, stats = await LayoutPass(graph, pins, options, trace, self.get_engine).run()
            return self._dry_run_result(result, stats)

        params = options.model_dump(by_alias=True, exclude_none=True)
        with session.commands.record(session, "layout", params):
            result, _ = await LayoutPass(
                session.graph, session.pins, options, trace, self.get_engine
            ).run()
        return result

    def _dry_run_result(self, result: Dict[str, Any], stats: DisplacementStats) -> Dict[str, Any]:
        dry: Dict[str, Any] = {
            "success": True,
            "dryRun": True,
            "elementCount": result["elementCount"],
            "layoutStrategy": result["layoutStrategy"],
            "crossingFlows": result["crossingFlows"],
            **stats.to_dict(),
        }
        if result.get("deterministic"):
            dry["deterministic"] = True
        if stats.is_large_change:
            dry["warning"] = (
                f"Layout would move {stats.moved_count} of {stats.total_elements} elements "
                f"(max {stats.max_displacement}px)"
            )
        if "steps" in result:
            dry["steps"] = result["steps"]
        return dry

    def set_connection_waypoints(
        self, session: DiagramSession, connection_id: str, waypoints: Any
    ) -> Dict[str, Any]:
        """Pin a connection to explicit waypoints."""
        points = parse_waypoints(waypoints)
        with session.commands.record(
            session, "set_connection_waypoints", {"connectionId": connection_id}
        ):
            previous = session.pins.pin(session.graph, connection_id, points)
        return {
            "success": True,
            "connectionId": connection_id,
            "pinned": True,
            "previousWaypoints": [p.model_dump() for p in previous],
            "newWaypoints": [p.model_dump() for p in points],
        }

    def optimize_lanes(
        self, session: DiagramSession, participant_id: Optional[str] = None, dry_run: bool = False
    ) -> Dict[str, Any]:
        """Reorder lanes of one pool to minimize cross-lane hop cost."""
        if dry_run:
            return LaneOptimizer(session.graph).optimize(participant_id, dry_run=True)

        with session.commands.record(
            session, "optimize_lanes", {"participantId": participant_id}
        ):
            optimizer = LaneOptimizer(session.graph)
            pool = optimizer.select_participant(participant_id)
            if pool is None:
                return {"success": False, "optimized": False, "message": NO_ELIGIBLE_POOL}
            plan = optimizer.apply(optimizer.plan(pool.id))
            # Pinned routes survive a lane move
            session.pins.restore(session.graph, plan.rerouted)
        return plan.to_dict()

    def adjust_labels(
        self, session: DiagramSession, element_ids: Optional[List[str]] = None
    ) -> Dict[str, Any]:
        """Re-place floating labels. Returns the number of labels moved."""
        if element_ids:
            for element_id in element_ids:
                session.graph.get_element(element_id)
        with session.commands.record(session, "adjust_labels", {"elementIds": element_ids}):
            moved = adjust_labels(session.graph, element_ids or None)
        return {"success": True, "labelsMoved": moved}

    def lane_metrics(self, session: DiagramSession, participant_id: Optional[str] = None) -> Dict[str, Any]:
        """Read-only lane coherence report."""
        graph = session.graph
        optimizer = LaneOptimizer(graph)
        if participant_id is not None:
            pool = optimizer.select_participant(participant_id)
            pools = [pool] if pool is not None else []
        else:
            pools = optimizer.eligible_participants()

        report = []
        for pool in pools:
            order = [lane.id for lane in graph.lanes_of(pool.id)]
            metrics = measure(assess_flows(graph, pool.id), order)
            report.append({
                "participantId": pool.id,
                "laneOrder": order,
                "crossingFlowIds": metrics.crossing_flow_ids,
                **metrics.to_dict(),
            })
        result: Dict[str, Any] = {"success": True, "participants": report}
        result.update(lane_crossing_metrics(graph))
        if not report:
            result["message"] = NO_ELIGIBLE_POOL
        return result
