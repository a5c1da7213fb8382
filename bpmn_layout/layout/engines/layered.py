"""Pure-Python layered layout engine built on NetworkX.

Sugiyama-style pipeline:

1. Break cycles by reversing edges that point backwards in request order.
2. Assign layers by longest path from the sources.
3. Order nodes within each layer by the barycenter of their neighbours
   (one downward sweep, one upward sweep), keeping lane partitions together.
4. Place layers left to right (or top to bottom) and route edges
   orthogonally.

Fully deterministic, so it doubles as the test engine and as the fallback
when ELK/Node.js is not installed.
"""

import logging
from typing import Dict, List, Tuple

import networkx as nx

from bpmn_layout.core.geometry import orthogonal_route
from bpmn_layout.layout.engines.base import LayoutEngine
from bpmn_layout.models.diagram import Bounds
from bpmn_layout.models.layout_metadata import (
    EdgeRoute,
    LayoutRequest,
    LayoutResult,
    NodePosition,
)

logger = logging.getLogger(__name__)


class LayeredLayoutEngine(LayoutEngine):
    """Deterministic layered layout with orthogonal edges."""

    @property
    def name(self) -> str:
        return "layered"

    @property
    def supports_fixed_edges(self) -> bool:
        return True

    async def is_available(self) -> bool:
        return True

    async def layout(self, request: LayoutRequest) -> LayoutResult:
        movable = request.movable_nodes
        index = {node.id: i for i, node in enumerate(movable)}

        graph = nx.DiGraph()
        for node in movable:
            graph.add_node(node.id)
        for edge in request.edges:
            if edge.source in index and edge.target in index and edge.source != edge.target:
                graph.add_edge(edge.source, edge.target)

        dag = self._break_cycles(graph, index)
        layers = self._assign_layers(dag, index)
        ordered = self._order_layers(dag, layers, index, {n.id: n.partition for n in movable})

        sizes = {n.id: (n.width, n.height) for n in movable}
        positions = self._place(ordered, sizes, request)

        bounds = {
            node_id: Bounds(x=pos.x, y=pos.y, width=sizes[node_id][0], height=sizes[node_id][1])
            for node_id, pos in positions.items()
        }
        edges: Dict[str, EdgeRoute] = {}
        for edge in request.edges:
            if edge.fixed:
                if edge.waypoints:
                    edges[edge.id] = EdgeRoute.from_points(list(edge.waypoints), fixed=True)
                continue
            if edge.source in bounds and edge.target in bounds:
                route = orthogonal_route(bounds[edge.source], bounds[edge.target])
                edges[edge.id] = EdgeRoute.from_points([p.to_tuple() for p in route])

        logger.debug(
            f"Layered layout: {len(positions)} node(s) in {len(ordered)} layer(s), "
            f"{len(edges)} edge route(s)"
        )
        return LayoutResult(
            algorithm=self.name,
            positions=positions,
            edges=edges,
            layout_options={
                "direction": request.direction,
                "node_spacing": request.node_spacing,
                "layer_spacing": request.layer_spacing,
            },
        )

    def _break_cycles(self, graph: nx.DiGraph, index: Dict[str, int]) -> nx.DiGraph:
        """Reverse backward edges until the graph is acyclic.

        Every cycle contains at least one edge pointing backwards in request
        order; reversing it makes it forward, so the loop terminates.
        """
        dag = graph.copy()
        while not nx.is_directed_acyclic_graph(dag):
            cycle = nx.find_cycle(dag)
            for u, v in cycle:
                if index[v] <= index[u]:
                    dag.remove_edge(u, v)
                    if not dag.has_edge(v, u):
                        dag.add_edge(v, u)
                    break
        return dag

    def _assign_layers(self, dag: nx.DiGraph, index: Dict[str, int]) -> Dict[str, int]:
        layers: Dict[str, int] = {}
        for node in nx.lexicographical_topological_sort(dag, key=lambda n: index[n]):
            preds = list(dag.predecessors(node))
            layers[node] = max((layers[p] + 1 for p in preds), default=0)
        return layers

    def _order_layers(
        self,
        dag: nx.DiGraph,
        layers: Dict[str, int],
        index: Dict[str, int],
        partitions: Dict[str, object],
    ) -> List[List[str]]:
        count = max(layers.values(), default=-1) + 1
        ordered: List[List[str]] = [[] for _ in range(count)]
        for node in sorted(layers, key=lambda n: index[n]):
            ordered[layers[node]].append(node)

        def partition_key(node: str) -> int:
            part = partitions.get(node)
            return part if isinstance(part, int) else -1

        def sweep(layer_range, neighbours) -> None:
            for layer in layer_range:
                reference = {
                    node: pos
                    for other in (layer - 1, layer + 1)
                    if 0 <= other < count
                    for pos, node in enumerate(ordered[other])
                }
                current = {node: pos for pos, node in enumerate(ordered[layer])}

                def barycenter(node: str) -> float:
                    refs = [reference[n] for n in neighbours(node) if n in reference]
                    return sum(refs) / len(refs) if refs else float(current[node])

                ordered[layer].sort(
                    key=lambda n: (partition_key(n), barycenter(n), index[n])
                )

        sweep(range(1, count), dag.predecessors)
        sweep(range(count - 2, -1, -1), dag.successors)
        return ordered

    def _place(
        self,
        ordered: List[List[str]],
        sizes: Dict[str, Tuple[float, float]],
        request: LayoutRequest,
    ) -> Dict[str, NodePosition]:
        vertical = request.direction in ("DOWN", "UP")

        def along(node: str) -> float:
            w, h = sizes[node]
            return h if vertical else w

        def across(node: str) -> float:
            w, h = sizes[node]
            return w if vertical else h

        # Main axis: layers; cross axis: nodes within a layer, centred on 0
        main: Dict[str, float] = {}
        cross: Dict[str, float] = {}
        cursor = 0.0
        for layer in ordered:
            depth = max(along(n) for n in layer)
            extent = sum(across(n) for n in layer) + request.node_spacing * (len(layer) - 1)
            offset = -extent / 2
            for node in layer:
                main[node] = cursor + (depth - along(node)) / 2
                cross[node] = offset
                offset += across(node) + request.node_spacing
            cursor += depth + request.layer_spacing

        if not main:
            return {}
        total = cursor - request.layer_spacing
        min_cross = min(cross.values())
        positions: Dict[str, NodePosition] = {}
        for node in main:
            m = main[node]
            if request.direction in ("LEFT", "UP"):
                m = total - m - along(node)
            c = cross[node] - min_cross
            positions[node] = NodePosition(x=c, y=m) if vertical else NodePosition(x=m, y=c)
        return positions
