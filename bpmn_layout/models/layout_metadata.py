"""Request and result schemas exchanged with external layout engines.

The orchestrator builds a ``LayoutRequest`` from diagram geometry, hands it
to an engine, and maps the returned ``LayoutResult`` back onto the diagram.

- Node positions use the engine's own frame (top-left origin); the
  orchestrator translates them onto the diagram.
- Edge routes are sections with startPoint/endPoint/bendPoints.
- Pinned edges travel as ``fixed`` edges with their waypoints; engines must
  echo them back untouched or omit them.
"""

import logging
from typing import Any, Dict, List, Literal, Optional, Tuple

from pydantic import BaseModel, Field, field_validator

logger = logging.getLogger(__name__)


class NodePosition(BaseModel):
    """Top-left position of a node in engine space."""

    x: float = Field(..., description="Horizontal coordinate")
    y: float = Field(..., description="Vertical coordinate")


class BoundingBox(BaseModel):
    """Extent of a set of laid-out nodes."""

    min_x: float
    max_x: float
    min_y: float
    max_y: float

    @property
    def width(self) -> float:
        return self.max_x - self.min_x

    @property
    def height(self) -> float:
        return self.max_y - self.min_y


class LayoutNode(BaseModel):
    """A node in a layout request.

    Fixed nodes are context: the engine may route around them but must not
    move them, and their returned position is ignored.
    """

    id: str
    width: float = Field(..., gt=0)
    height: float = Field(..., gt=0)
    fixed: bool = Field(default=False, description="Hold at x/y")
    x: Optional[float] = None
    y: Optional[float] = None
    partition: Optional[int] = Field(
        default=None, description="Lane index for lane-banded layout"
    )


class LayoutEdge(BaseModel):
    """A directed edge in a layout request."""

    id: str
    source: str
    target: str
    fixed: bool = Field(default=False, description="Pinned: engine must not re-route")
    waypoints: List[Tuple[float, float]] = Field(default_factory=list)

    @field_validator("waypoints")
    @classmethod
    def fixed_edges_need_route(cls, v: List[Tuple[float, float]]) -> List[Tuple[float, float]]:
        if v and len(v) < 2:
            raise ValueError("Edge route needs at least 2 points")
        return v


class LayoutRequest(BaseModel):
    """Graph description handed to a layout engine."""

    model_config = {"protected_namespaces": ()}

    nodes: List[LayoutNode] = Field(default_factory=list)
    edges: List[LayoutEdge] = Field(default_factory=list)
    direction: Literal["RIGHT", "DOWN", "LEFT", "UP"] = "RIGHT"
    node_spacing: float = 50
    layer_spacing: float = 60
    options: Dict[str, Any] = Field(default_factory=dict, description="Engine-specific options")

    @property
    def movable_nodes(self) -> List[LayoutNode]:
        return [n for n in self.nodes if not n.fixed]

    @property
    def fixed_edge_ids(self) -> List[str]:
        return [e.id for e in self.edges if e.fixed]


class EdgeSection(BaseModel):
    """A segment of an edge route."""

    id: Optional[str] = Field(default=None, description="Section ID (ELK may omit)")
    startPoint: Tuple[float, float] = Field(..., description="Start point (x, y)")
    endPoint: Tuple[float, float] = Field(..., description="End point (x, y)")
    bendPoints: List[Tuple[float, float]] = Field(
        default_factory=list, description="Bend points for orthogonal routing"
    )

    def get_all_points(self) -> List[Tuple[float, float]]:
        """Get all points in order: start -> bends -> end."""
        return [self.startPoint] + self.bendPoints + [self.endPoint]


class EdgeRoute(BaseModel):
    """Complete routing data for an edge."""

    sections: List[EdgeSection] = Field(default_factory=list)
    fixed: bool = Field(default=False, description="Echoed pinned route")

    def get_all_points(self) -> List[Tuple[float, float]]:
        """Flatten sections into one polyline, dropping repeated joints."""
        points: List[Tuple[float, float]] = []
        for section in self.sections:
            for point in section.get_all_points():
                if not points or points[-1] != point:
                    points.append(point)
        return points

    @classmethod
    def from_points(cls, points: List[Tuple[float, float]], fixed: bool = False) -> "EdgeRoute":
        return cls(
            sections=[
                EdgeSection(
                    startPoint=points[0],
                    endPoint=points[-1],
                    bendPoints=list(points[1:-1]),
                )
            ],
            fixed=fixed,
        )


class LayoutResult(BaseModel):
    """Engine output: node positions and edge routes in engine space."""

    model_config = {"protected_namespaces": ()}

    algorithm: str = Field(..., description="Engine that produced the result")
    positions: Dict[str, NodePosition] = Field(default_factory=dict)
    edges: Dict[str, EdgeRoute] = Field(default_factory=dict)
    layout_options: Dict[str, Any] = Field(default_factory=dict)

    def bounding_box(self, sizes: Dict[str, Tuple[float, float]]) -> Optional[BoundingBox]:
        """Extent of the positioned nodes given their (width, height).

        Returns:
            BoundingBox or None when no sized node was positioned
        """
        boxes = [
            (pos.x, pos.y, pos.x + sizes[node_id][0], pos.y + sizes[node_id][1])
            for node_id, pos in self.positions.items()
            if node_id in sizes
        ]
        if not boxes:
            return None
        return BoundingBox(
            min_x=min(b[0] for b in boxes),
            min_y=min(b[1] for b in boxes),
            max_x=max(b[2] for b in boxes),
            max_y=max(b[3] for b in boxes),
        )
