"""Pydantic models for diagrams and layout engine exchange."""

from bpmn_layout.models.diagram import (
    Bounds,
    ConnectionElement,
    DiagramGraph,
    FlowType,
    LaneElement,
    ParticipantElement,
    Point,
    ShapeElement,
    ShapeType,
    SubProcessElement,
)
from bpmn_layout.models.layout_metadata import (
    EdgeRoute,
    EdgeSection,
    LayoutEdge,
    LayoutNode,
    LayoutRequest,
    LayoutResult,
    NodePosition,
)

__all__ = [
    "Bounds",
    "ConnectionElement",
    "DiagramGraph",
    "FlowType",
    "LaneElement",
    "ParticipantElement",
    "Point",
    "ShapeElement",
    "ShapeType",
    "SubProcessElement",
    "EdgeRoute",
    "EdgeSection",
    "LayoutEdge",
    "LayoutNode",
    "LayoutRequest",
    "LayoutResult",
    "NodePosition",
]
