"""Diagram element model for BPMN process diagrams.

Elements form a closed tagged union discriminated by ``kind``:

- shape: flow nodes (tasks, events, gateways) and data/artifact shapes
- connection: sequence flows, message flows and associations
- lane: horizontal swimlane inside a participant
- participant: pool
- subprocess: expanded sub-process container

``DiagramGraph`` owns the elements of one diagram in document order and
implements the element-store operations the layout core relies on
(get/move/resize elements, update waypoints, type introspection).

The canonical export sorts keys and never contains session state, so the
etag of two diagrams with identical geometry is identical.
"""

import hashlib
import json
import logging
from enum import Enum
from typing import Annotated, Any, Dict, Iterable, List, Literal, Optional, Set, Tuple, Union

from pydantic import BaseModel, Field, model_validator

from bpmn_layout.core.errors import ElementNotFoundError, ValidationError
from bpmn_layout.layout import constants

logger = logging.getLogger(__name__)


# =============================================================================
# Geometry value types
# =============================================================================


class Point(BaseModel):
    """A waypoint or anchor in diagram coordinates."""

    x: float = Field(..., description="Horizontal coordinate")
    y: float = Field(..., description="Vertical coordinate")

    def to_tuple(self) -> Tuple[float, float]:
        return (self.x, self.y)


class Bounds(BaseModel):
    """Axis-aligned rectangle with top-left origin.

    Attributes:
        x: Left edge
        y: Top edge
        width: Horizontal extent
        height: Vertical extent
    """

    x: float = Field(..., description="Left edge")
    y: float = Field(..., description="Top edge")
    width: float = Field(..., ge=0, description="Width")
    height: float = Field(..., ge=0, description="Height")

    @property
    def right(self) -> float:
        return self.x + self.width

    @property
    def bottom(self) -> float:
        return self.y + self.height

    @property
    def center(self) -> Point:
        """Center point of the rectangle."""
        return Point(x=self.x + self.width / 2, y=self.y + self.height / 2)

    def translated(self, dx: float, dy: float) -> "Bounds":
        return Bounds(x=self.x + dx, y=self.y + dy, width=self.width, height=self.height)

    @classmethod
    def enclosing(cls, rects: Iterable["Bounds"]) -> "Bounds":
        """Smallest rectangle containing every rect.

        Raises:
            ValueError: If rects is empty
        """
        rects = list(rects)
        if not rects:
            raise ValueError("Cannot compute enclosing bounds of nothing")
        min_x = min(r.x for r in rects)
        min_y = min(r.y for r in rects)
        max_x = max(r.right for r in rects)
        max_y = max(r.bottom for r in rects)
        return cls(x=min_x, y=min_y, width=max_x - min_x, height=max_y - min_y)


# =============================================================================
# Element type enums
# =============================================================================


class ShapeType(str, Enum):
    """BPMN shape types supported by the layout core."""

    TASK = "task"
    USER_TASK = "userTask"
    SERVICE_TASK = "serviceTask"
    SCRIPT_TASK = "scriptTask"
    MANUAL_TASK = "manualTask"
    CALL_ACTIVITY = "callActivity"
    START_EVENT = "startEvent"
    END_EVENT = "endEvent"
    INTERMEDIATE_EVENT = "intermediateEvent"
    BOUNDARY_EVENT = "boundaryEvent"
    EXCLUSIVE_GATEWAY = "exclusiveGateway"
    PARALLEL_GATEWAY = "parallelGateway"
    INCLUSIVE_GATEWAY = "inclusiveGateway"
    EVENT_BASED_GATEWAY = "eventBasedGateway"
    DATA_OBJECT = "dataObjectReference"
    DATA_STORE = "dataStoreReference"
    TEXT_ANNOTATION = "textAnnotation"


EVENT_TYPES = frozenset({
    ShapeType.START_EVENT,
    ShapeType.END_EVENT,
    ShapeType.INTERMEDIATE_EVENT,
    ShapeType.BOUNDARY_EVENT,
})

GATEWAY_TYPES = frozenset({
    ShapeType.EXCLUSIVE_GATEWAY,
    ShapeType.PARALLEL_GATEWAY,
    ShapeType.INCLUSIVE_GATEWAY,
    ShapeType.EVENT_BASED_GATEWAY,
})

DATA_TYPES = frozenset({ShapeType.DATA_OBJECT, ShapeType.DATA_STORE})

ARTIFACT_TYPES = DATA_TYPES | {ShapeType.TEXT_ANNOTATION}


class FlowType(str, Enum):
    """Connection types."""

    SEQUENCE_FLOW = "sequenceFlow"
    MESSAGE_FLOW = "messageFlow"
    ASSOCIATION = "association"


def default_size(shape_type: ShapeType) -> Tuple[float, float]:
    """Default (width, height) for a shape type."""
    if shape_type in EVENT_TYPES:
        return constants.EVENT_SIZE
    if shape_type in GATEWAY_TYPES:
        return constants.GATEWAY_SIZE
    if shape_type in DATA_TYPES:
        return constants.DATA_SIZE
    return constants.TASK_SIZE


# =============================================================================
# Element variants
# =============================================================================


class ShapeElement(BaseModel):
    """Flow node, data reference or annotation."""

    kind: Literal["shape"] = "shape"
    id: str
    shape_type: ShapeType
    name: Optional[str] = None
    bounds: Bounds
    parent_id: Optional[str] = Field(
        default=None, description="Participant or sub-process containing this shape"
    )
    host_id: Optional[str] = Field(
        default=None, description="Host activity of a boundary event"
    )
    label: Optional[Bounds] = Field(default=None, description="External label bounds")


class ConnectionElement(BaseModel):
    """Sequence flow, message flow or association."""

    kind: Literal["connection"] = "connection"
    id: str
    flow_type: FlowType = FlowType.SEQUENCE_FLOW
    source_id: str
    target_id: str
    name: Optional[str] = None
    waypoints: List[Point] = Field(default_factory=list)
    parent_id: Optional[str] = None
    label: Optional[Bounds] = Field(default=None, description="Midpoint label bounds")


class LaneElement(BaseModel):
    """Swimlane inside a participant. Owns an ordered list of node ids."""

    kind: Literal["lane"] = "lane"
    id: str
    name: Optional[str] = None
    participant_id: str
    bounds: Bounds
    node_ids: List[str] = Field(default_factory=list)


class ParticipantElement(BaseModel):
    """Pool."""

    kind: Literal["participant"] = "participant"
    id: str
    name: Optional[str] = None
    bounds: Bounds


class SubProcessElement(BaseModel):
    """Expanded sub-process container."""

    kind: Literal["subprocess"] = "subprocess"
    id: str
    name: Optional[str] = None
    bounds: Bounds
    parent_id: Optional[str] = None


Element = Annotated[
    Union[ShapeElement, ConnectionElement, LaneElement, ParticipantElement, SubProcessElement],
    Field(discriminator="kind"),
]

PositionedElement = Union[ShapeElement, LaneElement, ParticipantElement, SubProcessElement]


# =============================================================================
# Capability predicates
# =============================================================================


def is_connection(element: Any) -> bool:
    return isinstance(element, ConnectionElement)


def is_lane(element: Any) -> bool:
    return isinstance(element, LaneElement)


def is_participant(element: Any) -> bool:
    return isinstance(element, ParticipantElement)


def is_subprocess(element: Any) -> bool:
    return isinstance(element, SubProcessElement)


def is_container(element: Any) -> bool:
    """Participants and sub-processes may scope a layout."""
    return isinstance(element, (ParticipantElement, SubProcessElement))


def is_boundary_event(element: Any) -> bool:
    return isinstance(element, ShapeElement) and element.shape_type == ShapeType.BOUNDARY_EVENT


def is_flow_node(element: Any) -> bool:
    """Nodes that take part in layout: activities, events, gateways, sub-processes.

    Boundary events follow their host and artifacts are placed relative to
    their associations, so neither is a layout node.
    """
    if isinstance(element, SubProcessElement):
        return True
    if isinstance(element, ShapeElement):
        return (
            element.shape_type not in ARTIFACT_TYPES
            and element.shape_type != ShapeType.BOUNDARY_EVENT
        )
    return False


def has_external_label(element: Any) -> bool:
    """Named events, gateways and data references carry a floating label."""
    if not isinstance(element, ShapeElement) or not element.name:
        return False
    return (
        element.shape_type in EVENT_TYPES
        or element.shape_type in GATEWAY_TYPES
        or element.shape_type in DATA_TYPES
    )


def has_flow_label(element: Any) -> bool:
    """Named connections carry a midpoint label."""
    return isinstance(element, ConnectionElement) and bool(element.name)


# =============================================================================
# Diagram graph
# =============================================================================


class DiagramGraph(BaseModel):
    """All elements of one diagram in document order."""

    model_config = {"protected_namespaces": ()}

    id: str = Field(..., description="Diagram identifier")
    name: Optional[str] = Field(default=None, description="Human-readable name")
    elements: Dict[str, Element] = Field(default_factory=dict)

    @model_validator(mode="after")
    def check_references(self) -> "DiagramGraph":
        """Validate cross-element references and complete lane assignment."""
        for key, element in self.elements.items():
            if key != element.id:
                raise ValueError(f"Element key {key} does not match element id {element.id}")

        for element in self.elements.values():
            if isinstance(element, ConnectionElement):
                for end in (element.source_id, element.target_id):
                    if end not in self.elements or is_connection(self.elements[end]):
                        raise ValueError(f"Connection {element.id} references unknown shape {end}")
            elif isinstance(element, LaneElement):
                pool = self.elements.get(element.participant_id)
                if not is_participant(pool):
                    raise ValueError(
                        f"Lane {element.id} references unknown participant {element.participant_id}"
                    )
                for node_id in element.node_ids:
                    if node_id not in self.elements:
                        raise ValueError(f"Lane {element.id} references unknown node {node_id}")
            elif isinstance(element, (ShapeElement, SubProcessElement)):
                if element.parent_id is not None and not is_container(
                    self.elements.get(element.parent_id)
                ):
                    raise ValueError(
                        f"Element {element.id} has invalid parent {element.parent_id}"
                    )
                host_id = getattr(element, "host_id", None)
                if host_id is not None and not is_flow_node(self.elements.get(host_id)):
                    raise ValueError(f"Boundary event {element.id} has invalid host {host_id}")

        seen: Dict[str, str] = {}
        for lane in self.lanes():
            for node_id in lane.node_ids:
                if node_id in seen:
                    raise ValueError(
                        f"Node {node_id} is assigned to both lane {seen[node_id]} and {lane.id}"
                    )
                seen[node_id] = lane.id

        self._assign_orphans_to_lanes()
        return self

    def _assign_orphans_to_lanes(self) -> None:
        """Assign unlaned nodes of a laned pool to the nearest lane by center y."""
        for pool in self.participants():
            lanes = self.lanes_of(pool.id)
            if not lanes:
                continue
            assigned = {node_id for lane in lanes for node_id in lane.node_ids}
            for element in list(self.elements.values()):
                if element.id in assigned or not is_flow_node(element):
                    continue
                if element.parent_id != pool.id:
                    continue
                cy = element.bounds.center.y
                best = min(lanes, key=lambda lane: abs(lane.bounds.center.y - cy))
                best.node_ids.append(element.id)
                logger.debug(f"Assigned orphan node {element.id} to lane {best.id}")

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    def get_element(self, element_id: str) -> Element:
        """Get element by id.

        Raises:
            ElementNotFoundError: If the id is unknown
        """
        element = self.elements.get(element_id)
        if element is None:
            raise ElementNotFoundError(element_id, self.id)
        return element

    def shapes(self) -> List[ShapeElement]:
        return [e for e in self.elements.values() if isinstance(e, ShapeElement)]

    def connections(self) -> List[ConnectionElement]:
        return [e for e in self.elements.values() if isinstance(e, ConnectionElement)]

    def lanes(self) -> List[LaneElement]:
        return [e for e in self.elements.values() if isinstance(e, LaneElement)]

    def participants(self) -> List[ParticipantElement]:
        return [e for e in self.elements.values() if isinstance(e, ParticipantElement)]

    def subprocesses(self) -> List[SubProcessElement]:
        return [e for e in self.elements.values() if isinstance(e, SubProcessElement)]

    def flow_nodes(self) -> List[Union[ShapeElement, SubProcessElement]]:
        return [e for e in self.elements.values() if is_flow_node(e)]

    def positioned(self) -> List[PositionedElement]:
        """Every element with bounds (everything but connections)."""
        return [e for e in self.elements.values() if not is_connection(e)]

    def children_of(self, container_id: Optional[str]) -> List[Union[ShapeElement, SubProcessElement]]:
        """Direct flow-node children of a container (None = diagram root)."""
        return [
            e for e in self.elements.values()
            if is_flow_node(e) and e.parent_id == container_id
        ]

    def descendants_of(self, container_id: str) -> Set[str]:
        """Ids of every shape nested in a container, including boundary events and lanes."""
        result: Set[str] = set()
        frontier = [container_id]
        while frontier:
            current = frontier.pop()
            for element in self.elements.values():
                if element.id in result:
                    continue
                parent = getattr(element, "parent_id", None)
                if isinstance(element, LaneElement):
                    parent = element.participant_id
                if parent == current:
                    result.add(element.id)
                    if is_subprocess(element):
                        frontier.append(element.id)
        for element in self.shapes():
            if element.host_id in result:
                result.add(element.id)
        return result

    def lanes_of(self, participant_id: str) -> List[LaneElement]:
        """Lanes of a participant ordered top to bottom."""
        lanes = [lane for lane in self.lanes() if lane.participant_id == participant_id]
        return sorted(lanes, key=lambda lane: lane.bounds.y)

    def lane_of(self, node_id: str) -> Optional[LaneElement]:
        for lane in self.lanes():
            if node_id in lane.node_ids:
                return lane
        return None

    def participant_of(self, element_id: str) -> Optional[ParticipantElement]:
        """Walk up parents until a participant is found."""
        element = self.elements.get(element_id)
        while element is not None:
            parent_id = getattr(element, "parent_id", None)
            if parent_id is None:
                return None
            element = self.elements.get(parent_id)
            if is_participant(element):
                return element
        return None

    def boundary_events_of(self, host_id: str) -> List[ShapeElement]:
        return [e for e in self.shapes() if e.host_id == host_id]

    def connections_of(self, element_id: str) -> List[ConnectionElement]:
        return [
            c for c in self.connections()
            if c.source_id == element_id or c.target_id == element_id
        ]

    def sequence_flows(self) -> List[ConnectionElement]:
        return [c for c in self.connections() if c.flow_type == FlowType.SEQUENCE_FLOW]

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------

    def update_waypoints(self, connection_id: str, points: List[Point]) -> None:
        """Replace the waypoints of a connection.

        Raises:
            ElementNotFoundError: If the connection is unknown
            ValidationError: If the element is not a connection or fewer than 2 points
        """
        element = self.get_element(connection_id)
        if not isinstance(element, ConnectionElement):
            raise ValidationError(
                f"Element {connection_id} is not a connection",
                details={"element_id": connection_id, "kind": element.kind},
            )
        if len(points) < 2:
            raise ValidationError(
                f"Connection {connection_id} needs at least 2 waypoints, got {len(points)}",
                details={"element_id": connection_id},
            )
        element.waypoints = [Point(x=p.x, y=p.y) for p in points]

    def move_element(self, element_id: str, dx: float, dy: float) -> None:
        """Move one element. See ``move_elements``."""
        self.move_elements([element_id], dx, dy)

    def move_elements(self, element_ids: Iterable[str], dx: float, dy: float) -> Set[str]:
        """Move elements together with labels, boundary events and nested content.

        Connections whose both ends move are translated with them. Connections
        with only one moved end are left for the caller to re-route.

        Returns:
            Ids of every shape that moved
        """
        moved: Set[str] = set()
        for element_id in element_ids:
            element = self.get_element(element_id)
            if isinstance(element, ConnectionElement):
                element.waypoints = [Point(x=p.x + dx, y=p.y + dy) for p in element.waypoints]
                if element.label is not None:
                    element.label = element.label.translated(dx, dy)
                continue
            moved.add(element_id)
            if is_container(element):
                moved |= self.descendants_of(element_id)
            else:
                moved.update(b.id for b in self.boundary_events_of(element_id))
        if not moved or (dx == 0 and dy == 0):
            return moved

        for moved_id in sorted(moved):
            target = self.elements[moved_id]
            target.bounds = target.bounds.translated(dx, dy)
            label = getattr(target, "label", None)
            if label is not None:
                target.label = label.translated(dx, dy)

        for connection in self.connections():
            if connection.source_id in moved and connection.target_id in moved:
                connection.waypoints = [
                    Point(x=p.x + dx, y=p.y + dy) for p in connection.waypoints
                ]
                if connection.label is not None:
                    connection.label = connection.label.translated(dx, dy)
        return moved

    def resize_element(self, element_id: str, bounds: Bounds) -> None:
        """Set new bounds for a positioned element without moving its children."""
        element = self.get_element(element_id)
        if isinstance(element, ConnectionElement):
            raise ValidationError(
                f"Cannot resize connection {element_id}",
                details={"element_id": element_id},
            )
        element.bounds = Bounds(x=bounds.x, y=bounds.y, width=bounds.width, height=bounds.height)

    def set_label(self, element_id: str, label: Bounds) -> None:
        element = self.get_element(element_id)
        if not isinstance(element, (ShapeElement, ConnectionElement)):
            raise ValidationError(
                f"Element {element_id} cannot carry a label",
                details={"element_id": element_id},
            )
        element.label = label

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------

    def export(self) -> Dict[str, Any]:
        """Canonical export: elements in document order, sorted keys."""
        return {
            "id": self.id,
            "name": self.name,
            "elements": [
                element.model_dump(mode="json", exclude_none=True)
                for element in self.elements.values()
            ],
        }

    def to_json(self) -> str:
        return json.dumps(self.export(), sort_keys=True, separators=(",", ":"))

    def compute_etag(self) -> str:
        """SHA-256 of the canonical export."""
        return hashlib.sha256(self.to_json().encode()).hexdigest()

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DiagramGraph":
        """Build a diagram from an export-shaped dict.

        Shapes missing ``bounds`` get their type's default size at the origin.
        """
        elements: Dict[str, Any] = {}
        for raw in data.get("elements", []):
            raw = dict(raw)
            if raw.get("kind") == "shape" and "bounds" not in raw:
                width, height = default_size(ShapeType(raw["shape_type"]))
                raw["bounds"] = {"x": 0, "y": 0, "width": width, "height": height}
            elements[raw["id"]] = raw
        return cls(id=data["id"], name=data.get("name"), elements=elements)
