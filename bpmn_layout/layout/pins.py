"""Waypoint pin registry.

A pin fixes one connection's route to an explicit waypoint list. Each
connection is either unpinned (default) or pinned; pinning again overwrites
the stored points. The registry lives in a diagram session only and is
never part of the diagram export.

Lifecycle:
    pin()            -> pinned, waypoints applied to the diagram immediately
    restore()        -> re-apply stored points after a layout pass
    clear()          -> consumed by a successful full, unscoped layout
"""

import logging
from copy import deepcopy
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

from bpmn_layout.core.errors import ValidationError
from bpmn_layout.models.diagram import ConnectionElement, DiagramGraph, Point

logger = logging.getLogger(__name__)

MIN_WAYPOINTS = 2


def parse_waypoints(raw: Any) -> List[Point]:
    """Validate raw waypoint input.

    Args:
        raw: Sequence of mappings with numeric ``x`` and ``y``

    Returns:
        Parsed points

    Raises:
        ValidationError: If fewer than 2 points or any coordinate is not numeric
    """
    if not isinstance(raw, (list, tuple)):
        raise ValidationError("Waypoints must be a list of {x, y} points")
    if len(raw) < MIN_WAYPOINTS:
        raise ValidationError(
            f"At least {MIN_WAYPOINTS} waypoints are required, got {len(raw)}",
            details={"count": len(raw)},
        )
    points: List[Point] = []
    for index, item in enumerate(raw):
        if isinstance(item, Point):
            points.append(Point(x=item.x, y=item.y))
            continue
        if not isinstance(item, Mapping):
            raise ValidationError(
                f"Waypoint {index} must be an object with x and y",
                details={"index": index},
            )
        x, y = item.get("x"), item.get("y")
        for axis, value in (("x", x), ("y", y)):
            # bool is an int subclass but never a coordinate
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise ValidationError(
                    f"Waypoint {index} has non-numeric {axis}: {value!r}",
                    details={"index": index, "axis": axis},
                )
        points.append(Point(x=float(x), y=float(y)))
    return points


class PinRegistry:
    """Per-diagram set of pinned connections."""

    def __init__(self) -> None:
        self._pins: Dict[str, List[Point]] = {}

    def __contains__(self, connection_id: str) -> bool:
        return connection_id in self._pins

    def __len__(self) -> int:
        return len(self._pins)

    def is_pinned(self, connection_id: str) -> bool:
        return connection_id in self._pins

    def get(self, connection_id: str) -> Optional[List[Point]]:
        points = self._pins.get(connection_id)
        return deepcopy(points) if points is not None else None

    def pinned_ids(self) -> List[str]:
        return list(self._pins)

    def pin(self, graph: DiagramGraph, connection_id: str, points: Sequence[Point]) -> List[Point]:
        """Pin a connection and apply its waypoints to the diagram.

        Args:
            graph: Diagram holding the connection
            connection_id: Connection to pin
            points: New waypoints (at least 2)

        Returns:
            The waypoints the connection had before

        Raises:
            NotFoundError: If the connection is unknown
            ValidationError: If the element is not a connection or too few points
        """
        element = graph.get_element(connection_id)
        if not isinstance(element, ConnectionElement):
            raise ValidationError(
                f"Element {connection_id} is not a connection "
                f"(sequence flow, message flow or association), got: {element.kind}",
                details={"element_id": connection_id, "kind": element.kind},
            )
        if len(points) < MIN_WAYPOINTS:
            raise ValidationError(
                f"At least {MIN_WAYPOINTS} waypoints are required, got {len(points)}"
            )

        previous = deepcopy(element.waypoints)
        stored = [Point(x=p.x, y=p.y) for p in points]
        graph.update_waypoints(connection_id, stored)
        self._pins[connection_id] = deepcopy(stored)
        logger.info(f"Pinned connection {connection_id} ({len(stored)} waypoints)")
        return previous

    def restore(self, graph: DiagramGraph, connection_ids: Optional[Iterable[str]] = None) -> List[str]:
        """Overwrite waypoints of pinned connections with their stored points.

        Args:
            graph: Diagram to update
            connection_ids: Restrict to these pinned ids (default: all pins)

        Returns:
            Ids whose waypoints were restored
        """
        targets = list(self._pins) if connection_ids is None else [
            cid for cid in connection_ids if cid in self._pins
        ]
        restored: List[str] = []
        for connection_id in targets:
            if connection_id not in graph.elements:
                # Connection deleted by the element editor since pinning
                self._pins.pop(connection_id, None)
                continue
            graph.update_waypoints(connection_id, deepcopy(self._pins[connection_id]))
            restored.append(connection_id)
        if restored:
            logger.debug(f"Restored {len(restored)} pinned connection(s)")
        return restored

    def clear(self) -> int:
        """Empty the registry. Only a successful full layout calls this."""
        count = len(self._pins)
        self._pins.clear()
        if count:
            logger.info(f"Cleared {count} pin(s) after full layout")
        return count

    def snapshot(self) -> Dict[str, List[Point]]:
        return deepcopy(self._pins)

    def load(self, state: Dict[str, List[Point]]) -> None:
        """Replace registry contents (used by undo/redo)."""
        self._pins = deepcopy(state)
