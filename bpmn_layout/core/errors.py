"""Error taxonomy for layout operations.

Every error carries structured attributes so tool handlers can convert it
into an error envelope without parsing messages.

    ValidationError   - bad argument shape or wrong element kind
    NotFoundError     - unknown diagram or element id
    EngineFailure     - external layout engine failed or is unreachable
    DiagramBusyError  - diagram lock could not be acquired in time
"""

from typing import Any, Dict, Optional


class LayoutError(Exception):
    """Base exception for all layout subsystem errors."""

    code = "LAYOUT_ERROR"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.details = details or {}
        super().__init__(message)


class ValidationError(LayoutError):
    """Raised when arguments fail validation before any mutation."""

    code = "VALIDATION_ERROR"


class NotFoundError(LayoutError):
    """Raised when a diagram or element id is unknown."""

    code = "NOT_FOUND"


class DiagramNotFoundError(NotFoundError):
    """Raised when a diagram id is not registered."""

    def __init__(self, diagram_id: str):
        self.diagram_id = diagram_id
        super().__init__(
            f"Diagram {diagram_id} not found",
            details={"diagram_id": diagram_id},
        )


class ElementNotFoundError(NotFoundError):
    """Raised when an element id does not exist in a diagram."""

    def __init__(self, element_id: str, diagram_id: Optional[str] = None):
        self.element_id = element_id
        self.diagram_id = diagram_id
        where = f" in diagram {diagram_id}" if diagram_id else ""
        super().__init__(
            f"Element {element_id} not found{where}",
            details={"element_id": element_id, "diagram_id": diagram_id},
        )


class EngineFailure(LayoutError):
    """Raised when the external layout engine errors, times out or is missing."""

    code = "ENGINE_FAILURE"

    def __init__(self, engine: str, reason: str):
        self.engine = engine
        self.reason = reason
        super().__init__(
            f"Layout engine '{engine}' failed: {reason}",
            details={"engine": engine, "reason": reason},
        )


class DiagramBusyError(LayoutError):
    """Raised when another operation holds the diagram lock past the timeout."""

    code = "DIAGRAM_BUSY"

    def __init__(self, diagram_id: str, timeout: float):
        self.diagram_id = diagram_id
        self.timeout = timeout
        super().__init__(
            f"Diagram {diagram_id} is busy (waited {timeout}s)",
            details={"diagram_id": diagram_id, "timeout": timeout},
        )
