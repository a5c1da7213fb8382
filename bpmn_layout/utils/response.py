"""Response envelopes returned by every MCP tool.

Success: ``{"ok": True, "data": ..., "warnings": [...]}`` (warnings only when
present). Failure: ``{"ok": False, "error": {"message", "code", "details"}}``.
"""

from typing import Any, Dict, List, Optional

from pydantic import ValidationError as PydanticValidationError

from bpmn_layout.core.errors import LayoutError


def is_success(result: Dict[str, Any]) -> bool:
    return result.get("ok") is True


def success_response(data: Any, warnings: Optional[List[str]] = None) -> Dict[str, Any]:
    response: Dict[str, Any] = {"ok": True, "data": data}
    if warnings:
        response["warnings"] = list(warnings)
    return response


def error_response(
    message: str,
    code: Optional[str] = None,
    details: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """Failure envelope; ``code`` and ``details`` are omitted when empty."""
    error: Dict[str, Any] = {"message": message}
    if code:
        error["code"] = code
    if details:
        error["details"] = details
    return {"ok": False, "error": error}


def layout_error_response(exc: LayoutError) -> Dict[str, Any]:
    return error_response(str(exc), code=exc.code, details=exc.details)


def argument_error_response(exc: PydanticValidationError) -> Dict[str, Any]:
    """Failure envelope listing each rejected argument as ``{loc, msg}``."""
    errors = [
        {"loc": [str(part) for part in err["loc"]], "msg": err["msg"]}
        for err in exc.errors()
    ]
    return error_response(
        f"Invalid arguments: {len(errors)} error(s)",
        code="VALIDATION_ERROR",
        details={"errors": errors},
    )
