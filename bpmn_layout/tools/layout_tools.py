"""MCP tools for diagram layout, waypoint pinning, lanes and labels.

Provides tools to:
- Lay out a diagram (full, scoped, partial, deterministic, dry run)
- Pin connection waypoints across partial re-layouts
- Optimize lane order and report lane coherence
- Re-place floating labels

Every tool holds the diagram lock for its whole duration, so calls against
the same diagram never interleave around the engine call.
"""

import logging
from typing import Any, Dict, List, Optional

from mcp import Tool
from pydantic import ValidationError as PydanticValidationError

from bpmn_layout.core.diagram_store import DiagramStore
from bpmn_layout.core.errors import LayoutError, ValidationError
from bpmn_layout.layout.orchestrator import LayoutOptions, LayoutOrchestrator
from bpmn_layout.utils.response import (
    argument_error_response,
    error_response,
    layout_error_response,
    success_response,
)

logger = logging.getLogger(__name__)


def _required(args: dict, key: str) -> Any:
    if key not in args or args[key] is None:
        raise ValidationError(f"Missing required argument: {key}", details={"argument": key})
    return args[key]


class LayoutTools:
    """Provides layout, pin, lane and label tools."""

    def __init__(self, store: DiagramStore, orchestrator: Optional[LayoutOrchestrator] = None):
        """Initialize with the diagram store.

        Args:
            store: Diagram registry shared with the diagram tools
            orchestrator: Optional orchestrator (created with the configured engine if not provided)
        """
        self.store = store
        self.orchestrator = orchestrator or LayoutOrchestrator()

    def get_tools(self) -> List[Tool]:
        """Return layout MCP tools."""
        return [
            Tool(
                name="layout_diagram",
                description="Lay out a diagram. Pinned connections keep their waypoints; a full unscoped layout consumes all pins.",
                inputSchema={
                    "type": "object",
                    "properties": {
                        "diagram_id": {
                            "type": "string",
                            "description": "ID of diagram to lay out"
                        },
                        "scopeElementId": {
                            "type": "string",
                            "description": "Participant or sub-process; only its content is laid out"
                        },
                        "elementIds": {
                            "type": "array",
                            "items": {"type": "string"},
                            "description": "Lay out only these nodes; everything else stays fixed"
                        },
                        "layoutStrategy": {
                            "type": "string",
                            "enum": ["full", "deterministic"],
                            "description": "deterministic applies to simple linear chains and falls back to full otherwise",
                            "default": "full"
                        },
                        "laneStrategy": {
                            "type": "string",
                            "enum": ["preserve", "optimize"],
                            "description": "Reorder lanes to reduce cross-lane flows before layout",
                            "default": "preserve"
                        },
                        "dryRun": {
                            "type": "boolean",
                            "description": "Report displacement without changing the diagram",
                            "default": False
                        },
                        "direction": {
                            "type": "string",
                            "enum": ["RIGHT", "DOWN", "LEFT", "UP"],
                            "description": "Primary flow direction",
                            "default": "RIGHT"
                        },
                        "nodeSpacing": {
                            "type": "number",
                            "description": "Spacing between nodes of one layer (px)",
                            "default": 50
                        },
                        "layerSpacing": {
                            "type": "number",
                            "description": "Spacing between layers (px)",
                            "default": 60
                        },
                        "gridSnap": {
                            "type": "number",
                            "description": "Snap node positions to this pixel grid"
                        }
                    },
                    "required": ["diagram_id"]
                }
            ),
            Tool(
                name="layout_set_connection_waypoints",
                description="Pin a sequence flow, message flow or association to explicit waypoints",
                inputSchema={
                    "type": "object",
                    "properties": {
                        "diagram_id": {
                            "type": "string",
                            "description": "ID of diagram"
                        },
                        "connection_id": {
                            "type": "string",
                            "description": "ID of connection to pin"
                        },
                        "waypoints": {
                            "type": "array",
                            "minItems": 2,
                            "items": {
                                "type": "object",
                                "properties": {
                                    "x": {"type": "number"},
                                    "y": {"type": "number"}
                                },
                                "required": ["x", "y"]
                            },
                            "description": "At least 2 points"
                        }
                    },
                    "required": ["diagram_id", "connection_id", "waypoints"]
                }
            ),
            Tool(
                name="layout_optimize_lanes",
                description="Reorder the lanes of a pool to minimize cross-lane sequence flows",
                inputSchema={
                    "type": "object",
                    "properties": {
                        "diagram_id": {
                            "type": "string",
                            "description": "ID of diagram"
                        },
                        "participant_id": {
                            "type": "string",
                            "description": "Pool to optimize (first pool with 2+ lanes if omitted)"
                        },
                        "dry_run": {
                            "type": "boolean",
                            "description": "Report the plan without moving lanes",
                            "default": False
                        }
                    },
                    "required": ["diagram_id"]
                }
            ),
            Tool(
                name="layout_adjust_labels",
                description="Re-place floating labels of events, gateways, data references and named flows",
                inputSchema={
                    "type": "object",
                    "properties": {
                        "diagram_id": {
                            "type": "string",
                            "description": "ID of diagram"
                        },
                        "element_ids": {
                            "type": "array",
                            "items": {"type": "string"},
                            "description": "Only re-place labels of these elements"
                        }
                    },
                    "required": ["diagram_id"]
                }
            ),
            Tool(
                name="layout_lane_metrics",
                description="Report lane coherence and cross-lane flows without changing the diagram",
                inputSchema={
                    "type": "object",
                    "properties": {
                        "diagram_id": {
                            "type": "string",
                            "description": "ID of diagram"
                        },
                        "participant_id": {
                            "type": "string",
                            "description": "Restrict the report to one pool"
                        }
                    },
                    "required": ["diagram_id"]
                }
            ),
        ]

    async def handle_tool(self, name: str, arguments: dict) -> dict:
        """Route tool call to appropriate handler.

        Args:
            name: Tool name
            arguments: Tool arguments

        Returns:
            Standardized response
        """
        handlers = {
            "layout_diagram": self._layout_diagram,
            "layout_set_connection_waypoints": self._set_connection_waypoints,
            "layout_optimize_lanes": self._optimize_lanes,
            "layout_adjust_labels": self._adjust_labels,
            "layout_lane_metrics": self._lane_metrics,
        }

        handler = handlers.get(name)
        if not handler:
            return error_response(f"Unknown layout tool: {name}", code="UNKNOWN_TOOL")

        try:
            return await handler(arguments)
        except LayoutError as e:
            logger.warning(f"{name} rejected: {e}")
            return layout_error_response(e)
        except PydanticValidationError as e:
            logger.warning(f"{name} rejected arguments: {e.error_count()} error(s)")
            return argument_error_response(e)
        except Exception as e:
            logger.error(f"Error in {name}: {e}", exc_info=True)
            return error_response(str(e), code="TOOL_ERROR")

    async def _layout_diagram(self, args: dict) -> dict:
        """Lay out a diagram."""
        diagram_id = _required(args, "diagram_id")
        options = LayoutOptions.model_validate(
            {k: v for k, v in args.items() if k != "diagram_id"}
        )
        async with self.store.acquire(diagram_id) as session:
            result = await self.orchestrator.layout(session, options)
            if not options.dry_run:
                result["etag"] = session.graph.compute_etag()

        warnings = [result["warning"]] if result.get("warning") else None
        return success_response(result, warnings=warnings)

    async def _set_connection_waypoints(self, args: dict) -> dict:
        """Pin connection waypoints."""
        diagram_id = _required(args, "diagram_id")
        connection_id = _required(args, "connection_id")
        waypoints = _required(args, "waypoints")
        async with self.store.acquire(diagram_id) as session:
            result = self.orchestrator.set_connection_waypoints(session, connection_id, waypoints)
        return success_response(result)

    async def _optimize_lanes(self, args: dict) -> dict:
        """Optimize lane order of one pool."""
        diagram_id = _required(args, "diagram_id")
        async with self.store.acquire(diagram_id) as session:
            result = self.orchestrator.optimize_lanes(
                session,
                participant_id=args.get("participant_id"),
                dry_run=bool(args.get("dry_run", False)),
            )
        return success_response(result)

    async def _adjust_labels(self, args: dict) -> dict:
        """Re-place floating labels."""
        diagram_id = _required(args, "diagram_id")
        async with self.store.acquire(diagram_id) as session:
            result = self.orchestrator.adjust_labels(session, args.get("element_ids"))
        return success_response(result)

    async def _lane_metrics(self, args: dict) -> dict:
        """Report lane coherence."""
        diagram_id = _required(args, "diagram_id")
        async with self.store.acquire(diagram_id) as session:
            result: Dict[str, Any] = self.orchestrator.lane_metrics(
                session, participant_id=args.get("participant_id")
            )
        return success_response(result)
