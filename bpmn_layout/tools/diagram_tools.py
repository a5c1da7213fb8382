"""MCP tools for diagram import/export and history.

Diagrams are exchanged as JSON in the canonical export shape:

    {"id": "...", "name": "...", "elements": [{"kind": "shape", ...}, ...]}

Pins and undo history are session state and never appear in an export.
"""

import logging
from typing import List

from mcp import Tool
from pydantic import ValidationError as PydanticValidationError

from bpmn_layout.core.diagram_store import DiagramStore
from bpmn_layout.core.errors import LayoutError, ValidationError
from bpmn_layout.models.diagram import DiagramGraph
from bpmn_layout.utils.response import (
    argument_error_response,
    error_response,
    layout_error_response,
    success_response,
)

logger = logging.getLogger(__name__)


class DiagramTools:
    """Provides diagram registry tools."""

    def __init__(self, store: DiagramStore):
        self.store = store

    def get_tools(self) -> List[Tool]:
        """Return diagram MCP tools."""
        diagram_id_schema = {
            "type": "object",
            "properties": {
                "diagram_id": {
                    "type": "string",
                    "description": "ID of diagram"
                }
            },
            "required": ["diagram_id"]
        }
        return [
            Tool(
                name="diagram_import",
                description="Import a diagram from canonical JSON and open a session for it",
                inputSchema={
                    "type": "object",
                    "properties": {
                        "diagram": {
                            "type": "object",
                            "description": "Diagram JSON with id, name and elements"
                        },
                        "replace": {
                            "type": "boolean",
                            "description": "Replace an existing diagram with the same id",
                            "default": False
                        }
                    },
                    "required": ["diagram"]
                }
            ),
            Tool(
                name="diagram_export",
                description="Export a diagram as canonical JSON with its etag",
                inputSchema=diagram_id_schema,
            ),
            Tool(
                name="diagram_list",
                description="List open diagrams",
                inputSchema={"type": "object", "properties": {}}
            ),
            Tool(
                name="diagram_delete",
                description="Close a diagram session and discard its pins and history",
                inputSchema=diagram_id_schema,
            ),
            Tool(
                name="diagram_undo",
                description="Undo the last layout, pin, lane or label operation",
                inputSchema=diagram_id_schema,
            ),
            Tool(
                name="diagram_redo",
                description="Redo the last undone operation",
                inputSchema=diagram_id_schema,
            ),
        ]

    async def handle_tool(self, name: str, arguments: dict) -> dict:
        """Route tool call to appropriate handler."""
        handlers = {
            "diagram_import": self._import,
            "diagram_export": self._export,
            "diagram_list": self._list,
            "diagram_delete": self._delete,
            "diagram_undo": self._undo,
            "diagram_redo": self._redo,
        }

        handler = handlers.get(name)
        if not handler:
            return error_response(f"Unknown diagram tool: {name}", code="UNKNOWN_TOOL")

        try:
            return await handler(arguments)
        except LayoutError as e:
            logger.warning(f"{name} rejected: {e}")
            return layout_error_response(e)
        except PydanticValidationError as e:
            logger.warning(f"{name} rejected diagram: {e.error_count()} error(s)")
            return argument_error_response(e)
        except Exception as e:
            logger.error(f"Error in {name}: {e}", exc_info=True)
            return error_response(str(e), code="TOOL_ERROR")

    async def _import(self, args: dict) -> dict:
        """Import a diagram."""
        data = args.get("diagram")
        if not isinstance(data, dict) or not data.get("id"):
            raise ValidationError("diagram must be an object with an id")
        if not isinstance(data.get("elements", []), list):
            raise ValidationError("diagram elements must be a list")

        graph = DiagramGraph.from_dict(data)
        replace = bool(args.get("replace", False))
        if replace and graph.id in self.store:
            async with self.store.acquire(graph.id):
                session = self.store.register(graph, replace=True)
        else:
            session = self.store.register(graph)
        return success_response(session.info())

    async def _export(self, args: dict) -> dict:
        """Export a diagram."""
        diagram_id = args.get("diagram_id")
        async with self.store.acquire(diagram_id) as session:
            return success_response({
                "diagram": session.graph.export(),
                "etag": session.graph.compute_etag(),
            })

    async def _list(self, args: dict) -> dict:
        """List diagrams."""
        sessions = [self.store.get(diagram_id) for diagram_id in self.store.list_ids()]
        return success_response({
            "diagrams": [session.info() for session in sessions],
            "count": len(sessions),
        })

    async def _delete(self, args: dict) -> dict:
        """Delete a diagram session."""
        diagram_id = args.get("diagram_id")
        async with self.store.acquire(diagram_id):
            self.store.delete(diagram_id)
        return success_response({"diagram_id": diagram_id, "deleted": True})

    async def _undo(self, args: dict) -> dict:
        """Undo last command."""
        diagram_id = args.get("diagram_id")
        async with self.store.acquire(diagram_id) as session:
            command = session.commands.undo(session)
            if command is None:
                return success_response({"undone": False, "message": "Nothing to undo"})
            return success_response({
                "undone": True,
                "command": command.summary(),
                "etag": session.graph.compute_etag(),
                "can_undo": session.commands.can_undo,
                "can_redo": session.commands.can_redo,
            })

    async def _redo(self, args: dict) -> dict:
        """Redo last undone command."""
        diagram_id = args.get("diagram_id")
        async with self.store.acquire(diagram_id) as session:
            command = session.commands.redo(session)
            if command is None:
                return success_response({"redone": False, "message": "Nothing to redo"})
            return success_response({
                "redone": True,
                "command": command.summary(),
                "etag": session.graph.compute_etag(),
                "can_undo": session.commands.can_undo,
                "can_redo": session.commands.can_redo,
            })
