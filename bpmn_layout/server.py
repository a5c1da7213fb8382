"""MCP server for BPMN diagram layout."""

import asyncio
import json
import logging
from typing import Any, Dict

from mcp import Tool
from mcp.server import NotificationOptions, Server
from mcp.server.models import InitializationOptions
from mcp.types import TextContent

from bpmn_layout import __version__
from bpmn_layout.config import settings
from bpmn_layout.core.diagram_store import DiagramStore
from bpmn_layout.tools.diagram_tools import DiagramTools
from bpmn_layout.tools.layout_tools import LayoutTools
from bpmn_layout.utils.response import error_response

logging.basicConfig(level=getattr(logging, settings.LOG_LEVEL, logging.INFO))
logger = logging.getLogger(__name__)

SERVER_NAME = "bpmn-layout-mcp"


class BpmnLayoutMCPServer:
    """Diagram registry plus layout tools behind one MCP server.

    Both tool providers share a single DiagramStore, so a diagram imported
    with ``diagram_import`` is visible to every ``layout_*`` tool.
    """

    def __init__(self):
        self.store = DiagramStore()
        self.diagram_tools = DiagramTools(self.store)
        self.layout_tools = LayoutTools(self.store)
        self._routes = {
            "diagram_": self.diagram_tools,
            "layout_": self.layout_tools,
        }

        self.server = Server(SERVER_NAME)
        self._register_handlers()

    async def dispatch(self, name: str, arguments: Dict[str, Any]) -> Dict[str, Any]:
        """Run one tool by name and return its response envelope."""
        for prefix, provider in self._routes.items():
            if name.startswith(prefix):
                return await provider.handle_tool(name, arguments or {})
        logger.warning(f"Rejected call to unknown tool {name}")
        return error_response(f"Unknown tool: {name}", code="UNKNOWN_TOOL", details={"tool": name})

    def _register_handlers(self):

        @self.server.list_tools()
        async def handle_list_tools() -> list[Tool]:
            tools: list[Tool] = []
            for provider in self._routes.values():
                tools.extend(provider.get_tools())
            return tools

        @self.server.call_tool()
        async def handle_call_tool(name: str, arguments: dict) -> list[TextContent]:
            result = await self.dispatch(name, arguments)
            return [TextContent(type="text", text=json.dumps(result, indent=2))]

    async def run(self):
        """Serve over stdio until the client disconnects."""
        from mcp.server.stdio import stdio_server

        logger.info(f"Starting {SERVER_NAME} {__version__}")
        async with stdio_server() as (read_stream, write_stream):
            await self.server.run(
                read_stream,
                write_stream,
                InitializationOptions(
                    server_name=SERVER_NAME,
                    server_version=__version__,
                    capabilities=self.server.get_capabilities(
                        notification_options=NotificationOptions(),
                        experimental_capabilities={},
                    ),
                ),
            )


def main():
    asyncio.run(BpmnLayoutMCPServer().run())


if __name__ == "__main__":
    main()
