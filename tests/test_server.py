"""Tests for server wiring."""

import pytest

from bpmn_layout.server import BpmnLayoutMCPServer


class TestServer:

    def test_providers_share_one_store(self):
        server = BpmnLayoutMCPServer()
        assert server.diagram_tools.store is server.store
        assert server.layout_tools.store is server.store

    def test_tool_names_route_by_prefix(self):
        server = BpmnLayoutMCPServer()
        diagram_names = [t.name for t in server.diagram_tools.get_tools()]
        layout_names = [t.name for t in server.layout_tools.get_tools()]
        assert all(name.startswith("diagram_") for name in diagram_names)
        assert all(name.startswith("layout_") for name in layout_names)
        assert len(set(diagram_names + layout_names)) == len(diagram_names) + len(layout_names)


class TestDispatch:

    @pytest.mark.asyncio
    async def test_unknown_prefix(self):
        server = BpmnLayoutMCPServer()
        result = await server.dispatch("render_svg", {})
        assert result["ok"] is False
        assert result["error"]["code"] == "UNKNOWN_TOOL"
        assert result["error"]["details"] == {"tool": "render_svg"}

    @pytest.mark.asyncio
    async def test_routes_to_diagram_tools(self):
        server = BpmnLayoutMCPServer()
        result = await server.dispatch("diagram_list", None)
        assert result["ok"] is True
        assert result["data"]["count"] == 0

    @pytest.mark.asyncio
    async def test_routes_to_layout_tools(self):
        server = BpmnLayoutMCPServer()
        result = await server.dispatch("layout_lane_metrics", {"diagram_id": "missing"})
        assert result["error"]["code"] == "NOT_FOUND"
