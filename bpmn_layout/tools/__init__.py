"""MCP tool providers."""

from .diagram_tools import DiagramTools
from .layout_tools import LayoutTools

__all__ = ["DiagramTools", "LayoutTools"]
