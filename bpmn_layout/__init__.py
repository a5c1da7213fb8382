"""Layout and annotation subsystem for BPMN process diagrams.

Exposes automatic layout, user-pinned connection routing, floating label
placement and lane order optimization as an MCP server.
"""

__version__ = "0.1.0"
