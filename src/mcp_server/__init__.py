"""MCP Server - Tool registry, routing and protocol surfaces.

The MCP Server registers the Home Connect tools, routes calls to the
domain adapter and audits every execution. It speaks MCP over stdio
by default and can alternatively serve a small HTTP API.
"""

__version__ = "0.1.0"

from mcp_server.registry import ToolRegistry
from mcp_server.router import ToolRouter
from mcp_server.audit import AuditLogger

__all__ = [
    "ToolRegistry",
    "ToolRouter",
    "AuditLogger",
    "__version__",
]
