"""MCP stdio surface.

Exposes the tool router through the MCP SDK's low-level server over
stdin/stdout. A failing tool raises from the ``call_tool`` handler,
which the SDK reports to the client as an error result carrying the
exception message.
"""

from typing import Any, Optional

import mcp.types as types
from mcp.server.lowlevel import Server
from mcp.server.stdio import stdio_server

from shared.logging import get_logger
from shared.models import ExecutionContext
from mcp_server import __version__
from mcp_server.router import ToolRouter

logger = get_logger(__name__)

SERVER_NAME = "home-connect"


async def list_tools(router: ToolRouter) -> list[types.Tool]:
    """Return the registered tools in MCP form."""
    return [types.Tool(**tool) for tool in router.registry.describe()]


async def call_tool(
    router: ToolRouter,
    name: str,
    arguments: Optional[dict[str, Any]]
) -> list[types.TextContent]:
    """Invoke a tool and convert its response to MCP text content."""
    response = await router.invoke(name, arguments, ExecutionContext(source="stdio"))
    return [types.TextContent(type="text", text=block.text) for block in response.content]


def create_server(router: ToolRouter) -> Server:
    """Build an MCP server bound to ``router``."""
    server: Server = Server(SERVER_NAME, version=__version__)

    @server.list_tools()
    async def handle_list_tools() -> list[types.Tool]:
        return await list_tools(router)

    @server.call_tool()
    async def handle_call_tool(name: str, arguments: dict[str, Any]) -> list[types.TextContent]:
        return await call_tool(router, name, arguments)

    return server


async def serve(router: ToolRouter) -> None:
    """Run the MCP server until stdin closes."""
    server = create_server(router)

    async with stdio_server() as (read_stream, write_stream):
        logger.info("Home Connect MCP server running", transport="stdio")
        await server.run(
            read_stream,
            write_stream,
            server.create_initialization_options()
        )
