"""Application Domains.

Each domain contains:
- Tool definitions
- Adapter implementation
- Authentication handling

Domains are isolated, with no cross-domain calls.
"""

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from domains.base import BaseAdapter
    from mcp_server.router import ToolRouter
    from shared.config import Settings


def load_all_domains(router: "ToolRouter", settings: "Settings") -> list["BaseAdapter"]:
    """
    Load and register all application domains.

    This is called at MCP Server startup to register all domain tools
    and adapters. The returned adapters must be closed at shutdown.
    """
    from domains.home_connect import register_home_connect_domain

    return [
        register_home_connect_domain(router, settings.home_connect),
    ]


__all__ = ["load_all_domains"]
