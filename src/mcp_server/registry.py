"""Tool Registry for MCP Server.

Manages registration, discovery, and lookup of tools from all domains.
Tools are registered by their domain at startup and listed in
registration order.
"""

from typing import Any, Optional

from shared.logging import get_logger
from shared.models import ToolDefinition
from shared.schema import validate_schema

logger = get_logger(__name__)


class ToolRegistry:
    """
    Central registry for all MCP tools.

    Responsibilities:
    - Register tools from domains
    - Lookup tools by name
    - Validate tool arguments against input schemas
    """

    def __init__(self) -> None:
        self._tools: dict[str, ToolDefinition] = {}

    def register(self, tool: ToolDefinition) -> None:
        """
        Register a tool in the registry.

        Args:
            tool: Tool definition to register

        Raises:
            ValueError: If tool name is already registered
        """
        if tool.name in self._tools:
            raise ValueError(f"Tool '{tool.name}' is already registered")

        self._tools[tool.name] = tool

        logger.debug(
            "Tool registered",
            tool=tool.name,
            domain=tool.domain,
            execution_type=tool.execution_type.value
        )

    def register_many(self, tools: list[ToolDefinition]) -> None:
        """Register multiple tools at once."""
        for tool in tools:
            self.register(tool)

    def get(self, tool_name: str) -> Optional[ToolDefinition]:
        """Get a tool by name, or None if it is not registered."""
        return self._tools.get(tool_name)

    def list_tools(self, domain: Optional[str] = None) -> list[ToolDefinition]:
        """
        List all registered tools in registration order.

        Args:
            domain: Filter by domain name

        Returns:
            List of tool definitions
        """
        tools = list(self._tools.values())

        if domain:
            tools = [t for t in tools if t.domain == domain]

        return tools

    def list_domains(self) -> list[str]:
        """List all registered domains."""
        return sorted({t.domain for t in self._tools.values()})

    def describe(self, domain: Optional[str] = None) -> list[dict[str, Any]]:
        """Get tool definitions in the MCP ``tools/list`` wire format."""
        return [tool.describe() for tool in self.list_tools(domain)]

    def validate_input(
        self,
        tool_name: str,
        arguments: dict[str, Any]
    ) -> tuple[bool, list[str]]:
        """
        Validate arguments against a tool's input schema.

        Args:
            tool_name: Tool name
            arguments: Input arguments to validate

        Returns:
            Tuple of (is_valid, list of error messages)
        """
        tool = self.get(tool_name)
        if not tool:
            return False, [f"Tool '{tool_name}' not found"]

        return validate_schema(arguments, tool.input_schema)

    def __len__(self) -> int:
        return len(self._tools)

    def __contains__(self, tool_name: object) -> bool:
        return tool_name in self._tools
