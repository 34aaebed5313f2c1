"""Tool Router for MCP Server.

Routes tool calls to the domain adapter that owns the tool.
Handles lookup, validation, error wrapping and auditing.
"""

import time
from typing import Any, Awaitable, Callable, Optional

from shared.errors import ExecutionError, HomeConnectError, InvalidArguments, UnknownTool
from shared.logging import bind_context, clear_context, get_logger
from shared.models import (
    ExecutionContext,
    ToolCall,
    ToolDefinition,
    ToolResponse,
    ToolResult,
    ToolResultStatus,
)
from mcp_server.audit import AuditLogger
from mcp_server.registry import ToolRegistry

logger = get_logger(__name__)


# Type alias for adapter execute functions
AdapterExecutor = Callable[[str, dict[str, Any], ExecutionContext], Awaitable[ToolResponse]]


class ToolRouter:
    """
    Routes tool calls to domain adapters.

    Responsibilities:
    - Reject unknown tools and invalid arguments before any outbound call
    - Route to the adapter registered for the tool's domain
    - Wrap unexpected failures in ``ExecutionError``
    - Audit all executions
    """

    def __init__(
        self,
        registry: Optional[ToolRegistry] = None,
        audit_logger: Optional[AuditLogger] = None
    ) -> None:
        self.registry = registry or ToolRegistry()
        self.audit_logger = audit_logger or AuditLogger(enabled=False)
        self._adapters: dict[str, AdapterExecutor] = {}

    def register_adapter(self, domain: str, executor: AdapterExecutor) -> None:
        """
        Register a domain adapter.

        Args:
            domain: Domain name
            executor: Coroutine function that executes tools for this domain
        """
        self._adapters[domain] = executor
        logger.debug("Adapter registered", domain=domain)

    async def invoke(
        self,
        name: str,
        arguments: Optional[dict[str, Any]] = None,
        context: Optional[ExecutionContext] = None
    ) -> ToolResponse:
        """
        Execute a tool and return its response.

        Args:
            name: Tool name
            arguments: Tool arguments
            context: Execution context; a fresh one is created if omitted

        Returns:
            The tool's text response

        Raises:
            UnknownTool: If no tool with this name is registered
            InvalidArguments: If arguments do not match the input schema
            ExecutionError: If the tool fails while running
        """
        call = ToolCall(
            tool_name=name,
            arguments=arguments or {},
            context=context or ExecutionContext()
        )

        start_time = time.time()
        tool = self.registry.get(name)
        if tool is None:
            logger.warning("Unknown tool requested", tool=name)
            unknown = UnknownTool(name)
            await self._audit(None, call, start_time, error=unknown)
            raise unknown

        bind_context(request_id=call.context.request_id, tool=name)
        try:
            response = await self._dispatch(tool, call)
        except HomeConnectError as e:
            logger.warning("Tool failed", error=str(e), error_code=e.error_code)
            await self._audit(tool, call, start_time, error=e)
            raise
        except Exception as e:
            logger.error("Tool execution failed", error=str(e), exc_info=True)
            error = ExecutionError(str(e) or type(e).__name__)
            await self._audit(tool, call, start_time, error=error)
            raise error from e
        else:
            await self._audit(tool, call, start_time)
            return response
        finally:
            clear_context()

    async def execute(self, call: ToolCall) -> ToolResult:
        """
        Execute a tool call and report the outcome as a tagged result.

        Never raises for tool failures.
        """
        start_time = time.time()
        try:
            response = await self.invoke(call.tool_name, call.arguments, call.context)
        except HomeConnectError as e:
            return _failure(call.tool_name, e, start_time)

        return ToolResult(
            tool_name=call.tool_name,
            status=ToolResultStatus.SUCCESS,
            content=response.content,
            execution_time_ms=_elapsed_ms(start_time)
        )

    async def _dispatch(self, tool: ToolDefinition, call: ToolCall) -> ToolResponse:
        is_valid, errors = self.registry.validate_input(tool.name, call.arguments)
        if not is_valid:
            raise InvalidArguments(tool.name, errors)

        adapter = self._adapters.get(tool.domain)
        if adapter is None:
            raise ExecutionError(f"No adapter registered for domain '{tool.domain}'")

        logger.debug("Executing tool", domain=tool.domain)
        return await adapter(tool.name, call.arguments, call.context)

    async def _audit(
        self,
        tool: Optional[ToolDefinition],
        call: ToolCall,
        start_time: float,
        error: Optional[HomeConnectError] = None
    ) -> None:
        if error is None:
            result = ToolResult(
                tool_name=call.tool_name,
                status=ToolResultStatus.SUCCESS,
                execution_time_ms=_elapsed_ms(start_time)
            )
        else:
            result = _failure(call.tool_name, error, start_time)
        await self.audit_logger.log(tool, call, result)


def _failure(tool_name: str, error: HomeConnectError, start_time: float) -> ToolResult:
    return ToolResult(
        tool_name=tool_name,
        status=error.status,
        error=str(error),
        error_code=error.error_code,
        execution_time_ms=_elapsed_ms(start_time)
    )


def _elapsed_ms(start_time: float) -> float:
    return (time.time() - start_time) * 1000
