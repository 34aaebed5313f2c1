"""MCP Server - process entry point and HTTP surface.

``main`` starts the server on the configured transport: MCP over stdio
(the default) or a FastAPI application serving the same tools over HTTP.
"""

import asyncio
import sys
import uuid
from contextlib import asynccontextmanager
from typing import Any, Optional

from fastapi import FastAPI, HTTPException, Request, status
from pydantic import BaseModel, Field

from shared.config import Settings, get_settings
from shared.logging import get_logger, setup_logging
from shared.models import ExecutionContext, ToolCall
from domains import load_all_domains
from domains.base import BaseAdapter
from mcp_server import __version__
from mcp_server.audit import AuditLogger
from mcp_server.registry import ToolRegistry
from mcp_server.router import ToolRouter

logger = get_logger(__name__)


# Request/Response Models
class ToolCallRequest(BaseModel):
    """Request to execute a tool."""
    tool_name: str = Field(..., description="Tool name")
    arguments: dict[str, Any] = Field(default_factory=dict)
    request_id: Optional[str] = Field(default=None)
    correlation_id: Optional[str] = Field(default=None)


class ToolCallResponse(BaseModel):
    """Response from tool execution."""
    tool_name: str
    status: str
    content: list[dict[str, Any]] = Field(default_factory=list)
    error: Optional[str] = None
    error_code: Optional[str] = None
    execution_time_ms: float = 0


class ToolListResponse(BaseModel):
    """List of available tools."""
    tools: list[dict[str, Any]]
    count: int


class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    version: str
    domains: list[str]
    tool_count: int


def build_router(settings: Settings) -> tuple[ToolRouter, list[BaseAdapter]]:
    """Create the router and register all domains on it."""
    audit_logger = AuditLogger(
        log_path=settings.mcp_server.audit_log_path,
        enabled=settings.mcp_server.enable_audit
    )
    router = ToolRouter(registry=ToolRegistry(), audit_logger=audit_logger)
    adapters = load_all_domains(router, settings)
    return router, adapters


async def shutdown(router: ToolRouter, adapters: list[BaseAdapter]) -> None:
    """Close adapters and flush the audit log."""
    for adapter in adapters:
        await adapter.close()
    await router.audit_logger.flush()


def create_app(
    settings: Optional[Settings] = None,
    router: Optional[ToolRouter] = None
) -> FastAPI:
    """
    Create the HTTP application.

    Args:
        settings: Settings used to build a router when none is given
        router: Pre-built router; its adapters are owned by the caller
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        adapters: list[BaseAdapter] = []
        if router is None:
            app.state.router, adapters = build_router(settings or get_settings())
        else:
            app.state.router = router

        logger.info(
            "MCP Server started",
            transport="http",
            tool_count=len(app.state.router.registry)
        )
        yield

        logger.info("Shutting down MCP Server")
        await shutdown(app.state.router, adapters)

    app = FastAPI(
        title="Home Connect MCP Server",
        description="Home Connect appliance tools over HTTP",
        version=__version__,
        lifespan=lifespan
    )

    @app.get("/health", response_model=HealthResponse, tags=["System"])
    async def health_check(request: Request):
        """Health check endpoint."""
        registry = request.app.state.router.registry
        return HealthResponse(
            status="healthy",
            version=__version__,
            domains=registry.list_domains(),
            tool_count=len(registry)
        )

    @app.get("/tools", response_model=ToolListResponse, tags=["Tools"])
    async def list_tools(request: Request, domain: Optional[str] = None):
        """List all available tools in MCP form."""
        tools = request.app.state.router.registry.describe(domain)
        return ToolListResponse(tools=tools, count=len(tools))

    @app.get("/tools/{tool_name}", tags=["Tools"])
    async def get_tool(request: Request, tool_name: str):
        """Get details for a specific tool."""
        tool = request.app.state.router.registry.get(tool_name)
        if not tool:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail=f"Tool '{tool_name}' not found"
            )
        return tool.describe()

    @app.post("/execute", response_model=ToolCallResponse, tags=["Execution"])
    async def execute_tool(request: Request, body: ToolCallRequest):
        """
        Execute a tool.

        Tool failures are reported in the response body, not as HTTP errors.
        """
        call = ToolCall(
            tool_name=body.tool_name,
            arguments=body.arguments,
            context=ExecutionContext(
                request_id=body.request_id or str(uuid.uuid4()),
                source="http",
                correlation_id=body.correlation_id,
            )
        )
        result = await request.app.state.router.execute(call)

        return ToolCallResponse(
            tool_name=result.tool_name,
            status=result.status.value,
            content=[block.model_dump() for block in result.content],
            error=result.error,
            error_code=result.error_code,
            execution_time_ms=result.execution_time_ms
        )

    return app


async def run_stdio(settings: Settings) -> None:
    """Serve MCP over stdio until the client disconnects."""
    from mcp_server.stdio import serve

    router, adapters = build_router(settings)
    try:
        await serve(router)
    finally:
        await shutdown(router, adapters)


def main() -> None:
    """Run the MCP Server."""
    settings = get_settings()
    setup_logging(settings.log_level, json_output=settings.environment == "production")

    try:
        if settings.mcp_server.transport == "http":
            import uvicorn

            uvicorn.run(
                create_app(settings),
                host=settings.mcp_server.host,
                port=settings.mcp_server.port
            )
        else:
            asyncio.run(run_stdio(settings))
    except KeyboardInterrupt:
        pass
    except Exception as e:
        logger.error("Server error", error=str(e), exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
