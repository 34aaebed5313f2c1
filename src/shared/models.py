"""Core data models for the Home Connect MCP server.

This module defines the shared data structures passed between the
protocol surfaces, the tool router and the domain adapters.
"""

import uuid
from datetime import datetime
from enum import Enum
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


class ExecutionType(str, Enum):
    """Type of tool execution - read operations vs write operations."""
    READ = "read"
    WRITE = "write"


class ToolDefinition(BaseModel):
    """
    Complete definition of an MCP tool.

    Tool definitions are built once at startup and never mutated.
    """
    model_config = ConfigDict(frozen=True)

    name: str = Field(..., description="Unique tool name as exposed to MCP clients")
    description: str = Field(..., description="Clear description for LLM usage")
    domain: str = Field(default="home_connect", description="Domain that executes the tool")

    input_schema: dict[str, Any] = Field(
        default_factory=lambda: {"type": "object", "properties": {}},
        description="JSON Schema for input validation"
    )
    execution_type: ExecutionType = Field(default=ExecutionType.READ)

    def describe(self) -> dict[str, Any]:
        """Return the MCP wire form of this tool."""
        return {
            "name": self.name,
            "description": self.description,
            "inputSchema": self.input_schema,
        }


class ExecutionContext(BaseModel):
    """Request metadata carried through a single tool execution."""
    request_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    timestamp: datetime = Field(default_factory=datetime.utcnow)
    source: str = Field(default="stdio", description="Protocol surface that received the call")
    correlation_id: Optional[str] = None


class ToolCall(BaseModel):
    """A request to execute a specific tool."""
    tool_name: str
    arguments: dict[str, Any] = Field(default_factory=dict)
    context: ExecutionContext = Field(default_factory=ExecutionContext)


class TextContent(BaseModel):
    """A single text block of a tool response."""
    type: Literal["text"] = "text"
    text: str


class ToolResponse(BaseModel):
    """Successful tool output: an ordered sequence of text blocks."""
    content: list[TextContent] = Field(default_factory=list)

    @classmethod
    def text(cls, text: str) -> "ToolResponse":
        return cls(content=[TextContent(text=text)])


class ToolResultStatus(str, Enum):
    """Status of tool execution."""
    SUCCESS = "success"
    ERROR = "error"
    UNAUTHORIZED = "unauthorized"
    NOT_FOUND = "not_found"
    VALIDATION_ERROR = "validation_error"


class ToolResult(BaseModel):
    """
    Tagged result of a tool execution.

    Exactly one of ``content`` (on success) or ``error`` (otherwise) is set.
    """
    tool_name: str
    status: ToolResultStatus
    content: list[TextContent] = Field(default_factory=list)
    error: Optional[str] = None
    error_code: Optional[str] = None
    execution_time_ms: float = 0


class TokenPair(BaseModel):
    """OAuth bearer and refresh token as returned by the token endpoint."""
    model_config = ConfigDict(extra="ignore")

    access_token: Optional[str] = None
    refresh_token: Optional[str] = None


class AuditEntry(BaseModel):
    """
    Audit log entry for tool executions.

    Captures tool, arguments, timestamp and result of every invocation.
    """
    id: str
    timestamp: datetime = Field(default_factory=datetime.utcnow)

    # Tool information
    tool_name: str
    domain: Optional[str] = None
    execution_type: Optional[ExecutionType] = None

    # Request details
    arguments: dict[str, Any] = Field(default_factory=dict)

    # Result information
    status: ToolResultStatus
    error: Optional[str] = None
    execution_time_ms: float = 0

    # Correlation
    request_id: str
    source: str = "stdio"


class DomainConfig(BaseModel):
    """Configuration for an application domain."""
    name: str
    description: str

    # Connection settings
    base_url: Optional[str] = None
    timeout_seconds: float = 30
    headers: dict[str, str] = Field(default_factory=dict)
