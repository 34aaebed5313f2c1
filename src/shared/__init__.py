"""Shared utilities and base classes for the Home Connect MCP server."""

from shared.models import (
    ToolDefinition,
    ToolCall,
    ToolResponse,
    ToolResult,
    ExecutionContext,
    TokenPair,
    AuditEntry,
)
from shared.config import Settings, get_settings
from shared.logging import get_logger, setup_logging

__all__ = [
    "ToolDefinition",
    "ToolCall",
    "ToolResponse",
    "ToolResult",
    "ExecutionContext",
    "TokenPair",
    "AuditEntry",
    "Settings",
    "get_settings",
    "get_logger",
    "setup_logging",
]
