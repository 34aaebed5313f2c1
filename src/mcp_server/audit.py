"""Audit logging for MCP Server.

Logs all tool executions for debugging and support.
Captures: tool, arguments, timestamp, result.
"""

import asyncio
import uuid
from datetime import datetime
from pathlib import Path
from typing import Any, Optional

import aiofiles

from shared.logging import get_logger
from shared.models import (
    AuditEntry,
    ToolCall,
    ToolDefinition,
    ToolResult,
)

logger = get_logger(__name__)


class AuditLogger:
    """
    Audit logger for MCP tool executions.

    Every execution is logged to the structured logger. When a log path
    is given, entries are also buffered and appended to that file as
    JSON lines.
    """

    # Arguments that should be redacted in audit logs
    SENSITIVE_PARAMS = {"password", "token", "secret", "api_key", "apikey", "credential"}

    def __init__(
        self,
        log_path: Optional[str] = None,
        enabled: bool = True,
        buffer_size: int = 100
    ) -> None:
        self.log_path = Path(log_path) if log_path else None
        self.enabled = enabled
        self.buffer_size = buffer_size
        self._buffer: list[AuditEntry] = []
        self._lock = asyncio.Lock()

        if self.enabled and self.log_path:
            self.log_path.parent.mkdir(parents=True, exist_ok=True)

    def _redact_sensitive(self, params: dict[str, Any]) -> dict[str, Any]:
        """Redact sensitive arguments from audit logs."""
        redacted = {}
        for key, value in params.items():
            if key.lower() in self.SENSITIVE_PARAMS:
                redacted[key] = "[REDACTED]"
            elif isinstance(value, dict):
                redacted[key] = self._redact_sensitive(value)
            else:
                redacted[key] = value
        return redacted

    def create_entry(
        self,
        tool: Optional[ToolDefinition],
        call: ToolCall,
        result: ToolResult
    ) -> AuditEntry:
        """
        Create an audit entry from tool execution data.

        ``tool`` is None when the call named a tool that is not registered.
        """
        return AuditEntry(
            id=str(uuid.uuid4()),
            timestamp=datetime.utcnow(),
            tool_name=call.tool_name,
            domain=tool.domain if tool else None,
            execution_type=tool.execution_type if tool else None,
            arguments=self._redact_sensitive(call.arguments),
            status=result.status,
            error=result.error,
            execution_time_ms=result.execution_time_ms,
            request_id=call.context.request_id,
            source=call.context.source,
        )

    async def log(
        self,
        tool: Optional[ToolDefinition],
        call: ToolCall,
        result: ToolResult
    ) -> None:
        """Log a tool execution."""
        if not self.enabled:
            return

        entry = self.create_entry(tool, call, result)

        logger.info(
            "Tool executed",
            audit_id=entry.id,
            tool=entry.tool_name,
            status=entry.status.value,
            error=entry.error,
            execution_time_ms=round(entry.execution_time_ms, 2)
        )

        if not self.log_path:
            return

        async with self._lock:
            self._buffer.append(entry)

            if len(self._buffer) >= self.buffer_size:
                await self._flush()

    async def _flush(self) -> None:
        """Flush buffered entries to file."""
        if not self._buffer or not self.log_path:
            return

        entries_to_write = self._buffer.copy()
        self._buffer.clear()

        try:
            async with aiofiles.open(self.log_path, "a") as f:
                for entry in entries_to_write:
                    await f.write(entry.model_dump_json() + "\n")
        except OSError as e:
            logger.error("Failed to write audit log", error=str(e))
            # Keep entries for the next flush
            self._buffer.extend(entries_to_write)

    async def flush(self) -> None:
        """Public method to flush audit buffer."""
        async with self._lock:
            await self._flush()
