"""Error taxonomy for the Home Connect MCP server.

Every error carries the ``ToolResultStatus`` and ``error_code`` it maps to
when a failure is reported as a ``ToolResult``. On the MCP surface only
the message is sent.
"""

from typing import Optional

from shared.models import ToolResultStatus


class HomeConnectError(Exception):
    """Base exception for all tool execution failures."""
    status = ToolResultStatus.ERROR
    error_code = "ERROR"


class UnknownTool(HomeConnectError):
    """The requested tool is not registered."""
    status = ToolResultStatus.NOT_FOUND
    error_code = "TOOL_NOT_FOUND"

    def __init__(self, tool_name: str) -> None:
        self.tool_name = tool_name
        super().__init__(f"Unknown tool: {tool_name}")


class InvalidArguments(HomeConnectError):
    """Tool arguments do not match the tool's input schema."""
    status = ToolResultStatus.VALIDATION_ERROR
    error_code = "VALIDATION_ERROR"

    def __init__(self, tool_name: str, errors: list[str]) -> None:
        self.tool_name = tool_name
        self.errors = errors
        super().__init__(f"Invalid arguments for {tool_name}: {'; '.join(errors)}")


class AuthError(HomeConnectError):
    """Base class for token refresh failures."""
    status = ToolResultStatus.UNAUTHORIZED
    error_code = "AUTH_ERROR"


class NoRefreshToken(AuthError):
    error_code = "NO_REFRESH_TOKEN"

    def __init__(self) -> None:
        super().__init__("No refresh token available")


class RefreshFailed(AuthError):
    error_code = "REFRESH_FAILED"

    def __init__(self, detail: str) -> None:
        self.detail = detail
        super().__init__(f"Failed to refresh token: {detail}")


class ExecutionError(HomeConnectError):
    """A failure raised while a tool was running."""
    error_code = "EXECUTION_ERROR"
    prefix = "Tool execution failed"

    def __init__(self, detail: str) -> None:
        self.detail = detail
        super().__init__(f"{self.prefix}: {detail}" if self.prefix else detail)


class ConfigurationError(ExecutionError):
    """A setting the tool needs is missing."""
    error_code = "CONFIGURATION_ERROR"


class UpstreamError(ExecutionError):
    """The Home Connect API answered with a non-2xx status."""
    error_code = "UPSTREAM_ERROR"

    def __init__(self, status_code: int, detail: Optional[str] = None) -> None:
        self.status_code = status_code
        message = f"Request failed with status code {status_code}"
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message)


class AuthenticationFailed(ExecutionError):
    """A 401 from the API could not be recovered by refreshing the token."""
    status = ToolResultStatus.UNAUTHORIZED
    error_code = "AUTHENTICATION_FAILED"
    prefix = "Authentication failed"


class TokenRefreshed(ExecutionError):
    """The token was refreshed after a 401; the caller has to retry."""
    status = ToolResultStatus.UNAUTHORIZED
    error_code = "TOKEN_REFRESHED"
    prefix = ""

    def __init__(self) -> None:
        super().__init__("Token refreshed, please retry the request")
