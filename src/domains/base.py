"""Base classes for domain adapters.

All adapters must:
- Translate MCP calls to backend API requests
- Handle authentication
- Normalize responses into text content
- Never make cross-domain calls
"""

from abc import ABC, abstractmethod
from typing import Any, Optional

import httpx

from shared.errors import UpstreamError
from shared.logging import get_logger
from shared.models import (
    DomainConfig,
    ExecutionContext,
    ToolDefinition,
    ToolResponse,
)

logger = get_logger(__name__)


class BaseAdapter(ABC):
    """
    Base class for domain adapters.

    Each adapter handles one domain only and translates MCP calls
    to backend APIs.
    """

    def __init__(self, config: DomainConfig) -> None:
        self.config = config
        self.domain = config.name

    @property
    @abstractmethod
    def tools(self) -> list[ToolDefinition]:
        """Return all tool definitions for this domain."""

    @abstractmethod
    async def execute(
        self,
        action: str,
        parameters: dict[str, Any],
        context: ExecutionContext
    ) -> ToolResponse:
        """
        Execute a tool action.

        Args:
            action: Tool name
            parameters: Tool arguments, already validated against the schema
            context: Execution context

        Returns:
            Tool response
        """

    async def close(self) -> None:
        """Release any resources held by the adapter."""


class RESTAdapter(BaseAdapter):
    """
    Base adapter for REST API backends.

    Provides a lazily created HTTP client and status handling.
    Subclasses hook in authentication via ``_auth_headers`` and
    ``_handle_unauthorized``.
    """

    def __init__(
        self,
        config: DomainConfig,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ) -> None:
        super().__init__(config)
        self.base_url = config.base_url or ""
        self.timeout = config.timeout_seconds
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                headers=self.config.headers,
                transport=self._transport
            )
        return self._client

    def _auth_headers(self) -> dict[str, str]:
        """Headers attached to every request at send time."""
        return {}

    async def _handle_unauthorized(self, response: httpx.Response) -> None:
        """Called on a 401 response. Must raise."""
        raise UpstreamError(response.status_code, _error_detail(response))

    async def _request(
        self,
        method: str,
        path: str,
        **kwargs
    ) -> httpx.Response:
        """Make an HTTP request to the backend and check its status."""
        client = await self._get_client()
        headers = {**kwargs.pop("headers", {}), **self._auth_headers()}

        logger.debug("Backend request", method=method, path=path)
        response = await client.request(method, path, headers=headers, **kwargs)

        if response.status_code == 401:
            await self._handle_unauthorized(response)
        if response.is_error:
            raise UpstreamError(response.status_code, _error_detail(response))
        return response

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None


def _error_detail(response: httpx.Response) -> Optional[str]:
    """Extract a readable error description from an error response."""
    try:
        body = response.json()
    except ValueError:
        return response.text.strip() or None

    error = body.get("error") if isinstance(body, dict) else None
    if isinstance(error, dict):
        return error.get("description") or error.get("key")
    if isinstance(error, str):
        return body.get("error_description") or error
    return None
