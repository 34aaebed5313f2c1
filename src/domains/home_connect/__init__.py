"""Home Connect Domain - home appliance control tools.

Translates MCP tool calls into requests against the Home Connect REST API.
Every call carries the current bearer token; a 401 triggers a single
token refresh.
"""

import json
from contextvars import ContextVar
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Optional
from urllib.parse import quote

import httpx
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt

from shared.config import HomeConnectSettings
from shared.errors import AuthError, AuthenticationFailed, TokenRefreshed, UnknownTool
from shared.logging import get_logger
from shared.models import (
    DomainConfig,
    ExecutionContext,
    ToolDefinition,
    ToolResponse,
)
from domains.base import RESTAdapter
from domains.home_connect.auth import CredentialStore, OAuthGateway, build_authorization_url
from domains.home_connect.tools import DOMAIN, HOME_CONNECT_TOOLS

if TYPE_CHECKING:
    from mcp_server.router import ToolRouter

logger = get_logger(__name__)

MEDIA_TYPE = "application/vnd.bsh.sdk.v1+json"

# Set while a request is replayed after a refresh; a 401 then must not refresh again
_replaying: ContextVar[bool] = ContextVar("home_connect_replaying", default=False)

Handler = Callable[[dict[str, Any]], Awaitable[ToolResponse]]


class HomeConnectAdapter(RESTAdapter):
    """
    Home Connect Domain Adapter.

    Provides tools for:
    - Listing appliances and reading their status, programs and settings
    - Starting and stopping programs
    - Changing settings
    - Building the OAuth authorization URL
    """

    def __init__(
        self,
        config: DomainConfig,
        settings: HomeConnectSettings,
        credentials: CredentialStore,
        oauth: Optional[OAuthGateway] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ) -> None:
        super().__init__(config, transport=transport)
        self.settings = settings
        self.credentials = credentials
        self.oauth = oauth or OAuthGateway(settings, credentials, transport=transport)

    @property
    def tools(self) -> list[ToolDefinition]:
        return list(HOME_CONNECT_TOOLS)

    async def execute(
        self,
        action: str,
        parameters: dict[str, Any],
        context: ExecutionContext
    ) -> ToolResponse:
        """Execute a Home Connect action."""
        logger.debug("Home Connect action", action=action, request_id=context.request_id)

        handlers: dict[str, Handler] = {
            "get_appliances": self._get_appliances,
            "get_appliance_status": self._get_appliance_status,
            "get_appliance_programs": self._get_appliance_programs,
            "start_program": self._start_program,
            "stop_program": self._stop_program,
            "get_settings": self._get_settings,
            "update_setting": self._update_setting,
            "get_auth_url": self._get_auth_url,
        }

        handler = handlers.get(action)
        if not handler:
            raise UnknownTool(action)

        return await handler(parameters)

    # Authentication

    def _auth_headers(self) -> dict[str, str]:
        token = self.credentials.access_token
        if token:
            return {"Authorization": f"Bearer {token}"}
        return {}

    async def _handle_unauthorized(self, response: httpx.Response) -> None:
        if _replaying.get():
            raise AuthenticationFailed(
                f"Request failed with status code {response.status_code} after token refresh"
            )
        if not self.credentials.refresh_token:
            raise AuthenticationFailed(
                f"Request failed with status code {response.status_code}"
            )

        try:
            await self.oauth.refresh()
        except AuthError as e:
            raise AuthenticationFailed(str(e)) from e

        raise TokenRefreshed()

    async def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        if not self.settings.retry_after_refresh:
            return await super()._request(method, path, **kwargs)

        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(2),
            retry=retry_if_exception_type(TokenRefreshed),
            reraise=True
        ):
            with attempt:
                replay = attempt.retry_state.attempt_number > 1
                if replay:
                    logger.info("Replaying request with refreshed token", method=method, path=path)
                token = _replaying.set(replay)
                try:
                    response = await super()._request(method, path, **kwargs)
                finally:
                    _replaying.reset(token)
        return response

    # Actions

    async def _get_auth_url(self, params: dict[str, Any]) -> ToolResponse:
        auth_url = build_authorization_url(self.settings)
        return ToolResponse.text(
            f"Authorization URL: {auth_url}\n\n"
            "Please visit this URL to authorize the application and get the authorization code."
        )

    async def _get_appliances(self, params: dict[str, Any]) -> ToolResponse:
        response = await self._request("GET", "/homeappliances")
        return _formatted(response)

    async def _get_appliance_status(self, params: dict[str, Any]) -> ToolResponse:
        response = await self._request("GET", _appliance_path(params["haId"], "status"))
        return _formatted(response)

    async def _get_appliance_programs(self, params: dict[str, Any]) -> ToolResponse:
        response = await self._request("GET", _appliance_path(params["haId"], "programs"))
        return _formatted(response)

    async def _get_settings(self, params: dict[str, Any]) -> ToolResponse:
        response = await self._request("GET", _appliance_path(params["haId"], "settings"))
        return _formatted(response)

    async def _start_program(self, params: dict[str, Any]) -> ToolResponse:
        program_key = params["programKey"]
        data: dict[str, Any] = {"key": program_key}
        if params.get("options") is not None:
            data["options"] = params["options"]

        await self._request(
            "PUT",
            _appliance_path(params["haId"], "programs", "active"),
            json={"data": data}
        )
        return ToolResponse.text(f"Program {program_key} started successfully")

    async def _stop_program(self, params: dict[str, Any]) -> ToolResponse:
        await self._request("DELETE", _appliance_path(params["haId"], "programs", "active"))
        return ToolResponse.text("Program stopped successfully")

    async def _update_setting(self, params: dict[str, Any]) -> ToolResponse:
        setting_key = params["settingKey"]
        await self._request(
            "PUT",
            _appliance_path(params["haId"], "settings", setting_key),
            json={"data": {"key": setting_key, "value": params["value"]}}
        )
        return ToolResponse.text(f"Setting {setting_key} updated successfully")

    async def close(self) -> None:
        await super().close()
        await self.oauth.close()


def _appliance_path(ha_id: str, *segments: str) -> str:
    parts = [quote(str(part), safe="") for part in (ha_id, *segments)]
    return "/homeappliances/" + "/".join(parts)


def _formatted(response: httpx.Response) -> ToolResponse:
    """Render a response body as indented JSON text."""
    try:
        body = response.json()
    except ValueError:
        return ToolResponse.text(response.text)
    return ToolResponse.text(json.dumps(body, indent=2, ensure_ascii=False))


def register_home_connect_domain(
    router: "ToolRouter",
    settings: HomeConnectSettings,
    credentials: Optional[CredentialStore] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None
) -> HomeConnectAdapter:
    """Register the Home Connect domain with the MCP server."""
    config = DomainConfig(
        name=DOMAIN,
        description="Home Connect appliance control",
        base_url=settings.api_base_url,
        timeout_seconds=settings.timeout_seconds,
        headers={"Accept": MEDIA_TYPE, "Content-Type": MEDIA_TYPE}
    )

    if credentials is None:
        credentials = CredentialStore(
            access_token=settings.access_token,
            refresh_token=settings.refresh_token
        )

    adapter = HomeConnectAdapter(config, settings, credentials, transport=transport)

    router.registry.register_many(adapter.tools)
    router.register_adapter(DOMAIN, adapter.execute)

    logger.info(
        "Home Connect domain registered",
        tool_count=len(adapter.tools),
        authenticated=credentials.access_token is not None
    )
    return adapter


__all__ = [
    "HomeConnectAdapter",
    "CredentialStore",
    "OAuthGateway",
    "register_home_connect_domain",
]
