"""Tests for the Home Connect domain."""

import json
from urllib.parse import parse_qs

import httpx
import pytest

from shared.config import HomeConnectSettings
from shared.errors import (
    AuthenticationFailed,
    ConfigurationError,
    ExecutionError,
    InvalidArguments,
    NoRefreshToken,
    RefreshFailed,
    TokenRefreshed,
    UpstreamError,
)
from shared.models import TokenPair


TOKEN_PATH = "/security/oauth/token"
APPLIANCES = {"data": {"homeappliances": [{"haId": "SIEMENS-WM14T6H0", "name": "Washer"}]}}


class Recorder:
    """Mock transport handler that records every request."""

    def __init__(self, handler):
        self.handler = handler
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.handler(request)

    def to(self, path: str) -> list[httpx.Request]:
        return [r for r in self.requests if r.url.path == path]

    @property
    def api_requests(self) -> list[httpx.Request]:
        return [r for r in self.requests if r.url.path.startswith("/api/")]


def ok(request: httpx.Request) -> httpx.Response:
    if request.method == "GET":
        return httpx.Response(200, json=APPLIANCES)
    return httpx.Response(204)


def make_settings(**overrides) -> HomeConnectSettings:
    values = {
        "client_id": "abc",
        "client_secret": "shh",
        "access_token": "old-token",
        "refresh_token": "refresh-1",
    }
    values.update(overrides)
    return HomeConnectSettings(_env_file=None, **values)


def make_router(handler, **overrides):
    from domains.home_connect import register_home_connect_domain
    from mcp_server.router import ToolRouter

    recorder = Recorder(handler)
    router = ToolRouter()
    adapter = register_home_connect_domain(
        router,
        make_settings(**overrides),
        transport=httpx.MockTransport(recorder)
    )
    return router, adapter, recorder


class TestReadTools:
    """Tests for the GET tools."""

    @pytest.mark.asyncio
    async def test_get_appliances_formats_body(self):
        router, _, recorder = make_router(ok)

        response = await router.invoke("get_appliances", {})

        assert len(response.content) == 1
        assert response.content[0].type == "text"
        assert response.content[0].text == json.dumps(APPLIANCES, indent=2)

        request, = recorder.requests
        assert request.method == "GET"
        assert str(request.url) == "https://api.home-connect.com/api/homeappliances"

    @pytest.mark.asyncio
    async def test_requests_carry_vendor_media_type_and_bearer(self):
        router, _, recorder = make_router(ok)

        await router.invoke("get_settings", {"haId": "X"})

        request, = recorder.requests
        assert request.url.path == "/api/homeappliances/X/settings"
        assert request.headers["Accept"] == "application/vnd.bsh.sdk.v1+json"
        assert request.headers["Content-Type"] == "application/vnd.bsh.sdk.v1+json"
        assert request.headers["Authorization"] == "Bearer old-token"

    @pytest.mark.asyncio
    async def test_no_authorization_header_without_token(self):
        router, _, recorder = make_router(ok, access_token=None)

        await router.invoke("get_appliance_status", {"haId": "X"})

        request, = recorder.requests
        assert request.url.path == "/api/homeappliances/X/status"
        assert "Authorization" not in request.headers

    @pytest.mark.asyncio
    async def test_programs_path(self):
        router, _, recorder = make_router(ok)

        await router.invoke("get_appliance_programs", {"haId": "BOSCH-123"})

        assert recorder.requests[0].url.path == "/api/homeappliances/BOSCH-123/programs"

    @pytest.mark.asyncio
    async def test_non_json_body_returned_as_text(self):
        router, _, _ = make_router(lambda request: httpx.Response(200, text="plain"))

        response = await router.invoke("get_appliances", {})

        assert response.content[0].text == "plain"


class TestWriteTools:
    """Tests for program and setting changes."""

    @pytest.mark.asyncio
    async def test_start_program_without_options(self):
        router, _, recorder = make_router(ok)

        response = await router.invoke("start_program", {"haId": "X", "programKey": "Cotton"})

        assert response.content[0].text == "Program Cotton started successfully"
        request, = recorder.requests
        assert request.method == "PUT"
        assert request.url.path == "/api/homeappliances/X/programs/active"
        assert json.loads(request.content) == {"data": {"key": "Cotton"}}

    @pytest.mark.asyncio
    async def test_start_program_with_options(self):
        router, _, recorder = make_router(ok)

        await router.invoke(
            "start_program",
            {"haId": "X", "programKey": "Cotton", "options": {"temp": 60}}
        )

        assert json.loads(recorder.requests[0].content) == {
            "data": {"key": "Cotton", "options": {"temp": 60}}
        }

    @pytest.mark.asyncio
    async def test_stop_program(self):
        router, _, recorder = make_router(ok)

        response = await router.invoke("stop_program", {"haId": "X"})

        assert response.content[0].text == "Program stopped successfully"
        request, = recorder.requests
        assert request.method == "DELETE"
        assert request.url.path == "/api/homeappliances/X/programs/active"

    @pytest.mark.asyncio
    async def test_update_setting_preserves_boolean(self):
        router, _, recorder = make_router(ok)

        response = await router.invoke(
            "update_setting",
            {"haId": "X", "settingKey": "BSH.Common.Setting.ChildLock", "value": True}
        )

        assert response.content[0].text == "Setting BSH.Common.Setting.ChildLock updated successfully"
        request, = recorder.requests
        assert request.method == "PUT"
        assert request.url.path == "/api/homeappliances/X/settings/BSH.Common.Setting.ChildLock"
        body = json.loads(request.content)
        assert body == {"data": {"key": "BSH.Common.Setting.ChildLock", "value": True}}
        assert body["data"]["value"] is True

    @pytest.mark.asyncio
    async def test_update_setting_rejects_object_value(self):
        router, _, recorder = make_router(ok)

        with pytest.raises(InvalidArguments):
            await router.invoke(
                "update_setting",
                {"haId": "X", "settingKey": "k", "value": {"nested": 1}}
            )

        assert recorder.requests == []

    @pytest.mark.asyncio
    async def test_missing_required_argument_sends_nothing(self):
        router, _, recorder = make_router(ok)

        with pytest.raises(InvalidArguments, match="programKey"):
            await router.invoke("start_program", {"haId": "X"})

        assert recorder.requests == []


class TestAuthUrl:
    """Tests for get_auth_url."""

    @pytest.mark.asyncio
    async def test_auth_url_contains_encoded_redirect(self):
        router, _, recorder = make_router(ok)

        response = await router.invoke("get_auth_url", {})

        text = response.content[0].text
        assert text.startswith(
            "Authorization URL: https://api.home-connect.com/security/oauth/authorize?"
        )
        assert "client_id=abc" in text
        assert "response_type=code" in text
        assert "redirect_uri=http%3A%2F%2Flocalhost%3A3000%2Fcallback" in text
        assert "Please visit this URL" in text
        assert recorder.requests == []

    @pytest.mark.asyncio
    async def test_auth_url_requires_client_id(self):
        router, _, recorder = make_router(ok, client_id=None)

        with pytest.raises(ConfigurationError):
            await router.invoke("get_auth_url", {})

        assert recorder.requests == []


class TestTokenRefresh:
    """Tests for the 401 handling and the OAuth gateway."""

    @staticmethod
    def expiring_api(token_status: int = 200, token_body=None):
        """API answering 401 to the old token and 200 to any other."""
        if token_body is None:
            token_body = {"access_token": "new-token", "refresh_token": "refresh-2"}

        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path == TOKEN_PATH:
                return httpx.Response(token_status, json=token_body)
            if request.headers.get("Authorization") == "Bearer old-token":
                return httpx.Response(401, json={"error": {"key": "invalid_token"}})
            return ok(request)

        return handler

    @pytest.mark.asyncio
    async def test_refresh_then_ask_caller_to_retry(self):
        router, adapter, recorder = make_router(self.expiring_api())

        with pytest.raises(TokenRefreshed, match="please retry"):
            await router.invoke("get_appliances", {})

        assert len(recorder.to(TOKEN_PATH)) == 1
        assert len(recorder.api_requests) == 1
        assert adapter.credentials.access_token == "new-token"
        assert adapter.credentials.refresh_token == "refresh-2"

        # The caller's retry goes through with the new token
        response = await router.invoke("get_appliances", {})
        assert "SIEMENS-WM14T6H0" in response.content[0].text
        assert recorder.api_requests[-1].headers["Authorization"] == "Bearer new-token"

    @pytest.mark.asyncio
    async def test_refresh_request_form(self):
        router, _, recorder = make_router(self.expiring_api())

        with pytest.raises(TokenRefreshed):
            await router.invoke("stop_program", {"haId": "X"})

        request, = recorder.to(TOKEN_PATH)
        assert request.method == "POST"
        assert parse_qs(request.content.decode()) == {
            "grant_type": ["refresh_token"],
            "refresh_token": ["refresh-1"],
            "client_id": ["abc"],
            "client_secret": ["shh"],
        }

    @pytest.mark.asyncio
    async def test_401_without_refresh_token(self):
        router, adapter, recorder = make_router(self.expiring_api(), refresh_token=None)

        with pytest.raises(AuthenticationFailed, match="401"):
            await router.invoke("get_appliances", {})

        assert recorder.to(TOKEN_PATH) == []
        assert adapter.credentials.access_token == "old-token"

    @pytest.mark.asyncio
    async def test_refresh_failure_reports_authentication_failed(self):
        router, adapter, recorder = make_router(
            self.expiring_api(token_status=400, token_body={"error": "invalid_grant"})
        )

        with pytest.raises(AuthenticationFailed) as exc_info:
            await router.invoke("get_appliances", {})

        assert str(exc_info.value).startswith("Authentication failed: Failed to refresh token")
        assert isinstance(exc_info.value.__cause__, RefreshFailed)
        assert len(recorder.to(TOKEN_PATH)) == 1
        assert adapter.credentials.access_token == "old-token"

    @pytest.mark.asyncio
    async def test_refresh_keeps_refresh_token_when_not_rotated(self):
        router, adapter, _ = make_router(
            self.expiring_api(token_body={"access_token": "new-token"})
        )

        with pytest.raises(TokenRefreshed):
            await router.invoke("get_appliances", {})

        assert adapter.credentials.access_token == "new-token"
        assert adapter.credentials.refresh_token == "refresh-1"

    @pytest.mark.asyncio
    async def test_retry_after_refresh_replays_once(self):
        router, adapter, recorder = make_router(self.expiring_api(), retry_after_refresh=True)

        response = await router.invoke("get_appliances", {})

        assert "SIEMENS-WM14T6H0" in response.content[0].text
        assert len(recorder.to(TOKEN_PATH)) == 1
        assert [r.headers["Authorization"] for r in recorder.api_requests] == [
            "Bearer old-token",
            "Bearer new-token",
        ]

    @pytest.mark.asyncio
    async def test_replay_refreshes_only_once(self):
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path == TOKEN_PATH:
                return httpx.Response(200, json={"access_token": "new-token"})
            return httpx.Response(401, json={"error": {"key": "invalid_token"}})

        router, adapter, recorder = make_router(handler, retry_after_refresh=True)

        with pytest.raises(AuthenticationFailed, match="after token refresh"):
            await router.invoke("get_appliances", {})

        assert len(recorder.to(TOKEN_PATH)) == 1
        assert len(recorder.api_requests) == 2
        assert adapter.credentials.access_token == "new-token"

    @pytest.mark.asyncio
    async def test_gateway_without_refresh_token(self):
        from domains.home_connect.auth import CredentialStore, OAuthGateway

        recorder = Recorder(ok)
        gateway = OAuthGateway(
            make_settings(),
            CredentialStore(access_token="old-token"),
            transport=httpx.MockTransport(recorder)
        )

        with pytest.raises(NoRefreshToken):
            await gateway.refresh()

        assert recorder.requests == []

    @pytest.mark.asyncio
    async def test_gateway_malformed_response(self):
        from domains.home_connect.auth import CredentialStore, OAuthGateway

        credentials = CredentialStore(access_token="old-token", refresh_token="refresh-1")
        gateway = OAuthGateway(
            make_settings(),
            credentials,
            transport=httpx.MockTransport(lambda request: httpx.Response(200, json={}))
        )

        with pytest.raises(RefreshFailed, match="malformed"):
            await gateway.refresh()

        assert credentials.access_token == "old-token"


class TestFailures:
    """Tests for non-auth failures."""

    @pytest.mark.asyncio
    async def test_upstream_error_carries_description(self):
        def handler(request):
            return httpx.Response(
                404,
                json={"error": {"key": "SDK.Error.HomeAppliance.NotFound", "description": "Unknown appliance"}}
            )

        router, _, _ = make_router(handler)

        with pytest.raises(UpstreamError) as exc_info:
            await router.invoke("get_appliance_status", {"haId": "missing"})

        assert exc_info.value.status_code == 404
        assert isinstance(exc_info.value, ExecutionError)
        assert str(exc_info.value) == (
            "Tool execution failed: Request failed with status code 404 (Unknown appliance)"
        )

    @pytest.mark.asyncio
    async def test_transport_error_wrapped(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        router, _, _ = make_router(handler)

        with pytest.raises(ExecutionError) as exc_info:
            await router.invoke("get_appliances", {})

        assert "connection refused" in str(exc_info.value)
        assert isinstance(exc_info.value.__cause__, httpx.ConnectError)


class TestCredentialStore:
    """Tests for the credential store."""

    def test_replace_swaps_both_tokens(self):
        from domains.home_connect.auth import CredentialStore

        store = CredentialStore(access_token="a1", refresh_token="r1")
        store.replace(TokenPair(access_token="a2", refresh_token="r2"))

        assert store.access_token == "a2"
        assert store.refresh_token == "r2"

    def test_replace_keeps_refresh_token(self):
        from domains.home_connect.auth import CredentialStore

        store = CredentialStore(access_token="a1", refresh_token="r1")
        store.replace(TokenPair(access_token="a2"))

        assert store.access_token == "a2"
        assert store.refresh_token == "r1"

    def test_repr_hides_tokens(self):
        from domains.home_connect.auth import CredentialStore

        store = CredentialStore(access_token="secret-access")

        assert "secret-access" not in repr(store)
