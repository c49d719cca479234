"""Tests for the client module."""
import json
from unittest.mock import AsyncMock

import httpx
import pytest

from showstart_monitor.client import SEARCH_PATH, TOKEN_PATH, ActivityQueryClient
from showstart_monitor.exceptions import UpstreamError, UpstreamStatusError
from showstart_monitor.models import Credentials, TransportConfig
from showstart_monitor.signing import SignedRequestBuilder
from showstart_monitor.transport import ResilientTransport

SEARCH_RESPONSE = {
    "state": "1",
    "result": {
        "activityInfo": [
            {
                "activityId": 123,
                "title": "LANY 2025 巡演",
                "showTime": "2025.05.01 20:00",
                "siteName": "Test Venue",
                "otherLabel": [{"name": "支持定时购票"}],
            },
            {"activityId": 7, "title": "Another show"},
        ]
    },
}

TOKEN_RESPONSE = {
    "state": "1",
    "result": {
        "accessToken": {"access_token": "new-access"},
        "idToken": {"id_token": "new-id"},
    },
}


def make_client(handler, credentials=None):
    transport = ResilientTransport(
        SignedRequestBuilder(base_url="https://api.example.com/v3"),
        TransportConfig(),
        client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
        sleep=AsyncMock(),
    )
    return ActivityQueryClient(credentials or Credentials(token="token-1", sign="s"), transport=transport)


class Router:
    """Answers each path with a canned JSON payload and records requests."""

    def __init__(self, routes):
        self.routes = routes
        self.requests = []

    def __call__(self, request):
        self.requests.append(request)
        status, payload = self.routes[request.url.path.replace("/v3", "", 1)]
        return httpx.Response(status, json=payload)


class TestActivityQueryClient:
    """Tests for the ActivityQueryClient class."""

    @pytest.mark.asyncio
    async def test_search_returns_activities_in_order(self):
        router = Router({SEARCH_PATH: (200, SEARCH_RESPONSE)})
        client = make_client(router)

        activities = await client.search("99999", "LANY")

        assert [a.activity_id for a in activities] == [123, 7]
        assert activities[0].supports_timed_purchase is True
        assert activities[0].site_name == "Test Venue"

        sent = json.loads(router.requests[0].content)
        assert sent["cityCode"] == "99999"
        assert sent["keyword"] == "LANY"

    @pytest.mark.asyncio
    async def test_search_empty_result(self):
        router = Router({SEARCH_PATH: (200, {"state": "1", "result": {"activityInfo": []}})})
        client = make_client(router)

        assert await client.search("99999", "nobody") == []

    @pytest.mark.asyncio
    async def test_search_upstream_failure_state(self):
        router = Router({SEARCH_PATH: (200, {"state": "-1", "msg": "请登录"})})
        client = make_client(router)

        with pytest.raises(UpstreamError, match="请登录"):
            await client.search("99999", "LANY")

    @pytest.mark.asyncio
    async def test_search_invalid_json(self):
        client = make_client(lambda request: httpx.Response(200, content=b"<html>"))

        with pytest.raises(UpstreamError, match="Invalid JSON"):
            await client.search("99999", "LANY")

    @pytest.mark.asyncio
    async def test_search_client_error(self):
        router = Router({SEARCH_PATH: (403, {"msg": "forbidden"})})
        client = make_client(router)

        with pytest.raises(UpstreamStatusError):
            await client.search("99999", "LANY")
        assert len(router.requests) == 1

    @pytest.mark.asyncio
    async def test_refresh_token_binds_new_credentials(self):
        router = Router({TOKEN_PATH: (200, TOKEN_RESPONSE), SEARCH_PATH: (200, SEARCH_RESPONSE)})
        original = Credentials(token="token-1", sign="s")
        client = make_client(router, credentials=original)

        await client.refresh_token()
        await client.search("99999", "LANY")

        assert client.credentials.access_token == "new-access"
        assert client.credentials.id_token == "new-id"
        assert original.access_token == ""
        assert router.requests[0].headers["cusat"] == "nil"
        assert router.requests[1].headers["cusat"] == "new-access"
        assert router.requests[1].headers["cusit"] == "new-id"

    @pytest.mark.asyncio
    async def test_refresh_token_without_access_token(self):
        router = Router({TOKEN_PATH: (200, {"state": "1", "result": {}})})
        client = make_client(router)

        with pytest.raises(UpstreamError):
            await client.refresh_token()
        assert client.credentials.access_token == ""

    @pytest.mark.asyncio
    async def test_context_manager_closes_transport(self):
        client = make_client(Router({}))
        client.transport.close = AsyncMock()

        async with client:
            pass

        client.transport.close.assert_awaited_once()
