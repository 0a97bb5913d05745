import json
from unittest.mock import AsyncMock, patch

import httpx
import pytest
import respx

from stillnoob.wcl.auth import WCLAuth
from stillnoob.wcl.client import (
    MAX_RETRIES,
    WCLAPIError,
    WCLClient,
    _parse_retry_after,
    backoff_seconds,
)
from stillnoob.wcl.rate_limiter import RateLimiter, TokenBucket

API_URL = "https://wcl.invalid/api/v2/client"
OAUTH_URL = "https://wcl.invalid/oauth/token"


def _data(data, spent=50):
    return httpx.Response(200, json={
        "data": data,
        "extensions": {"rateLimitData": {
            "pointsSpentThisHour": spent, "limitPerHour": 3600, "pointsResetIn": 3500,
        }},
    })


@pytest.fixture
def limiter():
    return RateLimiter()


@pytest.fixture
def mocked_api():
    """respx router with a working token endpoint; tests add the GraphQL route."""
    with respx.mock(assert_all_called=False) as router:
        router.post(OAUTH_URL, name="oauth").mock(return_value=httpx.Response(
            200, json={"access_token": "tok123", "expires_in": 3600},
        ))
        yield router


@pytest.fixture
def no_sleep():
    with patch("asyncio.sleep", new_callable=AsyncMock) as sleep:
        yield sleep


def _client(limiter, **kwargs) -> WCLClient:
    auth = WCLAuth("abc", "xyz", OAUTH_URL)
    return WCLClient(auth, limiter, api_url=API_URL, **kwargs)


class TestSuccessfulQueries:
    async def test_request_shape(self, mocked_api, limiter):
        gql = mocked_api.post(API_URL).mock(return_value=_data({"ok": True}))

        async with _client(limiter) as wcl:
            await wcl.query("query($code: String!) { t }", variables={"code": "abc123"})

        request = gql.calls.last.request
        assert request.headers["authorization"] == "Bearer tok123"
        assert request.headers["content-type"] == "application/json"
        assert json.loads(request.content) == {
            "query": "query($code: String!) { t }", "variables": {"code": "abc123"},
        }

    async def test_returns_data_and_feeds_limiter(self, mocked_api, limiter):
        mocked_api.post(API_URL).mock(
            return_value=_data({"reportData": {"report": {"title": "Liberation of Undermine"}}}),
        )

        async with _client(limiter) as wcl:
            data = await wcl.query("query { reportData { report { title } } }")

        assert data["reportData"]["report"]["title"] == "Liberation of Undermine"
        assert limiter.points_remaining == 3550

    async def test_graphql_errors_raise(self, mocked_api, limiter):
        mocked_api.post(API_URL).mock(return_value=httpx.Response(200, json={
            "data": None,
            "errors": [{"message": "Unknown report"}, {"message": "Field 'x' not found"}],
        }))

        async with _client(limiter) as wcl:
            with pytest.raises(WCLAPIError, match="Unknown report; Field 'x' not found"):
                await wcl.query("query { x }")

    async def test_requires_context_manager(self, limiter):
        with pytest.raises(RuntimeError, match="context manager"):
            await _client(limiter).query("query { t }")


class TestRetries:
    async def test_gateway_error_backs_off(self, mocked_api, limiter, no_sleep):
        gql = mocked_api.post(API_URL).mock(
            side_effect=[httpx.Response(502), _data({"ok": True})],
        )

        async with _client(limiter) as wcl:
            assert await wcl.query("query { t }") == {"ok": True}

        assert gql.call_count == 2
        no_sleep.assert_awaited_once_with(backoff_seconds(1))

    async def test_persistent_outage_surfaces(self, mocked_api, limiter, no_sleep):
        gql = mocked_api.post(API_URL).mock(return_value=httpx.Response(503))

        async with _client(limiter) as wcl:
            with pytest.raises(httpx.HTTPStatusError):
                await wcl.query("query { t }")

        assert gql.call_count == MAX_RETRIES

    async def test_throttle_waits_for_retry_after(self, mocked_api, limiter, no_sleep):
        mocked_api.post(API_URL).mock(side_effect=[
            httpx.Response(429, headers={"Retry-After": "30"}),
            _data({"ok": True}),
        ])

        async with _client(limiter) as wcl:
            assert await wcl.query("query { t }") == {"ok": True}

        no_sleep.assert_awaited_once()
        assert 0 < no_sleep.call_args[0][0] <= 30

    async def test_unauthorized_refreshes_token(self, mocked_api, limiter):
        mocked_api.post(API_URL).mock(
            side_effect=[httpx.Response(401), _data({"ok": True})],
        )

        async with _client(limiter) as wcl:
            assert await wcl.query("query { t }") == {"ok": True}

        assert mocked_api["oauth"].call_count == 2

    async def test_connect_error_is_retried(self, mocked_api, limiter, no_sleep):
        gql = mocked_api.post(API_URL).mock(
            side_effect=[httpx.ConnectError("refused"), _data({"ok": True})],
        )

        async with _client(limiter) as wcl:
            assert await wcl.query("query { t }") == {"ok": True}

        assert gql.call_count == 2

    async def test_bucket_charged_once_per_query(self, mocked_api, limiter, no_sleep):
        mocked_api.post(API_URL).mock(
            side_effect=[httpx.Response(504), _data({"ok": True})],
        )
        bucket = TokenBucket(capacity=10)

        async with _client(limiter, token_bucket=bucket) as wcl:
            await wcl.query("query { t }")

        assert bucket.available == 9


class TestConnectionPool:
    async def test_borrowed_pool_survives_exit(self, limiter):
        async with httpx.AsyncClient() as shared:
            async with _client(limiter, http_client=shared) as wcl:
                assert wcl._http is shared
            assert not shared.is_closed

    async def test_private_pool_closed_on_exit(self, limiter):
        async with _client(limiter) as wcl:
            private = wcl._http
        assert private.is_closed


@pytest.mark.parametrize(("header", "expected"), [
    ("12", 12),
    (None, None),
    ("Wed, 21 Oct 2015 07:28:00 GMT", None),
])
def test_parse_retry_after(header, expected):
    headers = {"Retry-After": header} if header else {}
    assert _parse_retry_after(httpx.Response(429, headers=headers)) == expected


def test_backoff_doubles_and_caps():
    assert [backoff_seconds(a) for a in (1, 2, 3, 6, 7)] == [4, 8, 16, 120, 120]
