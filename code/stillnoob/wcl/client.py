import asyncio
import logging
from typing import Any

import httpx

from stillnoob.wcl.auth import WCLAuth
from stillnoob.wcl.rate_limiter import RateLimiter, TokenBucket

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "https://www.warcraftlogs.com/api/v2/client"

MAX_RETRIES = 5
MAX_BACKOFF_SECONDS = 120
RETRYABLE_STATUS_CODES = frozenset({502, 503, 504})


class WCLAPIError(Exception):
    """Raised when the WCL GraphQL API returns errors."""


def backoff_seconds(attempt: int) -> int:
    """4s, 8s, 16s ... capped at two minutes."""
    return min(2 ** attempt * 2, MAX_BACKOFF_SECONDS)


class WCLClient:
    """Async GraphQL client for WCL API v2.

    When ``http_client`` is given the connection pool belongs to the caller
    and is left open on exit.
    """

    def __init__(
        self,
        auth: WCLAuth,
        rate_limiter: RateLimiter,
        *,
        api_url: str = DEFAULT_API_URL,
        token_bucket: TokenBucket | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._auth = auth
        self._rate_limiter = rate_limiter
        self._token_bucket = token_bucket
        self._api_url = api_url
        self._shared_http = http_client
        self._http: httpx.AsyncClient | None = None

    async def __aenter__(self) -> "WCLClient":
        self._http = self._shared_http or httpx.AsyncClient(timeout=30.0)
        return self

    async def __aexit__(self, *exc: object) -> None:
        if self._http is not None and self._http is not self._shared_http:
            await self._http.aclose()
        self._http = None

    async def _post(self, payload: dict[str, Any]) -> httpx.Response:
        token = await self._auth.get_token(self._http)
        return await self._http.post(
            self._api_url,
            json=payload,
            headers={"Authorization": f"Bearer {token}", "Content-Type": "application/json"},
        )

    def _unwrap(self, payload: dict[str, Any]) -> dict[str, Any]:
        limits = (payload.get("extensions") or {}).get("rateLimitData")
        if limits:
            self._rate_limiter.update(limits)
        errors = payload.get("errors")
        if errors:
            raise WCLAPIError("; ".join(e["message"] for e in errors))
        return payload["data"]

    async def query(
        self,
        graphql_query: str,
        variables: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Run one GraphQL query.

        One token-bucket token is spent per call, not per attempt. Retries:

        * 401 drops the cached bearer token and tries again at once.
        * 429 marks the limiter throttled; the next attempt waits for the
          reset window (``Retry-After`` when WCL sends one).
        * 502/503/504, connect errors and read timeouts back off
          exponentially.

        The last failure is raised once ``MAX_RETRIES`` attempts are used.
        """
        if self._http is None:
            raise RuntimeError("Use WCLClient as an async context manager")
        if self._token_bucket is not None:
            await self._token_bucket.acquire()

        payload: dict[str, Any] = {"query": graphql_query}
        if variables:
            payload["variables"] = variables

        for attempt in range(1, MAX_RETRIES + 1):
            final = attempt == MAX_RETRIES
            await self._rate_limiter.wait_if_needed()

            try:
                response = await self._post(payload)
            except (httpx.ConnectError, httpx.ReadTimeout) as exc:
                if final:
                    raise
                delay = backoff_seconds(attempt)
                logger.warning(
                    "WCL unreachable (attempt %d/%d), retrying in %ds: %s",
                    attempt, MAX_RETRIES, delay, exc,
                )
                await asyncio.sleep(delay)
                continue

            status = response.status_code
            if status == 401 and not final:
                logger.warning("WCL rejected bearer token, refreshing")
                self._auth.invalidate()
                continue
            if status == 429 and not final:
                self._rate_limiter.mark_throttled(_parse_retry_after(response))
                continue
            if status in RETRYABLE_STATUS_CODES and not final:
                delay = backoff_seconds(attempt)
                logger.warning(
                    "WCL returned %d (attempt %d/%d), retrying in %ds",
                    status, attempt, MAX_RETRIES, delay,
                )
                await asyncio.sleep(delay)
                continue

            response.raise_for_status()
            return self._unwrap(response.json())

        raise RuntimeError("Retry loop exhausted unexpectedly")


def _parse_retry_after(response: httpx.Response) -> int | None:
    """Retry-After in whole seconds; HTTP-date values are ignored."""
    raw = response.headers.get("Retry-After")
    if raw and raw.isdigit():
        return int(raw)
    return None
