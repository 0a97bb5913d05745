"""OAuth2 client-credentials tokens for Warcraft Logs and Battle.net."""

import logging
import time

import httpx
from tenacity import (
    retry,
    retry_if_exception_type,
    retry_if_result,
    stop_after_attempt,
    wait_exponential,
)

logger = logging.getLogger(__name__)

# Tokens are renewed this many seconds before the server says they expire
TOKEN_REFRESH_MARGIN = 60


class WCLAuthError(Exception):
    """Raised when WCL authentication fails."""


def _is_server_error(response: httpx.Response) -> bool:
    return response.status_code >= 500


class ClientCredentialsAuth:
    """Cached bearer token obtained with the client-credentials grant.

    Subclasses name the ``service`` for log lines and pick the
    ``error_class`` raised when the provider refuses us.
    """

    service = "OAuth"
    error_class: type[Exception] = RuntimeError

    def __init__(self, client_id: str, client_secret: str, oauth_url: str) -> None:
        self._client_id = client_id
        self._client_secret = client_secret
        self._oauth_url = oauth_url
        self._token: str | None = None
        self._expires_at: float = 0

    @property
    def configured(self) -> bool:
        return bool(self._client_id and self._client_secret)

    def _is_fresh(self) -> bool:
        return self._token is not None and time.monotonic() < self._expires_at

    def invalidate(self) -> None:
        self._token = None
        self._expires_at = 0

    async def get_token(self, client: httpx.AsyncClient) -> str:
        if self._is_fresh():
            return self._token
        if not self.configured:
            raise self.error_class(f"{self.service} credentials not configured")

        response = await self._request_token(client)
        if response.is_error:
            raise self.error_class(f"{response.status_code}: {response.text}")

        payload = response.json()
        lifetime = payload["expires_in"]
        self._token = payload["access_token"]
        self._expires_at = time.monotonic() + lifetime - TOKEN_REFRESH_MARGIN
        logger.info("New %s token acquired (valid %ds)", self.service, lifetime)
        return self._token

    # After the last attempt the 5xx response itself is returned so the
    # caller raises error_class with its status.
    @retry(
        retry=(
            retry_if_result(_is_server_error)
            | retry_if_exception_type((httpx.ConnectError, httpx.ReadTimeout))
        ),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=10),
        retry_error_callback=lambda state: state.outcome.result(),
    )
    async def _request_token(self, client: httpx.AsyncClient) -> httpx.Response:
        return await client.post(
            self._oauth_url,
            data={"grant_type": "client_credentials"},
            auth=(self._client_id, self._client_secret),
        )


class WCLAuth(ClientCredentialsAuth):
    service = "WCL"
    error_class = WCLAuthError
