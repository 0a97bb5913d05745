import httpx

from stillnoob.wcl.auth import WCLAuth
from stillnoob.wcl.client import WCLClient
from stillnoob.wcl.rate_limiter import RateLimiter, TokenBucket


class WCLFactory:
    """Hands out ``WCLClient`` instances built on process-wide state.

    Manual imports, analysis parse lookups and the background scanner all
    draw on one OAuth token, one points limiter, one hourly token bucket and
    one connection pool. Call ``start()`` before use and ``stop()`` on
    shutdown; clients created before ``start()`` open a private pool.
    """

    def __init__(self, settings) -> None:
        wcl = settings.wcl
        self._auth = WCLAuth(wcl.client_id, wcl.client_secret.get_secret_value(), wcl.oauth_url)
        self._rate_limiter = RateLimiter()
        self._api_url = wcl.api_url
        self.token_bucket = TokenBucket(wcl.token_bucket_size)
        self._pool: httpx.AsyncClient | None = None

    async def start(self) -> None:
        if self._pool is None:
            self._pool = httpx.AsyncClient(timeout=30.0)

    async def stop(self) -> None:
        pool, self._pool = self._pool, None
        if pool is not None:
            await pool.aclose()

    def __call__(self) -> WCLClient:
        return WCLClient(
            self._auth,
            self._rate_limiter,
            api_url=self._api_url,
            token_bucket=self.token_bucket,
            http_client=self._pool,
        )
