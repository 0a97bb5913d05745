import asyncio
import logging
import time
from typing import Any

logger = logging.getLogger(__name__)


def _clamp_wait(seconds: float, ceiling: int) -> float:
    return max(1, min(seconds, ceiling))


class RateLimiter:
    """WCL point budget, fed from the ``rateLimitData`` of every response.

    Requests pause when spending crosses ``1 - safety_margin`` of the hourly
    limit, or after a 429 until the throttle window passes.
    """

    MAX_SLEEP_SECONDS: int = 3600
    THROTTLE_FALLBACK_SECONDS: int = 60

    def __init__(self, safety_margin: float = 0.1) -> None:
        self.safety_margin = safety_margin
        self.limit_per_hour: int = 3600
        self._points_spent: int = 0
        self._points_reset_in: int = 0
        self._throttled_until: float = 0.0  # time.monotonic() deadline

    @property
    def points_remaining(self) -> int:
        return self.limit_per_hour - self._points_spent

    @property
    def is_safe(self) -> bool:
        return self._points_spent < self.limit_per_hour * (1 - self.safety_margin)

    def update(self, rate_limit_data: dict[str, Any]) -> None:
        self._points_spent = rate_limit_data["pointsSpentThisHour"]
        self.limit_per_hour = rate_limit_data["limitPerHour"]
        self._points_reset_in = rate_limit_data["pointsResetIn"]
        logger.debug(
            "WCL points %d/%d, reset in %ds",
            self._points_spent, self.limit_per_hour, self._points_reset_in,
        )

    def mark_throttled(self, retry_after: int | None = None) -> None:
        """Record a 429; ``Retry-After`` wins over the known reset window."""
        if retry_after is None:
            retry_after = self._points_reset_in or self.THROTTLE_FALLBACK_SECONDS
        wait = _clamp_wait(retry_after, self.MAX_SLEEP_SECONDS)
        self._throttled_until = time.monotonic() + wait
        logger.warning("WCL throttled the client, pausing requests for %ds", wait)

    def _pending_pause(self) -> tuple[float, str] | None:
        remaining = self._throttled_until - time.monotonic()
        if remaining > 0:
            return remaining, "429 throttle"
        if not self.is_safe:
            return _clamp_wait(self._points_reset_in, self.MAX_SLEEP_SECONDS), "points budget"
        return None

    async def wait_if_needed(self) -> None:
        pause = self._pending_pause()
        if pause is None:
            return
        seconds, reason = pause
        logger.warning(
            "Pausing %.0fs for WCL %s (%d/%d points used)",
            seconds, reason, self._points_spent, self.limit_per_hour,
        )
        await asyncio.sleep(seconds)
        self._throttled_until = 0.0


class TokenBucket:
    """Request budget of ``capacity`` calls per hour, refilled continuously.

    Sits in front of the point-based limiter so a burst of imports cannot
    drain the hourly WCL allowance before the background scan runs.
    """

    REFILL_WINDOW_SECONDS: float = 3600.0

    def __init__(self, capacity: int = 280) -> None:
        self.capacity = capacity
        self._tokens: float = float(capacity)
        self._last_refill = time.monotonic()
        self._lock = asyncio.Lock()
        self._waiters = 0

    @property
    def refill_rate(self) -> float:
        """Tokens regained per second."""
        return self.capacity / self.REFILL_WINDOW_SECONDS

    def _refill(self) -> None:
        now = time.monotonic()
        elapsed = now - self._last_refill
        if elapsed > 0:
            self._tokens = min(self.capacity, self._tokens + elapsed * self.refill_rate)
            self._last_refill = now

    @property
    def available(self) -> int:
        self._refill()
        return int(self._tokens)

    async def acquire(self) -> None:
        """Take one token, sleeping until one is available."""
        self._waiters += 1
        try:
            async with self._lock:
                while True:
                    self._refill()
                    if self._tokens >= 1:
                        self._tokens -= 1
                        return
                    wait = (1 - self._tokens) / self.refill_rate
                    logger.warning("Token bucket empty, waiting %.1fs", wait)
                    await asyncio.sleep(wait)
        finally:
            self._waiters -= 1

    def status(self) -> dict:
        return {
            "available": self.available,
            "capacity": self.capacity,
            "waiters": self._waiters,
        }
