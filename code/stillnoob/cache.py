"""Small in-process TTL cache used for analysis results and Raider.io profiles."""

import time
from collections.abc import Callable
from typing import Any

MISSING = object()


class TTLCache:
    """Insertion-ordered cache with per-entry expiry and a size cap.

    Once the cap is exceeded the ``evict_batch`` oldest entries are dropped.
    ``None`` is a valid cached value; absence is signalled with ``MISSING``.
    """

    def __init__(
        self,
        ttl_seconds: float,
        max_entries: int,
        *,
        evict_batch: int = 1,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.ttl_seconds = ttl_seconds
        self.max_entries = max_entries
        self.evict_batch = max(1, evict_batch)
        self._clock = clock
        self._entries: dict[str, tuple[float, Any]] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: str) -> bool:
        return self.get(key) is not MISSING

    def get(self, key: str, default: Any = MISSING) -> Any:
        entry = self._entries.get(key)
        if entry is None:
            return default
        stored_at, value = entry
        if self._clock() - stored_at > self.ttl_seconds:
            del self._entries[key]
            return default
        return value

    def set(self, key: str, value: Any) -> None:
        self._entries.pop(key, None)
        self._entries[key] = (self._clock(), value)
        if len(self._entries) > self.max_entries:
            for old_key in list(self._entries)[:self.evict_batch]:
                del self._entries[old_key]

    def delete_prefix(self, prefix: str) -> int:
        keys = [k for k in self._entries if k.startswith(prefix)]
        for key in keys:
            del self._entries[key]
        return len(keys)

    def clear(self) -> None:
        self._entries.clear()
