"""Raider.io public API client (no auth) with a TTL cache in front."""

import logging
from typing import Any

import httpx

from stillnoob.cache import MISSING, TTLCache
from stillnoob.raiderio.models import (
    GearSummary,
    MythicPlusRun,
    MythicPlusScores,
    ProfileInfo,
    RaidProgress,
    RaiderIOProfile,
)
from stillnoob.utils import normalize_name

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://raider.io/api/v1"

PROFILE_FIELDS = ",".join([
    "mythic_plus_scores_by_season:current",
    "mythic_plus_recent_runs",
    "mythic_plus_best_runs:all",
    "raid_progression",
    "gear",
])

BEST_RUNS_LIMIT = 8
RECENT_RUNS_LIMIT = 5


class RaiderIOError(Exception):
    """Raised when Raider.io answers with an unexpected status."""


def cache_key(region: str, realm: str, name: str) -> str:
    return normalize_name(f"{region}:{realm}:{name}")


def _run(raw: dict[str, Any], *, with_timing: bool) -> MythicPlusRun:
    run = MythicPlusRun(
        dungeon=raw.get("dungeon", ""),
        short_name=raw.get("short_name"),
        level=raw.get("mythic_level") or 0,
        upgrades=raw.get("num_keystone_upgrades") or 0,
        score=raw.get("score") or 0,
        url=raw.get("url"),
        completed_at=raw.get("completed_at"),
    )
    if with_timing:
        run.clear_time_ms = raw.get("clear_time_ms")
        run.par_time_ms = raw.get("par_time_ms")
    return run


def transform_profile(raw: dict[str, Any]) -> RaiderIOProfile:
    """Map the raw profile payload onto RaiderIOProfile."""
    seasons = raw.get("mythic_plus_scores_by_season") or []
    current = seasons[0] if seasons else {}
    scores = current.get("scores") or {}
    segments = current.get("segments") or {}

    gear = raw.get("gear")
    return RaiderIOProfile(
        mythic_plus=MythicPlusScores(
            score=scores.get("all") or 0,
            score_color=(segments.get("all") or {}).get("color") or "#ffffff",
            score_dps=scores.get("dps") or 0,
            score_healer=scores.get("healer") or 0,
            score_tank=scores.get("tank") or 0,
        ),
        best_runs=[
            _run(r, with_timing=True)
            for r in (raw.get("mythic_plus_best_runs") or [])[:BEST_RUNS_LIMIT]
        ],
        recent_runs=[
            _run(r, with_timing=False)
            for r in (raw.get("mythic_plus_recent_runs") or [])[:RECENT_RUNS_LIMIT]
        ],
        raid_progression=[
            RaidProgress(
                raid=prog.get("summary"),
                slug=slug,
                normal=prog.get("normal_bosses_killed") or 0,
                heroic=prog.get("heroic_bosses_killed") or 0,
                mythic=prog.get("mythic_bosses_killed") or 0,
                total_bosses=prog.get("total_bosses") or 0,
            )
            for slug, prog in (raw.get("raid_progression") or {}).items()
        ],
        gear=GearSummary(
            item_level=gear.get("item_level_equipped"),
            item_level_total=gear.get("item_level_total"),
        ) if gear else None,
        profile=ProfileInfo(
            name=raw.get("name"),
            realm=raw.get("realm"),
            region=raw.get("region"),
            class_name=raw.get("class"),
            spec=raw.get("active_spec_name"),
            role=raw.get("active_spec_role"),
            race=raw.get("race"),
            faction=raw.get("faction"),
            thumbnail_url=raw.get("thumbnail_url"),
            profile_url=raw.get("profile_url"),
        ),
    )


class RaiderIOClient:
    """Fetches character profiles; unknown characters are cached as None."""

    def __init__(
        self,
        *,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = 10.0,
        cache: TTLCache | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self.cache = cache or TTLCache(900, 500, evict_batch=100)
        self._http = http_client
        self._owns_http = http_client is None

    @classmethod
    def from_settings(cls, settings) -> "RaiderIOClient":
        cfg = settings.raiderio
        return cls(
            base_url=cfg.base_url,
            timeout=cfg.timeout,
            cache=TTLCache(
                cfg.cache_ttl_seconds, cfg.cache_max_entries, evict_batch=100,
            ),
        )

    async def start(self) -> None:
        if self._http is None:
            self._http = httpx.AsyncClient(timeout=self._timeout)

    async def stop(self) -> None:
        if self._http is not None and self._owns_http:
            await self._http.aclose()
            self._http = None

    async def get_character(
        self, region: str, realm: str, name: str,
    ) -> RaiderIOProfile | None:
        key = cache_key(region, realm, name)
        cached = self.cache.get(key)
        if cached is not MISSING:
            return cached

        try:
            raw = await self._fetch_profile(region, realm, name)
        except (RaiderIOError, httpx.HTTPError) as exc:
            logger.error("Raider.io fetch failed for %s: %s", key, exc)
            return None

        profile = transform_profile(raw) if raw is not None else None
        self.cache.set(key, profile)
        return profile

    async def _fetch_profile(
        self, region: str, realm: str, name: str,
    ) -> dict[str, Any] | None:
        if self._http is None:
            await self.start()
        response = await self._http.get(
            f"{self._base_url}/characters/profile",
            params={
                "region": region,
                "realm": realm,
                "name": name,
                "fields": PROFILE_FIELDS,
            },
            headers={"Accept": "application/json"},
        )
        if response.status_code == 400:
            logger.info("Raider.io has no profile for %s-%s (%s)", name, realm, region)
            return None
        if response.status_code >= 400:
            raise RaiderIOError(f"{response.status_code}: {response.text[:200]}")
        return response.json()
