"""Character analysis: load rows, aggregate, score and recommend, with a TTL cache."""

import logging
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Any

import httpx
from sqlalchemy.ext.asyncio import AsyncSession

from stillnoob.cache import MISSING, TTLCache
from stillnoob.db.models import Character
from stillnoob.db.queries import fetch_performance_records, latest_talent_data
from stillnoob.pipeline.aggregate import (
    BossStats,
    RecentFight,
    Summary,
    WeekTrend,
    boss_breakdown,
    recent_fights,
    summarize,
    weekly_trends,
)
from stillnoob.pipeline.coaching import get_spec_role
from stillnoob.pipeline.recommendations import Recommendations, generate_recommendations
from stillnoob.pipeline.scoring import Score, calculate_score, detect_player_level
from stillnoob.raiderio.models import RaiderIOProfile
from stillnoob.utils import round_half_up
from stillnoob.wcl.auth import WCLAuthError
from stillnoob.wcl.client import WCLAPIError
from stillnoob.wcl.reports import fetch_encounter_rankings

logger = logging.getLogger(__name__)

DEFAULT_WEEKS = 8
RECENT_FIGHTS_LIMIT = 20

analysis_cache = TTLCache(ttl_seconds=300, max_entries=200)


@dataclass
class CharacterPerformance:
    summary: Summary
    score: Score
    player_level: str
    boss_breakdown: list[BossStats]
    weekly_trends: list[WeekTrend]
    recent_fights: list[RecentFight]
    recommendations: Recommendations


def configure_analysis_cache(ttl_seconds: float, max_entries: int) -> None:
    analysis_cache.ttl_seconds = ttl_seconds
    analysis_cache.max_entries = max_entries
    analysis_cache.clear()


def build_cache_key(
    character_id: int,
    weeks: int,
    boss_id: int | None = None,
    difficulty: str | None = None,
    visibility: str | None = None,
) -> str:
    parts = (weeks, boss_id, difficulty, visibility)
    return f"{character_id}:" + ":".join("" if p is None else str(p) for p in parts)


def invalidate_analysis_cache(character_id: int) -> int:
    dropped = analysis_cache.delete_prefix(f"{character_id}:")
    if dropped:
        logger.info("Invalidated %d cached analyses for character %d", dropped, character_id)
    return dropped


async def attach_parse_percentiles(
    wcl, character: Character, summary: Summary, bosses: list[BossStats],
) -> None:
    """Fill per-boss best parses and the summary average from WCL rankings.

    Rankings are queried at the difficulty of the first boss in the breakdown.
    """
    if not bosses:
        return
    encounter_ids = list(dict.fromkeys(b.boss_id for b in bosses))
    rankings = await fetch_encounter_rankings(
        wcl,
        character.name,
        character.realm_slug,
        character.region,
        encounter_ids,
        bosses[0].difficulty,
    )
    for boss in bosses:
        ranking = rankings.get(boss.boss_id)
        if ranking:
            boss.parse_percentile = ranking.best_percent
            boss.parse_kills = ranking.kills

    parses = [b.parse_percentile for b in bosses if b.parse_percentile is not None]
    if parses:
        summary.avg_parse_percentile = round_half_up(sum(parses) / len(parses))


async def get_character_performance(
    session: AsyncSession,
    character: Character,
    *,
    weeks: int = DEFAULT_WEEKS,
    boss_id: int | None = None,
    difficulty: str | None = None,
    visibility: str | None = None,
    wcl=None,
    raiderio: RaiderIOProfile | None = None,
    spec_meta: dict[str, Any] | None = None,
    spec_cpm_baseline: float | None = None,
    recent_limit: int = RECENT_FIGHTS_LIMIT,
) -> CharacterPerformance:
    key = build_cache_key(character.id, weeks, boss_id, difficulty, visibility)
    cached = analysis_cache.get(key)
    if cached is not MISSING:
        return cached

    cutoff = datetime.now(UTC) - timedelta(weeks=weeks)
    records = await fetch_performance_records(
        session,
        character.id,
        since_ms=int(cutoff.timestamp() * 1000),
        boss_id=boss_id,
        difficulty=difficulty,
        visibility=visibility,
    )

    summary = summarize(records)
    bosses = boss_breakdown(records)
    trends = weekly_trends(records)
    recent = recent_fights(records, recent_limit)

    if wcl is not None and bosses:
        try:
            await attach_parse_percentiles(wcl, character, summary, bosses)
        except (WCLAPIError, WCLAuthError, httpx.HTTPError) as exc:
            logger.warning("Failed to fetch parse percentiles for %s: %s", character.name, exc)

    talents = await latest_talent_data(session, character.id) if records else None

    score = calculate_score(summary, bosses)
    level = detect_player_level(summary, bosses, raiderio)
    recommendations = generate_recommendations(
        summary,
        bosses,
        trends,
        player_level=level,
        raiderio=raiderio,
        spec_cpm_baseline=spec_cpm_baseline,
        class_name=character.class_name,
        spec=character.spec,
        role=get_spec_role(character.class_name, character.spec),
        talent_data=talents,
        spec_meta=spec_meta,
    )

    result = CharacterPerformance(
        summary=summary,
        score=score,
        player_level=level,
        boss_breakdown=bosses,
        weekly_trends=trends,
        recent_fights=recent,
        recommendations=recommendations,
    )
    analysis_cache.set(key, result)
    return result
