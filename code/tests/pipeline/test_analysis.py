import json
from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock, patch

import httpx

from stillnoob.pipeline.aggregate import Summary
from stillnoob.pipeline.analysis import (
    analysis_cache,
    attach_parse_percentiles,
    build_cache_key,
    configure_analysis_cache,
    get_character_performance,
    invalidate_analysis_cache,
)
from stillnoob.wcl.models import EncounterRanking
from tests.conftest import add_character, add_fight, add_performance, add_report


def _ms(dt: datetime) -> int:
    return int(dt.timestamp() * 1000)


async def _seed(session, *, visibility="public"):
    """Two recent heroic kills on two bosses plus one stale fight."""
    character = await add_character(session, "Thrall")
    report = await add_report(session, visibility=visibility)
    now = datetime.now(UTC)
    recent = [
        await add_fight(session, report, start_time=_ms(now - timedelta(days=2)),
                        wcl_fight_id=1),
        await add_fight(session, report, start_time=_ms(now - timedelta(days=1)),
                        wcl_fight_id=2, encounter_id=2898, boss_name="Sikran"),
    ]
    stale = await add_fight(session, report, start_time=_ms(now - timedelta(weeks=20)),
                            wcl_fight_id=3)
    for fight in recent:
        await add_performance(session, fight, character, deaths=1, combat_potions=1,
                              talent_data=json.dumps([{"id": 1}]))
    await add_performance(session, stale, character, dps=1.0)
    await session.commit()
    return character


def test_build_cache_key():
    assert build_cache_key(5, 8) == "5:8:::"
    assert build_cache_key(5, 4, 2902, "Heroic", "public") == "5:4:2902:Heroic:public"


def test_invalidate_only_matching_character():
    analysis_cache.set("5:8:::", 1)
    analysis_cache.set("5:4:2902::", 2)
    analysis_cache.set("51:8:::", 3)
    assert invalidate_analysis_cache(5) == 2
    assert "51:8:::" in analysis_cache


def test_configure_analysis_cache():
    analysis_cache.set("1:8:::", 1)
    configure_analysis_cache(60, 10)
    try:
        assert analysis_cache.ttl_seconds == 60
        assert analysis_cache.max_entries == 10
        assert len(analysis_cache) == 0
    finally:
        configure_analysis_cache(300, 200)


class TestGetCharacterPerformance:
    async def test_aggregates_recent_fights(self, session):
        character = await _seed(session)

        result = await get_character_performance(session, character)

        assert result.summary.total_fights == 2
        assert result.summary.avg_dps == 100_000.0
        assert result.summary.death_rate == 1.0
        assert {b.boss_name for b in result.boss_breakdown} == {"Ulgrax", "Sikran"}
        assert len(result.recent_fights) == 2
        assert result.recent_fights[0].boss == "Sikran"
        assert result.score.total > 0
        assert result.player_level in ("beginner", "intermediate", "advanced")
        assert result.recommendations.primary_tips

    async def test_filters(self, session):
        character = await _seed(session)

        by_boss = await get_character_performance(session, character, boss_id=2898)
        by_difficulty = await get_character_performance(session, character, difficulty="Mythic")

        assert by_boss.summary.total_fights == 1
        assert by_difficulty.summary.total_fights == 0
        assert [t.key for t in by_difficulty.recommendations.primary_tips] == [
            "no_recent_data",
        ]

    async def test_visibility_filter(self, session):
        character = await _seed(session, visibility="private")

        public = await get_character_performance(session, character, visibility="public")
        private = await get_character_performance(session, character, visibility="private")

        assert public.summary.total_fights == 0
        assert private.summary.total_fights == 2

    async def test_window_reaches_old_fights(self, session):
        character = await _seed(session)
        result = await get_character_performance(session, character, weeks=52)
        assert result.summary.total_fights == 3

    async def test_cached_until_invalidated(self, session):
        character = await _seed(session)

        first = await get_character_performance(session, character)
        second = await get_character_performance(session, character)
        invalidate_analysis_cache(character.id)
        third = await get_character_performance(session, character)

        assert second is first
        assert third is not first

    async def test_parse_percentiles_attached(self, session):
        character = await _seed(session)
        rankings = {2902: EncounterRanking(encounter_id=2902, best_percent=62.5, kills=3)}

        with patch(
            "stillnoob.pipeline.analysis.fetch_encounter_rankings",
            new_callable=AsyncMock, return_value=rankings,
        ) as fetch:
            result = await get_character_performance(session, character, wcl=object())

        ulgrax = next(b for b in result.boss_breakdown if b.boss_id == 2902)
        assert ulgrax.parse_percentile == 62.5
        assert ulgrax.parse_kills == 3
        assert result.summary.avg_parse_percentile == 63
        assert sorted(fetch.call_args.args[4]) == [2898, 2902]

    async def test_parse_failure_is_not_fatal(self, session):
        character = await _seed(session)

        with patch(
            "stillnoob.pipeline.analysis.fetch_encounter_rankings",
            new_callable=AsyncMock, side_effect=httpx.ConnectError("down"),
        ):
            result = await get_character_performance(session, character, wcl=object())

        assert result.summary.avg_parse_percentile is None
        assert result.summary.total_fights == 2

    async def test_no_data(self, session):
        character = await add_character(session, "Jaina")
        await session.commit()

        result = await get_character_performance(session, character)

        assert result.summary == Summary()
        assert result.score.total == 0
        assert result.player_level == "beginner"


async def test_attach_parse_percentiles_without_bosses():
    summary = Summary()
    await attach_parse_percentiles(object(), object(), summary, [])
    assert summary.avg_parse_percentile is None
