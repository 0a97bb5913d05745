"""Character analysis, overview and Mythic+ history endpoints."""

import contextlib
import logging
from dataclasses import asdict, dataclass

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from stillnoob.api.deps import get_db, get_raiderio, get_wcl_factory
from stillnoob.api.models import CharacterInfo
from stillnoob.config import get_settings
from stillnoob.db.models import Character
from stillnoob.pipeline.analysis import CharacterPerformance, get_character_performance
from stillnoob.pipeline.characters import get_character, list_characters
from stillnoob.pipeline.constants import Visibility
from stillnoob.pipeline.mythic_plus import MythicPlusAnalysis, analyze_mythic_plus, mplus_tips
from stillnoob.pipeline.recommendations import Recommendations, merge_mplus_tips
from stillnoob.pipeline.snapshots import save_score_snapshot, score_history
from stillnoob.raiderio.models import RaiderIOProfile
from stillnoob.utils import ensure_utc

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/analysis", tags=["analysis"])


def snapshot_to_dict(snapshot) -> dict:
    return {
        "id": snapshot.id,
        "score": snapshot.score,
        "score_dps": snapshot.score_dps,
        "score_healer": snapshot.score_healer,
        "score_tank": snapshot.score_tank,
        "item_level": snapshot.item_level,
        "best_run_level": snapshot.best_run_level,
        "total_dungeons": snapshot.total_dungeons,
        "snapshot_at": (
            ensure_utc(snapshot.snapshot_at).isoformat() if snapshot.snapshot_at else None
        ),
    }


@dataclass
class CharacterAnalysis:
    performance: CharacterPerformance
    profile: RaiderIOProfile | None
    mplus: MythicPlusAnalysis | None
    recommendations: Recommendations


async def analyze_character(
    session: AsyncSession,
    character: Character,
    *,
    weeks: int | None,
    boss_id: int | None = None,
    difficulty: str | None = None,
    visibility: str | None = None,
    wcl_factory=None,
    raiderio=None,
) -> CharacterAnalysis:
    """Performance, Raider.io profile and M+ analysis for one character.

    A Raider.io rating also records a score snapshot; a failed snapshot
    only logs a warning.
    """
    settings = get_settings()
    profile = None
    if raiderio is not None:
        profile = await raiderio.get_character(
            character.region, character.realm_slug, character.name,
        )

    async with contextlib.AsyncExitStack() as stack:
        wcl = await stack.enter_async_context(wcl_factory()) if wcl_factory else None
        performance = await get_character_performance(
            session,
            character,
            weeks=weeks or settings.analysis.default_weeks,
            boss_id=boss_id,
            difficulty=difficulty,
            visibility=visibility,
            wcl=wcl,
            raiderio=profile,
            recent_limit=settings.analysis.recent_fights_limit,
        )

    mplus = analyze_mythic_plus(profile)
    recommendations = merge_mplus_tips(performance.recommendations, mplus_tips(mplus))

    if profile is not None and profile.score:
        try:
            await save_score_snapshot(session, character.id, profile)
            await session.commit()
        except Exception:
            await session.rollback()
            logger.warning("Failed to save M+ snapshot for %s", character.name)

    return CharacterAnalysis(performance, profile, mplus, recommendations)


@router.get("/character/{character_id}")
async def character_analysis(
    character_id: int,
    weeks: int | None = Query(None, ge=1, le=52),
    boss_id: int | None = None,
    difficulty: str | None = None,
    visibility: Visibility | None = None,
    user_id: int | None = None,
    session: AsyncSession = Depends(get_db),
    wcl_factory=Depends(get_wcl_factory),
    raiderio=Depends(get_raiderio),
):
    try:
        character = await get_character(session, character_id, user_id)
        if character is None:
            raise HTTPException(status_code=404, detail="Character not found")

        result = await analyze_character(
            session, character,
            weeks=weeks, boss_id=boss_id, difficulty=difficulty, visibility=visibility,
            wcl_factory=wcl_factory, raiderio=raiderio,
        )

        body = asdict(result.performance)
        body["recommendations"] = asdict(result.recommendations)
        body["raiderio"] = result.profile.model_dump() if result.profile else None
        body["mplus_analysis"] = asdict(result.mplus) if result.mplus else None
        return body
    except HTTPException:
        raise
    except Exception:
        logger.exception("Analysis failed for character %d", character_id)
        raise HTTPException(status_code=500, detail="Internal server error") from None


@router.get("/overview")
async def overview(
    weeks: int | None = Query(None, ge=1, le=52),
    user_id: int | None = None,
    session: AsyncSession = Depends(get_db),
):
    settings = get_settings()
    try:
        characters = await list_characters(session, user_id)
        results = []
        for character in characters:
            data = await get_character_performance(
                session,
                character,
                weeks=weeks or settings.analysis.default_weeks,
                recent_limit=settings.analysis.recent_fights_limit,
            )
            results.append({
                "character": CharacterInfo.model_validate(character).model_dump(mode="json"),
                "summary": asdict(data.summary),
                "score": asdict(data.score),
                "total_fights": data.summary.total_fights,
            })
        return {"characters": results}
    except Exception:
        logger.exception("Overview failed")
        raise HTTPException(status_code=500, detail="Internal server error") from None


@router.get("/character/{character_id}/mplus-history")
async def mplus_history(
    character_id: int,
    weeks: int = Query(12, ge=1, le=104),
    user_id: int | None = None,
    session: AsyncSession = Depends(get_db),
):
    try:
        character = await get_character(session, character_id, user_id)
        if character is None:
            raise HTTPException(status_code=404, detail="Character not found")
        history = await score_history(session, character.id, weeks)
        return {
            "snapshots": [snapshot_to_dict(s) for s in history.snapshots],
            "trend": asdict(history.trend) if history.trend else None,
        }
    except HTTPException:
        raise
    except Exception:
        logger.exception("M+ history failed for character %d", character_id)
        raise HTTPException(status_code=500, detail="Internal server error") from None
