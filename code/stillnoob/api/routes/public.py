"""Read-only character pages that need no API key.

Only reports marked ``public`` count towards the numbers shown here.
"""

import logging
from dataclasses import asdict
from datetime import UTC, datetime

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from stillnoob.api.deps import get_db, get_raiderio, get_wcl_factory
from stillnoob.api.routes.analysis import analyze_character, snapshot_to_dict
from stillnoob.pipeline.characters import find_character
from stillnoob.pipeline.snapshots import score_history

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/public", tags=["public"])

SUMMARY_FIELDS = (
    "total_fights", "avg_dps", "avg_hps", "death_rate", "consumable_score",
    "dps_vs_median_pct", "avg_active_time", "avg_cpm", "avg_parse_percentile",
)
BOSS_FIELDS = (
    "boss_name", "difficulty", "fights", "avg_dps", "best_dps", "death_rate",
    "dps_vs_median", "parse_percentile", "avg_active_time", "avg_cpm",
)


async def _lookup(session: AsyncSession, region: str, realm: str, name: str):
    character = await find_character(session, region, realm, name)
    if character is None:
        raise HTTPException(status_code=404, detail="Character not found")
    return character


@router.get("/character/{region}/{realm}/{name}")
async def public_character(
    region: str,
    realm: str,
    name: str,
    weeks: int | None = Query(None, ge=1, le=52),
    session: AsyncSession = Depends(get_db),
    wcl_factory=Depends(get_wcl_factory),
    raiderio=Depends(get_raiderio),
):
    try:
        character = await _lookup(session, region, realm, name)
        result = await analyze_character(
            session, character,
            weeks=weeks, visibility="public",
            wcl_factory=wcl_factory, raiderio=raiderio,
        )
        perf = result.performance
        mplus = asdict(result.mplus) if result.mplus else None
        return {
            "character": {
                "name": character.name,
                "realm": character.realm,
                "realm_slug": character.realm_slug,
                "region": character.region,
                "class_name": character.class_name,
                "spec": character.spec,
                "raid_role": character.raid_role,
            },
            "score": asdict(perf.score),
            "summary": {f: getattr(perf.summary, f) for f in SUMMARY_FIELDS},
            "boss_breakdown": [
                {f: getattr(b, f) for f in BOSS_FIELDS} for b in perf.boss_breakdown
            ],
            "raiderio": result.profile.model_dump() if result.profile else None,
            "mplus_analysis": mplus,
            "last_updated": datetime.now(UTC).isoformat(),
        }
    except HTTPException:
        raise
    except Exception:
        logger.exception("Public character %s-%s (%s) failed", name, realm, region)
        raise HTTPException(status_code=500, detail="Internal server error") from None


@router.get("/character/{region}/{realm}/{name}/mplus-history")
async def public_mplus_history(
    region: str,
    realm: str,
    name: str,
    weeks: int = Query(12, ge=1, le=104),
    session: AsyncSession = Depends(get_db),
):
    try:
        character = await _lookup(session, region, realm, name)
        history = await score_history(session, character.id, weeks)
        return {
            "snapshots": [snapshot_to_dict(s) for s in history.snapshots],
            "trend": asdict(history.trend) if history.trend else None,
        }
    except HTTPException:
        raise
    except Exception:
        logger.exception("Public M+ history %s-%s (%s) failed", name, realm, region)
        raise HTTPException(status_code=500, detail="Internal server error") from None
