"""Read-side queries shared by the analysis pipeline, scanner and routes."""

import json
import logging
from typing import Any

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from stillnoob.db.models import Fight, FightPerformance, MplusSnapshot, Report
from stillnoob.pipeline.aggregate import PerformanceRecord

logger = logging.getLogger(__name__)

RECORD_COLUMNS = (
    FightPerformance.id,
    Fight.start_time,
    Fight.encounter_id,
    Fight.boss_name,
    Fight.difficulty,
    FightPerformance.dps,
    FightPerformance.hps,
    FightPerformance.dtps,
    FightPerformance.damage_taken,
    FightPerformance.deaths,
    FightPerformance.active_time_pct,
    FightPerformance.cpm,
    FightPerformance.healthstones,
    FightPerformance.combat_potions,
    FightPerformance.flask_uptime_pct,
    FightPerformance.food_buff_active,
    FightPerformance.augment_rune_active,
    FightPerformance.interrupts,
    FightPerformance.dispels,
    FightPerformance.raid_median_dps,
)


async def fetch_performance_records(
    session: AsyncSession,
    character_id: int,
    *,
    since_ms: int,
    boss_id: int | None = None,
    difficulty: str | None = None,
    visibility: str | None = None,
) -> list[PerformanceRecord]:
    """Raid rows for a character since ``since_ms``; Mythic+ is never included."""
    stmt = (
        select(*RECORD_COLUMNS)
        .join(Fight, Fight.id == FightPerformance.fight_id)
        .where(
            FightPerformance.character_id == character_id,
            Fight.start_time >= since_ms,
            Fight.difficulty != "Mythic+",
        )
    )
    if boss_id:
        stmt = stmt.where(Fight.encounter_id == boss_id)
    if difficulty:
        stmt = stmt.where(Fight.difficulty == difficulty)
    if visibility:
        stmt = stmt.join(Report, Report.id == Fight.report_id).where(
            Report.visibility == visibility,
        )

    result = await session.execute(stmt)
    return [PerformanceRecord(**row._asdict()) for row in result]


async def latest_talent_data(
    session: AsyncSession, character_id: int,
) -> list[dict[str, Any]] | None:
    result = await session.execute(
        select(FightPerformance.talent_data)
        .join(Fight, Fight.id == FightPerformance.fight_id)
        .where(
            FightPerformance.character_id == character_id,
            FightPerformance.talent_data.is_not(None),
        )
        .order_by(Fight.start_time.desc())
        .limit(1)
    )
    raw = result.scalar_one_or_none()
    if not raw:
        return None
    try:
        return json.loads(raw)
    except ValueError:
        logger.warning("Stored talent data for character %d is not valid JSON", character_id)
        return None


async def existing_report_codes(session: AsyncSession, codes: list[str]) -> set[str]:
    if not codes:
        return set()
    result = await session.execute(select(Report.wcl_code).where(Report.wcl_code.in_(codes)))
    return set(result.scalars())


async def latest_snapshot(session: AsyncSession, character_id: int) -> MplusSnapshot | None:
    result = await session.execute(
        select(MplusSnapshot)
        .where(MplusSnapshot.character_id == character_id)
        .order_by(MplusSnapshot.snapshot_at.desc(), MplusSnapshot.id.desc())
        .limit(1)
    )
    return result.scalar_one_or_none()


async def list_reports(
    session: AsyncSession, user_id: int | None = None, limit: int = 50,
) -> list[Report]:
    """Newest reports first: the user's own imports, or every public report."""
    stmt = select(Report).order_by(Report.processed_at.desc(), Report.id.desc()).limit(limit)
    if user_id is None:
        stmt = stmt.where(Report.visibility == "public")
    else:
        stmt = stmt.where(or_(Report.imported_by == user_id, Report.visibility == "public"))
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def get_report_by_code(session: AsyncSession, code: str) -> Report | None:
    result = await session.execute(
        select(Report).where(Report.wcl_code == code).options(selectinload(Report.fights))
    )
    return result.scalar_one_or_none()
