import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import UTC, datetime

import httpx
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from stillnoob.db.models import Character, Fight, FightPerformance, Report
from stillnoob.pipeline.analysis import invalidate_analysis_cache
from stillnoob.pipeline.normalize import map_difficulty, match_players, normalize_fight
from stillnoob.utils import normalize_name
from stillnoob.wcl.auth import WCLAuthError
from stillnoob.wcl.client import WCLAPIError
from stillnoob.wcl.models import ReportData, ReportFight
from stillnoob.wcl.reports import (
    extract_report_code,
    fetch_extended_stats,
    fetch_fight_stats,
    fetch_report,
)

logger = logging.getLogger(__name__)


class DuplicateReportError(Exception):
    """Report code has already been imported."""

    def __init__(self, code: str):
        super().__init__(f"Report {code} already imported")
        self.code = code


class ReportNotFoundError(Exception):
    """WCL returned no report for the code."""

    def __init__(self, code: str):
        super().__init__(f"Report {code} not found on Warcraft Logs")
        self.code = code


class InvalidReportCodeError(ValueError):
    pass


def parse_report_code(text: str | None) -> str:
    code = extract_report_code(text)
    if code is None:
        raise InvalidReportCodeError("Invalid Warcraft Logs URL or report code")
    return code


@dataclass
class ImportResult:
    report_id: int
    code: str
    fights: int
    performances: int
    character_ids: list[int] = field(default_factory=list)
    skipped_fights: list[int] = field(default_factory=list)


async def report_exists(session: AsyncSession, code: str) -> bool:
    result = await session.execute(select(Report.id).where(Report.wcl_code == code))
    return result.scalar_one_or_none() is not None


def build_char_map(characters: Iterable[Character]) -> dict[str, int]:
    """Normalized character name -> character id."""
    return {normalize_name(c.name): c.id for c in characters}


async def load_char_map(session: AsyncSession, user_id: int | None = None) -> dict[str, int]:
    """Char map over one user's characters, or every registered character."""
    stmt = select(Character)
    if user_id is not None:
        stmt = stmt.where(Character.user_id == user_id)
    result = await session.execute(stmt)
    return build_char_map(result.scalars().all())


def build_report(
    data: ReportData,
    *,
    imported_by: int | None,
    source: str,
    visibility: str,
) -> Report:
    return Report(
        wcl_code=data.code,
        title=data.title,
        start_time=data.start_time,
        end_time=data.end_time,
        region=data.region,
        guild_name=data.guild_name,
        zone_name=data.zone_name,
        participants_count=len(data.participants),
        imported_by=imported_by,
        import_source=source,
        visibility=visibility,
    )


def build_fight(report_start: int, fight: ReportFight) -> Fight:
    # Fight times from WCL are offsets into the report
    return Fight(
        wcl_fight_id=fight.id,
        encounter_id=fight.encounter_id,
        boss_name=fight.name,
        difficulty=map_difficulty(fight.difficulty),
        is_kill=bool(fight.kill),
        start_time=report_start + fight.start_time,
        end_time=report_start + fight.end_time,
        duration_ms=fight.duration_ms,
    )


async def import_report(
    wcl,
    session: AsyncSession,
    code: str,
    *,
    char_map: dict[str, int],
    imported_by: int | None = None,
    source: str = "manual",
    visibility: str = "public",
) -> ImportResult:
    """Fetch a WCL report and persist it with per-character performance rows.

    The report and its encounter fights are committed first, so a concurrent
    import of the same code fails on the unique ``wcl_code`` constraint and
    surfaces as ``DuplicateReportError``. Performance rows are committed after
    the stats fetch; a fight whose tables are missing is skipped.
    """
    if await report_exists(session, code):
        raise DuplicateReportError(code)

    data = await fetch_report(wcl, code)
    if data is None:
        raise ReportNotFoundError(code)

    report = build_report(data, imported_by=imported_by, source=source, visibility=visibility)
    pairs = [(f, build_fight(data.start_time, f)) for f in data.encounter_fights]
    report.fights = [fight for _, fight in pairs]
    session.add(report)
    try:
        await session.flush()
        report_id = report.id
        db_fight_ids = {f.id: fight.id for f, fight in pairs}
        await session.commit()
    except IntegrityError:
        await session.rollback()
        if await report_exists(session, code):
            raise DuplicateReportError(code) from None
        raise

    result = ImportResult(report_id=report_id, code=code, fights=len(pairs), performances=0)
    if not pairs:
        logger.info("Imported report %s: no encounter fights", code)
        return result

    fight_ids = [f.id for f, _ in pairs]
    try:
        basic = await fetch_fight_stats(wcl, code, fight_ids)
        extended = await fetch_extended_stats(wcl, code, fight_ids)
    except (WCLAPIError, WCLAuthError, httpx.HTTPError) as exc:
        logger.warning("Stats fetch failed for report %s: %s", code, exc)
        result.skipped_fights = fight_ids
        return result

    matched: set[int] = set()
    for wcl_fight, _ in pairs:
        fight_id = db_fight_ids[wcl_fight.id]
        if wcl_fight.id not in basic or wcl_fight.id not in extended:
            logger.warning("No stats for fight %d of report %s, skipping", wcl_fight.id, code)
            result.skipped_fights.append(wcl_fight.id)
            continue
        normalization = normalize_fight(
            wcl_fight.duration_ms, basic[wcl_fight.id], extended[wcl_fight.id],
        )
        for row in match_players(normalization, char_map):
            session.add(FightPerformance(fight_id=fight_id, **row))
            matched.add(row["character_id"])
            result.performances += 1

    if matched:
        await session.execute(
            update(Character)
            .where(Character.id.in_(matched))
            .values(last_synced_at=datetime.now(UTC))
        )
    await session.commit()

    result.character_ids = sorted(matched)
    for character_id in result.character_ids:
        invalidate_analysis_cache(character_id)

    logger.info(
        "Imported report %s: %d fights, %d performances, %d characters",
        code, result.fights, result.performances, len(matched),
    )
    return result

