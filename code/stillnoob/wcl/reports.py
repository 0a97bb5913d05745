"""Report, fight-table and ranking fetches built on WCLClient."""

import logging
import re
from collections import Counter
from typing import Any

from stillnoob.utils import round_half_up
from stillnoob.wcl.models import (
    BasicStats,
    CharacterReportRef,
    EncounterRanking,
    ExtendedStats,
    ReportActor,
    ReportData,
    ReportFight,
)
from stillnoob.wcl.queries import (
    BASIC_STATS_FIELDS,
    CHARACTER_REPORTS,
    EXTENDED_STATS_FIELDS,
    REPORT_DATA,
    build_batch_query,
    build_encounter_rankings_query,
    with_rate_limit,
)

logger = logging.getLogger(__name__)

# Fights per aliased document; keeps each query's point cost bounded.
BATCH_SIZE = 8

# Stored difficulty label -> WCL difficulty id used by ranking queries
RANKING_DIFFICULTY_IDS = {"LFR": 1, "Normal": 3, "Heroic": 4, "Mythic": 5}

_CODE_RE = re.compile(r"^[a-zA-Z0-9]{16}$")
_URL_RE = re.compile(r"warcraftlogs\.com/reports/([a-zA-Z0-9]{16})")


def extract_report_code(text: str | None) -> str | None:
    """Pull a 16-character report code out of a raw code or a report URL."""
    if not text:
        return None
    stripped = text.strip()
    if _CODE_RE.match(stripped):
        return stripped
    match = _URL_RE.search(stripped)
    return match.group(1) if match else None


def _entries(table: dict[str, Any] | None) -> list[dict[str, Any]]:
    if not table:
        return []
    return (table.get("data") or {}).get("entries") or []


def _death_totals(table: dict[str, Any] | None) -> list[dict[str, Any]]:
    # The Deaths table lists one entry per death, not per player
    counts = Counter(e["name"] for e in _entries(table) if e.get("name"))
    return [{"name": name, "total": total} for name, total in counts.items()]


def _chunks(items: list[int], size: int):
    for i in range(0, len(items), size):
        yield items[i:i + size]


async def fetch_report(wcl, code: str) -> ReportData | None:
    data = await wcl.query(with_rate_limit(REPORT_DATA), variables={"code": code})
    report = (data.get("reportData") or {}).get("report")
    if not report:
        return None

    actors = (report.get("masterData") or {}).get("actors") or []
    return ReportData(
        code=report.get("code", code),
        title=report.get("title") or "",
        start_time=report.get("startTime") or 0,
        end_time=report.get("endTime") or 0,
        region=(report.get("region") or {}).get("name"),
        guild_name=(report.get("guild") or {}).get("name"),
        zone_name=(report.get("zone") or {}).get("name"),
        fights=[ReportFight.model_validate(f) for f in report.get("fights") or []],
        participants=[ReportActor.model_validate(a) for a in actors],
    )


async def fetch_fight_stats(
    wcl, code: str, fight_ids: list[int],
) -> dict[int, BasicStats]:
    """Damage, healing, damage taken and deaths for each fight."""
    result: dict[int, BasicStats] = {}
    for batch in _chunks(fight_ids, BATCH_SIZE):
        data = await wcl.query(
            build_batch_query(BASIC_STATS_FIELDS, batch), variables={"code": code},
        )
        report = (data.get("reportData") or {}).get("report") or {}
        for fid in batch:
            result[fid] = BasicStats(
                damage=_entries(report.get(f"f{fid}_damage")),
                healing=_entries(report.get(f"f{fid}_healing")),
                damage_taken=_entries(report.get(f"f{fid}_damageTaken")),
                deaths=_death_totals(report.get(f"f{fid}_deaths")),
            )
    return result


async def fetch_extended_stats(
    wcl, code: str, fight_ids: list[int],
) -> dict[int, ExtendedStats]:
    """Casts, summary player details, combatant info, interrupts, dispels."""
    result: dict[int, ExtendedStats] = {}
    for batch in _chunks(fight_ids, BATCH_SIZE):
        data = await wcl.query(
            build_batch_query(EXTENDED_STATS_FIELDS, batch), variables={"code": code},
        )
        report = (data.get("reportData") or {}).get("report") or {}
        for fid in batch:
            summary_table = report.get(f"f{fid}_summary") or {}
            events = report.get(f"f{fid}_combatantInfo") or {}
            result[fid] = ExtendedStats(
                casts=_entries(report.get(f"f{fid}_casts")),
                summary=(summary_table.get("data") or {}).get("playerDetails"),
                combatant_info=events.get("data") or [],
                interrupts=_entries(report.get(f"f{fid}_interrupts")),
                dispels=_entries(report.get(f"f{fid}_dispels")),
            )
    return result


async def fetch_character_reports(
    wcl, name: str, realm_slug: str, region: str, limit: int = 5,
) -> list[CharacterReportRef]:
    data = await wcl.query(
        with_rate_limit(CHARACTER_REPORTS),
        variables={
            "name": name,
            "serverSlug": realm_slug,
            "serverRegion": region,
            "limit": limit,
        },
    )
    character = (data.get("characterData") or {}).get("character") or {}
    reports = (character.get("recentReports") or {}).get("data") or []
    return [CharacterReportRef.model_validate(r) for r in reports]


async def fetch_encounter_rankings(
    wcl,
    name: str,
    realm_slug: str,
    region: str,
    encounter_ids: list[int],
    difficulty: str | None,
) -> dict[int, EncounterRanking]:
    """Best parse percentile and kill count per encounter."""
    if not encounter_ids:
        return {}
    difficulty_id = RANKING_DIFFICULTY_IDS.get(difficulty or "", 4)
    data = await wcl.query(
        build_encounter_rankings_query(encounter_ids, difficulty_id),
        variables={"name": name, "serverSlug": realm_slug, "serverRegion": region},
    )
    character = (data.get("characterData") or {}).get("character") or {}

    result: dict[int, EncounterRanking] = {}
    for eid in encounter_ids:
        ranking = character.get(f"e{eid}") or {}
        percents = [
            r["rankPercent"] for r in ranking.get("ranks") or []
            if r.get("rankPercent") is not None
        ]
        if not percents:
            continue
        result[eid] = EncounterRanking(
            encounter_id=eid,
            best_percent=round_half_up(max(percents), 1),
            kills=ranking.get("totalKills") or len(percents),
        )
    return result
