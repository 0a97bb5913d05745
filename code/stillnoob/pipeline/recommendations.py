"""Rule-based coaching tips.

Tips are gathered in tiers (talents, per-boss, cross-pattern, role, general),
then sorted by priority: a lower number is shown first. Most rules scale their
priority with the size of the gap they found, so the worst problem leads.
"""

import json
import logging
from dataclasses import dataclass, field
from typing import Any

from stillnoob.pipeline.aggregate import BossStats, Summary, WeekTrend
from stillnoob.pipeline.coaching import get_spec_coaching
from stillnoob.pipeline.constants import TIP_LIMITS
from stillnoob.raiderio.models import RaiderIOProfile
from stillnoob.utils import round_half_up

logger = logging.getLogger(__name__)

DEFAULT_CPM_BASELINE = 30
DEFAULT_TANK_CPM_BASELINE = 28

PARSE_CONTEXT_BOTTOM = (
    "Focus on rotation fundamentals and uptime to climb out of the bottom quartile."
)
PARSE_CONTEXT_BELOW_MEDIAN = (
    "Small rotation and uptime improvements can push you above the median."
)


@dataclass
class Tip:
    category: str
    key: str
    severity: str
    priority: int
    data: dict[str, Any] = field(default_factory=dict)


@dataclass
class Recommendations:
    primary_tips: list[Tip] = field(default_factory=list)
    secondary_tips: list[Tip] = field(default_factory=list)
    player_level: str = "beginner"


def split_tips(tips: list[Tip], player_level: str) -> Recommendations:
    ordered = sorted(tips, key=lambda t: t.priority)
    limit = TIP_LIMITS.get(player_level, 3)
    return Recommendations(ordered[:limit], ordered[limit:], player_level)


def _talent_id(talent: dict[str, Any]) -> Any:
    return talent.get("id") or talent.get("nodeId")


def talent_tips(
    talent_data: list[dict[str, Any]] | None,
    spec_meta: dict[str, Any] | None,
    spec: str | None,
) -> list[Tip]:
    if not isinstance(talent_data, list) or not talent_data:
        return []
    common = (spec_meta or {}).get("common_talents")
    if not common:
        return []
    if isinstance(common, str):
        try:
            common = json.loads(common)
        except ValueError:
            logger.warning("Unreadable common_talents for %s", spec)
            return []
    if not isinstance(common, list) or not common:
        return []

    tips = []
    owned = {tid for t in talent_data if (tid := _talent_id(t))}

    # Only the first (most popular) missing talent is reported
    for meta in common:
        meta_id = _talent_id(meta)
        if meta_id and meta.get("popularity", 0) >= 80 and meta_id not in owned:
            tips.append(Tip("gear", "talent_missing_key", "warning", 7, {
                "talent_name": meta.get("name") or f"Node {meta_id}",
                "meta_pct": round_half_up(meta["popularity"]),
                "spec": spec or "",
            }))
            break

    by_id: dict[Any, dict[str, Any]] = {}
    for meta in common:
        if meta_id := _talent_id(meta):
            by_id.setdefault(meta_id, meta)
    for talent in talent_data:
        tid = _talent_id(talent)
        meta = by_id.get(tid) if tid else None
        if meta is None or meta.get("popularity", 0) >= 20:
            continue
        alternative = next(
            (m for m in common
             if _talent_id(m) not in owned and m.get("popularity", 0) >= 60),
            None,
        )
        tips.append(Tip("gear", "talent_off_meta", "info", 9, {
            "talent_name": talent.get("name") or meta.get("name") or f"Node {tid}",
            "meta_pct": round_half_up(meta["popularity"]),
            "meta_alternative": (alternative or {}).get("name") or "the popular alternative",
            "spec": spec or "",
        }))
        break

    return tips


def boss_tips(summary: Summary, bosses: list[BossStats]) -> list[Tip]:
    tips = []
    eligible = [b for b in bosses if b.fights >= 1]

    for boss in eligible:
        if summary.avg_active_time > 0 and boss.avg_active_time > 0:
            drop = summary.avg_active_time - boss.avg_active_time
            if drop >= 8:
                tips.append(Tip(
                    "performance", "boss_uptime_drop",
                    "critical" if drop >= 15 else "warning",
                    10 - min(8, round_half_up(drop / 2)),
                    {
                        "boss": boss.boss_name,
                        "difficulty": boss.difficulty,
                        "pct": round_half_up(boss.avg_active_time),
                        "avg": round_half_up(summary.avg_active_time),
                        "drop": round_half_up(drop),
                    },
                ))

    for boss in eligible:
        if summary.avg_cpm > 0 and boss.avg_cpm > 0:
            ratio = boss.avg_cpm / summary.avg_cpm
            if ratio < 0.85:
                drop_pct = round_half_up((1 - ratio) * 100)
                tips.append(Tip(
                    "performance", "boss_cpm_drop", "warning",
                    12 - min(6, round_half_up(drop_pct / 5)),
                    {
                        "boss": boss.boss_name,
                        "difficulty": boss.difficulty,
                        "cpm": f"{boss.avg_cpm:.1f}",
                        "avg": f"{summary.avg_cpm:.1f}",
                        "drop_pct": drop_pct,
                    },
                ))

    for boss in eligible:
        if summary.avg_dtps > 0 and boss.avg_dtps > 0:
            ratio = boss.avg_dtps / summary.avg_dtps
            if ratio > 1.3:
                excess_pct = round_half_up((ratio - 1) * 100)
                tips.append(Tip(
                    "survivability", "boss_excess_damage",
                    "critical" if ratio > 1.6 else "warning",
                    10 - min(7, round_half_up(excess_pct / 10)),
                    {
                        "boss": boss.boss_name,
                        "difficulty": boss.difficulty,
                        "dtps": round_half_up(boss.avg_dtps),
                        "avg": round_half_up(summary.avg_dtps),
                        "excess_pct": excess_pct,
                    },
                ))

    for boss in eligible:
        if boss.death_rate > max(summary.death_rate * 2, 0.2):
            multiple = (
                f"{boss.death_rate / summary.death_rate:.1f}"
                if summary.death_rate > 0 else "N/A"
            )
            tips.append(Tip(
                "survivability", "boss_death_spike",
                "critical" if boss.death_rate > 0.4 else "warning",
                8 - min(6, round_half_up(boss.death_rate * 10)),
                {
                    "boss": boss.boss_name,
                    "difficulty": boss.difficulty,
                    "rate": f"{boss.death_rate:.2f}",
                    "avg": f"{summary.death_rate:.2f}",
                    "multiple": multiple,
                    "fights": boss.fights,
                },
            ))

    # Potions skipped on the boss where DPS is weakest
    compared = [b for b in bosses if b.fights >= 1 and b.dps_vs_median > 0]
    if len(compared) >= 2:
        weakest = min(compared, key=lambda b: b.dps_vs_median)
        if weakest.combat_potion_rate < 50:
            best_rate = max(b.combat_potion_rate for b in compared)
            gap = best_rate - weakest.combat_potion_rate
            if gap > 20:
                tips.append(Tip(
                    "consumables", "boss_potion_neglect", "warning",
                    14 - min(5, round_half_up(gap / 10)),
                    {
                        "boss": weakest.boss_name,
                        "difficulty": weakest.difficulty,
                        "rate": round_half_up(weakest.combat_potion_rate),
                        "best_rate": round_half_up(best_rate),
                    },
                ))

    with_dps = [b for b in bosses if b.avg_dps > 0 and b.fights >= 1]
    if len(with_dps) >= 2:
        weakest = min(with_dps, key=lambda b: b.dps_vs_median)
        strongest = max(with_dps, key=lambda b: b.dps_vs_median)
        gap = strongest.dps_vs_median - weakest.dps_vs_median
        if gap > 10:
            tips.append(Tip(
                "performance", "boss_weakest_dps",
                "warning" if gap > 25 else "info",
                8 - min(6, round_half_up(gap / 5)),
                {
                    "weak_boss": weakest.boss_name,
                    "weak_difficulty": weakest.difficulty,
                    "weak_dps_vs_median": round_half_up(weakest.dps_vs_median),
                    "strong_boss": strongest.boss_name,
                    "strong_dps_vs_median": round_half_up(strongest.dps_vs_median),
                    "gap": round_half_up(gap),
                },
            ))

    return tips


def cross_pattern_tips(summary: Summary, bosses: list[BossStats]) -> list[Tip]:
    tips = []
    eligible = [b for b in bosses if b.fights >= 1]

    if len(eligible) >= 2:
        high_dtps_ids = {
            b.boss_id for b in eligible
            if summary.avg_dtps > 0 and b.avg_dtps > summary.avg_dtps * 1.2
        }
        overlap = [b for b in eligible if b.death_rate > 0.15 and b.boss_id in high_dtps_ids]
        if overlap:
            worst = max(overlap, key=lambda b: b.death_rate)
            tips.append(Tip("survivability", "deaths_from_damage", "warning", 15, {
                "boss": worst.boss_name,
                "difficulty": worst.difficulty,
                "death_rate": f"{worst.death_rate:.2f}",
                "dtps": round_half_up(worst.avg_dtps),
                "avg_dtps": round_half_up(summary.avg_dtps),
                "count": len(overlap),
            }))

    if len(eligible) >= 2 and summary.avg_active_time > 0:
        low_uptime = [
            b for b in eligible
            if 0 < b.avg_active_time < summary.avg_active_time - 5
        ]
        low_dps = [b for b in low_uptime if b.dps_vs_median < 100]
        if low_dps:
            worst = min(low_dps, key=lambda b: b.dps_vs_median)
            tips.append(Tip("performance", "uptime_drives_dps", "info", 16, {
                "boss": worst.boss_name,
                "difficulty": worst.difficulty,
                "active_time": round_half_up(worst.avg_active_time),
                "avg_active_time": round_half_up(summary.avg_active_time),
                "dps_vs_median": round_half_up(worst.dps_vs_median),
                "count": len(low_dps),
            }))

    if summary.avg_parse_percentile is not None and summary.dps_vs_median_pct > 0:
        parse = summary.avg_parse_percentile
        median = summary.dps_vs_median_pct
        # A low parse while beating the raid median means the raid is weak
        if parse < 50 and median > 100:
            tips.append(Tip("performance", "parse_vs_raid", "info", 18, {
                "parse": parse, "median": round_half_up(median), "context": "raid_low",
            }))
        if parse >= 75 and median < 105:
            tips.append(Tip("performance", "parse_vs_raid", "info", 18, {
                "parse": parse, "median": round_half_up(median), "context": "raid_strong",
            }))

    if summary.death_rate > 0.15 and summary.healthstone_rate < 30:
        tips.append(Tip("survivability", "defensive_gap", "warning", 17, {
            "death_rate": f"{summary.death_rate:.2f}",
            "healthstone_rate": round_half_up(summary.healthstone_rate),
        }))

    return tips


def role_tips(
    summary: Summary,
    bosses: list[BossStats],
    role: str | None,
    spec: str | None,
    spec_cpm_baseline: float | None,
) -> list[Tip]:
    tips = []

    if role == "Tank":
        if summary.death_rate > 0.2:
            tips.append(Tip(
                "survivability", "tank_death_impact",
                "critical" if summary.death_rate > 0.35 else "warning",
                14 - min(5, round_half_up(summary.death_rate * 10)),
                {"rate": f"{summary.death_rate:.2f}"},
            ))

        baseline = spec_cpm_baseline or DEFAULT_TANK_CPM_BASELINE
        if 0 < summary.avg_cpm < baseline * 0.75:
            tips.append(Tip("performance", "tank_low_cpm_mitigation", "warning", 16, {
                "cpm": f"{summary.avg_cpm:.1f}",
                "expected": baseline,
                "pct": round_half_up(summary.avg_cpm / baseline * 100),
                "spec": spec or "Tank",
            }))

        # First boss over the threshold only
        for boss in bosses:
            if boss.fights < 1 or summary.avg_dtps <= 0 or boss.avg_dtps <= 0:
                continue
            ratio = boss.avg_dtps / summary.avg_dtps
            if ratio > 1.4:
                tips.append(Tip(
                    "survivability", "tank_dtps_outlier",
                    "critical" if ratio > 1.7 else "warning", 15,
                    {
                        "boss": boss.boss_name,
                        "difficulty": boss.difficulty,
                        "dtps": round_half_up(boss.avg_dtps),
                        "excess_pct": round_half_up((ratio - 1) * 100),
                    },
                ))
                break

        if summary.avg_interrupts < 2 and summary.total_fights >= 2:
            tips.append(Tip("utility", "tank_low_interrupts", "info", 19, {
                "avg": f"{summary.avg_interrupts:.1f}", "target": 3,
            }))

    elif role == "Healer":
        if summary.avg_dispels < 1.5 and summary.total_fights >= 3:
            tips.append(Tip("utility", "healer_low_dispels", "warning", 16, {
                "avg": f"{summary.avg_dispels:.1f}", "fights": summary.total_fights,
            }))
        if summary.death_rate > 0.15:
            tips.append(Tip(
                "survivability", "healer_death_impact",
                "critical" if summary.death_rate > 0.3 else "warning",
                14 - min(5, round_half_up(summary.death_rate * 10)),
                {"rate": f"{summary.death_rate:.2f}"},
            ))

    return tips


def general_tips(
    summary: Summary,
    bosses: list[BossStats],
    spec_cpm_baseline: float | None,
    class_name: str | None,
    spec: str | None,
) -> list[Tip]:
    tips = []
    coaching = get_spec_coaching(class_name, spec)

    if summary.death_rate > 0.4:
        rate = f"{summary.death_rate:.2f}"
        if coaching:
            tips.append(Tip("survivability", "spec_deaths_context", "critical", 20, {
                "rate": rate, "spec": spec or "", "defensive_cd": coaching.defensive_cd,
            }))
        else:
            tips.append(Tip("survivability", "high_death_rate", "critical", 20, {"rate": rate}))

    if 0 < summary.avg_active_time < 85:
        severity = "critical" if summary.avg_active_time < 70 else "warning"
        pct = round_half_up(summary.avg_active_time)
        if coaching:
            tips.append(Tip("performance", "spec_uptime_context", severity, 22, {
                "pct": pct, "spec": spec or "", "context": coaching.low_uptime,
            }))
        else:
            tips.append(Tip("performance", "low_active_time", severity, 22, {"pct": pct}))

    baseline = spec_cpm_baseline or DEFAULT_CPM_BASELINE
    if 0 < summary.avg_cpm < baseline * 0.75:
        severity = "critical" if summary.avg_cpm < baseline * 0.55 else "warning"
        cpm = f"{summary.avg_cpm:.1f}"
        if coaching:
            tips.append(Tip("performance", "spec_cpm_context", severity, 23, {
                "cpm": cpm, "spec": spec or "", "expected": baseline,
                "context": coaching.low_cpm,
            }))
        else:
            tips.append(Tip("performance", "low_cpm", severity, 23, {"cpm": cpm}))

    if summary.avg_flask_uptime < 90:
        tips.append(Tip("consumables", "low_flask", "warning", 25, {
            "uptime": round_half_up(summary.avg_flask_uptime),
        }))
    if summary.food_rate < 80:
        tips.append(Tip("consumables", "no_food", "info", 27, {
            "rate": round_half_up(summary.food_rate),
        }))
    if summary.combat_potion_rate < 60:
        tips.append(Tip("consumables", "low_combat_potion", "warning", 26, {
            "rate": round_half_up(summary.combat_potion_rate),
        }))
    if summary.avg_interrupts < 1 and summary.total_fights >= 2:
        tips.append(Tip("utility", "low_interrupts", "info", 28, {
            "avg": f"{summary.avg_interrupts:.1f}",
        }))

    parse = summary.avg_parse_percentile
    if parse is not None:
        if spec and parse < 25:
            tips.append(Tip("performance", "spec_parse_standing", "critical", 21, {
                "parse": parse, "spec": spec, "context": PARSE_CONTEXT_BOTTOM,
            }))
        elif spec and parse < 50:
            tips.append(Tip("performance", "spec_parse_standing", "warning", 24, {
                "parse": parse, "spec": spec, "context": PARSE_CONTEXT_BELOW_MEDIAN,
            }))
        elif parse < 25:
            tips.append(Tip("performance", "low_parse", "critical", 21, {"pct": parse}))
        elif parse < 50:
            tips.append(Tip("performance", "below_avg_parse", "warning", 24, {"pct": parse}))

    if (
        summary.combat_potion_rate >= 70
        and summary.avg_flask_uptime >= 90
        and summary.food_rate >= 80
    ):
        tips.append(Tip("consumables", "good_preparation", "positive", 50))

    with_dps = [b for b in bosses if b.avg_dps > 0 and b.fights >= 1]
    if len(with_dps) >= 2:
        strongest = max(with_dps, key=lambda b: b.dps_vs_median)
        if strongest.dps_vs_median > 110:
            tips.append(Tip("performance", "strong_boss", "positive", 50, {
                "boss": strongest.boss_name,
                "difficulty": strongest.difficulty,
                "dps_vs_median": round_half_up(strongest.dps_vs_median),
            }))

    return tips


def generate_recommendations(
    summary: Summary | None,
    bosses: list[BossStats],
    trends: list[WeekTrend] | None = None,
    player_level: str = "beginner",
    raiderio: RaiderIOProfile | None = None,
    spec_cpm_baseline: float | None = None,
    class_name: str | None = None,
    spec: str | None = None,
    role: str | None = None,
    talent_data: list[dict[str, Any]] | None = None,
    spec_meta: dict[str, Any] | None = None,
) -> Recommendations:
    if summary is None:
        return Recommendations(player_level=player_level)
    if summary.total_fights == 0:
        return Recommendations(
            [Tip("performance", "no_recent_data", "info", 30)], [], player_level,
        )

    tips = [
        *talent_tips(talent_data, spec_meta, spec),
        *boss_tips(summary, bosses),
        *cross_pattern_tips(summary, bosses),
        *role_tips(summary, bosses, role, spec, spec_cpm_baseline),
        *general_tips(summary, bosses, spec_cpm_baseline, class_name, spec),
    ]

    # Nudge towards the weekly vault when the season has no keys at all
    if raiderio is not None and raiderio.score == 0:
        tips.append(Tip("mythicPlus", "no_mplus_activity", "info", 35))

    return split_tips(tips, player_level)


def merge_mplus_tips(recommendations: Recommendations, tips: list[Tip]) -> Recommendations:
    """Fold Mythic+ tips into an existing result and re-split by priority."""
    if not tips:
        return recommendations
    combined = [*recommendations.primary_tips, *recommendations.secondary_tips, *tips]
    return split_tips(combined, recommendations.player_level)
