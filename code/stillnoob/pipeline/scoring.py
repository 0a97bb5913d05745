"""StillNoob Score (0-100) and player level detection."""

from dataclasses import dataclass, field

from stillnoob.pipeline.aggregate import BossStats, Summary, consistency_variance
from stillnoob.pipeline.constants import (
    ADVANCED_THRESHOLD,
    INTERMEDIATE_THRESHOLD,
    LEVEL_DETECTION,
    SCORE_TIERS,
    SCORE_WEIGHTS,
    ScoreTier,
)
from stillnoob.raiderio.models import RaiderIOProfile
from stillnoob.utils import round_half_up

COMPONENTS = ("performance", "survival", "preparation", "utility", "consistency")


@dataclass
class Score:
    total: int
    tier: ScoreTier
    breakdown: dict[str, int] = field(default_factory=dict)


def _clamp(value: float, low: float = 0.0, high: float = 100.0) -> float:
    return min(high, max(low, value))


def tier_for(total: int) -> ScoreTier:
    for tier in SCORE_TIERS:
        if tier.min <= total <= tier.max:
            return tier
    return SCORE_TIERS[0]


def calculate_score(summary: Summary | None, bosses: list[BossStats]) -> Score:
    if summary is None or summary.total_fights == 0:
        return Score(total=0, tier=SCORE_TIERS[0], breakdown=dict.fromkeys(COMPONENTS, 0))

    # 70% of raid median scores 0, 130% scores 100
    dps_ratio = summary.dps_vs_median_pct or 100
    performance = _clamp((dps_ratio - 70) * (100 / 60))

    # Mythic progression tolerates more deaths
    has_mythic = any(b.difficulty == "Mythic" and b.fights > 0 for b in bosses)
    death_ceiling = 0.7 if has_mythic else 0.5
    survival = _clamp((1 - summary.death_rate / death_ceiling) * 100)

    preparation = min(100, summary.consumable_score or 0)
    utility = min(100, ((summary.avg_interrupts or 0) + (summary.avg_dispels or 0)) * 25)

    variance = consistency_variance(bosses)
    consistency = 100 if variance is None else max(0, 100 - variance)

    breakdown = {
        "performance": round_half_up(performance),
        "survival": round_half_up(survival),
        "preparation": round_half_up(preparation),
        "utility": round_half_up(utility),
        "consistency": round_half_up(consistency),
    }
    total = round_half_up(sum(breakdown[k] * SCORE_WEIGHTS[k] for k in COMPONENTS))
    return Score(total=total, tier=tier_for(total), breakdown=breakdown)


def _stepped(value: float, factor, fractions: tuple[float, ...]) -> float:
    """Points for the highest threshold reached; thresholds ascend."""
    for threshold, fraction in reversed(list(zip(factor.thresholds, fractions))):
        if value >= threshold:
            return factor.weight * fraction
    return 0.0


def detect_player_level(
    summary: Summary | None,
    bosses: list[BossStats],
    raiderio: RaiderIOProfile | None = None,
) -> str:
    mp_factor = LEVEL_DETECTION["mythic_plus"]
    mp_score = raiderio.score if raiderio else 0
    progression = raiderio.raid_progression[0] if raiderio and raiderio.raid_progression else None

    if summary is None or summary.total_fights == 0:
        if raiderio is None:
            return "beginner"
        has_mythic_kills = bool(progression and progression.mythic > 0)
        if mp_score >= mp_factor.thresholds[2] or (
            has_mythic_kills and mp_score >= mp_factor.thresholds[1]
        ):
            return "advanced"
        if mp_score >= mp_factor.thresholds[0] or (progression and progression.heroic > 0):
            return "intermediate"
        return "beginner"

    L = LEVEL_DETECTION
    points = 0.0
    points += _stepped(summary.dps_vs_median_pct or 100, L["dps_vs_median"], (0.33, 0.66, 1))

    # Lower death rate is better: thresholds run loose to strict
    death = L["death_rate"]
    dr = summary.death_rate or 0
    if dr <= death.thresholds[2]:
        points += death.weight
    elif dr <= death.thresholds[1]:
        points += death.weight * 0.75
    elif dr <= death.thresholds[0]:
        points += death.weight * 0.4

    points += _stepped(summary.consumable_score or 0, L["consumables"], (0.53, 1))
    points += _stepped(mp_score, mp_factor, (0.33, 0.66, 1))

    difficulty = L["difficulty"]
    if progression and progression.mythic > 0:
        points += difficulty.weight
    elif progression and progression.heroic >= 6:
        points += difficulty.weight * 0.6
    elif progression and progression.heroic > 0:
        points += difficulty.weight * 0.3

    variance = consistency_variance(bosses)
    if variance is not None:
        consistency = L["consistency"]
        threshold = consistency.thresholds[0]
        if variance <= threshold:
            points += consistency.weight
        elif variance <= threshold * 1.5:
            points += consistency.weight * 0.5

    points += _stepped(summary.avg_active_time or 0, L["active_time"], (0.33, 0.66, 1))
    points += _stepped(
        summary.avg_parse_percentile or 0, L["parse_percentile"], (0.33, 0.66, 1),
    )

    if points >= ADVANCED_THRESHOLD:
        return "advanced"
    if points >= INTERMEDIATE_THRESHOLD:
        return "intermediate"
    return "beginner"
