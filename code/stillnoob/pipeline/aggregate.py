"""Roll stored per-fight rows up into summary, per-boss, weekly and recent views."""

from collections import defaultdict
from dataclasses import dataclass
from statistics import mean

from stillnoob.pipeline.constants import CONSUMABLE_WEIGHTS, WEEKLY_CONSUMABLE_FACTORS
from stillnoob.utils import ms_to_datetime, raid_week_start, round_half_up


@dataclass
class PerformanceRecord:
    """One fight_performances row joined with its fight."""

    id: int
    start_time: int
    encounter_id: int
    boss_name: str
    difficulty: str
    dps: float = 0.0
    hps: float = 0.0
    dtps: float = 0.0
    damage_taken: int = 0
    deaths: int = 0
    active_time_pct: float = 0.0
    cpm: float = 0.0
    healthstones: int = 0
    combat_potions: int = 0
    flask_uptime_pct: float = 0.0
    food_buff_active: bool = False
    augment_rune_active: bool = False
    interrupts: int = 0
    dispels: int = 0
    raid_median_dps: float = 0.0

    @property
    def dps_vs_median(self) -> float:
        if self.raid_median_dps > 0:
            return self.dps / self.raid_median_dps * 100
        return 100.0


@dataclass
class Summary:
    total_fights: int = 0
    avg_dps: float = 0.0
    avg_hps: float = 0.0
    avg_dtps: float = 0.0
    total_deaths: int = 0
    death_rate: float = 0.0
    consumable_score: int = 0
    dps_vs_median_pct: float = 100.0
    healthstone_rate: float = 0.0
    combat_potion_rate: float = 0.0
    avg_flask_uptime: float = 0.0
    food_rate: float = 0.0
    augment_rate: float = 0.0
    avg_interrupts: float = 0.0
    avg_dispels: float = 0.0
    avg_active_time: float = 0.0
    avg_cpm: float = 0.0
    avg_parse_percentile: int | None = None


@dataclass
class BossStats:
    boss_id: int
    boss_name: str
    difficulty: str
    fights: int
    deaths: int
    death_rate: float
    avg_dps: float
    best_dps: float
    avg_dtps: float
    healthstone_rate: float
    combat_potion_rate: float
    interrupts_per_fight: float
    dispels_per_fight: float
    dps_vs_median: float
    avg_active_time: float
    avg_cpm: float
    parse_percentile: float | None = None
    parse_kills: int | None = None


@dataclass
class WeekTrend:
    week_start: str
    fights: int
    avg_dps: float
    avg_hps: float
    avg_deaths: float
    avg_dtps: float
    consumable_score: float
    avg_active_time: float
    avg_cpm: float
    dps_change: int | None = None
    death_change: int | None = None


@dataclass
class RecentFight:
    date: str
    boss: str
    difficulty: str
    dps: float
    deaths: int
    damage_taken: int
    healthstones: int
    combat_potions: int
    interrupts: int
    dispels: int
    dps_vs_median: float
    active_time_pct: float
    cpm: float


def _avg(records: list[PerformanceRecord], attr: str, digits: int = 1) -> float:
    if not records:
        return 0.0
    return round_half_up(mean(getattr(r, attr) for r in records), digits)


def _rate(records: list[PerformanceRecord], predicate) -> float:
    """Share of records matching ``predicate``, as a percentage."""
    if not records:
        return 0.0
    return round_half_up(sum(1 for r in records if predicate(r)) / len(records) * 100, 1)


def _death_rate(records: list[PerformanceRecord]) -> float:
    return round_half_up(sum(r.deaths for r in records) / max(len(records), 1), 2)


def consumable_score(
    healthstone_rate: float,
    combat_potion_rate: float,
    flask_uptime: float,
    food_rate: float,
    augment_rate: float,
) -> int:
    w = CONSUMABLE_WEIGHTS
    return round_half_up(
        healthstone_rate * w["healthstone"]
        + combat_potion_rate * w["combat_potion"]
        + flask_uptime * w["flask"]
        + food_rate * w["food"]
        + augment_rate * w["augment_rune"]
    )


def summarize(records: list[PerformanceRecord]) -> Summary:
    if not records:
        return Summary()

    healthstone_rate = _rate(records, lambda r: r.healthstones > 0)
    combat_potion_rate = _rate(records, lambda r: r.combat_potions > 0)
    avg_flask = _avg(records, "flask_uptime_pct")
    food_rate = _rate(records, lambda r: r.food_buff_active)
    augment_rate = _rate(records, lambda r: r.augment_rune_active)

    return Summary(
        total_fights=len(records),
        avg_dps=_avg(records, "dps"),
        avg_hps=_avg(records, "hps"),
        avg_dtps=_avg(records, "dtps"),
        total_deaths=sum(r.deaths for r in records),
        death_rate=_death_rate(records),
        consumable_score=consumable_score(
            healthstone_rate, combat_potion_rate, avg_flask, food_rate, augment_rate,
        ),
        dps_vs_median_pct=_avg(records, "dps_vs_median") or 100.0,
        healthstone_rate=healthstone_rate,
        combat_potion_rate=combat_potion_rate,
        avg_flask_uptime=avg_flask,
        food_rate=food_rate,
        augment_rate=augment_rate,
        avg_interrupts=_avg(records, "interrupts"),
        avg_dispels=_avg(records, "dispels"),
        avg_active_time=_avg(records, "active_time_pct"),
        avg_cpm=_avg(records, "cpm"),
    )


def boss_breakdown(records: list[PerformanceRecord]) -> list[BossStats]:
    groups: dict[tuple[int, str], list[PerformanceRecord]] = defaultdict(list)
    for r in records:
        groups[(r.encounter_id, r.difficulty)].append(r)

    bosses = [
        BossStats(
            boss_id=encounter_id,
            boss_name=rows[0].boss_name,
            difficulty=difficulty,
            fights=len(rows),
            deaths=sum(r.deaths for r in rows),
            death_rate=_death_rate(rows),
            avg_dps=_avg(rows, "dps"),
            best_dps=round_half_up(max(r.dps for r in rows), 1),
            avg_dtps=_avg(rows, "dtps"),
            healthstone_rate=_rate(rows, lambda r: r.healthstones > 0),
            combat_potion_rate=_rate(rows, lambda r: r.combat_potions > 0),
            interrupts_per_fight=_avg(rows, "interrupts"),
            dispels_per_fight=_avg(rows, "dispels"),
            dps_vs_median=_avg(rows, "dps_vs_median"),
            avg_active_time=_avg(rows, "active_time_pct"),
            avg_cpm=_avg(rows, "cpm"),
        )
        for (encounter_id, difficulty), rows in groups.items()
    ]
    # Difficulty compares as text, so Normal > Mythic > LFR > Heroic
    return sorted(bosses, key=lambda b: (b.difficulty, b.fights), reverse=True)


def _pct_change(current: float, previous: float) -> int:
    if previous > 0:
        return round_half_up((current - previous) / previous * 100)
    return 0


def weekly_trends(records: list[PerformanceRecord]) -> list[WeekTrend]:
    """Thursday-to-Wednesday buckets, oldest first, with week-over-week deltas."""
    weeks: dict[str, list[PerformanceRecord]] = defaultdict(list)
    for r in records:
        week = raid_week_start(ms_to_datetime(r.start_time).date())
        weeks[week.isoformat()].append(r)

    f = WEEKLY_CONSUMABLE_FACTORS
    trends = []
    for week_start in sorted(weeks):
        rows = weeks[week_start]
        n = len(rows)
        score = (
            sum(1 for r in rows if r.healthstones > 0) / n * f["healthstone"]
            + sum(1 for r in rows if r.combat_potions > 0) / n * f["combat_potion"]
            + mean(r.flask_uptime_pct for r in rows) * f["flask"]
            + sum(1 for r in rows if r.food_buff_active) / n * f["food"]
            + sum(1 for r in rows if r.augment_rune_active) / n * f["augment_rune"]
        )
        trends.append(WeekTrend(
            week_start=week_start,
            fights=n,
            avg_dps=_avg(rows, "dps"),
            avg_hps=_avg(rows, "hps"),
            avg_deaths=_death_rate(rows),
            avg_dtps=_avg(rows, "dtps"),
            consumable_score=round_half_up(score, 1),
            avg_active_time=_avg(rows, "active_time_pct"),
            avg_cpm=_avg(rows, "cpm"),
        ))

    for prev, curr in zip(trends, trends[1:]):
        curr.dps_change = _pct_change(curr.avg_dps, prev.avg_dps)
        curr.death_change = _pct_change(curr.avg_deaths, prev.avg_deaths)
    return trends


def recent_fights(records: list[PerformanceRecord], limit: int = 20) -> list[RecentFight]:
    newest = sorted(records, key=lambda r: (r.start_time, r.id), reverse=True)[:limit]
    return [
        RecentFight(
            date=ms_to_datetime(r.start_time).strftime("%Y-%m-%d %H:%M:%S"),
            boss=r.boss_name,
            difficulty=r.difficulty,
            dps=round_half_up(r.dps, 1),
            deaths=r.deaths,
            damage_taken=r.damage_taken,
            healthstones=r.healthstones,
            combat_potions=r.combat_potions,
            interrupts=r.interrupts,
            dispels=r.dispels,
            dps_vs_median=round_half_up(r.dps_vs_median, 1),
            active_time_pct=round_half_up(r.active_time_pct, 1),
            cpm=round_half_up(r.cpm, 1),
        )
        for r in newest
    ]


def consistency_variance(bosses: list[BossStats]) -> float | None:
    """Spread of per-boss average DPS as % of the best, or None under 3 bosses."""
    dps_values = [b.avg_dps for b in bosses if b.avg_dps > 0]
    if len(dps_values) < 3:
        return None
    top = max(dps_values)
    return (top - min(dps_values)) / top * 100
