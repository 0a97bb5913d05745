"""Mythic+ analysis over a Raider.io profile: balance, timing, upgrades, targets."""

from dataclasses import dataclass, field

from stillnoob.pipeline.constants import MPLUS_BRACKETS, MplusBracket
from stillnoob.pipeline.recommendations import Tip
from stillnoob.raiderio.models import MythicPlusRun, MythicPlusScores, RaiderIOProfile
from stillnoob.utils import round_half_up

# Timing as % of par: above is a near miss, below is comfortably timed
TIGHT_TIMING_PCT = 95
EASY_TIMING_PCT = 75

MAX_PUSH_TARGETS = 3


@dataclass
class DungeonLevel:
    dungeon: str
    short_name: str | None
    level: int
    upgrades: int
    score: float


@dataclass
class DungeonAnalysis:
    dungeon_levels: list[DungeonLevel] = field(default_factory=list)
    strong_dungeons: list[DungeonLevel] = field(default_factory=list)
    weak_dungeons: list[DungeonLevel] = field(default_factory=list)
    average_level: float = 0
    level_spread: int = 0
    max_level: int | None = None
    min_level: int | None = None


@dataclass
class TimedRun:
    dungeon: str
    short_name: str | None
    level: int
    timing_pct: int
    clear_time_ms: int
    par_time_ms: int
    upgrades: int = 0


@dataclass
class TimingAnalysis:
    avg_timing_pct: int = 0
    tight_runs: list[TimedRun] = field(default_factory=list)
    easy_runs: list[TimedRun] = field(default_factory=list)
    runs: list[TimedRun] = field(default_factory=list)


@dataclass
class UpgradeAnalysis:
    avg_upgrades: float = 0
    untimed: int = 0
    single_upgrades: int = 0
    double_upgrades: int = 0
    triple_upgrades: int = 0
    total: int = 0


@dataclass
class PushTarget:
    dungeon: str
    short_name: str | None
    current_level: int
    target_level: int
    gap: int
    reason: str  # "large_gap" or "moderate_gap"


@dataclass
class RoleScore:
    role: str
    score: float


@dataclass
class ScoreAnalysis:
    score: float
    color: str
    current_bracket: MplusBracket
    next_bracket: MplusBracket | None
    main_role: RoleScore
    off_roles: list[RoleScore]


@dataclass
class MythicPlusAnalysis:
    dungeon_analysis: DungeonAnalysis
    score_analysis: ScoreAnalysis
    timing_analysis: TimingAnalysis
    upgrade_analysis: UpgradeAnalysis
    push_targets: list[PushTarget]


def calculate_upgrades(duration_ms: int, par_time_ms: int | None) -> int:
    """Keystone upgrades earned: timed is +1, 20% under par +2, 40% under +3."""
    if not par_time_ms or duration_ms > par_time_ms:
        return 0
    ratio = duration_ms / par_time_ms
    if ratio <= 0.6:
        return 3
    if ratio <= 0.8:
        return 2
    return 1


def bracket_for(
    score: float, brackets: tuple[MplusBracket, ...] = MPLUS_BRACKETS,
) -> MplusBracket:
    """Highest bracket whose minimum the rating reaches; ratings are fractional."""
    current = brackets[0]
    for bracket in brackets:
        if score >= bracket.min:
            current = bracket
    return current


def score_color(score: float, brackets: tuple[MplusBracket, ...] = MPLUS_BRACKETS) -> str:
    return bracket_for(score, brackets).color


def analyze_dungeon_balance(best_runs: list[MythicPlusRun]) -> DungeonAnalysis:
    if not best_runs:
        return DungeonAnalysis()

    best: dict[str, MythicPlusRun] = {}
    for run in best_runs:
        if run.dungeon not in best or run.level > best[run.dungeon].level:
            best[run.dungeon] = run

    levels = sorted(
        (
            DungeonLevel(name, run.short_name, run.level, run.upgrades, run.score)
            for name, run in best.items()
        ),
        key=lambda d: d.level,
        reverse=True,
    )
    values = [d.level for d in levels]
    average = sum(values) / len(values)
    return DungeonAnalysis(
        dungeon_levels=levels,
        strong_dungeons=[d for d in levels if d.level >= average + 1],
        weak_dungeons=[d for d in levels if d.level <= average - 1],
        average_level=average,
        level_spread=max(values) - min(values),
        max_level=max(values),
        min_level=min(values),
    )


def analyze_timing(best_runs: list[MythicPlusRun]) -> TimingAnalysis:
    runs = [
        TimedRun(
            dungeon=r.dungeon,
            short_name=r.short_name,
            level=r.level,
            timing_pct=round_half_up(r.clear_time_ms / r.par_time_ms * 100),
            clear_time_ms=r.clear_time_ms,
            par_time_ms=r.par_time_ms,
            upgrades=calculate_upgrades(r.clear_time_ms, r.par_time_ms),
        )
        for r in best_runs
        if r.clear_time_ms and r.par_time_ms
    ]
    if not runs:
        return TimingAnalysis()
    return TimingAnalysis(
        avg_timing_pct=round_half_up(sum(r.timing_pct for r in runs) / len(runs)),
        tight_runs=[r for r in runs if r.timing_pct > TIGHT_TIMING_PCT],
        easy_runs=[r for r in runs if r.timing_pct < EASY_TIMING_PCT],
        runs=runs,
    )


def analyze_upgrades(best_runs: list[MythicPlusRun]) -> UpgradeAnalysis:
    if not best_runs:
        return UpgradeAnalysis()
    total = len(best_runs)
    upgrades = [r.upgrades or 0 for r in best_runs]
    return UpgradeAnalysis(
        avg_upgrades=round_half_up(sum(upgrades) / total, 1),
        untimed=upgrades.count(0),
        single_upgrades=upgrades.count(1),
        double_upgrades=upgrades.count(2),
        triple_upgrades=sum(1 for u in upgrades if u >= 3),
        total=total,
    )


def identify_push_targets(dungeons: DungeonAnalysis) -> list[PushTarget]:
    if not dungeons.dungeon_levels:
        return []
    top = dungeons.max_level
    targets = [
        PushTarget(
            dungeon=d.dungeon,
            short_name=d.short_name,
            current_level=d.level,
            target_level=min(d.level + 2, top),
            gap=top - d.level,
            reason="large_gap" if d.level <= top - 3 else "moderate_gap",
        )
        for d in dungeons.dungeon_levels
        if d.level < top - 1
    ]
    targets.sort(key=lambda t: t.gap, reverse=True)
    return targets[:MAX_PUSH_TARGETS]


def analyze_score(mythic_plus: MythicPlusScores) -> ScoreAnalysis:
    score = mythic_plus.score or 0
    current = bracket_for(score)
    upcoming = next((b for b in MPLUS_BRACKETS if b.min > score), None)

    roles = {
        "dps": mythic_plus.score_dps or 0,
        "healer": mythic_plus.score_healer or 0,
        "tank": mythic_plus.score_tank or 0,
    }
    # Ties resolve to the first role listed
    main = max(roles, key=roles.get)
    return ScoreAnalysis(
        score=score,
        color=score_color(score),
        current_bracket=current,
        next_bracket=upcoming,
        main_role=RoleScore(main, roles[main]),
        off_roles=[RoleScore(r, s) for r, s in roles.items() if r != main and s > 0],
    )


def analyze_mythic_plus(profile: RaiderIOProfile | None) -> MythicPlusAnalysis | None:
    if profile is None or profile.mythic_plus is None:
        return None
    runs = profile.best_runs
    dungeons = analyze_dungeon_balance(runs)
    return MythicPlusAnalysis(
        dungeon_analysis=dungeons,
        score_analysis=analyze_score(profile.mythic_plus),
        timing_analysis=analyze_timing(runs),
        upgrade_analysis=analyze_upgrades(runs),
        push_targets=identify_push_targets(dungeons),
    )


def mplus_tips(analysis: MythicPlusAnalysis | None) -> list[Tip]:
    """Coaching tips derived from a Mythic+ analysis."""
    if analysis is None:
        return []
    tips = []

    if analysis.push_targets:
        target = analysis.push_targets[0]
        tips.append(Tip(
            "mythicPlus", "mplus_push_target",
            "warning" if target.reason == "large_gap" else "info", 32,
            {
                "dungeon": target.dungeon,
                "current_level": target.current_level,
                "target_level": target.target_level,
                "gap": target.gap,
            },
        ))

    tight = analysis.timing_analysis.tight_runs
    if len(tight) >= 2:
        tips.append(Tip("mythicPlus", "mplus_timing_tight", "info", 33, {
            "count": len(tight),
            "dungeons": [r.short_name or r.dungeon for r in tight],
        }))

    upgrades = analysis.upgrade_analysis
    if upgrades.total and upgrades.untimed / upgrades.total >= 0.25:
        tips.append(Tip("mythicPlus", "mplus_untimed_runs", "warning", 34, {
            "untimed": upgrades.untimed,
            "total": upgrades.total,
        }))

    return tips
