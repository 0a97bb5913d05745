import pytest

from stillnoob.pipeline.mythic_plus import (
    analyze_dungeon_balance,
    analyze_mythic_plus,
    analyze_score,
    analyze_timing,
    analyze_upgrades,
    calculate_upgrades,
    identify_push_targets,
    mplus_tips,
    score_color,
)
from stillnoob.raiderio.models import MythicPlusRun, MythicPlusScores, RaiderIOProfile

PAR = 1_800_000


def _run(dungeon, short, level, upgrades, clear_time_ms=None, par_time_ms=PAR):
    return MythicPlusRun(
        dungeon=dungeon, short_name=short, level=level, upgrades=upgrades,
        score=level * 20.0, clear_time_ms=clear_time_ms, par_time_ms=par_time_ms,
    )


RUNS = [
    _run("Ara-Kara, City of Echoes", "ARAK", 12, 1, 1_710_000),
    _run("The Stonevault", "SV", 10, 2, 1_300_000),
    _run("City of Threads", "COT", 7, 0, 1_900_000),
    _run("The Dawnbreaker", "DAWN", 11, 1, 1_764_000),
]


@pytest.mark.parametrize("duration,par,expected", [
    (1000, None, 0),
    (1100, 1000, 0),
    (1000, 1000, 1),
    (800, 1000, 2),
    (600, 1000, 3),
])
def test_calculate_upgrades(duration, par, expected):
    assert calculate_upgrades(duration, par) == expected


def test_score_color():
    assert score_color(0) == "#888888"
    assert score_color(2100) == "#a335ee"
    assert score_color(5000) == "#e268a8"


class TestDungeonBalance:
    def test_strong_and_weak(self):
        result = analyze_dungeon_balance(RUNS)
        assert [d.level for d in result.dungeon_levels] == [12, 11, 10, 7]
        assert result.average_level == 10
        assert [d.short_name for d in result.strong_dungeons] == ["ARAK", "DAWN"]
        assert [d.short_name for d in result.weak_dungeons] == ["COT"]
        assert result.level_spread == 5

    def test_keeps_highest_run_per_dungeon(self):
        runs = [_run("The Stonevault", "SV", 8, 1), _run("The Stonevault", "SV", 10, 1)]
        result = analyze_dungeon_balance(runs)
        assert len(result.dungeon_levels) == 1
        assert result.max_level == 10

    def test_empty(self):
        assert analyze_dungeon_balance([]).max_level is None


class TestTiming:
    def test_buckets(self):
        result = analyze_timing(RUNS)
        assert [r.timing_pct for r in result.runs] == [95, 72, 106, 98]
        assert result.avg_timing_pct == 93
        assert [r.short_name for r in result.tight_runs] == ["COT", "DAWN"]
        assert [r.short_name for r in result.easy_runs] == ["SV"]
        assert [r.upgrades for r in result.runs] == [1, 2, 0, 1]

    def test_runs_without_timing_skipped(self):
        assert analyze_timing([_run("X", None, 5, 1)]).runs == []


def test_upgrades():
    result = analyze_upgrades(RUNS)
    assert result.avg_upgrades == 1.0
    assert result.untimed == 1
    assert result.single_upgrades == 2
    assert result.double_upgrades == 1
    assert result.triple_upgrades == 0
    assert result.total == 4


def test_push_targets_sorted_by_gap():
    targets = identify_push_targets(analyze_dungeon_balance(RUNS))
    assert [(t.dungeon, t.target_level, t.gap, t.reason) for t in targets] == [
        ("City of Threads", 9, 5, "large_gap"),
        ("The Stonevault", 12, 2, "moderate_gap"),
    ]


class TestAnalyzeScore:
    def test_brackets_and_roles(self):
        result = analyze_score(MythicPlusScores(score=2100, score_dps=2100, score_tank=900))
        assert result.current_bracket.key == "conqueror"
        assert result.next_bracket.key == "master"
        assert result.main_role.role == "dps"
        assert [r.role for r in result.off_roles] == ["tank"]

    def test_top_bracket_has_no_next(self):
        result = analyze_score(MythicPlusScores(score=3500, score_healer=3500))
        assert result.next_bracket is None
        assert result.main_role.role == "healer"

    def test_zero_score(self):
        result = analyze_score(MythicPlusScores())
        assert result.current_bracket.key == "starter"
        assert result.main_role.role == "dps"
        assert result.off_roles == []

    @pytest.mark.parametrize(("score", "current", "upcoming"), [
        (1500.5, "keystone", "challenger"),
        (750.4, "starter", "keystone"),
        (3000.9, "master", "hero"),
    ])
    def test_fractional_rating_between_bracket_bounds(self, score, current, upcoming):
        result = analyze_score(MythicPlusScores(score=score))
        assert result.current_bracket.key == current
        assert result.next_bracket.key == upcoming
        assert result.color == result.current_bracket.color


class TestAnalyzeMythicPlus:
    def test_none_without_profile(self):
        assert analyze_mythic_plus(None) is None
        assert analyze_mythic_plus(RaiderIOProfile()) is None

    def test_full_analysis_and_tips(self):
        profile = RaiderIOProfile(
            mythic_plus=MythicPlusScores(score=2100, score_dps=2100), best_runs=RUNS,
        )
        analysis = analyze_mythic_plus(profile)
        assert analysis.push_targets[0].short_name == "COT"

        tips = {t.key: t for t in mplus_tips(analysis)}
        assert tips["mplus_push_target"].severity == "warning"
        assert tips["mplus_push_target"].priority == 32
        assert tips["mplus_timing_tight"].data["dungeons"] == ["COT", "DAWN"]
        assert tips["mplus_untimed_runs"].data == {"untimed": 1, "total": 4}

    def test_no_runs_no_tips(self):
        analysis = analyze_mythic_plus(RaiderIOProfile(mythic_plus=MythicPlusScores(score=10)))
        assert mplus_tips(analysis) == []
        assert mplus_tips(None) == []
