import json

from stillnoob.pipeline.aggregate import BossStats, Summary
from stillnoob.pipeline.recommendations import (
    Recommendations,
    Tip,
    boss_tips,
    cross_pattern_tips,
    general_tips,
    generate_recommendations,
    merge_mplus_tips,
    role_tips,
    split_tips,
    talent_tips,
)
from stillnoob.raiderio.models import MythicPlusScores, RaiderIOProfile


def _summary(**kwargs) -> Summary:
    """A clean raider: nothing to complain about."""
    values = {
        "total_fights": 10,
        "dps_vs_median_pct": 100.0,
        "death_rate": 0.0,
        "avg_active_time": 90.0,
        "avg_cpm": 35.0,
        "avg_dtps": 10_000.0,
        "avg_flask_uptime": 100.0,
        "food_rate": 100.0,
        "combat_potion_rate": 100.0,
        "healthstone_rate": 50.0,
        "avg_interrupts": 2.0,
        "avg_dispels": 2.0,
        **kwargs,
    }
    return Summary(**values)


def _boss(name="Ulgrax", boss_id=2902, **kwargs) -> BossStats:
    values = {
        "difficulty": "Heroic",
        "fights": 4,
        "deaths": 0,
        "death_rate": 0.0,
        "avg_dps": 100_000.0,
        "best_dps": 110_000.0,
        "avg_dtps": 10_000.0,
        "healthstone_rate": 50.0,
        "combat_potion_rate": 100.0,
        "interrupts_per_fight": 2.0,
        "dispels_per_fight": 2.0,
        "dps_vs_median": 100.0,
        "avg_active_time": 90.0,
        "avg_cpm": 35.0,
        **kwargs,
    }
    return BossStats(boss_id=boss_id, boss_name=name, **values)


def _keys(tips):
    return [t.key for t in tips]


class TestGenerateRecommendations:
    def test_no_summary(self):
        result = generate_recommendations(None, [], player_level="advanced")
        assert result == Recommendations(player_level="advanced")

    def test_no_fights(self):
        result = generate_recommendations(Summary(), [])
        assert _keys(result.primary_tips) == ["no_recent_data"]
        assert result.primary_tips[0].priority == 30

    def test_clean_raider_only_gets_praise(self):
        result = generate_recommendations(_summary(), [])
        assert _keys(result.primary_tips) == ["good_preparation"]

    def test_primary_limit_follows_level(self):
        summary = _summary(
            death_rate=0.5, avg_active_time=60.0, avg_cpm=10.0, avg_flask_uptime=0.0,
            food_rate=0.0, combat_potion_rate=0.0, avg_interrupts=0.0,
        )
        beginner = generate_recommendations(summary, [], player_level="beginner")
        advanced = generate_recommendations(summary, [], player_level="advanced")
        assert len(beginner.primary_tips) == 3
        assert len(advanced.primary_tips) == 5
        priorities = [t.priority for t in beginner.primary_tips + beginner.secondary_tips]
        assert priorities == sorted(priorities)

    def test_no_mplus_activity(self):
        rio = RaiderIOProfile(mythic_plus=MythicPlusScores(score=0))
        result = generate_recommendations(_summary(), [], raiderio=rio, player_level="advanced")
        assert "no_mplus_activity" in _keys(result.primary_tips)


class TestBossTips:
    def test_uptime_drop(self):
        tips = boss_tips(_summary(), [_boss(avg_active_time=75.0)])
        tip = next(t for t in tips if t.key == "boss_uptime_drop")
        assert tip.severity == "critical"
        assert tip.priority == 2
        assert tip.data["drop"] == 15

    def test_uptime_drop_priority_rounds_half_up(self):
        tips = boss_tips(_summary(), [_boss(avg_active_time=81.0)])
        tip = next(t for t in tips if t.key == "boss_uptime_drop")
        assert tip.severity == "warning"
        # drop of 9 halves to 4.5, which counts as 5
        assert tip.priority == 5

    def test_cpm_drop(self):
        tips = boss_tips(_summary(), [_boss(avg_cpm=28.0)])
        tip = next(t for t in tips if t.key == "boss_cpm_drop")
        assert tip.data["drop_pct"] == 20
        assert tip.data["cpm"] == "28.0"
        assert tip.priority == 8

    def test_excess_damage(self):
        tips = boss_tips(_summary(), [_boss(avg_dtps=17_000.0)])
        tip = next(t for t in tips if t.key == "boss_excess_damage")
        assert tip.severity == "critical"
        assert tip.data["excess_pct"] == 70

    def test_death_spike(self):
        tips = boss_tips(_summary(death_rate=0.1), [_boss(death_rate=0.5)])
        tip = next(t for t in tips if t.key == "boss_death_spike")
        assert tip.severity == "critical"
        assert tip.priority == 3
        assert tip.data["multiple"] == "5.0"

    def test_death_spike_without_average(self):
        tips = boss_tips(_summary(), [_boss(death_rate=0.3)])
        tip = next(t for t in tips if t.key == "boss_death_spike")
        assert tip.data["multiple"] == "N/A"

    def test_weakest_dps_and_potion_neglect(self):
        bosses = [
            _boss("Ulgrax", dps_vs_median=80.0, combat_potion_rate=20.0),
            _boss("Sikran", boss_id=2898, dps_vs_median=110.0, combat_potion_rate=90.0),
        ]
        tips = {t.key: t for t in boss_tips(_summary(), bosses)}
        assert tips["boss_weakest_dps"].data["weak_boss"] == "Ulgrax"
        assert tips["boss_weakest_dps"].data["gap"] == 30
        assert tips["boss_weakest_dps"].severity == "warning"
        assert tips["boss_potion_neglect"].data == {
            "boss": "Ulgrax", "difficulty": "Heroic", "rate": 20, "best_rate": 90,
        }

    def test_consistent_bosses_produce_nothing(self):
        assert boss_tips(_summary(), [_boss(), _boss("Sikran", boss_id=2898)]) == []


class TestCrossPatternTips:
    def test_deaths_from_damage(self):
        bosses = [
            _boss(death_rate=0.3, avg_dtps=15_000.0),
            _boss("Sikran", boss_id=2898),
        ]
        tips = cross_pattern_tips(_summary(), bosses)
        assert "deaths_from_damage" in _keys(tips)

    def test_uptime_drives_dps(self):
        bosses = [
            _boss(avg_active_time=80.0, dps_vs_median=85.0),
            _boss("Sikran", boss_id=2898),
        ]
        tip = next(t for t in cross_pattern_tips(_summary(), bosses)
                   if t.key == "uptime_drives_dps")
        assert tip.data["dps_vs_median"] == 85

    def test_parse_vs_raid(self):
        weak_raid = cross_pattern_tips(
            _summary(avg_parse_percentile=30, dps_vs_median_pct=115.0), [],
        )
        strong_raid = cross_pattern_tips(
            _summary(avg_parse_percentile=80, dps_vs_median_pct=95.0), [],
        )
        assert weak_raid[0].data["context"] == "raid_low"
        assert strong_raid[0].data["context"] == "raid_strong"

    def test_defensive_gap(self):
        tips = cross_pattern_tips(_summary(death_rate=0.2, healthstone_rate=10.0), [])
        assert _keys(tips) == ["defensive_gap"]


class TestRoleTips:
    def test_tank(self):
        summary = _summary(death_rate=0.3, avg_cpm=15.0, avg_interrupts=1.0)
        bosses = [_boss(avg_dtps=18_000.0), _boss("Sikran", boss_id=2898, avg_dtps=16_000.0)]
        tips = {t.key: t for t in role_tips(summary, bosses, "Tank", "Guardian", None)}
        assert tips["tank_death_impact"].priority == 11
        assert tips["tank_low_cpm_mitigation"].data["expected"] == 28
        assert tips["tank_dtps_outlier"].data["boss"] == "Ulgrax"
        assert tips["tank_dtps_outlier"].severity == "critical"
        assert "tank_low_interrupts" in tips

    def test_healer(self):
        summary = _summary(avg_dispels=0.5, death_rate=0.35)
        tips = {t.key: t for t in role_tips(summary, [], "Healer", "Mistweaver", None)}
        assert tips["healer_low_dispels"].severity == "warning"
        assert tips["healer_death_impact"].severity == "critical"

    def test_dps_role_has_no_role_tips(self):
        assert role_tips(_summary(death_rate=0.9), [], "DPS", "Fury", None) == []


class TestGeneralTips:
    def test_spec_context_replaces_generic_tip(self):
        tips = general_tips(_summary(avg_active_time=80.0), [], None, "Shaman", "Enhancement")
        tip = next(t for t in tips if t.key == "spec_uptime_context")
        assert tip.severity == "warning"
        assert "Spirit Walk" in tip.data["context"]
        assert "low_active_time" not in _keys(tips)

    def test_generic_cpm_without_coaching(self):
        tips = general_tips(_summary(avg_cpm=15.0), [], None, None, None)
        tip = next(t for t in tips if t.key == "low_cpm")
        assert tip.severity == "critical"
        assert tip.data == {"cpm": "15.0"}

    def test_spec_baseline_overrides_default(self):
        tips = general_tips(_summary(avg_cpm=35.0), [], 50.0, None, None)
        assert "low_cpm" in _keys(tips)

    def test_parse_standing(self):
        with_spec = general_tips(_summary(avg_parse_percentile=20), [], None, None, "Fury")
        without_spec = general_tips(_summary(avg_parse_percentile=40), [], None, None, None)
        assert next(t for t in with_spec if t.key == "spec_parse_standing").priority == 21
        assert "below_avg_parse" in _keys(without_spec)

    def test_consumable_gaps(self):
        tips = general_tips(
            _summary(avg_flask_uptime=50.0, food_rate=20.0, combat_potion_rate=10.0),
            [], None, None, None,
        )
        assert {"low_flask", "no_food", "low_combat_potion"} <= set(_keys(tips))
        assert "good_preparation" not in _keys(tips)

    def test_strong_boss_praise(self):
        bosses = [_boss(dps_vs_median=120.0), _boss("Sikran", boss_id=2898)]
        tip = next(t for t in general_tips(_summary(), bosses, None, None, None)
                   if t.key == "strong_boss")
        assert tip.severity == "positive"
        assert tip.data["dps_vs_median"] == 120


class TestTalentTips:
    COMMON = [
        {"id": 2, "name": "Ascendance", "popularity": 92},
        {"id": 5, "name": "Elemental Assault", "popularity": 10},
        {"id": 3, "name": "Hailstorm", "popularity": 70},
    ]

    def test_missing_and_off_meta(self):
        talents = [{"id": 1}, {"id": 5}]
        meta = {"common_talents": json.dumps(self.COMMON)}
        tips = {t.key: t for t in talent_tips(talents, meta, "Enhancement")}
        assert tips["talent_missing_key"].data["talent_name"] == "Ascendance"
        assert tips["talent_missing_key"].data["meta_pct"] == 92
        assert tips["talent_off_meta"].data["talent_name"] == "Elemental Assault"
        assert tips["talent_off_meta"].data["meta_alternative"] == "Ascendance"

    def test_duplicate_meta_entries_use_the_first(self):
        common = [
            {"id": 5, "name": "Elemental Assault", "popularity": 10},
            {"id": 5, "name": "Elemental Assault", "popularity": 50},
            {"id": 3, "name": "Hailstorm", "popularity": 70},
        ]
        tips = talent_tips([{"id": 5}], {"common_talents": common}, "Enhancement")
        assert _keys(tips) == ["talent_off_meta"]
        assert tips[0].data["meta_pct"] == 10

    def test_no_meta_or_talents(self):
        assert talent_tips(None, {"common_talents": self.COMMON}, "x") == []
        assert talent_tips([{"id": 1}], None, "x") == []
        assert talent_tips([{"id": 1}], {"common_talents": "not json"}, "x") == []


def test_split_tips_unknown_level_defaults_to_three():
    tips = [Tip("performance", f"t{i}", "info", i) for i in range(6)]
    result = split_tips(tips, "unknown")
    assert len(result.primary_tips) == 3
    assert len(result.secondary_tips) == 3


def test_merge_mplus_tips_resorts():
    base = split_tips([Tip("performance", "low_cpm", "warning", 23)], "beginner")
    merged = merge_mplus_tips(base, [Tip("mythicPlus", "mplus_push_target", "info", 32),
                                     Tip("mythicPlus", "urgent", "warning", 1)])
    assert _keys(merged.primary_tips) == ["urgent", "low_cpm", "mplus_push_target"]
    assert merge_mplus_tips(base, []) is base
