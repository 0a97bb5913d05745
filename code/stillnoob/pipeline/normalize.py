import json
import logging
from dataclasses import dataclass, field
from typing import Any

from stillnoob.pipeline.constants import BUFF_PATTERNS
from stillnoob.utils import normalize_name
from stillnoob.wcl.models import BasicStats, ExtendedStats

logger = logging.getLogger(__name__)

# Players under this share of the top DPS are treated as tanks/healers
MEDIAN_DPS_FLOOR = 0.4

SUMMARY_ROLES = ("dps", "tanks", "healers")


def compute_dps(total_damage: int, duration_ms: int) -> float:
    if duration_ms <= 0:
        return 0.0
    return total_damage / (duration_ms / 1000)


def compute_hps(total_healing: int, duration_ms: int) -> float:
    if duration_ms <= 0:
        return 0.0
    return total_healing / (duration_ms / 1000)


def map_difficulty(wcl_difficulty: int | None) -> str:
    """WCL difficulty id to stored label."""
    if wcl_difficulty is None:
        return "Normal"
    if wcl_difficulty >= 10:
        return "Mythic+"
    return {1: "LFR", 2: "Normal", 3: "Heroic", 4: "Heroic", 5: "Mythic"}.get(
        wcl_difficulty, "Normal",
    )


def median_index(values: list[float]) -> float:
    """Upper median: sorted element at n // 2, 0 for an empty list."""
    if not values:
        return 0.0
    ordered = sorted(values)
    return ordered[len(ordered) // 2]


@dataclass
class PlayerFightStats:
    damage_done: int = 0
    healing_done: int = 0
    damage_taken: int = 0
    deaths: int = 0
    active_time: int = 0
    total_casts: int = 0
    healthstones: int = 0
    combat_potions: int = 0
    flask_uptime: float = 0.0
    food_buff: bool = False
    augment_rune: bool = False
    interrupts: int = 0
    dispels: int = 0
    spec_id: int | None = None
    talents: list[dict[str, Any]] | None = None


@dataclass
class FightNormalization:
    duration_ms: int
    players: dict[str, PlayerFightStats] = field(default_factory=dict)
    raid_median_dps: float = 0.0
    raid_median_dtps: float = 0.0

    def player_row(self, name: str) -> dict[str, Any]:
        """Column values of a fight_performances row for one player."""
        p = self.players[name]
        duration = self.duration_ms
        return {
            "damage_done": p.damage_done,
            "healing_done": p.healing_done,
            "damage_taken": p.damage_taken,
            "deaths": p.deaths,
            "dps": compute_dps(p.damage_done, duration),
            "hps": compute_hps(p.healing_done, duration),
            "dtps": compute_dps(p.damage_taken, duration),
            "active_time_pct": p.active_time / duration * 100 if duration > 0 else 0.0,
            "cpm": p.total_casts / (duration / 60000) if duration > 0 else 0.0,
            "healthstones": p.healthstones,
            "combat_potions": p.combat_potions,
            "flask_uptime_pct": p.flask_uptime,
            "food_buff_active": p.food_buff,
            "augment_rune_active": p.augment_rune,
            "interrupts": p.interrupts,
            "dispels": p.dispels,
            "raid_median_dps": self.raid_median_dps,
            "raid_median_dtps": self.raid_median_dtps,
            "spec_id": p.spec_id,
            "talent_data": json.dumps(p.talents) if p.talents else None,
        }


def _named(entries: list[dict[str, Any]]) -> list[dict[str, Any]]:
    return [e for e in entries if e.get("name")]


def _nested_totals(wrappers: list[dict[str, Any]]) -> list[tuple[str, int]]:
    # Interrupts/Dispels tables nest as entries[].entries[].details[]
    totals = []
    for wrapper in wrappers:
        for ability in wrapper.get("entries") or []:
            for player in ability.get("details") or []:
                if player.get("name"):
                    totals.append((player["name"], player.get("total") or 0))
    return totals


def normalize_fight(
    duration_ms: int, basic: BasicStats, extended: ExtendedStats,
) -> FightNormalization:
    """Merge one fight's WCL tables into per-player stats and raid medians."""
    result = FightNormalization(duration_ms=duration_ms)
    players = result.players

    def player(name: str) -> PlayerFightStats:
        return players.setdefault(name, PlayerFightStats())

    for e in _named(basic.damage):
        p = player(e["name"])
        p.damage_done = e.get("total") or 0
        p.active_time = e.get("activeTime") or 0
    for e in _named(basic.healing):
        player(e["name"]).healing_done = e.get("total") or 0
    for e in _named(basic.damage_taken):
        player(e["name"]).damage_taken = e.get("total") or 0
    for e in _named(basic.deaths):
        player(e["name"]).deaths = e.get("total") or 0

    # entry.total counts every cast even though abilities are truncated
    source_names: dict[int, str] = {}
    for entry in extended.casts:
        if not entry.get("name"):
            continue
        player(entry["name"]).total_casts = entry.get("total") or 0
        if entry.get("id") is not None:
            source_names[entry["id"]] = entry["name"]

    if extended.summary:
        for role in SUMMARY_ROLES:
            for detail in extended.summary.get(role) or []:
                if not detail.get("name"):
                    continue
                p = player(detail["name"])
                p.combat_potions = detail.get("potionUse") or 0
                p.healthstones = detail.get("healthstoneUse") or 0
                if detail.get("id") is not None:
                    source_names[detail["id"]] = detail["name"]

    for event in extended.combatant_info:
        name = source_names.get(event.get("sourceID"))
        if not name:
            continue
        p = player(name)
        if event.get("specID") is not None:
            p.spec_id = event["specID"]
        if isinstance(event.get("talentTree"), list) and event["talentTree"]:
            p.talents = event["talentTree"]
        for aura in event.get("auras") or []:
            aura_name = aura.get("name") or ""
            if BUFF_PATTERNS["flask"].search(aura_name):
                p.flask_uptime = 100.0  # present at pull
            if BUFF_PATTERNS["food"].search(aura_name):
                p.food_buff = True
            if BUFF_PATTERNS["augment_rune"].search(aura_name):
                p.augment_rune = True

    for name, total in _nested_totals(extended.interrupts):
        player(name).interrupts += total
    for name, total in _nested_totals(extended.dispels):
        player(name).dispels += total

    if duration_ms > 0:
        seconds = duration_ms / 1000
        all_dps = [p.damage_done / seconds for p in players.values() if p.damage_done > 0]
        all_dtps = [p.damage_taken / seconds for p in players.values() if p.damage_taken > 0]
        top = max(all_dps, default=0.0)
        result.raid_median_dps = median_index(
            [d for d in all_dps if d >= top * MEDIAN_DPS_FLOOR]
        )
        result.raid_median_dtps = median_index(all_dtps)

    return result


def match_players(
    normalization: FightNormalization, char_map: dict[str, int],
) -> list[dict[str, Any]]:
    """Performance rows (with character_id) for registered characters only."""
    rows = []
    for name in normalization.players:
        character_id = char_map.get(normalize_name(name))
        if not character_id:
            logger.debug("Player %r not registered, skipping", name)
            continue
        rows.append({"character_id": character_id, **normalization.player_row(name)})
    return rows
