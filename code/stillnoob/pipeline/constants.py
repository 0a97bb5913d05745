"""Scoring weights, tier brackets and detection patterns."""

import re
from dataclasses import dataclass
from typing import Literal, get_args


@dataclass(frozen=True)
class ScoreTier:
    key: str
    label: str
    emoji: str
    color: str
    min: int
    max: int


@dataclass(frozen=True)
class MplusBracket:
    key: str
    label: str
    color: str
    min: int
    max: int


@dataclass(frozen=True)
class LevelFactor:
    weight: float
    thresholds: tuple[float, ...] = ()


# Component weights of the 0-100 score; they sum to 1.0
SCORE_WEIGHTS: dict[str, float] = {
    "performance": 0.35,
    "survival": 0.25,
    "preparation": 0.20,
    "utility": 0.10,
    "consistency": 0.10,
}

SCORE_TIERS: tuple[ScoreTier, ...] = (
    ScoreTier("noob", "Still Noob", "\U0001f423", "#9d9d9d", 0, 19),
    ScoreTier("learning", "Learning", "\U0001f4da", "#ffffff", 20, 39),
    ScoreTier("decent", "Decent", "\U0001f44d", "#1eff00", 40, 59),
    ScoreTier("skilled", "Skilled", "\u2694\ufe0f", "#0070dd", 60, 74),
    ScoreTier("pro", "Pro", "\U0001f525", "#a335ee", 75, 89),
    ScoreTier("elite", "Elite", "\U0001f451", "#ff8000", 90, 100),
)

# Summary consumable score, inputs are percentages
CONSUMABLE_WEIGHTS: dict[str, float] = {
    "healthstone": 0.15,
    "combat_potion": 0.25,
    "flask": 0.25,
    "food": 0.10,
    "augment_rune": 0.05,
}

# Weekly trend consumable score, inputs are fractions except flask uptime
WEEKLY_CONSUMABLE_FACTORS: dict[str, float] = {
    "healthstone": 20,
    "combat_potion": 30,
    "flask": 0.30,
    "food": 13,
    "augment_rune": 7,
}

BUFF_PATTERNS: dict[str, re.Pattern] = {
    "flask": re.compile(r"flask|phial", re.IGNORECASE),
    "food": re.compile(r"well fed|sated|nourished|satisfecho|alimentado", re.IGNORECASE),
    "augment_rune": re.compile(r"augment rune", re.IGNORECASE),
}

LEVEL_DETECTION: dict[str, LevelFactor] = {
    "dps_vs_median": LevelFactor(30, (95, 105, 115)),
    "death_rate": LevelFactor(20, (0.3, 0.15, 0.05)),  # lower is better
    "consumables": LevelFactor(15, (50, 80)),
    "mythic_plus": LevelFactor(15, (750, 1500, 2500)),
    "difficulty": LevelFactor(10),
    "consistency": LevelFactor(10, (15,)),
    "active_time": LevelFactor(10, (80, 85, 90)),
    "parse_percentile": LevelFactor(10, (25, 50, 75)),
}
ADVANCED_THRESHOLD = 60
INTERMEDIATE_THRESHOLD = 35

# Primary tip count per player level
TIP_LIMITS: dict[str, int] = {"beginner": 3, "intermediate": 4, "advanced": 5}

MPLUS_BRACKETS: tuple[MplusBracket, ...] = (
    MplusBracket("starter", "Starter", "#888888", 0, 750),
    MplusBracket("keystone", "Keystone Explorer", "#1eff00", 751, 1500),
    MplusBracket("challenger", "Challenger", "#0070dd", 1501, 2000),
    MplusBracket("conqueror", "Conqueror", "#a335ee", 2001, 2500),
    MplusBracket("master", "Keystone Master", "#ff8000", 2501, 3000),
    MplusBracket("hero", "Keystone Hero", "#e268a8", 3001, 99999),
)

Visibility = Literal["public", "private", "guild"]
VISIBILITIES: tuple[str, ...] = get_args(Visibility)
REGIONS = ("us", "eu", "kr", "tw")
