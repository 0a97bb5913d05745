"""Battle.net game-data ids used to resolve class, spec and raid role."""

BLIZZARD_CLASS_MAP: dict[int, str] = {
    1: "Warrior",
    2: "Paladin",
    3: "Hunter",
    4: "Rogue",
    5: "Priest",
    6: "Death Knight",
    7: "Shaman",
    8: "Mage",
    9: "Warlock",
    10: "Monk",
    11: "Druid",
    12: "Demon Hunter",
    13: "Evoker",
}

# spec id -> (spec name, raid role)
BLIZZARD_SPEC_MAP: dict[int, tuple[str, str]] = {
    # Warrior
    71: ("Arms", "DPS"),
    72: ("Fury", "DPS"),
    73: ("Protection Warrior", "Tank"),
    # Paladin
    65: ("Holy Paladin", "Healer"),
    66: ("Protection Paladin", "Tank"),
    70: ("Retribution", "DPS"),
    # Hunter
    253: ("Beast Mastery", "DPS"),
    254: ("Marksmanship", "DPS"),
    255: ("Survival", "DPS"),
    # Rogue
    259: ("Assassination", "DPS"),
    260: ("Outlaw", "DPS"),
    261: ("Subtlety", "DPS"),
    # Priest
    256: ("Discipline", "Healer"),
    257: ("Holy Priest", "Healer"),
    258: ("Shadow", "DPS"),
    # Death Knight
    250: ("Blood", "Tank"),
    251: ("Frost DK", "DPS"),
    252: ("Unholy", "DPS"),
    # Shaman
    262: ("Elemental", "DPS"),
    263: ("Enhancement", "DPS"),
    264: ("Restoration Shaman", "Healer"),
    # Mage
    62: ("Arcane", "DPS"),
    63: ("Fire", "DPS"),
    64: ("Frost Mage", "DPS"),
    # Warlock
    265: ("Affliction", "DPS"),
    266: ("Demonology", "DPS"),
    267: ("Destruction", "DPS"),
    # Monk
    268: ("Brewmaster", "Tank"),
    269: ("Windwalker", "DPS"),
    270: ("Mistweaver", "Healer"),
    # Druid
    102: ("Balance", "DPS"),
    103: ("Feral", "DPS"),
    104: ("Guardian", "Tank"),
    105: ("Restoration Druid", "Healer"),
    # Demon Hunter
    577: ("Havoc", "DPS"),
    581: ("Vengeance", "Tank"),
    # Evoker
    1467: ("Devastation", "DPS"),
    1468: ("Preservation", "Healer"),
    1473: ("Augmentation", "DPS"),
}


def spec_info(spec_id: int | None) -> tuple[str | None, str | None]:
    """Return (spec name, raid role) for a Battle.net spec id."""
    return BLIZZARD_SPEC_MAP.get(spec_id, (None, None))
