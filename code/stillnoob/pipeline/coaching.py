"""Per-spec coaching context used to specialise generic tips.

Spec names match BLIZZARD_SPEC_MAP exactly (e.g. "Frost DK", "Holy Priest").
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class SpecCoaching:
    class_name: str
    spec: str
    role: str  # "DPS", "Healer", "Tank"
    low_cpm: str
    low_uptime: str
    defensive_cd: str


SPEC_COACHING: tuple[SpecCoaching, ...] = (
    # Warrior
    SpecCoaching(
        "Warrior", "Arms", "DPS",
        low_cpm="Mortal Strike and Execute windows during Colossus Smash",
        low_uptime=(
            "maintain Colossus Smash windows during forced movement: "
            "use Heroic Leap and Charge to close gaps"
        ),
        defensive_cd="Die by the Sword, Spell Reflection, and Rallying Cry",
    ),
    SpecCoaching(
        "Warrior", "Fury", "DPS",
        low_cpm="Rampage and Bloodthirst GCD utilization: avoid capping rage",
        low_uptime="keep Enrage uptime during forced movement: Heroic Leap back to boss quickly",
        defensive_cd="Enraged Regeneration and Rallying Cry",
    ),
    SpecCoaching(
        "Warrior", "Protection Warrior", "Tank",
        low_cpm="Shield Slam and Thunder Clap rotation to maintain Shield Block uptime",
        low_uptime="Shield Block and Ignore Pain uptime: gaps mean unmitigated hits",
        defensive_cd="Shield Wall, Last Stand, and Spell Reflection timing",
    ),
    # Paladin
    SpecCoaching(
        "Paladin", "Holy Paladin", "Healer",
        low_cpm="Holy Shock on cooldown and Holy Light/Flash of Light filler usage",
        low_uptime=(
            "maintain casting between heals: Consecration and Judgment "
            "contribute to Infusion of Light procs"
        ),
        defensive_cd="Divine Shield, Blessing of Protection, and Lay on Hands timing",
    ),
    SpecCoaching(
        "Paladin", "Protection Paladin", "Tank",
        low_cpm="Shield of the Righteous and Judgment rotation for active mitigation",
        low_uptime="Shield of the Righteous uptime: every gap is unmitigated physical damage",
        defensive_cd="Ardent Defender, Guardian of Ancient Kings, and Lay on Hands",
    ),
    SpecCoaching(
        "Paladin", "Retribution", "DPS",
        low_cpm="Templar's Verdict and Wake of Ashes usage: avoid capping Holy Power",
        low_uptime="Divine Steed and Blessing of Freedom for movement phases",
        defensive_cd="Shield of Vengeance and Divine Shield",
    ),
    # Hunter
    SpecCoaching(
        "Hunter", "Beast Mastery", "DPS",
        low_cpm="Kill Command and Barbed Shot usage: keep Frenzy stacks rolling",
        low_uptime="maintain Barbed Shot Frenzy stacks during movement: BM is fully mobile",
        defensive_cd="Exhilaration, Aspect of the Turtle, and Feign Death",
    ),
    SpecCoaching(
        "Hunter", "Marksmanship", "DPS",
        low_cpm="Aimed Shot charges and Rapid Fire usage: avoid overcapping charges",
        low_uptime="pre-position for Aimed Shot casts: plan movement around Trueshot windows",
        defensive_cd="Exhilaration, Aspect of the Turtle, and Feign Death",
    ),
    SpecCoaching(
        "Hunter", "Survival", "DPS",
        low_cpm="Raptor Strike/Mongoose Bite and Kill Command weaving",
        low_uptime="Harpoon back to targets quickly after forced displacement",
        defensive_cd="Exhilaration, Aspect of the Turtle, and Feign Death",
    ),
    # Rogue
    SpecCoaching(
        "Rogue", "Assassination", "DPS",
        low_cpm="Mutilate and Envenom usage: avoid capping combo points",
        low_uptime="maintain Garrote and Rupture through movement: apply before repositioning",
        defensive_cd="Cloak of Shadows, Evasion, and Feint",
    ),
    SpecCoaching(
        "Rogue", "Outlaw", "DPS",
        low_cpm="Sinister Strike and Dispatch usage: keep Roll the Bones active",
        low_uptime="Grappling Hook and Sprint to return to melee range quickly",
        defensive_cd="Cloak of Shadows, Evasion, and Feint",
    ),
    SpecCoaching(
        "Rogue", "Subtlety", "DPS",
        low_cpm="Shadowstrike and Eviscerate usage: maximize Shadow Dance windows",
        low_uptime="Shadow Step back to targets: plan Shadow Dance around movement",
        defensive_cd="Cloak of Shadows, Evasion, and Feint",
    ),
    # Priest
    SpecCoaching(
        "Priest", "Discipline", "Healer",
        low_cpm="Smite and Penance usage between Atonement windows",
        low_uptime="maintain Atonement applications and DPS between ramps",
        defensive_cd="Pain Suppression, Rapture, and Desperate Prayer",
    ),
    SpecCoaching(
        "Priest", "Holy Priest", "Healer",
        low_cpm="Prayer of Mending on cooldown and Circle of Healing usage",
        low_uptime="maintain casting between damage events: Heal/Flash Heal downranking when idle",
        defensive_cd="Guardian Spirit, Divine Hymn, and Desperate Prayer",
    ),
    SpecCoaching(
        "Priest", "Shadow", "DPS",
        low_cpm="Mind Blast charges and Devouring Plague usage: avoid capping Insanity",
        low_uptime="maintain Shadow Word: Pain and Vampiric Touch through movement phases",
        defensive_cd="Dispersion, Vampiric Embrace, and Fade",
    ),
    # Death Knight
    SpecCoaching(
        "Death Knight", "Blood", "Tank",
        low_cpm="Heart Strike and Death Strike rotation: keep Bone Shield stacks up",
        low_uptime="Death Strike timing: bank Runic Power for predictable damage spikes",
        defensive_cd="Vampiric Blood, Icebound Fortitude, and Anti-Magic Shell timing",
    ),
    SpecCoaching(
        "Death Knight", "Frost DK", "DPS",
        low_cpm="Obliterate and Frost Strike usage: avoid capping Runic Power",
        low_uptime=(
            "Death's Advance and Wraith Walk for movement: "
            "plan Pillar of Frost around mechanics"
        ),
        defensive_cd="Icebound Fortitude, Anti-Magic Shell, and Death Strike as emergency heal",
    ),
    SpecCoaching(
        "Death Knight", "Unholy", "DPS",
        low_cpm="Festering Strike and Scourge Strike usage: manage Festering Wounds",
        low_uptime="maintain diseases through movement: Death's Advance for repositioning",
        defensive_cd="Icebound Fortitude, Anti-Magic Shell, and Death Strike",
    ),
    # Shaman
    SpecCoaching(
        "Shaman", "Elemental", "DPS",
        low_cpm="Lava Burst charges and Earth Shock usage: avoid overcapping Maelstrom",
        low_uptime="Flame Shock maintenance and instant Lava Bursts during movement",
        defensive_cd="Astral Shift and Nature's Guardian",
    ),
    SpecCoaching(
        "Shaman", "Enhancement", "DPS",
        low_cpm="Stormstrike and Lava Lash usage: keep Maelstrom Weapon stacks flowing",
        low_uptime=(
            "Spirit Walk and Feral Lunge to close gaps: "
            "use instant Maelstrom spenders while moving"
        ),
        defensive_cd="Astral Shift and Nature's Guardian",
    ),
    SpecCoaching(
        "Shaman", "Restoration Shaman", "Healer",
        low_cpm="Riptide on cooldown and Healing Wave/Healing Surge filler",
        low_uptime="maintain Riptide HoTs and weave Flame Shock for DPS contribution",
        defensive_cd="Spirit Link Totem, Healing Tide Totem, and Astral Shift",
    ),
    # Mage
    SpecCoaching(
        "Mage", "Arcane", "DPS",
        low_cpm="Arcane Blast and Arcane Missiles procs: manage mana during burn/conserve",
        low_uptime="Shimmer and Alter Time for repositioning without dropping casts",
        defensive_cd="Ice Block, Mirror Image, and Alter Time",
    ),
    SpecCoaching(
        "Mage", "Fire", "DPS",
        low_cpm="Fireball filler and Fire Blast charge management during Combustion",
        low_uptime="Shimmer to maintain casting during movement: Scorch as mobile filler",
        defensive_cd="Ice Block, Mirror Image, and Alter Time",
    ),
    SpecCoaching(
        "Mage", "Frost Mage", "DPS",
        low_cpm="Frostbolt filler and Ice Lance Shatter combo execution",
        low_uptime="Shimmer and Ice Floes for movement: maintain Blizzard/Frozen Orb uptime",
        defensive_cd="Ice Block, Mirror Image, and Alter Time",
    ),
    # Warlock
    SpecCoaching(
        "Warlock", "Affliction", "DPS",
        low_cpm="Agony, Corruption, and Unstable Affliction maintenance on all targets",
        low_uptime="maintain DoTs through movement: refresh before repositioning",
        defensive_cd="Unending Resolve, Dark Pact, and Healthstone",
    ),
    SpecCoaching(
        "Warlock", "Demonology", "DPS",
        low_cpm=(
            "Hand of Gul'dan and Call Dreadstalkers on cooldown: "
            "avoid capping Soul Shards"
        ),
        low_uptime="pre-summon demons before movement: Demonic Circle for instant repositioning",
        defensive_cd="Unending Resolve, Dark Pact, and Healthstone",
    ),
    SpecCoaching(
        "Warlock", "Destruction", "DPS",
        low_cpm="Incinerate filler and Chaos Bolt during Infernal windows",
        low_uptime="Demonic Circle and Burning Rush for movement: plan Infernal around mechanics",
        defensive_cd="Unending Resolve, Dark Pact, and Healthstone",
    ),
    # Monk
    SpecCoaching(
        "Monk", "Brewmaster", "Tank",
        low_cpm="Keg Smash and Blackout Kick rotation: maintain Shuffle uptime",
        low_uptime=(
            "Shuffle uptime is your active mitigation: "
            "every dropped GCD is unmitigated damage"
        ),
        defensive_cd="Fortifying Brew, Zen Meditation, and Celestial Brew timing",
    ),
    SpecCoaching(
        "Monk", "Windwalker", "DPS",
        low_cpm=(
            "Rising Sun Kick and Fists of Fury on cooldown: "
            "avoid repeating abilities (Mastery)"
        ),
        low_uptime="Roll and Chi Torpedo for repositioning: Tiger's Lust for movement phases",
        defensive_cd="Touch of Karma, Diffuse Magic, and Fortifying Brew",
    ),
    SpecCoaching(
        "Monk", "Mistweaver", "Healer",
        low_cpm="Renewing Mist on cooldown and Rising Sun Kick for Ancient Teachings",
        low_uptime="maintain Renewing Mist rolling and weave damage for healing contribution",
        defensive_cd="Life Cocoon, Revival/Restoral, and Fortifying Brew",
    ),
    # Druid
    SpecCoaching(
        "Druid", "Balance", "DPS",
        low_cpm="Starsurge usage and Eclipse rotation: avoid overcapping Astral Power",
        low_uptime="Starfall and instant casts during movement: pre-dot before repositioning",
        defensive_cd="Barkskin, Bear Form for emergencies, and Renewal",
    ),
    SpecCoaching(
        "Druid", "Feral", "DPS",
        low_cpm="Ferocious Bite and Rip uptime: avoid energy capping",
        low_uptime=(
            "maintain Rake and Rip before movement: "
            "Dash/Stampeding Roar to return quickly"
        ),
        defensive_cd="Survival Instincts, Barkskin, and Bear Form",
    ),
    SpecCoaching(
        "Druid", "Guardian", "Tank",
        low_cpm="Mangle and Thrash rotation: maintain Ironfur stacks",
        low_uptime="Ironfur stack uptime: each dropped stack means significant armor loss",
        defensive_cd="Survival Instincts, Barkskin, and Frenzied Regeneration timing",
    ),
    SpecCoaching(
        "Druid", "Restoration Druid", "Healer",
        low_cpm="Rejuvenation blanketing and Wild Growth on cooldown",
        low_uptime=(
            "maintain HoTs rolling between damage events: "
            "Moonfire/Sunfire for DPS contribution"
        ),
        defensive_cd="Tranquility, Ironbark on tanks, and Barkskin",
    ),
    # Demon Hunter
    SpecCoaching(
        "Demon Hunter", "Havoc", "DPS",
        low_cpm="Blade Dance and Eye Beam on cooldown: Chaos Strike as filler",
        low_uptime="Fel Rush and Vengeful Retreat as gap closers: plan Eye Beam around movement",
        defensive_cd="Blur, Netherwalk, and Darkness",
    ),
    SpecCoaching(
        "Demon Hunter", "Vengeance", "Tank",
        low_cpm="Soul Cleave and Fracture rotation: maintain Demon Spikes uptime",
        low_uptime="Demon Spikes uptime is critical: every gap is unmitigated physical damage",
        defensive_cd="Fiery Brand, Metamorphosis, and Demon Spikes stacking",
    ),
    # Evoker
    SpecCoaching(
        "Evoker", "Devastation", "DPS",
        low_cpm="Fire Breath/Eternity Surge empowerment and Disintegrate filler",
        low_uptime="Hover for mobile casting: plan empowered casts around movement phases",
        defensive_cd="Obsidian Scales, Renewing Blaze, and Rescue for repositioning",
    ),
    SpecCoaching(
        "Evoker", "Preservation", "Healer",
        low_cpm="Dream Breath/Spiritbloom empowerment and Living Flame filler",
        low_uptime="Hover for mobile casting: maintain Reversion HoTs rolling",
        defensive_cd="Obsidian Scales, Renewing Blaze, and Rewind timing",
    ),
    SpecCoaching(
        "Evoker", "Augmentation", "DPS",
        low_cpm="Eruption and Prescience on cooldown: maintain Ebon Might uptime",
        low_uptime="Hover for mobile empowered casts: Ebon Might uptime is your #1 priority",
        defensive_cd="Obsidian Scales, Renewing Blaze, and Spatial Paradox",
    ),
)

_BY_CLASS_SPEC: dict[tuple[str, str], SpecCoaching] = {
    (c.class_name, c.spec): c for c in SPEC_COACHING
}


def get_spec_coaching(class_name: str | None, spec: str | None) -> SpecCoaching | None:
    if not class_name or not spec:
        return None
    return _BY_CLASS_SPEC.get((class_name, spec))


def get_spec_role(class_name: str | None, spec: str | None) -> str:
    """Raid role for a class/spec; unknown specs count as DPS."""
    coaching = get_spec_coaching(class_name, spec)
    return coaching.role if coaching else "DPS"
