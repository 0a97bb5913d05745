from pydantic import BaseModel


class MythicPlusScores(BaseModel):
    score: float = 0
    score_color: str = "#ffffff"
    score_dps: float = 0
    score_healer: float = 0
    score_tank: float = 0


class MythicPlusRun(BaseModel):
    dungeon: str
    short_name: str | None = None
    level: int = 0
    upgrades: int = 0
    score: float = 0
    url: str | None = None
    completed_at: str | None = None
    clear_time_ms: int | None = None
    par_time_ms: int | None = None


class RaidProgress(BaseModel):
    raid: str | None = None
    slug: str
    normal: int = 0
    heroic: int = 0
    mythic: int = 0
    total_bosses: int = 0


class GearSummary(BaseModel):
    item_level: float | None = None
    item_level_total: float | None = None


class ProfileInfo(BaseModel):
    name: str | None = None
    realm: str | None = None
    region: str | None = None
    class_name: str | None = None
    spec: str | None = None
    role: str | None = None
    race: str | None = None
    faction: str | None = None
    thumbnail_url: str | None = None
    profile_url: str | None = None


class RaiderIOProfile(BaseModel):
    mythic_plus: MythicPlusScores | None = None
    best_runs: list[MythicPlusRun] = []
    recent_runs: list[MythicPlusRun] = []
    raid_progression: list[RaidProgress] = []
    gear: GearSummary | None = None
    profile: ProfileInfo = ProfileInfo()

    @property
    def score(self) -> float:
        return self.mythic_plus.score if self.mythic_plus else 0
