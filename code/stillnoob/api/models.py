"""Pydantic request/response models for the REST API."""

from datetime import datetime
from pydantic import BaseModel, ConfigDict, field_validator

from stillnoob.pipeline.constants import REGIONS, Visibility


class CharacterInfo(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: int | None
    name: str
    realm: str
    realm_slug: str
    region: str
    class_name: str
    spec: str | None
    raid_role: str | None
    is_primary: bool
    last_synced_at: datetime | None


class RegisterCharacterRequest(BaseModel):
    name: str
    realm: str
    class_name: str
    region: str = "eu"
    realm_slug: str | None = None
    spec: str | None = None
    raid_role: str | None = None
    user_id: int | None = None

    @field_validator("name", "realm", "class_name")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("must not be blank")
        return value

    @field_validator("region")
    @classmethod
    def _known_region(cls, value: str) -> str:
        value = value.lower()
        if value not in REGIONS:
            raise ValueError(f"region must be one of {', '.join(REGIONS)}")
        return value


class ImportRequest(BaseModel):
    url: str
    visibility: Visibility = "public"
    user_id: int | None = None


class ReportInfo(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    wcl_code: str
    title: str
    start_time: int
    end_time: int
    region: str | None
    guild_name: str | None
    zone_name: str | None
    participants_count: int
    imported_by: int | None
    import_source: str
    visibility: str


class FightInfo(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    wcl_fight_id: int
    encounter_id: int
    boss_name: str
    difficulty: str
    is_kill: bool
    start_time: int
    end_time: int
    duration_ms: int


class ReportDetail(ReportInfo):
    fights: list[FightInfo]


class ImportStats(BaseModel):
    fights_processed: int
    performance_records: int
    characters_matched: int
    skipped_fights: list[int] = []


class ImportResponse(BaseModel):
    report: ReportInfo
    stats: ImportStats


class MessageResponse(BaseModel):
    message: str
