from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class WCLBaseModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )


class ReportFight(WCLBaseModel):
    id: int
    name: str = "Unknown"
    start_time: int = 0
    end_time: int = 0
    kill: bool | None = False
    encounter_id: int = Field(default=0, alias="encounterID")
    difficulty: int | None = None

    @property
    def duration_ms(self) -> int:
        return (self.end_time or 0) - (self.start_time or 0)


class ReportActor(WCLBaseModel):
    id: int
    name: str
    server: str | None = None
    sub_type: str | None = None


class ReportData(WCLBaseModel):
    code: str
    title: str = ""
    start_time: int = 0
    end_time: int = 0
    region: str | None = None
    guild_name: str | None = None
    zone_name: str | None = None
    fights: list[ReportFight] = []
    participants: list[ReportActor] = []

    @property
    def encounter_fights(self) -> list[ReportFight]:
        return [f for f in self.fights if f.encounter_id > 0]


class CharacterReportRef(WCLBaseModel):
    code: str
    start_time: int = 0
    end_time: int = 0


class EncounterRanking(WCLBaseModel):
    encounter_id: int
    best_percent: float | None = None
    kills: int = 0


class BasicStats(WCLBaseModel):
    """Per-player entries of the four basic tables for one fight."""

    damage: list[dict[str, Any]] = []
    healing: list[dict[str, Any]] = []
    damage_taken: list[dict[str, Any]] = []
    deaths: list[dict[str, Any]] = []


class ExtendedStats(WCLBaseModel):
    """Casts, summary, combatant info and utility tables for one fight."""

    casts: list[dict[str, Any]] = []
    summary: dict[str, Any] | None = None
    combatant_info: list[dict[str, Any]] = []
    interrupts: list[dict[str, Any]] = []
    dispels: list[dict[str, Any]] = []
