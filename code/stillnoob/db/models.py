from datetime import datetime

from sqlalchemy import (
    BigInteger,
    Boolean,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


class Base(DeclarativeBase):
    pass


class User(Base):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    email: Mapped[str] = mapped_column(String(255), unique=True)
    display_name: Mapped[str] = mapped_column(String(100))
    tier: Mapped[str] = mapped_column(String(20), default="free")
    created_at: Mapped[datetime] = mapped_column(default=func.now())

    characters: Mapped[list["Character"]] = relationship(back_populates="user")


class Character(Base):
    __tablename__ = "characters"
    __table_args__ = (
        UniqueConstraint("name", "realm_slug", "region"),
        Index("ix_characters_user_id", "user_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int | None] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
    )
    name: Mapped[str] = mapped_column(String(100))
    realm: Mapped[str] = mapped_column(String(100))
    realm_slug: Mapped[str] = mapped_column(String(100))
    region: Mapped[str] = mapped_column(String(10), default="eu")
    class_name: Mapped[str] = mapped_column(String(50))
    spec: Mapped[str | None] = mapped_column(String(50))
    raid_role: Mapped[str | None] = mapped_column(String(20))
    is_primary: Mapped[bool] = mapped_column(Boolean, default=False)
    last_synced_at: Mapped[datetime | None] = mapped_column()
    created_at: Mapped[datetime] = mapped_column(default=func.now())

    user: Mapped["User | None"] = relationship(back_populates="characters")
    performances: Mapped[list["FightPerformance"]] = relationship(
        back_populates="character", cascade="all, delete-orphan",
    )
    snapshots: Mapped[list["MplusSnapshot"]] = relationship(
        back_populates="character", cascade="all, delete-orphan",
    )


class Report(Base):
    __tablename__ = "reports"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    wcl_code: Mapped[str] = mapped_column(String(50), unique=True)
    title: Mapped[str] = mapped_column(String(200), default="")
    start_time: Mapped[int] = mapped_column(BigInteger)
    end_time: Mapped[int] = mapped_column(BigInteger)
    region: Mapped[str | None] = mapped_column(String(10))
    guild_name: Mapped[str | None] = mapped_column(String(200))
    zone_name: Mapped[str | None] = mapped_column(String(200))
    participants_count: Mapped[int] = mapped_column(Integer, default=0)
    imported_by: Mapped[int | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"),
    )
    import_source: Mapped[str] = mapped_column(String(10), default="manual")
    visibility: Mapped[str] = mapped_column(String(10), default="public")
    processed_at: Mapped[datetime] = mapped_column(default=func.now())

    fights: Mapped[list["Fight"]] = relationship(
        back_populates="report", cascade="all, delete-orphan",
    )


class Fight(Base):
    __tablename__ = "fights"
    __table_args__ = (
        UniqueConstraint("report_id", "wcl_fight_id"),
        Index("ix_fights_encounter_id", "encounter_id"),
        Index("ix_fights_start_time", "start_time"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    report_id: Mapped[int] = mapped_column(ForeignKey("reports.id", ondelete="CASCADE"))
    wcl_fight_id: Mapped[int] = mapped_column(Integer)
    encounter_id: Mapped[int] = mapped_column(Integer)
    boss_name: Mapped[str] = mapped_column(String(200))
    difficulty: Mapped[str] = mapped_column(String(20))
    is_kill: Mapped[bool] = mapped_column(Boolean, default=False)
    start_time: Mapped[int] = mapped_column(BigInteger)
    end_time: Mapped[int] = mapped_column(BigInteger)
    duration_ms: Mapped[int] = mapped_column(BigInteger, default=0)

    report: Mapped["Report"] = relationship(back_populates="fights")
    performances: Mapped[list["FightPerformance"]] = relationship(
        back_populates="fight", cascade="all, delete-orphan",
    )


class FightPerformance(Base):
    __tablename__ = "fight_performances"
    __table_args__ = (
        UniqueConstraint("fight_id", "character_id"),
        Index("ix_fight_performances_character_id", "character_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    fight_id: Mapped[int] = mapped_column(ForeignKey("fights.id", ondelete="CASCADE"))
    character_id: Mapped[int] = mapped_column(
        ForeignKey("characters.id", ondelete="CASCADE"),
    )
    damage_done: Mapped[int] = mapped_column(BigInteger, default=0)
    healing_done: Mapped[int] = mapped_column(BigInteger, default=0)
    damage_taken: Mapped[int] = mapped_column(BigInteger, default=0)
    deaths: Mapped[int] = mapped_column(Integer, default=0)
    dps: Mapped[float] = mapped_column(Float, default=0.0)
    hps: Mapped[float] = mapped_column(Float, default=0.0)
    dtps: Mapped[float] = mapped_column(Float, default=0.0)
    active_time_pct: Mapped[float] = mapped_column(Float, default=0.0)
    cpm: Mapped[float] = mapped_column(Float, default=0.0)
    healthstones: Mapped[int] = mapped_column(Integer, default=0)
    combat_potions: Mapped[int] = mapped_column(Integer, default=0)
    flask_uptime_pct: Mapped[float] = mapped_column(Float, default=0.0)
    food_buff_active: Mapped[bool] = mapped_column(Boolean, default=False)
    augment_rune_active: Mapped[bool] = mapped_column(Boolean, default=False)
    interrupts: Mapped[int] = mapped_column(Integer, default=0)
    dispels: Mapped[int] = mapped_column(Integer, default=0)
    raid_median_dps: Mapped[float] = mapped_column(Float, default=0.0)
    raid_median_dtps: Mapped[float] = mapped_column(Float, default=0.0)
    spec_id: Mapped[int | None] = mapped_column(Integer)
    talent_data: Mapped[str | None] = mapped_column(Text)  # JSON-encoded talent tree
    created_at: Mapped[datetime] = mapped_column(default=func.now())

    fight: Mapped["Fight"] = relationship(back_populates="performances")
    character: Mapped["Character"] = relationship(back_populates="performances")


class MplusSnapshot(Base):
    __tablename__ = "mplus_snapshots"
    __table_args__ = (
        Index("ix_mplus_snapshots_character_time", "character_id", "snapshot_at"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    character_id: Mapped[int] = mapped_column(
        ForeignKey("characters.id", ondelete="CASCADE"),
    )
    score: Mapped[float] = mapped_column(Float)
    score_dps: Mapped[float] = mapped_column(Float, default=0.0)
    score_healer: Mapped[float] = mapped_column(Float, default=0.0)
    score_tank: Mapped[float] = mapped_column(Float, default=0.0)
    item_level: Mapped[float | None] = mapped_column(Float)
    best_run_level: Mapped[int] = mapped_column(Integer, default=0)
    total_dungeons: Mapped[int | None] = mapped_column(Integer)
    snapshot_at: Mapped[datetime] = mapped_column(default=func.now())

    character: Mapped["Character"] = relationship(back_populates="snapshots")
