"""Shared fixtures: an in-memory SQLite database and row factories."""

import pytest

from stillnoob.config import DatabaseConfig, Settings
from stillnoob.db.engine import create_db_engine, create_session_factory, init_db
from stillnoob.db.models import Character, Fight, FightPerformance, Report, User
from stillnoob.pipeline.analysis import analysis_cache


@pytest.fixture
async def engine():
    settings = Settings(_env_file=None, db=DatabaseConfig(url="sqlite+aiosqlite://"))
    engine = create_db_engine(settings)
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return create_session_factory(engine)


@pytest.fixture
async def session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture(autouse=True)
def _clear_analysis_cache():
    analysis_cache.clear()
    yield
    analysis_cache.clear()


async def add_user(session, email="raider@example.com") -> User:
    user = User(email=email, display_name=email.split("@")[0])
    session.add(user)
    await session.flush()
    return user


async def add_character(session, name="Thrall", *, user_id=None, **kwargs) -> Character:
    values = {
        "realm": "Tarren Mill",
        "realm_slug": "tarren-mill",
        "region": "eu",
        "class_name": "Shaman",
        "spec": "Enhancement",
        **kwargs,
    }
    character = Character(name=name, user_id=user_id, **values)
    session.add(character)
    await session.flush()
    return character


async def add_report(session, code="aBcD1234eFgH5678", **kwargs) -> Report:
    values = {"title": "Raid night", "start_time": 0, "end_time": 0, **kwargs}
    report = Report(wcl_code=code, **values)
    session.add(report)
    await session.flush()
    return report


async def add_fight(
    session, report, *, start_time, encounter_id=2902, boss_name="Ulgrax",
    difficulty="Heroic", wcl_fight_id=None, duration_ms=300_000,
) -> Fight:
    fight = Fight(
        report_id=report.id,
        wcl_fight_id=wcl_fight_id or start_time % 100_000,
        encounter_id=encounter_id,
        boss_name=boss_name,
        difficulty=difficulty,
        is_kill=True,
        start_time=start_time,
        end_time=start_time + duration_ms,
        duration_ms=duration_ms,
    )
    session.add(fight)
    await session.flush()
    return fight


async def add_performance(session, fight, character, **kwargs) -> FightPerformance:
    values = {
        "dps": 100_000.0,
        "raid_median_dps": 100_000.0,
        "active_time_pct": 90.0,
        "cpm": 35.0,
        **kwargs,
    }
    perf = FightPerformance(fight_id=fight.id, character_id=character.id, **values)
    session.add(perf)
    await session.flush()
    return perf
