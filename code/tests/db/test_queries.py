import json
from datetime import UTC, datetime, timedelta

from stillnoob.db.models import MplusSnapshot
from stillnoob.db.queries import (
    existing_report_codes,
    fetch_performance_records,
    get_report_by_code,
    latest_snapshot,
    latest_talent_data,
    list_reports,
)
from tests.conftest import (
    add_character,
    add_fight,
    add_performance,
    add_report,
    add_user,
)


class TestFetchPerformanceRecords:
    async def test_filters(self, session):
        character = await add_character(session)
        report = await add_report(session)
        old = await add_fight(session, report, start_time=500, wcl_fight_id=1)
        heroic = await add_fight(session, report, start_time=2_000, wcl_fight_id=2)
        mythic = await add_fight(
            session, report, start_time=3_000, wcl_fight_id=3,
            encounter_id=2917, boss_name="Rasha'nan", difficulty="Mythic",
        )
        dungeon = await add_fight(
            session, report, start_time=4_000, wcl_fight_id=4,
            encounter_id=12660, boss_name="Ara-Kara", difficulty="Mythic+",
        )
        for fight in (old, heroic, mythic, dungeon):
            await add_performance(session, fight, character, dps=fight.start_time)

        records = await fetch_performance_records(session, character.id, since_ms=1_000)
        assert sorted(r.start_time for r in records) == [2_000, 3_000]

        by_boss = await fetch_performance_records(
            session, character.id, since_ms=0, boss_id=2917,
        )
        assert [r.boss_name for r in by_boss] == ["Rasha'nan"]

        by_difficulty = await fetch_performance_records(
            session, character.id, since_ms=0, difficulty="Heroic",
        )
        assert sorted(r.dps for r in by_difficulty) == [500, 2_000]

    async def test_visibility_filter(self, session):
        character = await add_character(session)
        public = await add_report(session, "publicPublic0001")
        private = await add_report(session, "privatePrivat001", visibility="private")
        public_fight = await add_fight(session, public, start_time=1_000)
        private_fight = await add_fight(session, private, start_time=2_000)
        await add_performance(session, public_fight, character)
        await add_performance(session, private_fight, character)

        records = await fetch_performance_records(
            session, character.id, since_ms=0, visibility="public",
        )
        assert [r.start_time for r in records] == [1_000]

    async def test_other_characters_are_excluded(self, session):
        mine = await add_character(session, "Thrall")
        theirs = await add_character(session, "Jaina")
        fight = await add_fight(session, await add_report(session), start_time=1_000)
        await add_performance(session, fight, theirs)

        assert await fetch_performance_records(session, mine.id, since_ms=0) == []


class TestLatestTalentData:
    async def test_newest_fight_wins(self, session):
        character = await add_character(session)
        report = await add_report(session)
        older = await add_fight(session, report, start_time=1_000, wcl_fight_id=1)
        newer = await add_fight(session, report, start_time=2_000, wcl_fight_id=2)
        await add_performance(session, older, character, talent_data=json.dumps([{"id": 1}]))
        await add_performance(session, newer, character, talent_data=json.dumps([{"id": 2}]))

        assert await latest_talent_data(session, character.id) == [{"id": 2}]

    async def test_none_without_data(self, session):
        character = await add_character(session)
        assert await latest_talent_data(session, character.id) is None

    async def test_invalid_json_is_ignored(self, session):
        character = await add_character(session)
        fight = await add_fight(session, await add_report(session), start_time=1_000)
        await add_performance(session, fight, character, talent_data="{not json")

        assert await latest_talent_data(session, character.id) is None


class TestReportQueries:
    async def test_existing_report_codes(self, session):
        await add_report(session, "aaaaBBBBccccDDDD")
        found = await existing_report_codes(session, ["aaaaBBBBccccDDDD", "zzzzYYYYxxxxWWWW"])
        assert found == {"aaaaBBBBccccDDDD"}
        assert await existing_report_codes(session, []) == set()

    async def test_list_reports_visibility(self, session):
        owner = await add_user(session, "owner@example.com")
        other = await add_user(session, "other@example.com")
        await add_report(session, "publicPublic0001")
        await add_report(session, "ownPrivateRep001", visibility="private", imported_by=owner.id)
        await add_report(session, "guildGuildGui001", visibility="guild", imported_by=other.id)

        anonymous = await list_reports(session)
        assert [r.wcl_code for r in anonymous] == ["publicPublic0001"]

        mine = await list_reports(session, owner.id)
        assert [r.wcl_code for r in mine] == ["ownPrivateRep001", "publicPublic0001"]

    async def test_list_reports_limit(self, session):
        for i in range(3):
            await add_report(session, f"reportNumber000{i}")
        assert len(await list_reports(session, limit=2)) == 2

    async def test_get_report_by_code_loads_fights(self, session):
        report = await add_report(session)
        await add_fight(session, report, start_time=1_000)
        await session.commit()
        session.expunge_all()

        loaded = await get_report_by_code(session, "aBcD1234eFgH5678")
        assert len(loaded.fights) == 1
        assert await get_report_by_code(session, "missingMissing01") is None


class TestLatestSnapshot:
    async def test_latest_snapshot(self, session):
        character = await add_character(session)
        now = datetime.now(UTC)
        session.add(MplusSnapshot(
            character_id=character.id, score=2000, snapshot_at=now - timedelta(days=1),
        ))
        session.add(MplusSnapshot(character_id=character.id, score=2100, snapshot_at=now))
        await session.flush()

        assert (await latest_snapshot(session, character.id)).score == 2100

    async def test_no_snapshot(self, session):
        character = await add_character(session)
        assert await latest_snapshot(session, character.id) is None
