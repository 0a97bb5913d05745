from stillnoob.wcl.models import CharacterReportRef, ReportData, ReportFight


class TestReportFight:
    def test_from_camel_case(self):
        fight = ReportFight.model_validate(
            {"id": 1, "name": "Ulgrax the Devourer", "startTime": 1000,
             "endTime": 181000, "kill": True, "encounterID": 2902, "difficulty": 5}
        )
        assert fight.start_time == 1000
        assert fight.encounter_id == 2902
        assert fight.duration_ms == 180000

    def test_missing_fields_default(self):
        fight = ReportFight.model_validate({"id": 2})
        assert fight.name == "Unknown"
        assert fight.encounter_id == 0
        assert fight.duration_ms == 0


def test_encounter_fights_drop_trash():
    report = ReportData(
        code="aBcD1234eFgH5678",
        fights=[
            ReportFight(id=1, encounter_id=0),
            ReportFight(id=2, encounter_id=2902),
        ],
    )
    assert [f.id for f in report.encounter_fights] == [2]


def test_character_report_ref():
    ref = CharacterReportRef.model_validate(
        {"code": "aBcD1234eFgH5678", "startTime": 5, "endTime": 10}
    )
    assert ref.start_time == 5
