"""GraphQL query strings for WCL API v2."""

RATE_LIMIT_FRAGMENT = """
    rateLimitData {
        pointsSpentThisHour
        limitPerHour
        pointsResetIn
    }
"""

REPORT_DATA = """
query ReportData($code: String!) {
    reportData {
        report(code: $code) {
            code
            title
            startTime
            endTime
            region { name }
            guild { name }
            zone { name }
            fights(killType: Encounters) {
                id
                encounterID
                name
                kill
                difficulty
                startTime
                endTime
            }
            masterData(translate: true) {
                actors(type: "Player") {
                    id
                    name
                    server
                    subType
                }
            }
        }
    }
    RATE_LIMIT
}
"""

CHARACTER_REPORTS = """
query CharacterReports($name: String!, $serverSlug: String!, $serverRegion: String!,
                       $limit: Int) {
    characterData {
        character(name: $name, serverSlug: $serverSlug, serverRegion: $serverRegion) {
            recentReports(limit: $limit) {
                data {
                    code
                    startTime
                    endTime
                }
            }
        }
    }
    RATE_LIMIT
}
"""

ENCOUNTER_RANKING_FIELD = (
    "e{encounter_id}: encounterRankings(encounterID: {encounter_id}, "
    "difficulty: {difficulty})"
)

CHARACTER_ENCOUNTER_RANKINGS = """
query CharacterEncounterRankings($name: String!, $serverSlug: String!,
                                 $serverRegion: String!) {
    characterData {
        character(name: $name, serverSlug: $serverSlug, serverRegion: $serverRegion) {
            FIELDS
        }
    }
    RATE_LIMIT
}
"""

# Per-fight aliased tables; {fid} is the WCL fight id.
BASIC_STATS_FIELDS = """
            f{fid}_damage: table(dataType: DamageDone, fightIDs: [{fid}])
            f{fid}_healing: table(dataType: Healing, fightIDs: [{fid}])
            f{fid}_damageTaken: table(dataType: DamageTaken, fightIDs: [{fid}])
            f{fid}_deaths: table(dataType: Deaths, fightIDs: [{fid}])
"""

EXTENDED_STATS_FIELDS = """
            f{fid}_casts: table(dataType: Casts, fightIDs: [{fid}])
            f{fid}_summary: table(dataType: Summary, fightIDs: [{fid}])
            f{fid}_interrupts: table(dataType: Interrupts, fightIDs: [{fid}])
            f{fid}_dispels: table(dataType: Dispels, fightIDs: [{fid}])
            f{fid}_combatantInfo: events(dataType: CombatantInfo, fightIDs: [{fid}],
                                         limit: 100) {{ data }}
"""

BATCH_REPORT_TABLES = """
query BatchReportTables($code: String!) {
    reportData {
        report(code: $code) {
FIELDS
        }
    }
    RATE_LIMIT
}
"""


def with_rate_limit(query: str) -> str:
    return query.replace("RATE_LIMIT", RATE_LIMIT_FRAGMENT)


def build_batch_query(field_template: str, fight_ids: list[int]) -> str:
    """Expand ``field_template`` once per fight into one aliased document."""
    fields = "".join(field_template.format(fid=fid) for fid in fight_ids)
    return with_rate_limit(BATCH_REPORT_TABLES.replace("FIELDS", fields))


def build_encounter_rankings_query(encounter_ids: list[int], difficulty: int) -> str:
    fields = "\n            ".join(
        ENCOUNTER_RANKING_FIELD.format(encounter_id=eid, difficulty=difficulty)
        for eid in encounter_ids
    )
    return with_rate_limit(CHARACTER_ENCOUNTER_RANKINGS.replace("FIELDS", fields))
