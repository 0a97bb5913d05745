from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from stillnoob.pipeline.ingest import DuplicateReportError, ImportResult
from stillnoob.scripts.import_report import parse_args, run

CODE = "aBcD1234eFgH5678"


def test_parse_args_code():
    args = parse_args(["--report-code", CODE, "--user-id", "3"])
    assert args.report_code == CODE
    assert args.url is None
    assert args.user_id == 3
    assert args.visibility == "public"


def test_parse_args_requires_source():
    with pytest.raises(SystemExit):
        parse_args([])


def test_parse_args_rejects_unknown_visibility():
    with pytest.raises(SystemExit):
        parse_args(["--url", CODE, "--visibility", "secret"])


async def test_run_rejects_invalid_code():
    with patch("stillnoob.scripts.import_report.get_settings") as mock_settings:
        assert await run("not a report") == 2
    mock_settings.assert_not_called()


@pytest.fixture
def env():
    """Patch DB and WCL wiring, yielding the mocks tests assert on."""
    prefix = "stillnoob.scripts.import_report"
    with (
        patch(f"{prefix}.get_settings"),
        patch(f"{prefix}.init_db", new_callable=AsyncMock),
        patch(f"{prefix}.create_db_engine") as mock_create_engine,
        patch(f"{prefix}.create_session_factory") as mock_create_factory,
        patch(f"{prefix}.WCLFactory") as mock_wcl_cls,
        patch(f"{prefix}.load_char_map", new_callable=AsyncMock) as mock_char_map,
        patch(f"{prefix}.import_report", new_callable=AsyncMock) as mock_import,
    ):
        mock_engine = AsyncMock()
        mock_create_engine.return_value = mock_engine
        mock_session = AsyncMock()
        mock_factory = MagicMock()
        mock_factory.return_value.__aenter__ = AsyncMock(return_value=mock_session)
        mock_factory.return_value.__aexit__ = AsyncMock(return_value=False)
        mock_create_factory.return_value = mock_factory

        wcl = MagicMock()
        wcl_factory = MagicMock()
        wcl_factory.start = AsyncMock()
        wcl_factory.stop = AsyncMock()
        wcl_factory.return_value.__aenter__ = AsyncMock(return_value=wcl)
        wcl_factory.return_value.__aexit__ = AsyncMock(return_value=False)
        mock_wcl_cls.return_value = wcl_factory

        mock_char_map.return_value = {"thrall": 1}
        yield MagicMock(
            engine=mock_engine, session=mock_session, wcl=wcl,
            wcl_factory=wcl_factory, import_report=mock_import,
        )


async def test_run_imports_from_url(env):
    env.import_report.return_value = ImportResult(
        report_id=1, code=CODE, fights=4, performances=20, character_ids=[1],
    )

    code = await run(
        f"https://www.warcraftlogs.com/reports/{CODE}", user_id=3, visibility="private",
    )

    assert code == 0
    env.import_report.assert_awaited_once_with(
        env.wcl, env.session, CODE,
        char_map={"thrall": 1},
        imported_by=3,
        visibility="private",
    )
    env.wcl_factory.stop.assert_awaited_once()
    env.engine.dispose.assert_awaited_once()


async def test_run_duplicate_returns_1(env):
    env.import_report.side_effect = DuplicateReportError(CODE)

    assert await run(CODE) == 1
    env.wcl_factory.stop.assert_awaited_once()
