from unittest.mock import AsyncMock, MagicMock, patch

from stillnoob.pipeline.scanner import ScanResult
from stillnoob.scripts.scan_reports import parse_args, run


def test_parse_args():
    assert parse_args([]).no_snapshots is False
    assert parse_args(["--no-snapshots"]).no_snapshots is True


@patch("stillnoob.scripts.scan_reports.RaiderIOClient")
@patch("stillnoob.scripts.scan_reports.ReportScanner")
@patch("stillnoob.scripts.scan_reports.WCLFactory")
@patch("stillnoob.scripts.scan_reports.init_db", new_callable=AsyncMock)
@patch("stillnoob.scripts.scan_reports.create_session_factory")
@patch("stillnoob.scripts.scan_reports.create_db_engine")
@patch("stillnoob.scripts.scan_reports.get_settings")
async def test_run_scans_once(
    mock_get_settings,
    mock_create_engine,
    mock_create_factory,
    mock_init_db,
    mock_wcl_cls,
    mock_scanner_cls,
    mock_raiderio_cls,
):
    mock_engine = AsyncMock()
    mock_create_engine.return_value = mock_engine
    wcl_factory = MagicMock(start=AsyncMock(), stop=AsyncMock())
    mock_wcl_cls.return_value = wcl_factory
    raiderio = MagicMock(start=AsyncMock(), stop=AsyncMock())
    mock_raiderio_cls.from_settings.return_value = raiderio
    mock_scanner_cls.return_value.scan_once = AsyncMock(
        return_value=ScanResult(scanned=2, imported=3),
    )

    result = await run()

    assert result == ScanResult(scanned=2, imported=3)
    scanner_args = mock_scanner_cls.call_args.args
    assert scanner_args[2] is wcl_factory
    assert scanner_args[3] is raiderio
    raiderio.stop.assert_awaited_once()
    wcl_factory.stop.assert_awaited_once()
    mock_engine.dispose.assert_awaited_once()


@patch("stillnoob.scripts.scan_reports.RaiderIOClient")
@patch("stillnoob.scripts.scan_reports.ReportScanner")
@patch("stillnoob.scripts.scan_reports.WCLFactory")
@patch("stillnoob.scripts.scan_reports.init_db", new_callable=AsyncMock)
@patch("stillnoob.scripts.scan_reports.create_session_factory")
@patch("stillnoob.scripts.scan_reports.create_db_engine")
@patch("stillnoob.scripts.scan_reports.get_settings")
async def test_run_without_snapshots(
    mock_get_settings,
    mock_create_engine,
    mock_create_factory,
    mock_init_db,
    mock_wcl_cls,
    mock_scanner_cls,
    mock_raiderio_cls,
):
    mock_create_engine.return_value = AsyncMock()
    mock_wcl_cls.return_value = MagicMock(start=AsyncMock(), stop=AsyncMock())
    mock_scanner_cls.return_value.scan_once = AsyncMock(return_value=ScanResult())

    await run(snapshots=False)

    mock_raiderio_cls.from_settings.assert_not_called()
    assert mock_scanner_cls.call_args.args[3] is None
