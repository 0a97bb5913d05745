import argparse
import asyncio
import logging

from stillnoob.config import get_settings
from stillnoob.db.engine import create_db_engine, create_session_factory, init_db
from stillnoob.pipeline.constants import VISIBILITIES
from stillnoob.pipeline.ingest import (
    DuplicateReportError,
    InvalidReportCodeError,
    ReportNotFoundError,
    import_report,
    load_char_map,
    parse_report_code,
)
from stillnoob.wcl.factory import WCLFactory

logger = logging.getLogger(__name__)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Import one Warcraft Logs report")
    source = parser.add_mutually_exclusive_group(required=True)
    source.add_argument("--report-code", help="16-character WCL report code")
    source.add_argument("--url", help="warcraftlogs.com report URL")
    parser.add_argument(
        "--user-id", type=int, default=None,
        help="Match only this user's characters and record them as importer",
    )
    parser.add_argument(
        "--visibility", choices=VISIBILITIES, default="public",
    )
    return parser.parse_args(argv)


async def run(
    text: str, *, user_id: int | None = None, visibility: str = "public",
) -> int:
    try:
        code = parse_report_code(text)
    except InvalidReportCodeError as exc:
        logger.error("%s: %s", exc, text)
        return 2

    settings = get_settings()
    engine = create_db_engine(settings)
    await init_db(engine)
    session_factory = create_session_factory(engine)
    wcl_factory = WCLFactory(settings)
    await wcl_factory.start()

    try:
        async with session_factory() as session:
            char_map = await load_char_map(session, user_id)
            async with wcl_factory() as wcl:
                result = await import_report(
                    wcl, session, code,
                    char_map=char_map,
                    imported_by=user_id,
                    visibility=visibility,
                )
    except DuplicateReportError:
        logger.warning("Report %s is already imported", code)
        return 1
    except ReportNotFoundError:
        logger.error("Report %s not found on Warcraft Logs", code)
        return 1
    finally:
        await wcl_factory.stop()
        await engine.dispose()

    logger.info(
        "Imported report %s: %d fights, %d performances, %d characters",
        code, result.fights, result.performances, len(result.character_ids),
    )
    return 0


def main() -> None:
    args = parse_args()
    logging.basicConfig(level=logging.INFO)
    raise SystemExit(asyncio.run(run(
        args.report_code or args.url,
        user_id=args.user_id,
        visibility=args.visibility,
    )))


if __name__ == "__main__":
    main()
