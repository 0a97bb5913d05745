"""One-shot scan: the same pass the API's background scanner runs on a timer."""

import argparse
import asyncio
import logging
from contextlib import AsyncExitStack
from dataclasses import asdict

from stillnoob.config import get_settings
from stillnoob.db.engine import create_db_engine, create_session_factory, init_db
from stillnoob.pipeline.scanner import ReportScanner, ScanResult
from stillnoob.raiderio.client import RaiderIOClient
from stillnoob.wcl.factory import WCLFactory

logger = logging.getLogger(__name__)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument(
        "--no-snapshots", action="store_true",
        help="Do not record a Raider.io rating snapshot per character",
    )
    return parser.parse_args(argv)


async def run(*, snapshots: bool = True) -> ScanResult:
    settings = get_settings()

    async with AsyncExitStack() as cleanup:
        engine = create_db_engine(settings)
        cleanup.push_async_callback(engine.dispose)
        await init_db(engine)

        wcl_factory = WCLFactory(settings)
        await wcl_factory.start()
        cleanup.push_async_callback(wcl_factory.stop)

        raiderio = None
        if snapshots:
            raiderio = RaiderIOClient.from_settings(settings)
            await raiderio.start()
            cleanup.push_async_callback(raiderio.stop)

        scanner = ReportScanner(
            settings, create_session_factory(engine), wcl_factory, raiderio,
        )
        result = await scanner.scan_once()

    logger.info("Scan summary: %s", asdict(result))
    return result


def main() -> None:
    args = parse_args()
    logging.basicConfig(level=logging.INFO)
    result = asyncio.run(run(snapshots=not args.no_snapshots))
    suffix = " (aborted)" if result.aborted else ""
    print(
        f"scanned={result.scanned} imported={result.imported} "
        f"failed={result.failed}{suffix}"
    )


if __name__ == "__main__":
    main()
