"""Background service that polls WCL for new reports of registered characters."""

import asyncio
import contextlib
import logging
from dataclasses import asdict, dataclass
from datetime import UTC, datetime

import httpx
from sqlalchemy import select
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from stillnoob.db.models import Character
from stillnoob.db.queries import existing_report_codes
from stillnoob.pipeline.ingest import (
    DuplicateReportError,
    ReportNotFoundError,
    import_report,
    load_char_map,
)
from stillnoob.pipeline.snapshots import save_score_snapshot
from stillnoob.wcl.reports import fetch_character_reports

logger = logging.getLogger(__name__)


def is_transient_error(exc: BaseException) -> bool:
    """429s, 5xx responses, connection failures and timeouts are worth retrying."""
    if isinstance(exc, httpx.HTTPStatusError):
        status = exc.response.status_code
        return status == 429 or status >= 500
    return isinstance(exc, (httpx.ConnectError, httpx.TimeoutException))


def _log_retry(label: str):
    def before_sleep(state: RetryCallState) -> None:
        exc = state.outcome.exception() if state.outcome else None
        logger.warning(
            "%s failed (%s), retry %d in %.0fs",
            label, exc, state.attempt_number,
            state.next_action.sleep if state.next_action else 0,
        )
    return before_sleep


@dataclass
class ScanResult:
    scanned: int = 0
    imported: int = 0
    failed: int = 0
    aborted: bool = False


class ReportScanner:
    """Polls WCL for each registered character and imports unseen reports."""

    def __init__(self, settings, session_factory, wcl_factory, raiderio=None):
        self.settings = settings
        self._session_factory = session_factory
        self._wcl_factory = wcl_factory  # callable returning async context manager
        self._raiderio = raiderio
        self._task: asyncio.Task | None = None
        self._trigger_task: asyncio.Task | None = None
        self._poll_lock = asyncio.Lock()
        self._last_poll: datetime | None = None
        self._status: str = "idle"  # idle, scanning, error
        self._last_error: str | None = None
        self._last_result: ScanResult | None = None
        self._stats: dict = {"polls": 0, "reports_imported": 0, "errors": 0}
        self._consecutive_errors: int = 0

    @property
    def enabled(self) -> bool:
        return self.settings.scan.enabled

    async def start(self):
        if not self.enabled:
            logger.info("Report scanner is disabled")
            return
        if self._task and not self._task.done():
            return
        self._task = asyncio.create_task(self._poll_loop())
        logger.info(
            "Report scanner started (interval=%dm)",
            self.settings.scan.poll_interval_minutes,
        )

    async def stop(self):
        if self._trigger_task and not self._trigger_task.done():
            self._trigger_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._trigger_task
        if self._task and not self._task.done():
            self._task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._task
        self._status = "idle"
        logger.info("Report scanner stopped")

    async def _poll_loop(self):
        """Main polling loop with exponential backoff on errors."""
        base_interval = self.settings.scan.poll_interval_minutes * 60
        max_backoff = base_interval * 8
        while True:
            try:
                await self.scan_once()
                self._consecutive_errors = 0
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                logger.exception("Error in report scan loop")
                self._status = "error"
                self._last_error = str(exc)
                self._stats["errors"] += 1
                self._consecutive_errors += 1

            if self._consecutive_errors > 0:
                backoff = min(
                    base_interval * (2 ** (self._consecutive_errors - 1)),
                    max_backoff,
                )
                logger.warning(
                    "Report scanner backing off: %ds (consecutive errors: %d)",
                    backoff, self._consecutive_errors,
                )
                await asyncio.sleep(backoff)
            else:
                await asyncio.sleep(base_interval)

    def _retrying(self, label: str) -> AsyncRetrying:
        cfg = self.settings.scan
        return AsyncRetrying(
            retry=retry_if_exception(is_transient_error),
            stop=stop_after_attempt(cfg.max_retries + 1),
            wait=wait_exponential(multiplier=cfg.base_delay_seconds),
            before_sleep=_log_retry(label),
            reraise=True,
        )

    async def scan_once(self) -> ScanResult:
        """One pass over every registered character (mutex-protected)."""
        async with self._poll_lock:
            return await self._scan_once_inner()

    async def _scan_once_inner(self) -> ScanResult:
        self._status = "scanning"
        self._last_poll = datetime.now(UTC)
        self._stats["polls"] += 1
        logger.info("Starting WCL report scan")

        async with self._session_factory() as session:
            result = await session.execute(select(Character).order_by(Character.id))
            characters = list(result.scalars().all())

        scan = ScanResult(scanned=len(characters))
        if not characters:
            logger.info("No characters registered, skipping scan")
            self._status = "idle"
            self._last_result = scan
            return scan

        threshold = self.settings.scan.circuit_breaker_threshold
        consecutive_failures = 0

        async with self._wcl_factory() as wcl:
            for character in characters:
                if consecutive_failures >= threshold:
                    logger.error(
                        "Circuit breaker tripped after %d consecutive WCL failures, "
                        "aborting scan", threshold,
                    )
                    scan.aborted = True
                    break
                try:
                    consecutive_failures = await self._scan_character(
                        wcl, character, scan, consecutive_failures,
                    )
                except Exception as exc:
                    scan.failed += 1
                    if is_transient_error(exc):
                        consecutive_failures += 1
                    self._last_error = str(exc)
                    logger.error(
                        "Error scanning %s-%s: %s", character.name, character.realm_slug, exc,
                    )

        self._stats["reports_imported"] += scan.imported
        self._stats["errors"] += scan.failed
        if scan.failed:
            logger.warning(
                "Scan complete with errors: %d imported, %d failed out of %d characters",
                scan.imported, scan.failed, scan.scanned,
            )
        else:
            logger.info(
                "Scan complete: %d new reports imported from %d characters",
                scan.imported, scan.scanned,
            )
        self._status = "idle"
        self._last_result = scan
        return scan

    async def _scan_character(
        self, wcl, character: Character, scan: ScanResult, consecutive_failures: int,
    ) -> int:
        """Import unseen reports for one character; returns the updated failure streak."""
        refs = await self._retrying(f"fetch_character_reports({character.name})")(
            fetch_character_reports,
            wcl,
            character.name,
            character.realm_slug,
            character.region,
            self.settings.scan.reports_per_character,
        )
        consecutive_failures = 0

        async with self._session_factory() as session:
            existing = await existing_report_codes(session, [r.code for r in refs])
            new_codes = [r.code for r in refs if r.code not in existing]
            # Characters without an owner match against the whole roster
            char_map = (
                await load_char_map(session, character.user_id) if new_codes else {}
            )

        for code in new_codes:
            try:
                async with self._session_factory() as session:
                    await self._retrying(f"import_report({code})")(
                        import_report,
                        wcl,
                        session,
                        code,
                        char_map=char_map,
                        imported_by=character.user_id,
                        source="auto",
                    )
            except DuplicateReportError:
                logger.debug("Report %s imported concurrently, skipping", code)
                continue
            except ReportNotFoundError:
                logger.warning("Report %s vanished from WCL, skipping", code)
                continue
            except Exception as exc:
                scan.failed += 1
                if is_transient_error(exc):
                    consecutive_failures += 1
                self._last_error = str(exc)
                logger.error("Failed to import %s after retries: %s", code, exc)
                continue
            scan.imported += 1
            logger.info("Imported report %s for %s", code, character.name)

        await self._snapshot(character)
        return consecutive_failures

    async def _snapshot(self, character: Character) -> None:
        if self._raiderio is None:
            return
        try:
            profile = await self._raiderio.get_character(
                character.region, character.realm_slug, character.name,
            )
            if profile is None or not profile.score:
                return
            async with self._session_factory() as session, session.begin():
                await save_score_snapshot(session, character.id, profile)
        except Exception as exc:
            logger.warning("Raider.io snapshot failed for %s: %s", character.name, exc)

    async def trigger_now(self) -> dict:
        """Manual trigger, runs a scan in background."""
        pending = self._trigger_task is not None and not self._trigger_task.done()
        if pending or self._poll_lock.locked():
            return {"status": "already_running", "message": "Scan already in progress"}
        self._trigger_task = asyncio.create_task(self.scan_once())
        self._trigger_task.add_done_callback(self._log_trigger_failure)
        return {"status": "triggered", "message": "Scan started in background"}

    def _log_trigger_failure(self, task: asyncio.Task) -> None:
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            self._status = "error"
            self._last_error = str(exc)
            self._stats["errors"] += 1
            logger.error("Manually triggered scan failed: %s", exc, exc_info=exc)

    def get_status(self) -> dict:
        bucket = getattr(self._wcl_factory, "token_bucket", None)
        return {
            "enabled": self.enabled,
            "status": self._status,
            "last_poll": self._last_poll.isoformat() if self._last_poll else None,
            "last_error": self._last_error,
            "last_result": asdict(self._last_result) if self._last_result else None,
            "poll_interval_minutes": self.settings.scan.poll_interval_minutes,
            "consecutive_errors": self._consecutive_errors,
            "stats": dict(self._stats),
            "token_bucket": bucket.status() if bucket else None,
        }
