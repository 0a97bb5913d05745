import logging

from fastapi import APIRouter
from fastapi.responses import JSONResponse
from sqlalchemy import text

logger = logging.getLogger(__name__)

router = APIRouter()

VERSION = "0.1.0"

_session_factory = None
_scanner = None


def set_health_deps(session_factory=None, scanner=None) -> None:
    global _session_factory, _scanner
    _session_factory = session_factory
    _scanner = scanner


async def _database_status() -> str:
    if _session_factory is None:
        return "not configured"
    session = _session_factory()
    try:
        await session.execute(text("SELECT 1"))
        return "ok"
    except Exception as exc:
        logger.warning("Health check: DB unreachable: %s", exc)
        return "error"
    finally:
        await session.close()


@router.get("/health")
async def health():
    """Liveness plus a DB round trip; 503 only when the DB check fails."""
    database = await _database_status()
    degraded = database == "error"
    return JSONResponse(
        status_code=503 if degraded else 200,
        content={
            "status": "degraded" if degraded else "ok",
            "version": VERSION,
            "database": database,
            "scanner": _scanner.get_status()["status"] if _scanner else "not configured",
        },
    )
