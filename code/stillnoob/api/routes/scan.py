"""Background scanner management endpoints."""

from fastapi import APIRouter

router = APIRouter(prefix="/api/v1/scan", tags=["scan"])

# Module-level service reference (set during lifespan)
_scanner = None


def set_scanner(scanner):
    global _scanner
    _scanner = scanner


def _get_scanner():
    if _scanner is None:
        raise RuntimeError("ReportScanner not initialized")
    return _scanner


@router.get("/status")
async def get_status():
    return _get_scanner().get_status()


@router.post("/trigger")
async def trigger_scan():
    """Manually trigger a scan."""
    return await _get_scanner().trigger_now()
