"""Report import and listing endpoints."""

import logging

import httpx
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from stillnoob.api.deps import get_db, get_wcl_factory
from stillnoob.api.models import (
    ImportRequest,
    ImportResponse,
    ImportStats,
    ReportDetail,
    ReportInfo,
)
from stillnoob.db import queries as q
from stillnoob.db.models import Report, User
from stillnoob.pipeline.ingest import (
    DuplicateReportError,
    InvalidReportCodeError,
    ReportNotFoundError,
    import_report,
    load_char_map,
    parse_report_code,
)
from stillnoob.wcl.auth import WCLAuthError
from stillnoob.wcl.client import WCLAPIError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/reports", tags=["reports"])


@router.post("/import", response_model=ImportResponse, status_code=201)
async def import_report_endpoint(
    req: ImportRequest,
    session: AsyncSession = Depends(get_db),
    wcl_factory=Depends(get_wcl_factory),
):
    try:
        code = parse_report_code(req.url)
    except InvalidReportCodeError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from None

    if wcl_factory is None:
        raise HTTPException(status_code=503, detail="WCL credentials not configured")
    if req.user_id is not None and await session.get(User, req.user_id) is None:
        raise HTTPException(status_code=404, detail="User not found")

    try:
        char_map = await load_char_map(session, req.user_id)
        async with wcl_factory() as wcl:
            result = await import_report(
                wcl, session, code,
                char_map=char_map,
                imported_by=req.user_id,
                source="manual",
                visibility=req.visibility,
            )
        report = await session.get(Report, result.report_id)
        return ImportResponse(
            report=ReportInfo.model_validate(report),
            stats=ImportStats(
                fights_processed=result.fights,
                performance_records=result.performances,
                characters_matched=len(result.character_ids),
                skipped_fights=result.skipped_fights,
            ),
        )
    except DuplicateReportError:
        raise HTTPException(status_code=409, detail="Report already imported") from None
    except ReportNotFoundError:
        raise HTTPException(
            status_code=404, detail=f"Report {code} not found on Warcraft Logs",
        ) from None
    except (WCLAPIError, WCLAuthError, httpx.HTTPError) as exc:
        logger.warning("WCL request failed during import of %s: %s", code, exc)
        raise HTTPException(
            status_code=502, detail="Failed to fetch from Warcraft Logs API",
        ) from None
    except Exception:
        await session.rollback()
        logger.exception("Failed to import report %s", code)
        raise HTTPException(status_code=500, detail="Internal server error") from None


@router.get("", response_model=list[ReportInfo])
async def list_reports(
    user_id: int | None = None,
    limit: int = Query(50, ge=1, le=200),
    session: AsyncSession = Depends(get_db),
):
    try:
        return await q.list_reports(session, user_id, limit)
    except Exception:
        logger.exception("Failed to list reports")
        raise HTTPException(status_code=500, detail="Internal server error") from None


@router.get("/{report_code}", response_model=ReportDetail)
async def get_report(
    report_code: str,
    user_id: int | None = None,
    session: AsyncSession = Depends(get_db),
):
    try:
        report = await q.get_report_by_code(session, report_code)
        # Private and guild reports are only visible to the importer
        hidden = report is not None and report.visibility != "public" and (
            user_id is None or user_id != report.imported_by
        )
        if report is None or hidden:
            raise HTTPException(status_code=404, detail="Report not found")
        return report
    except HTTPException:
        raise
    except Exception:
        logger.exception("Failed to get report %s", report_code)
        raise HTTPException(status_code=500, detail="Internal server error") from None
