"""Audit trail routes: review, stats and CSV export."""

import uuid
from datetime import date

from fastapi import APIRouter, Depends, Query
from fastapi.responses import Response
from sqlalchemy.ext.asyncio import AsyncSession

from billdesk.core.permissions import require_admin, require_staff
from billdesk.dependencies import get_db
from billdesk.models.audit import AuditAction
from billdesk.models.user import User
from billdesk.schemas.audit import AuditLogPage, AuditLogRead, AuditStats
from billdesk.services import audit_service
from billdesk.services.query import page_response

router = APIRouter(prefix="/api/audit", tags=["audit"])


@router.get("", response_model=AuditLogPage)
async def list_logs(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    report_id: str | None = None,
    bill_id: str | None = None,
    action: AuditAction | None = None,
    user_id: uuid.UUID | None = None,
    start_date: date | None = None,
    end_date: date | None = None,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_staff),
):
    stmt = audit_service.list_statement(
        report_id=report_id,
        bill_id=bill_id,
        action=action,
        user_id=user_id,
        start_date=start_date,
        end_date=end_date,
    )
    return await page_response(db, stmt, page=page, limit=limit, schema=AuditLogRead)


@router.get("/stats/overview", response_model=AuditStats)
async def stats_overview(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_admin),
):
    return await audit_service.get_stats(db)


@router.get("/export/csv")
async def export_csv(
    action: AuditAction | None = None,
    start_date: date | None = None,
    end_date: date | None = None,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_admin),
):
    content = await audit_service.export_csv(
        db, action=action, start_date=start_date, end_date=end_date
    )
    return Response(
        content=content,
        media_type="text/csv",
        headers={"Content-Disposition": "attachment; filename=audit_logs.csv"},
    )


@router.get("/{log_id}", response_model=AuditLogRead)
async def get_log(
    log_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_staff),
):
    return await audit_service.get_log(db, log_id)
