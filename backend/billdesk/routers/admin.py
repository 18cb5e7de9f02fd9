"""Admin routes: user management, report and bill oversight, statistics."""

import uuid

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from billdesk.core.permissions import require_admin
from billdesk.dependencies import get_db
from billdesk.models.enums import Category, ItemStatus
from billdesk.models.user import User, UserRole
from billdesk.schemas.bill import BillPage, BillRead
from billdesk.schemas.common import MessageResponse
from billdesk.schemas.report import ReportPage, ReportRead, ReportUpdate
from billdesk.schemas.user import AdminCheck, RoleUpdate, StatusUpdate, UserPage, UserRead
from billdesk.services import (
    audit_service, bill_service, report_service, stats_service, user_service,
)
from billdesk.services.query import page_response

router = APIRouter(prefix="/api/admin", tags=["admin"])


@router.get("/check-admin", response_model=AdminCheck)
async def check_admin(db: AsyncSession = Depends(get_db)):
    """Public: whether the admin account has been created."""
    return {"admin_exists": await user_service.admin_exists(db)}


@router.get("/stats")
async def stats(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_admin),
):
    return await stats_service.admin_stats(db)


@router.get("/analytics")
async def analytics(
    period: int = Query(30, ge=1, le=365),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_admin),
):
    return await stats_service.admin_analytics(db, period_days=period)


@router.get("/users", response_model=UserPage)
async def list_users(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    role: UserRole | None = None,
    search: str | None = None,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_admin),
):
    stmt = user_service.list_statement(role=role, search=search)
    return await page_response(db, stmt, page=page, limit=limit, schema=UserRead)


@router.put("/users/{user_id}/role", response_model=UserRead)
async def update_user_role(
    user_id: uuid.UUID,
    body: RoleUpdate,
    request: Request,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_admin),
):
    """Change a user's role. Promotion to admin fails while an admin exists."""
    user = await user_service.update_role(
        db,
        user_id=user_id,
        role=body.role,
        actor=current_user,
        meta=audit_service.request_meta(request),
    )
    await db.commit()
    return user


@router.put("/users/{user_id}/status", response_model=UserRead)
async def update_user_status(
    user_id: uuid.UUID,
    body: StatusUpdate,
    request: Request,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_admin),
):
    user = await user_service.update_status(
        db,
        user_id=user_id,
        is_active=body.is_active,
        actor=current_user,
        meta=audit_service.request_meta(request),
    )
    await db.commit()
    return user


@router.delete("/users/{user_id}", response_model=MessageResponse)
async def delete_user(
    user_id: uuid.UUID,
    request: Request,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_admin),
):
    await user_service.delete_user(
        db, user_id=user_id, actor=current_user, meta=audit_service.request_meta(request)
    )
    await db.commit()
    return {"message": "User deleted"}


@router.get("/reports", response_model=ReportPage)
async def list_reports(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    status: ItemStatus | None = None,
    category: Category | None = None,
    search: str | None = None,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_admin),
):
    """All reports except those awaiting a deletion decision."""
    stmt = report_service.list_statement(search=search, status=status, category=category)
    return await page_response(db, stmt, page=page, limit=limit, schema=ReportRead)


@router.put("/reports/{report_id}", response_model=ReportRead)
async def update_report(
    report_id: str,
    body: ReportUpdate,
    request: Request,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_admin),
):
    report = await report_service.get_report(db, report_id)
    report = await report_service.update_report(
        db,
        report=report,
        actor=current_user,
        changes=body,
        meta=audit_service.request_meta(request),
    )
    await db.commit()
    return report


@router.delete("/reports/{report_id}", response_model=ReportRead)
async def delete_report(
    report_id: str,
    request: Request,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_admin),
):
    """Soft delete: opens a deletion request that still needs approval."""
    report = await report_service.get_report(db, report_id)
    report = await report_service.request_deletion(
        db, report=report, actor=current_user, meta=audit_service.request_meta(request)
    )
    await db.commit()
    return report


@router.get("/bills", response_model=BillPage)
async def list_bills(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    status: ItemStatus | None = None,
    category: Category | None = None,
    search: str | None = None,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_admin),
):
    stmt = bill_service.list_statement(search=search, status=status, category=category)
    return await page_response(db, stmt, page=page, limit=limit, schema=BillRead)
