"""Reports router.

Endpoints:
- GET /api/reports: Staff listing with search, status, category and date filters
- POST /api/reports: Create a report (multipart, up to 5 files)
- GET /api/reports/pending-approval: Admin review queue
- GET /api/reports/pending-deletion: Admin deletion-request queue
- GET /api/reports/my-reports: Approved reports of the calling user
- GET /api/reports/users/assignable: Users that reports can be assigned to
- GET /api/reports/{report_id}: Report detail
- PUT /api/reports/{report_id}: Edit a report
- DELETE /api/reports/{report_id}: Request deletion
- PUT /api/reports/{report_id}/approve|reject|approve-deletion|reject-deletion
- GET /api/reports/{report_id}/files/{file_id}/download
"""

from datetime import date
from decimal import Decimal

from fastapi import APIRouter, Depends, File, Form, Query, Request, UploadFile
from sqlalchemy.ext.asyncio import AsyncSession

from billdesk.core.auth import get_current_user
from billdesk.core.permissions import (
    ensure_can_modify, ensure_can_view, require_admin, require_end_user, require_staff,
)
from billdesk.core.responses import attachment_response
from billdesk.dependencies import get_db
from billdesk.models.enums import ApprovalStatus, Category, ItemStatus, Priority
from billdesk.models.user import User
from billdesk.schemas.common import MessageResponse, RejectRequest
from billdesk.schemas.report import ReportPage, ReportRead, ReportUpdate
from billdesk.schemas.user import UserSummary
from billdesk.services import audit_service, file_service, report_service, user_service
from billdesk.services.query import page_response, parse_list_field

router = APIRouter(prefix="/api/reports", tags=["reports"])


@router.get("", response_model=ReportPage)
async def list_reports(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    search: str | None = None,
    status: ItemStatus | None = None,
    category: Category | None = None,
    approval_status: ApprovalStatus | None = None,
    start_date: date | None = None,
    end_date: date | None = None,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_staff),
):
    stmt = report_service.list_statement(
        search=search,
        status=status,
        category=category,
        approval_status=approval_status,
        start_date=start_date,
        end_date=end_date,
    )
    return await page_response(db, stmt, page=page, limit=limit, schema=ReportRead)


@router.post("", response_model=ReportRead, status_code=201)
async def create_report(
    request: Request,
    title: str = Form(..., min_length=1, max_length=200),
    description: str | None = Form(None),
    amount: Decimal = Form(Decimal("0"), ge=0),
    due_date: date | None = Form(None),
    category: Category | None = Form(None),
    priority: Priority = Form(Priority.medium),
    status: ItemStatus = Form(ItemStatus.draft),
    tags: list[str] | None = Form(None),
    assigned_users: list[str] | None = Form(None),
    files: list[UploadFile] | None = File(None),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_staff),
):
    """Create a report. Admin submissions are approved immediately."""
    incoming = await file_service.read_uploads(files, required=False)
    report = await report_service.create_report(
        db,
        creator=current_user,
        title=title,
        description=description,
        amount=amount,
        due_date=due_date,
        category=category,
        priority=priority,
        status=status,
        tags=parse_list_field(tags),
        assigned_user_ids=parse_list_field(assigned_users),
        files=incoming,
        meta=audit_service.request_meta(request),
    )
    await db.commit()
    return report


@router.get("/pending-approval", response_model=ReportPage)
async def pending_approval(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_admin),
):
    stmt = report_service.pending_approval_statement()
    return await page_response(db, stmt, page=page, limit=limit, schema=ReportRead)


@router.get("/pending-deletion", response_model=ReportPage)
async def pending_deletion(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_admin),
):
    stmt = report_service.pending_deletion_statement()
    return await page_response(db, stmt, page=page, limit=limit, schema=ReportRead)


@router.get("/my-reports", response_model=ReportPage)
async def my_reports(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    search: str | None = None,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_end_user),
):
    """Approved reports the caller created or is assigned to."""
    stmt = report_service.visible_to_owner_statement(current_user, search=search)
    return await page_response(db, stmt, page=page, limit=limit, schema=ReportRead)


@router.get("/users/assignable", response_model=list[UserSummary])
async def assignable_users(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_staff),
):
    return await user_service.list_assignable(db)


@router.get("/{report_id}", response_model=ReportRead)
async def get_report(
    report_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    report = await report_service.get_report(db, report_id)
    ensure_can_view(report, current_user)
    return report


@router.put("/{report_id}", response_model=ReportRead)
async def update_report(
    report_id: str,
    body: ReportUpdate,
    request: Request,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_staff),
):
    """Edit a report. Managers may edit their own reports; edits go back to review."""
    report = await report_service.get_report(db, report_id)
    ensure_can_modify(report, current_user)
    report = await report_service.update_report(
        db,
        report=report,
        actor=current_user,
        changes=body,
        meta=audit_service.request_meta(request),
    )
    await db.commit()
    return report


@router.delete("/{report_id}", response_model=ReportRead)
async def request_deletion(
    report_id: str,
    request: Request,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_staff),
):
    """Request deletion. The report is removed only once an admin approves."""
    report = await report_service.get_report(db, report_id)
    ensure_can_modify(report, current_user)
    report = await report_service.request_deletion(
        db, report=report, actor=current_user, meta=audit_service.request_meta(request)
    )
    await db.commit()
    return report


@router.put("/{report_id}/approve", response_model=ReportRead)
async def approve_report(
    report_id: str,
    request: Request,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_admin),
):
    report = await report_service.get_report(db, report_id)
    report = await report_service.approve(
        db, report=report, actor=current_user, meta=audit_service.request_meta(request)
    )
    await db.commit()
    return report


@router.put("/{report_id}/reject", response_model=ReportRead)
async def reject_report(
    report_id: str,
    body: RejectRequest,
    request: Request,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_admin),
):
    report = await report_service.get_report(db, report_id)
    report = await report_service.reject(
        db,
        report=report,
        actor=current_user,
        reason=body.reason,
        meta=audit_service.request_meta(request),
    )
    await db.commit()
    return report


@router.put("/{report_id}/approve-deletion", response_model=MessageResponse)
async def approve_deletion(
    report_id: str,
    request: Request,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_admin),
):
    report = await report_service.get_report(db, report_id)
    await report_service.approve_deletion(
        db, report=report, actor=current_user, meta=audit_service.request_meta(request)
    )
    await db.commit()
    return {"message": "Report deleted"}


@router.put("/{report_id}/reject-deletion", response_model=ReportRead)
async def reject_deletion(
    report_id: str,
    request: Request,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_admin),
):
    report = await report_service.get_report(db, report_id)
    report = await report_service.reject_deletion(
        db, report=report, actor=current_user, meta=audit_service.request_meta(request)
    )
    await db.commit()
    return report


@router.get("/{report_id}/files/{file_id}/download")
async def download_report_file(
    report_id: str,
    file_id: str,
    request: Request,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    report = await report_service.get_report(db, report_id)
    ensure_can_view(report, current_user)
    attachment = file_service.find_in(report, file_id)
    data = await file_service.download(
        db,
        owner=report,
        attachment=attachment,
        actor_id=current_user.id,
        meta=audit_service.request_meta(request),
    )
    await db.commit()
    return attachment_response(attachment, data)
