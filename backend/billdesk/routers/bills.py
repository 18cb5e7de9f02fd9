"""Bills router.

Endpoints:
- GET /api/bills: Staff listing
- POST /api/bills: Create a bill
- GET /api/bills/my-bills: Approved bills of the calling user
- GET /api/bills/pending-approval: Admin review queue
- GET /api/bills/analytics: Totals and breakdowns for the calling user
- PUT /api/bills/{bill_id}/approve|reject
- PATCH /api/bills/{bill_id}/status: Payment status and details
- POST /api/bills/{bill_id}/files: Attach files
- GET /api/bills/{bill_id}/files/{file_id}/download
- GET /api/bills/{bill_id}: Bill detail
- DELETE /api/bills/{bill_id}: Remove a bill and its files
"""

from datetime import date

from fastapi import APIRouter, Depends, File, Query, Request, UploadFile
from sqlalchemy.ext.asyncio import AsyncSession

from billdesk.core.auth import get_current_user
from billdesk.core.permissions import (
    ensure_can_modify, ensure_can_view, require_admin, require_end_user, require_staff,
)
from billdesk.core.responses import attachment_response
from billdesk.dependencies import get_db
from billdesk.models.enums import ApprovalStatus, Category, ItemStatus
from billdesk.models.user import User
from billdesk.schemas.attachment import AttachmentRead
from billdesk.schemas.bill import BillCreate, BillPage, BillRead, BillStatusUpdate
from billdesk.schemas.common import MessageResponse, RejectRequest
from billdesk.services import audit_service, bill_service, file_service
from billdesk.services.query import page_response

router = APIRouter(prefix="/api/bills", tags=["bills"])


@router.get("", response_model=BillPage)
async def list_bills(
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
    stmt = bill_service.list_statement(
        search=search,
        status=status,
        category=category,
        approval_status=approval_status,
        start_date=start_date,
        end_date=end_date,
    )
    return await page_response(db, stmt, page=page, limit=limit, schema=BillRead)


@router.post("", response_model=BillRead, status_code=201)
async def create_bill(
    body: BillCreate,
    request: Request,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_staff),
):
    """Create a bill. Admin-created bills are approved immediately."""
    bill = await bill_service.create_bill(
        db,
        creator=current_user,
        title=body.title,
        description=body.description,
        amount=body.amount,
        due_date=body.due_date,
        category=body.category,
        status=body.status,
        priority=body.priority,
        tags=body.tags,
        assigned_user_ids=body.assigned_users,
        meta=audit_service.request_meta(request),
    )
    await db.commit()
    return bill


@router.get("/my-bills", response_model=BillPage)
async def my_bills(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    search: str | None = None,
    status: ItemStatus | None = None,
    category: Category | None = None,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_end_user),
):
    stmt = bill_service.visible_to_owner_statement(
        current_user, search=search, status=status, category=category
    )
    return await page_response(db, stmt, page=page, limit=limit, schema=BillRead)


@router.get("/pending-approval", response_model=BillPage)
async def pending_approval(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_admin),
):
    stmt = bill_service.pending_approval_statement()
    return await page_response(db, stmt, page=page, limit=limit, schema=BillRead)


@router.get("/analytics")
async def analytics(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_end_user),
):
    return await bill_service.user_analytics(db, current_user)


@router.put("/{bill_id}/approve", response_model=BillRead)
async def approve_bill(
    bill_id: str,
    request: Request,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_admin),
):
    bill = await bill_service.get_bill(db, bill_id)
    bill = await bill_service.approve(
        db, bill=bill, actor=current_user, meta=audit_service.request_meta(request)
    )
    await db.commit()
    return bill


@router.put("/{bill_id}/reject", response_model=BillRead)
async def reject_bill(
    bill_id: str,
    body: RejectRequest,
    request: Request,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_admin),
):
    bill = await bill_service.get_bill(db, bill_id)
    bill = await bill_service.reject(
        db,
        bill=bill,
        actor=current_user,
        reason=body.reason,
        meta=audit_service.request_meta(request),
    )
    await db.commit()
    return bill


@router.patch("/{bill_id}/status", response_model=BillRead)
async def update_status(
    bill_id: str,
    body: BillStatusUpdate,
    request: Request,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Mark a bill paid (or any other status). Creator, assignees and admin only."""
    bill = await bill_service.get_bill(db, bill_id)
    ensure_can_view(bill, current_user)
    ensure_can_modify(bill, current_user, allow_assigned=True)
    bill = await bill_service.update_status(
        db,
        bill=bill,
        actor=current_user,
        status=body.status,
        payment_info=body.payment_info,
        meta=audit_service.request_meta(request),
    )
    await db.commit()
    return bill


@router.post("/{bill_id}/files", response_model=list[AttachmentRead], status_code=201)
async def upload_bill_files(
    bill_id: str,
    request: Request,
    files: list[UploadFile] = File(...),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    bill = await bill_service.get_bill(db, bill_id)
    ensure_can_view(bill, current_user)
    ensure_can_modify(bill, current_user, allow_assigned=True)
    incoming = await file_service.read_uploads(files)
    attachments = await file_service.attach_many(
        db,
        owner=bill,
        files=incoming,
        uploaded_by_id=current_user.id,
        meta=audit_service.request_meta(request),
    )
    await db.commit()
    return attachments


@router.get("/{bill_id}/files/{file_id}/download")
async def download_bill_file(
    bill_id: str,
    file_id: str,
    request: Request,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    bill = await bill_service.get_bill(db, bill_id)
    ensure_can_view(bill, current_user)
    attachment = file_service.find_in(bill, file_id)
    data = await file_service.download(
        db,
        owner=bill,
        attachment=attachment,
        actor_id=current_user.id,
        meta=audit_service.request_meta(request),
    )
    await db.commit()
    return attachment_response(attachment, data)


@router.get("/{bill_id}", response_model=BillRead)
async def get_bill(
    bill_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    bill = await bill_service.get_bill(db, bill_id)
    ensure_can_view(bill, current_user)
    return bill


@router.delete("/{bill_id}", response_model=MessageResponse)
async def delete_bill(
    bill_id: str,
    request: Request,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    bill = await bill_service.get_bill(db, bill_id)
    ensure_can_view(bill, current_user)
    ensure_can_modify(bill, current_user, allow_assigned=True)
    await bill_service.delete_bill(
        db, bill=bill, actor=current_user, meta=audit_service.request_meta(request)
    )
    await db.commit()
    return {"message": "Bill deleted"}
