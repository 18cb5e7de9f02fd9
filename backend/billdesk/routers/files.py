"""Standalone attachment routes for reports.

Files are served only through authenticated endpoints (no public access).
"""

from fastapi import APIRouter, Depends, File, Request, UploadFile
from sqlalchemy.ext.asyncio import AsyncSession

from billdesk.core.auth import get_current_user
from billdesk.core.permissions import (
    ensure_can_modify, ensure_can_view, require_staff,
)
from billdesk.core.responses import attachment_response
from billdesk.dependencies import get_db
from billdesk.models.user import User
from billdesk.schemas.attachment import AttachmentRead
from billdesk.services import audit_service, file_service, report_service

router = APIRouter(prefix="/api/files", tags=["files"])


@router.post("/upload/{report_id}", response_model=AttachmentRead, status_code=201)
async def upload_file(
    report_id: str,
    request: Request,
    file: UploadFile = File(...),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_staff),
):
    """Attach a single file to a report."""
    report = await report_service.get_report(db, report_id)
    ensure_can_modify(report, current_user)
    incoming = await file_service.read_upload(file)
    attachment = await file_service.attach(
        db,
        owner=report,
        incoming=incoming,
        uploaded_by_id=current_user.id,
        meta=audit_service.request_meta(request),
    )
    await db.commit()
    return attachment


@router.get("/report/{report_id}", response_model=list[AttachmentRead])
async def list_report_files(
    report_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    report = await report_service.get_report(db, report_id)
    ensure_can_view(report, current_user)
    return report.files


@router.get("/download/{file_id}")
async def download_file(
    file_id: str,
    request: Request,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    attachment = await file_service.get_attachment(db, file_id)
    owner = await file_service.get_parent(db, attachment)
    ensure_can_view(owner, current_user)
    data = await file_service.download(
        db,
        owner=owner,
        attachment=attachment,
        actor_id=current_user.id,
        meta=audit_service.request_meta(request),
    )
    await db.commit()
    return attachment_response(attachment, data)


@router.get("/{file_id}", response_model=AttachmentRead)
async def get_file(
    file_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Attachment metadata."""
    attachment = await file_service.get_attachment(db, file_id)
    owner = await file_service.get_parent(db, attachment)
    ensure_can_view(owner, current_user)
    return attachment


@router.delete("/{file_id}", status_code=204)
async def delete_file(
    file_id: str,
    request: Request,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_staff),
):
    """Delete an attachment (storage object, then row)."""
    attachment = await file_service.get_attachment(db, file_id)
    owner = await file_service.get_parent(db, attachment)
    ensure_can_modify(owner, current_user)
    await file_service.delete_attachment(
        db,
        owner=owner,
        attachment=attachment,
        actor_id=current_user.id,
        meta=audit_service.request_meta(request),
    )
    await db.commit()
