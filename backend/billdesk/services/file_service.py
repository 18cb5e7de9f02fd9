"""Attachment service: upload validation, storage, download and removal.

Key rules:
- MIME type allow-list and size limit are checked before anything is stored
- A batch is validated in full before the first file is written
- Storage objects are removed before their rows
- All writes audit-logged
"""

import logging
import uuid

from fastapi import UploadFile
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from billdesk.config import settings
from billdesk.core.errors import BadRequestError, NotFoundError
from billdesk.models.attachment import Attachment
from billdesk.models.audit import AuditAction
from billdesk.models.bill import Bill
from billdesk.models.report import Report
from billdesk.services import audit_service
from billdesk.services.storage import generate_storage_key, get_storage

logger = logging.getLogger("billdesk.files")

# MIME type -> short file type label
ALLOWED_CONTENT_TYPES = {
    "application/pdf": "pdf",
    "application/msword": "doc",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document": "docx",
    "application/vnd.ms-excel": "xls",
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet": "xlsx",
    "text/plain": "txt",
    "image/jpeg": "jpeg",
    "image/png": "png",
    "image/gif": "gif",
}


class IncomingFile:
    """An upload that passed validation and is held in memory."""

    def __init__(self, filename: str, content_type: str, data: bytes):
        self.filename = filename
        self.content_type = content_type
        self.data = data


def validate_content_type(content_type: str) -> None:
    if content_type not in ALLOWED_CONTENT_TYPES:
        raise BadRequestError(
            f"Unsupported file type: {content_type}. "
            f"Allowed: {', '.join(sorted(ALLOWED_CONTENT_TYPES))}"
        )


async def read_upload(upload: UploadFile) -> IncomingFile:
    """Validate type, then read at most one byte past the size limit."""
    content_type = (upload.content_type or "application/octet-stream").split(";")[0].strip()
    validate_content_type(content_type)

    limit = settings.max_upload_bytes
    data = await upload.read(limit + 1)
    if len(data) > limit:
        raise BadRequestError(
            f"File too large. Maximum size is {limit // (1024 * 1024)} MB."
        )
    return IncomingFile(upload.filename or "unnamed", content_type, data)


async def read_uploads(uploads: list[UploadFile] | None, *, required: bool = True) -> list[IncomingFile]:
    uploads = [u for u in (uploads or []) if u is not None and u.filename]
    if not uploads:
        if required:
            raise BadRequestError("No files uploaded")
        return []
    if len(uploads) > settings.max_files_per_upload:
        raise BadRequestError(
            f"Too many files. Maximum is {settings.max_files_per_upload} per request."
        )
    return [await read_upload(u) for u in uploads]


async def attach(
    db: AsyncSession,
    *,
    owner: Report | Bill,
    incoming: IncomingFile,
    uploaded_by_id: uuid.UUID,
    meta: dict | None = None,
) -> Attachment:
    """Store one validated file and link it to a report or bill."""
    storage = get_storage()
    key = generate_storage_key(incoming.filename)
    await storage.save(key, incoming.data, incoming.content_type)

    attachment = Attachment(
        file_name=key,
        original_name=incoming.filename,
        file_type=ALLOWED_CONTENT_TYPES[incoming.content_type],
        mime_type=incoming.content_type,
        file_size=len(incoming.data),
        file_url=f"/uploads/{key}",
        file_path=storage.location(key),
        uploaded_by_id=uploaded_by_id,
    )
    owner.files.append(attachment)
    await db.flush()

    await audit_service.record(
        db,
        action=AuditAction.upload_file,
        performed_by_id=uploaded_by_id,
        meta=meta,
        report_id=getattr(owner, "report_id", None),
        bill_id=getattr(owner, "bill_id", None),
        file_id=attachment.file_id,
        details={
            "original_name": incoming.filename,
            "mime_type": incoming.content_type,
            "file_size": len(incoming.data),
        },
    )
    return attachment


async def attach_many(
    db: AsyncSession,
    *,
    owner: Report | Bill,
    files: list[IncomingFile],
    uploaded_by_id: uuid.UUID,
    meta: dict | None = None,
) -> list[Attachment]:
    return [
        await attach(db, owner=owner, incoming=f, uploaded_by_id=uploaded_by_id, meta=meta)
        for f in files
    ]


async def get_attachment(db: AsyncSession, file_id: str) -> Attachment:
    result = await db.execute(select(Attachment).where(Attachment.file_id == file_id))
    attachment = result.scalar_one_or_none()
    if attachment is None:
        raise NotFoundError("File not found")
    return attachment


async def get_parent(db: AsyncSession, attachment: Attachment) -> Report | Bill:
    """Load the report or bill an attachment belongs to."""
    if attachment.report_pk is not None:
        result = await db.execute(select(Report).where(Report.id == attachment.report_pk))
    else:
        result = await db.execute(select(Bill).where(Bill.id == attachment.bill_pk))
    parent = result.scalar_one_or_none()
    if parent is None:
        raise NotFoundError("File not found")
    return parent


def find_in(owner: Report | Bill, file_id: str) -> Attachment:
    for attachment in owner.files:
        if attachment.file_id == file_id:
            return attachment
    raise NotFoundError("File not found")


async def download(
    db: AsyncSession,
    *,
    owner: Report | Bill,
    attachment: Attachment,
    actor_id: uuid.UUID,
    meta: dict | None = None,
) -> bytes:
    """Load the bytes and count the download.

    The counter is a read-modify-write; concurrent downloads may under-count.
    """
    try:
        data = await get_storage().load(attachment.file_name)
    except FileNotFoundError:
        logger.warning("Storage object missing for %s", attachment.file_id)
        raise NotFoundError("File not found in storage")

    attachment.download_count = (attachment.download_count or 0) + 1
    await db.flush()

    await audit_service.record(
        db,
        action=AuditAction.download_file,
        performed_by_id=actor_id,
        meta=meta,
        report_id=getattr(owner, "report_id", None),
        bill_id=getattr(owner, "bill_id", None),
        file_id=attachment.file_id,
        details={"original_name": attachment.original_name},
    )
    return data


async def delete_attachment(
    db: AsyncSession,
    *,
    owner: Report | Bill,
    attachment: Attachment,
    actor_id: uuid.UUID,
    meta: dict | None = None,
) -> None:
    """Delete a single attachment (storage object, then row)."""
    await get_storage().delete(attachment.file_name)

    # Log before deleting the row
    await audit_service.record(
        db,
        action=AuditAction.delete_file,
        performed_by_id=actor_id,
        meta=meta,
        report_id=getattr(owner, "report_id", None),
        bill_id=getattr(owner, "bill_id", None),
        file_id=attachment.file_id,
        details={"original_name": attachment.original_name, "file_name": attachment.file_name},
    )

    owner.files.remove(attachment)
    await db.flush()


async def remove_stored_files(owner: Report | Bill) -> int:
    """Delete every storage object of ``owner``. Rows go with the owner."""
    storage = get_storage()
    for attachment in owner.files:
        await storage.delete(attachment.file_name)
    return len(owner.files)
