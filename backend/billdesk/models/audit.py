import enum
import uuid
from datetime import datetime

from sqlalchemy import DateTime, Enum, String, func
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.types import JSON

from billdesk.models.base import Base, generate_uuid, public_id_default, utcnow


class AuditAction(str, enum.Enum):
    create_report = "create_report"
    update_report = "update_report"
    delete_report = "delete_report"
    upload_file = "upload_file"
    update_file = "update_file"
    delete_file = "delete_file"
    download_file = "download_file"
    assign_user = "assign_user"
    unassign_user = "unassign_user"
    change_status = "change_status"
    change_priority = "change_priority"
    verify_report = "verify_report"
    approve_report = "approve_report"
    reject_report = "reject_report"
    request_report_deletion = "request_report_deletion"
    approve_report_deletion = "approve_report_deletion"
    reject_report_deletion = "reject_report_deletion"
    create_bill = "create_bill"
    update_bill = "update_bill"
    delete_bill = "delete_bill"
    approve_bill = "approve_bill"
    reject_bill = "reject_bill"
    update_user_role = "update_user_role"
    update_user_status = "update_user_status"
    delete_user = "delete_user"


class AuditLog(Base):
    """Append-only audit log. No UPDATE or DELETE at application level.

    Actor ids and report, bill and file references carry no foreign keys so
    the trail outlives hard deletes of users and items.
    """

    __tablename__ = "audit_logs"

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=generate_uuid)
    log_id: Mapped[str] = mapped_column(
        String(64), unique=True, nullable=False, index=True,
        default=public_id_default("log"),
    )
    action: Mapped[AuditAction] = mapped_column(
        Enum(AuditAction, native_enum=False), nullable=False, index=True
    )
    performed_by_id: Mapped[uuid.UUID | None] = mapped_column(nullable=True, index=True)
    verified_by_id: Mapped[uuid.UUID | None] = mapped_column(nullable=True)
    report_id: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)
    bill_id: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)
    file_id: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)
    details: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    ip_address: Mapped[str | None] = mapped_column(String(45), nullable=True)
    user_agent: Mapped[str | None] = mapped_column(String(500), nullable=True)
    timestamp: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        server_default=func.now(),
        nullable=False,
        index=True,
    )
