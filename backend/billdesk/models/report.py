"""Report model and the approval columns shared with bills.

Reports carry two independent pieces of state: the approval decision
(pending/approved/rejected) and the lifecycle (active or awaiting an
admin decision on a deletion request). Removal deletes the row.
"""

import uuid
from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import (
    JSON, Column, Date, DateTime, Enum, ForeignKey, Numeric, String, Table, Text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from billdesk.models.base import Base, TimestampMixin, generate_uuid, public_id_default
from billdesk.models.enums import (
    ApprovalStatus, Category, ItemStatus, Priority, ReportLifecycle,
)

report_assignments = Table(
    "report_assignments",
    Base.metadata,
    Column("report_id", ForeignKey("reports.id", ondelete="CASCADE"), primary_key=True),
    Column("user_id", ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
)


class ApprovalMixin:
    approval_status: Mapped[ApprovalStatus] = mapped_column(
        Enum(ApprovalStatus, native_enum=False),
        default=ApprovalStatus.pending,
        nullable=False,
        index=True,
    )
    approved_by_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    approved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    rejection_reason: Mapped[str | None] = mapped_column(String(1000), nullable=True)


class Report(ApprovalMixin, TimestampMixin, Base):
    __tablename__ = "reports"

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=generate_uuid)
    report_id: Mapped[str] = mapped_column(
        String(64), unique=True, nullable=False, index=True,
        default=public_id_default("report"),
    )
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    amount: Mapped[Decimal] = mapped_column(
        Numeric(precision=14, scale=2), nullable=False, default=Decimal("0.00")
    )
    due_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    category: Mapped[Category | None] = mapped_column(
        Enum(Category, native_enum=False), nullable=True, index=True
    )
    priority: Mapped[Priority] = mapped_column(
        Enum(Priority, native_enum=False), default=Priority.medium, nullable=False
    )
    status: Mapped[ItemStatus] = mapped_column(
        Enum(ItemStatus, native_enum=False), default=ItemStatus.draft, nullable=False, index=True
    )
    tags: Mapped[list] = mapped_column(JSON, default=list, nullable=False)

    lifecycle: Mapped[ReportLifecycle] = mapped_column(
        Enum(ReportLifecycle, native_enum=False),
        default=ReportLifecycle.active,
        nullable=False,
        index=True,
    )
    deletion_requested_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    deletion_requested_by_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    # Approval state to restore if the deletion request is rejected.
    pre_deletion_approval: Mapped[ApprovalStatus | None] = mapped_column(
        Enum(ApprovalStatus, native_enum=False), nullable=True
    )

    created_by_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("users.id"), nullable=False, index=True
    )
    last_edited_by_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    last_edited_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    created_by = relationship("User", foreign_keys=[created_by_id], lazy="selectin")
    assigned_users = relationship("User", secondary=report_assignments, lazy="selectin")
    files = relationship(
        "Attachment",
        back_populates="report",
        lazy="selectin",
        cascade="all, delete-orphan",
        order_by="Attachment.uploaded_at",
    )
