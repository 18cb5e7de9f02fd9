import uuid
from datetime import date
from decimal import Decimal

from sqlalchemy import JSON, Column, Date, Enum, ForeignKey, Numeric, String, Table, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from billdesk.models.base import Base, TimestampMixin, generate_uuid, public_id_default
from billdesk.models.enums import Category, ItemStatus, Priority
from billdesk.models.report import ApprovalMixin

bill_assignments = Table(
    "bill_assignments",
    Base.metadata,
    Column("bill_id", ForeignKey("bills.id", ondelete="CASCADE"), primary_key=True),
    Column("user_id", ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
)


class Bill(ApprovalMixin, TimestampMixin, Base):
    """A payable bill. Bills are hard-deleted, there is no deletion request."""

    __tablename__ = "bills"

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=generate_uuid)
    bill_id: Mapped[str] = mapped_column(
        String(64), unique=True, nullable=False, index=True,
        default=public_id_default("bill"),
    )
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    amount: Mapped[Decimal] = mapped_column(Numeric(precision=14, scale=2), nullable=False)
    due_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    category: Mapped[Category] = mapped_column(
        Enum(Category, native_enum=False), nullable=False, index=True
    )
    status: Mapped[ItemStatus] = mapped_column(
        Enum(ItemStatus, native_enum=False), default=ItemStatus.draft, nullable=False, index=True
    )
    priority: Mapped[Priority] = mapped_column(
        Enum(Priority, native_enum=False), default=Priority.medium, nullable=False
    )
    tags: Mapped[list] = mapped_column(JSON, default=list, nullable=False)
    # {"payment_method", "payment_date", "transaction_id", "notes"}
    payment_info: Mapped[dict | None] = mapped_column(JSON, nullable=True)

    created_by_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("users.id"), nullable=False, index=True
    )

    created_by = relationship("User", foreign_keys=[created_by_id], lazy="selectin")
    assigned_users = relationship("User", secondary=bill_assignments, lazy="selectin")
    files = relationship(
        "Attachment",
        back_populates="bill",
        lazy="selectin",
        cascade="all, delete-orphan",
        order_by="Attachment.uploaded_at",
    )
