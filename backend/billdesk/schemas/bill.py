"""Bill schemas: request/response models for the bills API."""

import uuid
from datetime import date, datetime
from decimal import Decimal

from pydantic import BaseModel, Field, field_validator

from billdesk.models.enums import ApprovalStatus, Category, ItemStatus, Priority
from billdesk.schemas.attachment import AttachmentRead
from billdesk.schemas.common import Pagination
from billdesk.schemas.user import UserSummary
from billdesk.services.query import parse_list_field


class PaymentInfo(BaseModel):
    payment_method: str | None = Field(None, max_length=100)
    payment_date: date | None = None
    transaction_id: str | None = Field(None, max_length=200)
    notes: str | None = Field(None, max_length=1000)


class BillCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    description: str | None = None
    amount: Decimal = Field(..., ge=0)
    due_date: date | None = None
    category: Category
    status: ItemStatus = ItemStatus.draft
    priority: Priority = Priority.medium
    tags: list[str] = []
    assigned_users: list[str] = []

    @field_validator("tags", "assigned_users", mode="before")
    @classmethod
    def _lenient_list(cls, value):
        return parse_list_field(value)


class BillStatusUpdate(BaseModel):
    status: ItemStatus
    payment_info: PaymentInfo | None = None


class BillRead(BaseModel):
    id: uuid.UUID
    bill_id: str
    title: str
    description: str | None = None
    amount: Decimal
    due_date: date | None = None
    category: Category
    status: ItemStatus
    priority: Priority
    tags: list[str] = []
    payment_info: dict | None = None
    approval_status: ApprovalStatus
    approved_by_id: uuid.UUID | None = None
    approved_at: datetime | None = None
    rejection_reason: str | None = None
    created_by: UserSummary
    assigned_users: list[UserSummary] = []
    files: list[AttachmentRead] = []
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class BillPage(BaseModel):
    items: list[BillRead]
    pagination: Pagination
