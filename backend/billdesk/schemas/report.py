"""Report schemas: request/response models for the reports API."""

import uuid
from datetime import date, datetime
from decimal import Decimal

from pydantic import BaseModel, Field, field_validator

from billdesk.models.enums import ApprovalStatus, Category, ItemStatus, Priority, ReportLifecycle
from billdesk.schemas.attachment import AttachmentRead
from billdesk.schemas.common import Pagination
from billdesk.schemas.user import UserSummary
from billdesk.services.query import parse_list_field


class ReportRead(BaseModel):
    id: uuid.UUID
    report_id: str
    title: str
    description: str | None = None
    amount: Decimal
    due_date: date | None = None
    category: Category | None = None
    priority: Priority
    status: ItemStatus
    tags: list[str] = []
    approval_status: ApprovalStatus
    approved_by_id: uuid.UUID | None = None
    approved_at: datetime | None = None
    rejection_reason: str | None = None
    lifecycle: ReportLifecycle
    deletion_requested_at: datetime | None = None
    deletion_requested_by_id: uuid.UUID | None = None
    last_edited_by_id: uuid.UUID | None = None
    last_edited_at: datetime | None = None
    created_by: UserSummary
    assigned_users: list[UserSummary] = []
    files: list[AttachmentRead] = []
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class ReportPage(BaseModel):
    items: list[ReportRead]
    pagination: Pagination


class ReportUpdate(BaseModel):
    """Partial update. ``tags`` and ``assigned_users`` accept a list, a JSON
    string or a comma separated string."""

    title: str | None = Field(None, min_length=1, max_length=200)
    description: str | None = None
    amount: Decimal | None = Field(None, ge=0)
    due_date: date | None = None
    category: Category | None = None
    priority: Priority | None = None
    status: ItemStatus | None = None
    tags: list[str] | None = None
    assigned_users: list[str] | None = None

    @field_validator("tags", "assigned_users", mode="before")
    @classmethod
    def _lenient_list(cls, value):
        if value is None:
            return None
        return parse_list_field(value)
