import uuid
from datetime import datetime

from pydantic import BaseModel

from billdesk.models.audit import AuditAction
from billdesk.schemas.common import Pagination


class AuditLogRead(BaseModel):
    log_id: str
    action: AuditAction
    performed_by_id: uuid.UUID | None = None
    verified_by_id: uuid.UUID | None = None
    report_id: str | None = None
    bill_id: str | None = None
    file_id: str | None = None
    details: dict | None = None
    ip_address: str | None = None
    user_agent: str | None = None
    timestamp: datetime

    model_config = {"from_attributes": True}


class AuditLogPage(BaseModel):
    items: list[AuditLogRead]
    pagination: Pagination


class ActionCount(BaseModel):
    action: str
    count: int


class UserActivity(BaseModel):
    user_id: uuid.UUID
    name: str
    email: str
    count: int


class AuditStats(BaseModel):
    action_stats: list[ActionCount]
    user_stats: list[UserActivity]
    recent_activity: list[AuditLogRead]
