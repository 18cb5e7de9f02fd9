"""Enumerations shared by reports and bills."""

import enum


class ApprovalStatus(str, enum.Enum):
    pending = "pending"
    approved = "approved"
    rejected = "rejected"


class ReportLifecycle(str, enum.Enum):
    """Deletion state of a report. A deleted report has no row."""

    active = "active"
    pending_deletion = "pending_deletion"


class ItemStatus(str, enum.Enum):
    draft = "draft"
    pending = "pending"
    paid = "paid"
    overdue = "overdue"
    cancelled = "cancelled"


class Category(str, enum.Enum):
    electricity = "electricity"
    water = "water"
    gas = "gas"
    internet = "internet"
    phone = "phone"
    rent = "rent"
    insurance = "insurance"
    other = "other"


class Priority(str, enum.Enum):
    low = "low"
    medium = "medium"
    high = "high"
    urgent = "urgent"
