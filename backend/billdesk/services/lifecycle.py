"""Approval and deletion-request state machine for reports and bills.

Pure state transitions on loaded ORM objects; no I/O. Callers persist the
change and write the audit record.

    create (admin)            -> approved
    create (other)            -> pending
    pending   --approve-->       approved
    pending   --reject-->        rejected
    active    --request-deletion--> pending_deletion (approval forced to pending)
    pending_deletion --approve-deletion--> row removed
    pending_deletion --reject-deletion-->  active (prior approval restored)

Only reports have the deletion sub-workflow; bills are deleted directly.
"""

import logging

from billdesk.core.errors import InvalidTransitionError
from billdesk.models.base import utcnow
from billdesk.models.enums import ApprovalStatus, ReportLifecycle
from billdesk.models.report import Report
from billdesk.models.user import User, UserRole

logger = logging.getLogger("billdesk.lifecycle")


def _label(item) -> str:
    return getattr(item, "report_id", None) or getattr(item, "bill_id", None) or "?"


def _is_pending_deletion(item) -> bool:
    return isinstance(item, Report) and item.lifecycle == ReportLifecycle.pending_deletion


def apply_initial_approval(item, actor: User) -> None:
    """Admin submissions are approved on creation, everything else waits."""
    if actor.role == UserRole.admin:
        item.approval_status = ApprovalStatus.approved
        item.approved_by_id = actor.id
        item.approved_at = utcnow()
    else:
        item.approval_status = ApprovalStatus.pending
        item.approved_by_id = None
        item.approved_at = None


def _ensure_pending(item) -> None:
    if item.approval_status != ApprovalStatus.pending:
        raise InvalidTransitionError(
            f"Only pending items can be reviewed (current: {item.approval_status.value})"
        )
    if _is_pending_deletion(item):
        raise InvalidTransitionError("Report has an open deletion request")


def approve(item, actor: User) -> None:
    _ensure_pending(item)
    item.approval_status = ApprovalStatus.approved
    item.approved_by_id = actor.id
    item.approved_at = utcnow()
    item.rejection_reason = None
    logger.info("Approved %s by %s", _label(item), actor.id)


def reject(item, actor: User, reason: str | None) -> None:
    _ensure_pending(item)
    item.approval_status = ApprovalStatus.rejected
    item.approved_by_id = actor.id
    item.approved_at = utcnow()
    item.rejection_reason = reason
    logger.info("Rejected %s by %s", _label(item), actor.id)


def reset_to_pending(item) -> None:
    item.approval_status = ApprovalStatus.pending
    item.approved_by_id = None
    item.approved_at = None
    item.rejection_reason = None


def mark_edited(item, actor: User) -> None:
    """Record an edit. Edits by non-admins send the item back for review."""
    if hasattr(item, "last_edited_by_id"):
        item.last_edited_by_id = actor.id
        item.last_edited_at = utcnow()
    if actor.role != UserRole.admin:
        reset_to_pending(item)


def request_deletion(report: Report, actor: User) -> None:
    if report.lifecycle == ReportLifecycle.pending_deletion:
        raise InvalidTransitionError("Deletion already requested")
    report.pre_deletion_approval = report.approval_status
    report.lifecycle = ReportLifecycle.pending_deletion
    report.deletion_requested_at = utcnow()
    report.deletion_requested_by_id = actor.id
    report.approval_status = ApprovalStatus.pending
    logger.info("Deletion requested for %s by %s", report.report_id, actor.id)


def ensure_deletion_requested(report: Report) -> None:
    if report.lifecycle != ReportLifecycle.pending_deletion:
        raise InvalidTransitionError("No deletion request for this report")


def reject_deletion(report: Report, actor: User) -> None:
    ensure_deletion_requested(report)
    report.approval_status = report.pre_deletion_approval or ApprovalStatus.approved
    report.lifecycle = ReportLifecycle.active
    report.pre_deletion_approval = None
    report.deletion_requested_at = None
    report.deletion_requested_by_id = None
    logger.info("Deletion rejected for %s by %s", report.report_id, actor.id)


def is_visible_to_owner(item) -> bool:
    """Whether a creator/assignee without a privileged role may see the item."""
    return item.approval_status == ApprovalStatus.approved and not _is_pending_deletion(item)
