"""Report service: creation, review queues, edits and the deletion workflow.

Permission checks happen in the routers; every function here assumes the
caller was already admitted. Each mutation is followed by an audit record
in the same transaction.
"""

import logging
import uuid
from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from billdesk.core.errors import BadRequestError, InvalidTransitionError, NotFoundError
from billdesk.models.audit import AuditAction
from billdesk.models.enums import ApprovalStatus, Category, ItemStatus, Priority, ReportLifecycle
from billdesk.models.report import Report
from billdesk.models.user import User
from billdesk.schemas.report import ReportUpdate
from billdesk.services import audit_service, file_service, lifecycle
from billdesk.services.file_service import IncomingFile
from billdesk.services.query import date_range_clauses, search_clause

logger = logging.getLogger("billdesk.reports")


async def resolve_assignees(db: AsyncSession, user_ids: list[str]) -> list[User]:
    """Turn a list of user id strings into users. Unknown ids are rejected."""
    ids = []
    for raw in user_ids:
        try:
            ids.append(uuid.UUID(str(raw)))
        except ValueError:
            raise BadRequestError(f"Invalid user id in assigned_users: {raw}")
    if not ids:
        return []
    result = await db.execute(select(User).where(User.id.in_(ids)))
    users = {u.id: u for u in result.scalars().all()}
    missing = [str(i) for i in ids if i not in users]
    if missing:
        raise BadRequestError(f"Unknown user in assigned_users: {', '.join(missing)}")
    return [users[i] for i in dict.fromkeys(ids)]


async def get_report(db: AsyncSession, report_id: str, *, refresh: bool = False) -> Report:
    stmt = select(Report).where(Report.report_id == report_id)
    if refresh:
        stmt = stmt.execution_options(populate_existing=True)
    result = await db.execute(stmt)
    report = result.scalar_one_or_none()
    if report is None:
        raise NotFoundError("Report not found")
    return report


async def create_report(
    db: AsyncSession,
    *,
    creator: User,
    title: str,
    description: str | None = None,
    amount: Decimal = Decimal("0"),
    due_date: date | None = None,
    category: Category | None = None,
    priority: Priority = Priority.medium,
    status: ItemStatus = ItemStatus.draft,
    tags: list[str] | None = None,
    assigned_user_ids: list[str] | None = None,
    files: list[IncomingFile] | None = None,
    meta: dict | None = None,
) -> Report:
    """Create a report, store its files and apply the initial approval state.

    With no assignees the creator is assigned.
    """
    assignees = await resolve_assignees(db, assigned_user_ids or [])
    report = Report(
        title=title,
        description=description,
        amount=amount,
        due_date=due_date,
        category=category,
        priority=priority,
        status=status,
        tags=list(tags or []),
        created_by=creator,
        assigned_users=assignees or [creator],
        files=[],
    )
    lifecycle.apply_initial_approval(report, creator)
    db.add(report)
    await db.flush()

    if files:
        await file_service.attach_many(
            db, owner=report, files=files, uploaded_by_id=creator.id, meta=meta
        )

    await audit_service.record(
        db,
        action=AuditAction.create_report,
        performed_by_id=creator.id,
        meta=meta,
        report_id=report.report_id,
        details={
            "title": title,
            "amount": amount,
            "approval_status": report.approval_status.value,
            "assigned_users": [u.id for u in report.assigned_users],
            "file_count": len(files or []),
        },
    )
    logger.info(
        "Report %s created by %s (%s)",
        report.report_id, creator.id, report.approval_status.value,
    )
    return await get_report(db, report.report_id, refresh=True)


def list_statement(
    *,
    search: str | None = None,
    status: ItemStatus | None = None,
    category: Category | None = None,
    approval_status: ApprovalStatus | None = None,
    start_date: date | datetime | None = None,
    end_date: date | datetime | None = None,
    lifecycle_state: ReportLifecycle | None = ReportLifecycle.active,
):
    """Staff listing. Reports awaiting a deletion decision are excluded by default."""
    stmt = select(Report)
    if lifecycle_state is not None:
        stmt = stmt.where(Report.lifecycle == lifecycle_state)
    if status is not None:
        stmt = stmt.where(Report.status == status)
    if category is not None:
        stmt = stmt.where(Report.category == category)
    if approval_status is not None:
        stmt = stmt.where(Report.approval_status == approval_status)
    clause = search_clause(search, Report.title, Report.description, Report.category, Report.tags)
    if clause is not None:
        stmt = stmt.where(clause)
    for c in date_range_clauses(Report.created_at, start_date, end_date):
        stmt = stmt.where(c)
    return stmt.order_by(Report.created_at.desc(), Report.id)


def visible_to_owner_statement(user: User, *, search: str | None = None):
    """Reports ``user`` created or is assigned to, approved and not pending deletion."""
    stmt = select(Report).where(
        Report.approval_status == ApprovalStatus.approved,
        Report.lifecycle == ReportLifecycle.active,
        or_(
            Report.created_by_id == user.id,
            Report.assigned_users.any(User.id == user.id),
        ),
    )
    clause = search_clause(search, Report.title, Report.description, Report.category, Report.tags)
    if clause is not None:
        stmt = stmt.where(clause)
    return stmt.order_by(Report.created_at.desc(), Report.id)


def pending_approval_statement():
    return (
        select(Report)
        .where(
            Report.approval_status == ApprovalStatus.pending,
            Report.lifecycle == ReportLifecycle.active,
        )
        .order_by(Report.created_at.asc(), Report.id)
    )


def pending_deletion_statement():
    return (
        select(Report)
        .where(Report.lifecycle == ReportLifecycle.pending_deletion)
        .order_by(Report.deletion_requested_at.asc(), Report.id)
    )


async def update_report(
    db: AsyncSession,
    *,
    report: Report,
    actor: User,
    changes: ReportUpdate,
    meta: dict | None = None,
) -> Report:
    """Apply a partial update. Non-admin edits reset approval to pending."""
    if report.lifecycle == ReportLifecycle.pending_deletion:
        raise InvalidTransitionError("Report has an open deletion request")

    data = changes.model_dump(exclude_unset=True)
    assigned_ids = data.pop("assigned_users", None)
    old_status, old_priority = report.status, report.priority
    old_assignees = {u.id for u in report.assigned_users}

    for field, value in data.items():
        if field in ("title", "amount", "priority", "status", "tags") and value is None:
            continue
        setattr(report, field, value)

    if assigned_ids is not None:
        assignees = await resolve_assignees(db, assigned_ids)
        report.assigned_users = assignees or [report.created_by]

    lifecycle.mark_edited(report, actor)
    await db.flush()

    await audit_service.record(
        db,
        action=AuditAction.update_report,
        performed_by_id=actor.id,
        meta=meta,
        report_id=report.report_id,
        details={"changes": data, "approval_status": report.approval_status.value},
    )
    if report.status != old_status:
        await audit_service.record(
            db, action=AuditAction.change_status, performed_by_id=actor.id, meta=meta,
            report_id=report.report_id,
            details={"old": old_status.value, "new": report.status.value},
        )
    if report.priority != old_priority:
        await audit_service.record(
            db, action=AuditAction.change_priority, performed_by_id=actor.id, meta=meta,
            report_id=report.report_id,
            details={"old": old_priority.value, "new": report.priority.value},
        )
    new_assignees = {u.id for u in report.assigned_users}
    for user_id in new_assignees - old_assignees:
        await audit_service.record(
            db, action=AuditAction.assign_user, performed_by_id=actor.id, meta=meta,
            report_id=report.report_id, details={"user_id": user_id},
        )
    for user_id in old_assignees - new_assignees:
        await audit_service.record(
            db, action=AuditAction.unassign_user, performed_by_id=actor.id, meta=meta,
            report_id=report.report_id, details={"user_id": user_id},
        )
    return report


async def approve(db: AsyncSession, *, report: Report, actor: User, meta: dict | None = None) -> Report:
    lifecycle.approve(report, actor)
    await db.flush()
    await audit_service.record(
        db,
        action=AuditAction.approve_report,
        performed_by_id=actor.id,
        verified_by_id=actor.id,
        meta=meta,
        report_id=report.report_id,
    )
    return report


async def reject(
    db: AsyncSession,
    *,
    report: Report,
    actor: User,
    reason: str,
    meta: dict | None = None,
) -> Report:
    lifecycle.reject(report, actor, reason)
    await db.flush()
    await audit_service.record(
        db,
        action=AuditAction.reject_report,
        performed_by_id=actor.id,
        verified_by_id=actor.id,
        meta=meta,
        report_id=report.report_id,
        details={"reason": reason},
    )
    return report


async def request_deletion(
    db: AsyncSession, *, report: Report, actor: User, meta: dict | None = None
) -> Report:
    lifecycle.request_deletion(report, actor)
    await db.flush()
    await audit_service.record(
        db,
        action=AuditAction.request_report_deletion,
        performed_by_id=actor.id,
        meta=meta,
        report_id=report.report_id,
        details={"previous_approval_status": report.pre_deletion_approval},
    )
    return report


async def approve_deletion(
    db: AsyncSession, *, report: Report, actor: User, meta: dict | None = None
) -> None:
    """Remove the report for good: storage objects first, then the rows.

    A failure between the two steps leaves rows pointing at missing files.
    """
    lifecycle.ensure_deletion_requested(report)
    removed = await file_service.remove_stored_files(report)

    await audit_service.record(
        db,
        action=AuditAction.approve_report_deletion,
        performed_by_id=actor.id,
        verified_by_id=actor.id,
        meta=meta,
        report_id=report.report_id,
        details={"title": report.title, "files_removed": removed},
    )
    await audit_service.record(
        db,
        action=AuditAction.delete_report,
        performed_by_id=actor.id,
        meta=meta,
        report_id=report.report_id,
        details={"requested_by": report.deletion_requested_by_id},
    )
    await db.delete(report)
    await db.flush()
    logger.info("Report %s deleted after approval by %s", report.report_id, actor.id)


async def reject_deletion(
    db: AsyncSession, *, report: Report, actor: User, meta: dict | None = None
) -> Report:
    lifecycle.reject_deletion(report, actor)
    await db.flush()
    await audit_service.record(
        db,
        action=AuditAction.reject_report_deletion,
        performed_by_id=actor.id,
        verified_by_id=actor.id,
        meta=meta,
        report_id=report.report_id,
    )
    return report
