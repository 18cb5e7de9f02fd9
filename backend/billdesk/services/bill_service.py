"""Bill service: creation, review queue, payment status, files and removal.

Bills share the approval workflow with reports but are removed directly,
without a deletion request.
"""

import logging
from collections import Counter, defaultdict
from datetime import date, datetime, timezone
from decimal import Decimal

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from billdesk.core.errors import NotFoundError
from billdesk.models.audit import AuditAction
from billdesk.models.bill import Bill
from billdesk.models.enums import ApprovalStatus, Category, ItemStatus, Priority
from billdesk.models.user import User
from billdesk.schemas.bill import PaymentInfo
from billdesk.services import audit_service, file_service, lifecycle
from billdesk.services.query import date_range_clauses, search_clause
from billdesk.services.report_service import resolve_assignees

logger = logging.getLogger("billdesk.bills")

TREND_MONTHS = 6


async def get_bill(db: AsyncSession, bill_id: str, *, refresh: bool = False) -> Bill:
    stmt = select(Bill).where(Bill.bill_id == bill_id)
    if refresh:
        stmt = stmt.execution_options(populate_existing=True)
    result = await db.execute(stmt)
    bill = result.scalar_one_or_none()
    if bill is None:
        raise NotFoundError("Bill not found")
    return bill


async def create_bill(
    db: AsyncSession,
    *,
    creator: User,
    title: str,
    amount: Decimal,
    category: Category,
    description: str | None = None,
    due_date: date | None = None,
    status: ItemStatus = ItemStatus.draft,
    priority: Priority = Priority.medium,
    tags: list[str] | None = None,
    assigned_user_ids: list[str] | None = None,
    meta: dict | None = None,
) -> Bill:
    assignees = await resolve_assignees(db, assigned_user_ids or [])
    bill = Bill(
        title=title,
        description=description,
        amount=amount,
        due_date=due_date,
        category=category,
        status=status,
        priority=priority,
        tags=list(tags or []),
        created_by=creator,
        assigned_users=assignees or [creator],
        files=[],
    )
    lifecycle.apply_initial_approval(bill, creator)
    db.add(bill)
    await db.flush()

    await audit_service.record(
        db,
        action=AuditAction.create_bill,
        performed_by_id=creator.id,
        meta=meta,
        bill_id=bill.bill_id,
        details={
            "title": title,
            "amount": amount,
            "category": category,
            "approval_status": bill.approval_status.value,
        },
    )
    logger.info("Bill %s created by %s (%s)", bill.bill_id, creator.id, bill.approval_status.value)
    return await get_bill(db, bill.bill_id, refresh=True)


def list_statement(
    *,
    search: str | None = None,
    status: ItemStatus | None = None,
    category: Category | None = None,
    approval_status: ApprovalStatus | None = None,
    start_date: date | datetime | None = None,
    end_date: date | datetime | None = None,
):
    stmt = select(Bill)
    if status is not None:
        stmt = stmt.where(Bill.status == status)
    if category is not None:
        stmt = stmt.where(Bill.category == category)
    if approval_status is not None:
        stmt = stmt.where(Bill.approval_status == approval_status)
    clause = search_clause(search, Bill.title, Bill.description, Bill.category, Bill.tags)
    if clause is not None:
        stmt = stmt.where(clause)
    for c in date_range_clauses(Bill.created_at, start_date, end_date):
        stmt = stmt.where(c)
    return stmt.order_by(Bill.created_at.desc(), Bill.id)


def _owned_by(user: User):
    return or_(Bill.created_by_id == user.id, Bill.assigned_users.any(User.id == user.id))


def visible_to_owner_statement(
    user: User,
    *,
    search: str | None = None,
    status: ItemStatus | None = None,
    category: Category | None = None,
):
    stmt = select(Bill).where(Bill.approval_status == ApprovalStatus.approved, _owned_by(user))
    if status is not None:
        stmt = stmt.where(Bill.status == status)
    if category is not None:
        stmt = stmt.where(Bill.category == category)
    clause = search_clause(search, Bill.title, Bill.description, Bill.category, Bill.tags)
    if clause is not None:
        stmt = stmt.where(clause)
    return stmt.order_by(Bill.created_at.desc(), Bill.id)


def pending_approval_statement():
    return (
        select(Bill)
        .where(Bill.approval_status == ApprovalStatus.pending)
        .order_by(Bill.created_at.asc(), Bill.id)
    )


async def approve(db: AsyncSession, *, bill: Bill, actor: User, meta: dict | None = None) -> Bill:
    lifecycle.approve(bill, actor)
    await db.flush()
    await audit_service.record(
        db,
        action=AuditAction.approve_bill,
        performed_by_id=actor.id,
        verified_by_id=actor.id,
        meta=meta,
        bill_id=bill.bill_id,
    )
    return bill


async def reject(
    db: AsyncSession, *, bill: Bill, actor: User, reason: str, meta: dict | None = None
) -> Bill:
    lifecycle.reject(bill, actor, reason)
    await db.flush()
    await audit_service.record(
        db,
        action=AuditAction.reject_bill,
        performed_by_id=actor.id,
        verified_by_id=actor.id,
        meta=meta,
        bill_id=bill.bill_id,
        details={"reason": reason},
    )
    return bill


async def update_status(
    db: AsyncSession,
    *,
    bill: Bill,
    actor: User,
    status: ItemStatus,
    payment_info: PaymentInfo | None = None,
    meta: dict | None = None,
) -> Bill:
    """Change the payment status, merging any payment details supplied."""
    old_status = bill.status
    bill.status = status
    if payment_info is not None:
        merged = dict(bill.payment_info or {})
        merged.update(payment_info.model_dump(mode="json", exclude_unset=True))
        bill.payment_info = merged
    await db.flush()

    await audit_service.record(
        db,
        action=AuditAction.change_status,
        performed_by_id=actor.id,
        meta=meta,
        bill_id=bill.bill_id,
        details={
            "old": old_status.value,
            "new": status.value,
            "payment_info": bill.payment_info,
        },
    )
    return bill


async def delete_bill(db: AsyncSession, *, bill: Bill, actor: User, meta: dict | None = None) -> None:
    """Hard-delete a bill: storage objects first, then the rows."""
    removed = await file_service.remove_stored_files(bill)
    await audit_service.record(
        db,
        action=AuditAction.delete_bill,
        performed_by_id=actor.id,
        meta=meta,
        bill_id=bill.bill_id,
        details={"title": bill.title, "files_removed": removed},
    )
    await db.delete(bill)
    await db.flush()
    logger.info("Bill %s deleted by %s", bill.bill_id, actor.id)


def _month_key(dt: datetime) -> str:
    return dt.strftime("%Y-%m")


def _last_months(today: date, count: int) -> list[str]:
    months = []
    year, month = today.year, today.month
    for _ in range(count):
        months.append(f"{year:04d}-{month:02d}")
        month -= 1
        if month == 0:
            year, month = year - 1, 12
    return list(reversed(months))


async def user_analytics(db: AsyncSession, user: User) -> dict:
    """Totals and breakdowns over the bills ``user`` can see."""
    result = await db.execute(visible_to_owner_statement(user))
    bills = list(result.scalars().all())

    total = sum((b.amount for b in bills), Decimal("0"))
    category_counts = Counter(b.category.value for b in bills)
    status_counts = Counter(b.status.value for b in bills)
    amount_by_category: dict[str, Decimal] = defaultdict(lambda: Decimal("0"))
    for b in bills:
        amount_by_category[b.category.value] += b.amount

    months = _last_months(datetime.now(timezone.utc).date(), TREND_MONTHS)
    trend = {m: {"month": m, "count": 0, "amount": Decimal("0")} for m in months}
    for b in bills:
        key = _month_key(b.created_at)
        if key in trend:
            trend[key]["count"] += 1
            trend[key]["amount"] += b.amount

    return {
        "total_bills": len(bills),
        "total_amount": total,
        "average_amount": (total / len(bills)).quantize(Decimal("0.01")) if bills else Decimal("0"),
        "category_breakdown": dict(category_counts),
        "status_breakdown": dict(status_counts),
        "monthly_trend": list(trend.values()),
        "amount_by_category": dict(amount_by_category),
    }
