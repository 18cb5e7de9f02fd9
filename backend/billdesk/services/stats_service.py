"""Admin statistics and analytics.

Grouped counts run in SQL. Calendar bucketing (month, day) is done in Python
over the selected rows so the results match across database backends.
"""

from collections import Counter
from datetime import datetime, timedelta, timezone
from decimal import Decimal

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from billdesk.models.bill import Bill
from billdesk.models.enums import ApprovalStatus, ReportLifecycle
from billdesk.models.report import Report
from billdesk.models.user import User

RECENT_DAYS = 30


def _aware(dt: datetime) -> datetime:
    return dt if dt.tzinfo else dt.replace(tzinfo=timezone.utc)


async def _count(db: AsyncSession, stmt) -> int:
    return (await db.execute(stmt)).scalar_one()


async def _grouped(db: AsyncSession, column) -> dict[str, int]:
    rows = await db.execute(select(column, func.count()).group_by(column))
    return {(k.value if hasattr(k, "value") else str(k)): n for k, n in rows.all()}


async def admin_stats(db: AsyncSession, *, now: datetime | None = None) -> dict:
    now = now or datetime.now(timezone.utc)
    recent_cutoff = now - timedelta(days=RECENT_DAYS)
    year_start = datetime(now.year, 1, 1, tzinfo=timezone.utc)

    users = {
        "total": await _count(db, select(func.count(User.id))),
        "active": await _count(db, select(func.count(User.id)).where(User.is_active.is_(True))),
        "by_role": await _grouped(db, User.role),
        "recent": await _count(
            db, select(func.count(User.id)).where(User.created_at >= recent_cutoff)
        ),
    }
    reports = {
        "total": await _count(db, select(func.count(Report.id))),
        "approved": await _count(
            db,
            select(func.count(Report.id)).where(
                Report.approval_status == ApprovalStatus.approved,
                Report.lifecycle == ReportLifecycle.active,
            ),
        ),
        "pending_approval": await _count(
            db,
            select(func.count(Report.id)).where(
                Report.approval_status == ApprovalStatus.pending,
                Report.lifecycle == ReportLifecycle.active,
            ),
        ),
        "pending_deletion": await _count(
            db,
            select(func.count(Report.id)).where(
                Report.lifecycle == ReportLifecycle.pending_deletion
            ),
        ),
    }
    bills = {
        "total": await _count(db, select(func.count(Bill.id))),
        "by_status": await _grouped(db, Bill.status),
        "by_approval_status": await _grouped(db, Bill.approval_status),
        "recent": await _count(
            db, select(func.count(Bill.id)).where(Bill.created_at >= recent_cutoff)
        ),
    }

    user_rows = await db.execute(select(User.created_at).where(User.created_at >= year_start))
    monthly_users = Counter(_aware(ts).month for (ts,) in user_rows.all())

    bill_rows = await db.execute(
        select(Bill.created_at, Bill.amount).where(Bill.created_at >= year_start)
    )
    monthly_bills: dict[int, dict] = {}
    for ts, amount in bill_rows.all():
        month = _aware(ts).month
        bucket = monthly_bills.setdefault(month, {"month": month, "count": 0, "total_amount": Decimal("0")})
        bucket["count"] += 1
        bucket["total_amount"] += amount

    return {
        "users": users,
        "reports": reports,
        "bills": bills,
        "trends": {
            "monthly_users": [
                {"month": m, "count": monthly_users[m]} for m in sorted(monthly_users)
            ],
            "monthly_bills": [monthly_bills[m] for m in sorted(monthly_bills)],
        },
    }


async def admin_analytics(db: AsyncSession, *, period_days: int = 30, now: datetime | None = None) -> dict:
    """Per-day signups and bills for the last ``period_days`` days plus bill breakdowns."""
    now = now or datetime.now(timezone.utc)
    start = now - timedelta(days=period_days)

    user_rows = await db.execute(select(User.created_at).where(User.created_at >= start))
    users_per_day = Counter(_aware(ts).date().isoformat() for (ts,) in user_rows.all())

    bill_rows = await db.execute(
        select(Bill.created_at, Bill.amount).where(Bill.created_at >= start)
    )
    bills_per_day: dict[str, dict] = {}
    for ts, amount in bill_rows.all():
        day = _aware(ts).date().isoformat()
        bucket = bills_per_day.setdefault(day, {"date": day, "count": 0, "total_amount": Decimal("0")})
        bucket["count"] += 1
        bucket["total_amount"] += amount

    category_rows = await db.execute(
        select(Bill.category, func.count(Bill.id), func.sum(Bill.amount)).group_by(Bill.category)
    )
    categories: dict[str, dict] = {}
    for category, count, total in category_rows.all():
        key = category.value if hasattr(category, "value") else str(category)
        categories[key] = {
            "category": key,
            "count": count,
            "total_amount": Decimal(str(total or 0)),
        }

    status_counts = await _grouped(db, Bill.status)

    return {
        "period": period_days,
        "user_analytics": [
            {"date": d, "count": users_per_day[d]} for d in sorted(users_per_day)
        ],
        "bill_analytics": [bills_per_day[d] for d in sorted(bills_per_day)],
        "category_breakdown": sorted(categories.values(), key=lambda c: -c["count"]),
        "status_breakdown": sorted(
            ({"status": s, "count": n} for s, n in status_counts.items()),
            key=lambda s: -s["count"],
        ),
    }
