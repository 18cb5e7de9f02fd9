"""Audit service: append-only event logging, review queries and CSV export.

Handlers call ``record`` explicitly after a successful mutation, in the same
transaction as the change. No update or delete methods are exposed.
"""

import csv
import io
import uuid
from datetime import date, datetime

from fastapi import Request
from fastapi.encoders import jsonable_encoder
from sqlalchemy import desc, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from billdesk.core.errors import NotFoundError
from billdesk.models.attachment import Attachment
from billdesk.models.audit import AuditAction, AuditLog
from billdesk.models.report import Report
from billdesk.models.user import User
from billdesk.services.query import date_range_clauses

CSV_HEADER = "Timestamp,Action,Performed By,Verified By,Report,File,IP Address,User Agent"


def request_meta(request: Request) -> dict:
    """Capture the request facts every audit record carries."""
    return {
        "ip_address": request.client.host if request.client else None,
        "user_agent": request.headers.get("user-agent"),
        "request": {
            "method": request.method,
            "url": str(request.url.path),
            "params": dict(request.path_params),
            "query": dict(request.query_params),
        },
    }


async def record(
    db: AsyncSession,
    *,
    action: AuditAction,
    performed_by_id: uuid.UUID | None,
    meta: dict | None = None,
    verified_by_id: uuid.UUID | None = None,
    report_id: str | None = None,
    bill_id: str | None = None,
    file_id: str | None = None,
    details: dict | None = None,
) -> AuditLog:
    """Create an append-only audit log entry."""
    meta = meta or {}
    user_agent = meta.get("user_agent")
    payload = dict(meta.get("request") or {})
    if details:
        payload.update(details)
    entry = AuditLog(
        action=action,
        performed_by_id=performed_by_id,
        verified_by_id=verified_by_id,
        report_id=report_id,
        bill_id=bill_id,
        file_id=file_id,
        details=jsonable_encoder(payload) if payload else None,
        ip_address=meta.get("ip_address"),
        user_agent=user_agent[:500] if user_agent else None,
    )
    db.add(entry)
    await db.flush()
    return entry


def list_statement(
    *,
    report_id: str | None = None,
    bill_id: str | None = None,
    action: str | None = None,
    user_id: uuid.UUID | None = None,
    start_date: date | datetime | None = None,
    end_date: date | datetime | None = None,
):
    stmt = select(AuditLog)
    if report_id:
        stmt = stmt.where(AuditLog.report_id == report_id)
    if bill_id:
        stmt = stmt.where(AuditLog.bill_id == bill_id)
    if action:
        stmt = stmt.where(AuditLog.action == AuditAction(action))
    if user_id:
        stmt = stmt.where(AuditLog.performed_by_id == user_id)
    for clause in date_range_clauses(AuditLog.timestamp, start_date, end_date):
        stmt = stmt.where(clause)
    return stmt.order_by(AuditLog.timestamp.desc(), AuditLog.id)


async def get_log(db: AsyncSession, log_id: str) -> AuditLog:
    result = await db.execute(select(AuditLog).where(AuditLog.log_id == log_id))
    entry = result.scalar_one_or_none()
    if entry is None:
        raise NotFoundError("Audit log not found")
    return entry


async def get_stats(db: AsyncSession) -> dict:
    """Counts per action, the ten most active users and the latest entries."""
    action_rows = await db.execute(
        select(AuditLog.action, func.count(AuditLog.id).label("count"))
        .group_by(AuditLog.action)
        .order_by(desc("count"))
    )
    action_stats = [
        {"action": _enum_value(action), "count": count} for action, count in action_rows.all()
    ]

    user_rows = await db.execute(
        select(User.id, User.name, User.email, func.count(AuditLog.id).label("count"))
        .join(User, User.id == AuditLog.performed_by_id)
        .group_by(User.id, User.name, User.email)
        .order_by(desc("count"))
        .limit(10)
    )
    user_stats = [
        {"user_id": uid, "name": name, "email": email, "count": count}
        for uid, name, email, count in user_rows.all()
    ]

    recent = await db.execute(
        select(AuditLog).order_by(AuditLog.timestamp.desc(), AuditLog.id).limit(10)
    )
    return {
        "action_stats": action_stats,
        "user_stats": user_stats,
        "recent_activity": list(recent.scalars().all()),
    }


def _enum_value(val) -> str | None:
    if val is None:
        return None
    return val.value if hasattr(val, "value") else str(val)


def _person(users: dict, user_id: uuid.UUID | None) -> str:
    if user_id is None:
        return ""
    user = users.get(user_id)
    # Deleted accounts keep their id in the trail
    return f"{user.name} ({user.email})" if user else str(user_id)


async def export_csv(db: AsyncSession, **filters) -> str:
    """Render the audit trail as CSV, newest first.

    The header row is unquoted; every data field is quoted.
    """
    result = await db.execute(list_statement(**filters))
    logs = list(result.scalars().all())

    user_ids = {i for log in logs for i in (log.performed_by_id, log.verified_by_id) if i}
    users = {}
    if user_ids:
        rows = await db.execute(select(User).where(User.id.in_(user_ids)))
        users = {u.id: u for u in rows.scalars().all()}

    report_ids = {log.report_id for log in logs if log.report_id}
    reports = {}
    if report_ids:
        rows = await db.execute(
            select(Report.report_id, Report.title).where(Report.report_id.in_(report_ids))
        )
        reports = dict(rows.all())

    file_ids = {log.file_id for log in logs if log.file_id}
    files = {}
    if file_ids:
        rows = await db.execute(
            select(Attachment.file_id, Attachment.original_name)
            .where(Attachment.file_id.in_(file_ids))
        )
        files = dict(rows.all())

    buf = io.StringIO()
    buf.write(CSV_HEADER + "\n")
    writer = csv.writer(buf, quoting=csv.QUOTE_ALL, lineterminator="\n")
    for log in logs:
        writer.writerow([
            log.timestamp.isoformat(),
            _enum_value(log.action),
            _person(users, log.performed_by_id),
            _person(users, log.verified_by_id),
            reports.get(log.report_id, log.report_id or ""),
            files.get(log.file_id, log.file_id or ""),
            log.ip_address or "",
            log.user_agent or "",
        ])
    return buf.getvalue()
