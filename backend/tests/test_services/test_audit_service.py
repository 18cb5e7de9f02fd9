import csv
import io
import uuid

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from billdesk.core.errors import NotFoundError
from billdesk.models.audit import AuditAction
from billdesk.models.user import User
from billdesk.services import audit_service


async def _create_user(db_session: AsyncSession, email: str = "audit-svc@example.com") -> User:
    user = User(name="Audit Person", email=email, password_hash="fakehash")
    db_session.add(user)
    await db_session.commit()
    return user


@pytest.mark.asyncio
async def test_record_merges_request_into_details(db_session: AsyncSession):
    user = await _create_user(db_session)
    meta = {
        "ip_address": "10.0.0.1",
        "user_agent": "x" * 600,
        "request": {"method": "PUT", "url": "/api/reports/r1", "params": {}, "query": {}},
    }

    entry = await audit_service.record(
        db_session,
        action=AuditAction.update_report,
        performed_by_id=user.id,
        meta=meta,
        report_id="report_1",
        details={"changed_by": user.id},
    )
    await db_session.commit()

    assert entry.log_id.startswith("log_")
    assert entry.ip_address == "10.0.0.1"
    assert len(entry.user_agent) == 500
    assert entry.details["method"] == "PUT"
    assert entry.details["changed_by"] == str(user.id)


@pytest.mark.asyncio
async def test_list_statement_filters(db_session: AsyncSession):
    user = await _create_user(db_session)
    other = await _create_user(db_session, "other@example.com")
    await audit_service.record(
        db_session, action=AuditAction.create_report, performed_by_id=user.id, report_id="r1"
    )
    await audit_service.record(
        db_session, action=AuditAction.delete_file, performed_by_id=other.id, report_id="r2"
    )
    await db_session.commit()

    by_report = await db_session.execute(audit_service.list_statement(report_id="r1"))
    assert [e.action for e in by_report.scalars().all()] == [AuditAction.create_report]

    by_user = await db_session.execute(audit_service.list_statement(user_id=other.id))
    assert [e.report_id for e in by_user.scalars().all()] == ["r2"]

    by_action = await db_session.execute(audit_service.list_statement(action="delete_file"))
    assert len(by_action.scalars().all()) == 1


@pytest.mark.asyncio
async def test_get_log_missing(db_session: AsyncSession):
    with pytest.raises(NotFoundError):
        await audit_service.get_log(db_session, "log_missing")


@pytest.mark.asyncio
async def test_stats(db_session: AsyncSession):
    user = await _create_user(db_session)
    for _ in range(3):
        await audit_service.record(
            db_session, action=AuditAction.download_file, performed_by_id=user.id
        )
    await audit_service.record(db_session, action=AuditAction.create_bill, performed_by_id=user.id)
    await db_session.commit()

    stats = await audit_service.get_stats(db_session)
    assert stats["action_stats"][0] == {"action": "download_file", "count": 3}
    assert stats["user_stats"][0]["email"] == user.email
    assert stats["user_stats"][0]["count"] == 4
    assert len(stats["recent_activity"]) == 4


@pytest.mark.asyncio
async def test_export_csv_layout(db_session: AsyncSession):
    """Header unquoted, data fields quoted, people rendered as 'Name (email)'."""
    user = await _create_user(db_session)
    await audit_service.record(
        db_session,
        action=AuditAction.approve_report,
        performed_by_id=user.id,
        verified_by_id=user.id,
        report_id="report_gone",
        meta={"ip_address": "1.2.3.4", "user_agent": "pytest"},
    )
    await db_session.commit()

    content = await audit_service.export_csv(db_session)
    lines = content.splitlines()
    assert lines[0] == audit_service.CSV_HEADER
    assert lines[1].startswith('"')

    row = next(csv.reader(io.StringIO(lines[1])))
    assert row[1] == "approve_report"
    assert row[2] == "Audit Person (audit-svc@example.com)"
    assert row[3] == row[2]
    # Deleted report falls back to its public id
    assert row[4] == "report_gone"
    assert row[6:] == ["1.2.3.4", "pytest"]


@pytest.mark.asyncio
async def test_export_csv_empty(db_session: AsyncSession):
    content = await audit_service.export_csv(db_session, user_id=uuid.uuid4())
    assert content == audit_service.CSV_HEADER + "\n"
