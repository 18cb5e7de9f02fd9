import pytest
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from billdesk.models.audit import AuditAction, AuditLog
from billdesk.models.user import User


@pytest.mark.asyncio
async def test_audit_log_round_trip(db_session: AsyncSession):
    user = User(name="Actor", email="actor@example.com", password_hash="h")
    db_session.add(user)
    await db_session.flush()

    entry = AuditLog(
        action=AuditAction.create_report,
        performed_by_id=user.id,
        report_id="report_1700000000000_abcdefghi",
        details={"title": "Q1"},
        ip_address="127.0.0.1",
    )
    db_session.add(entry)
    await db_session.commit()

    fetched = (await db_session.execute(select(AuditLog))).scalar_one()
    assert fetched.log_id.startswith("log_")
    assert fetched.action == AuditAction.create_report
    assert fetched.details == {"title": "Q1"}
    assert fetched.timestamp is not None


@pytest.mark.asyncio
async def test_audit_log_survives_user_deletion(db_session: AsyncSession):
    """Deleting the actor nulls the reference instead of dropping the entry."""
    user = User(name="Gone", email="gone@example.com", password_hash="h")
    db_session.add(user)
    await db_session.flush()
    db_session.add(AuditLog(action=AuditAction.delete_file, performed_by_id=user.id))
    await db_session.commit()

    await db_session.delete(user)
    await db_session.commit()

    result = await db_session.execute(
        select(AuditLog).execution_options(populate_existing=True)
    )
    fetched = result.scalar_one()
    assert fetched.performed_by_id is None
