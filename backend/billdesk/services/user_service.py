"""User administration: admin seat, role/status changes, deletion.

At most one user holds the admin role. The role check runs first; the
``AdminSeat`` row then makes a concurrent second claim fail at flush.
"""

import logging
import uuid

from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from billdesk.core.errors import (
    AdminAlreadyExistsError, BadRequestError, ConflictError, NotFoundError,
)
from billdesk.models.audit import AuditAction
from billdesk.models.bill import Bill, bill_assignments
from billdesk.models.report import Report, report_assignments
from billdesk.models.session import Session
from billdesk.models.user import AdminSeat, User, UserRole
from billdesk.services import audit_service
from billdesk.services.query import search_clause

logger = logging.getLogger("billdesk.users")


async def admin_exists(db: AsyncSession) -> bool:
    result = await db.execute(
        select(func.count(User.id)).where(User.role == UserRole.admin)
    )
    return result.scalar_one() > 0


async def ensure_no_other_admin(db: AsyncSession, *, exclude_user_id: uuid.UUID | None) -> None:
    stmt = select(User.id).where(User.role == UserRole.admin)
    if exclude_user_id is not None:
        stmt = stmt.where(User.id != exclude_user_id)
    result = await db.execute(stmt.limit(1))
    if result.scalar_one_or_none() is not None:
        raise AdminAlreadyExistsError()


async def claim_admin_seat(db: AsyncSession, user: User) -> None:
    result = await db.execute(select(AdminSeat).where(AdminSeat.id == 1))
    seat = result.scalar_one_or_none()
    if seat is not None:
        if seat.user_id != user.id:
            raise AdminAlreadyExistsError()
        return
    db.add(AdminSeat(id=1, user_id=user.id))
    try:
        await db.flush()
    except IntegrityError:
        raise AdminAlreadyExistsError()


async def get_user(db: AsyncSession, user_id: uuid.UUID) -> User:
    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()
    if user is None:
        raise NotFoundError("User not found")
    return user


def list_statement(*, role: UserRole | None = None, search: str | None = None):
    stmt = select(User)
    if role is not None:
        stmt = stmt.where(User.role == role)
    clause = search_clause(search, User.name, User.email, User.registration_number)
    if clause is not None:
        stmt = stmt.where(clause)
    return stmt.order_by(User.created_at.desc(), User.id)


async def list_assignable(db: AsyncSession) -> list[User]:
    result = await db.execute(
        select(User)
        .where(User.role == UserRole.user, User.is_active.is_(True))
        .order_by(User.name)
    )
    return list(result.scalars().all())


async def update_role(
    db: AsyncSession,
    *,
    user_id: uuid.UUID,
    role: UserRole,
    actor: User,
    meta: dict | None = None,
) -> User:
    if user_id == actor.id:
        raise BadRequestError("You cannot change your own role")
    user = await get_user(db, user_id)
    old_role = user.role

    if role == UserRole.admin and old_role != UserRole.admin:
        await ensure_no_other_admin(db, exclude_user_id=user.id)
        await claim_admin_seat(db, user)

    user.role = role
    await db.flush()

    await audit_service.record(
        db,
        action=AuditAction.update_user_role,
        performed_by_id=actor.id,
        meta=meta,
        details={"user_id": user.id, "old_role": old_role.value, "new_role": role.value},
    )
    logger.info("Role of %s changed %s -> %s", user.id, old_role.value, role.value)
    return user


async def update_status(
    db: AsyncSession,
    *,
    user_id: uuid.UUID,
    is_active: bool,
    actor: User,
    meta: dict | None = None,
) -> User:
    if user_id == actor.id:
        raise BadRequestError("You cannot change your own status")
    user = await get_user(db, user_id)
    user.is_active = is_active
    if not is_active:
        await db.execute(delete(Session).where(Session.user_id == user.id))
    await db.flush()

    await audit_service.record(
        db,
        action=AuditAction.update_user_status,
        performed_by_id=actor.id,
        meta=meta,
        details={"user_id": user.id, "is_active": is_active},
    )
    return user


async def delete_user(
    db: AsyncSession,
    *,
    user_id: uuid.UUID,
    actor: User,
    meta: dict | None = None,
) -> None:
    """Delete a user account.

    Refuses self-deletion, deleting the admin, and deleting users who still
    created reports or bills (those references are immutable).
    """
    if user_id == actor.id:
        raise BadRequestError("You cannot delete your own account")
    user = await get_user(db, user_id)
    if user.role == UserRole.admin:
        raise BadRequestError("Cannot delete the admin user")

    owned = await db.execute(
        select(func.count()).select_from(
            select(Report.id).where(Report.created_by_id == user.id)
            .union_all(select(Bill.id).where(Bill.created_by_id == user.id))
            .subquery()
        )
    )
    if owned.scalar_one() > 0:
        raise ConflictError("User still owns reports or bills")

    await audit_service.record(
        db,
        action=AuditAction.delete_user,
        performed_by_id=actor.id,
        meta=meta,
        details={"user_id": user.id, "email": user.email, "role": user.role.value},
    )

    await db.execute(delete(Session).where(Session.user_id == user.id))
    await db.execute(delete(report_assignments).where(report_assignments.c.user_id == user.id))
    await db.execute(delete(bill_assignments).where(bill_assignments.c.user_id == user.id))
    await db.delete(user)
    await db.flush()
    logger.info("Deleted user %s", user_id)
