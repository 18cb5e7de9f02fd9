"""Seed the default accounts: one admin, one operations manager, one user.

Idempotent: accounts whose email already exists are left alone, and the
admin account is skipped when another admin already holds the role.

Run with ``python -m billdesk.seed`` or the ``billdesk-seed`` script.
"""

import asyncio
import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from billdesk.core.auth import register_user
from billdesk.models.user import User, UserRole
from billdesk.services import user_service

logger = logging.getLogger("billdesk.seed")

SEED_USERS = [
    {
        "name": "Admin User",
        "email": "admin@example.com",
        "password": "admin123",
        "role": UserRole.admin,
        "registration_number": "ADMIN001",
        "profile_info": {
            "phone": "+1-555-0101",
            "department": "Administration",
            "position": "System Administrator",
        },
    },
    {
        "name": "Operations Manager",
        "email": "manager@example.com",
        "password": "manager123",
        "role": UserRole.operations_manager,
        "registration_number": "MGR001",
        "profile_info": {
            "phone": "+1-555-0102",
            "department": "Operations",
            "position": "Operations Manager",
        },
    },
    {
        "name": "Regular User",
        "email": "user@example.com",
        "password": "user123",
        "role": UserRole.user,
        "registration_number": "USR001",
        "profile_info": {
            "phone": "+1-555-0103",
            "department": "Finance",
            "position": "Accountant",
        },
    },
]


async def seed_users(db: AsyncSession) -> list[User]:
    """Create the default accounts that are missing. Returns seeded/existing users."""
    results = []
    for data in SEED_USERS:
        existing = await db.execute(select(User).where(User.email == data["email"]))
        user = existing.scalar_one_or_none()
        if user is not None:
            results.append(user)
            continue
        if data["role"] == UserRole.admin and await user_service.admin_exists(db):
            logger.info("Admin already exists, skipping %s", data["email"])
            continue
        user = await register_user(db, **data)
        results.append(user)
    await db.flush()
    return results


async def _run() -> None:
    from billdesk.dependencies import async_session_factory, engine
    import billdesk.models  # noqa: F401
    from billdesk.models.base import Base

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    async with async_session_factory() as db:
        users = await seed_users(db)
        await db.commit()
    await engine.dispose()
    for user in users:
        logger.info("Seeded %s (%s)", user.email, user.role.value)


def main() -> None:
    from billdesk.core.logging import configure_logging

    configure_logging()
    asyncio.run(_run())


if __name__ == "__main__":
    main()
