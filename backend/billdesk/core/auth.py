"""Authentication: register, login, logout, get_current_user.

Session-token auth with bcrypt password hashing. The token travels in the
``X-Session-Token`` header.
"""

import logging
import secrets
from datetime import datetime, timedelta, timezone

import bcrypt
from fastapi import Depends, HTTPException, Request, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from billdesk.config import settings
from billdesk.core.errors import ConflictError
from billdesk.dependencies import get_db
from billdesk.models.session import Session
from billdesk.models.user import User, UserRole
from billdesk.services import user_service

logger = logging.getLogger("billdesk.auth")

SESSION_TOKEN_HEADER = "X-Session-Token"


def hash_password(password: str) -> str:
    """Hash a password with bcrypt."""
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    """Verify a password against a bcrypt hash."""
    return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))


def _generate_token() -> str:
    """Generate a cryptographically secure session token."""
    return secrets.token_hex(32)


async def register_user(
    db: AsyncSession,
    *,
    name: str,
    email: str,
    password: str,
    role: UserRole = UserRole.user,
    registration_number: str | None = None,
    profile_info: dict | None = None,
) -> User:
    """Register a new user.

    Registering as admin is only possible while no admin exists; the admin
    seat is claimed in the same transaction.
    """
    email = email.strip().lower()
    result = await db.execute(select(User).where(User.email == email))
    if result.scalar_one_or_none() is not None:
        raise ConflictError("Email already registered")

    if registration_number:
        result = await db.execute(
            select(User).where(User.registration_number == registration_number)
        )
        if result.scalar_one_or_none() is not None:
            raise ConflictError("Registration number already in use")

    if role == UserRole.admin:
        await user_service.ensure_no_other_admin(db, exclude_user_id=None)

    user = User(
        name=name,
        email=email,
        password_hash=hash_password(password),
        role=role,
        registration_number=registration_number or None,
        profile_info=profile_info,
    )
    db.add(user)
    await db.flush()

    if role == UserRole.admin:
        await user_service.claim_admin_seat(db, user)

    logger.info("Registered user %s role=%s", user.id, role.value)
    return user


async def login_user(
    db: AsyncSession,
    *,
    email: str,
    password: str,
) -> tuple[User, str]:
    """Authenticate user, create session, return (user, token)."""
    result = await db.execute(select(User).where(User.email == email.strip().lower()))
    user = result.scalar_one_or_none()

    if user is None or not verify_password(password, user.password_hash):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password",
        )

    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Account is not active",
        )

    token = _generate_token()
    session = Session(
        user_id=user.id,
        token=token,
        expires_at=datetime.now(timezone.utc) + timedelta(hours=settings.session_duration_hours),
    )
    db.add(session)
    await db.flush()

    logger.info("Login user=%s", user.id)
    return user, token


async def logout_user(db: AsyncSession, *, token: str) -> None:
    """Revoke a session token."""
    result = await db.execute(select(Session).where(Session.token == token))
    session = result.scalar_one_or_none()
    if session is None:
        return

    session.revoked = True
    await db.flush()


async def get_current_user(
    request: Request,
    db: AsyncSession = Depends(get_db),
) -> User:
    """FastAPI dependency: extract and validate the session token, return current user.

    Raises HTTPException 401 if token is missing, invalid, expired, or revoked.
    """
    token = request.headers.get(SESSION_TOKEN_HEADER)
    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
        )

    result = await db.execute(select(Session).where(Session.token == token))
    session = result.scalar_one_or_none()

    if session is None or session.revoked:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or revoked session",
        )

    expires_at = session.expires_at
    if expires_at.tzinfo is None:
        expires_at = expires_at.replace(tzinfo=timezone.utc)
    if expires_at < datetime.now(timezone.utc):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Session expired",
        )

    result = await db.execute(select(User).where(User.id == session.user_id))
    user = result.scalar_one_or_none()

    if user is None or not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found or inactive",
        )

    request.state.user_id = user.id
    request.state.user_role = user.role.value
    return user
