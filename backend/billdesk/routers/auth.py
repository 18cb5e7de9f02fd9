"""Auth routes: register, login, logout, me."""

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from billdesk.core.auth import (
    SESSION_TOKEN_HEADER, get_current_user, login_user, logout_user, register_user,
)
from billdesk.dependencies import get_db
from billdesk.models.user import User
from billdesk.schemas.user import LoginRequest, LoginResponse, UserCreate, UserRead

router = APIRouter(prefix="/api/auth", tags=["auth"])


@router.post("/register", response_model=UserRead, status_code=201)
async def register(
    body: UserCreate,
    db: AsyncSession = Depends(get_db),
):
    user = await register_user(
        db,
        name=body.name,
        email=body.email,
        password=body.password,
        role=body.role,
        registration_number=body.registration_number,
        profile_info=body.profile_info.model_dump() if body.profile_info else None,
    )
    await db.commit()
    return user


@router.post("/login", response_model=LoginResponse)
async def login(
    body: LoginRequest,
    db: AsyncSession = Depends(get_db),
):
    user, token = await login_user(db, email=body.email, password=body.password)
    await db.commit()
    return {"token": token, "user": user}


@router.post("/logout", status_code=204)
async def logout(
    request: Request,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    await logout_user(db, token=request.headers.get(SESSION_TOKEN_HEADER))
    await db.commit()


@router.get("/me", response_model=UserRead)
async def me(current_user: User = Depends(get_current_user)):
    return current_user
