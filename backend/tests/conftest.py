"""Shared test fixtures: in-memory SQLite DB, async session, test client, actors."""

import secrets
from datetime import datetime, timedelta, timezone

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

import billdesk.models  # noqa: F401
from billdesk.core.auth import SESSION_TOKEN_HEADER, hash_password
from billdesk.dependencies import get_db
from billdesk.main import app
from billdesk.models.base import Base
from billdesk.models.session import Session
from billdesk.models.user import User, UserRole
from billdesk.services import user_service
from billdesk.services.storage import InMemoryStorageBackend, set_storage

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

test_engine = create_async_engine(TEST_DATABASE_URL, echo=False)


# Enable foreign key enforcement in SQLite (off by default).
@event.listens_for(test_engine.sync_engine, "connect")
def _set_sqlite_pragma(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


test_session_factory = async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture(autouse=True)
async def setup_db():
    """Create all tables before each test, drop after."""
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest.fixture(autouse=True)
def storage():
    """Use in-memory storage for every test."""
    backend = InMemoryStorageBackend()
    set_storage(backend)
    yield backend
    set_storage(None)


@pytest_asyncio.fixture
async def db_session() -> AsyncSession:
    """Yield a test DB session."""
    async with test_session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def client(db_session: AsyncSession) -> AsyncClient:
    """Yield an httpx AsyncClient wired to the test DB."""

    async def _override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = _override_get_db
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
    app.dependency_overrides.clear()


async def create_user(
    db: AsyncSession,
    *,
    role: UserRole = UserRole.user,
    email: str | None = None,
    name: str | None = None,
    password: str = "password123",
) -> User:
    """Insert a user directly. Admins also take the admin seat."""
    email = email or f"{role.value}-{secrets.token_hex(4)}@example.com"
    user = User(
        name=name or role.value.replace("_", " ").title(),
        email=email,
        password_hash=hash_password(password),
        role=role,
    )
    db.add(user)
    await db.flush()
    if role == UserRole.admin:
        await user_service.claim_admin_seat(db, user)
    await db.commit()
    return user


async def auth_headers(db: AsyncSession, user: User) -> dict:
    """Open a session for ``user`` and return the auth header."""
    token = secrets.token_hex(32)
    db.add(Session(
        user_id=user.id,
        token=token,
        expires_at=datetime.now(timezone.utc) + timedelta(hours=1),
    ))
    await db.commit()
    return {SESSION_TOKEN_HEADER: token}


class Actor:
    def __init__(self, user: User, headers: dict):
        self.user = user
        self.headers = headers


async def _actor(db: AsyncSession, role: UserRole, email: str) -> Actor:
    user = await create_user(db, role=role, email=email)
    return Actor(user, await auth_headers(db, user))


@pytest_asyncio.fixture
async def admin(db_session: AsyncSession) -> Actor:
    return await _actor(db_session, UserRole.admin, "admin@example.com")


@pytest_asyncio.fixture
async def manager(db_session: AsyncSession) -> Actor:
    return await _actor(db_session, UserRole.operations_manager, "manager@example.com")


@pytest_asyncio.fixture
async def end_user(db_session: AsyncSession) -> Actor:
    return await _actor(db_session, UserRole.user, "user@example.com")


@pytest_asyncio.fixture
async def other_user(db_session: AsyncSession) -> Actor:
    return await _actor(db_session, UserRole.user, "other@example.com")
