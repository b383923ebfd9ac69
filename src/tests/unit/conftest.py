"""Shared fixtures for cafe-auth unit tests.

Tests run against an in-memory SQLite database (aiosqlite) with the same
SQLModel tables used in production. The clock fixture patches utc_now in the
attempt tracker and session service so lockout and expiry can be driven
without sleeping.
"""

from datetime import timedelta
from unittest.mock import patch

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel

import cafeauth.core.models  # noqa: F401
from cafeauth.adapters import SqlUserDirectory
from cafeauth.app.config import get_settings
from cafeauth.app.main import app
from cafeauth.core.interfaces import AuditEntry, AuditSink
from cafeauth.core.models import utc_now
from cafeauth.infra import get_session
from cafeauth.services import AuthGateway

ROLES = ["admin", "owner", "manager", "cashier"]
ADMIN_PASSWORD = "admin-secret"
CASHIER_PASSWORD = "cashier-secret"
FORMER_PASSWORD = "former-secret"


class RecordingAuditSink(AuditSink):
    """In-memory audit sink."""

    def __init__(self) -> None:
        self.entries: list[AuditEntry] = []

    async def record(self, entry: AuditEntry) -> None:
        self.entries.append(entry)

    def actions(self) -> list[str]:
        return [entry.action for entry in self.entries]


class Clock:
    """Controllable clock for lockout and session expiry."""

    def __init__(self) -> None:
        self.now = utc_now()

    def __call__(self):
        return self.now

    def advance(self, seconds: float) -> None:
        self.now = self.now + timedelta(seconds=seconds)


@pytest.fixture(autouse=True)
def setup_test_env(monkeypatch):
    """Fresh settings per test; env overrides are applied by individual tests."""
    monkeypatch.delenv("SECURITY_MASTER_ACCESS_CODE", raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def clock():
    clock = Clock()
    with (
        patch("cafeauth.services.attempt_tracker.utc_now", clock),
        patch("cafeauth.services.session_service.utc_now", clock),
    ):
        yield clock


@pytest_asyncio.fixture
async def db_engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)

    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(db_engine):
    return async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(session_factory):
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def users(db_session) -> SqlUserDirectory:
    return SqlUserDirectory(db_session)


@pytest_asyncio.fixture
async def staff(users):
    """Seed roles plus an admin, an active cashier and an inactive cashier."""
    await users.ensure_roles(ROLES)
    admin = await users.create_user("admin", ADMIN_PASSWORD, "admin", "Admin")
    cashier = await users.create_user("cashier1", CASHIER_PASSWORD, "cashier", "Cashier")
    former = await users.create_user("former", FORMER_PASSWORD, "cashier")
    former = await users.set_status(former.id, "inactive")
    return {"admin": admin, "cashier": cashier, "former": former}


@pytest.fixture
def audit_sink() -> RecordingAuditSink:
    return RecordingAuditSink()


@pytest_asyncio.fixture
async def gateway(db_session, users, audit_sink, staff) -> AuthGateway:
    return AuthGateway(db_session, users, audit_sink)


@pytest_asyncio.fixture
async def client(session_factory, staff):
    """HTTP client against the app with the request session bound to SQLite."""

    async def override_get_session():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_session] = override_get_session

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


@pytest.fixture
def passwords() -> dict[str, str]:
    return {
        "admin": ADMIN_PASSWORD,
        "cashier1": CASHIER_PASSWORD,
        "former": FORMER_PASSWORD,
    }


@pytest.fixture
def login_as(client, passwords):
    """Log in a seeded account and return its token.

    The cookie jar is cleared afterwards so each test picks its transport
    (bearer header or cookie) explicitly.
    """

    async def _login(username: str) -> str:
        response = await client.post(
            "/api/v1/login",
            json={"username": username, "password": passwords[username]},
        )
        assert response.status_code == 200, f"Login failed: {response.text}"
        client.cookies.clear()
        return response.json()["token"]

    return _login


def bearer(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def auth_headers():
    return bearer
