"""Shared test fixtures — async DB, client, auth helpers, factories.

Uses SQLite + aiosqlite for fast isolated tests without PostgreSQL. The
driver's own transaction handling is switched off so SQLAlchemy emits
BEGIN / SAVEPOINT itself; notifications are written inside savepoints.

All sessions share one in-memory connection: commit the ``db`` fixture
before calling the API, and re-read rows with ``populate_existing`` after.
"""

from __future__ import annotations

import os

# Set test JWT_SECRET before any other import touches pydantic-settings
os.environ.setdefault("JWT_SECRET", "test-secret-for-ci-do-not-use-in-production")

import uuid
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from typing import AsyncGenerator, Optional

import pytest
from httpx import ASGITransport, AsyncClient
from jose import jwt
from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from leaveflow.common.constants import (
    AdminType,
    CoverRequestStatus,
    HalfDayType,
    LeaveStatus,
    LeaveType,
    UserRole,
)
from leaveflow.config import settings
from leaveflow.database import Base, commit_session, get_db
from leaveflow.main import create_app
from leaveflow.notifications.email import discard_outbox, set_email_gateway

# Import ALL model modules so SQLAlchemy can resolve cross-module relationships
import leaveflow.calendar.models  # noqa: F401
import leaveflow.common.audit  # noqa: F401
import leaveflow.core_hr.models  # noqa: F401
import leaveflow.leave.models  # noqa: F401
import leaveflow.notifications.models  # noqa: F401

# ── SQLite compat: compile PG-specific types to TEXT/CHAR ───────────

from sqlalchemy.dialects.postgresql import JSONB, UUID as PG_UUID
from sqlalchemy.ext.compiler import compiles


@compiles(JSONB, "sqlite")
def _jsonb_sqlite(element, compiler, **kw):
    return "TEXT"


@compiles(PG_UUID, "sqlite")
def _uuid_sqlite(element, compiler, **kw):
    return "CHAR(36)"


# ── Test database (SQLite in-memory) ────────────────────────────────

TEST_DATABASE_URL = "sqlite+aiosqlite://"

engine = create_async_engine(
    TEST_DATABASE_URL,
    echo=False,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)


@event.listens_for(engine.sync_engine, "connect")
def _on_connect(dbapi_conn, connection_record):
    """Register NOW() / uuid functions and hand transaction control to SQLAlchemy."""
    dbapi_conn.create_function(
        "NOW", 0, lambda: datetime.now(timezone.utc).isoformat(),
    )
    dbapi_conn.create_function(
        "uuid_generate_v4", 0, lambda: str(uuid.uuid4()),
    )
    dbapi_conn.create_function(
        "gen_random_uuid", 0, lambda: str(uuid.uuid4()),
    )
    dbapi_conn.isolation_level = None


@event.listens_for(engine.sync_engine, "begin")
def _on_begin(conn):
    conn.exec_driver_sql("BEGIN")


TestSessionFactory = async_sessionmaker(
    engine, class_=AsyncSession, expire_on_commit=False,
)


@pytest.fixture(autouse=True)
async def _setup_db():
    """Create all tables before each test, drop after."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest.fixture(autouse=True)
def _reset_rate_limiter():
    """Reset rate limiter storage between tests to prevent cross-test interference."""
    from leaveflow.common.rate_limit import limiter

    if hasattr(limiter, "_storage"):
        limiter._storage.reset()
    yield


# ── Email capture ───────────────────────────────────────────────────

class RecordingEmailGateway:
    """Collects delivered emails instead of sending them."""

    def __init__(self) -> None:
        self.sent: list[dict[str, str]] = []

    async def send(self, to: str, subject: str, body: str) -> None:
        self.sent.append({"to": to, "subject": subject, "body": body})


@pytest.fixture(autouse=True)
def mailbox() -> RecordingEmailGateway:
    gateway = RecordingEmailGateway()
    set_email_gateway(gateway)
    yield gateway
    set_email_gateway(None)


async def _override_get_db() -> AsyncGenerator[AsyncSession, None]:
    async with TestSessionFactory() as session:
        try:
            yield session
            await commit_session(session)
        except Exception:
            await session.rollback()
            discard_outbox(session)
            raise
        finally:
            await session.close()


# ── FastAPI test client ─────────────────────────────────────────────

@pytest.fixture
async def app():
    """Create a fresh app instance with DB dependency overridden."""
    application = create_app()
    application.dependency_overrides[get_db] = _override_get_db
    yield application
    application.dependency_overrides.clear()


@pytest.fixture
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client wired to the test app."""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac


# ── Database session (for direct DB operations in tests) ────────────

@pytest.fixture
async def db() -> AsyncGenerator[AsyncSession, None]:
    async with TestSessionFactory() as session:
        yield session
        await session.commit()


# ── Clock ───────────────────────────────────────────────────────────

# Monday 2 March 2026, 09:00 UTC
NOW = datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)
TODAY = NOW.date()


def next_monday(after: date, *, weeks: int = 0) -> date:
    """First Monday strictly after *after*, plus *weeks* weeks."""
    days = 7 - after.weekday()
    return after + timedelta(days=days + 7 * weeks)


# ── Model factories ─────────────────────────────────────────────────

def _make_employee(
    *,
    first_name: str = "Test",
    last_name: str = "User",
    email: Optional[str] = None,
    department: str = "Operations",
    role: UserRole = UserRole.EMPLOYEE,
    admin_type: Optional[AdminType] = None,
    is_active: bool = True,
    is_probation: bool = False,
    confirmed_at: Optional[date] = None,
) -> dict:
    code = uuid.uuid4().hex[:6].upper()
    return dict(
        id=uuid.uuid4(),
        employee_code=f"LF-{code}",
        first_name=first_name,
        last_name=last_name,
        email=email or f"{first_name.lower()}.{code.lower()}@leaveflow.test",
        department=department,
        role=role,
        admin_type=admin_type,
        is_active=is_active,
        is_probation=is_probation,
        confirmed_at=confirmed_at,
        created_at=datetime.now(timezone.utc),
        updated_at=datetime.now(timezone.utc),
    )


async def seed_employee(db: AsyncSession, **kwargs):
    from leaveflow.core_hr.models import Employee

    employee = Employee(**_make_employee(**kwargs))
    db.add(employee)
    await db.flush()
    return employee


async def seed_admin(
    db: AsyncSession,
    admin_type: AdminType = AdminType.HR_HEAD,
    **kwargs,
):
    kwargs.setdefault("first_name", admin_type.value.split("_")[0].title())
    kwargs.setdefault("last_name", "Admin")
    return await seed_employee(db, role=UserRole.ADMIN, admin_type=admin_type, **kwargs)


async def seed_balance(
    db: AsyncSession,
    employee_id: uuid.UUID,
    *,
    year: int = 2026,
    annual: Decimal = Decimal("14"),
    casual: Decimal = Decimal("7"),
    medical: Decimal = Decimal("7"),
):
    from leaveflow.leave.models import LeaveBalance

    balance = LeaveBalance(
        id=uuid.uuid4(),
        employee_id=employee_id,
        year=year,
        annual=annual,
        casual=casual,
        medical=medical,
        official=Decimal("0"),
        updated_at=datetime.now(timezone.utc),
    )
    db.add(balance)
    await db.flush()
    return balance


async def seed_leave(
    db: AsyncSession,
    employee_id: uuid.UUID,
    start: date,
    end: date,
    *,
    leave_type: LeaveType = LeaveType.CASUAL,
    status: LeaveStatus = LeaveStatus.APPROVED,
    cover_employee_id: Optional[uuid.UUID] = None,
    total_days: Optional[Decimal] = None,
    half_day_type: Optional[HalfDayType] = None,
):
    """Insert a leave directly, bypassing the workflow."""
    from leaveflow.leave.models import Leave

    leave = Leave(
        id=uuid.uuid4(),
        employee_id=employee_id,
        leave_type=leave_type,
        start_date=start,
        end_date=end,
        total_days=total_days or Decimal((end - start).days + 1),
        half_day_type=half_day_type,
        reason="seeded",
        cover_employee_id=cover_employee_id,
        status=status,
        is_no_pay=False,
        created_at=datetime.now(timezone.utc),
        updated_at=datetime.now(timezone.utc),
    )
    db.add(leave)
    await db.flush()
    return leave


async def seed_cover_request(
    db: AsyncSession,
    leave,
    *,
    created_at: datetime = NOW,
    status: CoverRequestStatus = CoverRequestStatus.PENDING,
):
    from leaveflow.leave.models import CoverRequest

    cover_request = CoverRequest(
        id=uuid.uuid4(),
        leave_id=leave.id,
        cover_employee_id=leave.cover_employee_id,
        status=status,
        created_at=created_at,
        expires_at=created_at + timedelta(hours=settings.COVER_REQUEST_TTL_HOURS),
    )
    db.add(cover_request)
    await db.flush()
    return cover_request


async def seed_holiday(db: AsyncSession, day: date, name: str, description: str = "Mercantile"):
    from leaveflow.calendar.models import PublicHoliday

    holiday = PublicHoliday(id=uuid.uuid4(), date=day, name=name, description=description)
    db.add(holiday)
    await db.flush()
    return holiday


# ── Auth helpers ────────────────────────────────────────────────────

def create_access_token(
    employee_id: uuid.UUID,
    expired: bool = False,
) -> str:
    """Generate a JWT access token for testing."""
    if expired:
        exp = datetime.now(timezone.utc) - timedelta(hours=1)
    else:
        exp = datetime.now(timezone.utc) + timedelta(hours=1)
    payload = {"sub": str(employee_id), "type": "access", "exp": exp}
    return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def auth_header(employee_id: uuid.UUID) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(employee_id)}"}
