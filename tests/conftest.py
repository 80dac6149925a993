"""Shared test fixtures: async DB, client, auth helpers, seed data.

Uses SQLite + aiosqlite (one in-memory database per test) so the suite runs
without PostgreSQL.
"""

from __future__ import annotations

import os

# Set test JWT_SECRET before any other import touches pydantic-settings
os.environ.setdefault("JWT_SECRET", "test-secret-for-ci-do-not-use-in-production")

import uuid
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from typing import AsyncGenerator, Optional

import pytest
from httpx import ASGITransport, AsyncClient
from jose import jwt
from sqlalchemy import event
from sqlalchemy.dialects.postgresql import JSONB, UUID as PG_UUID
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.ext.compiler import compiles
from sqlalchemy.pool import StaticPool

from leaveflow.common.constants import HolidayType, UserRole
from leaveflow.config import settings
from leaveflow.database import Base, get_db
from leaveflow.main import create_app

# Import ALL model modules so metadata.create_all sees every table
import leaveflow.balances.models  # noqa: F401
import leaveflow.common.audit  # noqa: F401
import leaveflow.holiday.models  # noqa: F401
import leaveflow.leave.models  # noqa: F401
import leaveflow.notifications.models  # noqa: F401
import leaveflow.organization.models  # noqa: F401

from leaveflow.balances.models import LeaveBalance
from leaveflow.holiday.models import Holiday
from leaveflow.organization.models import LeavePolicy, Organization, User


# ── SQLite compat: compile PG-specific types ────────────────────────

@compiles(JSONB, "sqlite")
def _jsonb_sqlite(element, compiler, **kw):
    return "TEXT"


@compiles(PG_UUID, "sqlite")
def _uuid_sqlite(element, compiler, **kw):
    return "CHAR(36)"


# ── Test database (SQLite in-memory, fresh per test) ────────────────

TEST_DATABASE_URL = "sqlite+aiosqlite://"

# Monday 2 March 2026, 09:00 UTC: the "current time" for service tests
NOW = datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)


def _on_connect(dbapi_conn, connection_record):
    """Let SQLAlchemy, not the driver, emit BEGIN so SAVEPOINTs behave."""
    dbapi_conn.isolation_level = None


def _on_begin(conn):
    conn.exec_driver_sql("BEGIN")


@pytest.fixture
async def engine() -> AsyncGenerator[AsyncEngine, None]:
    eng = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    event.listen(eng.sync_engine, "connect", _on_connect)
    event.listen(eng.sync_engine, "begin", _on_begin)

    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield eng
    await eng.dispose()


@pytest.fixture
def session_factory(engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


def _on_begin_immediate(conn):
    # Take the write lock up front, the way FOR UPDATE does on PostgreSQL
    conn.exec_driver_sql("BEGIN IMMEDIATE")


@pytest.fixture
async def concurrent_session_factory(tmp_path) -> AsyncGenerator[async_sessionmaker[AsyncSession], None]:
    """File-backed database where every session owns its own connection.

    Concurrent transactions queue on SQLite's write lock instead of
    sharing one connection, so races between sessions are real.
    """
    eng = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'leaveflow.db'}",
        echo=False,
        connect_args={"timeout": 30},
    )
    event.listen(eng.sync_engine, "connect", _on_connect)
    event.listen(eng.sync_engine, "begin", _on_begin_immediate)

    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield async_sessionmaker(eng, class_=AsyncSession, expire_on_commit=False)
    await eng.dispose()


@pytest.fixture(autouse=True)
def _reset_rate_limiter():
    """Reset rate limiter storage between tests to prevent cross-test interference."""
    from leaveflow.common.rate_limit import limiter

    limiter.reset()
    yield


# ── Database session (for direct service calls in tests) ───────────

@pytest.fixture
async def db(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session
        await session.rollback()


# ── FastAPI test client ─────────────────────────────────────────────

@pytest.fixture
async def app(session_factory):
    """Create a fresh app instance with DB dependency overridden."""

    async def _override_get_db() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise
            finally:
                await session.close()

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


# ── Seed helpers ────────────────────────────────────────────────────

async def seed_organization(db: AsyncSession, *, code: Optional[str] = None) -> Organization:
    org = Organization(
        id=uuid.uuid4(),
        name="Acme Corp",
        code=code or f"ACME-{uuid.uuid4().hex[:6]}",
    )
    db.add(org)
    await db.flush()
    return org


async def seed_user(
    db: AsyncSession,
    org: Organization,
    *,
    role: UserRole = UserRole.EMPLOYEE,
    manager: Optional[User] = None,
    name: Optional[str] = None,
    is_active: bool = True,
) -> User:
    name = name or f"user-{uuid.uuid4().hex[:8]}"
    user = User(
        id=uuid.uuid4(),
        organization_id=org.id,
        email=f"{name}@acme.test",
        username=name,
        role=role,
        manager_id=manager.id if manager else None,
        is_active=is_active,
    )
    db.add(user)
    await db.flush()
    return user


async def seed_policy(
    db: AsyncSession,
    org: Organization,
    *,
    name: str = "Annual",
    max_days: int = 10,
    carry_forward: int = 0,
    min_notice: int = 0,
    requires_approval: bool = True,
    active: bool = True,
) -> LeavePolicy:
    policy = LeavePolicy(
        id=uuid.uuid4(),
        organization_id=org.id,
        name=name,
        max_days=max_days,
        carry_forward=carry_forward,
        min_notice=min_notice,
        requires_approval=requires_approval,
        active=active,
    )
    db.add(policy)
    await db.flush()
    return policy


async def seed_balance(
    db: AsyncSession,
    user: User,
    policy: LeavePolicy,
    *,
    used_days: int = 0,
    total_days: Optional[int] = None,
) -> LeaveBalance:
    balance = LeaveBalance(
        id=uuid.uuid4(),
        organization_id=policy.organization_id,
        employee_id=user.id,
        leave_policy_id=policy.id,
        total_days=total_days if total_days is not None else policy.max_days + policy.carry_forward,
        carry_forward=policy.carry_forward,
        used_days=used_days,
    )
    db.add(balance)
    await db.flush()
    return balance


async def seed_holiday(
    db: AsyncSession,
    org: Organization,
    day: date,
    *,
    name: str = "Holiday",
    recurring: bool = False,
) -> Holiday:
    holiday = Holiday(
        id=uuid.uuid4(),
        organization_id=org.id,
        name=name,
        date=day,
        type=HolidayType.PUBLIC,
        recurring=recurring,
    )
    db.add(holiday)
    await db.flush()
    return holiday


@dataclass
class World:
    """One organization with a typical reporting line and an Annual policy."""

    org: Organization
    admin: User
    hr: User
    manager: User
    other_manager: User
    employee: User
    peer: User
    policy: LeavePolicy


async def seed_world(db: AsyncSession, *, max_days: int = 10, min_notice: int = 0) -> World:
    org = await seed_organization(db)
    admin = await seed_user(db, org, role=UserRole.ADMIN, name="admin")
    hr = await seed_user(db, org, role=UserRole.HR, name="hr")
    manager = await seed_user(db, org, role=UserRole.MANAGER, name="manager")
    other_manager = await seed_user(db, org, role=UserRole.MANAGER, name="other-manager")
    employee = await seed_user(db, org, manager=manager, name="employee")
    peer = await seed_user(db, org, manager=other_manager, name="peer")
    policy = await seed_policy(db, org, max_days=max_days, min_notice=min_notice)
    for user in (admin, hr, manager, other_manager, employee, peer):
        await seed_balance(db, user, policy)
    return World(
        org=org,
        admin=admin,
        hr=hr,
        manager=manager,
        other_manager=other_manager,
        employee=employee,
        peer=peer,
        policy=policy,
    )


@pytest.fixture
async def world(db) -> World:
    return await seed_world(db)


# ── Auth helpers ────────────────────────────────────────────────────

def create_access_token(
    user_id: uuid.UUID,
    expired: bool = False,
    token_type: str = "access",
) -> str:
    """Generate a JWT access token for testing."""
    if expired:
        exp = datetime.now(timezone.utc) - timedelta(hours=1)
    else:
        exp = datetime.now(timezone.utc) + timedelta(hours=1)
    payload = {"sub": str(user_id), "type": token_type, "exp": exp}
    return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def auth_headers(user: User) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(user.id)}"}


def next_weekday(start: date, weekday: int = 0) -> date:
    """First date on or after *start* falling on *weekday* (0 = Monday)."""
    return start + timedelta(days=(weekday - start.weekday()) % 7)
