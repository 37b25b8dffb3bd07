"""Pytest configuration and fixtures for ClinicDesk tests.

The API runs against an in-memory SQLite database (aiosqlite); every
request gets its own session, committed like the real `get_db`.
Redis caching is disabled here; tests/test_cache.py swaps in a fake
client where it needs one.
"""

import os

os.environ["CACHE_ENABLED"] = "false"

from decimal import Decimal
from typing import AsyncGenerator

import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from clinicdesk.auth.jwt import create_access_token
from clinicdesk.auth.password import hash_password
from clinicdesk.auth.permissions import resolve_permissions
from clinicdesk.database import Base, get_db
from clinicdesk.main import app
from clinicdesk.models import Client, Clinic, Product, User, UserRole


# ── Test Database Setup ──────────────────────────────────────────

@pytest_asyncio.fixture
async def test_engine():
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(test_engine):
    return async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Session for arranging test data; commit to make it visible to the API."""
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def client(session_factory) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client with `get_db` pointed at the test database."""

    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


# ── Users & Auth ─────────────────────────────────────────────────

async def make_user(
    db: AsyncSession,
    *,
    email: str,
    role: UserRole,
    password: str = "Password123!",
    assigned_clinics: list[str] | None = None,
    custom_permissions: dict[str, bool] | None = None,
) -> User:
    user = User(
        email=email,
        hashed_password=hash_password(password),
        full_name=email.split("@")[0].replace(".", " ").title(),
        role=role,
        is_active=True,
        assigned_clinics=assigned_clinics,
        custom_permissions=custom_permissions,
    )
    db.add(user)
    await db.commit()
    return user


def auth_headers(user: User) -> dict[str, str]:
    token = create_access_token(
        user_id=user.id,
        role=user.role.value,
        permissions=resolve_permissions(user.role.value, user.custom_permissions),
        clinics=None if user.role == UserRole.ADMINISTRATOR else user.assigned_clinics,
    )
    return {"Authorization": f"Bearer {token}"}


@pytest_asyncio.fixture
async def admin_user(db_session) -> User:
    return await make_user(db_session, email="admin@clinic.test", role=UserRole.ADMINISTRATOR)


@pytest_asyncio.fixture
async def admin_headers(admin_user) -> dict[str, str]:
    return auth_headers(admin_user)


@pytest_asyncio.fixture
async def front_desk_user(db_session, clinic) -> User:
    return await make_user(
        db_session,
        email="front.desk@clinic.test",
        role=UserRole.FRONT_DESK,
        assigned_clinics=[clinic.id],
    )


@pytest_asyncio.fixture
async def front_desk_headers(front_desk_user) -> dict[str, str]:
    return auth_headers(front_desk_user)


# ── Domain data ──────────────────────────────────────────────────

@pytest_asyncio.fixture
async def clinic(db_session) -> Clinic:
    """Clinic with no tax rate of its own (configured default applies)."""
    clinic = Clinic(
        name="bodybliss-physio",
        display_name="BodyBliss Physiotherapy",
        address="100 King St W",
        city="Toronto",
        province="ON",
        postal_code="M5X 1A9",
        phone="4165550100",
        currency="CAD",
        is_active=True,
    )
    db_session.add(clinic)
    await db_session.commit()
    return clinic


@pytest_asyncio.fixture
async def other_clinic(db_session) -> Clinic:
    clinic = Clinic(
        name="lakeshore-rehab",
        display_name="Lakeshore Rehab",
        tax_rate=Decimal("0.05"),
        currency="CAD",
        is_active=True,
    )
    db_session.add(clinic)
    await db_session.commit()
    return clinic


@pytest_asyncio.fixture
async def patient(db_session, clinic) -> Client:
    record = Client(
        clinic_id=clinic.id,
        first_name="Jane",
        last_name="Doe",
        email="jane.doe@example.com",
        phone="4165550199",
        referring_md="Dr. House",
        insurance={
            "primary": {
                "company_name": "Sun Life",
                "policy_number": "SL-123456",
                "group_number": "G-77",
                "coverage_pct": 80,
                "annual_maximum": 500.0,
            },
        },
        is_active=True,
    )
    db_session.add(record)
    await db_session.commit()
    return record


@pytest_asyncio.fixture
async def product(db_session) -> Product:
    item = Product(
        code="PHYSIO-60",
        name="Physiotherapy session (60 min)",
        unit_price=Decimal("90.00"),
        duration_minutes=60,
        is_active=True,
    )
    db_session.add(item)
    await db_session.commit()
    return item


def order_payload(clinic_id: str, client_id: str, **overrides) -> dict:
    """Two sessions at 90.00 + 65.00 ×2 = 220.00 before tax."""
    payload = {
        "clinic_id": clinic_id,
        "client_id": client_id,
        "tax_rate_pct": 0,
        "line_items": [
            {"product_name": "Initial assessment", "quantity": 1, "unit_price": "90.00"},
            {"product_name": "Follow-up treatment", "quantity": 2, "unit_price": "65.00"},
        ],
    }
    payload.update(overrides)
    return payload


@pytest_asyncio.fixture
async def order(client, admin_headers, clinic, patient) -> dict:
    """A saved 220.00 order with no tax and no payments (API response)."""
    response = await client.post(
        "/api/orders/", json=order_payload(clinic.id, patient.id), headers=admin_headers
    )
    assert response.status_code == 201, response.text
    return response.json()
