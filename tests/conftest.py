"""Shared test infrastructure for the Investor Platform test suite.

Provides:
- engine / session_factory / db_session: async SQLite in-memory database
  shared through a StaticPool, so app requests and fixtures see the same data
- make_common_investor, make_institutional_investor, make_partner, make_admin:
  principal factories (password is always "password123")
- make_property, make_foreclosure_listing: listing factories
- notifier_mock: NotificationService stand-in capturing queued emails
- client: httpx AsyncClient bound to the FastAPI app with get_db overridden
- login: helper returning auth headers for a principal
"""

import os

# Settings are read at import time; configure before importing the app.
os.environ["DATABASE_URL"] = "sqlite+aiosqlite://"
os.environ["PASSWORD_HASH_ROUNDS"] = "4"
os.environ["SENDGRID_API_KEY"] = ""
os.environ["DEBUG"] = "true"

from datetime import timedelta
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from investor_platform.infra.database import Base, get_db, get_session_factory

# Import all model modules so their tables are registered with Base.metadata
import investor_platform.domain.models  # noqa: F401

from investor_platform.domain.clock import utcnow
from investor_platform.domain.enums import ApprovalStatus, AuthRole
from investor_platform.domain.models import (
    AdminUser,
    CommonInvestor,
    ForeclosureListing,
    InstitutionalInvestor,
    Partner,
    Property,
)
from investor_platform.services.credential_store import hash_password
from investor_platform.services.notification_service import get_notifier
from investor_platform.services.payment_processor import (
    SimulatedPaymentProcessor,
    get_payment_processor,
)

PASSWORD = "password123"


# ---------------------------------------------------------------------------
# Database fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
async def engine():
    """Fresh in-memory engine with all tables created."""
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db_session(session_factory):
    async with session_factory() as session:
        yield session
        await session.rollback()


# ---------------------------------------------------------------------------
# Principal factories
# ---------------------------------------------------------------------------


def _principal_fields(prefix: str, n: int, overrides: dict) -> dict:
    fields = {
        "username": f"{prefix}{n}",
        "email": f"{prefix}{n}@example.com",
        "password_hash": hash_password(PASSWORD),
        "first_name": prefix.capitalize(),
        "last_name": f"Tester{n}",
        "is_active": True,
        "email_verified": True,
    }
    fields.update(overrides)
    return fields


@pytest.fixture
def make_common_investor(db_session):
    """Factory for CommonInvestor rows.

    Usage:
        alice = await make_common_investor(username="alice")
        subscribed = await make_common_investor(
            has_foreclosure_subscription=True,
            foreclosure_subscription_expiry=utcnow() + timedelta(days=5),
        )
    """
    counter = {"n": 0}

    async def _factory(**overrides) -> CommonInvestor:
        counter["n"] += 1
        investor = CommonInvestor(**_principal_fields("common", counter["n"], overrides))
        db_session.add(investor)
        await db_session.commit()
        return investor

    return _factory


@pytest.fixture
def make_institutional_investor(db_session):
    counter = {"n": 0}

    async def _factory(**overrides) -> InstitutionalInvestor:
        counter["n"] += 1
        overrides.setdefault("institution_name", "Harbor Capital")
        overrides.setdefault("job_title", "Acquisitions Lead")
        overrides.setdefault("approval_status", ApprovalStatus.APPROVED.value)
        investor = InstitutionalInvestor(**_principal_fields("inst", counter["n"], overrides))
        db_session.add(investor)
        await db_session.commit()
        return investor

    return _factory


@pytest.fixture
def make_partner(db_session):
    counter = {"n": 0}

    async def _factory(**overrides) -> Partner:
        counter["n"] += 1
        overrides.setdefault("company", "Brooklyn Homes LLC")
        overrides.setdefault("approval_status", ApprovalStatus.APPROVED.value)
        partner = Partner(**_principal_fields("partner", counter["n"], overrides))
        db_session.add(partner)
        await db_session.commit()
        return partner

    return _factory


@pytest.fixture
def make_admin(db_session):
    counter = {"n": 0}

    async def _factory(**overrides) -> AdminUser:
        counter["n"] += 1
        admin = AdminUser(**_principal_fields("admin", counter["n"], overrides))
        db_session.add(admin)
        await db_session.commit()
        return admin

    return _factory


# ---------------------------------------------------------------------------
# Listing factories
# ---------------------------------------------------------------------------


@pytest.fixture
def make_property(db_session):
    """Factory for an available, active Property.

    Usage:
        prop = await make_property(partner_id=partner.id, price=Decimal("650000"))
    """

    async def _factory(**overrides) -> Property:
        fields = {
            "address": "123 Bergen St",
            "neighborhood": "Boerum Hill",
            "borough": "Brooklyn",
            "property_type": "Townhouse",
            "beds": 4,
            "sqft": 2400,
            "price": Decimal("650000"),
            "status": "available",
            "is_active": True,
        }
        fields.update(overrides)
        prop = Property(**fields)
        db_session.add(prop)
        await db_session.commit()
        return prop

    return _factory


@pytest.fixture
def make_foreclosure_listing(db_session):
    async def _factory(**overrides) -> ForeclosureListing:
        fields = {
            "address": "88 Linden Blvd",
            "county": "Kings",
            "borough": "Brooklyn",
            "auction_date": utcnow() + timedelta(days=21),
            "starting_bid": Decimal("200000"),
            "property_type": "Two Family",
            "status": "upcoming",
            "is_active": True,
        }
        fields.update(overrides)
        listing = ForeclosureListing(**fields)
        db_session.add(listing)
        await db_session.commit()
        return listing

    return _factory


# ---------------------------------------------------------------------------
# App / HTTP client
# ---------------------------------------------------------------------------


@pytest.fixture
def notifier_mock():
    """Mock NotificationService recording every queued email job."""
    mock = MagicMock()
    mock.send_verification_email = AsyncMock(return_value=True)
    mock.send_password_reset_email = AsyncMock(return_value=True)
    mock.send_property_listing_notification = AsyncMock(return_value=0)
    mock.send_foreclosure_update_notification = AsyncMock(return_value=0)
    return mock


@pytest.fixture
def payment_processor():
    return SimulatedPaymentProcessor(approve=True)


@pytest.fixture
async def app(session_factory, notifier_mock, payment_processor):
    from investor_platform.app.main import app as fastapi_app

    async def _get_db():
        async with session_factory() as session:
            yield session

    fastapi_app.dependency_overrides[get_db] = _get_db
    fastapi_app.dependency_overrides[get_session_factory] = lambda: session_factory
    fastapi_app.dependency_overrides[get_notifier] = lambda: notifier_mock
    fastapi_app.dependency_overrides[get_payment_processor] = lambda: payment_processor
    yield fastapi_app
    fastapi_app.dependency_overrides.clear()


@pytest.fixture
async def client(app):
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


@pytest.fixture
def login(client):
    """Log a principal in and return Authorization headers.

    Usage:
        headers = await login(AuthRole.PARTNER, partner.username)
    """

    async def _login(role: AuthRole, username: str, password: str = PASSWORD) -> dict:
        resp = await client.post(
            f"/api/auth/{role.value}/login",
            json={"username": username, "password": password},
        )
        assert resp.status_code == 200, resp.text
        # Tests authenticate explicitly; don't let the login cookie leak into later calls
        client.cookies.clear()
        return {"Authorization": f"Bearer {resp.json()['token']}"}

    return _login
