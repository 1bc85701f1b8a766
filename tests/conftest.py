"""
Shared test configuration.

Tests run against an in-memory SQLite database shared through StaticPool.
Services get a fixed clock and an in-memory event publisher.
"""
import os

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("JWT_SECRET", "test-secret")

from datetime import date
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from jose import jwt
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from config import JWT_ALGORITHM, JWT_SECRET
from database import enable_sqlite_savepoints, get_session
from dependencies import get_clock, get_publisher
from models import ApartmentBuilding, Base, Flat
from services import ContractService, DueGenerationService, MonthlyDueService, PaymentService
from services.actor import Actor
from services.clock import FixedClock
from services.events import InMemoryEventPublisher
from services.locking import FlatLocks

TODAY = date(2026, 1, 10)

engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
enable_sqlite_savepoints(engine)

TestingSessionLocal = sessionmaker(
    bind=engine, autocommit=False, autoflush=False, expire_on_commit=False
)


@pytest.fixture(autouse=True)
def setup_database():
    """Create tables before each test function and drop after."""
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db_session():
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture
def clock():
    return FixedClock(TODAY)


@pytest.fixture
def publisher():
    return InMemoryEventPublisher()


@pytest.fixture
def actor():
    return Actor(id=1, username="manager", role="manager")


# ---------------------------------------------------------------------------
# Data
# ---------------------------------------------------------------------------

@pytest.fixture
def building(db_session):
    building = ApartmentBuilding(name="Palm Court", default_monthly_fee=Decimal("500.00"))
    db_session.add(building)
    db_session.flush()
    return building


@pytest.fixture
def flat(db_session, building):
    flat = Flat(
        building_id=building.id,
        flat_number="A-101",
        is_active=True,
        monthly_rent=Decimal("1000.00"),
        tenant_name="Jane Doe",
        tenant_email="jane@example.com",
    )
    db_session.add(flat)
    db_session.flush()
    return flat


@pytest.fixture
def other_flat(db_session, building):
    flat = Flat(building_id=building.id, flat_number="A-102", is_active=True)
    db_session.add(flat)
    db_session.flush()
    return flat


# ---------------------------------------------------------------------------
# Services
# ---------------------------------------------------------------------------

@pytest.fixture
def contract_service(db_session, publisher, clock):
    return ContractService(db_session, publisher=publisher, clock=clock, locks=FlatLocks())


@pytest.fixture
def due_generation_service(db_session, publisher, clock):
    return DueGenerationService(db_session, publisher=publisher, clock=clock)


@pytest.fixture
def monthly_due_service(db_session, publisher, clock):
    return MonthlyDueService(db_session, publisher=publisher, clock=clock)


@pytest.fixture
def payment_service(db_session, publisher, clock):
    return PaymentService(db_session, publisher=publisher, clock=clock, locks=FlatLocks())


@pytest.fixture
def make_contract(contract_service, flat, actor):
    """Create a contract on `flat` with sensible defaults."""

    def _make(**overrides):
        params = dict(
            flat_id=flat.id,
            tenant_name="Jane Doe",
            start_date=date(2026, 1, 15),
            end_date=date(2026, 12, 15),
            monthly_rent=Decimal("1000.00"),
            day_of_month=15,
            actor=actor,
        )
        params.update(overrides)
        return contract_service.create_contract(**params)

    return _make


# ---------------------------------------------------------------------------
# API
# ---------------------------------------------------------------------------

def make_token(role="manager", user_id=1, username="manager"):
    return jwt.encode(
        {"id": user_id, "username": username, "role": role},
        JWT_SECRET,
        algorithm=JWT_ALGORITHM,
    )


@pytest.fixture
def auth_headers():
    return {"Authorization": f"Bearer {make_token()}"}


@pytest.fixture
def client(clock, publisher):
    from main import app

    def override_get_session():
        session = TestingSessionLocal()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    app.dependency_overrides[get_session] = override_get_session
    app.dependency_overrides[get_clock] = lambda: clock
    app.dependency_overrides[get_publisher] = lambda: publisher
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides = {}


@pytest.fixture
def seeded_flat():
    """Committed building + flat for API tests. Returns (building_id, flat_id)."""
    session = TestingSessionLocal()
    try:
        building = ApartmentBuilding(name="Harbor View")
        session.add(building)
        session.flush()
        flat = Flat(building_id=building.id, flat_number="B-201", is_active=True)
        session.add(flat)
        session.commit()
        return building.id, flat.id
    finally:
        session.close()
