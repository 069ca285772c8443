import os
from datetime import datetime, timedelta, timezone

os.environ["DATABASE_URL"] = "sqlite+pysqlite:///:memory:"
os.environ["SESSION_SECRET_KEY"] = "test-secret"

import pytest
from fastapi.testclient import TestClient

from src.domain.state_machine import EventStatus
from src.infrastructure.db.models import Base, Event
from src.infrastructure.db.session import SessionLocal, engine
from src.infrastructure.payments.razorpay_gateway import get_payment_gateway


@pytest.fixture(autouse=True)
def database():
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db_session():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def make_event():
    def _make(**overrides) -> str:
        values = {
            "title": "Residents' Gala Dinner",
            "venue": "Clubhouse",
            "start_date": datetime.now(timezone.utc) + timedelta(days=7),
            "capacity": 10,
            "price": 25000,
            "currency": "NGN",
            "status": EventStatus.ACTIVE,
            "is_public": True,
            "allow_partial_payment": True,
        }
        values.update(overrides)
        session = SessionLocal()
        try:
            event = Event(**values)
            session.add(event)
            session.commit()
            return event.id
        finally:
            session.close()

    return _make


@pytest.fixture
def client():
    from src.main import app

    app.dependency_overrides[get_payment_gateway] = lambda: None
    try:
        yield TestClient(app, follow_redirects=False)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def admin_headers():
    return {"X-User-Id": "admin-1", "X-User-Role": "admin"}


@pytest.fixture
def staff_headers():
    return {"X-User-Id": "staff-1", "X-User-Role": "staff"}
