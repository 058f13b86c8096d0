"""
Shared pytest fixtures: an in-memory SQLite store, a session, and an API client.
"""
import os

os.environ.setdefault("VOUCHERDESK_DATABASE_URL", "sqlite://")
os.environ.setdefault("VOUCHERDESK_SCHEDULER_ENABLED", "false")

import uuid
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from voucherdesk.core.database import Base, get_db
from voucherdesk.main import app
from voucherdesk.models import CompensationPolicy, CompensationType, ComplaintCategory, Customer


# ── Fixtures ──────────────────────────────────────────────────────

@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)


@pytest.fixture
def db_session(session_factory):
    session = session_factory()
    yield session
    session.rollback()
    session.close()


@pytest.fixture
def client(session_factory):
    def _override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = _override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def tenant_id():
    return uuid.uuid4()


@pytest.fixture
def headers(tenant_id):
    return {"X-Tenant-ID": str(tenant_id)}


# ── Factories ─────────────────────────────────────────────────────

def make_customer(session, tenant_id, name="Bolormaa D."):
    customer = Customer(tenant_id=tenant_id, name=name, phone="+97699112233")
    session.add(customer)
    session.commit()
    return customer


def make_policy(session, tenant_id, **kwargs):
    defaults = dict(
        complaint_category=ComplaintCategory.DELIVERY_DELAY,
        compensation_type=CompensationType.PERCENT_DISCOUNT,
        compensation_value=Decimal("20"),
        max_discount_amount=Decimal("5000"),
        valid_days=30,
        auto_approve=False,
        is_active=True,
    )
    defaults.update(kwargs)
    policy = CompensationPolicy(tenant_id=tenant_id, **defaults)
    session.add(policy)
    session.commit()
    return policy
