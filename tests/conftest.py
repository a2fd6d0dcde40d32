"""
Shared fixtures: an in-memory database per test, a pinned clock, and a
TestClient whose session/clock dependencies point at both.
"""
from datetime import date, datetime, timezone

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

from cockpit.core.clock import FixedClock, get_clock
from cockpit.db.models import FocusBlock, Task
from cockpit.db.session import get_session
from cockpit.main import app

TENANT = "tenant-a"
USER = "user-1"
HEADERS = {"X-User-Id": USER, "X-Tenant-Id": TENANT}

# Wednesday
NOW = datetime(2024, 1, 10, 12, 0, tzinfo=timezone.utc)
TODAY = date(2024, 1, 10)


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session(engine):
    with Session(engine) as session:
        yield session


@pytest.fixture
def clock():
    return FixedClock(NOW)


@pytest.fixture
def client(engine, clock):
    def _session():
        with Session(engine) as s:
            yield s

    app.dependency_overrides[get_session] = _session
    app.dependency_overrides[get_clock] = lambda: clock
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def make_task(session):
    def _make(**fields):
        fields.setdefault("tenant_id", TENANT)
        fields.setdefault("owner_id", USER)
        fields.setdefault("name", "Task")
        fields.setdefault("context", "work")
        fields.setdefault("created_at", datetime(2024, 1, 1, 8, 0))
        fields.setdefault("updated_at", datetime(2024, 1, 1, 8, 0))
        task = Task(**fields)
        session.add(task)
        session.commit()
        session.refresh(task)
        return task
    return _make


@pytest.fixture
def make_block(session):
    def _make(**fields):
        fields.setdefault("tenant_id", TENANT)
        fields.setdefault("user_id", USER)
        fields.setdefault("title", "Block")
        fields.setdefault("context", "work")
        block = FocusBlock(**fields)
        session.add(block)
        session.commit()
        session.refresh(block)
        return block
    return _make


def reload(session, model, pk):
    session.expire_all()
    return session.get(model, pk)
