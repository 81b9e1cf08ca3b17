"""Shared fixtures: SQLite-backed Database handles and the services built on them."""

import pytest
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

from edgeloop.database import Database
from edgeloop.services.alerts import AlertGate
from edgeloop.services.drift_monitor import DriftMonitor
from edgeloop.services.model_registry import ModelRegistry


@pytest.fixture
def database():
    """In-memory SQLite shared by every session (single connection)."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    db = Database.from_engine(engine)
    db.create_all()
    yield db
    db.drop_all()
    db.dispose()


@pytest.fixture
def file_database(tmp_path):
    """File-backed SQLite for tests that need real concurrent connections."""
    engine = create_engine(
        f"sqlite:///{tmp_path / 'edgeloop.db'}",
        connect_args={"check_same_thread": False, "timeout": 30},
    )
    db = Database.from_engine(engine)
    db.create_all()
    yield db
    db.dispose()


@pytest.fixture
def registry(database):
    return ModelRegistry(database)


@pytest.fixture
def monitor(database):
    return DriftMonitor(database)


@pytest.fixture
def gate(database):
    return AlertGate(database)
