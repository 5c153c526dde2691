"""
Test configuration and fixtures for the pipeline analytics service.
"""
import os

os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("DATABASE_URL", "sqlite:///./test_pipeline_analytics.db")
os.environ.setdefault("REPORTING_TIMEZONE", "UTC")

from datetime import datetime

import pytest
import pytz
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from pipeline_analytics.main import app
from pipeline_analytics.database import get_db, Base, configure_sqlite_transactions
from pipeline_analytics.models import daily_metric, applied_event, team_member, lead  # noqa: F401
from pipeline_analytics.routes.analytics import get_dashboard_assembler
from pipeline_analytics.services.counter_store import CounterStore
from pipeline_analytics.services.dashboard_assembler import DashboardAssembler

# Fixed "now" for period math: Sunday 2025-02-09 15:00 UTC.
# The 7-day window is 2025-02-03 .. 2025-02-09; the previous one 2025-01-27 .. 2025-02-02.
FIXED_NOW = pytz.utc.localize(datetime(2025, 2, 9, 15, 0, 0))


def make_sqlite_engine(path, immediate: bool = False):
    """File-backed SQLite engine; `immediate` serializes concurrent writer threads."""
    engine = configure_sqlite_transactions(
        create_engine(f"sqlite:///{path}", connect_args={"check_same_thread": False, "timeout": 30}),
        immediate=immediate,
    )
    Base.metadata.create_all(bind=engine)
    return engine


@pytest.fixture
def sqlite_engine_factory():
    return make_sqlite_engine


@pytest.fixture
def engine(tmp_path):
    engine = make_sqlite_engine(tmp_path / "analytics.db")
    yield engine
    engine.dispose()


@pytest.fixture
def db_session(engine):
    """Create a fresh database session for each test."""
    session = sessionmaker(autocommit=False, autoflush=False, bind=engine)()
    yield session
    session.close()


@pytest.fixture
def store(db_session):
    return CounterStore(db_session, sleep=lambda seconds: None)


@pytest.fixture
def fixed_clock():
    return lambda: FIXED_NOW


@pytest.fixture
def assembler(db_session, store, fixed_clock):
    return DashboardAssembler(db_session, store=store, clock=fixed_clock)


@pytest.fixture
def client(db_session, assembler):
    """Create test client with database session and assembler overrides."""
    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_dashboard_assembler] = lambda: assembler
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def tenant_id():
    """Test tenant ID."""
    return "test_tenant_123"


@pytest.fixture
def tenant_headers(tenant_id):
    """Headers forwarded by the auth gateway."""
    return {
        "X-Tenant-ID": tenant_id,
        "X-User-Id": "test_user_123",
        "X-User-Role": "manager",
    }
