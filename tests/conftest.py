"""
Pytest fixtures for testing
"""
import pytest
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool

from subtracker.application.billing_projection import BillingProjectionService, ProjectionWindowSettings
from subtracker.domain.billing_calendar import UTC_CALENDAR
from subtracker.infrastructure.db.session import Base
import subtracker.infrastructure.db.models  # noqa: F401  (регистрирует таблицы в Base.metadata)


@pytest.fixture
def db_engine():
    """Create in-memory SQLite engine for tests (one shared connection)."""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    @event.listens_for(engine, "connect")
    def _set_sqlite_pragma(dbapi_conn, connection_record):
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db_session(db_engine) -> Session:
    """Create database session for tests"""
    SessionLocal = sessionmaker(bind=db_engine, autoflush=False)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture
def sample_account_id():
    """Sample account ID for tests"""
    return 1


@pytest.fixture
def projection(db_session) -> BillingProjectionService:
    """Projection service pinned to UTC and a 6/12 month window"""
    return BillingProjectionService(
        db_session,
        settings=ProjectionWindowSettings(past_months=6, future_months=12),
        calendar=UTC_CALENDAR,
    )
