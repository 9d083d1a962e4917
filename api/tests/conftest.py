"""Pytest fixtures for API testing."""
from datetime import datetime

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from changetrack.main import app
from changetrack.core.database import get_db
from changetrack.core.security import get_password_hash, create_access_token
from changetrack.core.store import ValidationRecordStore
from changetrack.models.base import Base
from changetrack.models.user import User, UserRole
from changetrack.models.application import Application
from changetrack.models.change_request import ChangeRequest, ChangeRequestApplication

# In-memory SQLite for testing
SQLALCHEMY_DATABASE_URL = "sqlite:///:memory:"

engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def override_get_db():
    """Override database dependency for testing."""
    try:
        db = TestingSessionLocal()
        yield db
    finally:
        db.close()


@pytest.fixture(scope="function")
def db_session():
    """Create a fresh database for each test."""
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    yield db
    db.close()
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def client(db_session):
    """Test client with database override.

    Note: db_session already created tables, so we don't need to create them again.
    """
    app.dependency_overrides[get_db] = override_get_db

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


@pytest.fixture
def store(db_session):
    return ValidationRecordStore(db_session)


def _make_user(db_session, email, full_name, role):
    user = User(
        email=email,
        full_name=full_name,
        password_hash=get_password_hash("testpass123"),
        role=role.value
    )
    db_session.add(user)
    db_session.commit()
    db_session.refresh(user)
    return user


def _headers(user):
    token = create_access_token(data={"sub": user.email})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def manager_user(db_session):
    """Create a change manager."""
    return _make_user(db_session, "manager@example.com", "Change Manager", UserRole.CHANGE_MANAGER)


@pytest.fixture
def second_manager(db_session):
    """A second change manager who manages nothing in the fixtures."""
    return _make_user(db_session, "manager2@example.com", "Other Manager", UserRole.CHANGE_MANAGER)


@pytest.fixture
def owner_one(db_session):
    """Application owner U1 (owns application A)."""
    return _make_user(db_session, "owner1@example.com", "Owner One", UserRole.APPLICATION_OWNER)


@pytest.fixture
def owner_two(db_session):
    """Application owner U2 (owns application B)."""
    return _make_user(db_session, "owner2@example.com", "Owner Two", UserRole.APPLICATION_OWNER)


@pytest.fixture
def outsider(db_session):
    """Application owner with no applications on any change request."""
    return _make_user(db_session, "outsider@example.com", "Outsider", UserRole.APPLICATION_OWNER)


@pytest.fixture
def admin_user(db_session):
    """Create an admin user."""
    return _make_user(db_session, "admin@example.com", "Admin User", UserRole.ADMIN)


@pytest.fixture
def manager_headers(manager_user):
    return _headers(manager_user)


@pytest.fixture
def second_manager_headers(second_manager):
    return _headers(second_manager)


@pytest.fixture
def owner_one_headers(owner_one):
    return _headers(owner_one)


@pytest.fixture
def owner_two_headers(owner_two):
    return _headers(owner_two)


@pytest.fixture
def outsider_headers(outsider):
    return _headers(outsider)


@pytest.fixture
def admin_headers(admin_user):
    return _headers(admin_user)


@pytest.fixture
def applications(db_session, owner_one, owner_two):
    """Applications A (owner U1), B (owner U2) and an unowned C."""
    app_a = Application(name="Customer Portal", description="Self service", owner_id=owner_one.user_id)
    app_b = Application(name="Billing Engine", description="Invoices", owner_id=owner_two.user_id)
    app_c = Application(name="Fax Gateway", description="Legacy", owner_id=None)
    db_session.add_all([app_a, app_b, app_c])
    db_session.commit()
    return {"A": app_a, "B": app_b, "C": app_c}


@pytest.fixture
def scenario_change_request(db_session, manager_user, applications):
    """
    CR-2024-001 with applications A and B attached.

    A is completed/completed, B is pending/pending.
    """
    cr = ChangeRequest(
        change_id="CR-2024-001",
        title="Database patching",
        description="Quarterly patch window",
        change_type="Standard",
        status="active",
        start_time=datetime(2024, 3, 10, 22, 0),
        end_time=datetime(2024, 3, 11, 2, 0),
        manager_id=manager_user.user_id,
    )
    db_session.add(cr)
    db_session.flush()
    db_session.add_all([
        ChangeRequestApplication(
            change_request_id=cr.change_request_id,
            application_id=applications["A"].application_id,
            pre_status="completed",
            post_status="completed",
        ),
        ChangeRequestApplication(
            change_request_id=cr.change_request_id,
            application_id=applications["B"].application_id,
            pre_status="pending",
            post_status="pending",
        ),
    ])
    db_session.commit()
    db_session.refresh(cr)
    return cr
