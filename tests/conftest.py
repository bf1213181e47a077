"""Pytest configuration and shared fixtures."""
import os

# Cheapest bcrypt cost so the suite stays fast; must be set before dashboard imports config
os.environ.setdefault("BCRYPT_ROUNDS", "4")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from dashboard.database import Base, get_db
from dashboard.main import app
from dashboard.models.domain import InviteCode
from dashboard.models.enums import Role
from dashboard.services.passwords import hash_password
from dashboard.services.sessions import Identity
from dashboard.services.storage import Storage

ADMIN_PASSWORD = "admin-secret"
USER_PASSWORD = "user-secret"


@pytest.fixture
def db_session():
    """Create a fresh in-memory database for each test."""
    # StaticPool keeps one connection so the TestClient thread sees the same database
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool
    )
    Base.metadata.create_all(engine)

    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = TestingSessionLocal()

    yield session

    session.close()
    engine.dispose()


@pytest.fixture
def client(db_session):
    """HTTP client whose requests all run against the test database."""
    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def admin_user(db_session):
    admin = Storage(db_session).create_user(
        "admin", hash_password(ADMIN_PASSWORD), role=Role.ADMIN
    )
    db_session.commit()
    db_session.refresh(admin)
    return admin


@pytest.fixture
def admin_identity(admin_user):
    return Identity(user_id=admin_user.id, username=admin_user.username, role=Role.ADMIN)


@pytest.fixture
def regular_user(db_session):
    user = Storage(db_session).create_user("alice", hash_password(USER_PASSWORD))
    db_session.commit()
    db_session.refresh(user)
    return user


@pytest.fixture
def make_invite(db_session, admin_user):
    """Factory for invite codes written straight to the store (no audit entry)."""
    def _make(code="WELCOME1", uses=1, expires_at=None, revoked=False) -> InviteCode:
        invite = Storage(db_session).create_invite_code(
            code=code, uses=uses, created_by=admin_user.id, expires_at=expires_at
        )
        invite.revoked = revoked
        db_session.commit()
        db_session.refresh(invite)
        return invite

    return _make


def login(client: TestClient, username: str, password: str):
    return client.post("/api/auth/login", json={"username": username, "password": password})


@pytest.fixture
def admin_client(client, admin_user):
    """Client holding an admin session cookie."""
    response = login(client, admin_user.username, ADMIN_PASSWORD)
    assert response.status_code == 200
    return client


@pytest.fixture
def user_client(client, regular_user):
    """Client holding an ordinary user's session cookie."""
    response = login(client, regular_user.username, USER_PASSWORD)
    assert response.status_code == 200
    return client
