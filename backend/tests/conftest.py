"""
Shared fixtures: in-memory SQLite shared through a StaticPool, a session
bound to it, and a TestClient whose get_db yields sessions on the same engine.
"""
import os
import uuid
from datetime import datetime, timedelta, timezone

# Settings are read at import time.
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["JWT_SECRET_KEY"] = "test-secret"
os.environ["SERVICE_API_TOKEN"] = "test-service-token"
os.environ["LOG_LEVEL"] = "WARNING"

import jwt
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from causas_ledger.db.database import Base, get_db
from causas_ledger.db.models import User, UserRole
from causas_ledger.main import app

SERVICE_HEADERS = {"x-service-token": "test-service-token"}


def make_engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    return engine


@pytest.fixture
def engine():
    engine = make_engine()
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client(session_factory):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


def _make_user(db, role: UserRole, is_active: bool = True) -> User:
    user = User(email=f"{uuid.uuid4().hex[:8]}@example.com", role=role, is_active=is_active)
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def bearer(user: User, expires_in: timedelta = timedelta(hours=1)) -> dict:
    token = jwt.encode(
        {"user_id": str(user.id), "exp": datetime.now(timezone.utc) + expires_in},
        "test-secret",
        algorithm="HS256",
    )
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def regular_user(db):
    return _make_user(db, UserRole.user)


@pytest.fixture
def admin_user(db):
    return _make_user(db, UserRole.admin)


@pytest.fixture
def inactive_user(db):
    return _make_user(db, UserRole.user, is_active=False)


@pytest.fixture
def service_headers():
    return dict(SERVICE_HEADERS)


@pytest.fixture
def user_headers(regular_user):
    return bearer(regular_user)


@pytest.fixture
def admin_headers(admin_user):
    return bearer(admin_user)


@pytest.fixture
def expired_headers(regular_user):
    return bearer(regular_user, expires_in=timedelta(minutes=-5))


@pytest.fixture
def inactive_headers(inactive_user):
    return bearer(inactive_user)
