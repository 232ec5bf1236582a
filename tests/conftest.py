import os
import tempfile

os.environ.setdefault("UPLOAD_DIR", tempfile.mkdtemp(prefix="hatvoni-uploads-"))
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("SECRET_KEY", "test-secret")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.database import Base, get_db, import_models
from app.main import app
from app.services import access_service, auth_service
from helpers import auth_headers

import_models()


@pytest.fixture
def db():
    engine = create_engine("sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool)
    Base.metadata.create_all(bind=engine)
    TestingSession = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = TestingSession()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture
def client(db):
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def admin(db):
    return auth_service.create_user(db, "admin", "admin-pass", "Admin", role="admin", requires_password_change=False)


@pytest.fixture
def admin_headers(admin):
    return auth_headers(admin)


@pytest.fixture
def make_staff(db):
    """Create a staff user with the given module levels and return (user, headers)."""

    def _make(username="staff", modules=None):
        user = auth_service.create_user(db, username, "staff-pass", role="staff", requires_password_change=False)
        if modules:
            access_service.set_module_access(db, user.id, modules)
        return user, auth_headers(user)

    return _make
