"""
Pytest configuration and shared fixtures.

Test env vars are set here, before any app module is imported, so the
cached settings, the engine and the auth service are all built from them.
"""

import os

os.environ["DATABASE_URL"] = "sqlite:///./test_anon_messaging.db"
os.environ["JWT_SECRET"] = "test-secret"
os.environ["INVITE_CODE"] = "test-invite"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["LOG_LEVEL"] = "WARNING"
os.environ.pop("JWT_EXPIRES_MINUTES", None)

import pytest
from fastapi.testclient import TestClient

# Clear settings cache before any app imports to ensure test env vars are used
from app.config import get_settings
get_settings.cache_clear()

from app.main import app
from app.storage import Base, engine


@pytest.fixture(scope="function")
def client():
    """Create test client with fresh database for each test."""
    Base.metadata.create_all(bind=engine)

    with TestClient(app) as test_client:
        yield test_client

    # Cleanup - drop all tables after test
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def signup(client):
    """POST /signup with the test invite code unless another is given; returns the raw response."""
    def _signup(phone: str, password: str = "pw", invite_code: str = os.environ["INVITE_CODE"]):
        return client.post(
            "/signup",
            json={"phone": phone, "password": password, "invite_code": invite_code},
        )
    return _signup


@pytest.fixture
def register(signup):
    """Sign up a user that must succeed; returns the {token, user} body."""
    def _register(phone: str, password: str = "pw") -> dict:
        response = signup(phone, password)
        assert response.status_code == 200
        return response.json()
    return _register


@pytest.fixture
def auth_headers():
    def _auth_headers(token: str) -> dict:
        return {"Authorization": f"Bearer {token}"}
    return _auth_headers
