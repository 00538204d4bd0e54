"""
Shared fixtures for the chat backend tests.

Service and relay tests run on pytest-asyncio against an in-memory SQLite
database (``db``). HTTP and websocket tests go through FastAPI's TestClient
(``client``), whose lifespan opens its own in-memory database; the two
fixtures are not meant to be combined in one test.
"""
import os
import tempfile

os.environ["DATABASE_URL"] = "sqlite://:memory:"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["JWT_SECRET"] = "test-secret"
os.environ["UPLOAD_DIR"] = tempfile.mkdtemp(prefix="chat-uploads-")

import pytest
from fastapi.testclient import TestClient

from chat_backend.auth import hash_password
from chat_backend.database import close_db, init_db
from chat_backend.models import User


# =============================================================================
# Database
# =============================================================================


@pytest.fixture
async def db():
    await init_db("sqlite://:memory:")
    yield
    await close_db()


@pytest.fixture
def make_user(db):
    """Factory creating users with the password 'secret123'."""
    counter = {"n": 0}

    async def _make_user(name=None, email=None, password="secret123"):
        counter["n"] += 1
        n = counter["n"]
        return await User.create(
            name=name or f"User {n}",
            email=email or f"user{n}@example.com",
            password=hash_password(password),
        )

    return _make_user


@pytest.fixture
async def alice(make_user):
    return await make_user(name="Alice", email="alice@example.com")


@pytest.fixture
async def bob(make_user):
    return await make_user(name="Bob", email="bob@example.com")


@pytest.fixture
async def carol(make_user):
    return await make_user(name="Carol", email="carol@example.com")


# =============================================================================
# HTTP
# =============================================================================


@pytest.fixture
def client():
    from main import app

    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def register(client):
    """Register a user over HTTP; returns (user json, auth headers)."""

    def _register(name, email, password="secret123"):
        response = client.post("/api/user", json={"name": name, "email": email, "password": password})
        assert response.status_code == 201, response.text
        body = response.json()
        return body, {"Authorization": f"Bearer {body['token']}"}

    return _register
