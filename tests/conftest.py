import os

import pytest
from fastapi.testclient import TestClient

# Ensure we default to memory backend for tests to avoid filesystem dependencies
os.environ.setdefault("PERSISTENCE_BACKEND", "memory")

from collabtrack.main import app  # noqa: E402
from collabtrack.repositories import get_store, memory_store  # noqa: E402


@pytest.fixture
def store():
    return memory_store()


@pytest.fixture
def client(store):
    app.dependency_overrides[get_store] = lambda: store
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def register(client):
    """Register a user through the API and return its id."""

    def _register(username: str) -> str:
        res = client.post(
            "/api/v1/users/",
            json={"username": username, "email": f"{username}@example.com"},
        )
        assert res.status_code == 201, res.text
        return res.json()["id"]

    return _register
