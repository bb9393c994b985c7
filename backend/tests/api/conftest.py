"""API test specific fixtures."""

import pytest
from fastapi.testclient import TestClient

from visionquest.main import create_app


@pytest.fixture
def test_client(tmp_path):
    """Create FastAPI TestClient backed by a throwaway SQLite file."""
    app = create_app(f"sqlite+aiosqlite:///{tmp_path / 'api.db'}")
    with TestClient(app) as client:
        yield client


@pytest.fixture
def user_headers():
    return {"X-User-Id": "user-1"}


@pytest.fixture
def storyline_id(test_client, user_headers):
    response = test_client.post("/api/storylines", json={"title": "Get fit"}, headers=user_headers)
    return response.json()["storyline"]["id"]
