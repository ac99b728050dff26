"""
Shared test fixtures — temp data file, test client, login helper, fake durable tiers.
"""

import os

import pytest
from fastapi.testclient import TestClient

# Configure auth before importing app modules
os.environ["SECRET_KEY"] = "test-secret-key-for-testing-only"
os.environ["AUTH_USERNAME"] = "maker"
os.environ["AUTH_PASSWORD"] = "filament-secret"
os.environ["AUTO_BACKUP_ENABLED"] = "false"

from backend.config import settings
from backend.main import app

from .fakes import FakeStore

TEST_USERNAME = "maker"
TEST_PASSWORD = "filament-secret"


@pytest.fixture(autouse=True)
def data_dir(tmp_path, monkeypatch):
    """Point the durable data file and backups at a fresh temp dir per test."""
    monkeypatch.setattr(settings, "DATA_FILE", str(tmp_path / "data.json"))
    monkeypatch.setattr(settings, "BACKUP_DIR", str(tmp_path / "backups"))
    return tmp_path


@pytest.fixture
def client():
    """FastAPI test client (runs startup/shutdown hooks)."""
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def logged_in_client(client):
    """Test client holding a valid session cookie."""
    response = client.post("/api/auth/login", json={
        "username": TEST_USERNAME,
        "password": TEST_PASSWORD,
    })
    assert response.status_code == 200
    return client


@pytest.fixture
def remote_store():
    return FakeStore("remote")


@pytest.fixture
def local_store():
    return FakeStore("local")
