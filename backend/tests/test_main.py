"""Tests for the HTTP API."""

from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient

from site_mirror.errors import PersistenceError, RenderError, ValidationError
from site_mirror.main import create_app
from site_mirror.models import CloneResult, RenderMode


@pytest.fixture
def cloner():
    cloner = MagicMock()
    cloner.clone_website = AsyncMock()
    cloner.close = AsyncMock()
    return cloner


@pytest.fixture
def client(settings, cloner):
    with TestClient(create_app(settings, cloner)) as client:
        yield client


class TestCloneEndpoint:
    """Test POST /api/clone."""

    def test_success(self, client, cloner):
        cloner.clone_website.return_value = CloneResult(
            mode=RenderMode.DYNAMIC,
            archive_path="/work/example_com.zip",
            public_archive_path="/public/downloads/example_com.zip",
            archive_file_name="example_com.zip",
        )

        response = client.post("/api/clone", json={"url": "http://example.com"})

        assert response.status_code == 200
        assert response.json() == {
            "message": "Cloned successfully",
            "zipFileName": "example_com.zip",
            "downloadPath": "/downloads/example_com.zip",
            "mode": "dynamic",
            "failedAssets": [],
        }
        cloner.clone_website.assert_awaited_once_with("http://example.com")

    def test_invalid_url_is_client_error(self, client, cloner):
        cloner.clone_website.side_effect = ValidationError("Invalid URL: example.com. Include http(s)://")

        response = client.post("/api/clone", json={"url": "example.com"})

        assert response.status_code == 400
        assert "Include http(s)://" in response.json()["message"]

    def test_missing_url_is_client_error(self, settings):
        # Uses the real cloner: validation happens before any I/O
        with TestClient(create_app(settings)) as client:
            response = client.post("/api/clone", json={})

        assert response.status_code == 400
        assert response.json() == {"message": "Invalid URL. Include http(s)://"}

    @pytest.mark.parametrize("error", [
        RenderError("Could not render https://down.example.com/: timeout"),
        PersistenceError("Could not create archive: disk full"),
    ])
    def test_internal_failure_is_server_error(self, client, cloner, error):
        cloner.clone_website.side_effect = error

        response = client.post("/api/clone", json={"url": "https://down.example.com/"})

        assert response.status_code == 500
        assert response.json() == {"message": error.message}


def test_health(client):
    response = client.get("/api/health")
    assert response.status_code == 200
    assert response.json() == {"ok": True}


def test_archive_downloads_are_served(settings, client):
    (settings.downloads_dir / "example_com.zip").write_bytes(b"PK\x05\x06" + b"\x00" * 18)

    response = client.get("/downloads/example_com.zip")

    assert response.status_code == 200
    assert response.content.startswith(b"PK")


def test_lifespan_closes_cloner(settings, cloner):
    with TestClient(create_app(settings, cloner)):
        pass
    cloner.close.assert_awaited_once()
