"""Tests for the HTTP server."""

import pytest
from fastapi.testclient import TestClient

from conftest import FakeAdapter, raw


@pytest.fixture
def client(no_cache_config):
    """Test client over a registry of in-memory adapters."""
    from analysis_hub.adapters.registry import AdapterRegistry
    from analysis_hub.server import create_app

    registry = AdapterRegistry(
        {
            "lint": lambda settings, credentials: FakeAdapter("lint", [raw("a.py", line=2, severity="error")]),
            "offline": lambda settings, credentials: FakeAdapter("offline", available=False, version="unknown"),
        }
    )
    no_cache_config.adapters["offline"] = no_cache_config.adapter("offline")
    no_cache_config.adapters["offline"].enabled = False
    return TestClient(create_app(no_cache_config, registry))


class TestServer:
    """Tests for server endpoints."""

    def test_health(self, client):
        """Test the health check endpoint."""
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json() == {"status": "healthy", "service": "analysis-hub"}

    def test_root(self, client):
        """Test the service info endpoint."""
        data = client.get("/").json()

        assert data["service"] == "analysis-hub"
        assert data["endpoints"]["analyze"] == "/analyze"

    def test_adapters(self, client):
        """Test adapter listing with availability and versions."""
        data = client.get("/adapters").json()

        by_name = {a["name"]: a for a in data["adapters"]}
        assert by_name["lint"] == {
            "name": "lint",
            "enabled": True,
            "available": True,
            "version": "1.0.0",
            "languages": ["*"],
        }
        assert by_name["offline"]["enabled"] is False
        assert by_name["offline"]["available"] is False

    def test_analyze(self, client, project):
        """Test that analyze returns the encoded result."""
        response = client.post("/analyze", json={"targets": ["."], "project_root": str(project)})

        assert response.status_code == 200
        data = response.json()
        assert data["summary"]["total_issues"] == 1
        assert data["issues"][0]["tool_name"] == "lint"
        outcomes = {o["adapter"]: (o["status"], o["reason"]) for o in data["adapter_outcomes"]}
        assert outcomes == {"lint": ("ran", None), "offline": ("skipped", "disabled")}

    def test_analyze_selected_adapters(self, client, project):
        """Test that the adapters field limits the run."""
        response = client.post(
            "/analyze",
            json={"targets": ["a.py"], "project_root": str(project), "adapters": ["lint"]},
        )

        assert [o["adapter"] for o in response.json()["adapter_outcomes"]] == ["lint"]

    def test_analyze_unknown_adapter(self, client, project):
        """Test that unknown adapters are a client error."""
        response = client.post(
            "/analyze",
            json={"targets": ["."], "project_root": str(project), "adapters": ["pylint"]},
        )

        assert response.status_code == 400
        assert "pylint" in response.json()["detail"]

    def test_analyze_missing_root(self, client, tmp_path):
        """Test that a missing project root is a client error."""
        response = client.post(
            "/analyze",
            json={"targets": ["."], "project_root": str(tmp_path / "missing")},
        )

        assert response.status_code == 400

    def test_analyze_requires_targets(self, client, project):
        """Test request validation of an empty target list."""
        response = client.post("/analyze", json={"targets": [], "project_root": str(project)})

        assert response.status_code == 422
