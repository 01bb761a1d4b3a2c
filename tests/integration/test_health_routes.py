"""
Tests for health check endpoints.
"""

from unittest.mock import AsyncMock, MagicMock, patch

from fastapi.testclient import TestClient

from tagask.main import app

client = TestClient(app)


def _store(healthy: bool) -> MagicMock:
    store = MagicMock()
    result = {"healthy": healthy, "collection": "x"}
    if not healthy:
        result["error"] = "unreadable"
    store.health_check = AsyncMock(return_value=result)
    return store


def test_healthz_endpoint():
    response = client.get("/healthz")

    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_readyz_all_dependencies_healthy():
    with (
        patch("tagask.routes.health.get_leaderboard_store", return_value=_store(True)),
        patch("tagask.routes.health.get_history_store", return_value=_store(True)),
        patch(
            "tagask.routes.health.graph_directory_service.health_check",
            AsyncMock(return_value={"healthy": True}),
        ),
        patch("tagask.routes.health.settings.STORAGE_BACKEND", "json"),
        patch("tagask.routes.health.settings.SUMMARIZER_BACKEND", "flow"),
        patch("tagask.routes.health.settings.SUMMARY_FLOW_URL", "https://flow.example/invoke"),
    ):
        response = client.get("/readyz")

    assert response.status_code == 200
    data = response.json()
    assert data["overall_ok"] is True
    assert data["checks"]["leaderboard_store"]["ok"] is True
    assert data["checks"]["graph"]["ok"] is True


def test_readyz_reports_unreadable_store():
    with (
        patch("tagask.routes.health.get_leaderboard_store", return_value=_store(True)),
        patch("tagask.routes.health.get_history_store", return_value=_store(False)),
        patch(
            "tagask.routes.health.graph_directory_service.health_check",
            AsyncMock(return_value={"healthy": True}),
        ),
    ):
        response = client.get("/readyz")

    assert response.status_code == 200
    data = response.json()
    assert data["overall_ok"] is False
    assert data["checks"]["history_store"] == {
        "ok": False,
        "latency_ms": data["checks"]["history_store"]["latency_ms"],
        "error": "unreadable",
        "backend": data["checks"]["history_store"]["backend"],
    }


def test_readyz_flags_missing_summarizer_config():
    with (
        patch("tagask.routes.health.get_leaderboard_store", return_value=_store(True)),
        patch("tagask.routes.health.get_history_store", return_value=_store(True)),
        patch(
            "tagask.routes.health.graph_directory_service.health_check",
            AsyncMock(return_value={"healthy": True}),
        ),
        patch("tagask.routes.health.settings.SUMMARIZER_BACKEND", "openai"),
        patch("tagask.routes.health.settings.OPENAI_API_KEY", None),
    ):
        response = client.get("/readyz")

    checks = response.json()["checks"]
    assert checks["configuration"]["ok"] is False
    assert "OPENAI_API_KEY not set" in checks["configuration"]["issues"]
