# tagask/routes/health.py
"""
Health check endpoints: liveness plus readiness of storage and Microsoft Graph.
"""

import time

from fastapi import APIRouter

from tagask.config import settings
from tagask.dependencies import get_history_store, get_leaderboard_store
from tagask.services.graph.client import graph_directory_service

router = APIRouter()


@router.get("/healthz")
async def healthz():
    """Basic health check - always returns 200 if app is running."""
    return {"status": "ok", "service": "tagask"}


async def _timed(check) -> dict:
    t0 = time.time()
    try:
        result = await check()
        healthy = bool(result.get("healthy", False))
        detail = {"ok": healthy, "latency_ms": round((time.time() - t0) * 1000, 1)}
        if not healthy and "error" in result:
            detail["error"] = result["error"]
        return detail
    except Exception as e:
        return {
            "ok": False,
            "error": f"{type(e).__name__}: {e}",
            "latency_ms": round((time.time() - t0) * 1000, 1),
        }


@router.get("/readyz")
async def readyz():
    """Readiness check for both collections and Graph reachability."""
    checks = {
        "leaderboard_store": await _timed(get_leaderboard_store().health_check),
        "history_store": await _timed(get_history_store().health_check),
        "graph": await _timed(graph_directory_service.health_check),
    }
    checks["leaderboard_store"]["backend"] = settings.STORAGE_BACKEND
    checks["history_store"]["backend"] = settings.STORAGE_BACKEND

    # Configuration checks
    config_issues = []
    if settings.STORAGE_BACKEND == "redis" and not settings.REDIS_URL:
        config_issues.append("REDIS_URL not set")
    if settings.SUMMARIZER_BACKEND == "flow" and not settings.SUMMARY_FLOW_URL:
        config_issues.append("SUMMARY_FLOW_URL not set")
    if settings.SUMMARIZER_BACKEND == "openai" and not settings.OPENAI_API_KEY:
        config_issues.append("OPENAI_API_KEY not set")

    checks["configuration"] = {
        "ok": not config_issues,
        "issues": config_issues or None,
        "environment": settings.environment,
    }

    overall_ok = all(check["ok"] for check in checks.values())
    return {"overall_ok": overall_ok, "checks": checks, "timestamp": time.time()}
