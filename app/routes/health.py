# app/routes/health.py
"""
Health check endpoints: liveness, and readiness across the AI service,
the job store pool and the queue monitor.
"""

import time

from fastapi import APIRouter, Request

from app.config import settings
from app.db.pool import db_health_check

router = APIRouter()


@router.get("/healthz")
async def healthz():
    """Basic health check - always returns 200 if app is running."""
    return {"status": "ok", "service": "queue-monitor"}


@router.get("/readyz")
async def readyz(request: Request):
    """
    Readiness check with all dependencies.

    The job store is only checked when configured; the queue monitor is
    reported but a degraded push channel does not fail readiness, since
    polling still keeps the view current.
    """
    checks = {}
    overall_ok = True

    # 1) AI service
    t0 = time.time()
    ai_health = await request.app.state.ai_client.health_check()
    checks["ai_service"] = {
        "ok": bool(ai_health.get("healthy")),
        "latency_ms": round((time.time() - t0) * 1000, 1),
    }
    if not ai_health.get("healthy"):
        checks["ai_service"]["error"] = ai_health.get(
            "error", f"HTTP {ai_health.get('status_code')}"
        )
    overall_ok = overall_ok and checks["ai_service"]["ok"]

    # 2) Database pool
    if settings.job_store_enabled():
        t0 = time.time()
        db_health = await db_health_check()
        is_healthy = db_health.get("healthy", False)
        checks["database"] = {
            "ok": is_healthy,
            "latency_ms": round((time.time() - t0) * 1000, 1),
        }
        if "pool_stats" in db_health:
            checks["database"].update(db_health["pool_stats"])
        if not is_healthy:
            checks["database"]["error"] = db_health.get("error", "Database unhealthy")
        overall_ok = overall_ok and is_healthy
    else:
        checks["database"] = {"ok": True, "enabled": False}

    # 3) Queue monitor
    monitor = request.app.state.reconciler.status()
    checks["queue_monitor"] = {
        "ok": monitor["running"],
        "realtime_unavailable": monitor["realtime_unavailable"],
        "last_poll_at": monitor["last_poll_at"],
        "last_error": monitor["last_error"],
    }
    overall_ok = overall_ok and monitor["running"]

    return {"overall_ok": overall_ok, "checks": checks, "timestamp": time.time()}


@router.get("/health/database")
async def database_health():
    """Detailed database pool health information."""
    return await db_health_check()
