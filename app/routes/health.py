# app/routes/health.py
"""
Health check endpoints.
"""

import time

from fastapi import APIRouter

from app.config import settings
from app.services.cache.store import get_cache_store

router = APIRouter()


@router.get("/healthz")
async def healthz():
    """Basic health check - always returns 200 if app is running."""
    return {"status": "ok", "service": "contact-desk"}


@router.get("/readyz")
async def readyz():
    """
    Readiness check: the cache store answers and a SendGrid key is configured.
    SendGrid itself is not called.
    """
    checks = {}
    overall_ok = True

    # 1) Cache store
    t0 = time.time()
    try:
        store = get_cache_store()
        cache_ok = await store.ping()
        checks["cache"] = {
            "ok": bool(cache_ok),
            "latency_ms": round((time.time() - t0) * 1000, 1),
            "backend": type(store).__name__,
        }
        overall_ok = overall_ok and bool(cache_ok)
    except Exception as e:
        checks["cache"] = {"ok": False, "error": f"{type(e).__name__}: {e}"}
        overall_ok = False

    # 2) Configuration
    config_issues = []
    if not settings.sendgrid_configured():
        config_issues.append("SENDGRID_API_KEY not set")

    checks["configuration"] = {
        "ok": not config_issues,
        "issues": config_issues or None,
        "environment": settings.environment,
    }
    overall_ok = overall_ok and not config_issues

    return {"overall_ok": overall_ok, "checks": checks, "timestamp": time.time()}
