# app/api/health.py
from __future__ import annotations

import time
from datetime import datetime, timezone
from typing import Any, Dict

from fastapi import APIRouter, Request, Response
from sqlalchemy import text

from app.db import session as db_session
from app.jobs.refresh import get_refresh_status

router = APIRouter(tags=["health"])

APP_STARTED_AT = time.time()


def _now_meta() -> Dict[str, Any]:
    now_ts = time.time()
    now_dt = datetime.fromtimestamp(now_ts, tz=timezone.utc)
    return {
        "now_unix": int(now_ts),
        "now_iso": now_dt.isoformat().replace("+00:00", "Z"),
        "uptime_s": int(now_ts - APP_STARTED_AT),
    }


async def _check_db() -> Dict[str, Any]:
    t0 = time.time()
    try:
        async with db_session.engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        return {"ok": True, "latency_ms": int((time.time() - t0) * 1000)}
    except Exception as e:
        return {
            "ok": False,
            "latency_ms": int((time.time() - t0) * 1000),
            "error": str(e),
        }


def _check_pipeline(request: Request) -> Dict[str, Any]:
    pipeline = getattr(request.app.state, "pipeline", None)
    if pipeline is None or pipeline.closed:
        return {"ok": False, "error": "pipeline not running"}

    return {
        "ok": True,
        "is_loading": pipeline.is_loading.value,
        "coins": len(pipeline.all_coins.get([]) or []),
        "portfolio_coins": len(pipeline.portfolio_coins.get([]) or []),
        "statistics": len(pipeline.statistics.get([]) or []),
    }


@router.get("/live")
async def live():
    return {"status": "ok"}


@router.get("/ready")
async def ready(request: Request, response: Response):
    checks = {
        "db": await _check_db(),
        "pipeline": _check_pipeline(request),
        "refresh": get_refresh_status(),
    }

    degraded_reasons = []
    if not checks["db"]["ok"]:
        degraded_reasons.append("db_unhealthy")
    if not checks["pipeline"]["ok"]:
        degraded_reasons.append("pipeline_unavailable")
    # running without the refresh job is allowed (REFRESH_ENABLED=false)
    if checks["refresh"]["running"] and not checks["refresh"]["ok"]:
        degraded_reasons.append("refresh_failing")

    if degraded_reasons:
        response.status_code = 503

    return {
        "status": "degraded" if degraded_reasons else "ok",
        **_now_meta(),
        "degraded": bool(degraded_reasons),
        "degraded_reasons": degraded_reasons,
        "checks": checks,
    }
