# app/jobs/refresh.py
from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from app.config.settings import get_settings

logger = logging.getLogger("crypto_dashboard.refresh")


def _iso_z(dt: Optional[datetime]) -> Optional[str]:
    if dt is None:
        return None
    return dt.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


@dataclass
class RefreshState:
    started: bool = False
    stop_event: Optional[asyncio.Event] = None
    task: Optional[asyncio.Task] = None
    sources: List[Any] = field(default_factory=list)
    interval_s: int = 0
    runs: int = 0
    last_run_utc: Optional[datetime] = None
    consecutive_failures: int = 0


_state = RefreshState()


async def _refresh_once(sources: List[Any]) -> bool:
    results = await asyncio.gather(*(s.refresh() for s in sources), return_exceptions=True)
    ok = True
    for source, result in zip(sources, results):
        if isinstance(result, BaseException):
            logger.error("refresh raised | source=%s", getattr(source, "name", source), exc_info=result)
            ok = False
        elif result is False:
            ok = False
    return ok


async def _refresh_loop(stop_event: asyncio.Event, interval: int) -> None:
    logger.info("refresh job started | interval_s=%s", interval)

    while not stop_event.is_set():
        t0 = time.perf_counter()
        try:
            ok = await _refresh_once(_state.sources)
            _state.runs += 1
            _state.last_run_utc = datetime.now(timezone.utc)
            _state.consecutive_failures = 0 if ok else _state.consecutive_failures + 1
            logger.info("refresh done | ok=%s | %dms", ok, int((time.perf_counter() - t0) * 1000))
        except asyncio.CancelledError:
            raise
        except Exception:
            _state.consecutive_failures += 1
            logger.exception("refresh error | %dms", int((time.perf_counter() - t0) * 1000))

        # stop-aware sleep
        try:
            await asyncio.wait_for(stop_event.wait(), timeout=interval)
        except asyncio.TimeoutError:
            pass

    logger.info("refresh job stopped")


def start_refresh_job(sources: List[Any]) -> bool:
    """Refresh ``sources`` now and then every REFRESH_INTERVAL_SECONDS."""
    s = get_settings()
    if not s.REFRESH_ENABLED:
        logger.info("refresh disabled (REFRESH_ENABLED=false)")
        return False

    if _state.started:
        logger.warning("refresh job already started (in-process)")
        return False

    _state.sources = list(sources)
    _state.interval_s = s.REFRESH_INTERVAL_SECONDS
    _state.stop_event = asyncio.Event()
    _state.started = True
    _state.task = asyncio.get_running_loop().create_task(_refresh_loop(_state.stop_event, _state.interval_s))
    return True


async def stop_refresh_job(timeout_s: float = 6.0) -> None:
    if not _state.started:
        return

    if _state.stop_event:
        _state.stop_event.set()

    task = _state.task
    if task:
        try:
            await asyncio.wait_for(asyncio.shield(task), timeout=timeout_s)
        except asyncio.TimeoutError:
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)

    _state.task = None
    _state.stop_event = None
    _state.started = False
    _state.sources = []


def get_refresh_status() -> Dict[str, Any]:
    running = bool(_state.started and _state.stop_event and not _state.stop_event.is_set())
    return {
        "ok": running and _state.consecutive_failures < 3,
        "running": running,
        "interval_s": _state.interval_s,
        "runs": _state.runs,
        "last_run_iso": _iso_z(_state.last_run_utc),
        "consecutive_failures": _state.consecutive_failures,
    }
