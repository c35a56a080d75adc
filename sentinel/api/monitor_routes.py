"""Monitor API routes.

Endpoints:
  GET    /api/monitors               list, newest first
  POST   /api/monitors               bulk add from newline-delimited URLs
  GET    /api/monitors/stream        SSE stream of live check results
  POST   /api/monitors/check-all     check every non-paused monitor now
  GET    /api/monitors/{id}          single monitor
  PATCH  /api/monitors/{id}          edit URL
  PATCH  /api/monitors/{id}/toggle   pause / resume
  DELETE /api/monitors/{id}          remove
  POST   /api/monitors/{id}/check    manual single check
  GET    /api/stats                  dashboard counters
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any

from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import StreamingResponse
from pydantic import BaseModel

from sentinel.checks.engine import CheckResult
from sentinel.checks.scheduler import CheckScheduler
from sentinel.monitors.models import Monitor, Status, parse_url_list, validate_interval
from sentinel.monitors.store import MonitorStore

logger = logging.getLogger(__name__)

monitor_router = APIRouter(tags=["monitors"])

# ── SSE subscriber list (in-memory) ──────────────────────────────────────────

_sse_queues: list[asyncio.Queue[dict[str, Any]]] = []


def broadcast_result(monitor: Monitor, result: CheckResult) -> None:
    """Push a check result to all SSE subscribers."""
    data = {
        "monitor": monitor.to_dict(),
        "message": result.message,
        "timestamp": result.timestamp,
    }
    for q in _sse_queues:
        try:
            q.put_nowait(data)
        except asyncio.QueueFull:
            pass  # slow consumer, drop


# ── Request models ───────────────────────────────────────────────────────────


class AddMonitorsBody(BaseModel):
    urls: str = ""
    interval: int | None = None


class UpdateMonitorBody(BaseModel):
    url: str | None = None


# ── Helpers ──────────────────────────────────────────────────────────────────


def _get_store(request: Request) -> MonitorStore:
    return request.app.state.store  # type: ignore[no-any-return]


def _get_scheduler(request: Request) -> CheckScheduler:
    return request.app.state.scheduler  # type: ignore[no-any-return]


def _get_or_404(store: MonitorStore, monitor_id: str) -> Monitor:
    monitor = store.get(monitor_id)
    if monitor is None:
        raise HTTPException(status_code=404, detail="Monitor not found")
    return monitor


# ── Collection endpoints ─────────────────────────────────────────────────────


@monitor_router.get("/monitors")
def list_monitors(request: Request) -> list[dict[str, Any]]:
    return [m.to_dict() for m in _get_store(request).list()]


@monitor_router.post("/monitors")
def add_monitors(body: AddMonitorsBody, request: Request) -> list[dict[str, Any]]:
    """Create one PENDING monitor per non-blank line of ``urls``."""
    url_list = parse_url_list(body.urls)
    if not url_list:
        raise HTTPException(status_code=400, detail="URLs required")
    try:
        interval = validate_interval(body.interval)
        monitors = [Monitor.create(url, interval) for url in url_list]
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    _get_store(request).add_many(monitors)
    logger.info("Added %d monitor(s)", len(monitors))
    return [m.to_dict() for m in monitors]


@monitor_router.get("/monitors/stream")
async def monitor_stream(request: Request) -> StreamingResponse:
    """Server-Sent Events stream for real-time check results."""
    queue: asyncio.Queue[dict[str, Any]] = asyncio.Queue(maxsize=50)
    _sse_queues.append(queue)

    async def event_generator():
        try:
            monitors = [m.to_dict() for m in _get_store(request).list()]
            yield f"event: init\ndata: {json.dumps(monitors)}\n\n"

            while True:
                if await request.is_disconnected():
                    break
                try:
                    data = await asyncio.wait_for(queue.get(), timeout=30)
                    yield f"event: check\ndata: {json.dumps(data)}\n\n"
                except asyncio.TimeoutError:
                    yield ": keepalive\n\n"
        finally:
            _sse_queues.remove(queue)

    return StreamingResponse(
        event_generator(),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",
        },
    )


@monitor_router.post("/monitors/check-all")
async def check_all(request: Request) -> dict[str, Any]:
    counts = await _get_scheduler(request).check_all()
    logger.info("Batch check complete: %d/%d checked", counts["checked"], counts["total"])
    return {
        "success": True,
        "message": f"Checked {counts['checked']} monitor(s)",
        **counts,
    }


@monitor_router.get("/stats")
def stats(request: Request) -> dict[str, Any]:
    """Counters for the dashboard overview."""
    monitors = _get_store(request).list()
    by_status = {s: 0 for s in Status}
    for m in monitors:
        by_status[m.status] += 1
    latencies = [m.latency for m in monitors if m.status == Status.UP and m.latency is not None]
    return {
        "total": len(monitors),
        "up": by_status[Status.UP],
        "down": by_status[Status.DOWN],
        "paused": by_status[Status.PAUSED],
        "pending": by_status[Status.PENDING],
        "avgLatency": round(sum(latencies) / len(latencies)) if latencies else 0,
    }


# ── Item endpoints ───────────────────────────────────────────────────────────


@monitor_router.get("/monitors/{monitor_id}")
def get_monitor(monitor_id: str, request: Request) -> dict[str, Any]:
    return _get_or_404(_get_store(request), monitor_id).to_dict()


@monitor_router.patch("/monitors/{monitor_id}")
def update_monitor(monitor_id: str, body: UpdateMonitorBody, request: Request) -> dict[str, Any]:
    """Edit the URL (if given). Status returns to PENDING either way."""
    store = _get_store(request)
    monitor = _get_or_404(store, monitor_id)
    try:
        if body.url:
            monitor.update_url(body.url)
        else:
            monitor.mark_pending()
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    store.upsert(monitor)
    logger.info("Updated monitor %s", monitor_id)
    return monitor.to_dict()


@monitor_router.patch("/monitors/{monitor_id}/toggle")
def toggle_monitor(monitor_id: str, request: Request) -> dict[str, Any]:
    store = _get_store(request)
    monitor = _get_or_404(store, monitor_id)
    monitor.toggle_pause()
    store.upsert(monitor)
    logger.info("Toggled monitor %s, isPaused=%s", monitor_id, monitor.is_paused)
    return monitor.to_dict()


@monitor_router.delete("/monitors/{monitor_id}")
def delete_monitor(monitor_id: str, request: Request) -> dict[str, Any]:
    if not _get_store(request).delete(monitor_id):
        raise HTTPException(status_code=404, detail="Monitor not found")
    logger.info("Deleted monitor %s", monitor_id)
    return {"success": True}


@monitor_router.post("/monitors/{monitor_id}/check")
async def check_monitor(monitor_id: str, request: Request) -> dict[str, Any]:
    monitor = await _get_scheduler(request).check_now(monitor_id)
    if monitor is None:
        raise HTTPException(status_code=404, detail="Monitor not found")
    return monitor.to_dict()
