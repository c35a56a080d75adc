"""Global settings + service health endpoints."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel

from sentinel.monitors.models import MIN_INTERVAL, GlobalSettings

settings_router = APIRouter(tags=["settings"])


class UpdateSettingsBody(BaseModel):
    globalInterval: int | None = None


@settings_router.get("/settings")
def get_settings(request: Request) -> dict[str, Any]:
    return request.app.state.store.get_settings().to_dict()


@settings_router.patch("/settings")
def update_settings(body: UpdateSettingsBody, request: Request) -> dict[str, Any]:
    if body.globalInterval is None or body.globalInterval < MIN_INTERVAL:
        raise HTTPException(
            status_code=400,
            detail=f"Invalid interval (must be >= {MIN_INTERVAL} seconds)",
        )
    saved = request.app.state.store.set_settings(GlobalSettings(global_interval=body.globalInterval))
    return {"success": True, **saved.to_dict()}


@settings_router.get("/health")
def health(request: Request) -> dict[str, Any]:
    """Liveness probe; also reports scheduler and notifier state."""
    scheduler = getattr(request.app.state, "scheduler", None)
    notifier = getattr(request.app.state, "notifier", None)
    return {
        "status": "ok",
        "scheduler": scheduler.status() if scheduler else None,
        "notifications": notifier.status() if notifier else None,
    }
