"""FastAPI server for the uptime monitor."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse, JSONResponse
from fastapi.staticfiles import StaticFiles

from sentinel.api.auth import PasswordGate, PasswordGateMiddleware, auth_router
from sentinel.api.monitor_routes import broadcast_result, monitor_router
from sentinel.api.settings_routes import settings_router
from sentinel.checks.scheduler import CheckScheduler, Executor
from sentinel.config import settings
from sentinel.monitors.seed import seed_store
from sentinel.monitors.store import MonitorStore, StoreError, create_store
from sentinel.notifications import NotificationManager

logger = logging.getLogger(__name__)

STATIC_DIR = Path(__file__).parent.parent / "static"


def _build_lifespan(
    store: MonitorStore | None,
    executor: Executor | None,
    start_scheduler: bool,
):
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Wire store, notifier and scheduler; start ticking."""
        monitor_store = store if store is not None else create_store(
            settings.store_backend, settings.data_dir, settings.default_interval,
        )
        app.state.store = monitor_store
        logger.info("Monitor store ready: %s", type(monitor_store).__name__)

        seed_store(monitor_store, settings.seed_file)

        notifier = NotificationManager()
        app.state.notifier = notifier
        if not notifier.has_webhooks:
            logger.info("No alert webhooks configured, transitions are only logged")

        scheduler = CheckScheduler(
            monitor_store,
            executor=executor,
            notifier=notifier,
            tick_seconds=settings.tick_seconds,
            max_concurrency=settings.max_concurrency,
            timeout=settings.check_timeout,
            on_result=broadcast_result,
        )
        app.state.scheduler = scheduler

        if start_scheduler:
            try:
                await scheduler.start()
            except Exception:
                logger.exception("Check scheduler failed to start")

        yield

        # Shutdown
        await scheduler.stop()
        await notifier.close()
        monitor_store.close()

    return lifespan


def create_app(
    store: MonitorStore | None = None,
    executor: Executor | None = None,
    start_scheduler: bool = True,
    password: str | None = None,
) -> FastAPI:
    app = FastAPI(
        title="Sentinel - Uptime Monitor",
        version="0.1.0",
        lifespan=_build_lifespan(store, executor, start_scheduler),
    )
    app.state.auth = PasswordGate(
        settings.app_password if password is None else password,
        settings.secret_key,
    )

    app.add_middleware(PasswordGateMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(StoreError)
    async def store_error_handler(request: Request, exc: StoreError) -> JSONResponse:
        logger.error("Storage failure on %s %s: %s", request.method, request.url.path, exc)
        return JSONResponse(status_code=500, content={"detail": "Server error", "message": str(exc)})

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(status_code=500, content={"detail": "Server error", "message": str(exc)})

    app.include_router(monitor_router, prefix="/api")
    app.include_router(settings_router, prefix="/api")
    app.include_router(auth_router, prefix="/api")

    @app.get("/")
    async def dashboard():
        return FileResponse(STATIC_DIR / "index.html")

    app.mount("/static", StaticFiles(directory=str(STATIC_DIR)), name="static")

    return app


app = create_app()
