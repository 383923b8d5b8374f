from __future__ import annotations
# CharForge - Character Asset Generation Orchestrator
# Copyright (C) 2026 CharForge Authors
# SPDX-License-Identifier: Apache-2.0
#
# This file is part of CharForge core/server, licensed under Apache-2.0.
# See LICENSE for the full license text.

import logging
import time
import uuid
from contextlib import asynccontextmanager
from pathlib import Path

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from fastapi import FastAPI
from fastapi.staticfiles import StaticFiles
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse as StarletteJSONResponse

from core.config import CharForgeConfig, load_config
from core.logging_config import bind_request_context
from core.paths import get_data_dir
from core.runtime import Runtime, build_runtime
from server.routes import create_router

logger = logging.getLogger("charforge.server")
request_logger = logging.getLogger("charforge.request")

# Polled by the client or served in bulk; logging them drowns real requests
_NOISY_PATHS = frozenset({"/api/health"})
_NOISY_PREFIXES = ("/assets/",)


def _is_noisy(path: str) -> bool:
    return path in _NOISY_PATHS or path.startswith(_NOISY_PREFIXES)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Log every HTTP request with method, path, status, and duration.

    The ``X-Request-ID`` header (or a fresh id) is bound into the logging
    context for the duration of the request and echoed on the response.
    """

    async def dispatch(self, request: Request, call_next):  # type: ignore[override]
        request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex[:12]
        bind_request_context(request_id, request.method, request.url.path)

        start = time.perf_counter()
        response = await call_next(request)
        duration_ms = (time.perf_counter() - start) * 1000

        response.headers["X-Request-ID"] = request_id
        if not _is_noisy(request.url.path):
            request_logger.info(
                "request %s %s -> %d (%.1fms)",
                request.method, request.url.path, response.status_code, duration_ms,
            )
        return response


def _sweep_sessions(runtime: Runtime) -> int:
    try:
        return runtime.store.cleanup_old_sessions(runtime.config.sessions.retention_days)
    except Exception:
        logger.exception("Retention sweep failed")
        return 0


@asynccontextmanager
async def lifespan(app: FastAPI):
    runtime: Runtime = app.state.runtime

    scheduler = AsyncIOScheduler(timezone="UTC")

    # ── Session retention sweep ────────────────────────────
    scheduler.add_job(
        _sweep_sessions,
        IntervalTrigger(hours=runtime.config.sessions.sweep_interval_hours),
        args=[runtime],
        id="session_retention_sweep",
        name="System: Session Retention Sweep",
        replace_existing=True,
    )
    scheduler.start()
    app.state.scheduler = scheduler

    if not runtime.adapter.is_configured:
        logger.warning("FAL_KEY is not configured; generation requests will fail")
    logger.info("Server started (assets: %s)", runtime.resolver.assets_root)
    yield

    scheduler.shutdown(wait=False)
    await runtime.aclose()
    logger.info("Server stopped")


def create_app(
    config: CharForgeConfig | None = None,
    data_dir: Path | None = None,
    *,
    runtime: Runtime | None = None,
) -> FastAPI:
    app = FastAPI(title="CharForge", version="0.1.0", lifespan=lifespan)

    if runtime is None:
        config = config or load_config()
        data_dir = data_dir or get_data_dir()
        data_dir.mkdir(parents=True, exist_ok=True)
        runtime = build_runtime(config, data_dir)

    app.state.runtime = runtime
    app.state.config = runtime.config
    app.state.resolver = runtime.resolver
    app.state.store = runtime.store
    app.state.adapter = runtime.adapter
    app.state.cache = runtime.cache
    app.state.orchestrator = runtime.orchestrator

    # ── Global exception handler ────────────────────────────
    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        logger.exception("Unhandled exception: %s", exc)
        return StarletteJSONResponse(
            {"error": "Internal server error"}, status_code=500,
        )

    # ── Request logging middleware ─────────────────────────
    app.add_middleware(RequestLoggingMiddleware)

    # ── Route registration ─────────────────────────────────
    app.include_router(create_router())

    # ── Generated assets ───────────────────────────────────
    assets_root = runtime.resolver.assets_root
    assets_root.mkdir(parents=True, exist_ok=True)
    app.mount(
        runtime.resolver.url_prefix,
        StaticFiles(directory=str(assets_root)),
        name="assets",
    )

    return app
