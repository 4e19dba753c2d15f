"""Application entry point for the DeMEDIA media service."""
from __future__ import annotations

import asyncio
import logging
import os
from datetime import timedelta
from typing import Callable, Iterable

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .config import get_settings
from .database import init_db
from .routers import media_router, photo_cache_router, profiles_router, realtime_router
from .services import (
    CleanupError,
    bridge_profile_updates,
    profile_broadcaster,
    profile_updates_manager,
    run_cleanup,
    wait_for_broadcasts,
)

logger = logging.getLogger(__name__)

settings = get_settings()
APP_NAME = settings.app_name
API_VERSION = settings.api_version
DISABLE_CLEANUP = os.getenv("DISABLE_CLEANUP", "").lower() == "true" or os.getenv("PYTEST_CURRENT_TEST") is not None

app = FastAPI(title=APP_NAME, version=API_VERSION)

cors_origins = os.getenv("CORS_ORIGINS")
if cors_origins:
    origins: Iterable[str] = [origin.strip() for origin in cors_origins.split(",") if origin.strip()]
else:
    origins = ["*"]

app.add_middleware(
    CORSMiddleware,
    allow_origins=list(origins),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(media_router)
app.include_router(photo_cache_router)
app.include_router(profiles_router)
app.include_router(realtime_router)

_CLEANUP_INTERVAL = timedelta(hours=settings.cleanup_interval_hours)
_cleanup_task: asyncio.Task[None] | None = None
_cleanup_stop = asyncio.Event()
_unbridge: Callable[[], None] | None = None


async def _run_cleanup_once() -> None:
    """Execute a single cleanup pass in a worker thread."""

    try:
        summary = await asyncio.to_thread(run_cleanup)
        logger.info(
            "Cleanup summary (post_photos=%d, profile_photos=%d, total=%d)",
            summary.post_photos,
            summary.profile_photos,
            summary.total,
        )
    except CleanupError:
        logger.exception("Scheduled cleanup failed")
    except Exception:  # pragma: no cover - defensive
        logger.exception("Unexpected error during cleanup run")


async def _cleanup_loop() -> None:
    """Background task that runs cleanup on a fixed interval."""

    while not _cleanup_stop.is_set():
        await _run_cleanup_once()
        try:
            await asyncio.wait_for(_cleanup_stop.wait(), timeout=_CLEANUP_INTERVAL.total_seconds())
        except asyncio.TimeoutError:
            continue


@app.on_event("startup")
async def _startup() -> None:
    """Ensure database schema, realtime bridge and background tasks are ready before serving."""

    try:
        init_db()
    except Exception:  # pragma: no cover - best effort logging
        logger.exception("Database initialisation failed")
        raise

    loop = asyncio.get_running_loop()
    profile_broadcaster.bind_loop(loop)
    global _unbridge
    if _unbridge is None:
        _unbridge = bridge_profile_updates(profile_broadcaster, profile_updates_manager, loop)

    if DISABLE_CLEANUP:
        logger.info("Background cleanup disabled (testing mode)")
        return

    global _cleanup_task
    if _cleanup_task is None or _cleanup_task.done():
        _cleanup_stop.clear()
        _cleanup_task = asyncio.create_task(_cleanup_loop())


@app.on_event("shutdown")
async def _shutdown() -> None:
    """Stop background tasks and pending profile redeliveries."""

    global _unbridge
    if _unbridge is not None:
        _unbridge()
        _unbridge = None
    profile_broadcaster.bind_loop(None)
    profile_broadcaster.close()
    await wait_for_broadcasts()

    if DISABLE_CLEANUP:
        return

    _cleanup_stop.set()
    if _cleanup_task is not None:
        try:
            await _cleanup_task
        except asyncio.CancelledError:  # pragma: no cover - defensive
            pass


@app.get("/api", tags=["system"])
def api_info() -> dict[str, str]:
    return {"service": APP_NAME, "version": API_VERSION}


@app.get("/health", tags=["system"])
async def healthcheck() -> dict[str, int | str]:
    return {"status": "ok", "profile_sockets": profile_updates_manager.connection_count}
