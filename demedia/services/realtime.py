"""In-memory WebSocket broadcast helpers for profile photo updates."""
from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Callable

from fastapi import WebSocket

from ..schemas.profiles import ProfileUpdate
from .profile_broadcast import ProfilePhotoBroadcaster

logger = logging.getLogger(__name__)


class WebSocketManager:
    """Tracks active WebSocket connections and broadcasts JSON payloads."""

    def __init__(self) -> None:
        self._connections: set[WebSocket] = set()
        self._lock = asyncio.Lock()

    @property
    def connection_count(self) -> int:
        return len(self._connections)

    async def connect(self, websocket: WebSocket) -> None:
        await websocket.accept()
        async with self._lock:
            self._connections.add(websocket)

    async def disconnect(self, websocket: WebSocket) -> None:
        async with self._lock:
            self._connections.discard(websocket)

    async def broadcast(self, message: dict[str, Any]) -> None:
        payload = json.dumps(message, default=str)
        async with self._lock:
            targets = list(self._connections)
        for connection in targets:
            try:
                await connection.send_text(payload)
            except Exception:
                logger.debug("Dropping profile socket after failed send", exc_info=True)
                await self.disconnect(connection)


profile_updates_manager = WebSocketManager()

_background_tasks: set[asyncio.Task[None]] = set()


def _spawn_broadcast(manager: WebSocketManager, message: dict[str, Any]) -> None:
    task = asyncio.get_running_loop().create_task(manager.broadcast(message))
    _background_tasks.add(task)
    task.add_done_callback(_background_tasks.discard)


async def wait_for_broadcasts() -> None:
    """Let in-flight socket broadcasts finish; used on shutdown."""

    if _background_tasks:
        await asyncio.gather(*list(_background_tasks), return_exceptions=True)


def bridge_profile_updates(
    broadcaster: ProfilePhotoBroadcaster,
    manager: WebSocketManager,
    loop: asyncio.AbstractEventLoop,
    *,
    event: str = "profile:updated",
) -> Callable[[], None]:
    """Forward ``event`` emissions to every socket held by ``manager``.

    Emissions may arrive from timer threads, so delivery is handed to ``loop``
    thread-safely. Returns the unsubscribe callable.
    """

    def _forward(update: ProfileUpdate) -> None:
        message = {"type": event, "payload": update.model_dump(mode="json")}
        if loop.is_closed():
            return
        loop.call_soon_threadsafe(_spawn_broadcast, manager, message)

    logger.info("Bridging %s events to profile WebSocket clients", event)
    return broadcaster.subscribe(event, _forward, replay=False)


__all__ = ["WebSocketManager", "bridge_profile_updates", "profile_updates_manager", "wait_for_broadcasts"]
