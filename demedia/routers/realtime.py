"""WebSocket endpoint that streams profile photo updates."""
from __future__ import annotations

import json
import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from ..services.realtime import profile_updates_manager

router = APIRouter()
logger = logging.getLogger(__name__)


@router.websocket("/ws/profile-updates")
async def profile_updates(websocket: WebSocket) -> None:
    """Maintain a long-lived connection that pushes profile photo changes."""

    await profile_updates_manager.connect(websocket)
    logger.info("Profile socket connected from %s", websocket.client)
    try:
        while True:
            try:
                raw = await websocket.receive_text()
            except WebSocketDisconnect:
                break
            except Exception:
                logger.exception("Profile socket receive failed")
                break

            try:
                payload = json.loads(raw)
            except json.JSONDecodeError:
                payload = {"type": raw}
            if not isinstance(payload, dict):
                payload = {"type": str(payload)}

            message_type = str(payload.get("type") or "").lower()
            if message_type == "ping":
                await websocket.send_text(json.dumps({"type": "pong"}))
            elif message_type == "hello":
                await websocket.send_text(json.dumps({"type": "ready"}))
    finally:
        await profile_updates_manager.disconnect(websocket)
        logger.info("Profile socket disconnected from %s", websocket.client)


__all__ = ["router"]
