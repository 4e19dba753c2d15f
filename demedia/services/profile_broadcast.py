"""In-process fan-out of profile photo updates.

Every mounted consumer (page fragments, WebSocket bridges, caches) subscribes
to one or more named events. Updates are queued, collapsed to the newest one
per user, emitted under every profile event name, and emitted once more after a
short delay for consumers that subscribe late. Subscribing with ``replay``
also hands over the last update seen for each user.
"""
from __future__ import annotations

import asyncio
import logging
import secrets
import threading
import time
from collections import defaultdict
from typing import Any, Callable, Iterable

from ..config import get_settings
from ..constants import PROFILE_FORCE_REFRESH_EVENT, PROFILE_UPDATE_EVENTS
from ..schemas.profiles import ProfileRefresh, ProfileUpdate
from .profile_cache import ProfilePhotoCache, profile_photo_cache

logger = logging.getLogger(__name__)

Listener = Callable[[Any], None]


class _Redelivery:
    """Cancellable handle over either an event-loop timer or a thread timer."""

    def __init__(self, delay: float, callback: Callable[[], None]) -> None:
        self._loop_handle: asyncio.TimerHandle | None = None
        self._thread_timer: threading.Timer | None = None
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            timer = threading.Timer(delay, callback)
            timer.daemon = True
            timer.start()
            self._thread_timer = timer
        else:
            self._loop_handle = loop.call_later(delay, callback)

    def cancel(self) -> None:
        if self._loop_handle is not None:
            self._loop_handle.cancel()
        if self._thread_timer is not None:
            self._thread_timer.cancel()


def _collapse(updates: Iterable[ProfileUpdate]) -> dict[str, ProfileUpdate]:
    latest: dict[str, ProfileUpdate] = {}
    for update in updates:
        key = str(update.user_id)
        existing = latest.get(key)
        if existing is None or update.timestamp >= existing.timestamp:
            latest[key] = update
    return latest


class ProfilePhotoBroadcaster:
    """Queues, de-duplicates and emits :class:`ProfileUpdate` messages."""

    def __init__(
        self,
        *,
        redelivery_delay: float | None = 0.1,
        events: tuple[str, ...] = PROFILE_UPDATE_EVENTS,
    ) -> None:
        self.redelivery_delay = redelivery_delay
        self.events = events
        self.is_processing = False
        self._listeners: dict[str, list[Listener]] = defaultdict(list)
        self._queue: list[ProfileUpdate] = []
        self._latest: dict[str, ProfileUpdate] = {}
        self._pending: dict[str, _Redelivery] = {}
        self._drain_scheduled = False
        self._loop: asyncio.AbstractEventLoop | None = None
        self._lock = threading.RLock()

    def subscribe(self, event: str, listener: Listener, *, replay: bool = True) -> Callable[[], None]:
        """Register ``listener`` for ``event`` and return a callable that removes it."""

        with self._lock:
            self._listeners[event].append(listener)
            backlog = list(self._latest.values()) if replay and event in self.events else []

        for update in backlog:
            self._deliver(event, listener, update)

        def _unsubscribe() -> None:
            with self._lock:
                listeners = self._listeners.get(event)
                if listeners and listener in listeners:
                    listeners.remove(listener)

        return _unsubscribe

    def listener_count(self, event: str) -> int:
        with self._lock:
            return len(self._listeners.get(event, ()))

    def last_update(self, user_id: str | int) -> ProfileUpdate | None:
        with self._lock:
            return self._latest.get(str(user_id))

    def publish(self, update: ProfileUpdate) -> None:
        """Queue ``update`` for delivery.

        Inside a running event loop the drain is deferred to the next loop
        iteration, so updates published back to back collapse to the newest
        one per user. Worker threads hand the drain to the loop given to
        :meth:`bind_loop`. With no loop at all the queue is drained immediately.
        """

        self.publish_many([update])

    def bind_loop(self, loop: asyncio.AbstractEventLoop | None) -> None:
        """Drain on ``loop`` when publishing from threads that run no loop of their own."""

        with self._lock:
            self._loop = loop

    def publish_many(self, updates: Iterable[ProfileUpdate]) -> None:
        with self._lock:
            self._queue.extend(updates)
            if self._drain_scheduled:
                return
            try:
                loop = asyncio.get_running_loop()
            except RuntimeError:
                loop = None
            if loop is not None:
                self._drain_scheduled = True
                loop.call_soon(self.flush)
                return
            bound = self._loop
            if bound is not None and bound.is_running() and not bound.is_closed():
                self._drain_scheduled = True
                bound.call_soon_threadsafe(self.flush)
                return
        self.flush()

    def flush(self) -> None:
        """Drain the queue now. Re-entrant calls from listeners only enqueue."""

        with self._lock:
            self._drain_scheduled = False
            if self.is_processing or not self._queue:
                return
            self.is_processing = True

        try:
            while True:
                with self._lock:
                    if not self._queue:
                        break
                    queued, self._queue = self._queue, []
                    latest = _collapse(queued)
                    self._latest.update(latest)
                for update in latest.values():
                    self._dispatch(update)
                    self._schedule_redelivery(str(update.user_id))
        finally:
            with self._lock:
                self.is_processing = False

    def force_refresh_all(self) -> ProfileRefresh:
        refresh = ProfileRefresh()
        logger.info("Force refreshing all profile photos")
        for listener in self._snapshot(PROFILE_FORCE_REFRESH_EVENT):
            self._deliver(PROFILE_FORCE_REFRESH_EVENT, listener, refresh)
        return refresh

    def close(self) -> None:
        """Cancel pending delayed emissions and drop queued updates."""

        with self._lock:
            pending = list(self._pending.values())
            self._pending.clear()
            self._queue.clear()
            self._drain_scheduled = False
        for handle in pending:
            handle.cancel()

    def reset(self) -> None:
        """Forget listeners and remembered updates; used between test runs."""

        self.close()
        with self._lock:
            self._listeners.clear()
            self._latest.clear()
            self._loop = None

    def _snapshot(self, event: str) -> list[Listener]:
        with self._lock:
            return list(self._listeners.get(event, ()))

    def _dispatch(self, update: ProfileUpdate) -> None:
        for event in self.events:
            for listener in self._snapshot(event):
                self._deliver(event, listener, update)
        logger.debug("Profile update events dispatched for user %s", update.user_id)

    def _deliver(self, event: str, listener: Listener, payload: Any) -> None:
        try:
            listener(payload)
        except Exception:
            logger.exception("Listener for %s failed", event)

    def _schedule_redelivery(self, key: str) -> None:
        if not self.redelivery_delay or self.redelivery_delay <= 0:
            return

        def _redeliver() -> None:
            with self._lock:
                self._pending.pop(key, None)
                update = self._latest.get(key)
            if update is not None:
                self._dispatch(update)

        with self._lock:
            previous = self._pending.pop(key, None)
            if previous is not None:
                previous.cancel()
            self._pending[key] = _Redelivery(self.redelivery_delay, _redeliver)


def add_cache_buster(url: str) -> str:
    """Append cache-defeating query parameters so clients refetch ``url``."""

    if not url:
        return url
    separator = "&" if "?" in url else "?"
    return f"{url}{separator}t={int(time.time() * 1000)}&cb={secrets.token_hex(3)}"


def create_immediate_photo_url(url: str) -> str:
    """Return a display URL that no client cache will have seen before."""

    if not url:
        return url
    if url.startswith("data:"):
        # Query parameters would corrupt the payload; a fragment is ignored by decoders.
        return f"{url}#t={int(time.time() * 1000)}&cb={secrets.token_hex(3)}"
    return add_cache_buster(url)


profile_broadcaster = ProfilePhotoBroadcaster(
    redelivery_delay=get_settings().profile_redelivery_delay_ms / 1000,
)


def update_profile_photo(
    user_id: str | int,
    image_data: str,
    *,
    display_name: str | None = None,
    handle: str | None = None,
    broadcaster: ProfilePhotoBroadcaster | None = None,
    cache: ProfilePhotoCache | None = None,
) -> ProfileUpdate:
    """Broadcast a new profile image and mirror it into the local cache."""

    update = ProfileUpdate(user_id=user_id, image_data=image_data, display_name=display_name, handle=handle)
    (broadcaster or profile_broadcaster).publish(update)
    (cache or profile_photo_cache).update(user_id, image_data)
    return update


__all__ = [
    "Listener",
    "ProfilePhotoBroadcaster",
    "add_cache_buster",
    "create_immediate_photo_url",
    "profile_broadcaster",
    "update_profile_photo",
]
