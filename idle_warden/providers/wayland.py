from __future__ import annotations

import asyncio
import logging
from typing import Any

from ..engine.events import EventQueue, Idled, Resumed
from ..errors import StartupError

logger = logging.getLogger(__name__)

NOTIFIER_INTERFACE = "ext_idle_notifier_v1"
SEAT_INTERFACE = "wl_seat"


class WaylandIdleNotifier:
    """ext-idle-notify-v1 transport.

    Each `arm` creates one ext_idle_notification_v1 and returns an integer
    handle; its `idled`/`resumed` events are only enqueued, never handled
    here. The compositor re-arms the timer after every resume by itself.
    """

    def __init__(self, queue: EventQueue):
        self._queue = queue
        self._display: Any = None
        self._seat: Any = None
        self._notifier: Any = None
        self._notifications: dict[int, Any] = {}
        self._next_handle = 0
        self._loop: asyncio.AbstractEventLoop | None = None

    def connect(self) -> None:
        try:
            from pywayland.client import Display
            from pywayland.protocol.ext_idle_notify_v1 import ExtIdleNotifierV1
            from pywayland.protocol.wayland import WlSeat
        except ImportError as exc:
            raise StartupError(f"pywayland ext-idle-notify-v1 bindings unavailable: {exc}") from exc

        display = Display()
        try:
            display.connect()
        except Exception as exc:
            raise StartupError(f"Cannot connect to Wayland display: {exc}") from exc

        def handle_global(registry, id_: int, interface: str, version: int) -> None:
            if interface == SEAT_INTERFACE and self._seat is None:
                self._seat = registry.bind(id_, WlSeat, min(version, 4))
            elif interface == NOTIFIER_INTERFACE:
                self._notifier = registry.bind(id_, ExtIdleNotifierV1, 1)

        registry = display.get_registry()
        registry.dispatcher["global"] = handle_global
        display.roundtrip()

        if self._notifier is None:
            display.disconnect()
            raise StartupError("Compositor doesn't support ext-idle-notifier-v1")
        if self._seat is None:
            display.disconnect()
            raise StartupError("No Wayland seat found")

        self._display = display
        logger.info("Connected to Wayland idle notifier")

    def attach(self, loop: asyncio.AbstractEventLoop) -> None:
        self._loop = loop
        loop.add_reader(self._display.get_fd(), self._on_readable)

    def _on_readable(self) -> None:
        try:
            dispatched = self._display.dispatch(block=True)
        except RuntimeError as exc:
            logger.error("Wayland dispatch failed: %s", exc)
            dispatched = -1
        if dispatched == -1:
            logger.error("Wayland connection lost; idle notifications stopped")
            if self._loop is not None:
                self._loop.remove_reader(self._display.get_fd())
                self._loop = None
            return
        self._display.flush()

    def arm(self, timeout_ms: int) -> int:
        self._next_handle += 1
        handle = self._next_handle

        notification = self._notifier.get_idle_notification(timeout_ms, self._seat)
        notification.dispatcher["idled"] = lambda _proxy: self._queue.send(Idled(handle=handle))
        notification.dispatcher["resumed"] = lambda _proxy: self._queue.send(Resumed(handle=handle))
        self._notifications[handle] = notification
        self._display.flush()
        return handle

    def disarm(self, handle: int) -> None:
        notification = self._notifications.pop(handle, None)
        if notification is None:
            return
        notification.destroy()
        self._display.flush()

    def close(self) -> None:
        for handle in list(self._notifications):
            self.disarm(handle)
        if self._display is None:
            return
        if self._loop is not None:
            self._loop.remove_reader(self._display.get_fd())
            self._loop = None
        self._display.disconnect()
        self._display = None
