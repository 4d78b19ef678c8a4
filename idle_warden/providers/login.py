from __future__ import annotations

import logging

from dbus_next.aio import MessageBus

from ..engine.events import EventQueue, InhibitionBlockChanged, PrepareForSleep, SessionLocked

logger = logging.getLogger(__name__)

LOGIND_BUS_NAME = "org.freedesktop.login1"
LOGIND_PATH = "/org/freedesktop/login1"
LOGIND_MANAGER_IFACE = "org.freedesktop.login1.Manager"
LOGIND_SESSION_IFACE = "org.freedesktop.login1.Session"
DBUS_PROPS_IFACE = "org.freedesktop.DBus.Properties"


def block_inhibits_idle(raw: str) -> bool:
    """logind reports BlockInhibited as a colon-separated list, e.g. "sleep:idle"."""
    return "idle" in {item.strip() for item in raw.split(":")}


class SessionMonitor:
    """Translate systemd-logind signals into reactor events.

    - Session Lock/Unlock -> SessionLocked
    - Manager PrepareForSleep -> PrepareForSleep
    - Manager BlockInhibited -> InhibitionBlockChanged (always watched; the
      reactor decides whether session inhibition counts)
    """

    def __init__(self, queue: EventQueue):
        self._queue = queue

    async def serve(self, bus: MessageBus) -> None:
        introspection = await bus.introspect(LOGIND_BUS_NAME, LOGIND_PATH)
        obj = bus.get_proxy_object(LOGIND_BUS_NAME, LOGIND_PATH, introspection)
        manager = obj.get_interface(LOGIND_MANAGER_IFACE)

        session_path = await manager.call_get_session("auto")  # type: ignore[attr-defined]
        session_introspection = await bus.introspect(LOGIND_BUS_NAME, session_path)
        session_obj = bus.get_proxy_object(LOGIND_BUS_NAME, session_path, session_introspection)
        session = session_obj.get_interface(LOGIND_SESSION_IFACE)

        session.on_lock(self._on_lock)  # type: ignore[attr-defined]
        session.on_unlock(self._on_unlock)  # type: ignore[attr-defined]
        manager.on_prepare_for_sleep(self._on_prepare_for_sleep)  # type: ignore[attr-defined]
        logger.info("Session listener active on %s", session_path)

        block_inhibited = await manager.get_block_inhibited()  # type: ignore[attr-defined]
        self._on_block_inhibited(block_inhibited)

        props = obj.get_interface(DBUS_PROPS_IFACE)
        props.on_properties_changed(self._on_manager_properties)  # type: ignore[attr-defined]
        logger.info("systemd inhibitor listener active")

        await bus.wait_for_disconnect()

    def _on_lock(self) -> None:
        self._queue.send(SessionLocked(locked=True))

    def _on_unlock(self) -> None:
        self._queue.send(SessionLocked(locked=False))

    def _on_prepare_for_sleep(self, start: bool) -> None:
        self._queue.send(PrepareForSleep(sleeping=bool(start)))

    def _on_block_inhibited(self, value: str) -> None:
        self._queue.send(InhibitionBlockChanged(active=block_inhibits_idle(value)))

    def _on_manager_properties(self, interface: str, changed: dict, invalidated: list) -> None:
        if interface != LOGIND_MANAGER_IFACE:
            return
        variant = changed.get("BlockInhibited")
        if variant is not None:
            self._on_block_inhibited(str(variant.value))
