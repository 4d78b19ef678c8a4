# Annotations in this module are D-Bus signatures read by dbus_next at runtime.
import logging

from dbus_next import DBusError, ErrorType, Message, MessageType
from dbus_next.aio import MessageBus
from dbus_next.constants import NameFlag, RequestNameReply
from dbus_next.service import ServiceInterface, method, signal

from ..engine.reactor import Reactor

logger = logging.getLogger(__name__)

SCREENSAVER_BUS_NAME = "org.freedesktop.ScreenSaver"
SCREENSAVER_IFACE = "org.freedesktop.ScreenSaver"
SCREENSAVER_PATHS = ("/ScreenSaver", "/org/freedesktop/ScreenSaver")

DBUS_BUS_NAME = "org.freedesktop.DBus"
DBUS_PATH = "/org/freedesktop/DBus"


class ScreenSaverInterface(ServiceInterface):
    """org.freedesktop.ScreenSaver compatibility endpoint.

    dbus_next does not pass the message header to service methods, so the
    sender of the call being dispatched is captured by a bus message handler
    (`remember_sender`) just before the method runs.
    """

    def __init__(self, reactor: Reactor):
        super().__init__(SCREENSAVER_IFACE)
        self._reactor = reactor
        self._current_sender: str | None = None

    def remember_sender(self, msg: Message) -> None:
        if msg.message_type == MessageType.METHOD_CALL and msg.interface == SCREENSAVER_IFACE:
            self._current_sender = msg.sender

    # Plain implementations; the D-Bus wrappers below discard return values
    # when called directly, so tests and other callers use these.

    def inhibit(self, application_name: str, reason_for_inhibit: str, owner: str | None) -> int:
        return self._reactor.inhibit(application_name, reason_for_inhibit, owner or "")

    def uninhibit(self, cookie: int) -> None:
        self._reactor.uninhibit(cookie)

    def lock(self) -> None:
        logger.info("Lock requested over D-Bus")
        self._reactor.request_lock()

    def set_active(self, state: bool) -> bool:
        if state:
            self.lock()
        return state

    def emit_active_changed(self, active: bool) -> None:
        self.ActiveChanged(active)

    @method()
    def Inhibit(self, application_name: "s", reason_for_inhibit: "s") -> "u":
        return self.inhibit(application_name, reason_for_inhibit, self._current_sender)

    @method()
    def UnInhibit(self, cookie: "u"):
        self.uninhibit(cookie)

    @method()
    def Throttle(self, application_name: "s", reason_for_inhibit: "s") -> "u":
        # Throttling is accepted for compatibility but has no effect.
        return 0

    @method()
    def UnThrottle(self, cookie: "u"):
        return

    @method()
    def Lock(self):
        self.lock()

    @method()
    def SimulateUserActivity(self):
        self._reactor.simulate_activity()

    @method()
    def GetActive(self) -> "b":
        return self._reactor.get_active()

    @method()
    def GetActiveTime(self) -> "u":
        return self._reactor.get_active_seconds()

    @method()
    def GetSessionIdleTime(self) -> "u":
        raise DBusError(ErrorType.NOT_SUPPORTED, "GetSessionIdleTime is not supported")

    @method()
    def SetActive(self, state: "b") -> "b":
        return self.set_active(state)

    @signal()
    def ActiveChanged(self, active) -> "b":
        return active


class ScreenSaverService:
    def __init__(self, reactor: Reactor):
        self._reactor = reactor
        self.interface = ScreenSaverInterface(reactor)

    def _handle_message(self, msg: Message) -> None:
        self.interface.remember_sender(msg)
        return None

    def _on_name_owner_changed(self, name: str, old_owner: str, new_owner: str) -> None:
        if new_owner or not name.startswith(":"):
            return
        self._reactor.owner_disconnected(name)

    async def serve(self, bus: MessageBus) -> None:
        bus.add_message_handler(self._handle_message)
        for path in SCREENSAVER_PATHS:
            bus.export(path, self.interface)

        reply = await bus.request_name(SCREENSAVER_BUS_NAME, flags=NameFlag.REPLACE_EXISTING)
        if reply not in (RequestNameReply.PRIMARY_OWNER, RequestNameReply.ALREADY_OWNER):
            logger.warning("%s is owned by another process (%s)", SCREENSAVER_BUS_NAME, reply.name)

        introspection = await bus.introspect(DBUS_BUS_NAME, DBUS_PATH)
        obj = bus.get_proxy_object(DBUS_BUS_NAME, DBUS_PATH, introspection)
        dbus = obj.get_interface(DBUS_BUS_NAME)
        dbus.on_name_owner_changed(self._on_name_owner_changed)  # type: ignore[attr-defined]

        self._reactor.add_lock_observer(self.interface.emit_active_changed)
        logger.info("ScreenSaver service active on %s", SCREENSAVER_BUS_NAME)

        await bus.wait_for_disconnect()
