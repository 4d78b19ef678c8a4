from __future__ import annotations

import logging

from dbus_next.aio import MessageBus

from ..engine.events import (
    BatteryLevelChanged,
    BatteryStateChanged,
    EventQueue,
    PercentageChanged,
    SourceChanged,
)
from ..engine.types import BatteryLevel, BatteryState

logger = logging.getLogger(__name__)

UPOWER_BUS_NAME = "org.freedesktop.UPower"
UPOWER_PATH = "/org/freedesktop/UPower"
UPOWER_IFACE = "org.freedesktop.UPower"
UPOWER_DEVICE_IFACE = "org.freedesktop.UPower.Device"
DBUS_PROPS_IFACE = "org.freedesktop.DBus.Properties"


def _battery_state(value: int) -> BatteryState:
    try:
        return BatteryState(int(value))
    except ValueError:
        logger.warning("Unknown UPower battery state %r", value)
        return BatteryState.UNKNOWN


def _battery_level(value: int) -> BatteryLevel:
    try:
        return BatteryLevel(int(value))
    except ValueError:
        logger.warning("Unknown UPower battery level %r", value)
        return BatteryLevel.UNKNOWN


class PowerMonitor:
    """Feed UPower's OnBattery and display-device properties to the reactor.

    Every property is watched regardless of the listeners configured at
    startup, so a reloaded config never evaluates against stale defaults.
    """

    def __init__(self, queue: EventQueue):
        self._queue = queue

    async def serve(self, bus: MessageBus) -> None:
        introspection = await bus.introspect(UPOWER_BUS_NAME, UPOWER_PATH)
        obj = bus.get_proxy_object(UPOWER_BUS_NAME, UPOWER_PATH, introspection)
        upower = obj.get_interface(UPOWER_IFACE)

        self._emit_on_battery(await upower.get_on_battery())  # type: ignore[attr-defined]
        props = obj.get_interface(DBUS_PROPS_IFACE)
        props.on_properties_changed(self._on_upower_properties)  # type: ignore[attr-defined]

        device_path = await upower.call_get_display_device()  # type: ignore[attr-defined]
        device_introspection = await bus.introspect(UPOWER_BUS_NAME, device_path)
        device_obj = bus.get_proxy_object(UPOWER_BUS_NAME, device_path, device_introspection)
        device = device_obj.get_interface(UPOWER_DEVICE_IFACE)

        self._emit_percentage(await device.get_percentage())  # type: ignore[attr-defined]
        self._emit_state(await device.get_state())  # type: ignore[attr-defined]
        self._emit_level(await device.get_battery_level())  # type: ignore[attr-defined]

        device_props = device_obj.get_interface(DBUS_PROPS_IFACE)
        device_props.on_properties_changed(self._on_device_properties)  # type: ignore[attr-defined]

        logger.info("Power listener active on %s", device_path)

        await bus.wait_for_disconnect()

    def _emit_on_battery(self, value: bool) -> None:
        self._queue.send(SourceChanged(on_battery=bool(value)))

    def _emit_percentage(self, value: float) -> None:
        self._queue.send(PercentageChanged(percentage=float(value)))

    def _emit_state(self, value: int) -> None:
        self._queue.send(BatteryStateChanged(state=_battery_state(value)))

    def _emit_level(self, value: int) -> None:
        self._queue.send(BatteryLevelChanged(level=_battery_level(value)))

    def _on_upower_properties(self, interface: str, changed: dict, invalidated: list) -> None:
        if interface != UPOWER_IFACE:
            return
        variant = changed.get("OnBattery")
        if variant is not None:
            self._emit_on_battery(variant.value)

    def _on_device_properties(self, interface: str, changed: dict, invalidated: list) -> None:
        if interface != UPOWER_DEVICE_IFACE:
            return
        if "Percentage" in changed:
            self._emit_percentage(changed["Percentage"].value)
        if "State" in changed:
            self._emit_state(changed["State"].value)
        if "BatteryLevel" in changed:
            self._emit_level(changed["BatteryLevel"].value)
