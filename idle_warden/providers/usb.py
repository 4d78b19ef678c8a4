from __future__ import annotations

import asyncio
import logging

import pyudev

from ..engine.conditions import normalize_usb_id
from ..engine.events import DeviceSetChanged, EventQueue

logger = logging.getLogger(__name__)


def _device_id(device) -> str | None:
    vendor = device.properties.get("ID_VENDOR_ID")
    product = device.properties.get("ID_MODEL_ID")
    if not vendor or not product:
        return None
    return normalize_usb_id(f"{vendor}:{product}")


class UsbMonitor:
    """USB presence lookup plus hot-plug notifications.

    `is_present` re-enumerates on every call instead of caching the device
    set; hot-plug only tells the reactor that something changed.
    """

    def __init__(self, queue: EventQueue, context: pyudev.Context | None = None):
        self._queue = queue
        self._context = context
        self._monitor: pyudev.Monitor | None = None
        self._loop: asyncio.AbstractEventLoop | None = None

    def _get_context(self) -> pyudev.Context:
        if self._context is None:
            self._context = pyudev.Context()
        return self._context

    def device_ids(self) -> set[str]:
        try:
            devices = self._get_context().list_devices(subsystem="usb", DEVTYPE="usb_device")
            ids = {device_id for device_id in map(_device_id, devices) if device_id}
        except (ImportError, OSError) as exc:
            logger.error("USB enumeration failed: %s", exc)
            return set()
        return ids

    def is_present(self, device_id: str) -> bool:
        return device_id.lower() in self.device_ids()

    def start(self, loop: asyncio.AbstractEventLoop) -> None:
        monitor = pyudev.Monitor.from_netlink(self._get_context())
        monitor.filter_by(subsystem="usb", device_type="usb_device")
        monitor.start()
        loop.add_reader(monitor.fileno(), self._on_readable)
        self._monitor = monitor
        self._loop = loop
        logger.info("USB hot-plug listener active")

    def _on_readable(self) -> None:
        if self._monitor is None:
            return
        changed = False
        while True:
            device = self._monitor.poll(timeout=0)
            if device is None:
                break
            logger.debug("USB %s: %s", device.action, _device_id(device) or device.sys_path)
            changed = True
        if changed:
            self._queue.send(DeviceSetChanged())

    def stop(self) -> None:
        if self._monitor is not None and self._loop is not None:
            self._loop.remove_reader(self._monitor.fileno())
        self._monitor = None
        self._loop = None
