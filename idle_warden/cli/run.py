from __future__ import annotations

import asyncio
import logging
import signal
from collections.abc import Awaitable, Callable
from pathlib import Path

from dbus_next import BusType
from dbus_next.aio import MessageBus

from idle_warden.engine.events import ConfigReloaded, EventQueue
from idle_warden.engine.reactor import Reactor
from idle_warden.engine.types import Config
from idle_warden.errors import ConfigError, StartupError
from idle_warden.providers.audio import AudioMonitor
from idle_warden.providers.commands import CommandRunner
from idle_warden.providers.login import SessionMonitor
from idle_warden.providers.screensaver import ScreenSaverService
from idle_warden.providers.upower import PowerMonitor
from idle_warden.providers.usb import UsbMonitor
from idle_warden.providers.wayland import WaylandIdleNotifier
from idle_warden.store import load_config

logger = logging.getLogger(__name__)


async def _supervise(name: str, coro: Awaitable[None]) -> None:
    """Run one adapter; a failure only silences that source."""
    try:
        await coro
    except asyncio.CancelledError:
        raise
    except Exception:
        logger.exception("%s listener failed; its signals will no longer update", name)
    else:
        logger.info("%s listener stopped", name)


async def _on_bus(bus_type: BusType, serve: Callable[[MessageBus], Awaitable[None]]) -> None:
    bus = await MessageBus(bus_type=bus_type).connect()
    try:
        await serve(bus)
    finally:
        bus.disconnect()


def _reload(queue: EventQueue, config_path: Path | None) -> None:
    try:
        config, _meta = load_config(config_path, create_if_missing=False)
    except ConfigError as e:
        logger.error("Reload failed, keeping current configuration: %s", e)
        return

    queue.send(ConfigReloaded(config=config))


def _adapters(queue: EventQueue, reactor: Reactor) -> list[tuple[str, Awaitable[None]]]:
    """Every source is watched whatever the current config needs.

    A reload may add battery conditions or clear an `ignore_*` flag; the
    reactor filters ignored inhibitors, so the adapters never need restarting.
    """
    return [
        ("session", _on_bus(BusType.SYSTEM, SessionMonitor(queue).serve)),
        ("screensaver", _on_bus(BusType.SESSION, ScreenSaverService(reactor).serve)),
        ("power", _on_bus(BusType.SYSTEM, PowerMonitor(queue).serve)),
        ("audio", AudioMonitor(queue).serve()),
    ]


async def _run(config: Config, config_path: Path | None) -> int:
    loop = asyncio.get_running_loop()
    queue = EventQueue()
    queue.bind(loop)

    notifier = WaylandIdleNotifier(queue)
    notifier.connect()
    notifier.attach(loop)

    usb = UsbMonitor(queue)
    try:
        usb.start(loop)
    except (ImportError, OSError) as e:
        logger.error("USB listener unavailable: %s", e)

    reactor = Reactor(
        config=config,
        notifier=notifier,
        executor=CommandRunner(),
        usb_present=usb.is_present,
        queue=queue,
    )
    reactor.start()

    adapters = _adapters(queue, reactor)
    tasks = [asyncio.create_task(reactor.run(queue), name="reactor")]
    tasks += [asyncio.create_task(_supervise(name, coro), name=name) for name, coro in adapters]

    stop = asyncio.Event()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop.set)
    loop.add_signal_handler(signal.SIGHUP, _reload, queue, config_path)

    logger.info("idle-warden running with %d listener(s)", len(config.listeners))
    try:
        await stop.wait()
    finally:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        reactor.close()
        usb.stop()
        notifier.close()
    return 0


def main(config_path: Path | None = None) -> int:
    try:
        config, meta = load_config(config_path)
    except ConfigError as e:
        logger.error("Invalid configuration: %s", e)
        return 1

    if meta.get("created"):
        logger.warning("Config created with defaults at %s", meta.get("path"))
    if not config.listeners:
        logger.warning("No listeners configured in %s", meta.get("path"))

    print("Starting idle-warden (Ctrl+C to stop)")
    print(f"Config: {meta.get('path')}")
    try:
        rc = asyncio.run(_run(config, config_path))
    except StartupError as e:
        logger.error("Cannot start: %s", e)
        return 1
    except KeyboardInterrupt:
        rc = 0
    print("Stopping...")
    return rc


if __name__ == "__main__":
    raise SystemExit(main())
