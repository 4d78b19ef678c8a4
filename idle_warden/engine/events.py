from __future__ import annotations

import asyncio
from dataclasses import dataclass
from queue import Empty, Queue

from .types import BatteryLevel, BatteryState, Config


@dataclass(frozen=True)
class BatteryStateChanged:
    state: BatteryState


@dataclass(frozen=True)
class BatteryLevelChanged:
    level: BatteryLevel


@dataclass(frozen=True)
class SourceChanged:
    on_battery: bool


@dataclass(frozen=True)
class PercentageChanged:
    percentage: float


@dataclass(frozen=True)
class SessionLocked:
    locked: bool


@dataclass(frozen=True)
class PrepareForSleep:
    sleeping: bool


@dataclass(frozen=True)
class InhibitionBlockChanged:
    active: bool


@dataclass(frozen=True)
class PlaybackActive:
    active: bool


@dataclass(frozen=True)
class DeviceSetChanged:
    pass


@dataclass(frozen=True)
class Idled:
    handle: int


@dataclass(frozen=True)
class Resumed:
    handle: int


@dataclass(frozen=True)
class LockRequested:
    pass


@dataclass(frozen=True)
class ActivitySimulated:
    pass


@dataclass(frozen=True)
class ConfigReloaded:
    config: Config


Event = (
    BatteryStateChanged
    | BatteryLevelChanged
    | SourceChanged
    | PercentageChanged
    | SessionLocked
    | PrepareForSleep
    | InhibitionBlockChanged
    | PlaybackActive
    | DeviceSetChanged
    | Idled
    | Resumed
    | LockRequested
    | ActivitySimulated
    | ConfigReloaded
)


class EventQueue:
    """Multi-producer, single-consumer queue feeding the reactor.

    `send` may be called from any thread. Until `bind` attaches an event
    loop, events are buffered and can be drained synchronously.
    """

    def __init__(self) -> None:
        self._pending: Queue[Event] = Queue()
        self._loop: asyncio.AbstractEventLoop | None = None
        self._queue: asyncio.Queue[Event] | None = None

    def bind(self, loop: asyncio.AbstractEventLoop) -> None:
        self._loop = loop
        self._queue = asyncio.Queue()
        for event in self.drain():
            self._queue.put_nowait(event)

    def send(self, event: Event) -> None:
        if self._loop is None or self._queue is None:
            self._pending.put(event)
            return
        self._loop.call_soon_threadsafe(self._queue.put_nowait, event)

    async def get(self) -> Event:
        if self._queue is None:
            raise RuntimeError("EventQueue is not bound to an event loop")
        return await self._queue.get()

    def drain(self) -> list[Event]:
        events: list[Event] = []
        while True:
            try:
                events.append(self._pending.get_nowait())
            except Empty:
                break
        return events
