import pytest

from idle_warden.engine.reactor import Reactor
from idle_warden.engine.types import Config, GeneralConfig, ListenerSpec


class FakeNotifier:
    """Records arm/disarm calls; handles are 1, 2, 3, ... like the real transport."""

    def __init__(self):
        self.armed: dict[int, int] = {}
        self.arm_calls: list[int] = []
        self.disarm_calls: list[int] = []
        self._next = 0

    def arm(self, timeout_ms: int) -> int:
        self._next += 1
        self.armed[self._next] = timeout_ms
        self.arm_calls.append(timeout_ms)
        return self._next

    def disarm(self, handle: int) -> None:
        self.disarm_calls.append(handle)
        del self.armed[handle]


class FakeExecutor:
    def __init__(self):
        self.commands: list[str] = []

    def execute(self, command: str) -> None:
        self.commands.append(command)


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def notifier():
    return FakeNotifier()


@pytest.fixture
def executor():
    return FakeExecutor()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def make_reactor(notifier, executor, clock):
    def _make(*listeners: ListenerSpec, general: GeneralConfig | None = None, usb_ids=()):
        present = {device_id.lower() for device_id in usb_ids}
        reactor = Reactor(
            config=Config(general=general or GeneralConfig(), listeners=list(listeners)),
            notifier=notifier,
            executor=executor,
            usb_present=lambda device_id: device_id in present,
            clock=clock,
        )
        reactor.start()
        return reactor

    return _make
