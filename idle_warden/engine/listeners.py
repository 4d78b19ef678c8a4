import logging
from collections.abc import Iterable
from dataclasses import dataclass

from .conditions import UsbLookup, evaluate
from .power import PowerStatus
from .types import IdleNotifier, ListenerSpec

logger = logging.getLogger(__name__)


class Notification:
    """Owns one armed transport resource; `close()` always disarms it."""

    def __init__(self, notifier: IdleNotifier, timeout_ms: int):
        self._notifier = notifier
        self.timeout_ms = timeout_ms
        self.handle: int | None = notifier.arm(timeout_ms)

    @property
    def live(self) -> bool:
        return self.handle is not None

    def close(self) -> None:
        if self.handle is None:
            return
        handle = self.handle
        self.handle = None
        self._notifier.disarm(handle)

    def __enter__(self) -> "Notification":
        return self

    def __exit__(self, *exc) -> None:
        self.close()


class ListenerRuntime:
    def __init__(self, spec: ListenerSpec):
        self.spec = spec
        self.notification: Notification | None = None

    @property
    def armed(self) -> bool:
        return self.notification is not None

    @property
    def handle(self) -> int | None:
        return self.notification.handle if self.notification is not None else None

    def arm(self, notifier: IdleNotifier) -> bool:
        if self.notification is not None:
            return False
        self.notification = Notification(notifier, self.spec.timeout_millis)
        logger.info(
            "Notification created: timeout=%ss on_timeout=%r", self.spec.timeout, self.spec.on_timeout
        )
        return True

    def disarm(self) -> bool:
        notification = self.notification
        if notification is None:
            return False
        self.notification = None
        notification.close()
        logger.info(
            "Notification destroyed: timeout=%ss on_timeout=%r",
            self.spec.timeout,
            self.spec.on_timeout,
        )
        return True


@dataclass
class ReconcileResult:
    armed: int = 0
    disarmed: int = 0

    @property
    def changed(self) -> bool:
        return bool(self.armed or self.disarmed)


def reconcile(
    runtimes: Iterable[ListenerRuntime],
    *,
    power: PowerStatus,
    inhibited: bool,
    usb_present: UsbLookup,
    notifier: IdleNotifier,
) -> ReconcileResult:
    """Apply the minimal arm/disarm set so armed == eligible for every listener.

    Safe to call after any event: with unchanged inputs it touches nothing.
    """
    result = ReconcileResult()
    for runtime in runtimes:
        eligible = not inhibited and evaluate(power, usb_present, runtime.spec.conditions)
        if eligible:
            if runtime.arm(notifier):
                result.armed += 1
        elif runtime.disarm():
            result.disarmed += 1
    return result


def restart(runtimes: Iterable[ListenerRuntime], notifier: IdleNotifier) -> int:
    """Recreate every armed notification so its countdown starts from zero."""
    restarted = 0
    for runtime in runtimes:
        if runtime.disarm():
            runtime.arm(notifier)
            restarted += 1
    return restarted


def disarm_all(runtimes: Iterable[ListenerRuntime]) -> int:
    return sum(1 for runtime in runtimes if runtime.disarm())


def find_by_handle(runtimes: Iterable[ListenerRuntime], handle: int) -> ListenerRuntime | None:
    for runtime in runtimes:
        if runtime.handle == handle:
            return runtime
    return None
