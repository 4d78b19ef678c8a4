import logging
import time
from collections.abc import Callable

from .listeners import Notification
from .types import LOCK_PROBE_TIMEOUT_MS, IdleNotifier, LockState

logger = logging.getLogger(__name__)


class LockMachine:
    """Edge-triggered Locked/Unlocked tracker.

    While Locked a zero-timeout probe notification is kept armed; its
    `Resumed` is how an unlock performed by an external locker is noticed.
    Transitions to the current state are no-ops and return False.
    """

    def __init__(self, notifier: IdleNotifier, clock: Callable[[], float] = time.monotonic):
        self._notifier = notifier
        self._clock = clock
        self.state = LockState.UNLOCKED
        self.active_since: float | None = None
        self.probe: Notification | None = None

    @property
    def locked(self) -> bool:
        return self.state == LockState.LOCKED

    @property
    def probe_handle(self) -> int | None:
        return self.probe.handle if self.probe is not None else None

    def lock(self) -> bool:
        if self.state == LockState.LOCKED:
            return False
        self.state = LockState.LOCKED
        self.active_since = self._clock()
        if self.probe is None:
            self.probe = Notification(self._notifier, LOCK_PROBE_TIMEOUT_MS)
        logger.info("Session locked")
        return True

    def unlock(self) -> bool:
        if self.state == LockState.UNLOCKED:
            return False
        self.state = LockState.UNLOCKED
        self.active_since = None
        self.close_probe()
        logger.info("Session unlocked")
        return True

    def close_probe(self) -> None:
        probe = self.probe
        self.probe = None
        if probe is not None:
            probe.close()

    def get_lock_state(self) -> LockState:
        return self.state

    def get_active_seconds(self) -> int:
        if self.state != LockState.LOCKED or self.active_since is None:
            return 0
        return max(0, int(self._clock() - self.active_since))
