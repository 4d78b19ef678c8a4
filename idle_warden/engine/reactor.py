import logging
import time
from collections.abc import Callable

from .conditions import UsbLookup
from .events import (
    ActivitySimulated,
    BatteryLevelChanged,
    BatteryStateChanged,
    ConfigReloaded,
    DeviceSetChanged,
    Event,
    EventQueue,
    Idled,
    InhibitionBlockChanged,
    LockRequested,
    PercentageChanged,
    PlaybackActive,
    PrepareForSleep,
    Resumed,
    SessionLocked,
    SourceChanged,
)
from .inhibitors import InhibitorRegistry
from .listeners import ListenerRuntime, ReconcileResult, disarm_all, find_by_handle, reconcile, restart
from .lock import LockMachine
from .power import PowerStatus
from .types import Config, Executor, IdleNotifier, InhibitSource, LockState

logger = logging.getLogger(__name__)

LockObserver = Callable[[bool], None]


def _no_usb(_device_id: str) -> bool:
    return False


class Reactor:
    """Single consumer and single writer of all daemon state.

    Every event is handled to completion before the next one is taken; the
    inhibitor calls made by the ScreenSaver service run on the same event
    loop thread, so no locking is needed.
    """

    def __init__(
        self,
        *,
        config: Config,
        notifier: IdleNotifier,
        executor: Executor,
        usb_present: UsbLookup = _no_usb,
        queue: EventQueue | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.config = config
        self._notifier = notifier
        self._executor = executor
        self._usb_present = usb_present
        self._queue = queue

        self.power = PowerStatus()
        self.inhibitors = InhibitorRegistry(ignored=config.general.ignored_sources())
        self.lock = LockMachine(notifier, clock=clock)
        self.listeners = [ListenerRuntime(spec) for spec in config.listeners]
        self._lock_observers: list[LockObserver] = []

        self._handlers: dict[type, Callable] = {
            BatteryStateChanged: self._on_battery_state,
            BatteryLevelChanged: self._on_battery_level,
            SourceChanged: self._on_source,
            PercentageChanged: self._on_percentage,
            SessionLocked: self._on_session_locked,
            PrepareForSleep: self._on_prepare_for_sleep,
            InhibitionBlockChanged: self._on_block_inhibited,
            PlaybackActive: self._on_playback,
            DeviceSetChanged: self._on_devices,
            Idled: self._on_idled,
            Resumed: self._on_resumed,
            LockRequested: self._on_lock_requested,
            ActivitySimulated: self._on_activity_simulated,
            ConfigReloaded: self._on_config_reloaded,
        }

    # --- event loop -------------------------------------------------------

    def start(self) -> ReconcileResult:
        """Arm every listener that is eligible with the default state."""
        return self.reconcile()

    async def run(self, queue: EventQueue) -> None:
        while True:
            event = await queue.get()
            try:
                self.handle(event)
            except Exception:
                logger.exception("Failed to handle event %r", event)

    def handle(self, event: Event) -> None:
        handler = self._handlers.get(type(event))
        if handler is None:
            logger.warning("Ignoring unknown event %r", event)
            return
        logger.debug("Handling %r", event)
        handler(event)

    def reconcile(self) -> ReconcileResult:
        return reconcile(
            self.listeners,
            power=self.power,
            inhibited=self.inhibitors.globally_inhibited,
            usb_present=self._usb_present,
            notifier=self._notifier,
        )

    def close(self) -> None:
        disarm_all(self.listeners)
        self.lock.close_probe()

    def add_lock_observer(self, observer: LockObserver) -> None:
        self._lock_observers.append(observer)

    # --- core-exposed interface (ScreenSaver compatibility) ---------------

    def inhibit(self, app_name: str, reason: str, owner: str) -> int:
        cookie, changed = self.inhibitors.inhibit(app_name, reason, owner)
        if changed:
            self.reconcile()
        return cookie

    def uninhibit(self, cookie: int) -> None:
        if self.inhibitors.uninhibit(cookie):
            self.reconcile()

    def owner_disconnected(self, owner: str) -> None:
        if self.inhibitors.owner_disconnected(owner):
            self.reconcile()

    def request_lock(self) -> None:
        self._enqueue(LockRequested())

    def simulate_activity(self) -> None:
        self._enqueue(ActivitySimulated())

    def get_active(self) -> bool:
        return self.lock.get_lock_state() == LockState.LOCKED

    def get_active_seconds(self) -> int:
        return self.lock.get_active_seconds()

    def _enqueue(self, event: Event) -> None:
        if self._queue is None:
            self.handle(event)
        else:
            self._queue.send(event)

    # --- handlers ---------------------------------------------------------

    def _run(self, command: str | None, what: str) -> None:
        if not command:
            return
        logger.info("Executing %s command: %s", what, command)
        self._executor.execute(command)

    def _on_battery_state(self, event: BatteryStateChanged) -> None:
        self.power.update_state(event.state)
        self.reconcile()

    def _on_battery_level(self, event: BatteryLevelChanged) -> None:
        self.power.update_level(event.level)
        self.reconcile()

    def _on_source(self, event: SourceChanged) -> None:
        self.power.update_source(event.on_battery)
        self.reconcile()

    def _on_percentage(self, event: PercentageChanged) -> None:
        self.power.update_percentage(event.percentage)
        self.reconcile()

    def _on_devices(self, _event: DeviceSetChanged) -> None:
        self.reconcile()

    def _on_block_inhibited(self, event: InhibitionBlockChanged) -> None:
        if self.inhibitors.set_flag(InhibitSource.SESSION, event.active):
            self.reconcile()

    def _on_playback(self, event: PlaybackActive) -> None:
        if self.inhibitors.set_flag(InhibitSource.AUDIO, event.active):
            self.reconcile()

    def _on_session_locked(self, event: SessionLocked) -> None:
        if event.locked:
            self._enter_locked()
        elif self.lock.unlock():
            self._run(self.config.general.unlock_cmd, "unlock")
            self._notify_lock_observers()

    def _on_lock_requested(self, _event: LockRequested) -> None:
        self._enter_locked()

    def _enter_locked(self) -> None:
        if not self.lock.lock():
            return
        self._run(self.config.general.lock_cmd, "lock")
        self._notify_lock_observers()

    def _on_prepare_for_sleep(self, event: PrepareForSleep) -> None:
        if event.sleeping:
            self._run(self.config.general.before_sleep_cmd, "before-sleep")
        else:
            self._run(self.config.general.after_sleep_cmd, "after-sleep")

    def _on_idled(self, event: Idled) -> None:
        if event.handle == self.lock.probe_handle:
            return
        runtime = find_by_handle(self.listeners, event.handle)
        if runtime is None:
            logger.debug("Idled for stale notification %d ignored", event.handle)
            return
        self._run(runtime.spec.on_timeout, "timeout")

    def _on_resumed(self, event: Resumed) -> None:
        if event.handle == self.lock.probe_handle:
            # The external locker already handled its own unlock action.
            if self.lock.unlock():
                logger.info("Activity while locked; assuming external unlock")
                self._notify_lock_observers()
            return
        runtime = find_by_handle(self.listeners, event.handle)
        if runtime is None:
            logger.debug("Resumed for stale notification %d ignored", event.handle)
            return
        self._run(runtime.spec.on_resume, "resume")

    def _on_activity_simulated(self, _event: ActivitySimulated) -> None:
        restarted = restart(self.listeners, self._notifier)
        logger.info("Simulated user activity; restarted %d notification(s)", restarted)

    def _on_config_reloaded(self, event: ConfigReloaded) -> None:
        disarm_all(self.listeners)
        self.config = event.config
        self.listeners = [ListenerRuntime(spec) for spec in event.config.listeners]
        self.inhibitors.set_ignored(event.config.general.ignored_sources())
        result = self.reconcile()
        logger.info(
            "Configuration reloaded: %d listener(s), %d armed", len(self.listeners), result.armed
        )

    def _notify_lock_observers(self) -> None:
        active = self.get_active()
        for observer in self._lock_observers:
            try:
                observer(active)
            except Exception:
                logger.exception("Lock observer failed")
