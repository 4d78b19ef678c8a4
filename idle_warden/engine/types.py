from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import Final, Protocol


class PowerSource(Enum):
    BATTERY = "battery"
    PLUGGED = "plugged"


class BatteryState(IntEnum):
    # Values are the UPower wire representation.
    UNKNOWN = 0
    CHARGING = 1
    DISCHARGING = 2
    EMPTY = 3
    FULLY_CHARGED = 4
    PENDING_CHARGE = 5
    PENDING_DISCHARGE = 6


class BatteryLevel(IntEnum):
    UNKNOWN = 0
    NONE = 1
    LOW = 3
    CRITICAL = 4
    NORMAL = 6
    HIGH = 7
    FULL = 8


class LockState(Enum):
    UNLOCKED = "unlocked"
    LOCKED = "locked"


class InhibitSource(Enum):
    APPLICATION = "application"
    SESSION = "session"
    AUDIO = "audio"


LOCK_PROBE_TIMEOUT_MS: Final[int] = 0


@dataclass(frozen=True)
class OnBattery:
    pass


@dataclass(frozen=True)
class OnAc:
    pass


@dataclass(frozen=True)
class BatteryBelow:
    percentage: float


@dataclass(frozen=True)
class BatteryAbove:
    percentage: float


@dataclass(frozen=True)
class BatteryEqual:
    percentage: float


@dataclass(frozen=True)
class BatteryLevelIs:
    level: BatteryLevel


@dataclass(frozen=True)
class BatteryStateIs:
    state: BatteryState


@dataclass(frozen=True)
class UsbPlugged:
    device_id: str


@dataclass(frozen=True)
class UsbUnplugged:
    device_id: str


Condition = (
    OnBattery
    | OnAc
    | BatteryBelow
    | BatteryAbove
    | BatteryEqual
    | BatteryLevelIs
    | BatteryStateIs
    | UsbPlugged
    | UsbUnplugged
)


@dataclass(frozen=True)
class ListenerSpec:
    timeout: int
    conditions: tuple[Condition, ...] = ()
    on_timeout: str | None = None
    on_resume: str | None = None

    @property
    def timeout_millis(self) -> int:
        return self.timeout * 1000


@dataclass
class GeneralConfig:
    lock_cmd: str | None = None
    unlock_cmd: str | None = None
    before_sleep_cmd: str | None = None
    after_sleep_cmd: str | None = None
    ignore_dbus_inhibit: bool = False
    ignore_systemd_inhibit: bool = False
    ignore_audio_inhibit: bool = False

    def ignored_sources(self) -> set[InhibitSource]:
        ignored: set[InhibitSource] = set()
        if self.ignore_dbus_inhibit:
            ignored.add(InhibitSource.APPLICATION)
        if self.ignore_systemd_inhibit:
            ignored.add(InhibitSource.SESSION)
        if self.ignore_audio_inhibit:
            ignored.add(InhibitSource.AUDIO)
        return ignored


@dataclass
class Config:
    general: GeneralConfig = field(default_factory=GeneralConfig)
    listeners: list[ListenerSpec] = field(default_factory=list)


class IdleNotifier(Protocol):
    """Transport that owns idle-notification resources.

    `arm` returns an opaque handle; the transport later delivers
    `Idled(handle)` / `Resumed(handle)` events for it until `disarm`.
    """

    def arm(self, timeout_ms: int) -> int: ...

    def disarm(self, handle: int) -> None: ...


class Executor(Protocol):
    def execute(self, command: str) -> None: ...
