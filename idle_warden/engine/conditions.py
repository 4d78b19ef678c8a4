import re
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from typing import Any

from ..errors import ConfigError
from .power import PowerStatus
from .types import (
    BatteryAbove,
    BatteryBelow,
    BatteryEqual,
    BatteryLevel,
    BatteryLevelIs,
    BatteryState,
    BatteryStateIs,
    Condition,
    ListenerSpec,
    OnAc,
    OnBattery,
    PowerSource,
    UsbPlugged,
    UsbUnplugged,
)

UsbLookup = Callable[[str], bool]

_USB_ID_RE = re.compile(r"^[0-9a-fA-F]{4}:[0-9a-fA-F]{4}$")


def evaluate(power: PowerStatus, usb_present: UsbLookup, conditions: Iterable[Condition]) -> bool:
    """Return True when every condition holds for the current snapshot.

    Rules:
        - An empty condition list always holds.
        - Battery thresholds use plain float comparison, so a NaN percentage
          satisfies none of below/above/equal.
        - BatteryEqual is exact equality, no epsilon.
        - USB conditions ask `usb_present` lazily; nothing is cached here.
    """
    return all(_holds(power, usb_present, condition) for condition in conditions)


def _holds(power: PowerStatus, usb_present: UsbLookup, condition: Condition) -> bool:
    if isinstance(condition, OnBattery):
        return power.source == PowerSource.BATTERY
    if isinstance(condition, OnAc):
        return power.source == PowerSource.PLUGGED
    if isinstance(condition, BatteryBelow):
        return power.percentage < condition.percentage
    if isinstance(condition, BatteryAbove):
        return power.percentage > condition.percentage
    if isinstance(condition, BatteryEqual):
        return power.percentage == condition.percentage
    if isinstance(condition, BatteryLevelIs):
        return power.level == condition.level
    if isinstance(condition, BatteryStateIs):
        return power.state == condition.state
    if isinstance(condition, UsbPlugged):
        return usb_present(condition.device_id)
    if isinstance(condition, UsbUnplugged):
        return not usb_present(condition.device_id)
    raise TypeError(f"Unknown condition: {condition!r}")


def normalize_usb_id(raw: str) -> str | None:
    """Return a lowercase `vvvv:pppp` id, or None if `raw` is not one."""
    value = raw.strip()
    if not _USB_ID_RE.match(value):
        return None
    return value.lower()


# Config integers are positions in these tables, not UPower wire values.
_CONFIG_LEVELS = (
    BatteryLevel.UNKNOWN,
    BatteryLevel.NONE,
    BatteryLevel.LOW,
    BatteryLevel.CRITICAL,
    BatteryLevel.NORMAL,
    BatteryLevel.HIGH,
    BatteryLevel.FULL,
)
_CONFIG_STATES = tuple(BatteryState)


def _parse_enum(
    enum_cls: type[BatteryLevel] | type[BatteryState],
    by_index: tuple,
    key: str,
    value: Any,
):
    if isinstance(value, bool):
        raise ConfigError(f"{key}: expected a name or integer, got {value!r}")
    if isinstance(value, int):
        if 0 <= value < len(by_index):
            return by_index[value]
        raise ConfigError(f"{key}: invalid value {value} (expected 0-{len(by_index) - 1})")
    if isinstance(value, str):
        name = value.strip().upper()
        if name in enum_cls.__members__:
            return enum_cls[name]
        allowed = ", ".join(m.lower() for m in enum_cls.__members__)
        raise ConfigError(f"{key}: invalid value {value!r} (expected one of: {allowed})")
    raise ConfigError(f"{key}: expected a name or integer, got {value!r}")


def _parse_percentage(key: str, value: Any) -> float:
    if isinstance(value, bool) or not isinstance(value, int | float):
        raise ConfigError(f"{key}: expected a number, got {value!r}")
    return float(value)


def _parse_usb(key: str, value: Any) -> str:
    if not isinstance(value, str):
        raise ConfigError(f"{key}: expected a 'vendor:product' string, got {value!r}")
    device_id = normalize_usb_id(value)
    if device_id is None:
        raise ConfigError(f"{key}: invalid USB id {value!r} (expected e.g. '046d:c52b')")
    return device_id


def parse_condition(raw: Any) -> Condition:
    """Parse one config entry.

    Accepted forms: "on_battery", "on_ac", or a single-key table such as
    {battery_below = 20}, {battery_level = "low"}, {usb_plugged = "046d:c52b"}.
    """
    if isinstance(raw, str):
        name = raw.strip().lower()
        if name == "on_battery":
            return OnBattery()
        if name == "on_ac":
            return OnAc()
        raise ConfigError(f"Unknown condition: {raw!r}")

    if not isinstance(raw, dict) or len(raw) != 1:
        raise ConfigError(f"Condition must be a name or a single-key table, got {raw!r}")

    ((key, value),) = raw.items()
    if key == "battery_below":
        return BatteryBelow(_parse_percentage(key, value))
    if key == "battery_above":
        return BatteryAbove(_parse_percentage(key, value))
    if key == "battery_equal":
        return BatteryEqual(_parse_percentage(key, value))
    if key == "battery_level":
        return BatteryLevelIs(_parse_enum(BatteryLevel, _CONFIG_LEVELS, key, value))
    if key == "battery_state":
        return BatteryStateIs(_parse_enum(BatteryState, _CONFIG_STATES, key, value))
    if key == "usb_plugged":
        return UsbPlugged(_parse_usb(key, value))
    if key == "usb_unplugged":
        return UsbUnplugged(_parse_usb(key, value))
    raise ConfigError(f"Unknown condition: {key!r}")


@dataclass(frozen=True)
class RequiredSources:
    on_battery: bool = False
    percentage: bool = False
    level: bool = False
    state: bool = False
    usb: bool = False

    @property
    def power(self) -> bool:
        return self.on_battery or self.percentage or self.level or self.state


def required_sources(listeners: Iterable[ListenerSpec]) -> RequiredSources:
    """Which adapters some listener actually depends on."""
    conditions = [c for spec in listeners for c in spec.conditions]
    return RequiredSources(
        on_battery=any(isinstance(c, OnBattery | OnAc) for c in conditions),
        percentage=any(isinstance(c, BatteryBelow | BatteryAbove | BatteryEqual) for c in conditions),
        level=any(isinstance(c, BatteryLevelIs) for c in conditions),
        state=any(isinstance(c, BatteryStateIs) for c in conditions),
        usb=any(isinstance(c, UsbPlugged | UsbUnplugged) for c in conditions),
    )
