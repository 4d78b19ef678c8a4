from __future__ import annotations

from pathlib import Path

from idle_warden.engine.conditions import required_sources
from idle_warden.engine.types import (
    BatteryAbove,
    BatteryBelow,
    BatteryEqual,
    BatteryLevelIs,
    BatteryStateIs,
    Condition,
    OnAc,
    OnBattery,
    UsbPlugged,
    UsbUnplugged,
)
from idle_warden.errors import ConfigError
from idle_warden.store import load_config


def describe_condition(condition: Condition) -> str:
    if isinstance(condition, OnBattery):
        return "on_battery"
    if isinstance(condition, OnAc):
        return "on_ac"
    if isinstance(condition, BatteryBelow):
        return f"battery_below={condition.percentage:g}"
    if isinstance(condition, BatteryAbove):
        return f"battery_above={condition.percentage:g}"
    if isinstance(condition, BatteryEqual):
        return f"battery_equal={condition.percentage:g}"
    if isinstance(condition, BatteryLevelIs):
        return f"battery_level={condition.level.name.lower()}"
    if isinstance(condition, BatteryStateIs):
        return f"battery_state={condition.state.name.lower()}"
    if isinstance(condition, UsbPlugged):
        return f"usb_plugged={condition.device_id}"
    if isinstance(condition, UsbUnplugged):
        return f"usb_unplugged={condition.device_id}"
    return repr(condition)


def main(config_path: Path | None = None) -> int:
    """Validate the config file and print what the daemon would do."""

    try:
        config, meta = load_config(config_path, create_if_missing=False)
    except ConfigError as e:
        print(f"config error: {e}")
        return 1

    print("idle-warden check")
    print(f"config: {meta.get('path')}")
    if not meta.get("loaded"):
        print("config file missing; defaults in effect")

    general = config.general
    print(f"lock_cmd: {general.lock_cmd}")
    print(f"unlock_cmd: {general.unlock_cmd}")
    print(f"before_sleep_cmd: {general.before_sleep_cmd}")
    print(f"after_sleep_cmd: {general.after_sleep_cmd}")
    print(
        "ignore inhibitors: "
        f"dbus={general.ignore_dbus_inhibit} "
        f"systemd={general.ignore_systemd_inhibit} "
        f"audio={general.ignore_audio_inhibit}"
    )

    print(f"listeners: {len(config.listeners)}")
    for index, spec in enumerate(config.listeners):
        conditions = ", ".join(describe_condition(c) for c in spec.conditions) or "always"
        print(f"  [{index}] timeout={spec.timeout}s conditions={conditions}")
        print(f"      on_timeout={spec.on_timeout!r} on_resume={spec.on_resume!r}")

    required = required_sources(config.listeners)
    print(
        "sources: "
        f"on_battery={required.on_battery} "
        f"percentage={required.percentage} "
        f"level={required.level} "
        f"state={required.state} "
        f"usb={required.usb}"
    )
    return 0
