from __future__ import annotations

import tomllib
from pathlib import Path
from typing import Any

from platformdirs import user_config_dir

from idle_warden.engine.conditions import parse_condition
from idle_warden.engine.types import Config, GeneralConfig, ListenerSpec
from idle_warden.errors import ConfigError

APP_NAME = "idle-warden"

_COMMAND_KEYS = ("lock_cmd", "unlock_cmd", "before_sleep_cmd", "after_sleep_cmd")
_IGNORE_KEYS = ("ignore_dbus_inhibit", "ignore_systemd_inhibit", "ignore_audio_inhibit")
_LISTENER_KEYS = {"timeout", "conditions", "on_timeout", "on_resume"}
# Notification timeouts are uint32 milliseconds on the wire.
_MAX_TIMEOUT_SECONDS = (2**32 - 1) // 1000


def get_config_path() -> Path:
    return Path(user_config_dir(APP_NAME)) / "config.toml"


def default_config_toml() -> str:
    # Keep it minimal and editable.
    return (
        "# idle-warden configuration\n"
        "# Location: ~/.config/idle-warden/config.toml (or XDG_CONFIG_HOME)\n"
        "\n"
        "[general]\n"
        '# lock_cmd = "pidof hyprlock || hyprlock"\n'
        '# unlock_cmd = "notify-send unlocked"\n'
        '# before_sleep_cmd = "loginctl lock-session"\n'
        '# after_sleep_cmd = "notify-send awake"\n'
        "ignore_dbus_inhibit = false\n"
        "ignore_systemd_inhibit = false\n"
        "ignore_audio_inhibit = false\n"
        "\n"
        "# One [[listeners]] table per idle timer. All conditions must hold.\n"
        "# Conditions: \"on_battery\", \"on_ac\", { battery_below = 20 },\n"
        "# { battery_above = 50 }, { battery_equal = 100 }, { battery_level = \"low\" },\n"
        "# { battery_state = \"discharging\" }, { usb_plugged = \"046d:c52b\" },\n"
        "# { usb_unplugged = \"046d:c52b\" }\n"
        "#\n"
        "# [[listeners]]\n"
        "# timeout = 300\n"
        '# conditions = ["on_battery"]\n'
        '# on_timeout = "loginctl lock-session"\n'
        "# on_resume = \"notify-send 'Welcome back!'\"\n"
    )


def ensure_default_config_file(path: Path | None = None) -> Path:
    config_path = path or get_config_path()
    config_path.parent.mkdir(parents=True, exist_ok=True)
    if not config_path.exists():
        config_path.write_text(default_config_toml(), encoding="utf-8")
    return config_path


def _optional_str(section: str, raw: dict, key: str) -> str | None:
    value = raw.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise ConfigError(f"{section}.{key}: expected a string, got {value!r}")
    return value or None


def _parse_general(raw: Any) -> GeneralConfig:
    if raw is None:
        return GeneralConfig()
    if not isinstance(raw, dict):
        raise ConfigError("[general] must be a table")

    unknown = set(raw) - set(_COMMAND_KEYS) - set(_IGNORE_KEYS)
    if unknown:
        raise ConfigError(f"[general]: unknown keys: {', '.join(sorted(unknown))}")

    general = GeneralConfig()
    for key in _COMMAND_KEYS:
        setattr(general, key, _optional_str("general", raw, key))
    for key in _IGNORE_KEYS:
        value = raw.get(key, False)
        if not isinstance(value, bool):
            raise ConfigError(f"general.{key}: expected true/false, got {value!r}")
        setattr(general, key, value)
    return general


def _parse_listener(index: int, raw: Any) -> ListenerSpec:
    section = f"listeners[{index}]"
    if not isinstance(raw, dict):
        raise ConfigError(f"{section} must be a table")

    unknown = set(raw) - _LISTENER_KEYS
    if unknown:
        raise ConfigError(f"{section}: unknown keys: {', '.join(sorted(unknown))}")

    timeout = raw.get("timeout")
    if isinstance(timeout, bool) or not isinstance(timeout, int):
        raise ConfigError(f"{section}.timeout: expected whole seconds, got {timeout!r}")
    if timeout < 0:
        raise ConfigError(f"{section}.timeout must be >= 0")
    if timeout > _MAX_TIMEOUT_SECONDS:
        raise ConfigError(f"{section}.timeout must be <= {_MAX_TIMEOUT_SECONDS}")

    raw_conditions = raw.get("conditions", [])
    if isinstance(raw_conditions, str | dict):
        raw_conditions = [raw_conditions]
    if not isinstance(raw_conditions, list):
        raise ConfigError(f"{section}.conditions: expected a list, got {raw_conditions!r}")

    try:
        conditions = tuple(parse_condition(item) for item in raw_conditions)
    except ConfigError as e:
        raise ConfigError(f"{section}.conditions: {e}") from e

    return ListenerSpec(
        timeout=timeout,
        conditions=conditions,
        on_timeout=_optional_str(section, raw, "on_timeout"),
        on_resume=_optional_str(section, raw, "on_resume"),
    )


def parse_config(raw: dict) -> Config:
    unknown = set(raw) - {"general", "listeners"}
    if unknown:
        raise ConfigError(f"unknown top-level keys: {', '.join(sorted(unknown))}")

    listeners_raw = raw.get("listeners", [])
    if not isinstance(listeners_raw, list):
        raise ConfigError("listeners must be an array of tables ([[listeners]])")

    return Config(
        general=_parse_general(raw.get("general")),
        listeners=[_parse_listener(i, item) for i, item in enumerate(listeners_raw)],
    )


def load_config(path: Path | None = None, *, create_if_missing: bool = True) -> tuple[Config, dict]:
    """Load config.toml, returning (Config, meta).

    Raises ConfigError when the file exists but cannot be read or parsed.
    Meta contains useful diagnostics for `check` output.
    """

    config_path = path or get_config_path()
    meta: dict = {"path": str(config_path), "loaded": False, "created": False}

    if create_if_missing:
        before = config_path.exists()
        ensure_default_config_file(config_path)
        meta["created"] = not before

    if not config_path.exists():
        return Config(), meta

    try:
        raw = tomllib.loads(config_path.read_text(encoding="utf-8"))
    except OSError as e:
        raise ConfigError(f"{config_path}: cannot read: {e}") from e
    except tomllib.TOMLDecodeError as e:
        raise ConfigError(f"{config_path}: invalid TOML: {e}") from e

    try:
        cfg = parse_config(raw)
    except ConfigError as e:
        raise ConfigError(f"{config_path}: {e}") from e

    meta["loaded"] = True
    return cfg, meta
