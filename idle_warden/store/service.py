from __future__ import annotations

import shlex
import shutil
import sys
from pathlib import Path

from platformdirs import user_config_dir

SERVICE_NAME = "idle-warden.service"

_SESSION_TARGET = "graphical-session.target"


def systemd_user_dir() -> Path:
    return Path(user_config_dir("systemd")) / "user"


def service_path() -> Path:
    return systemd_user_dir() / SERVICE_NAME


def exec_start_args(config_path: Path | None = None) -> list[str]:
    """Command line for the unit's ExecStart.

    The installed console script is preferred; otherwise the current
    interpreter runs the CLI module (editable installs, venvs).
    """
    exe = shutil.which("idle-warden")
    args = [exe] if exe else [sys.executable, "-m", "idle_warden.cli.main"]
    if config_path is not None:
        args += ["--config", str(config_path)]
    return args + ["run"]


def render_service(exec_start: list[str]) -> str:
    sections = {
        "Unit": [
            ("Description", "idle-warden idle management daemon"),
            ("PartOf", _SESSION_TARGET),
            ("After", _SESSION_TARGET),
        ],
        "Service": [
            ("Type", "simple"),
            ("ExecStart", shlex.join(exec_start)),
            ("ExecReload", "kill -HUP $MAINPID"),
            ("Restart", "on-failure"),
            ("RestartSec", "3"),
        ],
        "Install": [("WantedBy", _SESSION_TARGET)],
    }
    blocks = []
    for name, entries in sections.items():
        lines = [f"[{name}]"] + [f"{key}={value}" for key, value in entries]
        blocks.append("\n".join(lines) + "\n")
    return "\n".join(blocks)


def write_service(exec_start: list[str], *, force: bool = False, path: Path | None = None) -> Path:
    """Write the user unit; FileExistsError unless `force`."""
    unit_path = path or service_path()
    if unit_path.exists() and not force:
        raise FileExistsError(unit_path)
    unit_path.parent.mkdir(parents=True, exist_ok=True)
    unit_path.write_text(render_service(exec_start), encoding="utf-8")
    return unit_path
