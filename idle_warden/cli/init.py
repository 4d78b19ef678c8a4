from __future__ import annotations

import shutil
import subprocess
import sys
from pathlib import Path

from idle_warden.store import ensure_default_config_file
from idle_warden.store.service import SERVICE_NAME, exec_start_args, write_service

_SYSTEMCTL_STEPS = (["daemon-reload"], ["enable", "--now", SERVICE_NAME])


def main(*, force: bool = False, config_path: Path | None = None) -> int:
    """Write the default config and enable the daemon as a systemd user service."""

    if sys.platform != "linux":
        print("init is currently supported only on Linux (systemd user)")
        return 1

    print(f"Config: {ensure_default_config_file(config_path)}")

    systemctl = shutil.which("systemctl")
    if not systemctl:
        print("systemctl not found; cannot enable systemd user service")
        return 1

    try:
        unit_path = write_service(exec_start_args(config_path), force=force)
    except FileExistsError as e:
        print(f"Service already exists: {e}")
        print("Re-run with --force to overwrite")
        return 1

    for step in _SYSTEMCTL_STEPS:
        try:
            subprocess.run([systemctl, "--user", *step], check=True)
        except subprocess.CalledProcessError as e:
            print(f"systemctl failed: {e}")
            print(f"Unit written to: {unit_path}; finish manually with:")
            for manual in _SYSTEMCTL_STEPS:
                print("  systemctl --user " + " ".join(manual))
            return 1

    print(f"Installed and enabled: {unit_path}")
    print(f"Check status: systemctl --user status {SERVICE_NAME}")
    return 0
