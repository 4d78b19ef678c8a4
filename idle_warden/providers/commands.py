import logging
import subprocess
from threading import Thread

logger = logging.getLogger(__name__)


class CommandRunner:
    """Fire-and-forget shell command launcher.

    The process is spawned immediately; a daemon thread waits for it so a
    slow command never stalls event handling. Failures are only logged.
    """

    def __init__(self, shell: str = "/bin/sh"):
        self._shell = shell

    def execute(self, command: str) -> None:
        try:
            process = subprocess.Popen(
                [self._shell, "-c", command],
                stdin=subprocess.DEVNULL,
            )
        except OSError as exc:
            logger.error("Failed to execute command '%s': %s", command, exc)
            return

        Thread(
            target=self._wait,
            args=(command, process),
            name="idle-warden-command",
            daemon=True,
        ).start()

    def _wait(self, command: str, process: subprocess.Popen) -> None:
        try:
            returncode = process.wait()
        except OSError as exc:
            logger.error("Failed to wait on command '%s': %s", command, exc)
            return
        if returncode != 0:
            logger.error("Command '%s' failed with exit status %d", command, returncode)
