from __future__ import annotations

import asyncio
import logging
import os
import re
from dataclasses import dataclass

from ..engine.events import EventQueue, PlaybackActive

logger = logging.getLogger(__name__)

_PROPERTY_RE = re.compile(r'^\s*([\w.]+)\s*=\s*"(.*)"\s*$')


@dataclass(frozen=True)
class AudioStream:
    index: int
    corked: bool
    app_name: str | None = None
    binary: str | None = None
    pid: str | None = None
    media_name: str | None = None

    def describe(self) -> str:
        return (
            f"application '{self.app_name or 'unknown'}' "
            f"(PID: {self.pid or 'unknown'}, Binary: {self.binary or 'unknown'}, "
            f"Media: {self.media_name or 'unknown'})"
        )


def parse_sink_inputs(text: str) -> list[AudioStream]:
    """Parse `pactl list sink-inputs` output (C locale)."""

    streams: list[AudioStream] = []
    current: dict | None = None

    def _flush() -> None:
        if current is not None:
            streams.append(AudioStream(**current))

    for line in text.splitlines():
        stripped = line.strip()
        if stripped.startswith("Sink Input #"):
            _flush()
            try:
                index = int(stripped.removeprefix("Sink Input #"))
            except ValueError:
                current = None
                continue
            current = {"index": index, "corked": False}
            continue

        if current is None:
            continue

        if stripped.startswith("Corked:"):
            current["corked"] = stripped.split(":", 1)[1].strip() == "yes"
            continue

        match = _PROPERTY_RE.match(line)
        if not match:
            continue
        key, value = match.groups()
        if key == "application.name":
            current["app_name"] = value
        elif key == "application.process.binary":
            current["binary"] = value
        elif key == "application.process.id":
            current["pid"] = value
        elif key == "media.name":
            current["media_name"] = value

    _flush()
    return streams


class AudioMonitor:
    """Report whether any uncorked sink input (audio playback) exists.

    Uses `pactl subscribe` for change notifications and re-lists sink inputs
    on every sink-input event.
    """

    def __init__(self, queue: EventQueue, *, pactl: str = "pactl"):
        self._queue = queue
        self._pactl = pactl
        self._playing: dict[int, AudioStream] = {}
        self._active: bool | None = None

    def _env(self) -> dict[str, str]:
        env = dict(os.environ)
        env["LC_ALL"] = "C"
        return env

    async def _list_sink_inputs(self) -> str:
        process = await asyncio.create_subprocess_exec(
            self._pactl,
            "list",
            "sink-inputs",
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.DEVNULL,
            env=self._env(),
        )
        stdout, _ = await process.communicate()
        if process.returncode != 0:
            raise RuntimeError(f"pactl list sink-inputs exited with status {process.returncode}")
        return stdout.decode("utf-8", errors="replace")

    def update(self, streams: list[AudioStream]) -> None:
        playing = {stream.index: stream for stream in streams if not stream.corked}

        for index, stream in playing.items():
            if index not in self._playing:
                logger.info("Added audio inhibitor for %s", stream.describe())
        for index, stream in self._playing.items():
            if index not in playing:
                logger.info("Removed audio inhibitor for %s", stream.describe())

        self._playing = playing
        active = bool(playing)
        if active != self._active:
            self._active = active
            self._queue.send(PlaybackActive(active=active))

    async def refresh(self) -> None:
        self.update(parse_sink_inputs(await self._list_sink_inputs()))

    async def serve(self) -> None:
        await self.refresh()

        process = await asyncio.create_subprocess_exec(
            self._pactl,
            "subscribe",
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.DEVNULL,
            env=self._env(),
        )
        assert process.stdout is not None
        logger.info("Audio playback listener active")

        try:
            while True:
                line = await process.stdout.readline()
                if not line:
                    break
                if b"sink-input" in line:
                    await self.refresh()
        finally:
            if process.returncode is None:
                process.terminate()

        returncode = await process.wait()
        raise RuntimeError(f"pactl subscribe exited with status {returncode}")
