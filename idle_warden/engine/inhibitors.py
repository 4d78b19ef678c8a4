import logging
from collections.abc import Iterable
from dataclasses import dataclass

from .types import InhibitSource

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Inhibitor:
    cookie: int
    app_name: str
    reason: str
    owner: str


class InhibitorRegistry:
    """Tracks every inhibition source and reduces them to one boolean.

    Application inhibitors are individual entries keyed by cookie; session
    (logind BlockInhibited) and audio playback are plain flags. Every
    mutating call returns True when `globally_inhibited` changed, so the
    caller only reconciles on edges.
    """

    def __init__(self, ignored: Iterable[InhibitSource] = ()):
        self._entries: list[Inhibitor] = []
        self._flags: dict[InhibitSource, bool] = {
            InhibitSource.SESSION: False,
            InhibitSource.AUDIO: False,
        }
        self._last_cookie = 0
        self._ignored: set[InhibitSource] = set(ignored)

    @property
    def entries(self) -> list[Inhibitor]:
        return list(self._entries)

    @property
    def last_cookie(self) -> int:
        return self._last_cookie

    def is_active(self, source: InhibitSource) -> bool:
        if source == InhibitSource.APPLICATION:
            return bool(self._entries)
        return self._flags[source]

    @property
    def globally_inhibited(self) -> bool:
        return any(
            self.is_active(source) for source in InhibitSource if source not in self._ignored
        )

    def set_ignored(self, ignored: Iterable[InhibitSource]) -> bool:
        before = self.globally_inhibited
        self._ignored = set(ignored)
        return before != self.globally_inhibited

    def inhibit(self, app_name: str, reason: str, owner: str) -> tuple[int, bool]:
        """Register an application inhibitor; returns (cookie, changed)."""
        before = self.globally_inhibited
        self._last_cookie += 1
        cookie = self._last_cookie
        self._entries.append(Inhibitor(cookie=cookie, app_name=app_name, reason=reason, owner=owner))
        logger.info(
            "Added inhibitor for application '%s' (%s), reason: %s, cookie: %d",
            app_name,
            owner,
            reason,
            cookie,
        )
        return cookie, before != self.globally_inhibited

    def uninhibit(self, cookie: int) -> bool:
        before = self.globally_inhibited
        for idx, entry in enumerate(self._entries):
            if entry.cookie == cookie:
                del self._entries[idx]
                logger.info(
                    "Removed inhibitor for application '%s' (%s), cookie: %d",
                    entry.app_name,
                    entry.owner,
                    cookie,
                )
                break
        else:
            logger.debug("UnInhibit for unknown cookie %d ignored", cookie)
        return before != self.globally_inhibited

    def owner_disconnected(self, owner: str) -> bool:
        before = self.globally_inhibited
        kept = [entry for entry in self._entries if entry.owner != owner]
        removed = len(self._entries) - len(kept)
        if removed:
            self._entries = kept
            logger.info("Dropped %d inhibitor(s) held by disconnected client %s", removed, owner)
        return before != self.globally_inhibited

    def set_flag(self, source: InhibitSource, active: bool) -> bool:
        if source == InhibitSource.APPLICATION:
            raise ValueError("application inhibition is derived from registry entries")
        before = self.globally_inhibited
        if self._flags[source] != active:
            self._flags[source] = active
            logger.info("%s inhibition %s", source.value, "active" if active else "cleared")
        return before != self.globally_inhibited
