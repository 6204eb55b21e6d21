"""Time-evicted registry of discovered stream descriptors."""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, Hashable, Iterable, List, Optional

from ..errors import ConfigurationError
from .info import StreamInfo

logger = logging.getLogger(__name__)

Clock = Callable[[], float]


def stream_identity(info: StreamInfo) -> Hashable:
    """Key a descriptor by its uid, or by (source_id, hostname, name) when it has none."""
    uid = info.uid
    if uid:
        return ("uid", uid)
    return ("source", info.source_id, info.hostname, info.name)


@dataclass
class RegistryEntry:
    info: StreamInfo
    last_seen: float


class StreamRegistry:
    """Descriptors keyed by stream identity, each stamped with when it was last seen.

    An entry whose ``last_seen`` lies more than ``forget_after`` seconds in
    the past is dropped by :meth:`evict` and never returned by
    :meth:`snapshot`. Expiry is purely time-based; there is no capacity cap.

    The registry owns the descriptors it holds and destroys them when they
    are replaced, evicted or cleared. Callers get copies.
    """

    def __init__(self, forget_after: float, *, clock: Clock = time.monotonic) -> None:
        if not forget_after > 0:
            raise ConfigurationError(f"forget_after must be > 0, got {forget_after!r}")
        self.forget_after = float(forget_after)
        self.clock = clock
        self._entries: Dict[Hashable, RegistryEntry] = {}
        self._lock = threading.RLock()

    def observe(self, info: StreamInfo, seen_at: Optional[float] = None) -> None:
        """Record (or refresh) ``info``; the registry takes ownership of it."""
        now = self.clock() if seen_at is None else seen_at
        key = stream_identity(info)
        with self._lock:
            previous = self._entries.get(key)
            self._entries[key] = RegistryEntry(info, now)
        if previous is None:
            logger.debug("New stream %r", info.name)
        elif previous.info is not info:
            previous.info.destroy()

    def sync(self, infos: Iterable[StreamInfo], seen_at: Optional[float] = None) -> None:
        """Make the registry mirror one complete discovery report.

        Every reported descriptor is observed at ``seen_at``; entries missing
        from the report are dropped immediately.
        """
        now = self.clock() if seen_at is None else seen_at
        reported = set()
        with self._lock:
            for info in infos:
                reported.add(stream_identity(info))
                self.observe(info, now)
            gone = [key for key in self._entries if key not in reported]
            dropped = [self._entries.pop(key) for key in gone]
        for entry in dropped:
            logger.debug("Stream %r no longer advertised", entry.info.name)
            entry.info.destroy()

    def evict(self, now: Optional[float] = None) -> int:
        """Drop every entry older than ``forget_after``; return how many were dropped."""
        now = self.clock() if now is None else now
        with self._lock:
            stale = [key for key, entry in self._entries.items() if now - entry.last_seen > self.forget_after]
            dropped = [self._entries.pop(key) for key in stale]
        for entry in dropped:
            logger.debug("Forgetting stream %r (last seen %.3f s ago)", entry.info.name, now - entry.last_seen)
            entry.info.destroy()
        return len(dropped)

    def snapshot(self, now: Optional[float] = None) -> List[StreamInfo]:
        """Evict stale entries, then return copies of the live descriptors."""
        with self._lock:
            self.evict(now)
            return [entry.info.copy() for entry in self._entries.values()]

    def last_seen(self, info: StreamInfo) -> Optional[float]:
        with self._lock:
            entry = self._entries.get(stream_identity(info))
            return None if entry is None else entry.last_seen

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def clear(self) -> None:
        with self._lock:
            dropped = list(self._entries.values())
            self._entries.clear()
        for entry in dropped:
            entry.info.destroy()


__all__ = ["RegistryEntry", "StreamRegistry", "stream_identity"]
