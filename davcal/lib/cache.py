"""
In-process uid -> event cache with a time to live.

Events seen through ``get_events`` are remembered here so later calls can
address them by uid alone.  Expired entries are dropped lazily on lookup,
and swept when an insert finds the cache at its size limit.  The size
limit is a hint: if nothing has expired, the insert still goes through.
"""
import threading
import time
from dataclasses import dataclass
from typing import Callable
from typing import Dict
from typing import Optional

from davcal.protocol.types import Event

DEFAULT_TTL = 300.0
DEFAULT_MAX_SIZE = 1000


@dataclass(frozen=True)
class CachedEvent:
    event: Event
    cached_at: float


class EventCache:
    """
    Thread safe TTL cache of events by uid.

    Args:
      ttl: seconds an entry stays valid
      max_size: number of entries above which an insert sweeps expired
        entries first
      clock: returns the current time in seconds, ``time.monotonic`` by
        default.  Tests pass a fake clock.
    """

    def __init__(
        self,
        ttl: float = DEFAULT_TTL,
        max_size: int = DEFAULT_MAX_SIZE,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.ttl = ttl
        self.max_size = max_size
        self._clock = clock
        self._entries: Dict[str, CachedEvent] = {}
        self._lock = threading.Lock()

    def _is_expired(self, entry: CachedEvent, now: float) -> bool:
        return now - entry.cached_at > self.ttl

    def get(self, uid: str) -> Optional[Event]:
        """The cached event, or None if unknown or expired"""
        now = self._clock()
        with self._lock:
            entry = self._entries.get(uid)
            if entry is None:
                return None
            if self._is_expired(entry, now):
                del self._entries[uid]
                return None
            return entry.event

    def put(self, event: Event) -> None:
        now = self._clock()
        with self._lock:
            if len(self._entries) >= self.max_size:
                self._sweep(now)
            self._entries[event.uid] = CachedEvent(event=event, cached_at=now)

    def _sweep(self, now: float) -> None:
        for uid, entry in list(self._entries.items()):
            if self._is_expired(entry, now):
                del self._entries[uid]

    def remove(self, uid: str) -> None:
        with self._lock:
            self._entries.pop(uid, None)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, uid: str) -> bool:
        return self.get(uid) is not None
