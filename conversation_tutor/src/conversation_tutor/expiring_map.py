"""
Bounded In-Memory Map

Key/value storage with a time-to-live per entry and a capacity limit.
Used for per-learner state that must not grow without bound over the
lifetime of the process.
"""

from collections import OrderedDict
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Dict, Generic, Optional, TypeVar

V = TypeVar("V")


@dataclass
class _Entry(Generic[V]):
    value: V
    created_at: datetime
    last_access: datetime
    hit_count: int = 0


class ExpiringMap(Generic[V]):
    """
    LRU map whose entries expire after a period of inactivity.

    Expired entries are removed lazily on writes and on lookups of the
    same key. When the map is full, the least recently used entry is evicted.
Pinned entries are skipped by both, so the map may briefly exceed max_size.
    """

    def __init__(
        self,
        ttl_seconds: int = 7200,
        max_size: int = 1000,
        clock: Callable[[], datetime] = datetime.now,
        on_evict: Optional[Callable[[str, V], None]] = None,
        is_pinned: Optional[Callable[[str], bool]] = None,
    ):
        """
        Args:
            ttl_seconds: Idle time after which an entry expires
            max_size: Maximum number of live entries
            clock: Time source (injectable for tests)
            on_evict: Called with (key, value) whenever an entry is dropped
            is_pinned: Entries for which this returns True are never evicted
        """
        if max_size < 1:
            raise ValueError("max_size must be at least 1")
        self.ttl = timedelta(seconds=ttl_seconds)
        self.max_size = max_size
        self._clock = clock
        self._on_evict = on_evict
        self._is_pinned = is_pinned
        self._entries: "OrderedDict[str, _Entry[V]]" = OrderedDict()
        self.evictions = 0

    def _expired(self, entry: _Entry[V], now: datetime) -> bool:
        return now - entry.last_access > self.ttl

    def _drop(self, key: str) -> None:
        entry = self._entries.pop(key)
        self.evictions += 1
        if self._on_evict:
            self._on_evict(key, entry.value)

    def _cleanup_expired(self) -> None:
        now = self._clock()
        expired_keys = [
            k for k, e in self._entries.items() if self._expired(e, now) and not self._pinned(k)
        ]
        for key in expired_keys:
            self._drop(key)

    def _pinned(self, key: str) -> bool:
        return bool(self._is_pinned and self._is_pinned(key))

    def _evict_oldest(self) -> None:
        while len(self._entries) >= self.max_size:
            victim = next((k for k in self._entries if not self._pinned(k)), None)
            if victim is None:
                # Everything is pinned; go over capacity until a pin is released
                break
            self._drop(victim)

    def get(self, key: str) -> Optional[V]:
        """Return a live value and mark it as recently used; None if missing or expired."""
        entry = self._entries.get(key)
        if entry is None:
            return None
        now = self._clock()
        if self._expired(entry, now):
            return None
        entry.last_access = now
        entry.hit_count += 1
        self._entries.move_to_end(key)
        return entry.value

    def peek(self, key: str) -> Optional[V]:
        """Return the stored value even if it has expired, without refreshing it."""
        entry = self._entries.get(key)
        return entry.value if entry else None

    def set(self, key: str, value: V) -> None:
        self._cleanup_expired()
        now = self._clock()
        existing = self._entries.get(key)
        if existing is not None:
            existing.value = value
            existing.last_access = now
            self._entries.move_to_end(key)
            return
        self._evict_oldest()
        self._entries[key] = _Entry(value=value, created_at=now, last_access=now)

    def pop(self, key: str) -> Optional[V]:
        entry = self._entries.pop(key, None)
        return entry.value if entry else None

    def __contains__(self, key: object) -> bool:
        entry = self._entries.get(key)  # type: ignore[arg-type]
        return entry is not None and not self._expired(entry, self._clock())

    def __len__(self) -> int:
        now = self._clock()
        return sum(1 for e in self._entries.values() if not self._expired(e, now))

    def get_stats(self) -> Dict:
        """Get map statistics."""
        total_hits = sum(entry.hit_count for entry in self._entries.values())
        return {
            "size": len(self),
            "stored": len(self._entries),
            "max_size": self.max_size,
            "ttl_seconds": int(self.ttl.total_seconds()),
            "total_hits": total_hits,
            "evictions": self.evictions,
        }
