"""
ConfigCache — Bounded, insertion-ordered, time-windowed record cache.

Eviction is FIFO by insertion: when a new key arrives at capacity the
oldest-inserted entry is dropped, regardless of how recently it was read.
Entries never expire on their own; freshness is decided at read time
against the TTL passed by the caller, so a stale entry stays in place
until it is overwritten, invalidated or evicted.
"""
import time
import logging
import threading
from typing import Callable, Optional
from dataclasses import dataclass
from collections import OrderedDict

from .conf import DEFAULT_CACHE_CAPACITY, DEFAULT_CACHE_DURATION
from .records import ConfigRecord

logger = logging.getLogger("navigator.config")


@dataclass(frozen=True)
class CacheEntry:
    record: ConfigRecord
    inserted_at: float


class ConfigCache:
    """FIFO cache of decrypted config records.

    Overwriting a key that is already cached counts as a fresh insertion:
    the entry gets a new timestamp and moves to the newest position, so it
    is evicted last. Reads never move entries.

    Args:
        capacity: Maximum number of distinct keys held.
        default_ttl: Freshness window (seconds) used when ``get`` is
            called without an explicit ttl.
        clock: Monotonic time source, in seconds.
    """

    def __init__(
        self,
        capacity: int = DEFAULT_CACHE_CAPACITY,
        default_ttl: float = DEFAULT_CACHE_DURATION,
        clock: Callable[[], float] = time.monotonic,
    ):
        if capacity < 1:
            raise ValueError(f"Cache capacity must be >= 1, got {capacity}")
        self._capacity = capacity
        self._default_ttl = default_ttl
        self._clock = clock
        self._entries: OrderedDict[str, CacheEntry] = OrderedDict()
        self._lock = threading.Lock()

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def default_ttl(self) -> float:
        return self._default_ttl

    def get(self, key: str, ttl: Optional[float] = None) -> Optional[CacheEntry]:
        """Return the entry for key if present and still fresh.

        Reads never change an entry's eviction position.

        Args:
            key: Config key.
            ttl: Freshness window in seconds for this read.

        Returns:
            The CacheEntry, or None if absent or stale.
        """
        if ttl is None:
            ttl = self._default_ttl
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if self._clock() - entry.inserted_at >= ttl:
                return None
            return entry

    def put(self, key: str, record: ConfigRecord) -> CacheEntry:
        """Insert or overwrite the entry for key, timestamped now.

        An overwrite counts as a fresh insertion and moves the key to the
        newest position. Inserting a new key at capacity evicts the
        oldest-inserted entry first.
        """
        with self._lock:
            entry = CacheEntry(record=record, inserted_at=self._clock())
            if key in self._entries:
                self._entries.move_to_end(key)
            elif len(self._entries) >= self._capacity:
                evicted, _ = self._entries.popitem(last=False)
                logger.debug("Config cache evicted key=%s", evicted)
            self._entries[key] = entry
            return entry

    def invalidate(self, key: Optional[str] = None) -> None:
        """Drop one entry, or every entry when key is None."""
        with self._lock:
            if key is None:
                self._entries.clear()
            else:
                self._entries.pop(key, None)

    def keys(self) -> list[str]:
        """Cached keys, oldest-inserted first (stale entries included)."""
        with self._lock:
            return list(self._entries.keys())

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._entries

    def __repr__(self) -> str:
        return (
            f"<ConfigCache size={len(self._entries)} capacity={self._capacity} "
            f"ttl={self._default_ttl}>"
        )
