"""A thread-safe least-recently-used cache bounded by total size in bytes."""

from __future__ import annotations

import logging
import threading
from collections import OrderedDict

DEFAULT_CAPACITY = 200 * (1 << 20)
DEFAULT_MAX_ELEMENT_SIZE = 10 * (1 << 20)

# Fixed bookkeeping cost charged for every entry on top of key and data.
ENTRY_OVERHEAD = 88

log = logging.getLogger(__name__)


def _entry_size(key: str, data: bytes) -> int:
    return len(key) + len(data) + ENTRY_OVERHEAD


class LRUCache:
    """Maps cache keys to response bytes, evicting the least recently used."""

    def __init__(
        self,
        capacity: int = DEFAULT_CAPACITY,
        max_element_size: int = DEFAULT_MAX_ELEMENT_SIZE,
    ) -> None:
        self._capacity = capacity
        self._max_element_size = max_element_size
        self._size = 0
        self._entries: OrderedDict[str, tuple[bytes, int]] = OrderedDict()
        self._lock = threading.Lock()

    def get(self, key: str) -> bytes | None:
        """Return the data stored under key and mark it most recently used."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            self._entries.move_to_end(key)
            log.info("Cache HIT for key: %s", key)
            return entry[0]

    def put(self, key: str, data: bytes) -> bool:
        """Store data under key; return False if the entry is too large."""
        size = _entry_size(key, data)
        with self._lock:
            if size > self._max_element_size:
                log.info("Element too large for cache")
                return False

            existing = self._entries.get(key)
            if existing is not None:
                self._size -= existing[1]
                self._entries[key] = (data, size)
                self._size += size
                self._entries.move_to_end(key)
                log.info("Cache UPDATED for key: %s", key)
                return True

            while self._entries and self._size + size > self._capacity:
                evicted_key, (_, evicted_size) = self._entries.popitem(last=False)
                self._size -= evicted_size
                log.info("Cache EVICTED key: %s", evicted_key)

            self._entries[key] = (data, size)
            self._size += size
            log.info("Cache ADDED key: %s", key)
            log.info(
                "Cache size: %d elements, %d MB",
                len(self._entries),
                self._size // (1024 * 1024),
            )
            return True

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def current_size(self) -> int:
        """Total accounted size of all entries in bytes."""
        with self._lock:
            return self._size