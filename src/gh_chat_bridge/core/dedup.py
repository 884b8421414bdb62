"""Time-windowed record of recently alerted events.

GitHub redelivers webhooks, and a label can be toggled several times in a
row; the store makes sure only the first sighting of a logical action
inside the retention window is reported as new.

Expiry is the primary eviction mechanism. When the store is full the least
recently recorded key is evicted, which can only turn a would-be duplicate
into a FIRST_SEEN (one extra alert), never the reverse.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from datetime import timedelta
from enum import Enum
from threading import Lock
from typing import NamedTuple

import structlog
from cachetools import TTLCache

log = structlog.get_logger()


class DedupKey(NamedTuple):
    """Stable identity of a logical action, independent of delivery id."""

    repository: str
    entity_id: int | str
    action: str


class DedupResult(Enum):
    """Outcome of ``DedupStore.check_and_record``."""

    FIRST_SEEN = "first_seen"
    DUPLICATE_WITHIN_WINDOW = "duplicate_within_window"


class DedupStore:
    """Bounded, thread-safe store of recently seen keys.

    Entries are written once and never refreshed; a duplicate sighting does
    not extend the window. At exactly ``retention`` after recording, a key
    counts as expired and the next sighting is FIRST_SEEN again.

    Example:
        store = DedupStore(retention=timedelta(hours=24), capacity=10_000)
        key = DedupKey("octo/repo", 42, "good-first-issue-alert")
        if store.check_and_record(key) is DedupResult.FIRST_SEEN:
            ...
    """

    def __init__(
        self,
        retention: timedelta = timedelta(hours=24),
        capacity: int = 10_000,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if retention <= timedelta(0):
            raise ValueError("retention must be positive")
        if capacity < 1:
            raise ValueError("capacity must be at least 1")

        self._retention = retention
        self._capacity = capacity
        self._clock = clock
        self._entries: TTLCache[DedupKey, float] = TTLCache(
            maxsize=capacity,
            ttl=retention.total_seconds(),
            timer=clock,
        )
        self._lock = Lock()

    @property
    def retention(self) -> timedelta:
        return self._retention

    @property
    def capacity(self) -> int:
        return self._capacity

    def check_and_record(self, key: DedupKey) -> DedupResult:
        """Atomically report whether ``key`` is new and record it if so.

        Two concurrent callers with the same key never both get FIRST_SEEN.
        """
        with self._lock:
            # Membership tests do not touch LRU order
            if key in self._entries:
                log.debug("dedup_duplicate", key=tuple(key))
                return DedupResult.DUPLICATE_WITHIN_WINDOW

            self._entries[key] = self._clock()
            return DedupResult.FIRST_SEEN

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._entries

    def __len__(self) -> int:
        with self._lock:
            self._entries.expire()
            return len(self._entries)
