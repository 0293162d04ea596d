"""Bounded, time-expiring cache keyed by resource and caller identity."""
from __future__ import annotations

import threading
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Callable, Iterator, Optional

from .identity import CallerIdentity

MAX_CACHE_SIZE = 100
MAX_CACHE_AGE_MS = 60_000

Clock = Callable[[], int]
"""Callable returning the current time in milliseconds."""


def _now_ms() -> int:
    return time.monotonic_ns() // 1_000_000


def build_cache_key(resource: tuple[object, ...], identity: CallerIdentity) -> str:
    """Return a cache key for *resource* requested by *identity*.

    Every component is length-prefixed so that distinct inputs can never
    collapse to the same key, e.g. ``("ab", "c")`` and ``("a", "bc")``.
    """

    parts = [str(part) for part in resource]
    parts.append(identity.arn)
    for key, value in identity.tags.items():
        parts.append(key)
        parts.append(value)
    return "|".join(f"{len(part)}:{part}" for part in parts)


@dataclass(frozen=True)
class CacheEntry:
    """A cached credential and the time it was created."""

    key: str
    value: str
    created_at: int

    def age(self, now: int) -> int:
        return now - self.created_at


class IdentityScopedCache:
    """Insertion-ordered cache bounded by size and entry age.

    Expired entries are only removed when a new entry is inserted. When an
    insertion finds nothing expired and the cache is full, the entry inserted
    first is dropped; reads never change an entry's position.

    All access goes through a single lock, so a check, the optional load and
    the eviction scan followed by the insert happen as one unit. The lock is
    held while a loader runs, so a slow fetch also delays fresh hits for every
    other key in the same cache.
    """

    def __init__(
        self,
        *,
        max_size: int = MAX_CACHE_SIZE,
        max_age_ms: int = MAX_CACHE_AGE_MS,
        clock: Clock = _now_ms,
    ) -> None:
        if max_size < 1:
            raise ValueError("Cache size must be at least 1")
        self.max_size = max_size
        self.max_age_ms = max_age_ms
        self._clock = clock
        self._entries: "OrderedDict[str, CacheEntry]" = OrderedDict()
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._entries

    def keys(self) -> Iterator[str]:
        with self._lock:
            return iter(list(self._entries))

    def get(self, key: str) -> Optional[CacheEntry]:
        """Return the entry for *key* if it is still fresh."""

        with self._lock:
            return self._fresh_entry(key, self._clock())

    def put(self, key: str, value: str) -> CacheEntry:
        """Insert *value* under *key*, evicting first as needed."""

        with self._lock:
            return self._insert(key, value)

    def get_or_load(self, key: str, loader: Callable[[], str]) -> str:
        """Return the fresh value for *key*, calling *loader* on a miss.

        Errors raised by *loader* propagate and leave the cache untouched; a
        stale entry is never returned in place of a failed load.
        """

        with self._lock:
            entry = self._fresh_entry(key, self._clock())
            if entry is not None:
                return entry.value
            return self._insert(key, loader()).value

    def add_entry(self, key: str, value: str, created_at: int) -> None:
        """Store an entry with an explicit creation time, bypassing eviction."""

        with self._lock:
            self._entries[key] = CacheEntry(key=key, value=value, created_at=created_at)

    def _fresh_entry(self, key: str, now: int) -> Optional[CacheEntry]:
        entry = self._entries.get(key)
        if entry is None or entry.age(now) > self.max_age_ms:
            return None
        return entry

    def _insert(self, key: str, value: str) -> CacheEntry:
        now = self._clock()
        self._evict(now, force=len(self._entries) >= self.max_size)
        entry = CacheEntry(key=key, value=value, created_at=now)
        # Overwriting keeps an existing key's original position.
        self._entries[key] = entry
        return entry

    def _evict(self, now: int, *, force: bool) -> None:
        expired = [key for key, entry in self._entries.items() if entry.age(now) > self.max_age_ms]
        for key in expired:
            del self._entries[key]

        if not expired and force and self._entries:
            self._entries.popitem(last=False)


__all__ = [
    "CacheEntry",
    "IdentityScopedCache",
    "MAX_CACHE_AGE_MS",
    "MAX_CACHE_SIZE",
    "build_cache_key",
]
