# PolicyCore - Policy Decision Management System
# Copyright (C) 2025 Luiz Frias <luizf35@gmail.com>
# Form F[x] Labs
#
# This software is dual-licensed under AGPL-3.0 and Commercial License.
# For commercial licensing, contact: luizf35@gmail.com
# See LICENSE file for full terms.

"""In-process response cache with LRU eviction and TTL expiry.

The cache is owned by whoever constructs it (normally the rating service)
and is never module-level state, so tests can run against a fresh instance.
Keys must cover every input that feeds a result hash; see
:func:`policy_rating.services.rating.determinism.scenario_fingerprint`.
"""

import threading
import time
from collections import OrderedDict
from collections.abc import Callable
from typing import Any

from attrs import frozen
from beartype import beartype
from pydantic import Field

from ..models.base import BaseModelConfig


@frozen
class CacheEntry:
    """Cached value with its absolute expiry time."""

    value: Any
    expires_at: float


@beartype
class CacheStatistics(BaseModelConfig):
    """Cache performance statistics."""

    hits: int = Field(default=0, ge=0)
    misses: int = Field(default=0, ge=0)
    evictions: int = Field(default=0, ge=0)
    expirations: int = Field(default=0, ge=0)
    size: int = Field(default=0, ge=0)
    capacity: int = Field(..., ge=1)


class RatingResultCache:
    """Thread-safe fixed-capacity LRU cache with a per-entry TTL."""

    @beartype
    def __init__(
        self,
        capacity: int,
        ttl_seconds: float | int,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize cache.

        Args:
            capacity: Maximum number of entries kept before LRU eviction
            ttl_seconds: Lifetime of an entry after it is written
            clock: Monotonic time source, injectable for tests
        """
        if capacity < 1:
            raise ValueError("Cache capacity must be at least 1")
        if ttl_seconds <= 0:
            raise ValueError("Cache TTL must be positive")

        self._capacity = capacity
        self._ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: OrderedDict[str, CacheEntry] = OrderedDict()
        self._lock = threading.Lock()
        self._hits = 0
        self._misses = 0
        self._evictions = 0
        self._expirations = 0

    @beartype
    def get(self, key: str) -> Any | None:
        """Return the cached value, or None when absent or expired."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self._misses += 1
                return None

            if entry.expires_at <= self._clock():
                del self._entries[key]
                self._expirations += 1
                self._misses += 1
                return None

            self._entries.move_to_end(key)
            self._hits += 1
            return entry.value

    @beartype
    def set(self, key: str, value: Any) -> None:
        """Store a value, evicting the least recently used entry when full."""
        with self._lock:
            if key in self._entries:
                self._entries.move_to_end(key)
            self._entries[key] = CacheEntry(
                value=value, expires_at=self._clock() + self._ttl_seconds
            )
            while len(self._entries) > self._capacity:
                self._entries.popitem(last=False)
                self._evictions += 1

    @beartype
    def invalidate(self, key: str) -> bool:
        """Remove a single entry. Returns True if it was present."""
        with self._lock:
            return self._entries.pop(key, None) is not None

    @beartype
    def clear(self) -> None:
        """Drop every entry."""
        with self._lock:
            self._entries.clear()

    @beartype
    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    @beartype
    def statistics(self) -> CacheStatistics:
        """Snapshot of hit/miss/eviction counters."""
        with self._lock:
            return CacheStatistics(
                hits=self._hits,
                misses=self._misses,
                evictions=self._evictions,
                expirations=self._expirations,
                size=len(self._entries),
                capacity=self._capacity,
            )
