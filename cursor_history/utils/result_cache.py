"""
Bounded result cache with per-entry TTL and LRU or FIFO eviction.

Holds parsed conversations and resolved bubble messages for one engine
instance. Entries are process-local and never persisted. Times are in
milliseconds, matching the store's own timestamp convention.
"""

import threading
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any

from cursor_history.config.constants.cache import (
    CACHE_DEFAULT_CLEANUP_INTERVAL_MS,
    CACHE_DEFAULT_EVICTION_POLICY,
    CACHE_DEFAULT_MAX_SIZE,
    CACHE_DEFAULT_TTL_MS,
    CACHE_EVICTION_POLICIES,
    CACHE_PRESETS,
)
from cursor_history.utils.logger import log_debug


def _now_ms() -> float:
    return time.time() * 1000


@dataclass
class CacheConfig:
    """Cache sizing and expiry settings."""

    max_size: int = CACHE_DEFAULT_MAX_SIZE
    default_ttl: int | None = CACHE_DEFAULT_TTL_MS
    eviction_policy: str = CACHE_DEFAULT_EVICTION_POLICY
    enable_cleanup: bool = True
    cleanup_interval: int = CACHE_DEFAULT_CLEANUP_INTERVAL_MS

    def __post_init__(self) -> None:
        if self.max_size < 1:
            raise ValueError(f"max_size must be >= 1, got {self.max_size}")
        if self.eviction_policy not in CACHE_EVICTION_POLICIES:
            raise ValueError(
                f"eviction_policy must be one of {CACHE_EVICTION_POLICIES}, "
                f"got {self.eviction_policy!r}"
            )

    @classmethod
    def from_preset(cls, preset: str, **overrides: Any) -> "CacheConfig":
        """Build a config from a named preset (small, medium, large, persistent)."""
        if preset not in CACHE_PRESETS:
            raise ValueError(
                f"Unknown cache preset {preset!r}, expected one of "
                f"{sorted(CACHE_PRESETS)}"
            )
        return cls(**{**CACHE_PRESETS[preset], **overrides})


@dataclass
class CacheEntry:
    """A cached value with its bookkeeping timestamps."""

    key: str
    value: Any
    created_at: float
    last_accessed_at: float
    ttl: int | None = None
    expires_at: float | None = None

    def is_expired(self, now: float) -> bool:
        # No expiry recorded means the entry lives until evicted or cleared
        if self.expires_at is None:
            return False
        return now > self.expires_at


class ResultCache:
    """Bounded cache with lazy and periodic TTL expiry.

    The entry map is kept in eviction order: for ``lru`` every hit moves the
    key to the end, for ``fifo`` only (re)insertion does. Eviction always
    removes the first key.

    The optional periodic sweep runs on a daemon ``threading.Timer``. All
    mutations hold the same lock, so a sweep never interleaves with a
    foreground call. Call ``destroy()`` to stop the sweep.
    """

    def __init__(self, config: CacheConfig | None = None):
        self.config = config or CacheConfig()
        self._entries: OrderedDict[str, CacheEntry] = OrderedDict()
        self._lock = threading.RLock()
        self._cleanup_timer: threading.Timer | None = None
        self._destroyed = False
        self._hits = 0
        self._misses = 0
        self._evictions = 0
        self._expirations = 0

        if self.config.enable_cleanup:
            self._schedule_cleanup()

    def get(self, key: str) -> Any | None:
        """Return the cached value, or None when absent or expired."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self._misses += 1
                return None

            now = _now_ms()
            if entry.is_expired(now):
                del self._entries[key]
                self._expirations += 1
                self._misses += 1
                return None

            entry.last_accessed_at = now
            if self.config.eviction_policy == "lru":
                self._entries.move_to_end(key)
            self._hits += 1
            return entry.value

    def set(self, key: str, value: Any, ttl: int | None = None) -> None:
        """Store a value, evicting one entry first if the cache is full.

        Args:
            key: Cache key, e.g. ``conversation:<id>``
            value: Any value; a stored None reads back like a miss
            ttl: Milliseconds to live. None uses the configured default,
                0 means the entry never expires.
        """
        with self._lock:
            now = _now_ms()
            effective_ttl = self.config.default_ttl if ttl is None else ttl
            expires_at = now + effective_ttl if effective_ttl else None

            if key in self._entries:
                del self._entries[key]
            elif len(self._entries) >= self.config.max_size:
                self._evict_one()

            self._entries[key] = CacheEntry(
                key=key,
                value=value,
                created_at=now,
                last_accessed_at=now,
                ttl=effective_ttl or None,
                expires_at=expires_at,
            )

    def has(self, key: str) -> bool:
        """Check for a live entry without touching recency or hit counters."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return False
            if entry.is_expired(_now_ms()):
                del self._entries[key]
                self._expirations += 1
                return False
            return True

    def delete(self, key: str) -> bool:
        with self._lock:
            return self._entries.pop(key, None) is not None

    def cleanup(self) -> int:
        """Remove every expired entry and return how many were removed."""
        with self._lock:
            now = _now_ms()
            expired_keys = [
                key for key, entry in self._entries.items() if entry.is_expired(now)
            ]
            for key in expired_keys:
                del self._entries[key]
            self._expirations += len(expired_keys)

        if expired_keys:
            log_debug(f"Expired {len(expired_keys)} cache entries")
        return len(expired_keys)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def destroy(self) -> None:
        """Stop the periodic sweep and drop all entries."""
        with self._lock:
            self._destroyed = True
            if self._cleanup_timer is not None:
                self._cleanup_timer.cancel()
                self._cleanup_timer = None
            self._entries.clear()

    def size(self) -> int:
        with self._lock:
            return len(self._entries)

    def keys(self) -> list[str]:
        with self._lock:
            return list(self._entries.keys())

    def values(self) -> list[Any]:
        with self._lock:
            return [entry.value for entry in self._entries.values()]

    def get_stats(self) -> dict[str, Any]:
        """Get hit/miss/eviction counters and the hit rate as a percentage."""
        with self._lock:
            total = self._hits + self._misses
            return {
                "hits": self._hits,
                "misses": self._misses,
                "evictions": self._evictions,
                "expirations": self._expirations,
                "size": len(self._entries),
                "max_size": self.config.max_size,
                "hit_rate": (self._hits / total) * 100 if total else 0.0,
            }

    def reset_stats(self) -> None:
        with self._lock:
            self._hits = 0
            self._misses = 0
            self._evictions = 0
            self._expirations = 0

    def _evict_one(self) -> None:
        if not self._entries:
            return
        evicted_key, _ = self._entries.popitem(last=False)
        self._evictions += 1
        log_debug(
            f"Evicted cache entry {evicted_key}",
            {"policy": self.config.eviction_policy},
        )

    def _schedule_cleanup(self) -> None:
        timer = threading.Timer(
            self.config.cleanup_interval / 1000, self._run_scheduled_cleanup
        )
        timer.daemon = True
        self._cleanup_timer = timer
        timer.start()

    def _run_scheduled_cleanup(self) -> None:
        self.cleanup()
        with self._lock:
            if not self._destroyed:
                self._schedule_cleanup()

    def __len__(self) -> int:
        return self.size()

    def __contains__(self, key: str) -> bool:
        return self.has(key)


def create_cache(preset: str | None = None, **overrides: Any) -> ResultCache:
    """Create a cache from a named preset, or from defaults plus overrides."""
    if preset is not None:
        return ResultCache(CacheConfig.from_preset(preset, **overrides))
    return ResultCache(CacheConfig(**overrides))
