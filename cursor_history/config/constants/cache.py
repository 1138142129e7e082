"""Result cache configuration constants."""

from typing import Final

# Default cache sizing, times are milliseconds
CACHE_DEFAULT_MAX_SIZE: Final[int] = 1000
CACHE_DEFAULT_TTL_MS: Final[int] = 5 * 60 * 1000
CACHE_DEFAULT_CLEANUP_INTERVAL_MS: Final[int] = 60 * 1000
CACHE_DEFAULT_EVICTION_POLICY: Final[str] = "lru"

CACHE_EVICTION_POLICIES: Final[tuple[str, ...]] = ("lru", "fifo")

# Named presets
CACHE_PRESETS: Final[dict[str, dict]] = {
    "small": {
        "max_size": 100,
        "default_ttl": 2 * 60 * 1000,
        "cleanup_interval": 30 * 1000,
    },
    "medium": {
        "max_size": 500,
        "default_ttl": 5 * 60 * 1000,
        "cleanup_interval": 60 * 1000,
    },
    "large": {
        "max_size": 2000,
        "default_ttl": 15 * 60 * 1000,
        "cleanup_interval": 2 * 60 * 1000,
    },
    "persistent": {
        "max_size": 1000,
        "default_ttl": 60 * 60 * 1000,
        "eviction_policy": "fifo",
        "cleanup_interval": 5 * 60 * 1000,
    },
}

# Cache key namespaces
CONVERSATION_CACHE_KEY: Final[str] = "conversation:{conversation_id}"
BUBBLE_CACHE_KEY: Final[str] = "bubble:{conversation_id}:{message_id}"
