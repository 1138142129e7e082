"""Per-engine configuration with environment-aware defaults."""

from dataclasses import dataclass, field
from pathlib import Path

from cursor_history.config.constants.limits import (
    DEFAULT_BUBBLE_RESOLUTION_LIMIT,
    DEFAULT_MAX_CONVERSATIONS,
    DEFAULT_MIN_CONVERSATION_SIZE,
)
from cursor_history.config.constants.paths import CURSOR_DB_PATH
from cursor_history.utils.errors import DatabasePathNotFoundError
from cursor_history.utils.result_cache import CacheConfig


@dataclass
class EngineConfig:
    """Settings for one engine instance and its store handle."""

    db_path: str
    max_conversations: int = DEFAULT_MAX_CONVERSATIONS
    min_conversation_size: int = DEFAULT_MIN_CONVERSATION_SIZE
    cache_enabled: bool = True
    resolve_bubbles_automatically: bool = True
    bubble_resolution_limit: int = DEFAULT_BUBBLE_RESOLUTION_LIMIT
    cache: CacheConfig = field(default_factory=CacheConfig)

    @classmethod
    def from_environment(cls, **overrides) -> "EngineConfig":
        """Build a config whose store path comes from CURSOR_DB_PATH."""
        db_path = overrides.pop("db_path", None) or resolve_db_path()
        return cls(db_path=db_path, **overrides)


def resolve_db_path(explicit_path: str | None = None) -> str:
    """Return an explicitly configured store path, expanding ``~``."""
    candidate = explicit_path or CURSOR_DB_PATH
    if not candidate:
        raise DatabasePathNotFoundError(["$CURSOR_DB_PATH (unset)"])

    resolved = Path(candidate).expanduser().resolve()
    if not resolved.exists():
        raise DatabasePathNotFoundError([str(resolved)])
    return str(resolved)
