"""
Read-only access to the chat-history key/value store.

Conversation filters are evaluated as SQL ``LIKE`` conditions over the raw
JSON text before anything is parsed. They are deliberately approximate: a
matching row may still fail the structural check done after parsing, but a
row excluded here never reaches later stages. Adding constraints to a filter
can only shrink the result.
"""

import sqlite3
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from cursor_history.config.constants.database import (
    BUBBLE_KEY_PREFIX,
    CLAUSE_COMPOSER_KEY,
    CLAUSE_FORMAT_LEGACY,
    CLAUSE_FORMAT_MODERN,
    CLAUSE_HAS_CODE,
    CLAUSE_MIN_LENGTH,
    CLAUSE_VALUE_LIKE,
    CLAUSE_VALUE_LIKE_ESCAPED,
    COMPOSER_KEY_PREFIX,
    LIKE_EXACT_FILE,
    LIKE_FILE_PATTERN,
    LIKE_PROJECT_FILE,
    LIKE_PROJECT_FOLDER,
    LIKE_SUBSTRING,
    SQL_COUNT_CONVERSATIONS,
    SQL_GET_VALUE_BY_KEY,
    SQL_LIST_BUBBLE_KEYS,
    SQL_PROBE_STORE,
    SQL_SELECT_CONVERSATION_KEYS,
    SQL_SELECT_CONVERSATION_ROWS,
)
from cursor_history.config.constants.limits import (
    DEFAULT_MAX_CONVERSATIONS,
    DEFAULT_MIN_CONVERSATION_SIZE,
    MAX_SEARCH_QUERY_LENGTH,
)
from cursor_history.utils.errors import (
    DatabaseError,
    StoreConnectionError,
    ValidationError,
)
from cursor_history.utils.logger import log_debug, log_error

FORMAT_BOTH = "both"


@dataclass
class ConversationFilter:
    """Prefilter options for conversation listing.

    ``keywords`` combine with OR by default. With ``keyword_operator="AND"``
    each keyword becomes its own conjoined clause. ``content_groups`` is an
    OR of groups, each group an AND of raw LIKE patterns; search uses it to
    express its query, keyword and pattern criteria as one clause.
    """

    min_length: int | None = None
    format: str | None = None
    project_path: str | None = None
    file_pattern: str | None = None
    relevant_files: list[str] = field(default_factory=list)
    has_code_blocks: bool = False
    keywords: list[str] = field(default_factory=list)
    keyword_operator: str = "OR"
    like_pattern: str | None = None
    content_groups: list[tuple[str, ...]] = field(default_factory=list)
    limit: int | None = None


@dataclass(frozen=True)
class StoredRecord:
    """Raw conversation row as returned by a prefiltered scan."""

    conversation_id: str
    size: int
    value: str


def conversation_key(conversation_id: str) -> str:
    return f"{COMPOSER_KEY_PREFIX}{conversation_id}"


def bubble_key(conversation_id: str, message_id: str) -> str:
    return f"{BUBBLE_KEY_PREFIX}{conversation_id}:{message_id}"


def extract_conversation_id(key: str) -> str | None:
    """Return the id from a ``composerData:<id>`` key."""
    if key.startswith(COMPOSER_KEY_PREFIX) and len(key) > len(COMPOSER_KEY_PREFIX):
        return key[len(COMPOSER_KEY_PREFIX) :]
    return None


def extract_bubble_key_components(key: str) -> tuple[str, str] | None:
    """Split a ``bubbleId:<conversation>:<message>`` key."""
    if not key.startswith(BUBBLE_KEY_PREFIX):
        return None
    conversation_id, sep, message_id = key[len(BUBBLE_KEY_PREFIX) :].partition(":")
    if not sep or not conversation_id or not message_id:
        return None
    return conversation_id, message_id


def escape_like(text: str) -> str:
    """Escape LIKE wildcards so ``text`` matches literally (ESCAPE '\\')."""
    return text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def to_like_pattern(glob_pattern: str) -> str:
    """Convert a glob (``*``, ``?``) into a LIKE pattern with literals escaped."""
    return escape_like(glob_pattern).replace("*", "%").replace("?", "_")


def _json_fragment(text: str) -> str:
    # Paths appear JSON-encoded inside the stored text
    return text.replace("\\", "\\\\").replace('"', '\\"')


def sanitize_search_query(query: Any) -> str:
    """Trim a search term, rejecting empty or overlong input."""
    if not isinstance(query, str):
        raise ValidationError("Search query must be a string", "query", query)

    trimmed = query.strip()
    if not trimmed:
        raise ValidationError("Search query cannot be empty", "query", query)
    if len(trimmed) > MAX_SEARCH_QUERY_LENGTH:
        raise ValidationError(
            f"Search query is too long (max {MAX_SEARCH_QUERY_LENGTH} characters)",
            "query",
        )
    return trimmed


def _normalize_format(value: Any) -> str:
    raw = getattr(value, "value", value)
    if raw in (None, "", FORMAT_BOTH):
        return FORMAT_BOTH
    if raw not in ("legacy", "modern"):
        raise ValidationError(
            "format must be one of legacy, modern, both", "format", value
        )
    return raw


class CursorDiskStore:
    """Read-only handle on the ``cursorDiskKV`` table."""

    def __init__(
        self,
        db_path: str | Path,
        min_conversation_size: int = DEFAULT_MIN_CONVERSATION_SIZE,
        max_conversations: int = DEFAULT_MAX_CONVERSATIONS,
    ):
        self.db_path = Path(db_path)
        self.min_conversation_size = min_conversation_size
        self.max_conversations = max_conversations
        self._conn: sqlite3.Connection | None = None

    @property
    def is_connected(self) -> bool:
        return self._conn is not None

    def connect(self) -> None:
        """Open the store read-only and probe its table.

        Raises:
            StoreConnectionError: if the file is missing, unreadable, or has
                no ``cursorDiskKV`` table.
        """
        if self._conn is not None:
            return

        conn = None
        try:
            if not self.db_path.is_file():
                raise FileNotFoundError(f"No such file: {self.db_path}")
            uri = f"{self.db_path.resolve().as_uri()}?mode=ro"
            conn = sqlite3.connect(uri, uri=True)
            conn.execute(SQL_PROBE_STORE).fetchone()
        except (sqlite3.Error, OSError) as e:
            if conn is not None:
                conn.close()
            log_error(e, f"connecting to store at {self.db_path}")
            raise StoreConnectionError(str(self.db_path), e) from e

        self._conn = conn
        log_debug(f"Connected to store at {self.db_path}")

    def close(self) -> None:
        if self._conn is not None:
            try:
                self._conn.close()
            except sqlite3.Error as e:
                log_error(e, "closing store connection")
            self._conn = None

    def __enter__(self) -> "CursorDiskStore":
        self.connect()
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()

    def _execute(self, sql: str, params: list[Any] | tuple = ()) -> list[tuple]:
        if self._conn is None:
            raise DatabaseError("Database not connected. Call connect() first.")
        try:
            return self._conn.execute(sql, params).fetchall()
        except sqlite3.Error as e:
            log_error(e, "store query failed", {"sql": sql})
            raise DatabaseError("store query failed", e) from e

    def build_conditions(
        self, filters: ConversationFilter | None = None
    ) -> tuple[list[str], list[Any]]:
        """Translate a filter into AND-joined SQL conditions and parameters."""
        filters = filters or ConversationFilter()
        conditions = [CLAUSE_COMPOSER_KEY, CLAUSE_MIN_LENGTH]
        min_length = filters.min_length
        if min_length is None or min_length < 0:
            min_length = self.min_conversation_size
        params: list[Any] = [int(min_length)]

        conversation_format = _normalize_format(filters.format)
        if conversation_format == "legacy":
            conditions.append(CLAUSE_FORMAT_LEGACY)
        elif conversation_format == "modern":
            conditions.append(CLAUSE_FORMAT_MODERN)

        if filters.project_path:
            fragment = _json_fragment(filters.project_path)
            conditions.append(f"({CLAUSE_VALUE_LIKE} OR {CLAUSE_VALUE_LIKE})")
            params.append(LIKE_PROJECT_FOLDER.format(path=fragment))
            params.append(LIKE_PROJECT_FILE.format(path=fragment))

        if filters.file_pattern:
            conditions.append(CLAUSE_VALUE_LIKE_ESCAPED)
            params.append(
                LIKE_FILE_PATTERN.format(
                    pattern=to_like_pattern(_json_fragment(filters.file_pattern))
                )
            )

        if filters.relevant_files:
            conditions.append(
                "(" + " OR ".join([CLAUSE_VALUE_LIKE] * len(filters.relevant_files)) + ")"
            )
            params.extend(
                LIKE_EXACT_FILE.format(path=_json_fragment(path))
                for path in filters.relevant_files
            )

        if filters.has_code_blocks:
            conditions.append(CLAUSE_HAS_CODE)

        keywords = [k for k in filters.keywords if k]
        if keywords:
            if filters.keyword_operator.upper() == "AND":
                for keyword in keywords:
                    conditions.append(CLAUSE_VALUE_LIKE)
                    params.append(LIKE_SUBSTRING.format(text=keyword))
            else:
                conditions.append(
                    "(" + " OR ".join([CLAUSE_VALUE_LIKE] * len(keywords)) + ")"
                )
                params.extend(LIKE_SUBSTRING.format(text=k) for k in keywords)

        if filters.like_pattern:
            conditions.append(CLAUSE_VALUE_LIKE)
            params.append(filters.like_pattern)

        groups = [group for group in filters.content_groups if group]
        if groups:
            rendered = [
                "(" + " AND ".join([CLAUSE_VALUE_LIKE] * len(group)) + ")"
                for group in groups
            ]
            conditions.append("(" + " OR ".join(rendered) + ")")
            for group in groups:
                params.extend(group)

        return conditions, params

    def _limit(self, filters: ConversationFilter | None) -> int:
        limit = filters.limit if filters is not None else None
        if limit is None or limit <= 0:
            return self.max_conversations
        return int(limit)

    def list_identifiers(self, filters: ConversationFilter | None = None) -> list[str]:
        """Ids of matching conversations, most recently written first."""
        conditions, params = self.build_conditions(filters)
        sql = SQL_SELECT_CONVERSATION_KEYS.format(conditions=" AND ".join(conditions))
        rows = self._execute(sql, [*params, self._limit(filters)])

        identifiers = []
        for (key,) in rows:
            conversation_id = extract_conversation_id(key)
            if conversation_id:
                identifiers.append(conversation_id)
        return identifiers

    def list_records(self, filters: ConversationFilter | None = None) -> list[StoredRecord]:
        """Like ``list_identifiers`` but returns raw values in one scan."""
        conditions, params = self.build_conditions(filters)
        sql = SQL_SELECT_CONVERSATION_ROWS.format(conditions=" AND ".join(conditions))
        rows = self._execute(sql, [*params, self._limit(filters)])

        records = []
        for key, size, value in rows:
            conversation_id = extract_conversation_id(key)
            if conversation_id and value is not None:
                records.append(StoredRecord(conversation_id, int(size or 0), value))
        return records

    def _get_value(self, key: str) -> str | None:
        rows = self._execute(SQL_GET_VALUE_BY_KEY, (key,))
        if not rows or rows[0][0] is None:
            return None
        value = rows[0][0]
        if isinstance(value, bytes):
            value = value.decode("utf-8", errors="replace")
        return value

    def get_by_id(self, conversation_id: str) -> str | None:
        """Raw conversation JSON, or None when the key does not exist."""
        return self._get_value(conversation_key(conversation_id))

    def get_bubble(self, conversation_id: str, message_id: str) -> str | None:
        """Raw bubble JSON, or None when the key does not exist."""
        return self._get_value(bubble_key(conversation_id, message_id))

    def list_bubble_keys(self, conversation_id: str) -> list[str]:
        """Message ids that have bubble records for a conversation."""
        pattern = escape_like(bubble_key(conversation_id, "")) + "%"
        rows = self._execute(SQL_LIST_BUBBLE_KEYS, (pattern,))
        message_ids = []
        for (key,) in rows:
            components = extract_bubble_key_components(key)
            if components and components[0] == conversation_id:
                message_ids.append(components[1])
        return message_ids

    def count_conversations(self) -> int:
        rows = self._execute(SQL_COUNT_CONVERSATIONS)
        return int(rows[0][0]) if rows else 0
