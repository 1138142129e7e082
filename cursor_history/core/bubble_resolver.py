"""
Bounded on-demand resolution of modern-format message bodies.

Modern conversations list message headers only; each body lives in its own
``bubbleId:<conversation>:<message>`` record. Resolution walks the headers
in order and stops after ``limit`` successful lookups, so statistics
computed over resolved conversations are partial for long conversations.
``ResolutionResult`` and ``Conversation.resolved_count`` make that explicit.
"""

from dataclasses import dataclass, field, replace

from cursor_history.config.constants.cache import BUBBLE_CACHE_KEY
from cursor_history.config.constants.database import MESSAGE_TYPE_UNKNOWN
from cursor_history.config.constants.limits import DEFAULT_BUBBLE_RESOLUTION_LIMIT
from cursor_history.core.conversation_types import Conversation, Message, MessageHeader
from cursor_history.core.format_normalizer import parse_bubble, with_resolved_messages
from cursor_history.core.record_store import CursorDiskStore
from cursor_history.utils.error_handling import RECORD_ERRORS
from cursor_history.utils.logger import log_debug, log_error
from cursor_history.utils.result_cache import ResultCache


@dataclass
class ResolutionResult:
    messages: list[Message] = field(default_factory=list)
    total_headers: int = 0
    resolved_count: int = 0
    failed_ids: list[str] = field(default_factory=list)

    @property
    def is_partial(self) -> bool:
        return self.resolved_count < self.total_headers


class BubbleResolver:
    """Fetches bubble messages through the cache, bounded per conversation."""

    def __init__(
        self,
        store: CursorDiskStore,
        cache: ResultCache | None = None,
        default_limit: int = DEFAULT_BUBBLE_RESOLUTION_LIMIT,
    ):
        self.store = store
        self.cache = cache
        self.default_limit = default_limit

    def get_message(
        self, conversation_id: str, message_id: str, default_type: int | None = None
    ) -> Message | None:
        """Fetch one bubble, or None if the record does not exist.

        Raises:
            FormatError: if the stored record cannot be parsed.
        """
        cache_key = BUBBLE_CACHE_KEY.format(
            conversation_id=conversation_id, message_id=message_id
        )
        if self.cache is not None:
            cached = self.cache.get(cache_key)
            if cached is not None:
                if default_type is not None and cached.type == MESSAGE_TYPE_UNKNOWN:
                    return replace(cached, type=default_type)
                return cached

        raw = self.store.get_bubble(conversation_id, message_id)
        if raw is None:
            return None

        message = parse_bubble(raw, bubble_id=message_id, default_type=default_type)
        if self.cache is not None:
            self.cache.set(cache_key, message)
        return message

    def resolve(
        self,
        conversation_id: str,
        headers: list[MessageHeader],
        limit: int | None = None,
    ) -> ResolutionResult:
        """Resolve headers in order until ``limit`` bubbles have been fetched.

        ``limit=None`` uses the resolver's default bound, a non-positive
        limit resolves every header. Missing or unparsable bubbles are
        logged and skipped without counting toward the limit.
        """
        if limit is None:
            limit = self.default_limit

        result = ResolutionResult(total_headers=len(headers))
        for header in headers:
            if 0 < limit <= result.resolved_count:
                break

            try:
                message = self.get_message(
                    conversation_id, header.bubble_id, default_type=header.type
                )
            except RECORD_ERRORS as e:
                log_error(e, f"resolving bubble {header.bubble_id}")
                result.failed_ids.append(header.bubble_id)
                continue

            if message is None:
                log_debug(
                    f"Bubble {header.bubble_id} missing for conversation {conversation_id}"
                )
                result.failed_ids.append(header.bubble_id)
                continue

            result.messages.append(message)
            result.resolved_count += 1

        return result

    def resolve_conversation(
        self, conversation: Conversation, limit: int | None = None
    ) -> Conversation:
        """Return a modern conversation with its bubbles merged in.

        Legacy conversations are returned unchanged.
        """
        if conversation.is_legacy:
            return conversation

        result = self.resolve(conversation.conversation_id, conversation.headers, limit)
        return with_resolved_messages(
            conversation, result.messages, result.resolved_count
        )
