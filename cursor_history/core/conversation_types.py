"""
Typed conversation model shared by the retrieval engine.

Both store shapes are represented by one ``Conversation`` dataclass whose
``format`` field is the discriminant. Legacy records carry their messages
inline. Modern records carry only headers until bubbles are resolved, and
then expose the resolved subset in ``messages`` with ``resolved_count`` set.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from cursor_history.config.constants.database import MESSAGE_TYPE_USER
from cursor_history.config.constants.limits import DEFAULT_FIRST_MESSAGE_LENGTH


class ConversationFormat(Enum):
    """Closed set of conversation record shapes."""

    LEGACY = "legacy"
    MODERN = "modern"


@dataclass(frozen=True)
class CodeBlock:
    language: str
    code: str
    filename: str | None = None

    @property
    def line_count(self) -> int:
        return len(self.code.split("\n"))


@dataclass
class Message:
    """One message body, inline (legacy) or from a bubble record (modern)."""

    type: int
    text: str
    bubble_id: str = ""
    relevant_files: list[str] = field(default_factory=list)
    attached_folders: list[str] = field(default_factory=list)
    code_blocks: list[CodeBlock] = field(default_factory=list)
    timestamp: Any = None

    @property
    def role(self) -> str:
        return "user" if self.type == MESSAGE_TYPE_USER else "assistant"

    @property
    def has_code(self) -> bool:
        return bool(self.code_blocks)


@dataclass(frozen=True)
class MessageHeader:
    """Role and identifier of a modern-format message stored elsewhere."""

    bubble_id: str
    type: int
    server_bubble_id: str | None = None


@dataclass
class Conversation:
    conversation_id: str
    format: ConversationFormat
    messages: list[Message] = field(default_factory=list)
    headers: list[MessageHeader] = field(default_factory=list)
    name: str | None = None
    text: str = ""
    rich_text: str = ""
    ai_summary: str | None = None
    relevant_files: list[str] = field(default_factory=list)
    attached_folders: list[str] = field(default_factory=list)
    has_loaded: bool = False
    raw_size: int = 0
    # Modern only: how many bubbles were actually resolved into ``messages``
    resolved_count: int | None = None

    @property
    def is_legacy(self) -> bool:
        return self.format is ConversationFormat.LEGACY

    @property
    def is_modern(self) -> bool:
        return self.format is ConversationFormat.MODERN

    @property
    def is_resolved(self) -> bool:
        """True when message bodies are available for extraction."""
        return self.is_legacy or self.resolved_count is not None

    @property
    def total_message_count(self) -> int:
        """Message count as recorded by the store, independent of resolution."""
        if self.is_legacy:
            return len(self.messages)
        return len(self.headers)

    @property
    def is_partial(self) -> bool:
        """True when only a subset of a modern conversation's bubbles was resolved."""
        if self.is_legacy:
            return False
        return (self.resolved_count or 0) < len(self.headers)


@dataclass
class ConversationSummary:
    """Lightweight view of a conversation for listings and analytics."""

    conversation_id: str
    format: ConversationFormat
    message_count: int
    has_code_blocks: bool
    code_block_count: int
    relevant_files: list[str]
    attached_folders: list[str]
    conversation_size: int
    first_message: str | None = None
    last_message: str | None = None
    stored_summary: str | None = None
    stored_rich_text: str | None = None
    title: str | None = None
    ai_summary: str | None = None
    resolved_count: int | None = None
    is_partial: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "composer_id": self.conversation_id,
            "format": self.format.value,
            "message_count": self.message_count,
            "has_code_blocks": self.has_code_blocks,
            "code_block_count": self.code_block_count,
            "relevant_files": list(self.relevant_files),
            "attached_folders": list(self.attached_folders),
            "conversation_size": self.conversation_size,
            "first_message": self.first_message,
            "last_message": self.last_message,
            "stored_summary": self.stored_summary,
            "stored_rich_text": self.stored_rich_text,
            "title": self.title,
            "ai_summary": self.ai_summary,
            "resolved_count": self.resolved_count,
            "is_partial": self.is_partial,
        }


@dataclass
class SummaryOptions:
    include_first_message: bool = True
    include_last_message: bool = False
    include_stored_summary: bool = False
    include_title: bool = True
    include_ai_summary: bool = True
    max_first_message_length: int = DEFAULT_FIRST_MESSAGE_LENGTH
