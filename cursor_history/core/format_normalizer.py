"""
Classification and uniform extraction over both conversation record shapes.

Everything here is pure and stateless. Legacy conversations are walked
through their inline messages. Modern conversations only expose message
content after bubbles have been resolved and merged with
``with_resolved_messages``; before that the extractors see header metadata
only and return empty content lists.
"""

import dataclasses
import json
from datetime import datetime, timezone
from typing import Any

from cursor_history.config.constants.database import (
    LEGACY_MESSAGES_FIELD,
    MESSAGE_TYPE_ASSISTANT,
    MESSAGE_TYPE_UNKNOWN,
    MESSAGE_TYPE_USER,
    MODERN_HEADERS_FIELD,
    MODERN_VERSION_FIELD,
    TIMESTAMP_MILLISECOND_THRESHOLD,
)
from cursor_history.config.constants.scoring import (
    LANGUAGE_ALIASES,
    SUMMARIZATION_KEYWORDS,
)
from cursor_history.core.conversation_types import (
    CodeBlock,
    Conversation,
    ConversationFormat,
    ConversationSummary,
    Message,
    MessageHeader,
    SummaryOptions,
)
from cursor_history.utils.errors import FormatError

# File extensions that identify a language when no code block says so
EXTENSION_LANGUAGES: dict[str, str] = {
    **LANGUAGE_ALIASES,
    "c": "c",
    "h": "c",
    "cpp": "cpp",
    "cc": "cpp",
    "hpp": "cpp",
    "cs": "csharp",
    "css": "css",
    "go": "go",
    "html": "html",
    "java": "java",
    "json": "json",
    "kt": "kotlin",
    "php": "php",
    "rs": "rust",
    "scss": "scss",
    "sql": "sql",
    "swift": "swift",
    "toml": "toml",
    "yaml": "yaml",
}


def classify(record: Any) -> ConversationFormat:
    """Determine the record shape from structure alone.

    Raises:
        FormatError: when the record has no identifier or neither an inline
            message array nor a versioned header array.
    """
    if not isinstance(record, dict):
        raise FormatError(f"expected an object, got {type(record).__name__}")

    conversation_id = record.get("composerId")
    if not isinstance(conversation_id, str) or not conversation_id:
        raise FormatError("missing composerId")

    if isinstance(record.get(LEGACY_MESSAGES_FIELD), list):
        return ConversationFormat.LEGACY

    version = record.get(MODERN_VERSION_FIELD)
    if (
        isinstance(version, int | float)
        and not isinstance(version, bool)
        and isinstance(record.get(MODERN_HEADERS_FIELD), list)
    ):
        return ConversationFormat.MODERN

    raise FormatError(
        "neither an inline message array nor a header array is present",
        conversation_id,
    )


def _string_list(value: Any) -> list[str]:
    if not isinstance(value, list):
        return []
    return [item for item in value if isinstance(item, str)]


def _parse_code_blocks(value: Any) -> list[CodeBlock]:
    if not isinstance(value, list):
        return []

    blocks = []
    for raw_block in value:
        if not isinstance(raw_block, dict) or not isinstance(raw_block.get("code"), str):
            continue
        language = raw_block.get("language")
        filename = raw_block.get("filename")
        blocks.append(
            CodeBlock(
                language=language if isinstance(language, str) else "",
                code=raw_block["code"],
                filename=filename if isinstance(filename, str) else None,
            )
        )
    return blocks


def _parse_message(raw: dict[str, Any], default_type: int | None = None) -> Message:
    message_type = raw.get("type")
    if message_type is None:
        message_type = MESSAGE_TYPE_UNKNOWN if default_type is None else default_type
    elif not isinstance(message_type, int) or isinstance(message_type, bool):
        raise FormatError(f"message type must be an integer, got {message_type!r}")

    text = raw.get("text")
    bubble_id = raw.get("bubbleId")
    return Message(
        type=message_type,
        text=text if isinstance(text, str) else "",
        bubble_id=bubble_id if isinstance(bubble_id, str) else "",
        relevant_files=_string_list(raw.get("relevantFiles")),
        attached_folders=_string_list(raw.get("attachedFoldersNew")),
        code_blocks=_parse_code_blocks(raw.get("suggestedCodeBlocks")),
        timestamp=raw.get("timestamp"),
    )


def _parse_header(raw: Any) -> MessageHeader:
    if not isinstance(raw, dict) or not isinstance(raw.get("bubbleId"), str):
        raise FormatError(f"invalid conversation header: {raw!r}")

    message_type = raw.get("type")
    if not isinstance(message_type, int) or isinstance(message_type, bool):
        raise FormatError(f"header type must be an integer, got {message_type!r}")

    server_bubble_id = raw.get("serverBubbleId")
    return MessageHeader(
        bubble_id=raw["bubbleId"],
        type=message_type,
        server_bubble_id=server_bubble_id if isinstance(server_bubble_id, str) else None,
    )


def _load_json(raw: str | bytes | dict[str, Any]) -> tuple[Any, int]:
    if isinstance(raw, dict):
        return raw, len(json.dumps(raw))
    if isinstance(raw, bytes):
        raw = raw.decode("utf-8")
    try:
        return json.loads(raw), len(raw)
    except json.JSONDecodeError as e:
        raise FormatError(f"malformed JSON ({e.msg})", cause=e) from e


def _extract_ai_summary(record: dict[str, Any]) -> str | None:
    latest = record.get("latestConversationSummary")
    if not isinstance(latest, dict):
        return None
    summary = latest.get("summary")
    if isinstance(summary, dict) and isinstance(summary.get("summary"), str):
        return summary["summary"]
    return None


def parse_conversation(raw: str | bytes | dict[str, Any]) -> Conversation:
    """Parse and classify one ``composerData`` record.

    Only the fields needed to classify and extract are checked. Unknown
    fields are ignored.
    """
    record, raw_size = _load_json(raw)
    conversation_format = classify(record)
    conversation_id = record["composerId"]

    messages: list[Message] = []
    headers: list[MessageHeader] = []
    try:
        if conversation_format is ConversationFormat.LEGACY:
            messages = [
                _parse_message(item)
                for item in record[LEGACY_MESSAGES_FIELD]
                if isinstance(item, dict)
            ]
        else:
            headers = [_parse_header(item) for item in record[MODERN_HEADERS_FIELD]]
    except FormatError as e:
        raise FormatError(e.reason, conversation_id, cause=e) from e

    name = record.get("name")
    text = record.get("text")
    rich_text = record.get("richText")
    return Conversation(
        conversation_id=conversation_id,
        format=conversation_format,
        messages=messages,
        headers=headers,
        name=name if isinstance(name, str) and name else None,
        text=text if isinstance(text, str) else "",
        rich_text=rich_text if isinstance(rich_text, str) else "",
        ai_summary=_extract_ai_summary(record),
        relevant_files=_string_list(record.get("relevantFiles")),
        attached_folders=_string_list(record.get("attachedFoldersNew")),
        has_loaded=bool(record.get("hasLoaded", False)),
        raw_size=raw_size,
    )


def parse_bubble(
    raw: str | bytes | dict[str, Any],
    bubble_id: str = "",
    default_type: int | None = None,
) -> Message:
    """Parse one ``bubbleId`` record into a Message.

    ``bubble_id`` and ``default_type`` come from the header and fill in
    fields the bubble record itself omits. A bubble without a ``type`` and
    without a header default gets ``MESSAGE_TYPE_UNKNOWN``; only a present,
    non-integer ``type`` is rejected.
    """
    record, _ = _load_json(raw)
    if not isinstance(record, dict):
        raise FormatError(f"bubble must be an object, got {type(record).__name__}")
    message = _parse_message(record, default_type)
    if not message.bubble_id:
        message.bubble_id = bubble_id
    return message


def with_resolved_messages(
    conversation: Conversation, messages: list[Message], resolved_count: int | None = None
) -> Conversation:
    """Return a copy of a modern conversation with resolved bubbles merged in."""
    if conversation.is_legacy:
        return conversation
    return dataclasses.replace(
        conversation,
        messages=list(messages),
        resolved_count=len(messages) if resolved_count is None else resolved_count,
    )


def extract_messages(conversation: Conversation) -> list[Message]:
    """Messages with content; empty for an unresolved modern conversation."""
    if conversation.is_resolved:
        return list(conversation.messages)
    return []


def extract_headers(conversation: Conversation) -> list[MessageHeader]:
    if conversation.format is ConversationFormat.MODERN:
        return list(conversation.headers)
    return []


def _unique(items: list[str]) -> list[str]:
    return list(dict.fromkeys(items))


def extract_files(conversation: Conversation) -> list[str]:
    """Distinct file paths referenced at conversation or message level."""
    files = list(conversation.relevant_files)
    for message in extract_messages(conversation):
        files.extend(message.relevant_files)
    return _unique(files)


def extract_folders(conversation: Conversation) -> list[str]:
    """Distinct attached folder paths at conversation or message level."""
    folders = list(conversation.attached_folders)
    for message in extract_messages(conversation):
        folders.extend(message.attached_folders)
    return _unique(folders)


def extract_code_blocks(conversation: Conversation) -> list[CodeBlock]:
    blocks: list[CodeBlock] = []
    for message in extract_messages(conversation):
        blocks.extend(message.code_blocks)
    return blocks


def parse_timestamp(value: Any) -> datetime | None:
    """Parse an epoch (seconds or milliseconds) or ISO-8601 timestamp."""
    if isinstance(value, bool) or value is None:
        return None

    try:
        if isinstance(value, int | float):
            seconds = value / 1000 if value >= TIMESTAMP_MILLISECOND_THRESHOLD else value
            return datetime.fromtimestamp(seconds, tz=timezone.utc)

        if isinstance(value, str) and value.strip():
            parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
            if parsed.tzinfo is None:
                parsed = parsed.replace(tzinfo=timezone.utc)
            return parsed
    except (ValueError, OverflowError, OSError):
        return None

    return None


def extract_timestamps(conversation: Conversation) -> list[datetime]:
    """Valid message timestamps; only legacy records carry them."""
    if conversation.format is not ConversationFormat.LEGACY:
        return []

    timestamps = []
    for message in conversation.messages:
        parsed = parse_timestamp(message.timestamp)
        if parsed is not None:
            timestamps.append(parsed)
    return timestamps


def normalize_language(language: str | None) -> str:
    """Canonical lowercase language name, ``text`` when unknown."""
    normalized = (language or "").strip().lower()
    if not normalized:
        return "text"
    return LANGUAGE_ALIASES.get(normalized, normalized)


def get_file_extension(file_path: str) -> str:
    """Lowercase extension without the dot, or '' when the name has none."""
    last_dot = file_path.rfind(".")
    last_slash = max(file_path.rfind("/"), file_path.rfind("\\"))
    if last_dot != -1 and last_dot > last_slash:
        return file_path[last_dot + 1 :].lower()
    return ""


def language_from_extension(file_path: str) -> str | None:
    return EXTENSION_LANGUAGES.get(get_file_extension(file_path))


def extract_languages(conversation: Conversation) -> list[str]:
    """Distinct normalized languages of the conversation's code blocks."""
    return _unique(
        [normalize_language(block.language) for block in extract_code_blocks(conversation)]
    )


def get_user_messages(conversation: Conversation) -> list[Message]:
    return [m for m in extract_messages(conversation) if m.type == MESSAGE_TYPE_USER]


def get_assistant_messages(conversation: Conversation) -> list[Message]:
    return [
        m for m in extract_messages(conversation) if m.type == MESSAGE_TYPE_ASSISTANT
    ]


def get_message_count(conversation: Conversation, resolved_only: bool = False) -> int:
    """Message count; with ``resolved_only`` a modern record counts resolved bubbles."""
    if resolved_only and conversation.is_modern:
        return len(extract_messages(conversation))
    return conversation.total_message_count


def get_conversation_size(conversation: Conversation) -> int:
    """Size in bytes of the stored record, not of resolved bubbles."""
    return conversation.raw_size


def detect_summarization_intent(conversation: Conversation) -> bool:
    """True if any message text or stored summary mentions summarizing."""
    texts = [message.text for message in extract_messages(conversation)]
    texts.extend([conversation.text, conversation.rich_text])

    for text in texts:
        lowered = text.lower()
        if any(keyword in lowered for keyword in SUMMARIZATION_KEYWORDS):
            return True
    return False


def _truncate(text: str, max_length: int) -> str:
    if len(text) > max_length:
        return text[:max_length] + "..."
    return text


def build_summary(
    conversation: Conversation, options: SummaryOptions | None = None
) -> ConversationSummary:
    """Summarize a conversation from whatever content is available.

    For modern conversations the counts cover resolved bubbles only;
    ``is_partial`` and ``resolved_count`` say how much that is.
    """
    options = options or SummaryOptions()
    messages = extract_messages(conversation)
    code_blocks = extract_code_blocks(conversation)

    first_message = None
    last_message = None
    if messages:
        if options.include_first_message:
            first_message = _truncate(messages[0].text, options.max_first_message_length)
        if options.include_last_message:
            last_message = messages[-1].text

    return ConversationSummary(
        conversation_id=conversation.conversation_id,
        format=conversation.format,
        message_count=conversation.total_message_count,
        has_code_blocks=bool(code_blocks),
        code_block_count=len(code_blocks),
        relevant_files=extract_files(conversation),
        attached_folders=extract_folders(conversation),
        conversation_size=conversation.raw_size,
        first_message=first_message,
        last_message=last_message,
        stored_summary=conversation.text if options.include_stored_summary else None,
        stored_rich_text=(
            conversation.rich_text if options.include_stored_summary else None
        ),
        title=conversation.name if options.include_title else None,
        ai_summary=conversation.ai_summary if options.include_ai_summary else None,
        resolved_count=conversation.resolved_count,
        is_partial=conversation.is_partial,
    )
