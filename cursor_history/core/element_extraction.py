"""
Structured element extraction from conversations.

Extractors walk inline legacy messages or the resolved bubbles of modern
conversations. For modern conversations the message counts and the
conversation pattern come from the headers, so they cover every message
even when only some bubbles were resolved.
"""

from dataclasses import asdict, dataclass, field
from typing import Any

from cursor_history.config.constants.database import MESSAGE_TYPE_USER
from cursor_history.config.constants.limits import (
    ELEMENT_CONTEXT_LENGTH,
    PROJECT_SEARCH_MIN_SIZE,
)
from cursor_history.core.conversation_service import ConversationService
from cursor_history.core.conversation_types import Conversation, Message
from cursor_history.core.format_normalizer import (
    extract_messages,
    get_file_extension,
    normalize_language,
)
from cursor_history.core.record_store import ConversationFilter
from cursor_history.utils.error_handling import safe_execute
from cursor_history.utils.errors import InvalidParameterError

ELEMENT_TYPES = ("files", "folders", "languages", "codeblocks", "metadata", "structure")
GROUP_BY_VALUES = ("conversation", "element", "flat")


@dataclass
class ExtractionOptions:
    elements: tuple[str, ...] | list[str] = ("files", "codeblocks")
    include_context: bool = False
    group_by: str = "conversation"
    min_code_length: int | None = None
    languages: list[str] | None = None
    file_extensions: list[str] | None = None


@dataclass
class FileElement:
    path: str
    extension: str
    message_type: str
    context: str | None = None


@dataclass
class FolderElement:
    path: str
    context: str | None = None


@dataclass
class LanguageElement:
    language: str
    code_blocks: int
    total_lines: int
    average_length: float


@dataclass
class CodeBlockElement:
    language: str
    code: str
    filename: str | None
    line_count: int
    message_type: str
    context: str | None = None


@dataclass
class MetadataElement:
    message_count: int
    size: int
    format: str
    user_messages: int
    assistant_messages: int
    has_code_blocks: bool
    has_file_references: bool
    resolved_count: int | None = None
    is_partial: bool = False


@dataclass
class MessageFlowItem:
    type: str
    length: int
    has_code: bool


@dataclass
class StructureElement:
    message_flow: list[MessageFlowItem]
    conversation_pattern: str
    average_message_length: float
    longest_message: int


@dataclass
class ConversationElements:
    conversation_id: str
    format: str
    elements: dict[str, Any] = field(default_factory=dict)


def _context(message: Message, options: ExtractionOptions) -> str | None:
    if not options.include_context:
        return None
    return message.text[:ELEMENT_CONTEXT_LENGTH]


def _normalized_languages(options: ExtractionOptions) -> set[str] | None:
    if not options.languages:
        return None
    return {normalize_language(language) for language in options.languages}


def _normalized_extensions(options: ExtractionOptions) -> set[str] | None:
    if not options.file_extensions:
        return None
    return {ext.lower().lstrip(".") for ext in options.file_extensions}


def extract_file_elements(
    conversation: Conversation, options: ExtractionOptions
) -> list[FileElement]:
    extensions = _normalized_extensions(options)
    files = []
    for message in extract_messages(conversation):
        for path in message.relevant_files:
            extension = get_file_extension(path)
            if extensions is not None and extension not in extensions:
                continue
            files.append(
                FileElement(path, extension, message.role, _context(message, options))
            )
    return files


def extract_folder_elements(
    conversation: Conversation, options: ExtractionOptions
) -> list[FolderElement]:
    return [
        FolderElement(folder, _context(message, options))
        for message in extract_messages(conversation)
        for folder in message.attached_folders
    ]


def extract_language_elements(
    conversation: Conversation, options: ExtractionOptions
) -> list[LanguageElement]:
    allowed = _normalized_languages(options)
    totals: dict[str, list[int]] = {}

    for message in extract_messages(conversation):
        for block in message.code_blocks:
            language = normalize_language(block.language)
            if allowed is not None and language not in allowed:
                continue
            # [count, lines, characters]
            entry = totals.setdefault(language, [0, 0, 0])
            entry[0] += 1
            entry[1] += block.line_count
            entry[2] += len(block.code)

    return [
        LanguageElement(language, count, lines, length / count)
        for language, (count, lines, length) in totals.items()
    ]


def extract_code_block_elements(
    conversation: Conversation, options: ExtractionOptions
) -> list[CodeBlockElement]:
    allowed = _normalized_languages(options)
    blocks = []

    for message in extract_messages(conversation):
        for block in message.code_blocks:
            language = normalize_language(block.language)
            if options.min_code_length and len(block.code) < options.min_code_length:
                continue
            if allowed is not None and language not in allowed:
                continue
            blocks.append(
                CodeBlockElement(
                    language=language,
                    code=block.code,
                    filename=block.filename,
                    line_count=block.line_count,
                    message_type=message.role,
                    context=_context(message, options),
                )
            )
    return blocks


def _message_types(conversation: Conversation) -> list[int]:
    if conversation.is_modern:
        return [header.type for header in conversation.headers]
    return [message.type for message in conversation.messages]


def extract_metadata(conversation: Conversation) -> MetadataElement:
    messages = extract_messages(conversation)
    types = _message_types(conversation)
    user_messages = sum(1 for t in types if t == MESSAGE_TYPE_USER)

    return MetadataElement(
        message_count=conversation.total_message_count,
        size=conversation.raw_size,
        format=conversation.format.value,
        user_messages=user_messages,
        assistant_messages=len(types) - user_messages,
        has_code_blocks=any(m.has_code for m in messages),
        has_file_references=any(m.relevant_files for m in messages),
        resolved_count=conversation.resolved_count,
        is_partial=conversation.is_partial,
    )


def extract_structure(conversation: Conversation) -> StructureElement:
    """Message flow in order; unresolved modern bubbles count as empty."""
    if conversation.is_modern:
        resolved = {m.bubble_id: m for m in extract_messages(conversation)}
        flow = []
        for header in conversation.headers:
            message = resolved.get(header.bubble_id)
            flow.append(
                MessageFlowItem(
                    type="user" if header.type == MESSAGE_TYPE_USER else "assistant",
                    length=len(message.text) if message else 0,
                    has_code=message.has_code if message else False,
                )
            )
    else:
        flow = [
            MessageFlowItem(m.role, len(m.text), m.has_code) for m in conversation.messages
        ]

    total_length = sum(item.length for item in flow)
    return StructureElement(
        message_flow=flow,
        conversation_pattern="-".join("U" if i.type == "user" else "A" for i in flow),
        average_message_length=total_length / len(flow) if flow else 0,
        longest_message=max((item.length for item in flow), default=0),
    )


def extract_elements(
    conversation: Conversation, options: ExtractionOptions
) -> ConversationElements:
    """Extract the requested element types from one conversation."""
    extracted: dict[str, Any] = {}
    if "files" in options.elements:
        extracted["files"] = extract_file_elements(conversation, options)
    if "folders" in options.elements:
        extracted["folders"] = extract_folder_elements(conversation, options)
    if "languages" in options.elements:
        extracted["languages"] = extract_language_elements(conversation, options)
    if "codeblocks" in options.elements:
        extracted["codeblocks"] = extract_code_block_elements(conversation, options)
    if "metadata" in options.elements:
        extracted["metadata"] = extract_metadata(conversation)
    if "structure" in options.elements:
        extracted["structure"] = extract_structure(conversation)

    return ConversationElements(
        conversation.conversation_id, conversation.format.value, extracted
    )


def group_elements(
    extracted: list[ConversationElements], options: ExtractionOptions
) -> list[ConversationElements] | dict[str, list[Any]] | list[dict[str, Any]]:
    if options.group_by == "conversation":
        return extracted

    if options.group_by == "element":
        grouped: dict[str, list[Any]] = {}
        for element_type in options.elements:
            grouped[element_type] = []
            for item in extracted:
                value = item.elements.get(element_type)
                if isinstance(value, list):
                    grouped[element_type].extend(value)
                elif value is not None:
                    grouped[element_type].append(value)
        return grouped

    flat: list[dict[str, Any]] = []
    for item in extracted:
        for element_type in options.elements:
            value = item.elements.get(element_type)
            values = value if isinstance(value, list) else [value]
            for element in values:
                if element is None:
                    continue
                flat.append(
                    {
                        **asdict(element),
                        "conversation_id": item.conversation_id,
                        "element_type": element_type,
                    }
                )
    return flat


def extract_conversation_elements(
    conversations: list[Conversation], options: ExtractionOptions | None = None
) -> list[ConversationElements] | dict[str, list[Any]] | list[dict[str, Any]]:
    """Extract elements from many conversations and group the output.

    A conversation whose extraction fails is logged and left out.
    """
    options = options or ExtractionOptions()
    unknown = [e for e in options.elements if e not in ELEMENT_TYPES]
    if unknown:
        raise InvalidParameterError("elements", unknown, ", ".join(ELEMENT_TYPES))
    if options.group_by not in GROUP_BY_VALUES:
        raise InvalidParameterError(
            "group_by", options.group_by, ", ".join(GROUP_BY_VALUES)
        )

    extracted = []
    for conversation in conversations:
        elements, ok = safe_execute(
            f"extracting elements from {conversation.conversation_id}",
            extract_elements,
            conversation,
            options,
        )
        if ok:
            extracted.append(elements)

    return group_elements(extracted, options)


def extract_from_store(
    service: ConversationService,
    conversation_ids: list[str] | None = None,
    options: ExtractionOptions | None = None,
) -> list[ConversationElements] | dict[str, list[Any]] | list[dict[str, Any]]:
    """Extract from stored conversations; defaults to every one over 1000 bytes."""
    if not conversation_ids:
        conversation_ids = service.store.list_identifiers(
            ConversationFilter(min_length=PROJECT_SEARCH_MIN_SIZE)
        )
    return extract_conversation_elements(
        service.get_conversations(conversation_ids), options
    )
