"""
Conversation retrieval engine.

``ConversationService`` owns one read-only store handle, one result cache and
one bubble resolver. Every query runs in two phases: a syntactic prefilter in
SQL over the raw record text, then parsing, resolution and re-checking in
Python. Records that fail to parse are logged and skipped so batch
operations return partial results instead of failing.
"""

from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from cursor_history.config.constants.cache import CONVERSATION_CACHE_KEY
from cursor_history.config.constants.database import SEARCH_TYPE_PATTERNS
from cursor_history.config.constants.limits import (
    DEFAULT_CONTEXT_LINES,
    DEFAULT_LIST_LIMIT,
    DEFAULT_MIN_RELEVANCE_SCORE,
    DEFAULT_PROJECT_SEARCH_LIMIT,
    DEFAULT_RECENT_LIMIT,
    LIST_FIRST_MESSAGE_LENGTH,
    MAX_SEARCH_RESULTS,
    PROJECT_FIRST_MESSAGE_LENGTH,
    PROJECT_SEARCH_MIN_SIZE,
    SEARCH_FALLBACK_CONTEXT_LENGTH,
    STATS_TOP_ITEMS,
)
from cursor_history.config.engine_config import EngineConfig
from cursor_history.core.bubble_resolver import BubbleResolver
from cursor_history.core.conversation_types import (
    CodeBlock,
    Conversation,
    ConversationSummary,
    Message,
    SummaryOptions,
)
from cursor_history.core.format_normalizer import (
    build_summary,
    extract_files,
    extract_folders,
    extract_messages,
    extract_timestamps,
    parse_conversation,
    parse_timestamp,
)
from cursor_history.core.record_store import (
    ConversationFilter,
    CursorDiskStore,
    sanitize_search_query,
)
from cursor_history.core.relevance_scorer import (
    RelevanceResult,
    ScoreOptions,
    project_affinity_score,
    score,
)
from cursor_history.utils.error_handling import RECORD_ERRORS, handle_record_errors
from cursor_history.utils.errors import InvalidParameterError, ValidationError
from cursor_history.utils.logger import log_debug, log_error, log_info
from cursor_history.utils.result_cache import ResultCache

SEARCH_TYPES = ("all", *SEARCH_TYPE_PATTERNS)
ORDER_BY_VALUES = ("relevance", "recency")

LIKE_ONLY_MATCH_TEXT = "Pattern match found in conversation data"
LIKE_ONLY_MATCH_CONTEXT = "LIKE pattern matched conversation content"


@dataclass
class ListOptions:
    """Listing filters plus presentation options."""

    limit: int = DEFAULT_LIST_LIMIT
    min_length: int | None = None
    format: str | None = None
    has_code_blocks: bool = False
    keywords: list[str] = field(default_factory=list)
    keyword_operator: str = "OR"
    project_path: str | None = None
    file_pattern: str | None = None
    relevant_files: list[str] = field(default_factory=list)
    include_ai_summaries: bool = True
    start_date: str | datetime | None = None
    end_date: str | datetime | None = None

    def to_filter(self, limit: int | None = None) -> ConversationFilter:
        return ConversationFilter(
            min_length=self.min_length,
            format=self.format,
            project_path=self.project_path,
            file_pattern=self.file_pattern,
            relevant_files=list(self.relevant_files),
            has_code_blocks=self.has_code_blocks,
            keywords=list(self.keywords),
            keyword_operator=self.keyword_operator,
            limit=limit,
        )


@dataclass
class ConversationListResult:
    conversations: list[ConversationSummary]
    total_found: int


@dataclass
class ProjectListOptions:
    file_pattern: str | None = None
    exact_file_path: str | None = None
    order_by: str = "recency"
    limit: int = DEFAULT_PROJECT_SEARCH_LIMIT
    format: str | None = None


@dataclass
class SearchOptions:
    query: str | None = None
    keywords: list[str] = field(default_factory=list)
    keyword_operator: str = "OR"
    like_pattern: str | None = None
    search_type: str = "all"
    max_results: int = DEFAULT_LIST_LIMIT
    include_code: bool = True
    context_lines: int = DEFAULT_CONTEXT_LINES
    search_bubbles: bool = True
    format: str | None = None
    start_date: str | datetime | None = None
    end_date: str | datetime | None = None


@dataclass
class SearchMatch:
    message_index: int
    text: str
    context: str
    type: int
    bubble_id: str | None = None
    code_blocks: list[CodeBlock] = field(default_factory=list)


@dataclass
class SearchResult:
    conversation_id: str
    format: str
    matches: list[SearchMatch]
    relevant_files: list[str]
    attached_folders: list[str]
    # True when a modern conversation was searched over a bounded subset of bubbles
    is_partial: bool = False


@dataclass
class ProjectSearchOptions:
    fuzzy_match: bool = True
    include_partial_paths: bool = True
    include_file_content: bool = False
    include_files: bool = True
    include_folders: bool = True
    min_relevance_score: float = DEFAULT_MIN_RELEVANCE_SCORE
    order_by: str = "relevance"
    limit: int = DEFAULT_PROJECT_SEARCH_LIMIT
    include_debug_info: bool = False


@dataclass
class ProjectSearchMatch:
    summary: ConversationSummary
    relevance: RelevanceResult

    @property
    def relevance_score(self) -> float:
        return self.relevance.score


@dataclass
class ProjectSearchResult:
    conversations: list[ProjectSearchMatch]
    total_found: int
    search_query: str
    debug_info: dict[str, Any] | None = None


@dataclass
class ConversationStats:
    total_conversations: int
    legacy_format_count: int
    modern_format_count: int
    average_conversation_size: int
    total_conversations_with_code: int
    most_common_files: list[tuple[str, int]]
    most_common_folders: list[tuple[str, int]]


def _coerce_date(value: str | datetime | None, name: str) -> datetime | None:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    parsed = parse_timestamp(value)
    if parsed is None:
        raise InvalidParameterError(name, value, "an ISO-8601 date")
    return parsed


def is_within_date_range(
    conversation: Conversation,
    start: datetime | None = None,
    end: datetime | None = None,
) -> bool:
    """Check a conversation against an optional date range.

    Only legacy messages carry timestamps. Modern conversations, and legacy
    ones without any valid timestamp, are always included. A legacy
    conversation with timestamps is included when at least one falls in
    the range.
    """
    if start is None and end is None:
        return True
    if conversation.is_modern:
        return True

    timestamps = extract_timestamps(conversation)
    if not timestamps:
        return True

    lower = start or datetime.fromtimestamp(0, tz=timezone.utc)
    upper = end or datetime.now(timezone.utc)
    return any(lower <= timestamp <= upper for timestamp in timestamps)


def extract_context(text: str, query: str, context_lines: int) -> str:
    """Lines around the first line containing ``query``, else a prefix of the text."""
    lines = text.split("\n")
    query_lower = query.lower()

    for index, line in enumerate(lines):
        if query_lower in line.lower():
            start = max(0, index - context_lines)
            return "\n".join(lines[start : index + context_lines + 1])

    return text[:SEARCH_FALLBACK_CONTEXT_LENGTH] + "..."


class ConversationService:
    """Engine façade over one chat-history store."""

    def __init__(self, config: EngineConfig):
        self.config = config
        self.store = CursorDiskStore(
            config.db_path,
            min_conversation_size=config.min_conversation_size,
            max_conversations=config.max_conversations,
        )
        self.cache: ResultCache | None = (
            ResultCache(config.cache) if config.cache_enabled else None
        )
        self.resolver = BubbleResolver(
            self.store, self.cache, default_limit=config.bubble_resolution_limit
        )

    @classmethod
    def from_path(cls, db_path: str, **overrides: Any) -> "ConversationService":
        return cls(EngineConfig(db_path=db_path, **overrides))

    def connect(self) -> None:
        """Open the store. Raises StoreConnectionError on failure."""
        self.store.connect()

    def close(self) -> None:
        """Close the store and stop the cache sweep."""
        self.store.close()
        if self.cache is not None:
            self.cache.destroy()

    def __enter__(self) -> "ConversationService":
        self.connect()
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()

    # Point lookups

    def _load_conversation(self, conversation_id: str) -> Conversation | None:
        cache_key = CONVERSATION_CACHE_KEY.format(conversation_id=conversation_id)
        if self.cache is not None:
            cached = self.cache.get(cache_key)
            if cached is not None:
                return cached

        raw = self.store.get_by_id(conversation_id)
        if raw is None:
            return None

        conversation = parse_conversation(raw)
        if self.cache is not None:
            self.cache.set(cache_key, conversation)
        return conversation

    def get_conversation(
        self, conversation_id: str, resolve_bubbles: bool | None = None
    ) -> Conversation | None:
        """Fetch one conversation, resolving modern bubbles up to the bound.

        Returns None when the id does not exist or the record cannot be
        parsed.
        """
        try:
            conversation = self._load_conversation(conversation_id)
        except RECORD_ERRORS as e:
            log_error(e, f"loading conversation {conversation_id}")
            return None

        if conversation is None:
            return None

        if resolve_bubbles is None:
            resolve_bubbles = self.config.resolve_bubbles_automatically
        if resolve_bubbles and conversation.is_modern:
            conversation = self.resolver.resolve_conversation(conversation)
        return conversation

    def get_conversations(
        self, conversation_ids: list[str], resolve_bubbles: bool | None = None
    ) -> list[Conversation]:
        """Fetch several conversations, skipping missing or unparsable ones."""
        conversations = []
        for conversation_id in conversation_ids:
            conversation = self.get_conversation(conversation_id, resolve_bubbles)
            if conversation is not None:
                conversations.append(conversation)
        return conversations

    def get_conversation_summary(
        self, conversation_id: str, options: SummaryOptions | None = None
    ) -> ConversationSummary | None:
        conversation = self.get_conversation(conversation_id)
        if conversation is None:
            return None
        return build_summary(conversation, options)

    def get_conversation_summaries(
        self, conversation_ids: list[str], options: SummaryOptions | None = None
    ) -> list[ConversationSummary]:
        summaries = []
        for conversation_id in conversation_ids:
            summary = self.get_conversation_summary(conversation_id, options)
            if summary is not None:
                summaries.append(summary)
        return summaries

    @handle_record_errors("bubble_message")
    def get_bubble_message(self, conversation_id: str, message_id: str) -> Message | None:
        return self.resolver.get_message(conversation_id, message_id)

    # Listings

    def get_conversation_ids(self, options: ListOptions | None = None) -> list[str]:
        options = options or ListOptions()
        return self.store.list_identifiers(options.to_filter(limit=options.limit))

    def list_conversations(
        self, options: ListOptions | None = None
    ) -> ConversationListResult:
        """List conversation summaries, most recently written first.

        ``total_found`` counts every prefilter hit before the limit and the
        date range are applied.
        """
        options = options or ListOptions()
        start = _coerce_date(options.start_date, "start_date")
        end = _coerce_date(options.end_date, "end_date")

        conversation_ids = self.store.list_identifiers(options.to_filter())
        summary_options = SummaryOptions(
            max_first_message_length=LIST_FIRST_MESSAGE_LENGTH,
            include_ai_summary=options.include_ai_summaries,
        )

        summaries = []
        for conversation_id in conversation_ids[: max(options.limit, 0)]:
            conversation = self.get_conversation(conversation_id)
            if conversation is None:
                continue
            if not is_within_date_range(conversation, start, end):
                continue
            summaries.append(build_summary(conversation, summary_options))

        return ConversationListResult(summaries, len(conversation_ids))

    def get_recent_conversations(
        self,
        limit: int = DEFAULT_RECENT_LIMIT,
        format: str | None = None,
        include_empty: bool = False,
        summary_options: SummaryOptions | None = None,
    ) -> ConversationListResult:
        """Most recently written conversations, filtered by format and size only."""
        conversation_filter = ConversationFilter(
            min_length=0 if include_empty else None, format=format
        )
        conversation_ids = self.store.list_identifiers(conversation_filter)
        summaries = self.get_conversation_summaries(
            conversation_ids[: max(limit, 0)], summary_options
        )
        return ConversationListResult(summaries, len(conversation_ids))

    def get_conversations_by_project(
        self, project_path: str, options: ProjectListOptions | None = None
    ) -> list[tuple[str, float]]:
        """Conversations attached to a project path, with affinity scores.

        Scores use the top-level fields and any inline legacy messages; modern
        bubbles are not resolved for this ranking.
        """
        options = options or ProjectListOptions()
        if not project_path:
            raise ValidationError("project_path is required", "project_path")
        if options.order_by not in ORDER_BY_VALUES:
            raise InvalidParameterError(
                "order_by", options.order_by, " or ".join(ORDER_BY_VALUES)
            )

        conversation_filter = ConversationFilter(
            format=options.format,
            project_path=project_path,
            file_pattern=options.file_pattern,
            relevant_files=[options.exact_file_path] if options.exact_file_path else [],
            limit=options.limit,
        )

        results: list[tuple[str, float]] = []
        for record in self.store.list_records(conversation_filter):
            try:
                conversation = parse_conversation(record.value)
            except RECORD_ERRORS as e:
                log_error(e, f"scoring conversation {record.conversation_id}")
                continue
            affinity = project_affinity_score(
                conversation,
                project_path,
                file_pattern=options.file_pattern,
                exact_file_path=options.exact_file_path,
            )
            results.append((record.conversation_id, affinity))

        if options.order_by == "relevance":
            results.sort(key=lambda item: item[1], reverse=True)
        return results

    # Search

    def _search_groups(self, options: SearchOptions) -> list[tuple[str, ...]]:
        groups: list[tuple[str, ...]] = []

        if options.query:
            patterns = SEARCH_TYPE_PATTERNS.get(options.search_type)
            if patterns:
                groups.extend((pattern,) for pattern in patterns)
            else:
                groups.append((f"%{options.query}%",))

        if options.keywords:
            keyword_patterns = tuple(f"%{keyword}%" for keyword in options.keywords)
            if options.keyword_operator.upper() == "AND":
                groups.append(keyword_patterns)
            else:
                groups.extend((pattern,) for pattern in keyword_patterns)

        if options.like_pattern:
            groups.append((options.like_pattern,))

        return groups

    def _match_messages(
        self,
        messages: list[Message],
        terms: list[str],
        options: SearchOptions,
    ) -> list[SearchMatch]:
        matches = []
        lowered_terms = [term.lower() for term in terms]
        for index, message in enumerate(messages):
            text_lower = message.text.lower()
            for term, lowered in zip(terms, lowered_terms):
                if lowered in text_lower:
                    matches.append(
                        SearchMatch(
                            message_index=index,
                            text=message.text,
                            context=extract_context(
                                message.text, term, options.context_lines
                            ),
                            type=message.type,
                            bubble_id=message.bubble_id or None,
                            code_blocks=(
                                list(message.code_blocks) if options.include_code else []
                            ),
                        )
                    )
                    # One match per message
                    break
        return matches

    def _search_by_date(
        self,
        format: str | None,
        start: datetime | None,
        end: datetime | None,
        max_results: int,
    ) -> list[SearchResult]:
        conversation_ids = self.store.list_identifiers(
            ConversationFilter(format=format, limit=max_results * 2)
        )

        results: list[SearchResult] = []
        for conversation_id in conversation_ids:
            conversation = self.get_conversation(conversation_id)
            if conversation is None or not is_within_date_range(conversation, start, end):
                continue

            results.append(
                SearchResult(
                    conversation_id=conversation_id,
                    format=conversation.format.value,
                    matches=[],
                    relevant_files=extract_files(conversation),
                    attached_folders=extract_folders(conversation),
                    is_partial=conversation.is_partial,
                )
            )
            if len(results) >= max_results:
                break

        log_debug(f"Date-only search found {len(results)} conversations")
        return results

    def search_conversations(self, options: SearchOptions) -> list[SearchResult]:
        """Search conversations by query, keywords and/or a raw LIKE pattern.

        The criteria are ORed at the prefilter stage. Messages are then
        matched against the query and keywords; a LIKE-only search reports
        one placeholder match per prefiltered conversation. Modern
        conversations are searched only with ``search_bubbles`` and only
        over their resolved bubbles.

        With no query, keywords or LIKE pattern but a date range, the most
        recent ``max_results * 2`` conversations are checked against the range
        and returned without matches.

        Raises:
            ValidationError: if no criteria are given or a term is invalid.
        """
        query = sanitize_search_query(options.query) if options.query else None
        keywords = [sanitize_search_query(keyword) for keyword in options.keywords]
        has_text_criteria = bool(query or keywords or options.like_pattern)
        if not has_text_criteria and not (options.start_date or options.end_date):
            raise ValidationError(
                "At least one of query, keywords, like_pattern or a date range "
                "is required"
            )
        if options.search_type not in SEARCH_TYPES:
            raise InvalidParameterError(
                "search_type", options.search_type, ", ".join(SEARCH_TYPES)
            )

        start = _coerce_date(options.start_date, "start_date")
        end = _coerce_date(options.end_date, "end_date")
        max_results = min(max(options.max_results, 1), MAX_SEARCH_RESULTS)
        if not has_text_criteria:
            return self._search_by_date(options.format, start, end, max_results)

        normalized = SearchOptions(
            query=query,
            keywords=keywords,
            keyword_operator=options.keyword_operator,
            like_pattern=options.like_pattern,
            search_type=options.search_type,
            max_results=max_results,
            include_code=options.include_code,
            context_lines=options.context_lines,
            search_bubbles=options.search_bubbles,
            format=options.format,
        )
        conversation_filter = ConversationFilter(
            format=options.format,
            content_groups=self._search_groups(normalized),
            limit=max_results,
        )
        terms = ([query] if query else []) + keywords

        results = []
        for record in self.store.list_records(conversation_filter):
            try:
                conversation = parse_conversation(record.value)
            except RECORD_ERRORS as e:
                log_error(e, f"searching conversation {record.conversation_id}")
                continue

            if not is_within_date_range(conversation, start, end):
                continue

            if conversation.is_modern and options.search_bubbles:
                conversation = self.resolver.resolve_conversation(conversation)

            if terms:
                matches = self._match_messages(
                    extract_messages(conversation), terms, normalized
                )
            else:
                matches = [
                    SearchMatch(
                        message_index=0,
                        text=LIKE_ONLY_MATCH_TEXT,
                        context=LIKE_ONLY_MATCH_CONTEXT,
                        type=1,
                    )
                ]

            if matches:
                results.append(
                    SearchResult(
                        conversation_id=conversation.conversation_id,
                        format=conversation.format.value,
                        matches=matches,
                        relevant_files=extract_files(conversation),
                        attached_folders=extract_folders(conversation),
                        is_partial=conversation.is_partial,
                    )
                )

        log_debug(f"Search found {len(results)} conversations", {"terms": terms})
        return results

    def search_by_project(
        self, project_query: str, options: ProjectSearchOptions | None = None
    ) -> ProjectSearchResult:
        """Rank every conversation against a project name or path.

        Modern conversations are scored over their first bubbles, up to the
        configured resolution bound.
        """
        options = options or ProjectSearchOptions()
        project_query = sanitize_search_query(project_query)
        if options.order_by not in ORDER_BY_VALUES:
            raise InvalidParameterError(
                "order_by", options.order_by, " or ".join(ORDER_BY_VALUES)
            )

        score_options = ScoreOptions(
            fuzzy_match=options.fuzzy_match,
            partial_paths=options.include_partial_paths,
            include_content=options.include_file_content,
            include_files=options.include_files,
            include_folders=options.include_folders,
        )
        summary_options = SummaryOptions(
            max_first_message_length=PROJECT_FIRST_MESSAGE_LENGTH
        )
        distribution = {"exactPath": 0, "partialPath": 0, "filePath": 0, "fuzzy": 0}

        conversation_ids = self.store.list_identifiers(
            ConversationFilter(min_length=PROJECT_SEARCH_MIN_SIZE)
        )
        matches: list[ProjectSearchMatch] = []
        for conversation_id in conversation_ids:
            conversation = self.get_conversation(conversation_id, resolve_bubbles=True)
            if conversation is None:
                continue

            relevance = score(conversation, project_query, score_options)
            if relevance.score < options.min_relevance_score:
                continue

            details = relevance.details
            distribution["exactPath"] += int(details.exact_path_match)
            distribution["partialPath"] += int(details.partial_path_match)
            distribution["filePath"] += int(details.file_path_match)
            distribution["fuzzy"] += int(details.fuzzy_match)

            matches.append(
                ProjectSearchMatch(build_summary(conversation, summary_options), relevance)
            )

        if options.order_by == "relevance":
            matches.sort(key=lambda match: match.relevance_score, reverse=True)

        debug_info = None
        if options.include_debug_info:
            debug_info = {
                "totalConversationsScanned": len(conversation_ids),
                "averageRelevanceScore": (
                    sum(m.relevance_score for m in matches) / len(matches)
                    if matches
                    else 0
                ),
                "matchTypeDistribution": distribution,
            }

        log_info(
            f"Project search for '{project_query}' matched {len(matches)} conversations"
        )
        return ProjectSearchResult(
            conversations=matches[: max(options.limit, 0)],
            total_found=len(matches),
            search_query=project_query,
            debug_info=debug_info,
        )

    # Statistics

    def get_conversation_stats(self) -> ConversationStats:
        """Counts and most common paths over all prefiltered conversations.

        File, folder and code statistics come from legacy messages only;
        modern conversations are counted without resolving their bubbles.
        """
        legacy_count = 0
        modern_count = 0
        total_size = 0
        with_code = 0
        file_counts: Counter[str] = Counter()
        folder_counts: Counter[str] = Counter()

        for record in self.store.list_records():
            try:
                conversation = parse_conversation(record.value)
            except RECORD_ERRORS as e:
                log_error(e, f"reading stats for {record.conversation_id}")
                continue

            total_size += record.size

            if conversation.is_modern:
                modern_count += 1
                continue

            legacy_count += 1
            if any(message.has_code for message in conversation.messages):
                with_code += 1
            for message in conversation.messages:
                file_counts.update(message.relevant_files)
                folder_counts.update(message.attached_folders)

        total = legacy_count + modern_count
        return ConversationStats(
            total_conversations=total,
            legacy_format_count=legacy_count,
            modern_format_count=modern_count,
            average_conversation_size=round(total_size / total) if total else 0,
            total_conversations_with_code=with_code,
            most_common_files=file_counts.most_common(STATS_TOP_ITEMS),
            most_common_folders=folder_counts.most_common(STATS_TOP_ITEMS),
        )
