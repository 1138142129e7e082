"""
Aggregate statistics over conversation summaries.

Store order (most recently written first) stands in for time, since modern
records carry no reliable timestamps. Counts for modern conversations cover
resolved bubbles only; ``partial_count`` says how many summaries that
affects.
"""

import math
from dataclasses import dataclass, field
from typing import Any

from cursor_history.config.constants.limits import (
    ANALYTICS_TOP_FILES,
    ANALYTICS_TOP_LANGUAGES,
    LIST_FIRST_MESSAGE_LENGTH,
    SIZE_DISTRIBUTION_BINS,
    SIZE_PERCENTILES,
    TEMPORAL_MAX_BINS,
    TEMPORAL_MIN_BINS,
)
from cursor_history.core.conversation_service import ConversationService
from cursor_history.core.conversation_types import (
    Conversation,
    ConversationSummary,
    SummaryOptions,
)
from cursor_history.core.format_normalizer import (
    build_summary,
    extract_code_blocks,
    get_file_extension,
    normalize_language,
)
from cursor_history.core.record_store import ConversationFilter
from cursor_history.utils.errors import InvalidParameterError, MissingParameterError
from cursor_history.utils.logger import log_debug

ANALYTICS_SCOPES = ("all", "recent", "project")
ANALYTICS_BREAKDOWNS = ("files", "languages", "temporal", "size")
DEFAULT_BREAKDOWNS = ("files", "languages")

# Share of the store, newest first, that the "recent" scope covers
RECENT_SCOPE_FRACTION = 0.3


@dataclass
class AnalyticsOverview:
    total_conversations: int
    total_messages: int
    total_code_blocks: int
    average_conversation_size: float
    average_messages_per_conversation: float
    total_files: int
    total_folders: int
    partial_count: int = 0


@dataclass
class FileBreakdown:
    file: str
    mentions: int
    conversations: list[str]
    extension: str
    # Position of the newest mentioning conversation in store order
    most_recent_index: int


@dataclass
class LanguageBreakdown:
    language: str
    code_blocks: int
    conversations: list[str]
    average_code_length: float


@dataclass
class TemporalBreakdown:
    period: str
    conversation_count: int
    message_count: int
    average_size: int


@dataclass
class SizeBin:
    range: str
    count: int


@dataclass
class SizeDistribution:
    distribution: list[int] = field(default_factory=list)
    percentiles: dict[str, float] = field(default_factory=dict)
    bins: list[SizeBin] = field(default_factory=list)


@dataclass
class ConversationAnalytics:
    overview: AnalyticsOverview
    breakdowns: dict[str, Any]
    scope: dict[str, Any]
    conversation_ids: list[str] = field(default_factory=list)
    conversations: list[dict[str, Any]] = field(default_factory=list)


def format_size(size: float) -> str:
    """Human readable byte size."""
    if size < 1024:
        return f"{round(size)}B"
    if size < 1024 * 1024:
        return f"{size / 1024:.1f}KB"
    if size < 1024 * 1024 * 1024:
        return f"{size / (1024 * 1024):.1f}MB"
    return f"{size / (1024 * 1024 * 1024):.1f}GB"


def calculate_percentile(sorted_values: list[int], percentile: float) -> float:
    """Linearly interpolated percentile of an ascending list."""
    if not sorted_values:
        return 0

    index = (percentile / 100) * (len(sorted_values) - 1)
    lower = math.floor(index)
    upper = math.ceil(index)
    if lower == upper:
        return sorted_values[lower]

    weight = index - lower
    return sorted_values[lower] * (1 - weight) + sorted_values[upper] * weight


def calculate_overview(summaries: list[ConversationSummary]) -> AnalyticsOverview:
    total = len(summaries)
    total_messages = sum(s.message_count for s in summaries)
    total_size = sum(s.conversation_size for s in summaries)

    files: set[str] = set()
    folders: set[str] = set()
    for summary in summaries:
        files.update(summary.relevant_files)
        folders.update(summary.attached_folders)

    return AnalyticsOverview(
        total_conversations=total,
        total_messages=total_messages,
        total_code_blocks=sum(s.code_block_count for s in summaries),
        average_conversation_size=total_size / total if total else 0,
        average_messages_per_conversation=total_messages / total if total else 0,
        total_files=len(files),
        total_folders=len(folders),
        partial_count=sum(1 for s in summaries if s.is_partial),
    )


def calculate_file_breakdown(
    summaries: list[ConversationSummary], top: int = ANALYTICS_TOP_FILES
) -> list[FileBreakdown]:
    """Most mentioned files and folders; each conversation counts once per path."""
    breakdown: dict[str, FileBreakdown] = {}

    for index, summary in enumerate(summaries):
        paths = dict.fromkeys([*summary.relevant_files, *summary.attached_folders])
        for path in paths:
            entry = breakdown.get(path)
            if entry is None:
                entry = FileBreakdown(
                    file=path,
                    mentions=0,
                    conversations=[],
                    extension=get_file_extension(path),
                    most_recent_index=index,
                )
                breakdown[path] = entry
            entry.mentions += 1
            entry.conversations.append(summary.conversation_id)

    ranked = sorted(breakdown.values(), key=lambda entry: entry.mentions, reverse=True)
    return ranked[:top]


def calculate_language_breakdown(
    conversations: list[Conversation], top: int = ANALYTICS_TOP_LANGUAGES
) -> list[LanguageBreakdown]:
    """Code blocks per normalized language."""
    counts: dict[str, int] = {}
    lengths: dict[str, int] = {}
    owners: dict[str, dict[str, None]] = {}

    for conversation in conversations:
        for block in extract_code_blocks(conversation):
            language = normalize_language(block.language)
            counts[language] = counts.get(language, 0) + 1
            lengths[language] = lengths.get(language, 0) + len(block.code)
            owners.setdefault(language, {})[conversation.conversation_id] = None

    ranked = [
        LanguageBreakdown(
            language=language,
            code_blocks=count,
            conversations=list(owners[language]),
            average_code_length=lengths[language] / count,
        )
        for language, count in counts.items()
    ]
    ranked.sort(key=lambda entry: entry.code_blocks, reverse=True)
    return ranked[:top]


def calculate_temporal_breakdown(
    summaries: list[ConversationSummary], conversation_ids: list[str]
) -> list[TemporalBreakdown]:
    """Split conversations in store order into equal-sized periods.

    Period 1 holds the most recently written conversations.
    """
    total = len(conversation_ids)
    bin_count = min(TEMPORAL_MAX_BINS, max(TEMPORAL_MIN_BINS, total // 10))
    per_bin = math.ceil(total / bin_count)
    by_id = {summary.conversation_id: summary for summary in summaries}

    periods = []
    for i in range(bin_count):
        bin_ids = conversation_ids[i * per_bin : (i + 1) * per_bin]
        members = [by_id[cid] for cid in bin_ids if cid in by_id]
        total_size = sum(s.conversation_size for s in members)
        periods.append(
            TemporalBreakdown(
                period=f"Period {i + 1}",
                conversation_count=len(members),
                message_count=sum(s.message_count for s in members),
                average_size=round(total_size / len(members)) if members else 0,
            )
        )
    return periods


def calculate_size_distribution(
    summaries: list[ConversationSummary],
) -> SizeDistribution:
    """Percentiles and equal-width bins over conversation sizes."""
    sizes = sorted(s.conversation_size for s in summaries)
    if not sizes:
        return SizeDistribution()

    percentiles = {
        f"p{p}": calculate_percentile(sizes, p) for p in SIZE_PERCENTILES
    }

    smallest, largest = sizes[0], sizes[-1]
    width = (largest - smallest) / SIZE_DISTRIBUTION_BINS
    # Half-open bins, the last one closed; equal sizes all land in the first
    counts = [0] * SIZE_DISTRIBUTION_BINS
    for size in sizes:
        index = int((size - smallest) / width) if width else 0
        counts[min(index, SIZE_DISTRIBUTION_BINS - 1)] += 1

    bins = []
    for i, count in enumerate(counts):
        start = smallest + i * width
        end = largest if i == SIZE_DISTRIBUTION_BINS - 1 else start + width
        bins.append(SizeBin(f"{format_size(start)} - {format_size(end)}", count))

    return SizeDistribution(distribution=sizes, percentiles=percentiles, bins=bins)


class AnalyticsEngine:
    """Scoped analytics on top of a connected ConversationService."""

    def __init__(self, service: ConversationService):
        self.service = service

    def _scoped_ids(self, scope: str, project_path: str | None) -> list[str]:
        conversation_filter = ConversationFilter()
        if scope == "project":
            conversation_filter.project_path = project_path

        conversation_ids = self.service.store.list_identifiers(conversation_filter)
        if scope == "recent":
            recent_count = math.floor(len(conversation_ids) * RECENT_SCOPE_FRACTION)
            conversation_ids = conversation_ids[:recent_count]
        return conversation_ids

    def get_conversation_analytics(
        self,
        scope: str = "all",
        project_path: str | None = None,
        breakdowns: list[str] | tuple[str, ...] = DEFAULT_BREAKDOWNS,
        include_conversation_details: bool = False,
    ) -> ConversationAnalytics:
        """Overview plus the requested breakdowns for one scope.

        Raises:
            InvalidParameterError: for an unknown scope or breakdown.
            MissingParameterError: for the project scope without a path.
        """
        if scope not in ANALYTICS_SCOPES:
            raise InvalidParameterError("scope", scope, ", ".join(ANALYTICS_SCOPES))
        unknown = [b for b in breakdowns if b not in ANALYTICS_BREAKDOWNS]
        if unknown:
            raise InvalidParameterError(
                "breakdowns", unknown, ", ".join(ANALYTICS_BREAKDOWNS)
            )
        if scope == "project" and not project_path:
            raise MissingParameterError("project_path")

        conversation_ids = self._scoped_ids(scope, project_path)
        conversations = self.service.get_conversations(conversation_ids)
        summary_options = SummaryOptions(max_first_message_length=LIST_FIRST_MESSAGE_LENGTH)
        summaries = [build_summary(c, summary_options) for c in conversations]
        log_debug(
            f"Analytics over {len(summaries)} of {len(conversation_ids)} conversations",
            {"scope": scope},
        )

        results: dict[str, Any] = {}
        if "files" in breakdowns:
            results["files"] = calculate_file_breakdown(summaries)
        if "languages" in breakdowns:
            results["languages"] = calculate_language_breakdown(conversations)
        if "temporal" in breakdowns:
            results["temporal"] = calculate_temporal_breakdown(summaries, conversation_ids)
        if "size" in breakdowns:
            results["size"] = calculate_size_distribution(summaries)

        details = []
        if include_conversation_details:
            details = [
                {
                    "composer_id": s.conversation_id,
                    "message_count": s.message_count,
                    "size": s.conversation_size,
                    "files": s.relevant_files[:2],
                    "has_code_blocks": s.code_block_count > 0,
                    "is_partial": s.is_partial,
                }
                for s in summaries
            ]

        return ConversationAnalytics(
            overview=calculate_overview(summaries),
            breakdowns=results,
            scope={
                "type": scope,
                "project_path": project_path,
                "total_scanned": len(conversation_ids),
            },
            conversation_ids=conversation_ids if include_conversation_details else [],
            conversations=details,
        )
