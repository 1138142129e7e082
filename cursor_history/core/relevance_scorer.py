"""
Relevance scoring of conversations against free-text and project queries.

Scores are sums of weighted path, file, and content matches, so they are
never negative. Each result carries a breakdown of which match types fired,
for explainability. Weights come from the YAML weights file via
``WeightsManager``.

Two scorers share this module:

- ``score`` ranks conversations for a project/path query with fuzzy and
  partial-path fallbacks. Its floor defaults to 0, so "no signal" is a
  true zero.
- ``project_affinity_score`` is the simpler exact/prefix ranking used when
  listing conversations for a known project path. It floors at 1 by
  default, keeping every prefiltered candidate rankable.
"""

import re
from dataclasses import asdict, dataclass, field
from typing import Any

from cursor_history.config.constants import scoring
from cursor_history.config.weights import WeightsConfig, WeightsManager
from cursor_history.core.conversation_types import Conversation
from cursor_history.core.format_normalizer import extract_messages
from cursor_history.utils.logger import log_error

TOKEN_SEPARATORS = re.compile(r"[-_\s]+")


@dataclass(frozen=True)
class ScoringWeights:
    exact_path: float = scoring.DEFAULT_EXACT_PATH_WEIGHT
    partial_path: float = scoring.DEFAULT_PARTIAL_PATH_WEIGHT
    file_path: float = scoring.DEFAULT_FILE_PATH_WEIGHT
    file_name: float = scoring.DEFAULT_FILE_NAME_WEIGHT
    file_fuzzy_multiplier: float = scoring.DEFAULT_FILE_FUZZY_MULTIPLIER
    message_multiplier: float = scoring.DEFAULT_MESSAGE_MULTIPLIER
    content_match: float = scoring.DEFAULT_CONTENT_MATCH_WEIGHT
    fuzzy_substring: float = scoring.DEFAULT_FUZZY_SUBSTRING
    fuzzy_all_tokens: float = scoring.DEFAULT_FUZZY_ALL_TOKENS
    fuzzy_partial_tokens: float = scoring.DEFAULT_FUZZY_PARTIAL_TOKENS
    fuzzy_similarity: float = scoring.DEFAULT_FUZZY_SIMILARITY
    similarity_threshold: float = scoring.DEFAULT_SIMILARITY_THRESHOLD
    affinity_exact_folder: float = scoring.DEFAULT_AFFINITY_EXACT_FOLDER
    affinity_subfolder: float = scoring.DEFAULT_AFFINITY_SUBFOLDER
    affinity_parent_folder: float = scoring.DEFAULT_AFFINITY_PARENT_FOLDER
    affinity_exact_file: float = scoring.DEFAULT_AFFINITY_EXACT_FILE
    affinity_project_file: float = scoring.DEFAULT_AFFINITY_PROJECT_FILE
    affinity_pattern: float = scoring.DEFAULT_AFFINITY_PATTERN
    affinity_message_path: float = scoring.DEFAULT_AFFINITY_MESSAGE_PATH
    affinity_floor: float = scoring.DEFAULT_AFFINITY_FLOOR

    @classmethod
    def from_config(cls, weights_config: WeightsConfig | None = None) -> "ScoringWeights":
        """Read scoring weights from a weights configuration."""
        weights = weights_config or WeightsManager.get_default()
        relevance = weights.get_section_weights("relevance")
        fuzzy = weights.get_section_weights("fuzzy")
        affinity = weights.get_section_weights("affinity")
        defaults = cls()

        def pick(section: dict[str, float], key: str, fallback: float) -> float:
            return section.get(key, fallback)

        return cls(
            exact_path=pick(relevance, "exact_path", defaults.exact_path),
            partial_path=pick(relevance, "partial_path", defaults.partial_path),
            file_path=pick(relevance, "file_path", defaults.file_path),
            file_name=pick(relevance, "file_name", defaults.file_name),
            file_fuzzy_multiplier=pick(
                relevance, "file_fuzzy_multiplier", defaults.file_fuzzy_multiplier
            ),
            message_multiplier=pick(
                relevance, "message_multiplier", defaults.message_multiplier
            ),
            content_match=pick(relevance, "content_match", defaults.content_match),
            fuzzy_substring=pick(fuzzy, "substring", defaults.fuzzy_substring),
            fuzzy_all_tokens=pick(fuzzy, "all_tokens", defaults.fuzzy_all_tokens),
            fuzzy_partial_tokens=pick(
                fuzzy, "partial_tokens", defaults.fuzzy_partial_tokens
            ),
            fuzzy_similarity=pick(fuzzy, "similarity", defaults.fuzzy_similarity),
            similarity_threshold=pick(
                fuzzy, "similarity_threshold", defaults.similarity_threshold
            ),
            affinity_exact_folder=pick(
                affinity, "exact_folder", defaults.affinity_exact_folder
            ),
            affinity_subfolder=pick(affinity, "subfolder", defaults.affinity_subfolder),
            affinity_parent_folder=pick(
                affinity, "parent_folder", defaults.affinity_parent_folder
            ),
            affinity_exact_file=pick(
                affinity, "exact_file", defaults.affinity_exact_file
            ),
            affinity_project_file=pick(
                affinity, "project_file", defaults.affinity_project_file
            ),
            affinity_pattern=pick(affinity, "pattern", defaults.affinity_pattern),
            affinity_message_path=pick(
                affinity, "message_path", defaults.affinity_message_path
            ),
            affinity_floor=pick(affinity, "floor", defaults.affinity_floor),
        )


@dataclass
class ScoreOptions:
    fuzzy_match: bool = True
    partial_paths: bool = True
    include_content: bool = True
    include_files: bool = True
    include_folders: bool = True
    floor: float = 0.0


@dataclass
class MatchDetails:
    exact_path_match: bool = False
    partial_path_match: bool = False
    file_path_match: bool = False
    fuzzy_match: bool = False
    matched_paths: list[str] = field(default_factory=list)
    matched_files: list[str] = field(default_factory=list)


@dataclass
class RelevanceResult:
    score: float
    details: MatchDetails = field(default_factory=MatchDetails)

    def to_dict(self) -> dict[str, Any]:
        return {"score": self.score, "details": asdict(self.details)}


def levenshtein(source: str, target: str) -> int:
    """Classic dynamic-programming edit distance."""
    if len(source) < len(target):
        source, target = target, source
    if not target:
        return len(source)

    previous = list(range(len(target) + 1))
    for i, source_char in enumerate(source, start=1):
        current = [i]
        for j, target_char in enumerate(target, start=1):
            if source_char == target_char:
                current.append(previous[j - 1])
            else:
                current.append(
                    min(previous[j - 1], current[j - 1], previous[j]) + 1
                )
        previous = current
    return previous[-1]


def similarity(first: str, second: str) -> float:
    """Normalized edit similarity in [0, 1]; two empty strings are identical."""
    longest = max(len(first), len(second))
    if longest == 0:
        return 1.0
    return (longest - levenshtein(first, second)) / longest


def tokenize_query(query: str) -> list[str]:
    """Lowercase query tokens split on hyphens, underscores, and whitespace."""
    return [token for token in TOKEN_SEPARATORS.split(query.lower()) if token]


def fuzzy_score(
    text: str,
    query: str,
    tokens: list[str] | None = None,
    weights: ScoringWeights | None = None,
) -> float:
    """Score ``text`` against a lowercase ``query`` with token and edit fallbacks."""
    weights = weights or ScoringWeights()
    if tokens is None:
        tokens = tokenize_query(query)
    text_lower = text.lower()

    if query in text_lower:
        return weights.fuzzy_substring

    if tokens:
        matched = sum(1 for token in tokens if token in text_lower)
        if matched == len(tokens):
            return weights.fuzzy_all_tokens
        if matched:
            return (matched / len(tokens)) * weights.fuzzy_partial_tokens

    ratio = similarity(text_lower, query)
    if ratio > weights.similarity_threshold:
        return ratio * weights.fuzzy_similarity

    return 0.0


def _final_segment(path: str) -> str:
    return path.split("/")[-1] or path


class _Scorer:
    """Accumulates one conversation's score and match breakdown."""

    def __init__(self, query: str, options: ScoreOptions, weights: ScoringWeights):
        self.query = query.lower()
        self.tokens = tokenize_query(query)
        self.options = options
        self.weights = weights
        self.score = 0.0
        self.details = MatchDetails()

    def _fuzzy(self, *texts: str) -> float:
        return max(fuzzy_score(t, self.query, self.tokens, self.weights) for t in texts)

    def add_folders(self, folders: list[str], multiplier: float) -> None:
        for folder in folders:
            name = _final_segment(folder)
            folder_lower = folder.lower()
            name_lower = name.lower()

            if self.query in (folder_lower, name_lower):
                self.score += self.weights.exact_path * multiplier
                self.details.exact_path_match = True
                self.details.matched_paths.append(folder)
            elif self.options.partial_paths and (
                self.query in folder_lower or self.query in name_lower
            ):
                self.score += self.weights.partial_path * multiplier
                self.details.partial_path_match = True
                self.details.matched_paths.append(folder)
            elif self.options.fuzzy_match:
                credit = self._fuzzy(folder, name)
                if credit > 0:
                    self.score += credit * multiplier
                    self.details.fuzzy_match = True
                    self.details.matched_paths.append(folder)

    def add_files(self, files: list[str], multiplier: float) -> None:
        for file_path in files:
            name = _final_segment(file_path)

            if self.query in file_path.lower():
                self.score += self.weights.file_path * multiplier
                self.details.file_path_match = True
                self.details.matched_files.append(file_path)
            elif self.query in name.lower():
                self.score += self.weights.file_name * multiplier
                self.details.file_path_match = True
                self.details.matched_files.append(file_path)
            elif self.options.fuzzy_match:
                credit = self._fuzzy(file_path, name)
                if credit > 0:
                    self.score += credit * self.weights.file_fuzzy_multiplier * multiplier
                    self.details.fuzzy_match = True
                    self.details.matched_files.append(file_path)

    def add_content(self, text: str) -> None:
        if self.options.include_content and self.query in text.lower():
            self.score += self.weights.content_match


def score(
    conversation: Conversation,
    query: str,
    options: ScoreOptions | None = None,
    weights: ScoringWeights | None = None,
) -> RelevanceResult:
    """Score a conversation against a project or path query.

    Top-level folders and files count at full weight. Per-message folders
    and files (inline for legacy, resolved bubbles for modern) count at the
    message multiplier. An unresolved modern conversation is scored on its
    top-level fields only.
    """
    options = options or ScoreOptions()
    if not query or not query.strip():
        return RelevanceResult(score=max(0.0, options.floor))

    try:
        scorer = _Scorer(query.strip(), options, weights or ScoringWeights.from_config())
        if options.include_folders:
            scorer.add_folders(conversation.attached_folders, 1.0)
        if options.include_files:
            scorer.add_files(conversation.relevant_files, 1.0)

        message_multiplier = scorer.weights.message_multiplier
        for message in extract_messages(conversation):
            if options.include_folders:
                scorer.add_folders(message.attached_folders, message_multiplier)
            if options.include_files:
                scorer.add_files(message.relevant_files, message_multiplier)
            scorer.add_content(message.text)
    except (AttributeError, TypeError, ValueError) as e:
        # Scoring degrades to "no signal" rather than failing the caller
        log_error(e, f"scoring conversation {conversation.conversation_id}")
        return RelevanceResult(score=max(0.0, options.floor))

    return RelevanceResult(
        score=max(scorer.score, options.floor, 0.0), details=scorer.details
    )


def _glob_to_regex(pattern: str) -> re.Pattern[str]:
    parts = []
    for char in pattern:
        if char == "*":
            parts.append(".*")
        elif char == "?":
            parts.append(".")
        else:
            parts.append(re.escape(char))
    return re.compile("".join(parts))


def project_affinity_score(
    conversation: Conversation,
    project_path: str,
    file_pattern: str | None = None,
    exact_file_path: str | None = None,
    floor: float | None = None,
    weights: ScoringWeights | None = None,
) -> float:
    """Rank a conversation's affinity to a known project path.

    Exact folder, subfolder, and parent folder matches count most, then
    exact file and in-project files, then glob pattern hits and
    per-message paths. Floors at ``weights.affinity_floor`` (1) unless an
    explicit ``floor`` is passed.
    """
    weights = weights or ScoringWeights.from_config()
    if floor is None:
        floor = weights.affinity_floor

    project_prefix = project_path.rstrip("/") + "/"
    pattern = _glob_to_regex(file_pattern) if file_pattern else None
    total = 0.0

    for folder in conversation.attached_folders:
        if folder == project_path:
            total += weights.affinity_exact_folder
        elif folder.startswith(project_prefix):
            total += weights.affinity_subfolder
        elif project_path.startswith(folder.rstrip("/") + "/"):
            total += weights.affinity_parent_folder

    for file_path in conversation.relevant_files:
        if exact_file_path and file_path == exact_file_path:
            total += weights.affinity_exact_file
        elif file_path.startswith(project_prefix):
            total += weights.affinity_project_file

        if pattern is not None and pattern.search(file_path):
            total += weights.affinity_pattern

    for message in extract_messages(conversation):
        for folder in message.attached_folders:
            if folder.startswith(project_path):
                total += weights.affinity_message_path
        for file_path in message.relevant_files:
            if file_path.startswith(project_prefix):
                total += weights.affinity_message_path

    return max(total, floor)
