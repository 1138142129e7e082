"""
Related-conversation discovery.

Conversations are compared on shared files, folders and code languages,
size similarity and distance in store order. Each relationship type
contributes a score in [0, 1]; the composite is their weighted mean over the
requested types only.
"""

from dataclasses import dataclass, field
from typing import Any

from cursor_history.config.constants.limits import LIST_FIRST_MESSAGE_LENGTH
from cursor_history.config.constants.scoring import (
    DEFAULT_RELATIONSHIP_WEIGHTS,
    RELATIONSHIP_CAPS,
)
from cursor_history.config.weights import WeightsConfig, WeightsManager
from cursor_history.core.conversation_service import ConversationService
from cursor_history.core.conversation_types import (
    Conversation,
    ConversationSummary,
    SummaryOptions,
)
from cursor_history.core.format_normalizer import (
    build_summary,
    extract_code_blocks,
    normalize_language,
)
from cursor_history.core.record_store import ConversationFilter
from cursor_history.utils.errors import ConversationNotFoundError, InvalidParameterError

RELATIONSHIP_TYPES = ("files", "folders", "languages", "size", "temporal")
NO_PREVIEW = "No preview available"


@dataclass
class RelationshipOptions:
    relationship_types: tuple[str, ...] | list[str] = ("files",)
    max_results: int = 10
    threshold: float = 0.1
    include_scores: bool = False


@dataclass
class RelationshipScore:
    shared_files: list[str] | None = None
    shared_folders: list[str] | None = None
    shared_languages: list[str] | None = None
    size_similarity: float | None = None
    temporal_proximity: float | None = None


@dataclass
class RelatedConversation:
    conversation_id: str
    relationship_score: float
    relationships: RelationshipScore
    summary: str
    reasons: list[str] = field(default_factory=list)
    score_breakdown: dict[str, float] | None = None


@dataclass
class ConversationProfile:
    """The parts of a conversation that relationships compare."""

    summary: ConversationSummary
    languages: list[str]

    @property
    def conversation_id(self) -> str:
        return self.summary.conversation_id


@dataclass
class RelatedConversationsResult:
    reference: dict[str, Any]
    related: list[RelatedConversation]


def languages_from_code_blocks(conversation: Conversation) -> list[str]:
    """Distinct normalized languages of explicitly tagged code blocks."""
    languages = [
        normalize_language(block.language)
        for block in extract_code_blocks(conversation)
        if block.language.strip()
    ]
    return list(dict.fromkeys(languages))


def build_profile(conversation: Conversation) -> ConversationProfile:
    summary = build_summary(
        conversation, SummaryOptions(max_first_message_length=LIST_FIRST_MESSAGE_LENGTH)
    )
    return ConversationProfile(summary, languages_from_code_blocks(conversation))


def shared_items(reference: list[str], candidate: list[str]) -> list[str]:
    present = set(reference)
    return [item for item in candidate if item in present]


def size_similarity(first: int, second: int) -> float:
    if first == 0 and second == 0:
        return 1.0
    if first == 0 or second == 0:
        return 0.0
    return min(first, second) / max(first, second)


def temporal_proximity(first_index: int, second_index: int, total: int) -> float:
    """1 for neighbours in store order, falling linearly to 0 at the far end."""
    if first_index == -1 or second_index == -1:
        return 0.0
    max_distance = total - 1
    if max_distance == 0:
        return 1.0
    return 1 - abs(first_index - second_index) / max_distance


def _relationship_weights(weights_config: WeightsConfig | None) -> dict[str, float]:
    weights = weights_config or WeightsManager.get_default()
    configured = weights.get_section_weights("relationships")
    return {
        name: configured.get(name, default)
        for name, default in DEFAULT_RELATIONSHIP_WEIGHTS.items()
    }


def score_breakdown(
    relationships: RelationshipScore, relationship_types: list[str] | tuple[str, ...]
) -> dict[str, float]:
    """Per-type scores in [0, 1] for the requested types."""
    breakdown: dict[str, float] = {}

    if "files" in relationship_types and relationships.shared_files is not None:
        breakdown["files"] = min(
            len(relationships.shared_files) / RELATIONSHIP_CAPS["files"], 1
        )
    if "folders" in relationship_types and relationships.shared_folders is not None:
        breakdown["folders"] = min(
            len(relationships.shared_folders) / RELATIONSHIP_CAPS["folders"], 1
        )
    if "languages" in relationship_types and relationships.shared_languages is not None:
        breakdown["languages"] = min(
            len(relationships.shared_languages) / RELATIONSHIP_CAPS["languages"], 1
        )
    if "size" in relationship_types and relationships.size_similarity is not None:
        breakdown["size"] = relationships.size_similarity
    if "temporal" in relationship_types and relationships.temporal_proximity is not None:
        breakdown["temporal"] = relationships.temporal_proximity

    return breakdown


def composite_score(
    breakdown: dict[str, float], weights: dict[str, float] | None = None
) -> float:
    """Weighted mean of the per-type scores, normalized by the weights used."""
    weights = weights or dict(DEFAULT_RELATIONSHIP_WEIGHTS)
    total = 0.0
    weight_sum = 0.0
    for name, value in breakdown.items():
        total += value * weights[name]
        weight_sum += weights[name]
    return total / weight_sum if weight_sum > 0 else 0.0


def _plural(count: int, noun: str) -> str:
    return f"{count} shared {noun}" + ("" if count == 1 else "s")


def describe_relationships(relationships: RelationshipScore) -> list[str]:
    """Human-readable reasons, e.g. "3 shared files"."""
    reasons = []
    if relationships.shared_files:
        reasons.append(_plural(len(relationships.shared_files), "file"))
    if relationships.shared_folders:
        reasons.append(_plural(len(relationships.shared_folders), "folder"))
    if relationships.shared_languages:
        reasons.append(_plural(len(relationships.shared_languages), "language"))
    if relationships.size_similarity:
        reasons.append(f"similar size ({relationships.size_similarity:.0%})")
    if relationships.temporal_proximity:
        reasons.append(f"close in time ({relationships.temporal_proximity:.0%})")
    return reasons


def calculate_relationships(
    reference: ConversationProfile,
    candidate: ConversationProfile,
    relationship_types: list[str] | tuple[str, ...],
    positions: dict[str, int],
) -> RelationshipScore:
    relationships = RelationshipScore()

    if "files" in relationship_types:
        relationships.shared_files = shared_items(
            reference.summary.relevant_files, candidate.summary.relevant_files
        )
    if "folders" in relationship_types:
        relationships.shared_folders = shared_items(
            reference.summary.attached_folders, candidate.summary.attached_folders
        )
    if "languages" in relationship_types:
        relationships.shared_languages = shared_items(
            reference.languages, candidate.languages
        )
    if "size" in relationship_types:
        relationships.size_similarity = size_similarity(
            reference.summary.conversation_size, candidate.summary.conversation_size
        )
    if "temporal" in relationship_types:
        relationships.temporal_proximity = temporal_proximity(
            positions.get(reference.conversation_id, -1),
            positions.get(candidate.conversation_id, -1),
            len(positions),
        )

    return relationships


def find_related_conversations(
    reference: Conversation,
    candidates: list[Conversation],
    options: RelationshipOptions | None = None,
    conversation_ids: list[str] | None = None,
    weights_config: WeightsConfig | None = None,
) -> list[RelatedConversation]:
    """Rank candidates by similarity to a reference conversation.

    ``conversation_ids`` gives the store order used for temporal proximity;
    it defaults to the reference followed by the candidates.
    """
    options = options or RelationshipOptions()
    unknown = [t for t in options.relationship_types if t not in RELATIONSHIP_TYPES]
    if unknown:
        raise InvalidParameterError(
            "relationship_types", unknown, ", ".join(RELATIONSHIP_TYPES)
        )

    if conversation_ids is None:
        conversation_ids = [reference.conversation_id] + [
            c.conversation_id for c in candidates
        ]
    positions = {cid: index for index, cid in enumerate(conversation_ids)}
    weights = _relationship_weights(weights_config)
    reference_profile = build_profile(reference)

    related = []
    for candidate in candidates:
        if candidate.conversation_id == reference.conversation_id:
            continue

        profile = build_profile(candidate)
        relationships = calculate_relationships(
            reference_profile, profile, options.relationship_types, positions
        )
        breakdown = score_breakdown(relationships, options.relationship_types)
        relationship_score = composite_score(breakdown, weights)
        if relationship_score < options.threshold:
            continue

        related.append(
            RelatedConversation(
                conversation_id=candidate.conversation_id,
                relationship_score=relationship_score,
                relationships=relationships,
                summary=profile.summary.first_message or NO_PREVIEW,
                reasons=describe_relationships(relationships),
                score_breakdown=breakdown if options.include_scores else None,
            )
        )

    related.sort(key=lambda item: item.relationship_score, reverse=True)
    return related[: options.max_results]


def find_related_in_store(
    service: ConversationService,
    reference_id: str,
    options: RelationshipOptions | None = None,
) -> RelatedConversationsResult:
    """Compare one stored conversation against every other prefiltered one.

    Raises:
        ConversationNotFoundError: if the reference does not exist.
    """
    reference = service.get_conversation(reference_id)
    if reference is None:
        raise ConversationNotFoundError(reference_id)

    conversation_ids = service.store.list_identifiers(ConversationFilter())
    candidates = service.get_conversations(
        [cid for cid in conversation_ids if cid != reference_id]
    )
    related = find_related_conversations(
        reference, candidates, options, conversation_ids=conversation_ids
    )
    profile = build_profile(reference)
    return RelatedConversationsResult(
        reference={
            "composer_id": reference_id,
            "files": profile.summary.relevant_files,
            "folders": profile.summary.attached_folders,
            "languages": profile.languages,
            "message_count": profile.summary.message_count,
            "size": profile.summary.conversation_size,
        },
        related=related,
    )
