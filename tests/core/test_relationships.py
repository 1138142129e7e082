"""
Tests for related-conversation discovery.
"""

import pytest

from cursor_history.config.weights import WeightsConfig
from cursor_history.core.conversation_service import ConversationService
from cursor_history.core.conversation_types import (
    CodeBlock,
    Conversation,
    ConversationFormat,
    Message,
)
from cursor_history.core.relationships import (
    NO_PREVIEW,
    RelationshipOptions,
    RelationshipScore,
    composite_score,
    describe_relationships,
    find_related_conversations,
    find_related_in_store,
    languages_from_code_blocks,
    score_breakdown,
    shared_items,
    size_similarity,
    temporal_proximity,
)
from cursor_history.utils.errors import ConversationNotFoundError, InvalidParameterError


def conversation(conversation_id, files=(), folders=(), languages=(), size=1000, text=None):
    messages = []
    if text is not None or languages:
        messages.append(
            Message(
                type=1,
                text=text or "",
                code_blocks=[CodeBlock(language, "pass") for language in languages],
            )
        )
    return Conversation(
        conversation_id=conversation_id,
        format=ConversationFormat.LEGACY,
        messages=messages,
        relevant_files=list(files),
        attached_folders=list(folders),
        raw_size=size,
    )


class TestPairwiseMeasures:
    """Test the per-type measures."""

    def test_size_similarity(self):
        """Test ratio of the smaller to the larger size."""
        assert size_similarity(0, 0) == 1.0
        assert size_similarity(0, 500) == 0.0
        assert size_similarity(50, 100) == 0.5

    def test_temporal_proximity(self):
        """Test distance in store order."""
        assert temporal_proximity(-1, 2, 5) == 0.0
        assert temporal_proximity(0, 0, 1) == 1.0
        assert temporal_proximity(0, 4, 5) == 0.0
        assert temporal_proximity(1, 2, 5) == 0.75

    def test_shared_items_keeps_candidate_order(self):
        """Test shared items follow the candidate's order."""
        assert shared_items(["a", "b", "c"], ["c", "x", "a"]) == ["c", "a"]

    def test_languages_from_code_blocks(self):
        """Test untagged blocks are ignored and aliases collapse."""
        shire = conversation("shire", languages=["py", "", "python", "ts"])
        assert languages_from_code_blocks(shire) == ["python", "typescript"]


class TestScoring:
    """Test breakdowns, composites and reasons."""

    def test_breakdown_caps(self):
        """Test shared counts are capped to one."""
        relationships = RelationshipScore(
            shared_files=[f"f{i}.py" for i in range(10)], shared_folders=["/shire"]
        )
        breakdown = score_breakdown(relationships, ["files", "folders"])

        assert breakdown["files"] == 1
        assert breakdown["folders"] == pytest.approx(1 / 3)

    def test_breakdown_only_requested(self):
        """Test unrequested types are left out."""
        relationships = RelationshipScore(shared_files=["ring.py"], size_similarity=0.5)
        assert score_breakdown(relationships, ["size"]) == {"size": 0.5}

    def test_composite_is_weighted_mean(self):
        """Test normalization by the weights of the types used."""
        assert composite_score({"files": 1.0, "size": 0.5}) == pytest.approx(
            (0.4 + 0.025) / 0.45
        )
        assert composite_score({"files": 0.2}) == pytest.approx(0.2)
        assert composite_score({}) == 0.0

    def test_describe(self):
        """Test human-readable reasons."""
        relationships = RelationshipScore(
            shared_files=["a.py", "b.py", "c.py"],
            shared_folders=["/shire"],
            size_similarity=0.85,
        )
        assert describe_relationships(relationships) == [
            "3 shared files",
            "1 shared folder",
            "similar size (85%)",
        ]


class TestFindRelated:
    """Test ranking candidates against a reference."""

    def setup_method(self):
        """Build the reference and candidates."""
        self.frodo = conversation(
            "frodo", files=["ring.py", "mordor.py"], text="Where is Mount Doom?"
        )
        self.sam = conversation("sam", files=["ring.py"], text="I can carry you")
        self.gandalf = conversation("gandalf", files=["palantir.ts"], text="Fly!")

    def test_shared_files(self):
        """Test only candidates above the threshold are returned."""
        related = find_related_conversations(self.frodo, [self.frodo, self.sam, self.gandalf])

        assert [r.conversation_id for r in related] == ["sam"]
        assert related[0].relationship_score == pytest.approx(0.2)
        assert related[0].reasons == ["1 shared file"]
        assert related[0].summary == "I can carry you"
        assert related[0].score_breakdown is None

    def test_no_preview(self):
        """Test a candidate without messages gets the placeholder preview."""
        bill = conversation("bill-the-pony", files=["ring.py"])
        related = find_related_conversations(self.frodo, [bill])
        assert related[0].summary == NO_PREVIEW

    def test_include_scores(self):
        """Test the per-type breakdown is attached on request."""
        related = find_related_conversations(
            self.frodo, [self.sam], RelationshipOptions(include_scores=True)
        )
        assert related[0].score_breakdown == {"files": pytest.approx(0.2)}

    def test_multiple_types(self):
        """Test the composite over files and size."""
        options = RelationshipOptions(relationship_types=("files", "size"))
        related = find_related_conversations(self.frodo, [self.sam], options)
        assert related[0].relationship_score == pytest.approx((0.4 * 0.2 + 0.05) / 0.45)

    def test_custom_weights(self):
        """Test relationship weights come from the weights configuration."""
        weights = WeightsConfig.from_dict({"relationships": {"size": 0.4}})
        options = RelationshipOptions(relationship_types=("files", "size"))

        related = find_related_conversations(
            self.frodo, [self.sam], options, weights_config=weights
        )
        assert related[0].relationship_score == pytest.approx((0.4 * 0.2 + 0.4) / 0.8)

    def test_max_results_and_order(self):
        """Test ranking and truncation."""
        pippin = conversation("pippin", files=["ring.py", "mordor.py"])
        related = find_related_conversations(
            self.frodo, [self.sam, pippin], RelationshipOptions(max_results=1)
        )
        assert [r.conversation_id for r in related] == ["pippin"]

    def test_invalid_type(self):
        """Test an unknown relationship type."""
        with pytest.raises(InvalidParameterError):
            find_related_conversations(
                self.frodo, [self.sam], RelationshipOptions(relationship_types=("riddles",))
            )


class TestFindRelatedInStore:
    """Test relationships over a stored conversation."""

    def test_reference_profile(self, fellowship_db):
        """Test the reference description."""
        with ConversationService.from_path(str(fellowship_db)) as service:
            result = find_related_in_store(service, "aragorn-modern")

        assert result.reference["composer_id"] == "aragorn-modern"
        assert result.reference["files"] == ["/home/aragorn/gondor/crown.rs"]
        assert result.reference["languages"] == ["rust"]
        assert result.reference["message_count"] == 2
        assert result.related == []

    def test_store_order_drives_temporal(self, fellowship_db):
        """Test the nearest conversation in store order ranks first."""
        options = RelationshipOptions(relationship_types=("size", "temporal"))
        with ConversationService.from_path(str(fellowship_db)) as service:
            result = find_related_in_store(service, "aragorn-modern", options)

        assert [r.conversation_id for r in result.related] == [
            "gandalf-legacy",
            "frodo-legacy",
        ]

    def test_missing_reference(self, fellowship_db):
        """Test an unknown reference id."""
        with ConversationService.from_path(str(fellowship_db)) as service:
            with pytest.raises(ConversationNotFoundError):
                find_related_in_store(service, "sauron")
