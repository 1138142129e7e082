"""
Tests for relevance and project affinity scoring.
"""

import pytest

from cursor_history.config.weights import WeightsConfig
from cursor_history.core.conversation_types import (
    Conversation,
    ConversationFormat,
    Message,
    MessageHeader,
)
from cursor_history.core.relevance_scorer import (
    ScoreOptions,
    ScoringWeights,
    fuzzy_score,
    levenshtein,
    project_affinity_score,
    score,
    similarity,
    tokenize_query,
)


def legacy(folders=(), files=(), messages=()):
    return Conversation(
        conversation_id="fellowship",
        format=ConversationFormat.LEGACY,
        attached_folders=list(folders),
        relevant_files=list(files),
        messages=list(messages),
    )


class TestStringSimilarity:
    """Test edit distance helpers."""

    def test_levenshtein(self):
        """Test known edit distances."""
        assert levenshtein("kitten", "sitting") == 3
        assert levenshtein("", "ent") == 3
        assert levenshtein("shire", "shire") == 0

    @pytest.mark.parametrize("text", ["a", "shire", "Minas Tirith", "/home/src/"])
    def test_similarity_reflexive(self, text):
        """Test a string is fully similar to itself."""
        assert similarity(text, text) == 1.0

    def test_similarity_disjoint(self):
        """Test strings sharing no characters fall below the threshold."""
        assert similarity("abc", "xyz") < 0.6
        assert similarity("frodo", "gimli") < 0.6

    def test_similarity_empty(self):
        """Test two empty strings."""
        assert similarity("", "") == 1.0

    def test_tokenize_query(self):
        """Test splitting on hyphens, underscores and whitespace."""
        assert tokenize_query("Middle-earth_maps  2") == ["middle", "earth", "maps", "2"]
        assert tokenize_query("--") == []


class TestFuzzyScore:
    """Test the fuzzy fallback tiers."""

    def test_substring(self):
        """Test a substring hit."""
        assert fuzzy_score("Gandalf the Grey", "grey") == 10.0

    def test_all_tokens(self):
        """Test every token present."""
        assert fuzzy_score("/projects/middle_earth", "middle-earth") == 8.0

    def test_partial_tokens(self):
        """Test some tokens present."""
        assert fuzzy_score("frodo baggins", "frodo-gamgee") == 3.0

    def test_similarity_fallback(self):
        """Test near-miss spelling."""
        assert fuzzy_score("rivendel", "rivendell") == pytest.approx(8 / 9 * 4)

    def test_no_match(self):
        """Test unrelated text."""
        assert fuzzy_score("mordor", "shire") == 0.0


class TestScore:
    """Test the project/path relevance scorer."""

    def setup_method(self):
        """Use the built-in default weights."""
        self.weights = ScoringWeights()

    def test_exact_folder(self):
        """Test a folder that equals the query."""
        result = score(legacy(folders=["src/"]), "src/", weights=self.weights)

        assert result.details.exact_path_match
        assert result.score >= 20

    def test_exact_final_segment(self):
        """Test the final folder segment equals the query."""
        result = score(legacy(folders=["/home/frodo/shire"]), "Shire", weights=self.weights)
        assert result.score == 20.0
        assert result.details.matched_paths == ["/home/frodo/shire"]

    def test_partial_folder(self):
        """Test a folder containing the query."""
        result = score(legacy(folders=["/home/frodo/shire-maps"]), "shire", weights=self.weights)

        assert result.score == 15.0
        assert result.details.partial_path_match
        assert not result.details.exact_path_match

    def test_partial_disabled_falls_to_fuzzy(self):
        """Test partial matching can be turned off."""
        options = ScoreOptions(partial_paths=False)
        result = score(
            legacy(folders=["/home/frodo/shire-maps"]), "shire", options, self.weights
        )

        assert not result.details.partial_path_match
        assert result.details.fuzzy_match
        assert result.score == 10.0

    def test_fuzzy_folder(self):
        """Test token fallback on folders."""
        result = score(legacy(folders=["/projects/middle_earth"]), "middle-earth", weights=self.weights)

        assert result.score == 8.0
        assert result.details.fuzzy_match

    def test_fuzzy_disabled(self):
        """Test fuzzy matching can be turned off."""
        options = ScoreOptions(fuzzy_match=False)
        result = score(
            legacy(folders=["/projects/middle_earth"]), "middle-earth", options, self.weights
        )
        assert result.score == 0.0

    def test_file_path(self):
        """Test a file path containing the query."""
        result = score(
            legacy(files=["/home/gandalf/isengard/palantir.ts"]), "palantir", weights=self.weights
        )

        assert result.score == 10.0
        assert result.details.file_path_match
        assert result.details.matched_files == ["/home/gandalf/isengard/palantir.ts"]

    def test_message_paths_and_content(self):
        """Test per-message paths are scaled and content hits add."""
        message = Message(
            type=1,
            text="Look into the palantir",
            relevant_files=["/home/gandalf/palantir.ts"],
        )
        result = score(legacy(messages=[message]), "palantir", weights=self.weights)

        assert result.score == pytest.approx(10 * 0.8 + 2)

    def test_content_excluded(self):
        """Test content hits can be turned off."""
        message = Message(type=1, text="Look into the palantir")
        options = ScoreOptions(include_content=False)
        assert score(legacy(messages=[message]), "palantir", options, self.weights).score == 0

    def test_toggles(self):
        """Test folders and files can be excluded."""
        conversation = legacy(folders=["/shire"], files=["/shire/pipe.py"])

        no_folders = score(
            conversation, "shire", ScoreOptions(include_folders=False), self.weights
        )
        no_files = score(
            conversation, "shire", ScoreOptions(include_files=False), self.weights
        )

        assert no_folders.score == 10.0
        assert no_files.score == 20.0

    def test_unresolved_modern_uses_top_level_only(self):
        """Test an unresolved modern conversation is scored on its own fields."""
        conversation = Conversation(
            conversation_id="aragorn",
            format=ConversationFormat.MODERN,
            headers=[MessageHeader("a1", 1)],
            attached_folders=["/home/aragorn/gondor"],
        )
        assert score(conversation, "gondor", weights=self.weights).score == 20.0

    def test_floor(self):
        """Test no signal scores zero unless a floor is given."""
        conversation = legacy(folders=["/mordor"])

        assert score(conversation, "shire", weights=self.weights).score == 0.0
        assert score(conversation, "shire", ScoreOptions(floor=1), self.weights).score == 1.0

    def test_blank_query(self):
        """Test a blank query returns the floor."""
        assert score(legacy(folders=["/shire"]), "   ", weights=self.weights).score == 0.0

    def test_result_to_dict(self):
        """Test serialization of the breakdown."""
        result = score(legacy(folders=["src/"]), "src/", weights=self.weights)
        as_dict = result.to_dict()

        assert as_dict["score"] == 20.0
        assert as_dict["details"]["exact_path_match"] is True

    def test_weights_from_config(self):
        """Test weights are read from a weights configuration."""
        config = WeightsConfig.from_dict({"relevance": {"exact_path": 40}})
        result = score(
            legacy(folders=["src/"]), "src/", weights=ScoringWeights.from_config(config)
        )
        assert result.score == 40.0


class TestProjectAffinityScore:
    """Test project affinity ranking."""

    def test_exact_folder_and_project_file(self):
        """Test exact folder plus an in-project file."""
        conversation = legacy(
            folders=["/home/frodo/shire"],
            files=["/home/frodo/shire/ring.py", "/elsewhere/x.py"],
        )
        assert project_affinity_score(conversation, "/home/frodo/shire") == 12.0

    def test_subfolder_and_parent(self):
        """Test subfolder and parent folder credit."""
        subfolder = legacy(folders=["/home/frodo/shire/maps"])
        parent = legacy(folders=["/home/frodo"])

        assert project_affinity_score(subfolder, "/home/frodo/shire") == 5.0
        assert project_affinity_score(parent, "/home/frodo/shire") == 3.0

    def test_sibling_prefix_is_not_subfolder(self):
        """Test a sibling sharing a name prefix gets no credit."""
        sibling = legacy(folders=["/home/frodo/shire-east"])
        assert project_affinity_score(sibling, "/home/frodo/shire") == 1.0

    def test_exact_file_and_pattern(self):
        """Test exact file and glob pattern credit."""
        conversation = legacy(
            files=["/home/frodo/shire/ring.py", "/home/frodo/shire/notes.md"]
        )
        total = project_affinity_score(
            conversation,
            "/home/frodo/shire",
            file_pattern="*.py",
            exact_file_path="/home/frodo/shire/ring.py",
        )
        assert total == 8 + 1 + 2

    def test_message_paths(self):
        """Test per-message folders and files add one each."""
        message = Message(
            type=2,
            text="",
            relevant_files=["/home/frodo/shire/mordor.py"],
            attached_folders=["/home/frodo/shire/maps"],
        )
        assert project_affinity_score(legacy(messages=[message]), "/home/frodo/shire") == 2.0

    def test_floor(self):
        """Test the default floor of one and an explicit floor."""
        conversation = legacy()
        assert project_affinity_score(conversation, "/home/frodo/shire") == 1.0
        assert project_affinity_score(conversation, "/home/frodo/shire", floor=0) == 0.0
