"""
Tests for conversation analytics.
"""

import pytest

from cursor_history.core.analytics import (
    AnalyticsEngine,
    calculate_file_breakdown,
    calculate_overview,
    calculate_percentile,
    calculate_size_distribution,
    calculate_temporal_breakdown,
    format_size,
)
from cursor_history.core.conversation_service import ConversationService
from cursor_history.core.conversation_types import ConversationFormat, ConversationSummary
from cursor_history.utils.errors import InvalidParameterError, MissingParameterError


def summary(conversation_id, size=1000, files=(), folders=(), messages=2, code=0, partial=False):
    return ConversationSummary(
        conversation_id=conversation_id,
        format=ConversationFormat.LEGACY,
        message_count=messages,
        has_code_blocks=code > 0,
        code_block_count=code,
        relevant_files=list(files),
        attached_folders=list(folders),
        conversation_size=size,
        is_partial=partial,
    )


@pytest.fixture
def engine(fellowship_db):
    with ConversationService.from_path(str(fellowship_db)) as service:
        yield AnalyticsEngine(service)


class TestHelpers:
    """Test formatting and percentile helpers."""

    @pytest.mark.parametrize(
        "size, expected",
        [
            (512, "512B"),
            (2048, "2.0KB"),
            (5 * 1024 * 1024, "5.0MB"),
            (3 * 1024 * 1024 * 1024, "3.0GB"),
        ],
    )
    def test_format_size(self, size, expected):
        """Test byte sizes are humanized."""
        assert format_size(size) == expected

    def test_percentile_interpolates(self):
        """Test linear interpolation between ranks."""
        values = [10, 20, 30, 40]
        assert calculate_percentile(values, 50) == pytest.approx(25.0)
        assert calculate_percentile(values, 0) == 10
        assert calculate_percentile(values, 100) == 40

    def test_percentile_empty(self):
        """Test an empty list."""
        assert calculate_percentile([], 90) == 0


class TestCalculations:
    """Test the individual breakdowns."""

    def test_overview(self):
        """Test totals, averages and distinct paths."""
        overview = calculate_overview(
            [
                summary("frodo", size=1000, files=["ring.py"], folders=["/shire"], code=1),
                summary("sam", size=3000, files=["ring.py", "rope.py"], messages=4, partial=True),
            ]
        )

        assert overview.total_conversations == 2
        assert overview.total_messages == 6
        assert overview.total_code_blocks == 1
        assert overview.average_conversation_size == 2000
        assert overview.average_messages_per_conversation == 3
        assert overview.total_files == 2
        assert overview.total_folders == 1
        assert overview.partial_count == 1

    def test_overview_empty(self):
        """Test an empty scope."""
        overview = calculate_overview([])
        assert overview.total_conversations == 0
        assert overview.average_conversation_size == 0

    def test_file_breakdown(self):
        """Test mentions count each conversation once per path."""
        breakdown = calculate_file_breakdown(
            [
                summary("frodo", files=["/shire/ring.py"], folders=["/shire"]),
                summary("sam", files=["/shire/ring.py", "/shire/ring.py"]),
                summary("gandalf", files=["/isengard/palantir.ts"]),
            ]
        )

        top = breakdown[0]
        assert top.file == "/shire/ring.py"
        assert top.mentions == 2
        assert top.conversations == ["frodo", "sam"]
        assert top.extension == "py"
        assert top.most_recent_index == 0
        assert len(breakdown) == 3

    def test_file_breakdown_top(self):
        """Test the result is capped."""
        summaries = [summary("frodo", files=["a.py", "b.py", "c.py"])]
        assert len(calculate_file_breakdown(summaries, top=2)) == 2

    def test_temporal_bins(self):
        """Test store order is split into equal-sized periods."""
        summaries = [summary(f"hobbit-{i}", size=100 * (i + 1)) for i in range(25)]
        ids = [s.conversation_id for s in summaries]

        periods = calculate_temporal_breakdown(summaries, ids)

        assert [p.period for p in periods] == ["Period 1", "Period 2", "Period 3"]
        assert [p.conversation_count for p in periods] == [9, 9, 7]
        assert periods[0].average_size == 500

    def test_temporal_skips_unparsed(self):
        """Test ids without a summary are not counted."""
        periods = calculate_temporal_breakdown([summary("frodo")], ["frodo", "wormtongue", "sam"])
        assert [p.conversation_count for p in periods] == [1, 0, 0]

    def test_size_distribution(self):
        """Test percentiles and bins."""
        summaries = [summary(f"ent-{i}", size=100 * (i + 1)) for i in range(10)]
        distribution = calculate_size_distribution(summaries)

        assert distribution.distribution == [100 * (i + 1) for i in range(10)]
        assert distribution.percentiles["p50"] == pytest.approx(550.0)
        assert len(distribution.bins) == 10
        assert distribution.bins[0].range == "100B - 190B"
        assert [b.count for b in distribution.bins] == [1] * 10

    def test_size_bins_partition_boundaries(self):
        """Test sizes on a bin edge are counted once."""
        summaries = [summary(f"ent-{i}", size=10 * i) for i in range(11)]
        bins = calculate_size_distribution(summaries).bins

        assert sum(b.count for b in bins) == len(summaries)
        assert bins[0].count == 1
        assert bins[-1].count == 2

    def test_size_bins_equal_sizes(self):
        """Test identical sizes fill a single bin."""
        summaries = [summary(f"hobbit-{i}", size=5000) for i in range(4)]
        bins = calculate_size_distribution(summaries).bins

        assert [b.count for b in bins] == [4] + [0] * 9

    def test_size_distribution_empty(self):
        """Test an empty scope."""
        distribution = calculate_size_distribution([])
        assert distribution.distribution == []
        assert distribution.bins == []


class TestAnalyticsEngine:
    """Test scoped analytics over a store."""

    def test_all_scope(self, engine):
        """Test the overview and default breakdowns."""
        analytics = engine.get_conversation_analytics()

        assert analytics.overview.total_conversations == 3
        assert analytics.overview.total_messages == 6
        assert analytics.overview.total_code_blocks == 3
        assert analytics.overview.total_files == 4
        assert analytics.overview.total_folders == 4
        assert set(analytics.breakdowns) == {"files", "languages"}
        assert analytics.scope == {"type": "all", "project_path": None, "total_scanned": 3}

    def test_languages_include_resolved_bubbles(self, engine):
        """Test modern code blocks are counted once resolved."""
        analytics = engine.get_conversation_analytics(breakdowns=["languages"])
        languages = {entry.language for entry in analytics.breakdowns["languages"]}
        assert languages == {"rust", "typescript", "python"}

    def test_all_breakdowns(self, engine):
        """Test temporal and size breakdowns."""
        analytics = engine.get_conversation_analytics(
            breakdowns=["files", "languages", "temporal", "size"]
        )

        assert len(analytics.breakdowns["temporal"]) == 3
        assert len(analytics.breakdowns["size"].distribution) == 3

    def test_project_scope(self, engine):
        """Test the project scope uses the project prefilter."""
        analytics = engine.get_conversation_analytics(
            scope="project", project_path="/home/frodo/shire"
        )
        assert analytics.overview.total_conversations == 1
        assert analytics.breakdowns["files"][0].conversations == ["frodo-legacy"]

    def test_recent_scope(self, engine):
        """Test the recent scope covers the newest share of the store."""
        analytics = engine.get_conversation_analytics(scope="recent")
        assert analytics.scope["total_scanned"] == 0

    def test_conversation_details(self, engine):
        """Test per-conversation details."""
        analytics = engine.get_conversation_analytics(include_conversation_details=True)

        assert analytics.conversation_ids == ["aragorn-modern", "gandalf-legacy", "frodo-legacy"]
        assert analytics.conversations[0]["composer_id"] == "aragorn-modern"
        assert analytics.conversations[0]["has_code_blocks"] is True

    def test_project_scope_requires_path(self, engine):
        """Test the project scope without a path."""
        with pytest.raises(MissingParameterError):
            engine.get_conversation_analytics(scope="project")

    @pytest.mark.parametrize(
        "kwargs",
        [{"scope": "middle-earth"}, {"breakdowns": ["files", "riddles"]}],
    )
    def test_invalid_parameters(self, engine, kwargs):
        """Test unknown scopes and breakdowns."""
        with pytest.raises(InvalidParameterError):
            engine.get_conversation_analytics(**kwargs)
