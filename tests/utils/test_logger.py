"""
Tests for file-based logging.
"""

import json
from unittest.mock import patch

from cursor_history.utils.logger import log_debug, log_error, log_info, write_log


def read_entries(log_home, level):
    log_file = log_home / "logs" / f"{level}.log"
    return [json.loads(line) for line in log_file.read_text().splitlines()]


class TestWriteLog:
    """Test JSON-lines log writing."""

    def test_noop_without_home(self, tmp_path):
        """Test nothing is written when the log home is unset."""
        with patch("cursor_history.utils.logger.CURSOR_HISTORY_HOME", ""):
            write_log("info", "The road goes ever on")
        assert not (tmp_path / "logs").exists()

    def test_writes_entry(self, log_home):
        """Test an entry is appended with timestamp and level."""
        write_log("info", "Leaving the Shire", {"party": 4})

        entries = read_entries(log_home, "info")
        assert len(entries) == 1
        assert entries[0]["level"] == "info"
        assert entries[0]["message"] == "Leaving the Shire"
        assert entries[0]["data"] == {"party": 4}
        assert "timestamp" in entries[0]

    def test_omits_empty_data(self, log_home):
        """Test the data key is left out when there is no data."""
        log_debug("Second breakfast")
        assert "data" not in read_entries(log_home, "debug")[0]

    def test_appends(self, log_home):
        """Test successive calls append lines."""
        log_info("Bree")
        log_info("Weathertop")
        assert [e["message"] for e in read_entries(log_home, "info")] == [
            "Bree",
            "Weathertop",
        ]


class TestLogError:
    """Test error logging."""

    def test_exception_with_context(self, log_home):
        """Test an exception is logged with its context and type."""
        log_error(ValueError("the ring is not here"), "searching Bag End")

        entry = read_entries(log_home, "error")[0]
        assert entry["message"] == "searching Bag End: the ring is not here"
        assert entry["data"]["error_type"] == "ValueError"

    def test_plain_message(self, log_home):
        """Test a plain string is logged as-is."""
        log_error("Balrog encountered")
        assert read_entries(log_home, "error")[0]["message"] == "Balrog encountered"
