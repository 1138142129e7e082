"""
Test weights configuration functionality.
"""

from cursor_history.config.weights import WeightsConfig, WeightsManager


class TestWeightsConfig:
    """Test WeightsConfig class functionality."""

    def test_bundled_file_is_valid(self):
        """Test the bundled weights file loads without errors."""
        config = WeightsConfig()
        assert not config.has_validation_errors()
        assert config.get_validation_errors() == []

    def test_get_method(self):
        """Test dot-notation lookups and defaults."""
        config = WeightsConfig()

        assert config.get("relevance.exact_path") == 20.0
        assert config.get("fuzzy.similarity_threshold") == 0.6
        assert config.get("nonexistent.key", 42) == 42

    def test_get_dict_method(self):
        """Test section lookups."""
        config = WeightsConfig()

        relationships = config.get_dict("relationships")
        assert relationships["files"] == 0.4
        assert config.get_dict("nonexistent_section") == {}

    def test_config_dir_override(self, tmp_path):
        """Test loading from an explicit directory fills missing defaults."""
        (tmp_path / "cursor-history-weights.yaml").write_text(
            "relevance:\n  exact_path: 30\n"
        )

        config = WeightsConfig(config_dir=tmp_path)

        assert config.get("relevance.exact_path") == 30.0
        assert config.get("relevance.partial_path") == 15.0
        assert config.get("affinity.floor") == 1.0

    def test_malformed_yaml_uses_defaults(self, tmp_path):
        """Test an unparsable file never raises."""
        (tmp_path / "cursor-history-weights.yaml").write_text("relevance: [unclosed\n")

        config = WeightsConfig(config_dir=tmp_path)

        assert config.get("relevance.exact_path") == 20.0

    def test_missing_file_uses_defaults(self, tmp_path):
        """Test a directory without a weights file."""
        config = WeightsConfig(config_dir=tmp_path / "lothlorien")
        assert config.get("fuzzy.substring") == 10.0


class TestWeightsFromDict:
    """Test in-memory configuration."""

    def test_valid_mapping(self):
        """Test a valid partial mapping."""
        config = WeightsConfig.from_dict({"affinity": {"floor": 0}})
        assert config.is_valid
        assert config.get("affinity.floor") == 0.0

    def test_invalid_mapping_falls_back(self):
        """Test an invalid value reports errors and falls back to defaults."""
        config = WeightsConfig.from_dict(
            {"relevance": {"exact_path": "high", "partial_path": 99}}
        )

        assert config.has_validation_errors()
        assert any("relevance.exact_path" in e for e in config.get_validation_errors())
        assert config.get("relevance.exact_path") == 20.0
        assert config.get("relevance.partial_path") == 15.0


class TestWeightsManager:
    """Test default instance management."""

    def test_default_is_cached(self):
        """Test the default instance is reused."""
        assert WeightsManager.get_default() is WeightsManager.get_default()

    def test_set_and_reset(self):
        """Test injecting and resetting the default."""
        custom = WeightsConfig.from_dict({"fuzzy": {"substring": 12}})
        WeightsManager.set_default(custom)
        assert WeightsManager.get_default() is custom

        WeightsManager.reset_default()
        assert WeightsManager.get_default() is not custom
