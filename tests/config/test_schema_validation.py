"""
Tests for the weights schema validator.
"""

from cursor_history.config.schema_validation import (
    WEIGHTS_SCHEMA,
    WeightsSchemaValidator,
    apply_schema_defaults,
    validate_weights_config,
)


class TestWeightsSchemaValidator:
    """Test validation rules."""

    def setup_method(self):
        """Set up a validator for the weights schema."""
        self.validator = WeightsSchemaValidator(WEIGHTS_SCHEMA)

    def test_empty_mapping_is_valid(self):
        """Test that every field has a default."""
        assert self.validator.validate({})
        assert self.validator.normalized_data["relevance"]["exact_path"] == 20.0

    def test_non_dict_rejected(self):
        """Test a non-mapping document."""
        assert not self.validator.validate(["gandalf"])

    def test_unknown_field(self):
        """Test unknown keys are reported by path."""
        assert not self.validator.validate({"relevance": {"palantir": 1}})
        assert str(self.validator.errors[0]) == "relevance.palantir: unknown field"

    def test_bool_is_not_a_number(self):
        """Test booleans are rejected as weights."""
        assert not self.validator.validate({"fuzzy": {"substring": True}})

    def test_ratio_bounds(self):
        """Test ratio fields are limited to [0, 1]."""
        assert not self.validator.validate({"relationships": {"files": 1.5}})
        assert self.validator.validate({"relationships": {"files": 0.5}})

    def test_section_must_be_dict(self):
        """Test a scalar section."""
        assert not self.validator.validate({"affinity": 10})


class TestSchemaHelpers:
    """Test the module-level helpers."""

    def test_apply_defaults_keeps_values(self):
        """Test defaults fill gaps without overwriting."""
        result = apply_schema_defaults(WEIGHTS_SCHEMA, {"fuzzy": {"substring": 11}})
        assert result["fuzzy"]["substring"] == 11
        assert result["fuzzy"]["all_tokens"] == 8.0

    def test_validate_weights_config_fallback(self):
        """Test invalid input returns defaults and error strings."""
        is_valid, errors, config = validate_weights_config(
            {"affinity": {"floor": -1}}
        )
        assert not is_valid
        assert errors == ["affinity.floor: must be >= 0.0, got -1"]
        assert config["affinity"]["floor"] == 1.0
