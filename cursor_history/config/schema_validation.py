"""
Schema validation for the scoring weights file.
Provides the weights schema and a small recursive validator that applies defaults.
"""

from pathlib import Path
from typing import Any

from cursor_history.config.constants import scoring
from cursor_history.config.constants.limits import (
    VALIDATION_WEIGHT_MAX,
    VALIDATION_WEIGHT_MIN,
)
from cursor_history.config.constants.paths import (
    DEFAULT_WEIGHTS_FILE,
    WEIGHTS_FILE_OVERRIDE,
)
from cursor_history.utils.logger import log_debug, log_info


def _create_number_field(
    default_val: float,
    min_val: float = VALIDATION_WEIGHT_MIN,
    max_val: float = VALIDATION_WEIGHT_MAX,
) -> dict[str, Any]:
    """Create a number field validation schema."""
    return {
        "type": "number",
        "min": min_val,
        "max": max_val,
        "default": default_val,
    }


def _create_ratio_field(default_val: float) -> dict[str, Any]:
    """Create a number field bounded to [0, 1]."""
    return _create_number_field(default_val, max_val=1.0)


def _create_dict_field(
    schema: dict[str, Any],
    required: bool = False,
) -> dict[str, Any]:
    """Create a dictionary field validation schema."""
    field_def: dict[str, Any] = {
        "type": "dict",
        "schema": schema,
    }

    if required:
        field_def["required"] = True

    return field_def


WEIGHTS_SCHEMA = {
    "relevance": _create_dict_field(
        schema={
            "exact_path": _create_number_field(scoring.DEFAULT_EXACT_PATH_WEIGHT),
            "partial_path": _create_number_field(scoring.DEFAULT_PARTIAL_PATH_WEIGHT),
            "file_path": _create_number_field(scoring.DEFAULT_FILE_PATH_WEIGHT),
            "file_name": _create_number_field(scoring.DEFAULT_FILE_NAME_WEIGHT),
            "file_fuzzy_multiplier": _create_ratio_field(
                scoring.DEFAULT_FILE_FUZZY_MULTIPLIER
            ),
            "message_multiplier": _create_ratio_field(
                scoring.DEFAULT_MESSAGE_MULTIPLIER
            ),
            "content_match": _create_number_field(
                scoring.DEFAULT_CONTENT_MATCH_WEIGHT
            ),
        },
    ),
    "fuzzy": _create_dict_field(
        schema={
            "substring": _create_number_field(scoring.DEFAULT_FUZZY_SUBSTRING),
            "all_tokens": _create_number_field(scoring.DEFAULT_FUZZY_ALL_TOKENS),
            "partial_tokens": _create_number_field(
                scoring.DEFAULT_FUZZY_PARTIAL_TOKENS
            ),
            "similarity": _create_number_field(scoring.DEFAULT_FUZZY_SIMILARITY),
            "similarity_threshold": _create_ratio_field(
                scoring.DEFAULT_SIMILARITY_THRESHOLD
            ),
        },
    ),
    "affinity": _create_dict_field(
        schema={
            "exact_folder": _create_number_field(
                scoring.DEFAULT_AFFINITY_EXACT_FOLDER
            ),
            "subfolder": _create_number_field(scoring.DEFAULT_AFFINITY_SUBFOLDER),
            "parent_folder": _create_number_field(
                scoring.DEFAULT_AFFINITY_PARENT_FOLDER
            ),
            "exact_file": _create_number_field(scoring.DEFAULT_AFFINITY_EXACT_FILE),
            "project_file": _create_number_field(
                scoring.DEFAULT_AFFINITY_PROJECT_FILE
            ),
            "pattern": _create_number_field(scoring.DEFAULT_AFFINITY_PATTERN),
            "message_path": _create_number_field(
                scoring.DEFAULT_AFFINITY_MESSAGE_PATH
            ),
            "floor": _create_number_field(scoring.DEFAULT_AFFINITY_FLOOR),
        },
    ),
    "relationships": _create_dict_field(
        schema={
            name: _create_ratio_field(weight)
            for name, weight in scoring.DEFAULT_RELATIONSHIP_WEIGHTS.items()
        },
    ),
}


class SchemaError:
    """Single validation failure, addressed by dotted path."""

    def __init__(self, path: str, message: str):
        self.path = path
        self.message = message

    def __str__(self) -> str:
        return f"{self.path}: {self.message}"


class WeightsSchemaValidator:
    """Recursive validator that also produces a defaults-applied copy."""

    def __init__(self, schema: dict[str, Any], allow_unknown: bool = False):
        self.schema = schema
        self.allow_unknown = allow_unknown
        self.errors: list[SchemaError] = []
        self.normalized_data: dict[str, Any] = {}

    def validate(self, data: Any) -> bool:
        """Validate data against schema."""
        self.errors = []
        self.normalized_data = {}

        if not isinstance(data, dict):
            self.errors.append(
                SchemaError("", f"must be a dict, got {type(data).__name__}")
            )
            return False

        self.normalized_data = self._validate_recursive(data, self.schema, "")
        return not self.errors

    def _validate_recursive(
        self, data: dict[str, Any], schema: dict[str, Any], path: str
    ) -> dict[str, Any]:
        result: dict[str, Any] = {}

        for key, field_schema in schema.items():
            current_path = f"{path}.{key}" if path else key

            if field_schema.get("required", False) and key not in data:
                self.errors.append(SchemaError(current_path, "required field"))
                continue

            if key in data:
                result[key] = self._validate_field(
                    data[key], field_schema, current_path
                )
            elif "default" in field_schema:
                result[key] = field_schema["default"]
            elif "schema" in field_schema:
                result[key] = self._validate_recursive(
                    {}, field_schema["schema"], current_path
                )

        if not self.allow_unknown:
            for key in data:
                if key not in schema:
                    self.errors.append(
                        SchemaError(f"{path}.{key}" if path else key, "unknown field")
                    )

        return result

    def _validate_field(
        self, value: Any, field_schema: dict[str, Any], path: str
    ) -> Any:
        expected_type = field_schema.get("type")

        if expected_type == "number":
            # bool is an int subclass but never a meaningful weight
            if isinstance(value, bool) or not isinstance(value, int | float):
                self.errors.append(
                    SchemaError(path, f"must be a number, got {type(value).__name__}")
                )
                return field_schema.get("default", value)
            if "min" in field_schema and value < field_schema["min"]:
                self.errors.append(
                    SchemaError(path, f"must be >= {field_schema['min']}, got {value}")
                )
            if "max" in field_schema and value > field_schema["max"]:
                self.errors.append(
                    SchemaError(path, f"must be <= {field_schema['max']}, got {value}")
                )
            return float(value)

        if expected_type == "dict":
            if not isinstance(value, dict):
                self.errors.append(
                    SchemaError(path, f"must be a dict, got {type(value).__name__}")
                )
                return self._validate_recursive({}, field_schema["schema"], path)
            return self._validate_recursive(value, field_schema["schema"], path)

        return value


def apply_schema_defaults(
    schema: dict[str, Any], data: dict[str, Any]
) -> dict[str, Any]:
    """Apply default values from schema to configuration data."""

    def apply_defaults_recursive(
        schema_def: dict[str, Any], config_data: dict[str, Any]
    ) -> dict[str, Any]:
        result = dict(config_data) if isinstance(config_data, dict) else {}

        for key, schema_spec in schema_def.items():
            if "default" in schema_spec:
                if key not in result:
                    result[key] = schema_spec["default"]
            elif "schema" in schema_spec:
                result[key] = apply_defaults_recursive(
                    schema_spec["schema"], result.get(key, {})
                )

        return result

    return apply_defaults_recursive(schema, data)


def validate_weights_config(
    config: Any,
) -> tuple[bool, list[str], dict[str, Any]]:
    """Validate a weights mapping, returning (is_valid, errors, usable_config)."""
    validator = WeightsSchemaValidator(WEIGHTS_SCHEMA)

    if validator.validate(config):
        log_debug("Weights configuration validation passed")
        return True, [], validator.normalized_data

    error_messages = [str(error) for error in validator.errors]
    for error in error_messages:
        log_info(f"Weights validation error: {error}")

    # Invalid files fall back to the built-in defaults entirely
    return False, error_messages, apply_schema_defaults(WEIGHTS_SCHEMA, {})


def get_weights_schema() -> dict[str, Any]:
    """Get the schema for weights configuration."""
    return WEIGHTS_SCHEMA


def get_weights_file_path(config_dir: Path | None = None) -> Path:
    """Resolve which weights file to load: override, explicit dir, or bundled default."""
    if WEIGHTS_FILE_OVERRIDE:
        override_path = Path(WEIGHTS_FILE_OVERRIDE)
        if override_path.exists():
            log_debug(f"Using weights file override: {override_path}")
            return override_path
        log_debug(f"Weights file override specified but doesn't exist: {override_path}")

    if config_dir is not None:
        return config_dir / DEFAULT_WEIGHTS_FILE.name

    return DEFAULT_WEIGHTS_FILE
