"""
Scoring weights for relevance, affinity and relationship ranking.

Weights are read from ``cursor-history-weights.yaml`` (bundled next to this
module, or overridden through ``CURSOR_HISTORY_WEIGHTS_FILE`` or an explicit
directory) and validated against the weights schema. A missing, unreadable or
invalid file never raises: the affected values fall back to the schema
defaults and the problems are kept in ``validation_errors``.
"""

from pathlib import Path
from typing import Any

import yaml

from cursor_history.config.schema_validation import (
    apply_schema_defaults,
    get_weights_file_path,
    get_weights_schema,
    validate_weights_config,
)
from cursor_history.utils.logger import log_debug, log_error


def _read_weights_file(weights_file: Path) -> dict[str, Any]:
    if not weights_file.exists():
        log_debug(f"No weights file at {weights_file}, using built-in weights")
        return {}

    try:
        with open(weights_file, encoding="utf-8") as f:
            loaded = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        log_error(e, f"reading weights from {weights_file}")
        return {}

    if not isinstance(loaded, dict):
        log_debug(f"Weights file {weights_file} holds no mapping, ignoring it")
        return {}
    return loaded


class WeightsConfig:
    """Validated scoring weights with dot-notation lookups."""

    def __init__(self, config_dir: Path | None = None, validate: bool = True):
        self.config_dir = config_dir
        self.weights_file: Path | None = get_weights_file_path(config_dir)
        raw_config = _read_weights_file(self.weights_file)

        if validate:
            self.is_valid, self.validation_errors, self._config = (
                validate_weights_config(raw_config)
            )
        else:
            self.is_valid, self.validation_errors = True, []
            self._config = apply_schema_defaults(get_weights_schema(), raw_config)

        if not self.is_valid:
            log_error(
                f"{len(self.validation_errors)} invalid weights in {self.weights_file}",
                data={"errors": self.validation_errors},
            )

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "WeightsConfig":
        """Weights from an in-memory mapping, validated like a file."""
        instance = cls.__new__(cls)
        instance.config_dir = None
        instance.weights_file = None
        instance.is_valid, instance.validation_errors, instance._config = (
            validate_weights_config(data)
        )
        return instance

    def get(self, path: str, default: Any = None) -> Any:
        """Look up ``section.key``; ``default`` when any part is missing."""
        value: Any = self._config
        for key in path.split("."):
            if not isinstance(value, dict) or key not in value:
                return default
            value = value[key]
        return value

    def get_dict(self, path: str) -> dict[str, Any]:
        value = self.get(path)
        return value if isinstance(value, dict) else {}

    def get_section_weights(self, section: str) -> dict[str, float]:
        """Numeric weights of one section as floats; other values are dropped."""
        return {
            name: float(value)
            for name, value in self.get_dict(section).items()
            if isinstance(value, int | float) and not isinstance(value, bool)
        }

    def has_validation_errors(self) -> bool:
        return not self.is_valid

    def get_validation_errors(self) -> list[str]:
        return self.validation_errors


class WeightsManager:
    """Process-wide default weights, replaceable for tests and embedding."""

    _default_instance: WeightsConfig | None = None

    @classmethod
    def get_default(cls) -> WeightsConfig:
        if cls._default_instance is None:
            cls._default_instance = WeightsConfig()
        return cls._default_instance

    @classmethod
    def set_default(cls, config: WeightsConfig) -> None:
        cls._default_instance = config

    @classmethod
    def reset_default(cls) -> None:
        """Drop the default so the next lookup reloads the weights file."""
        cls._default_instance = None
