"""Relevance scoring defaults, overridable through the weights file."""

from typing import Final

# Folder matches
DEFAULT_EXACT_PATH_WEIGHT: Final[float] = 20.0
DEFAULT_PARTIAL_PATH_WEIGHT: Final[float] = 15.0

# File matches
DEFAULT_FILE_PATH_WEIGHT: Final[float] = 10.0
DEFAULT_FILE_NAME_WEIGHT: Final[float] = 8.0
DEFAULT_FILE_FUZZY_MULTIPLIER: Final[float] = 0.5

# Per-message paths are less authoritative than top-level ones
DEFAULT_MESSAGE_MULTIPLIER: Final[float] = 0.8
DEFAULT_CONTENT_MATCH_WEIGHT: Final[float] = 2.0

# Fuzzy scoring
DEFAULT_FUZZY_SUBSTRING: Final[float] = 10.0
DEFAULT_FUZZY_ALL_TOKENS: Final[float] = 8.0
DEFAULT_FUZZY_PARTIAL_TOKENS: Final[float] = 6.0
DEFAULT_FUZZY_SIMILARITY: Final[float] = 4.0
DEFAULT_SIMILARITY_THRESHOLD: Final[float] = 0.6

# Project affinity ranking
DEFAULT_AFFINITY_EXACT_FOLDER: Final[float] = 10.0
DEFAULT_AFFINITY_SUBFOLDER: Final[float] = 5.0
DEFAULT_AFFINITY_PARENT_FOLDER: Final[float] = 3.0
DEFAULT_AFFINITY_EXACT_FILE: Final[float] = 8.0
DEFAULT_AFFINITY_PROJECT_FILE: Final[float] = 2.0
DEFAULT_AFFINITY_PATTERN: Final[float] = 1.0
DEFAULT_AFFINITY_MESSAGE_PATH: Final[float] = 1.0
DEFAULT_AFFINITY_FLOOR: Final[float] = 1.0

# Related conversation weights
DEFAULT_RELATIONSHIP_WEIGHTS: Final[dict[str, float]] = {
    "files": 0.4,
    "folders": 0.3,
    "languages": 0.2,
    "size": 0.05,
    "temporal": 0.05,
}
RELATIONSHIP_CAPS: Final[dict[str, int]] = {
    "files": 5,
    "folders": 3,
    "languages": 3,
}

# Summarization intent keywords
SUMMARIZATION_KEYWORDS: Final[tuple[str, ...]] = (
    "summarization",
    "summarize",
    "summary",
)

# Language aliases for code blocks and extensions
LANGUAGE_ALIASES: Final[dict[str, str]] = {
    "js": "javascript",
    "ts": "typescript",
    "jsx": "javascript",
    "tsx": "typescript",
    "py": "python",
    "rb": "ruby",
    "sh": "shell",
    "bash": "shell",
    "zsh": "shell",
    "fish": "shell",
    "yml": "yaml",
    "md": "markdown",
    "dockerfile": "docker",
}
