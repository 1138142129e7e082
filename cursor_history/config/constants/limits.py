"""Application limits and validation thresholds."""

from typing import Final

# Store defaults
DEFAULT_MAX_CONVERSATIONS: Final[int] = 1000
DEFAULT_MIN_CONVERSATION_SIZE: Final[int] = 100
DEFAULT_BUBBLE_RESOLUTION_LIMIT: Final[int] = 10

# Input validation limits
MAX_SEARCH_QUERY_LENGTH: Final[int] = 1000
MAX_SEARCH_RESULTS: Final[int] = 100

# Listing and search defaults
DEFAULT_LIST_LIMIT: Final[int] = 10
DEFAULT_RECENT_LIMIT: Final[int] = 10
DEFAULT_CONTEXT_LINES: Final[int] = 3
DEFAULT_PROJECT_SEARCH_LIMIT: Final[int] = 20
PROJECT_SEARCH_MIN_SIZE: Final[int] = 1000
DEFAULT_MIN_RELEVANCE_SCORE: Final[float] = 1.0

# Summary text limits
DEFAULT_FIRST_MESSAGE_LENGTH: Final[int] = 200
LIST_FIRST_MESSAGE_LENGTH: Final[int] = 150
PROJECT_FIRST_MESSAGE_LENGTH: Final[int] = 100
ELEMENT_CONTEXT_LENGTH: Final[int] = 200
SEARCH_FALLBACK_CONTEXT_LENGTH: Final[int] = 200

# Stats and analytics limits
STATS_TOP_ITEMS: Final[int] = 10
ANALYTICS_TOP_FILES: Final[int] = 20
ANALYTICS_TOP_LANGUAGES: Final[int] = 15
TEMPORAL_MIN_BINS: Final[int] = 3
TEMPORAL_MAX_BINS: Final[int] = 10
SIZE_DISTRIBUTION_BINS: Final[int] = 10
SIZE_PERCENTILES: Final[tuple[int, ...]] = (10, 25, 50, 75, 90, 95, 99)

# Weights validation (0.0 to 100.0)
VALIDATION_WEIGHT_MIN: Final[float] = 0.0
VALIDATION_WEIGHT_MAX: Final[float] = 100.0
