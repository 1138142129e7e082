"""Path and environment configuration."""

import os
from pathlib import Path

# Log home, logging is disabled when unset
CURSOR_HISTORY_HOME = os.getenv("CURSOR_HISTORY_HOME", "")

# Explicit store location, no OS auto-detection is attempted
CURSOR_DB_PATH = os.getenv("CURSOR_DB_PATH", "")

# Weights configuration, can be overridden for testing
WEIGHTS_FILE_NAME = "cursor-history-weights.yaml"
_PACKAGE_CONFIG_DIR = Path(__file__).resolve().parent.parent
DEFAULT_WEIGHTS_FILE = _PACKAGE_CONFIG_DIR / WEIGHTS_FILE_NAME
WEIGHTS_FILE_OVERRIDE = os.getenv("CURSOR_HISTORY_WEIGHTS_FILE")
