"""Database SQL queries, keys, and record markers."""

from typing import Final

# Backing store table and key namespaces
STORE_TABLE_NAME: Final[str] = "cursorDiskKV"
COMPOSER_KEY_PREFIX: Final[str] = "composerData:"
BUBBLE_KEY_PREFIX: Final[str] = "bubbleId:"

# Connection probe, fails when the table is missing
SQL_PROBE_STORE = "SELECT COUNT(*) AS count FROM cursorDiskKV LIMIT 1"

# Point lookups
SQL_GET_VALUE_BY_KEY = "SELECT value FROM cursorDiskKV WHERE key = ?"
SQL_COUNT_CONVERSATIONS = (
    "SELECT COUNT(*) FROM cursorDiskKV WHERE key LIKE 'composerData:%'"
)
SQL_LIST_BUBBLE_KEYS = (
    "SELECT key FROM cursorDiskKV WHERE key LIKE ? ESCAPE '\\' ORDER BY ROWID"
)

# Conversation scans, WHERE clause is assembled from the prefilter clauses below
SQL_SELECT_CONVERSATION_KEYS = (
    "SELECT key FROM cursorDiskKV WHERE {conditions} ORDER BY ROWID DESC LIMIT ?"
)  # nosec B608, conditions are built from fixed clause strings
SQL_SELECT_CONVERSATION_ROWS = (
    "SELECT key, length(value) AS size, value FROM cursorDiskKV "
    "WHERE {conditions} ORDER BY ROWID DESC LIMIT ?"
)  # nosec B608, conditions are built from fixed clause strings

# Syntactic prefilter clauses over the serialized record text
CLAUSE_COMPOSER_KEY = "key LIKE 'composerData:%'"
CLAUSE_MIN_LENGTH = "length(value) > ?"
CLAUSE_FORMAT_LEGACY = "value NOT LIKE '%\"\\_v\":%' ESCAPE '\\'"
CLAUSE_FORMAT_MODERN = "value LIKE '%\"\\_v\":%' ESCAPE '\\'"
CLAUSE_HAS_CODE = "value LIKE '%\"suggestedCodeBlocks\":[%'"
CLAUSE_VALUE_LIKE = "value LIKE ?"
CLAUSE_VALUE_LIKE_ESCAPED = "value LIKE ? ESCAPE '\\'"

# LIKE templates, formatted with an already-quoted path fragment
LIKE_PROJECT_FOLDER = '%"attachedFoldersNew":[%"{path}%'
LIKE_PROJECT_FILE = '%"relevantFiles":[%"{path}%'
LIKE_FILE_PATTERN = '%"relevantFiles":[%"{pattern}%'
LIKE_EXACT_FILE = '%"relevantFiles":[%"{path}"%'
LIKE_SUBSTRING = "%{text}%"

# Search-type prefilters
SEARCH_TYPE_PATTERNS: Final[dict[str, tuple[str, ...]]] = {
    "summarization": ("%summarization%", "%summarize%", "%summary%"),
    "code": ("%suggestedCodeBlocks%", "%```%"),
    "files": ("%relevantFiles%", "%attachedFoldersNew%"),
}

# Record markers
MODERN_VERSION_FIELD: Final[str] = "_v"
LEGACY_MESSAGES_FIELD: Final[str] = "conversation"
MODERN_HEADERS_FIELD: Final[str] = "fullConversationHeadersOnly"

# Message roles as stored; bubbles may omit the role, the header carries it
MESSAGE_TYPE_UNKNOWN: Final[int] = 0
MESSAGE_TYPE_USER: Final[int] = 1
MESSAGE_TYPE_ASSISTANT: Final[int] = 2

# Unix timestamp in milliseconds
TIMESTAMP_MILLISECOND_THRESHOLD = 1000000000000
