"""Exception taxonomy for conversation retrieval.

Only connection failures and invalid query construction are meant to reach
callers as hard errors. Everything else is caught where records are
processed and degrades to empty or partial results.
"""

import traceback
from typing import Any


class CursorHistoryError(Exception):
    """Base error carrying a machine-readable code and an HTTP-like status."""

    def __init__(
        self,
        message: str,
        code: str = "UNKNOWN_ERROR",
        status_code: int | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.status_code = status_code


class DatabaseError(CursorHistoryError):
    """Store query failed after a successful connect."""

    def __init__(self, message: str, cause: BaseException | None = None):
        if cause is not None:
            message = f"Database error: {message}. Caused by: {cause}"
        else:
            message = f"Database error: {message}"
        super().__init__(message, "DATABASE_ERROR", 500)
        self.cause = cause


class StoreConnectionError(CursorHistoryError, ConnectionError):
    """Store is missing, unreadable, or not shaped like a chat-history store."""

    def __init__(self, db_path: str, cause: BaseException | None = None):
        message = f"Failed to connect to database at path: {db_path}"
        if cause is not None:
            message = f"{message}. Caused by: {cause}"
        super().__init__(message, "DATABASE_CONNECTION_ERROR", 500)
        self.db_path = db_path
        self.cause = cause


class ConversationNotFoundError(CursorHistoryError):
    def __init__(self, conversation_id: str):
        super().__init__(
            f"Conversation not found: {conversation_id}",
            "CONVERSATION_NOT_FOUND",
            404,
        )
        self.conversation_id = conversation_id


class ValidationError(CursorHistoryError):
    """Caller supplied options that cannot form a valid query."""

    def __init__(self, message: str, field: str | None = None, value: Any = None):
        if field:
            message = f"Validation error for field '{field}': {message}"
        else:
            message = f"Validation error: {message}"
        super().__init__(message, "VALIDATION_ERROR", 400)
        self.field = field
        self.value = value


class MissingParameterError(ValidationError):
    def __init__(self, parameter_name: str):
        super().__init__(
            f"Missing required parameter: {parameter_name}", parameter_name
        )
        self.code = "MISSING_PARAMETER"


class InvalidParameterError(ValidationError):
    def __init__(self, parameter_name: str, value: Any, expected: str | None = None):
        message = f"Invalid parameter '{parameter_name}'"
        if expected:
            message = f"{message}: expected {expected}, got {value!r}"
        super().__init__(message, parameter_name, value)
        self.code = "INVALID_PARAMETER"


class FileSystemError(CursorHistoryError):
    def __init__(self, message: str, path: str | None = None):
        if path:
            message = f"File system error at path '{path}': {message}"
        else:
            message = f"File system error: {message}"
        super().__init__(message, "FILESYSTEM_ERROR", 500)
        self.path = path


class DatabasePathNotFoundError(FileSystemError):
    def __init__(self, attempted_paths: list[str]):
        super().__init__(
            "Could not find Cursor database. Attempted paths: "
            + ", ".join(attempted_paths)
            + ". Set CURSOR_DB_PATH to the location of state.vscdb."
        )
        self.code = "DATABASE_PATH_NOT_FOUND"
        self.attempted_paths = attempted_paths


class FormatError(CursorHistoryError):
    """A single record could not be parsed or classified."""

    def __init__(
        self,
        message: str,
        conversation_id: str | None = None,
        cause: BaseException | None = None,
    ):
        self.reason = message
        if conversation_id:
            message = f"Failed to parse conversation '{conversation_id}': {message}"
        else:
            message = f"Failed to parse conversation data: {message}"
        super().__init__(message, "CONVERSATION_PARSE_ERROR", 500)
        self.conversation_id = conversation_id
        self.cause = cause


ConversationParseError = FormatError


def is_cursor_history_error(error: Any) -> bool:
    """Check whether a value is one of this package's errors."""
    return isinstance(error, CursorHistoryError)


def get_error_info(error: BaseException) -> dict[str, Any]:
    """Flatten an exception into a dict suitable for logging or responses."""
    info: dict[str, Any] = {
        "message": str(error),
        "code": "UNKNOWN_ERROR",
        "status_code": None,
        "stack": "".join(traceback.format_exception(error)).rstrip()
        if error.__traceback__
        else None,
    }

    if isinstance(error, CursorHistoryError):
        info["message"] = error.message
        info["code"] = error.code
        info["status_code"] = error.status_code

    cause = getattr(error, "cause", None) or error.__cause__
    if isinstance(cause, BaseException):
        info["cause"] = str(cause)

    return info
