"""Error handling patterns for per-record processing."""

import json
import sqlite3
from collections.abc import Callable
from functools import wraps
from typing import Any, ParamSpec, TypeVar

from cursor_history.utils.errors import FormatError
from cursor_history.utils.logger import log_error

P = ParamSpec("P")
T = TypeVar("T")

# Failures that only invalidate the record being processed
RECORD_ERRORS = (
    json.JSONDecodeError,
    FormatError,
    KeyError,
    TypeError,
    ValueError,
    AttributeError,
)


def handle_record_errors(
    operation_name: str, default_value: Any = None
) -> Callable[[Callable[P, T]], Callable[P, T]]:
    """Decorator that logs a per-record failure and returns a default instead."""

    def decorator(func: Callable[P, T]) -> Callable[P, T]:
        @wraps(func)
        def wrapper(*args: P.args, **kwargs: P.kwargs) -> T:
            try:
                return func(*args, **kwargs)
            except RECORD_ERRORS as e:
                log_error(e, f"record_{operation_name}")
                return default_value

        return wrapper

    return decorator


def safe_execute(
    operation_name: str, func: Callable[..., Any], *args: Any, **kwargs: Any
) -> tuple[Any, bool]:
    """Safely execute a function and return (result, success_flag)."""
    try:
        return func(*args, **kwargs), True
    except RECORD_ERRORS as e:
        log_error(e, operation_name)
        return None, False
    except sqlite3.Error as e:
        log_error(e, f"database_{operation_name}")
        return None, False
