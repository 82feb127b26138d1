"""
Utility functions for logging relay failures, including the exception that
caused them (e.g. the httpx or requests error behind a TransportError).
"""

import logging
from typing import Optional


def _safe_str(obj) -> str:
    """
    Safely convert an object to string, handling cases where __str__ or __repr__ might fail.
    """
    try:
        return str(obj)
    except Exception:
        try:
            return repr(obj)
        except Exception:
            return f"<{type(obj).__name__} object (string conversion failed)>"


def _cause_of(exception: BaseException) -> Optional[BaseException]:
    cause = getattr(exception, "__cause__", None)
    if cause is None and not getattr(exception, "__suppress_context__", False):
        cause = getattr(exception, "__context__", None)
    return cause


def format_exception_message(exception: Optional[BaseException]) -> str:
    """
    Format an exception message together with the chain of causes behind it.
    This function never raises, even for exceptions whose __str__ is broken.

    Args:
        exception: The exception to format

    Returns:
        A string like ``"message (caused by ConnectError: refused)"``
    """
    if exception is None:
        return "None"

    message = _safe_str(exception)
    causes = []
    seen = {id(exception)}
    cause = _cause_of(exception)
    while cause is not None and id(cause) not in seen:
        seen.add(id(cause))
        causes.append(f"{type(cause).__name__}: {_safe_str(cause)}")
        cause = _cause_of(cause)

    if causes:
        return f"{message} (caused by {'; '.join(causes)})"
    return message


def log_exception_with_details(
    logger: logging.Logger,
    prefix: str,
    exception: Optional[BaseException],
    level: int = logging.ERROR,
) -> None:
    """
    Log an exception with its type and causes. Tracebacks are only attached at
    ERROR level and above. Logging failures are swallowed so that reporting an
    error can never replace it with another one.

    Args:
        logger: The logger instance to use
        prefix: Prefix for the log message (e.g., "[Relay]")
        exception: The exception to log
        level: The logging level to use (default: ERROR)
    """
    try:
        name = type(exception).__name__ if exception is not None else "None"
        message = f"{prefix} {name}: {format_exception_message(exception)}"
        exc_info = exception if exception is not None and level >= logging.ERROR else None
        logger.log(level, message, exc_info=exc_info)
    except Exception:
        try:
            logger.log(level, f"{prefix} Exception (logging failed)")
        except Exception:
            pass
