"""Opt-in loguru output for forestkit.

The package logger is disabled on import (see `forestkit/__init__.py`).
`enable_logging` turns it on and attaches a stderr handler; the returned
`LoggingHandle` removes that handler again. Forest queries log at the custom
`QUERY` level, which sits between INFO and WARNING so that one record per
`leaf_ids`/`predict_proba`/`predict` call is visible without the per-block
DEBUG diagnostics.
"""

from __future__ import annotations

import contextlib
import sys
import threading
import warnings
from typing import TYPE_CHECKING, ClassVar, Final, Literal

from loguru import logger

if TYPE_CHECKING:
    from types import TracebackType

    from loguru import Record

PACKAGE_NAME: Final[str] = __name__.split(".")[0]

QUERY_LEVEL: Final[str] = "QUERY"
QUERY_LEVEL_NUMBER: Final[int] = 25

# Drop loguru's default stderr handler; enable_logging installs a filtered one.
with contextlib.suppress(ValueError):
    logger.remove(0)

type LogLevel = Literal["TRACE", "DEBUG", "QUERY", "INFO", "WARNING", "ERROR", "CRITICAL"]

type LogFormat = Literal["short", "full"]

_LOCATION: Final[dict[str, str]] = {
    "short": "<cyan>{function}</cyan>",
    "full": "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan>",
}


def _register_query_level() -> None:
    """Register the QUERY level, or warn if another number already claims the name."""
    try:
        existing = logger.level(QUERY_LEVEL)
    except ValueError:
        logger.level(QUERY_LEVEL, no=QUERY_LEVEL_NUMBER, icon="🌲")
        return
    if existing.no != QUERY_LEVEL_NUMBER:
        warnings.warn(
            f"QUERY level already registered with numeric value {existing.no}, expected {QUERY_LEVEL_NUMBER}",
            stacklevel=2,
        )


_register_query_level()


class LoggingHandle:
    """Owns one stderr handler added by `enable_logging`.

    Handles are independent. The package logger stays enabled while at least
    one handle is active and is disabled again when the last one is closed.

    Examples:
        >>> with enable_logging(level="DEBUG"):  # doctest: +SKIP
        ...     model.predict(features, labels)
    """

    _active_ids: ClassVar[set[int]] = set()
    _lock: ClassVar[threading.Lock] = threading.Lock()

    def __init__(self, handler_id: int) -> None:
        self.handler_id: int | None = handler_id
        with LoggingHandle._lock:
            LoggingHandle._active_ids.add(handler_id)

    def disable(self) -> None:
        """Remove this handle's handler; safe to call more than once."""
        with LoggingHandle._lock:
            if self.handler_id is None:
                return
            LoggingHandle._active_ids.discard(self.handler_id)
            with contextlib.suppress(ValueError):
                logger.remove(self.handler_id)
            self.handler_id = None
            if not LoggingHandle._active_ids:
                logger.disable(PACKAGE_NAME)

    def __enter__(self) -> LoggingHandle:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self.disable()

    @classmethod
    def get_active_handle_count(cls) -> int:
        with cls._lock:
            return len(cls._active_ids)


def enable_logging(
    *,
    level: LogLevel = QUERY_LEVEL,
    log_format: LogFormat = "short",
) -> LoggingHandle:
    """Send forestkit log records to stderr.

    Args:
        level (LogLevel): Minimum level to print. The default, "QUERY", shows
            one record per query plus WARNING records for failed
            preconditions; merges and imports log at INFO. "DEBUG" adds
            thread counts and split-comparison averages.
        log_format (LogFormat): "short" names only the logging function;
            "full" adds the module and line number.

    Returns:
        LoggingHandle: Handle that removes the handler on `disable()` or on
            leaving a `with` block.
    """
    logger.enable(PACKAGE_NAME)
    format_str = (
        "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
        "<level>{level: <8}</level> | "  # noqa: RUF027 - loguru format string
        f"{_LOCATION[log_format]} - "
        "<level>{message}</level> {extra}"
    )
    handler_id = logger.add(sys.stderr, level=level, filter=_is_forestkit_record, format=format_str)
    return LoggingHandle(handler_id)


def _is_forestkit_record(record: Record) -> bool:
    name = record["name"]
    return name is not None and name.startswith(PACKAGE_NAME)
