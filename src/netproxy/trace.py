"""Process-wide trace sink of the proxies.

Tracing is disabled by default. When it is enabled, messages are sent to a
user-defined trace function if there is one, or to the standard ``netproxy``
logger otherwise.

The ``netproxy`` logger is subject to the configuration of the ``logging``
module like any other logger. While ``logging`` is unconfigured, only
messages of ``WARNING`` level or above are printed, so informational traces
such as ``trace_info()`` stay invisible until the application configures a
handler and a level, e.g. with ``logging.basicConfig(level=logging.INFO)``.
"""

import logging

from enum import IntEnum
from threading import Lock
from typing import Any, Callable, Optional, Tuple

__all__ = (
    "TraceFunction",
    "TraceLevel",
    "TraceSettings",
    "enable_tracing",
    "set_trace_function",
    "settings",
    "trace",
    "trace_error",
    "trace_info",
)


class TraceLevel(IntEnum):
    """Severity levels of trace messages. Lower values are more severe."""

    EMERGENCY = 0
    ALERT = 1
    CRITICAL = 2
    ERROR = 3
    WARNING = 4
    NOTICE = 5
    INFORMATIONAL = 6
    DEBUG = 7

    @property
    def logging_level(self) -> int:
        """The level of the standard ``logging`` module that corresponds to
        this trace level.
        """
        return _logging_levels[self]


_logging_levels = {
    TraceLevel.EMERGENCY: logging.CRITICAL,
    TraceLevel.ALERT: logging.CRITICAL,
    TraceLevel.CRITICAL: logging.CRITICAL,
    TraceLevel.ERROR: logging.ERROR,
    TraceLevel.WARNING: logging.WARNING,
    TraceLevel.NOTICE: logging.INFO,
    TraceLevel.INFORMATIONAL: logging.INFO,
    TraceLevel.DEBUG: logging.DEBUG,
}

TraceFunction = Callable[..., None]
"""Type of user-defined trace functions. They are called with a ``%``-style
format string, a TraceLevel_ and the values to substitute into the format
string.
"""

log = logging.getLogger(__name__.rpartition(".")[0])


class TraceSettings:
    """Holds whether tracing is enabled and where trace messages should be
    sent to.

    Both settings are stored together in an immutable tuple so readers always
    see a consistent pair without locking; writers are serialized with a lock.
    """

    _lock: Lock
    _state: Tuple[bool, Optional[TraceFunction]]

    def __init__(self):
        self._lock = Lock()
        self._state = (False, None)

    @property
    def enabled(self) -> bool:
        """Whether tracing is enabled."""
        return self._state[0]

    @enabled.setter
    def enabled(self, value: bool) -> None:
        with self._lock:
            self._state = (bool(value), self._state[1])

    @property
    def function(self) -> Optional[TraceFunction]:
        """The user-defined trace function; ``None`` means that trace messages
        go to the ``netproxy`` logger.
        """
        return self._state[1]

    @function.setter
    def function(self, value: Optional[TraceFunction]) -> None:
        with self._lock:
            self._state = (self._state[0], value)

    def emit(self, level: TraceLevel, format: str, *args: Any) -> None:
        """Sends a trace message to the sink if tracing is enabled."""
        enabled, func = self._state
        if not enabled:
            return

        if func is None:
            log.log(level.logging_level, format, *args)
            return

        try:
            func(format, level, *args)
        except Exception:
            log.exception("Trace function raised an exception")

    def reset(self) -> None:
        """Disables tracing and removes the user-defined trace function."""
        with self._lock:
            self._state = (False, None)


settings = TraceSettings()
"""Singleton trace settings object shared by all the proxies."""


def enable_tracing(enable: bool = True) -> None:
    """Enables or disables tracing globally."""
    settings.enabled = enable


def set_trace_function(func: Optional[TraceFunction]) -> None:
    """Sets the user-defined trace function that receives all trace messages
    while tracing is enabled. ``None`` restores the default logger.
    """
    settings.function = func


def trace(level: TraceLevel, format: str, *args: Any) -> None:
    settings.emit(level, format, *args)


def trace_info(format: str, *args: Any) -> None:
    settings.emit(TraceLevel.INFORMATIONAL, format, *args)


def trace_error(format: str, *args: Any) -> None:
    settings.emit(TraceLevel.ERROR, format, *args)
