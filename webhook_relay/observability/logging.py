"""structlog configuration and the relay's log level model.

Levels are ordered by severity: error=0, warn=1, info=2, debug=3. A
message is emitted when the active level's number is greater than or
equal to the message's number.
"""

import logging
from enum import Enum

import structlog


class LogLevel(str, Enum):
    """Supported verbosity levels."""

    ERROR = "error"
    WARN = "warn"
    INFO = "info"
    DEBUG = "debug"

    @property
    def severity(self) -> int:
        """Numeric severity, lower is more severe."""
        return _SEVERITY[self]

    @property
    def stdlib_level(self) -> int:
        """Equivalent stdlib logging level, used by structlog's filter."""
        return _STDLIB_LEVELS[self]

    def enables(self, message_level: "LogLevel") -> bool:
        """Check whether a message at message_level is emitted at this level."""
        return self.severity >= message_level.severity


_SEVERITY = {
    LogLevel.ERROR: 0,
    LogLevel.WARN: 1,
    LogLevel.INFO: 2,
    LogLevel.DEBUG: 3,
}

_STDLIB_LEVELS = {
    LogLevel.ERROR: logging.ERROR,
    LogLevel.WARN: logging.WARNING,
    LogLevel.INFO: logging.INFO,
    LogLevel.DEBUG: logging.DEBUG,
}


def parse_log_level(value: str | LogLevel | None) -> LogLevel:
    """Parse a level name, defaulting to info.

    Args:
        value: Level name (case-insensitive), "warning" is accepted for warn.

    Returns:
        Parsed LogLevel.

    Raises:
        ValueError: If the name is not a known level.
    """
    if value is None or value == "":
        return LogLevel.INFO
    if isinstance(value, LogLevel):
        return value
    name = str(value).strip().lower()
    if name == "warning":
        name = "warn"
    return LogLevel(name)


def configure_logging(
    level: str | LogLevel = LogLevel.INFO,
    *,
    json_output: bool = False,
) -> None:
    """Configure structlog for the process.

    Args:
        level: Active verbosity level.
        json_output: Render JSON lines instead of console output.
    """
    log_level = parse_log_level(level)
    renderer = (
        structlog.processors.JSONRenderer()
        if json_output
        else structlog.dev.ConsoleRenderer(colors=False)
    )
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(log_level.stdlib_level),
        cache_logger_on_first_use=False,
    )
