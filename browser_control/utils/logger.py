"""Logging configuration for browser-control."""

import logging
import os
import sys
from enum import IntEnum
from typing import Any, Dict, List, Mapping, Optional

import structlog

# Header values never written to logs
REDACTED_HEADERS = frozenset({"authorization", "proxy-authorization", "cookie", "set-cookie"})


class LogLevel(IntEnum):
    """Log levels for browser-control; a line is kept when level <= verbose."""
    ERROR = 0
    WARN = 1
    INFO = 2
    DEBUG = 3


_STDLIB_LEVELS = {
    LogLevel.ERROR: logging.ERROR,
    LogLevel.WARN: logging.WARNING,
    LogLevel.INFO: logging.INFO,
    LogLevel.DEBUG: logging.DEBUG,
}

_METHOD_NAMES = {
    LogLevel.ERROR: "error",
    LogLevel.WARN: "warning",
    LogLevel.INFO: "info",
    LogLevel.DEBUG: "debug",
}


def redact_headers(headers: Mapping[str, str]) -> Dict[str, str]:
    """Copy ``headers`` with credential-bearing values masked."""
    return {
        name: "<redacted>" if name.lower() in REDACTED_HEADERS else value
        for name, value in headers.items()
    }


def _redact_header_fields(logger: Any, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    for key in ("headers", "extra_headers", "response_headers"):
        value = event_dict.get(key)
        if isinstance(value, Mapping):
            event_dict[key] = redact_headers(value)
    return event_dict


def configure_logging(verbose: int = 0) -> structlog.BoundLogger:
    """
    Configure structlog for browser-control.

    Args:
        verbose: Verbosity level (0-3)

    Returns:
        Configured logger instance
    """
    level = LogLevel(min(max(verbose, 0), LogLevel.DEBUG))

    processors: List[Any] = [
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        _redact_header_fields,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    if sys.stderr.isatty() and os.getenv("NO_COLOR") is None:
        processors.append(structlog.dev.ConsoleRenderer())
    else:
        processors.append(structlog.processors.JSONRenderer())

    structlog.configure(
        processors=processors,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(format="%(message)s", stream=sys.stderr, level=_STDLIB_LEVELS[level])

    return structlog.get_logger("browser_control").bind(verbose=verbose)


class LogLine:
    """A categorised log line, e.g. ``network:intercept`` / ``wait:done``."""

    def __init__(
        self,
        category: str,
        message: str,
        level: LogLevel = LogLevel.INFO,
        auxiliary: Optional[Dict[str, Any]] = None,
    ):
        self.category = category
        self.message = message
        self.level = level
        self.auxiliary = auxiliary or {}

    def to_dict(self) -> Dict[str, Any]:
        return {
            "category": self.category,
            "level": self.level.name,
            **self.auxiliary,
        }


class BrowserControlLogger:
    """
    Category logger shared by every browser-control component.

    Components take a child bound with their own context
    (``logger.child(component="network")``, ``logger.child(frame_id=...)``);
    lines above the configured verbosity are dropped before reaching structlog.
    """

    def __init__(self, logger: structlog.BoundLogger, verbose: int = 0):
        self.logger = logger
        self.verbose = verbose

    def is_enabled(self, level: LogLevel) -> bool:
        return level <= self.verbose

    def log(self, log_line: LogLine) -> None:
        if not self.is_enabled(log_line.level):
            return
        log_method = getattr(self.logger, _METHOD_NAMES[log_line.level])
        log_method(log_line.message, **log_line.to_dict())

    def error(self, category: str, message: str, **kwargs: Any) -> None:
        self.log(LogLine(category, message, LogLevel.ERROR, kwargs))

    def warn(self, category: str, message: str, **kwargs: Any) -> None:
        self.log(LogLine(category, message, LogLevel.WARN, kwargs))

    def info(self, category: str, message: str, **kwargs: Any) -> None:
        self.log(LogLine(category, message, LogLevel.INFO, kwargs))

    def debug(self, category: str, message: str, **kwargs: Any) -> None:
        self.log(LogLine(category, message, LogLevel.DEBUG, kwargs))

    def child(self, **bindings: Any) -> "BrowserControlLogger":
        """Create a child logger with additional context."""
        return BrowserControlLogger(self.logger.bind(**bindings), self.verbose)


def create_logger(verbose: int = 0) -> BrowserControlLogger:
    """Build a configured :class:`BrowserControlLogger`."""
    return BrowserControlLogger(configure_logging(verbose), verbose)
