"""Shared utilities for browser-control."""

from .logger import (
    BrowserControlLogger,
    LogLevel,
    LogLine,
    configure_logging,
    create_logger,
    redact_headers,
)
from .helpers import (
    headers_to_entries,
    is_js_function,
    merge_headers,
    strip_fragment,
)

__all__ = [
    "BrowserControlLogger",
    "LogLevel",
    "LogLine",
    "configure_logging",
    "create_logger",
    "redact_headers",
    "headers_to_entries",
    "is_js_function",
    "merge_headers",
    "strip_fragment",
]
