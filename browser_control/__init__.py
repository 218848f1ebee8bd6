"""
browser-control - request interception and selector waits over CDP.

browser-control drives a Chromium page through a Chrome DevTools Protocol
session: intercept, modify, abort or fulfill every request the page issues,
and wait for CSS selectors to appear, become visible or disappear.
"""

__version__ = "0.1.0"

from .core import (
    Page,
    Frame,
    Request,
    Response,
    ElementHandle,
    JSHandle,
    BrowserControlError,
    InterceptionNotEnabledError,
    AlreadyHandledError,
    RequestRedirectedError,
    EvaluationFailedError,
    CDPError,
    TimeoutError,
    FrameDetachedError,
    NavigationFailedError,
    ConfigurationError,
)

from .types import (
    ContinueOverrides,
    ErrorCode,
    InterceptionOutcome,
    MockResponse,
    NavigationOptions,
    PageEvent,
    PageOptions,
    ResourceType,
    VisibilityMode,
    WaitForSelectorOptions,
)

__all__ = [
    # Version
    "__version__",
    # Main classes
    "Page",
    "Frame",
    "Request",
    "Response",
    "ElementHandle",
    "JSHandle",
    # Common types
    "ContinueOverrides",
    "ErrorCode",
    "InterceptionOutcome",
    "MockResponse",
    "NavigationOptions",
    "PageEvent",
    "PageOptions",
    "ResourceType",
    "VisibilityMode",
    "WaitForSelectorOptions",
    # Common errors
    "BrowserControlError",
    "InterceptionNotEnabledError",
    "AlreadyHandledError",
    "RequestRedirectedError",
    "EvaluationFailedError",
    "CDPError",
    "TimeoutError",
    "FrameDetachedError",
    "NavigationFailedError",
    "ConfigurationError",
]
