"""Type definitions for browser-control."""

from .models import (
    DEFAULT_TIMEOUT_MS,
    NavigationOptions,
    NavigationState,
    PageEvent,
    PageOptions,
    VisibilityMode,
    WaitForSelectorOptions,
    WaitUntil,
)
from .network import (
    ContinueOverrides,
    ErrorCode,
    InterceptionOutcome,
    MockResponse,
    ResourceType,
)

__all__ = [
    "DEFAULT_TIMEOUT_MS",
    "NavigationOptions",
    "NavigationState",
    "PageEvent",
    "PageOptions",
    "VisibilityMode",
    "WaitForSelectorOptions",
    "WaitUntil",
    "ContinueOverrides",
    "ErrorCode",
    "InterceptionOutcome",
    "MockResponse",
    "ResourceType",
]
