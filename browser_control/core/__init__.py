"""Core browser-control components."""

from .errors import (
    BrowserControlError,
    InterceptionNotEnabledError,
    AlreadyHandledError,
    RequestRedirectedError,
    EvaluationFailedError,
    CDPError,
    ExecutionContextDestroyedError,
    TimeoutError,
    FrameDetachedError,
    NavigationFailedError,
    PageNotAvailableError,
    ConfigurationError,
)
from .execution_context import ElementHandle, ExecutionContext, JSHandle
from .request import Request, Response
from .navigation import NavigationWatcher
from .network_manager import NetworkEvent, NetworkManager
from .frame_manager import Frame, FrameEvent, FrameManager
from .page import Page

__all__ = [
    # Main classes
    "Page",
    "Frame",
    "FrameManager",
    "FrameEvent",
    "NetworkManager",
    "NetworkEvent",
    "NavigationWatcher",
    "Request",
    "Response",
    "ExecutionContext",
    "JSHandle",
    "ElementHandle",
    # Errors
    "BrowserControlError",
    "InterceptionNotEnabledError",
    "AlreadyHandledError",
    "RequestRedirectedError",
    "EvaluationFailedError",
    "CDPError",
    "ExecutionContextDestroyedError",
    "TimeoutError",
    "FrameDetachedError",
    "NavigationFailedError",
    "PageNotAvailableError",
    "ConfigurationError",
]
