"""Custom exception hierarchy for browser-control."""

from typing import Optional, Any, Dict


class BrowserControlError(Exception):
    """Base exception for all browser-control errors."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class InterceptionNotEnabledError(BrowserControlError):
    """Raised when a request is handled while interception is off."""

    def __init__(self, url: Optional[str] = None):
        super().__init__(
            "Request Interception is not enabled!",
            {"url": url, "error_code": "INTERCEPTION_NOT_ENABLED"}
        )


class AlreadyHandledError(BrowserControlError):
    """Raised when a second terminal operation is applied to a request."""

    def __init__(self, url: Optional[str] = None, outcome: Optional[str] = None):
        super().__init__(
            "Request is already handled!",
            {"url": url, "outcome": outcome, "error_code": "ALREADY_HANDLED"}
        )


class RequestRedirectedError(BrowserControlError):
    """Raised when overrides target a hop that a redirect already superseded."""

    def __init__(self, url: str):
        super().__init__(
            f"Request to {url} was already redirected; overrides cannot be applied",
            {"url": url, "error_code": "REQUEST_REDIRECTED"}
        )


class EvaluationFailedError(BrowserControlError):
    """Raised when script evaluation throws inside the page."""

    def __init__(self, reason: str):
        super().__init__(
            f"Evaluation failed: {reason}",
            {"reason": reason, "error_code": "EVALUATION_FAILED"}
        )


class CDPError(BrowserControlError):
    """Raised when Chrome DevTools Protocol operations fail."""

    def __init__(self, command: str, reason: str):
        super().__init__(
            f"CDP command '{command}' failed: {reason}",
            {"command": command, "reason": reason, "error_code": "CDP_ERROR"}
        )
        self.command = command
        self.reason = reason


class ExecutionContextDestroyedError(CDPError):
    """Raised when the target execution context went away mid-call."""

    def __init__(self, command: str, reason: str):
        super().__init__(command, reason)
        self.details["error_code"] = "CONTEXT_DESTROYED"


class TimeoutError(BrowserControlError):
    """Raised when operations timeout."""

    def __init__(self, operation: str, timeout_ms: int):
        super().__init__(
            f"{operation} failed: timeout {timeout_ms}ms exceeded",
            {"operation": operation, "timeout_ms": timeout_ms, "error_code": "TIMEOUT"}
        )
        self.timeout_ms = timeout_ms


class FrameDetachedError(BrowserControlError):
    """Raised when the frame an operation depends on is detached."""

    def __init__(self, operation: str, frame_id: Optional[str] = None):
        super().__init__(
            f"{operation} failed: frame got detached.",
            {"operation": operation, "frame_id": frame_id, "error_code": "FRAME_DETACHED"}
        )


class NavigationFailedError(BrowserControlError):
    """Raised when the document request of a navigation fails."""

    def __init__(self, code: str, url: str):
        super().__init__(
            f"{code} at {url}",
            {"code": code, "url": url, "error_code": "NAVIGATION_FAILED"}
        )
        self.code = code
        self.url = url


class PageNotAvailableError(BrowserControlError):
    """Raised when page operations fail."""

    def __init__(self, reason: str):
        super().__init__(
            f"Page not available: {reason}",
            {"reason": reason, "error_code": "PAGE_NOT_AVAILABLE"}
        )


class ConfigurationError(BrowserControlError):
    """Raised when configuration is invalid."""

    def __init__(self, reason: str):
        super().__init__(
            f"Invalid configuration: {reason}",
            {"reason": reason, "error_code": "CONFIGURATION_ERROR"}
        )
