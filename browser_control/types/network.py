"""Network and interception type definitions."""

from enum import Enum
from typing import Dict, Optional, Union

from pydantic import BaseModel, Field


class ResourceType(str, Enum):
    """Coarse classification of a request's purpose."""
    DOCUMENT = "document"
    STYLESHEET = "stylesheet"
    IMAGE = "image"
    MEDIA = "media"
    FONT = "font"
    SCRIPT = "script"
    TEXTTRACK = "texttrack"
    XHR = "xhr"
    FETCH = "fetch"
    EVENTSOURCE = "eventsource"
    WEBSOCKET = "websocket"
    MANIFEST = "manifest"
    OTHER = "other"

    @classmethod
    def from_cdp(cls, value: Optional[str]) -> "ResourceType":
        """Map a CDP ``Network.ResourceType`` string onto this enum."""
        try:
            return cls((value or "").lower())
        except ValueError:
            return cls.OTHER


class ErrorCode(str, Enum):
    """Error codes accepted by :meth:`Request.abort`."""
    ABORTED = "aborted"
    ACCESS_DENIED = "accessdenied"
    ADDRESS_UNREACHABLE = "addressunreachable"
    BLOCKED_BY_CLIENT = "blockedbyclient"
    BLOCKED_BY_RESPONSE = "blockedbyresponse"
    CONNECTION_ABORTED = "connectionaborted"
    CONNECTION_CLOSED = "connectionclosed"
    CONNECTION_FAILED = "connectionfailed"
    CONNECTION_REFUSED = "connectionrefused"
    CONNECTION_RESET = "connectionreset"
    INTERNET_DISCONNECTED = "internetdisconnected"
    NAME_NOT_RESOLVED = "namenotresolved"
    TIMED_OUT = "timedout"
    FAILED = "failed"

    @property
    def reason(self) -> str:
        """CDP ``Network.ErrorReason`` value."""
        return _ERROR_REASONS[self]

    @property
    def net_error(self) -> str:
        """Chromium failure text, e.g. ``net::ERR_FAILED``."""
        return _NET_ERRORS[self]


_ERROR_REASONS: Dict[ErrorCode, str] = {
    ErrorCode.ABORTED: "Aborted",
    ErrorCode.ACCESS_DENIED: "AccessDenied",
    ErrorCode.ADDRESS_UNREACHABLE: "AddressUnreachable",
    ErrorCode.BLOCKED_BY_CLIENT: "BlockedByClient",
    ErrorCode.BLOCKED_BY_RESPONSE: "BlockedByResponse",
    ErrorCode.CONNECTION_ABORTED: "ConnectionAborted",
    ErrorCode.CONNECTION_CLOSED: "ConnectionClosed",
    ErrorCode.CONNECTION_FAILED: "ConnectionFailed",
    ErrorCode.CONNECTION_REFUSED: "ConnectionRefused",
    ErrorCode.CONNECTION_RESET: "ConnectionReset",
    ErrorCode.INTERNET_DISCONNECTED: "InternetDisconnected",
    ErrorCode.NAME_NOT_RESOLVED: "NameNotResolved",
    ErrorCode.TIMED_OUT: "TimedOut",
    ErrorCode.FAILED: "Failed",
}

_NET_ERRORS: Dict[ErrorCode, str] = {
    ErrorCode.ABORTED: "net::ERR_ABORTED",
    ErrorCode.ACCESS_DENIED: "net::ERR_ACCESS_DENIED",
    ErrorCode.ADDRESS_UNREACHABLE: "net::ERR_ADDRESS_UNREACHABLE",
    ErrorCode.BLOCKED_BY_CLIENT: "net::ERR_BLOCKED_BY_CLIENT",
    ErrorCode.BLOCKED_BY_RESPONSE: "net::ERR_BLOCKED_BY_RESPONSE",
    ErrorCode.CONNECTION_ABORTED: "net::ERR_CONNECTION_ABORTED",
    ErrorCode.CONNECTION_CLOSED: "net::ERR_CONNECTION_CLOSED",
    ErrorCode.CONNECTION_FAILED: "net::ERR_CONNECTION_FAILED",
    ErrorCode.CONNECTION_REFUSED: "net::ERR_CONNECTION_REFUSED",
    ErrorCode.CONNECTION_RESET: "net::ERR_CONNECTION_RESET",
    ErrorCode.INTERNET_DISCONNECTED: "net::ERR_INTERNET_DISCONNECTED",
    ErrorCode.NAME_NOT_RESOLVED: "net::ERR_NAME_NOT_RESOLVED",
    ErrorCode.TIMED_OUT: "net::ERR_TIMED_OUT",
    ErrorCode.FAILED: "net::ERR_FAILED",
}


class InterceptionOutcome(str, Enum):
    """Terminal state of an intercepted request."""
    UNSET = "unset"
    CONTINUED = "continued"
    ABORTED = "aborted"
    RESPONDED = "responded"


class ContinueOverrides(BaseModel):
    """Fields that may replace the original request when continuing it."""
    url: Optional[str] = None
    method: Optional[str] = None
    headers: Optional[Dict[str, str]] = None
    post_data: Optional[str] = None

    def is_empty(self) -> bool:
        return not any(
            value is not None
            for value in (self.url, self.method, self.headers, self.post_data)
        )


class MockResponse(BaseModel):
    """Synthetic response used by :meth:`Request.respond`."""
    status: int = Field(default=200, ge=100, le=599)
    headers: Dict[str, str] = Field(default_factory=dict)
    content_type: Optional[str] = None
    body: Union[str, bytes] = b""

    def body_bytes(self) -> bytes:
        if isinstance(self.body, str):
            return self.body.encode("utf-8")
        return self.body
