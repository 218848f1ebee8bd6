"""Core type definitions for browser-control."""

import os
from enum import Enum
from typing import Literal, Optional

from pydantic import BaseModel, Field, model_validator

DEFAULT_TIMEOUT_MS = 30000


class PageEvent(str, Enum):
    """Events emitted by :class:`browser_control.Page`."""
    REQUEST = "request"
    RESPONSE = "response"
    REQUEST_FAILED = "request_failed"
    REQUEST_FINISHED = "request_finished"
    FRAME_ATTACHED = "frame_attached"
    FRAME_NAVIGATED = "frame_navigated"
    FRAME_DETACHED = "frame_detached"
    ERROR = "error"


class VisibilityMode(str, Enum):
    """Which node state a selector wait is looking for."""
    ANY = "any"
    VISIBLE = "visible"
    HIDDEN = "hidden"


class NavigationState(str, Enum):
    """States of a single navigation attempt."""
    STARTED = "started"
    DOCUMENT_REQUEST_SENT = "document_request_sent"
    DOCUMENT_REQUEST_SUCCEEDED = "document_request_succeeded"
    COMPLETED = "completed"
    FAILED = "failed"


WaitUntil = Literal["load", "domcontentloaded"]


class PageOptions(BaseModel):
    """Page-wide configuration."""
    default_timeout_ms: int = Field(default=DEFAULT_TIMEOUT_MS, ge=0)
    navigation_timeout_ms: int = Field(default=DEFAULT_TIMEOUT_MS, ge=0)
    wait_until: WaitUntil = "load"
    verbose: int = Field(default=0, ge=0, le=3)

    @classmethod
    def from_env(cls) -> "PageOptions":
        """Build options from ``BROWSER_CONTROL_*`` environment variables."""
        values = {}
        timeout = os.getenv("BROWSER_CONTROL_TIMEOUT_MS")
        if timeout is not None:
            values["default_timeout_ms"] = timeout
        navigation_timeout = os.getenv("BROWSER_CONTROL_NAVIGATION_TIMEOUT_MS")
        if navigation_timeout is not None:
            values["navigation_timeout_ms"] = navigation_timeout
        verbose = os.getenv("BROWSER_CONTROL_VERBOSE")
        if verbose is not None:
            values["verbose"] = verbose
        return cls(**values)


class WaitForSelectorOptions(BaseModel):
    """Options for ``wait_for_selector``."""
    visible: bool = False
    hidden: bool = False
    timeout: Optional[int] = Field(default=None, ge=0)  # ms, 0 disables
    survive_navigation: bool = False

    @model_validator(mode="after")
    def _check_modes(self) -> "WaitForSelectorOptions":
        if self.visible and self.hidden:
            raise ValueError("visible and hidden are mutually exclusive")
        return self

    @property
    def visibility(self) -> VisibilityMode:
        if self.visible:
            return VisibilityMode.VISIBLE
        if self.hidden:
            return VisibilityMode.HIDDEN
        return VisibilityMode.ANY


class NavigationOptions(BaseModel):
    """Options for ``goto``."""
    timeout: Optional[int] = Field(default=None, ge=0)  # ms, 0 disables
    wait_until: Optional[WaitUntil] = None
    referer: Optional[str] = None
