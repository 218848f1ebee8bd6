"""CDP (Chrome DevTools Protocol) utilities for browser-control."""

from .manager import (
    CDPClient,
    CDPEventListener,
    CDPManager,
    CDPSessionPool,
    cdp_manager,
)

__all__ = [
    "CDPClient",
    "CDPEventListener",
    "CDPManager",
    "CDPSessionPool",
    "cdp_manager",
]
