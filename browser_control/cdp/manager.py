"""CDP (Chrome DevTools Protocol) session management for browser-control."""

import weakref
from typing import Any, Callable, Dict, List, Optional, Tuple

from playwright.async_api import CDPSession, Page

from ..core.errors import CDPError, ExecutionContextDestroyedError
from ..utils.logger import BrowserControlLogger

_CONTEXT_GONE_MARKERS = (
    "Execution context was destroyed",
    "Cannot find context with specified id",
    "Cannot find default execution context",
)


class CDPClient:
    """
    Thin wrapper over a CDP session.

    Anything exposing ``send(method, params)``, ``on(event, handler)`` and
    ``remove_listener(event, handler)`` can be wrapped; Playwright's
    :class:`CDPSession` is the usual one. Transport failures surface as
    :class:`CDPError`.
    """

    def __init__(self, session: Any, logger: Optional[BrowserControlLogger] = None):
        self._session = session
        self._logger = logger

    @property
    def session(self) -> Any:
        return self._session

    async def send(self, method: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """Send a CDP command and return its result payload."""
        try:
            result = await self._session.send(method, params or {})
        except CDPError:
            raise
        except Exception as e:
            reason = str(e)
            if any(marker in reason for marker in _CONTEXT_GONE_MARKERS):
                raise ExecutionContextDestroyedError(method, reason) from e
            raise CDPError(method, reason) from e
        return result or {}

    def on(self, event: str, handler: Callable[[Dict[str, Any]], None]) -> None:
        self._session.on(event, handler)

    def remove_listener(self, event: str, handler: Callable[[Dict[str, Any]], None]) -> None:
        self._session.remove_listener(event, handler)


class CDPEventListener:
    """Tracks event subscriptions so a component can drop them all at once."""

    def __init__(self):
        self.listeners: List[Tuple[Any, str, Callable]] = []

    def add_listener(self, emitter: Any, event: str, callback: Callable) -> None:
        """
        Subscribe ``callback`` to ``event`` on ``emitter``.

        Args:
            emitter: CDP client or pyee emitter to listen on
            event: Event name (e.g., 'Network.requestWillBeSent')
            callback: Function to call when the event fires
        """
        emitter.on(event, callback)
        self.listeners.append((emitter, event, callback))

    def clear(self) -> None:
        """Remove every subscription made through this listener."""
        for emitter, event, callback in self.listeners:
            emitter.remove_listener(event, callback)
        self.listeners.clear()


class CDPSessionPool:
    """Caches one CDP session per Playwright page."""

    def __init__(self):
        # Sessions go away with their page
        self.page_sessions: weakref.WeakKeyDictionary = weakref.WeakKeyDictionary()

    async def get_session(self, page: Page) -> CDPSession:
        """
        Get or create the CDP session for a page.

        Args:
            page: The Playwright page to get a session for

        Returns:
            CDP session
        """
        if page not in self.page_sessions:
            try:
                self.page_sessions[page] = await page.context.new_cdp_session(page)
            except Exception as e:
                raise CDPError("Target.attachToTarget", f"Failed to create CDP session for page: {e}") from e
        return self.page_sessions[page]

    async def release(self, page: Page) -> None:
        """Detach and forget the session of ``page``."""
        session = self.page_sessions.pop(page, None)
        if session is not None:
            await session.detach()

    async def cleanup(self) -> None:
        """Detach all sessions."""
        for session in list(self.page_sessions.values()):
            await session.detach()
        self.page_sessions.clear()


class CDPManager:
    """Entry point for obtaining wrapped CDP clients."""

    def __init__(self):
        self.session_pool = CDPSessionPool()

    async def get_client(
        self,
        page: Page,
        logger: Optional[BrowserControlLogger] = None,
    ) -> CDPClient:
        """Get a :class:`CDPClient` for a Playwright page."""
        session = await self.session_pool.get_session(page)
        return CDPClient(session, logger)

    async def cleanup(self) -> None:
        """Clean up resources."""
        await self.session_pool.cleanup()


# Global CDP manager instance
cdp_manager = CDPManager()
