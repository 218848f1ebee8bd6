"""Navigation lifecycle tracking for a single frame."""

import asyncio
from typing import Any, Awaitable, Optional, TYPE_CHECKING

from ..cdp.manager import CDPEventListener
from ..types import NavigationState, WaitUntil
from ..utils.logger import BrowserControlLogger
from .errors import FrameDetachedError, NavigationFailedError, TimeoutError

if TYPE_CHECKING:
    from .frame_manager import Frame, FrameManager
    from .request import Request, Response

_LIFECYCLE_EVENTS = {
    "load": "load",
    "domcontentloaded": "DOMContentLoaded",
}


class NavigationWatcher:
    """
    Follows one navigation of ``frame`` through its states.

    STARTED -> DOCUMENT_REQUEST_SENT -> DOCUMENT_REQUEST_SUCCEEDED -> COMPLETED,
    with FAILED reachable from any non-final state and a redirect hop moving
    back to DOCUMENT_REQUEST_SENT. Failures are kept as the result of the
    termination future and raised by :meth:`race` / :meth:`wait_for_completion`.
    """

    def __init__(
        self,
        frame_manager: "FrameManager",
        frame: "Frame",
        url: str,
        wait_until: WaitUntil,
        timeout_ms: Optional[int],
        logger: BrowserControlLogger,
    ):
        loop = asyncio.get_running_loop()
        self.state = NavigationState.STARTED
        self._frame_manager = frame_manager
        self._frame = frame
        self._url = url
        self._expected_lifecycle = _LIFECYCLE_EVENTS[wait_until]
        self._timeout_ms = timeout_ms
        self._logger = logger.child(component="navigation")
        self._initial_loader_id = frame.loader_id
        self._navigation_request: Optional["Request"] = None
        self._has_same_document_navigation = False

        self._termination: "asyncio.Future[BaseException]" = loop.create_future()
        self._same_document = loop.create_future()
        self._new_document = loop.create_future()

        network = frame_manager.network_manager
        self._listeners = CDPEventListener()
        self._listeners.add_listener(network, "request", self._on_request)
        self._listeners.add_listener(network, "response", self._on_response)
        self._listeners.add_listener(network, "request_failed", self._on_request_failed)
        self._listeners.add_listener(frame_manager, "frame_lifecycle", self._check_lifecycle_complete)
        self._listeners.add_listener(
            frame_manager, "frame_navigated_within_document", self._on_navigated_within_document
        )
        self._listeners.add_listener(frame_manager, "frame_detached", self._on_frame_detached)

        self._timeout_handle: Optional[asyncio.TimerHandle] = None
        if timeout_ms:
            self._timeout_handle = loop.call_later(timeout_ms / 1000, self._on_timeout)

    def navigation_response(self) -> Optional["Response"]:
        if self._navigation_request is None:
            return None
        return self._navigation_request.response

    async def race(self, awaitable: Awaitable[Any]) -> Any:
        """Await ``awaitable`` unless the navigation terminates first."""
        task = asyncio.ensure_future(awaitable)
        await asyncio.wait({task, self._termination}, return_when=asyncio.FIRST_COMPLETED)
        if self._termination.done():
            # The termination reason wins over whatever the command reported
            if not task.done():
                task.cancel()
            elif not task.cancelled():
                task.exception()
            self._set_state(NavigationState.FAILED)
            raise self._termination.result()
        try:
            return task.result()
        except BaseException:
            self._set_state(NavigationState.FAILED)
            raise

    async def wait_for_completion(self, same_document: bool) -> None:
        """Wait for the lifecycle event that completes the navigation."""
        target = self._same_document if same_document else self._new_document
        await asyncio.wait({target, self._termination}, return_when=asyncio.FIRST_COMPLETED)
        if not target.done():
            self._set_state(NavigationState.FAILED)
            raise self._termination.result()
        self._set_state(NavigationState.COMPLETED)

    def dispose(self) -> None:
        self._listeners.clear()
        if self._timeout_handle is not None:
            self._timeout_handle.cancel()

    def _set_state(self, state: NavigationState) -> None:
        if self.state is state:
            return
        self._logger.debug("page:navigate", "Navigation state changed", url=self._url, state=state.value)
        self.state = state

    def _terminate(self, error: BaseException) -> None:
        if not self._termination.done():
            self._termination.set_result(error)

    def _on_timeout(self) -> None:
        self._terminate(TimeoutError(f"navigation to {self._url}", self._timeout_ms))

    def _on_request(self, request: "Request") -> None:
        if request.frame is not self._frame or not request.is_navigation_request:
            return
        self._navigation_request = request
        self._set_state(NavigationState.DOCUMENT_REQUEST_SENT)

    def _on_response(self, response: "Response") -> None:
        if response.request is not self._navigation_request or response.from_redirect:
            return
        self._set_state(NavigationState.DOCUMENT_REQUEST_SUCCEEDED)

    def _on_request_failed(self, request: "Request") -> None:
        if request is not self._navigation_request:
            return
        self._terminate(NavigationFailedError(request.failure_text or "net::ERR_FAILED", self._url))

    def _on_frame_detached(self, frame: "Frame") -> None:
        if frame is self._frame:
            self._terminate(FrameDetachedError("navigation", frame.id))

    def _on_navigated_within_document(self, frame: "Frame") -> None:
        if frame is not self._frame:
            return
        self._has_same_document_navigation = True
        self._check_lifecycle_complete()

    def _check_lifecycle_complete(self, frame: Optional["Frame"] = None) -> None:
        if not self._lifecycle_reached(self._frame):
            return
        if self._has_same_document_navigation and not self._same_document.done():
            self._same_document.set_result(None)
        if self._frame.loader_id != self._initial_loader_id and not self._new_document.done():
            self._new_document.set_result(None)

    def _lifecycle_reached(self, frame: "Frame") -> bool:
        if self._expected_lifecycle not in frame.lifecycle_events:
            return False
        return all(self._lifecycle_reached(child) for child in frame.child_frames)
