"""Network event consumption and request interception."""

import asyncio
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Set, TYPE_CHECKING

import httpx
from pyee import EventEmitter

from ..cdp.manager import CDPClient, CDPEventListener
from ..utils.logger import BrowserControlLogger
from .errors import CDPError
from .request import Request, Response

if TYPE_CHECKING:
    from .frame_manager import FrameManager


class NetworkEvent(str, Enum):
    """Events emitted by :class:`NetworkManager`."""
    REQUEST = "request"
    RESPONSE = "response"
    REQUEST_FAILED = "request_failed"
    REQUEST_FINISHED = "request_finished"


class NetworkManager(EventEmitter):
    """
    Turns ``Network.*`` and ``Fetch.*`` events into :class:`Request` objects.

    With interception enabled every request is paused by the Fetch domain.
    ``Network.requestWillBeSent`` and ``Fetch.requestPaused`` for the same
    network id may arrive in either order; whichever comes second creates
    the Request. A will-be-sent event carrying ``redirectResponse`` closes
    the previous hop of the same network id.
    """

    def __init__(self, client: CDPClient, frame_manager: "FrameManager", logger: BrowserControlLogger):
        super().__init__()
        self._client = client
        self._frame_manager = frame_manager
        self._logger = logger.child(component="network")

        # network id -> live request
        self._requests: Dict[str, Request] = {}
        # interception id -> request awaiting a terminal operation
        self._interceptions: Dict[str, Request] = {}
        self._pending_will_be_sent: Dict[str, Dict[str, Any]] = {}
        self._pending_paused: Dict[str, Dict[str, Any]] = {}
        self._release_tasks: Set[asyncio.Task] = set()

        self._extra_http_headers = httpx.Headers()
        self._user_interception_enabled = False
        self._protocol_interception_enabled = False

        self._listeners = CDPEventListener()
        for event, handler in (
            ("Fetch.requestPaused", self._on_request_paused),
            ("Network.requestWillBeSent", self._on_request_will_be_sent),
            ("Network.responseReceived", self._on_response_received),
            ("Network.loadingFinished", self._on_loading_finished),
            ("Network.loadingFailed", self._on_loading_failed),
        ):
            self._listeners.add_listener(client, event, handler)

    @property
    def extra_http_headers(self) -> httpx.Headers:
        return httpx.Headers(self._extra_http_headers)

    @property
    def interception_enabled(self) -> bool:
        return self._user_interception_enabled

    def request_for_interception(self, interception_id: str) -> Optional[Request]:
        return self._interceptions.get(interception_id)

    def dispose(self) -> None:
        self._listeners.clear()

    async def set_extra_http_headers(self, headers: Mapping[str, str]) -> None:
        """
        Set headers sent with every request of the page.

        Raises:
            TypeError: A header value is not a string
        """
        for name, value in headers.items():
            if not isinstance(value, str):
                raise TypeError(
                    f'Expected value of header "{name}" to be string, but "{type(value).__name__}" is found.'
                )
        self._extra_http_headers = httpx.Headers(headers)
        self._logger.debug("network:headers", "Extra HTTP headers set", extra_headers=dict(self._extra_http_headers))
        await self._client.send("Network.setExtraHTTPHeaders", {"headers": dict(self._extra_http_headers)})

    async def set_request_interception(self, enabled: bool) -> None:
        """Turn interception on or off; repeated calls with the same value are no-ops."""
        self._user_interception_enabled = enabled
        await self._update_protocol_interception()

    async def _update_protocol_interception(self) -> None:
        enabled = self._user_interception_enabled
        if enabled == self._protocol_interception_enabled:
            return
        self._protocol_interception_enabled = enabled
        self._logger.info("network:intercept", "Request interception toggled", enabled=enabled)
        if enabled:
            await asyncio.gather(
                self._client.send("Network.setCacheDisabled", {"cacheDisabled": True}),
                self._client.send("Fetch.enable", {
                    "handleAuthRequests": False,
                    "patterns": [{"urlPattern": "*"}],
                }),
            )
        else:
            self._flush_pending()
            await asyncio.gather(
                self._client.send("Network.setCacheDisabled", {"cacheDisabled": False}),
                self._client.send("Fetch.disable"),
            )

    def _on_request_will_be_sent(self, event: Dict[str, Any]) -> None:
        if self._protocol_interception_enabled:
            network_id = event["requestId"]
            paused = self._pending_paused.pop(network_id, None)
            if paused is not None:
                self._on_request(event, paused["requestId"])
            else:
                self._pending_will_be_sent[network_id] = event
            return
        self._on_request(event, None)

    def _on_request_paused(self, event: Dict[str, Any]) -> None:
        interception_id = event["requestId"]
        if not self._user_interception_enabled:
            task = asyncio.ensure_future(self._continue_unhandled(interception_id))
            self._release_tasks.add(task)
            task.add_done_callback(self._release_tasks.discard)
            return

        network_id = event.get("networkId")
        if network_id is None:
            # No will-be-sent counterpart will arrive
            self._on_request({
                "requestId": interception_id,
                "request": event["request"],
                "type": event.get("resourceType"),
                "frameId": event.get("frameId"),
            }, interception_id)
            return

        will_be_sent = self._pending_will_be_sent.pop(network_id, None)
        if will_be_sent is not None:
            self._on_request(will_be_sent, interception_id)
        else:
            self._pending_paused[network_id] = event

    def _flush_pending(self) -> None:
        # Requests whose pause never arrived go out unintercepted
        pending = list(self._pending_will_be_sent.values())
        self._pending_will_be_sent.clear()
        self._pending_paused.clear()
        for event in pending:
            self._on_request(event, None)

    async def _continue_unhandled(self, interception_id: str) -> None:
        try:
            await self._client.send("Fetch.continueRequest", {"requestId": interception_id})
        except CDPError as e:
            self._logger.debug("network:intercept", "Could not release paused request", error=str(e))

    def _on_request(self, event: Dict[str, Any], interception_id: Optional[str]) -> None:
        redirected_from: Optional[Request] = None
        if event.get("redirectResponse"):
            previous = self._requests.get(event["requestId"])
            if previous is not None:
                self._handle_request_redirect(previous, event["redirectResponse"])
                redirected_from = previous

        frame = self._frame_manager.frame(event.get("frameId"))
        request = Request(
            self._client,
            self,
            frame,
            interception_id,
            self._user_interception_enabled,
            event,
            redirected_from,
            self._logger,
        )
        self._requests[request.request_id] = request
        if interception_id is not None:
            self._interceptions[interception_id] = request
        self._logger.debug(
            "network:request",
            "Request will be sent",
            method=request.method,
            url=request.url,
            resource_type=request.resource_type.value,
            intercepted=interception_id is not None,
            headers=dict(request.headers),
        )
        self.emit(NetworkEvent.REQUEST, request)

    def _handle_request_redirect(self, request: Request, payload: Dict[str, Any]) -> None:
        response = Response(request, payload, from_redirect=True)
        request._response = response
        request._superseded = True
        self._forget(request)
        self._logger.debug("network:request", "Request redirected", url=request.url, status=response.status)
        self.emit(NetworkEvent.RESPONSE, response)
        self.emit(NetworkEvent.REQUEST_FINISHED, request)

    def _on_response_received(self, event: Dict[str, Any]) -> None:
        request = self._requests.get(event["requestId"])
        if request is None:
            return
        response = Response(request, event["response"])
        request._response = response
        self.emit(NetworkEvent.RESPONSE, response)

    def _on_loading_finished(self, event: Dict[str, Any]) -> None:
        request = self._requests.get(event["requestId"])
        if request is None:
            return
        self._forget(request)
        self.emit(NetworkEvent.REQUEST_FINISHED, request)

    def _on_loading_failed(self, event: Dict[str, Any]) -> None:
        self._pending_will_be_sent.pop(event["requestId"], None)
        request = self._requests.get(event["requestId"])
        if request is None:
            return
        request._failure_text = event.get("errorText") or "net::ERR_FAILED"
        self._forget(request)
        self._logger.debug(
            "network:request",
            "Request failed",
            url=request.url,
            error=request.failure_text,
        )
        self.emit(NetworkEvent.REQUEST_FAILED, request)

    def _forget(self, request: Request) -> None:
        if self._requests.get(request.request_id) is request:
            del self._requests[request.request_id]
        if request.interception_id is not None:
            self._interceptions.pop(request.interception_id, None)
