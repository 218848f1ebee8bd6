"""Request and Response entities exposed to interception handlers."""

import base64
import weakref
from typing import Any, Dict, List, Optional, Union, TYPE_CHECKING

import httpx

from ..cdp.manager import CDPClient
from ..types import (
    ContinueOverrides,
    ErrorCode,
    InterceptionOutcome,
    MockResponse,
    ResourceType,
)
from ..utils.helpers import headers_to_entries, merge_headers, strip_fragment
from ..utils.logger import BrowserControlLogger
from .errors import (
    AlreadyHandledError,
    CDPError,
    InterceptionNotEnabledError,
    RequestRedirectedError,
)

if TYPE_CHECKING:
    from .frame_manager import Frame
    from .network_manager import NetworkManager


class Request:
    """
    One network request as seen by the client.

    While interception is enabled exactly one of :meth:`continue_`,
    :meth:`abort` or :meth:`respond` may be applied; later attempts raise
    :class:`AlreadyHandledError`. Requests created while interception was off
    reject all three with :class:`InterceptionNotEnabledError`.
    """

    def __init__(
        self,
        client: CDPClient,
        network_manager: "NetworkManager",
        frame: Optional["Frame"],
        interception_id: Optional[str],
        allow_interception: bool,
        event: Dict[str, Any],
        redirected_from: Optional["Request"],
        logger: BrowserControlLogger,
    ):
        payload = event["request"]
        self._client = client
        self._network_manager = network_manager
        self._logger = logger
        self.request_id: str = event["requestId"]
        self._interception_id = interception_id
        self._allow_interception = allow_interception
        self._is_navigation_request = (
            event["requestId"] == event.get("loaderId") and event.get("type") == "Document"
        )
        self._url = strip_fragment(payload["url"])
        self._method: str = payload.get("method", "GET")
        self._headers = httpx.Headers(payload.get("headers") or {})
        self._post_data: Optional[str] = payload.get("postData")
        if redirected_from is not None:
            self._resource_type = redirected_from.resource_type
        else:
            self._resource_type = ResourceType.from_cdp(event.get("type"))
        self._has_frame = frame is not None
        self._frame_ref = weakref.ref(frame) if frame is not None else None
        self._redirected_from = redirected_from

        self._outcome = InterceptionOutcome.UNSET
        self._response: Optional["Response"] = None
        self._failure_text: Optional[str] = None
        self._superseded = False

    @property
    def url(self) -> str:
        return self._url

    @property
    def method(self) -> str:
        return self._method

    @property
    def headers(self) -> httpx.Headers:
        return self._headers

    @property
    def post_data(self) -> Optional[str]:
        return self._post_data

    @property
    def resource_type(self) -> ResourceType:
        return self._resource_type

    @property
    def frame(self) -> Optional["Frame"]:
        return self._frame_ref() if self._frame_ref else None

    @property
    def interception_id(self) -> Optional[str]:
        return self._interception_id

    @property
    def interception_enabled(self) -> bool:
        return self._allow_interception

    @property
    def is_navigation_request(self) -> bool:
        return self._is_navigation_request

    @property
    def redirected_from(self) -> Optional["Request"]:
        return self._redirected_from

    @property
    def redirect_chain(self) -> List["Request"]:
        """Earlier hops that redirected to this request, oldest first."""
        chain: List[Request] = []
        hop = self._redirected_from
        while hop is not None:
            chain.append(hop)
            hop = hop._redirected_from
        chain.reverse()
        return chain

    @property
    def outcome(self) -> InterceptionOutcome:
        return self._outcome

    @property
    def response(self) -> Optional["Response"]:
        return self._response

    @property
    def failure_text(self) -> Optional[str]:
        """Network error text, set only if the request ultimately failed."""
        return self._failure_text

    async def continue_(
        self,
        overrides: Optional[Union[ContinueOverrides, Dict[str, Any]]] = None,
        **kwargs: Any,
    ) -> None:
        """
        Let the request proceed, optionally modified.

        Args:
            overrides: ContinueOverrides (or dict) replacing url, method,
                headers or post_data. Headers merge case-insensitively over
                the page's extra headers and the original headers.
            **kwargs: Same fields as keyword arguments

        Raises:
            InterceptionNotEnabledError: Interception was off for this request
            AlreadyHandledError: A terminal operation was already applied
            RequestRedirectedError: Overrides given for a superseded hop
        """
        if overrides is None:
            overrides = ContinueOverrides(**kwargs)
        elif isinstance(overrides, dict):
            overrides = ContinueOverrides(**overrides)

        self._check_interception()
        if self._superseded and not overrides.is_empty():
            raise RequestRedirectedError(self._url)
        self._claim(InterceptionOutcome.CONTINUED)

        params: Dict[str, Any] = {"requestId": self._interception_id}
        if overrides.url is not None:
            params["url"] = overrides.url
        if overrides.method is not None:
            params["method"] = overrides.method
        if overrides.post_data is not None:
            params["postData"] = base64.b64encode(overrides.post_data.encode("utf-8")).decode("ascii")
        if overrides.headers is not None:
            headers = merge_headers(
                self._headers,
                self._network_manager.extra_http_headers,
                overrides.headers,
            )
            params["headers"] = headers_to_entries(headers)
        await self._send("Fetch.continueRequest", params)

    async def abort(self, error_code: Union[ErrorCode, str] = ErrorCode.FAILED) -> None:
        """
        Fail the request with ``error_code``.

        Raises:
            ValueError: Unknown error code
            InterceptionNotEnabledError: Interception was off for this request
            AlreadyHandledError: A terminal operation was already applied
        """
        try:
            code = ErrorCode(error_code)
        except ValueError:
            raise ValueError(f"Unknown error code: {error_code}") from None

        self._check_interception()
        self._claim(InterceptionOutcome.ABORTED)
        await self._send("Fetch.failRequest", {
            "requestId": self._interception_id,
            "errorReason": code.reason,
        })

    async def respond(
        self,
        response: Optional[Union[MockResponse, Dict[str, Any]]] = None,
        **kwargs: Any,
    ) -> None:
        """
        Fulfill the request with a synthetic response, skipping the network.

        Raises:
            InterceptionNotEnabledError: Interception was off for this request
            AlreadyHandledError: A terminal operation was already applied
        """
        if response is None:
            response = MockResponse(**kwargs)
        elif isinstance(response, dict):
            response = MockResponse(**response)

        self._check_interception()
        self._claim(InterceptionOutcome.RESPONDED)

        body = response.body_bytes()
        headers = httpx.Headers(response.headers)
        if response.content_type:
            headers["content-type"] = response.content_type
        if body and "content-length" not in headers:
            headers["content-length"] = str(len(body))
        await self._send("Fetch.fulfillRequest", {
            "requestId": self._interception_id,
            "responseCode": response.status,
            "responseHeaders": headers_to_entries(headers),
            "body": base64.b64encode(body).decode("ascii"),
        })

    def _check_interception(self) -> None:
        if not self._allow_interception:
            raise InterceptionNotEnabledError(self._url)

    def _claim(self, outcome: InterceptionOutcome) -> None:
        # Synchronous on the event loop, so concurrent handlers cannot both pass
        if self._outcome is not InterceptionOutcome.UNSET:
            raise AlreadyHandledError(self._url, self._outcome.value)
        self._outcome = outcome

    def _transport_gone(self) -> bool:
        if self._failure_text is not None or self._superseded:
            return True
        if not self._has_frame:
            return False
        frame = self.frame
        return frame is None or frame.is_detached()

    async def _send(self, method: str, params: Dict[str, Any]) -> None:
        if self._interception_id is None or self._transport_gone():
            self._logger.debug(
                "network:intercept",
                "Request no longer interceptable, skipping",
                method=method,
                url=self._url,
            )
            return
        try:
            await self._client.send(method, params)
        except CDPError as e:
            if not self._transport_gone():
                raise
            self._logger.debug(
                "network:intercept",
                "Request was cancelled before it was handled",
                method=method,
                url=self._url,
                error=str(e),
            )
            return
        self._logger.debug(
            "network:intercept",
            "Request handled",
            outcome=self._outcome.value,
            url=self._url,
        )

    def __repr__(self) -> str:
        return f"<Request {self._method} {self._url} ({self._resource_type.value})>"


class Response:
    """Response received for a request (or for one of its redirect hops)."""

    def __init__(self, request: Request, payload: Dict[str, Any], from_redirect: bool = False):
        self._request = request
        self.status: int = payload.get("status", 0)
        self.status_text: str = payload.get("statusText", "")
        self.headers = httpx.Headers(payload.get("headers") or {})
        self.url: str = payload.get("url") or request.url
        self.from_redirect = from_redirect
        self.remote_address = {
            "ip": payload.get("remoteIPAddress"),
            "port": payload.get("remotePort"),
        }

    @property
    def request(self) -> Request:
        return self._request

    @property
    def ok(self) -> bool:
        return self.status == 0 or 200 <= self.status <= 299

    def __repr__(self) -> str:
        return f"<Response {self.status} {self.url}>"
