"""Page facade over a CDP session."""

from typing import Any, Dict, List, Mapping, Optional, Union, TYPE_CHECKING

from playwright.async_api import Page as PlaywrightPage
from pydantic import ValidationError
from pyee.asyncio import AsyncIOEventEmitter

from ..cdp.manager import CDPClient, cdp_manager
from ..dom.scripts import MUTATION_BINDING
from ..dom.wait_task import SelectorWaitTask, WaitTask
from ..types import NavigationOptions, PageEvent, PageOptions, WaitForSelectorOptions
from ..utils.logger import BrowserControlLogger, create_logger
from .errors import ConfigurationError, PageNotAvailableError
from .frame_manager import Frame, FrameEvent, FrameManager
from .network_manager import NetworkEvent

if TYPE_CHECKING:
    from .request import Response


class Page(AsyncIOEventEmitter):
    """
    Client-facing page: request interception, selector waits and navigation.

    Events (``page.on(name, handler)``): ``request``, ``response``,
    ``request_failed``, ``request_finished``, ``frame_attached``,
    ``frame_navigated``, ``frame_detached`` and ``error``. Handlers run in
    registration order; coroutine handlers are scheduled as tasks and their
    exceptions are reported through ``error``.

    Examples:
        page = await Page.from_playwright(playwright_page)
        await page.set_request_interception(True)
        page.on("request", lambda request: asyncio.ensure_future(request.continue_()))
        response = await page.goto("https://example.com")
        element = await page.wait_for_selector("#main", visible=True)
    """

    def __init__(self, client: CDPClient, options: PageOptions, logger: BrowserControlLogger):
        super().__init__()
        self._client = client
        self._options = options
        self._logger = logger.child(component="page")
        self._frame_manager: Optional[FrameManager] = None
        self._closed = False
        self.on(PageEvent.ERROR, self._on_handler_error)

    @classmethod
    async def create(
        cls,
        session: Any,
        options: Optional[Union[PageOptions, Dict[str, Any]]] = None,
        logger: Optional[BrowserControlLogger] = None,
    ) -> "Page":
        """
        Attach a page to a CDP session.

        Args:
            session: CDPClient, or any session with send/on/remove_listener
            options: PageOptions or dict
            logger: Logger to use; one is configured from ``options.verbose``
                when omitted

        Returns:
            Initialized Page

        Raises:
            ConfigurationError: Invalid options
            CDPError: The session rejected an initialization command
        """
        options = cls._resolve_page_options(options)
        logger = logger or create_logger(options.verbose)
        client = session if isinstance(session, CDPClient) else CDPClient(session, logger)
        page = cls(client, options, logger)
        await page._initialize()
        return page

    @classmethod
    async def from_playwright(
        cls,
        page: PlaywrightPage,
        options: Optional[Union[PageOptions, Dict[str, Any]]] = None,
        logger: Optional[BrowserControlLogger] = None,
    ) -> "Page":
        """Attach to a Playwright page through a dedicated CDP session."""
        options = cls._resolve_page_options(options)
        logger = logger or create_logger(options.verbose)
        client = await cdp_manager.get_client(page, logger)
        return await cls.create(client, options, logger)

    @staticmethod
    def _resolve_page_options(options: Optional[Union[PageOptions, Dict[str, Any]]]) -> PageOptions:
        if options is None:
            return PageOptions()
        if isinstance(options, PageOptions):
            return options
        try:
            return PageOptions(**options)
        except ValidationError as e:
            raise ConfigurationError(str(e)) from e

    async def _initialize(self) -> None:
        await self._client.send("Page.enable")
        result = await self._client.send("Page.getFrameTree")
        self._frame_manager = FrameManager(self._client, result["frameTree"], self._options, self._logger)

        frame_manager = self._frame_manager
        frame_manager.on(FrameEvent.ATTACHED, lambda frame: self.emit(PageEvent.FRAME_ATTACHED, frame))
        frame_manager.on(FrameEvent.NAVIGATED, lambda frame: self.emit(PageEvent.FRAME_NAVIGATED, frame))
        frame_manager.on(FrameEvent.DETACHED, lambda frame: self.emit(PageEvent.FRAME_DETACHED, frame))

        network_manager = frame_manager.network_manager
        network_manager.on(NetworkEvent.REQUEST, lambda request: self.emit(PageEvent.REQUEST, request))
        network_manager.on(NetworkEvent.RESPONSE, lambda response: self.emit(PageEvent.RESPONSE, response))
        network_manager.on(
            NetworkEvent.REQUEST_FAILED, lambda request: self.emit(PageEvent.REQUEST_FAILED, request)
        )
        network_manager.on(
            NetworkEvent.REQUEST_FINISHED, lambda request: self.emit(PageEvent.REQUEST_FINISHED, request)
        )

        await self._client.send("Page.setLifecycleEventsEnabled", {"enabled": True})
        await self._client.send("Runtime.addBinding", {"name": MUTATION_BINDING})
        await self._client.send("Runtime.enable")
        await self._client.send("Network.enable")
        self._logger.debug("page:init", "Page initialized", frames=len(frame_manager.frames()))

    def _on_handler_error(self, error: BaseException) -> None:
        self._logger.error(
            "page:event",
            "Event handler raised",
            error=str(error),
            error_type=type(error).__name__,
        )

    def _ensure_open(self) -> FrameManager:
        if self._closed or self._frame_manager is None:
            raise PageNotAvailableError("page is closed or not initialized")
        return self._frame_manager

    @property
    def options(self) -> PageOptions:
        return self._options

    @property
    def main_frame(self) -> Frame:
        return self._ensure_open().main_frame

    @property
    def url(self) -> str:
        return self.main_frame.url

    def frames(self) -> List[Frame]:
        return self._ensure_open().frames()

    @property
    def extra_http_headers(self) -> Dict[str, str]:
        return dict(self._ensure_open().network_manager.extra_http_headers)

    async def set_request_interception(self, enabled: bool) -> None:
        """
        Enable or disable request interception.

        While enabled, every request emitted through ``request`` must be
        resolved with exactly one of ``continue_``, ``abort`` or ``respond``.
        """
        await self._ensure_open().network_manager.set_request_interception(enabled)

    async def set_extra_http_headers(self, headers: Mapping[str, str]) -> None:
        """Send ``headers`` with every request the page issues."""
        await self._ensure_open().network_manager.set_extra_http_headers(headers)

    def set_default_timeout(self, timeout_ms: int) -> None:
        """Default timeout for selector and function waits; 0 disables it."""
        if timeout_ms < 0:
            raise ConfigurationError("timeout must be >= 0")
        self._options.default_timeout_ms = timeout_ms

    def set_default_navigation_timeout(self, timeout_ms: int) -> None:
        """Default timeout for navigations; 0 disables it."""
        if timeout_ms < 0:
            raise ConfigurationError("navigation timeout must be >= 0")
        self._options.navigation_timeout_ms = timeout_ms

    async def goto(
        self,
        url: str,
        options: Optional[Union[NavigationOptions, Dict[str, Any]]] = None,
        **kwargs: Any,
    ) -> Optional["Response"]:
        """
        Navigate the main frame.

        Args:
            url: Target URL
            options: NavigationOptions or dict (timeout, wait_until, referer)
            **kwargs: Same fields as keyword arguments

        Returns:
            Response of the final redirect hop, or None for same-document
            navigations

        Raises:
            NavigationFailedError: The document request failed
            TimeoutError: The navigation deadline passed
        """
        return await self.main_frame.goto(url, options, **kwargs)

    def wait_for_selector(
        self,
        selector: str,
        options: Optional[Union[WaitForSelectorOptions, Dict[str, Any]]] = None,
        **kwargs: Any,
    ) -> SelectorWaitTask:
        """Shortcut for ``page.main_frame.wait_for_selector``."""
        return self.main_frame.wait_for_selector(selector, options, **kwargs)

    def wait_for_function(
        self,
        page_function: str,
        *args: Any,
        timeout: Optional[int] = None,
        survive_navigation: bool = False,
    ) -> WaitTask:
        """Shortcut for ``page.main_frame.wait_for_function``."""
        return self.main_frame.wait_for_function(
            page_function, *args, timeout=timeout, survive_navigation=survive_navigation
        )

    async def evaluate(self, page_function: str, *args: Any) -> Any:
        """Evaluate in the main frame and return the JSON value."""
        return await self.main_frame.evaluate(page_function, *args)

    async def close(self) -> None:
        """Detach from the CDP session; pending waits are failed."""
        if self._closed:
            return
        frame_manager = self._ensure_open()
        self._closed = True
        frame_manager.dispose()
        for frame in reversed(frame_manager.frames()):
            frame._detach()
        self.remove_all_listeners()
        self._logger.debug("page:close", "Page closed")
