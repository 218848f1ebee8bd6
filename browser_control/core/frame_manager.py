"""Frame tree bookkeeping driven by CDP Page and Runtime events."""

import asyncio
import weakref
from enum import Enum
from typing import Any, Dict, List, Optional, Set, Type, TypeVar, Union, TYPE_CHECKING

from pydantic import BaseModel, ValidationError
from pyee import EventEmitter

from ..cdp.manager import CDPClient, CDPEventListener
from ..dom.scripts import MUTATION_BINDING
from ..dom.wait_task import SelectorWaitTask, WaitTask
from ..types import NavigationOptions, PageOptions, WaitForSelectorOptions
from ..utils.logger import BrowserControlLogger
from .errors import ConfigurationError, FrameDetachedError, NavigationFailedError
from .execution_context import ExecutionContext, JSHandle
from .navigation import NavigationWatcher
from .network_manager import NetworkManager

if TYPE_CHECKING:
    from .request import Response

ModelT = TypeVar("ModelT", bound=BaseModel)


def resolve_options(
    model: Type[ModelT],
    options: Optional[Union[ModelT, Dict[str, Any]]],
    overrides: Dict[str, Any],
) -> ModelT:
    """
    Build a pydantic options model from an instance, a dict and/or kwargs.

    Raises:
        ConfigurationError: The combined values do not validate
    """
    try:
        if options is None:
            return model(**overrides)
        if isinstance(options, dict):
            return model(**{**options, **overrides})
        if overrides:
            return model(**{**options.model_dump(), **overrides})
        return options
    except ValidationError as e:
        raise ConfigurationError(str(e)) from e


class FrameEvent(str, Enum):
    """Events emitted by :class:`FrameManager`."""
    ATTACHED = "frame_attached"
    NAVIGATED = "frame_navigated"
    NAVIGATED_WITHIN_DOCUMENT = "frame_navigated_within_document"
    DETACHED = "frame_detached"
    LIFECYCLE = "frame_lifecycle"


class FrameManager(EventEmitter):
    """
    Mirrors the page's frame tree and routes runtime events to frames.

    The manager owns the :class:`NetworkManager` of the page, since requests
    are attributed to frames and navigations watch both.
    """

    def __init__(
        self,
        client: CDPClient,
        frame_tree: Dict[str, Any],
        options: PageOptions,
        logger: BrowserControlLogger,
    ):
        super().__init__()
        self._client = client
        self.options = options
        self._logger = logger.child(component="frame_manager")
        self._frames: Dict[str, Frame] = {}
        self._contexts: Dict[int, ExecutionContext] = {}
        self._main_frame: Optional[Frame] = None
        self._listeners = CDPEventListener()

        self.network_manager = NetworkManager(client, self, logger)

        for event, handler in (
            ("Page.frameAttached", self._on_frame_attached),
            ("Page.frameNavigated", self._on_frame_navigated),
            ("Page.navigatedWithinDocument", self._on_navigated_within_document),
            ("Page.frameDetached", self._on_frame_detached),
            ("Page.frameStoppedLoading", self._on_frame_stopped_loading),
            ("Page.lifecycleEvent", self._on_lifecycle_event),
            ("Runtime.executionContextCreated", self._on_execution_context_created),
            ("Runtime.executionContextDestroyed", self._on_execution_context_destroyed),
            ("Runtime.executionContextsCleared", self._on_execution_contexts_cleared),
            ("Runtime.bindingCalled", self._on_binding_called),
        ):
            self._listeners.add_listener(client, event, handler)

        self._handle_frame_tree(frame_tree)

    @property
    def main_frame(self) -> "Frame":
        return self._main_frame

    def frames(self) -> List["Frame"]:
        return list(self._frames.values())

    def frame(self, frame_id: Optional[str]) -> Optional["Frame"]:
        if frame_id is None:
            return None
        return self._frames.get(frame_id)

    def dispose(self) -> None:
        """Stop listening to the CDP session."""
        self._listeners.clear()
        self.network_manager.dispose()

    async def navigate_frame(
        self,
        frame: "Frame",
        url: str,
        options: Optional[Union[NavigationOptions, Dict[str, Any]]] = None,
        **kwargs: Any,
    ) -> Optional["Response"]:
        """
        Navigate ``frame`` to ``url`` and wait for the lifecycle event.

        Returns:
            Response of the final hop, or None for same-document navigations

        Raises:
            NavigationFailedError: The document request failed
            FrameDetachedError: The frame was detached while navigating
            TimeoutError: The navigation deadline passed
        """
        options = resolve_options(NavigationOptions, options, kwargs)
        timeout = options.timeout
        if timeout is None:
            timeout = self.options.navigation_timeout_ms
        wait_until = options.wait_until or self.options.wait_until
        referer = options.referer or self.network_manager.extra_http_headers.get("referer")

        self._logger.info("page:navigate", "Navigating", url=url, frame_id=frame.id, wait_until=wait_until)
        watcher = NavigationWatcher(self, frame, url, wait_until, timeout, self._logger)
        navigate = asyncio.ensure_future(self._navigate(url, referer, frame.id))
        try:
            loader_id = await watcher.race(navigate)
            await watcher.wait_for_completion(same_document=loader_id is None)
        finally:
            watcher.dispose()
            if not navigate.done():
                navigate.cancel()
        response = watcher.navigation_response()
        self._logger.info(
            "page:navigate",
            "Navigation completed",
            url=url,
            status=response.status if response else None,
        )
        return response

    async def _navigate(self, url: str, referer: Optional[str], frame_id: str) -> Optional[str]:
        params: Dict[str, Any] = {"url": url, "frameId": frame_id}
        if referer:
            params["referrer"] = referer
        result = await self._client.send("Page.navigate", params)
        if result.get("errorText"):
            raise NavigationFailedError(result["errorText"], url)
        return result.get("loaderId")

    def _handle_frame_tree(self, frame_tree: Dict[str, Any]) -> None:
        payload = frame_tree["frame"]
        if payload.get("parentId"):
            self._on_frame_attached({"frameId": payload["id"], "parentFrameId": payload["parentId"]})
        self._on_frame_navigated({"frame": payload})
        for child in frame_tree.get("childFrames", []):
            self._handle_frame_tree(child)

    def _on_frame_attached(self, event: Dict[str, Any]) -> None:
        frame_id = event["frameId"]
        if frame_id in self._frames:
            return
        parent = self._frames.get(event.get("parentFrameId"))
        frame = Frame(self, self._client, parent, frame_id, self._logger)
        self._frames[frame_id] = frame
        self._logger.debug("frame:lifecycle", "Frame attached", frame_id=frame_id)
        self.emit(FrameEvent.ATTACHED, frame)

    def _on_frame_navigated(self, event: Dict[str, Any]) -> None:
        payload = event["frame"]
        is_main = not payload.get("parentId")
        frame = self._main_frame if is_main else self._frames.get(payload["id"])
        if not is_main and frame is None:
            self._logger.warn("frame:lifecycle", "Navigation of an unknown frame", frame_id=payload["id"])
            return

        if frame is not None:
            for child in list(frame.child_frames):
                self._remove_frames_recursively(child)

        if is_main:
            if frame is not None:
                # The main frame keeps its object while its id may change
                self._frames.pop(frame.id, None)
                frame._id = payload["id"]
            else:
                frame = Frame(self, self._client, None, payload["id"], self._logger)
            self._frames[payload["id"]] = frame
            self._main_frame = frame

        frame._navigated(payload)
        # A new document means a new default context
        frame._set_default_context(None)
        self._logger.debug("frame:lifecycle", "Frame navigated", frame_id=frame.id, url=frame.url)
        self.emit(FrameEvent.NAVIGATED, frame)

    def _on_navigated_within_document(self, event: Dict[str, Any]) -> None:
        frame = self._frames.get(event["frameId"])
        if frame is None:
            return
        frame._url = event["url"]
        self.emit(FrameEvent.NAVIGATED_WITHIN_DOCUMENT, frame)
        self.emit(FrameEvent.NAVIGATED, frame)

    def _on_frame_detached(self, event: Dict[str, Any]) -> None:
        frame = self._frames.get(event["frameId"])
        if frame is not None:
            self._remove_frames_recursively(frame)

    def _on_frame_stopped_loading(self, event: Dict[str, Any]) -> None:
        frame = self._frames.get(event["frameId"])
        if frame is None:
            return
        frame._on_loading_stopped()
        self.emit(FrameEvent.LIFECYCLE, frame)

    def _on_lifecycle_event(self, event: Dict[str, Any]) -> None:
        frame = self._frames.get(event["frameId"])
        if frame is None:
            return
        frame._on_lifecycle_event(event["loaderId"], event["name"])
        self.emit(FrameEvent.LIFECYCLE, frame)

    def _on_execution_context_created(self, event: Dict[str, Any]) -> None:
        payload = event["context"]
        aux_data = payload.get("auxData") or {}
        frame = self._frames.get(aux_data.get("frameId"))
        context = ExecutionContext(self._client, payload, frame, self._logger)
        self._contexts[context.context_id] = context
        if frame is not None and context.is_default:
            if frame._context is not None:
                # Replacement announced before the old context's destruction
                frame._set_default_context(None)
            frame._set_default_context(context)

    def _on_execution_context_destroyed(self, event: Dict[str, Any]) -> None:
        context = self._contexts.pop(event["executionContextId"], None)
        if context is not None:
            self._remove_context(context)

    def _on_execution_contexts_cleared(self, event: Optional[Dict[str, Any]] = None) -> None:
        for context in list(self._contexts.values()):
            self._remove_context(context)
        self._contexts.clear()

    def _remove_context(self, context: ExecutionContext) -> None:
        context._destroy()
        frame = context.frame
        if frame is not None and frame._context is context:
            frame._set_default_context(None)

    def _on_binding_called(self, event: Dict[str, Any]) -> None:
        if event.get("name") != MUTATION_BINDING:
            return
        context = self._contexts.get(event.get("executionContextId"))
        if context is not None:
            context._notify_mutation()

    def _remove_frames_recursively(self, frame: "Frame") -> None:
        for child in list(frame.child_frames):
            self._remove_frames_recursively(child)
        frame._detach()
        self._frames.pop(frame.id, None)
        self._logger.debug("frame:lifecycle", "Frame detached", frame_id=frame.id)
        self.emit(FrameEvent.DETACHED, frame)


class Frame:
    """
    A frame of the page.

    Frames own their children; the parent link is weak. The execution context
    generation counts how many default contexts the frame has gone through,
    so in-flight watches can tell whether the document they observe is gone.
    """

    def __init__(
        self,
        frame_manager: FrameManager,
        client: CDPClient,
        parent: Optional["Frame"],
        frame_id: str,
        logger: BrowserControlLogger,
    ):
        self._frame_manager = frame_manager
        self._client = client
        self._parent_ref = weakref.ref(parent) if parent is not None else None
        self._id = frame_id
        self._name = ""
        self._url = ""
        self._loader_id = ""
        self._lifecycle_events: Set[str] = set()
        self._child_frames: List[Frame] = []
        self._detached = False
        self.logger = logger.child(frame_id=frame_id)

        self._context: Optional[ExecutionContext] = None
        self._context_future: asyncio.Future = asyncio.get_running_loop().create_future()
        self._generation = 0
        self._wait_tasks: Set[WaitTask] = set()

        if parent is not None:
            parent._child_frames.append(self)

    @property
    def id(self) -> str:
        return self._id

    @property
    def name(self) -> str:
        return self._name

    @property
    def url(self) -> str:
        return self._url

    @property
    def parent_frame(self) -> Optional["Frame"]:
        return self._parent_ref() if self._parent_ref else None

    @property
    def child_frames(self) -> List["Frame"]:
        return list(self._child_frames)

    @property
    def loader_id(self) -> str:
        return self._loader_id

    @property
    def lifecycle_events(self) -> Set[str]:
        return set(self._lifecycle_events)

    @property
    def execution_context_generation(self) -> int:
        return self._generation

    def is_detached(self) -> bool:
        return self._detached

    async def execution_context(self) -> ExecutionContext:
        """Wait for and return the frame's default execution context."""
        if self._detached:
            raise FrameDetachedError("execution_context", self._id)
        return await self._context_future

    async def evaluate(self, page_function: str, *args: Any) -> Any:
        context = await self.execution_context()
        return await context.evaluate(page_function, *args)

    async def evaluate_handle(self, page_function: str, *args: Any) -> JSHandle:
        context = await self.execution_context()
        return await context.evaluate_handle(page_function, *args)

    def wait_for_selector(
        self,
        selector: str,
        options: Optional[Union[WaitForSelectorOptions, Dict[str, Any]]] = None,
        **kwargs: Any,
    ) -> SelectorWaitTask:
        """
        Wait for ``selector`` to appear (or become visible / hidden).

        Args:
            selector: CSS selector
            options: WaitForSelectorOptions or dict (visible, hidden,
                timeout, survive_navigation)
            **kwargs: Same fields as keyword arguments

        Returns:
            Awaitable resolving to an ElementHandle, or None when a
            hidden-wait is satisfied by the node being absent
        """
        options = resolve_options(WaitForSelectorOptions, options, kwargs)
        timeout = options.timeout
        if timeout is None:
            timeout = self._frame_manager.options.default_timeout_ms
        self.logger.debug(
            "wait:selector",
            "Waiting for selector",
            selector=selector,
            visibility=options.visibility.value,
        )
        return SelectorWaitTask(
            self,
            selector,
            options.visibility,
            timeout,
            survive_navigation=options.survive_navigation,
        )

    def wait_for_function(
        self,
        page_function: str,
        *args: Any,
        timeout: Optional[int] = None,
        survive_navigation: bool = False,
    ) -> WaitTask:
        """Wait until ``page_function`` returns a truthy value."""
        if timeout is None:
            timeout = self._frame_manager.options.default_timeout_ms
        elif timeout < 0:
            raise ConfigurationError("timeout must be >= 0")
        return WaitTask(
            self,
            page_function,
            "function",
            timeout,
            *args,
            survive_navigation=survive_navigation,
        )

    async def goto(
        self,
        url: str,
        options: Optional[Union[NavigationOptions, Dict[str, Any]]] = None,
        **kwargs: Any,
    ) -> Optional["Response"]:
        return await self._frame_manager.navigate_frame(self, url, options, **kwargs)

    def _navigated(self, payload: Dict[str, Any]) -> None:
        self._name = payload.get("name", "")
        self._url = payload.get("url", "") + payload.get("urlFragment", "")
        self._loader_id = payload.get("loaderId", self._loader_id)

    def _on_lifecycle_event(self, loader_id: str, name: str) -> None:
        if name == "init":
            self._loader_id = loader_id
            self._lifecycle_events.clear()
        self._lifecycle_events.add(name)

    def _on_loading_stopped(self) -> None:
        self._lifecycle_events.add("DOMContentLoaded")
        self._lifecycle_events.add("load")

    def _set_default_context(self, context: Optional[ExecutionContext]) -> None:
        if context is not None:
            self._context = context
            if self._context_future.done():
                self._context_future = asyncio.get_running_loop().create_future()
            self._context_future.set_result(context)
            return
        if self._context is None:
            return
        self._context = None
        self._context_future = asyncio.get_running_loop().create_future()
        self._generation += 1
        self.logger.debug("frame:lifecycle", "Execution context lost", generation=self._generation)
        for task in list(self._wait_tasks):
            task._on_context_lost()

    def _detach(self) -> None:
        self._detached = True
        for task in list(self._wait_tasks):
            task.terminate(FrameDetachedError(f"waiting for {task.title}", self._id))
        if not self._context_future.done():
            self._context_future.set_exception(FrameDetachedError("execution_context", self._id))
            # Marked retrieved: there may be no awaiter
            self._context_future.exception()
        parent = self.parent_frame
        if parent is not None and self in parent._child_frames:
            parent._child_frames.remove(self)
        self._parent_ref = None
        self._child_frames.clear()

    def __repr__(self) -> str:
        return f"<Frame id={self._id} url={self._url!r}>"
