"""Execution contexts and remote object handles."""

import asyncio
import weakref
from typing import Any, Callable, Dict, List, Optional, TYPE_CHECKING

from pyee import EventEmitter

from ..cdp.manager import CDPClient
from ..dom.scripts import INSTALL_MUTATION_OBSERVER, MUTATION_BINDING
from ..utils.helpers import is_js_function
from ..utils.logger import BrowserControlLogger
from .errors import CDPError, EvaluationFailedError

if TYPE_CHECKING:
    from .frame_manager import Frame

MUTATION_EVENT = "mutation"


def exception_message(exception_details: Dict[str, Any]) -> str:
    """Extract a readable message from CDP ``exceptionDetails``."""
    exception = exception_details.get("exception") or {}
    if exception.get("description"):
        return exception["description"]
    message = exception_details.get("text", "")
    stack = exception_details.get("stackTrace") or {}
    for frame in stack.get("callFrames", []):
        location = f"{frame.get('url', '')}:{frame.get('lineNumber', 0)}:{frame.get('columnNumber', 0)}"
        message += f"\n    at {frame.get('functionName') or '<anonymous>'} ({location})"
    return message


class JSHandle:
    """Reference to an in-page JavaScript object."""

    def __init__(self, context: "ExecutionContext", client: CDPClient, remote_object: Dict[str, Any]):
        self._context = context
        self._client = client
        self._remote_object = remote_object
        self._disposed = False

    @property
    def execution_context(self) -> "ExecutionContext":
        return self._context

    @property
    def remote_object(self) -> Dict[str, Any]:
        return self._remote_object

    @property
    def object_id(self) -> Optional[str]:
        return self._remote_object.get("objectId")

    @property
    def disposed(self) -> bool:
        return self._disposed

    def as_element(self) -> Optional["ElementHandle"]:
        return None

    def is_truthy(self) -> bool:
        """Mirror JavaScript truthiness of the referenced value."""
        remote = self._remote_object
        if remote.get("type") == "undefined" or remote.get("subtype") == "null":
            return False
        if "objectId" in remote:
            return True
        if "unserializableValue" in remote:
            return remote["unserializableValue"] not in ("NaN", "-0", "0n")
        return bool(remote.get("value"))

    async def json_value(self) -> Any:
        if self.object_id:
            return await self._context.evaluate("(value) => value", self)
        return self._remote_object.get("value")

    async def dispose(self) -> None:
        """Release the remote object."""
        if self._disposed:
            return
        self._disposed = True
        if not self.object_id:
            return
        try:
            await self._client.send("Runtime.releaseObject", {"objectId": self.object_id})
        except CDPError as e:
            # The page may have navigated or closed meanwhile
            self._context.logger.debug("runtime:handle", "Release failed", error=str(e))

    def __repr__(self) -> str:
        description = self._remote_object.get("description") or self._remote_object.get("type")
        return f"<{type(self).__name__} {description}>"


class ElementHandle(JSHandle):
    """Handle to a DOM node."""

    def as_element(self) -> "ElementHandle":
        return self

    async def evaluate(self, page_function: str, *args: Any) -> Any:
        """Call ``page_function`` with this element as the first argument."""
        return await self._context.evaluate(page_function, self, *args)


class ExecutionContext:
    """
    A script evaluation environment of a frame.

    Besides evaluation, the context relays "document changed" notifications
    coming from the in-page mutation observer to its listeners.
    """

    def __init__(
        self,
        client: CDPClient,
        payload: Dict[str, Any],
        frame: Optional["Frame"],
        logger: BrowserControlLogger,
    ):
        self._client = client
        self.context_id: int = payload["id"]
        aux_data = payload.get("auxData") or {}
        self.is_default: bool = bool(aux_data.get("isDefault", False))
        self._frame_ref = weakref.ref(frame) if frame else None
        self.logger = logger
        self._events = EventEmitter()
        self._observer_install: Optional[asyncio.Future] = None
        self._destroyed = False

    @property
    def frame(self) -> Optional["Frame"]:
        return self._frame_ref() if self._frame_ref else None

    @property
    def destroyed(self) -> bool:
        return self._destroyed

    async def evaluate(self, page_function: str, *args: Any) -> Any:
        """Evaluate an expression or function and return its JSON value."""
        remote = await self._evaluate_internal(True, page_function, *args)
        if "unserializableValue" in remote:
            return remote["unserializableValue"]
        return remote.get("value")

    async def evaluate_handle(self, page_function: str, *args: Any) -> JSHandle:
        """Evaluate an expression or function and return a handle to the result."""
        remote = await self._evaluate_internal(False, page_function, *args)
        return self.create_handle(remote)

    def create_handle(self, remote_object: Dict[str, Any]) -> JSHandle:
        if remote_object.get("subtype") == "node":
            return ElementHandle(self, self._client, remote_object)
        return JSHandle(self, self._client, remote_object)

    async def _evaluate_internal(self, return_by_value: bool, page_function: str, *args: Any) -> Dict[str, Any]:
        if not args and not is_js_function(page_function):
            result = await self._client.send("Runtime.evaluate", {
                "expression": page_function,
                "contextId": self.context_id,
                "returnByValue": return_by_value,
                "awaitPromise": True,
                "userGesture": True,
            })
        else:
            result = await self._client.send("Runtime.callFunctionOn", {
                "functionDeclaration": page_function,
                "executionContextId": self.context_id,
                "arguments": [self._convert_argument(arg) for arg in args],
                "returnByValue": return_by_value,
                "awaitPromise": True,
                "userGesture": True,
            })
        exception_details = result.get("exceptionDetails")
        if exception_details:
            raise EvaluationFailedError(exception_message(exception_details))
        return result.get("result") or {}

    def _convert_argument(self, arg: Any) -> Dict[str, Any]:
        if isinstance(arg, JSHandle):
            if arg.execution_context is not self:
                raise ValueError("JSHandles can be evaluated only in the context they were created!")
            if arg.disposed:
                raise ValueError("JSHandle is disposed!")
            if arg.object_id:
                return {"objectId": arg.object_id}
            return {"value": arg.remote_object.get("value")}
        return {"value": arg}

    async def ensure_mutation_observer(self) -> None:
        """Install the in-page mutation observer once per context."""
        if self._observer_install is None:
            self._observer_install = asyncio.ensure_future(
                self.evaluate(INSTALL_MUTATION_OBSERVER, MUTATION_BINDING)
            )
            # Marked retrieved: every waiter may be gone by the time it fails
            self._observer_install.add_done_callback(lambda f: f.cancelled() or f.exception())
        # Shared by every wait on this context
        await asyncio.shield(self._observer_install)

    def add_mutation_listener(self, callback: Callable[[], None]) -> None:
        self._events.on(MUTATION_EVENT, callback)

    def remove_mutation_listener(self, callback: Callable[[], None]) -> None:
        self._events.remove_listener(MUTATION_EVENT, callback)

    def mutation_listeners(self) -> List[Callable]:
        return self._events.listeners(MUTATION_EVENT)

    def _notify_mutation(self) -> None:
        if not self._destroyed:
            self._events.emit(MUTATION_EVENT)

    def _destroy(self) -> None:
        self._destroyed = True
        self._events.remove_all_listeners()

    def __repr__(self) -> str:
        return f"<ExecutionContext id={self.context_id} default={self.is_default}>"
