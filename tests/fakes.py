"""In-memory browser speaking the CDP subset browser_control consumes.

The fake keeps a frame tree with tiny DOM documents, a route table acting as
the HTTP server, and Fetch-domain pausing. Events are delivered synchronously
to the handlers registered through ``on``, in the order Chromium sends them.
Page scripts cannot run here, so ``Runtime.callFunctionOn`` / ``Runtime.evaluate``
recognise the library's own scripts plus the test scripts in ``scripts``.
"""

import asyncio
import base64
import inspect
import itertools
import re
import time
from collections import defaultdict
from html.parser import HTMLParser
from typing import Any, Callable, Dict, List, Optional, Tuple
from urllib.parse import quote, unquote, urljoin, urlsplit

import httpx

from browser_control.dom.scripts import (
    INSTALL_MUTATION_OBSERVER,
    MUTATION_BINDING,
    SELECTOR_PREDICATE,
)
from browser_control.types import ErrorCode

BASE_URL = "http://localhost:8907"
CROSS_PROCESS_URL = "http://127.0.0.1:8907"
EMPTY_PAGE = BASE_URL + "/empty.html"

ADD_ELEMENT = "tag => document.body.appendChild(document.createElement(tag))"
TEXT_CONTENT = "x => x.textContent"
CLASS_NAME = "node => node.className"
FETCH_TEXT = "url => fetch(url).then(response => response.text()).catch(e => 'FAILED')"
JSON_VALUE = "(value) => value"

UNDEFINED = object()

_VOID_TAGS = {"area", "base", "br", "col", "embed", "hr", "img", "input", "link", "meta", "source", "track", "wbr"}
_WRAPPER_TAGS = {"html", "head", "body"}
_COMPOUND_RE = re.compile(r"^(\*|[a-zA-Z][\w-]*)?((?:[#.][\w-]+)*)$")
_NET_ERRORS = {code.reason: code.net_error for code in ErrorCode}


class FakeProtocolError(Exception):
    """Error raised by ``send``, like a protocol error from a real session."""


class FakeJSError(Exception):
    """Raised by test scripts to report an in-page exception."""


# ---------------------------------------------------------------------------
# DOM
# ---------------------------------------------------------------------------


class FakeNode:
    def __init__(self, tag: str, attrs: Optional[Dict[str, str]] = None, text: str = ""):
        self.tag = tag.lower()
        self.attrs: Dict[str, str] = dict(attrs or {})
        self.text = text
        self.children: List["FakeNode"] = []
        self.parent: Optional["FakeNode"] = None
        self.document: Optional["FakeDocument"] = None

    def style(self) -> Dict[str, str]:
        declarations = {}
        for part in self.attrs.get("style", "").split(";"):
            name, _, value = part.partition(":")
            if name.strip():
                declarations[name.strip().lower()] = value.strip().lower()
        return declarations

    def _write_style(self, declarations: Dict[str, str]) -> None:
        self.attrs["style"] = "; ".join(f"{name}: {value}" for name, value in declarations.items())
        self._mutated()

    def set_style(self, name: str, value: str) -> None:
        declarations = self.style()
        declarations[name] = value
        self._write_style(declarations)

    def remove_style(self, name: str) -> None:
        declarations = self.style()
        declarations.pop(name, None)
        self._write_style(declarations)

    @property
    def classes(self) -> List[str]:
        return self.attrs.get("class", "").split()

    def set_attribute(self, name: str, value: str) -> None:
        self.attrs[name] = value
        self._mutated()

    def append_child(self, node: "FakeNode", notify: bool = True) -> "FakeNode":
        node.parent = self
        self.children.append(node)
        node._adopt(self.document)
        if notify:
            self._mutated()
        return node

    def remove(self) -> None:
        if self.parent is None:
            return
        document = self.document
        self.parent.children.remove(self)
        self.parent = None
        self._adopt(None)
        if document is not None:
            document.mutated()

    def set_inner_html(self, html: str) -> None:
        for child in self.children:
            child.parent = None
            child._adopt(None)
        self.children = []
        self.text = ""
        _TreeBuilder(self).feed(html)
        self._mutated()

    def text_content(self) -> str:
        return self.text + "".join(child.text_content() for child in self.children)

    def iter(self):
        yield self
        for child in self.children:
            yield from child.iter()

    def _adopt(self, document: Optional["FakeDocument"]) -> None:
        for node in self.iter():
            node.document = document

    def _mutated(self) -> None:
        if self.document is not None:
            self.document.mutated()

    def __repr__(self) -> str:
        return f"<FakeNode {self.tag} {self.attrs}>"


class _TreeBuilder(HTMLParser):
    def __init__(self, root: FakeNode):
        super().__init__(convert_charrefs=True)
        self._stack = [root]

    def handle_starttag(self, tag, attrs):
        if tag in _WRAPPER_TAGS:
            return
        node = FakeNode(tag, {name: value or "" for name, value in attrs})
        self._stack[-1].append_child(node, notify=False)
        if tag not in _VOID_TAGS:
            self._stack.append(node)

    def handle_endtag(self, tag):
        if tag in _WRAPPER_TAGS:
            return
        for index in range(len(self._stack) - 1, 0, -1):
            if self._stack[index].tag == tag:
                del self._stack[index:]
                return

    def handle_data(self, data):
        self._stack[-1].text += data


def _parse_selector(selector: str) -> List[Tuple[Optional[str], List[str], List[str]]]:
    compounds = []
    for part in selector.split():
        match = _COMPOUND_RE.match(part)
        if not match:
            raise FakeJSError(f"SyntaxError: '{selector}' is not a valid selector.")
        tag = match.group(1)
        ids = [name for kind, name in re.findall(r"([#.])([\w-]+)", match.group(2)) if kind == "#"]
        classes = [name for kind, name in re.findall(r"([#.])([\w-]+)", match.group(2)) if kind == "."]
        compounds.append((tag, ids, classes))
    return compounds


def _matches_compound(node: FakeNode, compound) -> bool:
    tag, ids, classes = compound
    if tag and tag != "*" and node.tag != tag.lower():
        return False
    if any(node.attrs.get("id") != name for name in ids):
        return False
    return all(name in node.classes for name in classes)


def _matches(node: FakeNode, compounds) -> bool:
    if not _matches_compound(node, compounds[-1]):
        return False
    ancestor = node.parent
    for compound in reversed(compounds[:-1]):
        while ancestor is not None and not _matches_compound(ancestor, compound):
            ancestor = ancestor.parent
        if ancestor is None:
            return False
        ancestor = ancestor.parent
    return True


class FakeDocument:
    def __init__(self, html: str = "", on_mutation: Optional[Callable[[], None]] = None):
        self.root = FakeNode("html")
        self.root.document = self
        self.head = self.root.append_child(FakeNode("head"), notify=False)
        self.body = self.root.append_child(FakeNode("body"), notify=False)
        self.observer_installed = False
        self.query_selector_broken = False
        self._on_mutation = on_mutation
        if html:
            _TreeBuilder(self.body).feed(html)

    def set_content(self, html: str) -> None:
        self.body.set_inner_html(html)

    def mutated(self) -> None:
        if self._on_mutation is not None:
            self._on_mutation()

    def query_selector(self, selector: str) -> Optional[FakeNode]:
        compounds = _parse_selector(selector)
        for node in self.root.iter():
            if _matches(node, compounds):
                return node
        return None

    def stylesheets(self) -> List[str]:
        return [
            node.attrs["href"]
            for node in self.root.iter()
            if node.tag == "link" and node.attrs.get("rel") == "stylesheet" and node.attrs.get("href")
        ]

    @staticmethod
    def is_visible(node: FakeNode) -> bool:
        current = node
        while current is not None:
            if current.style().get("display") == "none":
                return False
            current = current.parent
        current = node
        while current is not None:
            visibility = current.style().get("visibility")
            if visibility:
                return visibility != "hidden"
            current = current.parent
        return True

    def selector_predicate(self, selector: str, wait_visible: bool, wait_hidden: bool) -> Any:
        node = self.query_selector(selector)
        if node is None:
            return wait_hidden
        if not wait_visible and not wait_hidden:
            return node
        visible = self.is_visible(node)
        if (wait_visible and visible) or (wait_hidden and not visible):
            return node
        return None


# ---------------------------------------------------------------------------
# Server
# ---------------------------------------------------------------------------


class FakeServer:
    """Route table standing in for the test HTTP server."""

    def __init__(self):
        self.routes: Dict[str, Callable[[httpx.Headers], Any]] = {}
        self.redirects: Dict[str, str] = {}
        self.requests: Dict[str, List[httpx.Headers]] = defaultdict(list)
        self.set_content("/empty.html", "")
        self.set_content("/simple.html", "<div>Plain page</div>")
        self.set_content("/grid.html", "<div class='box'>1</div><div class='box'>2</div>")
        self.set_content("/one-style.html", "<link rel='stylesheet' href='/one-style.css'><div>hello, world!</div>")
        self.set_content("/one-style.css", "body { background-color: pink; }", content_type="text/css")

    def set_content(self, path: str, body: str, status: int = 200, content_type: str = "text/html") -> None:
        self.routes[path] = lambda headers: (status, {"content-type": content_type}, body)

    def set_route(self, path: str, handler: Callable[[httpx.Headers], Any]) -> None:
        """``handler(headers)`` returns a body or a ``(status, headers, body)`` tuple."""
        self.routes[path] = handler

    def set_redirect(self, source: str, target: str) -> None:
        self.redirects[source] = target

    def handle(self, url: str, headers: httpx.Headers) -> Tuple[int, Dict[str, str], str]:
        parts = urlsplit(url)
        path = parts.path + (f"?{parts.query}" if parts.query else "")
        self.requests[path].append(headers)
        if path in self.redirects:
            return 302, {"location": self.redirects[path]}, ""
        route = self.routes.get(path)
        if route is None:
            return 404, {"content-type": "text/plain"}, "File not found"
        result = route(headers)
        if isinstance(result, tuple):
            return result
        return 200, {"content-type": "text/html"}, result


# ---------------------------------------------------------------------------
# Browser
# ---------------------------------------------------------------------------


class FakeFrame:
    def __init__(self, frame_id: str, parent: Optional["FakeFrame"], name: str = ""):
        self.id = frame_id
        self.parent = parent
        self.name = name
        self.children: List["FakeFrame"] = []
        self.url = "about:blank"
        self.loader_id = ""
        self.document: Optional[FakeDocument] = None
        self.context_id: Optional[int] = None
        self.detached = False

    def payload(self) -> Dict[str, Any]:
        url, fragment = self.url, ""
        if not url.startswith("data:") and "#" in url:
            url, _, fragment = url.partition("#")
            fragment = "#" + fragment
        payload = {
            "id": self.id,
            "loaderId": self.loader_id,
            "name": self.name,
            "url": url,
            "securityOrigin": "://",
            "mimeType": "text/html",
        }
        if fragment:
            payload["urlFragment"] = fragment
        if self.parent is not None:
            payload["parentId"] = self.parent.id
        return payload


class _Paused:
    def __init__(self, future: asyncio.Future, frame_id: str, network_id: str):
        self.future = future
        self.frame_id = frame_id
        self.network_id = network_id


class _LoadResult:
    def __init__(self, url: str, status: int = 0, headers=None, body: str = "", error_text: Optional[str] = None):
        self.url = url
        self.status = status
        self.headers = headers or {}
        self.body = body
        self.error_text = error_text


def _strip_fragment(url: str) -> str:
    if url.startswith("data:"):
        return url
    return url.split("#", 1)[0]


def _decode_data_url(url: str) -> Tuple[str, str]:
    meta, _, data = url[len("data:"):].partition(",")
    content_type = meta.split(";")[0] or "text/plain"
    if meta.endswith(";base64"):
        return content_type, base64.b64decode(data).decode("utf-8")
    return content_type, unquote(data)


class FakeBrowser:
    """
    A page-level CDP session backed by in-memory frames and a route table.

    ``sent`` records every command; ``failures`` maps a method name to an
    error message that ``send`` raises instead of executing it.
    """

    def __init__(self, server: Optional[FakeServer] = None):
        self.server = server or FakeServer()
        self.sent: List[Tuple[str, Dict[str, Any]]] = []
        self.failures: Dict[str, str] = {}
        self.extra_headers = httpx.Headers()
        self.runtime_enabled = False
        self.fetch_enabled = False
        self.cache_disabled = False
        self.paused_urls: List[str] = []
        self.bindings = set()
        self.scripts: Dict[str, Callable[..., Any]] = {
            ADD_ELEMENT: lambda frame, tag: frame.document.body.append_child(FakeNode(tag)),
            TEXT_CONTENT: lambda frame, node: node.text_content(),
            CLASS_NAME: lambda frame, node: node.attrs.get("class", ""),
            FETCH_TEXT: self._fetch_text,
        }

        self._handlers: Dict[str, List[Callable]] = defaultdict(list)
        self._ids = itertools.count(1)
        self._frames: Dict[str, FakeFrame] = {}
        self._contexts: Dict[int, FakeFrame] = {}
        self._objects: Dict[str, Tuple[int, Any]] = {}
        self._paused: Dict[str, _Paused] = {}
        self._tasks = set()

        self.main_frame = FakeFrame("main", None)
        self.main_frame.loader_id = "loader-0"
        self.main_frame.document = self._new_document(self.main_frame, "")
        self._frames["main"] = self.main_frame

    # -- session interface ---------------------------------------------------

    def on(self, event: str, handler: Callable) -> None:
        self._handlers[event].append(handler)

    def remove_listener(self, event: str, handler: Callable) -> None:
        if handler in self._handlers.get(event, []):
            self._handlers[event].remove(handler)

    def listener_count(self, event: str) -> int:
        return len(self._handlers.get(event, []))

    async def send(self, method: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        params = params or {}
        self.sent.append((method, params))
        if method in self.failures:
            raise FakeProtocolError(self.failures[method])
        handler = getattr(self, "_cmd_" + method.replace(".", "_"), None)
        if handler is None:
            return {}
        result = handler(params)
        if inspect.isawaitable(result):
            result = await result
        return result or {}

    def emit(self, event: str, params: Dict[str, Any]) -> None:
        for handler in list(self._handlers.get(event, [])):
            handler(params)

    # -- test helpers ----------------------------------------------------------

    def frame(self, frame_id: str) -> FakeFrame:
        return self._frames[frame_id]

    def methods(self, name: str) -> List[Dict[str, Any]]:
        """Params of every ``name`` command sent so far."""
        return [params for method, params in self.sent if method == name]

    def paused_count(self) -> int:
        return len(self._paused)

    async def flush(self, rounds: int = 20) -> None:
        """Let scheduled tasks and event handlers run."""
        for _ in range(rounds):
            await asyncio.sleep(0)

    def set_content(self, html: str, frame_id: str = "main") -> None:
        """Replace the body of the frame's document in place (no navigation)."""
        self._frames[frame_id].document.set_content(html)

    def query(self, selector: str, frame_id: str = "main") -> Optional[FakeNode]:
        return self._frames[frame_id].document.query_selector(selector)

    def break_query_selector(self, frame_id: str = "main") -> None:
        self._frames[frame_id].document.query_selector_broken = True

    async def attach_frame(self, name: str, url: str, parent_id: str = "main") -> str:
        """Attach a child frame and navigate it; returns the frame id."""
        parent = self._frames[parent_id]
        frame = FakeFrame(f"frame-{next(self._ids)}", parent, name)
        parent.children.append(frame)
        self._frames[frame.id] = frame
        self.emit("Page.frameAttached", {"frameId": frame.id, "parentFrameId": parent.id})
        await self._navigate_frame(frame, url)
        return frame.id

    def detach_frame(self, frame_id: str) -> None:
        self._detach(self._frames[frame_id])

    async def navigate(self, url: str, frame_id: str = "main") -> Dict[str, Any]:
        """Navigate a frame as if the page itself did (e.g. a link click)."""
        return await self._navigate_frame(self._frames[frame_id], url)

    # -- Page domain -------------------------------------------------------------

    def _cmd_Page_getFrameTree(self, params):
        return {"frameTree": self._frame_tree(self.main_frame)}

    async def _cmd_Page_navigate(self, params):
        frame = self._frames.get(params["frameId"])
        if frame is None:
            raise FakeProtocolError("No frame for given id found")
        url = params["url"]
        if (
            not url.startswith("data:")
            and "#" in url
            and frame.document is not None
            and _strip_fragment(url) == _strip_fragment(frame.url)
        ):
            frame.url = url
            self.emit("Page.navigatedWithinDocument", {"frameId": frame.id, "url": url})
            return {"frameId": frame.id}
        return await self._navigate_frame(frame, url, params.get("referrer"))

    # -- Runtime domain ----------------------------------------------------------

    def _cmd_Runtime_enable(self, params):
        self.runtime_enabled = True
        for frame in list(self._frames.values()):
            if frame.document is not None and frame.context_id is None:
                self._create_context(frame)

    def _cmd_Runtime_addBinding(self, params):
        self.bindings.add(params["name"])

    def _cmd_Runtime_releaseObject(self, params):
        self._objects.pop(params["objectId"], None)

    async def _cmd_Runtime_evaluate(self, params):
        context_id = params["contextId"]
        frame = self._context_frame(context_id)
        expression = params["expression"]
        try:
            if expression in self.scripts:
                value = self.scripts[expression](frame)
                if inspect.isawaitable(value):
                    value = await value
            elif re.fullmatch(r"-?\d+", expression.strip()):
                value = int(expression)
            else:
                raise FakeProtocolError(f"Unsupported expression: {expression}")
        except FakeJSError as e:
            return self._exception(str(e))
        return {"result": self._remote(context_id, value, params.get("returnByValue", False))}

    async def _cmd_Runtime_callFunctionOn(self, params):
        context_id = params["executionContextId"]
        frame = self._context_frame(context_id)
        function = params["functionDeclaration"]
        args = [self._resolve_argument(context_id, arg) for arg in params.get("arguments", [])]
        document = frame.document
        try:
            if function == INSTALL_MUTATION_OBSERVER:
                document.observer_installed = True
                value = True
            elif function == SELECTOR_PREDICATE:
                if document.query_selector_broken:
                    raise FakeJSError("TypeError: document.querySelector is not a function")
                value = document.selector_predicate(*args)
            elif function == JSON_VALUE:
                value = args[0]
            elif function in self.scripts:
                value = self.scripts[function](frame, *args)
                if inspect.isawaitable(value):
                    value = await value
            else:
                raise FakeProtocolError(f"Unsupported function: {function}")
        except FakeJSError as e:
            return self._exception(str(e))
        if frame.context_id != context_id:
            raise FakeProtocolError("Execution context was destroyed.")
        return {"result": self._remote(context_id, value, params.get("returnByValue", False))}

    # -- Network / Fetch domains -------------------------------------------------

    def _cmd_Network_setExtraHTTPHeaders(self, params):
        self.extra_headers = httpx.Headers(params["headers"])

    def _cmd_Network_setCacheDisabled(self, params):
        self.cache_disabled = params["cacheDisabled"]

    def _cmd_Fetch_enable(self, params):
        self.fetch_enabled = True

    def _cmd_Fetch_disable(self, params):
        self.fetch_enabled = False

    def _cmd_Fetch_continueRequest(self, params):
        self._take_paused(params["requestId"]).future.set_result(("continue", params))

    def _cmd_Fetch_failRequest(self, params):
        self._take_paused(params["requestId"]).future.set_result(("fail", params["errorReason"]))

    def _cmd_Fetch_fulfillRequest(self, params):
        self._take_paused(params["requestId"]).future.set_result(("fulfill", params))

    def _take_paused(self, interception_id: str) -> _Paused:
        paused = self._paused.pop(interception_id, None)
        if paused is None:
            raise FakeProtocolError("Invalid InterceptionId.")
        return paused

    # -- internals ---------------------------------------------------------------

    def _spawn(self, coro) -> None:
        task = asyncio.ensure_future(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    def _frame_tree(self, frame: FakeFrame) -> Dict[str, Any]:
        tree: Dict[str, Any] = {"frame": frame.payload()}
        if frame.children:
            tree["childFrames"] = [self._frame_tree(child) for child in frame.children]
        return tree

    def _new_document(self, frame: FakeFrame, html: str) -> FakeDocument:
        return FakeDocument(html, on_mutation=lambda: self._on_mutation(frame))

    def _on_mutation(self, frame: FakeFrame) -> None:
        document = frame.document
        if (
            not self.runtime_enabled
            or MUTATION_BINDING not in self.bindings
            or document is None
            or not document.observer_installed
            or frame.context_id is None
        ):
            return
        self.emit("Runtime.bindingCalled", {
            "name": MUTATION_BINDING,
            "payload": "",
            "executionContextId": frame.context_id,
        })

    def _create_context(self, frame: FakeFrame) -> None:
        if not self.runtime_enabled:
            return
        context_id = next(self._ids)
        frame.context_id = context_id
        self._contexts[context_id] = frame
        self.emit("Runtime.executionContextCreated", {"context": {
            "id": context_id,
            "origin": frame.url,
            "name": "",
            "auxData": {"isDefault": True, "type": "default", "frameId": frame.id},
        }})

    def _destroy_context(self, frame: FakeFrame) -> None:
        context_id = frame.context_id
        if context_id is None:
            return
        frame.context_id = None
        self._contexts.pop(context_id, None)
        for object_id in [oid for oid, (cid, _) in self._objects.items() if cid == context_id]:
            del self._objects[object_id]
        self.emit("Runtime.executionContextDestroyed", {"executionContextId": context_id})

    def _context_frame(self, context_id: int) -> FakeFrame:
        frame = self._contexts.get(context_id)
        if frame is None:
            raise FakeProtocolError("Cannot find context with specified id")
        return frame

    def _resolve_argument(self, context_id: int, argument: Dict[str, Any]) -> Any:
        if "objectId" in argument:
            entry = self._objects.get(argument["objectId"])
            if entry is None or entry[0] != context_id:
                raise FakeProtocolError("Could not find object with given id")
            return entry[1]
        return argument.get("value")

    def _remote(self, context_id: int, value: Any, by_value: bool) -> Dict[str, Any]:
        if value is UNDEFINED:
            return {"type": "undefined"}
        if value is None:
            return {"type": "object", "subtype": "null", "value": None}
        if isinstance(value, bool):
            return {"type": "boolean", "value": value}
        if isinstance(value, (int, float)):
            return {"type": "number", "value": value, "description": str(value)}
        if isinstance(value, str):
            return {"type": "string", "value": value}
        if by_value:
            return {"type": "object", "value": {} if isinstance(value, FakeNode) else value}
        object_id = f"object-{next(self._ids)}"
        self._objects[object_id] = (context_id, value)
        if isinstance(value, FakeNode):
            return {
                "type": "object",
                "subtype": "node",
                "className": f"HTML{value.tag.capitalize()}Element",
                "description": value.tag,
                "objectId": object_id,
            }
        return {"type": "object", "className": "Object", "description": "Object", "objectId": object_id}

    @staticmethod
    def _exception(description: str) -> Dict[str, Any]:
        return {
            "result": {"type": "object", "subtype": "error", "description": description},
            "exceptionDetails": {
                "exceptionId": 1,
                "text": "Uncaught",
                "lineNumber": 0,
                "columnNumber": 0,
                "exception": {"type": "object", "subtype": "error", "description": description},
            },
        }

    def _lifecycle(self, frame: FakeFrame, name: str) -> None:
        self.emit("Page.lifecycleEvent", {
            "frameId": frame.id,
            "loaderId": frame.loader_id,
            "name": name,
            "timestamp": time.monotonic(),
        })

    async def _navigate_frame(self, frame: FakeFrame, url: str, referrer: Optional[str] = None) -> Dict[str, Any]:
        loader_id = f"loader-{next(self._ids)}"
        headers = {"referer": referrer} if referrer else {}
        result = await self._load(frame, url, "Document", loader_id=loader_id, headers=headers)
        if result.error_text:
            return {"frameId": frame.id, "loaderId": loader_id, "errorText": result.error_text}
        if frame.detached:
            return {"frameId": frame.id, "loaderId": loader_id, "errorText": "net::ERR_ABORTED"}

        final_url = result.url
        if not url.startswith("data:") and "#" in url:
            final_url += "#" + url.split("#", 1)[1]
        self._commit(frame, final_url, loader_id, result.body)
        self._spawn(self._finish_loading(frame, loader_id))
        return {"frameId": frame.id, "loaderId": loader_id}

    def _commit(self, frame: FakeFrame, url: str, loader_id: str, body: str) -> None:
        for child in list(frame.children):
            self._detach(child)
        self._destroy_context(frame)
        frame.loader_id = loader_id
        frame.url = url
        frame.document = self._new_document(frame, body)
        self._lifecycle(frame, "init")
        self.emit("Page.frameNavigated", {"frame": frame.payload(), "type": "Navigation"})
        self._create_context(frame)

    async def _finish_loading(self, frame: FakeFrame, loader_id: str) -> None:
        self._lifecycle(frame, "DOMContentLoaded")
        hrefs = frame.document.stylesheets()
        if hrefs:
            await asyncio.gather(*(
                self._load(frame, urljoin(frame.url, href), "Stylesheet") for href in hrefs
            ))
        if frame.detached or frame.loader_id != loader_id:
            return
        self._lifecycle(frame, "load")
        self.emit("Page.frameStoppedLoading", {"frameId": frame.id})

    def _detach(self, frame: FakeFrame) -> None:
        for child in list(frame.children):
            self._detach(child)
        frame.detached = True
        self.emit("Page.frameDetached", {"frameId": frame.id, "reason": "remove"})
        self._destroy_context(frame)
        for interception_id, paused in list(self._paused.items()):
            if paused.frame_id == frame.id:
                del self._paused[interception_id]
                paused.future.set_result(("cancel", None))
        if frame.parent is not None and frame in frame.parent.children:
            frame.parent.children.remove(frame)
        self._frames.pop(frame.id, None)

    async def _fetch_text(self, frame: FakeFrame, url: str) -> str:
        result = await self._load(frame, urljoin(frame.url, url), "Fetch")
        if result.error_text:
            return "FAILED"
        return result.body

    async def _load(
        self,
        frame: FakeFrame,
        url: str,
        resource_type: str,
        loader_id: Optional[str] = None,
        method: str = "GET",
        headers: Optional[Dict[str, str]] = None,
    ) -> _LoadResult:
        network_id = loader_id or f"request-{next(self._ids)}"
        request_url = _strip_fragment(url)
        request_headers = httpx.Headers({"user-agent": "FakeBrowser/1.0", "accept": "*/*"})
        request_headers.update(headers or {})
        request_headers.update(self.extra_headers)
        post_data: Optional[str] = None
        redirect_response: Optional[Dict[str, Any]] = None

        while True:
            request = {"url": request_url, "method": method, "headers": dict(request_headers)}
            if post_data is not None:
                request["postData"] = post_data
            will_be_sent = {
                "requestId": network_id,
                "loaderId": loader_id or "",
                "frameId": frame.id,
                "type": resource_type,
                "documentURL": frame.url,
                "request": request,
            }
            if redirect_response is not None:
                will_be_sent["redirectResponse"] = redirect_response
            self.emit("Network.requestWillBeSent", will_be_sent)

            decision: Tuple[str, Any] = ("continue", {})
            if self.fetch_enabled:
                interception_id = f"interception-{next(self._ids)}"
                paused = _Paused(asyncio.get_running_loop().create_future(), frame.id, network_id)
                self._paused[interception_id] = paused
                # Fetch re-encodes the URL independently of the Network domain
                paused_url = quote(request_url, safe=":/?#[]@!$&'()*+,;=")
                self.paused_urls.append(paused_url)
                self.emit("Fetch.requestPaused", {
                    "requestId": interception_id,
                    "networkId": network_id,
                    "frameId": frame.id,
                    "resourceType": resource_type,
                    "request": {**request, "url": paused_url},
                })
                decision = await paused.future

            kind, payload = decision
            error_text = None
            if kind == "cancel":
                error_text = "net::ERR_ABORTED"
            elif kind == "fail":
                error_text = _NET_ERRORS.get(payload, "net::ERR_FAILED")
            if error_text is not None:
                self.emit("Network.loadingFailed", {
                    "requestId": network_id,
                    "type": resource_type,
                    "errorText": error_text,
                    "canceled": kind == "cancel",
                })
                return _LoadResult(request_url, error_text=error_text)

            if kind == "fulfill":
                status = payload["responseCode"]
                response_headers = {entry["name"]: entry["value"] for entry in payload.get("responseHeaders", [])}
                body = base64.b64decode(payload.get("body", "")).decode("utf-8")
            else:
                if payload.get("url"):
                    request_url = payload["url"]
                if payload.get("method"):
                    method = payload["method"]
                if payload.get("headers") is not None:
                    request_headers = httpx.Headers([(entry["name"], entry["value"]) for entry in payload["headers"]])
                if payload.get("postData"):
                    post_data = base64.b64decode(payload["postData"]).decode("utf-8")
                if request_url.startswith("data:"):
                    content_type, body = _decode_data_url(request_url)
                    status, response_headers = 200, {"content-type": content_type}
                else:
                    status, response_headers, body = self.server.handle(request_url, request_headers)
                if 300 <= status < 400 and "location" in response_headers:
                    redirect_response = {
                        "url": request_url,
                        "status": status,
                        "statusText": "Found",
                        "headers": response_headers,
                    }
                    request_url = urljoin(request_url, response_headers["location"])
                    continue

            self.emit("Network.responseReceived", {
                "requestId": network_id,
                "loaderId": loader_id or "",
                "frameId": frame.id,
                "type": resource_type,
                "response": {
                    "url": request_url,
                    "status": status,
                    "statusText": "OK" if status < 400 else "Error",
                    "headers": response_headers,
                    "remoteIPAddress": "127.0.0.1",
                    "remotePort": 8907,
                },
            })
            self.emit("Network.loadingFinished", {"requestId": network_id, "encodedDataLength": len(body)})
            return _LoadResult(request_url, status, response_headers, body)
