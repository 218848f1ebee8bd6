"""Small helpers shared by the network and runtime layers."""

import re
from typing import Dict, List, Mapping, Optional, Union

import httpx

HeadersLike = Union[httpx.Headers, Mapping[str, str]]

_JS_FUNCTION_RE = re.compile(
    r"^\s*(async\s+)?(function\b|\([^)]*\)\s*=>|[A-Za-z_$][\w$]*\s*=>)",
)


def is_js_function(source: str) -> bool:
    """Return True if ``source`` looks like a JavaScript function literal."""
    return bool(_JS_FUNCTION_RE.match(source))


def merge_headers(*layers: Optional[HeadersLike]) -> httpx.Headers:
    """
    Merge header layers case-insensitively.

    Later layers win: a key present in a later layer replaces every value of
    the same key from earlier layers, other keys are retained.
    """
    merged = httpx.Headers()
    for layer in layers:
        if layer:
            merged.update(httpx.Headers(layer))
    return merged


def headers_to_entries(headers: HeadersLike) -> List[Dict[str, str]]:
    """Convert headers to the ``[{name, value}]`` shape used by the Fetch domain."""
    return [
        {"name": name, "value": value}
        for name, value in httpx.Headers(headers).multi_items()
    ]


def strip_fragment(url: str) -> str:
    """Drop the ``#fragment`` part of a URL; it never reaches the network."""
    if url.startswith("data:"):
        return url
    return url.split("#", 1)[0]
