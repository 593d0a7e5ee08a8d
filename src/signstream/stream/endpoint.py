"""
Endpoint URLs
=============

Builds the WebSocket URL for a practice stream.

    build_stream_url("http://localhost:8000", "/practice/live-predict", "mini")
    -> "ws://localhost:8000/practice/live-predict?model_type=mini"
"""

from typing import Optional
from urllib.parse import urlencode, urlsplit, urlunsplit


_SCHEME_MAP = {"http": "ws", "https": "wss", "ws": "ws", "wss": "wss"}


def to_websocket_base(base_url: str) -> str:
    """Rewrite an http(s) base address to ws(s), dropping any trailing slash."""
    parts = urlsplit(base_url.strip())
    scheme = _SCHEME_MAP.get(parts.scheme.lower())
    if scheme is None or not parts.netloc:
        raise ValueError(f"Invalid base URL: {base_url!r}")
    return urlunsplit((scheme, parts.netloc, parts.path.rstrip("/"), "", ""))


def join_endpoint(base_url: str, path: str) -> str:
    """Join a base address and a stream path into a ws(s) endpoint."""
    return to_websocket_base(base_url) + "/" + path.lstrip("/")


def build_stream_url(
    endpoint: str,
    model_variant: str,
    category: Optional[str] = None,
) -> str:
    """
    Add the query parameters that select the model (and category).

    Args:
        endpoint: ws(s) endpoint without query string
        model_variant: Server-side model identifier
        category: Optional sign category (live-practice deployment)
    """
    params = {"model_type": model_variant}
    if category:
        params["category"] = category
    return f"{endpoint}?{urlencode(params)}"
