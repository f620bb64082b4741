"""WebSocket origin checks and terminal control messages."""

from __future__ import annotations

import json
import re
from urllib.parse import urlsplit

_PORT = re.compile(r"[0-9]*")
_LOOPBACK = ("localhost", "127.0.0.1", "::1")
_UINT16_MAX = 0xFFFF


def _origin_hostname(origin: str) -> str | None:
    if origin.startswith(":"):
        return None
    try:
        parts = urlsplit(origin)
    except ValueError:
        return None
    host = parts.netloc.rpartition("@")[2]
    colon = host.rfind(":")
    if colon != -1 and colon > host.rfind("]"):
        if not _PORT.fullmatch(host[colon + 1:]):
            return None
        host = host[:colon]
    if host.startswith("[") and host.endswith("]"):
        host = host[1:-1]
    return host


def check_ws_origin(host: str, origin: str) -> bool:
    """Allow an empty origin, the request's own host, or a loopback origin."""
    if not origin:
        return True
    origin_host = _origin_hostname(origin)
    if origin_host is None:
        return False
    colon = host.rfind(":")
    request_host = host[:colon] if colon != -1 else host
    return origin_host == request_host or origin_host in _LOOPBACK


def _uint16(value: object) -> int | None:
    if value is None:
        return 0
    if isinstance(value, bool) or not isinstance(value, int):
        return None
    if not 0 <= value <= _UINT16_MAX:
        return None
    return value


def parse_control_message(text: str | bytes) -> tuple[int, int] | None:
    """Return (rows, cols) for a valid resize message, otherwise None."""
    try:
        msg = json.loads(text)
    except ValueError:
        return None
    if not isinstance(msg, dict):
        return None
    kind = msg.get("type")
    if kind is not None and not isinstance(kind, str):
        return None
    cols = _uint16(msg.get("cols"))
    rows = _uint16(msg.get("rows"))
    if cols is None or rows is None:
        return None
    if kind == "resize" and cols > 0 and rows > 0:
        return rows, cols
    return None