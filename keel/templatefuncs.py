"""Formatting helpers for the dashboard templates."""

from __future__ import annotations

_GB = 1024 * 1024 * 1024
_MB = 1024 * 1024


def progress_color(percent: float) -> str:
    """Return the CSS class for a usage bar at the given percentage."""
    if percent >= 85:
        return "bar-error"
    if percent >= 70:
        return "bar-warning"
    return "bar-success"


def format_bytes(size: int) -> str:
    """Format a byte count as GB (one decimal), MB (whole) or plain bytes."""
    if size >= _GB:
        return f"{size / _GB:.1f} GB"
    if size >= _MB:
        return f"{size / _MB:.0f} MB"
    return f"{size} B"


def _tdiv(a: int, b: int) -> int:
    q = abs(a) // b
    return q if a >= 0 else -q


def _trem(a: int, b: int) -> int:
    return a - b * _tdiv(a, b)


def format_uptime(seconds: float) -> str:
    """Format an uptime as ``Nd Nh Nm``, dropping the days when there are none."""
    total = int(seconds)
    days = _tdiv(total, 86400)
    hours = _tdiv(_trem(total, 86400), 3600)
    minutes = _tdiv(_trem(total, 3600), 60)
    if days > 0:
        return f"{days}d {hours}h {minutes}m"
    return f"{hours}h {minutes}m"