"""Service ordering and form parsing used by the start, stop and create operations."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from typing import Protocol, TypeVar

from keel.model import Service

INFRA_GROUP = "infra"
DEFAULT_GROUP = "other"


class _Grouped(Protocol):
    group: str


G = TypeVar("G", bound=_Grouped)


def _order_key(service: Service) -> tuple[bool, int]:
    # A start order of 0 means "unset" and sorts after every explicit order.
    return service.start_order == 0, service.start_order


def sort_by_start_order(services: Iterable[Service]) -> list[Service]:
    """Return the services sorted by start order, unset (0) last, ties kept in order."""
    return sorted(services, key=_order_key)


def partition_by_group(services: Iterable[Service]) -> tuple[list[Service], list[Service]]:
    """Split services into (infra, rest), each sorted by start order."""
    infra: list[Service] = []
    rest: list[Service] = []
    for service in services:
        (infra if service.group == INFRA_GROUP else rest).append(service)
    return sort_by_start_order(infra), sort_by_start_order(rest)


def group_services(services: Sequence[G]) -> dict[str, list[G]]:
    """Group items by their ``group``, blank groups under "other", in first-seen order."""
    groups: dict[str, list[G]] = {}
    for item in services:
        groups.setdefault(item.group or DEFAULT_GROUP, []).append(item)
    return groups


def parse_environment(text: str) -> dict[str, str]:
    """Parse ``KEY=VALUE`` lines; blank lines, comments and lines without ``=`` are skipped."""
    env: dict[str, str] = {}
    for raw in text.split("\n"):
        line = raw.strip()
        if not line or line.startswith("#"):
            continue
        key, sep, value = line.partition("=")
        if sep:
            env[key.strip()] = value.strip()
    return env


def parse_volumes(text: str) -> list[str]:
    """Return one volume per non-blank line, trimmed."""
    return [line for line in (raw.strip() for raw in text.split("\n")) if line]