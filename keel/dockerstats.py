"""Docker container resource usage with a short-lived cache."""

from __future__ import annotations

import json
import subprocess
import threading
import time
from collections.abc import Callable

from keel.model import ContainerStats

_FIELDS = (
    ("Name", "name"),
    ("CPUPerc", "cpu_perc"),
    ("MemUsage", "mem_usage"),
    ("MemPerc", "mem_perc"),
    ("NetIO", "net_io"),
    ("BlockIO", "block_io"),
)


class DockerStatsError(Exception):
    """Running docker stats failed."""


def _parse_line(line: str) -> ContainerStats | None:
    try:
        data = json.loads(line)
    except ValueError:
        return None
    if not isinstance(data, dict):
        return None
    values: dict[str, str] = {}
    for key, attr in _FIELDS:
        value = data.get(key)
        if value is None:
            value = ""
        if not isinstance(value, str):
            return None
        values[attr] = value
    values["name"] = values["name"].removeprefix("/")
    return ContainerStats(**values)


def parse_docker_stats(output: str) -> list[ContainerStats]:
    """Parse ``docker stats --format '{{json .}}'`` output; malformed lines are skipped."""
    results = []
    for line in output.strip().split("\n"):
        if not line:
            continue
        stats = _parse_line(line)
        if stats is not None:
            results.append(stats)
    return results


def fetch_docker_stats(timeout: float = 10.0) -> list[ContainerStats]:
    """Run ``docker stats`` once and return the per-container usage."""
    argv = ["docker", "stats", "--no-stream", "--format", "{{json .}}"]
    try:
        proc = subprocess.run(
            argv, capture_output=True, text=True, timeout=timeout, check=False
        )
    except subprocess.TimeoutExpired as exc:
        raise DockerStatsError(f"docker stats: timed out after {timeout}s") from exc
    except OSError as exc:
        raise DockerStatsError(f"docker stats: {exc}") from exc
    if proc.returncode != 0:
        raise DockerStatsError(
            f"docker stats: exit status {proc.returncode}: {proc.stderr}"
        )
    return parse_docker_stats(proc.stdout)


class StatsPoller:
    """Caches docker stats for ``ttl`` seconds."""

    def __init__(
        self,
        ttl: float = 5.0,
        fetch: Callable[[], list[ContainerStats]] | None = None,
    ) -> None:
        self.ttl = ttl
        self._fetch = fetch or fetch_docker_stats
        self._lock = threading.Lock()
        self._cache: list[ContainerStats] = []
        self._expiry = 0.0
        self._valid = False

    def _fresh(self) -> bool:
        return self._valid and time.monotonic() < self._expiry

    def read_stats(self) -> list[ContainerStats]:
        """Return cached stats, refreshing them when expired."""
        with self._lock:
            if self._fresh():
                return self._cache
            stats = self._fetch()
            self._cache = stats
            self._expiry = time.monotonic() + self.ttl
            self._valid = True
            return stats

    def invalidate(self) -> None:
        """Force the next read to fetch fresh data."""
        with self._lock:
            self._valid = False
            self._expiry = 0.0