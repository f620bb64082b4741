"""System metrics gathered from a remote host over SSH."""

from __future__ import annotations

import re
import subprocess
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass, field

from keel.model import CPUMetrics, DiskMetrics, LoadAvgMetrics, MemoryMetrics, UptimeMetrics
from keel.ssh import SSHTarget, build_args

CACHE_TTL = 10.0
SSH_EXEC_TIMEOUT = 5.0

_SCRIPT = (
    "cat /proc/stat | head -1; sleep 1; cat /proc/stat | head -1; cat /proc/meminfo; "
    "echo '---LOADAVG---'; cat /proc/loadavg; echo '---UPTIME---'; cat /proc/uptime; "
    "echo '---DISK---'; df -B1 / | tail -1"
)
_SECTIONS = {"---LOADAVG---": "loadavg", "---UPTIME---": "uptime", "---DISK---": "disk"}
_UINT = re.compile(r"[0-9]+")
_UINT_MAX = (1 << 64) - 1

Runner = Callable[[list[str], float], str]


class RemoteMetricsError(Exception):
    """Remote metrics could not be read or parsed."""


@dataclass
class RemoteMetrics:
    """All host metrics read from a remote machine in one call."""

    cpu: CPUMetrics = field(default_factory=CPUMetrics)
    memory: MemoryMetrics = field(default_factory=MemoryMetrics)
    disk: DiskMetrics = field(default_factory=DiskMetrics)
    load_avg: LoadAvgMetrics = field(default_factory=LoadAvgMetrics)
    uptime: UptimeMetrics = field(default_factory=UptimeMetrics)


def _uint(text: str) -> int | None:
    if not _UINT.fullmatch(text):
        return None
    value = int(text)
    return value if value <= _UINT_MAX else None


def _float(text: str) -> float:
    try:
        return float(text)
    except ValueError:
        return 0.0


def parse_cpu_line(line: str) -> tuple[int, int]:
    """Return (idle, total) jiffies from a ``/proc/stat`` cpu line."""
    fields = line.split()
    if len(fields) < 5:
        return 0, 0
    values = [v for v in (_uint(f) for f in fields[1:]) if v is not None]
    idle = values[3] if len(values) > 3 else 0
    return idle, sum(values)


def parse_remote_metrics(raw: str) -> RemoteMetrics:
    """Parse the output of the remote metrics script."""
    lines = raw.split("\n")
    if len(lines) < 4:
        raise RemoteMetricsError("unexpected remote metrics output")

    cpu_lines: list[str] = []
    mem_lines: list[str] = []
    last = {"loadavg": "", "uptime": "", "disk": ""}
    section = ""
    for line in lines:
        if line in _SECTIONS:
            section = _SECTIONS[line]
            continue
        if section:
            if line.strip():
                last[section] = line
        elif line.startswith("cpu "):
            cpu_lines.append(line)
        elif ":" in line:
            mem_lines.append(line)

    result = RemoteMetrics()

    if len(cpu_lines) >= 2:
        idle1, total1 = parse_cpu_line(cpu_lines[0])
        idle2, total2 = parse_cpu_line(cpu_lines[1])
        delta = total2 - total1
        if delta > 0:
            result.cpu.usage_percent = (1.0 - (idle2 - idle1) / delta) * 100.0

    mem: dict[str, int] = {}
    for line in mem_lines:
        key, _, rest = line.partition(":")
        key = key.strip()
        if key not in ("MemTotal", "MemAvailable"):
            continue
        value = _uint(rest.strip().removesuffix(" kB").strip())
        if value is not None:
            mem[key] = value * 1024
    memory = result.memory
    memory.total_bytes = mem.get("MemTotal", 0)
    memory.available_bytes = mem.get("MemAvailable", 0)
    memory.used_bytes = max(memory.total_bytes - memory.available_bytes, 0)
    if memory.total_bytes > 0:
        memory.usage_percent = memory.used_bytes / memory.total_bytes * 100.0

    fields = last["loadavg"].split()
    if len(fields) >= 3:
        result.load_avg = LoadAvgMetrics(
            load1=_float(fields[0]), load5=_float(fields[1]), load15=_float(fields[2])
        )

    fields = last["uptime"].split()
    if fields:
        result.uptime.uptime_seconds = _float(fields[0])

    fields = last["disk"].split()
    if len(fields) >= 4:
        disk = result.disk
        disk.total_bytes = _uint(fields[1]) or 0
        disk.used_bytes = _uint(fields[2]) or 0
        disk.available_bytes = _uint(fields[3]) or 0
        if disk.total_bytes > 0:
            disk.usage_percent = disk.used_bytes / disk.total_bytes * 100.0

    return result


def _run_ssh(argv: list[str], timeout: float) -> str:
    try:
        proc = subprocess.run(
            argv, capture_output=True, text=True, timeout=timeout, check=False
        )
    except subprocess.TimeoutExpired as exc:
        raise RemoteMetricsError(f"ssh metrics: timed out after {timeout}s") from exc
    except OSError as exc:
        raise RemoteMetricsError(f"ssh metrics: {exc}") from exc
    if proc.returncode != 0:
        raise RemoteMetricsError(
            f"ssh metrics: exit status {proc.returncode}: {proc.stderr}"
        )
    return proc.stdout


@dataclass
class _Cached:
    metrics: RemoteMetrics | None
    error: str
    at: float


class RemoteCollector:
    """Reads host metrics from a remote target, caching them for ``ttl`` seconds.

    An expired cache is refreshed in the background while the stale value is returned.
    """

    def __init__(
        self,
        target: SSHTarget,
        ttl: float = CACHE_TTL,
        runner: Runner | None = None,
    ) -> None:
        self._target = target
        self.ttl = ttl
        self._runner = runner or _run_ssh
        self._lock = threading.Lock()
        self._cache: _Cached | None = None
        self._fetching = False

    def set_target(self, target: SSHTarget) -> None:
        """Switch to another target and drop the cache."""
        with self._lock:
            self._target = target
            self._cache = None
            self._fetching = False

    def _fresh(self, cached: _Cached | None) -> bool:
        return cached is not None and time.monotonic() - cached.at < self.ttl

    @staticmethod
    def _resolve(cached: _Cached) -> RemoteMetrics:
        if cached.metrics is None:
            raise RemoteMetricsError(cached.error)
        return cached.metrics

    def _fetch(self) -> RemoteMetrics:
        with self._lock:
            target = self._target
        argv = ["ssh", *build_args(target), _SCRIPT]
        return parse_remote_metrics(self._runner(argv, SSH_EXEC_TIMEOUT))

    def _fetch_and_cache(self) -> _Cached:
        try:
            cached = _Cached(self._fetch(), "", time.monotonic())
        except RemoteMetricsError as exc:
            cached = _Cached(None, str(exc), time.monotonic())
        with self._lock:
            self._cache = cached
        return cached

    def _refresh_in_background(self) -> None:
        try:
            self._fetch_and_cache()
        finally:
            with self._lock:
                self._fetching = False

    def read_all(self) -> RemoteMetrics:
        """Return the remote host's metrics; raises RemoteMetricsError on failure."""
        with self._lock:
            cached = self._cache
            if self._fresh(cached):
                return self._resolve(cached)
            if self._fetching:
                stale = self._cache
                blocking = stale is None
            else:
                stale = self._cache
                self._fetching = True
                blocking = False
                if stale is not None:
                    threading.Thread(target=self._refresh_in_background, daemon=True).start()

        if stale is not None:
            return self._resolve(stale)
        if blocking:
            return self._resolve(self._fetch_and_cache())
        try:
            return self._resolve(self._fetch_and_cache())
        finally:
            with self._lock:
                self._fetching = False