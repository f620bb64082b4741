"""Log sources of a service and log streaming as server-sent events."""

from __future__ import annotations

import logging
import os
import posixpath
import re
import subprocess
import time
from collections.abc import Iterator, Mapping, Sequence
from dataclasses import dataclass, field
from urllib.parse import parse_qs

from keel.model import LogSource
from keel.ssh import expand_home

log = logging.getLogger(__name__)

DEFAULT_LOG_LINES = 100
MAX_LOG_LINES = 10000
LOG_STREAM_TIMEOUT = 30 * 60.0
LIST_FILES_TIMEOUT = 5.0

_INT = re.compile(r"[+-]?[0-9]+")
_INT64_MAX = (1 << 63) - 1


class LogRequestError(Exception):
    """A log request names a file or source that may not be read."""

    def __init__(self, message: str, status: int = 400) -> None:
        super().__init__(message)
        self.status = status


@dataclass
class LogSourceFile:
    """A single resolved log file."""

    name: str
    path: str


@dataclass
class LogSourceInfo:
    """A log source with the files it resolves to."""

    name: str
    type: str
    path: str = ""
    host_path: str = ""
    available: bool = False
    files: list[LogSourceFile] = field(default_factory=list)


def _query_value(query: str | Mapping[str, object], key: str) -> str:
    if isinstance(query, str):
        values = parse_qs(query, keep_blank_values=True).get(key)
        return values[0] if values else ""
    value = query.get(key, "")
    if isinstance(value, (list, tuple)):
        value = value[0] if value else ""
    return value if isinstance(value, str) else ""


def parse_lines(query: str | Mapping[str, object]) -> int:
    """Return the requested number of lines, defaulting to 100 and capped at 10000.

    ``query`` is a raw query string or a mapping of query parameters.
    """
    lines = DEFAULT_LOG_LINES
    value = _query_value(query, "lines")
    if value and _INT.fullmatch(value):
        n = int(value)
        if 0 < n <= _INT64_MAX:
            lines = n
    return min(lines, MAX_LOG_LINES)


def find_log_source(sources: Sequence[LogSource] | None, name: str) -> LogSource | None:
    """Return the source with the given name, or None."""
    return next((s for s in sources or () if s.name == name), None)


def _resolve(path: str) -> str:
    if os.path.exists(path):
        return os.path.realpath(path)
    return os.path.normpath(path)


def is_within_dir(path: str, directory: str) -> bool:
    """Report whether ``path`` is inside (or equal to) ``directory``, resolving symlinks."""
    real_path = _resolve(path)
    real_dir = _resolve(directory)
    if os.path.isabs(real_path) != os.path.isabs(real_dir):
        return False
    try:
        rel = os.path.relpath(real_path, real_dir)
    except ValueError:
        return False
    return not rel.startswith("..")


def list_host_log_files(host_path: str) -> list[LogSourceFile]:
    """List the files below a host directory, recursively and in name order."""
    root = expand_home(host_path)
    if not os.path.isdir(root):
        return []
    files: list[LogSourceFile] = []

    def walk(directory: str) -> None:
        try:
            with os.scandir(directory) as it:
                entries = sorted(it, key=lambda e: e.name)
        except OSError:
            return
        for entry in entries:
            try:
                is_dir = entry.is_dir(follow_symlinks=False)
            except OSError:
                continue
            if is_dir:
                walk(entry.path)
            else:
                rel = entry.path.removeprefix(root).removeprefix("/")
                files.append(LogSourceFile(name=rel, path=entry.path))

    walk(root)
    return files


def list_container_log_files(container: str, log_path: str) -> list[LogSourceFile]:
    """List the files at a path (file or directory) inside a running container."""
    argv = ["docker", "exec", container, "find", log_path, "-type", "f"]
    try:
        proc = subprocess.run(
            argv,
            stdin=subprocess.DEVNULL,
            capture_output=True,
            text=True,
            timeout=LIST_FILES_TIMEOUT,
            check=False,
        )
    except (OSError, subprocess.TimeoutExpired):
        return []
    if proc.returncode != 0:
        return []
    return [
        LogSourceFile(name=posixpath.basename(line), path=line)
        for line in (raw.strip() for raw in proc.stdout.strip().split("\n"))
        if line
    ]


def validate_container_file(file_path: str, sources: Sequence[LogSource]) -> str:
    """Return the cleaned path if it lies under one of the sources' paths.

    Raises LogRequestError for traversal or paths outside every source.
    """
    cleaned = posixpath.normpath(file_path)
    if ".." in cleaned:
        raise LogRequestError("invalid file path")
    for source in sources:
        if source.path and cleaned.startswith(posixpath.normpath(source.path)):
            return cleaned
    raise LogRequestError("file path not within allowed log directory")


def format_sse(data: str, event: str | None = None) -> str:
    """Format one server-sent event frame."""
    if event:
        return f"event: {event}\ndata: {data}\n\n"
    return f"data: {data}\n\n"


def _chomp(raw: bytes) -> str:
    raw = raw.removesuffix(b"\n").removesuffix(b"\r")
    return raw.decode("utf-8", errors="replace")


def stream_command(argv: Sequence[str], timeout: float = LOG_STREAM_TIMEOUT) -> Iterator[str]:
    """Run a command and yield its combined output as SSE frames, one per line.

    Stops with an ``app-error`` frame when the command cannot start or the
    timeout passes; the process is killed when the stream ends early.
    """
    deadline = time.monotonic() + timeout
    try:
        proc = subprocess.Popen(
            list(argv),
            stdin=subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
        )
    except (OSError, ValueError) as exc:
        yield format_sse(f"failed to start: {exc}", event="app-error")
        return
    try:
        assert proc.stdout is not None
        for raw in proc.stdout:
            if time.monotonic() >= deadline:
                yield format_sse("stream timeout", event="app-error")
                return
            yield format_sse(_chomp(raw))
    finally:
        if proc.poll() is None:
            proc.kill()
        if proc.stdout is not None:
            proc.stdout.close()
        proc.wait()