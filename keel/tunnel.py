"""SSH tunnel to a remote Docker socket, with health checks and reconnection."""

from __future__ import annotations

import contextlib
import enum
import logging
import os
import queue
import subprocess
import tempfile
import threading
import time
from collections.abc import Callable, Sequence
from typing import Any

from keel.ssh import SSHTarget, build_args

log = logging.getLogger(__name__)

HEALTH_INTERVAL = 30.0
HEALTH_TIMEOUT = 5.0
SOCKET_TIMEOUT = 15.0
MAX_RETRIES = 10
MAX_BACKOFF = 30.0
LISTENER_BUFFER = 8
_POLL_INTERVAL = 0.1


class TunnelStatus(str, enum.Enum):
    """State of the SSH tunnel."""

    CONNECTED = "connected"
    RECONNECTING = "reconnecting"
    FAILED = "failed"
    DISCONNECTED = "disconnected"

    def __str__(self) -> str:
        return self.value


class TunnelError(Exception):
    """The tunnel could not be established."""


def _spawn_ssh(argv: Sequence[str]) -> Any:
    return subprocess.Popen(list(argv))


def _docker_healthy() -> bool:
    try:
        proc = subprocess.run(
            ["docker", "info", "--format", "{{.ServerVersion}}"],
            stdin=subprocess.DEVNULL,
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
            timeout=HEALTH_TIMEOUT,
            check=False,
        )
    except (OSError, subprocess.TimeoutExpired):
        return False
    return proc.returncode == 0


class Monitor:
    """Keeps an SSH-forwarded Docker socket alive for a remote target."""

    def __init__(
        self,
        target: SSHTarget,
        *,
        spawn: Callable[[Sequence[str]], Any] | None = None,
        health_check: Callable[[], bool] | None = None,
        sock_dir: str | None = None,
        socket_timeout: float = SOCKET_TIMEOUT,
        health_interval: float = HEALTH_INTERVAL,
        max_retries: int = MAX_RETRIES,
        initial_backoff: float = 1.0,
        max_backoff: float = MAX_BACKOFF,
    ) -> None:
        self.target = target
        self.sock_path = os.path.join(
            sock_dir or tempfile.gettempdir(), f"keel-docker-{target.name}.sock"
        )
        self.socket_timeout = socket_timeout
        self.health_interval = health_interval
        self.max_retries = max_retries
        self.initial_backoff = initial_backoff
        self.max_backoff = max_backoff
        self._spawn = spawn or _spawn_ssh
        self._health_check = health_check or _docker_healthy
        self._lock = threading.Lock()
        self._status = TunnelStatus.DISCONNECTED
        self._listeners: list[queue.Queue[TunnelStatus | None]] = []
        self._stopped = threading.Event()
        self._proc: Any = None
        self._thread: threading.Thread | None = None

    def start(self) -> None:
        """Open the tunnel, point DOCKER_HOST at it and begin monitoring."""
        try:
            self._connect()
        except TunnelError:
            self._set_status(TunnelStatus.FAILED)
            raise
        self._set_status(TunnelStatus.CONNECTED)
        os.environ["DOCKER_HOST"] = "unix://" + self.sock_path
        log.info(
            "docker tunnel: %s -> %s@%s (socket: %s)",
            self.target.name, self.target.ssh_user, self.target.host, self.sock_path,
        )
        self._thread = threading.Thread(
            target=self._watch, name=f"tunnel-{self.target.name}", daemon=True
        )
        self._thread.start()

    def stop(self) -> None:
        """Close the tunnel and stop monitoring."""
        self._stopped.set()
        self._kill_proc()
        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=5.0)
            self._kill_proc()
        self._remove_socket()
        self._set_status(TunnelStatus.DISCONNECTED)

    def status(self) -> TunnelStatus:
        """Return the current tunnel status."""
        with self._lock:
            return self._status

    def subscribe(self) -> queue.Queue[TunnelStatus | None]:
        """Return a queue that receives status changes; None marks the end."""
        q: queue.Queue[TunnelStatus | None] = queue.Queue()
        with self._lock:
            self._listeners.append(q)
        return q

    def unsubscribe(self, queue: queue.Queue[TunnelStatus | None]) -> None:
        """Stop delivering to a subscribed queue and mark it finished."""
        with self._lock:
            if queue not in self._listeners:
                return
            self._listeners.remove(queue)
        queue.put_nowait(None)

    def _set_status(self, status: TunnelStatus) -> None:
        with self._lock:
            previous = self._status
            self._status = status
            listeners = list(self._listeners)
        if status == previous:
            return
        log.info("docker tunnel: status %s -> %s", previous, status)
        for q in listeners:
            if q.qsize() < LISTENER_BUFFER:
                q.put_nowait(status)

    def _remove_socket(self) -> None:
        with contextlib.suppress(OSError):
            os.remove(self.sock_path)

    def _connect(self) -> None:
        self._remove_socket()
        argv = [
            "ssh", "-nNT", "-o", "ExitOnForwardFailure=yes",
            "-L", f"{self.sock_path}:/var/run/docker.sock",
            *build_args(self.target),
        ]
        try:
            proc = self._spawn(argv)
        except OSError as exc:
            raise TunnelError(f"ssh tunnel start: {exc}") from exc
        with self._lock:
            self._proc = proc

        deadline = time.monotonic() + self.socket_timeout
        while time.monotonic() < deadline:
            if os.path.exists(self.sock_path):
                return
            if proc.poll() is not None:
                self._kill_proc()
                raise TunnelError(f"ssh tunnel exited with status {proc.poll()}")
            if self._stopped.wait(_POLL_INTERVAL):
                self._kill_proc()
                raise TunnelError("tunnel stopped")
        self._kill_proc()
        raise TunnelError(f"tunnel socket did not appear within {self.socket_timeout:g}s")

    def _kill_proc(self) -> None:
        with self._lock:
            proc = self._proc
        if proc is not None:
            with contextlib.suppress(OSError):
                proc.kill()
            with contextlib.suppress(OSError):
                proc.wait()
        self._remove_socket()

    def _watch(self) -> None:
        next_check = time.monotonic() + self.health_interval
        while not self._stopped.is_set():
            with self._lock:
                proc = self._proc
            if proc is not None and proc.poll() is not None:
                if self._stopped.is_set():
                    return
                log.warning("docker tunnel: SSH process exited: %s", proc.poll())
                self._reconnect()
            elif time.monotonic() >= next_check:
                next_check = time.monotonic() + self.health_interval
                if not self._health_check():
                    log.warning("docker tunnel: health check failed")
                    self._kill_proc()
                    self._reconnect()
            self._stopped.wait(_POLL_INTERVAL)

    def _reconnect(self) -> None:
        self._set_status(TunnelStatus.RECONNECTING)
        backoff = self.initial_backoff
        for attempt in range(1, self.max_retries + 1):
            if self._stopped.is_set():
                return
            log.info(
                "docker tunnel: reconnecting (attempt %d/%d, backoff %gs)",
                attempt, self.max_retries, backoff,
            )
            if self._stopped.wait(backoff):
                return
            try:
                self._connect()
            except TunnelError as exc:
                log.warning("docker tunnel: reconnect failed: %s", exc)
                backoff = min(backoff * 2, self.max_backoff)
                continue
            self._set_status(TunnelStatus.CONNECTED)
            log.info("docker tunnel: reconnected")
            return
        self._set_status(TunnelStatus.FAILED)
        log.error("docker tunnel: failed after %d attempts", self.max_retries)