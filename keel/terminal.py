"""Shell sessions attached to a pseudo-terminal."""

from __future__ import annotations

import contextlib
import errno
import fcntl
import os
import pty
import struct
import subprocess
import termios
import threading
from collections.abc import Mapping, Sequence
from types import TracebackType

TERM = "xterm-256color"


def _make_controlling_tty() -> None:
    os.setsid()
    with contextlib.suppress(OSError):
        fcntl.ioctl(0, termios.TIOCSCTTY, 0)


class Session:
    """A process running on the slave side of a PTY; this object holds the master side."""

    def __init__(self, argv: Sequence[str], env: Mapping[str, str] | None = None) -> None:
        child_env = dict(os.environ if env is None else env)
        child_env["TERM"] = TERM
        master, slave = pty.openpty()
        try:
            self.process = subprocess.Popen(
                list(argv),
                stdin=slave,
                stdout=slave,
                stderr=slave,
                env=child_env,
                close_fds=True,
                preexec_fn=_make_controlling_tty,
            )
        except BaseException:
            os.close(master)
            raise
        finally:
            os.close(slave)
        self._fd = master
        self._lock = threading.Lock()
        self._closed = False

    def fileno(self) -> int:
        """Return the master file descriptor, for use with select."""
        return self._fd

    @property
    def closed(self) -> bool:
        return self._closed

    def read(self, size: int = 4096) -> bytes:
        """Read output from the terminal; returns b"" once the session has ended."""
        if self._closed:
            return b""
        try:
            return os.read(self._fd, size)
        except OSError as exc:
            if exc.errno in (errno.EIO, errno.EBADF):
                return b""
            raise

    def write(self, data: bytes) -> int:
        """Send input to the terminal."""
        if self._closed:
            raise ValueError("session is closed")
        return os.write(self._fd, data)

    def resize(self, rows: int, cols: int) -> None:
        """Change the terminal dimensions."""
        if self._closed:
            raise ValueError("session is closed")
        fcntl.ioctl(self._fd, termios.TIOCSWINSZ, struct.pack("HHHH", rows, cols, 0, 0))

    def close(self) -> None:
        """Kill the process and release the terminal. Safe to call more than once."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
        with contextlib.suppress(OSError):
            self.process.kill()
        with contextlib.suppress(OSError):
            self.process.wait()
        with contextlib.suppress(OSError):
            os.close(self._fd)

    def __enter__(self) -> Session:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()


def new_session() -> Session:
    """Start /bin/bash on a new PTY."""
    return Session(["/bin/bash"])


def detect_shell(container: str) -> str:
    """Return /bin/bash if the container has it, otherwise /bin/sh."""
    try:
        proc = subprocess.run(
            ["docker", "exec", container, "test", "-x", "/bin/bash"],
            stdin=subprocess.DEVNULL,
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
            check=False,
        )
    except OSError:
        return "/bin/sh"
    return "/bin/bash" if proc.returncode == 0 else "/bin/sh"


def new_exec_session(container: str) -> Session:
    """Start an interactive shell inside a running container on a new PTY."""
    shell = detect_shell(container)
    return Session(["docker", "exec", "-it", "-e", f"TERM={TERM}", container, shell])