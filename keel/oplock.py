"""A lock that lets only one long-running operation run at a time."""

from __future__ import annotations

import threading
from types import TracebackType


class OperationBusy(Exception):
    """Another operation is already running."""

    def __init__(self, current: str) -> None:
        super().__init__(f"An operation is already in progress: {current}")
        self.current = current


class _Operation:
    """A held operation slot; release it once, directly or by leaving a ``with`` block."""

    def __init__(self, owner: OpMutex, op_type: str) -> None:
        self._owner = owner
        self.op_type = op_type
        self._released = False

    def release(self) -> None:
        """Free the slot. Further calls do nothing."""
        if self._released:
            return
        self._released = True
        self._owner._release()

    def __enter__(self) -> _Operation:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.release()


class OpMutex:
    """Prevents concurrent install, start, stop, update, reset or deploy operations."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._active = ""

    def acquire(self, op_type: str) -> _Operation:
        """Claim the slot for ``op_type``; raises OperationBusy if one is running."""
        with self._lock:
            if self._active:
                raise OperationBusy(self._active)
            self._active = op_type
        return _Operation(self, op_type)

    def active_op(self) -> str:
        """Return the running operation type, or an empty string when idle."""
        with self._lock:
            return self._active

    def _release(self) -> None:
        with self._lock:
            self._active = ""