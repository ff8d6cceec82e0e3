"""Cooperative cancellation tokens for transports and the polling loop.

What:
  Provide :class:`CancellationToken`, a thread-safe flag that long-running
  operations poll, wait on, and attach abort hooks to.

Why:
  The polling loop runs on its own thread and must stop promptly when the host
  shuts down. Blocking socket calls cannot be interrupted by a flag alone, so
  transports register a hook that closes their connection when the token fires.

How:
  Wrap :class:`threading.Event`. ``wait`` doubles as the interruptible sleep
  used between polling cycles. Callbacks registered through :meth:`register`
  run once, on the thread calling :meth:`cancel`; a callback registered after
  cancellation runs immediately.

Interfaces:
  :class:`CancellationToken`, :data:`NEVER`.

Invariants & Safety:
  - :meth:`cancel` is idempotent; callbacks never run twice.
  - Callback exceptions are swallowed; the remaining hooks still run.
"""
from __future__ import annotations

import threading
from typing import Callable, Dict, Optional

from ..errors import OperationCancelled


class CancellationToken:
    """Thread-safe cancellation flag with abort callbacks."""

    def __init__(self) -> None:
        self._event = threading.Event()
        self._lock = threading.Lock()
        self._callbacks: Dict[int, Callable[[], None]] = {}
        self._next_handle = 0

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        """Fire the token and run every registered abort callback."""

        with self._lock:
            if self._event.is_set():
                return
            self._event.set()
            callbacks = list(self._callbacks.values())
            self._callbacks.clear()
        for callback in callbacks:
            try:
                callback()
            except Exception:  # pragma: no cover - best-effort abort
                pass

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise OperationCancelled("operation cancelled")

    def wait(self, timeout: Optional[float]) -> bool:
        """Block for ``timeout`` seconds or until cancelled.

        Returns:
          ``True`` when the token fired, ``False`` when the timeout elapsed.
        """

        return self._event.wait(timeout)

    def register(self, callback: Callable[[], None]) -> Callable[[], None]:
        """Attach ``callback`` to run on cancellation.

        Returns:
          A zero-argument function removing the callback again.
        """

        with self._lock:
            if not self._event.is_set():
                handle = self._next_handle
                self._next_handle += 1
                self._callbacks[handle] = callback
                return lambda: self._unregister(handle)
        callback()
        return lambda: None

    def _unregister(self, handle: int) -> None:
        with self._lock:
            self._callbacks.pop(handle, None)


class _NeverCancelled(CancellationToken):
    """Token used when a caller does not supply one."""

    def cancel(self) -> None:  # pragma: no cover - guard against misuse
        raise RuntimeError("the shared NEVER token cannot be cancelled")


NEVER = _NeverCancelled()
"""Shared token that never fires; the default for on-demand operations."""
