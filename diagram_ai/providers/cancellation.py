"""Cooperative cancellation for in-flight model requests."""
from __future__ import annotations

import threading
from contextlib import contextmanager
from typing import Callable, Iterator, List


class RequestCancelled(Exception):
    """Raised when a caller cancels a request; never a transport failure."""

    def __init__(self, message: str = "Request was cancelled"):
        super().__init__(message)


class CancellationToken:
    """Thread-safe flag that also fires registered abort callbacks."""

    def __init__(self) -> None:
        self._event = threading.Event()
        self._lock = threading.Lock()
        self._callbacks: List[Callable[[], None]] = []

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        with self._lock:
            if self._event.is_set():
                return
            self._event.set()
            callbacks = list(self._callbacks)
        for callback in callbacks:
            callback()

    def raise_if_cancelled(self) -> None:
        if self.cancelled:
            raise RequestCancelled()

    @contextmanager
    def on_cancel(self, callback: Callable[[], None]) -> Iterator[None]:
        """Run ``callback`` if the token is cancelled while the block is active."""
        with self._lock:
            already_cancelled = self._event.is_set()
            if not already_cancelled:
                self._callbacks.append(callback)
        if already_cancelled:
            callback()
        try:
            yield
        finally:
            with self._lock:
                if callback in self._callbacks:
                    self._callbacks.remove(callback)
