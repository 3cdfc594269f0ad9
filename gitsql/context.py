"""Cancellation context shared by locators and iterators."""

from __future__ import annotations

import threading
import time

from gitsql.errors import Cancelled


class Context:
    """Cancellation signal with an optional deadline and parent.

    A child is cancelled when its parent is, never the other way round.
    """

    def __init__(self, timeout: float | None = None, parent: Context | None = None) -> None:
        self._event = threading.Event()
        self.deadline = time.monotonic() + timeout if timeout is not None else None
        self.parent = parent

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        if self._event.is_set():
            return True
        if self.deadline is not None and time.monotonic() >= self.deadline:
            return True
        return self.parent is not None and self.parent.cancelled

    def check(self) -> None:
        """Raise Cancelled if the context is done."""
        if not self.cancelled:
            return
        if self.deadline is not None and time.monotonic() >= self.deadline:
            raise Cancelled("deadline exceeded")
        raise Cancelled("operation cancelled")

    def child(self, timeout: float | None = None) -> Context:
        return Context(timeout=timeout, parent=self)
