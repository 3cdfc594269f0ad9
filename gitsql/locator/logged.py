"""Locator decorator that logs each resolution attempt."""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING

from gitsql.locator.base import Locator

if TYPE_CHECKING:
    from gitsql.context import Context
    from gitsql.locator.handle import RepositoryHandle

logger = logging.getLogger(__name__)


class LoggingLocator(Locator):
    """Records start, success and failure with elapsed time.

    Return values and raised exceptions pass through untouched.
    """

    def __init__(self, locator: Locator, log: logging.Logger | None = None) -> None:
        self._locator = locator
        self._log = log or logger

    def open(self, ctx: Context, key: str) -> RepositoryHandle:
        self._log.debug(f"Resolving repository {key}")
        start = time.perf_counter()
        try:
            handle = self._locator.open(ctx, key)
        except Exception as e:
            elapsed_ms = (time.perf_counter() - start) * 1000
            self._log.warning(
                f"Failed to resolve repository {key} after {elapsed_ms:.1f}ms: "
                f"{type(e).__name__}: {e}"
            )
            raise
        elapsed_ms = (time.perf_counter() - start) * 1000
        self._log.info(f"Resolved repository {key} to {handle.path} in {elapsed_ms:.1f}ms")
        return handle

    def close(self) -> None:
        self._locator.close()
