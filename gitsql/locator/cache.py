"""Memoizing locator with at-most-one in-flight resolution per key.

Features:
- Handles cached for the process lifetime (optional LRU bound by count)
- Concurrent callers for the same key share one resolution
- Failed resolutions are never cached
- Thread-safe for concurrent access
"""

from __future__ import annotations

import logging
import threading
from collections import OrderedDict
from concurrent.futures import Future
from typing import TYPE_CHECKING

from gitsql.locator.base import Locator

if TYPE_CHECKING:
    from gitsql.context import Context
    from gitsql.locator.handle import RepositoryHandle

logger = logging.getLogger(__name__)


class HandleCache:
    """Key to handle map with optional LRU eviction.

    Evicted handles are closed. Callers hold the locator's lock around every
    operation, the internal lock only protects direct use.
    """

    def __init__(self, max_size: int | None = None) -> None:
        if max_size is not None and max_size < 1:
            raise ValueError("max_size must be positive")
        self._handles: OrderedDict[str, RepositoryHandle] = OrderedDict()
        self._max_size = max_size
        self._lock = threading.RLock()
        self._stats = {"hits": 0, "misses": 0, "evictions": 0}

    def get(self, key: str) -> RepositoryHandle | None:
        """Get a handle, or None if missing or already closed."""
        with self._lock:
            handle = self._handles.get(key)
            if handle is None or handle.closed:
                self._handles.pop(key, None)
                self._stats["misses"] += 1
                return None

            # Move to end (most recently used)
            self._handles.move_to_end(key)
            self._stats["hits"] += 1
            return handle

    def set(self, key: str, handle: RepositoryHandle) -> None:
        """Store a handle, closing whatever the size bound evicts."""
        with self._lock:
            evicted: list[RepositoryHandle] = []
            if self._max_size is not None:
                while len(self._handles) >= self._max_size and key not in self._handles:
                    _, old = self._handles.popitem(last=False)
                    evicted.append(old)
                    self._stats["evictions"] += 1

            self._handles[key] = handle
            self._handles.move_to_end(key)

        for old in evicted:
            logger.debug(f"Evicting repository handle {old.key}")
            old.close()

    def pop(self, key: str) -> RepositoryHandle | None:
        """Remove a handle without closing it."""
        with self._lock:
            return self._handles.pop(key, None)

    def clear(self) -> int:
        """Close and drop all handles. Returns how many were dropped."""
        with self._lock:
            handles = list(self._handles.values())
            self._handles.clear()
        for handle in handles:
            handle.close()
        return len(handles)

    def __contains__(self, key: str) -> bool:
        """Check if key is cached."""
        with self._lock:
            return key in self._handles

    def __len__(self) -> int:
        with self._lock:
            return len(self._handles)

    @property
    def stats(self) -> dict[str, int | None]:
        """Get cache statistics."""
        with self._lock:
            return {
                **self._stats,
                "size": len(self._handles),
                "max_size": self._max_size,
            }


class CachingLocator(Locator):
    """Wraps a locator and memoizes its handles per cache key.

    While a key is being resolved, its promise sits in ``_inflight``; other
    callers for that key wait on it and receive the same handle or the same
    exception. Distinct keys never wait on each other.
    """

    def __init__(
        self,
        locator: Locator,
        max_handles: int | None = None,
        poll_interval: float = 0.05,
    ) -> None:
        self._locator = locator
        self._cache = HandleCache(max_handles)
        self._inflight: dict[str, Future[RepositoryHandle]] = {}
        self._lock = threading.Lock()
        self.poll_interval = poll_interval

    @property
    def stats(self) -> dict[str, int | None]:
        return {**self._cache.stats, "inflight": len(self._inflight)}

    def open(self, ctx: Context, key: str) -> RepositoryHandle:
        ctx.check()
        with self._lock:
            handle = self._cache.get(key)
            if handle is not None:
                return handle
            promise = self._inflight.get(key)
            leader = promise is None
            if leader:
                promise = Future()
                self._inflight[key] = promise

        if not leader:
            return self._wait(ctx, promise)

        try:
            handle = self._locator.open(ctx, key)
        except BaseException as e:
            with self._lock:
                del self._inflight[key]
            promise.set_exception(e)
            raise

        with self._lock:
            self._cache.set(key, handle)
            del self._inflight[key]
        promise.set_result(handle)
        return handle

    def _wait(self, ctx: Context, promise: Future[RepositoryHandle]) -> RepositoryHandle:
        # A waiter may give up on its own; the leader keeps resolving.
        while True:
            try:
                return promise.result(timeout=self.poll_interval)
            except TimeoutError:
                ctx.check()

    def evict(self, key: str) -> bool:
        """Drop and close one cached handle. Returns False if it was not cached."""
        with self._lock:
            handle = self._cache.pop(key)
        if handle is None:
            return False
        handle.close()
        return True

    def close(self) -> None:
        with self._lock:
            self._cache.clear()
        self._locator.close()
