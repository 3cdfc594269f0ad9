"""Base locator interface."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from gitsql.context import Context
    from gitsql.locator.handle import RepositoryHandle


class Locator(ABC):
    """Maps a normalized repository key to an open repository handle.

    Decorators (caching, logging) and composites (multi) implement the same
    interface and hold the locator they wrap.
    """

    @abstractmethod
    def open(self, ctx: Context, key: str) -> RepositoryHandle:
        """Resolve ``key`` to a handle, honoring cancellation of ``ctx``."""
        ...

    def close(self) -> None:
        """Release anything the locator owns. Default: nothing."""
