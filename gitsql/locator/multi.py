"""Locator that tries several backends in priority order."""

from __future__ import annotations

from typing import TYPE_CHECKING, Sequence

from gitsql.errors import Cancelled, LocatorFailedError
from gitsql.locator.base import Locator
from gitsql.locator.clone import CloneLocator
from gitsql.locator.filesystem import FilesystemLocator
from gitsql.models.settings import ResolutionPolicy

if TYPE_CHECKING:
    from gitsql.context import Context
    from gitsql.locator.handle import RepositoryHandle


class MultiLocator(Locator):
    """First backend to succeed wins; if none does, every failure is reported."""

    BACKEND_CLASSES: dict[str, type[Locator]] = {
        "filesystem": FilesystemLocator,
        "clone": CloneLocator,
    }

    def __init__(self, backends: Sequence[tuple[str, Locator]]) -> None:
        if not backends:
            raise ValueError("MultiLocator needs at least one backend")
        self.backends = list(backends)

    @classmethod
    def from_policy(cls, policy: ResolutionPolicy | None = None) -> "MultiLocator":
        """Build the backend chain named by ``policy.backends``."""
        policy = policy or ResolutionPolicy()
        backends: list[tuple[str, Locator]] = []
        for name in policy.backends:
            backend_class = cls.BACKEND_CLASSES.get(name)
            if backend_class is None:
                raise ValueError(f"Unknown locator backend: {name}")
            if backend_class is CloneLocator:
                backends.append((name, CloneLocator(policy)))
            else:
                backends.append((name, backend_class()))
        return cls(backends)

    def open(self, ctx: Context, key: str) -> RepositoryHandle:
        failures: dict[str, BaseException] = {}
        for name, backend in self.backends:
            try:
                return backend.open(ctx, key)
            except Cancelled:
                raise
            except Exception as e:
                failures[name] = e
        raise LocatorFailedError(key, failures)

    def close(self) -> None:
        for _, backend in self.backends:
            backend.close()
