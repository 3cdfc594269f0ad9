"""Explicit configuration handed to every table at registration time."""

from __future__ import annotations

import os
from dataclasses import dataclass, field

from gitsql.context import Context
from gitsql.locator.base import Locator
from gitsql.locator.handle import RepositoryHandle
from gitsql.locator.reference import normalize
from gitsql.models.settings import Settings


@dataclass(frozen=True)
class ExtensionOptions:
    """Locator, settings and the root cancellation context for one registration."""

    locator: Locator
    settings: Settings = field(default_factory=Settings)
    root: Context = field(default_factory=Context)

    def new_context(self) -> Context:
        """Context for one table open; cancelled with ``root``."""
        return self.root.child(self.settings.query_timeout)

    def default_repo(self) -> str:
        return self.settings.default_repo or os.getcwd()

    def value(self, key: str, default: str = "") -> str:
        return self.settings.value(key, default)

    def resolve(self, ctx: Context, reference: str | None) -> RepositoryHandle:
        """Resolve a table argument (or the default repository) to a handle."""
        normalized = normalize(reference or self.default_repo(), self.settings.policy)
        return self.locator.open(ctx, normalized.key)
