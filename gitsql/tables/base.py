"""Shared plumbing for tables backed by a git repository."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Sequence

from gitsql.vtab.protocol import Column, Constraint, EntityIterator, constraint_value

if TYPE_CHECKING:
    from git import Repo

    from gitsql.context import Context
    from gitsql.locator.handle import RepositoryHandle
    from gitsql.options import ExtensionOptions

logger = logging.getLogger(__name__)


def text_argument(constraints: Sequence[Constraint], column: int) -> str:
    """A hidden argument as text; missing and NULL both mean the default."""
    value = constraint_value(constraints, column)
    if value is None:
        return ""
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return str(value)


class RepositoryIterator(EntityIterator):
    """Iterator that resolves a repository and owns a native repo for its scan.

    The handle comes from the locator chain and is shared; ``self.repo`` is
    opened for this iterator alone and closed when it is released.
    """

    table_name = "repository"

    def __init__(
        self,
        columns: Sequence[Column],
        options: ExtensionOptions,
        ctx: Context,
        repository: str = "",
        rev: str = "",
    ) -> None:
        super().__init__(columns, ctx)
        self.options = options
        self.repository = repository
        self.rev = rev
        self.handle: RepositoryHandle | None = None
        self.repo: Repo | None = None
        # set by _load for tables scoped to one commit
        self.commit_id = ""

    def _open(self) -> None:
        logger.debug(
            f"Creating {self.table_name} iterator for "
            f"{self.repository or self.options.default_repo()!r} at {self.rev or 'HEAD'!r}"
        )
        self.handle = self.options.resolve(self.ctx, self.repository)
        self.repo = self.handle.open_repo()
        self._load()

    @property
    def repository_key(self) -> str:
        """The cache key the repository argument resolved to."""
        return self.handle.key if self.handle is not None else self.repository

    def _load(self) -> None:
        """Resolve revisions and prepare the scan. Runs before the first row."""

    def _release(self) -> None:
        if self.repo is not None:
            self.repo.close()
            self.repo = None
