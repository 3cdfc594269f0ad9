"""Locator for repositories already on the local filesystem."""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

from git import Repo
from git.exc import InvalidGitRepositoryError, NoSuchPathError

from gitsql.errors import NotFoundError
from gitsql.locator.base import Locator
from gitsql.locator.handle import RepositoryHandle

if TYPE_CHECKING:
    from gitsql.context import Context


class FilesystemLocator(Locator):
    """Opens worktree or bare repositories by path. Never touches the network."""

    def open(self, ctx: Context, key: str) -> RepositoryHandle:
        ctx.check()
        path = Path(key)
        if not path.is_dir():
            raise NotFoundError(f"{key!r} is not a directory")

        try:
            repo = Repo(str(path))
        except (InvalidGitRepositoryError, NoSuchPathError) as e:
            raise NotFoundError(f"{key!r} does not contain a git repository") from e
        return RepositoryHandle(key, path, repo)
