"""Opened repository handles."""

from __future__ import annotations

import logging
import threading
from pathlib import Path

from git import Commit, Repo
from git.exc import BadName, BadObject, GitCommandError

from gitsql.errors import InvalidRevisionError, UseAfterCloseError

logger = logging.getLogger(__name__)


def resolve_commit(repo: Repo, rev: str | None) -> Commit:
    """Resolve ``rev`` (HEAD when empty) to a commit, peeling annotated tags."""
    spec = rev or "HEAD"
    try:
        obj = repo.rev_parse(spec)
    except (BadName, BadObject, GitCommandError, ValueError, IndexError) as e:
        raise InvalidRevisionError(f"invalid revision {spec!r}: {e}") from e

    while obj.type == "tag":
        obj = obj.object
    if obj.type != "commit":
        raise InvalidRevisionError(
            f"invalid revision {spec!r}: resolves to a {obj.type}, not a commit"
        )
    return obj


class RepositoryHandle:
    """An open repository owned by whoever created it (usually a cache entry).

    The wrapped ``git.Repo`` keeps helper processes alive, so it is released
    exactly once by :meth:`close`. Iterators that walk objects call
    :meth:`open_repo` to get their own native repository.
    """

    def __init__(self, key: str, path: Path, repo: Repo) -> None:
        self.key = key
        self.path = path
        self._repo = repo
        self._lock = threading.RLock()
        self._closed = False

    def __repr__(self) -> str:
        state = "closed" if self._closed else "open"
        return f"<RepositoryHandle {self.key!r} at {str(self.path)!r} ({state})>"

    @classmethod
    def open(cls, key: str, path: Path) -> "RepositoryHandle":
        return cls(key, path, Repo(str(path)))

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def repo(self) -> Repo:
        if self._closed:
            raise UseAfterCloseError(f"repository handle for {self.key!r} is closed")
        return self._repo

    def open_repo(self) -> Repo:
        """Open an independent native repository for one iterator."""
        if self._closed:
            raise UseAfterCloseError(f"repository handle for {self.key!r} is closed")
        return Repo(str(self.path))

    def close(self) -> None:
        with self._lock:
            if self._closed:
                return
            self._closed = True
            self._repo.close()
        logger.debug(f"Closed repository handle {self.key}")
