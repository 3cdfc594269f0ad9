"""``files(repository, rev)``: every file in the tree of a commit."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Iterator, Sequence

from git import Tree

from gitsql.locator.handle import resolve_commit
from gitsql.tables.base import RepositoryIterator, text_argument
from gitsql.vtab.protocol import Column, TableFunction, hidden

if TYPE_CHECKING:
    from gitsql.context import Context
    from gitsql.options import ExtensionOptions
    from gitsql.vtab.protocol import Constraint, OrderBy

logger = logging.getLogger(__name__)

EXECUTABLE_MODE = 0o100755

COLUMNS = (
    Column("path", "TEXT"),
    Column("executable", "INT"),
    Column("contents", "BLOB"),
    hidden("repository"),
    hidden("rev"),
)
REPOSITORY, REV = 3, 4


@dataclass(frozen=True)
class FileEntry:
    path: str
    binsha: bytes
    executable: bool


def display_path(path: str) -> str:
    """Replace undecodable bytes in a tree path with U+FFFD.

    GitPython keeps non-UTF-8 names as surrogate escapes, which SQLite text
    cannot hold.
    """
    return path.encode("utf-8", "surrogateescape").decode("utf-8", "replace")


def walk_blobs(tree: Tree) -> Iterator[FileEntry]:
    """Pre-order walk yielding blobs only; subtrees are entered where they
    appear, submodule links are skipped."""
    for item in tree:
        if item.type == "blob":
            yield FileEntry(display_path(item.path), item.binsha, item.mode == EXECUTABLE_MODE)
        elif item.type == "tree":
            yield from walk_blobs(item)


class FilesIterator(RepositoryIterator):
    """Enumerates tree metadata up front, reads blob contents per row."""

    table_name = "files"

    def _load(self) -> None:
        commit = resolve_commit(self.repo, self.rev)
        self.commit_id = commit.hexsha
        logger.debug(f"Walking tree of {commit.hexsha} in {self.handle.key}")
        self.files: list[FileEntry] = list(walk_blobs(commit.tree))
        self._index = -1
        self._contents: bytes | None = None

    def _advance(self) -> bool:
        self._index += 1
        self._contents = None
        return self._index < len(self.files)

    def _value(self, index: int) -> Any:
        entry = self.files[self._index]
        if index == 0:
            return entry.path
        if index == 1:
            return 1 if entry.executable else 0
        if index == 2:
            if self._contents is None:
                self._contents = self.repo.odb.stream(entry.binsha).read()
            return self._contents
        if index == REPOSITORY:
            return self.repository_key
        return self.commit_id


def files_table(options: ExtensionOptions) -> TableFunction:
    def factory(constraints: Sequence[Constraint], order_by: Sequence[OrderBy],
                ctx: Context) -> FilesIterator:
        return FilesIterator(
            COLUMNS,
            options,
            ctx,
            repository=text_argument(constraints, REPOSITORY),
            rev=text_argument(constraints, REV),
        )

    return TableFunction("files", COLUMNS, factory, "Files in the tree of a commit")
