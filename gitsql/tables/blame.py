"""``blame(repository, rev, file_path)``: last commit to touch each line."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Iterator, Sequence

from git.exc import GitCommandError

from gitsql.errors import NotFoundError, UnsupportedConstraintError
from gitsql.locator.handle import resolve_commit
from gitsql.tables.base import RepositoryIterator, text_argument
from gitsql.vtab.protocol import Column, TableFunction, hidden

if TYPE_CHECKING:
    from gitsql.context import Context
    from gitsql.options import ExtensionOptions
    from gitsql.vtab.protocol import Constraint, OrderBy

COLUMNS = (
    Column("line_no", "INT"),
    Column("commit_hash", "TEXT"),
    Column("line", "TEXT"),
    hidden("repository"),
    hidden("rev"),
    hidden("file_path"),
)
REPOSITORY, REV, FILE_PATH = 3, 4, 5


class BlameIterator(RepositoryIterator):
    """git blame has to read the whole file, so its output is held in memory;
    rows are expanded from it one line at a time."""

    table_name = "blame"

    def __init__(self, *args: Any, file_path: str = "", **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self.file_path = file_path

    def _load(self) -> None:
        if not self.file_path:
            raise UnsupportedConstraintError("blame requires a file_path argument")
        commit = resolve_commit(self.repo, self.rev)
        self.commit_id = commit.hexsha
        try:
            entries = self.repo.blame(commit.hexsha, self.file_path) or []
        except GitCommandError as e:
            raise NotFoundError(
                f"cannot blame {self.file_path!r} at {commit.hexsha}: {e.stderr.strip()}"
            ) from e
        self._lines = self._expand(entries)
        self._current: tuple[int, str, str] | None = None

    @staticmethod
    def _expand(entries: list) -> Iterator[tuple[int, str, str]]:
        line_no = 0
        for commit, lines in entries:
            for line in lines:
                line_no += 1
                if isinstance(line, bytes):
                    line = line.decode("utf-8", errors="replace")
                yield line_no, commit.hexsha, line

    def _advance(self) -> bool:
        self._current = next(self._lines, None)
        return self._current is not None

    def _value(self, index: int) -> Any:
        if index < 3:
            return self._current[index]
        if index == REPOSITORY:
            return self.repository_key
        if index == REV:
            return self.commit_id
        return self.file_path


def blame_table(options: ExtensionOptions) -> TableFunction:
    def factory(constraints: Sequence[Constraint], order_by: Sequence[OrderBy],
                ctx: Context) -> BlameIterator:
        return BlameIterator(
            COLUMNS,
            options,
            ctx,
            repository=text_argument(constraints, REPOSITORY),
            rev=text_argument(constraints, REV),
            file_path=text_argument(constraints, FILE_PATH),
        )

    return TableFunction("blame", COLUMNS, factory, "Line-by-line blame of one file")
