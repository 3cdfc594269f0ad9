"""``commits(repository, rev)``: the commit log reachable from a revision."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Iterator, Sequence

from gitsql.locator.handle import resolve_commit
from gitsql.tables.base import RepositoryIterator, text_argument
from gitsql.vtab.protocol import Column, TableFunction, hidden

if TYPE_CHECKING:
    from git import Commit

    from gitsql.context import Context
    from gitsql.options import ExtensionOptions
    from gitsql.vtab.protocol import Constraint, OrderBy

COLUMNS = (
    Column("hash", "TEXT"),
    Column("message", "TEXT"),
    Column("author_name", "TEXT"),
    Column("author_email", "TEXT"),
    Column("author_when", "DATETIME"),
    Column("committer_name", "TEXT"),
    Column("committer_email", "TEXT"),
    Column("committer_when", "DATETIME"),
    Column("parents", "INT"),
    hidden("repository"),
    hidden("rev"),
)
REPOSITORY, REV = 9, 10


class CommitsIterator(RepositoryIterator):
    """Streams ``git rev-list`` output; nothing is read ahead of the cursor."""

    table_name = "commits"

    def _load(self) -> None:
        start = resolve_commit(self.repo, self.rev)
        self.commit_id = start.hexsha
        self._walker: Iterator[Commit] | None = self.repo.iter_commits(self.commit_id)
        self._commit: Commit | None = None

    def _advance(self) -> bool:
        self._commit = next(self._walker, None)
        return self._commit is not None

    def _value(self, index: int) -> Any:
        commit = self._commit
        if index == 0:
            return commit.hexsha
        if index == 1:
            return commit.message
        if index == 2:
            return commit.author.name
        if index == 3:
            return commit.author.email
        if index == 4:
            return commit.authored_datetime.isoformat()
        if index == 5:
            return commit.committer.name
        if index == 6:
            return commit.committer.email
        if index == 7:
            return commit.committed_datetime.isoformat()
        if index == 8:
            return len(commit.parents)
        if index == REPOSITORY:
            return self.repository_key
        return self.commit_id

    def _release(self) -> None:
        walker = getattr(self, "_walker", None)
        if walker is not None:
            walker.close()
            self._walker = None
        super()._release()


def commits_table(options: ExtensionOptions) -> TableFunction:
    def factory(constraints: Sequence[Constraint], order_by: Sequence[OrderBy],
                ctx: Context) -> CommitsIterator:
        return CommitsIterator(
            COLUMNS,
            options,
            ctx,
            repository=text_argument(constraints, REPOSITORY),
            rev=text_argument(constraints, REV),
        )

    return TableFunction("commits", COLUMNS, factory, "Commits reachable from a revision")
