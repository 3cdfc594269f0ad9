"""``stats(repository, rev)``: per-file line changes of one commit."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Sequence

from gitsql.locator.handle import resolve_commit
from gitsql.tables.base import RepositoryIterator, text_argument
from gitsql.vtab.protocol import Column, TableFunction, hidden

if TYPE_CHECKING:
    from gitsql.context import Context
    from gitsql.options import ExtensionOptions
    from gitsql.vtab.protocol import Constraint, OrderBy

COLUMNS = (
    Column("file_path", "TEXT"),
    Column("additions", "INT"),
    Column("deletions", "INT"),
    hidden("repository"),
    hidden("rev"),
)
REPOSITORY, REV = 3, 4


class StatsIterator(RepositoryIterator):
    """Diff of ``rev`` against its first parent (or the empty tree for a root
    commit). Binary files count as zero lines."""

    table_name = "stats"

    def _load(self) -> None:
        commit = resolve_commit(self.repo, self.rev)
        self.commit_id = commit.hexsha
        files = commit.stats.files
        self.rows = [
            (path, int(counts["insertions"]), int(counts["deletions"]))
            for path, counts in sorted(files.items())
        ]
        self._index = -1

    def _advance(self) -> bool:
        self._index += 1
        return self._index < len(self.rows)

    def _value(self, index: int) -> Any:
        if index < 3:
            return self.rows[self._index][index]
        if index == REPOSITORY:
            return self.repository_key
        return self.commit_id


def stats_table(options: ExtensionOptions) -> TableFunction:
    def factory(constraints: Sequence[Constraint], order_by: Sequence[OrderBy],
                ctx: Context) -> StatsIterator:
        return StatsIterator(
            COLUMNS,
            options,
            ctx,
            repository=text_argument(constraints, REPOSITORY),
            rev=text_argument(constraints, REV),
        )

    return TableFunction("stats", COLUMNS, factory, "Line changes per file of a commit")
