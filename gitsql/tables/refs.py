"""``refs(repository)``: branches, remote-tracking branches and tags."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Sequence

from git import Head, RemoteReference, TagReference

from gitsql.tables.base import RepositoryIterator, text_argument
from gitsql.vtab.protocol import Column, TableFunction, hidden

if TYPE_CHECKING:
    from git import Reference

    from gitsql.context import Context
    from gitsql.options import ExtensionOptions
    from gitsql.vtab.protocol import Constraint, OrderBy

COLUMNS = (
    Column("name", "TEXT"),
    Column("type", "TEXT"),
    Column("remote", "TEXT"),
    Column("full_name", "TEXT"),
    Column("hash", "TEXT"),
    Column("target", "TEXT"),
    hidden("repository"),
)
REPOSITORY = 6


def ref_type(ref: Reference) -> str:
    if isinstance(ref, Head):
        return "branch"
    if isinstance(ref, RemoteReference):
        return "remote"
    if isinstance(ref, TagReference):
        return "tag"
    return "other"


class RefsIterator(RepositoryIterator):
    """Refs ordered by full name. The listing is read once at open."""

    table_name = "refs"

    def _load(self) -> None:
        self.refs = sorted(self.repo.references, key=lambda r: r.path)
        self._index = -1

    def _advance(self) -> bool:
        self._index += 1
        return self._index < len(self.refs)

    def _value(self, index: int) -> Any:
        ref = self.refs[self._index]
        if index == 0:
            return ref.name
        if index == 1:
            return ref_type(ref)
        if index == 2:
            return ref.remote_name if isinstance(ref, RemoteReference) else None
        if index == 3:
            return ref.path
        if index == 4:
            try:
                return ref.object.hexsha
            except ValueError:
                # dangling ref
                return None
        if index == 5:
            try:
                return ref.reference.path
            except TypeError:
                # not symbolic
                return None
        return self.repository_key


def refs_table(options: ExtensionOptions) -> TableFunction:
    def factory(constraints: Sequence[Constraint], order_by: Sequence[OrderBy],
                ctx: Context) -> RefsIterator:
        return RefsIterator(
            COLUMNS, options, ctx, repository=text_argument(constraints, REPOSITORY)
        )

    return TableFunction("refs", COLUMNS, factory, "References of a repository")
