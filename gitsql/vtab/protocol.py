"""Entity iterator protocol shared by every virtual table.

A table is a fixed column schema plus a factory that turns pushdown
constraints into an iterator. Iterators are lazy, forward-only and
single-use: a new ``open`` is needed to iterate again.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Iterator, Sequence

from gitsql.context import Context
from gitsql.errors import UnsupportedConstraintError, UseAfterCloseError


class ConstraintOp(str, Enum):
    """Constraint operators a table may be offered."""

    EQ = "eq"
    NE = "ne"
    GT = "gt"
    GE = "ge"
    LT = "lt"
    LE = "le"
    LIKE = "like"
    GLOB = "glob"
    MATCH = "match"
    IS = "is"
    ISNOT = "isnot"
    ISNULL = "isnull"
    ISNOTNULL = "isnotnull"


class OrderSupport(str, Enum):
    """Which sort directions a column can deliver natively."""

    NONE = "none"
    ASC = "asc"
    DESC = "desc"
    BOTH = "both"

    def allows(self, descending: bool) -> bool:
        if self is OrderSupport.BOTH:
            return True
        if self is OrderSupport.NONE:
            return False
        return (self is OrderSupport.DESC) == descending


@dataclass(frozen=True)
class Column:
    """One column of a table schema.

    Hidden columns do not appear in ``SELECT *`` but are the table
    function's arguments; ``filters`` lists the operators pushed down.
    """

    name: str
    type: str
    not_null: bool = False
    hidden: bool = False
    filters: tuple[ConstraintOp, ...] = ()
    order_by: OrderSupport = OrderSupport.NONE

    def declaration(self) -> str:
        parts = [self.name, self.type]
        if self.hidden:
            parts.append("HIDDEN")
        return " ".join(parts)


def hidden(name: str, type: str = "TEXT") -> Column:
    """An equality-only argument column."""
    return Column(name, type, not_null=True, hidden=True, filters=(ConstraintOp.EQ,))


@dataclass(frozen=True)
class Constraint:
    """A pushed-down filter on one column."""

    column: int
    op: ConstraintOp
    value: Any


@dataclass(frozen=True)
class OrderBy:
    column: int
    descending: bool = False


def constraint_value(constraints: Sequence[Constraint], column: int, default: Any = None) -> Any:
    """Value of the first equality constraint on ``column``."""
    for constraint in constraints:
        if constraint.column == column and constraint.op is ConstraintOp.EQ:
            return constraint.value
    return default


class IteratorState(str, Enum):
    CREATED = "created"
    READY = "ready"
    POSITIONED = "positioned"
    EXHAUSTED = "exhausted"
    CLOSED = "closed"


class EntityIterator(ABC):
    """Base class for row iterators.

    Subclasses implement ``_open`` (acquire resources, may raise),
    ``_advance`` (move to the next row, False at the end), ``_value`` (read a
    column of the current row) and ``_release`` (free resources). The base
    class enforces the state machine and guarantees ``_release`` runs exactly
    once: on exhaustion, on explicit close, or when ``_open`` fails.
    """

    def __init__(self, columns: Sequence[Column], ctx: Context | None = None) -> None:
        self.columns = tuple(columns)
        self.ctx = ctx or Context()
        self.state = IteratorState.CREATED
        self._released = False

    def __enter__(self) -> EntityIterator:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def __iter__(self) -> Iterator[tuple[Any, ...]]:
        while self.next():
            yield self.row()

    def open(self) -> EntityIterator:
        if self.state is not IteratorState.CREATED:
            raise UseAfterCloseError(f"iterator already opened ({self.state.value})")
        try:
            self.ctx.check()
            self._open()
        except BaseException:
            self.close()
            raise
        self.state = IteratorState.READY
        return self

    def next(self) -> bool:
        """Advance one row. Returns False, and releases resources, at the end."""
        if self.state is IteratorState.CLOSED:
            raise UseAfterCloseError("iterator is closed")
        if self.state is IteratorState.CREATED:
            raise UseAfterCloseError("iterator was never opened")
        if self.state is IteratorState.EXHAUSTED:
            return False

        try:
            self.ctx.check()
            advanced = self._advance()
        except BaseException:
            self.close()
            raise

        if advanced:
            self.state = IteratorState.POSITIONED
            return True
        self.state = IteratorState.EXHAUSTED
        self._release_once()
        return False

    def column(self, index: int) -> Any:
        """Read a column of the current row; repeatable and side-effect free."""
        if self.state in (IteratorState.CLOSED, IteratorState.EXHAUSTED):
            raise UseAfterCloseError(f"iterator is {self.state.value}")
        if self.state is not IteratorState.POSITIONED:
            raise LookupError("no current row, call next() first")
        if not 0 <= index < len(self.columns):
            raise IndexError(f"column index {index} out of range")
        return self._value(index)

    def row(self) -> tuple[Any, ...]:
        return tuple(self.column(i) for i in range(len(self.columns)))

    def close(self) -> None:
        """Release resources. Safe to call any number of times."""
        if self.state is IteratorState.CLOSED:
            return
        self.state = IteratorState.CLOSED
        self._release_once()

    def _release_once(self) -> None:
        if self._released:
            return
        self._released = True
        self._release()

    @abstractmethod
    def _open(self) -> None: ...

    @abstractmethod
    def _advance(self) -> bool: ...

    @abstractmethod
    def _value(self, index: int) -> Any: ...

    def _release(self) -> None:
        """Free resources acquired in ``_open``. Default: nothing."""


IteratorFactory = Callable[[Sequence[Constraint], Sequence[OrderBy], Context], EntityIterator]


@dataclass
class TableFunction:
    """A named table: schema plus iterator factory."""

    name: str
    columns: tuple[Column, ...]
    factory: IteratorFactory
    description: str = ""
    _index: dict[str, int] = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self.columns = tuple(self.columns)
        self._index = {c.name: i for i, c in enumerate(self.columns)}

    def column_index(self, name: str) -> int:
        return self._index[name]

    @property
    def visible_columns(self) -> list[Column]:
        return [c for c in self.columns if not c.hidden]

    def accepts(self, column: int, op: ConstraintOp | None) -> bool:
        """True if a constraint can be pushed down into the factory."""
        if op is None or not 0 <= column < len(self.columns):
            return False
        return op in self.columns[column].filters

    def supports_order(self, order_by: Sequence[OrderBy]) -> bool:
        if not order_by:
            return True
        for order in order_by:
            if not 0 <= order.column < len(self.columns):
                return False
            if not self.columns[order.column].order_by.allows(order.descending):
                return False
        return True

    def schema_sql(self) -> str:
        columns = ", ".join(c.declaration() for c in self.columns)
        return f"CREATE TABLE {self.name}({columns})"

    def open(
        self,
        constraints: Sequence[Constraint] = (),
        order_by: Sequence[OrderBy] = (),
        ctx: Context | None = None,
    ) -> EntityIterator:
        """Validate pushdowns, build an iterator and open it."""
        for constraint in constraints:
            if not self.accepts(constraint.column, constraint.op):
                name = (
                    self.columns[constraint.column].name
                    if 0 <= constraint.column < len(self.columns)
                    else f"#{constraint.column}"
                )
                raise UnsupportedConstraintError(
                    f"{self.name}: cannot push down {constraint.op.value} on column {name}"
                )
        if not self.supports_order(order_by):
            raise UnsupportedConstraintError(f"{self.name}: cannot produce the requested order")

        iterator = self.factory(constraints, order_by, ctx or Context())
        return iterator.open()
