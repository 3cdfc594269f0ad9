"""Expose ``TableFunction`` objects to SQLite as eponymous virtual tables."""

from __future__ import annotations

import json
import logging
from typing import Any, Callable, Sequence

import apsw

from gitsql.context import Context
from gitsql.vtab.protocol import (
    Constraint,
    ConstraintOp,
    EntityIterator,
    OrderBy,
    TableFunction,
)

logger = logging.getLogger(__name__)

SQLITE_OPS: dict[int, ConstraintOp] = {
    apsw.SQLITE_INDEX_CONSTRAINT_EQ: ConstraintOp.EQ,
    apsw.SQLITE_INDEX_CONSTRAINT_NE: ConstraintOp.NE,
    apsw.SQLITE_INDEX_CONSTRAINT_GT: ConstraintOp.GT,
    apsw.SQLITE_INDEX_CONSTRAINT_GE: ConstraintOp.GE,
    apsw.SQLITE_INDEX_CONSTRAINT_LT: ConstraintOp.LT,
    apsw.SQLITE_INDEX_CONSTRAINT_LE: ConstraintOp.LE,
    apsw.SQLITE_INDEX_CONSTRAINT_LIKE: ConstraintOp.LIKE,
    apsw.SQLITE_INDEX_CONSTRAINT_GLOB: ConstraintOp.GLOB,
    apsw.SQLITE_INDEX_CONSTRAINT_MATCH: ConstraintOp.MATCH,
    apsw.SQLITE_INDEX_CONSTRAINT_IS: ConstraintOp.IS,
    apsw.SQLITE_INDEX_CONSTRAINT_ISNOT: ConstraintOp.ISNOT,
    apsw.SQLITE_INDEX_CONSTRAINT_ISNULL: ConstraintOp.ISNULL,
    apsw.SQLITE_INDEX_CONSTRAINT_ISNOTNULL: ConstraintOp.ISNOTNULL,
}

# Planner cost of a full scan with no arguments; each pushed-down argument
# divides it by ten so plans that bind table-function arguments win.
BASE_COST = 1_000_000.0


class VirtualTableModule:
    """apsw module (``Create``/``Connect``) for one table function."""

    def __init__(self, table: TableFunction, context_factory: Callable[[], Context] = Context) -> None:
        self.table = table
        self.context_factory = context_factory

    def Connect(self, connection: apsw.Connection, modulename: str, databasename: str,
                tablename: str, *args: str) -> tuple[str, VirtualTable]:
        return self.table.schema_sql(), VirtualTable(self.table, self.context_factory)

    Create = Connect


class VirtualTable:
    """Answers the planner and hands out cursors."""

    def __init__(self, table: TableFunction, context_factory: Callable[[], Context]) -> None:
        self.table = table
        self.context_factory = context_factory

    def BestIndex(self, constraints: Sequence[tuple[int, int]],
                  orderbys: Sequence[tuple[int, bool]]) -> tuple[Any, ...]:
        used: list[tuple[int, bool] | None] = []
        arg_columns: list[int] = []
        for column, op in constraints:
            mapped = SQLITE_OPS.get(op)
            if column in arg_columns or not self.table.accepts(column, mapped):
                used.append(None)
                continue
            # omit=True: the table guarantees the filter, SQLite need not recheck
            used.append((len(arg_columns), True))
            arg_columns.append(column)

        order = [OrderBy(column, bool(desc)) for column, desc in orderbys]
        order_consumed = bool(order) and self.table.supports_order(order)
        plan = {
            "args": arg_columns,
            "order": [[o.column, o.descending] for o in order] if order_consumed else [],
        }
        cost = BASE_COST / (10 ** len(arg_columns))
        return used, 0, json.dumps(plan), order_consumed, cost

    def Open(self) -> Cursor:
        return Cursor(self.table, self.context_factory)

    def Disconnect(self) -> None:
        pass

    Destroy = Disconnect


class Cursor:
    """Drives one ``EntityIterator`` on behalf of SQLite."""

    def __init__(self, table: TableFunction, context_factory: Callable[[], Context]) -> None:
        self.table = table
        self.context_factory = context_factory
        self._iterator: EntityIterator | None = None
        self._eof = True
        self._rowid = 0

    def Filter(self, indexnum: int, indexname: str, constraintargs: Sequence[Any]) -> None:
        # SQLite may re-filter a cursor (e.g. inner side of a join)
        self._close_iterator()

        plan = json.loads(indexname) if indexname else {"args": [], "order": []}
        constraints = [
            Constraint(column, ConstraintOp.EQ, value)
            for column, value in zip(plan["args"], constraintargs)
        ]
        order = [OrderBy(column, descending) for column, descending in plan["order"]]

        self._iterator = self.table.open(constraints, order, self.context_factory())
        self._rowid = 0
        self._eof = not self._iterator.next()

    def Eof(self) -> bool:
        return self._eof

    def Next(self) -> None:
        self._rowid += 1
        self._eof = not self._iterator.next()

    def Rowid(self) -> int:
        return self._rowid

    def Column(self, col: int) -> Any:
        if col == -1:
            return self._rowid
        return self._iterator.column(col)

    def Close(self) -> None:
        self._close_iterator()

    def _close_iterator(self) -> None:
        if self._iterator is not None:
            self._iterator.close()
            self._iterator = None
        self._eof = True


def register_table(connection: apsw.Connection, table: TableFunction,
                   context_factory: Callable[[], Context] = Context) -> VirtualTableModule:
    """Register ``table`` so it can be used as ``SELECT * FROM name(args...)``."""
    module = VirtualTableModule(table, context_factory)
    connection.createmodule(table.name, module, eponymous=True)
    logger.debug(f"Registered table function {table.name}")
    return module
