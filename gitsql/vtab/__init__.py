"""Virtual table protocol and its SQLite adapter."""

from gitsql.vtab.module import VirtualTableModule, register_table
from gitsql.vtab.protocol import (
    Column,
    Constraint,
    ConstraintOp,
    EntityIterator,
    IteratorState,
    OrderBy,
    OrderSupport,
    TableFunction,
    constraint_value,
    hidden,
)

__all__ = [
    "Column",
    "Constraint",
    "ConstraintOp",
    "EntityIterator",
    "IteratorState",
    "OrderBy",
    "OrderSupport",
    "TableFunction",
    "VirtualTableModule",
    "constraint_value",
    "hidden",
    "register_table",
]
