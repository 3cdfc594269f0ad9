"""Register git tables and helper functions with a SQLite connection."""

from __future__ import annotations

import logging
from typing import Iterable

import apsw

from gitsql.functions import SCALAR_FUNCTIONS
from gitsql.locator import CachingLocator, Locator, LoggingLocator, MultiLocator
from gitsql.models.settings import Settings
from gitsql.options import ExtensionOptions
from gitsql.tables import TABLE_BUILDERS
from gitsql.vtab.module import register_table

logger = logging.getLogger(__name__)


def build_locator(settings: Settings | None = None) -> Locator:
    """Standard chain: cache over logging over filesystem-then-clone."""
    settings = settings or Settings()
    return CachingLocator(
        LoggingLocator(MultiLocator.from_policy(settings.policy)),
        max_handles=settings.max_cached_handles,
    )


def default_options(settings: Settings | None = None) -> ExtensionOptions:
    settings = settings or Settings()
    return ExtensionOptions(locator=build_locator(settings), settings=settings)


def register(
    connection: apsw.Connection,
    options: ExtensionOptions,
    tables: Iterable[str] | None = None,
) -> list[str]:
    """Register table functions (all by default) and scalar functions.

    Returns the names of the registered tables.
    """
    names = list(tables) if tables is not None else list(TABLE_BUILDERS)
    for name in names:
        builder = TABLE_BUILDERS.get(name)
        if builder is None:
            raise ValueError(f"Unknown table: {name}")
        register_table(connection, builder(options), options.new_context)

    for name, function in SCALAR_FUNCTIONS.items():
        connection.createscalarfunction(name, function, -1, deterministic=True)

    logger.debug(f"Registered tables {', '.join(names)} and {len(SCALAR_FUNCTIONS)} functions")
    return names


def connect(options: ExtensionOptions | None = None, path: str = ":memory:") -> apsw.Connection:
    """Open a SQLite connection with everything registered."""
    connection = apsw.Connection(path)
    register(connection, options or default_options())
    return connection
