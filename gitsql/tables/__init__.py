"""Git tables exposed to SQL."""

from gitsql.tables.blame import blame_table
from gitsql.tables.commits import commits_table
from gitsql.tables.files import files_table
from gitsql.tables.refs import refs_table
from gitsql.tables.stats import stats_table

TABLE_BUILDERS = {
    "files": files_table,
    "commits": commits_table,
    "refs": refs_table,
    "stats": stats_table,
    "blame": blame_table,
}

__all__ = [
    "TABLE_BUILDERS",
    "blame_table",
    "commits_table",
    "files_table",
    "refs_table",
    "stats_table",
]
