"""Commit activity summary built on the ``commits`` and ``stats`` tables."""

from __future__ import annotations

import re
from typing import TYPE_CHECKING

from pydantic import BaseModel, Field
from rich.console import Console
from rich.table import Table

if TYPE_CHECKING:
    import apsw

ISO_DATE = re.compile(r"^\d{4}-\d{2}-\d{2}")


class AuthorSummary(BaseModel):
    """Activity of one author within the summary window."""

    name: str
    email: str
    commits: int
    additions: int = 0
    deletions: int = 0


class CommitSummary(BaseModel):
    """Aggregate commit activity."""

    path_pattern: str | None = None
    start: str | None = None
    end: str | None = None
    commits: int = 0
    non_merge_commits: int = 0
    first_commit: str | None = None
    last_commit: str | None = None
    distinct_authors: int = 0
    distinct_files: int = 0
    additions: int = 0
    deletions: int = 0
    top_authors: list[AuthorSummary] = Field(default_factory=list)


def date_expression(value: str) -> tuple[str, str]:
    """SQL for a date filter: absolute ``YYYY-MM-DD`` or a modifier on now."""
    if ISO_DATE.match(value):
        return "date(?)", value
    return "date('now', ?)", value


class CommitSummarizer:
    """Runs the summary queries against a connection with gitsql registered.

    Intermediate results live in temp tables so the per-commit diff work is
    done once.
    """

    def __init__(
        self,
        connection: apsw.Connection,
        repository: str = "",
        path_pattern: str | None = None,
        start: str | None = None,
        end: str | None = None,
        top_authors: int = 10,
    ) -> None:
        self.connection = connection
        self.repository = repository
        self.path_pattern = path_pattern or None
        self.start = start or None
        self.end = end or None
        self.top_authors = top_authors

    def _date_filters(self) -> tuple[str, list[str]]:
        conditions: list[str] = []
        params: list[str] = []
        if self.start:
            expr, value = date_expression(self.start)
            conditions.append(f"date(author_when) >= {expr}")
            params.append(value)
        if self.end:
            expr, value = date_expression(self.end)
            conditions.append(f"date(author_when) <= {expr}")
            params.append(value)
        where = f"WHERE {' AND '.join(conditions)}" if conditions else ""
        return where, params

    def summarize(self) -> CommitSummary:
        cursor = self.connection.cursor()
        self._drop(cursor)
        try:
            self._collect(cursor)
            return self._aggregate(cursor)
        finally:
            self._drop(cursor)

    def _collect(self, cursor: apsw.Cursor) -> None:
        where, params = self._date_filters()
        cursor.execute(
            f"""
            CREATE TEMP TABLE summary_commits AS
            SELECT hash, author_name, author_email, author_when, parents
            FROM commits(?) {where}
            """,
            [self.repository, *params],
        )

        path_filter = "AND s.file_path LIKE ?" if self.path_pattern else ""
        stats_params = [self.repository]
        if self.path_pattern:
            stats_params.append(self.path_pattern)
        # merge commits are left out of line counts, their diff repeats the branch
        cursor.execute(
            f"""
            CREATE TEMP TABLE summary_stats AS
            SELECT c.hash AS hash, s.file_path AS file_path,
                   s.additions AS additions, s.deletions AS deletions
            FROM summary_commits c, stats(?, c.hash) s
            WHERE c.parents < 2 {path_filter}
            """,
            stats_params,
        )

        if self.path_pattern:
            cursor.execute(
                "DELETE FROM summary_commits WHERE hash NOT IN (SELECT hash FROM summary_stats)"
            )

    def _aggregate(self, cursor: apsw.Cursor) -> CommitSummary:
        commits, non_merge, first, last, authors = next(cursor.execute(
            """
            SELECT count(*), coalesce(sum(parents < 2), 0),
                   min(datetime(author_when)), max(datetime(author_when)),
                   count(DISTINCT author_email)
            FROM summary_commits
            """
        ))
        files, additions, deletions = next(cursor.execute(
            """
            SELECT count(DISTINCT file_path), coalesce(sum(additions), 0),
                   coalesce(sum(deletions), 0)
            FROM summary_stats
            """
        ))

        top = [
            AuthorSummary(
                name=name or "", email=email or "", commits=count,
                additions=added, deletions=deleted,
            )
            for name, email, count, added, deleted in cursor.execute(
                """
                SELECT max(c.author_name), c.author_email, count(*),
                       coalesce(sum(st.additions), 0), coalesce(sum(st.deletions), 0)
                FROM summary_commits c
                LEFT JOIN (
                    SELECT hash, sum(additions) AS additions, sum(deletions) AS deletions
                    FROM summary_stats GROUP BY hash
                ) st ON st.hash = c.hash
                GROUP BY c.author_email
                ORDER BY count(*) DESC, c.author_email
                LIMIT ?
                """,
                [self.top_authors],
            )
        ]

        return CommitSummary(
            path_pattern=self.path_pattern,
            start=self.start,
            end=self.end,
            commits=commits,
            non_merge_commits=non_merge,
            first_commit=first,
            last_commit=last,
            distinct_authors=authors,
            distinct_files=files,
            additions=additions,
            deletions=deletions,
            top_authors=top,
        )

    @staticmethod
    def _drop(cursor: apsw.Cursor) -> None:
        cursor.execute("DROP TABLE IF EXISTS temp.summary_commits")
        cursor.execute("DROP TABLE IF EXISTS temp.summary_stats")


def render_rich(summary: CommitSummary, console: Console) -> None:
    """Terminal view."""
    title = "Commit Summary"
    if summary.path_pattern:
        title += f" ({summary.path_pattern})"

    overview = Table(title=title, show_header=False)
    overview.add_column("Metric", style="cyan")
    overview.add_column("Value", justify="right", style="green")
    for label, value in _overview_rows(summary):
        overview.add_row(label, value)
    console.print(overview)

    if not summary.top_authors:
        return
    authors = Table(title="Top Authors")
    authors.add_column("Author", style="cyan")
    authors.add_column("Email", style="dim")
    authors.add_column("Commits", justify="right", style="green")
    authors.add_column("Additions", justify="right", style="green")
    authors.add_column("Deletions", justify="right", style="red")
    for author in summary.top_authors:
        authors.add_row(
            author.name, author.email, str(author.commits),
            f"+{author.additions}", f"-{author.deletions}",
        )
    console.print(authors)


def render_plain(summary: CommitSummary) -> str:
    """Fallback when stdout is not a terminal."""
    rows = _overview_rows(summary)
    width = max(len(label) for label, _ in rows)
    lines = [f"{label.ljust(width)}  {value}" for label, value in rows]
    if summary.top_authors:
        lines.append("")
        lines.append("Top authors:")
        for author in summary.top_authors:
            lines.append(
                f"  {author.name} <{author.email}>  {author.commits} commits  "
                f"+{author.additions} -{author.deletions}"
            )
    return "\n".join(lines) + "\n"


def _overview_rows(summary: CommitSummary) -> list[tuple[str, str]]:
    return [
        ("Commits", str(summary.commits)),
        ("Non-merge commits", str(summary.non_merge_commits)),
        ("First commit", summary.first_commit or "-"),
        ("Last commit", summary.last_commit or "-"),
        ("Authors", str(summary.distinct_authors)),
        ("Files", str(summary.distinct_files)),
        ("Additions", f"+{summary.additions}"),
        ("Deletions", f"-{summary.deletions}"),
    ]
