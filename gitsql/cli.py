"""CLI commands for gitsql."""

from __future__ import annotations

import csv
import io
import json
import logging
from pathlib import Path
from typing import Any

import apsw
import click
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from gitsql.errors import GitSQLError
from gitsql.extension import connect, default_options
from gitsql.models.settings import Settings
from gitsql.options import ExtensionOptions
from gitsql.summarize import CommitSummarizer, render_plain, render_rich

console = Console()

LOG_FORMAT = "%(asctime)s - %(levelname)s - %(name)s - %(message)s"


def load_settings(
    config_path: str | None,
    repo: str | None,
    clone_dir: str | None,
    verbose: int,
) -> Settings:
    """Environment, then config file, then command-line flags."""
    settings = Settings.from_env()
    if config_path:
        settings = Settings.from_yaml(Path(config_path), base=settings)

    overrides: dict[str, Any] = {}
    if repo:
        overrides["default_repo"] = repo
    if clone_dir:
        overrides["policy"] = {"clone_dir": clone_dir}
    if verbose:
        overrides["log_level"] = "INFO" if verbose == 1 else "DEBUG"
    return settings.merged(overrides)


@click.group()
@click.option("--repo", "-r", default=None, help="Default repository: path, URL or owner/repo")
@click.option("--clone-dir", default=None, help="Directory for remote clones")
@click.option(
    "--config", "config_path", default=None,
    type=click.Path(exists=True, dir_okay=False), help="YAML settings file",
)
@click.option("--verbose", "-v", count=True, help="Log more (repeat for debug)")
@click.pass_context
def main(
    ctx: click.Context,
    repo: str | None,
    clone_dir: str | None,
    config_path: str | None,
    verbose: int,
) -> None:
    """gitsql - Query git repositories with SQL."""
    settings = load_settings(config_path, repo, clone_dir, verbose)
    logging.basicConfig(level=settings.log_level.upper(), format=LOG_FORMAT)

    options = default_options(settings)
    ctx.ensure_object(dict)
    ctx.obj["options"] = options
    ctx.call_on_close(options.locator.close)


def _fail(ctx: click.Context, error: Exception) -> None:
    console.print(f"[red]Error: {escape(str(error))}[/red]")
    ctx.exit(1)


def _printable(value: Any) -> Any:
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return value


@main.command()
@click.argument("sql")
@click.option(
    "--format", "-f", "output_format",
    type=click.Choice(["table", "json", "csv"]), default="table", help="Output format",
)
@click.pass_context
def query(ctx: click.Context, sql: str, output_format: str) -> None:
    """Run a SQL query against the git tables."""
    options: ExtensionOptions = ctx.obj["options"]

    try:
        connection = connect(options)
        ctx.call_on_close(connection.close)
        cursor = connection.cursor()
        cursor.execute(sql)
        try:
            columns = [name for name, _ in cursor.getdescription()]
        except apsw.ExecutionCompleteError:
            columns = []
        rows = [tuple(_printable(v) for v in row) for row in cursor]
    except (GitSQLError, apsw.Error) as e:
        _fail(ctx, e)
        return

    if output_format == "json":
        click.echo(json.dumps([dict(zip(columns, row)) for row in rows], indent=2, default=str))
        return

    if output_format == "csv":
        buffer = io.StringIO()
        writer = csv.writer(buffer)
        writer.writerow(columns)
        writer.writerows(rows)
        click.echo(buffer.getvalue(), nl=False)
        return

    if not console.is_terminal:
        click.echo("\t".join(columns))
        for row in rows:
            click.echo("\t".join("" if v is None else str(v) for v in row))
        return

    table = Table()
    for name in columns:
        table.add_column(name, style="cyan")
    for row in rows:
        table.add_row(*("" if v is None else str(v) for v in row))
    console.print(table)
    console.print(f"[dim]{len(rows)} rows[/dim]")


@main.group()
def summarize() -> None:
    """Summaries of repository activity."""
    pass


@summarize.command("commits")
@click.argument("path_pattern", required=False)
@click.option(
    "--start", "-s", default=None,
    help="Start date: YYYY-MM-DD or a SQLite date modifier relative to now (e.g. '-30 days')",
)
@click.option(
    "--end", "-e", default=None,
    help="End date: YYYY-MM-DD or a SQLite date modifier relative to now",
)
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def summarize_commits(
    ctx: click.Context,
    path_pattern: str | None,
    start: str | None,
    end: str | None,
    as_json: bool,
) -> None:
    """Print a summary of commit activity in the default repository.

    PATH_PATTERN limits the summary to commits touching matching files. It is
    used in a SQL LIKE clause, so use '%' as a wildcard.
    """
    options: ExtensionOptions = ctx.obj["options"]

    try:
        connection = connect(options)
        ctx.call_on_close(connection.close)
        summarizer = CommitSummarizer(connection, path_pattern=path_pattern, start=start, end=end)
        if console.is_terminal and not as_json:
            with console.status("Summarizing commits..."):
                summary = summarizer.summarize()
        else:
            summary = summarizer.summarize()
    except (GitSQLError, apsw.Error) as e:
        _fail(ctx, e)
        return

    if as_json:
        click.echo(summary.model_dump_json(indent=2))
    elif console.is_terminal:
        render_rich(summary, console)
    else:
        click.echo(render_plain(summary), nl=False)


if __name__ == "__main__":
    main()
