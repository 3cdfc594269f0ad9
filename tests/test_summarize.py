"""Tests for the commit summary."""

from __future__ import annotations

from rich.console import Console

from gitsql.summarize import (
    CommitSummarizer,
    CommitSummary,
    date_expression,
    render_plain,
    render_rich,
)


class TestDateExpression:
    def test_absolute(self) -> None:
        assert date_expression("2024-01-31") == ("date(?)", "2024-01-31")

    def test_relative(self) -> None:
        assert date_expression("-30 days") == ("date('now', ?)", "-30 days")


class TestCommitSummarizer:
    def test_whole_history(self, sample_repo, connect_repo) -> None:
        summary = CommitSummarizer(connect_repo(sample_repo.path)).summarize()

        assert summary.commits == 2
        assert summary.non_merge_commits == 2
        assert summary.first_commit == "2024-01-01 10:00:00"
        assert summary.last_commit == "2024-02-01 12:00:00"
        assert summary.distinct_authors == 2
        assert summary.distinct_files == 3
        assert summary.additions == 6
        assert summary.deletions == 0
        assert [(a.name, a.commits, a.additions) for a in summary.top_authors] == [
            ("Alice", 1, 3),
            ("Bob", 1, 3),
        ]

    def test_path_pattern(self, sample_repo, connect_repo) -> None:
        summary = CommitSummarizer(
            connect_repo(sample_repo.path), path_pattern="src/%"
        ).summarize()

        assert summary.path_pattern == "src/%"
        assert summary.commits == 1
        assert summary.distinct_files == 1
        assert summary.additions == 2
        assert [a.email for a in summary.top_authors] == ["bob@example.com"]

    def test_date_window(self, sample_repo, connect_repo) -> None:
        db = connect_repo(sample_repo.path)
        summary = CommitSummarizer(db, start="2024-01-15").summarize()
        assert summary.commits == 1
        assert summary.first_commit == "2024-02-01 12:00:00"

        summary = CommitSummarizer(db, end="2024-01-15").summarize()
        assert summary.commits == 1
        assert summary.last_commit == "2024-01-01 10:00:00"

    def test_empty_window(self, sample_repo, connect_repo) -> None:
        summary = CommitSummarizer(
            connect_repo(sample_repo.path), start="2030-01-01"
        ).summarize()
        assert summary.commits == 0
        assert summary.first_commit is None
        assert summary.top_authors == []

    def test_merge_commits_excluded_from_lines(self, sample_repo, git, connect_repo) -> None:
        path = sample_repo.path
        git(path, "checkout", "--quiet", "-b", "feature", "v1.0")
        (path / "feature.txt").write_text("one\ntwo\n")
        git(path, "add", "feature.txt")
        git(path, "commit", "--quiet", "-m", "feature", date="2024-03-01T09:00:00+00:00")
        git(path, "checkout", "--quiet", "main")
        git(path, "merge", "--quiet", "--no-ff", "-m", "merge", "feature",
            date="2024-03-02T09:00:00+00:00")

        summary = CommitSummarizer(connect_repo(path)).summarize()
        assert summary.commits == 4
        assert summary.non_merge_commits == 3
        assert summary.additions == 8

    def test_temp_tables_dropped(self, sample_repo, connect_repo) -> None:
        db = connect_repo(sample_repo.path)
        CommitSummarizer(db).summarize()
        names = list(db.execute("SELECT name FROM sqlite_temp_master WHERE type = 'table'"))
        assert names == []

    def test_explicit_repository(self, sample_repo, connect_repo) -> None:
        summary = CommitSummarizer(connect_repo(), repository=str(sample_repo.path)).summarize()
        assert summary.commits == 2


class TestRendering:
    SUMMARY = CommitSummary(commits=3, additions=10, deletions=4, distinct_authors=1)

    def test_plain(self) -> None:
        text = render_plain(self.SUMMARY)
        assert "Commits" in text
        assert "+10" in text
        assert "-4" in text
        assert "Top authors" not in text

    def test_rich(self) -> None:
        console = Console(record=True, width=100)
        render_rich(self.SUMMARY, console)
        output = console.export_text()
        assert "Commit Summary" in output
        assert "+10" in output
