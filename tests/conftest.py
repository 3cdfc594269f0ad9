"""Pytest configuration and shared fixtures."""

from __future__ import annotations

import os
import subprocess
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Generator

import apsw
import pytest

from gitsql.extension import build_locator, connect
from gitsql.models.settings import ResolutionPolicy, Settings
from gitsql.options import ExtensionOptions


def _git_env() -> dict[str, str]:
    env = dict(os.environ)
    env.update(
        {
            "GIT_CONFIG_GLOBAL": os.devnull,
            "GIT_CONFIG_NOSYSTEM": "1",
            "GIT_TERMINAL_PROMPT": "0",
        }
    )
    for key in ("GIT_DIR", "GIT_WORK_TREE", "GIT_INDEX_FILE"):
        env.pop(key, None)
    return env


@dataclass
class SampleRepo:
    """A small repository with two commits and two tags.

    v1.0 -> first commit: a.txt (regular), b.sh (executable)
    HEAD -> second commit: a.txt changed, src/main.py added
    """

    path: Path
    first: str
    second: str


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def git() -> Callable[..., str]:
    """Run git with an isolated configuration and return stripped stdout."""

    def run(cwd: Path, *args: str, date: str | None = None, author: str = "Alice") -> str:
        env = _git_env()
        env["GIT_AUTHOR_NAME"] = env["GIT_COMMITTER_NAME"] = author
        env["GIT_AUTHOR_EMAIL"] = env["GIT_COMMITTER_EMAIL"] = f"{author.lower()}@example.com"
        if date:
            env["GIT_AUTHOR_DATE"] = env["GIT_COMMITTER_DATE"] = date
        result = subprocess.run(
            ["git", *args], cwd=cwd, env=env, capture_output=True, text=True, check=True
        )
        return result.stdout.strip()

    return run


@pytest.fixture
def make_repo(git: Callable[..., str]) -> Callable[[Path], Path]:
    def make(path: Path) -> Path:
        path.mkdir(parents=True, exist_ok=True)
        git(path, "init", "--quiet", "--initial-branch=main")
        return path

    return make


@pytest.fixture
def two_file_repo(temp_dir: Path, make_repo, git) -> Path:
    """Repository whose only commit holds a.txt and an executable b.sh."""
    path = make_repo(temp_dir / "two-files")
    (path / "a.txt").write_text("alpha\n")
    (path / "b.sh").write_text("#!/bin/sh\necho beta\n")
    git(path, "add", "a.txt")
    git(path, "add", "--chmod=+x", "b.sh")
    git(path, "commit", "--quiet", "-m", "initial", date="2024-01-01T10:00:00+00:00")
    return path


@pytest.fixture
def sample_repo(temp_dir: Path, make_repo, git) -> SampleRepo:
    path = make_repo(temp_dir / "sample")
    (path / "a.txt").write_text("alpha\n")
    (path / "b.sh").write_text("#!/bin/sh\necho beta\n")
    git(path, "add", "a.txt")
    git(path, "add", "--chmod=+x", "b.sh")
    git(path, "commit", "--quiet", "-m", "initial", date="2024-01-01T10:00:00+00:00")
    first = git(path, "rev-parse", "HEAD")
    git(path, "tag", "v1.0")

    (path / "a.txt").write_text("alpha\ngamma\n")
    (path / "src").mkdir()
    (path / "src" / "main.py").write_text("def main():\n    print('hello')\n")
    git(path, "add", "a.txt", "src/main.py")
    git(
        path, "commit", "--quiet", "-m", "add main",
        date="2024-02-01T12:00:00+00:00", author="Bob",
    )
    second = git(path, "rev-parse", "HEAD")
    git(path, "tag", "-a", "v2.0", "-m", "second release", date="2024-02-01T12:00:00+00:00")
    return SampleRepo(path=path, first=first, second=second)


@pytest.fixture
def bare_remote(temp_dir: Path, sample_repo: SampleRepo, git) -> str:
    """file:// URL of a bare copy of the sample repository."""
    remote = temp_dir / "remote.git"
    git(temp_dir, "clone", "--quiet", "--bare", str(sample_repo.path), str(remote))
    return f"file://{remote}"


@pytest.fixture
def clone_dir(temp_dir: Path) -> Path:
    return temp_dir / "clones"


@pytest.fixture
def make_options(clone_dir: Path) -> Generator[Callable[..., ExtensionOptions], None, None]:
    """Factory for ExtensionOptions over a real locator chain."""
    created: list[ExtensionOptions] = []

    def make(default_repo: str | Path | None = None, **settings_kwargs) -> ExtensionOptions:
        settings = Settings(
            default_repo=str(default_repo) if default_repo else None,
            policy=ResolutionPolicy(clone_dir=clone_dir),
            **settings_kwargs,
        )
        options = ExtensionOptions(locator=build_locator(settings), settings=settings)
        created.append(options)
        return options

    yield make
    for options in created:
        options.locator.close()


@pytest.fixture
def connect_repo(make_options) -> Generator[Callable[..., apsw.Connection], None, None]:
    """Connection with every table registered, defaulting to ``repo``."""
    connections: list[apsw.Connection] = []

    def make(repo: str | Path | None = None, **settings_kwargs) -> apsw.Connection:
        connection = connect(make_options(repo, **settings_kwargs))
        connections.append(connection)
        return connection

    yield make
    for connection in connections:
        connection.close()
