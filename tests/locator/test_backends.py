"""Tests for the filesystem and clone locators."""

from __future__ import annotations

import subprocess
from pathlib import Path

import pytest

from gitsql.context import Context
from gitsql.errors import (
    AuthenticationRejectedError,
    Cancelled,
    NotFoundError,
    RemoteUnavailableError,
)
from gitsql.locator import clone as clone_module
from gitsql.locator.clone import CloneLocator, classify_clone_failure, clone_path
from gitsql.locator.filesystem import FilesystemLocator
from gitsql.locator.handle import resolve_commit
from gitsql.locator.reference import normalize
from gitsql.models.settings import ResolutionPolicy


class HangingProcess:
    """Stand-in for a git clone that never finishes on its own.

    The first poll cancels the context, as a caller giving up would.
    """

    def __init__(self, ctx: Context) -> None:
        self.ctx = ctx
        self.killed = False
        self.returncode: int | None = None

    def communicate(self, timeout: float | None = None) -> tuple[str, str]:
        if self.killed:
            self.returncode = -9
            return "", ""
        self.ctx.cancel()
        raise subprocess.TimeoutExpired(["git", "clone"], timeout)

    def kill(self) -> None:
        self.killed = True


class TestFilesystemLocator:
    """Tests for opening local repositories."""

    def test_opens_worktree(self, sample_repo) -> None:
        key = str(sample_repo.path.resolve())
        handle = FilesystemLocator().open(Context(), key)
        try:
            assert handle.key == key
            assert resolve_commit(handle.repo, None).hexsha == sample_repo.second
            assert not handle.repo.bare
        finally:
            handle.close()

    def test_opens_bare(self, bare_remote: str) -> None:
        path = bare_remote.removeprefix("file://")
        handle = FilesystemLocator().open(Context(), path)
        try:
            assert handle.repo.bare
        finally:
            handle.close()

    def test_plain_directory_not_found(self, temp_dir: Path) -> None:
        with pytest.raises(NotFoundError, match="does not contain a git repository"):
            FilesystemLocator().open(Context(), str(temp_dir))

    def test_missing_path_not_found(self, temp_dir: Path) -> None:
        with pytest.raises(NotFoundError):
            FilesystemLocator().open(Context(), str(temp_dir / "nope"))

    def test_url_not_found(self) -> None:
        with pytest.raises(NotFoundError, match="is not a directory"):
            FilesystemLocator().open(Context(), "https://github.com/a/b.git")

    def test_opens_directory_named_like_scp_url(
        self, temp_dir: Path, make_repo, git, monkeypatch
    ) -> None:
        path = make_repo(temp_dir / "repo:v2")
        (path / "a.txt").write_text("alpha\n")
        git(path, "add", "a.txt")
        git(path, "commit", "--quiet", "-m", "initial")
        monkeypatch.chdir(temp_dir)

        key = normalize("repo:v2").key
        handle = FilesystemLocator().open(Context(), key)
        try:
            assert handle.path == path.resolve()
            assert resolve_commit(handle.repo, None).hexsha == git(path, "rev-parse", "HEAD")
        finally:
            handle.close()

    def test_cancelled_context(self, sample_repo) -> None:
        ctx = Context()
        ctx.cancel()
        with pytest.raises(Cancelled):
            FilesystemLocator().open(ctx, str(sample_repo.path))


class TestClonePath:
    def test_deterministic(self, temp_dir: Path) -> None:
        key = "https://github.com/a/b.git"
        assert clone_path(temp_dir, key) == clone_path(temp_dir, key)
        assert clone_path(temp_dir, key).name.startswith("b-")

    def test_distinct_keys_distinct_dirs(self, temp_dir: Path) -> None:
        assert clone_path(temp_dir, "https://github.com/a/b.git") != clone_path(
            temp_dir, "https://gitlab.com/a/b.git"
        )


class TestClassifyCloneFailure:
    def test_auth(self) -> None:
        err = classify_clone_failure(
            "https://h/a.git",
            "remote: Invalid username or password.\nfatal: Authentication failed for 'https://h/a.git/'",
        )
        assert isinstance(err, AuthenticationRejectedError)

    def test_prompt_disabled_is_auth(self) -> None:
        err = classify_clone_failure(
            "https://h/a.git",
            "fatal: could not read Username for 'https://h': terminal prompts disabled",
        )
        assert isinstance(err, AuthenticationRejectedError)

    def test_transport(self) -> None:
        err = classify_clone_failure(
            "https://h/a.git", "fatal: unable to access 'https://h/a.git/': Could not resolve host: h"
        )
        assert isinstance(err, RemoteUnavailableError)
        assert not isinstance(err, AuthenticationRejectedError)

    def test_missing(self) -> None:
        err = classify_clone_failure(
            "file:///x", "fatal: '/x' does not appear to be a git repository"
        )
        assert isinstance(err, NotFoundError)


class TestCloneLocator:
    """Tests for cloning, using a local bare repository as the remote."""

    def test_clone_and_reuse(self, bare_remote: str, clone_dir: Path, sample_repo) -> None:
        locator = CloneLocator(ResolutionPolicy(clone_dir=clone_dir))

        first = locator.open(Context(), bare_remote)
        try:
            assert first.path == clone_path(clone_dir, bare_remote)
            assert resolve_commit(first.repo, None).hexsha == sample_repo.second
        finally:
            first.close()

        second = locator.open(Context(), bare_remote)
        try:
            assert second.path == first.path
        finally:
            second.close()

        # only the finished clone remains, no temporary directories
        assert [p.name for p in clone_dir.iterdir()] == [first.path.name]

    def test_rejects_local_paths(self, sample_repo, clone_dir: Path) -> None:
        locator = CloneLocator(ResolutionPolicy(clone_dir=clone_dir))
        with pytest.raises(NotFoundError, match="not a remote URL"):
            locator.open(Context(), str(sample_repo.path))

    def test_missing_remote(self, temp_dir: Path, clone_dir: Path) -> None:
        locator = CloneLocator(ResolutionPolicy(clone_dir=clone_dir))
        with pytest.raises((NotFoundError, RemoteUnavailableError)):
            locator.open(Context(), f"file://{temp_dir / 'missing.git'}")
        assert not any(clone_dir.iterdir())

    def test_cancelled_before_start(self, bare_remote: str, clone_dir: Path) -> None:
        ctx = Context()
        ctx.cancel()
        with pytest.raises(Cancelled):
            CloneLocator(ResolutionPolicy(clone_dir=clone_dir)).open(ctx, bare_remote)
        assert not clone_dir.exists() or not any(clone_dir.iterdir())

    def test_cancel_during_clone_kills_git(self, bare_remote: str, clone_dir: Path, monkeypatch) -> None:
        ctx = Context()
        processes: list[HangingProcess] = []

        def fake_popen(*args, **kwargs) -> HangingProcess:
            process = HangingProcess(ctx)
            processes.append(process)
            return process

        monkeypatch.setattr(clone_module.subprocess, "Popen", fake_popen)
        locator = CloneLocator(ResolutionPolicy(clone_dir=clone_dir), poll_interval=0.01)

        with pytest.raises(Cancelled):
            locator.open(ctx, bare_remote)

        assert processes and processes[0].killed
        assert not clone_path(clone_dir, bare_remote).exists()
        assert not any(clone_dir.iterdir())

    def test_auth_environment(self, clone_dir: Path) -> None:
        locator = CloneLocator(
            ResolutionPolicy(
                clone_dir=clone_dir, username="token123", password="", insecure_skip_tls=True
            )
        )
        env = locator._environment()
        assert env["GIT_TERMINAL_PROMPT"] == "0"
        assert env["GIT_CONFIG_COUNT"] == "2"
        values = {env[f"GIT_CONFIG_KEY_{i}"]: env[f"GIT_CONFIG_VALUE_{i}"] for i in range(2)}
        assert values["http.sslVerify"] == "false"
        # base64("token123:")
        assert values["http.extraHeader"] == "Authorization: Basic dG9rZW4xMjM6"
