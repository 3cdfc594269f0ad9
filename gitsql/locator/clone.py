"""Locator that clones remote repositories into a local clone directory."""

from __future__ import annotations

import base64
import hashlib
import logging
import os
import re
import shutil
import subprocess
import tempfile
from pathlib import Path
from typing import TYPE_CHECKING

from git.exc import InvalidGitRepositoryError, NoSuchPathError

from gitsql.errors import (
    AuthenticationRejectedError,
    NotFoundError,
    RemoteUnavailableError,
)
from gitsql.locator.base import Locator
from gitsql.locator.handle import RepositoryHandle
from gitsql.locator.reference import looks_like_url
from gitsql.models.settings import ResolutionPolicy

if TYPE_CHECKING:
    from gitsql.context import Context

logger = logging.getLogger(__name__)

DEFAULT_CLONE_DIR = Path(tempfile.gettempdir()) / "gitsql-clones"

# Lower-cased fragments of git stderr, checked in order
AUTH_FAILURE_MARKERS = (
    "authentication failed",
    "could not read username",
    "could not read password",
    "terminal prompts disabled",
    "invalid username or password",
    "http basic: access denied",
    "permission denied (publickey",
    "the requested url returned error: 401",
    "the requested url returned error: 403",
)
MISSING_REPO_MARKERS = (
    "repository not found",
    "does not appear to be a git repository",
    "does not exist",
    "the requested url returned error: 404",
)


def clone_path(clone_dir: Path, key: str) -> Path:
    """Deterministic, collision-free clone directory for ``key``."""
    tail = key.rstrip("/").rsplit("/", 1)[-1].rsplit(":", 1)[-1]
    slug = re.sub(r"[^A-Za-z0-9_.-]+", "-", tail.removesuffix(".git")).strip("-.") or "repo"
    digest = hashlib.sha256(key.encode()).hexdigest()[:16]
    return clone_dir / f"{slug}-{digest}"


def classify_clone_failure(key: str, stderr: str) -> Exception:
    """Map git's stderr to the error taxonomy."""
    message = stderr.strip().splitlines()[-1] if stderr.strip() else "git clone failed"
    lowered = stderr.lower()
    if any(marker in lowered for marker in AUTH_FAILURE_MARKERS):
        return AuthenticationRejectedError(f"authentication rejected for {key}: {message}")
    if any(marker in lowered for marker in MISSING_REPO_MARKERS):
        return NotFoundError(f"remote repository {key} not found: {message}")
    return RemoteUnavailableError(f"could not clone {key}: {message}")


class CloneLocator(Locator):
    """Clones remote repositories (bare) and reuses existing clones.

    Repeated calls for the same key are idempotent: once the clone directory
    holds a repository, it is opened instead of fetched again.
    """

    def __init__(self, policy: ResolutionPolicy | None = None, poll_interval: float = 0.1) -> None:
        self.policy = policy or ResolutionPolicy()
        self.clone_dir = Path(self.policy.clone_dir) if self.policy.clone_dir else DEFAULT_CLONE_DIR
        self.poll_interval = poll_interval

    def open(self, ctx: Context, key: str) -> RepositoryHandle:
        ctx.check()
        if not looks_like_url(key):
            raise NotFoundError(f"{key!r} is not a remote URL")

        target = clone_path(self.clone_dir, key)
        if target.exists():
            logger.debug(f"Reusing clone of {key} at {target}")
            return self._open_existing(key, target)

        self.clone_dir.mkdir(parents=True, exist_ok=True)
        tmp_path = Path(tempfile.mkdtemp(prefix=f".{target.name}.", dir=self.clone_dir))
        try:
            self._clone(ctx, key, tmp_path)
            try:
                os.rename(tmp_path, target)
            except OSError:
                if not target.exists():
                    raise
                # another clone of the same key finished first
                logger.info(f"Clone of {key} raced with another writer, reusing {target}")
        finally:
            if tmp_path.exists():
                shutil.rmtree(tmp_path, ignore_errors=True)

        logger.info(f"Cloned {key} to {target}")
        return self._open_existing(key, target)

    def _open_existing(self, key: str, target: Path) -> RepositoryHandle:
        try:
            return RepositoryHandle.open(key, target)
        except (InvalidGitRepositoryError, NoSuchPathError) as e:
            raise NotFoundError(
                f"clone directory {target} exists but is not a git repository"
            ) from e

    def _clone(self, ctx: Context, key: str, dest: Path) -> None:
        cmd = ["git", "clone", "--bare", "--quiet", key, str(dest)]
        process = subprocess.Popen(
            cmd,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            env=self._environment(),
            text=True,
        )
        while True:
            try:
                _, stderr = process.communicate(timeout=self.poll_interval)
                break
            except subprocess.TimeoutExpired:
                if ctx.cancelled:
                    process.kill()
                    process.communicate()
                    logger.info(f"Clone of {key} cancelled")
                    ctx.check()

        if process.returncode != 0:
            raise classify_clone_failure(key, stderr)

    def _environment(self) -> dict[str, str]:
        """Environment for git: no prompts, policy passed as transient config.

        Config entries go through GIT_CONFIG_* variables so credentials are
        neither visible in the process list nor written to the clone's config.
        """
        env = dict(os.environ)
        env["GIT_TERMINAL_PROMPT"] = "0"
        env["GCM_INTERACTIVE"] = "never"
        env.setdefault("GIT_SSH_COMMAND", "ssh -o BatchMode=yes")

        config: list[tuple[str, str]] = []
        if self.policy.insecure_skip_tls:
            config.append(("http.sslVerify", "false"))
        if self.policy.has_auth:
            credentials = f"{self.policy.username or ''}:{self.policy.password or ''}"
            token = base64.b64encode(credentials.encode()).decode()
            config.append(("http.extraHeader", f"Authorization: Basic {token}"))

        if not config:
            return env
        env["GIT_CONFIG_COUNT"] = str(len(config))
        for i, (name, value) in enumerate(config):
            env[f"GIT_CONFIG_KEY_{i}"] = name
            env[f"GIT_CONFIG_VALUE_{i}"] = value
        return env
