"""Configuration models for repository resolution and the SQL extension."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field

DEFAULT_SHORTHAND_TEMPLATE = "https://github.com/{owner}/{repo}.git"
DEFAULT_BACKENDS = ["filesystem", "clone"]


class ResolutionPolicy(BaseModel):
    """Cross-cutting locator configuration, shared read-only by all backends."""

    model_config = ConfigDict(frozen=True)

    clone_dir: Path | None = Field(
        default=None, description="Directory for remote clones (temp dir if unset)"
    )
    username: str | None = Field(default=None, description="HTTP basic-auth username")
    password: str | None = Field(default=None, description="HTTP basic-auth password")
    insecure_skip_tls: bool = Field(default=False, description="Skip TLS verification")
    shorthand_template: str = Field(default=DEFAULT_SHORTHAND_TEMPLATE)
    backends: tuple[str, ...] = Field(default=tuple(DEFAULT_BACKENDS))

    @property
    def has_auth(self) -> bool:
        return bool(self.username or self.password)

    def expand_shorthand(self, owner: str, repo: str) -> str:
        """Expand an ``owner/repo`` shorthand into a clone URL."""
        return self.shorthand_template.format(owner=owner, repo=repo)


class Settings(BaseModel):
    """Process-wide configuration, read once at startup."""

    model_config = ConfigDict(frozen=True)

    default_repo: str | None = Field(default=None, description="Default repository reference")
    policy: ResolutionPolicy = Field(default_factory=ResolutionPolicy)
    max_cached_handles: int | None = Field(
        default=None, description="LRU bound on cached repositories (unbounded if unset)"
    )
    query_timeout: float | None = Field(
        default=None, description="Seconds before a table open or scan is cancelled"
    )
    context: dict[str, str] = Field(
        default_factory=dict, description="String values made available to tables"
    )
    log_level: str = Field(default="WARNING")

    def value(self, key: str, default: str = "") -> str:
        """Look up a context value, e.g. ``githubToken``."""
        return self.context.get(key, default)

    @classmethod
    def from_env(cls, environ: dict[str, str] | None = None) -> "Settings":
        """Build settings from environment variables."""
        env = os.environ if environ is None else environ

        github_token = env.get("GITHUB_TOKEN", "")
        clone_dir = env.get("GITSQL_CLONE_DIR")
        policy = ResolutionPolicy(
            clone_dir=Path(clone_dir) if clone_dir else None,
            # GitHub accepts a token as the basic-auth username
            username=github_token or None,
            password="" if github_token else None,
            insecure_skip_tls=env.get("GIT_SSL_NO_VERIFY", "") != "",
        )

        context = {
            "githubToken": github_token,
            "githubPerPage": env.get("GITHUB_PER_PAGE", ""),
            "githubRateLimit": env.get("GITHUB_RATE_LIMIT", ""),
            "sourcegraphToken": env.get("SOURCEGRAPH_TOKEN", ""),
        }
        return cls(
            default_repo=env.get("GITSQL_REPO") or None,
            policy=policy,
            context=context,
            log_level=env.get("GITSQL_LOG_LEVEL", "WARNING"),
        )

    @classmethod
    def from_yaml(cls, path: Path, base: "Settings | None" = None) -> "Settings":
        """Load settings from a YAML file, overlaying ``base`` if given."""
        with open(path) as f:
            data = yaml.safe_load(f) or {}
        if base is None:
            return cls.model_validate(data)
        return base.merged(data)

    def merged(self, overrides: dict[str, Any]) -> "Settings":
        """Return a copy with ``overrides`` applied (nested for policy/context)."""
        data = self.model_dump()
        for key, value in overrides.items():
            if key in ("policy", "context") and isinstance(value, dict):
                data[key] = {**data[key], **value}
            elif value is not None:
                data[key] = value
        return type(self).model_validate(data)
