"""Turn raw repository references into canonical cache keys."""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from urllib.parse import urlsplit, urlunsplit

from gitsql.errors import NotFoundError
from gitsql.models.settings import ResolutionPolicy

SHORTHAND_PATTERN = re.compile(
    r"^(?P<owner>[A-Za-z0-9][A-Za-z0-9_.-]*)/(?P<repo>[A-Za-z0-9_.-]+?)(?:\.git)?$"
)
# user@host:path, as understood by git (no scheme, colon before the first slash)
SCP_PATTERN = re.compile(r"^(?:(?P<user>[^@/:]+)@)?(?P<host>[^@/:]+):(?P<path>[^/].*|/.*)$")

# schemes that identify a repository by host + path ending in .git
_GIT_HOST_SCHEMES = {"http", "https", "ssh", "git"}


class ReferenceKind(str, Enum):
    """How a reference was classified."""

    LOCAL_PATH = "local-path"
    REMOTE_URL = "remote-url"
    SHORTHAND = "shorthand"


@dataclass(frozen=True)
class NormalizedReference:
    """A reference reduced to its memoization key."""

    key: str
    kind: ReferenceKind

    @property
    def is_local(self) -> bool:
        return self.kind == ReferenceKind.LOCAL_PATH


def normalize(ref: str, policy: ResolutionPolicy | None = None) -> NormalizedReference:
    """Classify ``ref`` and derive its cache key.

    An existing path always wins over both the URL and ``owner/repo``
    patterns. Nothing here touches the network; the only I/O is a stat of
    the candidate path.
    """
    policy = policy or ResolutionPolicy()
    raw = ref.strip() if ref else ""
    if not raw:
        raise NotFoundError("empty repository reference")

    path = Path(raw).expanduser()
    if path.exists():
        return NormalizedReference(str(path.resolve()), ReferenceKind.LOCAL_PATH)

    if not looks_like_url(raw):
        match = SHORTHAND_PATTERN.match(raw)
        if match:
            url = policy.expand_shorthand(match["owner"], match["repo"])
            return NormalizedReference(canonical_url(url), ReferenceKind.SHORTHAND)

    return NormalizedReference(canonical_url(raw), ReferenceKind.REMOTE_URL)


def looks_like_url(value: str) -> bool:
    """True for ``scheme://...`` and scp-like ``user@host:path`` strings."""
    if "://" in value:
        return True
    # a single drive letter is a windows path, not a host
    match = SCP_PATTERN.match(value)
    return bool(match) and len(match["host"]) > 1


def canonical_url(url: str) -> str:
    """Canonicalize a clone URL so equivalent spellings share one key.

    Scheme and host are lower-cased, passwords are dropped (http usernames
    too, since credentials come from the policy), trailing slashes are
    removed and a ``.git`` suffix is enforced for hosted repositories.
    """
    if "://" not in url:
        match = SCP_PATTERN.match(url)
        if not match or len(match["host"]) == 1:
            return url
        path = _with_git_suffix(match["path"].rstrip("/"))
        user = f"{match['user']}@" if match["user"] else ""
        return f"{user}{match['host'].lower()}:{path}"

    parts = urlsplit(url)
    scheme = parts.scheme.lower()
    if scheme == "file":
        return urlunsplit(("file", "", parts.path.rstrip("/") or "/", "", ""))

    netloc = (parts.hostname or "").lower()
    if parts.port:
        netloc = f"{netloc}:{parts.port}"
    if parts.username and scheme not in ("http", "https"):
        netloc = f"{parts.username}@{netloc}"

    path = parts.path.rstrip("/")
    if scheme in _GIT_HOST_SCHEMES:
        path = _with_git_suffix(path)
    return urlunsplit((scheme, netloc, path, parts.query, ""))


def _with_git_suffix(path: str) -> str:
    if not path or path.endswith(".git"):
        return path
    return f"{path}.git"
