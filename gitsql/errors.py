"""Error taxonomy for repository resolution and table iteration."""

from __future__ import annotations


class GitSQLError(Exception):
    """Base class for all gitsql errors."""


class NotFoundError(GitSQLError):
    """A reference does not resolve to a repository in a backend."""


class LocatorFailedError(NotFoundError):
    """Every backend of a multi-locator failed.

    Carries one failure per attempted backend, in attempt order.
    """

    def __init__(self, key: str, failures: dict[str, BaseException]) -> None:
        self.key = key
        self.failures = dict(failures)
        reasons = "; ".join(f"{name}: {err}" for name, err in self.failures.items())
        super().__init__(f"could not locate repository {key!r} ({reasons})")

    @property
    def retryable(self) -> bool:
        """True if at least one backend failed for a transport reason."""
        return any(isinstance(e, RemoteUnavailableError) for e in self.failures.values())


class RemoteUnavailableError(GitSQLError):
    """Network or transport failure while talking to a remote."""


class AuthenticationRejectedError(GitSQLError):
    """The remote refused the supplied credentials (or demanded some)."""


class InvalidRevisionError(GitSQLError):
    """A revision does not resolve to a commit."""


class UnsupportedConstraintError(GitSQLError):
    """A table was handed a pushdown constraint it cannot honor."""


class UseAfterCloseError(GitSQLError):
    """An iterator or handle was used after it was released."""


class Cancelled(GitSQLError):
    """The caller's context was cancelled or its deadline passed."""
