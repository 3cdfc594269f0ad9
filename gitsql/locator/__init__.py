"""Repository locators: turn references into open repository handles."""

from gitsql.locator.base import Locator
from gitsql.locator.cache import CachingLocator, HandleCache
from gitsql.locator.clone import CloneLocator
from gitsql.locator.filesystem import FilesystemLocator
from gitsql.locator.handle import RepositoryHandle, resolve_commit
from gitsql.locator.logged import LoggingLocator
from gitsql.locator.multi import MultiLocator
from gitsql.locator.reference import NormalizedReference, ReferenceKind, normalize

__all__ = [
    "Locator",
    "CachingLocator",
    "HandleCache",
    "CloneLocator",
    "FilesystemLocator",
    "LoggingLocator",
    "MultiLocator",
    "RepositoryHandle",
    "resolve_commit",
    "NormalizedReference",
    "ReferenceKind",
    "normalize",
]
