"""gitsql - Query git repositories with SQL."""

from gitsql.context import Context
from gitsql.extension import build_locator, connect, default_options, register
from gitsql.models.settings import ResolutionPolicy, Settings
from gitsql.options import ExtensionOptions

__version__ = "0.1.0"
__all__ = [
    "Context",
    "ExtensionOptions",
    "ResolutionPolicy",
    "Settings",
    "build_locator",
    "connect",
    "default_options",
    "register",
]
