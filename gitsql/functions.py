"""Scalar SQL helper functions. Each is a pure function of its arguments."""

from __future__ import annotations

import json
import tomllib
from typing import Any, Callable

import yaml
from pygments.lexers import get_lexer_for_filename, guess_lexer_for_filename
from pygments.util import ClassNotFound


def _text(value: str | bytes | None) -> str:
    if value is None:
        return ""
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return str(value)


def detect_language(path: str | None, contents: str | bytes | None = None) -> str | None:
    """Language of a file from its name, refined by its contents when given."""
    if not path:
        return None
    text = _text(contents)
    try:
        if text:
            lexer = guess_lexer_for_filename(path, text)
        else:
            lexer = get_lexer_for_filename(path)
    except ClassNotFound:
        return None
    return lexer.name


def str_split(value: str | None, separator: str, index: int) -> str | None:
    """``index``-th piece of ``value`` split on ``separator``; NULL if absent."""
    if value is None or not separator:
        return None
    parts = _text(value).split(separator)
    if not 0 <= index < len(parts):
        return None
    return parts[index]


def yaml_to_json(value: str | bytes | None) -> str | None:
    if value is None:
        return None
    return json.dumps(yaml.safe_load(_text(value)), default=str)


def toml_to_json(value: str | bytes | None) -> str | None:
    if value is None:
        return None
    return json.dumps(tomllib.loads(_text(value)), default=str)


SCALAR_FUNCTIONS: dict[str, Callable[..., Any]] = {
    "detect_language": detect_language,
    "str_split": str_split,
    "yaml_to_json": yaml_to_json,
    "toml_to_json": toml_to_json,
}
