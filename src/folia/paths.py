"""Relative path normalization and containment within the library root.

All paths handed to the core are posix-style and relative to the library
root, with ``""`` naming the root itself. Nothing here touches the disk.
"""

import os
import posixpath
from pathlib import Path

from .errors import InvalidNameError, InvalidPathError


def normalize_relative_path(value: str) -> str:
    """Normalize a caller-supplied relative path.

    Backslashes become forward slashes, leading slashes and empty segments are
    dropped. An empty result names the library root.

    Raises:
        InvalidPathError: If any segment is ``.`` or ``..``.

    Examples:
        "\\\\notes\\\\todo.md" -> "notes/todo.md"
        "/a//b/" -> "a/b"
        "" -> ""
    """
    cleaned = value.strip().replace("\\", "/").lstrip("/")
    if not cleaned:
        return ""

    parts = [part for part in cleaned.split("/") if part]
    for part in parts:
        if part in (".", ".."):
            raise InvalidPathError(f"Invalid path: {value}")
    return "/".join(parts)


def normalize_segment(value: str) -> str:
    """Validate a single path segment (a folder or file name).

    Raises:
        InvalidNameError: If empty after trimming, contains a separator,
            or is ``.``/``..``.
    """
    cleaned = value.strip()
    if not cleaned:
        raise InvalidNameError("Name is empty")
    if "/" in cleaned or "\\" in cleaned:
        raise InvalidNameError(f"Name contains a path separator: {value}")
    if cleaned in (".", ".."):
        raise InvalidNameError(f"Invalid name: {value}")
    return cleaned


def resolve_within_root(root: str | os.PathLike, relative_path: str) -> Path:
    """Join a normalized relative path onto the root and check containment.

    The result must be the root itself or lie strictly below it. The check is
    lexical: symlinks inside the library are not followed here.

    Raises:
        InvalidPathError: If the joined path escapes the root.
    """
    resolved_root = os.path.abspath(os.fspath(root))
    target = os.path.abspath(os.path.join(resolved_root, relative_path))

    if target != resolved_root and not target.startswith(resolved_root.rstrip(os.sep) + os.sep):
        raise InvalidPathError(f"Path escapes library root: {relative_path}")
    return Path(target)


def join_relative(parent: str, segment: str) -> str:
    """Posix-join a normalized parent path and a segment ("" is the root)."""
    return posixpath.join(parent, segment) if parent else segment


def parent_of(relative_path: str) -> str:
    """Return the parent of a normalized relative path ("" for top level)."""
    return posixpath.dirname(relative_path)


def is_same_or_descendant(path: str, ancestor: str) -> bool:
    """True if ``path`` equals ``ancestor`` or lies beneath it."""
    return path == ancestor or path.startswith(ancestor + "/")
