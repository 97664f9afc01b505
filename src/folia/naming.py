"""Name policy: turns user-entered names into canonical folder and file names."""

import re

from .config import DOCUMENT_EXTENSION, UNTITLED_SLUG
from .paths import join_relative, normalize_relative_path, normalize_segment


def slugify(text: str) -> str:
    """Convert text to a URL-friendly slug (lowercase, hyphens, alphanumeric only).

    Falls back to ``untitled`` when nothing slug-safe remains.
    """
    slug = text.lower()
    slug = re.sub(r"[^a-z0-9\s-]", "", slug)
    slug = slug.strip()
    slug = re.sub(r"\s+", "-", slug)
    slug = re.sub(r"-+", "-", slug)
    return slug or UNTITLED_SLUG


def strip_document_extension(name: str) -> str:
    """Drop a trailing document extension, if present."""
    if name.endswith(DOCUMENT_EXTENSION):
        return name[: -len(DOCUMENT_EXTENSION)]
    return name


def is_document_name(name: str) -> bool:
    """True if the name or path carries the document extension."""
    return name.endswith(DOCUMENT_EXTENSION)


def normalize_file_name(value: str) -> str:
    """Canonicalize a user-entered page name to ``<slug>.md``.

    "My Notes" and "my-notes.md" both become "my-notes.md", so applying the
    policy to its own output is a no-op.

    Raises:
        InvalidNameError: If the input is not a valid single segment.
    """
    segment = normalize_segment(value)
    return f"{slugify(strip_document_extension(segment))}{DOCUMENT_EXTENSION}"


def normalize_folder_name(value: str) -> str:
    """Canonicalize a user-entered folder name to its slug.

    Raises:
        InvalidNameError: If the input is not a valid single segment.
    """
    return slugify(normalize_segment(value))


def build_folder_path(parent_path: str, name: str) -> str:
    """Combine a parent path with a canonical folder name.

    Raises:
        InvalidNameError: If the name is not a valid segment.
        InvalidPathError: If the parent path is invalid.
    """
    folder_name = normalize_folder_name(name)
    return join_relative(normalize_relative_path(parent_path), folder_name)


def build_file_path(parent_path: str, name: str) -> str:
    """Combine a parent path with a canonical page file name.

    Raises:
        InvalidNameError: If the name is not a valid segment.
        InvalidPathError: If the parent path is invalid.
    """
    file_name = normalize_file_name(name)
    return join_relative(normalize_relative_path(parent_path), file_name)
