"""Configuration management for folia.

This module contains all configurable constants for the library.
Magic numbers are documented here rather than scattered throughout the codebase.
"""

import os
from pathlib import Path


class ConfigurationError(Exception):
    """Raised when required configuration is missing."""

    pass


# Config file names looked up while walking up from the working directory.
# folia.config.json is parsed as YAML (JSON is a YAML subset).
CONFIG_FILENAMES = ("folia.config.json", "folia.yaml")

# Maximum directory traversal depth when searching for a config file.
MAX_CONFIG_SEARCH_DEPTH = 10


def get_library_root(root: str | os.PathLike | None = None) -> Path:
    """Get the library root directory.

    Discovery order:
    1. Explicit ``root`` argument
    2. FOLIA_LIBRARY_ROOT environment variable
    3. Walk up from cwd looking for folia.config.json / folia.yaml with libraryRoot
    4. Error with helpful message

    The returned path is absolute but not required to exist; a missing root is
    reported by the scanner, not here.

    Raises:
        ConfigurationError: If no library root is configured.
    """
    if root is not None:
        return Path(root).expanduser().resolve()

    env_root = os.environ.get("FOLIA_LIBRARY_ROOT")
    if env_root:
        return Path(env_root).expanduser().resolve()

    discovered = _discover_config()
    if discovered:
        _, library_root = discovered
        return library_root

    raise ConfigurationError(
        "No library root configured. Options:\n"
        "  1. Pass --root /path/to/library\n"
        "  2. Set FOLIA_LIBRARY_ROOT to an existing directory\n"
        "  3. Create folia.config.json with {\"libraryRoot\": \"...\"}"
    )


def _discover_config(
    start_dir: Path | None = None, max_depth: int = MAX_CONFIG_SEARCH_DEPTH
) -> tuple[Path, Path] | None:
    """Walk up from start_dir looking for a config file naming the library root.

    Args:
        start_dir: Directory to start from (defaults to cwd)
        max_depth: Maximum directories to traverse up

    Returns:
        Tuple of (config_path, library_root) if found, None otherwise.
    """
    import yaml

    current = Path(start_dir or os.getcwd()).resolve()

    for _ in range(max_depth):
        for filename in CONFIG_FILENAMES:
            config_file = current / filename
            if not config_file.is_file():
                continue
            try:
                data = yaml.safe_load(config_file.read_text(encoding="utf-8")) or {}
            except (OSError, yaml.YAMLError):
                continue
            if not isinstance(data, dict):
                continue
            value = data.get("libraryRoot", data.get("library_root"))
            if isinstance(value, str) and value.strip():
                return config_file, (current / value).expanduser().resolve()

        parent = current.parent
        if parent == current:  # Reached filesystem root
            break
        current = parent

    return None


def get_api_token() -> str | None:
    """Bearer token required by the HTTP surface, or None when open."""
    token = os.environ.get("FOLIA_API_TOKEN", "").strip()
    return token or None


# =============================================================================
# Documents
# =============================================================================

# Only files carrying this extension are documents; everything else is
# invisible to the tree, the collections and search.
DOCUMENT_EXTENSION = ".md"

# Slug used when a user-entered name contains no slug-safe characters.
UNTITLED_SLUG = "untitled"


# =============================================================================
# Snapshot
# =============================================================================

# Number of most-recently-modified documents kept in a snapshot.
RECENT_PAGES_LIMIT = 6

# Seconds to wait for the filesystem observer thread to stop on teardown.
WATCH_STOP_TIMEOUT = 5.0


# =============================================================================
# Search
# =============================================================================

# Maximum distinct files returned by a content search, library-wide.
SEARCH_MATCH_LIMIT = 200

# Maximum bytes of matcher output read before the search stops early.
# Keeps a pathological query (matching huge lines) from growing memory.
SEARCH_OUTPUT_LIMIT = 1024 * 1024
