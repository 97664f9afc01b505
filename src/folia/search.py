"""Content search: fixed-string, line-oriented, first match per document.

The scan is delegated to ``grep`` when available so file contents never pass
through this process. Output is read incrementally and the matcher is
terminated once enough distinct files have been found.
"""

from __future__ import annotations

import asyncio
import logging
import os
import shutil
from pathlib import Path

from .config import DOCUMENT_EXTENSION, SEARCH_MATCH_LIMIT, SEARCH_OUTPUT_LIMIT

log = logging.getLogger(__name__)


class SearchFailed(OSError):
    """The matcher could not scan the library."""


def _relative_match(root: Path, raw: str) -> str | None:
    """Map a matcher-reported path back to a library-relative posix path.

    Returns None for non-documents and for anything under a hidden entry.
    Hidden entries are filtered here rather than with grep excludes, which
    also apply to the root argument and its ancestors.
    """
    relative = Path(os.path.relpath(raw, root))
    if not relative.parts or any(part.startswith(".") for part in relative.parts):
        return None
    if not relative.name.endswith(DOCUMENT_EXTENSION):
        return None
    return relative.as_posix()


async def grep_matches(
    grep: str,
    root: Path,
    needle: str,
    limit: int = SEARCH_MATCH_LIMIT,
    output_limit: int = SEARCH_OUTPUT_LIMIT,
) -> list[str]:
    """Run grep over the library and collect matching document paths.

    Symlinks below the root are not followed (``-r``, not ``-R``). Hidden
    entries are dropped from the output, mirroring what the scanner shows.

    Raises:
        SearchFailed: If grep reports an error before producing any match.
    """
    proc = await asyncio.create_subprocess_exec(
        grep,
        "-r",  # recurse, no symlink following
        "-l",  # file names only: stops reading each file at its first match
        "-I",  # skip binary files
        "--null",  # NUL-terminated names
        "-F",  # fixed string
        f"--include=*{DOCUMENT_EXTENSION}",
        "--",
        needle,
        str(root),
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.DEVNULL,
    )

    matches: dict[str, None] = {}
    consumed = 0
    stopped_early = False
    try:
        while True:
            if len(matches) >= limit or consumed >= output_limit:
                stopped_early = True
                break
            try:
                chunk = await proc.stdout.readuntil(b"\0")
            except asyncio.IncompleteReadError as e:
                chunk = e.partial
                if not chunk:
                    break
            consumed += len(chunk)
            name = chunk.rstrip(b"\0").decode(errors="surrogateescape")
            relative = _relative_match(root, name)
            if relative is not None:
                matches[relative] = None
    finally:
        if proc.returncode is None and stopped_early:
            try:
                proc.kill()
            except ProcessLookupError:
                pass
        returncode = await proc.wait()

    if returncode == 2 and not matches and not stopped_early:
        raise SearchFailed(f"grep failed for {root}")
    return list(matches)


def scan_matches(root: Path, needle: str, limit: int = SEARCH_MATCH_LIMIT) -> list[str]:
    """Line-by-line scan used when grep is unavailable.

    Same rules as the grep invocation: documents only, symlinks and hidden
    entries skipped, one hit per file, files read as a stream.
    """
    if not root.is_dir():
        raise SearchFailed(f"Library root missing: {root}")

    matches: list[str] = []
    for dirpath, dirnames, filenames in os.walk(root, followlinks=False):
        dirnames[:] = sorted(d for d in dirnames if not d.startswith("."))
        for filename in sorted(filenames):
            if filename.startswith(".") or not filename.endswith(DOCUMENT_EXTENSION):
                continue
            path = Path(dirpath) / filename
            if path.is_symlink():
                continue
            try:
                with path.open(encoding="utf-8", errors="replace") as fh:
                    found = any(needle in line for line in fh)
            except OSError as e:
                log.debug("Skipping unreadable %s: %s", path, e)
                continue
            if found:
                matches.append(path.relative_to(root).as_posix())
                if len(matches) >= limit:
                    return matches
    return matches


async def search_library(root: Path, needle: str, limit: int = SEARCH_MATCH_LIMIT) -> list[str]:
    """Return up to ``limit`` document paths containing ``needle`` on some line."""
    grep = shutil.which("grep")
    if grep is None:
        log.info("grep not found on PATH; using in-process content scan")
        return await asyncio.to_thread(scan_matches, root, needle, limit)
    return await grep_matches(grep, root, needle, limit=limit)
