"""Shared test fixtures for the folia test suite.

Design:
- library: isolated library root in a temp directory, FOLIA_LIBRARY_ROOT set
- seeded_library: library with a few folders and pages with known mtimes
- ops: LibraryOperations bound to the temp library
- Async tests use pytest-asyncio markers
"""

import logging
import os
from pathlib import Path

import pytest
from click.testing import CliRunner

from folia.operations import LibraryOperations


# ─────────────────────────────────────────────────────────────────────────────
# Core Fixtures
# ─────────────────────────────────────────────────────────────────────────────


@pytest.fixture(autouse=True)
def reset_logging():
    """Drop handlers configure_logging() attached during a test."""
    logger = logging.getLogger("folia")
    handlers = list(logger.handlers)
    yield
    for handler in logger.handlers[:]:
        if handler not in handlers:
            logger.removeHandler(handler)
    logger.propagate = True


@pytest.fixture
def runner() -> CliRunner:
    """CLI runner with isolated environment."""
    return CliRunner()


@pytest.fixture
def library(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Create an empty library root and point FOLIA_LIBRARY_ROOT at it.

    Usage:
        def test_something(library):
            (library / "notes").mkdir()
    """
    root = tmp_path / "library"
    root.mkdir()
    monkeypatch.setenv("FOLIA_LIBRARY_ROOT", str(root))
    return root


@pytest.fixture
def seeded_library(library: Path) -> Path:
    """Library with sample content.

    Creates:
    - notes/todo.md        (mtime 1000)
    - notes/ideas.md       (mtime 2000)
    - notes/deep/plan.md   (mtime 3000)
    - journal/day-one.md   (mtime 4000)
    - readme.md            (mtime 5000, at the root: not in any collection)
    """
    create_page(library, "notes/todo.md", "# Todo\n- buy milk\n", mtime=1000)
    create_page(library, "notes/ideas.md", "# Ideas\n", mtime=2000)
    create_page(library, "notes/deep/plan.md", "# Plan\n", mtime=3000)
    create_page(library, "journal/day-one.md", "# Day one\n", mtime=4000)
    create_page(library, "readme.md", "# Readme\n", mtime=5000)
    return library


@pytest.fixture
def ops(library: Path) -> LibraryOperations:
    """Operation handlers for the temp library, caller always authorized."""
    return LibraryOperations(root=library)


@pytest.fixture
def cli_invoke(runner: CliRunner, library: Path):
    """Helper for invoking the CLI against the temp library.

    Usage:
        def test_tree(cli_invoke):
            result = cli_invoke(["tree"])
            assert result.exit_code == 0
    """
    from folia.cli import cli

    def _invoke(args: list[str], input: str | None = None):
        return runner.invoke(
            cli,
            args,
            input=input,
            catch_exceptions=False,
            env={"FOLIA_LIBRARY_ROOT": str(library)},
        )

    return _invoke


# ─────────────────────────────────────────────────────────────────────────────
# Helper Functions (for test code, not fixtures)
# ─────────────────────────────────────────────────────────────────────────────


def create_page(root: Path, path: str, content: str = "", mtime: float | None = None) -> Path:
    """Write a page (creating parent folders), optionally pinning its mtime.

    Usage in tests:
        from conftest import create_page
        create_page(library, "notes/todo.md", "content", mtime=1000)
    """
    page = root / path
    page.parent.mkdir(parents=True, exist_ok=True)
    page.write_text(content, encoding="utf-8")
    if mtime is not None:
        os.utime(page, (mtime, mtime))
    return page
