"""Tests for content search (grep-backed and in-process fallback)."""

import shutil

import pytest

from conftest import create_page
from folia.errors import ErrorKind
from folia.operations import LibraryOperations
from folia.search import SearchFailed, scan_matches, search_library

requires_grep = pytest.mark.skipif(shutil.which("grep") is None, reason="grep not installed")


@pytest.fixture(params=["grep", "fallback"])
def matcher(request, monkeypatch):
    """Run each search test against grep and the in-process scan."""
    if request.param == "grep":
        if shutil.which("grep") is None:
            pytest.skip("grep not installed")
    else:
        monkeypatch.setattr("folia.search.shutil.which", lambda name: None)
    return request.param


class TestSearchLibrary:
    """Fixed-string, case-sensitive, one hit per document."""

    @pytest.mark.asyncio
    async def test_finds_match_on_any_line(self, library, matcher):
        create_page(library, "notes/list.md", "# List\n- todo: call mom\n")
        create_page(library, "notes/other.md", "nothing\n")

        assert await search_library(library, "todo") == ["notes/list.md"]

    @pytest.mark.asyncio
    async def test_case_sensitive(self, library, matcher):
        create_page(library, "a.md", "TODO later\n")

        assert await search_library(library, "todo") == []

    @pytest.mark.asyncio
    async def test_fixed_string_not_regex(self, library, matcher):
        create_page(library, "a.md", "price: $5.00 (approx)\n")
        create_page(library, "b.md", "price: 5x00\n")

        assert await search_library(library, "5.00 (") == ["a.md"]

    @pytest.mark.asyncio
    async def test_leading_dash_is_not_an_option(self, library, matcher):
        create_page(library, "a.md", "- item\n")

        assert await search_library(library, "- item") == ["a.md"]

    @pytest.mark.asyncio
    async def test_documents_only(self, library, matcher):
        create_page(library, "notes/a.md", "needle\n")
        (library / "notes" / "b.txt").write_text("needle\n")

        assert await search_library(library, "needle") == ["notes/a.md"]

    @pytest.mark.asyncio
    async def test_hidden_skipped(self, library, matcher):
        create_page(library, ".prefs/a.md", "needle\n")
        create_page(library, ".b.md", "needle\n")
        create_page(library, "c.md", "needle\n")

        assert await search_library(library, "needle") == ["c.md"]

    @pytest.mark.asyncio
    async def test_each_file_once(self, library, matcher):
        create_page(library, "a.md", "needle\nneedle\nneedle\n")

        assert await search_library(library, "needle") == ["a.md"]

    @pytest.mark.asyncio
    async def test_limit(self, library, matcher):
        for i in range(12):
            create_page(library, f"notes/p{i:02d}.md", "needle\n")

        matches = await search_library(library, "needle", limit=5)

        assert len(matches) == 5
        assert len(set(matches)) == 5
        assert all(m.startswith("notes/p") for m in matches)

    @pytest.mark.asyncio
    async def test_no_matches(self, library, matcher):
        create_page(library, "a.md", "hay\n")

        assert await search_library(library, "needle") == []


class TestHiddenRootLocations:
    """Libraries living under dot-named directories are searched normally."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("location", [".folia", ".config/library"])
    async def test_root_under_dot_directory(self, tmp_path, matcher, location):
        root = tmp_path / location
        create_page(root, "notes/todo.md", "# Notes\ntodo here\n")
        create_page(root, "notes/.draft.md", "todo hidden\n")

        assert await search_library(root, "todo") == ["notes/todo.md"]

    @pytest.mark.asyncio
    async def test_operation_under_dot_directory(self, tmp_path, matcher):
        root = tmp_path / ".folia"
        create_page(root, "notes/todo.md", "# Notes\ntodo here\n")

        result = await LibraryOperations(root=root).search("todo")

        assert result.ok is True
        assert result.matches == ["notes/todo.md"]


class TestScanMatches:
    def test_missing_root(self, tmp_path):
        with pytest.raises(SearchFailed):
            scan_matches(tmp_path / "missing", "x")


@requires_grep
class TestGrepFailures:
    @pytest.mark.asyncio
    async def test_missing_root_raises(self, tmp_path):
        with pytest.raises(SearchFailed):
            await search_library(tmp_path / "missing", "x")


class TestSearchOperation:
    """Query handling in LibraryOperations.search."""

    @pytest.mark.asyncio
    async def test_default_cap_is_200(self, library, ops, matcher):
        for i in range(210):
            create_page(library, f"bulk/p{i:03d}.md", "needle\n")

        result = await ops.search("needle")

        assert result.ok is True
        assert len(result.matches) == 200

    @pytest.mark.asyncio
    @pytest.mark.parametrize("query", ["", "   "])
    async def test_empty_query(self, library, ops, query):
        create_page(library, "a.md", "anything\n")

        result = await ops.search(query)

        assert result.ok is True
        assert result.matches == []

    @pytest.mark.asyncio
    async def test_query_trimmed(self, library, ops):
        create_page(library, "a.md", "needle\n")

        result = await ops.search("  needle  ")

        assert result.matches == ["a.md"]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("query", ["two\nlines", "carriage\rreturn"])
    async def test_multiline_rejected(self, library, ops, query):
        result = await ops.search(query)

        assert result.ok is False
        assert result.error is ErrorKind.INVALID_QUERY

    @pytest.mark.asyncio
    async def test_missing_root_is_read_failed(self, tmp_path, matcher):
        from folia.operations import LibraryOperations

        ops = LibraryOperations(root=tmp_path / "missing")

        result = await ops.search("needle")

        assert result.ok is False
        assert result.error is ErrorKind.READ_FAILED
