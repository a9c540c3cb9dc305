"""Tests for the keyword index, the workspace scanner and the strategy chain."""

import pytest

from toolgate.cancellation import CancellationToken
from toolgate.search import (
    KeywordIndex,
    SearchService,
    SearchStrategy,
    WorkspaceScanner,
    iter_files,
    run_strategies,
)
from toolgate.types import Resource


def _names(resources):
    return [r.name for r in resources]


class TestIterFiles:
    """Tests for iter_files."""

    def test_skips_heavy_directories(self, project):
        """node_modules and .git are never walked."""
        (project / "node_modules" / "pkg").mkdir(parents=True)
        (project / "node_modules" / "pkg" / "index.js").write_text("x")
        (project / ".git").mkdir()
        (project / ".git" / "HEAD").write_text("ref")
        paths = [p.name for p in iter_files([Resource.file(project)])]
        assert "index.js" not in paths
        assert "HEAD" not in paths
        assert "app.py" in paths

    def test_stops_when_cancelled(self, project):
        """A cancelled token ends the walk."""
        token = CancellationToken()
        token.cancel()
        assert list(iter_files([Resource.file(project)], token)) == []


class TestWorkspaceScanner:
    """Tests for WorkspaceScanner."""

    def test_file_search_ranking(self, workspace, project):
        """Exact names beat prefixes, which beat substrings."""
        (project / "app").mkdir()
        (project / "app" / "x.txt").write_text("")
        (project / "application.py").write_text("")
        (project / "myapp.py").write_text("")
        names = _names(WorkspaceScanner(workspace).file_search("app.py"))
        assert names[0] == "app.py"
        assert "myapp.py" in names

    def test_file_search_is_case_insensitive(self, workspace):
        """Name matching ignores case."""
        assert _names(WorkspaceScanner(workspace).file_search("README")) == ["README.md"]
        assert _names(WorkspaceScanner(workspace).file_search("readme")) == ["README.md"]

    def test_file_search_include_pattern(self, workspace):
        """include_pattern restricts results by relative path glob."""
        scanner = WorkspaceScanner(workspace)
        names = _names(scanner.file_search("", include_pattern="src/**/*.py, src/*.py"))
        assert sorted(names) == ["app.py", "util.py"]
        assert _names(scanner.file_search("", include_pattern="**/*.md")) == ["README.md", "guide.md"]

    def test_file_search_matches_path(self, workspace):
        """A query matching a folder name finds the files inside it."""
        assert _names(WorkspaceScanner(workspace).file_search("docs")) == ["guide.md"]

    def test_text_search_literal(self, workspace):
        """Literal search is a plain substring match."""
        assert _names(WorkspaceScanner(workspace).text_search("hello world", False)) == ["app.py"]

    def test_text_search_regex(self, workspace):
        """Regex search uses re.search over the whole text."""
        hits = WorkspaceScanner(workspace).text_search(r"def \w+\(\)", True)
        assert sorted(_names(hits)) == ["app.py", "util.py"]

    def test_text_search_skips_binary_files(self, workspace, project):
        """Files with NUL bytes are not searched."""
        (project / "blob.bin").write_bytes(b"hello world\0\1\2")
        assert _names(WorkspaceScanner(workspace).text_search("hello world", False)) == ["app.py"]

    def test_text_search_in_folder(self, workspace, project):
        """Searching a folder only looks inside it."""
        hits = WorkspaceScanner(workspace).text_search(
            "python", False, folders=[Resource.file(project / "src")]
        )
        assert hits == []


class TestKeywordIndex:
    """Tests for KeywordIndex."""

    def test_unbuilt_index_is_empty(self, workspace):
        """Queries return nothing until build() runs."""
        index = KeywordIndex(workspace)
        assert index.is_built is False
        assert index.query("hello", 10) == []

    def test_build_and_query(self, workspace):
        """Results are ordered by the fraction of query words matched."""
        index = KeywordIndex(workspace)
        assert index.build() == 4
        results = index.query("hello python", 10)
        assert len(results) == 2
        assert {p.rsplit("/", 1)[-1] for p in results} == {"app.py", "guide.md"}

    def test_update_and_remove(self, workspace, project):
        """update() and remove() keep the index in step with edits."""
        index = KeywordIndex(workspace)
        index.build()
        resource = Resource.file(project / "src" / "util.py")
        index.update(resource, "zebra")
        assert index.query("zebra", 5) == [resource.path]
        index.remove(resource)
        assert index.query("zebra", 5) == []


class TestRunStrategies:
    """Tests for the strategy chain."""

    @pytest.mark.asyncio
    async def test_first_non_empty_wins(self):
        """Later tiers are not tried once one answers."""
        calls = []

        async def first():
            calls.append("first")
            return ["a"]

        async def second():
            calls.append("second")
            return ["b"]

        name, results = await run_strategies([SearchStrategy("first", first), SearchStrategy("second", second)])
        assert (name, results) == ("first", ["a"])
        assert calls == ["first"]

    @pytest.mark.asyncio
    async def test_empty_and_failing_tiers_fall_back(self):
        """An empty or failing tier hands over to the next."""
        async def empty():
            return []

        async def broken():
            raise RuntimeError("index offline")

        async def last():
            return ["z"]

        strategies = [SearchStrategy("empty", empty), SearchStrategy("broken", broken), SearchStrategy("last", last)]
        assert await run_strategies(strategies) == ("last", ["z"])

    @pytest.mark.asyncio
    async def test_last_tier_errors_propagate(self):
        """The final tier's failure is not swallowed."""
        async def broken():
            raise RuntimeError("scan failed")

        with pytest.raises(RuntimeError, match="scan failed"):
            await run_strategies([SearchStrategy("only", broken)])


class TestSearchService:
    """Tests for SearchService."""

    @pytest.mark.asyncio
    async def test_empty_index_falls_back_to_scan(self, workspace):
        """An unbuilt index still finds results through the scan."""
        service = SearchService(workspace, index=KeywordIndex(workspace))
        result = await service.search_for_files("hello", False, None, 1)
        assert result.source == "scan"
        assert _names(result.resources) == ["app.py"]

    @pytest.mark.asyncio
    async def test_built_index_answers(self, workspace):
        """A built index is used for whole-workspace literal queries."""
        index = KeywordIndex(workspace)
        index.build()
        service = SearchService(workspace, index=index)
        result = await service.search_for_files("hello", False, None, 1)
        assert result.source == "index"
        assert _names(result.resources) == ["app.py"]

    @pytest.mark.asyncio
    async def test_regex_skips_index(self, workspace):
        """Regex queries always scan."""
        index = KeywordIndex(workspace)
        index.build()
        service = SearchService(workspace, index=index)
        result = await service.search_for_files("hel+o", True, None, 1)
        assert result.source == "scan"
        assert _names(result.resources) == ["app.py"]

    @pytest.mark.asyncio
    async def test_scan_pagination(self, workspace, project):
        """Scan results are paginated with the same semantics as the index."""
        for i in range(5):
            (project / f"note{i}.txt").write_text("needle")
        service = SearchService(workspace, page_size=2)
        first = await service.search_for_files("needle", False, None, 1)
        last = await service.search_for_files("needle", False, None, 3)
        assert len(first.resources) == 2 and first.has_next_page is True
        assert len(last.resources) == 1 and last.has_next_page is False

    @pytest.mark.asyncio
    async def test_find_by_basename(self, workspace, project):
        """A wrong directory is recovered by the file's name."""
        missing = Resource.file(project / "lib" / "util.py")
        found = await SearchService(workspace).find_by_basename(missing)
        assert found == Resource.file(project / "src" / "util.py")

    @pytest.mark.asyncio
    async def test_search_pathnames(self, workspace):
        """search_pathnames returns the scanner's ranking, paginated."""
        result = await SearchService(workspace).search_pathnames("util", None, 1)
        assert _names(result.resources) == ["util.py"]
        assert result.has_next_page is False

    @pytest.mark.asyncio
    async def test_index_pagination_reports_next_page(self, workspace, project):
        """The index is asked for enough hits to know a later page exists."""
        for i in range(5):
            (project / f"note{i}.txt").write_text("needle")
        index = KeywordIndex(workspace)
        index.build()
        service = SearchService(workspace, index=index, page_size=2)
        first = await service.search_for_files("needle", False, None, 1)
        second = await service.search_for_files("needle", False, None, 2)
        last = await service.search_for_files("needle", False, None, 3)
        assert first.source == "index"
        assert len(first.resources) == 2 and first.has_next_page is True
        assert len(second.resources) == 2 and second.has_next_page is True
        assert len(last.resources) == 1 and last.has_next_page is False
