"""Tests for result serialization."""

from toolgate.config import FileToolConfig, TerminalConfig
from toolgate.serializer import NO_LINT_ERRORS, RENDER_ERROR, ResultSerializer
from toolgate.types import (
    BrowseResult,
    DirectoryEntry,
    EmptyResult,
    LineMatch,
    LintError,
    LintErrorsResult,
    LsDirResult,
    NLCommandResult,
    OpenTerminalResult,
    PathListResult,
    ReadFileResult,
    ResolveReason,
    Resource,
    SearchHit,
    SearchInFileResult,
    TerminalRunResult,
    ToolName,
    WebSearchResult,
)
from toolgate.validation import (
    BrowseUrlParams,
    CreateParams,
    KillTerminalParams,
    LsDirParams,
    RewriteFileParams,
    RunPersistentCommandParams,
    WebSearchParams,
)

ROOT = Resource.file("/work/proj")
APP = ROOT.joinpath("src", "app.py")
LINT = [LintError(code="E1", message="(error) undefined name 'x'", start_line=3, end_line=4)]


class TestFileResults:
    """Tests for file tool rendering."""

    def test_read_file_single_page(self):
        """Contents are fenced under the path."""
        result = ReadFileResult(APP, "print(1)", total_file_len=8, total_num_lines=1, has_next_page=False)
        text = ResultSerializer().to_text(ToolName.READ_FILE, None, result)
        assert text == "/work/proj/src/app.py\n```\nprint(1)\n```"

    def test_read_file_paginated(self):
        """Paginated reads carry the next-page marker and a size hint."""
        result = ReadFileResult(APP, "abc", total_file_len=900, total_num_lines=40, has_next_page=True)
        text = ResultSerializer().to_text("read_file", None, result)
        assert "(more on next page...)" in text
        assert "this file has 40 lines, or 900 characters." in text

    def test_ls_dir(self):
        """ls_dir renders a one-level tree with a trailer for remaining items."""
        children = [
            DirectoryEntry(ROOT.joinpath("src"), "src", is_directory=True),
            DirectoryEntry(ROOT.joinpath("README.md"), "README.md", is_directory=False),
        ]
        result = LsDirResult(children, has_next_page=True, has_prev_page=False, items_remaining=3)
        text = ResultSerializer().to_text(ToolName.LS_DIR, LsDirParams(ROOT, 1), result)
        assert text == (
            "/work/proj/\n"
            "├── src/\n"
            "├── README.md\n"
            "└── (3 more items not shown...)"
        )

    def test_ls_dir_empty(self):
        """An empty folder says so."""
        result = LsDirResult([], has_next_page=False, has_prev_page=False, items_remaining=0)
        text = ResultSerializer().to_text(ToolName.LS_DIR, LsDirParams(ROOT, 1), result)
        assert text == "/work/proj/\n└── (empty folder)"

    def test_path_list(self):
        """Path lists are newline-joined with the page marker."""
        result = PathListResult([APP, ROOT.joinpath("README.md")], has_next_page=True)
        text = ResultSerializer().to_text(ToolName.SEARCH_FOR_FILES, None, result)
        assert text == "/work/proj/src/app.py\n/work/proj/README.md\n\n(more on next page...)"

    def test_search_in_file(self):
        """Matches are listed with their line numbers."""
        result = SearchInFileResult(APP, [LineMatch(2, "def main():"), LineMatch(5, "main()")])
        text = ResultSerializer().to_text(ToolName.SEARCH_IN_FILE, None, result)
        assert text == "Line 2:\n```\ndef main():\n```\n\nLine 5:\n```\nmain()\n```"

    def test_lint_errors(self):
        """Lint errors are numbered blocks."""
        text = ResultSerializer().to_text(ToolName.READ_LINT_ERRORS, None, LintErrorsResult(LINT))
        assert text == "Error 1:\nLines Affected: 3-4\nError message:(error) undefined name 'x'"
        assert ResultSerializer().to_text(ToolName.READ_LINT_ERRORS, None, LintErrorsResult(None)) == NO_LINT_ERRORS

    def test_edit_with_and_without_lint(self):
        """Edits report success and the lint summary."""
        params = RewriteFileParams(APP, "x")
        serializer = ResultSerializer()
        clean = serializer.to_text(ToolName.REWRITE_FILE, params, LintErrorsResult(None))
        dirty = serializer.to_text(ToolName.EDIT_FILE, params, LintErrorsResult(LINT))
        assert clean == "Change successfully made to /work/proj/src/app.py. No lint errors found."
        assert dirty.startswith("Change successfully made to /work/proj/src/app.py. Lint errors found after change:")

    def test_edit_without_lint_setting(self):
        """With lint reporting off only the success line remains."""
        serializer = ResultSerializer(files=FileToolConfig(include_lint_errors=False))
        text = serializer.to_text(ToolName.REWRITE_FILE, RewriteFileParams(APP, "x"), LintErrorsResult(LINT))
        assert text == "Change successfully made to /work/proj/src/app.py."

    def test_create(self):
        """create reports the URI."""
        text = ResultSerializer().to_text(ToolName.CREATE_FILE_OR_FOLDER, CreateParams(APP, False), EmptyResult())
        assert text == "URI /work/proj/src/app.py successfully created."


class TestTerminalResults:
    """Tests for terminal tool rendering."""

    def test_done(self):
        """Finished runs end with their exit code."""
        result = TerminalRunResult("hi", ResolveReason.done(0))
        assert ResultSerializer().to_text(ToolName.RUN_COMMAND, None, result) == "hi\n(exit code 0)"

    def test_timeout(self):
        """Timed-out runs explain the inactivity kill."""
        serializer = ResultSerializer(terminal=TerminalConfig(inactive_seconds=8))
        text = serializer.to_text(ToolName.RUN_COMMAND, None, TerminalRunResult("partial", ResolveReason.timeout()))
        assert text.startswith("partial\nTerminal command ran, but was automatically killed after 8s of inactivity")

    def test_nl_command(self):
        """NL runs show the parsed command and explanation first."""
        result = NLCommandResult("a.txt", ResolveReason.done(0), "ls", 'Parsed "list files" to: ls')
        text = ResultSerializer().to_text(ToolName.RUN_NL_COMMAND, None, result)
        assert text == 'Parsed command: `ls`\nParsed "list files" to: ls\n\na.txt\n(exit code 0)'

    def test_persistent_timeout(self):
        """Background commands name the terminal and the window."""
        params = RunPersistentCommandParams("make", "persistent-1")
        result = TerminalRunResult("building", ResolveReason.timeout())
        text = ResultSerializer(terminal=TerminalConfig(background_check_seconds=5)).to_text(
            ToolName.RUN_PERSISTENT_COMMAND, params, result
        )
        assert text == (
            "building\nTerminal command is running in terminal persistent-1. "
            "The given outputs are the results after 5 seconds."
        )

    def test_open_and_kill(self):
        """Open and kill have fixed messages."""
        serializer = ResultSerializer()
        assert serializer.to_text(ToolName.OPEN_PERSISTENT_TERMINAL, None, OpenTerminalResult("persistent-2")) == (
            'Successfully created persistent terminal. persistentTerminalId="persistent-2"'
        )
        assert serializer.to_text(
            ToolName.KILL_PERSISTENT_TERMINAL, KillTerminalParams("persistent-2"), EmptyResult()
        ) == 'Successfully closed terminal "persistent-2".'


class TestNetworkResults:
    """Tests for network tool rendering."""

    def test_web_search(self):
        """Results are numbered blocks with title, URL and snippet."""
        result = WebSearchResult([SearchHit("Python", "A language.", "https://python.org")])
        text = ResultSerializer().to_text(ToolName.WEB_SEARCH, WebSearchParams("python", 5, False), result)
        assert text == "1. Python\n   URL: https://python.org\n   A language."

    def test_web_search_empty(self):
        """No results says so with the query."""
        text = ResultSerializer().to_text(ToolName.WEB_SEARCH, WebSearchParams("zzz", 5, False), WebSearchResult([]))
        assert text == 'No search results found for "zzz".'

    def test_browse_truncates_for_display(self):
        """Long pages are cut at the display cap."""
        serializer = ResultSerializer(files=FileToolConfig(browse_display_chars=5))
        result = BrowseResult(content="abcdefgh", url="https://a.test/", title="A")
        text = serializer.to_text(ToolName.BROWSE_URL, BrowseUrlParams("https://a.test/", False), result)
        assert text == "Title: A\n\nContent from https://a.test/:\n\nabcde\n\n... (content truncated)"

    def test_browse_shows_published_date(self):
        """A known publication date is printed under the title."""
        result = BrowseResult(content="body", url="https://a.test/", title="A", published_date="2025-07-04")
        text = ResultSerializer().to_text(ToolName.BROWSE_URL, BrowseUrlParams("https://a.test/", False), result)
        assert text == "Title: A\n\nPublished: 2025-07-04\n\nContent from https://a.test/:\n\nbody"


class TestRobustness:
    """Tests for deterministic and failure-safe rendering."""

    def test_same_inputs_same_text(self):
        """Rendering is a pure function of its inputs."""
        result = PathListResult([APP], has_next_page=False)
        serializer = ResultSerializer()
        assert serializer.to_text(ToolName.SEARCH_PATHNAMES_ONLY, None, result) == serializer.to_text(
            ToolName.SEARCH_PATHNAMES_ONLY, None, result
        )

    def test_mismatched_result_degrades(self):
        """A result the renderer cannot handle gives the fixed error string."""
        assert ResultSerializer().to_text(ToolName.READ_FILE, None, object()) == RENDER_ERROR

    def test_unknown_tool_degrades(self):
        """An unknown tool name does not raise."""
        assert ResultSerializer().to_text("nope", None, EmptyResult()) == RENDER_ERROR
