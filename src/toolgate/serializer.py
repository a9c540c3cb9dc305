"""
Result serialization.

Turns each tool's structured result into the text that goes back into the
model's context. Output depends only on the params and the result, so the
same call always renders the same text.
"""

import logging
from collections.abc import Callable
from typing import Any

from toolgate.config import FileToolConfig, TerminalConfig
from toolgate.directory import render_listing
from toolgate.types import (
    BrowseResult,
    DirTreeResult,
    LintError,
    LintErrorsResult,
    LsDirResult,
    NLCommandResult,
    OpenTerminalResult,
    PathListResult,
    ReadFileResult,
    SearchInFileResult,
    TerminalRunResult,
    ToolName,
    WebSearchResult,
)

logger = logging.getLogger(__name__)

RENDER_ERROR = "<Error getting string of result>"
NEXT_PAGE = "\n\n(more on next page...)"
NO_LINT_ERRORS = "No lint errors found."


def next_page_str(has_next_page: bool) -> str:
    return NEXT_PAGE if has_next_page else ""


def stringify_lint_errors(lint_errors: list[LintError], max_chars: int) -> str:
    return "\n\n".join(
        f"Error {i}:\nLines Affected: {e.start_line}-{e.end_line}\nError message:{e.message}"
        for i, e in enumerate(lint_errors, start=1)
    )[:max_chars]


class ResultSerializer:
    """Renders results as text. Never raises for a well-formed result."""

    def __init__(
        self,
        files: FileToolConfig | None = None,
        terminal: TerminalConfig | None = None,
    ) -> None:
        self.files = files or FileToolConfig()
        self.terminal = terminal or TerminalConfig()
        self._renderers: dict[ToolName, Callable[[Any, Any], str]] = {
            ToolName.READ_FILE: self._read_file,
            ToolName.LS_DIR: self._ls_dir,
            ToolName.GET_DIR_TREE: self._dir_tree,
            ToolName.SEARCH_PATHNAMES_ONLY: self._path_list,
            ToolName.SEARCH_FOR_FILES: self._path_list,
            ToolName.SEARCH_IN_FILE: self._search_in_file,
            ToolName.READ_LINT_ERRORS: self._lint_errors,
            ToolName.REWRITE_FILE: self._edit,
            ToolName.EDIT_FILE: self._edit,
            ToolName.CREATE_FILE_OR_FOLDER: self._created,
            ToolName.DELETE_FILE_OR_FOLDER: self._deleted,
            ToolName.RUN_COMMAND: self._run_command,
            ToolName.RUN_NL_COMMAND: self._run_nl_command,
            ToolName.OPEN_PERSISTENT_TERMINAL: self._open_terminal,
            ToolName.RUN_PERSISTENT_COMMAND: self._run_persistent_command,
            ToolName.KILL_PERSISTENT_TERMINAL: self._kill_terminal,
            ToolName.WEB_SEARCH: self._web_search,
            ToolName.BROWSE_URL: self._browse_url,
        }

    def to_text(self, tool_name: ToolName | str, params: Any, result: Any) -> str:
        try:
            renderer = self._renderers[ToolName(tool_name)]
            return renderer(params, result)
        except Exception:
            logger.exception(f"Could not render result of {tool_name}")
            return RENDER_ERROR

    # File tools

    def _read_file(self, params: Any, result: ReadFileResult) -> str:
        text = f"{result.resource.path}\n```\n{result.file_contents}\n```{next_page_str(result.has_next_page)}"
        if result.has_next_page:
            text += (
                f"\nMore info because truncated: this file has {result.total_num_lines} lines, "
                f"or {result.total_file_len} characters."
            )
        return text

    def _ls_dir(self, params: Any, result: LsDirResult) -> str:
        return render_listing(params.resource, result)

    def _dir_tree(self, params: Any, result: DirTreeResult) -> str:
        return result.text

    def _path_list(self, params: Any, result: PathListResult) -> str:
        return "\n".join(r.path for r in result.resources) + next_page_str(result.has_next_page)

    def _search_in_file(self, params: Any, result: SearchInFileResult) -> str:
        return "\n\n".join(f"Line {m.line_number}:\n```\n{m.text}\n```" for m in result.matches)

    def _lint_errors(self, params: Any, result: LintErrorsResult) -> str:
        if not result.lint_errors:
            return NO_LINT_ERRORS
        return stringify_lint_errors(result.lint_errors, self.files.file_page_chars)

    def _edit(self, params: Any, result: LintErrorsResult) -> str:
        lint = ""
        if self.files.include_lint_errors:
            if result.lint_errors:
                lint = (
                    " Lint errors found after change:\n"
                    f"{stringify_lint_errors(result.lint_errors, self.files.file_page_chars)}.\n"
                    "If this is related to a change made while calling this tool, "
                    "you might want to fix the error."
                )
            else:
                lint = f" {NO_LINT_ERRORS}"
        return f"Change successfully made to {params.resource.path}.{lint}"

    def _created(self, params: Any, result: Any) -> str:
        return f"URI {params.resource.path} successfully created."

    def _deleted(self, params: Any, result: Any) -> str:
        return f"URI {params.resource.path} successfully deleted."

    # Terminal tools

    def _inactivity_note(self) -> str:
        return (
            f"Terminal command ran, but was automatically killed after "
            f"{self.terminal.inactive_seconds:g}s of inactivity and did not finish successfully. "
            "To try with more time, open a persistent terminal and run the command there."
        )

    def _run_command(self, params: Any, result: TerminalRunResult) -> str:
        if result.reason.is_done:
            return f"{result.output}\n(exit code {result.reason.exit_code})"
        if result.reason.is_timeout:
            return f"{result.output}\n{self._inactivity_note()}"
        raise ValueError(f"Unexpected resolve reason: {result.reason.kind}")

    def _run_nl_command(self, params: Any, result: NLCommandResult) -> str:
        info = f"Parsed command: `{result.parsed_command}`\n{result.explanation}\n\n"
        return info + self._run_command(params, TerminalRunResult(result.output, result.reason))

    def _run_persistent_command(self, params: Any, result: TerminalRunResult) -> str:
        if result.reason.is_done:
            return f"{result.output}\n(exit code {result.reason.exit_code})"
        if result.reason.is_timeout:
            return (
                f"{result.output}\nTerminal command is running in terminal "
                f"{params.persistent_terminal_id}. The given outputs are the results after "
                f"{self.terminal.background_check_seconds:g} seconds."
            )
        raise ValueError(f"Unexpected resolve reason: {result.reason.kind}")

    def _open_terminal(self, params: Any, result: OpenTerminalResult) -> str:
        return f'Successfully created persistent terminal. persistentTerminalId="{result.terminal_id}"'

    def _kill_terminal(self, params: Any, result: Any) -> str:
        return f'Successfully closed terminal "{params.persistent_terminal_id}".'

    # Network tools

    def _web_search(self, params: Any, result: WebSearchResult) -> str:
        if not result.results:
            return f'No search results found for "{params.query}".'
        return "\n\n".join(
            f"{i}. {r.title}\n   URL: {r.url}\n   {r.snippet}"
            for i, r in enumerate(result.results, start=1)
        )

    def _browse_url(self, params: Any, result: BrowseResult) -> str:
        limit = self.files.browse_display_chars
        title = f"Title: {result.title}\n\n" if result.title else ""
        published = f"Published: {result.published_date}\n\n" if result.published_date else ""
        more = "\n\n... (content truncated)" if len(result.content) > limit else ""
        return f"{title}{published}Content from {result.url}:\n\n{result.content[:limit]}{more}"
