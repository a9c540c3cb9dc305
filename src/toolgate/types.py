"""
Core types for the tool gateway.

These are the data structures that flow between the model-facing call
surface, the executors, and the result serializer. They are intentionally
plain dataclasses: a tool call comes in as an untyped bag, leaves the
validator as a typed params object, and comes back from the executor as
one of the result records below.
"""

import os
import posixpath
import urllib.parse
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any


class ToolName(str, Enum):
    """The closed set of built-in tools."""
    READ_FILE = "read_file"
    LS_DIR = "ls_dir"
    GET_DIR_TREE = "get_dir_tree"
    SEARCH_PATHNAMES_ONLY = "search_pathnames_only"
    SEARCH_FOR_FILES = "search_for_files"
    SEARCH_IN_FILE = "search_in_file"
    READ_LINT_ERRORS = "read_lint_errors"
    REWRITE_FILE = "rewrite_file"
    EDIT_FILE = "edit_file"
    CREATE_FILE_OR_FOLDER = "create_file_or_folder"
    DELETE_FILE_OR_FOLDER = "delete_file_or_folder"
    RUN_COMMAND = "run_command"
    RUN_NL_COMMAND = "run_nl_command"
    OPEN_PERSISTENT_TERMINAL = "open_persistent_terminal"
    RUN_PERSISTENT_COMMAND = "run_persistent_command"
    KILL_PERSISTENT_TERMINAL = "kill_persistent_terminal"
    WEB_SEARCH = "web_search"
    BROWSE_URL = "browse_url"


class ApprovalType(str, Enum):
    """What kind of user approval a tool needs before it runs."""
    EDITS = "edits"
    TERMINAL = "terminal"


APPROVAL_TYPE_OF_TOOL: dict[ToolName, ApprovalType] = {
    ToolName.CREATE_FILE_OR_FOLDER: ApprovalType.EDITS,
    ToolName.DELETE_FILE_OR_FOLDER: ApprovalType.EDITS,
    ToolName.REWRITE_FILE: ApprovalType.EDITS,
    ToolName.EDIT_FILE: ApprovalType.EDITS,
    ToolName.RUN_COMMAND: ApprovalType.TERMINAL,
    ToolName.RUN_NL_COMMAND: ApprovalType.TERMINAL,
    ToolName.RUN_PERSISTENT_COMMAND: ApprovalType.TERMINAL,
    ToolName.OPEN_PERSISTENT_TERMINAL: ApprovalType.TERMINAL,
    ToolName.KILL_PERSISTENT_TERMINAL: ApprovalType.TERMINAL,
}


@dataclass(frozen=True)
class Resource:
    """
    An absolute resource handle.

    Local files use the "file" scheme and an absolute, normalized path.
    Anything else (e.g. "vscode-remote://host/x") keeps its scheme and
    authority so the sandbox check can reject it.
    """
    scheme: str
    path: str
    authority: str = ""

    @classmethod
    def file(cls, path: str | Path) -> "Resource":
        return cls(scheme="file", path=os.path.normpath(os.path.abspath(str(path))))

    @classmethod
    def parse(cls, uri: str) -> "Resource":
        """Parse a "scheme://authority/path" locator."""
        parts = urllib.parse.urlsplit(uri)
        if not parts.scheme:
            raise ValueError(f"Missing scheme in {uri!r}")
        path = urllib.parse.unquote(parts.path) or "/"
        if parts.scheme == "file":
            return cls.file(path)
        return cls(
            scheme=parts.scheme,
            authority=parts.netloc,
            path=posixpath.normpath(path),
        )

    @property
    def is_local(self) -> bool:
        return self.scheme == "file"

    @property
    def fs_path(self) -> Path:
        return Path(self.path)

    @property
    def name(self) -> str:
        return os.path.basename(self.path.rstrip("/\\")) or self.path

    def joinpath(self, *parts: str) -> "Resource":
        joined = os.path.normpath(os.path.join(self.path, *parts))
        return Resource(scheme=self.scheme, path=joined, authority=self.authority)

    def is_relative_to(self, other: "Resource") -> bool:
        """True if this handle is other or lies underneath it."""
        if (self.scheme, self.authority) != (other.scheme, other.authority):
            return False
        if self.path == other.path:
            return True
        prefix = other.path.rstrip(os.sep) + os.sep
        return self.path.startswith(prefix)

    def __str__(self) -> str:
        if self.is_local:
            return self.path
        return f"{self.scheme}://{self.authority}{self.path}"


@dataclass
class ToolCall:
    """
    A request from the model to run one tool.

    arguments is the raw, untyped parameter bag exactly as the model
    produced it. Nothing downstream of the validator sees it.
    """
    id: str
    name: str
    arguments: dict[str, Any]


@dataclass
class ToolResult:
    """
    The text the gateway hands back for one tool call.

    content is what goes into the model's context; on failure it carries
    the error message so the model can correct itself.
    """
    tool_call_id: str
    content: str
    success: bool = True
    error: str | None = None


@dataclass(frozen=True)
class ResolveReason:
    """Why a terminal run resolved. "timeout" is a normal outcome, not an error."""
    kind: str
    exit_code: int | None = None

    @classmethod
    def done(cls, exit_code: int) -> "ResolveReason":
        return cls(kind="done", exit_code=exit_code)

    @classmethod
    def timeout(cls) -> "ResolveReason":
        return cls(kind="timeout")

    @property
    def is_done(self) -> bool:
        return self.kind == "done"

    @property
    def is_timeout(self) -> bool:
        return self.kind == "timeout"


@dataclass(frozen=True)
class LintError:
    code: str
    message: str
    start_line: int
    end_line: int


@dataclass(frozen=True)
class DirectoryEntry:
    resource: Resource
    name: str
    is_directory: bool
    is_symlink: bool = False


@dataclass(frozen=True)
class LineMatch:
    line_number: int
    text: str


@dataclass(frozen=True)
class SearchHit:
    """One web search result."""
    title: str
    snippet: str
    url: str


# Results, one per tool (or tool family)


@dataclass
class ReadFileResult:
    resource: Resource
    file_contents: str
    total_file_len: int
    total_num_lines: int
    has_next_page: bool


@dataclass
class LsDirResult:
    children: list[DirectoryEntry]
    has_next_page: bool
    has_prev_page: bool
    items_remaining: int


@dataclass
class DirTreeResult:
    text: str


@dataclass
class PathListResult:
    """Result of search_pathnames_only and search_for_files."""
    resources: list[Resource]
    has_next_page: bool
    source: str = "scan"


@dataclass
class SearchInFileResult:
    resource: Resource
    matches: list[LineMatch]


@dataclass
class LintErrorsResult:
    lint_errors: list[LintError] | None


@dataclass
class EmptyResult:
    pass


@dataclass
class TerminalRunResult:
    output: str
    reason: ResolveReason


@dataclass
class NLCommandResult:
    output: str
    reason: ResolveReason
    parsed_command: str
    explanation: str


@dataclass
class OpenTerminalResult:
    terminal_id: str


@dataclass
class WebSearchResult:
    results: list[SearchHit] = field(default_factory=list)


@dataclass
class BrowseResult:
    content: str
    url: str
    title: str | None = None
    published_date: str | None = None
