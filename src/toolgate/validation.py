"""
Parameter validation.

Raw tool parameters come straight out of a model and can be anything: the
wrong type, the string "null", a page number of "two". Each tool has one
validator here that turns the raw bag into a typed params object or raises
ValidationError with a message the model can act on. Every file-system
path is resolved through the Workspace and checked against its roots
before a params object is built, so executors never see an unchecked path.
"""

import json
import re
import urllib.parse
import uuid
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any

from toolgate.errors import ValidationError
from toolgate.types import Resource, ToolName
from toolgate.workspace import Workspace

_LEADING_INT = re.compile(r"^\s*([+-]?\d+)")


def is_falsy(value: Any) -> bool:
    """Empty values and the sentinel strings models emit for "nothing"."""
    return not value or value in ("null", "undefined")


def _type_name(value: Any) -> str:
    return type(value).__name__


def _dump(value: Any) -> str:
    return json.dumps(value, default=str)


def _parse_int(value: Any) -> int | None:
    """Lenient integer parsing: 3, 3.7 and "3 pages" all give 3."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        if value != value or value in (float("inf"), float("-inf")):
            return None
        return int(value)
    if isinstance(value, str):
        match = _LEADING_INT.match(value)
        return int(match.group(1)) if match else None
    return None


def validate_str(arg_name: str, value: Any) -> str:
    if value is None:
        raise ValidationError(f"Invalid LLM output: {arg_name} was null.")
    if not isinstance(value, str):
        raise ValidationError(
            f'Invalid LLM output format: {arg_name} must be a string, but its type is '
            f'"{_type_name(value)}". Full value: {_dump(value)}.'
        )
    return value


def validate_optional_str(arg_name: str, value: Any) -> str | None:
    if is_falsy(value):
        return None
    return validate_str(arg_name, value)


def validate_page_number(value: Any) -> int:
    if not value:
        return 1
    parsed = _parse_int(value)
    if parsed is None:
        raise ValidationError(f'Page number was not an integer: "{value}".')
    if parsed < 1:
        raise ValidationError(
            f'Invalid LLM output format: Specified page number must be 1 or greater: "{value}".'
        )
    return parsed


def validate_number(value: Any, default: int | None) -> int | None:
    """Parse an integer, falling back to default instead of failing."""
    if isinstance(value, bool) or is_falsy(value) and not isinstance(value, (int, float)):
        return default
    parsed = _parse_int(value)
    return default if parsed is None else parsed


def validate_boolean(value: Any, default: bool) -> bool:
    """Accept a real boolean or "true"/"false" in any case; anything else is default."""
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered == "true":
            return True
        if lowered == "false":
            return False
    return default


def validate_terminal_id(value: Any) -> str:
    if not value:
        raise ValidationError(
            f'A value for terminalID must be specified, but the value was "{value}"'
        )
    return str(value)


def is_folder_path(uri_str: str) -> bool:
    """A trailing separator means the caller is talking about a folder."""
    uri_str = uri_str.strip()
    return uri_str.endswith("/") or uri_str.endswith("\\")


@dataclass(frozen=True)
class ReadFileParams:
    resource: Resource
    start_line: int | None
    end_line: int | None
    page_number: int


@dataclass(frozen=True)
class LsDirParams:
    resource: Resource
    page_number: int


@dataclass(frozen=True)
class DirTreeParams:
    resource: Resource


@dataclass(frozen=True)
class SearchPathnamesParams:
    query: str
    include_pattern: str | None
    page_number: int


@dataclass(frozen=True)
class SearchForFilesParams:
    query: str
    is_regex: bool
    search_in_folder: Resource | None
    page_number: int


@dataclass(frozen=True)
class SearchInFileParams:
    resource: Resource
    query: str
    is_regex: bool


@dataclass(frozen=True)
class LintErrorsParams:
    resource: Resource


@dataclass(frozen=True)
class RewriteFileParams:
    resource: Resource
    new_content: str


@dataclass(frozen=True)
class EditFileParams:
    resource: Resource
    search_replace_blocks: str


@dataclass(frozen=True)
class CreateParams:
    resource: Resource
    is_folder: bool


@dataclass(frozen=True)
class DeleteParams:
    resource: Resource
    is_recursive: bool
    is_folder: bool


@dataclass(frozen=True)
class RunCommandParams:
    command: str
    cwd: Resource | None
    terminal_id: str


@dataclass(frozen=True)
class RunNLCommandParams:
    nl_input: str
    cwd: Resource | None
    terminal_id: str


@dataclass(frozen=True)
class OpenTerminalParams:
    cwd: Resource | None


@dataclass(frozen=True)
class RunPersistentCommandParams:
    command: str
    persistent_terminal_id: str


@dataclass(frozen=True)
class KillTerminalParams:
    persistent_terminal_id: str


@dataclass(frozen=True)
class WebSearchParams:
    query: str
    k: int
    refresh: bool


@dataclass(frozen=True)
class BrowseUrlParams:
    url: str
    refresh: bool


class ParamValidator:
    """Dispatches raw parameters to the validator for a tool name."""

    def __init__(self, workspace: Workspace) -> None:
        self.workspace = workspace
        self._validators: dict[ToolName, Callable[[Mapping[str, Any]], Any]] = {
            ToolName.READ_FILE: self._read_file,
            ToolName.LS_DIR: self._ls_dir,
            ToolName.GET_DIR_TREE: self._dir_tree,
            ToolName.SEARCH_PATHNAMES_ONLY: self._search_pathnames,
            ToolName.SEARCH_FOR_FILES: self._search_for_files,
            ToolName.SEARCH_IN_FILE: self._search_in_file,
            ToolName.READ_LINT_ERRORS: self._lint_errors,
            ToolName.REWRITE_FILE: self._rewrite_file,
            ToolName.EDIT_FILE: self._edit_file,
            ToolName.CREATE_FILE_OR_FOLDER: self._create,
            ToolName.DELETE_FILE_OR_FOLDER: self._delete,
            ToolName.RUN_COMMAND: self._run_command,
            ToolName.RUN_NL_COMMAND: self._run_nl_command,
            ToolName.OPEN_PERSISTENT_TERMINAL: self._open_terminal,
            ToolName.RUN_PERSISTENT_COMMAND: self._run_persistent_command,
            ToolName.KILL_PERSISTENT_TERMINAL: self._kill_terminal,
            ToolName.WEB_SEARCH: self._web_search,
            ToolName.BROWSE_URL: self._browse_url,
        }

    def validate(self, tool_name: str | ToolName, raw_params: Mapping[str, Any] | None) -> Any:
        name = parse_tool_name(tool_name)
        if raw_params is None:
            raw_params = {}
        if not isinstance(raw_params, Mapping):
            raise ValidationError(
                f"Invalid LLM output format: parameters for {name.value} must be an object, "
                f"but got {_type_name(raw_params)}."
            )
        return self._validators[name](raw_params)

    # Shared field validators

    def validate_uri(self, value: Any) -> Resource:
        if value is None:
            raise ValidationError("Invalid LLM output: uri was null.")
        if not isinstance(value, str):
            raise ValidationError(
                f"Invalid LLM output format: Provided uri must be a string, but it's a(n) "
                f"{_type_name(value)}. Full value: {_dump(value)}."
            )
        return self.workspace.resolve_inside(value)

    def validate_optional_uri(self, value: Any) -> Resource | None:
        if is_falsy(value):
            return None
        return self.validate_uri(value)

    def validate_cwd(self, value: Any) -> Resource | None:
        cwd = validate_optional_str("cwd", value)
        if cwd is None:
            return self.workspace.primary_root
        return self.workspace.resolve_inside(cwd)

    # Per-tool validators

    def _read_file(self, p: Mapping[str, Any]) -> ReadFileParams:
        resource = self.validate_uri(p.get("uri"))
        page_number = validate_page_number(p.get("page_number"))
        start_line = validate_number(p.get("start_line"), default=None)
        end_line = validate_number(p.get("end_line"), default=None)
        if start_line is not None and start_line < 1:
            start_line = None
        if end_line is not None and end_line < 1:
            end_line = None
        return ReadFileParams(resource, start_line, end_line, page_number)

    def _ls_dir(self, p: Mapping[str, Any]) -> LsDirParams:
        return LsDirParams(
            resource=self.validate_uri(p.get("uri")),
            page_number=validate_page_number(p.get("page_number")),
        )

    def _dir_tree(self, p: Mapping[str, Any]) -> DirTreeParams:
        return DirTreeParams(resource=self.validate_uri(p.get("uri")))

    def _search_pathnames(self, p: Mapping[str, Any]) -> SearchPathnamesParams:
        return SearchPathnamesParams(
            query=validate_str("query", p.get("query")),
            include_pattern=validate_optional_str("include_pattern", p.get("include_pattern")),
            page_number=validate_page_number(p.get("page_number")),
        )

    def _search_for_files(self, p: Mapping[str, Any]) -> SearchForFilesParams:
        query = validate_str("query", p.get("query"))
        page_number = validate_page_number(p.get("page_number"))
        folder = self.validate_optional_uri(p.get("search_in_folder"))
        is_regex = validate_boolean(p.get("is_regex"), default=False)
        if is_regex:
            _check_regex(query)
        return SearchForFilesParams(query, is_regex, folder, page_number)

    def _search_in_file(self, p: Mapping[str, Any]) -> SearchInFileParams:
        resource = self.validate_uri(p.get("uri"))
        query = validate_str("query", p.get("query"))
        is_regex = validate_boolean(p.get("is_regex"), default=False)
        if is_regex:
            _check_regex(query)
        return SearchInFileParams(resource, query, is_regex)

    def _lint_errors(self, p: Mapping[str, Any]) -> LintErrorsParams:
        return LintErrorsParams(resource=self.validate_uri(p.get("uri")))

    def _rewrite_file(self, p: Mapping[str, Any]) -> RewriteFileParams:
        return RewriteFileParams(
            resource=self.validate_uri(p.get("uri")),
            new_content=validate_str("new_content", p.get("new_content")),
        )

    def _edit_file(self, p: Mapping[str, Any]) -> EditFileParams:
        return EditFileParams(
            resource=self.validate_uri(p.get("uri")),
            search_replace_blocks=validate_str("search_replace_blocks", p.get("search_replace_blocks")),
        )

    def _create(self, p: Mapping[str, Any]) -> CreateParams:
        resource = self.validate_uri(p.get("uri"))
        uri_str = validate_str("uri", p.get("uri"))
        return CreateParams(resource, is_folder=is_folder_path(uri_str))

    def _delete(self, p: Mapping[str, Any]) -> DeleteParams:
        resource = self.validate_uri(p.get("uri"))
        is_recursive = validate_boolean(p.get("is_recursive"), default=False)
        uri_str = validate_str("uri", p.get("uri"))
        return DeleteParams(resource, is_recursive, is_folder=is_folder_path(uri_str))

    def _run_command(self, p: Mapping[str, Any]) -> RunCommandParams:
        return RunCommandParams(
            command=validate_str("command", p.get("command")),
            cwd=self.validate_cwd(p.get("cwd")),
            terminal_id=str(uuid.uuid4()),
        )

    def _run_nl_command(self, p: Mapping[str, Any]) -> RunNLCommandParams:
        return RunNLCommandParams(
            nl_input=validate_str("nl_input", p.get("nl_input")),
            cwd=self.validate_cwd(p.get("cwd")),
            terminal_id=str(uuid.uuid4()),
        )

    def _open_terminal(self, p: Mapping[str, Any]) -> OpenTerminalParams:
        return OpenTerminalParams(cwd=self.validate_cwd(p.get("cwd")))

    def _run_persistent_command(self, p: Mapping[str, Any]) -> RunPersistentCommandParams:
        return RunPersistentCommandParams(
            command=validate_str("command", p.get("command")),
            persistent_terminal_id=validate_terminal_id(p.get("persistent_terminal_id")),
        )

    def _kill_terminal(self, p: Mapping[str, Any]) -> KillTerminalParams:
        return KillTerminalParams(
            persistent_terminal_id=validate_terminal_id(p.get("persistent_terminal_id")),
        )

    def _web_search(self, p: Mapping[str, Any]) -> WebSearchParams:
        query = validate_str("query", p.get("query"))
        k = validate_number(p.get("k"), default=5)
        if k is None:
            raise ValidationError("Invalid k parameter for web_search")
        return WebSearchParams(
            query=query,
            k=min(max(1, k), 10),
            refresh=validate_boolean(p.get("refresh"), default=False),
        )

    def _browse_url(self, p: Mapping[str, Any]) -> BrowseUrlParams:
        url = validate_str("url", p.get("url"))
        if not url.startswith("http://") and not url.startswith("https://"):
            raise ValidationError(
                f"Invalid URL format: {url}. URL must start with http:// or https://"
            )
        try:
            host = urllib.parse.urlsplit(url).hostname
        except ValueError as e:
            raise ValidationError(f"Invalid URL format: {url}. Error: {e}") from e
        if not host:
            raise ValidationError(f"Invalid URL format: {url}. Error: missing host")
        return BrowseUrlParams(url=url, refresh=validate_boolean(p.get("refresh"), default=False))


def parse_tool_name(tool_name: str | ToolName) -> ToolName:
    try:
        return ToolName(tool_name)
    except ValueError:
        valid = ", ".join(t.value for t in ToolName)
        raise ValidationError(f"Unknown tool: {tool_name}. Valid tools: {valid}") from None


def _check_regex(pattern: str) -> None:
    try:
        re.compile(pattern)
    except re.error as e:
        raise ValidationError(f"Invalid regular expression {pattern!r}: {e}") from e
