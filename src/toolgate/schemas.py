"""
Tool schemas advertised to the model.

Each built-in tool has a ToolSchema listing its required and optional raw
parameters; to_openai_schema() turns one into the function-calling format
the orchestration layer sends along with a chat request.
"""

from dataclasses import dataclass, field
from typing import Any

from toolgate.types import APPROVAL_TYPE_OF_TOOL, ApprovalType, ToolName


@dataclass
class ToolSchema:
    """Schema for a tool's parameters."""
    name: ToolName
    description: str
    required_params: list[str]
    optional_params: list[str] = field(default_factory=list)
    param_types: dict[str, str] = field(default_factory=dict)  # param_name -> type
    param_descriptions: dict[str, str] = field(default_factory=dict)

    @property
    def approval_type(self) -> ApprovalType | None:
        return APPROVAL_TYPE_OF_TOOL.get(self.name)


_URI = "The path of the file or folder, absolute or relative to the workspace root."
_PAGE = "1-based page of results to return. Defaults to 1."
_TERMINAL_ID = "The id returned by open_persistent_terminal."
_CWD = "Working directory. Defaults to the first workspace root."

TOOL_SCHEMAS: dict[ToolName, ToolSchema] = {
    s.name: s
    for s in [
        ToolSchema(
            name=ToolName.READ_FILE,
            description="Returns the full contents of a file, optionally restricted to a line range.",
            required_params=["uri"],
            optional_params=["start_line", "end_line", "page_number"],
            param_types={"uri": "string", "start_line": "integer", "end_line": "integer", "page_number": "integer"},
            param_descriptions={
                "uri": _URI,
                "start_line": "First line to read (1-based). Omit to start at the beginning.",
                "end_line": "Last line to read (inclusive). Omit to read to the end.",
                "page_number": _PAGE,
            },
        ),
        ToolSchema(
            name=ToolName.LS_DIR,
            description="Lists the files and folders directly inside a folder.",
            required_params=["uri"],
            optional_params=["page_number"],
            param_types={"uri": "string", "page_number": "integer"},
            param_descriptions={"uri": _URI, "page_number": _PAGE},
        ),
        ToolSchema(
            name=ToolName.GET_DIR_TREE,
            description="Returns a recursive tree diagram of a folder. Heavy folders are not expanded.",
            required_params=["uri"],
            param_types={"uri": "string"},
            param_descriptions={"uri": _URI},
        ),
        ToolSchema(
            name=ToolName.SEARCH_PATHNAMES_ONLY,
            description="Finds files whose name matches the query. Returns paths only.",
            required_params=["query"],
            optional_params=["include_pattern", "page_number"],
            param_types={"query": "string", "include_pattern": "string", "page_number": "integer"},
            param_descriptions={
                "query": "Text to look for in file names.",
                "include_pattern": "Optional glob restricting results, e.g. src/**/*.py.",
                "page_number": _PAGE,
            },
        ),
        ToolSchema(
            name=ToolName.SEARCH_FOR_FILES,
            description="Finds files whose content matches the query. Returns paths only.",
            required_params=["query"],
            optional_params=["search_in_folder", "is_regex", "page_number"],
            param_types={
                "query": "string",
                "search_in_folder": "string",
                "is_regex": "boolean",
                "page_number": "integer",
            },
            param_descriptions={
                "query": "Text or regular expression to search for.",
                "search_in_folder": "Only search inside this folder.",
                "is_regex": "Whether the query is a regular expression. Defaults to false.",
                "page_number": _PAGE,
            },
        ),
        ToolSchema(
            name=ToolName.SEARCH_IN_FILE,
            description="Returns the line numbers and text of every line in a file that matches the query.",
            required_params=["uri", "query"],
            optional_params=["is_regex"],
            param_types={"uri": "string", "query": "string", "is_regex": "boolean"},
            param_descriptions={
                "uri": _URI,
                "query": "Text or regular expression to search for.",
                "is_regex": "Whether the query is a regular expression. Defaults to false.",
            },
        ),
        ToolSchema(
            name=ToolName.READ_LINT_ERRORS,
            description="Returns the current lint errors and warnings of a file.",
            required_params=["uri"],
            param_types={"uri": "string"},
            param_descriptions={"uri": _URI},
        ),
        ToolSchema(
            name=ToolName.REWRITE_FILE,
            description="Replaces the entire contents of a file.",
            required_params=["uri", "new_content"],
            param_types={"uri": "string", "new_content": "string"},
            param_descriptions={"uri": _URI, "new_content": "The new contents of the file."},
        ),
        ToolSchema(
            name=ToolName.EDIT_FILE,
            description=(
                "Edits part of a file with SEARCH/REPLACE blocks. Each block is\n"
                "<<<<<<< ORIGINAL\nold text\n=======\nnew text\n>>>>>>> UPDATED\n"
                "and the ORIGINAL text must appear exactly once in the file."
            ),
            required_params=["uri", "search_replace_blocks"],
            param_types={"uri": "string", "search_replace_blocks": "string"},
            param_descriptions={"uri": _URI, "search_replace_blocks": "One or more SEARCH/REPLACE blocks."},
        ),
        ToolSchema(
            name=ToolName.CREATE_FILE_OR_FOLDER,
            description="Creates a file, or a folder if the path ends with a slash.",
            required_params=["uri"],
            param_types={"uri": "string"},
            param_descriptions={"uri": _URI},
        ),
        ToolSchema(
            name=ToolName.DELETE_FILE_OR_FOLDER,
            description="Deletes a file or folder.",
            required_params=["uri"],
            optional_params=["is_recursive"],
            param_types={"uri": "string", "is_recursive": "boolean"},
            param_descriptions={
                "uri": _URI,
                "is_recursive": "Delete a non-empty folder and everything in it. Defaults to false.",
            },
        ),
        ToolSchema(
            name=ToolName.RUN_COMMAND,
            description=(
                "Runs a shell command in a temporary terminal. The command is killed after a "
                "period of inactivity, so use a persistent terminal for long-running work."
            ),
            required_params=["command"],
            optional_params=["cwd"],
            param_types={"command": "string", "cwd": "string"},
            param_descriptions={"command": "The shell command to run.", "cwd": _CWD},
        ),
        ToolSchema(
            name=ToolName.RUN_NL_COMMAND,
            description="Translates a natural-language request into a shell command and runs it.",
            required_params=["nl_input"],
            optional_params=["cwd"],
            param_types={"nl_input": "string", "cwd": "string"},
            param_descriptions={"nl_input": "What the command should do, in plain words.", "cwd": _CWD},
        ),
        ToolSchema(
            name=ToolName.OPEN_PERSISTENT_TERMINAL,
            description="Opens a terminal that stays alive across calls and returns its id.",
            required_params=[],
            optional_params=["cwd"],
            param_types={"cwd": "string"},
            param_descriptions={"cwd": _CWD},
        ),
        ToolSchema(
            name=ToolName.RUN_PERSISTENT_COMMAND,
            description=(
                "Runs a command in a persistent terminal. Commands still running after a few "
                "seconds keep running in the background."
            ),
            required_params=["command", "persistent_terminal_id"],
            param_types={"command": "string", "persistent_terminal_id": "string"},
            param_descriptions={"command": "The shell command to run.", "persistent_terminal_id": _TERMINAL_ID},
        ),
        ToolSchema(
            name=ToolName.KILL_PERSISTENT_TERMINAL,
            description="Closes a persistent terminal and kills anything still running in it.",
            required_params=["persistent_terminal_id"],
            param_types={"persistent_terminal_id": "string"},
            param_descriptions={"persistent_terminal_id": _TERMINAL_ID},
        ),
        ToolSchema(
            name=ToolName.WEB_SEARCH,
            description="Searches the web and returns titles, URLs and snippets.",
            required_params=["query"],
            optional_params=["k", "refresh"],
            param_types={"query": "string", "k": "integer", "refresh": "boolean"},
            param_descriptions={
                "query": "The search query.",
                "k": "Number of results, 1 to 10. Defaults to 5.",
                "refresh": "Ignore cached results. Defaults to false.",
            },
        ),
        ToolSchema(
            name=ToolName.BROWSE_URL,
            description="Fetches a web page and returns its readable content.",
            required_params=["url"],
            optional_params=["refresh"],
            param_types={"url": "string", "refresh": "boolean"},
            param_descriptions={
                "url": "The http:// or https:// URL to fetch.",
                "refresh": "Ignore cached content. Defaults to false.",
            },
        ),
    ]
}


def to_openai_schema(schema: ToolSchema) -> dict[str, Any]:
    """Build the OpenAI function-calling format for one tool."""
    properties = {}
    for param in schema.required_params + schema.optional_params:
        prop: dict[str, Any] = {"type": schema.param_types.get(param, "string")}
        if param in schema.param_descriptions:
            prop["description"] = schema.param_descriptions[param]
        properties[param] = prop

    return {
        "type": "function",
        "function": {
            "name": schema.name.value,
            "description": schema.description,
            "parameters": {
                "type": "object",
                "properties": properties,
                "required": schema.required_params,
            },
        },
    }


def get_tool_schemas(tool_names: list[ToolName] | None = None) -> list[dict[str, Any]]:
    """OpenAI-format schemas for the given tools, or for every tool."""
    names = tool_names if tool_names is not None else list(ToolName)
    return [to_openai_schema(TOOL_SCHEMAS[name]) for name in names]
