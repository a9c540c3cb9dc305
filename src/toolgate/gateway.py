"""
The tool gateway: validate, execute, serialize.

ToolGateway is the single entry point the orchestration layer talks to. A
call names one of the built-in tools and carries the model's raw parameter
bag; the gateway validates it against the workspace sandbox, runs the tool,
and renders the result as text. Every step is recorded in an EventLog keyed
by the call id.

Nothing raised inside a tool escapes call(): failures come back as a
ToolResult with success=False and the message in content, so the model can
read what went wrong and try again.
"""

import asyncio
import logging
import re
import uuid
from collections.abc import Awaitable, Callable, Iterable, Mapping
from pathlib import Path
from typing import Any

import httpx

from toolgate.cancellation import CancellationToken
from toolgate.config import GatewayConfig
from toolgate.danger import DangerLevel, NotificationSink
from toolgate.errors import ExecutionError, ToolGatewayError, ValidationError
from toolgate.events import EventLog, EventType
from toolgate.file_tools import FileTools
from toolgate.files import DiagnosticsStore, FileStore, WriterRegistry
from toolgate.llm import LLMClient
from toolgate.network import NetworkTools
from toolgate.nl_shell import LLMShellTranslator, ShellTranslator
from toolgate.search import KeywordIndex, SearchService
from toolgate.secret_scanner import SecretScanner
from toolgate.serializer import ResultSerializer
from toolgate.terminal import TerminalCoordinator
from toolgate.terminal_tools import TerminalTools
from toolgate.types import PathListResult, Resource, ToolCall, ToolName, ToolResult
from toolgate.validation import ParamValidator, parse_tool_name
from toolgate.workspace import Workspace

logger = logging.getLogger(__name__)

Executor = Callable[[Any, "CallContext"], Awaitable[Any]]


class CallContext:
    """Per-call state handed to executors: the call id, its token, and event hooks."""

    def __init__(self, call_id: str, token: CancellationToken, event_log: EventLog) -> None:
        self.call_id = call_id
        self.token = token
        self.event_log = event_log

    def on_fallback(self, requested: Resource, used: Resource) -> None:
        self.event_log.log_event(
            EventType.SEARCH_FALLBACK,
            self.call_id,
            strategy="basename",
            requested=requested.path,
            used=used.path,
        )

    def on_cache_hit(self, key: str) -> None:
        self.event_log.log_event(EventType.CACHE_HIT, self.call_id, key=key)

    def on_danger(self, command: str, level: DangerLevel) -> None:
        self.event_log.log_event(
            EventType.DANGER_WARNING, self.call_id, command=command, level=level.value
        )


class PendingToolCall:
    """
    A tool call in flight.

    interrupt() asks the running tool to stop early; the caller still awaits
    result() for the final outcome, which may carry partial output.
    Interrupting a call that has already resolved does nothing.
    """

    def __init__(
        self,
        call_id: str,
        tool_name: str,
        task: "asyncio.Task[ToolResult]",
        token: CancellationToken,
    ) -> None:
        self.call_id = call_id
        self.tool_name = tool_name
        self._task = task
        self._token = token

    @property
    def done(self) -> bool:
        return self._task.done()

    def interrupt(self) -> None:
        if self._task.done():
            return
        logger.info(f"Interrupt requested for {self.tool_name} ({self.call_id})")
        self._token.cancel()

    async def result(self) -> ToolResult:
        return await self._task


class ToolGateway:
    """
    Runs model tool calls against a workspace.

    Collaborators (file store, diagnostics, shell translator, notification
    sink, network tools, keyword index) can be injected; anything left out
    gets the local default. The network caches live as long as the gateway.
    """

    def __init__(
        self,
        workspace: Workspace | Iterable[str | Path],
        config: GatewayConfig | None = None,
        *,
        store: FileStore | None = None,
        diagnostics: DiagnosticsStore | None = None,
        translator: ShellTranslator | None = None,
        notifications: NotificationSink | None = None,
        network: NetworkTools | None = None,
        index: KeywordIndex | None = None,
        secret_scanner: SecretScanner | None = None,
        event_log: EventLog | None = None,
    ) -> None:
        self.workspace = workspace if isinstance(workspace, Workspace) else Workspace(workspace)
        self.config = config or GatewayConfig()
        self.event_log = event_log or EventLog()
        self.validator = ParamValidator(self.workspace)
        self.serializer = ResultSerializer(self.config.files, self.config.terminal)

        self.index = index if index is not None else KeywordIndex(self.workspace)
        self.search = SearchService(
            self.workspace, index=self.index, page_size=self.config.files.children_page_size
        )
        self.files = FileTools(
            self.search,
            store=store,
            diagnostics=diagnostics,
            writers=WriterRegistry(),
            config=self.config.files,
            index=self.index,
        )

        self._llm_client: LLMClient | None = None
        if translator is None and self.config.llm is not None and self.config.llm.model:
            self._llm_client = LLMClient(self.config.llm)
            translator = LLMShellTranslator(self._llm_client)
        self.terminals = TerminalCoordinator(self.config.terminal)
        self.terminal_tools = TerminalTools(
            self.terminals,
            translator=translator,
            scanner=secret_scanner,
            notifications=notifications,
        )
        self.network = network or NetworkTools(self.config.network)

        self._executors: dict[ToolName, Executor] = {
            ToolName.READ_FILE: lambda p, ctx: self.files.read_file(p, ctx.token, ctx.on_fallback),
            ToolName.LS_DIR: lambda p, ctx: self.files.ls_dir(p),
            ToolName.GET_DIR_TREE: lambda p, ctx: self.files.get_dir_tree(p),
            ToolName.SEARCH_PATHNAMES_ONLY: lambda p, ctx: self.files.search_pathnames_only(p, ctx.token),
            ToolName.SEARCH_FOR_FILES: self._search_for_files,
            ToolName.SEARCH_IN_FILE: lambda p, ctx: self.files.search_in_file(p, ctx.token, ctx.on_fallback),
            ToolName.READ_LINT_ERRORS: lambda p, ctx: self.files.read_lint_errors(p),
            ToolName.REWRITE_FILE: lambda p, ctx: self.files.rewrite_file(p, ctx.call_id),
            ToolName.EDIT_FILE: lambda p, ctx: self.files.edit_file(p, ctx.call_id),
            ToolName.CREATE_FILE_OR_FOLDER: lambda p, ctx: self.files.create_file_or_folder(p),
            ToolName.DELETE_FILE_OR_FOLDER: lambda p, ctx: self.files.delete_file_or_folder(p),
            ToolName.RUN_COMMAND: lambda p, ctx: self.terminal_tools.run_command(p, ctx.token, ctx.on_danger),
            ToolName.RUN_NL_COMMAND: lambda p, ctx: self.terminal_tools.run_nl_command(
                p, ctx.token, ctx.on_danger
            ),
            ToolName.OPEN_PERSISTENT_TERMINAL: lambda p, ctx: self.terminal_tools.open_persistent_terminal(p),
            ToolName.RUN_PERSISTENT_COMMAND: lambda p, ctx: self.terminal_tools.run_persistent_command(
                p, ctx.token, ctx.on_danger
            ),
            ToolName.KILL_PERSISTENT_TERMINAL: lambda p, ctx: self.terminal_tools.kill_persistent_terminal(p),
            ToolName.WEB_SEARCH: lambda p, ctx: self.network.web_search(
                p.query, p.k, p.refresh, ctx.token, ctx.on_cache_hit
            ),
            ToolName.BROWSE_URL: lambda p, ctx: self.network.browse_url(
                p.url, p.refresh, ctx.token, ctx.on_cache_hit
            ),
        }

    async def build_index(self) -> int:
        """Build the keyword index over the workspace. Returns the number of files indexed."""
        count = await asyncio.to_thread(self.index.build)
        logger.info(f"Indexed {count} files")
        return count

    async def _search_for_files(self, params: Any, ctx: CallContext) -> PathListResult:
        result = await self.files.search_for_files(params, ctx.token)
        if result.source != "index":
            ctx.event_log.log_event(
                EventType.SEARCH_FALLBACK,
                ctx.call_id,
                strategy=result.source,
                index_built=self.index.is_built,
                is_regex=params.is_regex,
            )
        return result

    def start(
        self,
        tool_name: str | ToolName,
        raw_params: Mapping[str, Any] | None,
        call_id: str | None = None,
    ) -> PendingToolCall:
        """
        Validate and start a tool call. Must be called from a running event loop.

        The returned handle can be interrupted right away. Validation
        failures also come back as a handle, already resolved to a failed
        ToolResult.
        """
        call_id = call_id or f"call-{uuid.uuid4().hex[:12]}"
        name = tool_name.value if isinstance(tool_name, ToolName) else str(tool_name)
        token = CancellationToken()
        self.event_log.log_event(
            EventType.TOOL_CALL_RECEIVED, call_id, tool_name=name, raw_params=_loggable(raw_params)
        )
        logger.info(f"Tool call {name} ({call_id})")

        try:
            tool = parse_tool_name(name)
            params = self.validator.validate(tool, raw_params)
        except ValidationError as e:
            self.event_log.log_event(EventType.PARAM_VALIDATION, call_id, valid=False, error=str(e))
            coro = self._fail(call_id, name, str(e))
        else:
            self.event_log.log_event(EventType.PARAM_VALIDATION, call_id, valid=True)
            coro = self._run(call_id, tool, params, token)

        task = asyncio.get_running_loop().create_task(coro)
        return PendingToolCall(call_id, name, task, token)

    async def call(
        self,
        tool_name: str | ToolName,
        raw_params: Mapping[str, Any] | None,
        call_id: str | None = None,
    ) -> ToolResult:
        """Run a tool call to completion. Never raises for tool failures."""
        return await self.start(tool_name, raw_params, call_id).result()

    async def execute(self, tool_call: ToolCall) -> ToolResult:
        """Run a model-emitted ToolCall, keeping its id."""
        return await self.call(tool_call.name, tool_call.arguments, tool_call.id)

    async def _run(
        self,
        call_id: str,
        tool: ToolName,
        params: Any,
        token: CancellationToken,
    ) -> ToolResult:
        ctx = CallContext(call_id, token, self.event_log)
        self.event_log.log_event(EventType.TOOL_EXECUTION_START, call_id, tool_name=tool.value)
        try:
            result = await self._execute(tool, params, ctx)
        except ToolGatewayError as e:
            self.event_log.log_event(
                EventType.TOOL_EXECUTION_END, call_id, success=False, error_type=type(e).__name__
            )
            return self._fail_now(call_id, tool.value, str(e))
        except Exception as e:
            logger.exception(f"Unexpected error running {tool.value} ({call_id})")
            self.event_log.log_event(
                EventType.TOOL_EXECUTION_END, call_id, success=False, error_type=type(e).__name__
            )
            return self._fail_now(call_id, tool.value, f"Unexpected error running {tool.value}: {e}")

        self.event_log.log_event(
            EventType.TOOL_EXECUTION_END, call_id, success=True, interrupted=token.is_cancelled
        )
        text = self.serializer.to_text(tool, params, result)
        self.event_log.log_event(
            EventType.TOOL_RESULT_RETURNED, call_id, success=True, content_length=len(text)
        )
        return ToolResult(tool_call_id=call_id, content=text)

    async def _execute(self, tool: ToolName, params: Any, ctx: CallContext) -> Any:
        """Run the executor, translating collaborator exceptions into gateway errors."""
        try:
            return await self._executors[tool](params, ctx)
        except re.error as e:
            raise ValidationError(f"Invalid regular expression: {e}") from e
        except OSError as e:
            target = f" ({e.filename})" if e.filename else ""
            raise ExecutionError(f"{e.strerror or e}{target}") from e
        except httpx.HTTPError as e:
            raise ExecutionError(f"Network request failed: {e}") from e

    async def _fail(self, call_id: str, tool_name: str, message: str) -> ToolResult:
        return self._fail_now(call_id, tool_name, message)

    def _fail_now(self, call_id: str, tool_name: str, message: str) -> ToolResult:
        logger.error(f"Tool call {tool_name} ({call_id}) failed: {message}")
        self.event_log.log_event(EventType.ERROR, call_id, tool_name=tool_name, error=message)
        self.event_log.log_event(
            EventType.TOOL_RESULT_RETURNED, call_id, success=False, content_length=len(message)
        )
        return ToolResult(tool_call_id=call_id, content=message, success=False, error=message)

    async def aclose(self) -> None:
        """Kill every terminal session and close the HTTP clients."""
        await self.terminals.close()
        await self.network.aclose()
        if self._llm_client is not None:
            self._llm_client.close()

    async def __aenter__(self) -> "ToolGateway":
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.aclose()


def _loggable(raw_params: Any) -> Any:
    """Raw params as recorded in the event log: long strings are clipped."""
    if not isinstance(raw_params, Mapping):
        return raw_params if raw_params is None else repr(raw_params)[:200]
    return {
        str(k): (v[:200] + "..." if isinstance(v, str) and len(v) > 200 else v)
        for k, v in raw_params.items()
    }
