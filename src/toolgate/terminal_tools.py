"""Executors for the terminal tools."""

import logging
from collections.abc import Callable

from toolgate.cancellation import CancellationToken
from toolgate.danger import (
    DangerLevel,
    LoggingNotificationSink,
    NotificationSink,
    classify,
    danger_notification,
)
from toolgate.errors import ExecutionError
from toolgate.nl_shell import ShellTranslator
from toolgate.secret_scanner import SecretScanner
from toolgate.terminal import TerminalCoordinator
from toolgate.types import EmptyResult, NLCommandResult, OpenTerminalResult, TerminalRunResult
from toolgate.validation import (
    KillTerminalParams,
    OpenTerminalParams,
    RunCommandParams,
    RunNLCommandParams,
    RunPersistentCommandParams,
)

logger = logging.getLogger(__name__)

DangerCallback = Callable[[str, DangerLevel], None]


class TerminalTools:
    """
    Runs terminal tools: classify, warn, execute.

    Danger classification never blocks a command. It only decides whether
    the notification sink hears about it first.
    """

    def __init__(
        self,
        coordinator: TerminalCoordinator,
        translator: ShellTranslator | None = None,
        scanner: SecretScanner | None = None,
        notifications: NotificationSink | None = None,
    ) -> None:
        self.coordinator = coordinator
        self.translator = translator
        self.scanner = scanner or SecretScanner()
        self.notifications = notifications or LoggingNotificationSink()

    def warn_if_dangerous(self, command: str, on_danger: DangerCallback | None = None) -> DangerLevel:
        level = classify(command)
        notification = danger_notification(command, level)
        if notification is not None:
            self.notifications.notify(notification)
            if on_danger:
                on_danger(command, level)
        return level

    async def run_command(
        self,
        params: RunCommandParams,
        token: CancellationToken | None = None,
        on_danger: DangerCallback | None = None,
    ) -> TerminalRunResult:
        self.warn_if_dangerous(params.command, on_danger)
        return await self.coordinator.run_command(
            params.command, params.cwd, params.terminal_id, token
        )

    async def run_nl_command(
        self,
        params: RunNLCommandParams,
        token: CancellationToken | None = None,
        on_danger: DangerCallback | None = None,
    ) -> NLCommandResult:
        if self.translator is None:
            raise ExecutionError(
                "run_nl_command is unavailable: no natural-language translator is configured. "
                "Set LLM_BASE_URL and LLM_MODEL, or use run_command with a literal command."
            )
        cwd = params.cwd.path if params.cwd is not None else None
        parsed = await self.translator.translate(params.nl_input, cwd, token)
        self.warn_if_dangerous(parsed.command, on_danger)
        run = await self.coordinator.run_command(parsed.command, params.cwd, params.terminal_id, token)
        scan = self.scanner.detect(run.output)
        if scan.has_secrets:
            logger.info(f"Redacted {len(scan.matches)} secret(s) from output of {parsed.command!r}")
        return NLCommandResult(
            output=scan.redacted_text,
            reason=run.reason,
            parsed_command=parsed.command,
            explanation=parsed.explanation,
        )

    async def open_persistent_terminal(self, params: OpenTerminalParams) -> OpenTerminalResult:
        return OpenTerminalResult(terminal_id=self.coordinator.open_persistent(params.cwd))

    async def run_persistent_command(
        self,
        params: RunPersistentCommandParams,
        token: CancellationToken | None = None,
        on_danger: DangerCallback | None = None,
    ) -> TerminalRunResult:
        self.warn_if_dangerous(params.command, on_danger)
        return await self.coordinator.run_persistent_command(
            params.persistent_terminal_id, params.command, token
        )

    async def kill_persistent_terminal(self, params: KillTerminalParams) -> EmptyResult:
        await self.coordinator.kill_persistent(params.persistent_terminal_id)
        return EmptyResult()
