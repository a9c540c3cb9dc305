"""Natural-language to shell command translation."""

import asyncio
import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass

from toolgate.cancellation import CancellationToken
from toolgate.errors import ExecutionError
from toolgate.llm import LLMClient, LLMError

logger = logging.getLogger(__name__)

NL_TO_SHELL_PROMPT = """You are a shell command parser. Convert natural language requests into safe, executable shell commands.

Rules:
1. Output ONLY a valid shell command (bash/zsh on macOS/Linux, cmd/powershell on Windows)
2. Use standard commands: ls, cd, git, npm, etc.
3. Never include destructive operations without explicit user request
4. Prefer safe alternatives (e.g., git status instead of git reset --hard)
5. If the request is ambiguous, choose the safest interpretation
6. Do not include explanations or markdown - just the command

Examples:
- "list files" -> "ls -la"
- "show git branches" -> "git branch -a"
- "run tests" -> "pytest"
- "check git status" -> "git status"
- "install dependencies" -> "pip install -e ."

Working directory: {cwd}
User request: {nl_input}

Output the shell command only (no markdown, no code blocks, just the command):"""

_OPENING_FENCE = re.compile(r"^```[\w-]*\n?")
_CLOSING_FENCE = re.compile(r"```$")


@dataclass(frozen=True)
class ParsedShellCommand:
    command: str
    explanation: str


def clean_command(response: str) -> str:
    """Strip code fences and keep the first line of a model reply."""
    command = response.strip()
    command = _OPENING_FENCE.sub("", command)
    command = _CLOSING_FENCE.sub("", command).strip()
    return command.split("\n")[0].strip()


class ShellTranslator(ABC):
    """Turns a natural-language request into one shell command."""

    @abstractmethod
    async def translate(
        self,
        nl_input: str,
        cwd: str | None,
        token: CancellationToken | None = None,
    ) -> ParsedShellCommand:
        pass


class LLMShellTranslator(ShellTranslator):
    """ShellTranslator backed by a chat-completion endpoint."""

    def __init__(self, client: LLMClient) -> None:
        self.client = client

    async def translate(
        self,
        nl_input: str,
        cwd: str | None,
        token: CancellationToken | None = None,
    ) -> ParsedShellCommand:
        prompt = NL_TO_SHELL_PROMPT.format(cwd=cwd or "(unknown)", nl_input=nl_input)
        try:
            response = await asyncio.to_thread(
                self.client.chat, [{"role": "user", "content": prompt}]
            )
        except LLMError as e:
            raise ExecutionError(f"Failed to parse NL to shell: {e}") from e
        if token is not None and token.is_cancelled:
            raise ExecutionError("NL parsing cancelled")

        command = clean_command(response.content)
        if not command:
            raise ExecutionError("Failed to parse natural language to shell command")
        logger.debug(f"Translated {nl_input!r} to {command!r}")
        return ParsedShellCommand(
            command=command,
            explanation=f'Parsed "{nl_input}" to: {command}',
        )
