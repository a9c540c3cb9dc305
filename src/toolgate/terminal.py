"""
Terminal execution.

A temporary run belongs to a single tool call: it ends when the command
exits, or is killed once it has produced no output for the inactivity
window.

A persistent terminal is opened explicitly and outlives calls. It owns one
long-lived shell, started on its first command, so cd, exported variables
and shell functions carry from one command to the next. Each command is
written to the shell's stdin followed by a line that prints a unique end
marker and the command's exit status; output up to the marker belongs to
that command. A command still running when the background-check window
closes keeps running while the caller gets the output so far.

Every process runs in its own process group so that killing it also kills
anything it spawned. Process groups make this POSIX-only.
"""

import asyncio
import codecs
import itertools
import logging
import os
import signal
import uuid
from dataclasses import dataclass, field

from toolgate.cancellation import CancellationToken
from toolgate.config import TerminalConfig
from toolgate.errors import ExecutionError
from toolgate.types import ResolveReason, Resource, TerminalRunResult

logger = logging.getLogger(__name__)

READ_CHUNK = 4096
# After the process exits, how long to wait for its pipe to drain. A
# backgrounded grandchild can hold the pipe open indefinitely.
DRAIN_SECONDS = 0.5
TERMINATE_GRACE_SECONDS = 2.0
MARKER_PREFIX = "__toolgate_done_"


class OutputBuffer:
    """Accumulates decoded output, keeping at most max_chars from the start."""

    def __init__(self, max_chars: int) -> None:
        self.max_chars = max_chars
        self._chunks: list[str] = []
        self._kept = 0
        self.chars_removed = 0
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")

    def feed(self, data: bytes, final: bool = False) -> None:
        text = self._decoder.decode(data, final=final)
        if not text:
            return
        room = self.max_chars - self._kept
        if room > 0:
            self._chunks.append(text[:room])
            self._kept += min(room, len(text))
        self.chars_removed += max(0, len(text) - max(room, 0))

    def text(self) -> str:
        out = "".join(self._chunks).rstrip("\n")
        if self.chars_removed:
            out += f"\n[Output truncated. {self.chars_removed} characters removed.]"
        return out


@dataclass
class Job:
    """One running command."""
    command: str
    process: asyncio.subprocess.Process
    output: OutputBuffer
    last_output_at: float
    reader: asyncio.Task | None = None
    exited: asyncio.Task | None = None

    @property
    def is_running(self) -> bool:
        return self.process.returncode is None

    def reason(self) -> ResolveReason:
        if self.process.returncode is None:
            return ResolveReason.timeout()
        return ResolveReason.done(self.process.returncode)

    def result(self) -> TerminalRunResult:
        return TerminalRunResult(output=self.output.text(), reason=self.reason())


@dataclass
class ShellCommand:
    """A command sent to a persistent shell, finished once its end marker is read."""
    command: str
    marker: bytes
    output: OutputBuffer
    exit_code: int | None = None
    finished: asyncio.Event = field(default_factory=asyncio.Event)

    @property
    def is_running(self) -> bool:
        return not self.finished.is_set()

    def finish(self, exit_code: int | None) -> None:
        self.exit_code = exit_code
        self.finished.set()

    def reason(self) -> ResolveReason:
        if self.is_running:
            return ResolveReason.timeout()
        return ResolveReason.done(self.exit_code if self.exit_code is not None else -1)

    def result(self) -> TerminalRunResult:
        return TerminalRunResult(output=self.output.text(), reason=self.reason())


@dataclass
class ShellSession:
    """A long-lived shell process and the command it is currently running."""
    process: asyncio.subprocess.Process
    reader: asyncio.Task | None = None
    exited: asyncio.Task | None = None
    current: ShellCommand | None = None


@dataclass
class PersistentTerminal:
    id: str
    cwd: Resource | None
    shell: ShellSession | None = None
    last_command: ShellCommand | None = None


def shell_script(command: str, marker: str) -> str:
    """
    The text written to a persistent shell for one command.

    The command runs in a brace group so cd and export affect the shell
    itself, with stdin from /dev/null so it cannot swallow the marker line.
    """
    return f"{{ {command}\n}} </dev/null\nprintf '\\n%s%s\\n' '{marker}' \"$?\"\n"


def _marker_prefix_len(data: bytes, marker: bytes) -> int:
    """Length of the longest tail of data that could be the start of marker."""
    for n in range(min(len(data), len(marker) - 1), 0, -1):
        if marker.startswith(data[-n:]):
            return n
    return 0


class TerminalCoordinator:
    """Starts, watches and kills shell commands for the terminal tools."""

    def __init__(self, config: TerminalConfig | None = None) -> None:
        self.config = config or TerminalConfig()
        self._temporary: dict[str, Job] = {}
        self._persistent: dict[str, PersistentTerminal] = {}
        self._ids = itertools.count(1)

    @property
    def persistent_ids(self) -> list[str]:
        return list(self._persistent)

    async def _spawn(self, command: str, cwd: Resource | None) -> Job:
        process = await asyncio.create_subprocess_exec(
            self.config.shell, "-c", command,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.STDOUT,
            cwd=cwd.path if cwd is not None else None,
            start_new_session=True,
        )
        loop = asyncio.get_running_loop()
        job = Job(
            command=command,
            process=process,
            output=OutputBuffer(self.config.max_output_chars),
            last_output_at=loop.time(),
        )
        job.reader = asyncio.create_task(self._read_output(job))
        job.exited = asyncio.create_task(process.wait())
        logger.debug(f"Started pid {process.pid}: {command}")
        return job

    async def _read_output(self, job: Job) -> None:
        stream = job.process.stdout
        assert stream is not None
        loop = asyncio.get_running_loop()
        while True:
            data = await stream.read(READ_CHUNK)
            if not data:
                job.output.feed(b"", final=True)
                return
            job.output.feed(data)
            job.last_output_at = loop.time()

    async def _drain(self, proc: Job | ShellSession) -> None:
        if proc.reader is None or proc.reader.done():
            return
        try:
            await asyncio.wait_for(asyncio.shield(proc.reader), DRAIN_SECONDS)
        except TimeoutError:
            logger.debug(f"Output pipe of pid {proc.process.pid} still open after exit")

    def _signal(self, proc: Job | ShellSession, sig: signal.Signals) -> None:
        if proc.process.returncode is not None:
            return
        try:
            os.killpg(proc.process.pid, sig)
        except ProcessLookupError:
            pass

    async def _kill(self, proc: Job | ShellSession, graceful: bool = False) -> None:
        if graceful:
            self._signal(proc, signal.SIGTERM)
            try:
                await asyncio.wait_for(asyncio.shield(proc.exited), TERMINATE_GRACE_SECONDS)
            except TimeoutError:
                pass
        self._signal(proc, signal.SIGKILL)
        await proc.exited
        await self._drain(proc)
        if proc.reader is not None and not proc.reader.done():
            proc.reader.cancel()

    # Temporary runs

    async def run_command(
        self,
        command: str,
        cwd: Resource | None,
        terminal_id: str,
        token: CancellationToken | None = None,
    ) -> TerminalRunResult:
        """
        Run command to completion or until it goes quiet.

        Resolves as done with the exit code if the command exits, or as a
        timeout (after killing it) once no output has arrived for the
        inactivity window.
        """
        job = await self._spawn(command, cwd)
        self._temporary[terminal_id] = job
        if token is not None:
            token.on_cancel(lambda: self._signal(job, signal.SIGKILL))
        loop = asyncio.get_running_loop()
        try:
            while True:
                remaining = job.last_output_at + self.config.inactive_seconds - loop.time()
                if remaining <= 0:
                    logger.info(
                        f"Killing {terminal_id} after {self.config.inactive_seconds}s of inactivity"
                    )
                    await self._kill(job)
                    return TerminalRunResult(output=job.output.text(), reason=ResolveReason.timeout())
                try:
                    await asyncio.wait_for(asyncio.shield(job.exited), remaining)
                except TimeoutError:
                    continue
                await self._drain(job)
                return job.result()
        finally:
            self._temporary.pop(terminal_id, None)
            if job.is_running:
                await self._kill(job)

    # Persistent terminals

    def open_persistent(self, cwd: Resource | None) -> str:
        terminal_id = f"persistent-{next(self._ids)}"
        self._persistent[terminal_id] = PersistentTerminal(id=terminal_id, cwd=cwd)
        logger.info(f"Opened persistent terminal {terminal_id} in {cwd}")
        return terminal_id

    def _get_persistent(self, terminal_id: str) -> PersistentTerminal:
        terminal = self._persistent.get(terminal_id)
        if terminal is None:
            open_ids = ", ".join(self._persistent) or "none"
            raise ExecutionError(
                f'Persistent terminal "{terminal_id}" does not exist. '
                f"Open terminals: {open_ids}. Use open_persistent_terminal to create one."
            )
        return terminal

    async def _start_shell(self, terminal: PersistentTerminal) -> ShellSession:
        process = await asyncio.create_subprocess_exec(
            self.config.shell,
            stdin=asyncio.subprocess.PIPE,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.STDOUT,
            cwd=terminal.cwd.path if terminal.cwd is not None else None,
            start_new_session=True,
        )
        session = ShellSession(process=process)
        session.reader = asyncio.create_task(self._read_shell(session))
        session.exited = asyncio.create_task(process.wait())
        logger.debug(f"Started shell pid {process.pid} for {terminal.id}")
        return session

    async def _read_shell(self, session: ShellSession) -> None:
        stream = session.process.stdout
        assert stream is not None
        pending = b""
        try:
            while True:
                data = await stream.read(READ_CHUNK)
                if not data:
                    break
                pending = self._route_output(session, pending + data)
            await session.process.wait()
        finally:
            command = session.current
            if command is not None:
                # the shell died before printing the marker
                session.current = None
                command.output.feed(pending, final=True)
                command.finish(session.process.returncode)

    def _route_output(self, session: ShellSession, pending: bytes) -> bytes:
        """Feed output to the running command and finish it at its marker. Returns unconsumed bytes."""
        while pending:
            command = session.current
            if command is None:
                logger.debug(f"Discarding {len(pending)} bytes written between commands")
                return b""
            start = pending.find(command.marker)
            if start < 0:
                keep = _marker_prefix_len(pending, command.marker)
                command.output.feed(pending[:len(pending) - keep])
                return pending[len(pending) - keep:]
            status_end = pending.find(b"\n", start + len(command.marker))
            if status_end < 0:
                command.output.feed(pending[:start])
                return pending[start:]
            command.output.feed(pending[:start], final=True)
            status = pending[start + len(command.marker):status_end].strip()
            session.current = None
            command.finish(int(status) if status.isdigit() else -1)
            pending = pending[status_end + 1:]
        return pending

    async def _live_shell(self, terminal: PersistentTerminal) -> ShellSession:
        session = terminal.shell
        if session is not None and session.process.returncode is None:
            return session
        if session is not None:
            logger.warning(
                f"Shell of {terminal.id} exited with {session.process.returncode}, starting a new one"
            )
        terminal.shell = await self._start_shell(terminal)
        return terminal.shell

    async def run_persistent_command(
        self,
        terminal_id: str,
        command: str,
        token: CancellationToken | None = None,
    ) -> TerminalRunResult:
        """
        Send command to a persistent terminal's shell and wait the background window.

        A command still running when the window closes keeps running; the
        result carries its output so far with a timeout reason. A terminal
        runs one command at a time. Interrupting kills the shell, and the
        next command starts a fresh one in the terminal's directory.
        """
        terminal = self._get_persistent(terminal_id)
        if terminal.last_command is not None and terminal.last_command.is_running:
            raise ExecutionError(
                f'Terminal "{terminal_id}" is still running "{terminal.last_command.command}". '
                "Wait for it to finish, or kill the terminal to stop it."
            )
        session = await self._live_shell(terminal)
        marker = f"{MARKER_PREFIX}{uuid.uuid4().hex}__"
        shell_command = ShellCommand(
            command=command,
            marker=f"\n{marker}".encode(),
            output=OutputBuffer(self.config.max_output_chars),
        )
        session.current = shell_command
        terminal.last_command = shell_command

        stdin = session.process.stdin
        assert stdin is not None
        try:
            stdin.write(shell_script(command, marker).encode())
            await stdin.drain()
        except (BrokenPipeError, ConnectionResetError) as e:
            session.current = None
            shell_command.finish(session.process.returncode)
            raise ExecutionError(
                f'The shell of terminal "{terminal_id}" stopped accepting input: {e}'
            ) from e

        def interrupt() -> None:
            if shell_command.is_running:
                self._signal(session, signal.SIGKILL)

        if token is not None:
            token.on_cancel(interrupt)

        finished = asyncio.ensure_future(shell_command.finished.wait())
        try:
            done, _ = await asyncio.wait(
                {finished, session.exited},
                timeout=self.config.background_check_seconds,
                return_when=asyncio.FIRST_COMPLETED,
            )
        finally:
            finished.cancel()
        if shell_command.is_running and session.exited in done:
            await self._drain(session)
            if shell_command.is_running:
                session.current = None
                shell_command.finish(session.process.returncode)
        if shell_command.is_running:
            logger.info(f"Command in {terminal_id} still running after the background window")
        return shell_command.result()

    def poll(self, terminal_id: str) -> TerminalRunResult:
        """Output so far of the latest command in a persistent terminal."""
        terminal = self._get_persistent(terminal_id)
        if terminal.last_command is None:
            raise ExecutionError(f'No command has been run in terminal "{terminal_id}" yet.')
        return terminal.last_command.result()

    async def kill_persistent(self, terminal_id: str) -> None:
        terminal = self._get_persistent(terminal_id)
        del self._persistent[terminal_id]
        if terminal.shell is not None:
            await self._kill(terminal.shell, graceful=True)
        logger.info(f"Closed persistent terminal {terminal_id}")

    async def close(self) -> None:
        """Kill every session. Called at gateway shutdown."""
        procs: list[Job | ShellSession] = list(self._temporary.values())
        procs.extend(t.shell for t in self._persistent.values() if t.shell is not None)
        self._temporary.clear()
        self._persistent.clear()
        await asyncio.gather(*(self._kill(proc) for proc in procs))
