"""
File-system collaborators for the file tools.

FileStore is the only thing the file tools use to touch disk; the local
implementation works directly on pathlib paths. DiagnosticsStore stands in
for whatever produces lint markers (a language server, a linter run). The
WriterRegistry tracks which resources are currently being streamed into,
so two writers never interleave edits on one file.
"""

import logging
import shutil
import threading
from abc import ABC, abstractmethod
from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from enum import IntEnum

from toolgate.errors import ExecutionError, ResourceBusyError
from toolgate.types import DirectoryEntry, LintError, Resource

logger = logging.getLogger(__name__)

BUSY_MESSAGE = (
    "Another LLM is currently making changes to this file. "
    "Please stop streaming for now and ask the user to resume later."
)


class FileStore(ABC):
    """Read and write access to workspace files."""

    @abstractmethod
    def read_text(self, resource: Resource) -> str | None:
        """Return the file's text with LF line endings, or None if it is not a file."""
        pass

    @abstractmethod
    def write_text(self, resource: Resource, content: str) -> None:
        pass

    @abstractmethod
    def exists(self, resource: Resource) -> bool:
        pass

    @abstractmethod
    def is_dir(self, resource: Resource) -> bool:
        pass

    @abstractmethod
    def create_file(self, resource: Resource) -> None:
        pass

    @abstractmethod
    def create_folder(self, resource: Resource) -> None:
        pass

    @abstractmethod
    def delete(self, resource: Resource, recursive: bool) -> None:
        pass

    @abstractmethod
    def list_dir(self, resource: Resource) -> list[DirectoryEntry]:
        """One level of children, directories first, then by name."""
        pass


class LocalFileStore(FileStore):
    """FileStore backed by the local file system."""

    def read_text(self, resource: Resource) -> str | None:
        path = resource.fs_path
        if not path.is_file():
            return None
        raw = path.read_bytes()
        text = raw.decode("utf-8", errors="replace")
        return text.replace("\r\n", "\n")

    def write_text(self, resource: Resource, content: str) -> None:
        path = resource.fs_path
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")

    def exists(self, resource: Resource) -> bool:
        return resource.fs_path.exists()

    def is_dir(self, resource: Resource) -> bool:
        return resource.fs_path.is_dir()

    def create_file(self, resource: Resource) -> None:
        path = resource.fs_path
        if path.exists():
            logger.debug(f"{path} already exists, leaving it untouched")
            return
        path.parent.mkdir(parents=True, exist_ok=True)
        path.touch()

    def create_folder(self, resource: Resource) -> None:
        resource.fs_path.mkdir(parents=True, exist_ok=True)

    def delete(self, resource: Resource, recursive: bool) -> None:
        path = resource.fs_path
        if not path.exists() and not path.is_symlink():
            raise ExecutionError(f"Cannot delete {path}: it does not exist.")
        if path.is_dir() and not path.is_symlink():
            if recursive:
                shutil.rmtree(path)
                return
            if any(path.iterdir()):
                raise ExecutionError(
                    f"Cannot delete non-empty folder {path} without is_recursive=true."
                )
            path.rmdir()
            return
        path.unlink()

    def list_dir(self, resource: Resource) -> list[DirectoryEntry]:
        path = resource.fs_path
        if not path.is_dir():
            raise ExecutionError(f"{path} is not a folder.")
        entries = [
            DirectoryEntry(
                resource=resource.joinpath(child.name),
                name=child.name,
                is_directory=child.is_dir(),
                is_symlink=child.is_symlink(),
            )
            for child in path.iterdir()
        ]
        entries.sort(key=lambda e: (not e.is_directory, e.name.lower(), e.name))
        return entries


class Severity(IntEnum):
    """Marker severities, ordered from least to most severe."""
    HINT = 1
    INFO = 2
    WARNING = 4
    ERROR = 8


@dataclass(frozen=True)
class Marker:
    """A diagnostic attached to a range of lines in a file."""
    message: str
    severity: Severity
    start_line: int
    end_line: int
    code: str = ""


class DiagnosticsStore(ABC):
    """Source of lint markers, filterable by severity."""

    @abstractmethod
    def read(self, resource: Resource, severities: Iterable[Severity] | None = None) -> list[Marker]:
        pass


class InMemoryDiagnostics(DiagnosticsStore):
    """Markers pushed in by whatever runs the linters."""

    def __init__(self) -> None:
        self._markers: dict[Resource, list[Marker]] = {}
        self._lock = threading.Lock()

    def set_markers(self, resource: Resource, markers: Iterable[Marker]) -> None:
        with self._lock:
            self._markers[resource] = list(markers)

    def clear(self, resource: Resource | None = None) -> None:
        with self._lock:
            if resource is None:
                self._markers.clear()
            else:
                self._markers.pop(resource, None)

    def read(self, resource: Resource, severities: Iterable[Severity] | None = None) -> list[Marker]:
        with self._lock:
            markers = list(self._markers.get(resource, []))
        if severities is None:
            return markers
        wanted = set(severities)
        return [m for m in markers if m.severity in wanted]


def collect_lint_errors(
    diagnostics: DiagnosticsStore,
    resource: Resource,
    max_items: int = 100,
) -> list[LintError] | None:
    """Errors and warnings for resource, or None when there are none."""
    markers = diagnostics.read(resource, severities=(Severity.ERROR, Severity.WARNING))
    lint_errors = [
        LintError(
            code=m.code,
            message=("(error) " if m.severity == Severity.ERROR else "(warning) ") + m.message,
            start_line=m.start_line,
            end_line=m.end_line,
        )
        for m in markers[:max_items]
    ]
    return lint_errors or None


class WriterRegistry:
    """
    Tracks which resources are mid-stream and who is writing them.

    At most one writer holds a resource at a time. A second writer is
    refused immediately rather than queued.
    """

    def __init__(self) -> None:
        self._writers: dict[Resource, str] = {}
        self._lock = threading.Lock()

    def is_streaming(self, resource: Resource) -> bool:
        with self._lock:
            return resource in self._writers

    def begin(self, resource: Resource, writer_id: str) -> None:
        with self._lock:
            holder = self._writers.get(resource)
            if holder is not None and holder != writer_id:
                raise ResourceBusyError(BUSY_MESSAGE)
            self._writers[resource] = writer_id

    def end(self, resource: Resource, writer_id: str) -> None:
        with self._lock:
            if self._writers.get(resource) == writer_id:
                del self._writers[resource]

    @contextmanager
    def streaming(self, resource: Resource, writer_id: str) -> Iterator[None]:
        self.begin(resource, writer_id)
        try:
            yield
        finally:
            self.end(resource, writer_id)


ORIGINAL_MARKER = "<<<<<<< ORIGINAL"
DIVIDER_MARKER = "======="
UPDATED_MARKER = ">>>>>>> UPDATED"


def parse_search_replace_blocks(text: str) -> list[tuple[str, str]]:
    """Split SEARCH/REPLACE text into (original, updated) pairs."""
    blocks: list[tuple[str, str]] = []
    state = "outside"
    original: list[str] = []
    updated: list[str] = []

    for line in text.replace("\r\n", "\n").split("\n"):
        marker = line.strip()
        if state == "outside":
            if marker == ORIGINAL_MARKER:
                state = "original"
                original, updated = [], []
        elif state == "original":
            if marker == DIVIDER_MARKER:
                state = "updated"
            else:
                original.append(line)
        elif state == "updated":
            if marker == UPDATED_MARKER:
                blocks.append(("\n".join(original), "\n".join(updated)))
                state = "outside"
            else:
                updated.append(line)

    if state != "outside":
        raise ExecutionError(
            f"Search/replace block {len(blocks) + 1} is not terminated. Each block must be "
            f"{ORIGINAL_MARKER} ... {DIVIDER_MARKER} ... {UPDATED_MARKER}."
        )
    if not blocks:
        raise ExecutionError(
            f"No search/replace blocks found. Each block must be "
            f"{ORIGINAL_MARKER} ... {DIVIDER_MARKER} ... {UPDATED_MARKER}."
        )
    return blocks


def apply_search_replace_blocks(content: str, blocks_text: str) -> str:
    """Apply blocks in order; every ORIGINAL must occur exactly once."""
    for i, (original, updated) in enumerate(parse_search_replace_blocks(blocks_text), start=1):
        if not original:
            raise ExecutionError(f"ORIGINAL of block {i} is empty.")
        count = content.count(original)
        if count == 0:
            raise ExecutionError(
                f"ORIGINAL of block {i} was not found in the file: {original[:100]!r}"
            )
        if count > 1:
            raise ExecutionError(
                f"ORIGINAL of block {i} appears {count} times in the file. "
                "Include more surrounding lines to make it unique."
            )
        content = content.replace(original, updated, 1)
    return content
