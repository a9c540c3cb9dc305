"""
Workspace search.

Two backends sit behind the search tools. KeywordIndex is an in-memory
keyword index that answers quickly once built. WorkspaceScanner walks the
roots on every call and always works. Tools try them as an ordered list of
strategies, so a cold or missing index simply means the scan answers.
"""

import asyncio
import fnmatch
import logging
import os
import re
import threading
from collections.abc import Awaitable, Callable, Iterator, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Generic, TypeVar

from toolgate.cancellation import CancellationToken
from toolgate.pagination import paginate
from toolgate.types import PathListResult, Resource
from toolgate.workspace import Workspace

logger = logging.getLogger(__name__)

T = TypeVar("T")

SKIP_DIRS = frozenset({
    ".git", ".hg", ".svn", "node_modules", "__pycache__", ".venv", "venv",
    ".tox", ".nox", ".mypy_cache", ".pytest_cache", ".ruff_cache", ".idea",
    "dist", "build", "out", "target", ".next", ".cache",
})

MAX_SCAN_FILE_BYTES = 2_000_000


def iter_files(
    folders: Sequence[Resource],
    token: CancellationToken | None = None,
) -> Iterator[Path]:
    """Walk folders in path order, skipping heavy directories."""
    for folder in folders:
        base = folder.fs_path
        if base.is_file():
            yield base
            continue
        for dirpath, dirnames, filenames in os.walk(base):
            dirnames[:] = sorted(d for d in dirnames if d not in SKIP_DIRS)
            for filename in sorted(filenames):
                if token is not None and token.is_cancelled:
                    return
                yield Path(dirpath) / filename


def read_text_file(path: Path) -> str | None:
    """Text of path, or None for binary, oversized or unreadable files."""
    try:
        if path.stat().st_size > MAX_SCAN_FILE_BYTES:
            return None
        raw = path.read_bytes()
    except OSError:
        return None
    if b"\0" in raw[:8192]:
        return None
    try:
        return raw.decode("utf-8")
    except UnicodeDecodeError:
        return None


class KeywordIndex:
    """
    Keyword index over workspace text files.

    Scoring follows simple word overlap: the fraction of query words that
    appear anywhere in the file. Until build() has run the index is empty
    and every query returns nothing.
    """

    def __init__(self, workspace: Workspace) -> None:
        self.workspace = workspace
        self._docs: dict[str, str] = {}
        self._built = False
        self._lock = threading.Lock()

    @property
    def is_built(self) -> bool:
        return self._built

    def __len__(self) -> int:
        return len(self._docs)

    def build(self, token: CancellationToken | None = None) -> int:
        """Index every text file under the workspace roots. Returns the file count."""
        docs: dict[str, str] = {}
        for path in iter_files(self.workspace.roots, token):
            text = read_text_file(path)
            if text is not None:
                docs[str(path)] = text.lower()
        with self._lock:
            self._docs = docs
            self._built = True
        logger.info(f"Indexed {len(docs)} files")
        return len(docs)

    def update(self, resource: Resource, text: str) -> None:
        with self._lock:
            self._docs[resource.path] = text.lower()

    def remove(self, resource: Resource) -> None:
        with self._lock:
            self._docs.pop(resource.path, None)

    def query(self, query: str, k: int) -> list[str]:
        """Up to k file paths ranked by score, ties broken by path."""
        words = query.lower().split()
        if not words:
            return []
        with self._lock:
            docs = list(self._docs.items())
        scored: list[tuple[float, str]] = []
        for path, content in docs:
            matches = sum(1 for word in words if word in content)
            if matches:
                scored.append((matches / len(words), path))
        scored.sort(key=lambda s: (-s[0], s[1]))
        return [path for _, path in scored[:k]]


class WorkspaceScanner:
    """Filename and content search by walking the workspace."""

    def __init__(self, workspace: Workspace) -> None:
        self.workspace = workspace

    def file_search(
        self,
        query: str,
        include_pattern: str | None = None,
        token: CancellationToken | None = None,
    ) -> list[Resource]:
        """
        Files whose name or path contains query, best matches first.

        Exact name matches rank first, then name prefixes, then name
        substrings, then matches elsewhere in the relative path.
        """
        needle = query.lower()
        ranked: list[tuple[int, int, str, Resource]] = []
        for path in iter_files(self.workspace.roots, token):
            resource = Resource.file(path)
            rel = self.workspace.relative_path(resource)
            if include_pattern and not _glob_match(rel, path.name, include_pattern):
                continue
            name = path.name.lower()
            if name == needle:
                rank = 0
            elif name.startswith(needle):
                rank = 1
            elif needle in name:
                rank = 2
            elif needle in rel.lower():
                rank = 3
            else:
                continue
            ranked.append((rank, len(rel), rel, resource))
        ranked.sort(key=lambda r: r[:3])
        return [r[3] for r in ranked]

    def text_search(
        self,
        pattern: str,
        is_regex: bool,
        folders: Sequence[Resource] | None = None,
        token: CancellationToken | None = None,
    ) -> list[Resource]:
        """Files whose content matches pattern, in path order."""
        regex = re.compile(pattern) if is_regex else None
        hits: list[Resource] = []
        for path in iter_files(folders or self.workspace.roots, token):
            text = read_text_file(path)
            if text is None:
                continue
            if (regex.search(text) if regex else pattern in text):
                hits.append(Resource.file(path))
        return hits


def _glob_match(rel: str, name: str, pattern: str) -> bool:
    for p in pattern.split(","):
        p = p.strip()
        if not p:
            continue
        candidates = [p]
        if p.startswith("**/"):
            candidates.append(p[3:])
        if any(fnmatch.fnmatch(rel, c) or fnmatch.fnmatch(name, c) for c in candidates):
            return True
    return False


@dataclass
class SearchStrategy(Generic[T]):
    """One tier of a fallback chain."""
    name: str
    attempt: Callable[[], Awaitable[list[T] | None]]


async def run_strategies(strategies: Sequence[SearchStrategy[T]]) -> tuple[str, list[T]]:
    """
    Try strategies in order and return the first non-empty answer.

    A failing tier that is not the last one is logged and skipped. The last
    tier's answer is returned even when empty, and its errors propagate.
    """
    for strategy in strategies[:-1]:
        try:
            results = await strategy.attempt()
        except Exception as e:
            logger.warning(f"Search strategy {strategy.name} failed, falling back: {e}")
            continue
        if results:
            return strategy.name, results
        logger.debug(f"Search strategy {strategy.name} returned nothing, falling back")
    last = strategies[-1]
    return last.name, (await last.attempt()) or []


class SearchService:
    """Runs the search tools over the index and the scanner."""

    def __init__(
        self,
        workspace: Workspace,
        scanner: WorkspaceScanner | None = None,
        index: KeywordIndex | None = None,
        page_size: int = 500,
    ) -> None:
        self.workspace = workspace
        self.scanner = scanner or WorkspaceScanner(workspace)
        self.index = index
        self.page_size = page_size

    async def search_pathnames(
        self,
        query: str,
        include_pattern: str | None,
        page_number: int,
        token: CancellationToken | None = None,
    ) -> PathListResult:
        resources = await asyncio.to_thread(
            self.scanner.file_search, query, include_pattern, token
        )
        page = paginate(resources, self.page_size, page_number)
        return PathListResult(resources=page.items, has_next_page=page.has_next_page, source="scan")

    async def search_for_files(
        self,
        query: str,
        is_regex: bool,
        search_in_folder: Resource | None,
        page_number: int,
        token: CancellationToken | None = None,
    ) -> PathListResult:
        strategies: list[SearchStrategy[Resource]] = []
        if self.index is not None and not is_regex and search_in_folder is None:
            # one extra hit tells whether another page exists
            k = self.page_size * page_number + 1

            async def from_index() -> list[Resource]:
                paths = await asyncio.to_thread(self.index.query, query, k)
                return [Resource.file(p) for p in paths]

            strategies.append(SearchStrategy("index", from_index))

        folders = [search_in_folder] if search_in_folder is not None else None

        async def from_scan() -> list[Resource]:
            return await asyncio.to_thread(
                self.scanner.text_search, query, is_regex, folders, token
            )

        strategies.append(SearchStrategy("scan", from_scan))
        source, resources = await run_strategies(strategies)
        page = paginate(resources, self.page_size, page_number)
        return PathListResult(resources=page.items, has_next_page=page.has_next_page, source=source)

    async def find_by_basename(
        self,
        resource: Resource,
        token: CancellationToken | None = None,
    ) -> Resource | None:
        """Best file in the workspace sharing resource's name, for recovering from bad paths."""
        matches = await asyncio.to_thread(self.scanner.file_search, resource.name, None, token)
        return matches[0] if matches else None
