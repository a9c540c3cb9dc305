"""Directory listings for ls_dir and get_dir_tree."""

import logging

from toolgate.files import FileStore
from toolgate.pagination import paginate
from toolgate.search import SKIP_DIRS
from toolgate.types import DirectoryEntry, LsDirResult, Resource

logger = logging.getLogger(__name__)

BRANCH = "├── "
LAST_BRANCH = "└── "
PIPE = "│   "
SPACE = "    "


def entry_label(entry: DirectoryEntry) -> str:
    label = entry.name + ("/" if entry.is_directory else "")
    if entry.is_symlink:
        label += " (symlink)"
    return label


def list_directory(
    store: FileStore,
    resource: Resource,
    page_number: int,
    page_size: int,
) -> LsDirResult:
    page = paginate(store.list_dir(resource), page_size, page_number)
    return LsDirResult(
        children=page.items,
        has_next_page=page.has_next_page,
        has_prev_page=page.has_prev_page,
        items_remaining=page.items_remaining,
    )


def render_listing(resource: Resource, result: LsDirResult) -> str:
    """One-level tree, with a trailer when more children remain."""
    lines = [f"{resource.path.rstrip('/')}/"]
    last = len(result.children) - 1
    for i, entry in enumerate(result.children):
        prefix = LAST_BRANCH if i == last and not result.has_next_page else BRANCH
        lines.append(prefix + entry_label(entry))
    if result.has_next_page:
        lines.append(f"{LAST_BRANCH}({result.items_remaining} more items not shown...)")
    if not result.children and not result.has_next_page:
        lines.append(f"{LAST_BRANCH}(empty folder)")
    return "\n".join(lines)


class _TreeWriter:
    def __init__(self, max_chars: int) -> None:
        self.max_chars = max_chars
        self.lines: list[str] = []
        self.size = 0
        self.truncated = False

    def add(self, line: str) -> bool:
        if self.size + len(line) + 1 > self.max_chars:
            self.truncated = True
            return False
        self.lines.append(line)
        self.size += len(line) + 1
        return True


def render_tree(store: FileStore, resource: Resource, max_chars: int) -> str:
    """
    Recursive tree of resource.

    Heavy directories (version control, dependency and build output) are
    shown but not expanded. Output stops at max_chars with a note.
    """
    writer = _TreeWriter(max_chars)
    writer.add(f"{resource.path.rstrip('/')}/")
    _walk(store, resource, "", writer)
    text = "\n".join(writer.lines)
    if writer.truncated:
        logger.debug(f"Directory tree of {resource.path} truncated at {max_chars} chars")
        text += f"\n(Tree truncated after {max_chars} characters. Use ls_dir on a subfolder to see more.)"
    return text


def _walk(store: FileStore, folder: Resource, indent: str, writer: _TreeWriter) -> bool:
    entries = store.list_dir(folder)
    for i, entry in enumerate(entries):
        is_last = i == len(entries) - 1
        label = entry_label(entry)
        skipped = entry.is_directory and entry.name in SKIP_DIRS
        if skipped:
            label += " (contents omitted)"
        if not writer.add(indent + (LAST_BRANCH if is_last else BRANCH) + label):
            return False
        if entry.is_directory and not entry.is_symlink and not skipped:
            child_indent = indent + (SPACE if is_last else PIPE)
            if not _walk(store, entry.resource, child_indent, writer):
                return False
    return True
