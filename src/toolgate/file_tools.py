"""
Executors for the file tools.

Params arrive already validated and sandboxed. Read and search tools that
miss on the exact path retry once with a workspace-wide lookup of the
file's base name before reporting that the file does not exist.
"""

import asyncio
import logging
import re
from collections.abc import Callable

from toolgate.cancellation import CancellationToken
from toolgate.config import FileToolConfig
from toolgate.directory import list_directory, render_tree
from toolgate.errors import ExecutionError
from toolgate.files import (
    DiagnosticsStore,
    FileStore,
    InMemoryDiagnostics,
    LocalFileStore,
    WriterRegistry,
    apply_search_replace_blocks,
    collect_lint_errors,
)
from toolgate.pagination import paginate_text
from toolgate.search import KeywordIndex, SearchService
from toolgate.types import (
    DirTreeResult,
    EmptyResult,
    LineMatch,
    LintError,
    LintErrorsResult,
    LsDirResult,
    PathListResult,
    ReadFileResult,
    Resource,
    SearchInFileResult,
)
from toolgate.validation import (
    CreateParams,
    DeleteParams,
    DirTreeParams,
    EditFileParams,
    LintErrorsParams,
    LsDirParams,
    ReadFileParams,
    RewriteFileParams,
    SearchForFilesParams,
    SearchInFileParams,
    SearchPathnamesParams,
)

logger = logging.getLogger(__name__)

FallbackCallback = Callable[[Resource, Resource], None]


class FileTools:
    """Runs the read, search and edit tools against a FileStore."""

    def __init__(
        self,
        search: SearchService,
        store: FileStore | None = None,
        diagnostics: DiagnosticsStore | None = None,
        writers: WriterRegistry | None = None,
        config: FileToolConfig | None = None,
        index: KeywordIndex | None = None,
    ) -> None:
        self.search = search
        self.store = store or LocalFileStore()
        self.diagnostics = diagnostics or InMemoryDiagnostics()
        self.writers = writers or WriterRegistry()
        self.config = config or FileToolConfig()
        self.index = index

    async def _read_with_fallback(
        self,
        resource: Resource,
        token: CancellationToken | None,
        on_fallback: FallbackCallback | None,
    ) -> tuple[Resource, str]:
        text = await asyncio.to_thread(self.store.read_text, resource)
        if text is None:
            fallback = await self.search.find_by_basename(resource, token)
            if fallback is not None:
                logger.info(f"{resource.path} not found, using {fallback.path}")
                if on_fallback:
                    on_fallback(resource, fallback)
                resource = fallback
                text = await asyncio.to_thread(self.store.read_text, fallback)
        if text is None:
            raise ExecutionError(f"No contents; File does not exist: {resource.path}")
        return resource, text

    async def read_file(
        self,
        params: ReadFileParams,
        token: CancellationToken | None = None,
        on_fallback: FallbackCallback | None = None,
    ) -> ReadFileResult:
        resource, text = await self._read_with_fallback(params.resource, token, on_fallback)
        lines = text.split("\n")
        if params.start_line is None and params.end_line is None:
            contents = text
        else:
            start = params.start_line or 1
            end = params.end_line or len(lines)
            contents = "\n".join(lines[start - 1:end])
        page, has_next_page = paginate_text(contents, self.config.file_page_chars, params.page_number)
        return ReadFileResult(
            resource=resource,
            file_contents=page,
            total_file_len=len(contents),
            total_num_lines=len(lines),
            has_next_page=has_next_page,
        )

    async def ls_dir(self, params: LsDirParams) -> LsDirResult:
        return await asyncio.to_thread(
            list_directory,
            self.store,
            params.resource,
            params.page_number,
            self.config.children_page_size,
        )

    async def get_dir_tree(self, params: DirTreeParams) -> DirTreeResult:
        if not await asyncio.to_thread(self.store.is_dir, params.resource):
            raise ExecutionError(f"{params.resource.path} is not a folder.")
        text = await asyncio.to_thread(
            render_tree, self.store, params.resource, self.config.max_dir_tree_chars
        )
        return DirTreeResult(text=text)

    async def search_pathnames_only(
        self,
        params: SearchPathnamesParams,
        token: CancellationToken | None = None,
    ) -> PathListResult:
        return await self.search.search_pathnames(
            params.query, params.include_pattern, params.page_number, token
        )

    async def search_for_files(
        self,
        params: SearchForFilesParams,
        token: CancellationToken | None = None,
    ) -> PathListResult:
        return await self.search.search_for_files(
            params.query, params.is_regex, params.search_in_folder, params.page_number, token
        )

    async def search_in_file(
        self,
        params: SearchInFileParams,
        token: CancellationToken | None = None,
        on_fallback: FallbackCallback | None = None,
    ) -> SearchInFileResult:
        resource, text = await self._read_with_fallback(params.resource, token, on_fallback)
        regex = re.compile(params.query) if params.is_regex else None
        matches = [
            LineMatch(line_number=i, text=line)
            for i, line in enumerate(text.split("\n"), start=1)
            if (regex.search(line) if regex else params.query in line)
        ]
        return SearchInFileResult(resource=resource, matches=matches)

    async def read_lint_errors(self, params: LintErrorsParams) -> LintErrorsResult:
        await asyncio.sleep(self.config.read_lint_delay_seconds)
        return LintErrorsResult(self._lint(params.resource))

    def _lint(self, resource: Resource) -> list[LintError] | None:
        return collect_lint_errors(self.diagnostics, resource, self.config.max_lint_items)

    async def create_file_or_folder(self, params: CreateParams) -> EmptyResult:
        create = self.store.create_folder if params.is_folder else self.store.create_file
        await asyncio.to_thread(create, params.resource)
        return EmptyResult()

    async def delete_file_or_folder(self, params: DeleteParams) -> EmptyResult:
        resource = params.resource
        # a trailing slash on the uri promises a folder
        if params.is_folder:
            exists, is_dir = await asyncio.to_thread(
                lambda: (self.store.exists(resource), self.store.is_dir(resource))
            )
            if exists and not is_dir:
                raise ExecutionError(f"{resource.path} is a file, not a folder.")
        await asyncio.to_thread(self.store.delete, resource, params.is_recursive)
        if self.index is not None:
            self.index.remove(resource)
        return EmptyResult()

    async def rewrite_file(self, params: RewriteFileParams, writer_id: str) -> LintErrorsResult:
        with self.writers.streaming(params.resource, writer_id):
            await asyncio.to_thread(self.store.write_text, params.resource, params.new_content)
        self._reindex(params.resource, params.new_content)
        await asyncio.sleep(self.config.edit_lint_delay_seconds)
        return LintErrorsResult(self._lint(params.resource))

    async def edit_file(self, params: EditFileParams, writer_id: str) -> LintErrorsResult:
        with self.writers.streaming(params.resource, writer_id):
            text = await asyncio.to_thread(self.store.read_text, params.resource)
            if text is None:
                raise ExecutionError(f"No contents; File does not exist: {params.resource.path}")
            new_text = apply_search_replace_blocks(text, params.search_replace_blocks)
            await asyncio.to_thread(self.store.write_text, params.resource, new_text)
        self._reindex(params.resource, new_text)
        await asyncio.sleep(self.config.edit_lint_delay_seconds)
        return LintErrorsResult(self._lint(params.resource))

    def _reindex(self, resource: Resource, text: str) -> None:
        if self.index is not None and self.index.is_built:
            self.index.update(resource, text)
