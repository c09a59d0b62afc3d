"""File sources: where token documents come from.

A `FileSource` lists and fetches token documents. All operations are async
and return `Result`; errors are surfaced to the caller, never retried here.
Wrap calls in `BatchExecutor.process_batch_with_retry` when retries are wanted.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Literal, Protocol

from pydantic import BaseModel

from tokenbridge_core.batch import BatchExecutor
from tokenbridge_core.digest import compute_digest
from tokenbridge_core.errors import Result
from tokenbridge_core.yamlio import is_token_document, parse_document

logger = logging.getLogger(__name__)


class FileEntry(BaseModel):
    path: str
    type: Literal["file", "dir"] = "file"
    size: int | None = None
    sha: str | None = None


class LocalSourceConfig(BaseModel):
    root: Path
    files: list[str] | None = None  # restrict to these relative paths


class FetchedDocument(BaseModel):
    path: str
    document: dict[str, Any]


class FileSource(Protocol):
    async def fetch_file_list(self, config: Any) -> Result[list[FileEntry]]: ...

    async def fetch_file_content(self, config: Any, path: str) -> Result[dict[str, Any]]: ...

    async def fetch_multiple_files(
        self, config: Any, paths: list[str]
    ) -> Result[list[FetchedDocument]]: ...

    async def validate_config(self, config: Any) -> Result[bool]: ...


class LocalFileSource:
    """Reads *.json / *.yaml / *.yml token documents below a root directory."""

    def __init__(self, executor: BatchExecutor | None = None):
        self.executor = executor or BatchExecutor(batch_size=10, delay=0)

    async def validate_config(self, config: LocalSourceConfig) -> Result[bool]:
        root = Path(config.root)
        if not root.exists():
            return Result.failure(f"Root does not exist: {root}", context="validate_config")
        if not root.is_dir():
            return Result.failure(f"Root is not a directory: {root}", context="validate_config")
        return Result.success(True)

    async def fetch_file_list(self, config: LocalSourceConfig) -> Result[list[FileEntry]]:
        check = await self.validate_config(config)
        if not check.ok:
            return Result.failure(check.error or "invalid config", context="fetch_file_list")

        root = Path(config.root)
        wanted = set(config.files) if config.files else None
        entries: list[FileEntry] = []
        try:
            for p in sorted(root.rglob("*")):
                if not p.is_file() or not is_token_document(p):
                    continue
                if any(part.startswith(".") for part in p.relative_to(root).parts):
                    continue
                rel = p.relative_to(root).as_posix()
                if wanted is not None and rel not in wanted:
                    continue
                data = p.read_bytes()
                entries.append(FileEntry(path=rel, size=len(data), sha=compute_digest(data)))
        except OSError as e:
            logger.error(f"Failed to list {root}: {e}")
            return Result.failure(str(e), context="fetch_file_list")

        logger.debug(f"Found {len(entries)} token document(s) under {root}")
        return Result.success(entries)

    async def fetch_file_content(self, config: LocalSourceConfig, path: str) -> Result[dict[str, Any]]:
        try:
            return Result.success(await self._read(config, path))
        except Exception as e:
            return Result.failure(f"{path}: {e}", context="fetch_file_content")

    async def fetch_multiple_files(
        self, config: LocalSourceConfig, paths: list[str]
    ) -> Result[list[FetchedDocument]]:
        """Fetch every path; fail only when none of them could be loaded."""
        if not paths:
            return Result.success([])

        async def fetch_one(path: str, index: int) -> FetchedDocument:
            return FetchedDocument(path=path, document=await self._read(config, path))

        batch = await self.executor.process_batch(paths, fetch_one)
        if batch.success_count == 0:
            first = batch.failures[0].error if batch.failures else "unknown error"
            return Result.failure(
                f"No files could be loaded ({batch.failure_count} failed; first error: {first})",
                context="fetch_multiple_files",
            )
        return Result.success(batch.successes)

    async def _read(self, config: LocalSourceConfig, path: str) -> dict[str, Any]:
        root = Path(config.root).resolve()
        target = (root / path).resolve()
        if root != target and root not in target.parents:
            raise ValueError(f"Path escapes source root: {path}")
        text = target.read_text(encoding="utf-8")
        return parse_document(text, target.suffix)
