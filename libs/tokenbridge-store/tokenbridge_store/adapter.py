"""Storage adapter with transparent legacy -> 2.0 migration.

Record shapes under ``project:{id}``:

  * 2.0:    ``{"version": "2.0", "projectId", "tokens", "metadata"}``
  * legacy: ``{"tokenFiles": {...}, "tokenSource", ...}`` with no ``version``

Loading a legacy record writes a verbatim backup to
``backup:{id}:{epoch_ms}`` first, re-processes every legacy file, checks
that the produced token count equals the legacy leaf count, and only then
persists the 2.0 record. Nothing is written to the project key on failure.

`ingest` goes through the same load first, then merges new tokens into the
stored ones by id; stored tokens are superseded, never dropped.
"""

from __future__ import annotations

import asyncio
import json
import logging
import time
import weakref
from collections.abc import Callable
from dataclasses import dataclass
from datetime import timedelta
from typing import Any

from pydantic import ValidationError

from tokenbridge_core.errors import (
    BackupError,
    BackupNotFoundError,
    MigrationError,
    Result,
    StorageLimitError,
    TokenBridgeError,
    UnsupportedVersionError,
)
from tokenbridge_core.formats import count_leaf_tokens
from tokenbridge_core.models import (
    SCHEMA_VERSION,
    ImportStats,
    LegacyTokenState,
    PersistedProjectStorage,
    ProcessingOptions,
    SourceConfig,
    StorageMetadata,
    Token,
)
from tokenbridge_core.processor import TokenProcessor, infer_collection_from_path, now_iso
from tokenbridge_core.registry import default_registry
from tokenbridge_core.repository import TokenRepository

from tokenbridge_store.kvstore import KeyValueStore

logger = logging.getLogger(__name__)

MAX_STORAGE_BYTES = 1024 * 1024  # 1 MiB of UTF-8 JSON
BACKUP_RETENTION = timedelta(days=14)


def project_key(project_id: str) -> str:
    return f"project:{project_id}"


def backup_prefix(project_id: str) -> str:
    return f"backup:{project_id}:"


def backup_key(project_id: str, timestamp: int) -> str:
    return f"{backup_prefix(project_id)}{timestamp}"


def serialize_storage(storage: PersistedProjectStorage) -> str:
    data = storage.model_dump(mode="json", by_alias=True, exclude_none=True)
    return json.dumps(data, ensure_ascii=False, separators=(",", ":"))


@dataclass
class MigrationStats:
    tokens_count: int
    files_count: int
    backup_key: str
    migration_ms: int


class StorageAdapter:
    """Loads and saves per-project token storage through a KeyValueStore."""

    def __init__(
        self,
        store: KeyValueStore,
        processor: TokenProcessor | None = None,
        clock: Callable[[], int] | None = None,
    ):
        self.store = store
        self.processor = processor or TokenProcessor(default_registry())
        self.clock = clock or (lambda: int(time.time() * 1000))
        self.last_migration: MigrationStats | None = None
        # held only while some caller uses the lock
        self._locks: weakref.WeakValueDictionary[str, asyncio.Lock] = weakref.WeakValueDictionary()

    def _lock(self, project_id: str) -> asyncio.Lock:
        lock = self._locks.get(project_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[project_id] = lock
        return lock

    async def load(self, project_id: str = "default") -> Result[list[Token]]:
        """Load tokens, migrating a legacy record on the way if needed."""
        try:
            async with self._lock(project_id):
                return Result.success(await self._load(project_id))
        except Exception as e:
            return self._load_failure(project_id, e, "load")

    async def ingest(self, project_id: str, tokens: list[Token]) -> Result[ImportStats]:
        """Merge `tokens` into the stored project and persist the result.

        The stored record is loaded first (migrating a legacy record, with
        its backup, exactly as `load` does). Tokens supersede stored ones
        with the same id; stored tokens absent from `tokens` are kept.
        """
        try:
            async with self._lock(project_id):
                repo = TokenRepository(await self._load(project_id))
                merged = repo.add(tokens)
                if not merged.ok or merged.value is None:
                    raise TokenBridgeError(merged.error or "merge failed")
                stats = merged.value
                await self._save(project_id, repo.all(), import_stats=stats)
        except StorageLimitError as e:
            logger.error(str(e))
            return Result.failure(str(e), context="ingest")
        except Exception as e:
            return self._load_failure(project_id, e, "ingest")
        logger.info(f"Ingested into {project_id}: +{stats.added} ~{stats.updated} ={stats.skipped}")
        return Result.success(stats)

    def _load_failure(self, project_id: str, e: Exception, context: str) -> Result[Any]:
        if isinstance(e, BackupError):
            logger.error(f"Backup failed, migration aborted for {project_id}: {e}")
            return Result.failure(f"Failed to create backup before migration: {e}", context=context)
        if isinstance(e, MigrationError):
            logger.error(f"Migration failed for {project_id}: {e}")
            return Result.failure(f"Migration failed: {e}", context=context)
        if isinstance(e, UnsupportedVersionError):
            return Result.failure(str(e), context=context)
        logger.error(f"Storage {context} failed for {project_id}: {e}")
        return Result.failure(f"Storage {context} failed: {e}", context=context)

    async def _load(self, project_id: str) -> list[Token]:
        raw = await self.store.get_async(project_key(project_id))
        if raw is None:
            logger.debug(f"No record for {project_id}, new project")
            return []

        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            raise MigrationError(f"Stored record is not valid JSON: {e}") from e
        if not isinstance(data, dict):
            raise MigrationError(f"Stored record must be an object, got {type(data).__name__}")

        if "version" in data:
            if data["version"] != SCHEMA_VERSION:
                raise UnsupportedVersionError(f"Unsupported storage version: {data['version']}")
            storage = PersistedProjectStorage.model_validate(data)
            logger.debug(f"Loaded {len(storage.tokens)} tokens for {project_id}")
            return storage.tokens

        if "tokenFiles" in data:
            return await self._migrate(project_id, raw, data)

        raise MigrationError("Unrecognized storage record (neither versioned nor legacy)")

    async def _migrate(self, project_id: str, raw: str, data: dict[str, Any]) -> list[Token]:
        started = time.monotonic()
        logger.info(f"Legacy record found for {project_id}, migrating to {SCHEMA_VERSION}")

        key = await self._backup(project_id, raw)

        try:
            legacy = LegacyTokenState.model_validate(data)
        except ValidationError as e:
            raise MigrationError(f"Legacy record is malformed: {e}") from e

        tokens = self._migrate_files(project_id, legacy)

        expected = sum(count_leaf_tokens(f.content) for f in legacy.token_files.values())
        if expected > 0 and not tokens:
            raise MigrationError("Migration produced zero tokens from non-empty files")
        if len(tokens) != expected:
            raise MigrationError(
                f"Token count mismatch: legacy record has {expected} tokens, migration produced {len(tokens)}"
            )

        # Limit violations surface as a migration failure; the legacy record stays in place
        try:
            await self._save(project_id, tokens, legacy)
        except StorageLimitError as e:
            raise MigrationError(str(e)) from e

        self.last_migration = MigrationStats(
            tokens_count=len(tokens),
            files_count=len(legacy.token_files),
            backup_key=key,
            migration_ms=int((time.monotonic() - started) * 1000),
        )
        logger.info(
            f"Migrated {project_id}: {len(tokens)} tokens from "
            f"{len(legacy.token_files)} file(s), backup {key}"
        )
        return tokens

    def _migrate_files(self, project_id: str, legacy: LegacyTokenState) -> list[Token]:
        tokens: list[Token] = []
        for file_name, f in legacy.token_files.items():
            location = f.path or f.name or file_name
            options = ProcessingOptions(
                project_id=project_id,
                collection=infer_collection_from_path(location),
                source_type=f.source,
                source_location=location,
            )
            result = self.processor.process_token_data(f.content, options)
            if result.ok and result.value is not None:
                tokens.extend(result.value)
                logger.debug(f"  {file_name}: {len(result.value)} tokens")
            else:
                logger.warning(f"Failed to migrate {file_name}: {result.error}")
        return tokens

    async def _backup(self, project_id: str, raw: str) -> str:
        try:
            timestamp = self.clock()
            while await self.store.get_async(backup_key(project_id, timestamp)) is not None:
                timestamp += 1
            key = backup_key(project_id, timestamp)
            await self.store.set_async(key, raw)
        except Exception as e:
            raise BackupError(f"Backup failed: {e}") from e
        logger.info(f"Backup created: {key}")
        return key

    async def save(
        self,
        project_id: str,
        tokens: list[Token],
        legacy: LegacyTokenState | None = None,
    ) -> Result[None]:
        """Persist tokens as a 2.0 record; rejected whole above MAX_STORAGE_BYTES."""
        try:
            await self._save(project_id, tokens, legacy)
            return Result.success()
        except StorageLimitError as e:
            logger.error(str(e))
            return Result.failure(str(e), context="save")
        except Exception as e:
            logger.error(f"Storage save failed for {project_id}: {e}")
            return Result.failure(f"Storage save failed: {e}", context="save")

    async def _save(
        self,
        project_id: str,
        tokens: list[Token],
        legacy: LegacyTokenState | None = None,
        import_stats: ImportStats | None = None,
    ) -> None:
        storage = PersistedProjectStorage(
            version=SCHEMA_VERSION,
            project_id=project_id,
            tokens=tokens,
            metadata=StorageMetadata(
                last_sync=now_iso(),
                source=build_source_config(tokens, legacy),
                import_stats=import_stats or ImportStats(added=len(tokens)),
            ),
        )
        serialized = serialize_storage(storage)
        size = len(serialized.encode("utf-8"))
        if size > MAX_STORAGE_BYTES:
            raise StorageLimitError(
                f"Storage exceeds 1 MiB limit ({size} > {MAX_STORAGE_BYTES} bytes). "
                "Split the tokens across projects or reduce the token count."
            )
        await self.store.set_async(project_key(project_id), serialized)
        logger.info(f"Saved {len(tokens)} tokens for {project_id} ({size / 1024:.1f} KiB)")

    async def restore_from_backup(self, project_id: str, timestamp: int) -> Result[None]:
        """Copy a backup blob back into the live project key, verbatim."""
        key = backup_key(project_id, timestamp)
        try:
            async with self._lock(project_id):
                blob = await self.store.get_async(key)
                if blob is None:
                    raise BackupNotFoundError(f"Backup not found: {key}")
                await self.store.set_async(project_key(project_id), blob)
        except BackupNotFoundError as e:
            return Result.failure(str(e), context="restore_from_backup")
        except Exception as e:
            logger.error(f"Restore failed for {key}: {e}")
            return Result.failure(f"Restore failed: {e}", context="restore_from_backup")
        logger.info(f"Restored {project_id} from {key}")
        return Result.success()

    async def list_backups(self, project_id: str) -> Result[list[int]]:
        """Backup timestamps (epoch ms) for a project, oldest first."""
        try:
            prefix = backup_prefix(project_id)
            stamps = []
            for key in await self.store.keys_async(prefix):
                suffix = key[len(prefix) :]
                if suffix.isdigit():
                    stamps.append(int(suffix))
            return Result.success(sorted(stamps))
        except Exception as e:
            return Result.failure(f"List backups failed: {e}", context="list_backups")

    async def prune_backups(
        self, project_id: str, max_age: timedelta = BACKUP_RETENTION
    ) -> Result[int]:
        """Delete backups older than `max_age`; returns how many were removed."""
        listed = await self.list_backups(project_id)
        if not listed.ok:
            return Result.failure(listed.error or "", context="prune_backups")

        cutoff = self.clock() - int(max_age.total_seconds() * 1000)
        removed = 0
        try:
            for ts in listed.value or []:
                if ts < cutoff:
                    await self.store.delete_async(backup_key(project_id, ts))
                    removed += 1
        except Exception as e:
            return Result.failure(f"Prune failed after {removed} deletion(s): {e}", context="prune_backups")
        if removed:
            logger.info(f"Pruned {removed} backup(s) for {project_id}")
        return Result.success(removed)


def build_source_config(tokens: list[Token], legacy: LegacyTokenState | None = None) -> SourceConfig:
    """Source metadata from the first token, else from the legacy record."""
    if tokens:
        src = tokens[0].source
        return SourceConfig(type=src.type, location=src.location, branch=src.branch, commit=src.commit)
    if legacy is not None:
        gh = legacy.github_config
        return SourceConfig(
            type=legacy.token_source or "local",
            location=gh.repo if gh and gh.repo else "unknown",
            branch=gh.branch if gh else None,
        )
    return SourceConfig()
