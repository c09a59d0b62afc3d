"""In-memory token repository with secondary indexes.

Tokens are keyed by id. Adding a token whose id is already present
supersedes the stored one in place, so iteration order stays the order in
which ids were first seen. Indexes cover project, type, collection, tags,
qualified name and aliases (target id -> referrer ids).
"""

from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any

from tokenbridge_core.errors import Result
from tokenbridge_core.models import ImportStats, Token, TokenStatus, TokenType
from tokenbridge_core.processor import now_iso
from tokenbridge_core.resolver import TokenResolver
from tokenbridge_core.values import validate_token_value

logger = logging.getLogger(__name__)

# Fields that change on every ingest and say nothing about the token itself
_VOLATILE = {"created", "lastModified", "source"}


@dataclass
class TokenQuery:
    """Filters for `TokenRepository.query`; unset fields match everything."""

    ids: list[str] | None = None
    project_id: str | None = None
    type: TokenType | None = None
    types: list[TokenType] | None = None
    collection: str | None = None
    theme: str | None = None
    brand: str | None = None
    qualified_name: str | None = None
    path_prefix: list[str] | None = None
    tags: list[str] | None = None  # any of
    status: TokenStatus | None = None
    is_alias: bool | None = None


@dataclass
class RepositoryStats:
    total_tokens: int = 0
    by_project: dict[str, int] = field(default_factory=dict)
    by_type: dict[str, int] = field(default_factory=dict)
    by_collection: dict[str, int] = field(default_factory=dict)
    alias_count: int = 0
    circular_reference_count: int = 0


def _content(token: Token) -> dict[str, Any]:
    record = token.to_record()
    for key in _VOLATILE:
        record.pop(key, None)
    return record


class TokenRepository:
    def __init__(self, tokens: Iterable[Token] = (), *, validate_values: bool = True):
        self.validate_values = validate_values
        self._tokens: dict[str, Token] = {}
        self._by_project: dict[str, set[str]] = defaultdict(set)
        self._by_type: dict[TokenType, set[str]] = defaultdict(set)
        self._by_collection: dict[str, set[str]] = defaultdict(set)
        self._by_tag: dict[str, set[str]] = defaultdict(set)
        self._by_name: dict[str, str] = {}  # "project:qualifiedName" -> id
        self._referrers: dict[str, set[str]] = defaultdict(set)
        self.add(tokens)

    def add(self, tokens: Iterable[Token]) -> Result[ImportStats]:
        """Add or supersede tokens by id.

        A token equal to the stored one (ignoring timestamps and provenance)
        is skipped and the stored copy kept. A changed token replaces the
        stored one but keeps its ``created`` timestamp. Tokens whose value
        does not fit their type are still stored, as drafts carrying the
        problems under ``extensions["validationErrors"]``.
        """
        stats = ImportStats()
        drafts = 0
        try:
            for token in tokens:
                if not token.id or not token.project_id or not token.path:
                    logger.error(f"Skipping token with missing identity: {token.qualified_name!r}")
                    stats.skipped += 1
                    continue

                if self.validate_values:
                    token, problems = self._checked(token)
                    if problems:
                        drafts += 1

                existing = self._tokens.get(token.id)
                if existing is not None:
                    if _content(existing) == _content(token):
                        stats.skipped += 1
                        continue
                    token = token.model_copy(update={"created": existing.created})
                    self._unindex(existing)
                    stats.updated += 1
                else:
                    stats.added += 1

                self._tokens[token.id] = token
                self._index(token)
        except Exception as e:
            logger.error(f"Failed to add tokens: {e}")
            return Result.failure(str(e), context="add")

        if drafts:
            logger.warning(f"{drafts} token(s) failed value validation and were stored as drafts")
        return Result.success(stats)

    def _checked(self, token: Token) -> tuple[Token, list[str]]:
        if token.is_alias:
            return token, []
        problems = validate_token_value(token.value, token.type.value)
        if not problems:
            return token, []
        logger.warning(f"Invalid {token.type.value} value for {token.qualified_name}: {problems}")
        extensions = {**token.extensions, "validationErrors": problems}
        return token.model_copy(update={"status": TokenStatus.DRAFT, "extensions": extensions}), problems

    def get(self, token_id: str) -> Token | None:
        return self._tokens.get(token_id)

    def get_by_qualified_name(self, project_id: str, qualified_name: str) -> Token | None:
        token_id = self._by_name.get(f"{project_id}:{qualified_name}")
        return self._tokens.get(token_id) if token_id else None

    def get_by_path(self, project_id: str, path: list[str]) -> Token | None:
        return self.get_by_qualified_name(project_id, ".".join(path))

    def get_by_project(self, project_id: str) -> list[Token]:
        return self._ordered(self._by_project.get(project_id, set()))

    def get_by_type(self, type_: TokenType) -> list[Token]:
        return self._ordered(self._by_type.get(type_, set()))

    def get_referencing_tokens(self, target_id: str) -> list[Token]:
        """Tokens whose alias points at `target_id`."""
        return self._ordered(self._referrers.get(target_id, set()))

    def all(self) -> list[Token]:
        return list(self._tokens.values())

    def query(self, query: TokenQuery | None = None) -> list[Token]:
        q = query or TokenQuery()

        if q.ids:
            wanted = set(q.ids)
            results = [t for t in self._tokens.values() if t.id in wanted]
        elif q.project_id is not None:
            results = self.get_by_project(q.project_id)
        elif q.type is not None:
            results = self.get_by_type(q.type)
        elif q.tags:
            ids: set[str] = set()
            for tag in q.tags:
                ids |= self._by_tag.get(tag, set())
            results = self._ordered(ids)
        else:
            results = self.all()

        def keep(t: Token) -> bool:
            if q.project_id is not None and t.project_id != q.project_id:
                return False
            if q.type is not None and t.type != q.type:
                return False
            if q.types and t.type not in q.types:
                return False
            if q.collection is not None and t.collection != q.collection:
                return False
            if q.theme is not None and t.theme != q.theme:
                return False
            if q.brand is not None and t.brand != q.brand:
                return False
            if q.qualified_name is not None and t.qualified_name != q.qualified_name:
                return False
            if q.path_prefix and t.path[: len(q.path_prefix)] != q.path_prefix:
                return False
            if q.tags and not set(q.tags).intersection(t.tags):
                return False
            if q.status is not None and t.status != q.status:
                return False
            if q.is_alias is not None and t.is_alias != q.is_alias:
                return False
            return True

        return [t for t in results if keep(t)]

    def update(self, token_id: str, **changes: Any) -> Result[Token]:
        """Apply field changes; ``id`` and ``created`` are preserved."""
        token = self._tokens.get(token_id)
        if token is None:
            return Result.failure(f"Token not found: {token_id}", context="update")
        changes.pop("id", None)
        changes.pop("created", None)
        changes["last_modified"] = now_iso()
        updated = token.model_copy(update=changes)
        self._unindex(token)
        self._tokens[token_id] = updated
        self._index(updated)
        return Result.success(updated)

    def remove(self, ids: Iterable[str]) -> Result[int]:
        removed = 0
        for token_id in ids:
            token = self._tokens.pop(token_id, None)
            if token is not None:
                self._unindex(token)
                removed += 1
        return Result.success(removed)

    def remove_project(self, project_id: str) -> Result[int]:
        return self.remove(list(self._by_project.get(project_id, set())))

    def stats(self) -> RepositoryStats:
        stats = RepositoryStats(total_tokens=len(self._tokens))
        for token in self._tokens.values():
            stats.by_project[token.project_id] = stats.by_project.get(token.project_id, 0) + 1
            stats.by_type[token.type.value] = stats.by_type.get(token.type.value, 0) + 1
            stats.by_collection[token.collection] = stats.by_collection.get(token.collection, 0) + 1
            if token.is_alias:
                stats.alias_count += 1
        stats.circular_reference_count = len(TokenResolver(self._tokens.values()).detect_cycles())
        return stats

    def clear(self) -> None:
        self._tokens.clear()
        for index in (self._by_project, self._by_type, self._by_collection, self._by_tag, self._referrers):
            index.clear()
        self._by_name.clear()

    def count(self) -> int:
        return len(self._tokens)

    def __len__(self) -> int:
        return len(self._tokens)

    def _ordered(self, ids: set[str]) -> list[Token]:
        return [t for tid, t in self._tokens.items() if tid in ids]

    def _index(self, token: Token) -> None:
        self._by_project[token.project_id].add(token.id)
        self._by_type[token.type].add(token.id)
        self._by_collection[token.collection].add(token.id)
        for tag in token.tags:
            self._by_tag[tag].add(token.id)
        self._by_name[f"{token.project_id}:{token.qualified_name}"] = token.id
        if token.alias_to:
            self._referrers[token.alias_to].add(token.id)

    def _unindex(self, token: Token) -> None:
        self._by_project[token.project_id].discard(token.id)
        self._by_type[token.type].discard(token.id)
        self._by_collection[token.collection].discard(token.id)
        for tag in token.tags:
            self._by_tag[tag].discard(token.id)
        self._by_name.pop(f"{token.project_id}:{token.qualified_name}", None)
        if token.alias_to:
            self._referrers[token.alias_to].discard(token.id)
