"""Target system collaborator: where tokens get materialized.

A target system holds an ordered set of `StateRecord`s keyed by identity.
Two import paths write into it:

  * `sync_tokens` materializes canonical `Token`s (the new pipeline),
  * `import_documents_legacy` walks raw W3C documents directly (the legacy pipeline).

Both must produce identical records for identical input before cutover.
"""

from __future__ import annotations

import copy
import logging
import re
from collections.abc import Iterable
from typing import Any, Protocol

from pydantic import BaseModel, Field

from tokenbridge_core.formats import REFERENCE_RE, infer_type_from_value
from tokenbridge_core.models import ImportStats, Token

logger = logging.getLogger(__name__)

ALIAS_KIND = "VARIABLE_ALIAS"

_UNSAFE_SEGMENT_RE = re.compile(r"[^a-zA-Z0-9\-_]")

_TARGET_TYPES = {
    "color": "COLOR",
    "number": "FLOAT",
    "boolean": "BOOLEAN",
    "string": "STRING",
    "dimension": "FLOAT",
    "fontSize": "FLOAT",
    "spacing": "FLOAT",
    "lineHeight": "FLOAT",
    "letterSpacing": "FLOAT",
    "fontWeight": "FLOAT",
}


class StateRecord(BaseModel):
    identity: str
    type: str = "STRING"
    value: Any = None
    collection: str = "default"
    description: str = ""
    scopes: list[str] = Field(default_factory=list)


def variable_name(path: Iterable[str]) -> str:
    """Target-safe name: unsafe characters become '-', segments joined by '/'."""
    return "/".join(_UNSAFE_SEGMENT_RE.sub("-", segment) for segment in path)


def map_target_type(token_type: str) -> str:
    return _TARGET_TYPES.get(token_type, "STRING")


def alias_value(identity: str) -> dict[str, str]:
    return {"type": ALIAS_KIND, "id": identity}


class TargetSystem(Protocol):
    async def capture(self) -> list[StateRecord]: ...

    async def remove(self, identity: str) -> None: ...

    async def upsert(self, record: StateRecord) -> None: ...


class InMemoryTargetSystem:
    """Ordered in-memory target; `capture` returns deep copies."""

    def __init__(self, records: Iterable[StateRecord] | None = None):
        self.records: dict[str, StateRecord] = {}
        for r in records or ():
            self.records[r.identity] = r.model_copy(deep=True)

    async def capture(self) -> list[StateRecord]:
        return [r.model_copy(deep=True) for r in self.records.values()]

    async def remove(self, identity: str) -> None:
        self.records.pop(identity, None)

    async def upsert(self, record: StateRecord) -> None:
        self.records[record.identity] = record.model_copy(deep=True)


async def _apply(
    target: TargetSystem,
    existing: dict[str, StateRecord],
    record: StateRecord,
    stats: ImportStats,
) -> None:
    current = existing.get(record.identity)
    if current is None:
        stats.added += 1
    elif current == record:
        stats.skipped += 1
        return
    else:
        stats.updated += 1
    await target.upsert(record)
    existing[record.identity] = record


async def sync_tokens(target: TargetSystem, tokens: list[Token]) -> ImportStats:
    """Materialize canonical tokens into the target system."""
    existing = {r.identity: r for r in await target.capture()}
    names_by_id = {t.id: variable_name(t.path) for t in tokens}
    stats = ImportStats()

    for token in tokens:
        name = variable_name(token.path)
        if token.is_alias:
            # unknown targets keep the structural id so the reference stays visible
            value: Any = alias_value(names_by_id.get(token.alias_to or "", token.alias_to or ""))
        else:
            value = copy.deepcopy(token.value)
        record = StateRecord(
            identity=name,
            type=map_target_type(token.type.value),
            value=value,
            collection=token.collection,
            description=token.description or "",
        )
        await _apply(target, existing, record, stats)

    logger.info(f"Synced {len(tokens)} tokens: +{stats.added} ~{stats.updated} ={stats.skipped}")
    return stats


async def import_documents_legacy(
    target: TargetSystem, documents: Iterable[tuple[str, dict[str, Any]]]
) -> ImportStats:
    """Legacy import: walk ``$value`` nodes of each document straight into the target.

    `documents` holds (collection, raw document) pairs, in import order;
    several documents may share a collection. References are linked only
    when the referenced variable was already written.
    """
    existing = {r.identity: r for r in await target.capture()}
    written: set[str] = set(existing)
    stats = ImportStats()

    async def walk(node: dict[str, Any], collection: str, prefix: list[str]) -> None:
        for key, child in node.items():
            if not isinstance(child, dict) or key.startswith("$"):
                continue
            path = [*prefix, key]
            if "$value" not in child:
                await walk(child, collection, path)
                continue

            raw = child["$value"]
            type_ = child.get("$type") or infer_type_from_value(raw)
            value: Any = copy.deepcopy(raw)
            if isinstance(raw, str):
                match = REFERENCE_RE.match(raw)
                if match:
                    ref = variable_name(match.group(1).split("."))
                    if ref in written:
                        value = alias_value(ref)
            name = variable_name(path)
            record = StateRecord(
                identity=name,
                type=map_target_type(type_),
                value=value,
                collection=collection,
                description=child.get("$description") or "",
            )
            try:
                await _apply(target, existing, record, stats)
                written.add(name)
            except Exception as e:
                logger.error(f"Error creating variable {name}: {e}")
                stats.skipped += 1

    for collection, document in documents:
        await walk(document, collection, [])

    logger.info(f"Legacy import: +{stats.added} ~{stats.updated} ={stats.skipped}")
    return stats
