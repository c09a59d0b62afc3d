"""TokenBridge Store - versioned storage, migration, and dual-run validation."""

from tokenbridge_store.adapter import MAX_STORAGE_BYTES, MigrationStats, StorageAdapter
from tokenbridge_store.dualrun import ComparisonResult, CutoverDecision, DualRunValidator, compare_states
from tokenbridge_store.kvstore import FileKeyValueStore, KeyValueStore, MemoryKeyValueStore
from tokenbridge_store.report import render_comparison, render_validation
from tokenbridge_store.target import (
    InMemoryTargetSystem,
    StateRecord,
    TargetSystem,
    import_documents_legacy,
    sync_tokens,
)

__all__ = [
    "StorageAdapter",
    "MigrationStats",
    "MAX_STORAGE_BYTES",
    "KeyValueStore",
    "MemoryKeyValueStore",
    "FileKeyValueStore",
    "DualRunValidator",
    "ComparisonResult",
    "CutoverDecision",
    "compare_states",
    "render_comparison",
    "render_validation",
    "StateRecord",
    "TargetSystem",
    "InMemoryTargetSystem",
    "sync_tokens",
    "import_documents_legacy",
]

__version__ = "0.1.0"
