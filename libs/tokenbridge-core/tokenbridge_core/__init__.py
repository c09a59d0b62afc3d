"""TokenBridge Core - token model, format strategies, processing, and batching."""

from tokenbridge_core.batch import BatchExecutor, BatchFailure, BatchResult
from tokenbridge_core.config import CutoverFlags, Settings, load_settings, tokenbridge_home
from tokenbridge_core.digest import compute_digest, token_id
from tokenbridge_core.errors import Result, TokenBridgeError
from tokenbridge_core.formats import FormatInfo, FormatStrategy, count_leaf_tokens
from tokenbridge_core.models import (
    SCHEMA_VERSION,
    ImportStats,
    LegacyTokenState,
    PersistedProjectStorage,
    ProcessingOptions,
    SourceConfig,
    Token,
    TokenFileInput,
    TokenType,
)
from tokenbridge_core.presync import PreSyncValidator, Severity, ValidationIssue, ValidationReport
from tokenbridge_core.processor import TokenProcessor, infer_collection_from_path
from tokenbridge_core.registry import FormatRegistry, default_registry
from tokenbridge_core.repository import RepositoryStats, TokenQuery, TokenRepository
from tokenbridge_core.resolver import ResolutionReport, TokenResolver
from tokenbridge_core.sources import FileEntry, FileSource, LocalFileSource, LocalSourceConfig
from tokenbridge_core.style_dictionary import StyleDictionaryFormatStrategy
from tokenbridge_core.values import validate_token_value
from tokenbridge_core.w3c import W3CFormatStrategy

__all__ = [
    "BatchExecutor",
    "BatchFailure",
    "BatchResult",
    # config
    "CutoverFlags",
    "Settings",
    "load_settings",
    "tokenbridge_home",
    "compute_digest",
    "token_id",
    "Result",
    "TokenBridgeError",
    # formats
    "FormatInfo",
    "FormatStrategy",
    "count_leaf_tokens",
    "W3CFormatStrategy",
    "StyleDictionaryFormatStrategy",
    "FormatRegistry",
    "default_registry",
    # model
    "SCHEMA_VERSION",
    "ImportStats",
    "LegacyTokenState",
    "PersistedProjectStorage",
    "ProcessingOptions",
    "SourceConfig",
    "Token",
    "TokenFileInput",
    "TokenType",
    "TokenProcessor",
    "infer_collection_from_path",
    "TokenRepository",
    "TokenQuery",
    "RepositoryStats",
    # validation
    "validate_token_value",
    "PreSyncValidator",
    "Severity",
    "ValidationIssue",
    "ValidationReport",
    "ResolutionReport",
    "TokenResolver",
    "FileEntry",
    "FileSource",
    "LocalFileSource",
    "LocalSourceConfig",
]

__version__ = "0.1.0"
