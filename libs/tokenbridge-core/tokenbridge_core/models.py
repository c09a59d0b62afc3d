"""Core data models for tokenbridge."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

SCHEMA_VERSION = "2.0"

SourceType = Literal["github", "gitlab", "local", "api", "figma"]


class TokenType(str, Enum):
    """Semantic token type."""

    COLOR = "color"
    DIMENSION = "dimension"
    SPACING = "spacing"
    FONT_SIZE = "fontSize"
    FONT_WEIGHT = "fontWeight"
    FONT_FAMILY = "fontFamily"
    LINE_HEIGHT = "lineHeight"
    LETTER_SPACING = "letterSpacing"
    SHADOW = "shadow"
    BORDER = "border"
    DURATION = "duration"
    CUBIC_BEZIER = "cubicBezier"
    NUMBER = "number"
    STRING = "string"
    TYPOGRAPHY = "typography"
    BOOLEAN = "boolean"
    OTHER = "other"


class SourceFormat(str, Enum):
    W3C = "w3c"
    STYLE_DICTIONARY = "style-dictionary"
    FIGMA = "figma"
    CUSTOM = "custom"


class TokenStatus(str, Enum):
    """Lifecycle state (only ACTIVE is produced today)."""

    ACTIVE = "active"
    DEPRECATED = "deprecated"
    DRAFT = "draft"
    ARCHIVED = "archived"


class TokenSource(BaseModel):
    """Provenance of a token."""

    type: SourceType = "local"
    location: str
    imported: str = Field(description="ISO-8601 import timestamp")
    branch: str | None = None
    commit: str | None = None


class Token(BaseModel):
    """Canonical normalized token.

    Field names are snake_case; the persisted JSON shape uses camelCase aliases.
    """

    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(description="hash(projectId + ':' + qualifiedName)")
    path: list[str]
    name: str
    qualified_name: str = Field(alias="qualifiedName")
    type: TokenType = TokenType.OTHER

    raw_value: Any = Field(default=None, alias="rawValue")
    value: Any = None
    # None while an alias is unresolved
    resolved_value: Any = Field(default=None, alias="resolvedValue")
    alias_to: str | None = Field(default=None, alias="aliasTo")

    project_id: str = Field(alias="projectId")
    collection: str = "default"
    theme: str | None = None
    brand: str | None = None
    description: str | None = None

    source_format: SourceFormat = Field(default=SourceFormat.CUSTOM, alias="sourceFormat")
    source: TokenSource
    extensions: dict[str, Any] = Field(default_factory=dict)
    tags: list[str] = Field(default_factory=list)
    status: TokenStatus = TokenStatus.ACTIVE

    created: str
    last_modified: str = Field(alias="lastModified")

    @property
    def is_alias(self) -> bool:
        return self.alias_to is not None

    def to_record(self) -> dict[str, Any]:
        """JSON-ready dict in the persisted (camelCase) shape."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class ImportStats(BaseModel):
    added: int = 0
    updated: int = 0
    skipped: int = 0


class SourceConfig(BaseModel):
    """Where a project's tokens were imported from."""

    type: SourceType = "local"
    location: str = "unknown"
    branch: str | None = None
    commit: str | None = None


class StorageMetadata(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    last_sync: str = Field(alias="lastSync")
    source: SourceConfig
    import_stats: ImportStats = Field(alias="importStats")


class PersistedProjectStorage(BaseModel):
    """Durable per-project record (schema version 2.0)."""

    model_config = ConfigDict(populate_by_name=True)

    version: str = SCHEMA_VERSION
    project_id: str = Field(alias="projectId")
    tokens: list[Token] = Field(default_factory=list)
    metadata: StorageMetadata


class GitHubConfig(BaseModel):
    owner: str = ""
    repo: str = ""
    branch: str = "main"
    files: list[str] | None = None


class LegacyTokenFile(BaseModel):
    """One file entry of the pre-2.0 storage shape."""

    name: str = ""
    path: str = ""
    content: dict[str, Any] = Field(default_factory=dict)
    source: Literal["github", "local"] = "local"


class LegacyTokenState(BaseModel):
    """Pre-migration storage shape. Read for migration only, never written."""

    model_config = ConfigDict(populate_by_name=True)

    token_files: dict[str, LegacyTokenFile] = Field(default_factory=dict, alias="tokenFiles")
    token_source: Literal["github", "local"] | None = Field(default=None, alias="tokenSource")
    github_config: GitHubConfig | None = Field(default=None, alias="githubConfig")
    last_updated: str | None = Field(default=None, alias="lastUpdated")

    @field_validator("token_files", mode="before")
    @classmethod
    def _wrap_raw_documents(cls, files: Any) -> Any:
        # Older records stored the raw document directly under the file name.
        if not isinstance(files, dict):
            return files
        out: dict[str, Any] = {}
        for name, entry in files.items():
            if (
                isinstance(entry, dict)
                and isinstance(entry.get("content"), dict)
                and ("path" in entry or "source" in entry or "name" in entry)
            ):
                out[name] = entry
            else:
                out[name] = {"name": name, "path": name, "content": entry}
        return out


@dataclass
class ParsedToken:
    """Format-neutral intermediate record emitted by a format strategy."""

    path: list[str]
    value: Any
    type: str
    original_value: Any = None
    description: str | None = None
    extensions: dict[str, Any] = field(default_factory=dict)


@dataclass
class ProcessingOptions:
    """Options for one ingestion run."""

    project_id: str = "default"
    collection: str | None = None
    theme: str | None = None
    brand: str | None = None
    source_type: SourceType = "local"
    source_location: str = "unknown"
    source_branch: str | None = None
    source_commit: str | None = None


@dataclass
class TokenFileInput:
    """A document to ingest plus the path it came from."""

    document: dict[str, Any]
    file_path: str | None = None
    collection: str | None = None
