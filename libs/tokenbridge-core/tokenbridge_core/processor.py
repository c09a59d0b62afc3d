"""Token processor: format-neutral records -> canonical Token model."""

from __future__ import annotations

import copy
import logging
import re
from collections.abc import Iterable
from dataclasses import replace
from datetime import datetime, timezone
from typing import Any

from tokenbridge_core.digest import token_id
from tokenbridge_core.errors import FormatDetectionError, Result
from tokenbridge_core.formats import FormatStrategy
from tokenbridge_core.models import (
    ParsedToken,
    ProcessingOptions,
    SourceFormat,
    Token,
    TokenFileInput,
    TokenSource,
    TokenStatus,
    TokenType,
)
from tokenbridge_core.registry import FormatRegistry

logger = logging.getLogger(__name__)

COLLECTION_KEYWORDS = (
    "primitive",
    "primitives",
    "semantic",
    "semantics",
    "base",
    "core",
    "foundation",
    "component",
    "components",
)
_EXT_RE = re.compile(r"\.(json|ya?ml|js|ts)$", re.IGNORECASE)
_SEP_RE = re.compile(r"[\\/]+")

_TYPE_MAP = {t.value.lower(): t for t in TokenType}


def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def map_token_type(type_: str | None) -> TokenType:
    """Map a format-specific type string onto TokenType ('other' when unknown)."""
    normalized = (type_ or "").lower().replace("-", "").replace("_", "")
    if "font" in normalized:
        if "size" in normalized:
            return TokenType.FONT_SIZE
        if "weight" in normalized:
            return TokenType.FONT_WEIGHT
        if "family" in normalized:
            return TokenType.FONT_FAMILY
    if "line" in normalized and "height" in normalized:
        return TokenType.LINE_HEIGHT
    if "letter" in normalized and "spacing" in normalized:
        return TokenType.LETTER_SPACING
    return _TYPE_MAP.get(normalized, TokenType.OTHER)


def map_format_name(name: str) -> SourceFormat:
    normalized = name.lower()
    if "w3c" in normalized:
        return SourceFormat.W3C
    if "style" in normalized and "dictionary" in normalized:
        return SourceFormat.STYLE_DICTIONARY
    if "figma" in normalized:
        return SourceFormat.FIGMA
    return SourceFormat.CUSTOM


def infer_collection_from_path(file_path: str | None) -> str:
    """
    Collection name from a file path.

    Examples:
      tokens/primitives.json       -> primitives
      tokens/semantic/colors.json  -> semantic
      brand/colors.yaml            -> colors
    """
    if not file_path:
        return "default"
    parts = [p for p in _SEP_RE.split(file_path.lower()) if p]
    if not parts:
        return "default"
    for part in parts:
        if any(keyword in part for keyword in COLLECTION_KEYWORDS):
            return _EXT_RE.sub("", part)
    return _EXT_RE.sub("", parts[-1]) or "default"


def infer_tags(path: list[str], type_: str) -> list[str]:
    tags = [type_]
    if path:
        tags.append(path[0])
    if len(path) > 2:
        tags.append(f"{path[0]}.{path[1]}")
    return tags


class TokenProcessor:
    """Converts raw token documents into Token lists using a FormatRegistry."""

    def __init__(self, registry: FormatRegistry):
        self.registry = registry

    def process_token_data(
        self, document: dict[str, Any], options: ProcessingOptions
    ) -> Result[list[Token]]:
        """Detect the format of one document and convert it; never raises."""
        try:
            return Result.success(self.convert_document(document, options))
        except Exception as e:
            logger.error(f"Failed to process token data: {e}")
            return Result.failure(str(e), context="process_token_data")

    def convert_document(self, document: dict[str, Any], options: ProcessingOptions) -> list[Token]:
        strategy = self.registry.detect_format(document)
        if strategy is None:
            raise FormatDetectionError("Could not detect token format")
        parsed = strategy.parse(document)
        return self.convert_parsed(parsed, strategy, options)

    def process_multiple_files(
        self, files: Iterable[TokenFileInput], options: ProcessingOptions
    ) -> Result[list[Token]]:
        """Process each file independently; fail only when no file yields a token."""
        all_tokens: list[Token] = []
        for f in files:
            collection = f.collection or infer_collection_from_path(f.file_path)
            per_file = replace(
                options,
                collection=collection,
                source_location=f.file_path or options.source_location,
            )
            result = self.process_token_data(f.document, per_file)
            if result.ok and result.value is not None:
                all_tokens.extend(result.value)
            else:
                logger.warning(f"Skipping file {f.file_path or '<inline>'}: {result.error}")

        if not all_tokens:
            return Result.failure(
                "No tokens could be processed from the provided files",
                context="process_multiple_files",
            )
        return Result.success(all_tokens)

    def convert_parsed(
        self,
        parsed: list[ParsedToken],
        strategy: FormatStrategy,
        options: ProcessingOptions,
    ) -> list[Token]:
        now = now_iso()
        source_format = map_format_name(strategy.info.name)
        collection = options.collection or "default"
        tokens: list[Token] = []

        for pt in parsed:
            qualified_name = ".".join(pt.path)
            target = strategy.extract_reference(pt.value) if strategy.is_reference(pt.value) else None
            type_ = map_token_type(pt.type)
            raw = pt.original_value if pt.original_value is not None else pt.value

            tokens.append(
                Token(
                    id=token_id(options.project_id, qualified_name),
                    path=list(pt.path),
                    name=pt.path[-1],
                    qualified_name=qualified_name,
                    type=type_,
                    raw_value=copy.deepcopy(raw),
                    value=copy.deepcopy(pt.value),
                    resolved_value=None if target else copy.deepcopy(pt.value),
                    # target need not exist (yet); the id is structural
                    alias_to=token_id(options.project_id, target) if target else None,
                    project_id=options.project_id,
                    collection=collection,
                    theme=options.theme,
                    brand=options.brand,
                    description=pt.description,
                    source_format=source_format,
                    source=TokenSource(
                        type=options.source_type,
                        location=options.source_location,
                        imported=now,
                        branch=options.source_branch,
                        commit=options.source_commit,
                    ),
                    extensions=copy.deepcopy(pt.extensions),
                    tags=infer_tags(pt.path, type_.value),
                    status=TokenStatus.ACTIVE,
                    created=now,
                    last_modified=now,
                )
            )
        return tokens
