"""Format strategy base class and shared tree-walking helpers.

A strategy turns one token-tree dialect into `ParsedToken` records. Keys
starting with ``$`` are metadata and never tokens; every other mapping is
either a leaf or a group that is descended into, in document order.

What counts as a leaf depends on who walks. Each strategy parses with its
own rule (W3C stops only at ``$value``). Detection scores and the
migration leaf count use the format-neutral rule in `is_leaf`, where a
``value`` key only marks a leaf when it does not hold further tokens, so a
W3C group that happens to be named ``value`` is still descended into.
"""

from __future__ import annotations

import logging
import re
from abc import ABC, abstractmethod
from collections.abc import Callable, Iterator
from dataclasses import dataclass
from typing import Any

from tokenbridge_core.errors import ParseError
from tokenbridge_core.models import ParsedToken

logger = logging.getLogger(__name__)

W3C_MARKER = "$value"
SD_MARKER = "value"

REFERENCE_RE = re.compile(r"^\s*\{\s*([^{}\s][^{}]*?)\s*\}\s*$")
HEX_COLOR_RE = re.compile(r"^#[0-9a-f]{3,8}$", re.IGNORECASE)
FUNC_COLOR_RE = re.compile(r"^(rgb|rgba|hsl|hsla)\(", re.IGNORECASE)


@dataclass(frozen=True)
class FormatInfo:
    name: str
    version: str | None = None
    description: str | None = None


def is_leaf(node: Any) -> bool:
    """Format-neutral leaf test."""
    if not isinstance(node, dict):
        return False
    if W3C_MARKER in node:
        return True
    return SD_MARKER in node and not _holds_tokens(node[SD_MARKER])


def _holds_tokens(node: Any) -> bool:
    return any(True for _ in iter_leaves(node))


def iter_leaves(
    document: Any,
    path: tuple[str, ...] = (),
    leaf: Callable[[dict], bool] = is_leaf,
) -> Iterator[tuple[list[str], dict]]:
    """Yield (path, leaf_node) for every node `leaf` accepts, depth-first, in key order."""
    if not isinstance(document, dict):
        return
    for key, node in document.items():
        if not isinstance(key, str) or key.startswith("$"):
            continue
        if not isinstance(node, dict):
            continue
        current = (*path, key)
        if leaf(node):
            yield list(current), node
        else:
            yield from iter_leaves(node, current, leaf)


def count_leaf_tokens(document: Any) -> int:
    """Format-neutral number of leaf tokens in a document."""
    return sum(1 for _ in iter_leaves(document))


def marker_confidence(document: Any, matches) -> float:
    """Share of leaf tokens for which `matches(node)` holds, clamped to [0, 1]."""
    total = 0
    hits = 0
    for _, node in iter_leaves(document):
        total += 1
        if matches(node):
            hits += 1
    if total == 0:
        return 0.0
    return min(max(hits / total, 0.0), 1.0)


def infer_type_from_value(value: Any) -> str:
    """Shape-based type inference used once path keywords gave no answer."""
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, str):
        v = value.strip()
        if HEX_COLOR_RE.match(v) or FUNC_COLOR_RE.match(v):
            return "color"
        if re.match(r"^-?\d+(\.\d+)?(px|rem|em|%|pt|vw|vh)$", v):
            return "dimension"
        if re.match(r"^-?\d+(\.\d+)?m?s$", v):
            return "duration"
        return "string"
    if isinstance(value, dict):
        if "colorSpace" in value or ("components" in value and "alpha" in value):
            return "color"
        if all(k in value for k in ("r", "g", "b")):
            return "color"
        if "blur" in value or "offsetX" in value or "x" in value:
            return "shadow"
        if "fontFamily" in value or "fontSize" in value:
            return "typography"
    if isinstance(value, list) and len(value) == 4 and all(
        isinstance(v, (int, float)) for v in value
    ):
        return "cubicBezier"
    return "string"


class FormatStrategy(ABC):
    """Pluggable parser/detector for one token-document dialect."""

    info: FormatInfo
    marker: str

    @abstractmethod
    def detect(self, document: Any) -> float:
        """Confidence in [0, 1] that `document` is written in this dialect."""

    @abstractmethod
    def extract_type(self, node: dict, path: list[str]) -> str | None:
        """Type string for a leaf node (explicit marker first, then inference)."""

    def normalize_value(self, value: Any, type_: str) -> Any:
        return value

    def is_leaf_for_format(self, node: dict) -> bool:
        """Where this dialect's walk stops; any other mapping is a group."""
        return self.marker in node

    def parse(self, document: Any) -> list[ParsedToken]:
        """Depth-first parse into intermediate records, preserving document order."""
        if not isinstance(document, dict):
            raise ParseError(f"{self.info.name}: document must be a mapping, got {type(document).__name__}")
        out: list[ParsedToken] = []
        for path, node in iter_leaves(document, leaf=self.is_leaf_for_format):
            raw = node[self.marker]
            type_ = self.extract_type(node, path) or "string"
            out.append(
                ParsedToken(
                    path=path,
                    value=self.normalize_value(raw, type_),
                    type=type_,
                    original_value=raw,
                    description=self._description(node),
                    extensions=self._extensions(node),
                )
            )
        logger.debug(f"{self.info.name}: parsed {len(out)} tokens")
        return out

    def is_reference(self, value: Any) -> bool:
        return isinstance(value, str) and REFERENCE_RE.match(value) is not None

    def extract_reference(self, value: Any) -> str | None:
        if not isinstance(value, str):
            return None
        m = REFERENCE_RE.match(value)
        if not m:
            return None
        return m.group(1).strip()

    def _description(self, node: dict) -> str | None:
        return None

    def _extensions(self, node: dict) -> dict[str, Any]:
        return {}
