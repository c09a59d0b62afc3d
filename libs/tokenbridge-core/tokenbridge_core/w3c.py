"""W3C Design Tokens format strategy.

Leaves carry ``$value`` (plus optional ``$type``, ``$description``,
``$extensions``); references use ``{path.to.token}``.
"""

from __future__ import annotations

from typing import Any

from tokenbridge_core.formats import (
    W3C_MARKER,
    FormatInfo,
    FormatStrategy,
    infer_type_from_value,
    marker_confidence,
)

_PATH_KEYWORDS: list[tuple[tuple[str, ...], str]] = [
    (("color", "colour"), "color"),
    (("letter-spacing", "letterspacing", "letter_spacing"), "letterSpacing"),
    (("spacing", "space"), "spacing"),
    (("font-weight", "fontweight", "font_weight"), "fontWeight"),
    (("font-family", "fontfamily", "font_family"), "fontFamily"),
    (("line-height", "lineheight", "line_height"), "lineHeight"),
    (("dimension", "size"), "dimension"),
    (("shadow",), "shadow"),
]


class W3CFormatStrategy(FormatStrategy):
    info = FormatInfo(
        name="W3C Design Tokens",
        version="1.0",
        description="W3C Design Tokens Community Group format",
    )
    marker = W3C_MARKER

    def detect(self, document: Any) -> float:
        return marker_confidence(document, lambda node: W3C_MARKER in node)

    def extract_type(self, node: dict, path: list[str]) -> str | None:
        explicit = node.get("$type")
        if isinstance(explicit, str) and explicit:
            return explicit
        if W3C_MARKER in node:
            return self._infer_type(node[W3C_MARKER], path)
        return None

    def _infer_type(self, value: Any, path: list[str]) -> str:
        joined = ".".join(path).lower()
        # font + size must win over the generic "size" keyword
        if "font" in joined and "size" in joined:
            return "fontSize"
        for keywords, type_ in _PATH_KEYWORDS:
            if any(k in joined for k in keywords):
                return type_
        return infer_type_from_value(value)

    def _description(self, node: dict) -> str | None:
        desc = node.get("$description")
        return desc if isinstance(desc, str) else None

    def _extensions(self, node: dict) -> dict[str, Any]:
        ext = node.get("$extensions")
        return {"w3c": ext} if isinstance(ext, dict) else {}
