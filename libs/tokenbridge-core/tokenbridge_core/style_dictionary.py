"""Style Dictionary format strategy.

Leaves carry a plain ``value`` (and no ``$value``); there is no explicit
type marker, so types come from the category/type/item path convention
and then from the value's shape.
"""

from __future__ import annotations

from typing import Any

from tokenbridge_core.formats import (
    SD_MARKER,
    W3C_MARKER,
    FormatInfo,
    FormatStrategy,
    infer_type_from_value,
    is_leaf,
    marker_confidence,
)


class StyleDictionaryFormatStrategy(FormatStrategy):
    info = FormatInfo(
        name="Style Dictionary",
        version="3.0",
        description="Amazon Style Dictionary format",
    )
    marker = SD_MARKER

    def detect(self, document: Any) -> float:
        return marker_confidence(
            document, lambda node: SD_MARKER in node and W3C_MARKER not in node
        )

    def is_leaf_for_format(self, node: dict) -> bool:
        return is_leaf(node) and W3C_MARKER not in node

    def extract_type(self, node: dict, path: list[str]) -> str | None:
        if SD_MARKER not in node:
            return None
        return self._infer_type(node[SD_MARKER], path)

    def _infer_type(self, value: Any, path: list[str]) -> str:
        joined = ".".join(path).lower()

        if path:
            category = path[0].lower()
            if category in ("color", "colors"):
                return "color"
            if category in ("size", "sizing"):
                if "font" in joined:
                    return "fontSize"
                return "dimension"
            if category in ("space", "spacing"):
                return "spacing"
            if category == "font":
                if "size" in joined:
                    return "fontSize"
                if "weight" in joined:
                    return "fontWeight"
                if "line" in joined and "height" in joined:
                    return "lineHeight"
                return "fontFamily"
            if category in ("time", "duration"):
                return "duration"

        if "color" in joined:
            return "color"
        if "font" in joined and "size" in joined:
            return "fontSize"
        if "spacing" in joined or "space" in joined:
            return "spacing"
        if "radius" in joined or "size" in joined:
            return "dimension"
        if "shadow" in joined:
            return "shadow"

        return infer_type_from_value(value)

    def _description(self, node: dict) -> str | None:
        comment = node.get("comment")
        return comment if isinstance(comment, str) else None

    def _extensions(self, node: dict) -> dict[str, Any]:
        attrs = node.get("attributes")
        return {"styleDictionary": {"attributes": attrs}} if isinstance(attrs, dict) else {}
