"""Format strategy registry.

Holds the pluggable format strategies by name and picks one for a document
by confidence score. The registry is a plain object handed to consumers;
tests and hot-reload paths call `clear()` before registering again.
"""

from __future__ import annotations

import logging
from typing import Any

from tokenbridge_core.errors import DuplicateFormatError
from tokenbridge_core.formats import FormatStrategy

logger = logging.getLogger(__name__)


class FormatRegistry:
    """Name -> strategy map with confidence-scored detection."""

    def __init__(self) -> None:
        # dict preserves registration order, which decides ties
        self._strategies: dict[str, FormatStrategy] = {}

    def register(self, strategy: FormatStrategy) -> None:
        name = strategy.info.name
        if name in self._strategies:
            logger.error(f"Format '{name}' is already registered")
            raise DuplicateFormatError(f"Token format '{name}' is already registered")
        self._strategies[name] = strategy

    def get(self, name: str) -> FormatStrategy | None:
        strategy = self._strategies.get(name)
        if strategy is None:
            logger.debug(f"No strategy registered for format: {name}")
        return strategy

    def has(self, name: str) -> bool:
        return name in self._strategies

    def scores(self, document: Any) -> dict[str, float]:
        """Confidence of every registered strategy, in registration order."""
        return {name: s.detect(document) for name, s in self._strategies.items()}

    def detect_format(self, document: Any) -> FormatStrategy | None:
        """Strategy with the strictly highest score; None when nothing scores above 0."""
        best: FormatStrategy | None = None
        best_score = 0.0
        for strategy in self._strategies.values():
            score = strategy.detect(document)
            if score > best_score:
                best, best_score = strategy, score
        if best is None:
            logger.warning("No format strategy could parse the provided data")
        return best

    def list(self) -> list[str]:
        return list(self._strategies)

    def count(self) -> int:
        return len(self._strategies)

    def clear(self) -> None:
        self._strategies.clear()


def default_registry() -> FormatRegistry:
    """Fresh registry with the built-in strategies (W3C first)."""
    from tokenbridge_core.style_dictionary import StyleDictionaryFormatStrategy
    from tokenbridge_core.w3c import W3CFormatStrategy

    reg = FormatRegistry()
    reg.register(W3CFormatStrategy())
    reg.register(StyleDictionaryFormatStrategy())
    return reg
