"""Error taxonomy and the Result wrapper returned by public entry points."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Generic, TypeVar

T = TypeVar("T")


class TokenBridgeError(Exception):
    """Base class for all tokenbridge errors."""


class FormatDetectionError(TokenBridgeError):
    """No registered format strategy scored above zero."""


class DuplicateFormatError(TokenBridgeError):
    """A format strategy with the same name is already registered."""


class ParseError(TokenBridgeError):
    """A document could not be parsed by the selected strategy."""


class MigrationError(TokenBridgeError):
    """Legacy -> current schema migration failed after the backup was written."""


class BackupError(TokenBridgeError):
    """The pre-migration backup could not be written."""


class BackupNotFoundError(TokenBridgeError):
    """No backup exists under the requested key."""


class StorageLimitError(TokenBridgeError):
    """Serialized project storage exceeds the byte ceiling."""


class UnsupportedVersionError(TokenBridgeError):
    """Stored record carries a schema version this code cannot read."""


class RollbackError(TokenBridgeError):
    """Target system could not be returned to its snapshot state."""


class BatchItemError(TokenBridgeError):
    """Wraps a non-Exception value raised by a batch item."""


@dataclass
class Result(Generic[T]):
    """Explicit success/failure value.

    `context` names the operation that failed, so callers can show
    "<context>: <error>" instead of a stack trace.
    """

    ok: bool
    value: T | None = None
    error: str | None = None
    context: str | None = None

    @classmethod
    def success(cls, value: T | None = None) -> Result[T]:
        return cls(ok=True, value=value)

    @classmethod
    def failure(cls, error: str, context: str | None = None) -> Result[T]:
        return cls(ok=False, error=error, context=context)

    def unwrap(self) -> T:
        if not self.ok:
            raise TokenBridgeError(self.message)
        return self.value  # type: ignore[return-value]

    @property
    def message(self) -> str:
        if self.ok:
            return ""
        if self.context:
            return f"{self.context}: {self.error}"
        return self.error or "Unknown error"
