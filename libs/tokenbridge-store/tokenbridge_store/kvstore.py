"""Key/value store collaborators used by the storage adapter.

Values are serialized blobs (strings). The adapter is the only caller.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Protocol
from urllib.parse import quote, unquote

logger = logging.getLogger(__name__)


class KeyValueStore(Protocol):
    async def get_async(self, key: str) -> str | None: ...

    async def set_async(self, key: str, value: str) -> None: ...

    async def delete_async(self, key: str) -> None: ...

    async def keys_async(self, prefix: str = "") -> list[str]: ...


class MemoryKeyValueStore:
    """Dict-backed store; handy for tests and dry runs."""

    def __init__(self, initial: dict[str, str] | None = None):
        self.data: dict[str, str] = dict(initial or {})

    async def get_async(self, key: str) -> str | None:
        return self.data.get(key)

    async def set_async(self, key: str, value: str) -> None:
        self.data[key] = value

    async def delete_async(self, key: str) -> None:
        self.data.pop(key, None)

    async def keys_async(self, prefix: str = "") -> list[str]:
        return sorted(k for k in self.data if k.startswith(prefix))


class FileKeyValueStore:
    """One JSON file per key below `root`; writes go through a temp file + replace."""

    SUFFIX = ".json"

    def __init__(self, root: Path):
        self.root = Path(root)

    def _path(self, key: str) -> Path:
        return self.root / f"{quote(key, safe='')}{self.SUFFIX}"

    async def get_async(self, key: str) -> str | None:
        path = self._path(key)
        if not path.exists():
            return None
        return path.read_text(encoding="utf-8")

    async def set_async(self, key: str, value: str) -> None:
        self.root.mkdir(parents=True, exist_ok=True)
        path = self._path(key)
        temp_path = path.parent / f".{path.name}.tbtmp"
        temp_path.write_text(value, encoding="utf-8")
        temp_path.replace(path)
        logger.debug(f"Wrote {key} ({len(value)} chars)")

    async def delete_async(self, key: str) -> None:
        self._path(key).unlink(missing_ok=True)

    async def keys_async(self, prefix: str = "") -> list[str]:
        if not self.root.exists():
            return []
        keys = []
        for p in self.root.glob(f"*{self.SUFFIX}"):
            if p.name.startswith("."):
                continue
            key = unquote(p.name[: -len(self.SUFFIX)])
            if key.startswith(prefix):
                keys.append(key)
        return sorted(keys)
