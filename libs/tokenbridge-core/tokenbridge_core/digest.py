"""Deterministic identity and content digests.

Token ids are 64-bit FNV-1a over the UTF-8 bytes of ``"<projectId>:<qualifiedName>"``
with explicit wrapping 64-bit arithmetic, rendered as ``token_<base36>``.
Any other implementation that wants to produce matching ids must use the
same function and encoding.
"""

from __future__ import annotations

import hashlib

FNV64_OFFSET_BASIS = 0xCBF29CE484222325
FNV64_PRIME = 0x100000001B3
MASK64 = 0xFFFFFFFFFFFFFFFF

_BASE36 = "0123456789abcdefghijklmnopqrstuvwxyz"


def fnv1a_64(text: str) -> int:
    h = FNV64_OFFSET_BASIS
    for byte in text.encode("utf-8"):
        h ^= byte
        h = (h * FNV64_PRIME) & MASK64
    return h


def to_base36(n: int) -> str:
    if n == 0:
        return "0"
    out = []
    while n:
        n, rem = divmod(n, 36)
        out.append(_BASE36[rem])
    return "".join(reversed(out))


def token_id(project_id: str, qualified_name: str) -> str:
    """Stable id for a token path within a project."""
    return f"token_{to_base36(fnv1a_64(f'{project_id}:{qualified_name}'))}"


def compute_digest(content: str | bytes) -> str:
    """SHA256 hex digest of file content (used as a source file's sha)."""
    if isinstance(content, str):
        content = content.encode("utf-8")
    return hashlib.sha256(content).hexdigest()
