"""Reading token documents and settings from JSON / YAML files."""

import json
from io import StringIO
from pathlib import Path
from typing import Any

from ruamel.yaml import YAML
from ruamel.yaml.error import YAMLError

from tokenbridge_core.errors import ParseError

# Safe loader: token documents become plain dicts/lists (no round-trip types)
yaml = YAML(typ="safe")
yaml.default_flow_style = False
yaml.width = 4096  # Avoid line wrapping

DOCUMENT_SUFFIXES = (".json", ".yaml", ".yml")


def is_token_document(path: Path) -> bool:
    return path.suffix.lower() in DOCUMENT_SUFFIXES


def parse_document(text: str, suffix: str = ".json") -> dict[str, Any]:
    """
    Parse document text according to its file suffix.

    Raises:
        ParseError: on malformed input or a non-mapping top level.
    """
    try:
        if suffix.lower() in (".yaml", ".yml"):
            data = yaml.load(text)
        else:
            data = json.loads(text)
    except (json.JSONDecodeError, YAMLError) as e:
        raise ParseError(f"Malformed document: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ParseError(f"Token document must be a mapping, got {type(data).__name__}")
    return data


def load_document(filepath: Path) -> dict[str, Any]:
    content = filepath.read_text(encoding="utf-8")
    return parse_document(content, filepath.suffix)


def dump_yaml(data: dict[str, Any]) -> str:
    stream = StringIO()
    yaml.dump(data, stream)
    return stream.getvalue()


def write_yaml(filepath: Path, data: dict[str, Any]) -> None:
    """Write YAML atomically (temp file + replace)."""
    filepath.parent.mkdir(parents=True, exist_ok=True)
    temp_path = filepath.parent / f".{filepath.name}.tbtmp"
    temp_path.write_text(dump_yaml(data), encoding="utf-8")
    temp_path.replace(filepath)
