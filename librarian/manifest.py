"""Reading and writing librarian.toml.

Uses tomlkit so that the manifest round-trips as readable, diff-friendly TOML.
The document is validated into a Config model on load; fields left at their
default values are omitted on save, which keeps hand-written manifests terse.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import tomlkit
from pydantic import ValidationError
from tomlkit.exceptions import TOMLKitError

from .errors import ManifestError
from .models import Config

MANIFEST_FILE = "librarian.toml"


def load_manifest(path: Path) -> tomlkit.TOMLDocument:
    """Load and parse a manifest, keeping its formatting.

    Raises:
        ManifestError: If the file is missing, unreadable, or not valid TOML.
    """
    try:
        return tomlkit.parse(path.read_text())
    except FileNotFoundError as exc:
        raise ManifestError(f"{path} not found") from exc
    except OSError as exc:
        raise ManifestError(f"failed to read {path}: {exc}") from exc
    except TOMLKitError as exc:
        raise ManifestError(f"failed to parse {path}: {exc}") from exc


def load_config(path: Path) -> Config:
    """Load a manifest and validate it into a Config.

    Raises:
        ManifestError: If the file is missing, not TOML, or fails validation.
    """
    doc = load_manifest(path)
    try:
        return Config.model_validate(doc.unwrap())
    except ValidationError as exc:
        raise ManifestError(f"invalid manifest {path}:\n{exc}") from exc


def _is_table(value: Any) -> bool:
    if isinstance(value, dict):
        return True
    return isinstance(value, list) and bool(value) and all(isinstance(v, dict) for v in value)


def _tables_last(value: Any) -> Any:
    """Reorder mappings so plain keys precede tables and arrays of tables.

    A key written after a [table] header would otherwise belong to that table.
    """
    if isinstance(value, list):
        return [_tables_last(v) for v in value]
    if not isinstance(value, dict):
        return value
    plain = {k: _tables_last(v) for k, v in value.items() if not _is_table(v)}
    tables = {k: _tables_last(v) for k, v in value.items() if _is_table(v)}
    return {**plain, **tables}


def dump_config(config: Config) -> str:
    """Serialize a Config to TOML, leaving out default-valued fields."""
    data = config.model_dump(mode="json", exclude_defaults=True, exclude_none=True)
    doc = tomlkit.document()
    for key, value in _tables_last(data).items():
        doc[key] = value
    return tomlkit.dumps(doc)


def save_config(path: Path, config: Config) -> None:
    """Write a Config back to disk."""
    path.write_text(dump_config(config))
