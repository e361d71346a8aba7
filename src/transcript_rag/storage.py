"""File helpers for corpus snapshots and settings files.

Writes go to a sibling temp file that is renamed over the target, so a
reader never sees a half-written corpus.
"""

from __future__ import annotations

import json
import os
import tempfile
from pathlib import Path
from typing import Any

from pydantic import BaseModel


class StorageError(Exception):
    """A corpus or settings file could not be read or written."""

    pass


class NotFoundError(StorageError):
    """The requested file does not exist."""

    pass


def atomic_write(path: Path, data: str, encoding: str = "utf-8") -> None:
    """Replace ``path`` with ``data`` in one rename.

    Raises:
        StorageError: If the temp file cannot be written or renamed
    """
    path.parent.mkdir(parents=True, exist_ok=True)

    tmp_name = None
    try:
        with tempfile.NamedTemporaryFile(
            "w",
            encoding=encoding,
            dir=path.parent,
            prefix=f"{path.stem}_",
            suffix=".tmp",
            delete=False,
        ) as tmp:
            tmp_name = tmp.name
            tmp.write(data)
            tmp.flush()
            os.fsync(tmp.fileno())
        os.replace(tmp_name, path)
    except OSError as e:
        if tmp_name is not None:
            Path(tmp_name).unlink(missing_ok=True)
        raise StorageError(f"Failed to write {path}: {e}") from e


def atomic_write_json(path: Path, data: Any, indent: int = 2) -> None:
    """Serialize ``data`` as JSON and write it atomically."""
    atomic_write(path, json.dumps(data, indent=indent, default=str))


def read_json(path: Path) -> Any:
    """Parse a JSON file.

    Raises:
        NotFoundError: If the file doesn't exist
        StorageError: If the file is not valid JSON
    """
    try:
        text = path.read_text(encoding="utf-8")
    except FileNotFoundError as e:
        raise NotFoundError(f"File not found: {path}") from e
    except OSError as e:
        raise StorageError(f"Failed to read {path}: {e}") from e

    try:
        return json.loads(text)
    except json.JSONDecodeError as e:
        raise StorageError(f"Invalid JSON in {path}: {e}") from e


def save_model(path: Path, model: BaseModel) -> None:
    """Write a pydantic model as JSON."""
    atomic_write_json(path, model.model_dump(mode="json"))
