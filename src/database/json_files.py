"""Flat-file JSON document helpers.

The catalog and project stores keep one JSON array per file. Reading
distinguishes three situations:

- missing or blank file: start empty
- unparseable file: log, keep a ``.corrupt`` copy, start empty
- any other I/O failure: raise ``JsonFileError``

Writes are atomic (temp file + ``os.replace``) and raise ``JsonFileError``
on failure; a lost write must never pass silently.
"""

import json
import os
import shutil
import tempfile
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from src.utils.logging_config import get_logger


class JsonFileError(Exception):
    """Raised when a JSON document cannot be read or written."""


def _get_logger():
    """Get logger instance lazily to avoid import-time config loading."""
    return get_logger(__name__)


def _preserve_corrupt_file(path: Path) -> Path | None:
    stamp = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%S")
    backup = path.with_name(f"{path.name}.{stamp}.corrupt")
    try:
        shutil.copy2(path, backup)
    except OSError as e:
        _get_logger().error("Could not preserve corrupt file %s: %s", path, e)
        return None
    return backup


def read_json_list(path: Path) -> list[Any]:
    """
    Read a JSON array from ``path``.

    Args:
        path: File to read

    Returns:
        The parsed list, or an empty list when the file is missing, blank,
        unparseable or does not hold an array

    Raises:
        JsonFileError: If the file exists but cannot be read
    """
    path = Path(path)
    try:
        raw = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        _get_logger().info("%s not found, starting with an empty list", path)
        return []
    except OSError as e:
        _get_logger().error("Failed to read %s: %s", path, e)
        raise JsonFileError(f"Failed to read {path}: {e}") from e

    if not raw.strip():
        _get_logger().info("%s is empty, starting with an empty list", path)
        return []

    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        backup = _preserve_corrupt_file(path)
        _get_logger().error(
            "%s is not valid JSON (%s); treating as empty. Original kept at %s",
            path,
            e,
            backup,
        )
        return []

    if not isinstance(data, list):
        backup = _preserve_corrupt_file(path)
        _get_logger().error(
            "%s holds %s instead of a list; treating as empty. Original kept at %s",
            path,
            type(data).__name__,
            backup,
        )
        return []

    _get_logger().debug("Read %d records from %s", len(data), path)
    return data


def write_json_list(path: Path, records: list[Any]) -> None:
    """
    Atomically replace ``path`` with ``records`` serialized as JSON.

    Args:
        path: Destination file (parent directories are created)
        records: JSON-serializable list

    Raises:
        JsonFileError: If the file cannot be written
    """
    path = Path(path)
    tmp_name = None
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            dir=path.parent, prefix=f".{path.name}.", suffix=".tmp"
        )
        with os.fdopen(fd, "w", encoding="utf-8") as fh:
            json.dump(records, fh, indent=2, ensure_ascii=False)
        os.replace(tmp_name, path)
        tmp_name = None
    except (OSError, TypeError, ValueError) as e:
        _get_logger().error("Failed to write %s: %s", path, e)
        raise JsonFileError(f"Failed to write {path}: {e}") from e
    finally:
        if tmp_name is not None and os.path.exists(tmp_name):
            os.unlink(tmp_name)

    _get_logger().debug("Wrote %d records to %s", len(records), path)
