"""File utility functions for the Data Graph Bot."""

import json
import os
import tempfile
from pathlib import Path
from typing import Any


def atomic_write_json(filepath: Path, data: Any, indent: int = 2) -> None:
    """Write JSON data to a file atomically to prevent corruption.

    Writes to a temporary file in the target directory first, then replaces
    the target. The file is never left in a partially-written state, and a
    failed write leaves the previous contents untouched.

    Args:
        filepath: Path to the target file
        data: Data to write (must be JSON-serializable)
        indent: Number of spaces for JSON indentation

    Raises:
        TypeError: If the data is not JSON-serializable
        OSError: If the write or the rename fails
    """
    # Serialize first so a bad payload never touches the disk
    json_str = json.dumps(data, indent=indent, ensure_ascii=False)

    filepath.parent.mkdir(parents=True, exist_ok=True)
    temp_fd, temp_path = tempfile.mkstemp(
        dir=filepath.parent,
        prefix=f'.{filepath.name}.',
        suffix='.tmp'
    )
    try:
        with os.fdopen(temp_fd, 'w', encoding='utf-8') as f:
            f.write(json_str)
        os.replace(temp_path, filepath)
    except BaseException:
        try:
            os.unlink(temp_path)
        except OSError:
            pass
        raise


def read_json(filepath: Path, default: Any) -> Any:
    """Read a JSON file, returning ``default`` when it is missing.

    Raises:
        json.JSONDecodeError: If the file exists but is not valid JSON
    """
    try:
        with open(filepath, 'r', encoding='utf-8') as f:
            return json.load(f)
    except FileNotFoundError:
        return default
