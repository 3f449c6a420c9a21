"""
whisper_server.io - Atomic file writers for transcript output.
"""

from __future__ import annotations

import json
import tempfile
from pathlib import Path
from typing import Any


def _write_atomic(path: Path, content: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with tempfile.NamedTemporaryFile(
        mode="w",
        encoding="utf-8",
        dir=path.parent,
        delete=False,
        suffix=".tmp",
    ) as tmp:
        tmp_path = Path(tmp.name)
        try:
            tmp.write(content)
        except Exception:
            tmp_path.unlink(missing_ok=True)
            raise
    tmp_path.replace(path)


def write_json(path: Path, data: Any, indent: int = 2) -> None:
    """Write JSON file atomically with pretty formatting.

    Writes to a temp file first, then renames to prevent corruption
    on interruption.
    """
    _write_atomic(path, json.dumps(data, indent=indent, ensure_ascii=False) + "\n")


def write_text(path: Path, content: str) -> None:
    """Write text file atomically."""
    _write_atomic(path, content)
