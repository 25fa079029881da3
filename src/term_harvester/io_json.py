"""JSON serialization helpers."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any


def dump_job(payload: dict[str, Any]) -> str:
    """Render a serialized job with a stable key order."""
    return json.dumps(payload, indent=2, sort_keys=True, ensure_ascii=False)


def write_job(path: str, payload: dict[str, Any]) -> None:
    """Write a serialized job to a UTF-8 JSON file."""
    Path(path).write_text(dump_job(payload) + "\n", encoding="utf-8")
