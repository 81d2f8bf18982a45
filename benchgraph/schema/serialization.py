"""Shared serialization helpers for result records."""

from __future__ import annotations

from dataclasses import fields, is_dataclass
from datetime import datetime
from enum import Enum
from pathlib import PurePath
from typing import Any


def make_json_safe(obj: Any, depth: int = 0, max_depth: int = 10) -> Any:
    """Recursively convert records to JSON-serializable forms.

    Enums become their values, paths and timestamps become strings and record
    dataclasses become dicts of their fields.
    """
    if depth > max_depth:
        return str(obj)
    if obj is None or isinstance(obj, (str, int, float, bool)):
        return obj
    if isinstance(obj, Enum):
        return obj.value
    if isinstance(obj, PurePath):
        return str(obj)
    if isinstance(obj, datetime):
        return obj.isoformat()
    if is_dataclass(obj) and not isinstance(obj, type):
        return {f.name: make_json_safe(getattr(obj, f.name), depth + 1, max_depth) for f in fields(obj)}
    if isinstance(obj, dict):
        return {str(k): make_json_safe(v, depth + 1, max_depth) for k, v in obj.items()}
    if isinstance(obj, (list, tuple, set)):
        return [make_json_safe(x, depth + 1, max_depth) for x in obj]
    return str(obj)
