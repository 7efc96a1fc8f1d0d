"""
Bounded-depth, cycle-detecting serializer.

Used wherever a Session or AnalysisReport leaves the process (persistence,
local cache, CLI --json output). Produces plain JSON-compatible structures:
- dataclasses and pydantic models become dicts
- enums become their values
- cycles become the ``"[Circular]"`` marker
- anything deeper than ``max_depth`` becomes the ``"[MaxDepth]"`` marker
"""

from __future__ import annotations

import dataclasses
import json
from datetime import date, datetime
from enum import Enum
from pathlib import Path
from typing import Any
from uuid import UUID

from pydantic import BaseModel

CIRCULAR_MARKER = "[Circular]"
MAX_DEPTH_MARKER = "[MaxDepth]"
DEFAULT_MAX_DEPTH = 10


def to_serializable(obj: Any, max_depth: int = DEFAULT_MAX_DEPTH) -> Any:
    """
    Convert an arbitrary object graph to JSON-compatible data.

    Args:
        obj: Object to convert
        max_depth: Maximum container nesting kept before truncation

    Returns:
        dict/list/str/int/float/bool/None structure without cycles
    """
    return _convert(obj, max_depth, 0, set())


def _convert(obj: Any, max_depth: int, depth: int, visiting: set[int]) -> Any:
    if obj is None or isinstance(obj, (bool, int, float, str)):
        return obj
    if isinstance(obj, Enum):
        return obj.value
    if isinstance(obj, (datetime, date)):
        return obj.isoformat()
    if isinstance(obj, (UUID, Path)):
        return str(obj)

    if depth >= max_depth:
        return MAX_DEPTH_MARKER

    # Identity of containers currently on the traversal path
    obj_id = id(obj)
    if obj_id in visiting:
        return CIRCULAR_MARKER
    visiting.add(obj_id)

    try:
        if isinstance(obj, BaseModel):
            items: Any = obj.model_dump(mode="python")
            return _convert_mapping(items, max_depth, depth, visiting)
        if dataclasses.is_dataclass(obj) and not isinstance(obj, type):
            items = {f.name: getattr(obj, f.name) for f in dataclasses.fields(obj)}
            return _convert_mapping(items, max_depth, depth, visiting)
        if isinstance(obj, dict):
            return _convert_mapping(obj, max_depth, depth, visiting)
        if isinstance(obj, (list, tuple, set, frozenset)):
            return [_convert(item, max_depth, depth + 1, visiting) for item in obj]
        if hasattr(obj, "__dict__"):
            public = {k: v for k, v in vars(obj).items() if not k.startswith("_")}
            return _convert_mapping(public, max_depth, depth, visiting)
        return repr(obj)
    finally:
        visiting.discard(obj_id)


def _convert_mapping(mapping: dict, max_depth: int, depth: int, visiting: set[int]) -> dict:
    result = {}
    for key, value in mapping.items():
        if isinstance(key, Enum):
            key = key.value
        result[str(key)] = _convert(value, max_depth, depth + 1, visiting)
    return result


def dumps(obj: Any, max_depth: int = DEFAULT_MAX_DEPTH, **kwargs: Any) -> str:
    """Serialize to a JSON string via ``to_serializable``."""
    kwargs.setdefault("ensure_ascii", False)
    return json.dumps(to_serializable(obj, max_depth), **kwargs)
