from __future__ import annotations

import json
from collections.abc import Callable, Collection, Mapping
from datetime import date
from typing import Any

"""Row identifiers and duplicate flagging.

The default identifier is a DJB2-style fold (seed 5381,
``hash = ((hash << 5) + hash) ^ code_unit``) over the compact JSON of the row
content, with 32-bit signed integer arithmetic over UTF-16 code units, rendered
as ``imported-<hex of abs(hash)>``. Previously imported data carries ids built
this way, so the bit pattern must not change.

It is a uniqueness heuristic, not a content-integrity guarantee: two distinct
rows may collide, in which case the second one is reported as a duplicate of
the first.
"""

__all__ = [
    "ID_PREFIX",
    "KeyFunction",
    "canonical_json",
    "djb2_hash",
    "default_row_id",
    "make_row_id",
    "is_existing",
]

ID_PREFIX = "imported-"

KeyFunction = Callable[[Mapping[str, Any]], str]


def _to_int32(value: int) -> int:
    value &= 0xFFFFFFFF
    return value - 0x100000000 if value & 0x80000000 else value


def _json_default(value: Any) -> Any:
    if isinstance(value, date):
        return value.isoformat()
    return str(value)


def canonical_json(content: Mapping[str, Any]) -> str:
    """Compact JSON in insertion order with non-ASCII kept (JSON.stringify layout)."""
    return json.dumps(dict(content), ensure_ascii=False, separators=(",", ":"), default=_json_default)


def djb2_hash(text: str) -> int:
    """32-bit signed DJB2-xor fold over the UTF-16 code units of ``text``."""
    h = 5381
    data = text.encode("utf-16-le")
    for i in range(0, len(data), 2):
        unit = data[i] | (data[i + 1] << 8)
        h = _to_int32(_to_int32(h << 5) + h) ^ unit
    return h


def default_row_id(content: Mapping[str, Any]) -> str:
    return f"{ID_PREFIX}{abs(djb2_hash(canonical_json(content))):x}"


def make_row_id(content: Mapping[str, Any], key_fn: KeyFunction | None = None) -> str:
    """Identifier for one row: caller key function or the default hash."""
    if key_fn is not None:
        return str(key_fn(content))
    return default_row_id(content)


def is_existing(row_id: str, existing_ids: Collection[str] | None) -> bool:
    return bool(existing_ids) and row_id in existing_ids  # type: ignore[operator]
