from __future__ import annotations

from collections.abc import Mapping, Sequence

from ..models.field_registry import SystemField, normalize_label

"""Header -> system field auto-mapping.

The proposal is a convenience default shown to the user for confirmation; the
caller may edit it freely before normalization.

Rules (a header is consumed by at most one field, registry order wins):
1. a prior (saved) assignment whose header is still present
2. the first header exactly equal to one of the field aliases
3. the first header containing an alias and none of the field's exclude terms
"""

__all__ = [
    "FieldMapping",
    "auto_map",
]

FieldMapping = dict[str, str]


def auto_map(
    headers: Sequence[str],
    registry: Sequence[SystemField],
    prior_mapping: Mapping[str, str] | None = None,
) -> FieldMapping:
    """Propose a system-key -> header assignment."""
    normalized = [normalize_label(h) for h in headers]
    consumed: set[int] = set()
    mapping: FieldMapping = {}

    # 1. 保存済みマッピング優先
    if prior_mapping:
        for f in registry:
            header = prior_mapping.get(f.key)
            if not header or header not in headers:
                continue
            idx = list(headers).index(header)
            if idx in consumed:
                continue
            mapping[f.key] = headers[idx]
            consumed.add(idx)

    for f in registry:
        if f.key in mapping or not f.aliases:
            continue
        idx = _exact_match(normalized, f, consumed)
        if idx is None:
            idx = _contains_match(normalized, f, consumed)
        if idx is not None:
            mapping[f.key] = headers[idx]
            consumed.add(idx)
    return mapping


def _exact_match(normalized: Sequence[str], f: SystemField, consumed: set[int]) -> int | None:
    for idx, text in enumerate(normalized):
        if idx not in consumed and text in f.aliases:
            return idx
    return None


def _contains_match(normalized: Sequence[str], f: SystemField, consumed: set[int]) -> int | None:
    for idx, text in enumerate(normalized):
        if idx in consumed or not text:
            continue
        if not any(alias in text for alias in f.aliases):
            continue
        if any(term in text for term in f.exclude):
            continue
        return idx
    return None
