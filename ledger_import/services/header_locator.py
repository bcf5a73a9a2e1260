from __future__ import annotations

from collections.abc import Sequence
from typing import Any

from ..config.locales import DEFAULT_LOCALE, Locale
from ..excel.reader import is_blank, normalize_cell
from ..models.field_registry import SystemField, all_aliases, normalize_label

"""Header-row location and header label extraction.

Two scoring modes:
- density: a row scores one point per non-empty cell (no registry available)
- alias match: a row scores one point per cell whose normalized text equals or
  contains one of the registry aliases

The first row with the highest score wins; when every candidate scores zero the
first row is taken as the header.
"""

__all__ = [
    "DEFAULT_SEARCH_DEPTH",
    "locate_header_row",
    "score_row",
    "extract_headers",
    "header_cell_text",
]

DEFAULT_SEARCH_DEPTH = 10


def score_row(row: Sequence[Any], aliases: Sequence[str] | None = None) -> int:
    """Score one candidate header row (density mode when ``aliases`` is empty)."""
    if not aliases:
        return sum(1 for cell in row if not is_blank(cell))
    score = 0
    for cell in row:
        if is_blank(cell):
            continue
        text = normalize_label(cell)
        if any(text == alias or alias in text for alias in aliases):
            score += 1
    return score


def locate_header_row(
    rows: Sequence[Sequence[Any]],
    search_depth: int = DEFAULT_SEARCH_DEPTH,
    registry: Sequence[SystemField] | None = None,
) -> int:
    """Return the 0-based index of the most likely header row.

    Only the first ``search_depth`` rows are inspected. Pure function.
    """
    aliases = all_aliases(registry) if registry else []
    best_row = 0
    best_score = 0
    for idx, row in enumerate(rows[: max(search_depth, 0)]):
        if not row:
            continue
        score = score_row(row, aliases)
        if score > best_score:
            best_score = score
            best_row = idx
    return best_row


def header_cell_text(value: Any) -> str:
    value = normalize_cell(value)
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return " ".join(str(value).split())


def extract_headers(row: Sequence[Any], locale: Locale = DEFAULT_LOCALE, width: int | None = None) -> list[str]:
    """Build unique header labels for one header row.

    Blank cells become "<Column word> N" (1-based). A label already used by an
    earlier column gets the column index appended ("Valor_3"), so the
    header-to-index relation stays injective.
    """
    width = max(width or 0, len(row))
    headers: list[str] = []
    seen: set[str] = set()
    for idx in range(width):
        cell = row[idx] if idx < len(row) else None
        label = header_cell_text(cell) or f"{locale.column_word} {idx + 1}"
        if label in seen:
            label = f"{label}_{idx}"
        headers.append(label)
        seen.add(label)
    return headers
