from __future__ import annotations

import logging
from collections.abc import Collection, Mapping, Sequence
from typing import Any

from ..config.locales import DEFAULT_LOCALE, Locale
from ..excel.reader import is_blank
from ..models.column_config import ColumnConfig
from ..models.field_registry import SystemField
from ..models.parsed_row import ParsedRow
from .coercion import coerce, coerce_date, is_calendar_date
from .ledger_entries import apply_entry_rules
from .row_identity import KeyFunction, default_row_id, is_existing, make_row_id

"""Row normalization (flat layout).

normalize() is a pure function of (grid, header row, mapping, column configs):
calling it twice with the same arguments yields equal rows with equal ids, so
the user can go back, change a type or a mapping and re-run it at will.

Validity:
- permissive contexts: a row is valid when at least one coerced cell is not
  empty/zero/False
- strict contexts: every required system field is mapped and non-empty, and
  date fields hold a real calendar date

Ledger contexts (income statements) additionally pass every row through
apply_entry_rules() so that flat entries get the same type/amount shape as
the ones produced from a wide layout.
"""

__all__ = [
    "normalize",
    "has_content",
    "DUPLICATE_WARNING",
    "REPEATED_WARNING",
]

logger = logging.getLogger(__name__)

DUPLICATE_WARNING = "Duplicate: a record with id {row_id} already exists"
REPEATED_WARNING = "Repeated: same id as sheet row {first_row}"


def has_content(value: Any) -> bool:
    """True for values that count as data ("" / 0 / None / False do not)."""
    if value is None or value is False:
        return False
    if isinstance(value, str):
        return value.strip() != ""
    if isinstance(value, (int, float)):
        return value != 0
    return True


def _strict_errors(
    row: Sequence[Any],
    mapping: Mapping[str, str],
    header_index: Mapping[str, int],
    registry: Sequence[SystemField],
    locale: Locale,
    default_year: int | None,
) -> list[str]:
    errors: list[str] = []
    for f in registry:
        header = mapping.get(f.key)
        idx = header_index.get(header) if header else None
        if idx is None:
            if f.required:
                errors.append(f"Column for '{f.label}' is not mapped")
            continue
        raw = row[idx] if idx < len(row) else None
        if is_blank(raw):
            if f.required:
                errors.append(f"Missing value for '{f.label}'")
            continue
        if f.is_date_field and not is_calendar_date(coerce_date(raw, locale, default_year)):
            errors.append(f"Invalid date for '{f.label}': {str(raw).strip()!r}")
    return errors


def normalize(
    grid: Sequence[Sequence[Any]],
    header_row_index: int,
    mapping: Mapping[str, str],
    column_configs: Sequence[ColumnConfig],
    *,
    registry: Sequence[SystemField] = (),
    strict: bool = False,
    locale: Locale = DEFAULT_LOCALE,
    default_year: int | None = None,
    key_fn: KeyFunction | None = None,
    existing_ids: Collection[str] | None = None,
    ledger_entries: bool = False,
) -> list[ParsedRow]:
    """Turn every data row after ``header_row_index`` into a ParsedRow.

    Parameters
    ----------
    grid: raw rows (never modified)
    header_row_index: 0-based index of the header row
    mapping: system key -> header label
    column_configs: one ColumnConfig per column, in column order
    registry: system field definitions of the import context
    strict: strict (required fields) vs permissive validation
    locale: vocabulary for textual dates / booleans
    default_year: year used for bare month names without a year
    key_fn: caller supplied id function over the structured data
    existing_ids: ids already stored downstream (flagged as duplicates)
    ledger_entries: complete mapped ledger fields (type, absolute amount,
        text code, category placeholder) before the id is computed
    """
    header_index = {cfg.header: idx for idx, cfg in enumerate(column_configs)}
    active_mapping = {k: h for k, h in mapping.items() if h and h in header_index}
    defaults = {f.key: f.default for f in registry if f.default is not None}

    rows: list[ParsedRow] = []
    first_seen: dict[str, int] = {}
    for i in range(header_row_index + 1, len(grid)):
        raw_row = grid[i]
        if not raw_row or all(is_blank(c) for c in raw_row):
            continue

        content: dict[str, Any] = {}
        for idx, cfg in enumerate(column_configs):
            cell = raw_row[idx] if idx < len(raw_row) else None
            content[cfg.header] = coerce(cell, cfg.type, locale, default_year)

        structured = dict(content)
        for key, header in active_mapping.items():
            structured[key] = content[header]
        if not strict:
            for key, value in defaults.items():
                if not has_content(structured.get(key)):
                    structured[key] = value
        if ledger_entries:
            apply_entry_rules(structured, active_mapping, locale)

        if strict:
            errors = _strict_errors(raw_row, mapping, header_index, registry, locale, default_year)
            is_valid = not errors
        else:
            errors = []
            is_valid = any(has_content(v) for v in content.values())

        row_id = make_row_id(structured, key_fn) if key_fn else default_row_id(content)
        warnings: list[str] = []
        duplicate = is_existing(row_id, existing_ids)
        if duplicate:
            warnings.append(DUPLICATE_WARNING.format(row_id=row_id))
        if row_id in first_seen:
            warnings.append(REPEATED_WARNING.format(first_row=first_seen[row_id] + 1))
        else:
            first_seen[row_id] = i

        rows.append(
            ParsedRow(
                row_id=row_id,
                raw_row_index=i,
                structured_data=structured,
                is_valid=is_valid,
                validation_errors=tuple(errors),
                warnings=tuple(warnings),
                is_duplicate=duplicate,
            )
        )

    logger.debug(
        "normalized %d rows (header_row=%d strict=%s)", len(rows), header_row_index, strict
    )
    return rows
