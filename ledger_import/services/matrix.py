from __future__ import annotations

import logging
import re
from collections.abc import Collection, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

from ..config.locales import DEFAULT_LOCALE, Locale
from ..excel.reader import is_blank
from ..models.parsed_row import ParsedRow
from .coercion import coerce_integer
from .header_locator import extract_headers, header_cell_text
from .ledger_entries import EXPENSE, INCOME, PUC_KIND_RULES, classify_account_kind
from .normalizer import DUPLICATE_WARNING
from .row_identity import KeyFunction, default_row_id, is_existing, make_row_id

"""Wide-format (matrix) transformer.

A financial statement exported as one row per account and one column per
month ("Cuenta | Nombre | Enero | Febrero | ...") is unpivoted into one
entry per (account, month) with a non-zero amount:

    {"date": "2024-01-01", "code": "4135", "description": "Ventas",
     "category": "Ventas", "amount": 1500000, "type": "income"}

The entry kind is decided by the first digit of the account code; the default
table follows the Colombian chart of accounts (PUC).
"""

__all__ = [
    "INCOME",
    "EXPENSE",
    "PUC_KIND_RULES",
    "MatrixSuggestion",
    "detect_period_headers",
    "detect_matrix",
    "suggest_matrix_mapping",
    "classify_account_kind",
    "expand_matrix",
    "guess_year",
]

logger = logging.getLogger(__name__)

_YEAR_IN_NAME_RE = re.compile(r"20\d{2}")


@dataclass(frozen=True)
class MatrixSuggestion:
    """Proposed wide-layout mapping (headers by role)."""
    account_code_header: str | None = None
    account_name_header: str | None = None
    period_headers: tuple[str, ...] = field(default_factory=tuple)

    @property
    def is_complete(self) -> bool:
        return bool(self.account_code_header and self.period_headers)


def _lower(header: Any) -> str:
    return header_cell_text(header).lower()


def detect_period_headers(headers: Sequence[str], locale: Locale = DEFAULT_LOCALE) -> list[str]:
    """Headers equal (case-insensitive) to a full month name, in column order."""
    months = set(locale.month_names)
    return [h for h in headers if _lower(h) in months]


def detect_matrix(headers: Sequence[str], locale: Locale = DEFAULT_LOCALE) -> bool:
    """True when some header names an account/code and some header is a month."""
    lowered = [_lower(h) for h in headers]
    has_account = any(word in h for h in lowered for word in locale.account_vocabulary)
    months = set(locale.month_names)
    has_period = any(h in months for h in lowered)
    return has_account and has_period


def suggest_matrix_mapping(headers: Sequence[str], locale: Locale = DEFAULT_LOCALE) -> MatrixSuggestion:
    code_header = next(
        (h for h in headers if any(word in _lower(h) for word in locale.account_vocabulary)),
        None,
    )
    name_header = next(
        (
            h for h in headers
            if h != code_header and any(word in _lower(h) for word in locale.name_vocabulary)
        ),
        None,
    )
    return MatrixSuggestion(
        account_code_header=code_header,
        account_name_header=name_header,
        period_headers=tuple(detect_period_headers(headers, locale)),
    )


def guess_year(filename: str | None, fallback: int) -> int:
    """First ``20xx`` found in a file name ("PyG_2023.xlsx" -> 2023), else fallback."""
    if filename:
        m = _YEAR_IN_NAME_RE.search(filename)
        if m:
            return int(m.group(0))
    return fallback


def _index_of(headers: Sequence[str], header: str | None) -> int | None:
    if not header:
        return None
    for idx, h in enumerate(headers):
        if h == header:
            return idx
    return None


def expand_matrix(
    grid: Sequence[Sequence[Any]],
    account_code_header: str,
    account_name_header: str | None,
    year: int,
    selected_period_headers: Sequence[str],
    *,
    header_row_index: int = 0,
    locale: Locale = DEFAULT_LOCALE,
    kind_rules: Mapping[str, str] | None = None,
    key_fn: KeyFunction | None = None,
    existing_ids: Collection[str] | None = None,
) -> list[ParsedRow]:
    """Unpivot a wide layout into one ParsedRow per (account row, period).

    Headers are read from ``grid[header_row_index]`` and compared exactly.
    Selected headers that are not month names of ``locale`` are ignored.
    An unknown ``account_code_header`` yields an empty list.
    """
    if len(grid) <= header_row_index + 1:
        return []
    headers = extract_headers(grid[header_row_index], locale)
    code_idx = _index_of(headers, account_code_header)
    if code_idx is None:
        logger.warning("matrix: account code column %r not found", account_code_header)
        return []
    name_idx = _index_of(headers, account_name_header)

    periods: list[tuple[int, int]] = []  # (column index, month index)
    for header in selected_period_headers:
        col = _index_of(headers, header)
        month = locale.month_index(header) if _lower(header) in locale.month_names else None
        if col is None or month is None:
            continue
        periods.append((col, month))

    skip_words = {w.lower() for w in locale.account_vocabulary} | {locale.account_word.lower()}
    rows: list[ParsedRow] = []
    for i in range(header_row_index + 1, len(grid)):
        raw_row = grid[i]
        code_cell = raw_row[code_idx] if code_idx < len(raw_row) else None
        code = "" if is_blank(code_cell) else header_cell_text(code_cell)
        if not code or code.lower() in skip_words:
            continue
        name_cell = raw_row[name_idx] if name_idx is not None and name_idx < len(raw_row) else None
        name = "" if is_blank(name_cell) else str(name_cell).strip()
        kind = classify_account_kind(code, kind_rules)

        for col, month in periods:
            cell = raw_row[col] if col < len(raw_row) else None
            if is_blank(cell):
                continue
            amount = coerce_integer(cell)
            if amount == 0:
                continue
            structured = {
                "date": f"{year}-{month + 1:02d}-01",
                "code": code,
                "description": name or f"{locale.account_word} {code}",
                "category": name,
                "amount": abs(amount),
                "type": kind,
            }
            row_id = make_row_id(structured, key_fn) if key_fn else default_row_id(structured)
            duplicate = is_existing(row_id, existing_ids)
            rows.append(
                ParsedRow(
                    row_id=row_id,
                    raw_row_index=i,
                    structured_data=structured,
                    is_valid=True,
                    warnings=(DUPLICATE_WARNING.format(row_id=row_id),) if duplicate else (),
                    is_duplicate=duplicate,
                )
            )

    logger.debug("matrix: expanded %d entries from %d periods", len(rows), len(periods))
    return rows
