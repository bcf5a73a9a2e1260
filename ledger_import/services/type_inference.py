from __future__ import annotations

import re
from collections import Counter
from collections.abc import Sequence
from datetime import date
from typing import Any

from ..config.locales import DEFAULT_LOCALE, Locale
from ..excel.reader import is_blank, normalize_cell
from ..models.column_config import ColumnType

"""Column-type inference.

Each sample value is classified on its own (date, then currency, then number,
then boolean, else text); the column takes the first type, in that same
priority order, claimed by more than half of the samples. The result is only a
suggestion: the normalizer always uses the (possibly user-edited) ColumnConfig.

Account-code columns ("Cuenta", "Código") are kept as text even when every
sample is numeric, so that codes such as "0105" keep their leading zeros.
"""

__all__ = [
    "SAMPLE_SIZE",
    "infer_type",
    "classify_value",
    "sample_column",
    "is_account_header",
    "infer_column_types",
]

SAMPLE_SIZE = 10

_DATE_NUMERIC_RE = re.compile(r"^\d{1,4}[-/]\d{1,2}[-/]\d{1,4}")
_MONTH_YEAR_RE = re.compile(r"^[^\W\d_]+\.? \d{4}$")
_CURRENCY_SYMBOLS = ("$", "€", "£", "¥")
# 1.234.567,89 / 1,234,567.89 (grouping and decimal separators differ)
_GROUPED_DECIMAL_RE = re.compile(r"^-?\d{1,3}(?:(\.)\d{3})+,\d{1,2}$|^-?\d{1,3}(?:(,)\d{3})+\.\d{1,2}$")
_INTEGER_RE = re.compile(r"^-?\d+$")

_PRIORITY = (ColumnType.DATE, ColumnType.CURRENCY, ColumnType.NUMBER, ColumnType.BOOLEAN)


def classify_value(value: Any, locale: Locale = DEFAULT_LOCALE) -> ColumnType:
    """Classify a single non-empty cell value."""
    value = normalize_cell(value)
    if isinstance(value, bool):
        return ColumnType.BOOLEAN
    if isinstance(value, date):  # datetime is a date subclass
        return ColumnType.DATE
    if isinstance(value, (int, float)):
        return ColumnType.NUMBER

    text = str(value).strip()
    if _DATE_NUMERIC_RE.match(text) or _MONTH_YEAR_RE.match(text):
        return ColumnType.DATE
    if text.startswith(_CURRENCY_SYMBOLS) or _GROUPED_DECIMAL_RE.match(text):
        return ColumnType.CURRENCY
    stripped = re.sub(r"[,.$\s]", "", text)
    if _INTEGER_RE.match(stripped):
        return ColumnType.NUMBER
    lowered = text.lower()
    if lowered in ("true", "false") or lowered in locale.affirmatives or lowered in locale.negatives:
        return ColumnType.BOOLEAN
    return ColumnType.TEXT


def infer_type(sample_values: Sequence[Any], locale: Locale = DEFAULT_LOCALE) -> ColumnType:
    """Infer a column type from up to SAMPLE_SIZE non-empty sample values."""
    samples = [v for v in sample_values if not is_blank(v)][:SAMPLE_SIZE]
    if not samples:
        return ColumnType.TEXT
    counts = Counter(classify_value(v, locale) for v in samples)
    threshold = len(samples) / 2
    for candidate in _PRIORITY:
        if counts[candidate] > threshold:
            return candidate
    return ColumnType.TEXT


def is_account_header(header: Any, locale: Locale = DEFAULT_LOCALE) -> bool:
    """True when the header names an account / code column."""
    lowered = str(header or "").strip().lower()
    return any(word in lowered for word in locale.account_vocabulary)


def sample_column(
    rows: Sequence[Sequence[Any]],
    header_row_index: int,
    column_index: int,
    limit: int = SAMPLE_SIZE,
) -> list[Any]:
    """Collect up to ``limit`` non-empty values below the header for one column."""
    values: list[Any] = []
    for row in rows[header_row_index + 1 :]:
        if column_index < len(row) and not is_blank(row[column_index]):
            values.append(row[column_index])
            if len(values) >= limit:
                break
    return values


def infer_column_types(
    rows: Sequence[Sequence[Any]],
    header_row_index: int,
    headers: Sequence[str],
    locale: Locale = DEFAULT_LOCALE,
) -> dict[str, ColumnType]:
    """Infer a type for every header column."""
    types: dict[str, ColumnType] = {}
    for idx, header in enumerate(headers):
        kind = infer_type(sample_column(rows, header_row_index, idx), locale)
        if kind is ColumnType.NUMBER and is_account_header(header, locale):
            kind = ColumnType.TEXT
        types[header] = kind
    return types
