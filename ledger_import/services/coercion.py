from __future__ import annotations

import math
import re
from datetime import date, datetime, timedelta
from typing import Any

from ..config.locales import DEFAULT_LOCALE, Locale
from ..excel.reader import is_blank, normalize_cell
from ..models.column_config import ColumnType

"""Value coercion.

coerce() turns one raw cell into the normalized value for a column type and
never raises: unusable input degrades to 0 (number/currency), False (boolean),
"" (text) or the original trimmed text (date).

Monetary values are integral in this domain; "1.234,56" coerces to 123456.
"""

__all__ = [
    "SPREADSHEET_EPOCH",
    "SERIAL_DATE_MIN",
    "SERIAL_DATE_MAX",
    "coerce",
    "coerce_integer",
    "coerce_date",
    "coerce_boolean",
    "coerce_text",
    "parse_text_date",
    "is_calendar_date",
]

SPREADSHEET_EPOCH = date(1899, 12, 30)
# Serial day numbers accepted as dates (roughly 1982-02 .. 2064-04), exclusive
SERIAL_DATE_MIN = 30000
SERIAL_DATE_MAX = 60000

_ISO_RE = re.compile(r"^(\d{4})-(\d{1,2})-(\d{1,2})(?:[T ].*)?$")
_YMD_SLASH_RE = re.compile(r"^(\d{4})/(\d{1,2})/(\d{1,2})$")
_NUMERIC_DMY_RE = re.compile(r"^(\d{1,2})[/.-](\d{1,2})[/.-](\d{2}|\d{4})$")
_YEAR_RE = re.compile(r"(?<!\d)(\d{4})(?!\d)")
_NUMBER_TEXT_RE = re.compile(r"^-?\d+(?:\.\d+)?$")
_TRUE_WORDS = frozenset({"true", "1"})


def _safe_date(year: int, month: int, day: int) -> date | None:
    try:
        return date(year, month, day)
    except ValueError:
        return None


def coerce_integer(value: Any) -> int:
    """Integral number/currency coercion (digits plus a leading minus only)."""
    value = normalize_cell(value)
    if value is None:
        return 0
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, (int, float)):
        if isinstance(value, float) and (math.isnan(value) or math.isinf(value)):
            return 0
        return math.floor(value + 0.5)  # half-up, not banker's rounding
    text = str(value)
    digits = re.sub(r"\D", "", text)
    if not digits:
        return 0
    first_digit = re.search(r"\d", text)
    negative = first_digit is not None and "-" in text[: first_digit.start()]
    number = int(digits)
    return -number if negative else number


def _serial_to_iso(serial: float) -> str | None:
    if SERIAL_DATE_MIN < serial < SERIAL_DATE_MAX:
        return (SPREADSHEET_EPOCH + timedelta(days=int(serial))).isoformat()
    return None


def parse_text_date(text: str, locale: Locale = DEFAULT_LOCALE, default_year: int | None = None) -> str | None:
    """Parse free text into ``YYYY-MM-DD``; None when nothing matches.

    Order: ISO, numeric day/month order of the locale, "day [de] Month [de] year",
    then a bare month name (day 01 of the year found in the text, else
    ``default_year``, else the current year).
    """
    v = " ".join(text.strip().split())
    if not v:
        return None

    m = _ISO_RE.match(v) or _YMD_SLASH_RE.match(v)
    if m:
        d = _safe_date(int(m.group(1)), int(m.group(2)), int(m.group(3)))
        return d.isoformat() if d else None

    m = _NUMERIC_DMY_RE.match(v)
    if m:
        a, b, year = int(m.group(1)), int(m.group(2)), int(m.group(3))
        if year < 100:
            year += 2000
        orders = [(a, b), (b, a)] if locale.day_first else [(b, a), (a, b)]
        for day, month in orders:
            d = _safe_date(year, month, day)
            if d:
                return d.isoformat()
        return None

    lowered = v.lower()
    connector = rf"(?:{re.escape(locale.date_connector)}\s+)?" if locale.date_connector else ""
    # "lunes, 15 de marzo de 2024" / "15 marzo 2024" / "15-mar-2024"
    m = re.search(rf"(\d{{1,2}})[\s-]+{connector}([^\W\d_]+)\.?[\s-]+{connector}(\d{{4}})", lowered)
    if m:
        month_idx = locale.month_index(m.group(2))
        if month_idx is not None:
            d = _safe_date(int(m.group(3)), month_idx + 1, int(m.group(1)))
            if d:
                return d.isoformat()

    for word in re.findall(r"[^\W\d_]+", lowered):
        month_idx = locale.month_index(word)
        if month_idx is None:
            continue
        year_match = _YEAR_RE.search(v)
        if year_match:
            year = int(year_match.group(1))
        else:
            year = default_year if default_year is not None else date.today().year
        return f"{year:04d}-{month_idx + 1:02d}-01"
    return None


def coerce_date(value: Any, locale: Locale = DEFAULT_LOCALE, default_year: int | None = None) -> Any:
    """Date coercion; unparseable text passes through (trimmed)."""
    value = normalize_cell(value)
    if value is None:
        return ""
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, bool):
        return str(value)
    if isinstance(value, (int, float)):
        return _serial_to_iso(value) or coerce_text(value)
    text = str(value).strip()
    if _NUMBER_TEXT_RE.match(text):
        serial = _serial_to_iso(float(text))
        if serial:
            return serial
    return parse_text_date(text, locale, default_year) or text


def coerce_boolean(value: Any, locale: Locale = DEFAULT_LOCALE) -> bool:
    value = normalize_cell(value)
    if value is None:
        return False
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value != 0
    lowered = str(value).strip().lower()
    return lowered in _TRUE_WORDS or lowered in locale.affirmatives


def coerce_text(value: Any) -> str:
    value = normalize_cell(value)
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, datetime) and value.time() == datetime.min.time():
        return value.date().isoformat()
    return str(value).strip()


def coerce(
    value: Any,
    column_type: ColumnType | str,
    locale: Locale = DEFAULT_LOCALE,
    default_year: int | None = None,
) -> Any:
    """Coerce one raw cell to the normalized value for ``column_type``.

    Total function: never raises for any input. Unknown types fall back to text.
    """
    try:
        kind = ColumnType(column_type)
    except ValueError:
        kind = ColumnType.TEXT
    if kind in (ColumnType.CURRENCY, ColumnType.NUMBER):
        return coerce_integer(value)
    if kind is ColumnType.DATE:
        return coerce_date(value, locale, default_year)
    if kind is ColumnType.BOOLEAN:
        return coerce_boolean(value, locale)
    return coerce_text(value)


def is_calendar_date(value: Any) -> bool:
    """True when ``value`` is an ISO ``YYYY-MM-DD`` string naming a real day."""
    if not isinstance(value, str) or is_blank(value):
        return False
    m = re.fullmatch(r"(\d{4})-(\d{2})-(\d{2})", value)
    return bool(m) and _safe_date(int(m.group(1)), int(m.group(2)), int(m.group(3))) is not None
