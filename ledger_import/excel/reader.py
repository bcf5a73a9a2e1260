from __future__ import annotations

import math
from collections.abc import Iterable, Sequence
from datetime import date, datetime
from pathlib import Path
from typing import Any

import numpy as np
import pandas as pd

"""Raw grid source.

Reads a spreadsheet-like document (xlsx/xlsm/xls via pandas+openpyxl, csv/tsv/txt
via pandas) into a RawGrid: an immutable tuple of rows, each a tuple of plain
Python cell values (None, str, int, float, bool, date/datetime).

No header handling happens here; the header row is located later by
services.header_locator. Any failure is reported as a single SourceReadError
and no partial grid is returned.
"""

__all__ = [
    "RawGrid",
    "SourceReadError",
    "EXCEL_SUFFIXES",
    "TEXT_SUFFIXES",
    "read_grid",
    "grid_from_frame",
    "grid_from_rows",
    "normalize_cell",
    "is_blank",
]

RawGrid = tuple[tuple[Any, ...], ...]

EXCEL_SUFFIXES = {".xlsx", ".xlsm", ".xls"}
TEXT_SUFFIXES = {".csv", ".tsv", ".txt"}
_TEXT_ENCODINGS = ("utf-8-sig", "cp1252", "latin-1")


class SourceReadError(Exception):
    """Raised when a source document cannot be read or decoded as a grid."""


def is_blank(value: Any) -> bool:
    """True for None, NaN/NaT and whitespace-only strings."""
    if value is None:
        return True
    if isinstance(value, str):
        return value.strip() == ""
    if isinstance(value, float) and math.isnan(value):
        return True
    if value is pd.NaT:
        return True
    return False


def normalize_cell(value: Any) -> Any:
    """Convert pandas/numpy scalars into plain Python cell values."""
    if value is None or value is pd.NaT:
        return None
    if isinstance(value, pd.Timestamp):
        if value.tzinfo is not None:
            value = value.tz_convert(None)
        return value.to_pydatetime()
    if isinstance(value, np.generic):
        value = value.item()
    if isinstance(value, float) and math.isnan(value):
        return None
    if isinstance(value, (datetime, date, str, bool, int, float)):
        return value
    return str(value)


def grid_from_rows(rows: Iterable[Sequence[Any]]) -> RawGrid:
    """Freeze arbitrary row sequences into a RawGrid."""
    return tuple(tuple(normalize_cell(v) for v in row) for row in rows)


def grid_from_frame(df: pd.DataFrame) -> RawGrid:
    """Convert a header-less DataFrame (header=None) into a RawGrid."""
    return grid_from_rows(df.itertuples(index=False, name=None))


def _na_options(keep_na_strings: list[str] | None) -> tuple[list[str] | None, bool]:
    # Pandas default NA values を取得し、keep_na_strings を除外
    import pandas._libs.parsers as parsers

    if keep_na_strings:
        custom_na = parsers.STR_NA_VALUES.copy() - set(keep_na_strings)
        return list(custom_na), False
    return None, True


def _read_excel(path: Path, sheet_name: str | None, keep_na_strings: list[str] | None) -> pd.DataFrame:
    na_values, keep_default_na = _na_options(keep_na_strings)
    with pd.ExcelFile(path) as xls:
        if not xls.sheet_names:
            raise SourceReadError(f"workbook has no sheets: {path.name}")
        target = sheet_name if sheet_name is not None else xls.sheet_names[0]
        if target not in xls.sheet_names:
            raise SourceReadError(f"sheet {target!r} not found in {path.name} (sheets: {xls.sheet_names})")
        # ヘッダなしで生読み; dtype=object でセル本来の型 (int/str/datetime/bool) を保持
        return xls.parse(
            target,
            header=None,
            dtype=object,
            keep_default_na=keep_default_na,
            na_values=na_values,
        )


def _read_text(path: Path, keep_na_strings: list[str] | None) -> pd.DataFrame:
    na_values, keep_default_na = _na_options(keep_na_strings)
    sep = "\t" if path.suffix.lower() == ".tsv" else None
    last_error: Exception | None = None
    for encoding in _TEXT_ENCODINGS:
        try:
            return pd.read_csv(
                path,
                header=None,
                dtype=object,
                sep=sep,
                engine="python",
                encoding=encoding,
                skip_blank_lines=False,
                keep_default_na=keep_default_na,
                na_values=na_values,
            )
        except UnicodeDecodeError as e:
            last_error = e
            continue
    raise SourceReadError(f"could not decode {path.name}: {last_error}")


def read_grid(
    path: Path,
    sheet_name: str | None = None,
    keep_na_strings: list[str] | None = None,
) -> RawGrid:
    """Read an entire spreadsheet-like file into a RawGrid.

    Parameters
    ----------
    path: source file (.xlsx/.xlsm/.xls/.csv/.tsv/.txt)
    sheet_name: worksheet to read (None = first sheet); ignored for text files
    keep_na_strings: strings that must stay text instead of pandas' default NaN
        conversion (e.g. ['NA'])

    Raises
    ------
    SourceReadError: the file is missing, has an unsupported type, cannot be
        decoded, or contains no rows.
    """
    path = Path(path)
    if not path.exists():
        raise SourceReadError(f"file not found: {path}")
    suffix = path.suffix.lower()
    try:
        if suffix in EXCEL_SUFFIXES:
            df = _read_excel(path, sheet_name, keep_na_strings)
        elif suffix in TEXT_SUFFIXES:
            df = _read_text(path, keep_na_strings)
        else:
            raise SourceReadError(f"unsupported file type: {path.suffix or '<none>'}")
    except SourceReadError:
        raise
    except Exception as e:
        raise SourceReadError(f"could not read {path.name}: {e}") from e

    grid = grid_from_frame(df)
    if not grid or all(all(is_blank(c) for c in row) for row in grid):
        raise SourceReadError(f"no data found in {path.name}")
    return grid
