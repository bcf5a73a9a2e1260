from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

from .parsed_row import ParsedRow

"""Import result models.

Aggregated counts for one import session, used for the SUMMARY output line
and returned by ImportSession.commit().
"""

__all__ = [
    "RowCounts",
    "ImportSummary",
    "summarize_rows",
]


@dataclass(frozen=True)
class RowCounts:
    """Validity/duplicate tally over one normalization pass."""
    total: int
    valid: int
    invalid: int
    duplicates: int


def summarize_rows(rows: Sequence[ParsedRow]) -> RowCounts:
    valid = sum(1 for r in rows if r.is_valid)
    duplicates = sum(1 for r in rows if r.is_duplicate)
    return RowCounts(total=len(rows), valid=valid, invalid=len(rows) - valid, duplicates=duplicates)


@dataclass(frozen=True)
class ImportSummary:
    """Outcome of one import session (preview or commit)."""
    file_name: str  # 入力ファイル名 (grid 直接投入時は "<grid>")
    context: str
    total_rows: int
    valid_rows: int
    invalid_rows: int
    duplicate_rows: int
    selected_rows: int
    committed_rows: int  # 0 for dry runs and failed commits
    elapsed_seconds: float
    matrix: bool = False  # wide layout expanded
    error: str | None = None  # user visible failure message
