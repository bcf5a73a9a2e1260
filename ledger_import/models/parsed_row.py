from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

"""ParsedRow model for the import pipeline.

ParsedRow is the output unit of one normalization pass: one per emitted data
row (flat layout) or per (row, period) pair (wide layout). Rows are rebuilt
from scratch on every pass and never mutated afterwards.
"""

__all__ = [
    "ParsedRow",
]


@dataclass(frozen=True)
class ParsedRow:
    """Normalized record ready for preview, selection and commit.

    ``structured_data`` holds the coerced value under every raw header key and,
    for mapped system fields, the same value again under the system key.
    ``raw_row_index`` is the 0-based index into the raw grid.
    """
    row_id: str
    raw_row_index: int
    structured_data: dict[str, Any]
    is_valid: bool = True
    validation_errors: tuple[str, ...] = ()
    warnings: tuple[str, ...] = ()
    is_duplicate: bool = False  # id already present downstream (warning only)

    @property
    def sheet_row_number(self) -> int:
        """1-based row number as shown by spreadsheet applications."""
        return self.raw_row_index + 1
