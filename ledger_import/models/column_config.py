from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

"""Column configuration model.

A ColumnConfig pairs one detected header label with the semantic type the
normalizer will coerce that column to. The type starts out as the inferred
guess and may be overridden by the user before normalization runs.
"""

__all__ = [
    "ColumnType",
    "ColumnConfig",
]


class ColumnType(str, Enum):
    """Semantic column types understood by the value coercer.

    - TEXT: trimmed string (default)
    - NUMBER: integral number
    - CURRENCY: integral monetary amount
    - DATE: ISO ``YYYY-MM-DD`` string
    - BOOLEAN: True / False
    """
    TEXT = "text"
    NUMBER = "number"
    CURRENCY = "currency"
    DATE = "date"
    BOOLEAN = "boolean"


@dataclass(frozen=True)
class ColumnConfig:
    """Type assignment for one detected column."""
    header: str  # Unique header label (see header_locator.extract_headers)
    type: ColumnType = ColumnType.TEXT

    def with_type(self, new_type: ColumnType | str) -> ColumnConfig:
        return ColumnConfig(header=self.header, type=ColumnType(new_type))
