from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from .field_registry import FieldRegistry, validate_registry

"""ImportContext model.

An import context names a registry together with the policies that the
pipeline applies to it: strict vs permissive validation, how rows that
already exist downstream are selected, and the table that receives the
committed records.

Every committed record carries its row id under ``id_column`` so that the
storage side can upsert on it and a re-import of the same file updates rows
instead of inserting them again.
"""

__all__ = [
    "DuplicatePolicy",
    "ImportContext",
]


class DuplicatePolicy(str, Enum):
    """Default-selection policy for rows flagged as duplicates.

    - UPDATE: keep duplicates selected (downstream upserts them)
    - SKIP: leave duplicates out of the default selection
    """
    UPDATE = "update"
    SKIP = "skip"


@dataclass(frozen=True)
class ImportContext:
    name: str
    registry: FieldRegistry = ()
    strict: bool = False  # True: required fields + calendar date validated per row
    duplicate_policy: DuplicatePolicy = DuplicatePolicy.UPDATE
    table: str | None = None  # Target table for commit (defaults to name)
    id_column: str | None = "id"  # column receiving ParsedRow.row_id (upsert key); None: not committed
    ledger_entries: bool = False  # flat rows get income/expense type, absolute amount, category default

    def __post_init__(self) -> None:
        object.__setattr__(self, "registry", validate_registry(self.registry))
        object.__setattr__(self, "duplicate_policy", DuplicatePolicy(self.duplicate_policy))

    @property
    def target_table(self) -> str:
        return self.table or self.name
