from __future__ import annotations

import json
from dataclasses import asdict, dataclass
from datetime import UTC, datetime

from .parsed_row import ParsedRow

"""One line of the import error log.

File-level problems (unreadable source, failed commit) use ``row=-1`` and no
``row_id``; row-level problems carry the 1-based sheet row and the id of the
ParsedRow, so an entry can be matched against the preview table.
"""

__all__ = [
    "FILE_LEVEL_ROW",
    "ErrorRecord",
]

FILE_LEVEL_ROW = -1


def _utc_now() -> str:
    return datetime.now(UTC).isoformat(timespec="seconds").replace("+00:00", "Z")


@dataclass(frozen=True)
class ErrorRecord:
    timestamp: str  # ISO8601 UTC, 'Z' suffix
    file: str
    context: str
    row: int  # シート上の行番号 (1始まり)。ファイル単位のエラーは -1
    error_type: str  # UPPER_SNAKE
    message: str
    row_id: str | None = None

    @classmethod
    def create(
        cls,
        file: str,
        context: str,
        row: int,
        error_type: str,
        message: str,
        row_id: str | None = None,
    ) -> ErrorRecord:
        return cls(_utc_now(), file, context, row, error_type, message, row_id)

    @classmethod
    def for_file(cls, file: str, context: str, error_type: str, message: str) -> ErrorRecord:
        """Record for a problem that concerns the whole file."""
        return cls.create(file, context, FILE_LEVEL_ROW, error_type, message)

    @classmethod
    def for_row(cls, file: str, context: str, row: ParsedRow, error_type: str, message: str) -> ErrorRecord:
        """Record for one message of a parsed row (keeps its id for lookup)."""
        return cls.create(file, context, row.sheet_row_number, error_type, message, row.row_id)

    @property
    def is_file_level(self) -> bool:
        return self.row == FILE_LEVEL_ROW

    def to_json_line(self) -> str:
        """Serialize to one JSON Lines entry (non-ASCII kept as is)."""
        return json.dumps(asdict(self), ensure_ascii=False)
