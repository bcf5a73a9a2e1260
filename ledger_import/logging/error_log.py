from __future__ import annotations

from datetime import UTC, datetime
from pathlib import Path

from ..models.error_record import ErrorRecord

"""Error log buffering.

- JSON Lines with a fixed schema (ErrorRecord fields only)
- one ``logs/import-errors-YYYYMMDD-HHMMSS.log`` (UTC) per run, created lazily
- records are buffered and written on flush()
"""

__all__ = [
    "ErrorRecord",
    "ErrorLogBuffer",
    "SOURCE_READ_ERROR",
    "ROW_VALIDATION_ERROR",
    "COMMIT_ERROR",
]

LOGS_DIR = Path("./logs")
TIMESTAMP_FMT = "%Y%m%d-%H%M%S"

SOURCE_READ_ERROR = "SOURCE_READ_ERROR"
ROW_VALIDATION_ERROR = "ROW_VALIDATION_ERROR"
COMMIT_ERROR = "COMMIT_ERROR"


class ErrorLogBuffer:
    """In-memory buffer for error records. Flush appends JSON Lines.

    The file path is fixed on first access. Not thread safe (the pipeline is
    single threaded).
    """

    def __init__(self, logs_dir: Path | None = None) -> None:
        self._records: list[ErrorRecord] = []
        self._file_path: Path | None = None
        self._logs_dir = logs_dir

    @property
    def file_path(self) -> Path:
        if self._file_path is None:
            logs_dir = self._logs_dir or LOGS_DIR
            logs_dir.mkdir(parents=True, exist_ok=True)
            stamp = datetime.now(UTC).strftime(TIMESTAMP_FMT)
            self._file_path = logs_dir / f"import-errors-{stamp}.log"
        return self._file_path

    def append(self, record: ErrorRecord) -> None:
        self._records.append(record)

    def add(
        self, file: str, context: str, row: int, error_type: str, message: str, row_id: str | None = None
    ) -> ErrorRecord:
        record = ErrorRecord.create(file, context, row, error_type, message, row_id)
        self._records.append(record)
        return record

    @property
    def records(self) -> list[ErrorRecord]:
        return list(self._records)

    def __len__(self) -> int:  # pragma: no cover (trivial)
        return len(self._records)

    def flush(self) -> Path | None:
        """Write buffered records; returns the file path, or None if nothing was written."""
        if not self._records:
            return None
        fp = self.file_path
        with fp.open("a", encoding="utf-8") as f:
            for r in self._records:
                f.write(r.to_json_line() + "\n")
        self._records.clear()
        return fp
