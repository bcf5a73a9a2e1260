from __future__ import annotations

import logging
import time
from collections.abc import Collection, Mapping, Sequence
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from pathlib import Path
from typing import Any, Protocol

from ..config.locales import DEFAULT_LOCALE, Locale
from ..excel.reader import RawGrid, SourceReadError, grid_from_rows, read_grid
from ..logging.error_log import COMMIT_ERROR, ROW_VALIDATION_ERROR, SOURCE_READ_ERROR, ErrorLogBuffer
from ..models.error_record import ErrorRecord
from ..models.column_config import ColumnConfig, ColumnType
from ..models.import_context import DuplicatePolicy, ImportContext
from ..models.import_result import ImportSummary, summarize_rows
from ..models.parsed_row import ParsedRow
from .auto_mapper import FieldMapping, auto_map
from .header_locator import DEFAULT_SEARCH_DEPTH, extract_headers, locate_header_row, score_row
from .mapping_store import MappingStore
from .matrix import MatrixSuggestion, detect_matrix, expand_matrix, guess_year, suggest_matrix_mapping
from .normalizer import normalize
from .row_identity import KeyFunction
from .type_inference import infer_column_types

"""Import session: the stateful wrapper around the pure pipeline functions.

One session covers one file from upload to commit:

    UPLOAD --load_file/load_grid--> CONFIGURE --normalize--> PREVIEW --commit

The session owns the raw grid, the column configuration, the field mapping,
the parsed rows and the selection. Only two conditions are exceptional, and
both are caught here and turned into ``session.error``:

- the source cannot be read: the session resets to UPLOAD
- the sink fails on commit: everything is kept so the commit can be retried
"""

__all__ = [
    "ImportStep",
    "ImportSessionError",
    "CommitError",
    "RowSink",
    "MatrixSettings",
    "ImportSession",
    "NO_SELECTION_MESSAGE",
]

logger = logging.getLogger(__name__)

NO_SELECTION_MESSAGE = "No rows selected for import"
GRID_FILE_NAME = "<grid>"


class ImportStep(str, Enum):
    UPLOAD = "upload"
    CONFIGURE = "configure"
    PREVIEW = "preview"


class ImportSessionError(Exception):
    """Raised when a session operation is called in the wrong step or with unknown names."""


class CommitError(ImportSessionError):
    """Wraps an exception raised by the row sink during commit."""


class RowSink(Protocol):
    def insert(self, table: str, records: Sequence[Mapping[str, Any]]) -> int: ...


@dataclass
class MatrixSettings:
    """Wide-layout parameters (user editable before normalize)."""
    account_code_header: str | None = None
    account_name_header: str | None = None
    year: int = 0
    period_headers: list[str] = field(default_factory=list)


class ImportSession:
    """Stateful import wizard for one file and one import context.

    Parameters
    ----------
    context: registry and policies applied to the file
    locale: vocabulary for headers, dates and booleans
    mapping_store: saved mappings and column types per context (auto_map pass 1)
    key_fn: caller supplied row id function
    existing_ids: ids already stored downstream (duplicate flagging)
    search_depth: rows scanned for the header row
    default_year: year for bare month names (else guessed from the file name)
    error_log: buffer receiving ErrorRecords (flushed by the caller)
    table_prefix: prepended to the context's target table on commit
    """

    def __init__(
        self,
        context: ImportContext,
        *,
        locale: Locale = DEFAULT_LOCALE,
        mapping_store: MappingStore | None = None,
        key_fn: KeyFunction | None = None,
        existing_ids: Collection[str] | None = None,
        search_depth: int = DEFAULT_SEARCH_DEPTH,
        default_year: int | None = None,
        error_log: ErrorLogBuffer | None = None,
        table_prefix: str = "",
    ) -> None:
        self.context = context
        self.locale = locale
        self.mapping_store = mapping_store
        self.key_fn = key_fn
        self.existing_ids = frozenset(existing_ids or ())
        self.search_depth = search_depth
        self.configured_year = default_year
        self.error_log = error_log
        self.table_prefix = table_prefix
        self.reset()

    # ------------------------------------------------------------------
    # lifecycle
    # ------------------------------------------------------------------
    def reset(self) -> None:
        """Drop every piece of in-memory state and go back to UPLOAD."""
        self.step = ImportStep.UPLOAD
        self.file_name: str | None = None
        self.grid: RawGrid | None = None
        self.header_row_index = 0
        self.headers: list[str] = []
        self.column_configs: list[ColumnConfig] = []
        self._saved_types: dict[str, ColumnType] = {}
        self._type_overrides: dict[str, ColumnType] = {}
        self.mapping: FieldMapping = {}
        self.matrix = False
        self.matrix_settings = MatrixSettings()
        self.default_year: int | None = self.configured_year
        self._rows: list[ParsedRow] = []
        self._selection: set[str] = set()
        self.committed_rows = 0
        self.error: str | None = None
        self.exception: Exception | None = None
        self._started = time.perf_counter()

    def load_file(self, path: str | Path, sheet_name: str | None = None, keep_na_strings: list[str] | None = None) -> bool:
        """Read ``path`` and prepare the configuration step.

        Returns False (with ``error`` set and the session reset) when the
        source cannot be read.
        """
        path = Path(path)
        try:
            grid = read_grid(path, sheet_name=sheet_name, keep_na_strings=keep_na_strings)
        except SourceReadError as e:
            self.reset()
            self.error = str(e)
            self.exception = e
            self.file_name = path.name
            logger.error("read failed: %s", e)
            self._record(ErrorRecord.for_file(path.name, self.context.name, SOURCE_READ_ERROR, str(e)))
            return False
        self.load_grid(grid, file_name=path.name)
        return True

    def load_grid(self, grid: Sequence[Sequence[Any]], file_name: str = GRID_FILE_NAME) -> None:
        """Start a session from an in-memory grid (already read by the caller)."""
        self.reset()
        self.file_name = file_name
        self.grid = grid_from_rows(grid)
        if self.configured_year is None:
            self.default_year = guess_year(file_name, date.today().year)
        self.header_row_index = self._detect_header_row()
        self._configure_columns()
        logger.info(
            "loaded %s rows=%d header_row=%d columns=%d matrix=%s",
            file_name, len(self.grid), self.header_row_index + 1, len(self.headers), self.matrix,
        )

    def _detect_header_row(self) -> int:
        assert self.grid is not None
        registry = self.context.registry
        if registry:
            idx = locate_header_row(self.grid, self.search_depth, registry)
            aliases = [a for f in registry for a in f.aliases]
            if self.grid and score_row(self.grid[idx], aliases) > 0:
                return idx
            logger.debug("no header cell matched an alias, falling back to density")
        return locate_header_row(self.grid, self.search_depth)

    def _configure_columns(self) -> None:
        assert self.grid is not None
        width = max((len(r) for r in self.grid), default=0)
        header_row = self.grid[self.header_row_index] if self.grid else ()
        self.headers = extract_headers(header_row, self.locale, width=width)
        types = infer_column_types(self.grid, self.header_row_index, self.headers, self.locale)
        if self.mapping_store is not None:
            self._saved_types = _column_types(self.mapping_store.get_types(self.context.name))
        chosen = {**self._saved_types, **self._type_overrides}
        self.column_configs = [ColumnConfig(h, chosen.get(h, types[h])) for h in self.headers]

        prior = self.mapping_store.get(self.context.name) if self.mapping_store else None
        self.mapping = auto_map(self.headers, self.context.registry, prior)

        suggestion = suggest_matrix_mapping(self.headers, self.locale)
        self.matrix = detect_matrix(self.headers, self.locale) and suggestion.is_complete
        self.matrix_settings = self._settings_from(suggestion)

        self._rows = []
        self._selection = set()
        self.step = ImportStep.CONFIGURE

    def _settings_from(self, suggestion: MatrixSuggestion) -> MatrixSettings:
        return MatrixSettings(
            account_code_header=suggestion.account_code_header,
            account_name_header=suggestion.account_name_header,
            year=self.default_year or date.today().year,
            period_headers=list(suggestion.period_headers),
        )

    # ------------------------------------------------------------------
    # configuration step
    # ------------------------------------------------------------------
    def _require_grid(self) -> RawGrid:
        if self.grid is None:
            raise ImportSessionError("no file loaded")
        return self.grid

    def set_header_row(self, index: int) -> None:
        """Override the detected header row (0-based); re-infers types and mapping."""
        grid = self._require_grid()
        if not 0 <= index < len(grid):
            raise ImportSessionError(f"header row {index + 1} is outside the sheet (1..{len(grid)})")
        self.header_row_index = index
        self._configure_columns()

    def set_column_type(self, header: str, column_type: ColumnType | str) -> None:
        """Override the inferred type of one column (remembered for the context)."""
        for idx, cfg in enumerate(self.column_configs):
            if cfg.header == header:
                kind = ColumnType(column_type)
                self.column_configs[idx] = cfg.with_type(kind)
                self._type_overrides[header] = kind
                return
        raise ImportSessionError(f"unknown column: {header!r}")

    def set_mapping(self, key: str, header: str | None) -> None:
        """Assign ``header`` to system field ``key`` (None unmaps it)."""
        if self.context.registry and key not in {f.key for f in self.context.registry}:
            raise ImportSessionError(f"unknown system field for context {self.context.name}: {key!r}")
        if header is None:
            self.mapping.pop(key, None)
            return
        if header not in self.headers:
            raise ImportSessionError(f"unknown column: {header!r}")
        self.mapping[key] = header

    def configure_matrix(
        self,
        enabled: bool = True,
        *,
        account_code_header: str | None = None,
        account_name_header: str | None = None,
        year: int | None = None,
        period_headers: Sequence[str] | None = None,
    ) -> None:
        """Switch the wide-layout expansion on/off and override its parameters."""
        self._require_grid()
        self.matrix = enabled
        s = self.matrix_settings
        if account_code_header is not None:
            s.account_code_header = account_code_header
        if account_name_header is not None:
            s.account_name_header = account_name_header or None
        if year is not None:
            s.year = year
        if period_headers is not None:
            s.period_headers = list(period_headers)

    # ------------------------------------------------------------------
    # normalization
    # ------------------------------------------------------------------
    def normalize(self) -> list[ParsedRow]:
        """Run the normalizer (or the matrix expansion) over the whole grid."""
        grid = self._require_grid()
        if self.matrix:
            s = self.matrix_settings
            if not s.account_code_header:
                raise ImportSessionError("matrix layout needs an account code column")
            rows = expand_matrix(
                grid,
                s.account_code_header,
                s.account_name_header,
                s.year,
                s.period_headers,
                header_row_index=self.header_row_index,
                locale=self.locale,
                key_fn=self.key_fn,
                existing_ids=self.existing_ids,
            )
        else:
            rows = normalize(
                grid,
                self.header_row_index,
                self.mapping,
                self.column_configs,
                registry=self.context.registry,
                strict=self.context.strict,
                locale=self.locale,
                default_year=self.default_year,
                key_fn=self.key_fn,
                existing_ids=self.existing_ids,
                ledger_entries=self.context.ledger_entries,
            )
            if self.mapping_store is not None and self.mapping:
                self.mapping_store.put(self.context.name, self.mapping)
            if self.mapping_store is not None and self._type_overrides:
                saved = {**self._saved_types, **self._type_overrides}
                self.mapping_store.put_types(self.context.name, {h: t.value for h, t in saved.items()})

        self._rows = rows
        skip_duplicates = self.context.duplicate_policy is DuplicatePolicy.SKIP
        self._selection = {
            r.row_id for r in rows
            if r.is_valid and not (skip_duplicates and r.is_duplicate)
        }
        for r in rows:
            for message in r.validation_errors:
                self._record(
                    ErrorRecord.for_row(self.file_name or GRID_FILE_NAME, self.context.name, r, ROW_VALIDATION_ERROR, message)
                )

        counts = summarize_rows(rows)
        logger.info(
            "normalized %s: rows=%d valid=%d invalid=%d duplicates=%d",
            self.file_name, counts.total, counts.valid, counts.invalid, counts.duplicates,
        )
        self.error = None
        self.exception = None
        self.step = ImportStep.PREVIEW
        return list(rows)

    # ------------------------------------------------------------------
    # downstream accessors
    # ------------------------------------------------------------------
    @property
    def parsed_rows(self) -> tuple[ParsedRow, ...]:
        return tuple(self._rows)

    def get_parsed_rows(self) -> list[ParsedRow]:
        return list(self._rows)

    def get_valid_count(self) -> int:
        return summarize_rows(self._rows).valid

    def get_error_count(self) -> int:
        return summarize_rows(self._rows).invalid

    def get_duplicate_count(self) -> int:
        return summarize_rows(self._rows).duplicates

    # ------------------------------------------------------------------
    # selection
    # ------------------------------------------------------------------
    def _row(self, row_id: str) -> ParsedRow:
        for r in self._rows:
            if r.row_id == row_id:
                return r
        raise ImportSessionError(f"unknown row id: {row_id!r}")

    def select(self, row_id: str) -> bool:
        """Add a row to the selection. Invalid rows are refused in strict contexts."""
        row = self._row(row_id)
        if not row.is_valid and self.context.strict:
            logger.warning("row %d is invalid and cannot be selected", row.sheet_row_number)
            return False
        self._selection.add(row_id)
        return True

    def deselect(self, row_id: str) -> None:
        self._row(row_id)
        self._selection.discard(row_id)

    def toggle(self, row_id: str) -> bool:
        """Flip one row; returns whether it is selected afterwards."""
        if row_id in self._selection:
            self.deselect(row_id)
            return False
        return self.select(row_id)

    def select_all_valid(self) -> int:
        self._selection = {r.row_id for r in self._rows if r.is_valid}
        return len(self._selection)

    def deselect_duplicates(self) -> int:
        """Remove every duplicate-flagged row from the selection; returns how many were removed."""
        flagged = {r.row_id for r in self._rows if r.is_duplicate}
        removed = len(self._selection & flagged)
        self._selection -= flagged
        return removed

    def is_selected(self, row_id: str) -> bool:
        return row_id in self._selection

    def selected_rows(self) -> list[ParsedRow]:
        """Selected rows in sheet order (repeated ids are committed once)."""
        seen: set[str] = set()
        out: list[ParsedRow] = []
        for r in self._rows:
            if r.row_id in self._selection and r.row_id not in seen:
                seen.add(r.row_id)
                out.append(r)
        return out

    # ------------------------------------------------------------------
    # commit
    # ------------------------------------------------------------------
    @property
    def target_table(self) -> str:
        return f"{self.table_prefix}{self.context.target_table}"

    def commit(self, sink: RowSink) -> ImportSummary:
        """Hand the selected rows' structured data to ``sink``.

        Each record starts with the row id under the context's ``id_column``.

        Failures never raise: ``error`` is set and the rows, mapping and
        selection stay untouched so that commit can be retried.
        """
        rows = self.selected_rows()
        if not rows:
            self.error = NO_SELECTION_MESSAGE
            logger.warning("%s: %s", self.file_name, NO_SELECTION_MESSAGE)
            return self.summary()
        records = [self._record_of(r) for r in rows]
        try:
            inserted = sink.insert(self.target_table, records)
        except Exception as e:
            err = CommitError(f"commit to {self.target_table} failed: {e}")
            err.__cause__ = e
            self.error = str(err)
            self.exception = err
            logger.error("%s: %s", self.file_name, err)
            self._record(ErrorRecord.for_file(self.file_name or GRID_FILE_NAME, self.context.name, COMMIT_ERROR, str(err)))
            return self.summary()
        self.committed_rows = inserted
        self.error = None
        self.exception = None
        logger.info("committed %d rows to %s", inserted, self.target_table)
        return self.summary()

    def _record_of(self, row: ParsedRow) -> dict[str, Any]:
        id_column = self.context.id_column
        if not id_column:
            return dict(row.structured_data)
        record: dict[str, Any] = {id_column: row.row_id}
        record.update((k, v) for k, v in row.structured_data.items() if k != id_column)
        return record

    def summary(self) -> ImportSummary:
        counts = summarize_rows(self._rows)
        return ImportSummary(
            file_name=self.file_name or GRID_FILE_NAME,
            context=self.context.name,
            total_rows=counts.total,
            valid_rows=counts.valid,
            invalid_rows=counts.invalid,
            duplicate_rows=counts.duplicates,
            selected_rows=len(self.selected_rows()),
            committed_rows=self.committed_rows,
            elapsed_seconds=round(time.perf_counter() - self._started, 3),
            matrix=self.matrix,
            error=self.error,
        )

    def _record(self, record: ErrorRecord) -> None:
        if self.error_log is not None:
            self.error_log.append(record)


def _column_types(saved: Mapping[str, str]) -> dict[str, ColumnType]:
    out: dict[str, ColumnType] = {}
    for header, value in saved.items():
        try:
            out[header] = ColumnType(value)
        except ValueError:
            logger.warning("ignoring saved type %r for column %r", value, header)
    return out
