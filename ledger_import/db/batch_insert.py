from __future__ import annotations

import logging
import time
from collections.abc import Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from psycopg2.extras import Json, execute_values

"""PostgreSQL persistence collaborator.

batch_insert() is the bulk INSERT primitive (psycopg2.extras.execute_values);
PostgresRowSink adapts it to the RowSink interface used by
ImportSession.commit(): records are dicts keyed by header / system key, and
the column list is the union of their keys in first-seen order.

Transaction boundaries belong to the caller (the CLI commits or rolls back per
file).
"""

__all__ = [
    "BatchInsertError",
    "BatchMetrics",
    "InsertResult",
    "batch_insert",
    "records_to_rows",
    "PostgresRowSink",
]

logger = logging.getLogger(__name__)


class BatchInsertError(Exception):
    pass


@dataclass(frozen=True)
class BatchMetrics:
    """Timing of one execute_values call."""
    batch_size: int
    elapsed_seconds: float
    start_time: float
    end_time: float


@dataclass(frozen=True)
class InsertResult:
    inserted_rows: int
    returned_values: list[tuple[Any, ...]] | None = None


def _quote_ident(name: str) -> str:
    return '"' + name.replace('"', '""') + '"'


def _quote_table(table: str) -> str:
    # schema.table も許容
    return ".".join(_quote_ident(part) for part in table.split("."))


def batch_insert(
    cursor: Any,
    table: str,
    columns: Sequence[str],
    rows: Iterable[Sequence[Any]],
    returning: bool = False,
    page_size: int = 1000,
    conflict_columns: Sequence[str] | None = None,
    metrics_callback: Callable[[BatchMetrics], None] | None = None,
) -> InsertResult:
    """Perform a batched INSERT using psycopg2.extras.execute_values.

    Parameters
    ----------
    cursor: psycopg2 cursor
    table: target table (``schema.table`` allowed)
    columns: inserted columns, in row value order
    rows: value sequences
    returning: append ``RETURNING *`` and fetch the returned rows
    page_size: execute_values page size
    conflict_columns: when given, ``ON CONFLICT (...) DO UPDATE`` every other
        column (upsert of rows that already exist)
    metrics_callback: receives BatchMetrics (not called for empty input)
    """
    rows_list = list(rows)
    if not rows_list:
        return InsertResult(inserted_rows=0, returned_values=[] if returning else None)
    if not columns:
        raise BatchInsertError(f"no columns to insert into {table}")

    cols_sql = ",".join(_quote_ident(c) for c in columns)
    base_sql = f"INSERT INTO {_quote_table(table)} ({cols_sql}) VALUES %s"
    if conflict_columns:
        conflict_sql = ",".join(_quote_ident(c) for c in conflict_columns)
        updates = [c for c in columns if c not in set(conflict_columns)]
        if updates:
            set_sql = ",".join(f"{_quote_ident(c)}=EXCLUDED.{_quote_ident(c)}" for c in updates)
            base_sql += f" ON CONFLICT ({conflict_sql}) DO UPDATE SET {set_sql}"
        else:
            base_sql += f" ON CONFLICT ({conflict_sql}) DO NOTHING"
    if returning:
        base_sql += " RETURNING *"

    start_time = time.time()
    try:
        execute_values(cursor, base_sql, rows_list, page_size=page_size)
    except Exception as e:
        raise BatchInsertError(str(e)) from e
    finally:
        end_time = time.time()
        if metrics_callback is not None:
            metrics_callback(
                BatchMetrics(
                    batch_size=len(rows_list),
                    elapsed_seconds=end_time - start_time,
                    start_time=start_time,
                    end_time=end_time,
                )
            )

    returned = None
    if returning:
        try:
            returned = cursor.fetchall()
        except Exception as e:
            raise BatchInsertError(f"failed fetching RETURNING rows: {e}") from e

    return InsertResult(inserted_rows=len(rows_list), returned_values=returned)


def _adapt(value: Any) -> Any:
    if isinstance(value, (dict, list)):
        return Json(value)
    return value


def records_to_rows(records: Sequence[Mapping[str, Any]]) -> tuple[list[str], list[tuple[Any, ...]]]:
    """Column union (first-seen order) and value tuples; absent keys become NULL."""
    columns: list[str] = []
    seen: set[str] = set()
    for rec in records:
        for key in rec:
            if key not in seen:
                seen.add(key)
                columns.append(key)
    rows = [tuple(_adapt(rec.get(c)) for c in columns) for rec in records]
    return columns, rows


class PostgresRowSink:
    """RowSink writing committed records through batch_insert.

    ``column_map`` renames record keys to table columns (e.g. header labels
    with spaces); keys mapped to None are dropped.
    """

    def __init__(
        self,
        cursor: Any,
        *,
        page_size: int = 1000,
        conflict_columns: Sequence[str] | None = None,
        column_map: Mapping[str, str | None] | None = None,
    ) -> None:
        self.cursor = cursor
        self.page_size = page_size
        self.conflict_columns = list(conflict_columns) if conflict_columns else None
        self.column_map = dict(column_map or {})
        self.metrics: list[BatchMetrics] = []

    def _rename(self, record: Mapping[str, Any]) -> dict[str, Any]:
        out: dict[str, Any] = {}
        for key, value in record.items():
            column = self.column_map.get(key, key)
            if column is None:
                continue
            out[column] = value
        return out

    def insert(self, table: str, records: Sequence[Mapping[str, Any]]) -> int:
        columns, rows = records_to_rows([self._rename(r) for r in records])
        result = batch_insert(
            self.cursor,
            table,
            columns,
            rows,
            page_size=self.page_size,
            conflict_columns=self.conflict_columns,
            metrics_callback=self.metrics.append,
        )
        logger.debug("inserted %d rows into %s (%d columns)", result.inserted_rows, table, len(columns))
        return result.inserted_rows
