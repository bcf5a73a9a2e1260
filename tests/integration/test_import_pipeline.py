from __future__ import annotations

import dataclasses
from contextlib import contextmanager
from pathlib import Path

import pytest

import ledger_import.cli.__main__ as cli_mod
from ledger_import.cli import main as cli_main
from ledger_import.config.contexts import INCOME_STATEMENT, PURCHASE
from ledger_import.config.loader import load_config
from ledger_import.logging.error_log import ErrorLogBuffer
from ledger_import.models.import_context import DuplicatePolicy
from ledger_import.services.mapping_store import JsonFileMappingStore
from ledger_import.services.session import NO_SELECTION_MESSAGE, ImportSession

"""End-to-end runs: real spreadsheet files on disk through the session and CLI.

Database access is replaced with in-memory sinks; everything else (pandas
reading, header detection, inference, mapping, normalization, dedup, commit)
runs for real.
"""


class RecordingSink:
    def __init__(self) -> None:
        self.calls: list[tuple[str, list[dict]]] = []

    def insert(self, table, records):
        self.calls.append((table, list(records)))
        return len(records)


@pytest.fixture()
def captured_inserts(monkeypatch):
    import ledger_import.db.batch_insert as bi

    inserted: list[tuple[str, list]] = []

    class Conn:
        commits = 0

        def cursor(self):
            return self

        def __enter__(self):
            return self

        def __exit__(self, *exc):
            return False

        def commit(self):
            Conn.commits += 1

        def rollback(self):
            pass

    @contextmanager
    def fake_connection(cfg):
        yield Conn()

    monkeypatch.setattr(cli_mod, "_db_connection", fake_connection)
    monkeypatch.setattr(
        bi, "execute_values",
        lambda cursor, sql, rows, page_size=1000, template=None: inserted.append((sql, list(rows))),
    )
    monkeypatch.delenv("DISABLE_DB_CONNECT", raising=False)
    return inserted


def test_purchase_workbook_to_records(temp_workdir: Path, make_excel, purchases_rows):
    path = make_excel(temp_workdir / "data", "compras_marzo.xlsx", purchases_rows)
    session = ImportSession(PURCHASE, mapping_store=JsonFileMappingStore(".ledger_import/mappings.json"))
    assert session.load_file(path)
    rows = session.normalize()
    assert [r.sheet_row_number for r in rows] == [4, 5, 7]

    sink = RecordingSink()
    summary = session.commit(sink)
    table, records = sink.calls[0]
    assert table == "purchases"
    assert [r["amount"] for r in records] == [1234567, 250000, 98000]
    assert [r["date"] for r in records] == ["2024-03-01", "2024-03-02", "2024-03-05"]
    assert records[0]["provider"] == "Alimentos SAS"
    assert [r["id"] for r in records] == [r.row_id for r in rows]
    assert summary.committed_rows == 3
    assert summary.file_name == "compras_marzo.xlsx"


def test_csv_source_with_kept_na_strings(temp_workdir: Path):
    path = temp_workdir / "data" / "proveedores.csv"
    path.write_text(
        "Fecha,Proveedor,Valor\n05/03/2024,NA,1.500\n06/03/2024,Harinas,2.000\n",
        encoding="utf-8",
    )
    session = ImportSession(PURCHASE)
    assert session.load_file(path, keep_na_strings=["NA"])
    rows = session.normalize()
    assert rows[0].structured_data["provider"] == "NA"
    assert rows[0].structured_data["date"] == "2024-03-05"
    assert [r.structured_data["amount"] for r in rows] == [1500, 2000]


def test_reimport_flags_everything_as_duplicate(temp_workdir: Path, make_excel, purchases_rows):
    path = make_excel(temp_workdir / "data", "compras.xlsx", purchases_rows)
    first = ImportSession(PURCHASE)
    first.load_file(path)
    first.normalize()
    first.commit(RecordingSink())
    known = {r.row_id for r in first.selected_rows()}

    second = ImportSession(
        dataclasses.replace(PURCHASE, duplicate_policy=DuplicatePolicy.SKIP),
        existing_ids=known,
    )
    second.load_file(path)
    rows = second.normalize()
    assert all(r.is_duplicate for r in rows)
    assert second.selected_rows() == []
    sink = RecordingSink()
    assert second.commit(sink).error == NO_SELECTION_MESSAGE
    assert sink.calls == []


def test_matrix_workbook_unpivoted(temp_workdir: Path, make_excel, matrix_rows):
    path = make_excel(temp_workdir / "data", "PyG_2023.xlsx", matrix_rows)
    session = ImportSession(INCOME_STATEMENT)
    session.load_file(path)
    assert session.matrix
    session.configure_matrix(period_headers=["Enero", "Febrero"])
    rows = session.normalize()
    assert len(rows) == 6
    first = rows[0].structured_data
    assert first == {
        "date": "2023-01-01",
        "code": "4135",
        "description": "Ventas",
        "category": "Ventas",
        "amount": 1000,
        "type": "income",
    }
    payroll = [r.structured_data for r in rows if r.structured_data["code"] == "5105"]
    assert [p["amount"] for p in payroll] == [500, 600]
    assert {p["type"] for p in payroll} == {"expense"}


def test_cli_matrix_import_live(temp_workdir: Path, make_excel, matrix_rows, captured_inserts, capsys):
    path = make_excel(temp_workdir / "data", "PyG_2023.xlsx", matrix_rows)
    code = cli_main([str(path), "--context", "income_statement", "--year", "2022"])
    out = capsys.readouterr().out
    assert code == 0
    sql, rows = captured_inserts[0]
    assert sql.startswith('INSERT INTO "income_statement_entries" ("id","date","code","description","category","amount","type")')
    assert 'ON CONFLICT ("id") DO UPDATE SET "date"=EXCLUDED."date"' in sql
    assert len(rows) == 12
    assert rows[0][1] == "2022-01-01"
    assert "layout=matrix" in out


def test_cli_configured_context_with_prefix(temp_workdir: Path, write_config: Path, captured_inserts, capsys):
    path = temp_workdir / "data" / "extracto.csv"
    path.write_text(
        "Extracto bancario,,\nFecha,Detalle,Valor\n01/02/2024,Consignación,50.000\n,Sin fecha,10.000\n",
        encoding="utf-8",
    )
    code = cli_main([str(path), "--context", "bank_statement"])
    out = capsys.readouterr().out
    assert code == 0
    sql, rows = captured_inserts[0]
    assert sql.startswith('INSERT INTO "staging_bank_movements"')
    # strict context: the row without a date stays out of the commit
    assert len(rows) == 1
    assert "rows=2 valid=1 invalid=1" in out
    assert "Missing value for 'Fecha'" in out
    errors = list((temp_workdir / "logs").glob("import-errors-*.log"))
    assert len(errors) == 1
    assert "ROW_VALIDATION_ERROR" in errors[0].read_text(encoding="utf-8")


def test_mapping_remembered_between_runs(temp_workdir: Path, write_config: Path, make_excel):
    cfg = load_config(write_config)
    store = JsonFileMappingStore(cfg.mapping_store)
    rows = [["Fecha", "Importe", "Nota"], ["2024-01-02", "$ 10", "x"]]
    path = make_excel(temp_workdir / "data", "pagos.xlsx", rows)

    first = ImportSession(PURCHASE, mapping_store=store, error_log=ErrorLogBuffer())
    first.load_file(path)
    assert "amount" not in first.mapping
    first.set_mapping("amount", "Importe")
    first.normalize()

    second = ImportSession(PURCHASE, mapping_store=JsonFileMappingStore(cfg.mapping_store))
    second.load_file(path)
    assert second.mapping["amount"] == "Importe"
