# Shared pytest fixtures
from __future__ import annotations

import tempfile
from pathlib import Path

import pandas as pd
import pytest

from ledger_import.logging.init import reset_logging


@pytest.fixture()
def temp_workdir(monkeypatch) -> Path:
    with tempfile.TemporaryDirectory() as d:
        p = Path(d)
        (p / "config").mkdir()
        (p / "data").mkdir()
        (p / "logs").mkdir()
        monkeypatch.chdir(p)
        yield p


@pytest.fixture(autouse=True)
def clean_logging():
    # StreamHandler は生成時の sys.stdout を保持するため毎テスト再生成
    reset_logging()
    yield
    reset_logging()


@pytest.fixture()
def sample_config_yaml() -> str:
    return """locale: es
search_depth: 10
mapping_store: .ledger_import/mappings.json
table_prefix: staging_
contexts:
  bank_statement:
    table: bank_movements
    strict: true
    duplicate_policy: skip
    fields:
      - key: date
        label: Fecha
        aliases: [FECHA, DATE]
        required: true
        type: date
      - key: amount
        label: Valor
        aliases: [VALOR, MONTO]
        required: true
        type: currency
      - key: memo
        label: Detalle
        aliases: [DETALLE, CONCEPTO]
database:
  host: localhost
  port: 5432
  user: appuser
  password: secret
  database: appdb
"""


@pytest.fixture()
def write_config(temp_workdir: Path, sample_config_yaml: str) -> Path:
    cfg = temp_workdir / "config" / "import.yml"
    cfg.write_text(sample_config_yaml, encoding="utf-8")
    return cfg


@pytest.fixture()
def make_excel():
    """Factory writing rows as a header-less worksheet (pandas + openpyxl)."""
    def _make(directory: Path, name: str, rows: list[list[object]], sheet: str = "Hoja1") -> Path:
        p = directory / name
        with pd.ExcelWriter(p, engine="openpyxl") as writer:
            pd.DataFrame(rows).to_excel(writer, sheet_name=sheet, header=False, index=False)
        return p
    return _make


@pytest.fixture()
def purchases_rows() -> list[list[object]]:
    """Purchase export with a title block above the header (header on sheet row 3)."""
    return [
        ["Reporte de compras", None, None, None],
        ["Generado 2024-03-31", None, None, None],
        ["Fecha", "Proveedor", "Descripción", "Valor"],
        ["2024-03-01", "Alimentos SAS", "Harina", "$ 1.234.567"],
        ["2024-03-02", "Bebidas Ltda", "Gaseosas", "$ 250.000"],
        [None, None, None, None],
        ["2024-03-05", "Alimentos SAS", "Azúcar", "$ 98.000"],
    ]


@pytest.fixture()
def matrix_rows() -> list[list[object]]:
    """Income statement in wide layout: 3 accounts x 4 months."""
    return [
        ["Cuenta", "Nombre", "Enero", "Febrero", "Marzo", "Abril"],
        ["4135", "Ventas", 1000, 2000, 3000, 4000],
        ["5105", "Nómina", -500, -600, -700, -800],
        ["6135", "Costo de ventas", 300, 300, 300, 300],
    ]
