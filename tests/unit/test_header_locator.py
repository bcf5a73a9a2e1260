from __future__ import annotations

from ledger_import.config.contexts import INCOME_STATEMENT
from ledger_import.config.locales import ENGLISH
from ledger_import.services.header_locator import extract_headers, locate_header_row, score_row


def test_density_mode_picks_fullest_row():
    rows = [
        ["Reporte de compras", None, None],
        [None, "", None],
        ["Fecha", "Proveedor", "Valor"],
        ["2024-01-01", "ACME", 100],
    ]
    # rows 2 and 3 tie: first maximum wins
    assert locate_header_row(rows) == 2


def test_search_depth_limits_candidates():
    rows = [["a"]] + [[None]] * 3 + [["x", "y", "z"]]
    assert locate_header_row(rows, search_depth=3) == 0
    assert locate_header_row(rows, search_depth=10) == 4


def test_all_blank_rows_fall_back_to_first():
    assert locate_header_row([[None, ""], [], ["  "]]) == 0
    assert locate_header_row([]) == 0


def test_alias_mode_ignores_dense_title_rows():
    rows = [
        ["Empresa XYZ", "NIT 900", "Periodo 2024", "Moneda COP"],
        ["Fecha", "Descripción", "Categoría", "Monto"],
        ["2024-01-01", "Venta", "Ingresos", 1000],
    ]
    assert locate_header_row(rows, registry=INCOME_STATEMENT.registry) == 1


def test_score_row_alias_contains_and_accent_fold():
    assert score_row(["Fecha de pago", "DESCRIPCION larga", "otro"], ["FECHA", "DESCRIPCION"]) == 2
    assert score_row(["Descripción"], ["DESCRIPCION"]) == 1


def test_extract_headers_blank_and_duplicate_labels():
    headers = extract_headers(["Valor", None, "Valor", "  Fecha  "], width=5)
    assert headers == ["Valor", "Columna 2", "Valor_2", "Fecha", "Columna 5"]


def test_extract_headers_locale_word_and_numeric_labels():
    assert extract_headers([2024.0, ""], ENGLISH) == ["2024", "Column 2"]
