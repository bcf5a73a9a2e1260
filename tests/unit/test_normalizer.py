from __future__ import annotations

from ledger_import.config.contexts import INCOME_STATEMENT, PURCHASE
from ledger_import.models.column_config import ColumnConfig, ColumnType
from ledger_import.services.normalizer import has_content, normalize
from ledger_import.services.row_identity import default_row_id

HEADERS = ["Fecha", "Proveedor", "Valor"]
CONFIGS = [
    ColumnConfig("Fecha", ColumnType.DATE),
    ColumnConfig("Proveedor", ColumnType.TEXT),
    ColumnConfig("Valor", ColumnType.CURRENCY),
]
MAPPING = {"date": "Fecha", "provider": "Proveedor", "amount": "Valor"}


def _grid():
    return (
        ("Fecha", "Proveedor", "Valor"),
        ("2024-01-01", "ACME", "$ 1.000"),
        (None, None, None),
        ("02/01/2024", "Beta", "$ 2.500"),
        ("2024-01-03", "Gamma", "$ 300"),
        ("2024-01-04", "Delta", "$ 400"),
        ("2024-01-05", "Epsilon", "$ 500"),
    )


def test_normalize_is_idempotent():
    grid = _grid()
    first = normalize(grid, 0, MAPPING, CONFIGS, registry=PURCHASE.registry)
    second = normalize(grid, 0, MAPPING, CONFIGS, registry=PURCHASE.registry)
    assert first == second
    assert [r.row_id for r in first] == [r.row_id for r in second]


def test_blank_rows_dropped_and_values_coerced():
    rows = normalize(_grid(), 0, MAPPING, CONFIGS, registry=PURCHASE.registry)
    assert len(rows) == 5
    assert [r.raw_row_index for r in rows] == [1, 3, 4, 5, 6]
    first = rows[0].structured_data
    assert first["Fecha"] == "2024-01-01"
    assert first["Valor"] == 1000
    assert first["date"] == "2024-01-01"
    assert first["amount"] == 1000
    assert rows[1].structured_data["date"] == "2024-01-02"


def test_permissive_single_cell_row_is_valid():
    grid = (("A", "B", "C"), (None, "x", None), (None, None, None))
    configs = [ColumnConfig(h) for h in ("A", "B", "C")]
    rows = normalize(grid, 0, {}, configs)
    assert len(rows) == 1
    assert rows[0].is_valid
    assert rows[0].structured_data == {"A": "", "B": "x", "C": ""}


def test_permissive_row_of_zeros_is_invalid():
    grid = (("A", "B"), ("0", "$ 0"))
    configs = [ColumnConfig("A", ColumnType.NUMBER), ColumnConfig("B", ColumnType.CURRENCY)]
    rows = normalize(grid, 0, {}, configs)
    assert len(rows) == 1
    assert not rows[0].is_valid
    assert rows[0].validation_errors == ()


def test_permissive_defaults_fill_unmapped_system_keys():
    grid = (("Fecha", "Valor"), ("2024-01-01", "$ 10"))
    configs = [ColumnConfig("Fecha", ColumnType.DATE), ColumnConfig("Valor", ColumnType.CURRENCY)]
    rows = normalize(grid, 0, {"date": "Fecha", "amount": "Valor"}, configs, registry=PURCHASE.registry)
    data = rows[0].structured_data
    assert data["provider"] == "Sin identificar"
    assert data["description"] == "Fila importada"
    assert data["amount"] == 10


def test_default_id_hashes_header_content_only():
    grid = (("Fecha", "Valor"), ("2024-01-01", "$ 10"))
    configs = [ColumnConfig("Fecha", ColumnType.DATE), ColumnConfig("Valor", ColumnType.CURRENCY)]
    rows = normalize(grid, 0, {"date": "Fecha"}, configs, registry=PURCHASE.registry)
    assert rows[0].row_id == default_row_id({"Fecha": "2024-01-01", "Valor": 10})


def test_key_function_receives_structured_data():
    seen = []

    def key_fn(data):
        seen.append(dict(data))
        return f"{data['date']}|{data['amount']}"

    rows = normalize(_grid(), 0, MAPPING, CONFIGS, registry=PURCHASE.registry, key_fn=key_fn)
    assert rows[0].row_id == "2024-01-01|1000"
    assert seen[0]["provider"] == "ACME"


def test_duplicate_flagging_marks_only_matching_row():
    grid = _grid()
    baseline = normalize(grid, 0, MAPPING, CONFIGS)
    row5 = next(r for r in baseline if r.raw_row_index == 5)
    rows = normalize(grid, 0, MAPPING, CONFIGS, existing_ids={row5.row_id})
    flagged = [r.raw_row_index for r in rows if r.is_duplicate]
    assert flagged == [5]
    dup = next(r for r in rows if r.is_duplicate)
    assert dup.is_valid
    assert any("Duplicate" in w for w in dup.warnings)


def test_repeated_rows_in_same_file_get_warning():
    grid = (("A",), ("x",), ("x",))
    rows = normalize(grid, 0, {}, [ColumnConfig("A")])
    assert rows[0].row_id == rows[1].row_id
    assert rows[0].warnings == ()
    assert rows[1].warnings == ("Repeated: same id as sheet row 2",)
    assert not rows[1].is_duplicate


def _income_configs():
    return [
        ColumnConfig("Fecha", ColumnType.DATE),
        ColumnConfig("Descripción", ColumnType.TEXT),
        ColumnConfig("Categoría", ColumnType.TEXT),
        ColumnConfig("Monto", ColumnType.CURRENCY),
    ]


def test_strict_mode_reports_missing_values_in_registry_order():
    grid = (
        ("Fecha", "Descripción", "Categoría", "Monto"),
        ("2024-01-01", "Venta", "Ingresos", "1000"),
        ("", "", "", "50"),
    )
    mapping = {"date": "Fecha", "description": "Descripción", "category": "Categoría", "amount": "Monto"}
    rows = normalize(grid, 0, mapping, _income_configs(), registry=INCOME_STATEMENT.registry, strict=True)
    assert rows[0].is_valid
    assert rows[0].validation_errors == ()
    assert not rows[1].is_valid
    assert rows[1].validation_errors == ("Missing value for 'Fecha'", "Missing value for 'Descripción'")


def test_strict_mode_unmapped_required_field():
    grid = (("Fecha", "Descripción", "Categoría", "Monto"), ("2024-01-01", "Venta", "Ingresos", "1000"))
    mapping = {"date": "Fecha", "category": "Categoría", "amount": "Monto"}
    rows = normalize(grid, 0, mapping, _income_configs(), registry=INCOME_STATEMENT.registry, strict=True)
    assert rows[0].validation_errors == ("Column for 'Descripción' is not mapped",)


def test_strict_mode_invalid_calendar_date():
    grid = (("Fecha", "Descripción", "Categoría", "Monto"), ("31/02/2024", "Venta", "Ingresos", "1000"))
    mapping = {"date": "Fecha", "description": "Descripción", "category": "Categoría", "amount": "Monto"}
    rows = normalize(grid, 0, mapping, _income_configs(), registry=INCOME_STATEMENT.registry, strict=True)
    assert not rows[0].is_valid
    assert rows[0].validation_errors[0].startswith("Invalid date for 'Fecha'")


def test_strict_mode_does_not_apply_defaults():
    grid = (("Fecha",), ("2024-01-01",))
    rows = normalize(grid, 0, {"date": "Fecha"}, [ColumnConfig("Fecha", ColumnType.DATE)], registry=PURCHASE.registry, strict=True)
    assert "provider" not in rows[0].structured_data


def test_rows_above_header_are_ignored():
    grid = (("Titulo",), ("A",), ("1",))
    rows = normalize(grid, 1, {}, [ColumnConfig("A", ColumnType.NUMBER)])
    assert [r.structured_data for r in rows] == [{"A": 1}]


def test_has_content():
    assert not has_content("")
    assert not has_content("  ")
    assert not has_content(0)
    assert not has_content(None)
    assert not has_content(False)
    assert has_content("x")
    assert has_content(-1)
    assert has_content(True)


def _ledger_configs(*extra: ColumnConfig):
    return [
        ColumnConfig("Fecha", ColumnType.DATE),
        ColumnConfig("Cuenta", ColumnType.TEXT),
        ColumnConfig("Descripción", ColumnType.TEXT),
        ColumnConfig("Categoría", ColumnType.TEXT),
        ColumnConfig("Monto", ColumnType.CURRENCY),
        *extra,
    ]


LEDGER_MAPPING = {
    "date": "Fecha",
    "code": "Cuenta",
    "description": "Descripción",
    "category": "Categoría",
    "amount": "Monto",
}


def test_ledger_entries_get_type_and_absolute_amount():
    grid = (
        ("Fecha", "Cuenta", "Descripción", "Categoría", "Monto"),
        ("2024-01-01", "4135", "Ventas", "Ingresos", "-1000"),
        ("2024-01-02", "5105", "Nómina", "", "2500"),
        ("2024-01-03", "", "Otros", "Varios", "-40"),
    )
    rows = normalize(
        grid, 0, LEDGER_MAPPING, _ledger_configs(),
        registry=INCOME_STATEMENT.registry, strict=True, ledger_entries=True,
    )
    sales, payroll, other = (r.structured_data for r in rows)
    assert (sales["type"], sales["amount"], sales["code"]) == ("income", 1000, "4135")
    assert (payroll["type"], payroll["category"]) == ("expense", "Sin Categoría")
    assert (other["type"], other["amount"]) == ("expense", 40)
    assert all(r.is_valid for r in rows)


def test_ledger_entries_type_column_used_without_account_rule():
    grid = (
        ("Fecha", "Cuenta", "Descripción", "Categoría", "Monto", "Tipo"),
        ("2024-01-01", "1105", "Aporte", "Caja", "-300", "Ingreso"),
        ("2024-01-02", "", "Ventas de contado", "Caja", "300", "Egreso"),
        ("2024-01-03", "", "Ventas de crédito", "Caja", "-300", ""),
    )
    mapping = {**LEDGER_MAPPING, "type": "Tipo"}
    configs = _ledger_configs(ColumnConfig("Tipo", ColumnType.TEXT))
    rows = normalize(grid, 0, mapping, configs, registry=INCOME_STATEMENT.registry, strict=True, ledger_entries=True)
    assert [r.structured_data["type"] for r in rows] == ["income", "expense", "income"]
    assert [r.structured_data["amount"] for r in rows] == [300, 300, 300]


def test_rows_untouched_without_ledger_entries():
    grid = (
        ("Fecha", "Cuenta", "Descripción", "Categoría", "Monto"),
        ("2024-01-01", "4135", "Ventas", "", "-1000"),
    )
    rows = normalize(grid, 0, LEDGER_MAPPING, _ledger_configs(), registry=INCOME_STATEMENT.registry, strict=True)
    data = rows[0].structured_data
    assert data["amount"] == -1000
    assert data["category"] == ""
    assert "type" not in data
