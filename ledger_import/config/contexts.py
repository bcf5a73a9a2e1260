from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from ..models.column_config import ColumnType
from ..models.field_registry import SystemField
from ..models.import_context import DuplicatePolicy, ImportContext

"""Built-in import contexts and their field registries.

- generic: no registry, permissive (everything in the file is kept)
- purchase: permissive, system fields are only tags for charts/totals
- income_statement: strict accounting entries (date/description/category/amount)
- cash_count: strict daily cash reconciliation (sales, tips, payment channels)

Contexts loaded from config are built with context_from_dict() and override
built-ins of the same name.
"""

__all__ = [
    "BUILTIN_CONTEXTS",
    "GENERIC",
    "PURCHASE",
    "INCOME_STATEMENT",
    "CASH_COUNT",
    "context_from_dict",
    "resolve_context",
]


GENERIC = ImportContext(name="generic", registry=(), strict=False, table="imported_rows")

PURCHASE = ImportContext(
    name="purchase",
    table="purchases",
    registry=(
        SystemField("date", "Eje de Tiempo (Fecha)", ("fecha", "date", "día", "periodo", "vencimiento"), type=ColumnType.DATE),
        SystemField(
            "amount", "Eje de Valor (Monto)",
            ("monto", "valor", "total", "precio", "neto", "debito", "crédito", "val."),
            default=0,
            type=ColumnType.CURRENCY,
        ),
        SystemField(
            "provider", "Identificador (Proveedor/Cliente)",
            ("proveedor", "cliente", "tercero", "nombre", "contacto"),
            default="Sin identificar",
        ),
        SystemField(
            "description", "Detalle (Descripción)",
            ("descripción", "detalle", "concepto", "item", "glosa"),
            default="Fila importada",
        ),
    ),
)

INCOME_STATEMENT = ImportContext(
    name="income_statement",
    table="income_statement_entries",
    strict=True,
    ledger_entries=True,
    registry=(
        SystemField("date", "Fecha", ("FECHA", "DATE", "DIA"), required=True, type=ColumnType.DATE),
        SystemField("code", "Código", ("CODIGO", "CUENTA", "CODE", "ACCOUNT")),
        SystemField("description", "Descripción", ("DESCRIPCION", "DETALLE", "CONCEPTO", "MEMO"), required=True),
        SystemField("category", "Categoría", ("CATEGORIA", "RUBRO", "CLASIFICACION")),
        SystemField("amount", "Monto", ("MONTO", "VALOR", "IMPORTE", "TOTAL"), required=True, type=ColumnType.CURRENCY),
        SystemField("type", "Tipo", ("TIPO", "CLASE", "NATURE")),
    ),
)

CASH_COUNT = ImportContext(
    name="cash_count",
    table="cash_counts",
    strict=True,
    duplicate_policy=DuplicatePolicy.SKIP,
    registry=(
        SystemField("fecha", "Fecha", ("FECHA", "DATE", "DIA"), required=True, type=ColumnType.DATE),
        SystemField("cajero", "Cajero", ("CAJERO", "RESPONSABLE", "ENCARGADO"), required=True),
        SystemField(
            "ventaBruta", "Venta POS (Total)",
            ("VENTA", "VENTA TOTAL", "TOTAL VENTA", "VENTA POS", "POS", "TOTAL"),
            required=True,
            exclude=("BRUTA", "BASE", "NETA"),
            type=ColumnType.CURRENCY,
        ),
        SystemField("propina", "Propina", ("PROPINA", "TIPS")),
        SystemField("ingresoCovers", "Covers", ("INGRESO X COVERS", "COVERS", "ENTRADAS")),
        SystemField("efectivo", "Efectivo", ("EFECTIVO", "CASH")),
        SystemField("datafono1", "Datafono 1", ("DATAFONO 1", "DATAFONO1")),
        SystemField("datafono2", "Datafono 2", ("DATAFONO 2", "DATAFONO2")),
        SystemField("transferencia", "Transferencia", ("TRANSF", "TRANSFERENCIA", "BANCO")),
        SystemField("nequi", "Nequi", ("NEQUI",)),
        SystemField("rappi", "Rappi", ("RAPPI", "DOMICILIOS")),
        SystemField("visitas", "Visitas", ("VISITAS", "PAX", "CLIENTES", "PERSONAS")),
    ),
)

BUILTIN_CONTEXTS: dict[str, ImportContext] = {
    ctx.name: ctx for ctx in (GENERIC, PURCHASE, INCOME_STATEMENT, CASH_COUNT)
}


def context_from_dict(name: str, data: Mapping[str, Any]) -> ImportContext:
    """Build an ImportContext from a (schema validated) config mapping."""
    fields = [
        SystemField(
            key=f["key"],
            label=f.get("label", f["key"]),
            aliases=tuple(f.get("aliases", [])),
            required=bool(f.get("required", False)),
            exclude=tuple(f.get("exclude", [])),
            default=f.get("default"),
            type=f.get("type"),
        )
        for f in data.get("fields", [])
    ]
    return ImportContext(
        name=name,
        registry=tuple(fields),
        strict=bool(data.get("strict", False)),
        duplicate_policy=DuplicatePolicy(data.get("duplicate_policy", "update")),
        table=data.get("table"),
        id_column=data.get("id_column", "id"),
        ledger_entries=bool(data.get("ledger_entries", False)),
    )


def resolve_context(name: str, configured: Mapping[str, ImportContext] | None = None) -> ImportContext:
    if configured and name in configured:
        return configured[name]
    try:
        return BUILTIN_CONTEXTS[name]
    except KeyError:
        known = sorted(set(BUILTIN_CONTEXTS) | set(configured or {}))
        raise KeyError(f"unknown import context {name!r} (known: {', '.join(known)})") from None
