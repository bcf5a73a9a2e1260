from __future__ import annotations

import unicodedata
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from typing import Any

from .column_config import ColumnType

"""System field definitions and registries.

A registry is a plain ordered tuple of SystemField rows supplied per import
context ("purchase", "income_statement", ...). Pipeline functions accept a
registry as data; there is no importer class hierarchy.
"""

__all__ = [
    "SystemField",
    "FieldRegistry",
    "RegistryError",
    "normalize_label",
    "validate_registry",
    "required_fields",
    "all_aliases",
]


class RegistryError(Exception):
    """Raised when a registry definition is inconsistent (e.g. duplicate keys)."""


def normalize_label(value: Any) -> str:
    """Normalize a header or alias for matching.

    Trim, collapse inner whitespace, upper-case and fold accents so that
    "Descripción " and "DESCRIPCION" compare equal.
    """
    if value is None:
        return ""
    text = " ".join(str(value).split()).upper()
    decomposed = unicodedata.normalize("NFKD", text)
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


@dataclass(frozen=True)
class SystemField:
    """One semantic target field that raw columns may be mapped onto.

    ``aliases`` and ``exclude`` are normalized on construction. ``exclude``
    lists terms that veto a substring match (a "TOTAL" field must not grab a
    "VENTA BRUTA TOTAL" header when "BRUTA" is excluded). ``default`` fills the
    system key in permissive contexts when nothing was mapped.
    """
    key: str
    label: str
    aliases: tuple[str, ...] = ()
    required: bool = False
    exclude: tuple[str, ...] = field(default_factory=tuple)
    default: Any = None
    type: ColumnType | None = None  # expected column type (DATE fields are date-checked in strict contexts)

    def __post_init__(self) -> None:
        # frozen dataclass: object.__setattr__ で正規化済みタプルに置き換える
        object.__setattr__(self, "aliases", tuple(a for a in (normalize_label(x) for x in self.aliases) if a))
        object.__setattr__(self, "exclude", tuple(e for e in (normalize_label(x) for x in self.exclude) if e))
        if self.type is not None:
            object.__setattr__(self, "type", ColumnType(self.type))

    @property
    def is_date_field(self) -> bool:
        if self.type is not None:
            return self.type is ColumnType.DATE
        return self.key == "date"


FieldRegistry = tuple[SystemField, ...]


def validate_registry(fields: Iterable[SystemField]) -> FieldRegistry:
    """Return the fields as a registry tuple, rejecting duplicate keys."""
    registry = tuple(fields)
    seen: set[str] = set()
    for f in registry:
        if f.key in seen:
            raise RegistryError(f"duplicate system field key: {f.key!r}")
        seen.add(f.key)
    return registry


def required_fields(registry: Sequence[SystemField]) -> list[SystemField]:
    return [f for f in registry if f.required]


def all_aliases(registry: Sequence[SystemField]) -> list[str]:
    return [alias for f in registry for alias in f.aliases]
