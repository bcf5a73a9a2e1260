from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from pathlib import Path
from typing import Any, Protocol

"""Prior-mapping store.

The last confirmed mapping of every import context is remembered so that the
next file of the same kind starts from it (auto_map pass 1), together with
the column types the user chose by hand (applied over the inferred ones).
The store is a small injected collaborator; the CLI uses a client-local JSON
file:

    {"purchase": {"mapping": {"date": "Fecha", "amount": "Valor"},
                  "column_types": {"Factura": "text"}}, ...}

Files written before column types were remembered hold the mapping directly
under the context name; they are still read.
"""

__all__ = [
    "MappingStore",
    "InMemoryMappingStore",
    "JsonFileMappingStore",
]

logger = logging.getLogger(__name__)

_MAPPING_KEY = "mapping"
_TYPES_KEY = "column_types"


class MappingStore(Protocol):
    def get(self, context: str) -> dict[str, str] | None: ...

    def put(self, context: str, mapping: Mapping[str, str]) -> None: ...

    def get_types(self, context: str) -> dict[str, str]: ...

    def put_types(self, context: str, column_types: Mapping[str, str]) -> None: ...


class InMemoryMappingStore:
    def __init__(self, initial: Mapping[str, Mapping[str, str]] | None = None) -> None:
        self._data: dict[str, dict[str, str]] = {k: dict(v) for k, v in (initial or {}).items()}
        self._types: dict[str, dict[str, str]] = {}

    def get(self, context: str) -> dict[str, str] | None:
        mapping = self._data.get(context)
        return dict(mapping) if mapping is not None else None

    def put(self, context: str, mapping: Mapping[str, str]) -> None:
        self._data[context] = dict(mapping)

    def get_types(self, context: str) -> dict[str, str]:
        return dict(self._types.get(context, {}))

    def put_types(self, context: str, column_types: Mapping[str, str]) -> None:
        self._types[context] = {h: str(t) for h, t in column_types.items()}


def _str_dict(value: Any) -> dict[str, str]:
    if not isinstance(value, dict):
        return {}
    return {str(k): str(v) for k, v in value.items()}


class JsonFileMappingStore:
    """Mapping store persisted as one JSON object keyed by context name.

    An unreadable or corrupt file is treated as empty (logged at WARNING);
    saved mappings are a convenience, never a reason to fail an import.
    """

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)

    def _load(self) -> dict[str, dict[str, dict[str, str]]]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            logger.warning("mapping store unreadable, ignoring: %s (%s)", self.path, e)
            return {}
        if not isinstance(data, dict):
            logger.warning("mapping store has unexpected shape, ignoring: %s", self.path)
            return {}
        out: dict[str, dict[str, dict[str, str]]] = {}
        for ctx, entry in data.items():
            if not isinstance(entry, dict):
                continue
            if isinstance(entry.get(_MAPPING_KEY), dict) or _TYPES_KEY in entry:
                out[str(ctx)] = {
                    _MAPPING_KEY: _str_dict(entry.get(_MAPPING_KEY)),
                    _TYPES_KEY: _str_dict(entry.get(_TYPES_KEY)),
                }
            else:
                # 旧形式: マッピングのみ
                out[str(ctx)] = {_MAPPING_KEY: _str_dict(entry), _TYPES_KEY: {}}
        return out

    def _save(self, data: Mapping[str, Any]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(data, ensure_ascii=False, indent=2), encoding="utf-8")

    def get(self, context: str) -> dict[str, str] | None:
        entry = self._load().get(context)
        if entry is None or not entry[_MAPPING_KEY]:
            return None
        return entry[_MAPPING_KEY]

    def put(self, context: str, mapping: Mapping[str, str]) -> None:
        data = self._load()
        entry = data.setdefault(context, {_MAPPING_KEY: {}, _TYPES_KEY: {}})
        entry[_MAPPING_KEY] = dict(mapping)
        self._save(data)
        logger.debug("saved mapping for context=%s to %s", context, self.path)

    def get_types(self, context: str) -> dict[str, str]:
        entry = self._load().get(context)
        return entry[_TYPES_KEY] if entry else {}

    def put_types(self, context: str, column_types: Mapping[str, str]) -> None:
        data = self._load()
        entry = data.setdefault(context, {_MAPPING_KEY: {}, _TYPES_KEY: {}})
        entry[_TYPES_KEY] = {h: str(t) for h, t in column_types.items()}
        self._save(data)
        logger.debug("saved %d column types for context=%s", len(column_types), context)
