from __future__ import annotations

import re
from datetime import date

from ledger_import.services.row_identity import (
    canonical_json,
    default_row_id,
    djb2_hash,
    is_existing,
    make_row_id,
)


def _reference_fold(units: list[int]) -> int:
    h = 5381
    for u in units:
        h = ((h * 33) % 2**32) ^ u
    return h - 2**32 if h >= 2**31 else h


def test_djb2_known_values():
    assert djb2_hash("") == 5381
    assert djb2_hash("a") == 177604


def test_djb2_wraps_to_signed_32_bit():
    text = "x" * 200
    h = djb2_hash(text)
    assert -(2**31) <= h < 2**31
    assert h == _reference_fold([ord("x")] * 200)


def test_djb2_folds_utf16_code_units():
    # astral characters contribute a surrogate pair
    assert djb2_hash("😀") == _reference_fold([0xD83D, 0xDE00])
    assert djb2_hash("ñ") == _reference_fold([0xF1])


def test_canonical_json_layout():
    content = {"Proveedor": "Ñandú", "Valor": 10, "Fecha": date(2024, 1, 2)}
    assert canonical_json(content) == '{"Proveedor":"Ñandú","Valor":10,"Fecha":"2024-01-02"}'


def test_default_row_id_format_and_determinism():
    content = {"Fecha": "2024-01-01", "Valor": 100}
    rid = default_row_id(content)
    assert re.fullmatch(r"imported-[0-9a-f]+", rid)
    assert rid == default_row_id(dict(content))
    assert rid != default_row_id({"Fecha": "2024-01-01", "Valor": 101})


def test_key_order_matters():
    assert default_row_id({"a": 1, "b": 2}) != default_row_id({"b": 2, "a": 1})


def test_make_row_id_with_key_function():
    assert make_row_id({"code": 41}, lambda d: f"acc-{d['code']}") == "acc-41"
    assert make_row_id({"code": 41}) == default_row_id({"code": 41})


def test_is_existing():
    assert is_existing("x", {"x"})
    assert not is_existing("x", set())
    assert not is_existing("x", None)
