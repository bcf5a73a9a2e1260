from __future__ import annotations

import pytest

from ledger_import.config.locales import DEFAULT_LOCALE, ENGLISH, SPANISH, get_locale


def test_month_index_full_and_abbreviated():
    assert SPANISH.month_index("Marzo") == 2
    assert SPANISH.month_index("mar") == 2
    assert SPANISH.month_index("dic.") == 11
    assert ENGLISH.month_index("Sept.") == 8


def test_month_index_rejects_short_or_unknown_words():
    assert SPANISH.month_index("ma") is None
    assert SPANISH.month_index("") is None
    assert SPANISH.month_index("total") is None


def test_get_locale_defaults_and_case():
    assert get_locale(None) is DEFAULT_LOCALE
    assert DEFAULT_LOCALE is SPANISH
    assert get_locale("EN") is ENGLISH


def test_get_locale_unknown():
    with pytest.raises(ValueError):
        get_locale("fr")
