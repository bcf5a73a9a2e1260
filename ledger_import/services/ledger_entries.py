from __future__ import annotations

from collections.abc import Collection, Mapping
from typing import Any

from ..config.locales import DEFAULT_LOCALE, Locale

"""Income/expense classification of ledger entries.

Both layouts of an income statement end up as entries with a ``type`` of
``income`` or ``expense`` and a non-negative ``amount``. The wide layout only
has the account code to go on; a flat sheet may also carry a description and
a "Tipo" column, tried in this order:

1. first digit of the account code (PUC: 4 income, 5/6/7 expense)
2. an income keyword in the description ("Ingresos", "Ventas", "Utilidad")
3. the "Tipo" column, when mapped ("ingreso" / "egreso", "gasto")
4. without a "Tipo" column, a negative amount is an expense

Anything left undecided is an expense.
"""

__all__ = [
    "INCOME",
    "EXPENSE",
    "PUC_KIND_RULES",
    "account_code_text",
    "account_kind_from_code",
    "classify_account_kind",
    "kind_from_type_text",
    "apply_entry_rules",
]

INCOME = "income"
EXPENSE = "expense"

# PUC: 4 ingresos / 5 gastos / 6-7 costos
PUC_KIND_RULES: Mapping[str, str] = {
    "4": INCOME,
    "5": EXPENSE,
    "6": EXPENSE,
    "7": EXPENSE,
}


def account_code_text(value: Any) -> str:
    """Account code as text (4135 / 4135.0 / " 4135 " -> "4135"; blank -> "")."""
    if value is None or isinstance(value, bool):
        return ""
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    return str(value).strip()


def account_kind_from_code(code: Any, rules: Mapping[str, str] | None = None) -> str | None:
    """Entry kind for the first character of ``code``; None when no rule matches."""
    text = account_code_text(code)
    if not text:
        return None
    return (rules if rules is not None else PUC_KIND_RULES).get(text[0])


def classify_account_kind(code: Any, rules: Mapping[str, str] | None = None, default: str = EXPENSE) -> str:
    """Entry kind from the first character of an account code."""
    return account_kind_from_code(code, rules) or default


def kind_from_type_text(value: Any, locale: Locale = DEFAULT_LOCALE) -> str | None:
    text = str(value or "").strip().lower()
    if not text:
        return None
    if any(word in text for word in locale.income_type_words):
        return INCOME
    if any(word in text for word in locale.expense_type_words):
        return EXPENSE
    return None


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def apply_entry_rules(
    structured: dict[str, Any],
    mapped_keys: Collection[str],
    locale: Locale = DEFAULT_LOCALE,
    kind_rules: Mapping[str, str] | None = None,
) -> None:
    """Complete one flat ledger entry in place.

    Only mapped system fields are touched: ``code`` becomes text, a blank
    ``category`` gets the locale's placeholder and, when ``amount`` is mapped,
    ``type`` is decided and ``amount`` made absolute.
    """
    if "code" in mapped_keys:
        structured["code"] = account_code_text(structured.get("code"))
    if "category" in mapped_keys and not str(structured.get("category") or "").strip():
        structured["category"] = locale.uncategorized_label
    if "amount" not in mapped_keys:
        return

    amount = structured.get("amount")
    kind = account_kind_from_code(structured.get("code"), kind_rules)
    if kind is None:
        kind = EXPENSE
        description = str(structured.get("description") or "").lower()
        if any(word in description for word in locale.income_keywords):
            kind = INCOME
        if "type" in mapped_keys:
            kind = kind_from_type_text(structured.get("type"), locale) or kind
        elif _is_number(amount) and amount < 0:
            kind = EXPENSE

    if _is_number(amount):
        structured["amount"] = abs(amount)
    structured["type"] = kind
