from __future__ import annotations

from dataclasses import dataclass

"""Language vocabularies used by the import pipeline.

Each Locale bundles the words the heuristics need for one deployment
language: ordered month names (period headers and textual dates), the
affirmative words accepted for booleans, the vocabulary that marks an
account/code column in a wide layout and the placeholder words used when
a header or account name is missing, and the words that classify a ledger
line as income or expense.
"""

__all__ = [
    "Locale",
    "LOCALES",
    "DEFAULT_LOCALE",
    "get_locale",
]


@dataclass(frozen=True)
class Locale:
    code: str
    month_names: tuple[str, ...]  # 12 entries, lower-case, January first
    affirmatives: frozenset[str]
    negatives: frozenset[str]
    account_vocabulary: tuple[str, ...]
    name_vocabulary: tuple[str, ...]
    column_word: str  # placeholder for blank header cells
    account_word: str  # placeholder description for unnamed accounts
    date_connector: str | None = None  # "15 de marzo de 2024"
    day_first: bool = True
    uncategorized_label: str = "Uncategorized"  # category of ledger entries left blank
    income_keywords: tuple[str, ...] = ()  # description words marking an income line
    income_type_words: tuple[str, ...] = ("income",)
    expense_type_words: tuple[str, ...] = ("expense",)

    def month_index(self, text: str) -> int | None:
        """Return the 0-based month index for a full or abbreviated month name."""
        word = text.strip().lower().rstrip(".")
        if not word:
            return None
        for idx, name in enumerate(self.month_names):
            if word == name:
                return idx
        if len(word) >= 3:
            for idx, name in enumerate(self.month_names):
                if name.startswith(word):
                    return idx
        return None


SPANISH = Locale(
    code="es",
    month_names=(
        "enero", "febrero", "marzo", "abril", "mayo", "junio",
        "julio", "agosto", "septiembre", "octubre", "noviembre", "diciembre",
    ),
    affirmatives=frozenset({"si", "sí", "s", "verdadero"}),
    negatives=frozenset({"no", "n", "falso"}),
    account_vocabulary=("cuenta", "codigo", "código", "account", "code"),
    name_vocabulary=("nombre", "descripcion", "descripción", "detalle"),
    column_word="Columna",
    account_word="Cuenta",
    date_connector="de",
    day_first=True,
    uncategorized_label="Sin Categoría",
    income_keywords=("ingresos", "ventas", "utilidad"),
    income_type_words=("ingreso", "income"),
    expense_type_words=("egreso", "gasto", "expense"),
)

ENGLISH = Locale(
    code="en",
    month_names=(
        "january", "february", "march", "april", "may", "june",
        "july", "august", "september", "october", "november", "december",
    ),
    affirmatives=frozenset({"yes", "y"}),
    negatives=frozenset({"no", "n"}),
    account_vocabulary=("account", "code"),
    name_vocabulary=("name", "description", "detail"),
    column_word="Column",
    account_word="Account",
    date_connector="of",
    day_first=False,
    uncategorized_label="Uncategorized",
    income_keywords=("income", "revenue", "sales", "profit"),
    income_type_words=("income", "revenue"),
    expense_type_words=("expense", "cost"),
)

LOCALES: dict[str, Locale] = {
    SPANISH.code: SPANISH,
    ENGLISH.code: ENGLISH,
}

DEFAULT_LOCALE = SPANISH


def get_locale(code: str | None) -> Locale:
    if not code:
        return DEFAULT_LOCALE
    try:
        return LOCALES[code.lower()]
    except KeyError:
        raise ValueError(f"unsupported locale: {code!r} (choose from {sorted(LOCALES)})") from None
