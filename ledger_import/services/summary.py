from __future__ import annotations

from ..models.import_result import ImportSummary

"""SUMMARY line rendering.

One line per imported file. The text below is logged at the SUMMARY level,
whose formatter adds the ``SUMMARY`` label in front of it:

    file=compras.xlsx context=purchase rows=120 valid=118 invalid=2
    duplicates=3 selected=118 committed=118 elapsed_sec=0.42
"""

__all__ = [
    "format_seconds",
    "render_summary_line",
]


def format_seconds(value: float) -> str:
    """Render seconds without scientific notation or trailing zeros."""
    if value == 0:
        return "0"
    if value == int(value):
        return str(int(value))
    if value < 0.01:
        return f"{value:.6f}".rstrip("0").rstrip(".")
    return f"{value:.3f}".rstrip("0").rstrip(".")


def render_summary_line(summary: ImportSummary) -> str:
    """Render the summary text for one file (without the level label).

    Matrix imports get a trailing ``layout=matrix``; failed files a trailing
    ``error="..."``.

    Examples:
        >>> s = ImportSummary("a.xlsx", "purchase", 3, 2, 1, 0, 2, 2, 1.5)
        >>> render_summary_line(s)
        'file=a.xlsx context=purchase rows=3 valid=2 invalid=1 duplicates=0 selected=2 committed=2 elapsed_sec=1.5'
    """
    line = (
        f"file={summary.file_name} "
        f"context={summary.context} "
        f"rows={summary.total_rows} "
        f"valid={summary.valid_rows} "
        f"invalid={summary.invalid_rows} "
        f"duplicates={summary.duplicate_rows} "
        f"selected={summary.selected_rows} "
        f"committed={summary.committed_rows} "
        f"elapsed_sec={format_seconds(summary.elapsed_seconds)}"
    )
    if summary.matrix:
        line += " layout=matrix"
    if summary.error:
        line += f' error="{summary.error}"'
    return line
