"""
Fiscal year arithmetic.

A fiscal year is identified by the calendar year in which it starts.  With
the default April start, 2025-03-31 falls in FY 2024 and 2025-04-01 in
FY 2025.  Document numbering is scoped by this identifier.
"""

from datetime import date, timedelta


def fiscal_year_for(on_date: date, start_month: int = 4) -> int:
    """Return the fiscal year containing ``on_date``."""
    if not 1 <= start_month <= 12:
        raise ValueError(f"start_month must be 1-12, got {start_month}")
    if on_date.month >= start_month:
        return on_date.year
    return on_date.year - 1


def fiscal_year_bounds(fiscal_year: int, start_month: int = 4) -> tuple[date, date]:
    """First and last day of ``fiscal_year`` (inclusive)."""
    start = date(fiscal_year, start_month, 1)
    end = date(fiscal_year + 1, start_month, 1) - timedelta(days=1)
    return start, end


def short_year(fiscal_year: int) -> str:
    """Two-digit form used in document numbers (2024 -> "24")."""
    return f"{fiscal_year % 100:02d}"
