"""Fiscal calendar helpers.  Pure functions, zero I/O."""

from datetime import date


def month_start(as_of: date) -> date:
    """First day of the month containing ``as_of``."""
    return as_of.replace(day=1)


def fiscal_year_start(as_of: date, start_month: int = 4, start_day: int = 1) -> date:
    """
    First day of the fiscal year containing ``as_of``.

    With the default April 1 start, 2024-03-31 belongs to the fiscal year
    starting 2023-04-01 and 2024-04-01 starts a new one.
    """
    candidate = date(as_of.year, start_month, start_day)
    if as_of >= candidate:
        return candidate
    return date(as_of.year - 1, start_month, start_day)
