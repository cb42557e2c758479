"""
Month-level policy: decimal conversion, FTE lookup and eligible days.

Eligible days are a contractual table from the grant's accounting rules, not
a count of business days, so they never look at the calendar.
"""
from datetime import date
from decimal import Decimal
from typing import Iterable, Optional, Union
from eupay.config import settings
from eupay.models.staff import FTEInterval

FULL_TIME = Decimal("1.0")

Number = Union[Decimal, int, float, str]


def to_decimal(value: Number) -> Decimal:
    """Convert a stored number to Decimal; floats go through their shortest repr."""
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        return Decimal(repr(value))
    return Decimal(value)


def fte_at(history: Iterable[FTEInterval], on: date) -> Decimal:
    """
    Return the FTE percentage applying on a date.

    Intervals are scanned in stored order and the first match wins, so
    overlapping intervals resolve by position. No match means full time.
    """
    for interval in history:
        if interval.from_date <= on and (interval.to_date is None or on <= interval.to_date):
            return to_decimal(interval.percentage)
    return FULL_TIME


def fte_reference_date(year: int, month: int) -> date:
    return date(year, month, settings.FTE_REFERENCE_DAY)


def eligible_days(month: int, table: Optional[dict] = None) -> int:
    """Billable days for a month: 17 in February, 18 otherwise (configurable)."""
    if not 1 <= month <= 12:
        raise ValueError(f"month must be in 1..12, got {month}")
    table = settings.ELIGIBLE_DAYS_BY_MONTH if table is None else table
    return table.get(month, settings.ELIGIBLE_DAYS_DEFAULT)


def day_fraction_eur(days: Decimal, month: int, fte: Decimal) -> Decimal:
    """EUR claimable for `days` of work: (days / eligible) x person-month rate x fte."""
    rate = to_decimal(settings.PERSON_MONTH_RATE_EUR)
    return days * rate * fte / eligible_days(month)


def eur_formula(days: Decimal, month: int, fte: Decimal, eur_amount: Decimal) -> str:
    rate = to_decimal(settings.PERSON_MONTH_RATE_EUR).normalize()
    return f"({days} / {eligible_days(month)}) × {rate:f} × {fte} = {eur_amount:.2f} EUR"
