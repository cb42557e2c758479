import calendar
from datetime import date
from decimal import Decimal
from sqlmodel import Session, select
from eupay.errors import NoRateDataError
from eupay.models.rates import EcbRate
from eupay.payroll.policy import to_decimal


def average_rate(session: Session, start_date: date, end_date: date) -> Decimal:
    """
    Unweighted mean of the stored EUR->local rates in [start_date, end_date].

    Only dates that have a row take part, which skips weekends and holidays.
    Raises NoRateDataError when the range holds no rates.
    """
    rates = session.exec(
        select(EcbRate.eur_to_local)
        .where(EcbRate.rate_date >= start_date, EcbRate.rate_date <= end_date)
        .order_by(EcbRate.rate_date)
    ).all()

    if not rates:
        raise NoRateDataError(f"No ECB rates found between {start_date} and {end_date}")

    return sum((to_decimal(r) for r in rates), Decimal(0)) / len(rates)


def month_bounds(year: int, month: int) -> tuple[date, date]:
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, 1), date(year, month, last_day)


def month_average_rate(session: Session, year: int, month: int) -> Decimal:
    """Average rate over one calendar month."""
    start, end = month_bounds(year, month)
    return average_rate(session, start, end)
