from dataclasses import dataclass
from decimal import Decimal
from typing import Optional
from sqlmodel import Session
from eupay.models.payment import NonEUCalculation, RateUsage, RateUsageType
from eupay.payroll.policy import day_fraction_eur, eur_formula, to_decimal
from eupay.payroll.rates import month_average_rate

ZERO = Decimal(0)


@dataclass
class NonEUPortion:
    eur_amount: Decimal = ZERO
    rate: Decimal = ZERO
    local_amount: Decimal = ZERO
    breakdown: Optional[NonEUCalculation] = None
    rate_usage: Optional[RateUsage] = None


def compute_non_eu_portion(
    session: Session,
    staff_id: int,
    year: int,
    month: int,
    non_eu_days,
    fte: Decimal,
) -> NonEUPortion:
    """
    Non-EU work converted at the month's own average rate.

    Each month stands alone: nothing is carried over from earlier payments.
    """
    days = to_decimal(non_eu_days)
    if days == 0:
        return NonEUPortion()

    eur_amount = day_fraction_eur(days, month, fte)
    rate = month_average_rate(session, year, month)
    local_amount = eur_amount * rate
    rate_source = f"ECB average for {year}-{month:02d}"

    breakdown = NonEUCalculation(
        days=days,
        fte_percentage=fte,
        eur_calculation=eur_formula(days, month, fte, eur_amount),
        eur_amount=eur_amount,
        rate_calculation=rate_source,
        rate=rate,
        local_calculation=f"{eur_amount:.2f} EUR × {rate:.4f} = {local_amount:.2f}",
        local_amount=local_amount,
    )
    usage = RateUsage(
        type=RateUsageType.NON_EU,
        rate=rate,
        rate_source=rate_source,
        days=days,
        eur_amount=eur_amount,
        local_amount=local_amount,
    )
    return NonEUPortion(
        eur_amount=eur_amount,
        rate=rate,
        local_amount=local_amount,
        breakdown=breakdown,
        rate_usage=usage,
    )
