"""
Cumulative truing of the EU portion.

For each project period worked in the month the payment is the difference
between what the period's cumulative EUR is worth at the period's lifetime
average rate and what was already paid for it. The EU total is then
reconciled a second time against everything paid for EU work before, using
the EUR-weighted average of this month's rates. Both levels run, in that
order; with several periods active they do not agree.
"""
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Dict, List, Optional, Sequence, Tuple
from sqlmodel import Session, select
from eupay.errors import NotFoundError
from eupay.logging import logger
from eupay.models.entry import Allocation, MonthlyEntry
from eupay.models.payment import EUCalculationStep, Payment, RateUsage, RateUsageType
from eupay.models.project import Project, ProjectPeriod
from eupay.models.staff import Staff
from eupay.payroll.policy import (
    day_fraction_eur, eligible_days, eur_formula, fte_at, fte_reference_date, to_decimal,
)
from eupay.payroll.rates import average_rate
from eupay.payroll.recorder import previous_payments

ZERO = Decimal(0)


@dataclass
class EUPortion:
    rates_used: List[RateUsage] = field(default_factory=list)
    steps: List[EUCalculationStep] = field(default_factory=list)
    eu_eur_total: Decimal = ZERO
    eu_portion_local: Decimal = ZERO
    weighted_avg_rate: Decimal = ZERO
    cumulative_eur_to_date: Decimal = ZERO
    total_previous_local_paid: Decimal = ZERO
    calculation: str = "No EU work this month"

    @property
    def period_start_date(self) -> Optional[date]:
        return self.steps[0].period_start_date if self.steps else None


def group_allocations(allocations: Sequence[Allocation]) -> Dict[Tuple[int, int], Decimal]:
    """Sum days per (project_id, period_number), keeping first-appearance order."""
    groups: Dict[Tuple[int, int], Decimal] = {}
    for alloc in allocations:
        key = (alloc.project_id, alloc.period_number)
        groups[key] = groups.get(key, ZERO) + alloc.days
    return groups


def get_period(session: Session, project_id: int, period_number: int) -> Tuple[Project, ProjectPeriod]:
    project = session.get(Project, project_id)
    if not project:
        raise NotFoundError(f"Project not found: {project_id}")
    period = session.exec(
        select(ProjectPeriod).where(
            ProjectPeriod.project_id == project_id,
            ProjectPeriod.period_number == period_number,
        )
    ).first()
    if not period:
        raise NotFoundError(f"Project period not found: project {project_id}, period {period_number}")
    return project, period


def load_staff(session: Session, staff_id: int) -> Staff:
    staff = session.get(Staff, staff_id)
    if not staff:
        raise NotFoundError(f"Staff not found: {staff_id}")
    return staff


def load_entry(session: Session, staff_id: int, year: int, month: int) -> MonthlyEntry:
    entry = session.exec(
        select(MonthlyEntry).where(
            MonthlyEntry.staff_id == staff_id,
            MonthlyEntry.year == year,
            MonthlyEntry.month == month,
        )
    ).first()
    if not entry:
        raise NotFoundError(f"No entry found for staff {staff_id}, {year}-{month}")
    return entry


def prior_group_totals(prior: Sequence[Payment], project_id: int, period_number: int) -> Tuple[Decimal, Decimal]:
    """EUR claimed and local currency paid for one project period in earlier payments."""
    eur = ZERO
    local = ZERO
    for payment in prior:
        for usage in payment.rates_used:
            if usage.matches(project_id, period_number):
                eur += usage.eur_amount
                local += usage.local_amount
    return eur, local


def cumulative_truing(
    session: Session,
    allocations: Sequence[Allocation],
    *,
    month: int,
    fte: Decimal,
    prior: Sequence[Payment],
    today: date,
) -> EUPortion:
    """Run per-period truing for one month's allocations, then the aggregate reconciliation."""
    result = EUPortion()
    days_in_month = eligible_days(month)

    for (project_id, period_number), days_worked in group_allocations(allocations).items():
        project, period = get_period(session, project_id, period_number)

        eur_amount = day_fraction_eur(days_worked, month, fte)
        eur_prior, local_paid_prior = prior_group_totals(prior, project_id, period_number)
        cumulative_eur = eur_prior + eur_amount

        avg_rate = average_rate(session, period.start_date, today)
        rate_source = f"ECB average {period.start_date} to {today}"
        should_have_been_paid = cumulative_eur * avg_rate
        payment_local = should_have_been_paid - local_paid_prior

        logger.debug(
            f"{project.code} P{period_number}: {days_worked} days -> {eur_amount:.2f} EUR, "
            f"cumulative {cumulative_eur:.2f} EUR at {avg_rate:.4f}, pays {payment_local:.2f}"
        )

        result.rates_used.append(RateUsage(
            type=RateUsageType.PROJECT,
            project_id=project_id,
            project_name=project.name,
            period_number=period_number,
            rate=avg_rate,
            rate_source=rate_source,
            days=days_worked,
            eur_amount=eur_amount,
            local_amount=payment_local,
        ))
        result.steps.append(EUCalculationStep(
            project_id=project_id,
            project_name=project.name,
            period_number=period_number,
            period_start_date=period.start_date,
            days_worked=days_worked,
            fte_percentage=fte,
            days_in_month=days_in_month,
            eur_calculation=eur_formula(days_worked, month, fte, eur_amount),
            eur_amount=eur_amount,
            cumulative_eur=cumulative_eur,
            avg_rate=avg_rate,
            rate_source=rate_source,
            should_have_been_paid=should_have_been_paid,
            previously_paid_local=local_paid_prior,
            payment_local=payment_local,
            truing_calculation=(
                f"({eur_prior:.2f} + {eur_amount:.2f}) EUR × {avg_rate:.4f} "
                f"− {local_paid_prior:.2f} = {payment_local:.2f}"
            ),
        ))
        result.eu_eur_total += eur_amount
        result.cumulative_eur_to_date += cumulative_eur

    result.total_previous_local_paid = sum(
        (to_decimal(p.eu_portion_local) for p in prior), ZERO
    )
    # No EU work: nothing to reconcile against, the EU portion stays 0
    if not result.rates_used:
        return result

    weighted = sum((u.rate * u.eur_amount for u in result.rates_used), ZERO)
    if result.eu_eur_total > 0:
        result.weighted_avg_rate = weighted / result.eu_eur_total

    result.eu_portion_local = (
        result.eu_eur_total * result.weighted_avg_rate - result.total_previous_local_paid
    )
    result.calculation = (
        f"{result.eu_eur_total:.2f} EUR × {result.weighted_avg_rate:.4f} "
        f"− {result.total_previous_local_paid:.2f} = {result.eu_portion_local:.2f}"
    )
    return result


def compute_eu_portion(
    session: Session,
    staff_id: int,
    year: int,
    month: int,
    *,
    today: Optional[date] = None,
) -> EUPortion:
    """EU portion for one staff member and month, loading everything it needs."""
    staff = load_staff(session, staff_id)
    entry = load_entry(session, staff_id, year, month)

    return cumulative_truing(
        session,
        entry.allocations,
        month=month,
        fte=fte_at(staff.fte_history, fte_reference_date(year, month)),
        prior=previous_payments(session, staff_id, year, month),
        today=today or date.today(),
    )
