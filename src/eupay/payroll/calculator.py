"""
Salary calculation for one staff member and month.

Control flow: resolve FTE and eligible days, load the month's entry, true up
each EU project period, convert non-EU days at the month rate, combine into
a gross payment and hand it to the recorder.
"""
import threading
from contextlib import contextmanager
from datetime import date
from decimal import Decimal
from typing import Any, Dict, Iterator, List, Optional
from pydantic import BaseModel, Field, ValidationError
from sqlalchemy.engine import Engine
from sqlmodel import Session, select
from eupay.config import settings
from eupay.errors import PayrollError
from eupay.db import begin_write
from eupay.logging import calculation_scope, logger
from eupay.models.payment import CalculationBreakdown, RateUsage
from eupay.models.staff import Staff
from eupay.payroll.non_eu import compute_non_eu_portion
from eupay.payroll.policy import eligible_days, fte_at, fte_reference_date
from eupay.payroll.recorder import previous_payments, store_payment
from eupay.payroll.truing import cumulative_truing, load_entry, load_staff


class CalculationInput(BaseModel):
    staff_id: int
    year: int = Field(ge=1900, le=9999)
    month: int = Field(ge=1, le=12)


class CalculationResult(BaseModel):
    gross_local: Decimal
    eu_portion_local: Decimal
    non_eu_portion_local: Decimal
    total_eur_claimable: Decimal
    eu_eur_amount: Decimal
    non_eu_eur_amount: Decimal
    rates_used: List[RateUsage]
    cumulative_eur_to_date: Decimal
    cumulative_local_paid_to_date: Decimal
    cumulative_avg_rate: Decimal
    calculation_breakdown: CalculationBreakdown


def calculate_salary(
    session: Session,
    calc_input: CalculationInput,
    *,
    today: Optional[date] = None,
) -> CalculationResult:
    """Compute the payment for a staff member and month without storing it."""
    staff_id, year, month = calc_input.staff_id, calc_input.year, calc_input.month
    today = today or date.today()

    staff = load_staff(session, staff_id)
    reference_date = fte_reference_date(year, month)
    fte = fte_at(staff.fte_history, reference_date)
    entry = load_entry(session, staff_id, year, month)
    days_in_month = eligible_days(month)

    logger.info(
        f"Calculating staff {staff_id} ({staff.name}) {year}-{month:02d}: "
        f"FTE {fte}, {days_in_month} eligible days"
    )

    prior = previous_payments(session, staff_id, year, month)
    eu = cumulative_truing(
        session,
        entry.allocations,
        month=month,
        fte=fte,
        prior=prior,
        today=today,
    )
    non_eu = compute_non_eu_portion(session, staff_id, year, month, entry.non_eu_days, fte)

    rates_used = list(eu.rates_used)
    if non_eu.rate_usage is not None:
        rates_used.append(non_eu.rate_usage)

    gross_local = eu.eu_portion_local + non_eu.local_amount
    currency = settings.LOCAL_CURRENCY
    eu_part = eu.calculation if eu.steps else "0.00"

    breakdown = CalculationBreakdown(
        month_index=month,
        period_start_date=eu.period_start_date,
        calculation_date=today,
        fte_reference_date=reference_date,
        eligible_days=days_in_month,
        currency=currency,
        eu_calculation_steps=eu.steps,
        non_eu_calculation=non_eu.breakdown,
        eu_portion_calculation=eu.calculation,
        gross_calculation=(
            f"({eu_part}) + {non_eu.eur_amount:.2f} EUR × {non_eu.rate:.4f} "
            f"= {gross_local:.2f} {currency}"
        ),
    )

    return CalculationResult(
        gross_local=gross_local,
        eu_portion_local=eu.eu_portion_local,
        non_eu_portion_local=non_eu.local_amount,
        total_eur_claimable=eu.eu_eur_total + non_eu.eur_amount,
        eu_eur_amount=eu.eu_eur_total,
        non_eu_eur_amount=non_eu.eur_amount,
        rates_used=rates_used,
        cumulative_eur_to_date=eu.cumulative_eur_to_date,
        cumulative_local_paid_to_date=eu.total_previous_local_paid,
        cumulative_avg_rate=eu.weighted_avg_rate,
        calculation_breakdown=breakdown,
    )


# ---------------------------------------------------------------------------
# Per-staff serialisation
# ---------------------------------------------------------------------------
# Entries live only while some thread holds or waits for the lock
_locks: Dict[int, threading.Lock] = {}
_lock_users: Dict[int, int] = {}
_locks_guard = threading.Lock()


@contextmanager
def staff_lock(staff_id: int) -> Iterator[None]:
    """Serialise calculations for one staff member within this process; others run freely."""
    with _locks_guard:
        lock = _locks.setdefault(staff_id, threading.Lock())
        _lock_users[staff_id] = _lock_users.get(staff_id, 0) + 1
    try:
        with lock:
            yield
    finally:
        with _locks_guard:
            _lock_users[staff_id] -= 1
            if not _lock_users[staff_id]:
                del _lock_users[staff_id]
                del _locks[staff_id]


def calculate_and_store(
    engine: Engine,
    calc_input: CalculationInput,
    *,
    today: Optional[date] = None,
    store: bool = True,
) -> tuple[CalculationResult, Optional[int]]:
    """
    Read dependencies, compute and append the payment in one transaction.

    The transaction takes the write lock before its first read (BEGIN
    IMMEDIATE on SQLite, the staff row FOR UPDATE elsewhere), so calculations
    for the same staff member in other processes wait for this one to commit.
    Nothing is written when any step fails.
    """
    with staff_lock(calc_input.staff_id):
        with Session(engine) as session:
            try:
                begin_write(session)
                session.exec(
                    select(Staff).where(Staff.id == calc_input.staff_id).with_for_update()
                ).first()

                result = calculate_salary(session, calc_input, today=today)
                payment_id = None
                if store:
                    payment_id = store_payment(session, calc_input, result)
                session.commit()
                return result, payment_id
            except Exception:
                session.rollback()
                raise


def describe_validation_error(error: ValidationError) -> str:
    """One line naming the first invalid field, e.g. "month: Input should be ..."."""
    first = error.errors()[0]
    field = ".".join(str(part) for part in first["loc"]) or "request"
    message = f"Invalid request: {field}: {first['msg']}"
    if error.error_count() > 1:
        message += f" (and {error.error_count() - 1} more)"
    return message


def run_calculation(
    engine: Engine,
    request: Dict[str, Any],
    *,
    today: Optional[date] = None,
    store: bool = True,
) -> Dict[str, Any]:
    """
    Request/response surface of the calculator.

    Returns the result fields plus `success` and `payment_id`, or
    `{"success": False, "error": message}` on failure.
    """
    with calculation_scope() as calc_id:
        try:
            calc_input = CalculationInput.model_validate(request)
            result, payment_id = calculate_and_store(engine, calc_input, today=today, store=store)
        except ValidationError as e:
            error = describe_validation_error(e)
            logger.error(f"Invalid calculation request {request}: {error}")
            return {"success": False, "error": error}
        except PayrollError as e:
            logger.error(f"Calculation failed: {e}")
            return {"success": False, "error": str(e)}

    return {
        "success": True,
        "calc_id": calc_id,
        "payment_id": payment_id,
        **result.model_dump(mode="json"),
    }
