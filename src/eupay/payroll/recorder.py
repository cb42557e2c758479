"""
Payment recorder.

Payments are the memory of what was already paid: every cumulative
calculation sums the rows written here, so this module only ever appends.
"""
from typing import List
from sqlmodel import Session, select, and_, or_
from eupay.config import settings
from eupay.errors import DuplicatePaymentError
from eupay.logging import logger
from eupay.models.base import dump_json
from eupay.models.payment import Payment


def previous_payments(session: Session, staff_id: int, year: int, month: int) -> List[Payment]:
    """Active payments for a staff member strictly before (year, month), oldest first."""
    return list(session.exec(
        select(Payment)
        .where(
            Payment.staff_id == staff_id,
            Payment.superseded_by_id == None,  # noqa: E711
            or_(
                Payment.year < year,
                and_(Payment.year == year, Payment.month < month),
            ),
        )
        .order_by(Payment.year, Payment.month, Payment.id)
    ).all())


def payments_for_month(session: Session, staff_id: int, year: int, month: int) -> List[Payment]:
    """Active payments already stored for exactly this staff/month."""
    return list(session.exec(
        select(Payment).where(
            Payment.staff_id == staff_id,
            Payment.year == year,
            Payment.month == month,
            Payment.superseded_by_id == None,  # noqa: E711
        ).order_by(Payment.id)
    ).all())


def store_payment(session: Session, calc_input, result, policy: str | None = None) -> int:
    """
    Append a payment row for a calculation result and return its id.

    The duplicate policy decides what happens when the month was already paid:
    "allow" adds another row, "reject" raises DuplicatePaymentError and
    "supersede" marks the earlier rows as replaced by the new one.
    The caller commits.
    """
    policy = policy or settings.DUPLICATE_PAYMENT_POLICY
    existing = payments_for_month(session, calc_input.staff_id, calc_input.year, calc_input.month)

    if existing and policy == "reject":
        raise DuplicatePaymentError(
            f"Payment already recorded for staff {calc_input.staff_id}, "
            f"{calc_input.year}-{calc_input.month} (payment {existing[0].id})"
        )
    if existing and policy == "allow":
        logger.warning(
            f"Storing another payment for staff {calc_input.staff_id}, "
            f"{calc_input.year}-{calc_input.month}; {len(existing)} already recorded"
        )

    payment = Payment(
        staff_id=calc_input.staff_id,
        year=calc_input.year,
        month=calc_input.month,
        currency=result.calculation_breakdown.currency,
        gross_local=float(result.gross_local),
        eu_portion_local=float(result.eu_portion_local),
        non_eu_portion_local=float(result.non_eu_portion_local),
        total_eur_claimable=float(result.total_eur_claimable),
        eu_eur_amount=float(result.eu_eur_amount),
        non_eu_eur_amount=float(result.non_eu_eur_amount),
        cumulative_eur_to_date=float(result.cumulative_eur_to_date),
        cumulative_local_paid_to_date=float(result.cumulative_local_paid_to_date),
        cumulative_avg_rate=float(result.cumulative_avg_rate),
        rates_used_json=dump_json(result.rates_used),
        calculation_breakdown_json=dump_json(result.calculation_breakdown),
    )
    session.add(payment)
    session.flush()

    if existing and policy == "supersede":
        for old in existing:
            old.superseded_by_id = payment.id
            session.add(old)
        session.flush()
        logger.info(f"Payment {payment.id} supersedes {[p.id for p in existing]}")

    logger.info(
        f"Stored payment {payment.id} for staff {calc_input.staff_id}, "
        f"{calc_input.year}-{calc_input.month}: gross {payment.gross_local:.2f} {payment.currency}"
    )
    return payment.id
