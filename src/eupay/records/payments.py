from typing import List, Optional
from sqlmodel import Session, select
from eupay.models.payment import Payment


def list_payments(session: Session, limit: int = 10, staff_id: Optional[int] = None) -> List[Payment]:
    """Most recently created payments first."""
    query = select(Payment)
    if staff_id is not None:
        query = query.where(Payment.staff_id == staff_id)
    query = query.order_by(Payment.created_at.desc(), Payment.id.desc()).limit(limit)
    return list(session.exec(query).all())


def get_payment(session: Session, payment_id: int) -> Optional[Payment]:
    return session.get(Payment, payment_id)
