from typing import List, Optional, Sequence
from sqlmodel import Session, select
from eupay.errors import NotFoundError
from eupay.logging import logger
from eupay.models.entry import MonthlyEntry
from eupay.models.payment import Payment
from eupay.models.staff import DEFAULT_FTE_HISTORY, FTEInterval, Staff


def create_staff(
    session: Session,
    name: str,
    email: Optional[str] = None,
    fte_history: Optional[Sequence[FTEInterval]] = None,
) -> Staff:
    staff = Staff(name=name, email=email)
    staff.set_fte_history(list(fte_history or DEFAULT_FTE_HISTORY))
    session.add(staff)
    session.commit()
    session.refresh(staff)
    logger.info(f"Created staff {staff.id} ({name})")
    return staff


def get_staff(session: Session, staff_id: int) -> Staff:
    staff = session.get(Staff, staff_id)
    if not staff:
        raise NotFoundError(f"Staff not found: {staff_id}")
    return staff


def list_staff(session: Session) -> List[Staff]:
    return list(session.exec(select(Staff).order_by(Staff.name)).all())


def update_staff(
    session: Session,
    staff_id: int,
    *,
    name: str,
    email: Optional[str] = None,
    fte_history: Optional[Sequence[FTEInterval]] = None,
) -> Staff:
    """Replace name, email and FTE history; a missing history resets to full time."""
    staff = get_staff(session, staff_id)
    staff.name = name
    staff.email = email
    staff.set_fte_history(list(fte_history or DEFAULT_FTE_HISTORY))
    session.add(staff)
    session.commit()
    session.refresh(staff)
    return staff


def delete_staff(session: Session, staff_id: int) -> None:
    """Remove a staff member together with their entries and payments."""
    staff = get_staff(session, staff_id)

    entries = session.exec(select(MonthlyEntry).where(MonthlyEntry.staff_id == staff_id)).all()
    # Newest first so superseding rows go before the rows they point at
    payments = session.exec(
        select(Payment).where(Payment.staff_id == staff_id).order_by(Payment.id.desc())
    ).all()
    for row in [*entries, *payments]:
        session.delete(row)
    session.flush()
    session.delete(staff)
    session.commit()
    logger.info(f"Deleted staff {staff_id} with {len(entries)} entries and {len(payments)} payments")
