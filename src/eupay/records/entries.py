from decimal import Decimal
from typing import List, Optional, Sequence
from sqlmodel import Session, select
from eupay.errors import NotFoundError
from eupay.logging import logger
from eupay.models.entry import Allocation, MonthlyEntry
from eupay.payroll.policy import eligible_days, to_decimal


def get_entry(session: Session, staff_id: int, year: int, month: int) -> Optional[MonthlyEntry]:
    return session.exec(
        select(MonthlyEntry).where(
            MonthlyEntry.staff_id == staff_id,
            MonthlyEntry.year == year,
            MonthlyEntry.month == month,
        )
    ).first()


def upsert_entry(
    session: Session,
    staff_id: int,
    year: int,
    month: int,
    allocations: Sequence[Allocation],
    non_eu_days: float = 0.0,
) -> MonthlyEntry:
    """Save the month's timesheet, overwriting any earlier version."""
    if not 1 <= month <= 12:
        raise ValueError(f"month must be in 1..12, got {month}")
    entry = get_entry(session, staff_id, year, month)
    created = entry is None
    if created:
        entry = MonthlyEntry(staff_id=staff_id, year=year, month=month)

    entry.set_allocations(list(allocations))
    entry.non_eu_days = non_eu_days
    session.add(entry)
    session.commit()
    session.refresh(entry)

    action = "Created" if created else "Updated"
    logger.info(f"{action} entry {entry.id} for staff {staff_id}, {year}-{month}")
    for warning in entry_warnings(entry):
        logger.warning(warning)
    return entry


def list_entries(
    session: Session,
    staff_id: Optional[int] = None,
    year: Optional[int] = None,
    month: Optional[int] = None,
) -> List[MonthlyEntry]:
    query = select(MonthlyEntry)
    if staff_id is not None:
        query = query.where(MonthlyEntry.staff_id == staff_id)
    if year is not None:
        query = query.where(MonthlyEntry.year == year)
    if month is not None:
        query = query.where(MonthlyEntry.month == month)
    return list(session.exec(query.order_by(MonthlyEntry.year, MonthlyEntry.month)).all())


def delete_entry(session: Session, staff_id: int, year: int, month: int) -> None:
    entry = get_entry(session, staff_id, year, month)
    if not entry:
        raise NotFoundError(f"No entry found for staff {staff_id}, {year}-{month}")
    session.delete(entry)
    session.commit()


def entry_warnings(entry: MonthlyEntry) -> List[str]:
    """
    Editing-time checks on a timesheet.

    These are advisory: the calculator computes and records over-allocated
    months as they are.
    """
    warnings = []
    eu_days = sum((a.days for a in entry.allocations), Decimal(0))
    non_eu = to_decimal(entry.non_eu_days)
    total = eu_days + non_eu
    limit = eligible_days(entry.month)

    if non_eu < 0:
        warnings.append(f"Non-EU days are negative ({non_eu})")
    if total > limit:
        warnings.append(
            f"Entry {entry.year}-{entry.month:02d} books {total} days "
            f"({eu_days} EU + {non_eu} non-EU), more than the {limit} eligible days"
        )
    return warnings
