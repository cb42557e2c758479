"""
Demo data: one 60% FTE staff member, two projects and December 2025 hours.

Calculating December 2025 for the seeded staff member should claim
((4/18) x 8000 x 0.6) + ((7/18) x 8000 x 0.6) = 2933.33 EUR.
"""
import calendar
from datetime import date
from sqlmodel import Session
from eupay.logging import logger
from eupay.models.entry import Allocation
from eupay.models.staff import FTEInterval
from eupay.records import create_project, create_staff, upsert_entry, upsert_rates, PeriodSpec

SEED_YEAR = 2025

DECEMBER_RATES = {
    1: 10.45, 2: 10.47, 3: 10.48, 4: 10.46, 5: 10.44,
    8: 10.43, 9: 10.42, 10: 10.44, 11: 10.46, 12: 10.48,
    15: 10.47, 16: 10.45, 17: 10.43, 18: 10.44, 19: 10.46,
    22: 10.48, 23: 10.50, 29: 10.52, 30: 10.51, 31: 10.49,
}

MONTHLY_AVERAGES = {
    1: 10.15, 2: 10.18, 3: 10.20, 4: 10.22, 5: 10.25, 6: 10.28,
    7: 10.30, 8: 10.32, 9: 10.35, 10: 10.38, 11: 10.42,
}


def seed_rates(year: int = SEED_YEAR) -> list[tuple[date, float]]:
    """Weekday rates for a year: flat monthly averages, daily fixings in December."""
    rows = []
    for month in range(1, 12):
        for day in range(1, calendar.monthrange(year, month)[1] + 1):
            d = date(year, month, day)
            if d.weekday() < 5:
                rows.append((d, MONTHLY_AVERAGES[month]))
    rows.extend((date(year, 12, day), rate) for day, rate in DECEMBER_RATES.items())
    return rows


def seed_demo_data(session: Session) -> dict:
    upsert_rates(session, seed_rates())

    polina = create_staff(
        session,
        "Polina Ivanova",
        "polina@example.com",
        [FTEInterval(from_date=date(2025, 1, 1), to_date=None, percentage=0.6)],
    )
    lumen = create_project(session, "LUMEN Research Project", "LUMEN", date(2025, 1, 1), [
        PeriodSpec(period_number=1, start_date=date(2025, 1, 1), end_date=date(2025, 6, 30),
                   description="Phase 1 - Foundation"),
        PeriodSpec(period_number=2, start_date=date(2025, 7, 1), end_date=date(2025, 12, 31),
                   description="Phase 2 - Implementation"),
    ])
    graphia = create_project(session, "GRAPHIA Innovation", "GRAPHIA", date(2025, 1, 1), [
        PeriodSpec(period_number=1, start_date=date(2025, 1, 1), end_date=date(2025, 12, 31),
                   description="Full Year 2025"),
    ])
    upsert_entry(session, polina.id, SEED_YEAR, 12, [
        Allocation(project_id=lumen.id, period_number=2, days=4),
        Allocation(project_id=graphia.id, period_number=1, days=7),
    ], non_eu_days=0)

    logger.info("Demo data seeded")
    return {"staff_id": polina.id, "project_ids": [lumen.id, graphia.id]}
