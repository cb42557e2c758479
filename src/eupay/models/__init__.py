from eupay.models.staff import Staff, FTEInterval
from eupay.models.project import Project, ProjectPeriod
from eupay.models.entry import MonthlyEntry, Allocation
from eupay.models.rates import EcbRate
from eupay.models.payment import (
    Payment, RateUsage, RateUsageType,
    CalculationBreakdown, EUCalculationStep, NonEUCalculation,
)

__all__ = [
    "Staff", "FTEInterval",
    "Project", "ProjectPeriod",
    "MonthlyEntry", "Allocation",
    "EcbRate",
    "Payment", "RateUsage", "RateUsageType",
    "CalculationBreakdown", "EUCalculationStep", "NonEUCalculation",
]
