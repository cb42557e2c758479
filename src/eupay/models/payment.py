"""
Payment records and the audit trail stored with them.

A Payment row is append-only: later calculations for the same staff member
sum the rate-usage entries of every earlier row, so rows are never re-valued.
"""
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import List, Optional
from pydantic import BaseModel, TypeAdapter
from sqlmodel import Field
from eupay.models.base import TimestampMixin


class RateUsageType(str, Enum):
    PROJECT = "project"
    NON_EU = "non_eu"


class RateUsage(BaseModel):
    """Which rate, days and amounts applied to one project period or to non-EU work."""
    type: RateUsageType
    project_id: Optional[int] = None
    project_name: Optional[str] = None
    period_number: Optional[int] = None
    rate: Decimal
    rate_source: str
    days: Decimal
    eur_amount: Decimal
    local_amount: Decimal

    def matches(self, project_id: int, period_number: int) -> bool:
        return (
            self.type == RateUsageType.PROJECT
            and self.project_id == project_id
            and self.period_number == period_number
        )


class EUCalculationStep(BaseModel):
    project_id: int
    project_name: str
    period_number: int
    period_start_date: date
    days_worked: Decimal
    fte_percentage: Decimal
    days_in_month: int
    eur_calculation: str
    eur_amount: Decimal
    cumulative_eur: Decimal
    avg_rate: Decimal
    rate_source: str
    should_have_been_paid: Decimal
    previously_paid_local: Decimal
    payment_local: Decimal
    truing_calculation: str


class NonEUCalculation(BaseModel):
    days: Decimal
    fte_percentage: Decimal
    eur_calculation: str
    eur_amount: Decimal
    rate_calculation: str
    rate: Decimal
    local_calculation: str
    local_amount: Decimal


class CalculationBreakdown(BaseModel):
    month_index: int
    period_start_date: Optional[date] = None
    calculation_date: date
    fte_reference_date: date
    eligible_days: int
    currency: str
    eu_calculation_steps: List[EUCalculationStep] = []
    non_eu_calculation: Optional[NonEUCalculation] = None
    eu_portion_calculation: str
    gross_calculation: str


RATES_USED = TypeAdapter(List[RateUsage])


class Payment(TimestampMixin, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    staff_id: int = Field(foreign_key="staff.id", index=True)
    year: int = Field(index=True)
    month: int
    currency: str = Field(default="SEK")

    gross_local: float
    eu_portion_local: float
    non_eu_portion_local: float
    total_eur_claimable: float
    eu_eur_amount: float
    non_eu_eur_amount: float

    cumulative_eur_to_date: float
    cumulative_local_paid_to_date: float
    cumulative_avg_rate: float

    rates_used_json: str  # JSON list of RateUsage
    calculation_breakdown_json: str  # JSON CalculationBreakdown

    # Set when a later recalculation of the same month replaced this row
    superseded_by_id: Optional[int] = Field(default=None, foreign_key="payment.id")

    @property
    def rates_used(self) -> List[RateUsage]:
        return RATES_USED.validate_json(self.rates_used_json)

    @property
    def calculation_breakdown(self) -> CalculationBreakdown:
        return CalculationBreakdown.model_validate_json(self.calculation_breakdown_json)
