from decimal import Decimal
from typing import List, Optional
from pydantic import BaseModel, ConfigDict, TypeAdapter, field_validator
from pydantic import Field as PydanticField
from sqlmodel import Field, UniqueConstraint
from eupay.models.base import TimestampMixin, dump_json

DAY_STEP = Decimal("0.25")


class Allocation(BaseModel):
    """Days of EU work booked against one project period."""
    model_config = ConfigDict(frozen=True)

    project_id: int
    period_number: int
    days: Decimal = PydanticField(ge=0)

    @field_validator("days")
    @classmethod
    def quarter_days(cls, v: Decimal) -> Decimal:
        if v % DAY_STEP != 0:
            raise ValueError(f"days must be a multiple of {DAY_STEP}, got {v}")
        return v


ALLOCATIONS = TypeAdapter(List[Allocation])


class MonthlyEntry(TimestampMixin, table=True):
    """The timesheet for one staff member and month; overwritten on re-save."""
    __table_args__ = (
        UniqueConstraint("staff_id", "year", "month", name="uq_monthly_entry_staff_month"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    staff_id: int = Field(foreign_key="staff.id", index=True)
    year: int
    month: int

    allocations_json: str = Field(default="[]")  # JSON list of Allocation
    non_eu_days: float = Field(default=0.0)

    @property
    def allocations(self) -> List[Allocation]:
        return ALLOCATIONS.validate_json(self.allocations_json)

    def set_allocations(self, allocations: List[Allocation]):
        self.allocations_json = dump_json(list(allocations))
