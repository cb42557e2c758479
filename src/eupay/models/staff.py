from datetime import date
from typing import List, Optional
from pydantic import BaseModel, ConfigDict, TypeAdapter
from pydantic import Field as PydanticField
from sqlmodel import Field
from eupay.models.base import TimestampMixin, dump_json


class FTEInterval(BaseModel):
    """Committed capacity for a date range; open-ended when to_date is None."""
    model_config = ConfigDict(frozen=True)

    from_date: date
    to_date: Optional[date] = None
    percentage: float = PydanticField(ge=0.0, le=1.0)


FTE_HISTORY = TypeAdapter(List[FTEInterval])

DEFAULT_FTE_HISTORY = [FTEInterval(from_date=date(2020, 1, 1), to_date=None, percentage=1.0)]


class Staff(TimestampMixin, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(index=True)
    email: Optional[str] = None

    # JSON list of FTEInterval, kept in stored order
    fte_history_json: str = Field(default_factory=lambda: dump_json(DEFAULT_FTE_HISTORY))

    @property
    def fte_history(self) -> List[FTEInterval]:
        return FTE_HISTORY.validate_json(self.fte_history_json)

    def set_fte_history(self, intervals: List[FTEInterval]):
        self.fte_history_json = dump_json(list(intervals))
