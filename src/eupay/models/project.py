from datetime import date
from typing import List, Optional
from sqlmodel import Field, Relationship, UniqueConstraint
from eupay.models.base import TimestampMixin


class Project(TimestampMixin, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    name: str
    code: str = Field(unique=True, index=True)
    start_date: date

    periods: List["ProjectPeriod"] = Relationship(back_populates="project")


class ProjectPeriod(TimestampMixin, table=True):
    """A reporting period; its start_date anchors the cumulative rate window."""
    __table_args__ = (
        UniqueConstraint("project_id", "period_number", name="uq_project_period_number"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    project_id: int = Field(foreign_key="project.id", index=True)
    period_number: int
    start_date: date
    end_date: date
    description: Optional[str] = None

    project: Optional[Project] = Relationship(back_populates="periods")
