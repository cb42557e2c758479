import json
from datetime import datetime, timezone
from typing import Iterable, Union
from pydantic import BaseModel
from sqlmodel import Field, SQLModel


class TimestampMixin(SQLModel):
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        nullable=False,
    )
    updated_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        sa_column_kwargs={"onupdate": lambda: datetime.now(timezone.utc)},
        nullable=False,
    )


def dump_json(value: Union[BaseModel, Iterable[BaseModel]]) -> str:
    """Serialize a value object, or a list of them, for a JSON text column."""
    if isinstance(value, BaseModel):
        return value.model_dump_json()
    return json.dumps([v.model_dump(mode="json") for v in value])
