from datetime import date
from sqlmodel import Field
from eupay.models.base import TimestampMixin


class EcbRate(TimestampMixin, table=True):
    """Daily EUR -> local currency reference rate. Non-business days are absent."""
    rate_date: date = Field(primary_key=True)
    eur_to_local: float
