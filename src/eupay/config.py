from typing import Dict, Literal
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    DATABASE_URL: str | None = Field(
        None,
        description="SQLAlchemy URL; defaults to a SQLite file inside DATA_DIR"
    )
    DATA_DIR: str = Field("data", description="Directory holding the SQLite database")
    LOG_LEVEL: str = Field("INFO", description="Root log level")

    LOCAL_CURRENCY: str = Field("SEK", description="Currency payments are made in")
    PERSON_MONTH_RATE_EUR: float = Field(
        8000.0,
        description="EUR claimable for one full-time person-month"
    )
    FTE_REFERENCE_DAY: int = Field(
        15, ge=1, le=28,
        description="Day of month used to look up the FTE for the whole month"
    )
    ELIGIBLE_DAYS_DEFAULT: int = Field(18, description="Billable days in a month")
    ELIGIBLE_DAYS_BY_MONTH: Dict[int, int] = Field(
        default_factory=lambda: {2: 17},
        description="Per-month overrides of ELIGIBLE_DAYS_DEFAULT"
    )
    DUPLICATE_PAYMENT_POLICY: Literal["allow", "reject", "supersede"] = Field(
        "allow",
        description="What storing a second payment for the same staff/month does"
    )

# Singleton instance
settings = Settings()
