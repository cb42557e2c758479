from datetime import date
from pathlib import Path
from typing import Iterable, List, Optional, Tuple, Union
import pandas as pd
from sqlmodel import Session, select
from eupay.logging import logger
from eupay.models.rates import EcbRate

# Column names accepted for CSV imports: our own export and the ECB data portal
DATE_COLUMNS = ("date", "rate_date", "TIME_PERIOD")
RATE_COLUMNS = ("eur_to_local", "rate", "eur_sek", "OBS_VALUE")


def upsert_rates(session: Session, rows: Iterable[Tuple[date, float]]) -> Tuple[List[date], List[date]]:
    """Insert or overwrite daily rates. Returns (inserted, updated) dates."""
    inserted: List[date] = []
    updated: List[date] = []
    for rate_date, value in rows:
        existing = session.get(EcbRate, rate_date)
        if existing:
            existing.eur_to_local = value
            session.add(existing)
            updated.append(rate_date)
        else:
            session.add(EcbRate(rate_date=rate_date, eur_to_local=value))
            inserted.append(rate_date)
    session.commit()
    logger.info(f"Rates stored: {len(inserted)} inserted, {len(updated)} updated")
    return inserted, updated


def list_rates(
    session: Session,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
) -> List[EcbRate]:
    """Rates in a range (ascending), or the latest 100 when no range is given."""
    if start_date and end_date:
        query = (
            select(EcbRate)
            .where(EcbRate.rate_date >= start_date, EcbRate.rate_date <= end_date)
            .order_by(EcbRate.rate_date)
        )
    else:
        query = select(EcbRate).order_by(EcbRate.rate_date.desc()).limit(100)
    return list(session.exec(query).all())


def _pick_column(df: pd.DataFrame, candidates: Tuple[str, ...]) -> str:
    for name in candidates:
        if name in df.columns:
            return name
    raise ValueError(f"CSV has none of the columns {list(candidates)}; found {list(df.columns)}")


def read_rates_csv(path: Union[str, Path]) -> List[Tuple[date, float]]:
    """
    Parse a daily rate CSV.

    Rows without a numeric rate (the ECB export marks holidays with "-") are
    dropped.
    """
    df = pd.read_csv(path, na_values=["-"], float_precision="round_trip")
    date_col = _pick_column(df, DATE_COLUMNS)
    rate_col = _pick_column(df, RATE_COLUMNS)

    df = df[[date_col, rate_col]].copy()
    df[rate_col] = pd.to_numeric(df[rate_col], errors="coerce")
    df[date_col] = pd.to_datetime(df[date_col], errors="coerce")
    df = df.dropna()

    return [
        (ts.date(), float(value))
        for ts, value in zip(df[date_col], df[rate_col])
    ]


def import_rates_csv(session: Session, path: Union[str, Path]) -> Tuple[List[date], List[date]]:
    rows = read_rates_csv(path)
    logger.info(f"Importing {len(rows)} rates from {path}")
    return upsert_rates(session, rows)
