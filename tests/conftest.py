import pytest
from datetime import date, timedelta
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine
from eupay import models  # noqa: F401
from eupay.models.rates import EcbRate


# In-memory DB shared by every session opened on the engine
@pytest.fixture(name="engine")
def engine_fixture():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture(name="session")
def session_fixture(engine):
    with Session(engine) as session:
        yield session


@pytest.fixture
def add_rates(session):
    """Store the same rate for every day (or weekday) in [start, end]."""
    def _add(start: date, end: date, value: float, weekdays_only: bool = False):
        d = start
        while d <= end:
            if not weekdays_only or d.weekday() < 5:
                session.add(EcbRate(rate_date=d, eur_to_local=value))
            d += timedelta(days=1)
        session.commit()
    return _add
