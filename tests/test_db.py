import threading
import pytest
from datetime import date
from sqlmodel import Session, select
from eupay.config import settings
from eupay.db import begin_write, create_db_engine, init_db
from eupay.errors import DuplicatePaymentError
from eupay.models.payment import Payment
from eupay.models.staff import Staff
from eupay.payroll.calculator import CalculationInput, calculate_and_store
from eupay.seed import seed_demo_data


# Two engines on one file stand in for two `eupay calculate` processes
@pytest.fixture
def file_engines(tmp_path):
    url = f"sqlite:///{tmp_path / 'nested' / 'eupay.db'}"
    holder = create_db_engine(url)
    worker = create_db_engine(url)
    init_db(holder)
    yield holder, worker
    holder.dispose()
    worker.dispose()


def test_create_db_engine_makes_data_dir(tmp_path):
    engine = create_db_engine(f"sqlite:///{tmp_path / 'data' / 'eupay.db'}")
    init_db(engine)
    assert (tmp_path / "data").is_dir()
    engine.dispose()


def test_plain_sessions_still_read_and_write(file_engines):
    holder, worker = file_engines
    with Session(holder) as s:
        s.add(Staff(name="Reader"))
        s.commit()
    with Session(worker) as s:
        assert [st.name for st in s.exec(select(Staff)).all()] == ["Reader"]


def test_calculation_waits_for_other_writer(file_engines):
    holder, worker = file_engines
    with Session(holder) as s:
        staff_id = seed_demo_data(s)["staff_id"]

    finished = threading.Event()
    results = []

    def calculate():
        results.append(calculate_and_store(
            worker, CalculationInput(staff_id=staff_id, year=2025, month=12), today=date(2025, 12, 31)
        ))
        finished.set()

    with Session(holder) as s:
        begin_write(s)
        thread = threading.Thread(target=calculate)
        thread.start()
        # Blocked on BEGIN IMMEDIATE, before reading any prior payment
        assert not finished.wait(timeout=0.5)
        s.commit()

    assert finished.wait(timeout=10)
    thread.join(timeout=5)
    _, payment_id = results[0]
    with Session(holder) as s:
        assert [p.id for p in s.exec(select(Payment)).all()] == [payment_id]


def test_reject_policy_holds_across_engines(file_engines, monkeypatch):
    monkeypatch.setattr(settings, "DUPLICATE_PAYMENT_POLICY", "reject")
    holder, worker = file_engines
    with Session(holder) as s:
        staff_id = seed_demo_data(s)["staff_id"]
    calc_input = CalculationInput(staff_id=staff_id, year=2025, month=12)

    outcomes = []

    def calculate(engine):
        try:
            outcomes.append(calculate_and_store(engine, calc_input, today=date(2025, 12, 31)))
        except DuplicatePaymentError as e:
            outcomes.append(e)

    threads = [threading.Thread(target=calculate, args=(e,)) for e in (holder, worker)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=10)

    assert len(outcomes) == 2
    assert sum(isinstance(o, DuplicatePaymentError) for o in outcomes) == 1
    with Session(holder) as s:
        assert len(s.exec(select(Payment)).all()) == 1
