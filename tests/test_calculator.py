import threading
import time
import pytest
from datetime import date
from decimal import Decimal
from sqlmodel import Session, select
from eupay.config import settings
from eupay.models.entry import Allocation
from eupay.models.payment import Payment, RateUsageType
from eupay.models.staff import FTEInterval
from eupay.payroll import calculator
from eupay.payroll.calculator import (
    CalculationInput, calculate_and_store, calculate_salary, run_calculation, staff_lock,
)
from eupay.payroll.non_eu import compute_non_eu_portion
from eupay.payroll.recorder import previous_payments
from eupay.records import PeriodSpec, create_project, create_staff, upsert_entry
from eupay.seed import seed_demo_data


def _payments(engine):
    with Session(engine) as s:
        return list(s.exec(select(Payment).order_by(Payment.id)).all())


@pytest.fixture
def full_timer(session):
    return create_staff(session, "Full Timer", None, [
        FTEInterval(from_date=date(2025, 1, 1), to_date=None, percentage=1.0),
    ])


@pytest.fixture
def project(session):
    return create_project(session, "Alpha", "ALPHA", date(2025, 1, 1), [
        PeriodSpec(period_number=1, start_date=date(2025, 1, 1), end_date=date(2025, 12, 31)),
    ])


# ---------------------------------------------------------------------------
# Non-EU portion
# ---------------------------------------------------------------------------
def test_non_eu_scenario(session, add_rates, full_timer):
    add_rates(date(2025, 3, 1), date(2025, 3, 31), 10.30, weekdays_only=True)
    upsert_entry(session, full_timer.id, 2025, 3, [], non_eu_days=5)

    result = calculate_salary(
        session, CalculationInput(staff_id=full_timer.id, year=2025, month=3), today=date(2025, 3, 31)
    )

    assert float(result.non_eu_eur_amount) == pytest.approx(2222.22, abs=0.01)
    assert float(result.non_eu_portion_local) == pytest.approx(22888.89, abs=0.01)
    assert result.eu_portion_local == 0
    assert result.gross_local == result.non_eu_portion_local
    assert len(result.rates_used) == 1
    usage = result.rates_used[0]
    assert usage.type == RateUsageType.NON_EU
    assert usage.rate == Decimal("10.3")
    assert usage.rate_source == "ECB average for 2025-03"
    assert result.calculation_breakdown.non_eu_calculation.days == Decimal(5)


def test_non_eu_zero_days(session):
    portion = compute_non_eu_portion(session, 1, 2025, 3, 0, Decimal(1))
    assert portion.eur_amount == 0
    assert portion.local_amount == 0
    assert portion.breakdown is None
    assert portion.rate_usage is None


def test_non_eu_uses_only_current_month(session, add_rates):
    add_rates(date(2025, 2, 1), date(2025, 2, 28), 20.0)
    add_rates(date(2025, 3, 1), date(2025, 3, 31), 10.0)
    portion = compute_non_eu_portion(session, 1, 2025, 3, 9, Decimal("0.5"))
    assert portion.rate == Decimal(10)
    assert portion.eur_amount == Decimal(2000)
    assert portion.local_amount == Decimal(20000)


def test_eu_and_non_eu_combined(session, add_rates, full_timer, project):
    add_rates(date(2025, 1, 1), date(2025, 2, 28), 10.0)
    add_rates(date(2025, 3, 1), date(2025, 3, 31), 11.0)
    upsert_entry(session, full_timer.id, 2025, 3,
                 [Allocation(project_id=project.id, period_number=1, days=9)], non_eu_days=4.5)

    result = calculate_salary(
        session, CalculationInput(staff_id=full_timer.id, year=2025, month=3), today=date(2025, 3, 31)
    )

    assert result.eu_eur_amount == Decimal(4000)
    assert result.non_eu_eur_amount == Decimal(2000)
    assert result.total_eur_claimable == Decimal(6000)
    assert result.non_eu_portion_local == Decimal(22000)
    assert result.gross_local == result.eu_portion_local + result.non_eu_portion_local
    assert [u.type for u in result.rates_used] == [RateUsageType.PROJECT, RateUsageType.NON_EU]
    # Weighted rate only covers EU work
    assert float(result.cumulative_avg_rate) == pytest.approx(float(result.rates_used[0].rate))


# ---------------------------------------------------------------------------
# Request / response surface
# ---------------------------------------------------------------------------
def test_run_calculation_stores_payment(engine, session):
    ids = seed_demo_data(session)

    response = run_calculation(
        engine, {"staff_id": ids["staff_id"], "year": 2025, "month": 12}, today=date(2025, 12, 31)
    )

    assert response["success"] is True
    assert float(response["eu_eur_amount"]) == pytest.approx(2933.33, abs=0.01)
    assert response["non_eu_eur_amount"] == "0"
    assert len(response["rates_used"]) == 2
    assert response["calculation_breakdown"]["period_start_date"] == "2025-07-01"

    stored = _payments(engine)
    assert [p.id for p in stored] == [response["payment_id"]]
    payment = stored[0]
    assert payment.staff_id == ids["staff_id"]
    assert payment.currency == "SEK"
    assert payment.gross_local == pytest.approx(float(response["gross_local"]))
    assert [u.project_id for u in payment.rates_used] == ids["project_ids"]
    assert payment.rates_used[0].eur_amount == Decimal(response["rates_used"][0]["eur_amount"])
    assert payment.calculation_breakdown.eligible_days == 18
    assert len(payment.calculation_breakdown.eu_calculation_steps) == 2


def test_dry_run_writes_nothing(engine, session):
    ids = seed_demo_data(session)
    response = run_calculation(
        engine, {"staff_id": ids["staff_id"], "year": 2025, "month": 12},
        today=date(2025, 12, 31), store=False,
    )
    assert response["success"] is True
    assert response["payment_id"] is None
    assert _payments(engine) == []


def test_unknown_staff(engine):
    response = run_calculation(engine, {"staff_id": 99, "year": 2025, "month": 12})
    assert response == {"success": False, "error": "Staff not found: 99"}


def test_missing_entry(engine, full_timer):
    response = run_calculation(engine, {"staff_id": full_timer.id, "year": 2025, "month": 5})
    assert response == {"success": False, "error": f"No entry found for staff {full_timer.id}, 2025-5"}


def test_missing_rates_writes_nothing(engine, session, full_timer, project):
    upsert_entry(session, full_timer.id, 2025, 3, [Allocation(project_id=project.id, period_number=1, days=2)])

    response = run_calculation(
        engine, {"staff_id": full_timer.id, "year": 2025, "month": 3}, today=date(2025, 3, 31)
    )

    assert response["success"] is False
    assert response["error"] == "No ECB rates found between 2025-01-01 and 2025-03-31"
    assert _payments(engine) == []


def test_invalid_request(engine):
    response = run_calculation(engine, {"staff_id": 1, "year": 2025, "month": 13})
    assert response["success"] is False
    assert response["error"] == "Invalid request: month: Input should be less than or equal to 12"


def test_invalid_request_reports_one_line(engine):
    response = run_calculation(engine, {"staff_id": "abc"})
    assert response["success"] is False
    assert response["error"].startswith("Invalid request: staff_id: ")
    assert response["error"].endswith("(and 2 more)")
    assert "\n" not in response["error"]


# ---------------------------------------------------------------------------
# Recalculation and duplicate payments
# ---------------------------------------------------------------------------
@pytest.fixture
def two_months(session, add_rates, full_timer, project):
    add_rates(date(2025, 1, 1), date(2025, 2, 28), 10.0)
    for month in (1, 2):
        upsert_entry(session, full_timer.id, 2025, month,
                     [Allocation(project_id=project.id, period_number=1, days=9)])
    return full_timer.id


def _calc(engine, staff_id, month, **kwargs):
    today = date(2025, 1, 31) if month == 1 else date(2025, 2, 28)
    return run_calculation(engine, {"staff_id": staff_id, "year": 2025, "month": month}, today=today, **kwargs)


def _strip(response):
    return {k: v for k, v in response.items() if k not in ("calc_id", "payment_id")}


def test_duplicate_payments_skew_next_month(engine, two_months):
    staff_id = two_months
    first = _calc(engine, staff_id, 1)
    second = _calc(engine, staff_id, 1)

    # Same month recalculated: earlier rows for that month are not "prior"
    assert _strip(first) == _strip(second)
    assert float(first["eu_portion_local"]) == pytest.approx(40000)
    assert len(_payments(engine)) == 2

    with_duplicate = _calc(engine, staff_id, 2, store=False)

    with Session(engine) as s:
        s.delete(s.get(Payment, second["payment_id"]))
        s.commit()
    purged = _calc(engine, staff_id, 2, store=False)

    # (72000 / 17) EUR at 10.0 less what was paid for January
    assert float(purged["eu_portion_local"]) == pytest.approx(2352.94, abs=0.01)
    assert float(with_duplicate["eu_portion_local"]) == pytest.approx(2352.94 - 40000, abs=0.01)
    assert _strip(with_duplicate) != _strip(purged)


def test_reject_policy(engine, two_months, monkeypatch):
    monkeypatch.setattr(settings, "DUPLICATE_PAYMENT_POLICY", "reject")
    staff_id = two_months
    assert _calc(engine, staff_id, 1)["success"] is True

    response = _calc(engine, staff_id, 1)

    assert response["success"] is False
    assert response["error"].startswith(f"Payment already recorded for staff {staff_id}, 2025-1")
    assert len(_payments(engine)) == 1


def test_supersede_policy(engine, two_months, monkeypatch):
    monkeypatch.setattr(settings, "DUPLICATE_PAYMENT_POLICY", "supersede")
    staff_id = two_months
    first = _calc(engine, staff_id, 1)
    second = _calc(engine, staff_id, 1)

    rows = _payments(engine)
    assert [p.id for p in rows] == [first["payment_id"], second["payment_id"]]
    assert rows[0].superseded_by_id == second["payment_id"]
    assert rows[1].superseded_by_id is None

    with Session(engine) as s:
        assert [p.id for p in previous_payments(s, staff_id, 2025, 2)] == [second["payment_id"]]

    february = _calc(engine, staff_id, 2, store=False)
    assert float(february["eu_portion_local"]) == pytest.approx(2352.94, abs=0.01)


def test_non_eu_month_reports_eu_paid_to_date(engine, session, two_months):
    staff_id = two_months
    january = _calc(engine, staff_id, 1)
    assert float(january["eu_portion_local"]) == pytest.approx(40000)
    upsert_entry(session, staff_id, 2025, 2, [], non_eu_days=5)

    result, payment_id = calculate_and_store(
        engine, CalculationInput(staff_id=staff_id, year=2025, month=2), today=date(2025, 2, 28)
    )

    assert result.cumulative_local_paid_to_date == 40000
    assert result.eu_portion_local == 0
    assert float(result.non_eu_portion_local) == pytest.approx(23529.41, abs=0.01)
    assert result.gross_local == result.non_eu_portion_local
    assert result.calculation_breakdown.gross_calculation.startswith("(0.00) + ")
    with Session(engine) as s:
        assert s.get(Payment, payment_id).cumulative_local_paid_to_date == pytest.approx(40000)


def test_calculate_and_store_returns_result_and_id(engine, two_months):
    result, payment_id = calculate_and_store(
        engine, CalculationInput(staff_id=two_months, year=2025, month=1), today=date(2025, 1, 31)
    )
    assert result.eu_eur_amount == Decimal(4000)
    assert payment_id == _payments(engine)[0].id


# ---------------------------------------------------------------------------
# Per-staff serialisation
# ---------------------------------------------------------------------------
def test_staff_lock_serialises_same_staff():
    order = []
    entered = threading.Event()
    release = threading.Event()

    def first():
        with staff_lock(1):
            entered.set()
            release.wait(timeout=5)
            order.append("first")

    def second():
        entered.wait(timeout=5)
        with staff_lock(1):
            order.append("second")

    t1 = threading.Thread(target=first)
    t2 = threading.Thread(target=second)
    t1.start()
    t2.start()
    entered.wait(timeout=5)
    time.sleep(0.05)
    assert order == []
    release.set()
    t1.join(timeout=5)
    t2.join(timeout=5)
    assert order == ["first", "second"]
    assert 1 not in calculator._locks


def test_staff_lock_other_staff_not_blocked():
    with staff_lock(1):
        acquired = threading.Event()

        def other():
            with staff_lock(2):
                acquired.set()

        t = threading.Thread(target=other)
        t.start()
        assert acquired.wait(timeout=2)
        t.join(timeout=2)


def test_staff_lock_registry_drops_released_locks():
    with staff_lock(42):
        with staff_lock(43):
            assert {42, 43} <= set(calculator._locks)
        assert 43 not in calculator._locks
        assert 42 in calculator._locks
    assert 42 not in calculator._locks
    assert 42 not in calculator._lock_users
