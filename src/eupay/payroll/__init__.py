from eupay.payroll.policy import fte_at, eligible_days, fte_reference_date, to_decimal
from eupay.payroll.rates import average_rate, month_average_rate
from eupay.payroll.truing import compute_eu_portion, cumulative_truing, EUPortion
from eupay.payroll.non_eu import compute_non_eu_portion, NonEUPortion
from eupay.payroll.recorder import store_payment, previous_payments
from eupay.payroll.calculator import (
    CalculationInput,
    CalculationResult,
    calculate_salary,
    calculate_and_store,
    run_calculation,
)

__all__ = [
    "fte_at",
    "eligible_days",
    "fte_reference_date",
    "to_decimal",
    "average_rate",
    "month_average_rate",
    "compute_eu_portion",
    "cumulative_truing",
    "EUPortion",
    "compute_non_eu_portion",
    "NonEUPortion",
    "store_payment",
    "previous_payments",
    "CalculationInput",
    "CalculationResult",
    "calculate_salary",
    "calculate_and_store",
    "run_calculation",
]
