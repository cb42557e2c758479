from eupay.records.staff import create_staff, get_staff, list_staff, update_staff, delete_staff
from eupay.records.projects import (
    PeriodSpec, create_project, get_project, list_projects,
    list_periods, get_period, update_project, delete_project,
)
from eupay.records.entries import upsert_entry, get_entry, list_entries, delete_entry, entry_warnings
from eupay.records.rates import upsert_rates, list_rates, read_rates_csv, import_rates_csv
from eupay.records.payments import list_payments, get_payment

__all__ = [
    "create_staff", "get_staff", "list_staff", "update_staff", "delete_staff",
    "PeriodSpec", "create_project", "get_project", "list_projects",
    "list_periods", "get_period", "update_project", "delete_project",
    "upsert_entry", "get_entry", "list_entries", "delete_entry", "entry_warnings",
    "upsert_rates", "list_rates", "read_rates_csv", "import_rates_csv",
    "list_payments", "get_payment",
]
