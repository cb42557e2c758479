import json
import sys
from datetime import date
from pathlib import Path
from typing import Optional
import typer
from sqlmodel import Session
from eupay.config import settings
from eupay.logging import logger

app = typer.Typer(no_args_is_help=True)


def _engine():
    from eupay.db import create_db_engine, init_db
    engine = create_db_engine()
    init_db(engine)
    return engine


def _parse_date(value: str) -> date:
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise typer.BadParameter(f"expected YYYY-MM-DD, got {value!r}")


@app.callback()
def main():
    """
    EU project salary calculator with cumulative exchange-rate truing.
    """
    pass

@app.command(name="doctor")
def doctor():
    """
    Check configuration and environment health.
    """
    from eupay.db import default_db_url
    logger.info("Running doctor check...")

    print("\n🩺 EU Payroll Doctor\n")

    print(f"Python: {sys.version.split()[0]}")
    print(f"Prefix: {sys.prefix}")

    print("\n[Configuration]")
    print(f"DATABASE_URL:             {default_db_url()}")
    print(f"LOG_LEVEL:                {settings.LOG_LEVEL}")
    print(f"LOCAL_CURRENCY:           {settings.LOCAL_CURRENCY}")
    print(f"PERSON_MONTH_RATE_EUR:    {settings.PERSON_MONTH_RATE_EUR}")
    print(f"FTE_REFERENCE_DAY:        {settings.FTE_REFERENCE_DAY}")
    print(f"ELIGIBLE_DAYS_DEFAULT:    {settings.ELIGIBLE_DAYS_DEFAULT}")
    print(f"ELIGIBLE_DAYS_BY_MONTH:   {settings.ELIGIBLE_DAYS_BY_MONTH}")
    print(f"DUPLICATE_PAYMENT_POLICY: {settings.DUPLICATE_PAYMENT_POLICY}")

    data_dir = Path(settings.DATA_DIR)
    if data_dir.exists() and data_dir.is_dir():
        print(f"\n[Data Directory]          ✅ Found: {data_dir.absolute()}")
    else:
        print(f"\n[Data Directory]          ❌ Missing: {data_dir.absolute()} (created on `db init`)")

    print("\nDoctor check complete.")


db_app = typer.Typer(help="Database management commands.")
app.add_typer(db_app, name="db")

@db_app.command("init")
def init():
    """Initialize the database tables."""
    try:
        _engine()
        logger.info("Database initialized successfully.")
        print("✅ Database initialized.")
    except Exception as e:
        logger.error(f"Failed to initialize database: {e}")
        print(f"❌ Failed: {e}")
        raise typer.Exit(code=1)

@db_app.command("seed")
def seed():
    """Load the demo staff member, projects, rates and December 2025 entry."""
    from eupay.seed import seed_demo_data
    engine = _engine()
    with Session(engine) as session:
        ids = seed_demo_data(session)
    print(f"✅ Seeded. Staff ID {ids['staff_id']}, projects {ids['project_ids']}.")
    print("   Try: eupay calculate {} 2025 12 --today 2025-12-31".format(ids["staff_id"]))


staff_app = typer.Typer(help="Staff records.")
app.add_typer(staff_app, name="staff")

@staff_app.command("list")
def staff_list():
    """List staff with their FTE history."""
    from eupay.records import list_staff
    with Session(_engine()) as session:
        people = list_staff(session)
        if not people:
            print("No staff found.")
            return
        for s in people:
            history = ", ".join(
                f"{i.from_date}→{i.to_date or 'open'} {i.percentage:.0%}" for i in s.fte_history
            )
            print(f"[{s.id}] {s.name} <{s.email or '-'}> FTE: {history}")

@staff_app.command("add")
def staff_add(
    name: str,
    email: Optional[str] = typer.Option(None, help="Contact email"),
    fte: float = typer.Option(1.0, min=0.0, max=1.0, help="FTE percentage as a fraction"),
    from_date: str = typer.Option("2020-01-01", "--from", help="FTE valid from (YYYY-MM-DD)"),
):
    """Add a staff member with a single open-ended FTE interval."""
    from eupay.models.staff import FTEInterval
    from eupay.records import create_staff
    interval = FTEInterval(from_date=_parse_date(from_date), to_date=None, percentage=fte)
    with Session(_engine()) as session:
        staff = create_staff(session, name, email, [interval])
        print(f"✅ Created staff {staff.id}: {staff.name}")


rates_app = typer.Typer(help="ECB exchange rates.")
app.add_typer(rates_app, name="rates")

@rates_app.command("import")
def rates_import(path: Path = typer.Argument(..., exists=True, dir_okay=False)):
    """Import daily EUR rates from a CSV (date,rate or ECB TIME_PERIOD,OBS_VALUE)."""
    from eupay.records import import_rates_csv
    try:
        with Session(_engine()) as session:
            inserted, updated = import_rates_csv(session, path)
    except ValueError as e:
        logger.error(f"Rate import failed: {e}")
        print(f"❌ Failed: {e}")
        raise typer.Exit(code=1)
    print(f"✅ {len(inserted)} inserted, {len(updated)} updated.")

@rates_app.command("average")
def rates_average(start: str, end: str):
    """Average rate over an inclusive date range."""
    from eupay.errors import NoRateDataError
    from eupay.payroll import average_rate
    with Session(_engine()) as session:
        try:
            avg = average_rate(session, _parse_date(start), _parse_date(end))
        except NoRateDataError as e:
            print(f"❌ {e}")
            raise typer.Exit(code=1)
    print(f"{start} → {end}: {avg:.6f} {settings.LOCAL_CURRENCY}/EUR")


@app.command("calculate")
def calculate(
    staff_id: int,
    year: int,
    month: int,
    dry_run: bool = typer.Option(False, "--dry-run", help="Compute without storing a payment"),
    today: Optional[str] = typer.Option(None, help="Calculation date (YYYY-MM-DD), defaults to today"),
    as_json: bool = typer.Option(False, "--json", help="Print the full response as JSON"),
):
    """Calculate (and store) the payment for a staff member and month."""
    from eupay.payroll import run_calculation
    calc_date = _parse_date(today) if today else None
    response = run_calculation(
        _engine(),
        {"staff_id": staff_id, "year": year, "month": month},
        today=calc_date,
        store=not dry_run,
    )

    if as_json:
        print(json.dumps(response, indent=2))
    if not response["success"]:
        if not as_json:
            print(f"❌ {response['error']}")
        raise typer.Exit(code=1)
    if as_json:
        return

    currency = response["calculation_breakdown"]["currency"]
    print(f"\n💶 Payment for staff {staff_id}, {year}-{month:02d}\n")
    for step in response["calculation_breakdown"]["eu_calculation_steps"]:
        print(f"  {step['project_name']} P{step['period_number']}: {step['eur_calculation']}")
        print(f"      truing: {step['truing_calculation']} {currency}")
    non_eu = response["calculation_breakdown"]["non_eu_calculation"]
    if non_eu:
        print(f"  Non-EU: {non_eu['eur_calculation']}")
        print(f"      {non_eu['local_calculation']} {currency}")
    print(f"\n  EU portion:     {float(response['eu_portion_local']):>12,.2f} {currency}")
    print(f"  Non-EU portion: {float(response['non_eu_portion_local']):>12,.2f} {currency}")
    print(f"  Gross:          {float(response['gross_local']):>12,.2f} {currency}")
    if response["payment_id"] is not None:
        print(f"\n✅ Stored as payment {response['payment_id']}.")
    else:
        print("\n(dry run, nothing stored)")


payments_app = typer.Typer(help="Stored payments.")
app.add_typer(payments_app, name="payments")

@payments_app.command("list")
def payments_list(
    limit: int = typer.Option(10, help="Number of payments to show"),
    staff_id: Optional[int] = typer.Option(None, help="Only this staff member"),
):
    """Show the most recent payments."""
    from eupay.records import list_payments
    with Session(_engine()) as session:
        payments = list_payments(session, limit=limit, staff_id=staff_id)
        if not payments:
            print("No payments found.")
            return
        for p in payments:
            marker = f" (superseded by {p.superseded_by_id})" if p.superseded_by_id else ""
            created = p.created_at.strftime("%Y-%m-%d %H:%M")
            print(
                f"[{p.id}] staff {p.staff_id} {p.year}-{p.month:02d} "
                f"gross {p.gross_local:,.2f} {p.currency} "
                f"(EU {p.eu_portion_local:,.2f}, non-EU {p.non_eu_portion_local:,.2f}) "
                f"created {created}{marker}"
            )

if __name__ == "__main__":
    app()
