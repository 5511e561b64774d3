"""
Example: Plan a household's recurring bills, a car loan and a monthly budget.

Run:
    python examples/household/run_schedule.py

Run (persist to SQLite instead of memory):
    python examples/household/run_schedule.py --sqlite household.db

Or via CLI:
    duecycle amortize 18000 6.9 48 --start 2024-02-01
    duecycle preview monthly --start 2024-01-31 --until 2024-12-31
"""

import sys
from datetime import date

from duecycle import ObligationEngine
from duecycle.engine.recurrence import RecurrencePattern
from duecycle.models import Budget, Tag
from duecycle.store import FixedClock, InMemoryTagCatalog


def main() -> None:
    overrides = {}
    if "--sqlite" in sys.argv:
        path = sys.argv[sys.argv.index("--sqlite") + 1]
        overrides["store"] = {"type": "sql", "url": f"sqlite:///{path}"}

    catalog = InMemoryTagCatalog([
        Tag(id="home", name="Home"),
        Tag(id="rent", name="Rent", parent_id="home"),
        Tag(id="utilities", name="Utilities", parent_id="home"),
        Tag(id="transport", name="Transport"),
        Tag(id="car-loan", name="Car loan", parent_id="transport"),
        Tag(id="salary", name="Salary"),
    ])
    engine = ObligationEngine.from_config(
        None,
        tag_catalog=catalog,
        clock=FixedClock(date(2024, 1, 1)),
        **overrides,
    )

    # Recurring bills and income
    engine.create_obligation("Rent", "1150.00", date(2024, 1, 31), tag_ids={"rent"})
    engine.create_obligation(
        "Electricity", "85.00", date(2024, 1, 10), pattern=RecurrencePattern.MONTHLY, interval=2, tag_ids={"utilities"}
    )
    engine.create_obligation("Salary", "3400.00", date(2024, 1, 25), is_income=True, tag_ids={"salary"})
    engine.materialize_all(horizon=date(2024, 6, 30))

    # Car loan
    plan = engine.create_loan_plan("Car", "18000.00", "6.9", 48, date(2024, 2, 1))
    engine.book_loan_plan(plan, tag_ids={"car-loan"})
    print(f"Car loan: {plan.term_months} payments of {plan.monthly_payment}, total interest {plan.total_interest}")

    print("\nDue in February 2024:")
    for occurrence in engine.due_between(date(2024, 2, 1), date(2024, 2, 29)):
        sign = "+" if occurrence.is_income else "-"
        print(f"  {occurrence.date}  {sign}{occurrence.amount:>9}  {occurrence.description}")

    totals = engine.totals_for_period(date(2024, 1, 1), date(2024, 6, 30))
    print(f"\nFirst half of 2024: income {totals['income']}, expenses {totals['expenses']}, net {totals['net']}")

    budgets = [
        Budget(name="Home", amount="1200.00", start_date=date(2024, 3, 1), end_date=date(2024, 3, 31), tag_ids={"home"}),
        Budget(
            name="Transport", amount="400.00", start_date=date(2024, 3, 1), end_date=date(2024, 3, 31), tag_ids={"transport"}
        ),
    ]
    report = engine.budget_report(budgets, today=date(2024, 3, 26))
    print("\nMarch budgets:")
    for u in report.utilizations:
        flag = "OVER" if u.is_over_budget else "ok"
        print(f"  {u.budget_name:<10} {u.spent:>9} / {u.budgeted:<9} {u.utilization_percent:>7}%  {flag}")
    for alert in report.alerts:
        print(f"  [{alert.severity.value.upper()}] {alert.message}")


if __name__ == "__main__":
    main()
