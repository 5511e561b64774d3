"""
duecycle CLI — command-line interface.

Usage:
    duecycle amortize 1200 0 12 --start 2024-01-01
    duecycle amortize 250000 4.5 360 --start 2024-02-01 --output schedule.json
    duecycle preview monthly --start 2024-01-31 --until 2024-06-30
"""

from __future__ import annotations

import json
import logging
from datetime import date, datetime
from pathlib import Path

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from duecycle import __version__
from duecycle.engine.amortization import create_loan_plan
from duecycle.engine.recurrence import RecurrencePattern, iter_occurrences, occurrence_count

app = typer.Typer(
    name="duecycle",
    help="duecycle: recurring obligations, loan schedules and budgets",
    no_args_is_help=True,
    rich_markup_mode="rich",
)
console = Console()


def _version_callback(value: bool) -> None:
    if value:
        console.print(f"[bold]duecycle[/bold] v{__version__}")
        raise typer.Exit()


def _parse_date(value: str) -> date:
    try:
        return datetime.strptime(value, "%Y-%m-%d").date()
    except ValueError as e:
        raise typer.BadParameter(f"Expected YYYY-MM-DD, got '{value}'") from e


@app.callback()
def main(
    version: bool = typer.Option(
        None,
        "--version",
        "-v",
        help="Show version",
        callback=_version_callback,
        is_eager=True,
    ),
    log_level: str = typer.Option(
        "WARNING",
        "--log-level",
        help="Logging level for duecycle loggers",
    ),
) -> None:
    """Expand recurrence rules and loan terms into dated occurrences."""
    logging.basicConfig(
        level=log_level.upper(),
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
    )


@app.command()
def amortize(
    principal: str = typer.Argument(..., help="Loan principal, e.g. 250000.00"),
    rate: str = typer.Argument(..., help="Annual interest rate in percent, e.g. 4.5"),
    term: int = typer.Argument(..., help="Term in months"),
    start: str = typer.Option(
        None,
        "--start",
        "-s",
        help="First due date (YYYY-MM-DD). Defaults to today.",
    ),
    output: str = typer.Option(
        None,
        "--output",
        "-o",
        help="Write the schedule to a .json file instead of printing it",
    ),
) -> None:
    """Print the amortization schedule of a fixed-rate loan."""
    start_date = _parse_date(start) if start else date.today()
    try:
        plan = create_loan_plan("CLI loan", principal, rate, term, start_date)
    except ValueError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1) from e

    if output:
        path = Path(output)
        path.write_text(json.dumps(plan.model_dump(mode="json"), indent=2))
        console.print(f"[green]✓[/green] Schedule saved to [bold]{path}[/bold]")
        return

    console.print(Panel.fit(
        f"[bold blue]Loan schedule[/bold blue] {plan.principal} at {plan.annual_rate}% over {plan.term_months} months",
        subtitle=f"payment {plan.monthly_payment}",
    ))

    table = Table(show_lines=False)
    table.add_column("#", justify="right")
    table.add_column("Due date")
    table.add_column("Principal", justify="right")
    table.add_column("Interest", justify="right")
    table.add_column("Payment", justify="right")
    table.add_column("Balance", justify="right")
    for installment in plan.installments:
        table.add_row(
            str(installment.number),
            installment.due_date.isoformat(),
            f"{installment.principal:,.2f}",
            f"{installment.interest:,.2f}",
            f"{installment.total_payment:,.2f}",
            f"{installment.remaining_balance:,.2f}",
        )
    console.print(table)
    console.print(f"Total interest: [bold]{plan.total_interest:,.2f}[/bold]")


@app.command()
def preview(
    pattern: RecurrencePattern = typer.Argument(..., help="daily, weekly, monthly or yearly"),
    start: str = typer.Option(..., "--start", "-s", help="Anchor date (YYYY-MM-DD)"),
    until: str = typer.Option(..., "--until", "-u", help="Last date to show (YYYY-MM-DD)"),
    interval: int = typer.Option(1, "--interval", "-n", help="Units between occurrences"),
    end: str = typer.Option(None, "--end", "-e", help="Series end date (YYYY-MM-DD)"),
) -> None:
    """List the dates a recurrence rule produces up to a date."""
    start_date = _parse_date(start)
    until_date = _parse_date(until)
    end_date = _parse_date(end) if end else None

    try:
        dates = list(iter_occurrences(pattern, interval, start_date, until_date, end_date))
        count = occurrence_count(pattern, interval, start_date, until_date, end_date)
    except ValueError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1) from e

    for i, on in enumerate(dates, 1):
        console.print(f"  {i:>4}. {on.isoformat()}")
    console.print(f"[bold]{count}[/bold] occurrences up to {until_date.isoformat()}")


if __name__ == "__main__":
    app()
