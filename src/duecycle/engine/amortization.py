"""
Amortization calculator — fixed-payment loan schedules.

Uses the standard PMT formula::

    M = P * r * (1 + r)^n / ((1 + r)^n - 1)

where ``r`` is the monthly rate (annual percentage / 1200) and ``n`` the term
in months. Every installment's interest is rounded half-up to cents
independently, so the rounding drift is absorbed by the final installment,
whose principal is forced to the outstanding balance. The sum of principal
components therefore always equals the original principal to the cent.
"""

from __future__ import annotations

import logging
from datetime import date
from decimal import Decimal

from dateutil.relativedelta import relativedelta

from duecycle.models.base import to_cents
from duecycle.models.loan import Installment, LoanPlan

logger = logging.getLogger("duecycle.engine.amortization")

_ZERO = Decimal("0.00")
_MONTHS_TIMES_PERCENT = Decimal(1200)


def _as_decimal(value: Decimal | int | float | str) -> Decimal:
    return value if isinstance(value, Decimal) else Decimal(str(value))


def _validate(principal: Decimal, annual_rate_percent: Decimal, term_months: int) -> None:
    if principal <= 0:
        raise ValueError(f"Principal must be positive, got {principal}")
    if annual_rate_percent < 0:
        raise ValueError(f"Interest rate cannot be negative, got {annual_rate_percent}")
    if term_months < 1:
        raise ValueError(f"Term must be at least one month, got {term_months}")


def monthly_payment(
    principal: Decimal | int | float | str,
    annual_rate_percent: Decimal | int | float | str,
    term_months: int,
) -> Decimal:
    """Fixed monthly payment, rounded to cents.

    A zero rate is straight-line repayment (``principal / term``); the PMT
    formula would divide by zero.
    """
    principal = _as_decimal(principal)
    annual_rate_percent = _as_decimal(annual_rate_percent)
    _validate(principal, annual_rate_percent, term_months)

    rate = annual_rate_percent / _MONTHS_TIMES_PERCENT
    if rate == 0:
        return to_cents(principal / term_months)

    growth = (1 + rate) ** term_months
    return to_cents(principal * rate * growth / (growth - 1))


def generate_schedule(
    principal: Decimal | int | float | str,
    annual_rate_percent: Decimal | int | float | str,
    term_months: int,
    start_date: date,
) -> list[Installment]:
    """Build the ordered installment schedule for a fixed-rate loan.

    Args:
        principal: Amount borrowed.
        annual_rate_percent: Nominal annual rate as a percentage (``5`` is 5%).
        term_months: Number of monthly installments.
        start_date: Due date of the first installment. Later due dates are
            whole calendar months after it.

    Returns:
        Exactly ``term_months`` installments.
    """
    principal = to_cents(_as_decimal(principal))
    annual_rate_percent = _as_decimal(annual_rate_percent)
    _validate(principal, annual_rate_percent, term_months)

    rate = annual_rate_percent / _MONTHS_TIMES_PERCENT
    payment = monthly_payment(principal, annual_rate_percent, term_months)
    remaining = principal
    schedule: list[Installment] = []

    for number in range(1, term_months + 1):
        due_date = start_date + relativedelta(months=number - 1)

        if remaining <= 0:
            # Paid off early by rounding: nothing left to split
            principal_part = _ZERO
            interest = _ZERO
        else:
            interest = to_cents(remaining * rate)
            principal_part = min(max(payment - interest, _ZERO), remaining)

        if number == term_months:
            principal_part = remaining

        remaining -= principal_part
        schedule.append(Installment(
            number=number,
            due_date=due_date,
            principal=principal_part,
            interest=interest,
            total_payment=principal_part + interest,
            remaining_balance=remaining,
        ))

    logger.debug(
        "Generated %d installments for %s at %s%% (payment %s)",
        term_months,
        principal,
        annual_rate_percent,
        payment,
    )
    return schedule


def create_loan_plan(
    description: str,
    principal: Decimal | int | float | str,
    annual_rate_percent: Decimal | int | float | str,
    term_months: int,
    start_date: date,
) -> LoanPlan:
    """Generate a schedule and wrap it in an immutable :class:`LoanPlan`."""
    installments = generate_schedule(principal, annual_rate_percent, term_months, start_date)
    return LoanPlan(
        description=description,
        principal=to_cents(_as_decimal(principal)),
        annual_rate=_as_decimal(annual_rate_percent),
        term_months=term_months,
        start_date=start_date,
        installments=tuple(installments),
    )


def remaining_balance(plan: LoanPlan, as_of: date) -> Decimal:
    """Balance still owed after every installment due on or before ``as_of``."""
    balance = plan.principal
    for installment in plan.installments:
        if installment.due_date > as_of:
            break
        balance = installment.remaining_balance
    return balance
