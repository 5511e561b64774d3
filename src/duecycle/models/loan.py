"""
Loan data models — amortization plans and their installments.

Plans are immutable once generated; a changed rate or term means a new plan.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

from duecycle.models.base import generate_id


class Installment(BaseModel):
    """A single monthly payment in an amortization schedule."""

    model_config = ConfigDict(frozen=True)

    number: int = Field(ge=1)
    due_date: date
    principal: Decimal
    interest: Decimal
    total_payment: Decimal
    remaining_balance: Decimal = Decimal("0.00")


class LoanPlan(BaseModel):
    """A fixed-rate loan and its generated installment schedule."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: generate_id("loan"))
    description: str = ""
    principal: Decimal = Field(gt=0)
    annual_rate: Decimal = Field(ge=0, description="Annual interest rate as a percentage, e.g. 5.5")
    term_months: int = Field(ge=1)
    start_date: date
    installments: tuple[Installment, ...] = ()

    @property
    def monthly_payment(self) -> Decimal:
        if not self.installments:
            return Decimal("0.00")
        return self.installments[0].total_payment

    @property
    def total_interest(self) -> Decimal:
        return sum((i.interest for i in self.installments), Decimal("0.00"))

    @property
    def total_paid(self) -> Decimal:
        return sum((i.total_payment for i in self.installments), Decimal("0.00"))

    @property
    def end_date(self) -> date | None:
        if not self.installments:
            return None
        return self.installments[-1].due_date
