"""
Budget models — a spending limit over a period and category set, plus the
results the utilization aggregator derives from it.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum

from pydantic import BaseModel, Field, field_validator, model_validator

from duecycle.models.base import generate_id, to_cents


class Budget(BaseModel):
    """A budgeted amount for a set of category tags over ``[start_date, end_date]``."""

    id: str = Field(default_factory=lambda: generate_id("bud"))
    name: str
    amount: Decimal = Field(ge=0)
    start_date: date
    end_date: date
    tag_ids: set[str] = Field(default_factory=set)

    @field_validator("amount")
    @classmethod
    def _round_amount(cls, value: Decimal) -> Decimal:
        return to_cents(value)

    @model_validator(mode="after")
    def _check_period(self) -> Budget:
        if self.start_date > self.end_date:
            raise ValueError(f"start_date {self.start_date} is after end_date {self.end_date}")
        return self

    def covers(self, on: date) -> bool:
        return self.start_date <= on <= self.end_date


class AlertType(str, Enum):
    OVER_BUDGET = "over_budget"
    APPROACHING_LIMIT = "approaching_limit"
    BUDGET_EXPIRING = "budget_expiring"


class AlertSeverity(str, Enum):
    INFO = "info"
    WARNING = "warning"
    CRITICAL = "critical"


@dataclass
class BudgetUtilization:
    """Spend against a budget. Derived, never stored."""

    budget_id: str
    budget_name: str
    budgeted: Decimal
    spent: Decimal
    remaining: Decimal
    utilization_percent: Decimal
    is_over_budget: bool
    period_start: date
    period_end: date
    occurrence_count: int = 0


@dataclass
class BudgetAlert:
    """An alert about a budget's status."""

    budget_name: str
    alert_type: AlertType
    severity: AlertSeverity
    message: str
    alert_date: date


@dataclass
class BudgetReport:
    """Utilization and alerts for a set of budgets."""

    report_date: date
    utilizations: list[BudgetUtilization] = field(default_factory=list)
    alerts: list[BudgetAlert] = field(default_factory=list)

    @property
    def total_budgeted(self) -> Decimal:
        return sum((u.budgeted for u in self.utilizations), Decimal("0.00"))

    @property
    def total_spent(self) -> Decimal:
        return sum((u.spent for u in self.utilizations), Decimal("0.00"))

    @property
    def total_remaining(self) -> Decimal:
        return self.total_budgeted - self.total_spent

    @property
    def over_budget_count(self) -> int:
        return sum(1 for u in self.utilizations if u.is_over_budget)
