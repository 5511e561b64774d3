"""Data models for obligations, occurrences, loans, budgets and tags."""

from duecycle.engine.recurrence import RecurrencePattern
from duecycle.engine.state import ProcessingState
from duecycle.models.budget import (
    AlertSeverity,
    AlertType,
    Budget,
    BudgetAlert,
    BudgetReport,
    BudgetUtilization,
)
from duecycle.models.loan import Installment, LoanPlan
from duecycle.models.obligation import Obligation, Occurrence
from duecycle.models.tags import Tag

__all__ = [
    "AlertSeverity",
    "AlertType",
    "Budget",
    "BudgetAlert",
    "BudgetReport",
    "BudgetUtilization",
    "Installment",
    "LoanPlan",
    "Obligation",
    "Occurrence",
    "ProcessingState",
    "RecurrencePattern",
    "Tag",
]
