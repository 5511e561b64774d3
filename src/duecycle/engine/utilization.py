"""
Budget utilization — spend against budgets, by category and period.

Spent is the sum of expense occurrences dated inside the budget period whose
tags intersect the budget's tags. An occurrence matching several budget tags
counts once.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import date
from decimal import ROUND_HALF_UP, Decimal

from duecycle.config import DuecycleConfig
from duecycle.models.base import CENT
from duecycle.models.budget import (
    AlertSeverity,
    AlertType,
    Budget,
    BudgetAlert,
    BudgetReport,
    BudgetUtilization,
)
from duecycle.models.obligation import Occurrence
from duecycle.store.base import Clock, ObligationStore, SystemClock, TagCatalog

logger = logging.getLogger("duecycle.engine.utilization")

_ZERO = Decimal("0.00")
_HUNDRED = Decimal(100)


def utilization_percent(spent: Decimal, budgeted: Decimal) -> Decimal:
    """``spent / budgeted * 100`` rounded half-up to 2 decimals.

    A zero budget is 0% when nothing was spent and 100% otherwise.
    """
    if budgeted == 0:
        return Decimal("0.00") if spent == 0 else Decimal("100.00")
    return (spent / budgeted * _HUNDRED).quantize(CENT, rounding=ROUND_HALF_UP)


class BudgetUtilizationAggregator:
    """Compares materialized spend with budgeted amounts.

    Example usage::

        aggregator = BudgetUtilizationAggregator(store, tag_catalog=catalog)
        groceries = aggregator.utilization(budget)
        print(f"{groceries.budget_name}: {groceries.utilization_percent}% used")
    """

    def __init__(
        self,
        store: ObligationStore | None = None,
        tag_catalog: TagCatalog | None = None,
        config: DuecycleConfig | None = None,
        clock: Clock | None = None,
    ) -> None:
        self.store = store
        self.tag_catalog = tag_catalog
        self.config = config or DuecycleConfig()
        self.clock = clock or SystemClock()

    def utilization(
        self,
        budget: Budget,
        source: ObligationStore | Iterable[Occurrence] | None = None,
    ) -> BudgetUtilization:
        """Compute spent, remaining and utilization for one budget.

        Args:
            budget: The budget to evaluate.
            source: A store, or any iterable of occurrences. Defaults to the
                aggregator's store.
        """
        tag_ids = self._budget_tag_ids(budget)
        matched: dict[str, Occurrence] = {}

        for occurrence in self._candidates(budget, tag_ids, source):
            if occurrence.is_income or not budget.covers(occurrence.date):
                continue
            if tag_ids.isdisjoint(occurrence.tag_ids):
                continue
            matched[occurrence.id] = occurrence

        spent = sum((abs(o.amount) for o in matched.values()), _ZERO)
        result = BudgetUtilization(
            budget_id=budget.id,
            budget_name=budget.name,
            budgeted=budget.amount,
            spent=spent,
            remaining=budget.amount - spent,
            utilization_percent=utilization_percent(spent, budget.amount),
            is_over_budget=spent > budget.amount,
            period_start=budget.start_date,
            period_end=budget.end_date,
            occurrence_count=len(matched),
        )
        logger.debug(
            "Budget %s: spent %s of %s (%s%%)",
            budget.name,
            result.spent,
            result.budgeted,
            result.utilization_percent,
        )
        return result

    def alerts(self, utilization: BudgetUtilization, today: date | None = None) -> list[BudgetAlert]:
        """Alerts for one budget's utilization."""
        today = today or self.clock.now()
        alerts: list[BudgetAlert] = []
        threshold = Decimal(str(self.config.budgets.warning_threshold)) * _HUNDRED

        if utilization.is_over_budget:
            alerts.append(BudgetAlert(
                budget_name=utilization.budget_name,
                alert_type=AlertType.OVER_BUDGET,
                severity=AlertSeverity.CRITICAL,
                message=(
                    f"Budget '{utilization.budget_name}' has exceeded its limit of "
                    f"{utilization.budgeted}. Current spending: {utilization.spent}"
                ),
                alert_date=today,
            ))
        elif utilization.budgeted > 0 and utilization.utilization_percent >= threshold:
            alerts.append(BudgetAlert(
                budget_name=utilization.budget_name,
                alert_type=AlertType.APPROACHING_LIMIT,
                severity=AlertSeverity.WARNING,
                message=(
                    f"Budget '{utilization.budget_name}' is approaching its limit. "
                    f"Current spending: {utilization.spent} of {utilization.budgeted}"
                ),
                alert_date=today,
            ))

        days_left = (utilization.period_end - today).days
        if 0 <= days_left <= self.config.budgets.expiring_within_days:
            alerts.append(BudgetAlert(
                budget_name=utilization.budget_name,
                alert_type=AlertType.BUDGET_EXPIRING,
                severity=AlertSeverity.INFO,
                message=f"Budget '{utilization.budget_name}' will expire soon on {utilization.period_end}",
                alert_date=today,
            ))

        return alerts

    def report(
        self,
        budgets: Iterable[Budget],
        source: ObligationStore | Iterable[Occurrence] | None = None,
        today: date | None = None,
    ) -> BudgetReport:
        """Utilization and alerts for every budget."""
        today = today or self.clock.now()
        # A one-shot iterable source must be shared across budgets
        if source is not None and not isinstance(source, ObligationStore):
            source = list(source)

        report = BudgetReport(report_date=today)
        for budget in budgets:
            utilization = self.utilization(budget, source)
            report.utilizations.append(utilization)
            report.alerts.extend(self.alerts(utilization, today))
        return report

    def _budget_tag_ids(self, budget: Budget) -> set[str]:
        if self.tag_catalog is not None and self.config.budgets.include_subcategories:
            return self.tag_catalog.expand(budget.tag_ids)
        return set(budget.tag_ids)

    def _candidates(
        self,
        budget: Budget,
        tag_ids: set[str],
        source: ObligationStore | Iterable[Occurrence] | None,
    ) -> Iterable[Occurrence]:
        source = source if source is not None else self.store
        if source is None:
            raise ValueError("No occurrence source: pass one or construct the aggregator with a store")
        if isinstance(source, ObligationStore):
            return source.find_occurrences_in_range(tag_ids, budget.start_date, budget.end_date)
        return source
