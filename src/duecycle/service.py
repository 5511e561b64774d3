"""
duecycle — main orchestrator.

The ObligationEngine is the top-level entry point that wires the store, tag
catalog and clock into the materializer, the amortization calculator and the
budget aggregator.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Any

from duecycle.config import DuecycleConfig
from duecycle.engine.amortization import create_loan_plan, generate_schedule
from duecycle.engine.materializer import ScheduleMaterializer
from duecycle.engine.recurrence import RecurrencePattern
from duecycle.engine.state import ProcessingState, ProcessingStateMachine
from duecycle.engine.utilization import BudgetUtilizationAggregator
from duecycle.exceptions import DuplicateOccurrenceError, NotFoundError
from duecycle.models.budget import Budget, BudgetReport, BudgetUtilization
from duecycle.models.loan import Installment, LoanPlan
from duecycle.models.obligation import Obligation, Occurrence
from duecycle.store.base import Clock, ObligationStore, SystemClock, TagCatalog
from duecycle.store.registry import create_store

logger = logging.getLogger("duecycle")


@dataclass
class ObligationEngine:
    """Top-level orchestrator for recurring obligations, loans and budgets.

    Usage::

        from duecycle import ObligationEngine

        engine = ObligationEngine.from_config("duecycle.yaml", tag_catalog=catalog)
        rent = engine.create_obligation("Rent", "950.00", date(2024, 1, 1), tag_ids={"housing"})
        engine.materialize(rent, horizon=date(2024, 12, 31))
        engine.utilization(housing_budget)
    """

    config: DuecycleConfig = field(default_factory=DuecycleConfig)
    store: ObligationStore | None = None
    tag_catalog: TagCatalog | None = None
    clock: Clock = field(default_factory=SystemClock)
    _materializer: ScheduleMaterializer | None = field(default=None, init=False, repr=False)
    _aggregator: BudgetUtilizationAggregator | None = field(default=None, init=False, repr=False)

    def __post_init__(self) -> None:
        self._setup()

    @classmethod
    def from_config(
        cls,
        config_path: str | None = None,
        tag_catalog: TagCatalog | None = None,
        clock: Clock | None = None,
        **overrides: Any,
    ) -> ObligationEngine:
        """Create an engine from a config file or keyword arguments."""
        config = DuecycleConfig.load(config_path, **overrides)
        return cls(config=config, tag_catalog=tag_catalog, clock=clock or SystemClock())

    def _setup(self) -> None:
        """Build the store (if not given) and the services that share it."""
        logger.setLevel(self.config.log_level)
        if self.store is None:
            self.store = create_store(self.config)
        self._materializer = ScheduleMaterializer(
            self.store,
            tag_catalog=self.tag_catalog,
            clock=self.clock,
            config=self.config,
        )
        self._aggregator = BudgetUtilizationAggregator(
            self.store,
            tag_catalog=self.tag_catalog,
            config=self.config,
            clock=self.clock,
        )
        logger.info("Obligation engine initialized with %s store", self.store.name)

    @property
    def materializer(self) -> ScheduleMaterializer:
        assert self._materializer is not None
        return self._materializer

    @property
    def aggregator(self) -> BudgetUtilizationAggregator:
        assert self._aggregator is not None
        return self._aggregator

    # Obligations

    def create_obligation(
        self,
        description: str,
        amount: Decimal | int | float | str,
        start_date: date,
        *,
        is_income: bool = False,
        end_date: date | None = None,
        pattern: RecurrencePattern = RecurrencePattern.MONTHLY,
        interval: int = 1,
        tag_ids: Iterable[str] = (),
    ) -> Obligation:
        """Validate, persist and return a new PENDING obligation.

        Tag ids the catalog cannot resolve are dropped with a warning.
        """
        wanted = set(tag_ids)
        if self.tag_catalog is not None and wanted:
            known = {t.id for t in self.tag_catalog.resolve_tags(wanted)}
            if wanted - known:
                logger.warning("Dropping unknown tags %s", ", ".join(sorted(wanted - known)))
            wanted = known

        obligation = Obligation(
            description=description,
            amount=Decimal(str(amount)),
            is_income=is_income,
            start_date=start_date,
            end_date=end_date,
            pattern=pattern,
            interval=interval,
            tag_ids=wanted,
        )
        self._store.save_obligation(obligation)
        logger.info(
            "Created obligation %s: %s %s every %d %s",
            obligation.id,
            "income" if is_income else "expense",
            obligation.amount,
            obligation.interval,
            obligation.pattern.value,
        )
        return obligation

    def get_obligation(self, obligation_id: str) -> Obligation:
        obligation = self._store.get_obligation(obligation_id)
        if obligation is None:
            raise NotFoundError(f"Obligation not found: {obligation_id}")
        return obligation

    def materialize(self, obligation: Obligation | str, horizon: date | None = None) -> list[Occurrence]:
        return self.materializer.materialize(self._obligation(obligation), horizon)

    def materialize_all(self, horizon: date | None = None) -> dict[str, list[Occurrence]]:
        """Materialize every stored obligation to one horizon."""
        return self.materializer.materialize_all(horizon=horizon)

    def cancel(self, obligation: Obligation | str) -> Obligation:
        return self._change_state(obligation, ProcessingState.CANCELLED)

    def complete(self, obligation: Obligation | str) -> Obligation:
        return self._change_state(obligation, ProcessingState.COMPLETED)

    def reactivate(self, obligation: Obligation | str) -> Obligation:
        return self._change_state(obligation, ProcessingState.PENDING)

    def occurrences(self, obligation: Obligation | str) -> list[Occurrence]:
        obligation_id = obligation if isinstance(obligation, str) else obligation.id
        return self._store.occurrences_for(obligation_id)

    def due_between(self, start: date, end: date) -> list[Occurrence]:
        """Every materialized occurrence dated in ``[start, end]``, e.g. a month's deadlines."""
        if start > end:
            raise ValueError("Start date cannot be after end date")
        return self._store.find_occurrences_in_range(None, start, end)

    def totals_for_period(self, start: date, end: date) -> dict[str, Decimal]:
        """Income, expense and net sums of occurrences dated in ``[start, end]``."""
        income = Decimal("0.00")
        expenses = Decimal("0.00")
        for occurrence in self.due_between(start, end):
            if occurrence.is_income:
                income += occurrence.amount
            else:
                expenses += occurrence.amount
        return {"income": income, "expenses": expenses, "net": income - expenses}

    # Loans

    def generate_schedule(
        self,
        principal: Decimal | int | float | str,
        annual_rate_percent: Decimal | int | float | str,
        term_months: int,
        start_date: date,
    ) -> list[Installment]:
        return generate_schedule(principal, annual_rate_percent, term_months, start_date)

    def create_loan_plan(
        self,
        description: str,
        principal: Decimal | int | float | str,
        annual_rate_percent: Decimal | int | float | str,
        term_months: int,
        start_date: date,
    ) -> LoanPlan:
        """Generate and persist an immutable loan plan."""
        plan = create_loan_plan(description, principal, annual_rate_percent, term_months, start_date)
        self._store.save_loan_plan(plan)
        logger.info(
            "Created loan plan %s: %s over %d months, payment %s",
            plan.id,
            plan.principal,
            plan.term_months,
            plan.monthly_payment,
        )
        return plan

    def get_loan_plan(self, plan_id: str) -> LoanPlan:
        plan = self._store.get_loan_plan(plan_id)
        if plan is None:
            raise NotFoundError(f"Loan plan not found: {plan_id}")
        return plan

    def book_loan_plan(self, plan: LoanPlan | str, tag_ids: Iterable[str] = ()) -> list[Occurrence]:
        """Store each installment as an expense occurrence owned by the plan.

        Idempotent like materialization: installments already booked are
        skipped, so booking the same plan twice adds nothing.
        """
        if isinstance(plan, str):
            plan = self.get_loan_plan(plan)
        tags = frozenset(self.tag_catalog.resolve_tags(tag_ids)) if self.tag_catalog else frozenset()

        booked: list[Occurrence] = []
        for installment in plan.installments:
            if installment.total_payment <= 0:
                continue
            if self._store.find_occurrence(plan.id, installment.due_date) is not None:
                continue
            occurrence = Occurrence(
                obligation_id=plan.id,
                date=installment.due_date,
                amount=installment.total_payment,
                is_income=False,
                description=f"{plan.description} - Payment {installment.number}/{plan.term_months}",
                tags=tags,
            )
            try:
                self._store.save_occurrence(occurrence)
            except DuplicateOccurrenceError:
                continue
            booked.append(occurrence)
        logger.info("Booked %d installments of loan plan %s", len(booked), plan.id)
        return booked

    # Budgets

    def utilization(self, budget: Budget) -> BudgetUtilization:
        return self.aggregator.utilization(budget)

    def budget_report(self, budgets: Iterable[Budget], today: date | None = None) -> BudgetReport:
        return self.aggregator.report(budgets, today=today)

    # Internals

    @property
    def _store(self) -> ObligationStore:
        assert self.store is not None
        return self.store

    def _obligation(self, obligation: Obligation | str) -> Obligation:
        return self.get_obligation(obligation) if isinstance(obligation, str) else obligation

    def _change_state(self, obligation: Obligation | str, target: ProcessingState) -> Obligation:
        """Apply a transition to the stored obligation and persist it.

        The store holds the authoritative state; a caller's copy may be stale.
        On success the caller's copy is brought in line with the stored one.

        Raises:
            InvalidStateError: the stored state does not permit ``target``.
        """
        current = self._stored(obligation)
        current.state = ProcessingStateMachine.transition(current.state, target)
        self._store.save_obligation(current)
        if isinstance(obligation, Obligation) and obligation is not current:
            obligation.state = current.state
        logger.info("Obligation %s is now %s", current.id, current.state.value)
        return current

    def _stored(self, obligation: Obligation | str) -> Obligation:
        if isinstance(obligation, str):
            return self.get_obligation(obligation)
        return self._store.get_obligation(obligation.id) or obligation
