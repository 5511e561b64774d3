"""
Obligation data models — recurring planned transactions and their occurrences.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from duecycle.engine.recurrence import RecurrencePattern
from duecycle.engine.state import ProcessingState, ProcessingStateMachine
from duecycle.models.base import generate_id, to_cents
from duecycle.models.tags import Tag


class Obligation(BaseModel):
    """A recurring (or one-off) planned transaction definition.

    The amount is always a positive magnitude; ``is_income`` carries the sign.
    An obligation without ``end_date`` is open-ended and only ever
    materialized up to an explicit horizon.
    """

    id: str = Field(default_factory=lambda: generate_id("obl"))
    description: str
    amount: Decimal = Field(gt=0)
    is_income: bool = False
    start_date: date
    end_date: date | None = None
    pattern: RecurrencePattern = RecurrencePattern.MONTHLY
    interval: int = Field(default=1, ge=1)
    state: ProcessingState = ProcessingState.PENDING
    tag_ids: set[str] = Field(default_factory=set)

    @field_validator("amount")
    @classmethod
    def _round_amount(cls, value: Decimal) -> Decimal:
        return to_cents(value)

    @model_validator(mode="after")
    def _check_dates(self) -> Obligation:
        if self.end_date is not None and self.start_date > self.end_date:
            raise ValueError(f"start_date {self.start_date} is after end_date {self.end_date}")
        return self

    @property
    def is_open_ended(self) -> bool:
        return self.end_date is None

    @property
    def is_active(self) -> bool:
        return ProcessingStateMachine.is_materializable(self.state)

    def cancel(self) -> None:
        """Stop producing occurrences. Existing occurrences are kept."""
        self.state = ProcessingStateMachine.transition(self.state, ProcessingState.CANCELLED)

    def complete(self) -> None:
        self.state = ProcessingStateMachine.transition(self.state, ProcessingState.COMPLETED)

    def reactivate(self) -> None:
        """Return a cancelled obligation to PENDING."""
        self.state = ProcessingStateMachine.transition(self.state, ProcessingState.PENDING)


class Occurrence(BaseModel):
    """One concrete, dated instance of an obligation."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: generate_id("occ"))
    obligation_id: str
    date: date
    amount: Decimal = Field(gt=0)
    is_income: bool = False
    description: str = ""
    tags: frozenset[Tag] = Field(default_factory=frozenset)

    @property
    def tag_ids(self) -> frozenset[str]:
        return frozenset(t.id for t in self.tags)

    @property
    def is_expense(self) -> bool:
        return not self.is_income

    @property
    def signed_amount(self) -> Decimal:
        return self.amount if self.is_income else -self.amount

    @classmethod
    def for_obligation(cls, obligation: Obligation, on: date, tags: frozenset[Tag] = frozenset()) -> Occurrence:
        """Build the occurrence ``obligation`` produces on ``on``."""
        return cls(
            obligation_id=obligation.id,
            date=on,
            amount=obligation.amount,
            is_income=obligation.is_income,
            description=obligation.description,
            tags=tags,
        )
