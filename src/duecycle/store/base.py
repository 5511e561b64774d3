"""
Collaborator interfaces — the tag catalog, the obligation store and the clock.

The engine never owns persistence. It talks to these narrow interfaces and
looks related records up by identifier (obligation id, tag id) instead of
walking object graphs.

To plug in a new backend, subclass :class:`ObligationStore` and implement the
abstract methods. ``save_occurrence`` must refuse a second occurrence for the
same (obligation id, date) pair by raising
:class:`~duecycle.exceptions.DuplicateOccurrenceError`; the materializer
relies on that to stay idempotent under concurrent writers.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterable
from datetime import date

from duecycle.models.loan import LoanPlan
from duecycle.models.obligation import Obligation, Occurrence
from duecycle.models.tags import Tag


class TagCatalog(ABC):
    """Resolves tag identifiers to category objects."""

    @abstractmethod
    def resolve_tags(self, ids: Iterable[str]) -> set[Tag]:
        """Return the tags for ``ids``. Unknown ids are omitted, not an error."""
        ...

    @abstractmethod
    def descendants(self, tag_id: str) -> set[Tag]:
        """All tags below ``tag_id`` in the hierarchy (excluding itself)."""
        ...

    def expand(self, ids: Iterable[str]) -> set[str]:
        """``ids`` plus the ids of all their descendants."""
        expanded = set(ids)
        for tag_id in list(expanded):
            expanded.update(t.id for t in self.descendants(tag_id))
        return expanded


class ObligationStore(ABC):
    """Persists and queries obligations, occurrences and loan plans."""

    name: str = "base"

    # Occurrences

    @abstractmethod
    def find_occurrence(self, obligation_id: str, on: date) -> Occurrence | None:
        """The occurrence of ``obligation_id`` dated ``on``, if one exists."""
        ...

    @abstractmethod
    def save_occurrence(self, occurrence: Occurrence) -> None:
        """Persist a new occurrence.

        Raises:
            DuplicateOccurrenceError: an occurrence for the same
                (obligation id, date) already exists.
        """
        ...

    @abstractmethod
    def find_occurrences_in_range(
        self,
        tag_ids: Iterable[str] | None,
        start: date,
        end: date,
    ) -> list[Occurrence]:
        """Occurrences dated in ``[start, end]`` carrying any of ``tag_ids``.

        ``tag_ids=None`` matches every occurrence in the range. Each
        occurrence appears once however many tags match. Results are ordered
        by date.
        """
        ...

    @abstractmethod
    def occurrences_for(self, obligation_id: str) -> list[Occurrence]:
        """All occurrences of one obligation, ordered by date."""
        ...

    # Obligations

    @abstractmethod
    def save_obligation(self, obligation: Obligation) -> None:
        """Insert or update an obligation."""
        ...

    @abstractmethod
    def get_obligation(self, obligation_id: str) -> Obligation | None: ...

    @abstractmethod
    def list_obligations(self) -> list[Obligation]: ...

    # Loan plans

    @abstractmethod
    def save_loan_plan(self, plan: LoanPlan) -> None: ...

    @abstractmethod
    def get_loan_plan(self, plan_id: str) -> LoanPlan | None: ...


class Clock(ABC):
    """Supplies today's date."""

    @abstractmethod
    def now(self) -> date: ...


class SystemClock(Clock):
    def now(self) -> date:
        return date.today()


class FixedClock(Clock):
    """A clock pinned to one date, for tests and replays."""

    def __init__(self, today: date) -> None:
        self.today = today

    def now(self) -> date:
        return self.today
