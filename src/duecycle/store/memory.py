"""
In-memory store and tag catalog.

Records live in flat dicts keyed by id, with secondary indexes on
(obligation id, date) and obligation id. A single lock guards every mutation,
so the (obligation id, date) uniqueness check and the insert are atomic.
"""

from __future__ import annotations

import logging
import threading
from collections import defaultdict
from collections.abc import Iterable
from datetime import date

from duecycle.exceptions import DuplicateOccurrenceError
from duecycle.models.loan import LoanPlan
from duecycle.models.obligation import Obligation, Occurrence
from duecycle.models.tags import Tag
from duecycle.store.base import ObligationStore, TagCatalog

logger = logging.getLogger("duecycle.store.memory")


class InMemoryObligationStore(ObligationStore):
    """Process-local store. Obligations are kept by reference.

    Usage::

        store = InMemoryObligationStore()
        store.save_obligation(obligation)
        materializer = ScheduleMaterializer(store)
    """

    name = "memory"

    def __init__(self, **options: object) -> None:
        self.options = options
        self._lock = threading.RLock()
        self._obligations: dict[str, Obligation] = {}
        self._occurrences: dict[str, Occurrence] = {}
        self._by_key: dict[tuple[str, date], str] = {}
        self._by_obligation: dict[str, list[str]] = defaultdict(list)
        self._loan_plans: dict[str, LoanPlan] = {}

    def __len__(self) -> int:
        return len(self._occurrences)

    def find_occurrence(self, obligation_id: str, on: date) -> Occurrence | None:
        with self._lock:
            occurrence_id = self._by_key.get((obligation_id, on))
            return self._occurrences.get(occurrence_id) if occurrence_id else None

    def save_occurrence(self, occurrence: Occurrence) -> None:
        key = (occurrence.obligation_id, occurrence.date)
        with self._lock:
            if key in self._by_key:
                raise DuplicateOccurrenceError(occurrence.obligation_id, occurrence.date)
            self._occurrences[occurrence.id] = occurrence
            self._by_key[key] = occurrence.id
            self._by_obligation[occurrence.obligation_id].append(occurrence.id)

    def find_occurrences_in_range(
        self,
        tag_ids: Iterable[str] | None,
        start: date,
        end: date,
    ) -> list[Occurrence]:
        wanted = set(tag_ids) if tag_ids is not None else None
        with self._lock:
            matches = [
                occ for occ in self._occurrences.values()
                if start <= occ.date <= end
                and (wanted is None or not wanted.isdisjoint(occ.tag_ids))
            ]
        return sorted(matches, key=lambda o: (o.date, o.obligation_id))

    def occurrences_for(self, obligation_id: str) -> list[Occurrence]:
        with self._lock:
            found = [self._occurrences[i] for i in self._by_obligation.get(obligation_id, [])]
        return sorted(found, key=lambda o: o.date)

    def save_obligation(self, obligation: Obligation) -> None:
        with self._lock:
            self._obligations[obligation.id] = obligation

    def get_obligation(self, obligation_id: str) -> Obligation | None:
        with self._lock:
            return self._obligations.get(obligation_id)

    def list_obligations(self) -> list[Obligation]:
        with self._lock:
            return list(self._obligations.values())

    def save_loan_plan(self, plan: LoanPlan) -> None:
        with self._lock:
            self._loan_plans[plan.id] = plan

    def get_loan_plan(self, plan_id: str) -> LoanPlan | None:
        with self._lock:
            return self._loan_plans.get(plan_id)


class InMemoryTagCatalog(TagCatalog):
    """Tag catalog backed by a dict, with hierarchy queries by ``parent_id``."""

    def __init__(self, tags: Iterable[Tag] | None = None) -> None:
        self._tags: dict[str, Tag] = {}
        for tag in tags or []:
            self.add(tag)

    def __len__(self) -> int:
        return len(self._tags)

    def __contains__(self, tag_id: object) -> bool:
        return tag_id in self._tags

    def add(self, tag: Tag) -> Tag:
        """Register (or replace) a tag.

        Raises:
            ValueError: the parent is unknown, or the parent link would create
                a cycle in the hierarchy.
        """
        if tag.parent_id is not None:
            if tag.parent_id not in self._tags:
                raise ValueError(f"Unknown parent tag: {tag.parent_id}")
            if tag.id in self._ancestor_ids(tag.parent_id):
                raise ValueError("Creating a cycle in tag hierarchy is not allowed")
        self._tags[tag.id] = tag
        return tag

    def get(self, tag_id: str) -> Tag | None:
        return self._tags.get(tag_id)

    def all(self) -> list[Tag]:
        return list(self._tags.values())

    def resolve_tags(self, ids: Iterable[str]) -> set[Tag]:
        resolved: set[Tag] = set()
        for tag_id in ids:
            tag = self._tags.get(tag_id)
            if tag is None:
                logger.warning("Unknown tag id %s, skipping", tag_id)
                continue
            resolved.add(tag)
        return resolved

    def children(self, tag_id: str) -> set[Tag]:
        return {t for t in self._tags.values() if t.parent_id == tag_id}

    def descendants(self, tag_id: str) -> set[Tag]:
        found: set[Tag] = set()
        frontier = [tag_id]
        while frontier:
            current = frontier.pop()
            for child in self.children(current):
                if child not in found:
                    found.add(child)
                    frontier.append(child.id)
        return found

    def full_path(self, tag_id: str) -> str:
        """Slash-separated path from the root, e.g. ``Home/Utilities/Power``."""
        names = [self._tags[i].name for i in reversed(self._ancestor_ids(tag_id))]
        return "/".join(names)

    def _ancestor_ids(self, tag_id: str) -> list[str]:
        """``tag_id`` followed by each parent up to the root."""
        chain: list[str] = []
        current: str | None = tag_id
        while current is not None and current not in chain:
            chain.append(current)
            parent = self._tags.get(current)
            current = parent.parent_id if parent else None
        return chain
