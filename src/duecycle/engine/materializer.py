"""
Schedule materializer — turns recurrence rules into stored occurrences.

Materialization is idempotent: every candidate date is checked against the
store before an occurrence is created, and a duplicate rejected by the
store's (obligation id, date) uniqueness is treated as already materialized.
Calling ``materialize`` again with the same or a later horizon only ever adds
the dates that are missing.

Concurrency:
- Calls for the same obligation are serialized by a per-obligation lock.
- Calls for different obligations run independently.
- A store failure aborts the call and propagates; occurrences saved before
  the failure are kept, and retrying the whole call is safe.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from datetime import date, timedelta

from duecycle.config import DuecycleConfig
from duecycle.engine.recurrence import iter_occurrences
from duecycle.engine.state import ProcessingStateMachine
from duecycle.exceptions import DuplicateOccurrenceError
from duecycle.models.obligation import Obligation, Occurrence
from duecycle.models.tags import Tag
from duecycle.store.base import Clock, ObligationStore, SystemClock, TagCatalog

logger = logging.getLogger("duecycle.engine.materializer")


class ScheduleMaterializer:
    """Materializes obligation occurrences up to a horizon date.

    Usage::

        materializer = ScheduleMaterializer(store, tag_catalog=catalog)
        created = materializer.materialize(rent, horizon=date(2024, 12, 31))
    """

    def __init__(
        self,
        store: ObligationStore,
        tag_catalog: TagCatalog | None = None,
        clock: Clock | None = None,
        config: DuecycleConfig | None = None,
    ) -> None:
        self.store = store
        self.tag_catalog = tag_catalog
        self.clock = clock or SystemClock()
        self.config = config or DuecycleConfig()

        # obligation id -> [lock, number of callers holding or waiting on it]
        self._locks: dict[str, list] = {}
        self._locks_guard = threading.Lock()

    def default_horizon(self) -> date:
        """Today plus the configured number of horizon days."""
        return self.clock.now() + timedelta(days=self.config.engine.default_horizon_days)

    def materialize(self, obligation: Obligation, horizon: date | None = None) -> list[Occurrence]:
        """Create the missing occurrences of ``obligation`` dated on or before ``horizon``.

        Args:
            obligation: The obligation to expand. It is never mutated.
            horizon: Latest date to generate. Defaults to :meth:`default_horizon`.

        Returns:
            The newly created occurrences, in date order. Empty when the
            obligation is not PENDING or everything is already materialized.
        """
        if horizon is None:
            horizon = self.default_horizon()

        if not self._is_materializable(obligation):
            logger.debug("Obligation %s is %s, nothing to materialize", obligation.id, obligation.state.value)
            return []

        created: list[Occurrence] = []
        with self._locked(obligation.id):
            tags = self._resolve_tags(obligation)
            candidates = iter_occurrences(
                obligation.pattern,
                obligation.interval,
                obligation.start_date,
                horizon,
                obligation.end_date,
            )
            for on in candidates:
                if not self._is_materializable(obligation):
                    logger.info(
                        "Obligation %s left PENDING during materialization, stopping after %d new occurrences",
                        obligation.id,
                        len(created),
                    )
                    break

                if self.store.find_occurrence(obligation.id, on) is not None:
                    logger.debug("Occurrence of %s on %s already exists", obligation.id, on)
                    continue

                occurrence = Occurrence.for_obligation(obligation, on, tags)
                try:
                    self.store.save_occurrence(occurrence)
                except DuplicateOccurrenceError:
                    logger.debug("Occurrence of %s on %s was written concurrently", obligation.id, on)
                    continue
                created.append(occurrence)

        logger.info(
            "Materialized %d new occurrences for %s up to %s",
            len(created),
            obligation.id,
            horizon,
        )
        return created

    def materialize_all(
        self,
        obligations: Iterable[Obligation] | None = None,
        horizon: date | None = None,
    ) -> dict[str, list[Occurrence]]:
        """Materialize several obligations (all stored ones by default) to one horizon."""
        if horizon is None:
            horizon = self.default_horizon()
        if obligations is None:
            obligations = self.store.list_obligations()

        results: dict[str, list[Occurrence]] = {}
        for obligation in obligations:
            results[obligation.id] = self.materialize(obligation, horizon)
        return results

    def _is_materializable(self, obligation: Obligation) -> bool:
        """Check the caller's copy and the stored copy; either one may have been cancelled."""
        if not ProcessingStateMachine.is_materializable(obligation.state):
            return False
        stored = self.store.get_obligation(obligation.id)
        return stored is None or ProcessingStateMachine.is_materializable(stored.state)

    def _resolve_tags(self, obligation: Obligation) -> frozenset[Tag]:
        if not obligation.tag_ids:
            return frozenset()
        if self.tag_catalog is None:
            return frozenset(Tag(id=tag_id, name=tag_id) for tag_id in obligation.tag_ids)

        resolved = self.tag_catalog.resolve_tags(obligation.tag_ids)
        missing = obligation.tag_ids - {t.id for t in resolved}
        if missing:
            logger.warning(
                "Obligation %s references unknown tags %s, omitting them",
                obligation.id,
                ", ".join(sorted(missing)),
            )
        return frozenset(resolved)

    @contextmanager
    def _locked(self, obligation_id: str) -> Iterator[None]:
        """Hold the obligation's lock; the entry is dropped once nobody uses it."""
        with self._locks_guard:
            entry = self._locks.get(obligation_id)
            if entry is None:
                entry = self._locks[obligation_id] = [threading.Lock(), 0]
            entry[1] += 1
        try:
            with entry[0]:
                yield
        finally:
            with self._locks_guard:
                entry[1] -= 1
                if entry[1] == 0:
                    del self._locks[obligation_id]
