"""Tests for the schedule materializer."""

import threading
from datetime import date
from decimal import Decimal

import pytest

from duecycle.config import DuecycleConfig
from duecycle.engine.materializer import ScheduleMaterializer
from duecycle.engine.recurrence import RecurrencePattern
from duecycle.exceptions import DuplicateOccurrenceError
from duecycle.models import Obligation, Occurrence, Tag
from duecycle.store import FixedClock, InMemoryObligationStore, InMemoryTagCatalog


@pytest.fixture
def store():
    return InMemoryObligationStore()


@pytest.fixture
def rent(store):
    obligation = Obligation(
        description="Rent",
        amount=Decimal("950.00"),
        start_date=date(2024, 1, 15),
        pattern=RecurrencePattern.MONTHLY,
    )
    store.save_obligation(obligation)
    return obligation


class FailingStore(InMemoryObligationStore):
    """Accepts a fixed number of saves, then fails."""

    def __init__(self, accept: int) -> None:
        super().__init__()
        self.accept = accept

    def save_occurrence(self, occurrence):
        if self.accept <= 0:
            raise RuntimeError("database unavailable")
        self.accept -= 1
        super().save_occurrence(occurrence)


class BlindStore(InMemoryObligationStore):
    """Never finds existing occurrences, so only the uniqueness check protects it."""

    def find_occurrence(self, obligation_id, on):
        return None


class CancellingStore(InMemoryObligationStore):
    """Cancels the stored obligation after a number of saves."""

    def __init__(self, cancel_after: int) -> None:
        super().__init__()
        self.cancel_after = cancel_after
        self.saves = 0

    def save_occurrence(self, occurrence):
        super().save_occurrence(occurrence)
        self.saves += 1
        if self.saves == self.cancel_after:
            self.get_obligation(occurrence.obligation_id).cancel()


class TestMaterialize:
    """Test occurrence generation up to a horizon."""

    def test_creates_occurrences_up_to_horizon(self, store, rent):
        created = ScheduleMaterializer(store).materialize(rent, horizon=date(2024, 4, 15))

        assert [o.date for o in created] == [
            date(2024, 1, 15),
            date(2024, 2, 15),
            date(2024, 3, 15),
            date(2024, 4, 15),
        ]
        assert all(o.amount == Decimal("950.00") for o in created)
        assert all(o.obligation_id == rent.id for o in created)
        assert len(store) == 4

    def test_second_call_is_idempotent(self, store, rent):
        materializer = ScheduleMaterializer(store)
        materializer.materialize(rent, horizon=date(2024, 4, 15))

        assert materializer.materialize(rent, horizon=date(2024, 4, 15)) == []
        assert len(store) == 4

    def test_later_horizon_adds_only_new_dates(self, store, rent):
        materializer = ScheduleMaterializer(store)
        materializer.materialize(rent, horizon=date(2024, 2, 20))
        created = materializer.materialize(rent, horizon=date(2024, 5, 1))

        assert [o.date for o in created] == [date(2024, 3, 15), date(2024, 4, 15)]
        assert len(store) == 4

    def test_horizon_before_start(self, store, rent):
        assert ScheduleMaterializer(store).materialize(rent, horizon=date(2024, 1, 14)) == []

    def test_end_date_bounds_series(self, store):
        gym = Obligation(
            description="Gym",
            amount="30.00",
            start_date=date(2024, 1, 1),
            end_date=date(2024, 1, 21),
            pattern=RecurrencePattern.WEEKLY,
        )
        created = ScheduleMaterializer(store).materialize(gym, horizon=date(2024, 12, 31))
        assert [o.date for o in created] == [date(2024, 1, 1), date(2024, 1, 8), date(2024, 1, 15)]

    def test_caller_copy_is_not_mutated(self, store, rent):
        before = rent.model_dump()
        ScheduleMaterializer(store).materialize(rent, horizon=date(2024, 6, 1))
        assert rent.model_dump() == before


class TestStateGating:
    """Only PENDING obligations produce occurrences."""

    def test_cancelled_obligation_writes_nothing(self, store, rent):
        materializer = ScheduleMaterializer(store)
        materializer.materialize(rent, horizon=date(2024, 2, 15))
        rent.cancel()

        assert materializer.materialize(rent, horizon=date(2024, 12, 31)) == []
        assert len(store) == 2

    def test_completed_obligation_writes_nothing(self, store, rent):
        rent.complete()
        assert ScheduleMaterializer(store).materialize(rent, horizon=date(2024, 12, 31)) == []
        assert len(store) == 0

    def test_stale_copy_of_cancelled_obligation(self, store, rent):
        stale = rent.model_copy()
        rent.cancel()
        assert ScheduleMaterializer(store).materialize(stale, horizon=date(2024, 12, 31)) == []
        assert len(store) == 0

    def test_cancel_during_materialization_stops_run(self):
        store = CancellingStore(cancel_after=2)
        rent = Obligation(description="Rent", amount="950.00", start_date=date(2024, 1, 15))
        store.save_obligation(rent)

        created = ScheduleMaterializer(store).materialize(rent, horizon=date(2024, 12, 31))

        assert len(created) == 2
        assert len(store) == 2

    def test_reactivated_obligation_resumes(self, store, rent):
        materializer = ScheduleMaterializer(store)
        materializer.materialize(rent, horizon=date(2024, 2, 15))
        rent.cancel()
        rent.reactivate()

        created = materializer.materialize(rent, horizon=date(2024, 3, 15))
        assert [o.date for o in created] == [date(2024, 3, 15)]


class TestTags:
    """Test tag resolution on generated occurrences."""

    def test_tags_resolved_through_catalog(self, store):
        catalog = InMemoryTagCatalog([Tag(id="food", name="Food"), Tag(id="groceries", name="Groceries", parent_id="food")])
        obligation = Obligation(
            description="Groceries",
            amount="80.00",
            start_date=date(2024, 1, 1),
            pattern=RecurrencePattern.WEEKLY,
            tag_ids={"groceries", "ghost"},
        )

        created = ScheduleMaterializer(store, tag_catalog=catalog).materialize(obligation, horizon=date(2024, 1, 14))

        assert len(created) == 2
        for occurrence in created:
            assert occurrence.tags == frozenset({Tag(id="groceries", name="Groceries", parent_id="food")})

    def test_without_catalog_ids_become_tags(self, store):
        obligation = Obligation(
            description="Netflix",
            amount="15.99",
            start_date=date(2024, 1, 1),
            tag_ids={"streaming"},
        )
        created = ScheduleMaterializer(store).materialize(obligation, horizon=date(2024, 1, 1))
        assert created[0].tag_ids == frozenset({"streaming"})


class TestDefaults:
    def test_default_horizon_from_clock_and_config(self, store):
        config = DuecycleConfig.load(None, engine={"default_horizon_days": 30})
        materializer = ScheduleMaterializer(store, clock=FixedClock(date(2024, 1, 1)), config=config)
        daily = Obligation(
            description="Coffee",
            amount="3.50",
            start_date=date(2024, 1, 1),
            pattern=RecurrencePattern.DAILY,
        )

        assert materializer.default_horizon() == date(2024, 1, 31)
        assert len(materializer.materialize(daily)) == 31

    def test_materialize_all_uses_stored_obligations(self, store, rent):
        salary = Obligation(description="Salary", amount="3000", is_income=True, start_date=date(2024, 1, 25))
        store.save_obligation(salary)

        results = ScheduleMaterializer(store).materialize_all(horizon=date(2024, 3, 1))

        assert len(results[rent.id]) == 2
        assert len(results[salary.id]) == 2


class TestFailures:
    """Test store failures and concurrent writers."""

    def test_store_failure_propagates_and_keeps_progress(self, rent):
        store = FailingStore(accept=2)
        materializer = ScheduleMaterializer(store)

        with pytest.raises(RuntimeError):
            materializer.materialize(rent, horizon=date(2024, 12, 31))
        assert len(store) == 2

        store.accept = 100
        created = materializer.materialize(rent, horizon=date(2024, 6, 15))
        assert [o.date for o in created] == [
            date(2024, 3, 15),
            date(2024, 4, 15),
            date(2024, 5, 15),
            date(2024, 6, 15),
        ]

    def test_duplicate_from_concurrent_writer_is_skipped(self, rent):
        store = BlindStore()
        store.save_occurrence(Occurrence.for_obligation(rent, date(2024, 2, 15)))

        created = ScheduleMaterializer(store).materialize(rent, horizon=date(2024, 3, 15))

        assert [o.date for o in created] == [date(2024, 1, 15), date(2024, 3, 15)]
        assert len(store) == 3

    def test_memory_store_rejects_duplicates(self, store, rent):
        store.save_occurrence(Occurrence.for_obligation(rent, date(2024, 1, 15)))
        with pytest.raises(DuplicateOccurrenceError):
            store.save_occurrence(Occurrence.for_obligation(rent, date(2024, 1, 15)))

    def test_concurrent_calls_do_not_duplicate(self, store, rent):
        materializer = ScheduleMaterializer(store)
        results: list[list[Occurrence]] = []
        barrier = threading.Barrier(8)

        def worker():
            barrier.wait()
            results.append(materializer.materialize(rent, horizon=date(2025, 12, 31)))

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(store) == 24
        assert sum(len(r) for r in results) == 24
        assert len({o.date for o in store.occurrences_for(rent.id)}) == 24
        assert materializer._locks == {}

    def test_lock_entries_released_after_call(self, store, rent):
        materializer = ScheduleMaterializer(store)
        materializer.materialize(rent, horizon=date(2024, 3, 15))
        assert materializer._locks == {}

    def test_lock_entry_released_when_store_fails(self, rent):
        materializer = ScheduleMaterializer(FailingStore(accept=0))
        with pytest.raises(RuntimeError):
            materializer.materialize(rent, horizon=date(2024, 3, 15))
        assert materializer._locks == {}
