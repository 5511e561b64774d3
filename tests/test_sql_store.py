"""Tests for the SQLAlchemy store, against in-memory SQLite."""

from datetime import date
from decimal import Decimal

import pytest

from duecycle.engine.amortization import create_loan_plan
from duecycle.engine.materializer import ScheduleMaterializer
from duecycle.engine.recurrence import RecurrencePattern
from duecycle.engine.state import ProcessingState
from duecycle.exceptions import DuplicateOccurrenceError
from duecycle.models import Obligation, Occurrence, Tag
from duecycle.store.sql import SQLObligationStore

FOOD = Tag(id="food", name="Food")
GROCERIES = Tag(id="groceries", name="Groceries", parent_id="food")


@pytest.fixture
def store():
    return SQLObligationStore(url="sqlite://")


def _occ(obligation_id, on, *tags, amount="42.50"):
    return Occurrence(obligation_id=obligation_id, date=on, amount=Decimal(amount), tags=frozenset(tags))


class TestSQLObligationStore:
    def test_requires_url_or_engine(self):
        with pytest.raises(ValueError):
            SQLObligationStore()

    def test_occurrence_round_trip(self, store):
        occurrence = _occ("obl_a", date(2024, 1, 15), GROCERIES, amount="123.45")
        store.save_occurrence(occurrence)

        found = store.find_occurrence("obl_a", date(2024, 1, 15))
        assert found == occurrence
        assert found.amount == Decimal("123.45")
        assert store.find_occurrence("obl_a", date(2024, 1, 16)) is None

    def test_unique_constraint_raises_duplicate(self, store):
        store.save_occurrence(_occ("obl_a", date(2024, 1, 15)))
        with pytest.raises(DuplicateOccurrenceError):
            store.save_occurrence(_occ("obl_a", date(2024, 1, 15)))
        assert len(store.occurrences_for("obl_a")) == 1

    def test_range_by_tag(self, store):
        store.save_occurrence(_occ("obl_a", date(2024, 1, 20), GROCERIES, FOOD))
        store.save_occurrence(_occ("obl_b", date(2024, 1, 5), GROCERIES))
        store.save_occurrence(_occ("obl_c", date(2024, 1, 10)))
        store.save_occurrence(_occ("obl_a", date(2024, 2, 20), GROCERIES))

        tagged = store.find_occurrences_in_range({"groceries", "food"}, date(2024, 1, 1), date(2024, 1, 31))
        assert [o.date for o in tagged] == [date(2024, 1, 5), date(2024, 1, 20)]

        everything = store.find_occurrences_in_range(None, date(2024, 1, 1), date(2024, 1, 31))
        assert len(everything) == 3

        assert store.find_occurrences_in_range(set(), date(2024, 1, 1), date(2024, 1, 31)) == []

    def test_obligation_upsert(self, store):
        obligation = Obligation(
            description="Rent",
            amount="950.00",
            start_date=date(2024, 1, 1),
            pattern=RecurrencePattern.MONTHLY,
            tag_ids={"housing"},
        )
        store.save_obligation(obligation)
        obligation.cancel()
        store.save_obligation(obligation)

        loaded = store.get_obligation(obligation.id)
        assert loaded == obligation
        assert loaded.state == ProcessingState.CANCELLED
        assert len(store.list_obligations()) == 1

    def test_loan_plan_round_trip(self, store):
        plan = create_loan_plan("Car", "10000.00", "5.25", 24, date(2024, 1, 1))
        store.save_loan_plan(plan)
        assert store.get_loan_plan(plan.id) == plan
        assert store.get_loan_plan("loan_missing") is None

    def test_materializer_against_sql(self, store):
        rent = Obligation(description="Rent", amount="950.00", start_date=date(2024, 1, 15))
        store.save_obligation(rent)
        materializer = ScheduleMaterializer(store)

        assert len(materializer.materialize(rent, horizon=date(2024, 4, 15))) == 4
        assert materializer.materialize(rent, horizon=date(2024, 4, 15)) == []

        rent.cancel()
        store.save_obligation(rent)
        assert materializer.materialize(rent, horizon=date(2024, 12, 31)) == []
        assert len(store.occurrences_for(rent.id)) == 4
