"""
SQL store — obligations, occurrences and loan plans in any SQL database.

Works with PostgreSQL, MySQL, SQLite, etc. via SQLAlchemy Core. Money is
stored as integer cents. A unique constraint on (obligation_id, date) makes
the database the arbiter between concurrent materializers: the losing
insert fails with ``IntegrityError`` and surfaces as
:class:`~duecycle.exceptions.DuplicateOccurrenceError`.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import date
from decimal import Decimal
from typing import Any

from sqlalchemy import (
    JSON,
    BigInteger,
    Boolean,
    Column,
    Date,
    ForeignKey,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    UniqueConstraint,
    create_engine,
    select,
)
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError
from sqlalchemy.pool import StaticPool

from duecycle.engine.recurrence import RecurrencePattern
from duecycle.engine.state import ProcessingState
from duecycle.exceptions import DuplicateOccurrenceError
from duecycle.models.loan import Installment, LoanPlan
from duecycle.models.obligation import Obligation, Occurrence
from duecycle.models.tags import Tag
from duecycle.store.base import ObligationStore

logger = logging.getLogger("duecycle.store.sql")

metadata = MetaData()

obligations_table = Table(
    "obligations",
    metadata,
    Column("id", String(64), primary_key=True),
    Column("description", Text, nullable=False),
    Column("amount_cents", BigInteger, nullable=False),
    Column("is_income", Boolean, nullable=False),
    Column("start_date", Date, nullable=False),
    Column("end_date", Date, nullable=True),
    Column("pattern", String(16), nullable=False),
    Column("interval", Integer, nullable=False),
    Column("state", String(16), nullable=False),
    Column("tag_ids", JSON, nullable=False),
)

occurrences_table = Table(
    "occurrences",
    metadata,
    Column("id", String(64), primary_key=True),
    Column("obligation_id", String(64), nullable=False, index=True),
    Column("date", Date, nullable=False),
    Column("amount_cents", BigInteger, nullable=False),
    Column("is_income", Boolean, nullable=False),
    Column("description", Text, nullable=False, default=""),
    Column("tags", JSON, nullable=False),
    UniqueConstraint("obligation_id", "date", name="uq_occurrence_obligation_date"),
)

occurrence_tags_table = Table(
    "occurrence_tags",
    metadata,
    Column("occurrence_id", String(64), ForeignKey("occurrences.id", ondelete="CASCADE"), primary_key=True),
    Column("tag_id", String(64), primary_key=True, index=True),
)

loan_plans_table = Table(
    "loan_plans",
    metadata,
    Column("id", String(64), primary_key=True),
    Column("description", Text, nullable=False),
    Column("principal_cents", BigInteger, nullable=False),
    Column("annual_rate", String(32), nullable=False),
    Column("term_months", Integer, nullable=False),
    Column("start_date", Date, nullable=False),
    Column("installments", JSON, nullable=False),
)


def _to_cents(amount: Decimal) -> int:
    return int(amount * 100)


def _from_cents(cents: int) -> Decimal:
    return (Decimal(cents) / 100).quantize(Decimal("0.01"))


class SQLObligationStore(ObligationStore):
    """Obligation store on top of a SQLAlchemy engine.

    Usage::

        store = SQLObligationStore(url="postgresql://...")
        store = SQLObligationStore(url="sqlite://")  # private in-memory database
    """

    name = "sql"

    def __init__(
        self,
        url: str | None = None,
        engine: Engine | None = None,
        create_tables: bool = True,
        **options: Any,
    ) -> None:
        if engine is None:
            if not url:
                raise ValueError("SQLObligationStore needs a database url or an engine")
            engine = self._create_engine(url, **options)
        self.engine = engine
        if create_tables:
            metadata.create_all(self.engine)

    @staticmethod
    def _create_engine(url: str, **options: Any) -> Engine:
        if url in ("sqlite://", "sqlite:///:memory:"):
            # One shared connection, otherwise every checkout sees an empty database
            return create_engine(
                url,
                poolclass=StaticPool,
                connect_args={"check_same_thread": False},
                **options,
            )
        return create_engine(url, **options)

    # Occurrences

    def find_occurrence(self, obligation_id: str, on: date) -> Occurrence | None:
        query = select(occurrences_table).where(
            occurrences_table.c.obligation_id == obligation_id,
            occurrences_table.c.date == on,
        )
        with self.engine.connect() as conn:
            row = conn.execute(query).mappings().first()
        return self._occurrence_from_row(row) if row else None

    def save_occurrence(self, occurrence: Occurrence) -> None:
        try:
            with self.engine.begin() as conn:
                conn.execute(occurrences_table.insert().values(
                    id=occurrence.id,
                    obligation_id=occurrence.obligation_id,
                    date=occurrence.date,
                    amount_cents=_to_cents(occurrence.amount),
                    is_income=occurrence.is_income,
                    description=occurrence.description,
                    tags=[t.model_dump(mode="json") for t in sorted(occurrence.tags, key=lambda t: t.id)],
                ))
                if occurrence.tags:
                    conn.execute(
                        occurrence_tags_table.insert(),
                        [{"occurrence_id": occurrence.id, "tag_id": t.id} for t in occurrence.tags],
                    )
        except IntegrityError as exc:
            raise DuplicateOccurrenceError(occurrence.obligation_id, occurrence.date) from exc

    def find_occurrences_in_range(
        self,
        tag_ids: Iterable[str] | None,
        start: date,
        end: date,
    ) -> list[Occurrence]:
        query = select(occurrences_table).where(
            occurrences_table.c.date >= start,
            occurrences_table.c.date <= end,
        )
        if tag_ids is not None:
            tagged = select(occurrence_tags_table.c.occurrence_id).where(
                occurrence_tags_table.c.tag_id.in_(list(tag_ids))
            )
            query = query.where(occurrences_table.c.id.in_(tagged))
        query = query.order_by(occurrences_table.c.date, occurrences_table.c.obligation_id)

        with self.engine.connect() as conn:
            rows = conn.execute(query).mappings().all()
        return [self._occurrence_from_row(row) for row in rows]

    def occurrences_for(self, obligation_id: str) -> list[Occurrence]:
        query = (
            select(occurrences_table)
            .where(occurrences_table.c.obligation_id == obligation_id)
            .order_by(occurrences_table.c.date)
        )
        with self.engine.connect() as conn:
            rows = conn.execute(query).mappings().all()
        return [self._occurrence_from_row(row) for row in rows]

    # Obligations

    def save_obligation(self, obligation: Obligation) -> None:
        values = {
            "description": obligation.description,
            "amount_cents": _to_cents(obligation.amount),
            "is_income": obligation.is_income,
            "start_date": obligation.start_date,
            "end_date": obligation.end_date,
            "pattern": obligation.pattern.value,
            "interval": obligation.interval,
            "state": obligation.state.value,
            "tag_ids": sorted(obligation.tag_ids),
        }
        with self.engine.begin() as conn:
            result = conn.execute(
                obligations_table.update()
                .where(obligations_table.c.id == obligation.id)
                .values(**values)
            )
            if result.rowcount == 0:
                conn.execute(obligations_table.insert().values(id=obligation.id, **values))
        logger.debug("Saved obligation %s (%s)", obligation.id, obligation.state.value)

    def get_obligation(self, obligation_id: str) -> Obligation | None:
        query = select(obligations_table).where(obligations_table.c.id == obligation_id)
        with self.engine.connect() as conn:
            row = conn.execute(query).mappings().first()
        return self._obligation_from_row(row) if row else None

    def list_obligations(self) -> list[Obligation]:
        with self.engine.connect() as conn:
            rows = conn.execute(select(obligations_table).order_by(obligations_table.c.start_date)).mappings().all()
        return [self._obligation_from_row(row) for row in rows]

    # Loan plans

    def save_loan_plan(self, plan: LoanPlan) -> None:
        with self.engine.begin() as conn:
            conn.execute(loan_plans_table.insert().values(
                id=plan.id,
                description=plan.description,
                principal_cents=_to_cents(plan.principal),
                annual_rate=str(plan.annual_rate),
                term_months=plan.term_months,
                start_date=plan.start_date,
                installments=[i.model_dump(mode="json") for i in plan.installments],
            ))

    def get_loan_plan(self, plan_id: str) -> LoanPlan | None:
        query = select(loan_plans_table).where(loan_plans_table.c.id == plan_id)
        with self.engine.connect() as conn:
            row = conn.execute(query).mappings().first()
        if row is None:
            return None
        return LoanPlan(
            id=row["id"],
            description=row["description"],
            principal=_from_cents(row["principal_cents"]),
            annual_rate=Decimal(row["annual_rate"]),
            term_months=row["term_months"],
            start_date=row["start_date"],
            installments=tuple(Installment.model_validate(i) for i in row["installments"]),
        )

    # Row mapping

    @staticmethod
    def _occurrence_from_row(row: Any) -> Occurrence:
        return Occurrence(
            id=row["id"],
            obligation_id=row["obligation_id"],
            date=row["date"],
            amount=_from_cents(row["amount_cents"]),
            is_income=row["is_income"],
            description=row["description"] or "",
            tags=frozenset(Tag.model_validate(t) for t in row["tags"]),
        )

    @staticmethod
    def _obligation_from_row(row: Any) -> Obligation:
        return Obligation(
            id=row["id"],
            description=row["description"],
            amount=_from_cents(row["amount_cents"]),
            is_income=row["is_income"],
            start_date=row["start_date"],
            end_date=row["end_date"],
            pattern=RecurrencePattern(row["pattern"]),
            interval=row["interval"],
            state=ProcessingState(row["state"]),
            tag_ids=set(row["tag_ids"]),
        )
