from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import date
from typing import Iterable, Iterator, Mapping, Optional

from sqlalchemy import delete, func, select, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from csv_utils import parse_csv, parse_rows
from models import FlowDirection, LedgerEntry
from schemas import LedgerRecordIn
from settlement import SettlementResult, settle

logger = logging.getLogger(__name__)


class NoValidRecords(ValueError):
    def __init__(self, errors: Optional[list[str]] = None) -> None:
        self.errors = list(errors or [])
        super().__init__("No valid records found")


class PersistenceError(RuntimeError):
    def __init__(self, cause: BaseException, errors: Optional[list[str]] = None) -> None:
        self.cause = cause
        self.errors = list(errors or [])
        super().__init__(f"Failed to store ledger records: {cause}")


@dataclass
class IngestResult:
    processed_count: int
    errors: list[str]
    touched_periods: list[str]
    deleted_counts: dict[str, int] = field(default_factory=dict)
    success: bool = True


@dataclass(frozen=True)
class PersonTotal:
    person: str
    amount: int


@dataclass(frozen=True)
class CategoryTotal:
    category: str
    amount: int


@dataclass(frozen=True)
class CategoryPersonTotal:
    category: str
    person: str
    amount: int


@dataclass(frozen=True)
class RecordDetail:
    record_date: date
    payment_method: str
    amount: int
    location: str
    memo: str


@dataclass(frozen=True)
class CategoryPersonDetail:
    category: str
    person: str
    records: list[RecordDetail]


@dataclass(frozen=True)
class PeriodCount:
    period: str
    record_count: int


@dataclass(frozen=True)
class PeriodSummary:
    period: str
    grand_total: int
    person_totals: list[PersonTotal]
    category_totals: list[CategoryTotal]
    category_person_matrix: list[CategoryPersonTotal]
    details: list[CategoryPersonDetail]

    @property
    def person_count(self) -> int:
        return len(self.person_totals)

    @property
    def persons(self) -> list[str]:
        return [total.person for total in self.person_totals]

    @property
    def categories(self) -> list[str]:
        return [total.category for total in self.category_totals]


# One lock per period key, kept for the life of the process; bounded by the
# number of distinct months ever written.
_period_locks: dict[str, threading.Lock] = {}
_period_locks_guard = threading.Lock()


@contextmanager
def period_write_locks(periods: Iterable[str]) -> Iterator[None]:
    """Hold the in-process write lock of every period, taken in sorted order."""
    with _period_locks_guard:
        locks = [
            _period_locks.setdefault(period, threading.Lock())
            for period in sorted(set(periods))
        ]
    for lock in locks:
        lock.acquire()
    try:
        yield
    finally:
        for lock in reversed(locks):
            lock.release()


class LedgerStore:
    def __init__(self, session: Session) -> None:
        self.session = session

    def _lock_period_in_database(self, period: str) -> None:
        bind = self.session.get_bind()
        if bind.dialect.name == "postgresql":
            self.session.execute(
                text("SELECT pg_advisory_xact_lock(hashtext(:key))"),
                {"key": f"household_records:{period}"},
            )

    def replace_period(self, period: str, records: list[LedgerRecordIn]) -> int:
        """Swap every stored record of ``period`` for ``records``.

        Runs inside the caller's transaction and never commits.
        """
        self._lock_period_in_database(period)
        result = self.session.execute(
            delete(LedgerEntry)
            .where(LedgerEntry.year_month == period)
            .execution_options(synchronize_session=False)
        )
        deleted = int(result.rowcount or 0)
        self.session.add_all(
            LedgerEntry(
                record_date=record.record_date,
                income_expense=record.income_expense,
                payment_method=record.payment_method,
                category=record.category,
                person=record.person,
                amount=record.amount,
                location=record.location,
                memo=record.memo,
                year_month=period,
            )
            for record in records
        )
        self.session.flush()
        return deleted

    def replace_periods(
        self, batches: Mapping[str, list[LedgerRecordIn]]
    ) -> dict[str, int]:
        deleted_counts: dict[str, int] = {}
        with period_write_locks(batches.keys()):
            try:
                for period in sorted(batches):
                    deleted_counts[period] = self.replace_period(
                        period, batches[period]
                    )
                self.session.commit()
            except SQLAlchemyError as exc:
                self.session.rollback()
                logger.exception(
                    f"ledger_replace_failed: periods={','.join(sorted(batches))}"
                )
                raise PersistenceError(exc) from exc
        for period, count in deleted_counts.items():
            if count:
                logger.info(
                    f"ledger_replace: period={period} deleted={count} "
                    f"inserted={len(batches[period])}"
                )
        return deleted_counts

    def entries_for_period(
        self, period: str, *, flow: Optional[FlowDirection] = None
    ) -> list[LedgerEntry]:
        stmt = select(LedgerEntry).where(LedgerEntry.year_month == period)
        if flow is not None:
            stmt = stmt.where(LedgerEntry.income_expense == flow.value)
        stmt = stmt.order_by(
            LedgerEntry.category,
            LedgerEntry.person,
            LedgerEntry.record_date,
            LedgerEntry.id,
        )
        return list(self.session.scalars(stmt).all())

    def available_periods(self) -> list[PeriodCount]:
        stmt = (
            select(LedgerEntry.year_month, func.count(LedgerEntry.id))
            .group_by(LedgerEntry.year_month)
            .order_by(LedgerEntry.year_month.desc())
        )
        return [
            PeriodCount(period=period, record_count=int(count))
            for period, count in self.session.execute(stmt)
        ]


class LedgerService:
    def __init__(self, session: Session, store: Optional[LedgerStore] = None) -> None:
        self.session = session
        self.store = store or LedgerStore(session)

    def ingest(self, rows: Iterable[Mapping[str, Optional[str]]]) -> IngestResult:
        records, errors = parse_rows(rows)
        return self._store_batch(records, errors)

    def ingest_csv(self, content: str) -> IngestResult:
        records, errors = parse_csv(content)
        return self._store_batch(records, errors)

    def _store_batch(
        self, records: list[LedgerRecordIn], errors: list[str]
    ) -> IngestResult:
        if not records:
            logger.info(f"ledger_ingest_rejected: row_errors={len(errors)}")
            raise NoValidRecords(errors)

        batches: dict[str, list[LedgerRecordIn]] = {}
        for record in records:
            batches.setdefault(record.period, []).append(record)

        try:
            deleted_counts = self.store.replace_periods(batches)
        except PersistenceError as exc:
            exc.errors = errors
            raise

        touched = sorted(batches)
        logger.info(
            f"ledger_ingest: processed={len(records)} row_errors={len(errors)} "
            f"periods={','.join(touched)}"
        )
        return IngestResult(
            processed_count=len(records),
            errors=errors,
            touched_periods=touched,
            deleted_counts=deleted_counts,
        )

    def summarize(self, period: str) -> PeriodSummary:
        entries = self.store.entries_for_period(period, flow=FlowDirection.expense)

        person_sums: dict[str, int] = {}
        category_sums: dict[str, int] = {}
        pair_sums: dict[tuple[str, str], int] = {}
        pair_records: dict[tuple[str, str], list[RecordDetail]] = {}
        for entry in entries:
            key = (entry.category, entry.person)
            person_sums[entry.person] = person_sums.get(entry.person, 0) + entry.amount
            category_sums[entry.category] = (
                category_sums.get(entry.category, 0) + entry.amount
            )
            pair_sums[key] = pair_sums.get(key, 0) + entry.amount
            pair_records.setdefault(key, []).append(
                RecordDetail(
                    record_date=entry.record_date,
                    payment_method=entry.payment_method,
                    amount=entry.amount,
                    location=entry.location,
                    memo=entry.memo,
                )
            )

        return PeriodSummary(
            period=period,
            grand_total=sum(entry.amount for entry in entries),
            person_totals=[
                PersonTotal(person, person_sums[person]) for person in sorted(person_sums)
            ],
            category_totals=[
                CategoryTotal(category, category_sums[category])
                for category in sorted(category_sums)
            ],
            category_person_matrix=[
                CategoryPersonTotal(category, person, pair_sums[(category, person)])
                for category, person in sorted(pair_sums)
            ],
            details=[
                CategoryPersonDetail(category, person, pair_records[(category, person)])
                for category, person in sorted(pair_records)
            ],
        )

    def settle_period(self, period: str) -> tuple[PeriodSummary, SettlementResult]:
        summary = self.summarize(period)
        return summary, settle(summary.person_totals)

    def available_periods(self) -> list[PeriodCount]:
        return self.store.available_periods()

