"""Aggregation engine: the only path through which expenses are mutated.

Each create/update/delete of an expense record is paired with exactly one
monthly summary adjustment in the same store transaction. Creation can
fall back to the offline queue; update and delete require connectivity.
"""

from __future__ import annotations

import logging
from datetime import timedelta
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from wallet.core.clock import Clock, SystemClock
from wallet.core.errors import NotFoundError, TransactionError
from wallet.models.expense import Expense
from wallet.models.monthly_summary import MonthlySummary
from wallet.models.pending_expense import PendingExpense
from wallet.schemas.expense import (
    ExpenseInput,
    ExpenseSnapshot,
    ExpenseUpdateRequest,
    NormalizedExpense,
    SubmitResult,
)
from wallet.services.category_cache import CategoryCache
from wallet.services.connectivity import ConnectivityMonitor
from wallet.services.expense_store import build_expense, replace_fields
from wallet.services.normalization import normalize_expense_input
from wallet.services.offline_policy import Operation, ensure_online
from wallet.services.offline_queue import OfflineQueue
from wallet.services.summary_store import (
    SummaryDelta,
    apply_delta,
    get_summary,
    list_summaries,
    new_summary,
)
from wallet.services.transaction import TransactionContext, run_in_transaction

logger = logging.getLogger(__name__)


def _merge_update(record: Expense, fields: ExpenseUpdateRequest) -> ExpenseInput:
    def pick(name: str):
        value = getattr(fields, name)
        return getattr(record, name) if value is None else value

    return ExpenseInput(
        category=pick("category"),
        name=pick("name"),
        quantity=pick("quantity"),
        unit=pick("unit"),
        amount=pick("amount"),
        description=pick("description"),
        date=pick("date"),
    )


class AggregationEngine:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        queue: OfflineQueue,
        connectivity: ConnectivityMonitor,
        *,
        clock: Clock | None = None,
        category_cache: CategoryCache | None = None,
        category_cache_ttl: timedelta = timedelta(minutes=5),
    ):
        self.session_factory = session_factory
        self.queue = queue
        self.connectivity = connectivity
        self.clock = clock or SystemClock()
        self.category_cache = category_cache or CategoryCache(
            self._load_summaries,
            clock=self.clock,
            ttl=category_cache_ttl,
        )

    async def _load_summaries(self, user_id: str) -> list[MonthlySummary]:
        async with self.session_factory() as session:
            return await list_summaries(session, user_id=user_id)

    async def submit(self, user_id: str, payload: ExpenseInput) -> SubmitResult:
        expense = normalize_expense_input(payload, now=self.clock.now())

        if not self.connectivity.is_online:
            ensure_online(Operation.CREATE, self.connectivity)
            queue_id = await self.queue.enqueue(user_id, expense)
            return SubmitResult(outcome="queued-offline", queue_id=queue_id)

        try:
            expense_id = await self.create_online(user_id, expense)
        except TransactionError as exc:
            logger.warning("online save failed, queueing expense offline: %s", exc)
            queue_id = await self.queue.enqueue(user_id, expense)
            return SubmitResult(outcome="queued-offline", queue_id=queue_id)

        return SubmitResult(outcome="saved", id=str(expense_id))

    async def create_online(self, user_id: str, expense: NormalizedExpense) -> UUID:
        """Write the expense and its summary increment in one transaction."""
        now = self.clock.now()

        async def work(tx: TransactionContext) -> UUID:
            summary = await tx.read_summary(expense.year_month)

            record = build_expense(user_id, expense, now=now)
            if summary is None:
                summary = new_summary(user_id, expense.year_month)
            apply_delta(summary, SummaryDelta.added(expense.category, expense.amount), now=now)
            tx.write_expense(record)
            tx.write_summary(summary)
            return record.id

        expense_id = await run_in_transaction(self.session_factory, user_id, work)
        self.category_cache.add_category(user_id, expense.category)
        logger.info("expense saved: id=%s year_month=%s", expense_id, expense.year_month)
        return expense_id

    async def delete(
        self,
        user_id: str,
        expense_id: UUID,
        snapshot: ExpenseSnapshot | None = None,
    ) -> None:
        ensure_online(Operation.DELETE, self.connectivity)
        now = self.clock.now()

        async def work(tx: TransactionContext) -> None:
            record = await tx.read_expense(expense_id)
            if record is None:
                raise NotFoundError(f"Expense {expense_id} not found.")
            basis = snapshot or ExpenseSnapshot(
                category=record.category,
                amount=record.amount,
                year_month=record.year_month,
            )
            summary = await tx.read_summary(basis.year_month)
            if summary is None:
                raise NotFoundError(f"Monthly summary {basis.year_month} not found.")

            apply_delta(summary, SummaryDelta.removed(basis.category, basis.amount), now=now)
            await tx.delete_expense(record)
            tx.write_summary(summary)

        await run_in_transaction(self.session_factory, user_id, work)
        logger.info("expense deleted: id=%s", expense_id)

    async def update(
        self,
        user_id: str,
        expense_id: UUID,
        fields: ExpenseUpdateRequest,
        old_year_month: str | None = None,
    ) -> Expense:
        ensure_online(Operation.UPDATE, self.connectivity)
        now = self.clock.now()

        async def work(tx: TransactionContext) -> tuple[Expense, NormalizedExpense]:
            record = await tx.read_expense(expense_id)
            if record is None:
                raise NotFoundError(f"Expense {expense_id} not found.")
            source_month = old_year_month or fields.old_year_month or record.year_month
            updated = normalize_expense_input(_merge_update(record, fields), now=record.date)

            source_summary = await tx.read_summary(source_month)
            if source_summary is None:
                raise NotFoundError(f"Monthly summary {source_month} not found.")

            if updated.year_month == source_month:
                apply_delta(
                    source_summary,
                    SummaryDelta.replaced(
                        old_category=record.category,
                        old_amount=record.amount,
                        new_category=updated.category,
                        new_amount=updated.amount,
                    ),
                    now=now,
                )
                tx.write_summary(source_summary)
            else:
                target_summary = await tx.read_summary(updated.year_month)
                if target_summary is None:
                    target_summary = new_summary(user_id, updated.year_month)
                apply_delta(
                    source_summary,
                    SummaryDelta.removed(record.category, record.amount),
                    now=now,
                )
                apply_delta(
                    target_summary,
                    SummaryDelta.added(updated.category, updated.amount),
                    now=now,
                )
                tx.write_summary(source_summary)
                tx.write_summary(target_summary)

            replace_fields(record, updated, now=now)
            tx.write_expense(record)
            return record, updated

        record, updated = await run_in_transaction(self.session_factory, user_id, work)
        self.category_cache.add_category(user_id, updated.category)
        logger.info("expense updated: id=%s year_month=%s", expense_id, updated.year_month)
        return record

    async def get_monthly_summary(self, user_id: str, year_month: str) -> MonthlySummary | None:
        async with self.session_factory() as session:
            return await get_summary(session, user_id=user_id, year_month=year_month)

    async def get_categories(self, user_id: str) -> list[str]:
        return await self.category_cache.get_categories(user_id)

    async def list_pending_mutations(self, user_id: str) -> list[PendingExpense]:
        return await self.queue.list_by_user(user_id)
