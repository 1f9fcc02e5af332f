from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import TypeVar
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlmodel import select

from wallet.core.errors import TransactionError, TransactionOrderError
from wallet.models.expense import Expense
from wallet.models.monthly_summary import MonthlySummary

T = TypeVar("T")


class TransactionContext:
    """Capability handed to transactional work.

    All reads must be issued before the first write; reading afterwards
    raises ``TransactionOrderError``. Writes are staged on the session and
    committed together when the work returns. Summary rows carry a version,
    so committing over a summary changed since it was read fails with
    ``TransactionError``.
    """

    def __init__(self, session: AsyncSession, user_id: str):
        self.session = session
        self.user_id = user_id
        self._has_written = False

    @property
    def has_written(self) -> bool:
        return self._has_written

    def _ensure_read_phase(self, target: str) -> None:
        if self._has_written:
            raise TransactionOrderError(
                f"Cannot read {target} after a write in the same transaction."
            )

    async def read_expense(self, expense_id: UUID) -> Expense | None:
        self._ensure_read_phase("expense")
        result = await self.session.execute(
            select(Expense).where(
                Expense.id == expense_id,
                Expense.user_id == self.user_id,
            )
        )
        return result.scalar_one_or_none()

    async def read_expenses(self) -> list[Expense]:
        self._ensure_read_phase("expenses")
        result = await self.session.execute(
            select(Expense).where(Expense.user_id == self.user_id)
        )
        return list(result.scalars().all())

    async def read_summary(self, year_month: str) -> MonthlySummary | None:
        self._ensure_read_phase(f"summary {year_month}")
        result = await self.session.execute(
            select(MonthlySummary)
            .where(
                MonthlySummary.user_id == self.user_id,
                MonthlySummary.year_month == year_month,
            )
            .with_for_update()
        )
        return result.scalar_one_or_none()

    async def read_summaries(self) -> list[MonthlySummary]:
        self._ensure_read_phase("summaries")
        result = await self.session.execute(
            select(MonthlySummary)
            .where(MonthlySummary.user_id == self.user_id)
            .with_for_update()
        )
        return list(result.scalars().all())

    def write_expense(self, expense: Expense) -> None:
        self._has_written = True
        self.session.add(expense)

    def write_summary(self, summary: MonthlySummary) -> None:
        self._has_written = True
        self.session.add(summary)

    async def delete_expense(self, expense: Expense) -> None:
        self._has_written = True
        await self.session.delete(expense)


async def run_in_transaction(
    session_factory: async_sessionmaker[AsyncSession],
    user_id: str,
    work: Callable[[TransactionContext], Awaitable[T]],
) -> T:
    """Run ``work`` in one store transaction, committing only if it returns."""
    try:
        async with session_factory() as session:
            async with session.begin():
                return await work(TransactionContext(session, user_id))
    except SQLAlchemyError as exc:
        raise TransactionError(f"Store transaction failed: {exc}") from exc
