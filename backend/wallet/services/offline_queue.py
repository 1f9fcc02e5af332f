from __future__ import annotations

import logging

from sqlalchemy import func
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlmodel import select

from wallet.core.clock import Clock, SystemClock
from wallet.models.pending_expense import PendingExpense, PendingStatus
from wallet.schemas.expense import NormalizedExpense

logger = logging.getLogger(__name__)


def to_normalized_expense(entry: PendingExpense) -> NormalizedExpense:
    return NormalizedExpense(
        category=entry.category,
        name=entry.name,
        quantity=entry.quantity,
        unit=entry.unit,
        amount=entry.amount,
        description=entry.description,
        date=entry.date,
        year_month=entry.year_month,
        day=entry.day,
    )


class OfflineQueue:
    """Durable local queue of expense creations awaiting connectivity.

    Backed by its own database, separate from the document store.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        clock: Clock | None = None,
    ):
        self._session_factory = session_factory
        self._clock = clock or SystemClock()

    async def enqueue(self, user_id: str, expense: NormalizedExpense) -> int:
        entry = PendingExpense(
            user_id=user_id,
            category=expense.category,
            name=expense.name,
            quantity=expense.quantity,
            unit=expense.unit,
            amount=expense.amount,
            description=expense.description,
            date=expense.date,
            year_month=expense.year_month,
            day=expense.day,
            status=PendingStatus.PENDING,
            created_at=self._clock.now(),
        )
        async with self._session_factory() as session:
            session.add(entry)
            await session.commit()
            await session.refresh(entry)
        logger.info("expense queued offline: queue_id=%s year_month=%s", entry.id, entry.year_month)
        return entry.id

    async def get(self, queue_id: int) -> PendingExpense | None:
        async with self._session_factory() as session:
            return await session.get(PendingExpense, queue_id)

    async def list_by_user(self, user_id: str) -> list[PendingExpense]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(PendingExpense)
                .where(PendingExpense.user_id == user_id)
                .order_by(PendingExpense.id.asc())
            )
            return list(result.scalars().all())

    async def list_by_status(self, user_id: str, status: PendingStatus) -> list[PendingExpense]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(PendingExpense)
                .where(
                    PendingExpense.user_id == user_id,
                    PendingExpense.status == status,
                )
                .order_by(PendingExpense.id.asc())
            )
            return list(result.scalars().all())

    async def update_status(
        self,
        queue_id: int,
        status: PendingStatus,
        error: str | None = None,
    ) -> None:
        async with self._session_factory() as session:
            entry = await session.get(PendingExpense, queue_id)
            if entry is None:
                return
            entry.status = status
            entry.error = error
            session.add(entry)
            await session.commit()

    async def remove(self, queue_id: int) -> None:
        async with self._session_factory() as session:
            entry = await session.get(PendingExpense, queue_id)
            if entry is None:
                return
            await session.delete(entry)
            await session.commit()

    async def clear(self, user_id: str, queue_id: int) -> bool:
        async with self._session_factory() as session:
            entry = await session.get(PendingExpense, queue_id)
            if entry is None or entry.user_id != user_id:
                return False
            await session.delete(entry)
            await session.commit()
        logger.info("queued expense cleared: queue_id=%s", queue_id)
        return True

    async def retry_failed(self, user_id: str, *, include_syncing: bool = True) -> int:
        """Move failed entries back to ``pending``.

        Entries stuck in ``syncing`` after an interrupted run are requeued too,
        unless a sync for the user is in flight.
        """
        statuses = [PendingStatus.ERROR]
        if include_syncing:
            statuses.append(PendingStatus.SYNCING)
        async with self._session_factory() as session:
            result = await session.execute(
                select(PendingExpense)
                .where(
                    PendingExpense.user_id == user_id,
                    PendingExpense.status.in_(statuses),
                )
                .order_by(PendingExpense.id)
            )
            entries = result.scalars().all()
            for entry in entries:
                entry.status = PendingStatus.PENDING
                entry.error = None
                session.add(entry)
            await session.commit()
        return len(entries)

    async def pending_count(self, user_id: str) -> int:
        async with self._session_factory() as session:
            result = await session.execute(
                select(func.count())
                .select_from(PendingExpense)
                .where(
                    PendingExpense.user_id == user_id,
                    PendingExpense.status.in_(
                        [PendingStatus.PENDING, PendingStatus.SYNCING, PendingStatus.ERROR]
                    ),
                )
            )
            return int(result.scalar_one() or 0)

    async def users_with_pending(self) -> list[str]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(PendingExpense.user_id)
                .where(PendingExpense.status == PendingStatus.PENDING)
                .distinct()
            )
            return sorted(result.scalars().all())
