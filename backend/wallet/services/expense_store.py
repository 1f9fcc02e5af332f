from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from wallet.core.clock import utc_now_naive
from wallet.core.errors import NotFoundError
from wallet.models.expense import Expense
from wallet.schemas.expense import NormalizedExpense


def build_expense(user_id: str, expense: NormalizedExpense, *, now: datetime | None = None) -> Expense:
    timestamp = now or utc_now_naive()
    return Expense(
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
        created_at=timestamp,
        updated_at=timestamp,
    )


def replace_fields(record: Expense, expense: NormalizedExpense, *, now: datetime | None = None) -> Expense:
    record.category = expense.category
    record.name = expense.name
    record.quantity = expense.quantity
    record.unit = expense.unit
    record.amount = expense.amount
    record.description = expense.description
    record.date = expense.date
    record.year_month = expense.year_month
    record.day = expense.day
    record.updated_at = now or utc_now_naive()
    return record


async def create_expense(
    session: AsyncSession,
    *,
    user_id: str,
    expense: NormalizedExpense,
) -> UUID:
    record = build_expense(user_id, expense)
    session.add(record)
    await session.commit()
    return record.id


async def get_expense(session: AsyncSession, *, user_id: str, expense_id: UUID) -> Expense:
    result = await session.execute(
        select(Expense).where(Expense.id == expense_id, Expense.user_id == user_id)
    )
    record = result.scalar_one_or_none()
    if record is None:
        raise NotFoundError(f"Expense {expense_id} not found.")
    return record


async def update_expense(
    session: AsyncSession,
    *,
    user_id: str,
    expense_id: UUID,
    expense: NormalizedExpense,
) -> Expense:
    record = await get_expense(session, user_id=user_id, expense_id=expense_id)
    replace_fields(record, expense)
    session.add(record)
    await session.commit()
    await session.refresh(record)
    return record


async def delete_expense(session: AsyncSession, *, user_id: str, expense_id: UUID) -> None:
    record = await get_expense(session, user_id=user_id, expense_id=expense_id)
    await session.delete(record)
    await session.commit()


async def query_recent(session: AsyncSession, *, user_id: str, limit: int = 10) -> list[Expense]:
    result = await session.execute(
        select(Expense)
        .where(Expense.user_id == user_id)
        .order_by(Expense.date.desc(), Expense.created_at.desc())
        .limit(limit)
    )
    return list(result.scalars().all())


async def query_by_year_month(
    session: AsyncSession,
    *,
    user_id: str,
    year_month: str,
) -> list[Expense]:
    result = await session.execute(
        select(Expense)
        .where(Expense.user_id == user_id, Expense.year_month == year_month)
        .order_by(Expense.date.asc())
    )
    return list(result.scalars().all())


async def query_by_date_range(
    session: AsyncSession,
    *,
    user_id: str,
    start: datetime,
    end: datetime,
) -> list[Expense]:
    result = await session.execute(
        select(Expense)
        .where(
            Expense.user_id == user_id,
            Expense.date >= start,
            Expense.date <= end,
        )
        .order_by(Expense.date.desc())
    )
    return list(result.scalars().all())


async def count_expenses(
    session: AsyncSession,
    *,
    user_id: str,
    year_month: str | None = None,
) -> int:
    filters = [Expense.user_id == user_id]
    if year_month is not None:
        filters.append(Expense.year_month == year_month)
    result = await session.execute(select(func.count()).select_from(Expense).where(*filters))
    return int(result.scalar_one() or 0)
