from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from wallet.core.clock import utc_now_naive
from wallet.core.errors import SummaryExistsError
from wallet.models.monthly_summary import MonthlySummary
from wallet.services.normalization import days_in_month, round_money


@dataclass(frozen=True)
class SummaryDelta:
    """Signed adjustment to one monthly summary.

    ``category_steps`` are applied in order; each step may remove its
    category key when the running amount drops to zero or below.
    """

    category_steps: tuple[tuple[str, float], ...]
    count_delta: int = 0

    @property
    def amount_change(self) -> float:
        return sum(change for _, change in self.category_steps)

    @classmethod
    def added(cls, category: str, amount: float) -> SummaryDelta:
        return cls(category_steps=((category, amount),), count_delta=1)

    @classmethod
    def removed(cls, category: str, amount: float) -> SummaryDelta:
        return cls(category_steps=((category, -amount),), count_delta=-1)

    @classmethod
    def replaced(
        cls,
        *,
        old_category: str,
        old_amount: float,
        new_category: str,
        new_amount: float,
    ) -> SummaryDelta:
        return cls(
            category_steps=((old_category, -old_amount), (new_category, new_amount)),
            count_delta=0,
        )


def new_summary(user_id: str, year_month: str) -> MonthlySummary:
    return MonthlySummary(
        user_id=user_id,
        year_month=year_month,
        total_amount=0.0,
        category_breakdown={},
        expense_count=0,
        avg_per_day=0.0,
    )


def apply_delta(
    summary: MonthlySummary,
    delta: SummaryDelta,
    *,
    now: datetime | None = None,
) -> MonthlySummary:
    breakdown = dict(summary.category_breakdown or {})
    for category, change in delta.category_steps:
        updated = round_money(breakdown.get(category, 0.0) + change)
        if updated <= 0:
            breakdown.pop(category, None)
        else:
            breakdown[category] = updated

    total = round_money(summary.total_amount + delta.amount_change)
    summary.category_breakdown = breakdown
    summary.total_amount = total
    summary.expense_count = max(0, summary.expense_count + delta.count_delta)
    summary.avg_per_day = total / days_in_month(summary.year_month)
    summary.updated_at = now or utc_now_naive()
    return summary


async def get_summary(
    session: AsyncSession,
    *,
    user_id: str,
    year_month: str,
) -> MonthlySummary | None:
    result = await session.execute(
        select(MonthlySummary).where(
            MonthlySummary.user_id == user_id,
            MonthlySummary.year_month == year_month,
        )
    )
    return result.scalar_one_or_none()


async def list_summaries(session: AsyncSession, *, user_id: str) -> list[MonthlySummary]:
    result = await session.execute(
        select(MonthlySummary)
        .where(MonthlySummary.user_id == user_id)
        .order_by(MonthlySummary.year_month.asc())
    )
    return list(result.scalars().all())


async def create_summary(
    session: AsyncSession,
    *,
    user_id: str,
    year_month: str,
    summary: MonthlySummary,
) -> MonthlySummary:
    existing = await get_summary(session, user_id=user_id, year_month=year_month)
    if existing is not None:
        raise SummaryExistsError(f"Monthly summary {year_month} already exists.")
    summary.user_id = user_id
    summary.year_month = year_month
    session.add(summary)
    await session.commit()
    await session.refresh(summary)
    return summary
