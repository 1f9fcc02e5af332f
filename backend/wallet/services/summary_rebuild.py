"""Recompute and check monthly summaries from the expense records."""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlmodel import select

from wallet.models.expense import Expense
from wallet.services.normalization import days_in_month, round_money
from wallet.services.summary_store import list_summaries, new_summary
from wallet.services.transaction import TransactionContext, run_in_transaction

logger = logging.getLogger(__name__)

AMOUNT_TOLERANCE = 0.01


@dataclass
class MonthAggregate:
    breakdown: dict[str, float] = field(default_factory=dict)
    expense_count: int = 0

    @property
    def total_amount(self) -> float:
        return round_money(sum(self.breakdown.values()))


@dataclass
class MonthValidation:
    year_month: str
    errors: list[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors


def aggregate_expenses(expenses: list[Expense]) -> dict[str, MonthAggregate]:
    sums: dict[str, dict[str, float]] = defaultdict(lambda: defaultdict(float))
    counts: dict[str, int] = defaultdict(int)
    for expense in expenses:
        sums[expense.year_month][expense.category] += expense.amount
        counts[expense.year_month] += 1

    aggregates: dict[str, MonthAggregate] = {}
    for year_month, count in counts.items():
        breakdown = {
            category: round_money(amount)
            for category, amount in sums[year_month].items()
            if round_money(amount) > 0
        }
        aggregates[year_month] = MonthAggregate(breakdown=breakdown, expense_count=count)
    return aggregates


async def rebuild_monthly_summaries(
    session_factory: async_sessionmaker[AsyncSession],
    *,
    user_id: str,
    now: datetime,
) -> tuple[list[str], int]:
    async def work(tx: TransactionContext) -> tuple[list[str], int]:
        expenses = await tx.read_expenses()
        existing = {summary.year_month: summary for summary in await tx.read_summaries()}

        aggregates = aggregate_expenses(expenses)
        months = sorted(set(aggregates) | set(existing))
        for year_month in months:
            aggregate = aggregates.get(year_month, MonthAggregate())
            summary = existing.get(year_month)
            if summary is None:
                summary = new_summary(user_id, year_month)
            summary.category_breakdown = dict(aggregate.breakdown)
            summary.total_amount = aggregate.total_amount
            summary.expense_count = aggregate.expense_count
            summary.avg_per_day = aggregate.total_amount / days_in_month(year_month)
            summary.updated_at = now
            tx.write_summary(summary)
        return months, len(expenses)

    months, expense_count = await run_in_transaction(session_factory, user_id, work)
    logger.info("monthly summaries rebuilt: months=%d expenses=%d", len(months), expense_count)
    return months, expense_count


async def validate_monthly_summaries(
    session: AsyncSession,
    *,
    user_id: str,
) -> list[MonthValidation]:
    result = await session.execute(select(Expense).where(Expense.user_id == user_id))
    aggregates = aggregate_expenses(list(result.scalars().all()))
    summaries = {summary.year_month: summary for summary in await list_summaries(session, user_id=user_id)}

    validations: list[MonthValidation] = []
    for year_month in sorted(set(aggregates) | set(summaries)):
        check = MonthValidation(year_month=year_month)
        aggregate = aggregates.get(year_month, MonthAggregate())
        summary = summaries.get(year_month)
        if summary is None:
            check.errors.append(f"Summary missing for {aggregate.expense_count} expense(s).")
            validations.append(check)
            continue

        breakdown_total = sum(summary.category_breakdown.values())
        if abs(summary.total_amount - breakdown_total) > AMOUNT_TOLERANCE:
            check.errors.append(
                f"Total {summary.total_amount} does not equal breakdown sum {breakdown_total}."
            )
        if abs(summary.total_amount - aggregate.total_amount) > AMOUNT_TOLERANCE:
            check.errors.append(
                f"Total amount mismatch: summary={summary.total_amount}, expenses={aggregate.total_amount}"
            )
        if summary.expense_count != aggregate.expense_count:
            check.errors.append(
                f"Expense count mismatch: summary={summary.expense_count}, expenses={aggregate.expense_count}"
            )
        if set(summary.category_breakdown) != set(aggregate.breakdown):
            check.errors.append("Categories do not match between summary and expenses.")
        else:
            for category, amount in aggregate.breakdown.items():
                if abs(summary.category_breakdown[category] - amount) > AMOUNT_TOLERANCE:
                    check.errors.append(
                        f"Category '{category}' mismatch: summary={summary.category_breakdown[category]}, expenses={amount}"
                    )
        if any(value <= 0 for value in summary.category_breakdown.values()):
            check.errors.append("Breakdown holds a non-positive category amount.")
        validations.append(check)
    return validations
