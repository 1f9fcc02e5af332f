from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date

from sqlalchemy.ext.asyncio import AsyncSession

from wallet.models.expense import Expense
from wallet.models.monthly_summary import MonthlySummary
from wallet.services.expense_store import query_by_year_month, query_recent
from wallet.services.normalization import year_month_for
from wallet.services.summary_store import get_summary

RECENT_EXPENSES_LIMIT = 10


@dataclass
class CategoryTotal:
    category: str
    total: float
    percentage: float


@dataclass
class DailyTotal:
    day: int
    total: float
    avg_amount: float


@dataclass
class DashboardData:
    year_month: str
    current_month_total: float
    previous_month_total: float
    monthly_change: float
    category_totals: list[CategoryTotal] = field(default_factory=list)
    daily_totals: list[DailyTotal] = field(default_factory=list)
    recent_expenses: list[Expense] = field(default_factory=list)
    monthly_summary: MonthlySummary | None = None


def shift_months(value: date, delta_months: int) -> date:
    month_index = (value.month - 1) + delta_months
    year = value.year + (month_index // 12)
    month = (month_index % 12) + 1
    return date(year, month, 1)


def month_label(value: date) -> str:
    return value.strftime("%b %Y")


def _category_totals(summary: MonthlySummary | None) -> list[CategoryTotal]:
    if summary is None or not summary.total_amount:
        return []
    return [
        CategoryTotal(
            category=category,
            total=total,
            percentage=(total / summary.total_amount) * 100,
        )
        for category, total in sorted(
            summary.category_breakdown.items(),
            key=lambda item: item[1],
            reverse=True,
        )
    ]


def _daily_totals(expenses: list[Expense]) -> list[DailyTotal]:
    totals: dict[int, float] = defaultdict(float)
    counts: dict[int, int] = defaultdict(int)
    for expense in expenses:
        totals[expense.day] += expense.amount
        counts[expense.day] += 1
    return [
        DailyTotal(day=day, total=round(total, 2), avg_amount=total / counts[day])
        for day, total in sorted(totals.items())
    ]


async def fetch_dashboard(
    session: AsyncSession,
    *,
    user_id: str,
    selected_date: date,
) -> DashboardData:
    current_month = year_month_for(selected_date)
    previous_month = year_month_for(shift_months(selected_date, -1))

    current_summary = await get_summary(session, user_id=user_id, year_month=current_month)
    previous_summary = await get_summary(session, user_id=user_id, year_month=previous_month)
    month_expenses = await query_by_year_month(session, user_id=user_id, year_month=current_month)
    recent = await query_recent(session, user_id=user_id, limit=RECENT_EXPENSES_LIMIT)

    current_total = current_summary.total_amount if current_summary else 0.0
    previous_total = previous_summary.total_amount if previous_summary else 0.0
    monthly_change = (
        ((current_total - previous_total) / previous_total) * 100 if previous_total else 0.0
    )

    return DashboardData(
        year_month=current_month,
        current_month_total=current_total,
        previous_month_total=previous_total,
        monthly_change=monthly_change,
        category_totals=_category_totals(current_summary),
        daily_totals=_daily_totals(month_expenses),
        recent_expenses=recent,
        monthly_summary=current_summary,
    )


async def monthly_comparison(
    session: AsyncSession,
    *,
    user_id: str,
    today: date,
    months: int = 6,
) -> list[tuple[str, float]]:
    points: list[tuple[str, float]] = []
    for offset in range(months - 1, -1, -1):
        month_start = shift_months(today, -offset)
        summary = await get_summary(
            session, user_id=user_id, year_month=year_month_for(month_start)
        )
        points.append((month_label(month_start), summary.total_amount if summary else 0.0))
    return points


async def category_trends(
    session: AsyncSession,
    *,
    user_id: str,
    today: date,
    months: int = 3,
) -> dict[str, list[tuple[str, float]]]:
    trends: dict[str, list[tuple[str, float]]] = defaultdict(list)
    for offset in range(months - 1, -1, -1):
        month_start = shift_months(today, -offset)
        summary = await get_summary(
            session, user_id=user_id, year_month=year_month_for(month_start)
        )
        if summary is None:
            continue
        for category, amount in summary.category_breakdown.items():
            trends[category].append((month_label(month_start), amount))
    return dict(trends)
