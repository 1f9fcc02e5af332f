from datetime import date

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from wallet.api.deps import (
    get_aggregation_engine,
    get_current_user_id,
    get_store_session,
    http_error_for,
)
from wallet.api.expenses import to_expense_item
from wallet.core.errors import WalletError
from wallet.models.monthly_summary import MonthlySummary
from wallet.schemas.summary import (
    CategoryTotalPoint,
    CategoryTrendPoint,
    CategoryTrendsResponse,
    DailyTotalPoint,
    DashboardResponse,
    MonthlyComparisonPoint,
    MonthlySummaryResponse,
    MonthValidationResult,
    SummaryRebuildResponse,
    SummaryValidationResponse,
)
from wallet.services.aggregation import AggregationEngine
from wallet.services.dashboard import category_trends, fetch_dashboard, monthly_comparison
from wallet.services.normalization import parse_year_month
from wallet.services.summary_rebuild import (
    rebuild_monthly_summaries,
    validate_monthly_summaries,
)

router = APIRouter(prefix="/summaries", tags=["summaries"])


def to_summary_response(summary: MonthlySummary) -> MonthlySummaryResponse:
    return MonthlySummaryResponse(
        year_month=summary.year_month,
        total_amount=summary.total_amount,
        category_breakdown=dict(summary.category_breakdown or {}),
        expense_count=summary.expense_count,
        avg_per_day=summary.avg_per_day,
    )


@router.get("/dashboard", response_model=DashboardResponse)
async def get_dashboard(
    selected_date: date | None = Query(default=None),
    user_id: str = Depends(get_current_user_id),
    engine: AggregationEngine = Depends(get_aggregation_engine),
    session: AsyncSession = Depends(get_store_session),
) -> DashboardResponse:
    dashboard = await fetch_dashboard(
        session,
        user_id=user_id,
        selected_date=selected_date or engine.clock.now().date(),
    )
    return DashboardResponse(
        year_month=dashboard.year_month,
        current_month_total=dashboard.current_month_total,
        previous_month_total=dashboard.previous_month_total,
        monthly_change=dashboard.monthly_change,
        category_totals=[
            CategoryTotalPoint(
                category=point.category,
                total=point.total,
                percentage=point.percentage,
            )
            for point in dashboard.category_totals
        ],
        daily_totals=[
            DailyTotalPoint(day=point.day, total=point.total, avg_amount=point.avg_amount)
            for point in dashboard.daily_totals
        ],
        recent_expenses=[to_expense_item(expense) for expense in dashboard.recent_expenses],
        monthly_summary=(
            to_summary_response(dashboard.monthly_summary)
            if dashboard.monthly_summary
            else None
        ),
    )


@router.get("/comparison", response_model=list[MonthlyComparisonPoint])
async def get_monthly_comparison(
    months: int = Query(default=6, ge=1, le=24),
    user_id: str = Depends(get_current_user_id),
    engine: AggregationEngine = Depends(get_aggregation_engine),
    session: AsyncSession = Depends(get_store_session),
) -> list[MonthlyComparisonPoint]:
    points = await monthly_comparison(
        session,
        user_id=user_id,
        today=engine.clock.now().date(),
        months=months,
    )
    return [MonthlyComparisonPoint(month=label, total=total) for label, total in points]


@router.get("/trends", response_model=CategoryTrendsResponse)
async def get_category_trends(
    months: int = Query(default=3, ge=1, le=24),
    user_id: str = Depends(get_current_user_id),
    engine: AggregationEngine = Depends(get_aggregation_engine),
    session: AsyncSession = Depends(get_store_session),
) -> CategoryTrendsResponse:
    trends = await category_trends(
        session,
        user_id=user_id,
        today=engine.clock.now().date(),
        months=months,
    )
    return CategoryTrendsResponse(
        trends={
            category: [CategoryTrendPoint(month=label, amount=amount) for label, amount in points]
            for category, points in trends.items()
        }
    )


@router.post("/rebuild", response_model=SummaryRebuildResponse)
async def rebuild_summaries(
    user_id: str = Depends(get_current_user_id),
    engine: AggregationEngine = Depends(get_aggregation_engine),
) -> SummaryRebuildResponse:
    try:
        months, expense_count = await rebuild_monthly_summaries(
            engine.session_factory,
            user_id=user_id,
            now=engine.clock.now(),
        )
    except WalletError as exc:
        raise http_error_for(exc) from exc

    engine.category_cache.invalidate()
    return SummaryRebuildResponse(rebuilt_months=months, expense_count=expense_count)


@router.get("/validation", response_model=SummaryValidationResponse)
async def validate_summaries(
    user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_store_session),
) -> SummaryValidationResponse:
    checks = await validate_monthly_summaries(session, user_id=user_id)
    return SummaryValidationResponse(
        is_valid=all(check.is_valid for check in checks),
        months=[
            MonthValidationResult(
                year_month=check.year_month,
                is_valid=check.is_valid,
                errors=check.errors,
            )
            for check in checks
        ],
    )


@router.get("/{year_month}", response_model=MonthlySummaryResponse)
async def get_monthly_summary(
    year_month: str,
    user_id: str = Depends(get_current_user_id),
    engine: AggregationEngine = Depends(get_aggregation_engine),
) -> MonthlySummaryResponse:
    try:
        parse_year_month(year_month)
    except WalletError as exc:
        raise http_error_for(exc) from exc

    summary = await engine.get_monthly_summary(user_id, year_month)
    if summary is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"No summary for {year_month}.",
        )
    return to_summary_response(summary)
