from pydantic import BaseModel, Field

from wallet.schemas.expense import ExpenseItem


class MonthlySummaryResponse(BaseModel):
    year_month: str
    total_amount: float
    category_breakdown: dict[str, float]
    expense_count: int
    avg_per_day: float


class CategoryTotalPoint(BaseModel):
    category: str
    total: float
    percentage: float


class DailyTotalPoint(BaseModel):
    day: int
    total: float
    avg_amount: float


class DashboardResponse(BaseModel):
    year_month: str
    current_month_total: float
    previous_month_total: float
    monthly_change: float
    category_totals: list[CategoryTotalPoint]
    daily_totals: list[DailyTotalPoint]
    recent_expenses: list[ExpenseItem]
    monthly_summary: MonthlySummaryResponse | None = None


class MonthlyComparisonPoint(BaseModel):
    month: str
    total: float


class CategoryTrendPoint(BaseModel):
    month: str
    amount: float


class CategoryTrendsResponse(BaseModel):
    trends: dict[str, list[CategoryTrendPoint]]


class CategoriesResponse(BaseModel):
    categories: list[str]


class MonthValidationResult(BaseModel):
    year_month: str
    is_valid: bool
    errors: list[str] = Field(default_factory=list)


class SummaryValidationResponse(BaseModel):
    is_valid: bool
    months: list[MonthValidationResult]


class SummaryRebuildResponse(BaseModel):
    rebuilt_months: list[str]
    expense_count: int
