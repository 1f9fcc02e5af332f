from datetime import datetime

from sqlalchemy import JSON, Column, Integer, String
from sqlmodel import Field, SQLModel

from wallet.core.clock import utc_now_naive

# Bumped on every UPDATE; a write based on a stale read matches no row and
# fails the transaction instead of overwriting a concurrent change.
version_column = Column("version", Integer, nullable=False)


class MonthlySummary(SQLModel, table=True):
    __tablename__ = "monthly_summaries"
    __mapper_args__ = {"version_id_col": version_column}

    user_id: str = Field(sa_column=Column(String(128), primary_key=True))
    year_month: str = Field(sa_column=Column(String(7), primary_key=True))
    total_amount: float = Field(default=0.0, nullable=False)
    category_breakdown: dict[str, float] = Field(
        default_factory=dict,
        sa_column=Column(JSON, nullable=False),
    )
    expense_count: int = Field(default=0, nullable=False)
    avg_per_day: float = Field(default=0.0, nullable=False)
    version: int | None = Field(default=None, sa_column=version_column)
    updated_at: datetime = Field(default_factory=utc_now_naive, nullable=False)
