from datetime import datetime
from enum import Enum

from sqlalchemy import Column, String
from sqlmodel import Field, SQLModel

from wallet.core.clock import utc_now_naive


class PendingStatus(str, Enum):
    PENDING = "pending"
    SYNCING = "syncing"
    ERROR = "error"


class PendingExpense(SQLModel, table=True):
    """Expense creation captured while disconnected, waiting to be replayed."""

    __tablename__ = "pending_expenses"

    id: int | None = Field(default=None, primary_key=True)
    user_id: str = Field(sa_column=Column(String(128), nullable=False, index=True))
    category: str = Field(nullable=False, max_length=80)
    name: str = Field(nullable=False, max_length=255)
    quantity: float = Field(default=1.0, nullable=False)
    unit: str = Field(default="unit", nullable=False, max_length=40)
    amount: float = Field(nullable=False)
    description: str = Field(default="", nullable=False, max_length=2000)
    date: datetime = Field(nullable=False)
    year_month: str = Field(sa_column=Column(String(7), nullable=False))
    day: int = Field(nullable=False)
    status: PendingStatus = Field(default=PendingStatus.PENDING, nullable=False, index=True)
    error: str | None = Field(default=None, max_length=4000)
    created_at: datetime = Field(default_factory=utc_now_naive, nullable=False)
