from datetime import datetime
from uuid import UUID, uuid4

from sqlalchemy import Column, String
from sqlmodel import Field, SQLModel

from wallet.core.clock import utc_now_naive


class Expense(SQLModel, table=True):
    __tablename__ = "expenses"

    id: UUID = Field(default_factory=uuid4, primary_key=True, index=True)
    user_id: str = Field(sa_column=Column(String(128), nullable=False, index=True))
    category: str = Field(nullable=False, max_length=80)
    name: str = Field(nullable=False, max_length=255)
    quantity: float = Field(default=1.0, nullable=False)
    unit: str = Field(default="unit", nullable=False, max_length=40)
    amount: float = Field(nullable=False)
    description: str = Field(default="", nullable=False, max_length=2000)
    date: datetime = Field(nullable=False, index=True)
    year_month: str = Field(sa_column=Column(String(7), nullable=False, index=True))
    day: int = Field(nullable=False)
    created_at: datetime = Field(default_factory=utc_now_naive, nullable=False)
    updated_at: datetime = Field(default_factory=utc_now_naive, nullable=False)
