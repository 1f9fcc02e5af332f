from datetime import date as date_type, datetime
from typing import Literal

from pydantic import BaseModel, Field


class ExpenseInput(BaseModel):
    """Raw expense as typed into a form or handed over by the parser."""

    category: str | None = None
    name: str | None = None
    quantity: float | str | None = None
    unit: str | None = None
    amount: float | str | None = None
    description: str | None = None
    date: datetime | date_type | None = None


class NormalizedExpense(BaseModel):
    category: str
    name: str
    quantity: float
    unit: str
    amount: float
    description: str
    date: datetime
    year_month: str
    day: int


class ExpenseSnapshot(BaseModel):
    category: str
    amount: float
    year_month: str


class ExpenseUpdateRequest(BaseModel):
    category: str | None = Field(default=None, max_length=80)
    name: str | None = Field(default=None, max_length=255)
    quantity: float | str | None = None
    unit: str | None = Field(default=None, max_length=40)
    amount: float | str | None = None
    description: str | None = Field(default=None, max_length=2000)
    date: datetime | date_type | None = None
    old_year_month: str | None = Field(default=None, pattern=r"^\d{4}-\d{2}$")


class SubmitResult(BaseModel):
    outcome: Literal["saved", "queued-offline"]
    id: str | None = None
    queue_id: int | None = None


class ExpenseItem(BaseModel):
    id: str
    category: str
    name: str
    quantity: float
    unit: str
    amount: float
    description: str
    date: str
    year_month: str
    day: int
    created_at: str
    updated_at: str


class ExpenseListResponse(BaseModel):
    items: list[ExpenseItem]
    total_count: int


class ExpenseDeleteResponse(BaseModel):
    expense_id: str
    message: str


class ExpenseUpdateResponse(BaseModel):
    item: ExpenseItem
    message: str


class AIExpenseRequest(BaseModel):
    text: str = Field(min_length=1, max_length=2000)


class RejectedCandidate(BaseModel):
    index: int
    name: str | None = None
    error: str


class AIExpenseResponse(BaseModel):
    results: list[SubmitResult]
    saved_count: int
    queued_count: int
    rejected: list[RejectedCandidate] = Field(default_factory=list)
    needs_clarification: bool = False
    clarification_questions: list[str] = Field(default_factory=list)
