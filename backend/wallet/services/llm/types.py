from datetime import date

from pydantic import BaseModel, Field


class ParseContext(BaseModel):
    reference_date: date
    known_categories: list[str] = Field(default_factory=list)


class ParsedExpense(BaseModel):
    name: str | None = None
    category: str | None = None
    quantity: float | None = None
    unit: str | None = None
    total: float | None = None
    description: str | None = None


class ParseResult(BaseModel):
    expenses: list[ParsedExpense] = Field(default_factory=list)
    needs_clarification: bool = False
    clarification_questions: list[str] = Field(default_factory=list)
