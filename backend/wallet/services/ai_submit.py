from __future__ import annotations

import logging
from dataclasses import dataclass, field

from wallet.core.errors import ValidationError
from wallet.schemas.expense import ExpenseInput, RejectedCandidate, SubmitResult
from wallet.services.aggregation import AggregationEngine
from wallet.services.llm.types import ParsedExpense

logger = logging.getLogger(__name__)


@dataclass
class ParsedSubmission:
    results: list[SubmitResult] = field(default_factory=list)
    rejected: list[RejectedCandidate] = field(default_factory=list)


def to_expense_input(candidate: ParsedExpense) -> ExpenseInput:
    return ExpenseInput(
        category=candidate.category,
        name=candidate.name,
        quantity=candidate.quantity,
        unit=candidate.unit,
        amount=candidate.total,
        description=candidate.description,
    )


async def submit_parsed_expenses(
    engine: AggregationEngine,
    user_id: str,
    candidates: list[ParsedExpense],
) -> ParsedSubmission:
    """Submit each candidate as its own expense.

    Candidates without a total are left for the clarification round. A
    candidate that fails validation is reported in ``rejected`` and the
    rest of the batch still goes through.
    """
    submission = ParsedSubmission()
    for index, candidate in enumerate(candidates):
        if candidate.total is None:
            continue
        try:
            result = await engine.submit(user_id, to_expense_input(candidate))
        except ValidationError as exc:
            logger.info("parsed expense rejected: index=%d error=%s", index, exc)
            submission.rejected.append(
                RejectedCandidate(index=index, name=candidate.name, error=str(exc))
            )
            continue
        submission.results.append(result)
    return submission
