import re

from wallet.services.llm.base import ExpenseParserProvider
from wallet.services.llm.types import ParseContext, ParseResult, ParsedExpense

AMOUNT_PATTERN = re.compile(r"(?:\b(?:rp|idr|inr|usd|rs)\.?|\$)?\s*(\d+(?:\.\d{1,2})?)", re.I)
QUANTITY_PATTERN = re.compile(r"(\d+(?:\.\d+)?)\s*(kg|g|l|pcs|pieces|x)\b", re.I)

CATEGORY_KEYWORDS: dict[str, str] = {
    "grocer": "groceries",
    "grocery": "groceries",
    "lunch": "food",
    "dinner": "food",
    "breakfast": "food",
    "food": "food",
    "coffee": "drinks",
    "tea": "drinks",
    "restaurant": "dining",
    "uber": "transport",
    "taxi": "transport",
    "bus": "transport",
    "fuel": "transport",
    "rent": "rent",
    "electricity": "bills",
    "internet": "bills",
    "bill": "bills",
    "movie": "entertainment",
    "doctor": "healthcare",
    "medicine": "healthcare",
    "shopping": "shopping",
}


def _infer_category(text: str) -> str:
    low = text.lower()
    for key, value in CATEGORY_KEYWORDS.items():
        if key in low:
            return value
    return "other"


def _name_from_clause(clause: str) -> str:
    cleaned = QUANTITY_PATTERN.sub("", clause)
    cleaned = AMOUNT_PATTERN.sub(" ", cleaned)
    cleaned = re.sub(r"\b(bought|paid|spent|for|on)\b", " ", cleaned, flags=re.I)
    cleaned = re.sub(r"\s+", " ", cleaned).strip(" .,-")
    return cleaned[:100].capitalize() if cleaned else "Expense entry"


class MockExpenseParserProvider(ExpenseParserProvider):
    async def parse_expenses(self, text: str, context: ParseContext) -> ParseResult:
        clauses = [part.strip() for part in re.split(r",| and ", text) if part.strip()]
        drafts: list[ParsedExpense] = []
        for clause in clauses:
            quantity_match = QUANTITY_PATTERN.search(clause)
            remainder = QUANTITY_PATTERN.sub(" ", clause)
            amount_match = AMOUNT_PATTERN.search(remainder)
            if not amount_match:
                continue
            name = _name_from_clause(clause)
            drafts.append(
                ParsedExpense(
                    name=name,
                    category=_infer_category(clause),
                    quantity=float(quantity_match.group(1)) if quantity_match else 1.0,
                    unit=quantity_match.group(2).lower() if quantity_match else "unit",
                    total=float(amount_match.group(1)),
                    description=clause,
                )
            )

        if drafts:
            return ParseResult(expenses=drafts)

        return ParseResult(
            expenses=[],
            needs_clarification=True,
            clarification_questions=[
                "I could not find a clear amount. Can you share how much was spent?"
            ],
        )
