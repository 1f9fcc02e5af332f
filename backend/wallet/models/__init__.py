from wallet.models.expense import Expense
from wallet.models.monthly_summary import MonthlySummary
from wallet.models.pending_expense import PendingExpense, PendingStatus

__all__ = [
    "Expense",
    "MonthlySummary",
    "PendingExpense",
    "PendingStatus",
]
