"""API routers for expenseflow."""

from . import approvals
from . import expenses

__all__ = [
    "approvals",
    "expenses",
]
