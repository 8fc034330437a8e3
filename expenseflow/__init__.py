"""expenseflow - multi-step approval engine for expense claims."""

__version__ = "0.1.0"
