"""Database layer for expenseflow."""
