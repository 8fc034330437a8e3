"""Core domain logic for expenseflow."""
