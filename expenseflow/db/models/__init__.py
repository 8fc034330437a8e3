"""Database models for expenseflow."""

from expenseflow.db.models.company import Company
from expenseflow.db.models.user import User
from expenseflow.db.models.workflow import ApprovalWorkflow, WorkflowStep, WorkflowStepApprover
from expenseflow.db.models.expense import ExpenseClaim, ApprovalEntryRecord

__all__ = [
    "Company",
    "User",
    "ApprovalWorkflow",
    "WorkflowStep",
    "WorkflowStepApprover",
    "ExpenseClaim",
    "ApprovalEntryRecord",
]
