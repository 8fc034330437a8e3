"""Approval workflow module for expenseflow.

Implements the expense claim approval ledger, its initializer and the
decision state machine.
"""

from .states import Decision, LedgerStatus, MANAGER_STEP, OVERRIDE_STEP, parse_decision
from .ledger import ApprovalEntry, ApprovalLedger, LedgerProgress, WorkflowDefinition, WorkflowStep
from .initializer import ApprovalChainInitializer
from .machine import ApprovalDecisionProcessor, DecisionOutcome
from .stores import (
    ClaimSnapshot,
    ClaimStore,
    InMemoryClaimStore,
    InMemoryUserDirectory,
    InMemoryWorkflowStore,
    UserDirectory,
    WorkflowStore,
)
from .service import ApprovalService, DecisionResult

__all__ = [
    "Decision",
    "LedgerStatus",
    "MANAGER_STEP",
    "OVERRIDE_STEP",
    "parse_decision",
    "ApprovalEntry",
    "ApprovalLedger",
    "LedgerProgress",
    "WorkflowDefinition",
    "WorkflowStep",
    "ApprovalChainInitializer",
    "ApprovalDecisionProcessor",
    "DecisionOutcome",
    "ClaimSnapshot",
    "ClaimStore",
    "InMemoryClaimStore",
    "InMemoryUserDirectory",
    "InMemoryWorkflowStore",
    "UserDirectory",
    "WorkflowStore",
    "ApprovalService",
    "DecisionResult",
]
