"""Errors raised by the expenseflow approval engine.

Every error carries a message suitable for showing to the acting user
plus structured attributes for the calling layer.
"""

from enum import Enum
from typing import Any, Optional


class ApprovalError(Exception):
    """Base class for approval engine errors."""

    code = "approval_error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(ApprovalError):
    """Raised when a workflow definition or input is malformed."""

    code = "validation_error"

    def __init__(self, message: str, *, field: Optional[str] = None, step_number: Optional[int] = None):
        super().__init__(message)
        self.field = field
        self.step_number = step_number


class NotFoundError(ApprovalError):
    """Raised when a referenced claim, workflow or user does not exist."""

    code = "not_found"

    def __init__(self, kind: str, identifier: Any):
        super().__init__(f"{kind} {identifier} not found")
        self.kind = kind
        self.identifier = identifier


class StateReason(str, Enum):
    ALREADY_TERMINAL = "already_terminal"
    NO_ACTIVE_ENTRIES = "no_active_entries"
    NOT_WITHDRAWABLE = "not_withdrawable"


class StateError(ApprovalError):
    """Raised when the ledger is not in a state that accepts the operation."""

    code = "state_error"

    def __init__(self, message: str, reason: StateReason):
        super().__init__(message)
        self.reason = reason


class PermissionReason(str, Enum):
    OUT_OF_SCOPE = "out_of_scope"
    NOT_ACTIVE_APPROVER = "not_active_approver"


class PermissionDeniedError(ApprovalError):
    """Raised when the actor is not entitled to act on a claim."""

    code = "permission_denied"

    def __init__(self, message: str, reason: PermissionReason):
        super().__init__(message)
        self.reason = reason


class ConcurrencyConflict(ApprovalError):
    """Raised when a ledger was modified since it was read.

    The service retries these transparently; ``exhausted`` is set once the
    retry budget is spent and the conflict is surfaced to the caller.
    """

    code = "concurrency_conflict"

    def __init__(self, claim_id: Any, *, exhausted: bool = False, attempts: int = 0):
        if exhausted:
            message = f"Claim {claim_id} is being updated concurrently, please retry"
        else:
            message = f"Claim {claim_id} was modified concurrently"
        super().__init__(message)
        self.claim_id = claim_id
        self.exhausted = exhausted
        self.attempts = attempts
