"""Approval ledger states and decisions.

Ledger lifecycle:

    ┌──────────────────────┐
    │ PENDING (at step k)  │ ◄─┐ approval that does not satisfy step k,
    └──────────┬───────────┘   │ or step k satisfied and a successor exists
               │───────────────┘
               │
         ┌─────┴──────┐
         │            │
    ┌────▼─────┐ ┌────▼─────┐
    │ APPROVED │ │ REJECTED │
    └──────────┘ └──────────┘

Step 0 is the manager pre-step. Workflow steps use their declared numbers.
Once a ledger leaves PENDING it never changes again.
"""

from enum import Enum
from typing import Set


class LedgerStatus(str, Enum):
    """Overall status of a claim's approval ledger."""

    PENDING = "Pending"
    APPROVED = "Approved"
    REJECTED = "Rejected"


class Decision(str, Enum):
    """Decision recorded on a single approval entry."""

    PENDING = "Pending"
    APPROVED = "Approved"
    REJECTED = "Rejected"


# Step number of the manager pre-step
MANAGER_STEP = 0

# Reserved step marker for audit-only admin override entries
OVERRIDE_STEP = -1

# Threshold applied to the manager pre-step
MANAGER_STEP_PERCENTAGE = 100

TERMINAL_STATUSES: Set[LedgerStatus] = {
    LedgerStatus.APPROVED,
    LedgerStatus.REJECTED,
}

# Decisions an actor may submit
ACTIONABLE_DECISIONS: Set[Decision] = {
    Decision.APPROVED,
    Decision.REJECTED,
}

_DECISION_ALIASES = {
    "approve": Decision.APPROVED,
    "approved": Decision.APPROVED,
    "reject": Decision.REJECTED,
    "rejected": Decision.REJECTED,
}

OVERRIDE_ACTION = "override"


def is_terminal(status: LedgerStatus) -> bool:
    """Check if a ledger status is terminal."""
    return status in TERMINAL_STATUSES


def status_for(decision: Decision) -> LedgerStatus:
    """Map an actionable decision to the ledger status it forces."""
    if decision == Decision.APPROVED:
        return LedgerStatus.APPROVED
    if decision == Decision.REJECTED:
        return LedgerStatus.REJECTED
    raise ValueError(f"Decision {decision.value} does not map to a ledger status")


def parse_decision(raw: str) -> Decision:
    """Normalize a user-supplied decision string to a ``Decision``.

    Accepts the verbs and past participles the approval forms submit,
    in any case. ``override`` is handled by the caller since it also
    carries an authorization requirement.

    Raises:
        ValueError: If the value is empty or not a known decision
    """
    key = (raw or "").strip().lower()
    if not key:
        raise ValueError("No decision specified")
    try:
        return _DECISION_ALIASES[key]
    except KeyError:
        raise ValueError(f"Unknown decision: {raw}") from None
