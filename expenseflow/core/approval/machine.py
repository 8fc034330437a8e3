"""Approval decision processor.

Applies one decision at a time to a claim's ledger, enforcing step order,
percentage thresholds, override approvers, rejection propagation and the
admin fallback.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional
from uuid import UUID

from expenseflow.core.errors import (
    PermissionDeniedError,
    PermissionReason,
    StateError,
    StateReason,
    ValidationError,
)
from expenseflow.core.rbac.scope import Actor, AuthorizationScope

from .ledger import ApprovalEntry, ApprovalLedger, WorkflowDefinition
from .states import (
    ACTIONABLE_DECISIONS,
    Decision,
    LedgerStatus,
    MANAGER_STEP,
    MANAGER_STEP_PERCENTAGE,
    OVERRIDE_STEP,
    status_for,
)

logger = logging.getLogger(__name__)


# How a step came to be satisfied
SATISFIED_BY_OVERRIDE = "override"
SATISFIED_BY_PERCENTAGE = "percentage"
SATISFIED_BY_EMPTY_STEP = "empty_step"


@dataclass
class DecisionOutcome:
    """What a single decision did to the ledger."""

    entry: ApprovalEntry
    step: int
    previous_step: int
    status: LedgerStatus
    current_step: int
    advanced: bool = False
    satisfied_by: Optional[str] = None
    admin_fallback: bool = False
    on_behalf_of: Optional[UUID] = None
    superseded: int = 0


class ApprovalDecisionProcessor:
    """
    State machine over an ``ApprovalLedger``.

    The processor mutates the ledger it is given. Callers that need
    all-or-nothing behaviour hand it a copy and publish the copy only
    once it has been persisted.
    """

    def __init__(self, clock: Optional[Callable[[], datetime]] = None):
        self._clock = clock or datetime.utcnow

    def decide(
        self,
        ledger: ApprovalLedger,
        workflow: WorkflowDefinition,
        actor: Actor,
        decision: Decision,
        comment: str = "",
    ) -> DecisionOutcome:
        """
        Apply ``actor``'s decision to the ledger.

        Args:
            ledger: Ledger to update in place
            workflow: Workflow the claim was submitted under
            actor: User making the decision
            decision: APPROVED or REJECTED
            comment: Free-text comment stored on the entry

        Returns:
            DecisionOutcome describing the change

        Raises:
            ValidationError: If the decision is not actionable
            StateError: If the ledger is terminal or has nothing to decide
            PermissionDeniedError: If it is not the actor's turn
        """
        if decision not in ACTIONABLE_DECISIONS:
            raise ValidationError(f"Cannot record decision {decision.value}", field="decision")

        if ledger.is_terminal:
            raise StateError(
                f"Expense claim is already {ledger.status.value.lower()}",
                StateReason.ALREADY_TERMINAL,
            )

        previous_step = ledger.current_step
        active_step = ledger.active_step()
        scope = AuthorizationScope(actor)
        now = self._clock()

        entry = None
        if active_step is not None:
            entry = ledger.find_pending(active_step, actor.id)

        on_behalf_of = None
        if entry is None:
            if not scope.can_override:
                if active_step is None:
                    raise StateError(
                        "No approvals are pending on this expense claim",
                        StateReason.NO_ACTIVE_ENTRIES,
                    )
                raise PermissionDeniedError(
                    "You can only approve or reject when your step is active",
                    PermissionReason.NOT_ACTIVE_APPROVER,
                )
            if active_step is None:
                return self._admin_fallback(ledger, actor, decision, comment, now, previous_step)
            entry = ledger.find_pending(active_step)
            on_behalf_of = entry.approver_id

        entry.record(decision, comment, actor.id, now)

        outcome = DecisionOutcome(
            entry=entry,
            step=entry.step,
            previous_step=previous_step,
            status=ledger.status,
            current_step=ledger.current_step,
            on_behalf_of=on_behalf_of,
        )

        if decision == Decision.REJECTED:
            ledger.status = LedgerStatus.REJECTED
            outcome.superseded = ledger.supersede_after(entry.step) + self._close_step(ledger, entry.step)
            outcome.status = ledger.status
            return outcome

        satisfied_by = self._step_satisfied(ledger, workflow, entry.step, actor)
        if satisfied_by is None:
            return outcome

        outcome.satisfied_by = satisfied_by
        outcome.superseded = self._close_step(ledger, entry.step)
        self._advance(ledger, workflow, entry.step)
        outcome.advanced = True
        outcome.status = ledger.status
        outcome.current_step = ledger.current_step
        return outcome

    def _step_satisfied(
        self,
        ledger: ApprovalLedger,
        workflow: WorkflowDefinition,
        step_number: int,
        actor: Actor,
    ) -> Optional[str]:
        """Return how ``step_number`` is satisfied, or None if it is not."""
        required = MANAGER_STEP_PERCENTAGE
        override = None
        if step_number != MANAGER_STEP:
            config = workflow.step(step_number)
            if config is None:
                logger.warning(
                    f"Step {step_number} is no longer declared in workflow {workflow.id}, "
                    f"requiring all approvers"
                )
            else:
                required = config.required_approval_percentage
                override = config.specific_approver_override

        if override is not None and override == actor.id:
            return SATISFIED_BY_OVERRIDE

        entries = ledger.entries_at(step_number)
        total = len(entries)
        if total == 0:
            return SATISFIED_BY_EMPTY_STEP

        approved = sum(1 for e in entries if e.decision == Decision.APPROVED)
        # Integer comparison: 2 of 3 approvals must not pass a 67% threshold
        if approved * 100 >= required * total:
            return SATISFIED_BY_PERCENTAGE
        return None

    @staticmethod
    def _close_step(ledger: ApprovalLedger, step_number: int) -> int:
        # Approvers still pending on a closed step no longer get a say
        count = 0
        for entry in ledger.entries_at(step_number):
            if entry.is_pending:
                entry.superseded = True
                count += 1
        return count

    @staticmethod
    def _advance(ledger: ApprovalLedger, workflow: WorkflowDefinition, step_number: int) -> None:
        next_step = workflow.successor(step_number)
        # Steps without entries are auto-satisfied
        while next_step is not None and not ledger.entries_at(next_step):
            next_step = workflow.successor(next_step)

        if next_step is None:
            ledger.status = LedgerStatus.APPROVED
        else:
            ledger.current_step = next_step

    @staticmethod
    def _admin_fallback(
        ledger: ApprovalLedger,
        actor: Actor,
        decision: Decision,
        comment: str,
        now: datetime,
        previous_step: int,
    ) -> DecisionOutcome:
        ledger.status = status_for(decision)
        entry = ApprovalEntry(
            step=OVERRIDE_STEP,
            approver_id=actor.id,
            decision=decision,
            comment=comment or "",
            decided_at=now,
            acted_by=actor.id,
        )
        ledger.entries.append(entry)
        return DecisionOutcome(
            entry=entry,
            step=OVERRIDE_STEP,
            previous_step=previous_step,
            status=ledger.status,
            current_step=ledger.current_step,
            admin_fallback=True,
        )
