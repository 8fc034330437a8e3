"""Approval service for expense claims.

Provides the in-process API the surrounding application uses: chain
initialization at submission time and one decision per call, each run as
an optimistic read-modify-write against the claim's ledger.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional
from uuid import UUID

from expenseflow.core.config import get_settings
from expenseflow.core.errors import (
    ConcurrencyConflict,
    NotFoundError,
    PermissionDeniedError,
    PermissionReason,
    StateError,
    StateReason,
    ValidationError,
)
from expenseflow.core.rbac.roles import Capability
from expenseflow.core.rbac.scope import Actor, AuthorizationScope

from .initializer import ApprovalChainInitializer
from .ledger import ApprovalLedger, LedgerProgress
from .machine import (
    ApprovalDecisionProcessor,
    DecisionOutcome,
    SATISFIED_BY_OVERRIDE,
)
from .states import Decision, LedgerStatus, OVERRIDE_ACTION, parse_decision
from .stores import ClaimSnapshot, ClaimStore, UserDirectory, WorkflowStore

logger = logging.getLogger(__name__)


@dataclass
class DecisionResult:
    """Claim status after a committed decision."""

    claim_id: UUID
    status: LedgerStatus
    current_step: int
    decision: Decision
    step: int
    advanced: bool
    satisfied_by: Optional[str]
    admin_fallback: bool
    on_behalf_of: Optional[UUID]
    attempts: int
    version: int
    progress: LedgerProgress

    @property
    def message(self) -> str:
        """Summary suitable for showing to the acting user."""
        verb = self.decision.value.lower()
        if self.admin_fallback:
            return f"Expense {verb} by admin override"
        if self.decision == Decision.REJECTED:
            return "Expense rejected successfully"
        if self.status == LedgerStatus.APPROVED:
            return "Expense approved"
        if self.advanced and self.satisfied_by == SATISFIED_BY_OVERRIDE:
            return "Expense approved via override and moved to next step"
        if self.advanced:
            return "Expense approved and moved to next step"
        return "Expense processed successfully"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "claim_id": str(self.claim_id),
            "status": self.status.value,
            "current_step": self.current_step,
            "decision": self.decision.value,
            "step": self.step,
            "advanced": self.advanced,
            "satisfied_by": self.satisfied_by,
            "admin_fallback": self.admin_fallback,
            "on_behalf_of": str(self.on_behalf_of) if self.on_behalf_of else None,
            "attempts": self.attempts,
            "message": self.message,
        }


class ApprovalService:
    """
    High-level service for expense claim approvals.

    Handles:
    - Building the approval ledger when a claim is submitted
    - Applying decisions with scope checks and optimistic retries
    - Approver dashboards (pending, processed, team)
    - Withdrawal of pending claims
    """

    def __init__(
        self,
        claims: ClaimStore,
        workflows: WorkflowStore,
        users: UserDirectory,
        *,
        max_retries: Optional[int] = None,
        processor: Optional[ApprovalDecisionProcessor] = None,
    ):
        """
        Initialize the approval service.

        Args:
            claims: Claim ledger store
            workflows: Workflow definition store
            users: User directory
            max_retries: Attempts per decision before a version conflict
                is surfaced (defaults to settings.decision_max_retries)
            processor: Decision processor (a default one is created)
        """
        self.claims = claims
        self.workflows = workflows
        self.users = users
        if max_retries is None:
            max_retries = get_settings().decision_max_retries
        self.max_retries = max(1, max_retries)
        self.processor = processor or ApprovalDecisionProcessor()

    def initialize_chain(self, workflow_id: UUID, submitter_id: UUID) -> ApprovalLedger:
        """
        Build the approval ledger for a claim ``submitter_id`` is submitting.

        Raises:
            NotFoundError: If the workflow or submitter does not exist
            ValidationError: If the workflow definition is invalid
        """
        submitter = self.users.get_actor(submitter_id)
        workflow = self.workflows.get_by_id(workflow_id)
        if workflow.company_id != submitter.company_id:
            # Other companies' workflows are invisible
            raise NotFoundError("Workflow", workflow_id)

        initializer = ApprovalChainInitializer(self.users.company_user_ids(workflow.company_id))
        ledger = initializer.initialize(workflow, submitter.manager_id)

        logger.info(
            f"Initialized approval chain from workflow {workflow_id} for user {submitter_id}: "
            f"{len(ledger.entries)} approvals, starting at step {ledger.current_step}"
        )
        return ledger

    def submit_claim(
        self,
        submitter_id: UUID,
        workflow_id: UUID,
        details: Optional[Dict[str, Any]] = None,
    ) -> ClaimSnapshot:
        """
        Create a claim and its ledger.

        Raises:
            PermissionDeniedError: If the user may not submit claims
            NotFoundError: If the workflow or submitter does not exist
            ValidationError: If the workflow definition is invalid
        """
        submitter = self.users.get_actor(submitter_id)
        if not submitter.is_active or not submitter.has(Capability.SUBMIT_CLAIMS):
            raise PermissionDeniedError(
                "Only employees can submit expense claims",
                PermissionReason.OUT_OF_SCOPE,
            )

        ledger = self.initialize_chain(workflow_id, submitter_id)
        claim = self.claims.create_claim(
            company_id=submitter.company_id,
            submitted_by=submitter_id,
            workflow_id=workflow_id,
            ledger=ledger,
            details=details,
        )
        logger.info(f"Expense claim {claim.claim_id} submitted by {submitter_id}")
        return claim

    def parse_action(self, actor_id: UUID, raw: str) -> Decision:
        """
        Normalize a decision submitted through a form or API call.

        ``override`` is an admin approval; anyone else gets
        PermissionDeniedError.

        Raises:
            ValidationError: If the action is empty or unknown
        """
        if (raw or "").strip().lower() == OVERRIDE_ACTION:
            actor = self.users.get_actor(actor_id)
            if not AuthorizationScope(actor).can_override:
                raise PermissionDeniedError(
                    "You are not authorized to perform an override",
                    PermissionReason.OUT_OF_SCOPE,
                )
            return Decision.APPROVED
        try:
            return parse_decision(raw)
        except ValueError as e:
            raise ValidationError(str(e), field="decision") from e

    def decide(
        self,
        claim_id: UUID,
        actor_id: UUID,
        decision: Decision,
        comment: str = "",
    ) -> DecisionResult:
        """
        Apply one decision to a claim.

        The ledger is read, updated on a private copy and written back only
        if nobody else wrote it in between. On a version conflict the whole
        evaluation is repeated against a fresh read.

        Args:
            claim_id: Claim to decide on
            actor_id: User making the decision
            decision: APPROVED or REJECTED
            comment: Comment stored on the approval entry

        Returns:
            DecisionResult with the committed status

        Raises:
            NotFoundError: If the claim, workflow or a user does not exist
            PermissionDeniedError: If the claim is out of scope or it is not
                the actor's turn
            StateError: If the claim is already decided
            ConcurrencyConflict: If the retry budget is exhausted
        """
        actor = self.users.get_actor(actor_id)
        scope = AuthorizationScope(actor)

        for attempt in range(1, self.max_retries + 1):
            snapshot, version = self.claims.load_ledger(claim_id)
            submitter = self.users.get_actor(snapshot.submitted_by)
            scope.require_decide(submitter, snapshot.company_id)
            workflow = self.workflows.get_by_id(snapshot.workflow_id)

            ledger = snapshot.ledger.copy()
            outcome = self.processor.decide(ledger, workflow, actor, decision, comment)

            try:
                new_version = self.claims.save_ledger(claim_id, ledger, version)
            except ConcurrencyConflict:
                logger.warning(
                    f"Version conflict deciding claim {claim_id} "
                    f"(attempt {attempt}/{self.max_retries}), retrying"
                )
                continue

            self._log_outcome(claim_id, actor, outcome)
            return self._result(claim_id, decision, outcome, ledger, attempt, new_version)

        logger.error(f"Giving up on claim {claim_id} after {self.max_retries} conflicting attempts")
        raise ConcurrencyConflict(claim_id, exhausted=True, attempts=self.max_retries)

    def get_claim(self, claim_id: UUID, actor_id: UUID) -> ClaimSnapshot:
        """
        Read a claim the actor is allowed to see.

        Raises:
            NotFoundError: If the claim does not exist
            PermissionDeniedError: If it is out of the actor's scope
        """
        actor = self.users.get_actor(actor_id)
        snapshot, _ = self.claims.load_ledger(claim_id)
        submitter = self.users.get_actor(snapshot.submitted_by)
        if not AuthorizationScope(actor).can_view(submitter, snapshot.company_id):
            raise PermissionDeniedError(
                "You do not have permission to view this expense claim",
                PermissionReason.OUT_OF_SCOPE,
            )
        return snapshot

    def pending_for(self, actor_id: UUID) -> List[ClaimSnapshot]:
        """Claims whose active step is waiting on ``actor_id``."""
        actor = self.users.get_actor(actor_id)
        pending = []
        for claim in self.claims.claims_for_company(actor.company_id):
            ledger = claim.ledger
            if ledger.is_terminal:
                continue
            active = ledger.active_step()
            if active is not None and ledger.find_pending(active, actor_id) is not None:
                pending.append(claim)
        return pending

    def processed_by(self, actor_id: UUID) -> List[ClaimSnapshot]:
        """Claims on which ``actor_id`` has recorded a decision."""
        actor = self.users.get_actor(actor_id)
        return [
            claim for claim in self.claims.claims_for_company(actor.company_id)
            if claim.ledger.decisions_by(actor_id)
        ]

    def team_claims(self, manager_id: UUID) -> List[ClaimSnapshot]:
        """Claims submitted by the manager's direct reports."""
        manager = self.users.get_actor(manager_id)
        scope = AuthorizationScope(manager)
        team = []
        for claim in self.claims.claims_for_company(manager.company_id):
            submitter = self.users.get_actor(claim.submitted_by)
            if scope.is_direct_manager_of(submitter):
                team.append(claim)
        return team

    def withdraw(self, claim_id: UUID, actor_id: UUID) -> None:
        """
        Withdraw a pending claim. Only its submitter may do so.

        Raises:
            NotFoundError: If the claim does not exist
            PermissionDeniedError: If the actor did not submit the claim
            StateError: If the claim is no longer pending
            ConcurrencyConflict: If the claim changed while withdrawing
        """
        snapshot, version = self.claims.load_ledger(claim_id)
        if snapshot.submitted_by != actor_id:
            raise PermissionDeniedError(
                "You can only withdraw your own pending expenses",
                PermissionReason.OUT_OF_SCOPE,
            )
        if snapshot.ledger.status != LedgerStatus.PENDING:
            raise StateError(
                "You can only withdraw your own pending expenses",
                StateReason.NOT_WITHDRAWABLE,
            )
        self.claims.delete_claim(claim_id, version)
        logger.info(f"Expense claim {claim_id} withdrawn by {actor_id}")

    @staticmethod
    def _log_outcome(claim_id: UUID, actor: Actor, outcome: DecisionOutcome) -> None:
        decision = outcome.entry.decision.value
        if outcome.admin_fallback:
            logger.warning(
                f"Admin {actor.id} set claim {claim_id} to {outcome.status.value} "
                f"with no pending approvals left"
            )
            return
        if outcome.on_behalf_of is not None:
            logger.warning(
                f"Admin {actor.id} recorded {decision} at step {outcome.step} "
                f"on behalf of {outcome.on_behalf_of} for claim {claim_id}"
            )
        else:
            logger.info(f"{decision} by {actor.id} at step {outcome.step} on claim {claim_id}")

        if outcome.status != LedgerStatus.PENDING:
            logger.info(f"Claim {claim_id} is now {outcome.status.value}")
        elif outcome.advanced:
            logger.info(
                f"Claim {claim_id} advanced from step {outcome.step} to {outcome.current_step} "
                f"({outcome.satisfied_by})"
            )

    @staticmethod
    def _result(
        claim_id: UUID,
        decision: Decision,
        outcome: DecisionOutcome,
        ledger: ApprovalLedger,
        attempts: int,
        version: int,
    ) -> DecisionResult:
        return DecisionResult(
            claim_id=claim_id,
            status=ledger.status,
            current_step=ledger.current_step,
            decision=decision,
            step=outcome.step,
            advanced=outcome.advanced,
            satisfied_by=outcome.satisfied_by,
            admin_fallback=outcome.admin_fallback,
            on_behalf_of=outcome.on_behalf_of,
            attempts=attempts,
            version=version,
            progress=ledger.progress(),
        )
