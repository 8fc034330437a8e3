"""Builds the approval ledger for a newly submitted claim."""

import logging
from typing import Collection, Optional
from uuid import UUID

from expenseflow.core.errors import ValidationError

from .ledger import ApprovalEntry, ApprovalLedger, WorkflowDefinition
from .states import LedgerStatus, MANAGER_STEP

logger = logging.getLogger(__name__)


class ApprovalChainInitializer:
    """
    Materializes every approval entry a claim will need.

    Entries for all declared steps are created up front; later steps
    become active through the lowest-pending-step rule, so nothing is
    inserted during advancement.
    """

    def __init__(self, known_user_ids: Collection[UUID]):
        """
        Args:
            known_user_ids: Identities of the company's users, used to
                validate override approver references
        """
        self.known_user_ids = set(known_user_ids)

    def validate(self, workflow: WorkflowDefinition) -> None:
        """
        Check a workflow definition before it is used.

        Raises:
            ValidationError: If the workflow is inactive or a step is malformed
        """
        if not workflow.is_active:
            raise ValidationError(f"Workflow {workflow.name or workflow.id} is not active", field="is_active")

        seen = set()
        for step in workflow.steps:
            number = step.step_number
            if not isinstance(number, int) or isinstance(number, bool) or number < 1:
                raise ValidationError(
                    f"Step number must be a positive integer, got {number!r}",
                    field="step_number",
                )
            if number in seen:
                raise ValidationError(f"Step number {number} is declared twice", field="step_number", step_number=number)
            seen.add(number)

            percentage = step.required_approval_percentage
            if not isinstance(percentage, int) or isinstance(percentage, bool) or not 1 <= percentage <= 100:
                raise ValidationError(
                    f"Step {number}: required approval percentage must be between 1 and 100, got {percentage!r}",
                    field="required_approval_percentage",
                    step_number=number,
                )

            seen_approvers = set()
            for approver_id in step.approvers:
                if approver_id in seen_approvers:
                    raise ValidationError(
                        f"Step {number}: approver {approver_id} is listed more than once",
                        field="approvers",
                        step_number=number,
                    )
                seen_approvers.add(approver_id)

            override = step.specific_approver_override
            if override is not None and override not in self.known_user_ids:
                raise ValidationError(
                    f"Step {number}: override approver {override} is not a user of this company",
                    field="specific_approver_override",
                    step_number=number,
                )

    def initialize(self, workflow: WorkflowDefinition, manager_id: Optional[UUID] = None) -> ApprovalLedger:
        """
        Create the ledger for a claim routed through ``workflow``.

        Args:
            workflow: Workflow definition the claim was submitted under
            manager_id: Submitter's recorded manager, if any

        Returns:
            A pending ledger with one pending entry per approver
        """
        self.validate(workflow)

        ledger = ApprovalLedger(status=LedgerStatus.PENDING)

        if workflow.include_manager_approval and manager_id is not None:
            ledger.entries.append(ApprovalEntry(step=MANAGER_STEP, approver_id=manager_id))
            ledger.current_step = MANAGER_STEP
        else:
            ledger.current_step = self._first_step(workflow)

        for step in sorted(workflow.steps, key=lambda s: s.step_number):
            for approver_id in step.approvers:
                ledger.entries.append(ApprovalEntry(step=step.step_number, approver_id=approver_id))

        logger.debug(
            f"Initialized ledger for workflow {workflow.id}: "
            f"{len(ledger.entries)} entries, current step {ledger.current_step}"
        )
        return ledger

    @staticmethod
    def _first_step(workflow: WorkflowDefinition) -> int:
        # Steps without approvers are auto-satisfied and never become current
        numbers = workflow.step_numbers
        for number in numbers:
            if workflow.step(number).approvers:
                return number
        return numbers[0] if numbers else 1
