"""SQLAlchemy implementations of the approval store protocols."""

import logging
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional, Set, Tuple
from uuid import UUID

from sqlalchemy import and_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from expenseflow.core.approval.ledger import (
    ApprovalEntry,
    ApprovalLedger,
    WorkflowDefinition,
    WorkflowStep,
)
from expenseflow.core.approval.states import Decision, LedgerStatus
from expenseflow.core.approval.stores import ClaimSnapshot
from expenseflow.core.errors import ConcurrencyConflict, NotFoundError
from expenseflow.core.rbac.roles import parse_role
from expenseflow.core.rbac.scope import Actor
from expenseflow.db.models import (
    ApprovalEntryRecord,
    ApprovalWorkflow,
    ExpenseClaim,
    User,
)

logger = logging.getLogger(__name__)


class SqlWorkflowStore:
    """Reads workflow definitions from the approval_workflows tables."""

    def __init__(self, db: Session):
        self.db = db

    def get_by_id(self, workflow_id: UUID) -> WorkflowDefinition:
        workflow = self.db.query(ApprovalWorkflow).filter(ApprovalWorkflow.id == workflow_id).first()
        if not workflow:
            raise NotFoundError("Workflow", workflow_id)

        return WorkflowDefinition(
            id=workflow.id,
            company_id=workflow.company_id,
            name=workflow.name,
            include_manager_approval=workflow.include_manager_approval,
            is_active=workflow.is_active,
            steps=[
                WorkflowStep(
                    step_number=step.step_number,
                    approvers=[a.user_id for a in step.approvers],
                    required_approval_percentage=step.required_approval_percentage,
                    specific_approver_override=step.specific_approver_override_id,
                )
                for step in workflow.steps
            ],
        )


class SqlUserDirectory:
    """Resolves users to engine actors."""

    def __init__(self, db: Session):
        self.db = db

    def get_actor(self, user_id: UUID) -> Actor:
        user = self.db.query(User).filter(User.id == user_id).first()
        if not user:
            raise NotFoundError("User", user_id)
        return Actor(
            id=user.id,
            company_id=user.company_id,
            role=parse_role(user.role),
            manager_id=user.manager_id,
            is_active=bool(user.is_active),
            name=user.name or "",
        )

    def company_user_ids(self, company_id: UUID) -> Set[UUID]:
        rows = self.db.query(User.id).filter(User.company_id == company_id).all()
        return {row[0] for row in rows}


class SqlClaimStore:
    """
    Claim ledgers stored on expense_claims / approval_entries.

    Writes are guarded by the claim's integer ``version``: the claim row is
    updated with ``WHERE version = :expected`` and the entry rows are written
    in the same transaction, so a lost race leaves nothing behind.
    """

    def __init__(self, db: Session):
        self.db = db

    def load_ledger(self, claim_id: UUID) -> Tuple[ClaimSnapshot, int]:
        # Objects already in the identity map may predate another writer
        self.db.expire_all()
        claim = self.db.query(ExpenseClaim).filter(ExpenseClaim.id == claim_id).first()
        if not claim:
            raise NotFoundError("Expense claim", claim_id)
        return self._snapshot(claim), claim.version

    def save_ledger(self, claim_id: UUID, ledger: ApprovalLedger, version: int) -> int:
        try:
            updated = self.db.query(ExpenseClaim).filter(
                and_(
                    ExpenseClaim.id == claim_id,
                    ExpenseClaim.version == version,
                )
            ).update(
                {
                    ExpenseClaim.status: ledger.status.value,
                    ExpenseClaim.current_step: ledger.current_step,
                    ExpenseClaim.version: version + 1,
                    ExpenseClaim.updated_at: datetime.utcnow(),
                },
                synchronize_session=False,
            )

            if updated == 0:
                self.db.rollback()
                if not self._exists(claim_id):
                    raise NotFoundError("Expense claim", claim_id)
                raise ConcurrencyConflict(claim_id)

            self._write_entries(claim_id, ledger)
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            raise

        self.db.expire_all()
        return version + 1

    def create_claim(
        self,
        *,
        company_id: UUID,
        submitted_by: UUID,
        workflow_id: UUID,
        ledger: ApprovalLedger,
        details: Optional[Dict[str, Any]] = None,
    ) -> ClaimSnapshot:
        details = details or {}
        claim = ExpenseClaim(
            company_id=company_id,
            submitted_by=submitted_by,
            workflow_id=workflow_id,
            amount=Decimal(str(details.get("amount", "0"))),
            currency=details.get("currency", "USD"),
            category=details.get("category", ""),
            description=details.get("description", ""),
            expense_date=details.get("expense_date") or date.today(),
            status=ledger.status.value,
            current_step=ledger.current_step,
            version=1,
        )
        try:
            self.db.add(claim)
            self.db.flush()
            self._write_entries(claim.id, ledger)
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            raise

        self.db.refresh(claim)
        return self._snapshot(claim)

    def delete_claim(self, claim_id: UUID, version: int) -> None:
        try:
            self.db.query(ApprovalEntryRecord).filter(
                ApprovalEntryRecord.claim_id == claim_id
            ).delete(synchronize_session=False)

            deleted = self.db.query(ExpenseClaim).filter(
                and_(
                    ExpenseClaim.id == claim_id,
                    ExpenseClaim.version == version,
                )
            ).delete(synchronize_session=False)

            if deleted == 0:
                self.db.rollback()
                if not self._exists(claim_id):
                    raise NotFoundError("Expense claim", claim_id)
                raise ConcurrencyConflict(claim_id)

            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            raise

        self.db.expire_all()

    def claims_for_company(self, company_id: UUID) -> List[ClaimSnapshot]:
        claims = self.db.query(ExpenseClaim).filter(
            ExpenseClaim.company_id == company_id
        ).order_by(ExpenseClaim.created_at.desc()).all()
        return [self._snapshot(c) for c in claims]

    def _exists(self, claim_id: UUID) -> bool:
        return self.db.query(ExpenseClaim.id).filter(ExpenseClaim.id == claim_id).first() is not None

    def _write_entries(self, claim_id: UUID, ledger: ApprovalLedger) -> None:
        existing = {
            record.id: record
            for record in self.db.query(ApprovalEntryRecord).filter(
                ApprovalEntryRecord.claim_id == claim_id
            ).all()
        }
        for position, entry in enumerate(ledger.entries):
            record = existing.get(entry.id)
            if record is None:
                record = ApprovalEntryRecord(id=entry.id, claim_id=claim_id)
                self.db.add(record)
            record.position = position
            record.step = entry.step
            record.approver_id = entry.approver_id
            record.acted_by = entry.acted_by
            record.decision = entry.decision.value
            record.comment = entry.comment or ""
            record.decided_at = entry.decided_at
            record.superseded = entry.superseded
        self.db.flush()

    @staticmethod
    def _snapshot(claim: ExpenseClaim) -> ClaimSnapshot:
        ledger = ApprovalLedger(
            status=LedgerStatus(claim.status),
            current_step=claim.current_step,
            entries=[
                ApprovalEntry(
                    id=record.id,
                    step=record.step,
                    approver_id=record.approver_id,
                    decision=Decision(record.decision),
                    comment=record.comment or "",
                    decided_at=record.decided_at,
                    acted_by=record.acted_by,
                    superseded=bool(record.superseded),
                )
                for record in claim.entries
            ],
        )
        return ClaimSnapshot(
            claim_id=claim.id,
            company_id=claim.company_id,
            submitted_by=claim.submitted_by,
            workflow_id=claim.workflow_id,
            ledger=ledger,
            details={
                "amount": str(claim.amount) if claim.amount is not None else None,
                "currency": claim.currency,
                "category": claim.category,
                "description": claim.description,
                "expense_date": claim.expense_date.isoformat() if claim.expense_date else None,
            },
            created_at=claim.created_at,
        )
