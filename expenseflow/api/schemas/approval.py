"""Request and response schemas for claims and approvals."""

from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field, field_validator

from expenseflow.core.approval import ApprovalEntry, ClaimSnapshot, DecisionResult


class ExpenseSubmission(BaseModel):
    workflow_id: UUID
    amount: Decimal = Field(..., gt=0, decimal_places=2)
    currency: str = Field(..., min_length=3, max_length=3)
    category: str = Field(..., min_length=1, max_length=100)
    description: str = Field(..., min_length=1)
    expense_date: date

    @field_validator("expense_date")
    @classmethod
    def not_in_future(cls, value: date) -> date:
        if value > date.today():
            raise ValueError("Expense date cannot be in the future")
        return value

    @field_validator("currency")
    @classmethod
    def upper_currency(cls, value: str) -> str:
        return value.upper()


class DecisionRequest(BaseModel):
    decision: str = Field(..., description="approve, reject, or override (admins only)")
    comment: str = ""


class ApprovalEntryResponse(BaseModel):
    id: UUID
    step: int
    approver_id: UUID
    decision: str
    comment: str
    decided_at: Optional[datetime]
    acted_by: Optional[UUID]
    superseded: bool

    @classmethod
    def from_entry(cls, entry: ApprovalEntry) -> "ApprovalEntryResponse":
        return cls(
            id=entry.id,
            step=entry.step,
            approver_id=entry.approver_id,
            decision=entry.decision.value,
            comment=entry.comment,
            decided_at=entry.decided_at,
            acted_by=entry.acted_by,
            superseded=entry.superseded,
        )


class ExpenseClaimResponse(BaseModel):
    id: UUID
    company_id: UUID
    submitted_by: UUID
    workflow_id: UUID
    status: str
    current_step: int
    active_step: Optional[int]
    amount: Optional[str]
    currency: Optional[str]
    category: Optional[str]
    description: Optional[str]
    expense_date: Optional[str]
    created_at: Optional[datetime]
    entries: List[ApprovalEntryResponse]

    @classmethod
    def from_snapshot(cls, claim: ClaimSnapshot) -> "ExpenseClaimResponse":
        ledger = claim.ledger
        return cls(
            id=claim.claim_id,
            company_id=claim.company_id,
            submitted_by=claim.submitted_by,
            workflow_id=claim.workflow_id,
            status=ledger.status.value,
            current_step=ledger.current_step,
            active_step=ledger.active_step(),
            amount=claim.details.get("amount"),
            currency=claim.details.get("currency"),
            category=claim.details.get("category"),
            description=claim.details.get("description"),
            expense_date=claim.details.get("expense_date"),
            created_at=claim.created_at,
            entries=[ApprovalEntryResponse.from_entry(e) for e in ledger.entries],
        )


class ExpenseClaimListResponse(BaseModel):
    items: List[ExpenseClaimResponse]
    total: int


class DecisionResponse(BaseModel):
    claim_id: UUID
    status: str
    current_step: int
    decision: str
    step: int
    advanced: bool
    satisfied_by: Optional[str]
    admin_fallback: bool
    on_behalf_of: Optional[UUID]
    attempts: int
    message: str
    step_approved: int
    step_total: int

    @classmethod
    def from_result(cls, result: DecisionResult) -> "DecisionResponse":
        return cls(
            claim_id=result.claim_id,
            status=result.status.value,
            current_step=result.current_step,
            decision=result.decision.value,
            step=result.step,
            advanced=result.advanced,
            satisfied_by=result.satisfied_by,
            admin_fallback=result.admin_fallback,
            on_behalf_of=result.on_behalf_of,
            attempts=result.attempts,
            message=result.message,
            step_approved=result.progress.step_approved,
            step_total=result.progress.step_total,
        )
