"""Expense claim submission endpoints."""

from uuid import UUID

from fastapi import APIRouter, Depends, status

from expenseflow.api.deps import get_approval_service, get_current_user_id
from expenseflow.api.schemas.approval import ExpenseClaimResponse, ExpenseSubmission
from expenseflow.api.schemas.common import SuccessResponse
from expenseflow.core.approval import ApprovalService

router = APIRouter(prefix="/expenses", tags=["expenses"])


@router.post("", response_model=ExpenseClaimResponse, status_code=status.HTTP_201_CREATED)
async def submit_expense(
    submission: ExpenseSubmission,
    service: ApprovalService = Depends(get_approval_service),
    current_user_id: UUID = Depends(get_current_user_id),
):
    """Submit an expense claim and build its approval chain."""
    claim = service.submit_claim(
        current_user_id,
        submission.workflow_id,
        details={
            "amount": submission.amount,
            "currency": submission.currency,
            "category": submission.category,
            "description": submission.description,
            "expense_date": submission.expense_date,
        },
    )
    return ExpenseClaimResponse.from_snapshot(claim)


@router.get("/{claim_id}", response_model=ExpenseClaimResponse)
async def get_expense(
    claim_id: UUID,
    service: ApprovalService = Depends(get_approval_service),
    current_user_id: UUID = Depends(get_current_user_id),
):
    """Get an expense claim with its approval entries."""
    return ExpenseClaimResponse.from_snapshot(service.get_claim(claim_id, current_user_id))


@router.post("/{claim_id}/withdraw", response_model=SuccessResponse)
async def withdraw_expense(
    claim_id: UUID,
    service: ApprovalService = Depends(get_approval_service),
    current_user_id: UUID = Depends(get_current_user_id),
):
    """Withdraw one of your own pending expense claims."""
    service.withdraw(claim_id, current_user_id)
    return SuccessResponse(message="Expense withdrawn successfully", data={"id": str(claim_id)})
