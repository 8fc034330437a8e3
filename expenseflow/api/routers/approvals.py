"""Approval decision and dashboard endpoints."""

from uuid import UUID

from fastapi import APIRouter, Depends

from expenseflow.api.deps import get_approval_service, get_current_user_id
from expenseflow.api.schemas.approval import (
    DecisionRequest,
    DecisionResponse,
    ExpenseClaimListResponse,
    ExpenseClaimResponse,
)
from expenseflow.core.approval import ApprovalService

router = APIRouter(prefix="/approvals", tags=["approvals"])


def _listing(claims) -> ExpenseClaimListResponse:
    return ExpenseClaimListResponse(
        items=[ExpenseClaimResponse.from_snapshot(c) for c in claims],
        total=len(claims),
    )


@router.get("/pending", response_model=ExpenseClaimListResponse)
async def list_pending(
    service: ApprovalService = Depends(get_approval_service),
    current_user_id: UUID = Depends(get_current_user_id),
):
    """Claims waiting on the current user's decision."""
    return _listing(service.pending_for(current_user_id))


@router.get("/processed", response_model=ExpenseClaimListResponse)
async def list_processed(
    service: ApprovalService = Depends(get_approval_service),
    current_user_id: UUID = Depends(get_current_user_id),
):
    """Claims the current user has already decided on."""
    return _listing(service.processed_by(current_user_id))


@router.get("/team", response_model=ExpenseClaimListResponse)
async def list_team(
    service: ApprovalService = Depends(get_approval_service),
    current_user_id: UUID = Depends(get_current_user_id),
):
    """Claims submitted by the current user's direct reports."""
    return _listing(service.team_claims(current_user_id))


@router.post("/{claim_id}/decision", response_model=DecisionResponse)
async def decide(
    claim_id: UUID,
    action: DecisionRequest,
    service: ApprovalService = Depends(get_approval_service),
    current_user_id: UUID = Depends(get_current_user_id),
):
    """Approve or reject the claim at its active step."""
    decision = service.parse_action(current_user_id, action.decision)
    result = service.decide(claim_id, current_user_id, decision, action.comment)
    return DecisionResponse.from_result(result)
