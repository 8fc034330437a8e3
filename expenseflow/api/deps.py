from typing import Generator
from uuid import UUID

from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from expenseflow.core.approval import ApprovalService
from expenseflow.db.session import SessionLocal
from expenseflow.db.stores import SqlClaimStore, SqlUserDirectory, SqlWorkflowStore


def get_db() -> Generator:
    """Database session dependency."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_current_user_id(request: Request) -> UUID:
    """Identity of the authenticated user.

    Authentication happens upstream; the auth middleware stores the user id
    on ``request.state.user_id``.
    """
    user_id = getattr(request.state, "user_id", None)
    if not user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
        )
    if isinstance(user_id, UUID):
        return user_id
    try:
        return UUID(str(user_id))
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
        )


def get_approval_service(db: Session = Depends(get_db)) -> ApprovalService:
    """Approval service bound to the request's database session."""
    return ApprovalService(
        claims=SqlClaimStore(db),
        workflows=SqlWorkflowStore(db),
        users=SqlUserDirectory(db),
    )
