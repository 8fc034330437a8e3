"""Expense claim and approval ledger models.

The ledger lives on the claim row (status, current step, version) plus
one approval_entries row per approver slot. Entries are never deleted
while the claim exists; discarded ones are flagged ``superseded``.
"""

import uuid
from datetime import datetime
from sqlalchemy import (
    Column, String, DateTime, Date, Boolean, Integer, Numeric, ForeignKey, Text, Uuid,
)
from sqlalchemy.orm import relationship

from expenseflow.db.base import Base


class ExpenseClaim(Base):
    """
    An expense submitted for approval.

    ``version`` is bumped on every ledger write and checked by the
    conditional update in ``SqlClaimStore.save_ledger``.
    """
    __tablename__ = "expense_claims"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    company_id = Column(Uuid(as_uuid=True), ForeignKey("companies.id"), nullable=False, index=True)
    submitted_by = Column(Uuid(as_uuid=True), ForeignKey("users.id"), nullable=False, index=True)
    workflow_id = Column(Uuid(as_uuid=True), ForeignKey("approval_workflows.id"), nullable=False)

    # Claim details
    amount = Column(Numeric(12, 2), nullable=False)
    currency = Column(String(3), nullable=False)
    category = Column(String(100), nullable=False)
    description = Column(Text, nullable=False)
    expense_date = Column(Date, nullable=False)

    # Ledger state
    status = Column(String(20), nullable=False, default="Pending", index=True)
    current_step = Column(Integer, nullable=False, default=0)
    version = Column(Integer, nullable=False, default=1)

    # Timestamps
    created_at = Column(DateTime, default=datetime.utcnow, index=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    company = relationship("Company", back_populates="expense_claims")
    submitter = relationship("User", foreign_keys=[submitted_by])
    workflow = relationship("ApprovalWorkflow")
    entries = relationship(
        "ApprovalEntryRecord",
        back_populates="claim",
        order_by="ApprovalEntryRecord.position",
        cascade="all, delete-orphan",
    )

    def __repr__(self) -> str:
        return f"<ExpenseClaim {self.id} {self.amount} {self.currency} [{self.status}]>"


class ApprovalEntryRecord(Base):
    """One approver slot in a claim's approval ledger."""
    __tablename__ = "approval_entries"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    claim_id = Column(Uuid(as_uuid=True), ForeignKey("expense_claims.id", ondelete="CASCADE"), nullable=False, index=True)
    position = Column(Integer, nullable=False)

    step = Column(Integer, nullable=False)  # 0 = manager, -1 = admin override audit entry
    approver_id = Column(Uuid(as_uuid=True), ForeignKey("users.id"), nullable=False, index=True)
    acted_by = Column(Uuid(as_uuid=True), ForeignKey("users.id"), nullable=True)
    decision = Column(String(20), nullable=False, default="Pending", index=True)
    comment = Column(Text, nullable=False, default="")
    decided_at = Column(DateTime, nullable=True)
    superseded = Column(Boolean, nullable=False, default=False)

    # Relationships
    claim = relationship("ExpenseClaim", back_populates="entries")
    approver = relationship("User", foreign_keys=[approver_id])

    def __repr__(self) -> str:
        return f"<ApprovalEntryRecord step={self.step} {self.decision}>"
