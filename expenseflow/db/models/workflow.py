"""Approval workflow definition models.

A workflow is a company's ordered list of approval steps. Claims keep a
reference to the workflow they were submitted under.
"""

import uuid
from datetime import datetime
from sqlalchemy import Column, String, DateTime, Boolean, Integer, ForeignKey, UniqueConstraint, Uuid
from sqlalchemy.orm import relationship

from expenseflow.db.base import Base


class ApprovalWorkflow(Base):
    __tablename__ = "approval_workflows"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    company_id = Column(Uuid(as_uuid=True), ForeignKey("companies.id"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    include_manager_approval = Column(Boolean, nullable=False, default=True)
    is_active = Column(Boolean, nullable=False, default=True, index=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    # Relationships
    company = relationship("Company", back_populates="workflows")
    steps = relationship(
        "WorkflowStep",
        back_populates="workflow",
        order_by="WorkflowStep.step_number",
        cascade="all, delete-orphan",
    )

    def __repr__(self) -> str:
        return f"<ApprovalWorkflow {self.name} ({len(self.steps)} steps)>"


class WorkflowStep(Base):
    __tablename__ = "workflow_steps"
    __table_args__ = (
        UniqueConstraint("workflow_id", "step_number", name="uq_workflow_step_number"),
    )

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    workflow_id = Column(
        Uuid(as_uuid=True), ForeignKey("approval_workflows.id", ondelete="CASCADE"), nullable=False, index=True
    )
    step_number = Column(Integer, nullable=False)
    required_approval_percentage = Column(Integer, nullable=False, default=100)
    specific_approver_override_id = Column(
        Uuid(as_uuid=True), ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )

    # Relationships
    workflow = relationship("ApprovalWorkflow", back_populates="steps")
    approvers = relationship(
        "WorkflowStepApprover",
        back_populates="step",
        order_by="WorkflowStepApprover.position",
        cascade="all, delete-orphan",
    )
    specific_approver_override = relationship("User")


class WorkflowStepApprover(Base):
    """Ordered membership of a user in a step's approver set."""
    __tablename__ = "workflow_step_approvers"
    __table_args__ = (
        UniqueConstraint("step_id", "user_id", name="uq_step_approver"),
    )

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    step_id = Column(Uuid(as_uuid=True), ForeignKey("workflow_steps.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Uuid(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    position = Column(Integer, nullable=False, default=0)

    # Relationships
    step = relationship("WorkflowStep", back_populates="approvers")
    user = relationship("User")
