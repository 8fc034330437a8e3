"""Workflow definitions and the per-claim approval ledger.

These are plain in-memory structures. Stores translate them to and from
their persistent form; the decision processor is the only code that
mutates a ledger.
"""

import copy
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional
from uuid import UUID

from .states import (
    Decision,
    LedgerStatus,
    MANAGER_STEP,
    OVERRIDE_STEP,
    is_terminal,
)


@dataclass
class WorkflowStep:
    """One stage of an approval workflow."""

    step_number: int
    approvers: List[UUID] = field(default_factory=list)
    required_approval_percentage: int = 100
    specific_approver_override: Optional[UUID] = None


@dataclass
class WorkflowDefinition:
    """A company's ordered approval steps."""

    id: UUID
    company_id: UUID
    name: str = ""
    include_manager_approval: bool = True
    is_active: bool = True
    steps: List[WorkflowStep] = field(default_factory=list)

    def step(self, step_number: int) -> Optional[WorkflowStep]:
        """Get the declared step with the given number."""
        for step in self.steps:
            if step.step_number == step_number:
                return step
        return None

    @property
    def step_numbers(self) -> List[int]:
        return sorted(step.step_number for step in self.steps)

    def successor(self, step_number: int) -> Optional[int]:
        """Smallest declared step number greater than ``step_number``."""
        later = [n for n in self.step_numbers if n > step_number]
        return later[0] if later else None


@dataclass
class ApprovalEntry:
    """A single approver's slot in the ledger."""

    step: int
    approver_id: UUID
    decision: Decision = Decision.PENDING
    comment: str = ""
    decided_at: Optional[datetime] = None
    acted_by: Optional[UUID] = None
    superseded: bool = False
    id: UUID = field(default_factory=uuid.uuid4)

    @property
    def is_pending(self) -> bool:
        return self.decision == Decision.PENDING and not self.superseded

    @property
    def is_override(self) -> bool:
        """True for audit-only entries written by the admin fallback."""
        return self.step == OVERRIDE_STEP

    def record(self, decision: Decision, comment: str, actor_id: UUID, when: datetime) -> None:
        self.decision = decision
        self.comment = comment or ""
        self.decided_at = when
        self.acted_by = actor_id


@dataclass
class LedgerProgress:
    """Approval counts for display alongside a ledger."""

    active_step: Optional[int]
    step_approved: int
    step_total: int
    approved: int
    total: int

    @property
    def percent_complete(self) -> float:
        # Display only; step thresholds are compared in integers by the processor
        if self.total == 0:
            return 0.0
        return (self.approved / self.total) * 100


@dataclass
class ApprovalLedger:
    """Approval progress and decision history of one expense claim."""

    status: LedgerStatus = LedgerStatus.PENDING
    current_step: int = MANAGER_STEP
    entries: List[ApprovalEntry] = field(default_factory=list)

    @property
    def is_terminal(self) -> bool:
        return is_terminal(self.status)

    def effective_entries(self) -> List[ApprovalEntry]:
        """Entries that count for activation and percentage math."""
        return [e for e in self.entries if not e.superseded and not e.is_override]

    def entries_at(self, step: int) -> List[ApprovalEntry]:
        return [e for e in self.effective_entries() if e.step == step]

    def pending_entries(self) -> List[ApprovalEntry]:
        return [e for e in self.effective_entries() if e.is_pending]

    def active_step(self) -> Optional[int]:
        """Lowest step with a pending entry, or None when exhausted."""
        steps = [e.step for e in self.pending_entries()]
        return min(steps) if steps else None

    def find_pending(self, step: int, approver_id: Optional[UUID] = None) -> Optional[ApprovalEntry]:
        """First pending entry at ``step``, optionally for one approver."""
        for entry in self.pending_entries():
            if entry.step != step:
                continue
            if approver_id is None or entry.approver_id == approver_id:
                return entry
        return None

    def supersede_after(self, step: int) -> int:
        """Tombstone every effective entry beyond ``step``. Returns the count."""
        count = 0
        for entry in self.effective_entries():
            if entry.step > step:
                entry.superseded = True
                count += 1
        return count

    def decisions_by(self, approver_id: UUID) -> List[ApprovalEntry]:
        """Entries the approver has already decided."""
        return [
            e for e in self.entries
            if e.decision != Decision.PENDING
            and (e.approver_id == approver_id or e.acted_by == approver_id)
        ]

    def progress(self) -> LedgerProgress:
        effective = self.effective_entries()
        active = self.active_step()
        at_step = [e for e in effective if e.step == active] if active is not None else []
        return LedgerProgress(
            active_step=active,
            step_approved=sum(1 for e in at_step if e.decision == Decision.APPROVED),
            step_total=len(at_step),
            approved=sum(1 for e in effective if e.decision == Decision.APPROVED),
            total=len(effective),
        )

    def copy(self) -> "ApprovalLedger":
        return copy.deepcopy(self)

    def to_dict(self) -> Dict:
        return {
            "status": self.status.value,
            "current_step": self.current_step,
            "entries": [
                {
                    "id": str(e.id),
                    "step": e.step,
                    "approver_id": str(e.approver_id),
                    "decision": e.decision.value,
                    "comment": e.comment,
                    "decided_at": e.decided_at.isoformat() if e.decided_at else None,
                    "acted_by": str(e.acted_by) if e.acted_by else None,
                    "superseded": e.superseded,
                }
                for e in self.entries
            ],
        }
