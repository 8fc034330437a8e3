"""Collaborator interfaces consumed by the approval service.

The service only ever talks to these protocols. ``expenseflow.db.stores``
implements them over SQLAlchemy; the in-memory versions here back tests
and embedded use.
"""

import threading
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Protocol, Set, Tuple
from uuid import UUID

from expenseflow.core.errors import ConcurrencyConflict, NotFoundError
from expenseflow.core.rbac.scope import Actor

from .ledger import ApprovalLedger, WorkflowDefinition


@dataclass
class ClaimSnapshot:
    """A claim as read for one decision: the ledger plus routing context."""

    claim_id: UUID
    company_id: UUID
    submitted_by: UUID
    workflow_id: UUID
    ledger: ApprovalLedger
    details: Dict[str, Any] = field(default_factory=dict)
    created_at: Optional[datetime] = None


class WorkflowStore(Protocol):
    def get_by_id(self, workflow_id: UUID) -> WorkflowDefinition:
        """Raises NotFoundError if the workflow does not exist."""
        ...


class ClaimStore(Protocol):
    def load_ledger(self, claim_id: UUID) -> Tuple[ClaimSnapshot, int]:
        """Return the claim and its version token. Raises NotFoundError."""
        ...

    def save_ledger(self, claim_id: UUID, ledger: ApprovalLedger, version: int) -> int:
        """Persist ``ledger`` if the stored version still equals ``version``.

        Returns the new version. Raises ConcurrencyConflict otherwise.
        """
        ...

    def create_claim(
        self,
        *,
        company_id: UUID,
        submitted_by: UUID,
        workflow_id: UUID,
        ledger: ApprovalLedger,
        details: Optional[Dict[str, Any]] = None,
    ) -> ClaimSnapshot:
        ...

    def delete_claim(self, claim_id: UUID, version: int) -> None:
        ...

    def claims_for_company(self, company_id: UUID) -> List[ClaimSnapshot]:
        ...


class UserDirectory(Protocol):
    def get_actor(self, user_id: UUID) -> Actor:
        """Raises NotFoundError if the user does not exist."""
        ...

    def company_user_ids(self, company_id: UUID) -> Set[UUID]:
        ...


class InMemoryWorkflowStore:
    """Workflow definitions held in a dict."""

    def __init__(self, workflows: Iterable[WorkflowDefinition] = ()):
        self._workflows: Dict[UUID, WorkflowDefinition] = {w.id: w for w in workflows}

    def add(self, workflow: WorkflowDefinition) -> WorkflowDefinition:
        self._workflows[workflow.id] = workflow
        return workflow

    def get_by_id(self, workflow_id: UUID) -> WorkflowDefinition:
        try:
            return self._workflows[workflow_id]
        except KeyError:
            raise NotFoundError("Workflow", workflow_id) from None


class InMemoryUserDirectory:
    """Users held in a dict."""

    def __init__(self, actors: Iterable[Actor] = ()):
        self._actors: Dict[UUID, Actor] = {a.id: a for a in actors}

    def add(self, actor: Actor) -> Actor:
        self._actors[actor.id] = actor
        return actor

    def get_actor(self, user_id: UUID) -> Actor:
        try:
            return self._actors[user_id]
        except KeyError:
            raise NotFoundError("User", user_id) from None

    def company_user_ids(self, company_id: UUID) -> Set[UUID]:
        return {a.id for a in self._actors.values() if a.company_id == company_id}


class InMemoryClaimStore:
    """
    Claims held in a dict with optimistic versioning.

    Reads hand out deep copies so a caller can never mutate stored state
    without going through ``save_ledger``.
    """

    def __init__(self):
        self._claims: Dict[UUID, ClaimSnapshot] = {}
        self._versions: Dict[UUID, int] = {}
        self._lock = threading.Lock()

    def create_claim(
        self,
        *,
        company_id: UUID,
        submitted_by: UUID,
        workflow_id: UUID,
        ledger: ApprovalLedger,
        details: Optional[Dict[str, Any]] = None,
    ) -> ClaimSnapshot:
        snapshot = ClaimSnapshot(
            claim_id=uuid.uuid4(),
            company_id=company_id,
            submitted_by=submitted_by,
            workflow_id=workflow_id,
            ledger=ledger.copy(),
            details=dict(details or {}),
            created_at=datetime.utcnow(),
        )
        with self._lock:
            self._claims[snapshot.claim_id] = snapshot
            self._versions[snapshot.claim_id] = 1
        return self._copy(snapshot)

    def load_ledger(self, claim_id: UUID) -> Tuple[ClaimSnapshot, int]:
        with self._lock:
            snapshot = self._claims.get(claim_id)
            if snapshot is None:
                raise NotFoundError("Expense claim", claim_id)
            return self._copy(snapshot), self._versions[claim_id]

    def save_ledger(self, claim_id: UUID, ledger: ApprovalLedger, version: int) -> int:
        with self._lock:
            if claim_id not in self._claims:
                raise NotFoundError("Expense claim", claim_id)
            if self._versions[claim_id] != version:
                raise ConcurrencyConflict(claim_id)
            self._claims[claim_id].ledger = ledger.copy()
            self._versions[claim_id] = version + 1
            return version + 1

    def delete_claim(self, claim_id: UUID, version: int) -> None:
        with self._lock:
            if claim_id not in self._claims:
                raise NotFoundError("Expense claim", claim_id)
            if self._versions[claim_id] != version:
                raise ConcurrencyConflict(claim_id)
            del self._claims[claim_id]
            del self._versions[claim_id]

    def claims_for_company(self, company_id: UUID) -> List[ClaimSnapshot]:
        with self._lock:
            claims = [c for c in self._claims.values() if c.company_id == company_id]
            return [self._copy(c) for c in sorted(claims, key=lambda c: c.created_at, reverse=True)]

    @staticmethod
    def _copy(snapshot: ClaimSnapshot) -> ClaimSnapshot:
        return ClaimSnapshot(
            claim_id=snapshot.claim_id,
            company_id=snapshot.company_id,
            submitted_by=snapshot.submitted_by,
            workflow_id=snapshot.workflow_id,
            ledger=snapshot.ledger.copy(),
            details=dict(snapshot.details),
            created_at=snapshot.created_at,
        )
