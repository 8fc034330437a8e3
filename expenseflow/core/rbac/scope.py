"""Authorization scope for claim decisions.

Decides whether an actor may act on a claim at all, independent of
whether it is currently their turn. Turn order is enforced by the
decision processor.
"""

from dataclasses import dataclass
from typing import FrozenSet, Optional
from uuid import UUID

from expenseflow.core.errors import PermissionDeniedError, PermissionReason

from .roles import Capability, Role, capabilities_for


@dataclass(frozen=True)
class Actor:
    """A user as seen by the approval engine."""

    id: UUID
    company_id: UUID
    role: Role
    manager_id: Optional[UUID] = None
    is_active: bool = True
    name: str = ""

    @property
    def capabilities(self) -> FrozenSet[Capability]:
        return capabilities_for(self.role)

    def has(self, capability: Capability) -> bool:
        return capability in self.capabilities


class AuthorizationScope:
    """Evaluates an actor's reach over claims."""

    def __init__(self, actor: Actor):
        self.actor = actor

    @property
    def can_override(self) -> bool:
        """Only admins may use the override fallback."""
        return self.actor.is_active and self.actor.has(Capability.OVERRIDE_DECISIONS)

    def is_direct_manager_of(self, user: Actor) -> bool:
        """True when the actor is the user's recorded manager.

        Direct reports only; the org chart is not walked.
        """
        return user.manager_id is not None and user.manager_id == self.actor.id

    def can_decide(self, submitter: Actor, company_id: UUID) -> bool:
        """Check if the actor may act on a claim by ``submitter``."""
        actor = self.actor
        if not actor.is_active or actor.company_id != company_id:
            return False

        if actor.has(Capability.DECIDE_COMPANY_CLAIMS):
            return True

        if submitter.id == actor.id and actor.has(Capability.DECIDE_OWN_CLAIMS):
            return True

        if actor.has(Capability.DECIDE_DIRECT_REPORT_CLAIMS):
            return self.is_direct_manager_of(submitter)

        return False

    def require_decide(self, submitter: Actor, company_id: UUID) -> None:
        """Raise ``PermissionDeniedError`` if the claim is out of scope."""
        if not self.can_decide(submitter, company_id):
            raise PermissionDeniedError(
                "You can only act on expense claims within your scope",
                PermissionReason.OUT_OF_SCOPE,
            )

    def can_view(self, submitter: Actor, company_id: UUID) -> bool:
        """Viewing follows the same reach as deciding."""
        return self.can_decide(submitter, company_id)
