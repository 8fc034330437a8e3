"""Role and capability definitions for expenseflow.

Roles are the labels stored on user records. Capabilities are what the
engine actually checks; each role maps to a fixed capability set:

1. Admin - Company-wide decisions and the override fallback
2. Director - Company-wide decisions on steps they are configured for
3. Financer - Company-wide decisions on steps they are configured for
4. Manager - Own claims and claims of direct reports
5. Employee - Own claims only
"""

from enum import Enum
from typing import Dict, FrozenSet


class Role(str, Enum):
    """Roles a user record can carry."""

    ADMIN = "Admin"
    MANAGER = "Manager"
    EMPLOYEE = "Employee"
    FINANCER = "Financer"
    DIRECTOR = "Director"


class Capability(str, Enum):
    """Capabilities evaluated by the authorization scope."""

    DECIDE_OWN_CLAIMS = "decide_own_claims"
    DECIDE_DIRECT_REPORT_CLAIMS = "decide_direct_report_claims"
    DECIDE_COMPANY_CLAIMS = "decide_company_claims"
    OVERRIDE_DECISIONS = "override_decisions"
    SUBMIT_CLAIMS = "submit_claims"


ADMIN_CAPABILITIES = frozenset({
    Capability.DECIDE_OWN_CLAIMS,
    Capability.DECIDE_COMPANY_CLAIMS,
    Capability.OVERRIDE_DECISIONS,
})

# Director and Financer: approvers outside the reporting line
COMPANY_APPROVER_CAPABILITIES = frozenset({
    Capability.DECIDE_OWN_CLAIMS,
    Capability.DECIDE_COMPANY_CLAIMS,
})

MANAGER_CAPABILITIES = frozenset({
    Capability.DECIDE_OWN_CLAIMS,
    Capability.DECIDE_DIRECT_REPORT_CLAIMS,
})

EMPLOYEE_CAPABILITIES = frozenset({
    Capability.DECIDE_OWN_CLAIMS,
    Capability.SUBMIT_CLAIMS,
})


ROLE_CAPABILITIES: Dict[Role, FrozenSet[Capability]] = {
    Role.ADMIN: ADMIN_CAPABILITIES,
    Role.DIRECTOR: COMPANY_APPROVER_CAPABILITIES,
    Role.FINANCER: COMPANY_APPROVER_CAPABILITIES,
    Role.MANAGER: MANAGER_CAPABILITIES,
    Role.EMPLOYEE: EMPLOYEE_CAPABILITIES,
}


def capabilities_for(role: Role) -> FrozenSet[Capability]:
    """Get the capability set for a role."""
    return ROLE_CAPABILITIES.get(role, frozenset())


def parse_role(value: str) -> Role:
    """Parse a stored role label.

    Raises:
        ValueError: If the label is not a known role
    """
    for role in Role:
        if role.value == value:
            return role
    raise ValueError(f"Unknown role: {value}")
