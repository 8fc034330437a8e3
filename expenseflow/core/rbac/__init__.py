"""Role-based authorization for expenseflow.

Maps stored roles to a closed capability set and evaluates claim scope.
"""

from .roles import Role, Capability, ROLE_CAPABILITIES, capabilities_for, parse_role
from .scope import Actor, AuthorizationScope

__all__ = [
    "Role",
    "Capability",
    "ROLE_CAPABILITIES",
    "capabilities_for",
    "parse_role",
    "Actor",
    "AuthorizationScope",
]
