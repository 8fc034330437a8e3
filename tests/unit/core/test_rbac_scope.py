"""Tests for roles, capabilities and authorization scope."""

import uuid

import pytest

from expenseflow.core.errors import PermissionDeniedError, PermissionReason
from expenseflow.core.rbac import (
    ROLE_CAPABILITIES,
    AuthorizationScope,
    Capability,
    Role,
    capabilities_for,
    parse_role,
)

from tests.factories import make_actor


class TestRoles:
    """Test role definitions."""

    def test_every_role_has_capabilities(self):
        for role in Role:
            assert role in ROLE_CAPABILITIES
            assert capabilities_for(role)

    def test_only_admin_overrides(self):
        holders = [role for role in Role if Capability.OVERRIDE_DECISIONS in capabilities_for(role)]
        assert holders == [Role.ADMIN]

    def test_only_employee_submits(self):
        holders = [role for role in Role if Capability.SUBMIT_CLAIMS in capabilities_for(role)]
        assert holders == [Role.EMPLOYEE]

    def test_parse_role(self):
        assert parse_role("Admin") == Role.ADMIN
        assert parse_role("Financer") == Role.FINANCER

    def test_parse_unknown_role(self):
        with pytest.raises(ValueError, match="Unknown role"):
            parse_role("Superuser")

    def test_role_labels_are_exact(self):
        with pytest.raises(ValueError):
            parse_role("admin")


class TestAuthorizationScope:
    """Test scope decisions per role."""

    def test_employee_own_claims_only(self, people, company_id):
        scope = AuthorizationScope(people.employee)

        assert scope.can_decide(people.employee, company_id)
        assert not scope.can_decide(people.loner, company_id)

    def test_manager_direct_reports(self, people, company_id):
        scope = AuthorizationScope(people.manager)

        assert scope.is_direct_manager_of(people.employee)
        assert scope.can_decide(people.employee, company_id)
        assert scope.can_decide(people.manager, company_id)
        assert not scope.can_decide(people.loner, company_id)

    def test_manager_scope_is_not_transitive(self, people, company_id):
        grand_report = make_actor(Role.EMPLOYEE, company_id=company_id, manager_id=people.employee.id)

        assert not AuthorizationScope(people.manager).can_decide(grand_report, company_id)

    def test_admin_company_wide(self, people, company_id):
        scope = AuthorizationScope(people.admin)

        assert scope.can_override
        assert scope.can_decide(people.loner, company_id)
        assert scope.can_decide(people.employee, company_id)

    @pytest.mark.parametrize("name", ["approver_a", "approver_b"])
    def test_director_and_financer_company_wide(self, people, company_id, name):
        scope = AuthorizationScope(getattr(people, name))

        assert not scope.can_override
        assert scope.can_decide(people.loner, company_id)

    def test_other_company_is_out_of_scope(self, people, company_id):
        scope = AuthorizationScope(people.outsider)

        assert scope.can_override
        assert not scope.can_decide(people.employee, company_id)

    def test_inactive_actor(self, company_id):
        admin = make_actor(Role.ADMIN, company_id=company_id, is_active=False)
        scope = AuthorizationScope(admin)

        assert not scope.can_override
        assert not scope.can_decide(admin, company_id)

    def test_no_manager_recorded(self, people):
        assert not AuthorizationScope(people.manager).is_direct_manager_of(people.loner)

    def test_require_decide(self, people, company_id):
        scope = AuthorizationScope(people.employee)
        scope.require_decide(people.employee, company_id)

        with pytest.raises(PermissionDeniedError) as exc_info:
            scope.require_decide(people.loner, company_id)
        assert exc_info.value.reason == PermissionReason.OUT_OF_SCOPE

    def test_view_matches_decide(self, people, company_id):
        scope = AuthorizationScope(people.manager)

        assert scope.can_view(people.employee, company_id)
        assert not scope.can_view(people.loner, uuid.uuid4())
