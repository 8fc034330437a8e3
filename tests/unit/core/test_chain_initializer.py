"""Tests for approval chain initialization and workflow validation."""

import uuid

import pytest

from expenseflow.core.approval import ApprovalChainInitializer, LedgerStatus, MANAGER_STEP
from expenseflow.core.errors import ValidationError

from tests.factories import make_step, make_workflow


@pytest.fixture
def approvers():
    return [uuid.uuid4() for _ in range(4)]


@pytest.fixture
def initializer(approvers):
    return ApprovalChainInitializer(approvers)


class TestInitialize:
    """Test ledger construction."""

    def test_manager_prestep(self, initializer, approvers, company_id):
        manager = uuid.uuid4()
        workflow = make_workflow(company_id, [make_step(1, approvers[:2])])

        ledger = initializer.initialize(workflow, manager_id=manager)

        assert ledger.status == LedgerStatus.PENDING
        assert ledger.current_step == MANAGER_STEP
        assert [(e.step, e.approver_id) for e in ledger.entries] == [
            (0, manager),
            (1, approvers[0]),
            (1, approvers[1]),
        ]
        assert all(e.is_pending for e in ledger.entries)

    def test_no_manager_recorded(self, initializer, approvers, company_id):
        workflow = make_workflow(company_id, [make_step(1, approvers[:1])])

        ledger = initializer.initialize(workflow, manager_id=None)

        assert ledger.current_step == 1
        assert [e.step for e in ledger.entries] == [1]

    def test_manager_approval_disabled(self, initializer, approvers, company_id):
        workflow = make_workflow(
            company_id,
            [make_step(1, approvers[:1])],
            include_manager_approval=False,
        )

        ledger = initializer.initialize(workflow, manager_id=uuid.uuid4())

        assert ledger.current_step == 1
        assert all(e.step != MANAGER_STEP for e in ledger.entries)

    def test_entries_in_step_order(self, initializer, approvers, company_id):
        workflow = make_workflow(
            company_id,
            [make_step(3, approvers[2:3]), make_step(1, approvers[:1]), make_step(2, approvers[1:2])],
            include_manager_approval=False,
        )

        ledger = initializer.initialize(workflow)

        assert [e.step for e in ledger.entries] == [1, 2, 3]

    def test_starts_at_first_step_with_approvers(self, initializer, approvers, company_id):
        workflow = make_workflow(
            company_id,
            [make_step(1, []), make_step(2, approvers[:1])],
            include_manager_approval=False,
        )

        ledger = initializer.initialize(workflow)

        assert ledger.current_step == 2
        assert ledger.active_step() == 2

    def test_workflow_without_approvers(self, initializer, company_id):
        workflow = make_workflow(company_id, [make_step(1, [])], include_manager_approval=False)

        ledger = initializer.initialize(workflow)

        assert ledger.entries == []
        assert ledger.current_step == 1
        assert ledger.active_step() is None


class TestValidate:
    """Test workflow validation."""

    def test_inactive_workflow(self, initializer, company_id):
        workflow = make_workflow(company_id, [], is_active=False)

        with pytest.raises(ValidationError) as exc_info:
            initializer.validate(workflow)
        assert exc_info.value.field == "is_active"

    @pytest.mark.parametrize("percentage", [0, 101, -5, True])
    def test_percentage_out_of_range(self, initializer, company_id, percentage):
        workflow = make_workflow(company_id, [make_step(1, [], percentage=percentage)])

        with pytest.raises(ValidationError) as exc_info:
            initializer.validate(workflow)
        assert exc_info.value.field == "required_approval_percentage"
        assert exc_info.value.step_number == 1

    def test_percentage_bounds_accepted(self, initializer, company_id):
        workflow = make_workflow(company_id, [make_step(1, [], percentage=1), make_step(2, [], percentage=100)])
        initializer.validate(workflow)

    def test_dangling_override(self, initializer, company_id):
        workflow = make_workflow(company_id, [make_step(1, [], override=uuid.uuid4())])

        with pytest.raises(ValidationError) as exc_info:
            initializer.validate(workflow)
        assert exc_info.value.field == "specific_approver_override"

    def test_known_override(self, initializer, approvers, company_id):
        workflow = make_workflow(company_id, [make_step(1, approvers[:2], override=approvers[3])])
        initializer.validate(workflow)

    @pytest.mark.parametrize("number", [0, -1, "1"])
    def test_invalid_step_number(self, initializer, company_id, number):
        workflow = make_workflow(company_id, [make_step(number, [])])

        with pytest.raises(ValidationError) as exc_info:
            initializer.validate(workflow)
        assert exc_info.value.field == "step_number"

    def test_duplicate_step_number(self, initializer, company_id):
        workflow = make_workflow(company_id, [make_step(1, []), make_step(1, [])])

        with pytest.raises(ValidationError, match="declared twice"):
            initializer.validate(workflow)

    def test_duplicate_approver(self, initializer, approvers, company_id):
        """One person cannot hold two slots at the same step."""
        workflow = make_workflow(
            company_id,
            [make_step(1, [approvers[0], approvers[0], approvers[1]], percentage=60)],
        )

        with pytest.raises(ValidationError) as exc_info:
            initializer.initialize(workflow)
        assert exc_info.value.field == "approvers"
        assert exc_info.value.step_number == 1

    def test_same_approver_on_different_steps(self, initializer, approvers, company_id):
        workflow = make_workflow(company_id, [make_step(1, approvers[:1]), make_step(2, approvers[:1])])
        initializer.validate(workflow)

    def test_initialize_validates(self, initializer, company_id):
        workflow = make_workflow(company_id, [make_step(1, [], percentage=150)])

        with pytest.raises(ValidationError):
            initializer.initialize(workflow)
