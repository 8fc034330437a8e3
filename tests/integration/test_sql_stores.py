"""Integration tests for the SQLAlchemy stores.

Run against a throwaway SQLite file so that two sessions can race on the
same claim row.
"""

import uuid
from datetime import date
from decimal import Decimal

import pytest

from expenseflow.core.approval import ApprovalService, Decision, LedgerStatus
from expenseflow.core.errors import ConcurrencyConflict, NotFoundError
from expenseflow.core.rbac import Role
from expenseflow.db.models import ApprovalEntryRecord, ExpenseClaim
from expenseflow.db.stores import SqlClaimStore, SqlUserDirectory, SqlWorkflowStore

from tests.factories import create_company, create_user, create_workflow


pytestmark = [pytest.mark.integration]


def make_service(session):
    return ApprovalService(
        claims=SqlClaimStore(session),
        workflows=SqlWorkflowStore(session),
        users=SqlUserDirectory(session),
        max_retries=3,
    )


@pytest.fixture
def submitted(db_session, org):
    return make_service(db_session).submit_claim(
        org.employee.id,
        org.workflow.id,
        details={
            "amount": Decimal("89.90"),
            "currency": "EUR",
            "category": "Meals",
            "description": "Client dinner",
            "expense_date": date(2024, 1, 15),
        },
    )


class TestSqlWorkflowStore:

    def test_get_by_id(self, db_session, org):
        workflow = SqlWorkflowStore(db_session).get_by_id(org.workflow.id)

        assert workflow.company_id == org.company.id
        assert workflow.step_numbers == [1, 2]
        assert workflow.step(1).approvers == [org.director.id, org.financer.id]
        assert workflow.step(1).required_approval_percentage == 50
        assert workflow.step(2).specific_approver_override == org.admin.id

    def test_missing_workflow(self, db_session):
        with pytest.raises(NotFoundError):
            SqlWorkflowStore(db_session).get_by_id(uuid.uuid4())


class TestSqlUserDirectory:

    def test_get_actor(self, db_session, org):
        actor = SqlUserDirectory(db_session).get_actor(org.employee.id)

        assert actor.role == Role.EMPLOYEE
        assert actor.manager_id == org.manager.id
        assert actor.company_id == org.company.id
        assert actor.is_active

    def test_company_user_ids(self, db_session, org):
        other = create_company(db_session)
        stranger = create_user(db_session, company=other)
        db_session.commit()

        ids = SqlUserDirectory(db_session).company_user_ids(org.company.id)

        assert org.admin.id in ids
        assert stranger.id not in ids
        assert len(ids) == 5

    def test_missing_user(self, db_session):
        with pytest.raises(NotFoundError):
            SqlUserDirectory(db_session).get_actor(uuid.uuid4())


class TestSqlClaimStore:

    def test_create_claim(self, db_session, org, submitted):
        row = db_session.query(ExpenseClaim).filter(ExpenseClaim.id == submitted.claim_id).one()

        assert row.version == 1
        assert row.status == "Pending"
        assert row.current_step == 0
        assert row.amount == Decimal("89.90")
        assert submitted.details["expense_date"] == "2024-01-15"
        assert [e.step for e in submitted.ledger.entries] == [0, 1, 1, 2]

    def test_save_and_reload(self, db_session, org, submitted):
        store = SqlClaimStore(db_session)
        snapshot, version = store.load_ledger(submitted.claim_id)
        entry = snapshot.ledger.entries[0]
        entry.decision = Decision.APPROVED
        entry.comment = "ok"
        snapshot.ledger.current_step = 1

        assert store.save_ledger(submitted.claim_id, snapshot.ledger, version) == version + 1

        reloaded, new_version = store.load_ledger(submitted.claim_id)
        assert new_version == version + 1
        assert reloaded.ledger.current_step == 1
        assert reloaded.ledger.entries[0].decision == Decision.APPROVED
        assert reloaded.ledger.entries[0].comment == "ok"
        assert [e.id for e in reloaded.ledger.entries] == [e.id for e in snapshot.ledger.entries]

    def test_stale_version_conflicts(self, session_factory, org, submitted):
        first, second = session_factory(), session_factory()
        try:
            store_a, store_b = SqlClaimStore(first), SqlClaimStore(second)
            snap_a, version_a = store_a.load_ledger(submitted.claim_id)
            snap_b, version_b = store_b.load_ledger(submitted.claim_id)
            assert version_a == version_b

            snap_b.ledger.entries[0].decision = Decision.APPROVED
            store_b.save_ledger(submitted.claim_id, snap_b.ledger, version_b)

            snap_a.ledger.entries[0].decision = Decision.REJECTED
            snap_a.ledger.status = LedgerStatus.REJECTED
            with pytest.raises(ConcurrencyConflict):
                store_a.save_ledger(submitted.claim_id, snap_a.ledger, version_a)

            stored, version = store_a.load_ledger(submitted.claim_id)
            assert version == version_b + 1
            assert stored.ledger.status == LedgerStatus.PENDING
            assert stored.ledger.entries[0].decision == Decision.APPROVED
        finally:
            first.close()
            second.close()

    def test_save_missing_claim(self, db_session, submitted):
        with pytest.raises(NotFoundError):
            SqlClaimStore(db_session).save_ledger(uuid.uuid4(), submitted.ledger, 1)

    def test_delete_claim(self, db_session, submitted):
        store = SqlClaimStore(db_session)
        _, version = store.load_ledger(submitted.claim_id)

        store.delete_claim(submitted.claim_id, version)

        with pytest.raises(NotFoundError):
            store.load_ledger(submitted.claim_id)
        assert db_session.query(ApprovalEntryRecord).filter(
            ApprovalEntryRecord.claim_id == submitted.claim_id
        ).count() == 0

    def test_delete_with_stale_version(self, db_session, submitted):
        store = SqlClaimStore(db_session)

        with pytest.raises(ConcurrencyConflict):
            store.delete_claim(submitted.claim_id, 99)

        store.load_ledger(submitted.claim_id)

    def test_claims_for_company(self, db_session, org, submitted):
        claims = SqlClaimStore(db_session).claims_for_company(org.company.id)
        assert [c.claim_id for c in claims] == [submitted.claim_id]

        assert SqlClaimStore(db_session).claims_for_company(uuid.uuid4()) == []


class TestServiceOverSql:
    """Full decision flow persisted through SQLAlchemy."""

    def test_full_flow(self, db_session, org, submitted):
        service = make_service(db_session)

        service.decide(submitted.claim_id, org.manager.id, Decision.APPROVED)
        result = service.decide(submitted.claim_id, org.financer.id, Decision.APPROVED)
        assert result.current_step == 2

        result = service.decide(submitted.claim_id, org.admin.id, Decision.APPROVED, "Final sign-off")
        assert result.status == LedgerStatus.APPROVED
        assert result.version == 4

        stored = service.get_claim(submitted.claim_id, org.employee.id)
        assert stored.ledger.status == LedgerStatus.APPROVED
        director_entry = next(e for e in stored.ledger.entries if e.approver_id == org.director.id)
        assert director_entry.superseded
        assert director_entry.decision == Decision.PENDING

    def test_rejection_tombstones_later_steps(self, db_session, org, submitted):
        service = make_service(db_session)
        service.decide(submitted.claim_id, org.manager.id, Decision.APPROVED)

        service.decide(submitted.claim_id, org.director.id, Decision.REJECTED, "Over budget")

        rows = db_session.query(ApprovalEntryRecord).filter(
            ApprovalEntryRecord.claim_id == submitted.claim_id
        ).all()
        assert len(rows) == 4
        assert all(r.superseded for r in rows if r.step == 2)
        financer_row = next(r for r in rows if r.approver_id == org.financer.id)
        assert financer_row.superseded
        assert financer_row.decision == "Pending"

    def test_admin_fallback_persists_audit_entry(self, db_session, org):
        workflow = create_workflow(db_session, company=org.company, include_manager_approval=False)
        db_session.commit()
        service = make_service(db_session)
        claim = service.submit_claim(org.employee.id, workflow.id)

        result = service.decide(claim.claim_id, org.admin.id, Decision.REJECTED)

        assert result.admin_fallback
        stored, _ = service.claims.load_ledger(claim.claim_id)
        assert stored.ledger.status == LedgerStatus.REJECTED
        assert [e.step for e in stored.ledger.entries] == [-1]
        assert stored.ledger.entries[0].acted_by == org.admin.id
