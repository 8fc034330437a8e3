"""Pytest configuration and shared fixtures."""

import uuid
from types import SimpleNamespace

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from expenseflow.core.approval import (
    ApprovalService,
    InMemoryClaimStore,
    InMemoryUserDirectory,
    InMemoryWorkflowStore,
)
from expenseflow.core.rbac import Role
from expenseflow.db.session import init_db

from tests.factories import create_company, create_user, create_workflow, make_actor


@pytest.fixture
def company_id():
    return uuid.uuid4()


@pytest.fixture
def people(company_id):
    """A small company: one admin, a manager with one report, and approvers."""
    admin = make_actor(Role.ADMIN, company_id=company_id, name="Ada Admin")
    manager = make_actor(Role.MANAGER, company_id=company_id, name="Mo Manager")
    employee = make_actor(Role.EMPLOYEE, company_id=company_id, manager_id=manager.id, name="Eve Employee")
    return SimpleNamespace(
        admin=admin,
        manager=manager,
        employee=employee,
        loner=make_actor(Role.EMPLOYEE, company_id=company_id, name="Lou Noman"),
        approver_a=make_actor(Role.DIRECTOR, company_id=company_id, name="Dee Director"),
        approver_b=make_actor(Role.FINANCER, company_id=company_id, name="Fin Financer"),
        approver_c=make_actor(Role.FINANCER, company_id=company_id, name="Cy Financer"),
        outsider=make_actor(Role.ADMIN, name="Other Company Admin"),
    )


@pytest.fixture
def user_directory(people):
    return InMemoryUserDirectory(vars(people).values())


@pytest.fixture
def workflow_store():
    return InMemoryWorkflowStore()


@pytest.fixture
def claim_store():
    return InMemoryClaimStore()


@pytest.fixture
def service(claim_store, workflow_store, user_directory):
    return ApprovalService(claim_store, workflow_store, user_directory, max_retries=3)


# ---------------------------------------------------------------------------
# Database
# ---------------------------------------------------------------------------


@pytest.fixture
def db_engine(tmp_path):
    """SQLite database file private to the test."""
    engine = create_engine(
        f"sqlite:///{tmp_path / 'expenseflow-test.db'}",
        connect_args={"check_same_thread": False},
    )
    init_db(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=db_engine)


@pytest.fixture
def db_session(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def org(db_session):
    """Committed company with a two-step workflow.

    Step 1 needs half of director/financer, step 2 is the admin, who is
    also its override approver.
    """
    company = create_company(db_session, name="Acme")
    manager = create_user(db_session, company=company, role=Role.MANAGER)
    employee = create_user(db_session, company=company, role=Role.EMPLOYEE, manager=manager)
    director = create_user(db_session, company=company, role=Role.DIRECTOR)
    financer = create_user(db_session, company=company, role=Role.FINANCER)
    admin = create_user(db_session, company=company, role=Role.ADMIN)
    workflow = create_workflow(
        db_session,
        company=company,
        steps=[
            {"step_number": 1, "approvers": [director, financer], "percentage": 50},
            {"step_number": 2, "approvers": [admin], "override": admin},
        ],
    )
    db_session.commit()
    return SimpleNamespace(
        company=company,
        manager=manager,
        employee=employee,
        director=director,
        financer=financer,
        admin=admin,
        workflow=workflow,
    )
