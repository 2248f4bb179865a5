from __future__ import annotations

from collections.abc import Generator
from datetime import datetime
from pathlib import Path

import pytest
from sqlalchemy.engine import Engine
from sqlmodel import SQLModel, create_engine

from buildtrack.domain.models import (
    ContractorCreate,
    DepartmentCreate,
    ProjectCreate,
    ProjectTaskCreate,
    RoleAssignmentCreate,
    TaskUpdate,
    TaskUpdateSubmitRequest,
    UserCreate,
)
from buildtrack.domain.roles import RoleKind
from buildtrack.infra import audit, db, events
from buildtrack.services.identity_service import IdentityService
from buildtrack.services.project_service import ProjectService
from buildtrack.services.submission_service import SubmissionService
from tests.support import ORG_ID, TUESDAY, Site, SubmitFn


@pytest.fixture()
def test_engine(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> Generator[Engine, None, None]:
    db_path = tmp_path / "buildtrack_test.db"
    engine = create_engine(
        f"sqlite:///{db_path}",
        connect_args={"check_same_thread": False},
    )
    SQLModel.metadata.create_all(engine)
    monkeypatch.setattr(db, "engine", engine)
    monkeypatch.setattr(audit, "engine", engine)
    monkeypatch.setattr(events, "engine", engine)
    yield engine
    engine.dispose()


def _user(identity: IdentityService, email: str, name: str) -> str:
    return identity.create_user(UserCreate(email=email, full_name=name, organization_id=ORG_ID)).id


@pytest.fixture()
def site(test_engine: Engine) -> Site:
    """A project with one supervised department, a contractor and two tasks assigned to a worker."""
    identity = IdentityService()
    projects = ProjectService()

    owner_id = _user(identity, "owner@example.com", "Olivia Owner")
    admin_id = _user(identity, "admin@example.com", "Adam Admin")
    supervisor_id = _user(identity, "sup@example.com", "Sam Supervisor")
    other_supervisor_id = _user(identity, "sup2@example.com", "Sasha Supervisor")
    contractor_admin_id = _user(identity, "contractor@example.com", "Casey Contractor")
    worker_id = _user(identity, "worker@example.com", "Wren Worker")
    outsider_id = _user(identity, "outsider@example.com", "Otto Outsider")

    project = projects.create_project(
        owner_id,
        ProjectCreate(organization_id=ORG_ID, name="Harbour Tower", code="HT", owner_id=owner_id, admin_id=admin_id),
    )
    department = projects.create_department(owner_id, project.id, DepartmentCreate(name="Concrete", code="CON"))
    other_department = projects.create_department(owner_id, project.id, DepartmentCreate(name="Electrical", code="ELE"))
    projects.set_department_supervisor(owner_id, department.id, supervisor_id)
    projects.set_department_supervisor(owner_id, other_department.id, other_supervisor_id)

    identity.assign_role(admin_id, RoleAssignmentCreate(role_kind=RoleKind.PROJECT_ADMINISTRATOR, project_id=project.id))
    identity.assign_role(supervisor_id, RoleAssignmentCreate(role_kind=RoleKind.DEPARTMENT_SUPERVISOR, project_id=project.id))
    identity.assign_role(
        other_supervisor_id, RoleAssignmentCreate(role_kind=RoleKind.DEPARTMENT_SUPERVISOR, project_id=project.id)
    )
    identity.assign_role(worker_id, RoleAssignmentCreate(role_kind=RoleKind.FIELD_WORKER, project_id=project.id))

    contractor = projects.create_contractor(
        owner_id,
        project.id,
        ContractorCreate(company_name="Pour Co", contractor_admin_id=contractor_admin_id, department_id=department.id),
    )
    task = projects.create_task(
        owner_id,
        project.id,
        ProjectTaskCreate(
            department_id=department.id,
            title="Level 3 slab",
            contractor_id=contractor.id,
            assignee_ids=[worker_id],
        ),
    )
    plain_task = projects.create_task(
        owner_id,
        project.id,
        ProjectTaskCreate(department_id=department.id, title="Formwork", assignee_ids=[worker_id]),
    )
    return Site(
        project_id=project.id,
        department_id=department.id,
        other_department_id=other_department.id,
        contractor_id=contractor.id,
        task_id=task.id,
        plain_task_id=plain_task.id,
        owner_id=owner_id,
        admin_id=admin_id,
        supervisor_id=supervisor_id,
        other_supervisor_id=other_supervisor_id,
        contractor_admin_id=contractor_admin_id,
        worker_id=worker_id,
        outsider_id=outsider_id,
    )


@pytest.fixture()
def submit(site: Site) -> SubmitFn:
    """Submit a report as the site worker; keyword arguments override the defaults."""
    return lambda **kwargs: _submit_report(site, **kwargs)


def _submit_report(
    site: Site,
    *,
    task_id: str | None = None,
    submitter_id: str | None = None,
    when: datetime = TUESDAY,
    progress: float = 40.0,
    contractor_review: bool = False,
    media_urls: list[str] | None = None,
    media_types: list[str] | None = None,
    description: str = "Poured the east bay and stripped forms on the north side.",
) -> TaskUpdate:
    return SubmissionService().submit(
        task_id or site.task_id,
        submitter_id or site.worker_id,
        TaskUpdateSubmitRequest(
            description=description,
            media_urls=media_urls if media_urls is not None else ["https://cdn.example.com/a.jpg"],
            media_types=media_types if media_types is not None else ["image"],
            progress_percentage=progress,
            submitted_at=when,
            contractor_review=contractor_review,
        ),
    )
