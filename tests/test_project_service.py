from __future__ import annotations

import pytest
from sqlalchemy.engine import Engine
from sqlmodel import Session, select

from buildtrack.domain.errors import ForbiddenError, NotFoundError, ValidationError
from buildtrack.domain.models import (
    DepartmentSupervisor,
    EventRecord,
    ProjectTaskCreate,
    ProjectTaskEdit,
)
from buildtrack.domain.state_machine import TaskStatus
from buildtrack.services.project_service import ProjectService
from tests.support import Site, SubmitFn


def test_direct_edit_to_full_progress_completes_task(site: Site) -> None:
    task = ProjectService().update_task(site.worker_id, site.task_id, ProjectTaskEdit(progress=100.0))

    assert task.status == TaskStatus.COMPLETED
    assert task.completed_at is not None


def test_direct_edit_below_full_progress_reopens_completed_task(site: Site) -> None:
    service = ProjectService()
    service.update_task(site.owner_id, site.task_id, ProjectTaskEdit(progress=100.0))

    task = service.update_task(site.owner_id, site.task_id, ProjectTaskEdit(progress=75.0))

    assert task.status == TaskStatus.IN_PROGRESS
    assert task.completed_at is None
    assert task.progress == 75.0


def test_direct_edit_publishes_task_updated_event(test_engine: Engine, site: Site) -> None:
    ProjectService().update_task(site.supervisor_id, site.task_id, ProjectTaskEdit(title="Level 3 slab pour", priority=2))

    with Session(test_engine) as session:
        event = session.exec(select(EventRecord).where(EventRecord.event_type == "task.updated")).one()
    assert event.payload["fields"] == ["priority", "title"]


def test_direct_edit_requires_a_relationship_to_the_task(site: Site) -> None:
    with pytest.raises(ForbiddenError):
        ProjectService().update_task(site.outsider_id, site.task_id, ProjectTaskEdit(progress=10.0))


@pytest.mark.parametrize(
    "payload",
    [ProjectTaskEdit(priority=0), ProjectTaskEdit(priority=5), ProjectTaskEdit(progress=120.0)],
)
def test_direct_edit_validates_ranges(site: Site, payload: ProjectTaskEdit) -> None:
    with pytest.raises(ValidationError):
        ProjectService().update_task(site.owner_id, site.task_id, payload)


def test_set_department_supervisor_replaces_link(test_engine: Engine, site: Site) -> None:
    department = ProjectService().set_department_supervisor(site.owner_id, site.department_id, site.other_supervisor_id)

    assert department.supervisor_id == site.other_supervisor_id
    with Session(test_engine) as session:
        links = session.exec(
            select(DepartmentSupervisor).where(DepartmentSupervisor.department_id == site.department_id)
        ).all()
    assert [item.supervisor_id for item in links] == [site.other_supervisor_id]


def test_only_project_managers_create_tasks(site: Site) -> None:
    with pytest.raises(ForbiddenError):
        ProjectService().create_task(
            site.worker_id,
            site.project_id,
            ProjectTaskCreate(department_id=site.department_id, title="Rebar"),
        )


def test_task_department_must_belong_to_project(site: Site) -> None:
    service = ProjectService()
    with pytest.raises(NotFoundError):
        service.create_task(
            site.owner_id,
            site.project_id,
            ProjectTaskCreate(department_id="missing", title="Rebar"),
        )


def test_assign_and_unassign_user(site: Site) -> None:
    service = ProjectService()
    service.assign_user(site.owner_id, site.plain_task_id, site.outsider_id)
    active = {item.user_id for item in service.list_assignees(site.plain_task_id) if item.is_active}
    assert active == {site.worker_id, site.outsider_id}

    row = service.unassign_user(site.owner_id, site.plain_task_id, site.outsider_id)
    assert row.is_active is False


def test_soft_deleted_task_disappears(site: Site) -> None:
    service = ProjectService()
    service.soft_delete_task(site.owner_id, site.plain_task_id)

    with pytest.raises(NotFoundError):
        service.get_task(site.plain_task_id)
    assert [item.id for item in service.list_tasks(site.project_id)] == [site.task_id]


def test_marking_a_full_progress_task_completed_stamps_completion(site: Site, submit: SubmitFn) -> None:
    submit(progress=100.0)
    service = ProjectService()
    assert service.get_task(site.task_id).status == TaskStatus.UNDER_REVIEW

    task = service.update_task(site.owner_id, site.task_id, ProjectTaskEdit(status=TaskStatus.COMPLETED))

    assert task.status == TaskStatus.COMPLETED
    assert task.completed_at is not None
