from __future__ import annotations

from datetime import datetime, timedelta

import pytest
from sqlalchemy.engine import Engine
from sqlmodel import Session, select

from buildtrack.domain.errors import BusinessRuleViolation, ForbiddenError, NotFoundError, ValidationError
from buildtrack.domain.models import (
    EventRecord,
    Notification,
    NotificationType,
    ProjectTask,
    TaskUpdate,
)
from buildtrack.domain.state_machine import TaskStatus, UpdateStatus
from buildtrack.services.project_service import ProjectService
from tests.support import SATURDAY, TUESDAY, WEDNESDAY, Site, SubmitFn


def _reports(engine: Engine) -> list[TaskUpdate]:
    with Session(engine) as session:
        return list(session.exec(select(TaskUpdate)).all())


def _task(engine: Engine, task_id: str) -> ProjectTask:
    with Session(engine) as session:
        row = session.get(ProjectTask, task_id)
        assert row is not None
        return row


def _notifications(engine: Engine, user_id: str) -> list[Notification]:
    with Session(engine) as session:
        return list(session.exec(select(Notification).where(Notification.user_id == user_id)).all())


def test_submission_enters_supervisor_review_and_notifies_supervisor(
    test_engine: Engine, site: Site, submit: SubmitFn
) -> None:
    update = submit(progress=40.0)

    assert update.status == UpdateStatus.UNDER_SUPERVISOR_REVIEW
    assert update.report_date == TUESDAY.date()
    assert update.version == 1
    assert update.media == [{"url": "https://cdn.example.com/a.jpg", "type": "image"}]

    task = _task(test_engine, site.task_id)
    assert task.progress == 40.0
    assert task.status == TaskStatus.NOT_STARTED

    notices = _notifications(test_engine, site.supervisor_id)
    assert len(notices) == 1
    assert notices[0].type == NotificationType.UPDATE_SUBMITTED
    assert notices[0].related_entity_id == update.id
    assert _notifications(test_engine, site.admin_id) == []

    with Session(test_engine) as session:
        event = session.exec(select(EventRecord).where(EventRecord.event_type == "task_update.submitted")).one()
    assert event.payload["task_update_id"] == update.id
    assert event.actor_id == site.worker_id


def test_submission_without_supervisor_routes_to_admin(test_engine: Engine, site: Site, submit: SubmitFn) -> None:
    ProjectService().set_department_supervisor(site.owner_id, site.department_id, None)

    update = submit()

    assert update.status == UpdateStatus.UNDER_ADMIN_REVIEW
    assert len(_notifications(test_engine, site.admin_id)) == 1
    assert _notifications(test_engine, site.supervisor_id) == []


def test_full_progress_submission_puts_task_under_review(test_engine: Engine, site: Site, submit: SubmitFn) -> None:
    submit(progress=100.0)

    task = _task(test_engine, site.task_id)
    assert task.progress == 100.0
    assert task.status == TaskStatus.UNDER_REVIEW
    assert task.completed_at is None


def test_submission_never_lowers_task_progress(test_engine: Engine, site: Site, submit: SubmitFn) -> None:
    submit(progress=70.0, when=TUESDAY)
    submit(progress=30.0, when=WEDNESDAY)

    assert _task(test_engine, site.task_id).progress == 70.0


def test_non_assignee_is_forbidden(test_engine: Engine, site: Site, submit: SubmitFn) -> None:
    with pytest.raises(ForbiddenError):
        submit(submitter_id=site.outsider_id)
    assert _reports(test_engine) == []


def test_unknown_task_is_not_found(site: Site, submit: SubmitFn) -> None:
    with pytest.raises(NotFoundError) as excinfo:
        submit(task_id="missing-task")
    assert excinfo.value.entity == "task"
    assert str(excinfo.value) == "task missing-task not found"


def test_soft_deleted_task_is_not_found(site: Site, submit: SubmitFn) -> None:
    ProjectService().soft_delete_task(site.owner_id, site.task_id)
    with pytest.raises(NotFoundError):
        submit()


@pytest.mark.parametrize("when", [SATURDAY, SATURDAY + timedelta(days=1)])
def test_weekend_submission_is_rejected(test_engine: Engine, site: Site, submit: SubmitFn, when: datetime) -> None:
    with pytest.raises(BusinessRuleViolation) as excinfo:
        submit(when=when)
    assert excinfo.value.rule == "non-workday"
    assert _reports(test_engine) == []


def test_weekend_is_checked_before_media(site: Site, submit: SubmitFn) -> None:
    with pytest.raises(BusinessRuleViolation):
        submit(when=SATURDAY, media_urls=["a", "b"], media_types=["image"])


def test_second_report_same_day_is_rejected(test_engine: Engine, site: Site, submit: SubmitFn) -> None:
    submit(when=TUESDAY)
    with pytest.raises(BusinessRuleViolation) as excinfo:
        submit(when=TUESDAY + timedelta(hours=5))
    assert excinfo.value.rule == "duplicate-daily-report"
    assert len(_reports(test_engine)) == 1


def test_same_day_reports_on_different_tasks_are_allowed(test_engine: Engine, site: Site, submit: SubmitFn) -> None:
    submit(task_id=site.task_id)
    submit(task_id=site.plain_task_id)
    assert len(_reports(test_engine)) == 2


def test_next_day_report_is_allowed(test_engine: Engine, site: Site, submit: SubmitFn) -> None:
    submit(when=TUESDAY)
    submit(when=WEDNESDAY)
    assert len(_reports(test_engine)) == 2


def test_media_arity_mismatch_is_rejected(test_engine: Engine, site: Site, submit: SubmitFn) -> None:
    with pytest.raises(ValidationError) as excinfo:
        submit(media_urls=["https://cdn.example.com/a.jpg", "https://cdn.example.com/b.mp4"], media_types=["image"])
    assert excinfo.value.field == "media"
    assert _reports(test_engine) == []


def test_unknown_media_type_is_rejected(site: Site, submit: SubmitFn) -> None:
    with pytest.raises(ValidationError):
        submit(media_urls=["https://cdn.example.com/a.pdf"], media_types=["document"])


def test_video_media_is_accepted(site: Site, submit: SubmitFn) -> None:
    update = submit(media_urls=["https://cdn.example.com/walk.mp4"], media_types=["video"])
    assert update.media == [{"url": "https://cdn.example.com/walk.mp4", "type": "video"}]


@pytest.mark.parametrize("progress", [-1.0, 100.5])
def test_out_of_range_progress_is_rejected(test_engine: Engine, site: Site, submit: SubmitFn, progress: float) -> None:
    with pytest.raises(ValidationError) as excinfo:
        submit(progress=progress)
    assert excinfo.value.field == "progress_percentage"
    assert _reports(test_engine) == []
    assert _task(test_engine, site.task_id).progress == 0.0


def test_blank_description_is_rejected(site: Site, submit: SubmitFn) -> None:
    with pytest.raises(ValidationError):
        submit(description="   ")


def test_contractor_review_request_enters_contractor_stage(test_engine: Engine, site: Site, submit: SubmitFn) -> None:
    update = submit(contractor_review=True)

    assert update.status == UpdateStatus.UNDER_CONTRACTOR_ADMIN_REVIEW
    assert len(_notifications(test_engine, site.contractor_admin_id)) == 1
    assert _notifications(test_engine, site.supervisor_id) == []


def test_contractor_review_needs_a_contractor(test_engine: Engine, site: Site, submit: SubmitFn) -> None:
    with pytest.raises(BusinessRuleViolation) as excinfo:
        submit(task_id=site.plain_task_id, contractor_review=True)
    assert excinfo.value.rule == "no-contractor"
    assert _reports(test_engine) == []
