from __future__ import annotations

import pytest
from sqlalchemy.engine import Engine
from sqlmodel import Session, select

from buildtrack.domain.errors import ForbiddenError, NotFoundError, StateConflictError
from buildtrack.domain.models import (
    EventRecord,
    Notification,
    NotificationType,
    ProjectTask,
    ReviewAction,
    TaskUpdate,
)
from buildtrack.domain.state_machine import TaskStatus, UpdateStatus
from buildtrack.infra.repository import Repository
from buildtrack.services.project_service import ProjectService
from buildtrack.services.review_service import ReviewService
from tests.support import TUESDAY, WEDNESDAY, Site, SubmitFn


def _task(engine: Engine, task_id: str) -> ProjectTask:
    with Session(engine) as session:
        row = session.get(ProjectTask, task_id)
        assert row is not None
        return row


def _report(engine: Engine, update_id: str) -> TaskUpdate:
    with Session(engine) as session:
        row = session.get(TaskUpdate, update_id)
        assert row is not None
        return row


def _notifications(engine: Engine, user_id: str) -> list[Notification]:
    with Session(engine) as session:
        return list(session.exec(select(Notification).where(Notification.user_id == user_id)).all())


def test_supervised_report_is_completed_after_admin_approval(test_engine: Engine, site: Site, submit: SubmitFn) -> None:
    service = ReviewService()
    update = submit(progress=100.0)
    assert update.status == UpdateStatus.UNDER_SUPERVISOR_REVIEW
    assert _task(test_engine, site.task_id).status == TaskStatus.UNDER_REVIEW

    update = service.review_report(update.id, site.supervisor_id, ReviewAction.APPROVE, feedback="looks right")
    assert update.status == UpdateStatus.UNDER_ADMIN_REVIEW
    assert update.supervisor_approved is True
    assert update.supervisor_reviewer_id == site.supervisor_id
    assert update.supervisor_feedback == "looks right"
    task = _task(test_engine, site.task_id)
    assert task.status == TaskStatus.UNDER_REVIEW
    assert task.completed_at is None
    assert len(_notifications(test_engine, site.admin_id)) == 1

    update = service.review_report(update.id, site.admin_id, ReviewAction.APPROVE)
    assert update.status == UpdateStatus.ADMIN_APPROVED
    assert update.admin_approved is True
    task = _task(test_engine, site.task_id)
    assert task.status == TaskStatus.COMPLETED
    assert task.completed_at is not None

    approvals = [
        item for item in _notifications(test_engine, site.worker_id) if item.type == NotificationType.UPDATE_APPROVED
    ]
    assert len(approvals) == 1


def test_admin_approval_below_full_progress_never_completes(test_engine: Engine, site: Site, submit: SubmitFn) -> None:
    service = ReviewService()
    update = submit(progress=60.0)
    service.review_report(update.id, site.supervisor_id, ReviewAction.APPROVE)
    update = service.review_report(update.id, site.admin_id, ReviewAction.APPROVE)

    assert update.status == UpdateStatus.ADMIN_APPROVED
    task = _task(test_engine, site.task_id)
    assert task.status != TaskStatus.COMPLETED
    assert task.completed_at is None
    assert task.progress == 60.0


def test_admin_progress_override_is_clamped_and_applied(test_engine: Engine, site: Site, submit: SubmitFn) -> None:
    service = ReviewService()
    update = submit(progress=80.0)
    service.review_report(update.id, site.supervisor_id, ReviewAction.APPROVE)
    update = service.review_report(update.id, site.admin_id, ReviewAction.APPROVE, adjusted_progress=130.0)

    assert update.progress_percentage == 100.0
    task = _task(test_engine, site.task_id)
    assert task.status == TaskStatus.COMPLETED
    assert task.progress == 100.0


def test_level_six_reviewer_cannot_act_at_admin_stage(test_engine: Engine, site: Site, submit: SubmitFn) -> None:
    service = ReviewService()
    update = submit()
    service.review_report(update.id, site.supervisor_id, ReviewAction.APPROVE)

    with pytest.raises(ForbiddenError, match="not authorized to review at this stage"):
        service.review_report(update.id, site.other_supervisor_id, ReviewAction.APPROVE)
    with pytest.raises(ForbiddenError):
        service.review_report(update.id, site.supervisor_id, ReviewAction.APPROVE)

    stored = _report(test_engine, update.id)
    assert stored.status == UpdateStatus.UNDER_ADMIN_REVIEW
    assert stored.admin_reviewer_id is None


def test_supervisor_of_another_department_is_forbidden(site: Site, submit: SubmitFn) -> None:
    update = submit()
    with pytest.raises(ForbiddenError):
        ReviewService().review_report(update.id, site.other_supervisor_id, ReviewAction.APPROVE)


@pytest.mark.parametrize("stage", ["supervisor", "admin"])
def test_rejection_never_touches_the_task(test_engine: Engine, site: Site, submit: SubmitFn, stage: str) -> None:
    service = ReviewService()
    update = submit(progress=100.0)
    before = _task(test_engine, site.task_id)
    reviewer = site.supervisor_id
    if stage == "admin":
        service.review_report(update.id, site.supervisor_id, ReviewAction.APPROVE)
        before = _task(test_engine, site.task_id)
        reviewer = site.admin_id

    update = service.review_report(update.id, reviewer, ReviewAction.REJECT, feedback="photos are blurry")

    expected = UpdateStatus.SUPERVISOR_REJECTED if stage == "supervisor" else UpdateStatus.ADMIN_REJECTED
    assert update.status == expected
    after = _task(test_engine, site.task_id)
    assert (after.progress, after.status, after.completed_at) == (before.progress, before.status, before.completed_at)

    rejections = [
        item for item in _notifications(test_engine, site.worker_id) if item.type == NotificationType.UPDATE_REJECTED
    ]
    assert len(rejections) == 1
    assert "photos are blurry" in rejections[0].message


def test_terminal_report_cannot_be_reviewed_again(test_engine: Engine, site: Site, submit: SubmitFn) -> None:
    service = ReviewService()
    update = submit()
    service.review_report(update.id, site.supervisor_id, ReviewAction.REJECT)

    with pytest.raises(StateConflictError) as excinfo:
        service.review_report(update.id, site.admin_id, ReviewAction.APPROVE)
    assert excinfo.value.current_status == str(UpdateStatus.SUPERVISOR_REJECTED)


def test_expected_status_mismatch_is_a_conflict(test_engine: Engine, site: Site, submit: SubmitFn) -> None:
    update = submit()
    with pytest.raises(StateConflictError):
        ReviewService().review_report(
            update.id,
            site.admin_id,
            ReviewAction.APPROVE,
            expected_status=UpdateStatus.UNDER_ADMIN_REVIEW,
        )
    assert _report(test_engine, update.id).status == UpdateStatus.UNDER_SUPERVISOR_REVIEW


def test_stale_version_claim_is_a_conflict(test_engine: Engine, site: Site, submit: SubmitFn) -> None:
    update = submit()
    with Session(test_engine) as stale_session:
        stale = Repository(stale_session).get_task_update(update.id)
        assert stale.version == 1

        ReviewService().review_report(update.id, site.supervisor_id, ReviewAction.APPROVE)

        with pytest.raises(StateConflictError):
            Repository(stale_session).claim_task_update(stale)

    stored = _report(test_engine, update.id)
    assert stored.version == 2
    assert stored.status == UpdateStatus.UNDER_ADMIN_REVIEW


def test_unknown_report_is_not_found(site: Site) -> None:
    with pytest.raises(NotFoundError):
        ReviewService().review_report("missing", site.admin_id, ReviewAction.APPROVE)


def test_contractor_approval_routes_to_department_supervisor(test_engine: Engine, site: Site, submit: SubmitFn) -> None:
    service = ReviewService()
    update = submit(contractor_review=True)

    update = service.review_contractor_stage(update.id, site.contractor_admin_id, True, feedback="ok from us")

    assert update.status == UpdateStatus.UNDER_SUPERVISOR_REVIEW
    assert update.contractor_admin_approved is True
    assert update.contractor_admin_reviewer_id == site.contractor_admin_id
    reviews = [
        item for item in _notifications(test_engine, site.supervisor_id) if item.type == NotificationType.TASK_REVIEW
    ]
    assert len(reviews) == 1


def test_contractor_rejection_is_terminal(test_engine: Engine, site: Site, submit: SubmitFn) -> None:
    service = ReviewService()
    update = submit(contractor_review=True)

    update = service.review_contractor_stage(update.id, site.contractor_admin_id, False, feedback="redo the pour log")

    assert update.status == UpdateStatus.CONTRACTOR_ADMIN_REJECTED
    with pytest.raises(StateConflictError):
        service.review_contractor_stage(update.id, site.contractor_admin_id, True)
    assert _task(test_engine, site.task_id).progress == 40.0


def test_contractor_stage_is_not_reviewable_through_review_report(site: Site, submit: SubmitFn) -> None:
    update = submit(contractor_review=True)
    with pytest.raises(StateConflictError):
        ReviewService().review_report(update.id, site.admin_id, ReviewAction.APPROVE)


def test_contractor_stage_forbidden_for_field_worker(site: Site, submit: SubmitFn) -> None:
    update = submit(contractor_review=True)
    with pytest.raises(ForbiddenError):
        ReviewService().review_contractor_stage(update.id, site.worker_id, True)


def test_supervisor_approval_is_final_when_escalation_is_disabled(
    test_engine: Engine, site: Site, submit: SubmitFn
) -> None:
    service = ReviewService(always_escalate_after_supervisor_approval=False)
    update = submit(progress=100.0)

    update = service.review_report(update.id, site.supervisor_id, ReviewAction.APPROVE)

    assert update.status == UpdateStatus.SUPERVISOR_APPROVED
    task = _task(test_engine, site.task_id)
    assert task.status == TaskStatus.COMPLETED
    assert task.completed_at is not None
    assert _notifications(test_engine, site.admin_id) == []
    with pytest.raises(StateConflictError):
        service.review_report(update.id, site.admin_id, ReviewAction.APPROVE)


def test_review_publishes_event(test_engine: Engine, site: Site, submit: SubmitFn) -> None:
    update = submit()
    ReviewService().review_report(update.id, site.supervisor_id, ReviewAction.APPROVE)

    with Session(test_engine) as session:
        event = session.exec(select(EventRecord).where(EventRecord.event_type == "task_update.reviewed")).one()
    assert event.payload["from_status"] == str(UpdateStatus.UNDER_SUPERVISOR_REVIEW)
    assert event.payload["to_status"] == str(UpdateStatus.UNDER_ADMIN_REVIEW)
    assert event.actor_id == site.supervisor_id


def test_pending_inbox_follows_the_report_through_stages(site: Site, submit: SubmitFn) -> None:
    service = ReviewService()
    update = submit()

    assert [item.id for item in service.list_pending_for_reviewer(site.supervisor_id)] == [update.id]
    assert service.list_pending_for_reviewer(site.worker_id) == []
    assert service.list_pending_for_reviewer(site.other_supervisor_id) == []

    service.review_report(update.id, site.supervisor_id, ReviewAction.APPROVE)

    assert service.list_pending_for_reviewer(site.supervisor_id) == []
    assert [item.id for item in service.list_pending_for_reviewer(site.admin_id)] == [update.id]


def test_task_reports_are_listed_newest_first(site: Site, submit: SubmitFn) -> None:
    first = submit(when=TUESDAY)
    second = submit(when=WEDNESDAY)

    rows = ReviewService().list_task_updates_for_task(site.task_id)

    assert [item.id for item in rows] == [second.id, first.id]


def test_approving_an_older_report_keeps_newer_progress(test_engine: Engine, site: Site, submit: SubmitFn) -> None:
    service = ReviewService()
    older = submit(when=TUESDAY, progress=30.0)
    submit(when=WEDNESDAY, progress=70.0)

    service.review_report(older.id, site.supervisor_id, ReviewAction.APPROVE)
    service.review_report(older.id, site.admin_id, ReviewAction.APPROVE)

    assert _task(test_engine, site.task_id).progress == 70.0


def test_approving_a_lower_later_report_keeps_task_completed(
    test_engine: Engine, site: Site, submit: SubmitFn
) -> None:
    service = ReviewService()
    first = submit(when=TUESDAY, progress=100.0)
    service.review_report(first.id, site.supervisor_id, ReviewAction.APPROVE)
    service.review_report(first.id, site.admin_id, ReviewAction.APPROVE)
    completed = _task(test_engine, site.task_id)
    assert completed.status == TaskStatus.COMPLETED

    second = submit(when=WEDNESDAY, progress=60.0)
    service.review_report(second.id, site.supervisor_id, ReviewAction.APPROVE)
    service.review_report(second.id, site.admin_id, ReviewAction.APPROVE)

    task = _task(test_engine, site.task_id)
    assert task.status == TaskStatus.COMPLETED
    assert task.progress == 100.0
    assert task.completed_at == completed.completed_at


def test_contractor_approval_without_supervisor_goes_to_admin(
    test_engine: Engine, site: Site, submit: SubmitFn
) -> None:
    ProjectService().set_department_supervisor(site.owner_id, site.department_id, None)
    update = submit(contractor_review=True)

    update = ReviewService().review_contractor_stage(update.id, site.contractor_admin_id, True)

    assert update.status == UpdateStatus.UNDER_ADMIN_REVIEW
    reviews = [item for item in _notifications(test_engine, site.admin_id) if item.type == NotificationType.TASK_REVIEW]
    assert len(reviews) == 1
    assert reviews[0].related_entity_id == update.id
    assert _notifications(test_engine, site.supervisor_id) == []
