from __future__ import annotations

import structlog
from sqlmodel import Session

from buildtrack.domain.errors import NotFoundError, StateConflictError
from buildtrack.domain.models import (
    Contractor,
    Department,
    NotificationChannel,
    NotificationType,
    Project,
    ProjectTask,
    ReviewAction,
    TaskUpdate,
    now_utc,
)
from buildtrack.domain.state_machine import (
    ALWAYS_ESCALATE_AFTER_SUPERVISOR_APPROVAL,
    REVIEW_STAGES,
    UpdateStatus,
    can_transition,
)
from buildtrack.infra.db import get_engine
from buildtrack.infra.events import event_bus
from buildtrack.infra.repository import Repository
from buildtrack.services.authorization import AuthorizationResolver
from buildtrack.services.notification_service import NotificationService, PendingNotification
from buildtrack.services.progress_aggregator import ProgressAggregator, clamp_progress
from buildtrack.services.review_router import ReviewRouter

SUPERVISED_STAGES = frozenset({UpdateStatus.UNDER_SUPERVISOR_REVIEW, UpdateStatus.UNDER_ADMIN_REVIEW})

logger = structlog.get_logger(__name__)


class ReviewService:
    """Applies reviewer decisions to daily reports.

    Each decision runs in one transaction that claims the report's version
    before writing, so only one of two racing reviewers can move a report out
    of its stage. Notifications and events go out after the commit.
    """

    def __init__(
        self,
        *,
        always_escalate_after_supervisor_approval: bool = ALWAYS_ESCALATE_AFTER_SUPERVISOR_APPROVAL,
        router: ReviewRouter | None = None,
        authorization: AuthorizationResolver | None = None,
        aggregator: ProgressAggregator | None = None,
        notifier: NotificationService | None = None,
    ) -> None:
        self._always_escalate = always_escalate_after_supervisor_approval
        self._router = router or ReviewRouter()
        self._authorization = authorization or AuthorizationResolver()
        self._aggregator = aggregator or ProgressAggregator()
        self._notifier = notifier or NotificationService()

    def _session(self) -> Session:
        return Session(get_engine(), expire_on_commit=False)

    def _transition(self, update: TaskUpdate, target: UpdateStatus) -> None:
        if not can_transition(update.status, target):
            raise StateConflictError(
                f"task update {update.id} cannot move from {update.status} to {target}",
                current_status=str(update.status),
            )
        update.status = target

    def _ensure_stage(
        self,
        update: TaskUpdate,
        allowed: frozenset[UpdateStatus],
        expected_status: UpdateStatus | None,
    ) -> UpdateStatus:
        current = update.status
        if current not in allowed:
            raise StateConflictError(
                f"task update {update.id} is {current} and cannot be reviewed here",
                current_status=str(current),
            )
        if expected_status is not None and expected_status != current:
            raise StateConflictError(
                f"task update {update.id} is {current}, expected {expected_status}",
                current_status=str(current),
            )
        return current

    def _submitter_notice(
        self,
        update: TaskUpdate,
        task: ProjectTask,
        *,
        approved: bool,
        stage_label: str,
        feedback: str | None,
    ) -> PendingNotification:
        if approved:
            title = "Task update approved"
            message = f"Your report for '{task.title}' was approved by the {stage_label}."
            notice_type = NotificationType.UPDATE_APPROVED
        else:
            title = "Task update rejected"
            message = f"Your report for '{task.title}' was rejected by the {stage_label}."
            notice_type = NotificationType.UPDATE_REJECTED
        if feedback:
            message = f"{message} Feedback: {feedback}"
        return PendingNotification(
            user_id=update.submitted_by,
            title=title,
            message=message,
            type=notice_type,
            channel=NotificationChannel.BOTH,
            related_entity_id=update.id,
            related_entity_type="TaskUpdate",
            action_url=self._notifier.action_url(f"/task-updates/{update.id}"),
        )

    def _reviewer_notice(
        self,
        reviewer_id: str | None,
        update: TaskUpdate,
        task: ProjectTask,
    ) -> list[PendingNotification]:
        if reviewer_id is None:
            return []
        return [
            PendingNotification(
                user_id=reviewer_id,
                title="Task update awaiting your review",
                message=f"A report for '{task.title}' has moved to {update.status} and needs your decision.",
                type=NotificationType.TASK_REVIEW,
                channel=NotificationChannel.BOTH,
                related_entity_id=update.id,
                related_entity_type="TaskUpdate",
                action_url=self._notifier.action_url(f"/task-updates/{update.id}"),
            )
        ]

    def _finish(
        self,
        update: TaskUpdate,
        *,
        reviewer_id: str,
        organization_id: str,
        from_status: UpdateStatus,
        approved: bool,
        task_changed: bool,
        pending: list[PendingNotification],
    ) -> None:
        logger.info(
            "report_reviewed",
            task_update_id=update.id,
            reviewer_id=reviewer_id,
            from_status=from_status,
            to_status=update.status,
            approved=approved,
        )
        self._notifier.dispatch(pending)
        event_bus.publish_dict(
            "task_update.reviewed",
            organization_id,
            {
                "task_update_id": update.id,
                "task_id": update.task_id,
                "from_status": str(from_status),
                "to_status": str(update.status),
                "approved": approved,
                "task_changed": task_changed,
            },
            actor_id=reviewer_id,
        )

    def review_report(
        self,
        update_id: str,
        reviewer_id: str,
        action: ReviewAction,
        feedback: str | None = None,
        adjusted_progress: float | None = None,
        expected_status: UpdateStatus | None = None,
    ) -> TaskUpdate:
        approved = action == ReviewAction.APPROVE
        with self._session() as session:
            repo = Repository(session)
            update = repo.get_task_update(update_id)
            task = repo.get_task(update.task_id)
            department = repo.get_department(task.department_id)
            project = repo.get_project(task.project_id)
            from_status = self._ensure_stage(update, SUPERVISED_STAGES, expected_status)
            self._authorization.ensure_can_act(
                session,
                reviewer_id,
                from_status,
                task=task,
                department=department,
                project=project,
            )
            repo.claim_task_update(update)

            now = now_utc()
            if adjusted_progress is not None:
                update.progress_percentage = clamp_progress(adjusted_progress)

            task_changed = False
            pending: list[PendingNotification] = []
            if from_status == UpdateStatus.UNDER_SUPERVISOR_REVIEW:
                if update.supervisor_reviewer_id is not None:
                    raise StateConflictError(
                        f"task update {update.id} already has a supervisor decision",
                        current_status=str(from_status),
                    )
                update.supervisor_reviewer_id = reviewer_id
                update.supervisor_reviewed_at = now
                update.supervisor_feedback = feedback
                update.supervisor_approved = approved
                if not approved:
                    self._transition(update, UpdateStatus.SUPERVISOR_REJECTED)
                    pending.append(
                        self._submitter_notice(update, task, approved=False, stage_label="supervisor", feedback=feedback)
                    )
                else:
                    self._transition(update, UpdateStatus.SUPERVISOR_APPROVED)
                    task_changed = self._aggregator.on_supervisor_approval(task, update, now)
                    if self._always_escalate:
                        self._transition(update, UpdateStatus.UNDER_ADMIN_REVIEW)
                        pending.extend(
                            self._reviewer_notice(self._router.project_admin_or_owner(project), update, task)
                        )
                    else:
                        task_changed = self._aggregator.on_final_approval(task, update, now) or task_changed
                        pending.append(
                            self._submitter_notice(update, task, approved=True, stage_label="supervisor", feedback=feedback)
                        )
            else:
                if update.admin_reviewer_id is not None:
                    raise StateConflictError(
                        f"task update {update.id} already has an admin decision",
                        current_status=str(from_status),
                    )
                update.admin_reviewer_id = reviewer_id
                update.admin_reviewed_at = now
                update.admin_feedback = feedback
                update.admin_approved = approved
                if approved:
                    self._transition(update, UpdateStatus.ADMIN_APPROVED)
                    task_changed = self._aggregator.on_final_approval(task, update, now)
                else:
                    self._transition(update, UpdateStatus.ADMIN_REJECTED)
                pending.append(
                    self._submitter_notice(update, task, approved=approved, stage_label="project admin", feedback=feedback)
                )

            update.updated_at = now
            session.add(update)
            if task_changed:
                session.add(task)
            session.commit()
            session.refresh(update)
            organization_id = project.organization_id

        self._finish(
            update,
            reviewer_id=reviewer_id,
            organization_id=organization_id,
            from_status=from_status,
            approved=approved,
            task_changed=task_changed,
            pending=pending,
        )
        return update

    def review_contractor_stage(
        self,
        update_id: str,
        reviewer_id: str,
        approved: bool,
        feedback: str | None = None,
        expected_status: UpdateStatus | None = None,
    ) -> TaskUpdate:
        with self._session() as session:
            repo = Repository(session)
            update = repo.get_task_update(update_id)
            task = repo.get_task(update.task_id)
            department = repo.get_department(task.department_id)
            project = repo.get_project(task.project_id)
            contractor = repo.find_contractor(task.contractor_id)
            from_status = self._ensure_stage(
                update,
                frozenset({UpdateStatus.UNDER_CONTRACTOR_ADMIN_REVIEW}),
                expected_status,
            )
            self._authorization.ensure_can_act(
                session,
                reviewer_id,
                from_status,
                task=task,
                department=department,
                project=project,
                contractor=contractor,
            )
            repo.claim_task_update(update)
            if update.contractor_admin_reviewer_id is not None:
                raise StateConflictError(
                    f"task update {update.id} already has a contractor decision",
                    current_status=str(from_status),
                )

            now = now_utc()
            update.contractor_admin_reviewer_id = reviewer_id
            update.contractor_admin_reviewed_at = now
            update.contractor_admin_feedback = feedback
            update.contractor_admin_approved = approved
            pending: list[PendingNotification] = []
            if approved:
                next_stage = self._router.route_after_contractor_approval(task, department)
                self._transition(update, next_stage)
                reviewer_to_notify = self._router.stage_reviewer(
                    next_stage,
                    department=department,
                    project=project,
                )
                pending.extend(self._reviewer_notice(reviewer_to_notify, update, task))
            else:
                self._transition(update, UpdateStatus.CONTRACTOR_ADMIN_REJECTED)
                pending.append(
                    self._submitter_notice(update, task, approved=False, stage_label="contractor admin", feedback=feedback)
                )

            update.updated_at = now
            session.add(update)
            session.commit()
            session.refresh(update)
            organization_id = project.organization_id

        self._finish(
            update,
            reviewer_id=reviewer_id,
            organization_id=organization_id,
            from_status=from_status,
            approved=approved,
            task_changed=False,
            pending=pending,
        )
        return update

    def get_task_update(self, update_id: str) -> TaskUpdate:
        with self._session() as session:
            return Repository(session).get_task_update(update_id)

    def list_task_updates_for_task(self, task_id: str) -> list[TaskUpdate]:
        with self._session() as session:
            repo = Repository(session)
            repo.get_task(task_id)
            rows = repo.list_task_updates(task_id=task_id)
            return sorted(rows, key=lambda item: item.submitted_at, reverse=True)

    def list_pending_for_reviewer(self, reviewer_id: str) -> list[TaskUpdate]:
        """Reports sitting in a review stage the reviewer is allowed to act on."""
        with self._session() as session:
            repo = Repository(session)
            contexts: dict[str, tuple[ProjectTask, Department, Project, Contractor | None] | None] = {}
            pending: list[TaskUpdate] = []
            for update in repo.list_task_updates(statuses=set(REVIEW_STAGES)):
                if update.task_id not in contexts:
                    try:
                        task = repo.get_task(update.task_id)
                        contexts[update.task_id] = (
                            task,
                            repo.get_department(task.department_id),
                            repo.get_project(task.project_id),
                            repo.find_contractor(task.contractor_id),
                        )
                    except NotFoundError:
                        contexts[update.task_id] = None
                context = contexts[update.task_id]
                if context is None:
                    continue
                task, department, project, contractor = context
                if self._authorization.can_act(
                    session,
                    reviewer_id,
                    update.status,
                    task=task,
                    department=department,
                    project=project,
                    contractor=contractor,
                ):
                    pending.append(update)
            return sorted(pending, key=lambda item: item.submitted_at)

