from __future__ import annotations

from collections import Counter
from datetime import UTC, date, datetime
from zoneinfo import ZoneInfo

import structlog
from sqlmodel import Session, col, select

from buildtrack.domain.models import (
    Contractor,
    Department,
    NotificationChannel,
    NotificationType,
    Project,
    ProjectTask,
    ReminderSweepRead,
    now_utc,
)
from buildtrack.domain.state_machine import OPEN_TASK_STATUSES, TaskStatus, UpdateStatus
from buildtrack.infra.db import get_engine
from buildtrack.infra.repository import Repository, visible
from buildtrack.services.notification_service import NotificationService, PendingNotification
from buildtrack.services.review_router import ReviewRouter
from buildtrack.services.submission_service import REPORT_TIMEZONE, WORKDAYS, report_day

DEADLINE_WARNING_DAYS = 3

logger = structlog.get_logger(__name__)


class ReminderService:
    """Periodic nudges for reviewers and assignees.

    Sweeps only read reports and tasks; the only rows they write are
    notifications, so running one alongside in-flight reviews is safe.
    """

    def __init__(
        self,
        *,
        notifier: NotificationService | None = None,
        router: ReviewRouter | None = None,
        tz: ZoneInfo = REPORT_TIMEZONE,
    ) -> None:
        self._notifier = notifier or NotificationService()
        self._router = router or ReviewRouter()
        self._tz = tz

    def _session(self) -> Session:
        return Session(get_engine(), expire_on_commit=False)

    def _pending_counts(self, session: Session, status: UpdateStatus) -> Counter[str]:
        rows = Repository(session).list_task_updates(statuses={status})
        return Counter(item.task_id for item in rows)

    def _pending_notice(self, user_id: str, count: int, scope: str, entity_id: str, entity_type: str) -> PendingNotification:
        noun = "update" if count == 1 else "updates"
        return PendingNotification(
            user_id=user_id,
            title="Task updates pending approval",
            message=f"You have {count} task {noun} pending approval for {scope}.",
            type=NotificationType.PENDING_APPROVAL,
            channel=NotificationChannel.IN_APP,
            related_entity_id=entity_id,
            related_entity_type=entity_type,
        )

    def send_pending_approval_reminders(self) -> int:
        pending: list[PendingNotification] = []
        with self._session() as session:
            repo = Repository(session)
            tasks = {task.id: task for task in repo.list_tasks()}

            supervisor_counts: Counter[str] = Counter()
            for task_id, count in self._pending_counts(session, UpdateStatus.UNDER_SUPERVISOR_REVIEW).items():
                if task_id in tasks:
                    supervisor_counts[tasks[task_id].department_id] += count
            departments = session.exec(visible(select(Department), Department)).all()
            for department in departments:
                count = supervisor_counts.get(department.id, 0)
                if department.supervisor_id is not None and count:
                    pending.append(
                        self._pending_notice(
                            department.supervisor_id, count, f"department {department.name}", department.id, "Department"
                        )
                    )

            admin_counts: Counter[str] = Counter()
            for task_id, count in self._pending_counts(session, UpdateStatus.UNDER_ADMIN_REVIEW).items():
                if task_id in tasks:
                    admin_counts[tasks[task_id].project_id] += count
            projects = session.exec(visible(select(Project), Project)).all()
            for project in projects:
                reviewer_id = self._router.project_admin_or_owner(project)
                count = admin_counts.get(project.id, 0)
                if reviewer_id is not None and count:
                    pending.append(self._pending_notice(reviewer_id, count, f"project {project.name}", project.id, "Project"))

            contractor_counts: Counter[str] = Counter()
            for task_id, count in self._pending_counts(session, UpdateStatus.UNDER_CONTRACTOR_ADMIN_REVIEW).items():
                task = tasks.get(task_id)
                if task is not None and task.contractor_id is not None:
                    contractor_counts[task.contractor_id] += count
            contractors = session.exec(visible(select(Contractor), Contractor)).all()
            for contractor in contractors:
                count = contractor_counts.get(contractor.id, 0)
                if count:
                    pending.append(
                        self._pending_notice(
                            contractor.contractor_admin_id, count, contractor.company_name, contractor.id, "Contractor"
                        )
                    )
        return self._notifier.dispatch(pending)

    def _local_day(self, value: datetime) -> date:
        if value.tzinfo is None:
            value = value.replace(tzinfo=UTC)
        return value.astimezone(self._tz).date()

    def send_deadline_reminders(self, now: datetime | None = None) -> int:
        today = self._local_day(now or now_utc())
        pending: list[PendingNotification] = []
        with self._session() as session:
            repo = Repository(session)
            tasks = session.exec(
                visible(select(ProjectTask), ProjectTask)
                .where(col(ProjectTask.due_date).is_not(None))
                .where(col(ProjectTask.status).in_(OPEN_TASK_STATUSES))
            ).all()
            for task in tasks:
                if task.due_date is None:
                    continue
                days_left = (self._local_day(task.due_date) - today).days
                if days_left < 0:
                    message = f"Task '{task.title}' is overdue by {-days_left} day(s)."
                elif days_left == 1:
                    message = f"Task '{task.title}' is due tomorrow."
                elif days_left == DEADLINE_WARNING_DAYS:
                    message = f"Task '{task.title}' is due in {DEADLINE_WARNING_DAYS} days."
                else:
                    continue
                for user_id in repo.active_assignee_ids(task.id):
                    pending.append(
                        PendingNotification(
                            user_id=user_id,
                            title="Task deadline reminder",
                            message=message,
                            type=NotificationType.DEADLINE_REMINDER,
                            channel=NotificationChannel.BOTH,
                            related_entity_id=task.id,
                            related_entity_type="ProjectTask",
                        )
                    )
        return self._notifier.dispatch(pending)

    def send_daily_update_reminders(self, now: datetime | None = None) -> int:
        today = report_day(now or now_utc(), self._tz)
        if today.weekday() not in WORKDAYS:
            return 0
        pending: list[PendingNotification] = []
        with self._session() as session:
            repo = Repository(session)
            tasks = session.exec(
                visible(select(ProjectTask), ProjectTask).where(ProjectTask.status == TaskStatus.IN_PROGRESS)
            ).all()
            for task in tasks:
                for user_id in repo.active_assignee_ids(task.id):
                    if repo.has_daily_report(task.id, user_id, today):
                        continue
                    pending.append(
                        PendingNotification(
                            user_id=user_id,
                            title="Daily update reminder",
                            message=f"Please submit today's update for '{task.title}'.",
                            type=NotificationType.DAILY_UPDATE_REMINDER,
                            channel=NotificationChannel.IN_APP,
                            related_entity_id=task.id,
                            related_entity_type="ProjectTask",
                        )
                    )
        return self._notifier.dispatch(pending)

    def run_all(self, now: datetime | None = None) -> ReminderSweepRead:
        result = ReminderSweepRead(
            pending_approval=self.send_pending_approval_reminders(),
            deadline=self.send_deadline_reminders(now),
            daily_update=self.send_daily_update_reminders(now),
        )
        logger.info("reminder_sweep_finished", **result.model_dump())
        return result

