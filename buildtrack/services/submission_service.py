from __future__ import annotations

import os
from datetime import UTC, date, datetime
from zoneinfo import ZoneInfo

import structlog
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session

from buildtrack.domain.errors import BusinessRuleViolation, ForbiddenError, ValidationError
from buildtrack.domain.models import (
    MediaType,
    NotificationChannel,
    NotificationType,
    TaskUpdate,
    TaskUpdateSubmitRequest,
    now_utc,
)
from buildtrack.domain.state_machine import UpdateStatus, can_transition
from buildtrack.infra.db import get_engine
from buildtrack.infra.events import event_bus
from buildtrack.infra.repository import Repository
from buildtrack.services.notification_service import NotificationService, PendingNotification
from buildtrack.services.progress_aggregator import COMPLETE_PROGRESS, ProgressAggregator
from buildtrack.services.review_router import ReviewRouter

REPORT_TIMEZONE = ZoneInfo(os.getenv("REPORT_TIMEZONE", "UTC"))
MAX_DESCRIPTION_LENGTH = 5000
WORKDAYS = frozenset(range(5))

logger = structlog.get_logger(__name__)


def report_day(submitted_at: datetime, tz: ZoneInfo = REPORT_TIMEZONE) -> date:
    """Calendar day a report counts against, in the reporting timezone."""
    if submitted_at.tzinfo is None:
        submitted_at = submitted_at.replace(tzinfo=UTC)
    return submitted_at.astimezone(tz).date()


def validate_media(urls: list[str], types: list[str]) -> list[dict[str, str]]:
    if len(urls) != len(types):
        raise ValidationError(
            f"media has {len(urls)} urls but {len(types)} types",
            field="media",
        )
    allowed = {item.value for item in MediaType}
    media: list[dict[str, str]] = []
    for url, media_type in zip(urls, types, strict=True):
        normalized = media_type.strip().lower()
        if normalized not in allowed:
            raise ValidationError(f"unsupported media type: {media_type}", field="media_types")
        media.append({"url": url, "type": normalized})
    return media


class SubmissionService:
    def __init__(
        self,
        *,
        router: ReviewRouter | None = None,
        aggregator: ProgressAggregator | None = None,
        notifier: NotificationService | None = None,
        tz: ZoneInfo = REPORT_TIMEZONE,
    ) -> None:
        self._router = router or ReviewRouter()
        self._aggregator = aggregator or ProgressAggregator()
        self._notifier = notifier or NotificationService()
        self._tz = tz

    def _session(self) -> Session:
        return Session(get_engine(), expire_on_commit=False)

    def submit(self, task_id: str, submitter_id: str, payload: TaskUpdateSubmitRequest) -> TaskUpdate:
        submitted_at = payload.submitted_at or now_utc()
        if submitted_at.tzinfo is None:
            submitted_at = submitted_at.replace(tzinfo=UTC)
        submitted_at = submitted_at.astimezone(UTC)

        with self._session() as session:
            repo = Repository(session)
            task = repo.get_task(task_id)
            department = repo.get_department(task.department_id)
            project = repo.get_project(task.project_id)
            if not repo.is_active_assignee(task.id, submitter_id):
                raise ForbiddenError(f"user {submitter_id} is not assigned to task {task.id}")

            day = report_day(submitted_at, self._tz)
            if day.weekday() not in WORKDAYS:
                raise BusinessRuleViolation("non-workday", f"reports cannot be submitted on {day:%A}")
            if repo.has_daily_report(task.id, submitter_id, day):
                raise BusinessRuleViolation(
                    "duplicate-daily-report",
                    f"a report for task {task.id} was already submitted on {day.isoformat()}",
                )

            media = validate_media(payload.media_urls, payload.media_types)
            description = payload.description.strip()
            if not description:
                raise ValidationError("description is required", field="description")
            if len(description) > MAX_DESCRIPTION_LENGTH:
                raise ValidationError(
                    f"description exceeds {MAX_DESCRIPTION_LENGTH} characters",
                    field="description",
                )
            progress = payload.progress_percentage
            if not 0.0 <= progress <= COMPLETE_PROGRESS:
                raise ValidationError("progress_percentage must be between 0 and 100", field="progress_percentage")

            contractor = None
            if payload.contractor_review:
                contractor = repo.find_contractor(task.contractor_id)
                if contractor is None:
                    raise BusinessRuleViolation("no-contractor", f"task {task.id} has no contractor to review it")
                stage = UpdateStatus.UNDER_CONTRACTOR_ADMIN_REVIEW
            else:
                stage = self._router.route_entry(task, department)

            update = TaskUpdate(
                task_id=task.id,
                submitted_by=submitter_id,
                description=description,
                media=media,
                progress_percentage=float(progress),
                meta_data=payload.meta_data,
                submitted_at=submitted_at,
                report_date=day,
                status=UpdateStatus.SUBMITTED,
            )
            if not can_transition(update.status, stage):
                raise ValueError(f"no entry edge from {update.status} to {stage}")
            update.status = stage

            now = now_utc()
            self._aggregator.on_submission(task, float(progress), now)
            session.add(update)
            session.add(task)
            try:
                session.commit()
            except IntegrityError as exc:
                session.rollback()
                raise BusinessRuleViolation(
                    "duplicate-daily-report",
                    f"a report for task {task.id} was already submitted on {day.isoformat()}",
                ) from exc
            session.refresh(update)

            reviewer_id = self._router.stage_reviewer(
                stage,
                department=department,
                project=project,
                contractor=contractor,
            )
            organization_id = project.organization_id
            task_title = task.title

        logger.info(
            "report_submitted",
            task_update_id=update.id,
            task_id=update.task_id,
            submitted_by=submitter_id,
            status=update.status,
            progress=update.progress_percentage,
        )
        pending: list[PendingNotification] = []
        if reviewer_id is not None:
            pending.append(
                PendingNotification(
                    user_id=reviewer_id,
                    title="New task update to review",
                    message=f"A daily report for '{task_title}' is waiting for your review.",
                    type=NotificationType.UPDATE_SUBMITTED,
                    channel=NotificationChannel.BOTH,
                    related_entity_id=update.id,
                    related_entity_type="TaskUpdate",
                    action_url=self._notifier.action_url(f"/task-updates/{update.id}"),
                )
            )
        self._notifier.dispatch(pending)
        event_bus.publish_dict(
            "task_update.submitted",
            organization_id,
            {
                "task_update_id": update.id,
                "task_id": update.task_id,
                "status": str(update.status),
                "progress_percentage": update.progress_percentage,
                "report_date": update.report_date.isoformat(),
            },
            actor_id=submitter_id,
        )
        return update
