from __future__ import annotations

import os
from dataclasses import dataclass

import structlog
from sqlmodel import Session, col, select

from buildtrack.domain.errors import NotFoundError
from buildtrack.domain.models import (
    Notification,
    NotificationChannel,
    NotificationType,
    now_utc,
)
from buildtrack.infra.db import get_engine

APP_BASE_URL = os.getenv("APP_BASE_URL", "").rstrip("/")

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class PendingNotification:
    """A notification decided inside a transaction and sent after it commits."""

    user_id: str
    title: str
    message: str
    type: NotificationType
    channel: NotificationChannel = NotificationChannel.BOTH
    related_entity_id: str | None = None
    related_entity_type: str | None = None
    action_url: str | None = None


class NotificationService:
    def _session(self) -> Session:
        return Session(get_engine(), expire_on_commit=False)

    @staticmethod
    def action_url(path: str) -> str:
        return f"{APP_BASE_URL}{path}"

    def _deliver_email(self, row: Notification) -> None:
        # Outbound mail is owned by the mail gateway; this only hands it off.
        logger.info(
            "notification_email_queued",
            notification_id=row.id,
            user_id=row.user_id,
            notification_type=row.type,
        )

    def notify(
        self,
        user_id: str,
        title: str,
        message: str,
        type: NotificationType,
        channel: NotificationChannel = NotificationChannel.IN_APP,
        related_entity_id: str | None = None,
        related_entity_type: str | None = None,
        action_url: str | None = None,
    ) -> Notification | None:
        """Fire-and-forget: failures are logged and never reach the caller."""
        try:
            with self._session() as session:
                row = Notification(
                    user_id=user_id,
                    title=title,
                    message=message,
                    type=type,
                    channel=channel,
                    related_entity_id=related_entity_id,
                    related_entity_type=related_entity_type,
                    action_url=action_url,
                )
                session.add(row)
                session.commit()
                session.refresh(row)
            if channel in {NotificationChannel.EMAIL, NotificationChannel.BOTH}:
                self._deliver_email(row)
        except Exception as exc:
            logger.error(
                "notification_dispatch_failed",
                user_id=user_id,
                notification_type=type,
                related_entity_id=related_entity_id,
                error=str(exc),
            )
            return None
        return row

    def dispatch(self, pending: list[PendingNotification]) -> int:
        sent = 0
        for item in pending:
            row = self.notify(
                item.user_id,
                item.title,
                item.message,
                item.type,
                item.channel,
                item.related_entity_id,
                item.related_entity_type,
                item.action_url,
            )
            if row is not None:
                sent += 1
        return sent

    def list_notifications(self, user_id: str, *, unread_only: bool = False) -> list[Notification]:
        with self._session() as session:
            statement = select(Notification).where(Notification.user_id == user_id)
            if unread_only:
                statement = statement.where(col(Notification.is_read).is_(False))
            rows = list(session.exec(statement).all())
            return sorted(rows, key=lambda item: item.created_at, reverse=True)

    def unread_count(self, user_id: str) -> int:
        return len(self.list_notifications(user_id, unread_only=True))

    def mark_read(self, user_id: str, notification_id: str) -> Notification:
        with self._session() as session:
            row = session.exec(
                select(Notification)
                .where(Notification.id == notification_id)
                .where(Notification.user_id == user_id)
            ).first()
            if row is None:
                raise NotFoundError("notification", notification_id)
            if not row.is_read:
                row.is_read = True
                row.read_at = now_utc()
                session.add(row)
                session.commit()
                session.refresh(row)
            return row

    def mark_all_read(self, user_id: str) -> int:
        with self._session() as session:
            rows = list(
                session.exec(
                    select(Notification)
                    .where(Notification.user_id == user_id)
                    .where(col(Notification.is_read).is_(False))
                ).all()
            )
            now = now_utc()
            for row in rows:
                row.is_read = True
                row.read_at = now
                session.add(row)
            session.commit()
            return len(rows)
