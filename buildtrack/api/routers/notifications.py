from __future__ import annotations

from typing import Annotated, Any

from fastapi import APIRouter, Depends, Request

from buildtrack.api.deps import get_current_claims, raise_http_error, require_perm
from buildtrack.domain.errors import ReviewWorkflowError
from buildtrack.domain.models import MarkAllReadResponse, NotificationRead, UnreadCountRead
from buildtrack.domain.permissions import PERM_NOTIFICATION_READ
from buildtrack.infra.audit import set_audit_context
from buildtrack.services.notification_service import NotificationService

router = APIRouter(dependencies=[Depends(require_perm(PERM_NOTIFICATION_READ))])


def get_notification_service() -> NotificationService:
    return NotificationService()


Claims = Annotated[dict[str, Any], Depends(get_current_claims)]
Service = Annotated[NotificationService, Depends(get_notification_service)]


@router.get("", response_model=list[NotificationRead])
def list_notifications(claims: Claims, service: Service, unread_only: bool = False) -> list[NotificationRead]:
    rows = service.list_notifications(claims["sub"], unread_only=unread_only)
    return [NotificationRead.model_validate(item) for item in rows]


@router.get("/unread-count", response_model=UnreadCountRead)
def unread_count(claims: Claims, service: Service) -> UnreadCountRead:
    return UnreadCountRead(unread=service.unread_count(claims["sub"]))


@router.post("/read-all", response_model=MarkAllReadResponse)
def mark_all_read(request: Request, claims: Claims, service: Service) -> MarkAllReadResponse:
    set_audit_context(request, action="notification.read_all")
    return MarkAllReadResponse(updated=service.mark_all_read(claims["sub"]))


@router.post("/{notification_id}/read", response_model=NotificationRead)
def mark_read(notification_id: str, request: Request, claims: Claims, service: Service) -> NotificationRead:
    set_audit_context(request, action="notification.read", resource=f"notification:{notification_id}")
    try:
        return NotificationRead.model_validate(service.mark_read(claims["sub"], notification_id))
    except ReviewWorkflowError as exc:
        raise_http_error(exc)
