"""Audit trail for state-changing API calls.

Every write request leaves one ``audit_logs`` row. Routers enrich the row with
``set_audit_context``; anything they do not set falls back to the HTTP method
and path. Failing to write the audit row is logged and never changes the
response the caller already got.
"""

from __future__ import annotations

from typing import Any

import structlog
from sqlmodel import Session
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from buildtrack.domain.models import AuditLog
from buildtrack.infra.context import clear_request_context
from buildtrack.infra.db import engine

AUDITED_METHODS = frozenset({"POST", "PUT", "PATCH", "DELETE"})
UNAUDITED_PATHS = frozenset({"/healthz", "/readyz", "/docs", "/openapi.json"})
AUDIT_STATE_KEY = "_audit"

logger = structlog.get_logger(__name__)


def write_audit_log(entry: AuditLog) -> None:
    with Session(engine) as session:
        session.add(entry)
        session.commit()


def _merge(base: dict[str, Any], extra: dict[str, Any]) -> dict[str, Any]:
    merged = dict(base)
    for key, value in extra.items():
        current = merged.get(key)
        merged[key] = _merge(current, value) if isinstance(current, dict) and isinstance(value, dict) else value
    return merged


def outcome_for(status_code: int) -> str:
    if status_code >= 500:
        return "error"
    if status_code in (401, 403, 404):
        return "denied"
    if status_code == 409:
        return "conflict"
    if status_code >= 400:
        return "rejected"
    return "success"


def set_audit_context(
    request: Request,
    *,
    action: str | None = None,
    resource: str | None = None,
    detail: dict[str, Any] | None = None,
) -> None:
    """Attach audit fields to the current request; repeated calls merge ``detail``."""
    current = getattr(request.state, AUDIT_STATE_KEY, None) or {}
    updated = dict(current)
    if action is not None:
        updated["action"] = action
    if resource is not None:
        updated["resource"] = resource
    if detail:
        updated["detail"] = _merge(updated.get("detail", {}), detail)
    setattr(request.state, AUDIT_STATE_KEY, updated)


def build_audit_entry(request: Request, status_code: int) -> AuditLog:
    context: dict[str, Any] = getattr(request.state, AUDIT_STATE_KEY, None) or {}
    claims: dict[str, Any] = getattr(request.state, "claims", None) or {}
    route = request.scope.get("route")
    detail = {
        "route": getattr(route, "path", request.url.path),
        "client_ip": request.client.host if request.client is not None else None,
        "outcome": outcome_for(status_code),
    }
    return AuditLog(
        organization_id=claims.get("org_id") or "system",
        actor_id=claims.get("sub"),
        action=context.get("action") or f"{request.method}:{request.url.path}",
        resource=context.get("resource") or request.url.path,
        method=request.method,
        status_code=status_code,
        detail=_merge(detail, context.get("detail", {})),
    )


class AuditMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        clear_request_context()
        response = await call_next(request)
        if request.method not in AUDITED_METHODS or request.url.path in UNAUDITED_PATHS:
            return response

        entry = build_audit_entry(request, response.status_code)
        try:
            write_audit_log(entry)
        except Exception:
            logger.exception("audit_log_write_failed", action=entry.action, resource=entry.resource)
        return response
