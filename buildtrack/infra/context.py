from __future__ import annotations

import structlog


def set_request_context(organization_id: str | None, user_id: str | None) -> None:
    """Bind the caller to every log line written while serving the request."""
    structlog.contextvars.bind_contextvars(organization_id=organization_id, user_id=user_id)


def clear_request_context() -> None:
    structlog.contextvars.clear_contextvars()
