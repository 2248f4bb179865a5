from __future__ import annotations

from collections.abc import Callable
from typing import Annotated, Any, NoReturn

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordBearer

from buildtrack.domain.errors import (
    BusinessRuleViolation,
    ForbiddenError,
    NotFoundError,
    ReviewWorkflowError,
    StateConflictError,
    ValidationError,
)
from buildtrack.domain.permissions import has_permission
from buildtrack.infra.auth import TokenError, decode_access_token
from buildtrack.infra.context import set_request_context

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/identity/token")


def get_current_claims(
    request: Request,
    token: Annotated[str, Depends(oauth2_scheme)],
) -> dict[str, Any]:
    try:
        claims = decode_access_token(token)
    except TokenError as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Invalid token: {exc}",
            headers={"WWW-Authenticate": "Bearer"},
        ) from exc
    request.state.claims = claims
    set_request_context(claims.get("org_id"), claims["sub"])
    return claims


def require_perm(permission: str) -> Callable[[dict[str, Any]], dict[str, Any]]:
    def _checker(
        claims: Annotated[dict[str, Any], Depends(get_current_claims)],
    ) -> dict[str, Any]:
        if not has_permission(claims, permission):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Missing permission: {permission}",
            )
        return claims

    return _checker


def raise_http_error(exc: ReviewWorkflowError) -> NoReturn:
    if isinstance(exc, NotFoundError):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={"message": str(exc), "entity": exc.entity, "entity_id": exc.entity_id},
        ) from exc
    if isinstance(exc, ForbiddenError):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(exc)) from exc
    if isinstance(exc, ValidationError):
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail={"message": str(exc), "field": exc.field},
        ) from exc
    if isinstance(exc, BusinessRuleViolation):
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail={"rule": exc.rule, "message": str(exc)},
        ) from exc
    if isinstance(exc, StateConflictError):
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail={"message": str(exc), "current_status": exc.current_status},
        ) from exc
    raise exc
