from __future__ import annotations

from typing import Annotated, Any

from fastapi import APIRouter, Depends, Request, status

from buildtrack.api.deps import get_current_claims, raise_http_error, require_perm
from buildtrack.domain.errors import ReviewWorkflowError
from buildtrack.domain.models import (
    RoleAssignmentCreate,
    RoleAssignmentRead,
    RoleRead,
    UserCreate,
    UserRead,
)
from buildtrack.domain.permissions import PERM_IDENTITY_READ, PERM_IDENTITY_WRITE
from buildtrack.infra.audit import set_audit_context
from buildtrack.services.identity_service import IdentityService

router = APIRouter()


def get_identity_service() -> IdentityService:
    return IdentityService()


Claims = Annotated[dict[str, Any], Depends(get_current_claims)]
Service = Annotated[IdentityService, Depends(get_identity_service)]


@router.post(
    "/users",
    response_model=UserRead,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_perm(PERM_IDENTITY_WRITE))],
)
def create_user(payload: UserCreate, request: Request, service: Service) -> UserRead:
    set_audit_context(request, action="identity.user.create", detail={"what": {"email": payload.email}})
    try:
        return UserRead.model_validate(service.create_user(payload))
    except ReviewWorkflowError as exc:
        raise_http_error(exc)


@router.get(
    "/users",
    response_model=list[UserRead],
    dependencies=[Depends(require_perm(PERM_IDENTITY_READ))],
)
def list_users(claims: Claims, service: Service) -> list[UserRead]:
    rows = service.list_users(organization_id=claims.get("org_id"))
    return [UserRead.model_validate(item) for item in rows]


@router.get(
    "/roles",
    response_model=list[RoleRead],
    dependencies=[Depends(require_perm(PERM_IDENTITY_READ))],
)
def list_roles(service: Service) -> list[RoleRead]:
    return [RoleRead.model_validate(item) for item in service.list_roles()]


@router.get(
    "/users/{user_id}/roles",
    response_model=list[RoleAssignmentRead],
    dependencies=[Depends(require_perm(PERM_IDENTITY_READ))],
)
def list_role_assignments(user_id: str, service: Service) -> list[RoleAssignmentRead]:
    try:
        return [RoleAssignmentRead.model_validate(item) for item in service.list_role_assignment_rows(user_id)]
    except ReviewWorkflowError as exc:
        raise_http_error(exc)


@router.post(
    "/users/{user_id}/roles",
    response_model=RoleAssignmentRead,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_perm(PERM_IDENTITY_WRITE))],
)
def assign_role(
    user_id: str,
    payload: RoleAssignmentCreate,
    request: Request,
    service: Service,
) -> RoleAssignmentRead:
    set_audit_context(
        request,
        action="identity.role.assign",
        detail={"what": {"user_id": user_id, "role_kind": payload.role_kind.value, "project_id": payload.project_id}},
    )
    try:
        return RoleAssignmentRead.model_validate(service.assign_role(user_id, payload))
    except ReviewWorkflowError as exc:
        raise_http_error(exc)


@router.delete(
    "/users/{user_id}/roles/{assignment_id}",
    response_model=RoleAssignmentRead,
    dependencies=[Depends(require_perm(PERM_IDENTITY_WRITE))],
)
def revoke_role(user_id: str, assignment_id: str, request: Request, service: Service) -> RoleAssignmentRead:
    set_audit_context(
        request,
        action="identity.role.revoke",
        detail={"what": {"user_id": user_id, "assignment_id": assignment_id}},
    )
    try:
        return RoleAssignmentRead.model_validate(service.revoke_role_assignment(user_id, assignment_id))
    except ReviewWorkflowError as exc:
        raise_http_error(exc)
