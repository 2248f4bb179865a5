from __future__ import annotations

from typing import Annotated, Any

from fastapi import APIRouter, Depends, Request, Response, status

from buildtrack.api.deps import get_current_claims, raise_http_error, require_perm
from buildtrack.domain.errors import ReviewWorkflowError
from buildtrack.domain.models import (
    ContractorCreate,
    ContractorRead,
    DepartmentCreate,
    DepartmentRead,
    DepartmentSupervisorAssignRequest,
    ProjectCreate,
    ProjectRead,
    ProjectTaskCreate,
    ProjectTaskEdit,
    ProjectTaskRead,
    TaskAssigneeCreate,
    TaskAssigneeRead,
)
from buildtrack.domain.permissions import PERM_PROJECT_READ, PERM_PROJECT_WRITE
from buildtrack.infra.audit import set_audit_context
from buildtrack.services.project_service import ProjectService

router = APIRouter()


def get_project_service() -> ProjectService:
    return ProjectService()


Claims = Annotated[dict[str, Any], Depends(get_current_claims)]
Service = Annotated[ProjectService, Depends(get_project_service)]


@router.post(
    "",
    response_model=ProjectRead,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_perm(PERM_PROJECT_WRITE))],
)
def create_project(payload: ProjectCreate, request: Request, claims: Claims, service: Service) -> ProjectRead:
    set_audit_context(request, action="project.create", detail={"what": {"code": payload.code}})
    try:
        return ProjectRead.model_validate(service.create_project(claims["sub"], payload))
    except ReviewWorkflowError as exc:
        raise_http_error(exc)


@router.get(
    "/{project_id}",
    response_model=ProjectRead,
    dependencies=[Depends(require_perm(PERM_PROJECT_READ))],
)
def get_project(project_id: str, service: Service) -> ProjectRead:
    try:
        return ProjectRead.model_validate(service.get_project(project_id))
    except ReviewWorkflowError as exc:
        raise_http_error(exc)


@router.post(
    "/{project_id}/departments",
    response_model=DepartmentRead,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_perm(PERM_PROJECT_WRITE))],
)
def create_department(
    project_id: str,
    payload: DepartmentCreate,
    request: Request,
    claims: Claims,
    service: Service,
) -> DepartmentRead:
    set_audit_context(request, action="department.create", detail={"what": {"project_id": project_id}})
    try:
        return DepartmentRead.model_validate(service.create_department(claims["sub"], project_id, payload))
    except ReviewWorkflowError as exc:
        raise_http_error(exc)


@router.put(
    "/departments/{department_id}/supervisor",
    response_model=DepartmentRead,
    dependencies=[Depends(require_perm(PERM_PROJECT_WRITE))],
)
def set_department_supervisor(
    department_id: str,
    payload: DepartmentSupervisorAssignRequest,
    request: Request,
    claims: Claims,
    service: Service,
) -> DepartmentRead:
    set_audit_context(
        request,
        action="department.supervisor.set",
        detail={"what": {"department_id": department_id, "supervisor_id": payload.supervisor_id}},
    )
    try:
        row = service.set_department_supervisor(claims["sub"], department_id, payload.supervisor_id)
        return DepartmentRead.model_validate(row)
    except ReviewWorkflowError as exc:
        raise_http_error(exc)


@router.post(
    "/{project_id}/contractors",
    response_model=ContractorRead,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_perm(PERM_PROJECT_WRITE))],
)
def create_contractor(
    project_id: str,
    payload: ContractorCreate,
    request: Request,
    claims: Claims,
    service: Service,
) -> ContractorRead:
    set_audit_context(request, action="contractor.create", detail={"what": {"project_id": project_id}})
    try:
        return ContractorRead.model_validate(service.create_contractor(claims["sub"], project_id, payload))
    except ReviewWorkflowError as exc:
        raise_http_error(exc)


@router.post(
    "/{project_id}/tasks",
    response_model=ProjectTaskRead,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_perm(PERM_PROJECT_WRITE))],
)
def create_task(
    project_id: str,
    payload: ProjectTaskCreate,
    request: Request,
    claims: Claims,
    service: Service,
) -> ProjectTaskRead:
    set_audit_context(
        request,
        action="task.create",
        detail={"what": {"project_id": project_id, "department_id": payload.department_id}},
    )
    try:
        return ProjectTaskRead.model_validate(service.create_task(claims["sub"], project_id, payload))
    except ReviewWorkflowError as exc:
        raise_http_error(exc)


@router.get(
    "/{project_id}/tasks",
    response_model=list[ProjectTaskRead],
    dependencies=[Depends(require_perm(PERM_PROJECT_READ))],
)
def list_tasks(project_id: str, service: Service, department_id: str | None = None) -> list[ProjectTaskRead]:
    try:
        rows = service.list_tasks(project_id, department_id=department_id)
        return [ProjectTaskRead.model_validate(item) for item in rows]
    except ReviewWorkflowError as exc:
        raise_http_error(exc)


@router.get(
    "/tasks/{task_id}",
    response_model=ProjectTaskRead,
    dependencies=[Depends(require_perm(PERM_PROJECT_READ))],
)
def get_task(task_id: str, service: Service) -> ProjectTaskRead:
    try:
        return ProjectTaskRead.model_validate(service.get_task(task_id))
    except ReviewWorkflowError as exc:
        raise_http_error(exc)


@router.patch(
    "/tasks/{task_id}",
    response_model=ProjectTaskRead,
    dependencies=[Depends(require_perm(PERM_PROJECT_READ))],
)
def update_task(
    task_id: str,
    payload: ProjectTaskEdit,
    request: Request,
    claims: Claims,
    service: Service,
) -> ProjectTaskRead:
    set_audit_context(
        request,
        action="task.update",
        resource=f"task:{task_id}",
        detail={"what": payload.model_dump(mode="json", exclude_unset=True)},
    )
    try:
        return ProjectTaskRead.model_validate(service.update_task(claims["sub"], task_id, payload))
    except ReviewWorkflowError as exc:
        raise_http_error(exc)


@router.delete(
    "/tasks/{task_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(require_perm(PERM_PROJECT_WRITE))],
)
def delete_task(task_id: str, request: Request, claims: Claims, service: Service) -> Response:
    set_audit_context(request, action="task.delete", resource=f"task:{task_id}")
    try:
        service.soft_delete_task(claims["sub"], task_id)
    except ReviewWorkflowError as exc:
        raise_http_error(exc)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get(
    "/tasks/{task_id}/assignees",
    response_model=list[TaskAssigneeRead],
    dependencies=[Depends(require_perm(PERM_PROJECT_READ))],
)
def list_assignees(task_id: str, service: Service) -> list[TaskAssigneeRead]:
    try:
        return [TaskAssigneeRead.model_validate(item) for item in service.list_assignees(task_id)]
    except ReviewWorkflowError as exc:
        raise_http_error(exc)


@router.post(
    "/tasks/{task_id}/assignees",
    response_model=TaskAssigneeRead,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_perm(PERM_PROJECT_WRITE))],
)
def assign_user(
    task_id: str,
    payload: TaskAssigneeCreate,
    request: Request,
    claims: Claims,
    service: Service,
) -> TaskAssigneeRead:
    set_audit_context(request, action="task.assignee.add", detail={"what": {"user_id": payload.user_id}})
    try:
        return TaskAssigneeRead.model_validate(service.assign_user(claims["sub"], task_id, payload.user_id))
    except ReviewWorkflowError as exc:
        raise_http_error(exc)


@router.delete(
    "/tasks/{task_id}/assignees/{user_id}",
    response_model=TaskAssigneeRead,
    dependencies=[Depends(require_perm(PERM_PROJECT_WRITE))],
)
def unassign_user(
    task_id: str,
    user_id: str,
    request: Request,
    claims: Claims,
    service: Service,
) -> TaskAssigneeRead:
    set_audit_context(request, action="task.assignee.remove", detail={"what": {"user_id": user_id}})
    try:
        return TaskAssigneeRead.model_validate(service.unassign_user(claims["sub"], task_id, user_id))
    except ReviewWorkflowError as exc:
        raise_http_error(exc)
