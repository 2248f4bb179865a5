from __future__ import annotations

from typing import Annotated, Any

from fastapi import APIRouter, Depends, Request, status

from buildtrack.api.deps import get_current_claims, raise_http_error, require_perm
from buildtrack.domain.errors import ReviewWorkflowError
from buildtrack.domain.models import (
    ContractorStageReviewRequest,
    TaskUpdateRead,
    TaskUpdateReviewRequest,
    TaskUpdateSubmitRequest,
)
from buildtrack.domain.permissions import PERM_PROJECT_READ, PERM_REPORT_REVIEW, PERM_REPORT_SUBMIT
from buildtrack.infra.audit import set_audit_context
from buildtrack.services.review_service import ReviewService
from buildtrack.services.submission_service import SubmissionService

router = APIRouter()


def get_submission_service() -> SubmissionService:
    return SubmissionService()


def get_review_service() -> ReviewService:
    return ReviewService()


Claims = Annotated[dict[str, Any], Depends(get_current_claims)]
Submissions = Annotated[SubmissionService, Depends(get_submission_service)]
Reviews = Annotated[ReviewService, Depends(get_review_service)]


@router.post(
    "/tasks/{task_id}",
    response_model=TaskUpdateRead,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_perm(PERM_REPORT_SUBMIT))],
)
def submit_task_update(
    task_id: str,
    payload: TaskUpdateSubmitRequest,
    request: Request,
    claims: Claims,
    service: Submissions,
) -> TaskUpdateRead:
    set_audit_context(
        request,
        action="task_update.submit",
        resource=f"task:{task_id}",
        detail={"what": {"progress_percentage": payload.progress_percentage, "media": len(payload.media_urls)}},
    )
    try:
        row = service.submit(task_id, claims["sub"], payload)
        set_audit_context(request, detail={"what": {"task_update_id": row.id, "status": str(row.status)}})
        return TaskUpdateRead.model_validate(row)
    except ReviewWorkflowError as exc:
        raise_http_error(exc)


@router.get(
    "/pending",
    response_model=list[TaskUpdateRead],
    dependencies=[Depends(require_perm(PERM_REPORT_REVIEW))],
)
def list_pending_task_updates(claims: Claims, service: Reviews) -> list[TaskUpdateRead]:
    rows = service.list_pending_for_reviewer(claims["sub"])
    return [TaskUpdateRead.model_validate(item) for item in rows]


@router.get(
    "/tasks/{task_id}",
    response_model=list[TaskUpdateRead],
    dependencies=[Depends(require_perm(PERM_PROJECT_READ))],
)
def list_task_updates(task_id: str, service: Reviews) -> list[TaskUpdateRead]:
    try:
        rows = service.list_task_updates_for_task(task_id)
        return [TaskUpdateRead.model_validate(item) for item in rows]
    except ReviewWorkflowError as exc:
        raise_http_error(exc)


@router.get(
    "/{update_id}",
    response_model=TaskUpdateRead,
    dependencies=[Depends(require_perm(PERM_PROJECT_READ))],
)
def get_task_update(update_id: str, service: Reviews) -> TaskUpdateRead:
    try:
        return TaskUpdateRead.model_validate(service.get_task_update(update_id))
    except ReviewWorkflowError as exc:
        raise_http_error(exc)


@router.post(
    "/{update_id}/review",
    response_model=TaskUpdateRead,
    dependencies=[Depends(require_perm(PERM_REPORT_REVIEW))],
)
def review_task_update(
    update_id: str,
    payload: TaskUpdateReviewRequest,
    request: Request,
    claims: Claims,
    service: Reviews,
) -> TaskUpdateRead:
    set_audit_context(
        request,
        action=f"task_update.review.{payload.action.value}",
        resource=f"task_update:{update_id}",
        detail={"what": {"adjusted_progress": payload.adjusted_progress, "expected_status": payload.expected_status}},
    )
    try:
        row = service.review_report(
            update_id,
            claims["sub"],
            payload.action,
            feedback=payload.feedback,
            adjusted_progress=payload.adjusted_progress,
            expected_status=payload.expected_status,
        )
        set_audit_context(request, detail={"result": {"status": str(row.status)}})
        return TaskUpdateRead.model_validate(row)
    except ReviewWorkflowError as exc:
        raise_http_error(exc)


@router.post(
    "/{update_id}/contractor-review",
    response_model=TaskUpdateRead,
    dependencies=[Depends(require_perm(PERM_REPORT_REVIEW))],
)
def review_contractor_stage(
    update_id: str,
    payload: ContractorStageReviewRequest,
    request: Request,
    claims: Claims,
    service: Reviews,
) -> TaskUpdateRead:
    set_audit_context(
        request,
        action="task_update.contractor_review",
        resource=f"task_update:{update_id}",
        detail={"what": {"approved": payload.approved}},
    )
    try:
        row = service.review_contractor_stage(
            update_id,
            claims["sub"],
            payload.approved,
            feedback=payload.feedback,
            expected_status=payload.expected_status,
        )
        set_audit_context(request, detail={"result": {"status": str(row.status)}})
        return TaskUpdateRead.model_validate(row)
    except ReviewWorkflowError as exc:
        raise_http_error(exc)
