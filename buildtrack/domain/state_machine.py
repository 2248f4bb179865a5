from __future__ import annotations

from enum import StrEnum

# Every supervisor approval is followed by a project-admin sign-off. When
# disabled, a supervisor approval is the final decision for the report.
ALWAYS_ESCALATE_AFTER_SUPERVISOR_APPROVAL = True


class UpdateStatus(StrEnum):
    SUBMITTED = "Submitted"
    UNDER_CONTRACTOR_ADMIN_REVIEW = "UnderContractorAdminReview"
    CONTRACTOR_ADMIN_REJECTED = "ContractorAdminRejected"
    UNDER_SUPERVISOR_REVIEW = "UnderSupervisorReview"
    SUPERVISOR_APPROVED = "SupervisorApproved"
    SUPERVISOR_REJECTED = "SupervisorRejected"
    UNDER_ADMIN_REVIEW = "UnderAdminReview"
    ADMIN_APPROVED = "AdminApproved"
    ADMIN_REJECTED = "AdminRejected"


ALLOWED_TRANSITIONS: dict[UpdateStatus, set[UpdateStatus]] = {
    UpdateStatus.SUBMITTED: {
        UpdateStatus.UNDER_CONTRACTOR_ADMIN_REVIEW,
        UpdateStatus.UNDER_SUPERVISOR_REVIEW,
        UpdateStatus.UNDER_ADMIN_REVIEW,
    },
    UpdateStatus.UNDER_CONTRACTOR_ADMIN_REVIEW: {
        UpdateStatus.UNDER_SUPERVISOR_REVIEW,
        UpdateStatus.UNDER_ADMIN_REVIEW,
        UpdateStatus.CONTRACTOR_ADMIN_REJECTED,
    },
    UpdateStatus.UNDER_SUPERVISOR_REVIEW: {
        UpdateStatus.SUPERVISOR_APPROVED,
        UpdateStatus.SUPERVISOR_REJECTED,
    },
    UpdateStatus.SUPERVISOR_APPROVED: {UpdateStatus.UNDER_ADMIN_REVIEW},
    UpdateStatus.UNDER_ADMIN_REVIEW: {
        UpdateStatus.ADMIN_APPROVED,
        UpdateStatus.ADMIN_REJECTED,
    },
    UpdateStatus.CONTRACTOR_ADMIN_REJECTED: set(),
    UpdateStatus.SUPERVISOR_REJECTED: set(),
    UpdateStatus.ADMIN_APPROVED: set(),
    UpdateStatus.ADMIN_REJECTED: set(),
}

REVIEW_STAGES: frozenset[UpdateStatus] = frozenset(
    {
        UpdateStatus.UNDER_CONTRACTOR_ADMIN_REVIEW,
        UpdateStatus.UNDER_SUPERVISOR_REVIEW,
        UpdateStatus.UNDER_ADMIN_REVIEW,
    }
)

TERMINAL_STATUSES: frozenset[UpdateStatus] = frozenset(
    {
        UpdateStatus.CONTRACTOR_ADMIN_REJECTED,
        UpdateStatus.SUPERVISOR_REJECTED,
        UpdateStatus.ADMIN_APPROVED,
        UpdateStatus.ADMIN_REJECTED,
    }
)


def can_transition(source: UpdateStatus, target: UpdateStatus) -> bool:
    return target in ALLOWED_TRANSITIONS.get(source, set())


def is_terminal(status: UpdateStatus, *, always_escalate: bool = ALWAYS_ESCALATE_AFTER_SUPERVISOR_APPROVAL) -> bool:
    if status == UpdateStatus.SUPERVISOR_APPROVED:
        return not always_escalate
    return status in TERMINAL_STATUSES


class TaskStatus(StrEnum):
    NOT_STARTED = "NotStarted"
    IN_PROGRESS = "InProgress"
    DONE = "Done"
    UNDER_REVIEW = "UnderReview"
    APPROVED = "Approved"
    REJECTED = "Rejected"
    COMPLETED = "Completed"
    PENDING = "Pending"
    CANCELLED = "Cancelled"


OPEN_TASK_STATUSES: frozenset[TaskStatus] = frozenset(
    {
        TaskStatus.NOT_STARTED,
        TaskStatus.IN_PROGRESS,
        TaskStatus.DONE,
        TaskStatus.UNDER_REVIEW,
        TaskStatus.PENDING,
    }
)
