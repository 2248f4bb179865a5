from __future__ import annotations

from datetime import UTC, date, datetime
from enum import StrEnum
from typing import Any
from uuid import uuid4

from pydantic import BaseModel, ConfigDict
from pydantic import Field as PydanticField
from sqlalchemy import JSON, Column, Index, UniqueConstraint
from sqlmodel import Field, SQLModel

from buildtrack.domain.roles import RoleKind
from buildtrack.domain.state_machine import TaskStatus, UpdateStatus


def now_utc() -> datetime:
    return datetime.now(UTC)


class EventRecord(SQLModel, table=True):
    __tablename__ = "events"

    event_id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)
    event_type: str = Field(index=True)
    organization_id: str = Field(index=True)
    ts: datetime = Field(default_factory=now_utc, index=True)
    actor_id: str | None = Field(default=None, index=True)
    correlation_id: str | None = Field(default=None, index=True)
    payload: dict[str, Any] = Field(
        default_factory=dict,
        sa_column=Column(JSON, nullable=False),
    )


class AuditLog(SQLModel, table=True):
    __tablename__ = "audit_logs"

    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)
    organization_id: str = Field(index=True)
    actor_id: str | None = Field(default=None, index=True)
    action: str
    resource: str
    method: str
    status_code: int
    ts: datetime = Field(default_factory=now_utc, index=True)
    detail: dict[str, Any] = Field(
        default_factory=dict,
        sa_column=Column(JSON, nullable=False),
    )


class User(SQLModel, table=True):
    __tablename__ = "users"

    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)
    organization_id: str | None = Field(default=None, index=True)
    email: str = Field(index=True, unique=True)
    full_name: str
    is_active: bool = Field(default=True)
    created_at: datetime = Field(default_factory=now_utc, index=True)


class Role(SQLModel, table=True):
    __tablename__ = "roles"

    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)
    kind: RoleKind = Field(index=True, unique=True)
    name: str
    level: int = Field(index=True)
    description: str | None = None
    is_system_role: bool = Field(default=True)
    created_at: datetime = Field(default_factory=now_utc, index=True)


class UserRole(SQLModel, table=True):
    __tablename__ = "user_roles"
    __table_args__ = (Index("ix_user_roles_user_active", "user_id", "is_active"),)

    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)
    user_id: str = Field(foreign_key="users.id", index=True)
    role_id: str = Field(foreign_key="roles.id", index=True)
    project_id: str | None = Field(default=None, index=True)
    organization_id: str | None = Field(default=None, index=True)
    is_active: bool = Field(default=True)
    activated_at: datetime = Field(default_factory=now_utc)
    deactivated_at: datetime | None = None


class Project(SQLModel, table=True):
    __tablename__ = "projects"

    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)
    organization_id: str = Field(index=True)
    name: str = Field(index=True)
    code: str = Field(index=True)
    owner_id: str | None = Field(default=None, index=True)
    admin_id: str | None = Field(default=None, index=True)
    is_deleted: bool = Field(default=False, index=True)
    created_by: str | None = None
    created_at: datetime = Field(default_factory=now_utc, index=True)


class Department(SQLModel, table=True):
    __tablename__ = "departments"

    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)
    project_id: str = Field(foreign_key="projects.id", index=True)
    name: str
    code: str
    supervisor_id: str | None = Field(default=None, index=True)
    is_deleted: bool = Field(default=False, index=True)
    created_at: datetime = Field(default_factory=now_utc, index=True)


class DepartmentSupervisor(SQLModel, table=True):
    __tablename__ = "department_supervisors"

    department_id: str = Field(foreign_key="departments.id", primary_key=True)
    supervisor_id: str = Field(foreign_key="users.id", primary_key=True)
    created_at: datetime = Field(default_factory=now_utc, index=True)


class ContractorStatus(StrEnum):
    ACTIVE = "Active"
    ON_HOLD = "OnHold"
    COMPLETED = "Completed"
    TERMINATED = "Terminated"
    SUSPENDED = "Suspended"
    PENDING_START = "PendingStart"


class Contractor(SQLModel, table=True):
    __tablename__ = "contractors"

    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)
    project_id: str = Field(foreign_key="projects.id", index=True)
    department_id: str | None = Field(default=None, index=True)
    company_name: str
    contractor_admin_id: str = Field(index=True)
    status: ContractorStatus = Field(default=ContractorStatus.PENDING_START)
    is_deleted: bool = Field(default=False, index=True)
    created_at: datetime = Field(default_factory=now_utc, index=True)


class ProjectTask(SQLModel, table=True):
    __tablename__ = "project_tasks"
    __table_args__ = (Index("ix_project_tasks_department_status", "department_id", "status"),)

    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)
    project_id: str = Field(foreign_key="projects.id", index=True)
    department_id: str = Field(foreign_key="departments.id", index=True)
    contractor_id: str | None = Field(default=None, index=True)
    milestone_id: str | None = Field(default=None, index=True)
    title: str
    description: str = ""
    status: TaskStatus = Field(default=TaskStatus.NOT_STARTED, index=True)
    priority: int = Field(default=1)
    progress: float = Field(default=0.0)
    due_date: datetime | None = Field(default=None, index=True)
    completed_at: datetime | None = None
    is_deleted: bool = Field(default=False, index=True)
    created_by: str | None = None
    created_at: datetime = Field(default_factory=now_utc, index=True)
    updated_at: datetime = Field(default_factory=now_utc, index=True)


class TaskAssignee(SQLModel, table=True):
    __tablename__ = "task_assignees"

    task_id: str = Field(foreign_key="project_tasks.id", primary_key=True)
    user_id: str = Field(foreign_key="users.id", primary_key=True)
    is_active: bool = Field(default=True, index=True)
    assigned_by: str | None = None
    assigned_at: datetime = Field(default_factory=now_utc)


class MediaType(StrEnum):
    IMAGE = "image"
    VIDEO = "video"


class TaskUpdate(SQLModel, table=True):
    __tablename__ = "task_updates"
    __table_args__ = (
        UniqueConstraint("task_id", "submitted_by", "report_date", name="uq_task_updates_daily_report"),
        Index("ix_task_updates_task_status", "task_id", "status"),
    )

    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)
    task_id: str = Field(foreign_key="project_tasks.id", index=True)
    submitted_by: str = Field(index=True)
    description: str
    media: list[dict[str, str]] = Field(
        default_factory=list,
        sa_column=Column(JSON, nullable=False),
    )
    progress_percentage: float = Field(default=0.0)
    meta_data: dict[str, Any] | None = Field(default=None, sa_column=Column(JSON, nullable=True))
    submitted_at: datetime = Field(default_factory=now_utc, index=True)
    report_date: date = Field(index=True)
    status: UpdateStatus = Field(default=UpdateStatus.SUBMITTED, index=True)
    version: int = Field(default=1)

    contractor_admin_reviewer_id: str | None = None
    contractor_admin_reviewed_at: datetime | None = None
    contractor_admin_feedback: str | None = None
    contractor_admin_approved: bool | None = None

    supervisor_reviewer_id: str | None = None
    supervisor_reviewed_at: datetime | None = None
    supervisor_feedback: str | None = None
    supervisor_approved: bool | None = None

    admin_reviewer_id: str | None = None
    admin_reviewed_at: datetime | None = None
    admin_feedback: str | None = None
    admin_approved: bool | None = None

    is_deleted: bool = Field(default=False, index=True)
    updated_at: datetime = Field(default_factory=now_utc)


class NotificationType(StrEnum):
    TASK_STATUS_CHANGED = "TaskStatusChanged"
    UPDATE_SUBMITTED = "UpdateSubmitted"
    UPDATE_APPROVED = "UpdateApproved"
    UPDATE_REJECTED = "UpdateRejected"
    DEADLINE_REMINDER = "DeadlineReminder"
    PENDING_APPROVAL = "PendingApproval"
    DAILY_UPDATE_REMINDER = "DailyUpdateReminder"
    TASK_REVIEW = "TaskReview"


class NotificationChannel(StrEnum):
    IN_APP = "InApp"
    EMAIL = "Email"
    BOTH = "Both"


class Notification(SQLModel, table=True):
    __tablename__ = "notifications"
    __table_args__ = (Index("ix_notifications_user_read", "user_id", "is_read"),)

    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)
    user_id: str = Field(index=True)
    title: str
    message: str
    type: NotificationType
    channel: NotificationChannel = Field(default=NotificationChannel.IN_APP)
    related_entity_id: str | None = None
    related_entity_type: str | None = None
    action_url: str | None = None
    is_read: bool = Field(default=False)
    read_at: datetime | None = None
    created_at: datetime = Field(default_factory=now_utc, index=True)


class EventEnvelope(BaseModel):
    event_id: str = PydanticField(default_factory=lambda: str(uuid4()))
    event_type: str
    organization_id: str
    ts: datetime = PydanticField(default_factory=now_utc)
    actor_id: str | None = None
    correlation_id: str | None = None
    payload: dict[str, Any]


class ReviewAction(StrEnum):
    APPROVE = "approve"
    REJECT = "reject"


class ORMReadModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)


class UserCreate(BaseModel):
    email: str
    full_name: str
    organization_id: str | None = None
    is_active: bool = True


class UserRead(ORMReadModel):
    id: str
    organization_id: str | None
    email: str
    full_name: str
    is_active: bool
    created_at: datetime


class RoleRead(ORMReadModel):
    id: str
    kind: RoleKind
    name: str
    level: int
    description: str | None = None
    is_system_role: bool


class RoleAssignmentCreate(BaseModel):
    role_kind: RoleKind
    project_id: str | None = None
    organization_id: str | None = None


class RoleAssignmentRead(ORMReadModel):
    id: str
    user_id: str
    role_id: str
    project_id: str | None
    organization_id: str | None
    is_active: bool
    activated_at: datetime
    deactivated_at: datetime | None = None


class ProjectCreate(BaseModel):
    organization_id: str
    name: str
    code: str
    owner_id: str | None = None
    admin_id: str | None = None


class ProjectRead(ORMReadModel):
    id: str
    organization_id: str
    name: str
    code: str
    owner_id: str | None
    admin_id: str | None
    created_at: datetime


class DepartmentCreate(BaseModel):
    name: str
    code: str


class DepartmentRead(ORMReadModel):
    id: str
    project_id: str
    name: str
    code: str
    supervisor_id: str | None
    created_at: datetime


class DepartmentSupervisorAssignRequest(BaseModel):
    supervisor_id: str | None


class ContractorCreate(BaseModel):
    company_name: str
    contractor_admin_id: str
    department_id: str | None = None
    status: ContractorStatus = ContractorStatus.ACTIVE


class ContractorRead(ORMReadModel):
    id: str
    project_id: str
    department_id: str | None
    company_name: str
    contractor_admin_id: str
    status: ContractorStatus
    created_at: datetime


class ProjectTaskCreate(BaseModel):
    department_id: str
    title: str
    description: str = ""
    contractor_id: str | None = None
    milestone_id: str | None = None
    priority: int = 1
    due_date: datetime | None = None
    assignee_ids: list[str] = PydanticField(default_factory=list)


class ProjectTaskEdit(BaseModel):
    title: str | None = None
    description: str | None = None
    status: TaskStatus | None = None
    priority: int | None = None
    due_date: datetime | None = None
    progress: float | None = None


class ProjectTaskRead(ORMReadModel):
    id: str
    project_id: str
    department_id: str
    contractor_id: str | None
    milestone_id: str | None
    title: str
    description: str
    status: TaskStatus
    priority: int
    progress: float
    due_date: datetime | None
    completed_at: datetime | None
    created_at: datetime
    updated_at: datetime


class TaskAssigneeCreate(BaseModel):
    user_id: str


class TaskAssigneeRead(ORMReadModel):
    task_id: str
    user_id: str
    is_active: bool
    assigned_by: str | None
    assigned_at: datetime


class TaskUpdateSubmitRequest(BaseModel):
    description: str
    media_urls: list[str] = PydanticField(default_factory=list)
    media_types: list[str] = PydanticField(default_factory=list)
    progress_percentage: float = 0.0
    submitted_at: datetime | None = None
    meta_data: dict[str, Any] | None = None
    contractor_review: bool = False


class TaskUpdateReviewRequest(BaseModel):
    action: ReviewAction
    feedback: str | None = None
    adjusted_progress: float | None = None
    expected_status: UpdateStatus | None = None


class ContractorStageReviewRequest(BaseModel):
    approved: bool
    feedback: str | None = None
    expected_status: UpdateStatus | None = None


class TaskUpdateRead(ORMReadModel):
    id: str
    task_id: str
    submitted_by: str
    description: str
    media: list[dict[str, str]]
    progress_percentage: float
    meta_data: dict[str, Any] | None
    submitted_at: datetime
    report_date: date
    status: UpdateStatus
    version: int
    contractor_admin_reviewer_id: str | None
    contractor_admin_reviewed_at: datetime | None
    contractor_admin_feedback: str | None
    contractor_admin_approved: bool | None
    supervisor_reviewer_id: str | None
    supervisor_reviewed_at: datetime | None
    supervisor_feedback: str | None
    supervisor_approved: bool | None
    admin_reviewer_id: str | None
    admin_reviewed_at: datetime | None
    admin_feedback: str | None
    admin_approved: bool | None


class NotificationRead(ORMReadModel):
    id: str
    user_id: str
    title: str
    message: str
    type: NotificationType
    channel: NotificationChannel
    related_entity_id: str | None
    related_entity_type: str | None
    action_url: str | None
    is_read: bool
    read_at: datetime | None
    created_at: datetime


class UnreadCountRead(BaseModel):
    unread: int


class MarkAllReadResponse(BaseModel):
    updated: int


class ReminderSweepRead(BaseModel):
    pending_approval: int
    deadline: int
    daily_update: int
