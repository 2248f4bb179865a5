from __future__ import annotations

import structlog
from sqlmodel import Session, select

from buildtrack.domain.errors import ForbiddenError, NotFoundError, ValidationError
from buildtrack.domain.models import (
    Contractor,
    ContractorCreate,
    Department,
    DepartmentCreate,
    DepartmentSupervisor,
    Project,
    ProjectCreate,
    ProjectTask,
    ProjectTaskCreate,
    ProjectTaskEdit,
    TaskAssignee,
    now_utc,
)
from buildtrack.infra.db import get_engine
from buildtrack.infra.events import event_bus
from buildtrack.infra.repository import Repository
from buildtrack.services.authorization import AuthorizationResolver
from buildtrack.services.progress_aggregator import COMPLETE_PROGRESS, ProgressAggregator

MIN_PRIORITY = 1
MAX_PRIORITY = 4

logger = structlog.get_logger(__name__)


class ProjectService:
    def __init__(
        self,
        *,
        authorization: AuthorizationResolver | None = None,
        aggregator: ProgressAggregator | None = None,
    ) -> None:
        self._authorization = authorization or AuthorizationResolver()
        self._aggregator = aggregator or ProgressAggregator()

    def _session(self) -> Session:
        return Session(get_engine(), expire_on_commit=False)

    def _ensure_manager(self, session: Session, actor_id: str, project: Project) -> None:
        if not self._authorization.can_manage_project(session, actor_id, project):
            raise ForbiddenError(f"user {actor_id} cannot manage project {project.id}")

    def _validate_priority(self, priority: int) -> None:
        if not MIN_PRIORITY <= priority <= MAX_PRIORITY:
            raise ValidationError(
                f"priority must be between {MIN_PRIORITY} and {MAX_PRIORITY}",
                field="priority",
            )

    def create_project(self, actor_id: str, payload: ProjectCreate) -> Project:
        with self._session() as session:
            for user_id in (payload.owner_id, payload.admin_id):
                if user_id is not None:
                    Repository(session).get_user(user_id)
            row = Project(
                organization_id=payload.organization_id,
                name=payload.name,
                code=payload.code,
                owner_id=payload.owner_id or actor_id,
                admin_id=payload.admin_id,
                created_by=actor_id,
            )
            session.add(row)
            session.commit()
            session.refresh(row)
        event_bus.publish_dict(
            "project.created",
            row.organization_id,
            {"project_id": row.id, "code": row.code},
            actor_id=actor_id,
        )
        return row

    def get_project(self, project_id: str) -> Project:
        with self._session() as session:
            return Repository(session).get_project(project_id)

    def create_department(self, actor_id: str, project_id: str, payload: DepartmentCreate) -> Department:
        with self._session() as session:
            project = Repository(session).get_project(project_id)
            self._ensure_manager(session, actor_id, project)
            row = Department(project_id=project.id, name=payload.name, code=payload.code)
            session.add(row)
            session.commit()
            session.refresh(row)
            return row

    def set_department_supervisor(
        self,
        actor_id: str,
        department_id: str,
        supervisor_id: str | None,
    ) -> Department:
        """Point a department at its supervisor, keeping the supervisor link table in step."""
        with self._session() as session:
            repo = Repository(session)
            department = repo.get_department(department_id)
            project = repo.get_project(department.project_id)
            self._ensure_manager(session, actor_id, project)
            if supervisor_id is not None:
                repo.get_user(supervisor_id)
            links = session.exec(
                select(DepartmentSupervisor).where(DepartmentSupervisor.department_id == department.id)
            ).all()
            for link in links:
                if link.supervisor_id != supervisor_id:
                    session.delete(link)
            if supervisor_id is not None and all(link.supervisor_id != supervisor_id for link in links):
                session.add(DepartmentSupervisor(department_id=department.id, supervisor_id=supervisor_id))
            department.supervisor_id = supervisor_id
            session.add(department)
            session.commit()
            session.refresh(department)
            organization_id = project.organization_id
        event_bus.publish_dict(
            "department.supervisor_changed",
            organization_id,
            {"department_id": department.id, "supervisor_id": supervisor_id},
            actor_id=actor_id,
        )
        return department

    def create_contractor(self, actor_id: str, project_id: str, payload: ContractorCreate) -> Contractor:
        with self._session() as session:
            repo = Repository(session)
            project = repo.get_project(project_id)
            self._ensure_manager(session, actor_id, project)
            repo.get_user(payload.contractor_admin_id)
            if payload.department_id is not None:
                department = repo.get_department(payload.department_id)
                if department.project_id != project.id:
                    raise ValidationError("department belongs to another project", field="department_id")
            row = Contractor(
                project_id=project.id,
                department_id=payload.department_id,
                company_name=payload.company_name,
                contractor_admin_id=payload.contractor_admin_id,
                status=payload.status,
            )
            session.add(row)
            session.commit()
            session.refresh(row)
            return row

    def create_task(self, actor_id: str, project_id: str, payload: ProjectTaskCreate) -> ProjectTask:
        self._validate_priority(payload.priority)
        with self._session() as session:
            repo = Repository(session)
            project = repo.get_project(project_id)
            self._ensure_manager(session, actor_id, project)
            department = repo.get_department(payload.department_id)
            if department.project_id != project.id:
                raise ValidationError("department belongs to another project", field="department_id")
            if payload.contractor_id is not None:
                contractor = repo.get_contractor(payload.contractor_id)
                if contractor.project_id != project.id:
                    raise ValidationError("contractor belongs to another project", field="contractor_id")
            task = ProjectTask(
                project_id=project.id,
                department_id=department.id,
                contractor_id=payload.contractor_id,
                milestone_id=payload.milestone_id,
                title=payload.title,
                description=payload.description,
                priority=payload.priority,
                due_date=payload.due_date,
                created_by=actor_id,
            )
            session.add(task)
            session.flush()
            for user_id in dict.fromkeys(payload.assignee_ids):
                repo.get_user(user_id)
                session.add(TaskAssignee(task_id=task.id, user_id=user_id, assigned_by=actor_id))
            session.commit()
            session.refresh(task)
            organization_id = project.organization_id
        event_bus.publish_dict(
            "task.created",
            organization_id,
            {"task_id": task.id, "department_id": task.department_id},
            actor_id=actor_id,
        )
        return task

    def get_task(self, task_id: str) -> ProjectTask:
        with self._session() as session:
            return Repository(session).get_task(task_id)

    def list_tasks(self, project_id: str, *, department_id: str | None = None) -> list[ProjectTask]:
        with self._session() as session:
            repo = Repository(session)
            repo.get_project(project_id)
            return repo.list_tasks(project_id=project_id, department_id=department_id)

    def assign_user(self, actor_id: str, task_id: str, user_id: str) -> TaskAssignee:
        with self._session() as session:
            repo = Repository(session)
            task = repo.get_task(task_id)
            self._ensure_manager(session, actor_id, repo.get_project(task.project_id))
            repo.get_user(user_id)
            row = session.get(TaskAssignee, (task.id, user_id))
            if row is None:
                row = TaskAssignee(task_id=task.id, user_id=user_id, assigned_by=actor_id)
            else:
                row.is_active = True
                row.assigned_by = actor_id
                row.assigned_at = now_utc()
            session.add(row)
            session.commit()
            session.refresh(row)
            return row

    def unassign_user(self, actor_id: str, task_id: str, user_id: str) -> TaskAssignee:
        with self._session() as session:
            repo = Repository(session)
            task = repo.get_task(task_id)
            self._ensure_manager(session, actor_id, repo.get_project(task.project_id))
            row = session.get(TaskAssignee, (task.id, user_id))
            if row is None:
                raise NotFoundError("task assignee", user_id)
            row.is_active = False
            session.add(row)
            session.commit()
            session.refresh(row)
            return row

    def list_assignees(self, task_id: str) -> list[TaskAssignee]:
        with self._session() as session:
            repo = Repository(session)
            repo.get_task(task_id)
            return list(session.exec(select(TaskAssignee).where(TaskAssignee.task_id == task_id)).all())

    def update_task(self, actor_id: str, task_id: str, payload: ProjectTaskEdit) -> ProjectTask:
        with self._session() as session:
            repo = Repository(session)
            task = repo.get_task(task_id)
            department = repo.get_department(task.department_id)
            project = repo.get_project(task.project_id)
            if not self._authorization.can_edit_task(
                session,
                actor_id,
                task=task,
                department=department,
                project=project,
            ):
                raise ForbiddenError(f"user {actor_id} cannot edit task {task.id}")

            changes = payload.model_dump(exclude_unset=True)
            if changes.get("priority") is not None:
                self._validate_priority(changes["priority"])
            if changes.get("progress") is not None and not 0.0 <= changes["progress"] <= COMPLETE_PROGRESS:
                raise ValidationError("progress must be between 0 and 100", field="progress")
            for field in ("title", "description", "status", "priority", "due_date", "progress"):
                if field in changes and (changes[field] is not None or field == "due_date"):
                    setattr(task, field, changes[field])

            now = now_utc()
            self._aggregator.on_direct_edit(task, now)
            task.updated_at = now
            session.add(task)
            session.commit()
            session.refresh(task)
            organization_id = project.organization_id

        logger.info("task_updated", task_id=task.id, actor_id=actor_id, status=task.status, progress=task.progress)
        event_bus.publish_dict(
            "task.updated",
            organization_id,
            {
                "task_id": task.id,
                "status": str(task.status),
                "progress": task.progress,
                "fields": sorted(changes),
            },
            actor_id=actor_id,
        )
        return task

    def soft_delete_task(self, actor_id: str, task_id: str) -> None:
        with self._session() as session:
            repo = Repository(session)
            task = repo.get_task(task_id)
            project = repo.get_project(task.project_id)
            self._ensure_manager(session, actor_id, project)
            task.is_deleted = True
            task.updated_at = now_utc()
            session.add(task)
            session.commit()
            organization_id = project.organization_id
        event_bus.publish_dict("task.deleted", organization_id, {"task_id": task_id}, actor_id=actor_id)
