"""Row lookups shared by the review services.

Soft-deleted rows are invisible here: every lookup on a table carrying an
``is_deleted`` flag goes through ``visible()``, so callers never test the flag.
"""

from __future__ import annotations

from datetime import date
from typing import Any, TypeVar

import sqlalchemy as sa
from sqlmodel import Session, SQLModel, col, select
from sqlmodel.sql.expression import SelectOfScalar

from buildtrack.domain.errors import NotFoundError, StateConflictError
from buildtrack.domain.models import (
    Contractor,
    Department,
    Project,
    ProjectTask,
    TaskAssignee,
    TaskUpdate,
    User,
)

ModelT = TypeVar("ModelT", bound=SQLModel)


def visible(statement: SelectOfScalar[ModelT], model: type[SQLModel]) -> SelectOfScalar[ModelT]:
    flag: Any = getattr(model, "is_deleted", None)
    if flag is None:
        return statement
    return statement.where(col(flag).is_(False))


class Repository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def _get(self, model: type[ModelT], entity: str, entity_id: str) -> ModelT:
        id_column: Any = getattr(model, "id")
        statement = visible(select(model).where(id_column == entity_id), model)
        row = self.session.exec(statement).first()
        if row is None:
            raise NotFoundError(entity, entity_id)
        return row

    def get_user(self, user_id: str) -> User:
        return self._get(User, "user", user_id)

    def get_project(self, project_id: str) -> Project:
        return self._get(Project, "project", project_id)

    def get_department(self, department_id: str) -> Department:
        return self._get(Department, "department", department_id)

    def get_contractor(self, contractor_id: str) -> Contractor:
        return self._get(Contractor, "contractor", contractor_id)

    def get_task(self, task_id: str) -> ProjectTask:
        return self._get(ProjectTask, "task", task_id)

    def get_task_update(self, update_id: str) -> TaskUpdate:
        return self._get(TaskUpdate, "task update", update_id)

    def find_contractor(self, contractor_id: str | None) -> Contractor | None:
        if contractor_id is None:
            return None
        statement = visible(select(Contractor).where(Contractor.id == contractor_id), Contractor)
        return self.session.exec(statement).first()

    def is_active_assignee(self, task_id: str, user_id: str) -> bool:
        row = self.session.exec(
            select(TaskAssignee)
            .where(TaskAssignee.task_id == task_id)
            .where(TaskAssignee.user_id == user_id)
            .where(col(TaskAssignee.is_active).is_(True))
        ).first()
        return row is not None

    def active_assignee_ids(self, task_id: str) -> list[str]:
        rows = self.session.exec(
            select(TaskAssignee)
            .where(TaskAssignee.task_id == task_id)
            .where(col(TaskAssignee.is_active).is_(True))
        ).all()
        return [item.user_id for item in rows]

    def has_daily_report(self, task_id: str, user_id: str, report_date: date) -> bool:
        statement = visible(
            select(TaskUpdate)
            .where(TaskUpdate.task_id == task_id)
            .where(TaskUpdate.submitted_by == user_id)
            .where(TaskUpdate.report_date == report_date),
            TaskUpdate,
        )
        return self.session.exec(statement).first() is not None

    def list_task_updates(
        self,
        *,
        task_id: str | None = None,
        statuses: set[Any] | None = None,
    ) -> list[TaskUpdate]:
        statement = visible(select(TaskUpdate), TaskUpdate)
        if task_id is not None:
            statement = statement.where(TaskUpdate.task_id == task_id)
        if statuses:
            statement = statement.where(col(TaskUpdate.status).in_(statuses))
        return list(self.session.exec(statement).all())

    def list_tasks(self, *, department_id: str | None = None, project_id: str | None = None) -> list[ProjectTask]:
        statement = visible(select(ProjectTask), ProjectTask)
        if department_id is not None:
            statement = statement.where(ProjectTask.department_id == department_id)
        if project_id is not None:
            statement = statement.where(ProjectTask.project_id == project_id)
        return list(self.session.exec(statement).all())

    def claim_task_update(self, update: TaskUpdate) -> None:
        """Bump the report's version, failing if another writer got there first."""
        read_version = update.version
        result = self.session.execute(
            sa.update(TaskUpdate)
            .where(col(TaskUpdate.id) == update.id)
            .where(col(TaskUpdate.version) == read_version)
            .values(version=read_version + 1)
            .execution_options(synchronize_session=False)
        )
        if getattr(result, "rowcount", 0) != 1:
            raise StateConflictError(
                f"task update {update.id} was changed by another reviewer",
                current_status=str(update.status),
            )
        update.version = read_version + 1
