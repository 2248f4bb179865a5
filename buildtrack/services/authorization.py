from __future__ import annotations

from sqlmodel import Session

from buildtrack.domain.errors import ForbiddenError
from buildtrack.domain.models import Contractor, Department, Project, ProjectTask
from buildtrack.domain.roles import RoleAssignment, RoleKind
from buildtrack.domain.state_machine import UpdateStatus
from buildtrack.infra.repository import Repository
from buildtrack.services.identity_service import IdentityService

NOT_AUTHORIZED_MESSAGE = "not authorized to review at this stage"


class AuthorizationResolver:
    def __init__(self, identity: IdentityService | None = None) -> None:
        self._identity = identity or IdentityService()

    def _scoped_assignments(self, session: Session, user_id: str, project: Project) -> list[RoleAssignment]:
        assignments = self._identity.get_active_role_assignments(session, user_id)
        return [
            item
            for item in assignments
            if item.applies_to(project_id=project.id, organization_id=project.organization_id)
        ]

    def _is_project_admin(self, user_id: str, project: Project) -> bool:
        return user_id in {project.admin_id, project.owner_id}

    def can_act(
        self,
        session: Session,
        reviewer_id: str,
        stage: UpdateStatus,
        *,
        task: ProjectTask,
        department: Department,
        project: Project,
        contractor: Contractor | None = None,
    ) -> bool:
        if task.department_id != department.id or department.project_id != project.id:
            return False
        assignments = self._scoped_assignments(session, reviewer_id, project)
        admin_tier = any(item.is_admin_tier for item in assignments)

        if stage == UpdateStatus.UNDER_SUPERVISOR_REVIEW:
            if admin_tier:
                return True
            holds_supervisor_role = any(
                item.role_kind == RoleKind.DEPARTMENT_SUPERVISOR for item in assignments
            )
            return holds_supervisor_role and self._identity.is_department_supervisor(
                session, reviewer_id, department.id
            )

        if stage == UpdateStatus.UNDER_ADMIN_REVIEW:
            return admin_tier

        if stage == UpdateStatus.UNDER_CONTRACTOR_ADMIN_REVIEW:
            if contractor is not None and contractor.contractor_admin_id == reviewer_id:
                return True
            if self._is_project_admin(reviewer_id, project):
                return True
            return any(item.is_platform_role for item in assignments)

        return False

    def ensure_can_act(
        self,
        session: Session,
        reviewer_id: str,
        stage: UpdateStatus,
        *,
        task: ProjectTask,
        department: Department,
        project: Project,
        contractor: Contractor | None = None,
    ) -> None:
        allowed = self.can_act(
            session,
            reviewer_id,
            stage,
            task=task,
            department=department,
            project=project,
            contractor=contractor,
        )
        if not allowed:
            raise ForbiddenError(NOT_AUTHORIZED_MESSAGE)

    def can_edit_task(
        self,
        session: Session,
        user_id: str,
        *,
        task: ProjectTask,
        department: Department,
        project: Project,
    ) -> bool:
        if Repository(session).is_active_assignee(task.id, user_id):
            return True
        if department.supervisor_id == user_id or self._is_project_admin(user_id, project):
            return True
        return any(item.is_admin_tier for item in self._scoped_assignments(session, user_id, project))

    def can_manage_project(self, session: Session, user_id: str, project: Project) -> bool:
        if self._is_project_admin(user_id, project):
            return True
        return any(item.is_admin_tier for item in self._scoped_assignments(session, user_id, project))
