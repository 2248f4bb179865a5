from __future__ import annotations

from buildtrack.domain.models import Contractor, Department, Project, ProjectTask
from buildtrack.domain.state_machine import UpdateStatus


class ReviewRouter:
    """Chooses the reviewing stage a report moves into and who reviews it there.

    The contractor-admin stage is never chosen here; it is entered only when a
    submission explicitly asks for it.
    """

    def _supervised_stage(self, task: ProjectTask, department: Department) -> UpdateStatus:
        if department.id != task.department_id:
            raise ValueError(f"department {department.id} does not own task {task.id}")
        if department.supervisor_id is not None:
            return UpdateStatus.UNDER_SUPERVISOR_REVIEW
        return UpdateStatus.UNDER_ADMIN_REVIEW

    def route_entry(self, task: ProjectTask, department: Department) -> UpdateStatus:
        return self._supervised_stage(task, department)

    def route_after_contractor_approval(self, task: ProjectTask, department: Department) -> UpdateStatus:
        return self._supervised_stage(task, department)

    @staticmethod
    def project_admin_or_owner(project: Project) -> str | None:
        return project.admin_id or project.owner_id

    def stage_reviewer(
        self,
        stage: UpdateStatus,
        *,
        department: Department,
        project: Project,
        contractor: Contractor | None = None,
    ) -> str | None:
        if stage == UpdateStatus.UNDER_SUPERVISOR_REVIEW:
            return department.supervisor_id
        if stage == UpdateStatus.UNDER_ADMIN_REVIEW:
            return self.project_admin_or_owner(project)
        if stage == UpdateStatus.UNDER_CONTRACTOR_ADMIN_REVIEW:
            return contractor.contractor_admin_id if contractor is not None else None
        return None
