from __future__ import annotations

from datetime import datetime

from buildtrack.domain.models import ProjectTask, TaskUpdate
from buildtrack.domain.state_machine import TaskStatus

COMPLETE_PROGRESS = 100.0


def clamp_progress(value: float) -> float:
    return max(0.0, min(COMPLETE_PROGRESS, float(value)))


class ProgressAggregator:
    """Keeps a task's progress, status and completion stamp in line with its reports.

    Only mutates the task object; the caller owns the session and commit.
    Returns True when the task changed.
    """

    def on_submission(self, task: ProjectTask, progress: float, now: datetime) -> bool:
        changed = False
        if progress > task.progress:
            task.progress = progress
            changed = True
        if progress >= COMPLETE_PROGRESS and task.status not in {TaskStatus.COMPLETED, TaskStatus.UNDER_REVIEW}:
            task.status = TaskStatus.UNDER_REVIEW
            changed = True
        if changed:
            task.updated_at = now
        return changed

    def on_supervisor_approval(self, task: ProjectTask, update: TaskUpdate, now: datetime) -> bool:
        if update.progress_percentage < COMPLETE_PROGRESS:
            return False
        if task.status in {TaskStatus.COMPLETED, TaskStatus.UNDER_REVIEW}:
            return False
        task.status = TaskStatus.UNDER_REVIEW
        task.updated_at = now
        return True

    def on_final_approval(self, task: ProjectTask, update: TaskUpdate, now: datetime) -> bool:
        """Apply a fully approved report.

        Approval only moves a task forward: progress is raised, never lowered,
        and a task is never reopened here. Reversal belongs to direct edits.
        """
        approved = clamp_progress(update.progress_percentage)
        changed = False
        if approved > task.progress:
            task.progress = approved
            changed = True
        if approved >= COMPLETE_PROGRESS and task.status != TaskStatus.COMPLETED:
            task.status = TaskStatus.COMPLETED
            task.completed_at = now
            changed = True
        if changed:
            task.updated_at = now
        return changed

    def on_direct_edit(self, task: ProjectTask, now: datetime) -> bool:
        if task.progress >= COMPLETE_PROGRESS and task.status != TaskStatus.COMPLETED:
            task.status = TaskStatus.COMPLETED
            task.completed_at = now
            return True
        if task.progress >= COMPLETE_PROGRESS and task.completed_at is None:
            task.completed_at = now
            return True
        if task.progress < COMPLETE_PROGRESS and task.status == TaskStatus.COMPLETED:
            task.status = TaskStatus.IN_PROGRESS
            task.completed_at = None
            return True
        return False
