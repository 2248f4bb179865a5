from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime

from buildtrack.domain.models import TaskUpdate

ORG_ID = "org-1"
TUESDAY = datetime(2026, 10, 13, 10, 0, tzinfo=UTC)
WEDNESDAY = datetime(2026, 10, 14, 10, 0, tzinfo=UTC)
SATURDAY = datetime(2026, 10, 17, 10, 0, tzinfo=UTC)

SubmitFn = Callable[..., TaskUpdate]


@dataclass
class Site:
    project_id: str
    department_id: str
    other_department_id: str
    contractor_id: str
    task_id: str
    plain_task_id: str
    owner_id: str
    admin_id: str
    supervisor_id: str
    other_supervisor_id: str
    contractor_admin_id: str
    worker_id: str
    outsider_id: str
