from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum


class RoleKind(StrEnum):
    SUPER_ADMIN = "SuperAdmin"
    PLATFORM_ADMIN = "PlatformAdmin"
    PROJECT_OWNER = "ProjectOwner"
    PROJECT_ADMINISTRATOR = "ProjectAdministrator"
    CONTRACTOR_ADMIN = "ContractorAdmin"
    DEPARTMENT_SUPERVISOR = "DepartmentSupervisor"
    FIELD_WORKER = "FieldWorker"
    OBSERVER = "Observer"


DEFAULT_ROLE_LEVELS: dict[RoleKind, int] = {
    RoleKind.SUPER_ADMIN: 1,
    RoleKind.PLATFORM_ADMIN: 2,
    RoleKind.PROJECT_OWNER: 3,
    RoleKind.PROJECT_ADMINISTRATOR: 4,
    RoleKind.CONTRACTOR_ADMIN: 5,
    RoleKind.DEPARTMENT_SUPERVISOR: 6,
    RoleKind.FIELD_WORKER: 7,
    RoleKind.OBSERVER: 8,
}

# Lower level is more senior; anything at or above this line is admin tier.
ADMIN_TIER_MAX_LEVEL = 4

PLATFORM_ROLE_KINDS: frozenset[RoleKind] = frozenset({RoleKind.SUPER_ADMIN, RoleKind.PLATFORM_ADMIN})

SYSTEM_ROLE_DESCRIPTIONS: dict[RoleKind, str] = {
    RoleKind.SUPER_ADMIN: "full platform access",
    RoleKind.PLATFORM_ADMIN: "platform operations",
    RoleKind.PROJECT_OWNER: "owns a project",
    RoleKind.PROJECT_ADMINISTRATOR: "administers a project and gives final approval",
    RoleKind.CONTRACTOR_ADMIN: "heads a contracted team",
    RoleKind.DEPARTMENT_SUPERVISOR: "supervises a department",
    RoleKind.FIELD_WORKER: "submits daily reports",
    RoleKind.OBSERVER: "read-only access",
}


@dataclass(frozen=True)
class RoleAssignment:
    role_kind: RoleKind
    level: int
    project_id: str | None = None
    organization_id: str | None = None

    @property
    def is_platform_role(self) -> bool:
        return self.role_kind in PLATFORM_ROLE_KINDS

    @property
    def is_admin_tier(self) -> bool:
        return self.level <= ADMIN_TIER_MAX_LEVEL

    def applies_to(self, *, project_id: str | None, organization_id: str | None) -> bool:
        if self.is_platform_role:
            return True
        if self.project_id is not None and self.project_id != project_id:
            return False
        if self.organization_id is not None and self.organization_id != organization_id:
            return False
        return True
