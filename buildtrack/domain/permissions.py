from __future__ import annotations

from typing import Any

PERM_WILDCARD = "*"
PERM_IDENTITY_READ = "identity.read"
PERM_IDENTITY_WRITE = "identity.write"
PERM_PROJECT_READ = "project.read"
PERM_PROJECT_WRITE = "project.write"
PERM_REPORT_SUBMIT = "report.submit"
PERM_REPORT_REVIEW = "report.review"
PERM_NOTIFICATION_READ = "notification.read"


def has_permission(claims: dict[str, Any], permission: str) -> bool:
    permissions = claims.get("permissions", [])
    if not isinstance(permissions, list):
        return False
    return permission in permissions or PERM_WILDCARD in permissions
