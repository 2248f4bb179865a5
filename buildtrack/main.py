from __future__ import annotations

from fastapi import FastAPI, HTTPException

from buildtrack.api.routers import identity, notifications, projects, task_updates
from buildtrack.infra.audit import AuditMiddleware
from buildtrack.infra.db import check_db_ready
from buildtrack.infra.logging import configure_logging

configure_logging()

app = FastAPI(
    title="buildtrack",
    description="Daily task reports and their multi-stage review for construction projects.",
    version="0.1.0",
)

app.add_middleware(AuditMiddleware)

app.include_router(identity.router, prefix="/api/identity", tags=["identity"])
app.include_router(projects.router, prefix="/api/projects", tags=["projects"])
app.include_router(task_updates.router, prefix="/api/task-updates", tags=["task-updates"])
app.include_router(notifications.router, prefix="/api/notifications", tags=["notifications"])


@app.get("/healthz")
def healthz() -> dict[str, str]:
    return {"status": "ok"}


@app.get("/readyz")
def readyz() -> dict[str, object]:
    db_ok = check_db_ready()
    checks = {"db": "ok" if db_ok else "fail"}
    if not db_ok:
        raise HTTPException(
            status_code=503,
            detail={"status": "not_ready", "checks": checks},
        )
    return {"status": "ready", "checks": checks}
