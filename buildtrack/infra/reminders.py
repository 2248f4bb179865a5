from __future__ import annotations

from buildtrack.domain.models import ReminderSweepRead
from buildtrack.infra.logging import configure_logging
from buildtrack.services.reminder_service import ReminderService


def run_reminder_sweeps() -> ReminderSweepRead:
    return ReminderService().run_all()


if __name__ == "__main__":
    configure_logging()
    run_reminder_sweeps()
