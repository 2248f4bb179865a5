from __future__ import annotations

import os

import structlog
from alembic import command
from alembic.config import Config

from buildtrack.infra.logging import configure_logging

ALEMBIC_CONFIG = os.getenv("ALEMBIC_CONFIG", "alembic.ini")

logger = structlog.get_logger(__name__)


def run_upgrade(revision: str = "head") -> None:
    command.upgrade(Config(ALEMBIC_CONFIG), revision)
    logger.info("migrations_applied", revision=revision, config=ALEMBIC_CONFIG)


if __name__ == "__main__":
    configure_logging()
    run_upgrade()
