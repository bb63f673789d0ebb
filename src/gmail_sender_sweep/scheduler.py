"""Requests for the host to invoke the scan again later."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Protocol

from .checkpoint import CheckpointManager

logger = logging.getLogger(__name__)


class Scheduler(Protocol):
    def request_resume(self, delay_seconds: float) -> None: ...

    def cancel_resume(self) -> None: ...


class WorkbookScheduler:
    """Records the requested resume time in the Progress sheet.

    Whatever runs the tool (cron, the CLI's ``--follow`` loop) reads
    :meth:`next_resume_at` and invokes ``resume`` once it has passed.
    """

    def __init__(self, checkpoints: CheckpointManager) -> None:
        self.checkpoints = checkpoints

    def request_resume(self, delay_seconds: float) -> None:
        when = datetime.now(timezone.utc) + timedelta(seconds=delay_seconds)
        self.checkpoints.set_value("next_resume_at", when.isoformat())
        logger.info("Resume requested at %s", when.isoformat(timespec="seconds"))

    def cancel_resume(self) -> None:
        self.checkpoints.set_value("next_resume_at", "")

    def next_resume_at(self) -> datetime | None:
        value = self.checkpoints.get_value("next_resume_at")
        if not value:
            return None
        try:
            return datetime.fromisoformat(value)
        except ValueError:
            return None
