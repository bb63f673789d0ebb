"""Bulk trash / permanent delete of everything from chosen senders."""

from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Callable

from .constants import (
    ACTION_LOG_PATH,
    ACTIONS,
    BULK_BATCH_SIZE,
    MAX_ITERATIONS_PER_SENDER,
    PAUSE_EVERY,
    PAUSE_SECONDS,
)
from .directory import SenderDirectory
from .errors import DirectoryNotFoundError
from .gmail_client import MailStore
from .models import BulkSummary, SenderOutcome
from .workbook import Workbook

logger = logging.getLogger(__name__)


@dataclass
class BulkConfig:
    batch_size: int = BULK_BATCH_SIZE
    max_iterations: int = MAX_ITERATIONS_PER_SENDER
    pause_every: int = PAUSE_EVERY
    pause_seconds: float = PAUSE_SECONDS


def _save_action_log(summary: BulkSummary, log_path: Path) -> None:
    """Append a bulk action to the audit log."""
    log_path.parent.mkdir(parents=True, exist_ok=True)

    log: list = []
    if log_path.exists():
        with open(log_path) as f:
            try:
                log = json.load(f)
            except json.JSONDecodeError:
                log = []

    entry = {
        "date": datetime.now().isoformat(),
        "action": summary.action,
        "senders": [
            {
                "email": o.email,
                "processed": o.processed,
                "failed": o.failed,
                "complete": o.complete,
                "error": o.error,
            }
            for o in summary.outcomes
        ],
        "total": summary.total,
    }
    log.append(entry)

    with open(log_path, "w") as f:
        json.dump(log, f, indent=2)


class _Sweeper:
    """Issues mutations for one bulk run and paces them."""

    def __init__(self, mail: MailStore, action: str, config: BulkConfig, sleep: Callable[[float], None]) -> None:
        self.mail = mail
        self.mutate = mail.trash if action == "trash" else mail.delete
        self.config = config
        self.sleep = sleep
        self.successes = 0

    def sweep(self, email: str) -> SenderOutcome:
        """Query ``from:<email>`` batch by batch until nothing is left.

        A batch shorter than ``batch_size`` is the last one.  The iteration cap
        stops senders whose mail keeps coming back because mutations fail.
        """
        outcome = SenderOutcome(email=email)
        query = f"from:{email}"

        while outcome.batches < self.config.max_iterations:
            try:
                page = self.mail.list_page(query, None, self.config.batch_size)
            except Exception as exc:  # noqa: BLE001
                logger.error("Searching mail from %s failed: %s", email, exc)
                outcome.error = str(exc)
                break
            outcome.batches += 1
            if not page.items:
                outcome.complete = True
                break

            for item_id in page.items:
                try:
                    self.mutate(item_id)
                except Exception as exc:  # noqa: BLE001
                    outcome.failed += 1
                    logger.warning("Could not mutate %s from %s: %s", item_id, email, exc)
                    continue
                outcome.processed += 1
                self.successes += 1
                if self.successes % self.config.pause_every == 0:
                    self.sleep(self.config.pause_seconds)

            if len(page.items) < self.config.batch_size:
                outcome.complete = True
                break
        else:
            logger.warning(
                "Stopped %s after %d batches, some mail may remain", email, outcome.batches
            )

        if outcome.failed:
            outcome.complete = False
        return outcome


def bulk_action(
    mail: MailStore,
    workbook: Workbook,
    addresses: list[str],
    action: str,
    config: BulkConfig | None = None,
    sleep: Callable[[float], None] = time.sleep,
    callback: Callable[[SenderOutcome], None] | None = None,
    log_path: Path | None = None,
) -> BulkSummary:
    """Trash or permanently delete all mail from each address.

    Senders are processed one after another; a failure for one sender is
    recorded in its outcome and the next sender still runs.  Senders whose
    mail is completely gone are removed from the directory.  Only a missing
    directory raises; an unwritable action log is logged and skipped.
    """
    if action not in ACTIONS:
        raise ValueError(f"action must be one of {ACTIONS}, got {action!r}")
    directory = SenderDirectory(workbook)
    if not directory.exists():
        raise DirectoryNotFoundError(str(workbook.db_path))

    sweeper = _Sweeper(mail, action, config or BulkConfig(), sleep)
    summary = BulkSummary(action=action)

    seen: set[str] = set()
    for address in addresses:
        email = address.strip().lower()
        if not email or email in seen:
            continue
        seen.add(email)

        outcome = sweeper.sweep(email)
        if outcome.complete:
            try:
                directory.remove(email)
            except Exception as exc:  # noqa: BLE001
                logger.error("Could not remove %s from the directory: %s", email, exc)

        logger.info("%s: %d processed, %d failed", email, outcome.processed, outcome.failed)
        summary.outcomes.append(outcome)
        if callback:
            callback(outcome)

    log_path = Path(log_path or ACTION_LOG_PATH)
    try:
        _save_action_log(summary, log_path)
    except OSError as exc:
        logger.error("Could not write the action log to %s: %s", log_path, exc)
    return summary
