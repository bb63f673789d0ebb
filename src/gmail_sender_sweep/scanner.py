"""Resumable scan: pages through the mailbox and aggregates senders.

A scan runs under two budgets, a number of items per invocation and a
wall-clock allowance below the host's execution ceiling.  Budgets are checked
before each item's detail is fetched; when one runs out the directory and the
exact position (page token, the in-flight page and offset into it) are saved
and the call returns.  ``resume`` picks up from that position.
"""

from __future__ import annotations

import logging
import sqlite3
import time
from dataclasses import dataclass, replace
from typing import Callable

from .checkpoint import CheckpointManager
from .constants import (
    CHECKPOINT_EVERY,
    COMPLETE_TOKEN,
    EXECUTION_CEILING_SECONDS,
    MAX_UNITS_PER_RUN,
    PAGE_SIZE,
    REPORT_MARGIN_SECONDS,
    RESUME_INTERVAL_SECONDS,
    STATUS_COMPLETE,
    STATUS_INCOMPLETE,
    TIME_BUDGET_SECONDS,
    UNITS,
)
from .errors import PageFetchError, ScanInProgressError
from .exclusions import build_exclusion_set
from .gmail_client import MailStore
from .headers import parse_from_header
from .models import (
    Checkpoint,
    FullPage,
    ScanOutcome,
    ScanStatus,
    SenderStore,
    TruncatedPage,
)
from .scheduler import Scheduler
from .variations import name_variation_rows, write_variation_report
from .workbook import Workbook

logger = logging.getLogger(__name__)


@dataclass
class ScanConfig:
    """Tunables for one scan invocation."""

    query: str = ""
    unit: str = "threads"
    page_size: int = PAGE_SIZE
    max_units: int = MAX_UNITS_PER_RUN
    time_budget: float = TIME_BUDGET_SECONDS
    checkpoint_every: int = CHECKPOINT_EVERY
    report_margin: float = REPORT_MARGIN_SECONDS
    resume_interval: float = RESUME_INTERVAL_SECONDS

    def __post_init__(self) -> None:
        # A run outliving the ceiling would look like a dead run to the lock.
        if self.time_budget >= EXECUTION_CEILING_SECONDS:
            raise ValueError(
                f"time_budget must be below {EXECUTION_CEILING_SECONDS}s, got {self.time_budget}"
            )
        if self.unit not in UNITS:
            raise ValueError(f"unit must be one of {UNITS}, got {self.unit!r}")


class ScanSession:
    """Everything one invocation owns: aggregates, position and budgets."""

    def __init__(
        self,
        mail: MailStore,
        checkpoints: CheckpointManager,
        config: ScanConfig,
        store: SenderStore,
        checkpoint: Checkpoint,
        exclusions: frozenset[str],
        clock: Callable[[], float],
        on_item: Callable[[int], None] | None = None,
    ) -> None:
        self.mail = mail
        self.checkpoints = checkpoints
        self.config = config
        self.store = store
        self.checkpoint = checkpoint
        self.exclusions = exclusions
        self.clock = clock
        self.on_item = on_item
        self.started = clock()
        self.processed = 0  # items handled by this invocation
        self.page: FullPage | None = None
        self._restore_page()

    def _restore_page(self) -> None:
        in_flight = self.checkpoint.in_flight
        self.checkpoint.in_flight = None
        if isinstance(in_flight, FullPage):
            if in_flight.remaining > 0:
                self.page = in_flight
        elif isinstance(in_flight, TruncatedPage):
            # Items of this page handled before the interruption are counted again.
            logger.warning(
                "Re-fetching a page of %d items (%s .. %s) from the start",
                in_flight.size,
                in_flight.first_id,
                in_flight.last_id,
            )
            self.checkpoint.page_token = in_flight.source_token

    def elapsed(self) -> float:
        return self.clock() - self.started

    def budget_exceeded(self) -> ScanStatus | None:
        if self.processed >= self.config.max_units:
            return ScanStatus.MAX_REACHED
        if self.elapsed() >= self.config.time_budget:
            return ScanStatus.TIMEOUT
        return None

    # --- main loop ---

    def run(self) -> ScanOutcome:
        while True:
            if self.page is None:
                if self.checkpoint.page_token == COMPLETE_TOKEN:
                    break
                if not self._fetch_page():
                    break

            page = self.page
            while page.offset < len(page.items):
                exceeded = self.budget_exceeded()
                if exceeded is not None:
                    return self._suspend(exceeded)

                self._process_item(page.items[page.offset])
                page.offset += 1
                self.processed += 1
                self.checkpoint.processed_count += 1
                if self.on_item is not None:
                    self.on_item(self.checkpoint.processed_count)

                if self.checkpoint.processed_count % self.config.checkpoint_every == 0:
                    self.checkpoints.save_light(self.checkpoint, self.store, self._restart_token())
            self.page = None

        return self._finish()

    def _fetch_page(self) -> bool:
        token = self.checkpoint.page_token
        try:
            result = self.mail.list_page(self.config.query, token, self.config.page_size)
        except Exception as exc:
            logger.error("Listing page failed after %d items: %s", self.checkpoint.processed_count, exc)
            self.checkpoints.save(self.checkpoint, self.store)
            raise PageFetchError(self.checkpoint.processed_count, exc) from exc

        if not result.items:
            return False
        self.page = FullPage(items=list(result.items), offset=0, source_token=token)
        self.checkpoint.page_token = result.next_page_token or COMPLETE_TOKEN
        logger.debug("Fetched page of %d items", len(result.items))
        return True

    def _process_item(self, item_id: str) -> None:
        try:
            detail = self.mail.get_detail(item_id)
        except Exception as exc:  # noqa: BLE001
            logger.warning("Skipping %s, could not fetch its headers: %s", item_id, exc)
            return

        name, email = parse_from_header(detail.sender)
        if email is None or email in self.exclusions:
            return
        self.store.record(email, name, detail.date)

    def _restart_token(self) -> str | None:
        """Token to restart from when no in-flight detail is kept."""
        if self.page is not None and self.page.remaining > 0:
            return self.page.source_token
        return self.checkpoint.page_token

    # --- terminal states ---

    def _suspend(self, status: ScanStatus) -> ScanOutcome:
        self.checkpoint.in_flight = self.page
        self.checkpoint.status = STATUS_INCOMPLETE
        self.checkpoints.save(self.checkpoint, self.store)
        message = (
            f"{status.value}: Processed {self.checkpoint.processed_count} items "
            f"({self.processed} this run), {len(self.store)} senders so far. "
            "Run 'gmail-sender-sweep resume' to continue."
        )
        logger.info(message)
        return ScanOutcome(status, message, self.checkpoint.processed_count, len(self.store))

    def _finish(self) -> ScanOutcome:
        self.checkpoint.page_token = COMPLETE_TOKEN
        self.checkpoint.in_flight = None
        self.checkpoint.status = STATUS_COMPLETE
        self.checkpoints.save(self.checkpoint, self.store)

        remaining = self.config.time_budget - self.elapsed()
        if remaining > self.config.report_margin:
            rows = name_variation_rows(self.store)
            try:
                write_variation_report(self.checkpoints.workbook, rows)
                report = f" Name variation report: {len(rows)} senders."
            except sqlite3.Error as exc:
                logger.error("Could not write the name variation report: %s", exc)
                report = " Name variation report could not be saved."
        else:
            logger.info("Skipping name variation report, %.0fs left", remaining)
            report = " Name variation report skipped, run 'gmail-sender-sweep variations --rebuild'."

        message = (
            f"SUCCESS: Processed {self.checkpoint.processed_count} items, "
            f"{len(self.store)} unique senders.{report}"
        )
        logger.info(message)
        return ScanOutcome(ScanStatus.SUCCESS, message, self.checkpoint.processed_count, len(self.store))


def run_scan(
    mail: MailStore,
    workbook: Workbook,
    config: ScanConfig | None = None,
    resume: bool = False,
    scheduler: Scheduler | None = None,
    clock: Callable[[], float] = time.monotonic,
    on_item: Callable[[int], None] | None = None,
) -> ScanOutcome:
    """Scan the mailbox, or continue the last scan when ``resume`` is set.

    Returns a SUCCESS, TIMEOUT or MAX_REACHED outcome.  Raises
    ScanInProgressError if another scan holds the lock and PageFetchError when
    a page cannot be listed (after saving progress).  ``on_item`` receives the
    cumulative processed count after each item.
    """
    config = config or ScanConfig()
    checkpoints = CheckpointManager(workbook)
    if not checkpoints.acquire_lock():
        raise ScanInProgressError(checkpoints.lock_holder())

    try:
        exclusions = build_exclusion_set(workbook, mail.owner_address())
        checkpoint = checkpoints.load() if resume else None

        if checkpoint is not None and checkpoint.status == STATUS_COMPLETE:
            store = checkpoints.directory.load()
            if scheduler is not None:
                scheduler.cancel_resume()
            return ScanOutcome(
                ScanStatus.SUCCESS,
                f"SUCCESS: Scan already complete, {checkpoint.processed_count} items "
                f"and {len(store)} senders in the directory.",
                checkpoint.processed_count,
                len(store),
            )

        if checkpoint is None:
            if resume:
                logger.info("No checkpoint found, starting a fresh scan")
            checkpoint = Checkpoint(status=STATUS_INCOMPLETE)
            store = SenderStore()
            checkpoints.set_value("query", config.query)
            checkpoints.set_value("unit", config.unit)
        else:
            # Page tokens are only valid for the query and unit that produced them.
            stored_query = checkpoints.get_value("query")
            if stored_query is not None and stored_query != config.query:
                logger.info("Resuming with the original query %r", stored_query)
                config = replace(config, query=stored_query)
            stored_unit = checkpoints.get_value("unit")
            if stored_unit in UNITS and stored_unit != config.unit:
                config = replace(config, unit=stored_unit)
            store = checkpoints.directory.load()
            # Keepers may have been added since the last run.
            for email in exclusions:
                if store.discard(email):
                    logger.info("Dropped %s from the directory, it is now excluded", email)
            logger.info(
                "Resuming at %d items with %d senders", checkpoint.processed_count, len(store)
            )

        session = ScanSession(
            mail, checkpoints, config, store, checkpoint, exclusions, clock, on_item=on_item
        )
        outcome = session.run()
    finally:
        checkpoints.release_lock()

    if scheduler is not None:
        if outcome.complete:
            scheduler.cancel_resume()
        else:
            scheduler.request_resume(config.resume_interval)
    return outcome


def resume(
    mail: MailStore,
    workbook: Workbook,
    config: ScanConfig | None = None,
    scheduler: Scheduler | None = None,
    clock: Callable[[], float] = time.monotonic,
    on_item: Callable[[int], None] | None = None,
) -> ScanOutcome:
    """Continue the last scan from its checkpoint."""
    return run_scan(
        mail, workbook, config, resume=True, scheduler=scheduler, clock=clock, on_item=on_item
    )
