"""Data models for Gmail Sender Sweep."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import datetime
from typing import Union

from .headers import looks_like_email


@dataclass
class SenderAggregate:
    """Running statistics for one normalized sender address."""

    email: str
    primary_name: str = ""
    last_seen: datetime | None = None
    message_count: int = 1
    name_variations: set[str] = field(default_factory=set)

    def record(self, name: str | None, date: datetime | None) -> None:
        """Merge one more sighting of this sender."""
        self.message_count += 1
        if name and name.strip():
            self.name_variations.add(name)
        if _is_newer(date, self.last_seen):
            self.last_seen = date
            if name and name.strip() and not looks_like_email(name):
                self.primary_name = name


def _is_newer(date: datetime | None, than: datetime | None) -> bool:
    if date is None:
        return False
    if than is None:
        return True
    return date > than


class SenderStore:
    """In-memory sender aggregates for one scan session, keyed by email."""

    def __init__(self, aggregates: list[SenderAggregate] | None = None) -> None:
        self._senders: dict[str, SenderAggregate] = {}
        for aggregate in aggregates or []:
            self._senders[aggregate.email] = aggregate

    def record(self, email: str, name: str | None, date: datetime | None) -> SenderAggregate:
        existing = self._senders.get(email)
        if existing is not None:
            existing.record(name, date)
            return existing

        aggregate = SenderAggregate(email=email, primary_name=name or "", last_seen=date)
        if name and name.strip():
            aggregate.name_variations.add(name)
        self._senders[email] = aggregate
        return aggregate

    def get(self, email: str) -> SenderAggregate | None:
        return self._senders.get(email)

    def discard(self, email: str) -> bool:
        return self._senders.pop(email, None) is not None

    def sorted(self) -> list[SenderAggregate]:
        """Aggregates by most recent date first; undated senders go last."""
        dated = [a for a in self._senders.values() if a.last_seen is not None]
        undated = [a for a in self._senders.values() if a.last_seen is None]
        dated.sort(key=lambda a: a.email)
        dated.sort(key=lambda a: a.last_seen, reverse=True)
        undated.sort(key=lambda a: a.email)
        return dated + undated

    def __contains__(self, email: str) -> bool:
        return email in self._senders

    def __len__(self) -> int:
        return len(self._senders)

    def __iter__(self):
        return iter(self._senders.values())


# --- in-flight page variants ---


@dataclass
class FullPage:
    """A page of item ids being processed, with the next unprocessed offset."""

    items: list[str]
    offset: int = 0
    source_token: str | None = None  # token that produced this page

    @property
    def remaining(self) -> int:
        return len(self.items) - self.offset


@dataclass
class TruncatedPage:
    """Marker for a page too large to persist verbatim.

    Resuming from it re-fetches the page from ``source_token`` and processes
    it from the start, so items handled before the interruption are counted
    again (at-least-once, not exactly-once).
    """

    size: int
    first_id: str
    last_id: str
    source_token: str | None = None


InFlightPage = Union[FullPage, TruncatedPage, None]


@dataclass
class Checkpoint:
    """Durable scan position."""

    page_token: str | None = None
    processed_count: int = 0
    in_flight: InFlightPage = None
    status: str = ""
    updated_at: str = ""


class ScanStatus(enum.Enum):
    SUCCESS = "SUCCESS"
    TIMEOUT = "TIMEOUT"
    MAX_REACHED = "MAX_REACHED"


@dataclass
class ScanOutcome:
    status: ScanStatus
    message: str
    processed: int = 0
    senders: int = 0

    @property
    def complete(self) -> bool:
        return self.status is ScanStatus.SUCCESS

    def __str__(self) -> str:
        return self.message


@dataclass
class ItemDetail:
    """Sender and date of one thread or message."""

    sender: str
    date: datetime | None = None


@dataclass
class Page:
    items: list[str] = field(default_factory=list)
    next_page_token: str | None = None


@dataclass
class SenderOutcome:
    email: str
    processed: int = 0
    failed: int = 0
    batches: int = 0
    complete: bool = False
    error: str | None = None


@dataclass
class BulkSummary:
    action: str
    outcomes: list[SenderOutcome] = field(default_factory=list)

    @property
    def total(self) -> int:
        return sum(o.processed for o in self.outcomes)

    @property
    def message(self) -> str:
        verb = "Trashed" if self.action == "trash" else "Permanently deleted"
        lines = [f"{verb} {self.total} items from {len(self.outcomes)} senders."]
        for o in self.outcomes:
            if o.error:
                lines.append(f"  {o.email}: error - {o.error}")
            else:
                suffix = "" if o.complete else " (incomplete, run again)"
                failed = f", {o.failed} failed" if o.failed else ""
                lines.append(f"  {o.email}: {o.processed}{failed}{suffix}")
        return "\n".join(lines)

    def __str__(self) -> str:
        return self.message
