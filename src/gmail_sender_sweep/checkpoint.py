"""Durable scan position: page token, processed count and the in-flight page."""

from __future__ import annotations

import json
import logging
import sqlite3
from datetime import datetime, timedelta, timezone

from .constants import (
    CELL_CHAR_LIMIT,
    EXECUTION_CEILING_SECONDS,
    PROGRESS_SHEET,
    STATUS_COMPLETE,
    STATUS_INCOMPLETE,
)
from .directory import SenderDirectory
from .models import Checkpoint, FullPage, InFlightPage, SenderStore, TruncatedPage
from .workbook import Workbook

logger = logging.getLogger(__name__)

KEYS = [
    "page_token",
    "processed_count",
    "in_flight_page",
    "in_flight_offset",
    "status",
    "updated_at",
    "scan_running",
    "running_since",
    "next_resume_at",
    "query",
    "unit",
]


def _now() -> datetime:
    return datetime.now(timezone.utc)


def encode_in_flight(page: InFlightPage, limit: int = CELL_CHAR_LIMIT) -> tuple[str, int]:
    """Serialize an in-flight page to (cell text, offset).

    A page that does not fit in one cell is first reduced to its unprocessed
    remainder; if that is still too large only a TruncatedPage marker is kept.
    """
    if page is None:
        return "", 0
    if isinstance(page, TruncatedPage):
        return json.dumps(_marker(page)), 0

    text = json.dumps({"kind": "page", "items": page.items, "source_token": page.source_token})
    if len(text) <= limit:
        return text, page.offset

    remainder = page.items[page.offset:]
    text = json.dumps({"kind": "page", "items": remainder, "source_token": page.source_token})
    if len(text) <= limit:
        return text, 0

    marker = TruncatedPage(
        size=len(page.items),
        first_id=page.items[0] if page.items else "",
        last_id=page.items[-1] if page.items else "",
        source_token=page.source_token,
    )
    logger.warning(
        "In-flight page of %d items is too large to store, keeping a re-fetch marker",
        len(page.items),
    )
    return json.dumps(_marker(marker)), 0


def _marker(page: TruncatedPage) -> dict:
    return {
        "kind": "truncated",
        "size": page.size,
        "first": page.first_id,
        "last": page.last_id,
        "source_token": page.source_token,
    }


def decode_in_flight(text, offset) -> InFlightPage:
    if not text or not isinstance(text, str):
        return None
    try:
        data = json.loads(text)
    except ValueError:
        logger.warning("Discarding unreadable in-flight page")
        return None

    if data.get("kind") == "truncated":
        return TruncatedPage(
            size=int(data.get("size", 0)),
            first_id=data.get("first", ""),
            last_id=data.get("last", ""),
            source_token=data.get("source_token"),
        )
    items = [str(i) for i in data.get("items", [])]
    try:
        offset = int(offset or 0)
    except (TypeError, ValueError):
        offset = 0
    return FullPage(items=items, offset=min(max(offset, 0), len(items)), source_token=data.get("source_token"))


class CheckpointManager:
    """Owns the Progress sheet."""

    def __init__(self, workbook: Workbook) -> None:
        self.workbook = workbook
        self.directory = SenderDirectory(workbook)

    # --- raw key/value access ---

    def _read_all(self) -> dict:
        if not self.workbook.has_sheet(PROGRESS_SHEET):
            return {}
        rows = self.workbook.read_rows(PROGRESS_SHEET, 2, 2)
        return {key: value for key, value in rows if key}

    def _write(self, values: dict) -> None:
        current = self._read_all()
        current.update(values)
        rows = [[key, current.get(key)] for key in KEYS]
        with self.workbook.atomic():
            self.workbook.ensure_sheet(PROGRESS_SHEET)
            self.workbook.clear(PROGRESS_SHEET)
            self.workbook.write_range(PROGRESS_SHEET, 1, 1, [["Key", "Value"]] + rows)
            self.workbook.freeze_rows(PROGRESS_SHEET, 1)

    def get_value(self, key: str):
        return self._read_all().get(key)

    def set_value(self, key: str, value) -> None:
        self._write({key: value})

    # --- checkpoints ---

    def load(self) -> Checkpoint | None:
        """Return the stored checkpoint, or None if no scan ever ran."""
        data = self._read_all()
        if not data.get("status"):
            return None
        try:
            processed = int(data.get("processed_count") or 0)
        except (TypeError, ValueError):
            processed = 0
        return Checkpoint(
            page_token=data.get("page_token") or None,
            processed_count=processed,
            in_flight=decode_in_flight(data.get("in_flight_page"), data.get("in_flight_offset")),
            status=data["status"],
            updated_at=data.get("updated_at") or "",
        )

    def save(self, checkpoint: Checkpoint, store: SenderStore) -> bool:
        """Persist the directory and full checkpoint together.

        Returns False (after logging) when the workbook could not be written;
        the scan keeps its in-memory state either way.
        """
        text, offset = encode_in_flight(checkpoint.in_flight)
        return self._persist(checkpoint, store, {"in_flight_page": text, "in_flight_offset": offset})

    def save_light(self, checkpoint: Checkpoint, store: SenderStore, page_token: str | None) -> bool:
        """Persist the directory, token and count without in-flight detail."""
        return self._persist(
            checkpoint,
            store,
            {"page_token": page_token or "", "in_flight_page": "", "in_flight_offset": 0},
        )

    def _persist(self, checkpoint: Checkpoint, store: SenderStore, extra: dict) -> bool:
        checkpoint.updated_at = _now().isoformat()
        values = {
            "page_token": checkpoint.page_token or "",
            "processed_count": checkpoint.processed_count,
            "status": checkpoint.status,
            "updated_at": checkpoint.updated_at,
        }
        values.update(extra)
        try:
            with self.workbook.atomic():
                self.directory.save(store, status=_status_text(checkpoint))
                self._write(values)
        except sqlite3.Error as exc:
            logger.error("Could not write checkpoint at %d items: %s", checkpoint.processed_count, exc)
            return False
        logger.debug("Checkpoint saved at %d items", checkpoint.processed_count)
        return True

    def clear(self) -> None:
        if self.workbook.has_sheet(PROGRESS_SHEET):
            self.workbook.delete_sheet(PROGRESS_SHEET)

    # --- re-entrancy guard ---

    def acquire_lock(self) -> bool:
        """Mark a scan as running; False if another live scan holds the flag."""
        data = self._read_all()
        if data.get("scan_running"):
            since = _parse(data.get("running_since"))
            if since and _now() - since < timedelta(seconds=EXECUTION_CEILING_SECONDS):
                return False
            logger.warning("Taking over stale scan lock from %s", data.get("running_since"))
        self._write({"scan_running": 1, "running_since": _now().isoformat()})
        return True

    def release_lock(self) -> None:
        try:
            self._write({"scan_running": 0, "running_since": ""})
        except sqlite3.Error as exc:
            logger.error("Could not clear the scan lock: %s", exc)

    def lock_holder(self) -> str | None:
        data = self._read_all()
        return data.get("running_since") if data.get("scan_running") else None


def _parse(value) -> datetime | None:
    if not value or not isinstance(value, str):
        return None
    try:
        return datetime.fromisoformat(value)
    except ValueError:
        return None


def _status_text(checkpoint: Checkpoint) -> str:
    if checkpoint.status == STATUS_COMPLETE:
        return f"{STATUS_COMPLETE}: {checkpoint.processed_count} items scanned"
    return (
        f"{STATUS_INCOMPLETE}: {checkpoint.processed_count} items scanned, "
        "run 'gmail-sender-sweep resume' to continue"
    )
