"""The persisted sender directory: the durable projection of a SenderStore."""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone

from .constants import DATE_FORMAT, SENDER_HEADERS, SENDERS_SHEET
from .errors import DirectoryNotFoundError
from .models import SenderAggregate, SenderStore
from .workbook import Workbook

logger = logging.getLogger(__name__)

_NAME, _EMAIL, _DATE, _COUNT, _VARIATIONS = range(1, 6)
_STATUS_COL = len(SENDER_HEADERS) + 2  # one blank column after the table


def format_date(value: datetime | None) -> str:
    return value.isoformat() if value is not None else ""


def parse_date(value) -> datetime | None:
    if not value or not isinstance(value, str):
        return None
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        logger.warning("Unreadable date in sender directory: %r", value)
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def aggregate_to_row(aggregate: SenderAggregate) -> list:
    return [
        aggregate.primary_name,
        aggregate.email,
        format_date(aggregate.last_seen),
        aggregate.message_count,
        json.dumps(sorted(aggregate.name_variations)),
    ]


def row_to_aggregate(row: list) -> SenderAggregate | None:
    email = row[_EMAIL - 1]
    if not isinstance(email, str) or not email.strip():
        return None
    name = row[_NAME - 1] if isinstance(row[_NAME - 1], str) else ""
    try:
        count = int(row[_COUNT - 1] or 0)
    except (TypeError, ValueError):
        count = 1
    variations: set[str] = set()
    raw = row[_VARIATIONS - 1]
    if isinstance(raw, str) and raw:
        try:
            variations = {v for v in json.loads(raw) if isinstance(v, str)}
        except ValueError:
            logger.warning("Unreadable name variations for %s", email)
    if name.strip():
        variations.add(name)
    return SenderAggregate(
        email=email.strip().lower(),
        primary_name=name,
        last_seen=parse_date(row[_DATE - 1]),
        message_count=max(count, 1),
        name_variations=variations,
    )


class SenderDirectory:
    """Reads and writes the Senders sheet."""

    def __init__(self, workbook: Workbook) -> None:
        self.workbook = workbook

    def exists(self) -> bool:
        return self.workbook.has_sheet(SENDERS_SHEET)

    def save(self, store: SenderStore, status: str = "") -> None:
        """Replace the sheet with a full snapshot of ``store``."""
        wb = self.workbook
        with wb.atomic():
            wb.ensure_sheet(SENDERS_SHEET)
            wb.remove_filter(SENDERS_SHEET)
            wb.clear(SENDERS_SHEET)
            wb.write_range(SENDERS_SHEET, 1, 1, [SENDER_HEADERS])
            rows = [aggregate_to_row(a) for a in store.sorted()]
            if rows:
                wb.write_range(SENDERS_SHEET, 2, 1, rows)
            if status:
                wb.write_range(SENDERS_SHEET, 1, _STATUS_COL, [[status]])
            wb.set_column_format(SENDERS_SHEET, _DATE, DATE_FORMAT)
            wb.freeze_rows(SENDERS_SHEET, 1)
            wb.create_filter(SENDERS_SHEET)

    def load(self) -> SenderStore:
        """Rehydrate a SenderStore from the sheet (empty if there is none)."""
        if not self.exists():
            return SenderStore()
        rows = self.workbook.read_rows(SENDERS_SHEET, 2, len(SENDER_HEADERS))
        aggregates = [a for a in (row_to_aggregate(r) for r in rows) if a is not None]
        return SenderStore(aggregates)

    def status(self) -> str | None:
        if not self.exists():
            return None
        return self.workbook.read_range(SENDERS_SHEET, 1, _STATUS_COL, 1, 1)[0][0]

    def date_format(self) -> str:
        if not self.exists():
            return DATE_FORMAT
        return self.workbook.column_format(SENDERS_SHEET, _DATE) or DATE_FORMAT

    def remove(self, email: str) -> bool:
        """Delete the row for ``email``; returns False if it was not listed."""
        if not self.exists():
            raise DirectoryNotFoundError(str(self.workbook.db_path))
        target = email.strip().lower()
        column = self.workbook.read_rows(SENDERS_SHEET, 2, _EMAIL)
        for offset, row in enumerate(column):
            value = row[_EMAIL - 1]
            if isinstance(value, str) and value.strip().lower() == target:
                self.workbook.delete_row(SENDERS_SHEET, offset + 2)
                return True
        return False
