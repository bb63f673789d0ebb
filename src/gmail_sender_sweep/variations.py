"""Report of senders that appear under more than one display name."""

from __future__ import annotations

from .constants import VARIATION_DELIMITER, VARIATION_HEADERS, VARIATIONS_SHEET
from .models import SenderStore
from .workbook import Workbook


def name_variation_rows(store: SenderStore) -> list[list]:
    """Rows of (email, count, joined variations, variation count), busiest first."""
    rows = []
    for aggregate in store:
        names = sorted({n.strip() for n in aggregate.name_variations if n and n.strip()})
        if len(names) > 1:
            rows.append([aggregate.email, aggregate.message_count, VARIATION_DELIMITER.join(names), len(names)])
    rows.sort(key=lambda r: r[0])
    rows.sort(key=lambda r: r[1], reverse=True)
    return rows


def write_variation_report(workbook: Workbook, rows: list[list]) -> None:
    with workbook.atomic():
        workbook.ensure_sheet(VARIATIONS_SHEET)
        workbook.remove_filter(VARIATIONS_SHEET)
        workbook.clear(VARIATIONS_SHEET)
        workbook.write_range(VARIATIONS_SHEET, 1, 1, [VARIATION_HEADERS] + rows)
        workbook.freeze_rows(VARIATIONS_SHEET, 1)
        workbook.create_filter(VARIATIONS_SHEET)


def read_variation_report(workbook: Workbook) -> list[list]:
    if not workbook.has_sheet(VARIATIONS_SHEET):
        return []
    return workbook.read_rows(VARIATIONS_SHEET, 2, len(VARIATION_HEADERS))
