"""The set of addresses that are never aggregated: the operator plus keepers."""

from __future__ import annotations

from .constants import KEEPER_HEADERS, KEEPERS_SHEET
from .workbook import Workbook


def _normalize(value) -> str | None:
    if not isinstance(value, str):
        return None
    value = value.strip().lower()
    return value or None


def list_keepers(workbook: Workbook) -> list[str]:
    """Every non-empty string in the Keepers sheet's first column."""
    if not workbook.has_sheet(KEEPERS_SHEET):
        return []
    header = KEEPER_HEADERS[0].lower()
    keepers = []
    for row in workbook.read_rows(KEEPERS_SHEET, 1, 1):
        value = _normalize(row[0])
        if value and value != header and value not in keepers:
            keepers.append(value)
    return keepers


def build_exclusion_set(workbook: Workbook, owner_email: str) -> frozenset[str]:
    """Return the normalized addresses a scan must skip.

    The owner's address is always present.  A missing or empty Keepers sheet
    simply contributes nothing.
    """
    excluded = set(list_keepers(workbook))
    owner = _normalize(owner_email)
    if owner:
        excluded.add(owner)
    return frozenset(excluded)


def add_keeper(workbook: Workbook, email: str) -> bool:
    """Append ``email`` to the Keepers sheet; False if already present."""
    value = _normalize(email)
    if value is None:
        raise ValueError("Keeper address must not be empty")
    with workbook.atomic():
        if not workbook.has_sheet(KEEPERS_SHEET):
            workbook.ensure_sheet(KEEPERS_SHEET)
            workbook.write_range(KEEPERS_SHEET, 1, 1, [KEEPER_HEADERS])
            workbook.freeze_rows(KEEPERS_SHEET, 1)
        if value in list_keepers(workbook):
            return False
        workbook.write_range(KEEPERS_SHEET, workbook.last_row(KEEPERS_SHEET) + 1, 1, [[value]])
    return True


def remove_keeper(workbook: Workbook, email: str) -> bool:
    value = _normalize(email)
    if value is None or not workbook.has_sheet(KEEPERS_SHEET):
        return False
    rows = workbook.read_rows(KEEPERS_SHEET, 1, 1)
    for offset, row in enumerate(rows):
        if _normalize(row[0]) == value:
            workbook.delete_row(KEEPERS_SHEET, offset + 1)
            return True
    return False
