"""Tests for the persisted sender directory."""

import pytest
from conftest import day

from gmail_sender_sweep.constants import DATE_FORMAT, SENDERS_SHEET
from gmail_sender_sweep.directory import SenderDirectory
from gmail_sender_sweep.errors import DirectoryNotFoundError
from gmail_sender_sweep.models import SenderStore


def _store():
    store = SenderStore()
    store.record("alice@example.com", "Alice", day(2))
    store.record("alice@example.com", "Alice Smith", day(5))
    store.record("bob@example.com", "Bob", day(9))
    store.record("nodate@example.com", None, None)
    return store


def test_save_and_load(workbook):
    """Email, count, date and name variations survive a save/load cycle."""
    directory = SenderDirectory(workbook)
    directory.save(_store())

    loaded = directory.load()
    assert len(loaded) == 3
    alice = loaded.get("alice@example.com")
    assert alice.message_count == 2
    assert alice.last_seen == day(5)
    assert alice.primary_name == "Alice Smith"
    assert alice.name_variations == {"Alice", "Alice Smith"}

    nodate = loaded.get("nodate@example.com")
    assert nodate.last_seen is None
    assert nodate.primary_name == ""


def test_rows_sorted_most_recent_first(workbook):
    SenderDirectory(workbook).save(_store())
    rows = workbook.read_rows(SENDERS_SHEET, 1, 2)
    assert rows[0] == ["Name", "Email"]
    assert [r[1] for r in rows[1:]] == ["bob@example.com", "alice@example.com", "nodate@example.com"]


def test_save_replaces_previous_snapshot(workbook):
    directory = SenderDirectory(workbook)
    directory.save(_store())
    smaller = SenderStore()
    smaller.record("only@example.com", "Only", day(1))
    directory.save(smaller)
    assert [a.email for a in directory.load()] == ["only@example.com"]


def test_presentation(workbook):
    directory = SenderDirectory(workbook)
    directory.save(_store(), status="INCOMPLETE: 4 items scanned")

    info = workbook.sheet_info(SENDERS_SHEET)
    assert info["frozen_rows"] == 1
    assert info["has_filter"] is True
    assert directory.date_format() == DATE_FORMAT
    assert directory.status() == "INCOMPLETE: 4 items scanned"


def test_load_without_sheet(workbook):
    directory = SenderDirectory(workbook)
    assert not directory.exists()
    assert len(directory.load()) == 0
    assert directory.status() is None


def test_remove(workbook):
    directory = SenderDirectory(workbook)
    directory.save(_store())

    assert directory.remove("ALICE@example.com")
    assert not directory.remove("alice@example.com")
    assert [a.email for a in directory.load().sorted()] == ["bob@example.com", "nodate@example.com"]


def test_remove_without_directory(workbook):
    with pytest.raises(DirectoryNotFoundError):
        SenderDirectory(workbook).remove("alice@example.com")


def test_unreadable_date_loads_as_undated(workbook):
    directory = SenderDirectory(workbook)
    directory.save(_store())
    workbook.write_range(SENDERS_SHEET, 2, 3, [["not a date"]])
    bob = directory.load().get("bob@example.com")
    assert bob.last_seen is None
    assert bob.message_count == 1
