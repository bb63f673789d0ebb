"""Tests for sender aggregation rules."""

from conftest import day

from gmail_sender_sweep.models import BulkSummary, SenderOutcome, SenderStore


def test_first_sighting_creates_aggregate():
    store = SenderStore()
    aggregate = store.record("alice@example.com", "Alice", day(3))
    assert aggregate.message_count == 1
    assert aggregate.primary_name == "Alice"
    assert aggregate.last_seen == day(3)
    assert aggregate.name_variations == {"Alice"}
    assert len(store) == 1


def test_sightings_merge_names_and_counts():
    store = SenderStore()
    store.record("alice@example.com", "Alice", day(1))
    store.record("alice@example.com", "Alice Smith", day(2))
    store.record("alice@example.com", None, day(3))

    aggregate = store.get("alice@example.com")
    assert aggregate.message_count == 3
    assert aggregate.name_variations == {"Alice", "Alice Smith"}
    assert len(store) == 1


def test_newer_date_promotes_name():
    store = SenderStore()
    store.record("alice@example.com", "Alice", day(1))
    store.record("alice@example.com", "Alice Smith", day(2))
    assert store.get("alice@example.com").primary_name == "Alice Smith"
    assert store.get("alice@example.com").last_seen == day(2)


def test_equal_date_keeps_name():
    store = SenderStore()
    store.record("alice@example.com", "Alice", day(2))
    store.record("alice@example.com", "Alice Smith", day(2))
    aggregate = store.get("alice@example.com")
    assert aggregate.primary_name == "Alice"
    assert "Alice Smith" in aggregate.name_variations


def test_older_date_keeps_name_and_date():
    store = SenderStore()
    store.record("alice@example.com", "Alice", day(5))
    store.record("alice@example.com", "Old Alice", day(1))
    aggregate = store.get("alice@example.com")
    assert aggregate.primary_name == "Alice"
    assert aggregate.last_seen == day(5)


def test_email_shaped_name_never_promoted():
    store = SenderStore()
    store.record("alice@example.com", "Alice", day(1))
    store.record("alice@example.com", "alice@example.com", day(9))
    aggregate = store.get("alice@example.com")
    assert aggregate.primary_name == "Alice"
    assert aggregate.last_seen == day(9)
    assert "alice@example.com" in aggregate.name_variations


def test_empty_name_keeps_primary_but_moves_date():
    store = SenderStore()
    store.record("alice@example.com", "Alice", day(1))
    store.record("alice@example.com", "   ", day(4))
    aggregate = store.get("alice@example.com")
    assert aggregate.primary_name == "Alice"
    assert aggregate.last_seen == day(4)
    assert aggregate.name_variations == {"Alice"}


def test_undated_sightings():
    store = SenderStore()
    store.record("alice@example.com", "Alice", None)
    store.record("alice@example.com", "Alice Smith", None)
    assert store.get("alice@example.com").primary_name == "Alice"

    store.record("alice@example.com", "Alice B", day(1))
    assert store.get("alice@example.com").primary_name == "Alice B"
    assert store.get("alice@example.com").last_seen == day(1)


def test_sorted_most_recent_first():
    store = SenderStore()
    store.record("old@example.com", "Old", day(1))
    store.record("undated@example.com", "Undated", None)
    store.record("new@example.com", "New", day(9))
    store.record("mid@example.com", "Mid", day(5))
    assert [a.email for a in store.sorted()] == [
        "new@example.com",
        "mid@example.com",
        "old@example.com",
        "undated@example.com",
    ]


def test_bulk_summary_message():
    summary = BulkSummary(
        action="trash",
        outcomes=[
            SenderOutcome(email="a@example.com", processed=150, complete=True),
            SenderOutcome(email="b@example.com", error="quota exceeded"),
        ],
    )
    assert summary.total == 150
    assert summary.message.startswith("Trashed 150 items from 2 senders.")
    assert "b@example.com: error - quota exceeded" in str(summary)


def test_discard():
    store = SenderStore()
    store.record("alice@example.com", "Alice", day(1))
    assert store.discard("alice@example.com")
    assert not store.discard("alice@example.com")
    assert len(store) == 0
