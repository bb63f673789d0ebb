"""Shared fixtures for tests."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from gmail_sender_sweep.headers import parse_from_header
from gmail_sender_sweep.models import ItemDetail, Page
from gmail_sender_sweep.workbook import Workbook

OWNER = "me@example.com"


def day(n: int, hour: int = 12) -> datetime:
    return datetime(2024, 1, n, hour, tzinfo=timezone.utc)


class FakeMailStore:
    """Deterministic in-memory mailbox.

    ``items`` maps item id -> (From header, date), in listing order.  Page
    tokens are stringified offsets, like a cursor into that order.
    """

    def __init__(self, items: dict[str, tuple[str, datetime | None]], owner: str = OWNER) -> None:
        self.items = dict(items)
        self.owner = owner
        self.removed: set[str] = set()
        self.list_calls: list[tuple[str, str | None, int]] = []
        self.detail_calls: list[str] = []
        self.trashed: list[str] = []
        self.deleted: list[str] = []
        self.fail_details: set[str] = set()
        self.fail_mutations: set[str] = set()
        self.fail_queries: set[str] = set()
        self.fail_list_call: int | None = None  # 1-based list call that raises
        self.interrupt_on_detail: int | None = None  # 1-based detail call that aborts

    def _matches(self, item_id: str, query: str) -> bool:
        if not query:
            return True
        if query.startswith("from:"):
            return parse_from_header(self.items[item_id][0]).email == query[len("from:"):]
        raise AssertionError(f"unsupported query {query!r}")

    def list_page(self, query: str, page_token: str | None, page_size: int) -> Page:
        self.list_calls.append((query, page_token, page_size))
        if self.fail_list_call == len(self.list_calls) or query in self.fail_queries:
            raise RuntimeError("backend unavailable")
        ids = [i for i in self.items if i not in self.removed and self._matches(i, query)]
        start = int(page_token) if page_token else 0
        end = start + page_size
        return Page(items=ids[start:end], next_page_token=str(end) if end < len(ids) else None)

    def get_detail(self, item_id: str) -> ItemDetail:
        self.detail_calls.append(item_id)
        if self.interrupt_on_detail == len(self.detail_calls):
            raise KeyboardInterrupt
        if item_id in self.fail_details:
            raise RuntimeError(f"cannot load {item_id}")
        sender, date = self.items[item_id]
        return ItemDetail(sender=sender, date=date)

    def _mutate(self, item_id: str, log: list[str]) -> None:
        if item_id in self.fail_mutations:
            raise RuntimeError(f"cannot change {item_id}")
        self.removed.add(item_id)
        log.append(item_id)

    def trash(self, item_id: str) -> None:
        self._mutate(item_id, self.trashed)

    def delete(self, item_id: str) -> None:
        self._mutate(item_id, self.deleted)

    def owner_address(self) -> str:
        return self.owner


class FakeClock:
    """Monotonic clock that moves ``step`` seconds each time it is read."""

    def __init__(self, step: float = 0.0) -> None:
        self.now = 0.0
        self.step = step

    def __call__(self) -> float:
        value = self.now
        self.now += self.step
        return value


def make_mailbox(count: int = 40) -> dict[str, tuple[str, datetime | None]]:
    """Mailbox mixing repeat senders, the owner, a keeper and junk headers."""
    senders = [
        '"Alice Smith" <alice@example.com>',
        "Bob Jones <BOB@Example.com>",
        "<carol@example.org>",
        "dave@example.net",
        f"Me Myself <{OWNER}>",
        "Keeper <keep@example.com>",
        "Alice S. <alice@example.com>",
        "undisclosed-recipients:;",
    ]
    items = {}
    for i in range(count):
        items[f"t{i:03d}"] = (senders[i % len(senders)], day(1 + i % 28, hour=i % 24))
    return items


@pytest.fixture
def workbook(tmp_path):
    with Workbook(tmp_path / "workbook.db") as wb:
        yield wb


@pytest.fixture
def mailbox():
    return make_mailbox()


@pytest.fixture
def mail(mailbox):
    return FakeMailStore(mailbox)
