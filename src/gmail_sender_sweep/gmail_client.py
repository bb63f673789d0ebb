"""Gmail API access for listing, inspecting and removing threads or messages."""

from __future__ import annotations

from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Protocol

from googleapiclient.errors import HttpError
from tenacity import retry, retry_if_exception, stop_after_attempt, wait_exponential

from gmail_sender_sweep.constants import DETAIL_HEADERS, UNITS
from gmail_sender_sweep.models import ItemDetail, Page


class MailStore(Protocol):
    """What the scanner and cleaner need from a mailbox."""

    def list_page(self, query: str, page_token: str | None, page_size: int) -> Page: ...

    def get_detail(self, item_id: str) -> ItemDetail: ...

    def trash(self, item_id: str) -> None: ...

    def delete(self, item_id: str) -> None: ...

    def owner_address(self) -> str: ...


def _is_retryable_http_error(exc: BaseException) -> bool:
    return isinstance(exc, HttpError) and exc.resp.status in (429, 500, 503)


@retry(
    retry=retry_if_exception(_is_retryable_http_error),
    wait=wait_exponential(multiplier=1, min=1, max=60),
    stop=stop_after_attempt(5),
    reraise=True,
)
def _execute(request) -> dict:
    return request.execute()


def _header_date(value: str) -> datetime | None:
    if not value:
        return None
    try:
        parsed = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _message_date(message: dict) -> datetime | None:
    internal = message.get("internalDate")
    if internal:
        try:
            return datetime.fromtimestamp(int(internal) / 1000, tz=timezone.utc)
        except (TypeError, ValueError, OverflowError):
            pass
    return _header_date(_headers(message).get("date", ""))


def _headers(message: dict) -> dict[str, str]:
    return {
        h["name"].lower(): h["value"]
        for h in message.get("payload", {}).get("headers", [])
    }


class GmailStore:
    """MailStore over the Gmail API, counting either threads or messages."""

    def __init__(self, service, unit: str = "threads") -> None:
        if unit not in UNITS:
            raise ValueError(f"unit must be one of {UNITS}, got {unit!r}")
        self.service = service
        self.unit = unit

    def _resource(self):
        users = self.service.users()
        return users.threads() if self.unit == "threads" else users.messages()

    def list_page(self, query: str, page_token: str | None, page_size: int) -> Page:
        kwargs: dict = {
            "userId": "me",
            "maxResults": page_size,
            "fields": f"{self.unit}/id,nextPageToken",
        }
        if query:
            kwargs["q"] = query
        if page_token:
            kwargs["pageToken"] = page_token

        resp = _execute(self._resource().list(**kwargs))
        return Page(
            items=[item["id"] for item in resp.get(self.unit, [])],
            next_page_token=resp.get("nextPageToken"),
        )

    def get_detail(self, item_id: str) -> ItemDetail:
        """Fetch only the From and Date headers of one item.

        For a thread the sender is taken from its first message and the date
        from its most recent one.
        """
        resp = _execute(
            self._resource().get(
                userId="me",
                id=item_id,
                format="metadata",
                metadataHeaders=DETAIL_HEADERS,
            )
        )
        if self.unit == "threads":
            messages = resp.get("messages", [])
            if not messages:
                return ItemDetail(sender="")
            first, last = messages[0], messages[-1]
        else:
            first = last = resp
        return ItemDetail(sender=_headers(first).get("from", ""), date=_message_date(last))

    def trash(self, item_id: str) -> None:
        _execute(self._resource().trash(userId="me", id=item_id))

    def delete(self, item_id: str) -> None:
        _execute(self._resource().delete(userId="me", id=item_id))

    def owner_address(self) -> str:
        profile = _execute(self.service.users().getProfile(userId="me"))
        return profile["emailAddress"]
