"""Parsing of From-style sender headers."""

from __future__ import annotations

import re
from typing import NamedTuple

_QUOTED_RE = re.compile(r'^"([^"]*)"\s*<([^<>]*)>$')
_BARE_NAME_RE = re.compile(r"^([^<>\"]+?)\s*<([^<>]*)>$")
_ADDRESS_ONLY_RE = re.compile(r"^<([^<>]*)>$")
_EMAIL_RE = re.compile(r"^[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}$")


class ParsedSender(NamedTuple):
    name: str | None
    email: str | None


UNPARSEABLE = ParsedSender(None, None)


def _address(raw: str) -> str | None:
    email = raw.strip().lower()
    if "@" not in email:
        return None
    return email


def parse_from_header(raw: str | None) -> ParsedSender:
    """Parse a From header into (display name, normalized email).

    Handles, in this order:
      '"Jane Doe" <Jane@Example.com>' -> ("Jane Doe", "jane@example.com")
      'Jane Doe <jane@example.com>'   -> ("Jane Doe", "jane@example.com")
      '<jane@example.com>'            -> (None, "jane@example.com")
      'jane@example.com'              -> (None, "jane@example.com")

    Anything else, including brackets without an address inside, yields
    ``(None, None)``.
    """
    if not raw or not isinstance(raw, str):
        return UNPARSEABLE
    value = raw.strip()

    for pattern in (_QUOTED_RE, _BARE_NAME_RE):
        m = pattern.match(value)
        if m:
            email = _address(m.group(2))
            if email is None:
                return UNPARSEABLE
            return ParsedSender(m.group(1).strip() or None, email)

    m = _ADDRESS_ONLY_RE.match(value)
    if m:
        email = _address(m.group(1))
        return ParsedSender(None, email) if email else UNPARSEABLE

    if _EMAIL_RE.match(value):
        return ParsedSender(None, value.lower())
    return UNPARSEABLE


def looks_like_email(name: str | None) -> bool:
    """Display names carrying an '@' are addresses, not real names."""
    return bool(name) and "@" in name
