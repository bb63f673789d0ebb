"""OAuth helpers: build an authorized Gmail service for the sweep."""

from __future__ import annotations

import logging

from google.auth.exceptions import RefreshError
from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials
from google_auth_oauthlib.flow import InstalledAppFlow
from googleapiclient.discovery import build, Resource

from gmail_sender_sweep.constants import CONFIG_DIR, CREDENTIALS_PATH, SCOPES, TOKEN_PATH
from gmail_sender_sweep.gmail_client import GmailStore

logger = logging.getLogger(__name__)


def _cached_credentials() -> Credentials | None:
    """Return usable credentials from TOKEN_PATH, refreshing them if needed.

    A token that can no longer be refreshed (revoked, or issued for other
    scopes) is treated as missing so the browser flow runs again.
    """
    if not TOKEN_PATH.exists():
        return None
    creds = Credentials.from_authorized_user_file(str(TOKEN_PATH), SCOPES)
    if creds.valid:
        return creds
    if creds.expired and creds.refresh_token:
        try:
            creds.refresh(Request())
        except RefreshError as exc:
            logger.warning("Saved token could not be refreshed, signing in again: %s", exc)
            return None
        return creds
    return None


def _authorize() -> Credentials:
    if not CREDENTIALS_PATH.exists():
        raise FileNotFoundError(
            f"Credentials file not found at {CREDENTIALS_PATH}.\n"
            "Create an OAuth desktop client in the Google Cloud Console "
            "with the Gmail API enabled and save its JSON as:\n"
            f"  {CREDENTIALS_PATH}"
        )
    flow = InstalledAppFlow.from_client_secrets_file(str(CREDENTIALS_PATH), SCOPES)
    return flow.run_local_server(port=0)


def get_gmail_service() -> Resource:
    """Return an authenticated Gmail API service object.

    Scanning only reads metadata, but permanent delete needs the full
    ``https://mail.google.com/`` scope, so a single token covers both.
    """
    CONFIG_DIR.mkdir(parents=True, exist_ok=True)

    creds = _cached_credentials()
    if creds is None:
        creds = _authorize()
        logger.info("Authorized, token saved to %s", TOKEN_PATH)
    TOKEN_PATH.write_text(creds.to_json())
    TOKEN_PATH.chmod(0o600)

    return build("gmail", "v1", credentials=creds, cache_discovery=False)


def get_mail_store(unit: str = "threads") -> GmailStore:
    return GmailStore(get_gmail_service(), unit=unit)


def reset_token() -> bool:
    """Forget the cached token so the next command re-authorizes."""
    if TOKEN_PATH.exists():
        TOKEN_PATH.unlink()
        return True
    return False
