"""Exceptions raised by Gmail Sender Sweep."""


class SweepError(Exception):
    """Base class for errors surfaced to the operator."""


class SetupError(SweepError):
    """A prerequisite (sheet, credentials) is missing."""


class DirectoryNotFoundError(SetupError):
    def __init__(self, path: str = "") -> None:
        where = f" in {path}" if path else ""
        super().__init__(
            f"No sender directory found{where}. Run 'gmail-sender-sweep scan' first."
        )


class ScanInProgressError(SweepError):
    def __init__(self, since: str | None = None) -> None:
        detail = f" (started {since})" if since else ""
        super().__init__(
            f"A scan is already running{detail}. Wait for it to finish, "
            "or run 'gmail-sender-sweep reset --lock' if it crashed."
        )


class PageFetchError(SweepError):
    """Listing a page of results failed; progress was checkpointed first."""

    def __init__(self, processed: int, cause: BaseException) -> None:
        self.processed = processed
        super().__init__(
            f"Fetching the next page failed after {processed} items: {cause}. "
            "Progress was saved, run 'gmail-sender-sweep resume' to continue."
        )
