"""Typed errors raised by fetch-side workers."""

from __future__ import annotations


class FetchError(Exception):
    """Raised when a page cannot be retrieved.

    Attributes:
        source: Adapter id of the site being fetched.
        url: The URL that was requested.
        reason: Human-readable error description.
        status_code: HTTP status when one was received.
        retryable: Whether the queue should spend another attempt on the job.
    """

    retryable = False

    def __init__(self, source: str, url: str, reason: str, status_code: int | None = None) -> None:
        self.source = source
        self.url = url
        self.reason = reason
        self.status_code = status_code
        super().__init__(f"[{source}] {url}: {reason}")


class TransientFetchError(FetchError):
    """Timeouts, transport failures and upstream 5xx responses."""

    retryable = True
