"""Custom exception hierarchy for pymobilepush."""

from __future__ import annotations


class PushError(Exception):
    """Base exception for all pymobilepush errors."""


class PushConfigError(PushError):
    """Invalid or missing configuration."""


class PushValidationError(PushError, ValueError):
    """Rejected input (e.g. empty tag or attribute name).

    Tag and attribute names must contain at least one non-whitespace
    character; a name made only of spaces is rejected like "".
    Raised synchronously to the caller; the rejected call has no side effect.
    """


class PushTransportError(PushError):
    """HTTP-level failure (network, non-2xx, invalid JSON)."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        endpoint: str = "",
    ) -> None:
        self.status_code = status_code
        self.endpoint = endpoint
        super().__init__(message)


class PushSyncError(PushError):
    """A state sync with the push platform failed."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        endpoint: str = "",
    ) -> None:
        self.status_code = status_code
        self.endpoint = endpoint
        super().__init__(message)


class PushRetryableSyncError(PushSyncError):
    """Transient sync failure (network unreachable, 5xx, throttling).

    The coordinator keeps the state dirty and schedules a retry.
    """


class PushPermanentSyncError(PushSyncError):
    """Sync failure that retrying with the same inputs cannot fix.

    Surfaced to the host as a fatal configuration error; automatic retries
    stop until the next mutation or manual sync request.
    """


class PushAuthenticationError(PushPermanentSyncError):
    """Access token or application id rejected by the server (401/403)."""
