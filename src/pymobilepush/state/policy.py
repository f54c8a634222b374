"""Retry and failure-classification policy.

Pure functions only; the coordinator and scheduler own the side effects.
"""

from __future__ import annotations

import random

from pymobilepush._constants import AUTH_STATUS_CODES, RETRYABLE_STATUS_CODES
from pymobilepush.exceptions import (
    PushAuthenticationError,
    PushPermanentSyncError,
    PushRetryableSyncError,
    PushSyncError,
    PushTransportError,
)


def backoff_delay(
    attempt: int,
    *,
    base_delay: float,
    max_delay: float,
    jitter: float = 0.0,
    rng: random.Random | None = None,
) -> float:
    """Capped exponential backoff for retry *attempt* (1-based).

    The un-jittered delay is ``base_delay * 2 ** (attempt - 1)`` capped at
    ``max_delay``. Jitter adds up to ``jitter * delay`` and is capped at
    ``max_delay`` too; with ``0 <= jitter <= 1`` the result never decreases
    as *attempt* grows.
    """
    if attempt < 1:
        raise ValueError(f"attempt must be >= 1, got {attempt}")
    if not 0.0 <= jitter <= 1.0:
        raise ValueError(f"jitter must be between 0 and 1, got {jitter}")

    # Past this exponent the delay is capped anyway; avoids huge floats.
    exponent = min(attempt - 1, 62)
    delay = min(max_delay, base_delay * (2**exponent))
    if jitter and delay < max_delay:
        source = rng or random
        delay = min(max_delay, delay + source.uniform(0.0, jitter * delay))
    return delay


def classify_transport_error(exc: PushTransportError) -> PushSyncError:
    """Map an HTTP-level failure to a retryable or permanent sync error.

    Policy:
    - no status (network unreachable, timeout, bad body): retryable
    - 408 / 425 / 429 and any 5xx: retryable
    - 401 / 403: authentication (permanent)
    - any other 4xx: permanent
    """
    status = exc.status_code
    message = str(exc)
    if status is None or status in RETRYABLE_STATUS_CODES or status >= 500:
        return PushRetryableSyncError(message, status_code=status, endpoint=exc.endpoint)
    if status in AUTH_STATUS_CODES:
        return PushAuthenticationError(message, status_code=status, endpoint=exc.endpoint)
    return PushPermanentSyncError(message, status_code=status, endpoint=exc.endpoint)


def failure_key(exc: BaseException) -> tuple[str, int | None, str]:
    """Identity of a failure, used to surface each distinct permanent error once."""
    status = getattr(exc, "status_code", None)
    return (type(exc).__name__, status, str(exc))
