"""Backoff timer for failed syncs.

At most one retry is pending at any time. The timer is an event-loop
``call_later`` handle, so the callback always runs on the loop that owns
the coordinator state.
"""

from __future__ import annotations

import asyncio
import logging
import random
from collections.abc import Callable

from pymobilepush.state.policy import backoff_delay

_logger = logging.getLogger(__name__)


class RetryScheduler:
    def __init__(
        self,
        *,
        loop: asyncio.AbstractEventLoop,
        callback: Callable[[], None],
        base_delay: float,
        max_delay: float,
        jitter: float = 0.0,
        rng: random.Random | None = None,
    ) -> None:
        self._loop = loop
        self._callback = callback
        self._base_delay = base_delay
        self._max_delay = max_delay
        self._jitter = jitter
        self._rng = rng or random.Random()
        self._handle: asyncio.TimerHandle | None = None
        self._last_delay: float | None = None

    @property
    def pending(self) -> bool:
        """Whether a retry is currently scheduled."""
        return self._handle is not None

    @property
    def last_delay(self) -> float | None:
        """Delay in seconds used by the most recent ``schedule`` call."""
        return self._last_delay

    def delay_for(self, attempt: int) -> float:
        return backoff_delay(
            attempt,
            base_delay=self._base_delay,
            max_delay=self._max_delay,
            jitter=self._jitter,
            rng=self._rng,
        )

    def schedule(self, attempt: int) -> float:
        """Arrange a single future callback for retry *attempt*.

        Replaces any retry that is already pending. Returns the delay.
        """
        self.cancel()
        delay = self.delay_for(attempt)
        self._last_delay = delay
        self._handle = self._loop.call_later(delay, self._fire)
        _logger.debug("Sync retry %d scheduled in %.2fs", attempt, delay)
        return delay

    def cancel(self) -> bool:
        """Drop the pending retry. Returns True if one was pending."""
        handle = self._handle
        self._handle = None
        if handle is None:
            return False
        handle.cancel()
        _logger.debug("Pending sync retry cancelled")
        return True

    def _fire(self) -> None:
        self._handle = None
        self._callback()
