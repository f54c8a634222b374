"""Sync orchestration for PushClient.

Owns:
- the `SyncState` (dirty / in-flight / retry bookkeeping) and its persistence
- the queue of one-shot facts that ride along with the next snapshot
- the single in-flight send and the coalesced follow-up sync
- handing retryable failures to the `RetryScheduler`

All methods must be called on the owning event loop; that loop is the single
actor serializing every read and write of the sync state. Sends run as tasks
on the same loop, so mutations are never blocked behind the network, while the
``in_flight`` flag keeps at most one send outstanding.
"""

from __future__ import annotations

import asyncio
import logging
import random
from collections.abc import Callable
from datetime import datetime

from pymobilepush._api.registration import SyncTransport
from pymobilepush._client.retry import RetryScheduler
from pymobilepush._constants import KEY_LAST_SYNCED, KEY_PENDING_FACTS, KEY_SYNC_STATE
from pymobilepush.exceptions import PushPermanentSyncError, PushRetryableSyncError
from pymobilepush.models._base import utcnow
from pymobilepush.models.sync import SyncAck, SyncFact, SyncSnapshot, SyncState, SyncTrigger
from pymobilepush.state.policy import failure_key
from pymobilepush.state.store import PersistentStateStore

_logger = logging.getLogger(__name__)


class SyncCoordinator:
    def __init__(
        self,
        *,
        loop: asyncio.AbstractEventLoop,
        store: PersistentStateStore,
        transport: SyncTransport,
        compose: Callable[[tuple[SyncFact, ...]], SyncSnapshot],
        base_delay: float,
        max_delay: float,
        jitter: float = 0.0,
        rng: random.Random | None = None,
        max_pending_facts: int = 100,
        on_fatal_error: Callable[[PushPermanentSyncError], None] | None = None,
        on_synced: Callable[[SyncSnapshot], None] | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._loop = loop
        self._store = store
        self._transport = transport
        self._compose = compose
        self._on_fatal_error = on_fatal_error
        self._on_synced = on_synced
        self._clock = clock
        self._max_pending_facts = max_pending_facts
        self._retry = RetryScheduler(
            loop=loop,
            callback=self._on_retry_due,
            base_delay=base_delay,
            max_delay=max_delay,
            jitter=jitter,
            rng=rng,
        )

        self._state = self._load_state()
        self._facts: list[SyncFact] = self._load_facts()
        self._trim_facts()
        # Facts handed to the current send; removed by identity once it succeeds.
        self._sending: tuple[SyncFact, ...] = ()
        self._resync_needed = False
        self._suspended = False
        self._last_fatal: tuple[str, int | None, str] | None = None
        self._task: asyncio.Task[None] | None = None

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def _load_state(self) -> SyncState:
        raw = self._store.get(KEY_SYNC_STATE)
        state = SyncState.model_validate(raw) if isinstance(raw, dict) else SyncState()
        if state.in_flight:
            # The process died mid-send; nothing was confirmed.
            state.in_flight = False
            state.dirty = True
        return state

    def _load_facts(self) -> list[SyncFact]:
        raw = self._store.get(KEY_PENDING_FACTS)
        if not isinstance(raw, list):
            return []
        return [SyncFact.model_validate(item) for item in raw if isinstance(item, dict)]

    def _persist_state(self) -> None:
        self._store.set(KEY_SYNC_STATE, self._state.model_dump(mode="json"))

    def _persist_facts(self) -> None:
        self._store.set(KEY_PENDING_FACTS, [fact.model_dump(mode="json") for fact in self._facts])

    def _trim_facts(self) -> None:
        """Bound the fact queue, dropping the oldest analytic facts first."""
        excess = len(self._facts) - self._max_pending_facts
        if excess <= 0:
            return
        analytic = [fact for fact in self._facts if fact.is_analytic]
        dropped = {id(fact) for fact in analytic[:excess]}
        kept = [fact for fact in self._facts if id(fact) not in dropped]
        if len(kept) > self._max_pending_facts:
            kept = kept[len(kept) - self._max_pending_facts :]
        _logger.warning("Pending fact queue full; dropped %d oldest facts", len(self._facts) - len(kept))
        self._facts = kept

    # ------------------------------------------------------------------
    # Observers
    # ------------------------------------------------------------------

    @property
    def state(self) -> SyncState:
        """Copy of the current sync state."""
        return self._state.model_copy()

    @property
    def pending_facts(self) -> tuple[SyncFact, ...]:
        return tuple(self._facts)

    @property
    def retry_scheduler(self) -> RetryScheduler:
        return self._retry

    @property
    def suspended(self) -> bool:
        """True after a permanent failure, until the next explicit trigger."""
        return self._suspended

    def last_synced_snapshot(self) -> SyncSnapshot | None:
        raw = self._store.get(KEY_LAST_SYNCED)
        if not isinstance(raw, dict):
            return None
        return SyncSnapshot.model_validate(raw)

    # ------------------------------------------------------------------
    # Inputs
    # ------------------------------------------------------------------

    def mark_dirty(self, trigger: SyncTrigger = SyncTrigger.MUTATION) -> None:
        """Record a local state change and request a sync."""
        self._state.dirty = True
        self._persist_state()
        self.request_sync(trigger)

    def queue_fact(self, fact: SyncFact, *, trigger: SyncTrigger | None = None) -> None:
        """Queue a one-shot fact for the next snapshot.

        With ``trigger`` set a sync is requested right away; otherwise the
        fact waits for the next sync requested by anything else.
        """
        self._facts.append(fact)
        self._trim_facts()
        self._persist_facts()
        if trigger is not None:
            self.request_sync(trigger)

    def request_sync(self, trigger: SyncTrigger = SyncTrigger.MANUAL) -> bool:
        """Start a sync if one is needed. Returns True if a send was started."""
        self._retry.cancel()

        if self._state.in_flight:
            # Coalesce: any number of requests during a send yields one follow-up.
            self._resync_needed = True
            _logger.debug("Sync in flight; follow-up requested (trigger=%s)", trigger)
            return False

        if self._suspended:
            if not trigger.is_explicit:
                _logger.debug("Sync suspended after permanent failure; ignoring trigger=%s", trigger)
                return False
            _logger.debug("Resuming suspended sync (trigger=%s)", trigger)
            self._suspended = False

        if not self._state.dirty and not self._facts:
            return False

        self._sending = tuple(self._facts)
        snapshot = self._compose(self._sending)
        self._state.in_flight = True
        self._state.dirty = False
        self._state.last_attempt = self._clock()
        self._persist_state()

        _logger.debug(
            "Starting sync trigger=%s facts=%d retry_count=%d",
            trigger,
            len(snapshot.facts),
            self._state.retry_count,
        )
        self._task = self._loop.create_task(self._send(snapshot))
        return True

    async def wait_idle(self) -> None:
        """Wait until no send is in flight (including coalesced follow-ups).

        Scheduled retries are not waited for.
        """
        while self._task is not None and not self._task.done():
            # Shield: a cancelled waiter must not cancel the send itself.
            await asyncio.shield(self._task)

    def close(self) -> None:
        """Drop any scheduled retry and flush the state."""
        self._retry.cancel()
        self._persist_state()
        self._persist_facts()

    # ------------------------------------------------------------------
    # Send + outcome handling
    # ------------------------------------------------------------------

    def _on_retry_due(self) -> None:
        self.request_sync(SyncTrigger.RETRY)

    async def _send(self, snapshot: SyncSnapshot) -> None:
        try:
            ack = await self._transport.send(snapshot)
        except PushPermanentSyncError as exc:
            self._handle_permanent_failure(exc)
            return
        except PushRetryableSyncError as exc:
            self._handle_retryable_failure(exc)
            return
        except asyncio.CancelledError:
            self._sending = ()
            self._state.in_flight = False
            self._state.dirty = True
            self._persist_state()
            raise
        except Exception as exc:
            _logger.exception("Unexpected error from sync transport; treating as retryable")
            self._handle_retryable_failure(exc)
            return
        self._handle_success(snapshot, ack)

    def _handle_success(self, snapshot: SyncSnapshot, ack: SyncAck) -> None:
        delivered = {id(fact) for fact in self._sending}
        self._facts = [fact for fact in self._facts if id(fact) not in delivered]
        self._sending = ()

        self._state.in_flight = False
        self._state.last_success = self._clock()
        self._state.retry_count = 0
        self._state.last_error = None
        self._last_fatal = None

        self._store.set(KEY_LAST_SYNCED, snapshot.model_dump(mode="json"))
        self._persist_facts()
        self._persist_state()
        _logger.debug("Sync succeeded status=%s", ack.status_code)
        if ack.dropped_facts:
            _logger.warning("Server rejected %d analytic facts; they were dropped", ack.dropped_facts)

        if self._on_synced is not None:
            try:
                self._on_synced(snapshot)
            except Exception:
                _logger.debug("on_synced callback failed", exc_info=True)

        if self._resync_needed:
            self._resync_needed = False
            self.request_sync(SyncTrigger.FOLLOW_UP)

    def _handle_retryable_failure(self, exc: Exception) -> None:
        self._sending = ()
        self._state.in_flight = False
        self._state.retry_count += 1
        self._state.dirty = True
        self._state.last_error = str(exc)
        # The scheduled retry carries every mutation made during the send.
        self._resync_needed = False
        self._persist_state()

        delay = self._retry.schedule(self._state.retry_count)
        _logger.warning(
            "Sync failed (attempt %d), retrying in %.1fs: %s",
            self._state.retry_count,
            delay,
            exc,
        )

    def _handle_permanent_failure(self, exc: PushPermanentSyncError) -> None:
        self._sending = ()
        self._state.in_flight = False
        # Keep the undelivered state; it goes out on the next explicit trigger.
        self._state.dirty = True
        self._state.last_error = str(exc)
        self._resync_needed = False
        self._suspended = True
        self._persist_state()

        key = failure_key(exc)
        if key == self._last_fatal:
            _logger.debug("Permanent sync failure repeated: %s", exc)
            return
        self._last_fatal = key
        _logger.error("Permanent sync failure; automatic sync suspended: %s", exc)
        if self._on_fatal_error is not None:
            try:
                self._on_fatal_error(exc)
            except Exception:
                _logger.debug("on_fatal_error callback failed", exc_info=True)
