"""High-level async client for push registration and state sync."""

from __future__ import annotations

import asyncio
import hashlib
import logging
import random
import uuid
from collections.abc import Callable, Mapping
from datetime import datetime
from typing import Any

import aiohttp

from pymobilepush._api.registration import RegistrationApi, SyncTransport
from pymobilepush._client.coordinator import SyncCoordinator
from pymobilepush._client.identity import IdentityAndAttributeStore
from pymobilepush._client.registration import RegistrationEngine
from pymobilepush._client.router import AlertPresenter, NotificationRouter, OpenDirectDelegate
from pymobilepush._constants import (
    KEY_DEVICE_ID,
    LAUNCH_OPTION_LOCAL_NOTIFICATION,
    LAUNCH_OPTION_REMOTE_NOTIFICATION,
)
from pymobilepush._transport import HttpTransport
from pymobilepush.config import PushConfig
from pymobilepush.exceptions import PushError, PushPermanentSyncError
from pymobilepush.models._base import utcnow
from pymobilepush.models.notification import ApplicationState, PushMessage, RoutingOutcome
from pymobilepush.models.registration import DeviceRegistration
from pymobilepush.models.sync import FactKind, SyncFact, SyncSnapshot, SyncState, SyncTrigger
from pymobilepush.session import Session
from pymobilepush.state.events import LifecycleEvent, LifecycleKind
from pymobilepush.state.store import JsonFileStateStore, MemoryStateStore, PersistentStateStore

_logger = logging.getLogger(__name__)


def _new_device_id() -> str:
    """Random, non-hardware-derived device identifier."""
    return hashlib.md5(uuid.uuid4().bytes, usedforsecurity=False).hexdigest().upper()


class PushClient:
    """Async client for the push registration and sync engine.

    Usage::

        async with PushClient(config) as client:
            client.register_token(token_bytes)
            client.add_tag("vip")
            await client.wait_for_sync()

    Every public method must be called on the event loop that entered the
    client. Platform callbacks arriving on other threads should hop over
    with :meth:`call_soon_threadsafe`.
    """

    def __init__(
        self,
        config: PushConfig,
        *,
        store: PersistentStateStore | None = None,
        sync_transport: SyncTransport | None = None,
        session: aiohttp.ClientSession | None = None,
        alert_presenter: AlertPresenter | None = None,
        url_handler: Callable[[str], None] | None = None,
        open_direct_delegate: OpenDirectDelegate | None = None,
        on_fatal_error: Callable[[PushPermanentSyncError], None] | None = None,
        on_synced: Callable[[SyncSnapshot], None] | None = None,
        clock: Callable[[], datetime] = utcnow,
        rng: random.Random | None = None,
    ) -> None:
        self._config = config
        self._store = store
        self._sync_transport = sync_transport
        self._owns_transport = sync_transport is None
        self._external_session = session is not None
        self._http_session = session
        self._alert_presenter = alert_presenter
        self._url_handler = url_handler
        self._initial_delegate = open_direct_delegate
        self._on_fatal_error = on_fatal_error
        self._on_synced = on_synced
        self._clock = clock
        self._rng = rng

        self._loop: asyncio.AbstractEventLoop | None = None
        self._device_id: str | None = None
        self._coordinator: SyncCoordinator | None = None
        self._registration: RegistrationEngine | None = None
        self._identity: IdentityAndAttributeStore | None = None
        self._router: NotificationRouter | None = None
        self._session = Session(started_at=clock())

    # ------------------------------------------------------------------
    # Lifecycle (init / teardown)
    # ------------------------------------------------------------------

    async def __aenter__(self) -> PushClient:
        await self.start()
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.close()

    async def start(self) -> None:
        """Rehydrate persisted state and wire the engine components."""
        if self._coordinator is not None:
            return
        self._loop = asyncio.get_running_loop()

        if self._store is None:
            if self._config.storage_path:
                self._store = JsonFileStateStore(self._config.storage_path)
            else:
                self._store = MemoryStateStore()
        store = self._store

        if self._sync_transport is None:
            if self._http_session is None:
                self._http_session = aiohttp.ClientSession()
            self._sync_transport = RegistrationApi(self._config, HttpTransport(self._config, self._http_session))

        self._device_id = self._resolve_device_id(store)

        coordinator = SyncCoordinator(
            loop=self._loop,
            store=store,
            transport=self._sync_transport,
            compose=self._compose_snapshot,
            base_delay=self._config.retry_base_delay,
            max_delay=self._config.retry_max_delay,
            jitter=self._config.retry_jitter,
            rng=self._rng,
            max_pending_facts=self._config.max_pending_facts,
            on_fatal_error=self._on_fatal_error,
            on_synced=self._on_synced,
            clock=self._clock,
        )
        self._coordinator = coordinator
        self._registration = RegistrationEngine(
            store,
            on_change=coordinator.mark_dirty,
            on_push_disabled=lambda fact: coordinator.queue_fact(fact, trigger=SyncTrigger.MUTATION),
            clock=self._clock,
        )
        self._identity = IdentityAndAttributeStore(store, on_change=coordinator.mark_dirty)
        self._router = NotificationRouter(
            on_fact=coordinator.queue_fact,
            on_message=self._on_message,
            analytics_enabled=self._config.analytics_enabled,
            show_alert_on_foreground=self._config.show_alert_on_foreground,
            alert_presenter=self._alert_presenter,
            url_handler=self._url_handler,
            clock=self._clock,
        )
        if self._initial_delegate is not None:
            self._router.set_delegate(self._initial_delegate)

        state = coordinator.state
        _logger.debug(
            "Push client started device=%s dirty=%s pending_facts=%d",
            self._device_id,
            state.dirty,
            len(coordinator.pending_facts),
        )

    async def close(self) -> None:
        """Let an in-flight sync finish, drop scheduled retries, release HTTP resources."""
        coordinator = self._coordinator
        if coordinator is not None:
            await coordinator.wait_idle()
            coordinator.close()
        if not self._external_session and self._http_session is not None:
            await self._http_session.close()
            self._http_session = None
        if self._owns_transport:
            # Bound to the session above; start() builds a fresh one.
            self._sync_transport = None
        self._coordinator = None
        self._registration = None
        self._identity = None
        self._router = None
        self._loop = None

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _require_coordinator(self) -> SyncCoordinator:
        if self._coordinator is None:
            raise PushError("Client not started. Use 'async with PushClient(...) as client:'")
        return self._coordinator

    def _require_registration(self) -> RegistrationEngine:
        if self._registration is None:
            raise PushError("Client not started. Use 'async with PushClient(...) as client:'")
        return self._registration

    def _require_identity(self) -> IdentityAndAttributeStore:
        if self._identity is None:
            raise PushError("Client not started. Use 'async with PushClient(...) as client:'")
        return self._identity

    def _require_router(self) -> NotificationRouter:
        if self._router is None:
            raise PushError("Client not started. Use 'async with PushClient(...) as client:'")
        return self._router

    def _resolve_device_id(self, store: PersistentStateStore) -> str:
        if self._config.device.device_id:
            return self._config.device.device_id
        stored = store.get(KEY_DEVICE_ID)
        if isinstance(stored, str) and stored:
            return stored
        device_id = _new_device_id()
        store.set(KEY_DEVICE_ID, device_id)
        return device_id

    def _compose_snapshot(self, facts: tuple[SyncFact, ...]) -> SyncSnapshot:
        registration = self._require_registration().registration
        identity = self._require_identity()
        device = self._config.device
        return SyncSnapshot(
            device_id=self._device_id or "",
            token=registration.token,
            push_enabled=registration.push_enabled,
            subscriber_key=identity.get_subscriber_key(),
            tags=identity.all_tags(),
            attributes=dict(identity.all_attributes()),
            facts=facts,
            hardware_id=device.hardware_id,
            platform=device.platform,
            platform_version=device.platform_version,
            app_version=device.app_version,
            locale=device.locale,
            time_zone=device.time_zone,
            location_enabled=self._config.location_enabled,
            cloud_pages_enabled=self._config.cloud_pages_enabled,
            composed_at=self._clock(),
        )

    def _on_message(self, message: PushMessage) -> None:
        self._session = Session(started_at=self._clock(), current_message_id=message.message_id)

    def call_soon_threadsafe(self, callback: Callable[..., Any], *args: Any) -> None:
        """Schedule ``callback(*args)`` on the client's loop from any thread."""
        if self._loop is None:
            raise PushError("Client not started. Use 'async with PushClient(...) as client:'")
        self._loop.call_soon_threadsafe(callback, *args)

    # ------------------------------------------------------------------
    # Observers
    # ------------------------------------------------------------------

    @property
    def config(self) -> PushConfig:
        return self._config

    @property
    def device_id(self) -> str | None:
        return self._device_id

    @property
    def session(self) -> Session:
        return self._session

    @property
    def sync_state(self) -> SyncState:
        return self._require_coordinator().state

    @property
    def registration(self) -> DeviceRegistration:
        return self._require_registration().registration

    def device_token(self) -> str | None:
        """Hex string of the current device token, if any."""
        return self._require_registration().current_token()

    def last_synced_snapshot(self) -> SyncSnapshot | None:
        return self._require_coordinator().last_synced_snapshot()

    # ------------------------------------------------------------------
    # Token source
    # ------------------------------------------------------------------

    def register_token(self, token: bytes | bytearray | str) -> None:
        """Hand over a token issued by the platform."""
        self._require_registration().on_token_received(token)

    def registration_failed(self, error: BaseException | str) -> None:
        """Report that the platform declined to issue a token."""
        self._require_registration().on_registration_failed(error)

    # ------------------------------------------------------------------
    # Identity, tags and attributes
    # ------------------------------------------------------------------

    def set_subscriber_key(self, key: str | None) -> None:
        self._require_identity().set_subscriber_key(key)

    def subscriber_key(self) -> str | None:
        return self._require_identity().get_subscriber_key()

    def add_tag(self, tag: str) -> None:
        self._require_identity().add_tag(tag)

    def remove_tag(self, tag: str) -> str | None:
        return self._require_identity().remove_tag(tag)

    def all_tags(self) -> frozenset[str]:
        return self._require_identity().all_tags()

    def add_attribute(self, name: str, value: str) -> None:
        self._require_identity().add_attribute(name, value)

    def remove_attribute(self, name: str) -> str | None:
        return self._require_identity().remove_attribute(name)

    def all_attributes(self) -> Mapping[str, str]:
        return self._require_identity().all_attributes()

    # ------------------------------------------------------------------
    # Sync
    # ------------------------------------------------------------------

    def request_sync(self) -> bool:
        """Manually trigger a sync. Returns True if a send was started."""
        return self._require_coordinator().request_sync(SyncTrigger.MANUAL)

    async def wait_for_sync(self) -> None:
        """Wait until no sync is in flight (scheduled retries are not awaited)."""
        await self._require_coordinator().wait_idle()

    def reset_badge_count(self) -> None:
        """Tell the server to zero this device's badge count."""
        self._require_coordinator().queue_fact(
            SyncFact(kind=FactKind.BADGE_RESET, occurred_at=self._clock()),
            trigger=SyncTrigger.MANUAL,
        )

    # ------------------------------------------------------------------
    # Notifications
    # ------------------------------------------------------------------

    def set_alert_on_foreground_push(self, enabled: bool) -> None:
        """Ask the host to present an alert for pushes received in the foreground."""
        self._require_router().set_show_alert_on_foreground(enabled)

    def set_open_direct_delegate(self, delegate: OpenDirectDelegate | None) -> None:
        self._require_router().set_delegate(delegate)

    def open_direct_delegate(self) -> OpenDirectDelegate | None:
        return self._require_router().delegate

    def handle_notification(
        self,
        payload: Mapping[str, Any],
        state: ApplicationState | str,
    ) -> RoutingOutcome:
        """Route a remote notification received in application *state*."""
        message = PushMessage.from_payload(payload)
        return self._require_router().route(message, ApplicationState(state))

    def handle_local_notification(
        self,
        payload: Mapping[str, Any],
        state: ApplicationState | str = ApplicationState.FOREGROUND,
    ) -> RoutingOutcome:
        """Route a local notification; same rules as remote ones."""
        message = PushMessage.from_payload(payload, is_local=True)
        return self._require_router().route(message, ApplicationState(state))

    # ------------------------------------------------------------------
    # Application lifecycle
    # ------------------------------------------------------------------

    def handle_lifecycle(self, event: LifecycleEvent) -> None:
        """Consume one typed lifecycle event."""
        coordinator = self._require_coordinator()

        if event.kind == LifecycleKind.LAUNCHED:
            self._session = Session(started_at=event.observed_at)
            if self._config.analytics_enabled:
                coordinator.queue_fact(SyncFact(kind=FactKind.APP_OPEN, occurred_at=event.observed_at))
            remote = event.options.get(LAUNCH_OPTION_REMOTE_NOTIFICATION)
            if isinstance(remote, Mapping):
                self.handle_notification(remote, ApplicationState.NOT_RUNNING)
            local = event.options.get(LAUNCH_OPTION_LOCAL_NOTIFICATION)
            if isinstance(local, Mapping):
                self.handle_local_notification(local, ApplicationState.NOT_RUNNING)
            coordinator.request_sync(SyncTrigger.LIFECYCLE)
            return

        if event.kind == LifecycleKind.BECAME_ACTIVE:
            coordinator.request_sync(SyncTrigger.LIFECYCLE)
            return

        if event.kind == LifecycleKind.ENTERED_BACKGROUND:
            if self._config.analytics_enabled:
                coordinator.queue_fact(
                    SyncFact(
                        kind=FactKind.TIME_IN_APP,
                        occurred_at=event.observed_at,
                        message_id=self._session.current_message_id,
                        data={"seconds": round(max(0.0, self._session.age(event.observed_at)), 3)},
                    )
                )
            coordinator.request_sync(SyncTrigger.LIFECYCLE)
            return

        if event.kind == LifecycleKind.TERMINATED:
            # In-flight sends are not cancelled; dirty state is already
            # persisted and goes out on the next launch.
            coordinator.close()
            return

    def application_launched(self, options: Mapping[str, Any] | None = None) -> None:
        self.handle_lifecycle(
            LifecycleEvent(kind=LifecycleKind.LAUNCHED, observed_at=self._clock(), options=dict(options or {}))
        )

    def application_became_active(self) -> None:
        self.handle_lifecycle(LifecycleEvent(kind=LifecycleKind.BECAME_ACTIVE, observed_at=self._clock()))

    def application_entered_background(self) -> None:
        self.handle_lifecycle(LifecycleEvent(kind=LifecycleKind.ENTERED_BACKGROUND, observed_at=self._clock()))

    def application_terminated(self) -> None:
        self.handle_lifecycle(LifecycleEvent(kind=LifecycleKind.TERMINATED, observed_at=self._clock()))
