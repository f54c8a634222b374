"""Registration and analytics endpoints.

Endpoints:
  - /device/v1/registration      (upsert device token, identity, tags, attributes)
  - /device/v1/event/analytic    (analytic facts: message received, app open, time in app)

`RegistrationApi` is the production `SyncTransport`: one logical sync is a
registration upsert followed, when the snapshot carries analytic facts, by
an analytics post. The registration upsert is idempotent so a retried sync
may safely repeat it. An analytics batch the server refuses outright is
dropped rather than failing a registration that already landed.
"""

from __future__ import annotations

import logging
from typing import Any, Protocol

from pymobilepush._constants import ANALYTICS_ENDPOINT, REGISTRATION_ENDPOINT, SDK_VERSION
from pymobilepush._redact import redact_for_log
from pymobilepush._transport import Transport
from pymobilepush.config import PushConfig
from pymobilepush.exceptions import PushAuthenticationError, PushRetryableSyncError, PushTransportError
from pymobilepush.models.sync import FactKind, SyncAck, SyncSnapshot
from pymobilepush.state.policy import classify_transport_error

_logger = logging.getLogger(__name__)


class SyncTransport(Protocol):
    """Performs one logical "push state to server" exchange.

    Returns a `SyncAck` on success and raises `PushRetryableSyncError` or
    `PushPermanentSyncError` on failure.
    """

    async def send(self, snapshot: SyncSnapshot) -> SyncAck:
        ...


def build_registration_body(config: PushConfig, snapshot: SyncSnapshot) -> dict[str, Any]:
    """Build the registration upsert body for *snapshot*."""
    body: dict[str, Any] = {
        "deviceID": snapshot.device_id,
        "device_Token": snapshot.token,
        "etAppId": config.app_id,
        "subscriberKey": snapshot.subscriber_key,
        "tags": list(snapshot.tags),
        "attributes": [{"key": key, "value": value} for key, value in sorted(snapshot.attributes.items())],
        "hwid": snapshot.hardware_id,
        "platform": snapshot.platform,
        "platform_Version": snapshot.platform_version,
        "app_Version": snapshot.app_version,
        "sdk_Version": SDK_VERSION,
        "locale": snapshot.locale,
        "timeZone": snapshot.time_zone,
        "push_Enabled": snapshot.push_enabled,
        "location_Enabled": snapshot.location_enabled,
        "cloudPages_Enabled": snapshot.cloud_pages_enabled,
    }
    if snapshot.has_fact(FactKind.BADGE_RESET):
        body["badge"] = 0
    return body


def build_analytics_body(config: PushConfig, snapshot: SyncSnapshot) -> dict[str, Any] | None:
    """Build the analytics body, or ``None`` when the snapshot has no analytic facts."""
    events: list[dict[str, Any]] = []
    for fact in snapshot.facts:
        if not fact.is_analytic:
            continue
        event: dict[str, Any] = {
            "analyticType": fact.kind.value,
            "eventDate": fact.occurred_at.isoformat() if fact.occurred_at else None,
            "objectIds": [fact.message_id] if fact.message_id else [],
        }
        if fact.data:
            event["value"] = fact.data
        events.append(event)

    if not events:
        return None
    return {
        "etAppId": config.app_id,
        "deviceID": snapshot.device_id,
        "events": events,
    }


class RegistrationApi:
    """`SyncTransport` over the platform REST API."""

    def __init__(self, config: PushConfig, transport: Transport) -> None:
        self._config = config
        self._transport = transport

    async def send(self, snapshot: SyncSnapshot) -> SyncAck:
        body = build_registration_body(self._config, snapshot)
        _logger.debug("Registration sync device=%s body=%s", snapshot.device_id, redact_for_log(body))
        try:
            response = await self._transport.post_json(REGISTRATION_ENDPOINT, body)
        except PushTransportError as exc:
            raise classify_transport_error(exc) from exc

        dropped = 0
        analytics = build_analytics_body(self._config, snapshot)
        if analytics is not None:
            try:
                await self._transport.post_json(ANALYTICS_ENDPOINT, analytics)
            except PushTransportError as exc:
                error = classify_transport_error(exc)
                if isinstance(error, (PushRetryableSyncError, PushAuthenticationError)):
                    raise error from exc
                # The registration already landed; a rejected batch would block it forever.
                dropped = len(analytics["events"])
                _logger.warning("Analytics batch rejected (status=%s); dropping %d facts", exc.status_code, dropped)

        _logger.debug("Registration sync acknowledged device=%s", snapshot.device_id)
        return SyncAck(raw=response, dropped_facts=dropped)
