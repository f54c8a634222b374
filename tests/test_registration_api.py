from __future__ import annotations

from collections.abc import Mapping
from datetime import UTC, datetime
from typing import Any

import aiohttp
import pytest
from _helpers import make_config
from aiohttp import test_utils, web

from pymobilepush._api.registration import RegistrationApi, build_analytics_body, build_registration_body
from pymobilepush._constants import ANALYTICS_ENDPOINT, REGISTRATION_ENDPOINT
from pymobilepush._transport import HttpTransport
from pymobilepush.client import PushClient
from pymobilepush.exceptions import (
    PushAuthenticationError,
    PushPermanentSyncError,
    PushRetryableSyncError,
    PushTransportError,
)
from pymobilepush.models.sync import FactKind, SyncFact, SyncSnapshot
from pymobilepush.state.store import MemoryStateStore

_AT = datetime(2026, 1, 1, tzinfo=UTC)


class _RecordingTransport:
    def __init__(self, *, fail_on: str | None = None, status_code: int | None = None) -> None:
        self.calls: list[tuple[str, dict[str, Any]]] = []
        self._fail_on = fail_on
        self._status_code = status_code

    async def post_json(self, endpoint: str, body: Mapping[str, Any]) -> dict[str, Any]:
        self.calls.append((endpoint, dict(body)))
        if endpoint == self._fail_on:
            raise PushTransportError(f"HTTP {self._status_code}", status_code=self._status_code, endpoint=endpoint)
        return {"ok": True}


def _snapshot(*facts: SyncFact) -> SyncSnapshot:
    return SyncSnapshot(
        device_id="DEVICE-1",
        token="aabb",
        push_enabled=True,
        subscriber_key="user@example.com",
        tags=frozenset({"vip", "beta"}),
        attributes={"plan": "gold", "city": "Indy"},
        facts=facts,
        platform="iPhone OS",
        composed_at=_AT,
    )


def test_registration_body_carries_full_state() -> None:
    body = build_registration_body(make_config(), _snapshot())

    assert body["deviceID"] == "DEVICE-1"
    assert body["device_Token"] == "aabb"
    assert body["etAppId"] == "app-123"
    assert body["subscriberKey"] == "user@example.com"
    assert body["tags"] == ["beta", "vip"]
    assert body["attributes"] == [{"key": "city", "value": "Indy"}, {"key": "plan", "value": "gold"}]
    assert body["push_Enabled"] is True
    assert "badge" not in body


def test_badge_reset_fact_zeroes_badge() -> None:
    body = build_registration_body(make_config(), _snapshot(SyncFact(kind=FactKind.BADGE_RESET, occurred_at=_AT)))
    assert body["badge"] == 0


def test_analytics_body_only_for_analytic_facts() -> None:
    config = make_config()
    assert build_analytics_body(config, _snapshot(SyncFact(kind=FactKind.PUSH_DISABLED, occurred_at=_AT))) is None

    body = build_analytics_body(
        config,
        _snapshot(
            SyncFact(kind=FactKind.MESSAGE_RECEIVED, occurred_at=_AT, message_id="MSG-1"),
            SyncFact(kind=FactKind.BADGE_RESET, occurred_at=_AT),
            SyncFact(kind=FactKind.TIME_IN_APP, occurred_at=_AT, data={"seconds": 12.5}),
        ),
    )
    assert body is not None
    assert [event["analyticType"] for event in body["events"]] == ["message_received", "time_in_app"]
    assert body["events"][0]["objectIds"] == ["MSG-1"]
    assert body["events"][1]["value"] == {"seconds": 12.5}


@pytest.mark.asyncio
async def test_send_posts_registration_then_analytics() -> None:
    transport = _RecordingTransport()
    api = RegistrationApi(make_config(), transport)

    ack = await api.send(_snapshot(SyncFact(kind=FactKind.APP_OPEN, occurred_at=_AT)))

    assert [endpoint for endpoint, _ in transport.calls] == [REGISTRATION_ENDPOINT, ANALYTICS_ENDPOINT]
    assert ack.raw == {"ok": True}


@pytest.mark.asyncio
async def test_send_without_analytic_facts_posts_registration_only() -> None:
    transport = _RecordingTransport()
    await RegistrationApi(make_config(), transport).send(_snapshot())
    assert [endpoint for endpoint, _ in transport.calls] == [REGISTRATION_ENDPOINT]


@pytest.mark.parametrize(
    ("status", "expected"),
    [
        (None, PushRetryableSyncError),
        (503, PushRetryableSyncError),
        (429, PushRetryableSyncError),
        (401, PushAuthenticationError),
        (400, PushPermanentSyncError),
    ],
)
@pytest.mark.asyncio
async def test_send_classifies_transport_failures(status: int | None, expected: type[Exception]) -> None:
    api = RegistrationApi(make_config(), _RecordingTransport(fail_on=REGISTRATION_ENDPOINT, status_code=status))
    with pytest.raises(expected) as info:
        await api.send(_snapshot())
    assert isinstance(info.value.__cause__, PushTransportError)


@pytest.mark.parametrize(("status", "expected"), [(502, PushRetryableSyncError), (401, PushAuthenticationError)])
@pytest.mark.asyncio
async def test_analytics_failure_fails_the_whole_sync(status: int, expected: type[Exception]) -> None:
    transport = _RecordingTransport(fail_on=ANALYTICS_ENDPOINT, status_code=status)
    api = RegistrationApi(make_config(), transport)
    with pytest.raises(expected):
        await api.send(_snapshot(SyncFact(kind=FactKind.APP_OPEN, occurred_at=_AT)))


@pytest.mark.asyncio
async def test_rejected_analytics_batch_is_dropped_not_failed() -> None:
    transport = _RecordingTransport(fail_on=ANALYTICS_ENDPOINT, status_code=400)
    api = RegistrationApi(make_config(), transport)

    ack = await api.send(
        _snapshot(
            SyncFact(kind=FactKind.APP_OPEN, occurred_at=_AT),
            SyncFact(kind=FactKind.MESSAGE_RECEIVED, occurred_at=_AT, message_id="MSG-1"),
            SyncFact(kind=FactKind.BADGE_RESET, occurred_at=_AT),
        )
    )

    assert [endpoint for endpoint, _ in transport.calls] == [REGISTRATION_ENDPOINT, ANALYTICS_ENDPOINT]
    assert ack.dropped_facts == 2
    assert ack.raw == {"ok": True}


@pytest.mark.asyncio
async def test_rejected_analytics_facts_do_not_block_registration() -> None:
    transport = _RecordingTransport(fail_on=ANALYTICS_ENDPOINT, status_code=400)
    config = make_config()
    async with PushClient(
        config, store=MemoryStateStore(), sync_transport=RegistrationApi(config, transport)
    ) as push_client:
        push_client.handle_notification({"aps": {"alert": "Hi"}, "_m": "MSG-1"}, "background")
        push_client.register_token(bytes.fromhex("aa" * 32))
        await push_client.wait_for_sync()

        assert push_client.sync_state.dirty is False
        assert push_client._coordinator.pending_facts == ()  # type: ignore[union-attr]  # noqa: SLF001

        push_client.add_tag("vip")
        await push_client.wait_for_sync()

    endpoints = [endpoint for endpoint, _ in transport.calls]
    assert endpoints == [REGISTRATION_ENDPOINT, ANALYTICS_ENDPOINT, REGISTRATION_ENDPOINT]
    assert transport.calls[2][1]["tags"] == ["vip"]


class TestHttpTransport:
    @staticmethod
    async def _serve(handler: Any) -> test_utils.TestServer:
        app = web.Application()
        app.router.add_post(REGISTRATION_ENDPOINT, handler)
        server = test_utils.TestServer(app)
        await server.start_server()
        return server

    @pytest.mark.asyncio
    async def test_posts_json_with_bearer_token(self) -> None:
        seen: dict[str, Any] = {}

        async def handler(request: web.Request) -> web.Response:
            seen["auth"] = request.headers.get("Authorization")
            seen["body"] = await request.json()
            return web.json_response({"deviceID": "DEVICE-1"})

        server = await self._serve(handler)
        try:
            config = make_config(base_url=f"http://{server.host}:{server.port}")
            async with aiohttp.ClientSession() as session:
                result = await HttpTransport(config, session).post_json(REGISTRATION_ENDPOINT, {"deviceID": "X"})
        finally:
            await server.close()

        assert result == {"deviceID": "DEVICE-1"}
        assert seen == {"auth": "Bearer access-token-1", "body": {"deviceID": "X"}}

    @pytest.mark.asyncio
    async def test_error_status_is_reported(self) -> None:
        async def handler(request: web.Request) -> web.Response:
            return web.Response(status=503, text="maintenance")

        server = await self._serve(handler)
        try:
            config = make_config(base_url=f"http://{server.host}:{server.port}")
            async with aiohttp.ClientSession() as session:
                with pytest.raises(PushTransportError) as info:
                    await HttpTransport(config, session).post_json(REGISTRATION_ENDPOINT, {})
        finally:
            await server.close()

        assert info.value.status_code == 503
        assert info.value.endpoint == REGISTRATION_ENDPOINT

    @pytest.mark.asyncio
    async def test_empty_success_body_decodes_to_empty_dict(self) -> None:
        async def handler(request: web.Request) -> web.Response:
            return web.Response(status=204)

        server = await self._serve(handler)
        try:
            config = make_config(base_url=f"http://{server.host}:{server.port}")
            async with aiohttp.ClientSession() as session:
                assert await HttpTransport(config, session).post_json(REGISTRATION_ENDPOINT, {}) == {}
        finally:
            await server.close()
