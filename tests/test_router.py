from __future__ import annotations

import pytest
from _helpers import FakeSyncTransport, make_config

from pymobilepush._client.router import NotificationRouter
from pymobilepush.client import PushClient
from pymobilepush.models.notification import ApplicationState, PushMessage, RoutingOutcome
from pymobilepush.models.sync import FactKind, SyncFact
from pymobilepush.state.store import MemoryStateStore

OD_PAYLOAD = {"aps": {"alert": "Flash sale", "badge": 2}, "_m": "MSG-1", "_od": "app://offers/42"}
PLAIN_PAYLOAD = {"aps": {"alert": {"title": "Hello", "body": "World"}}, "_m": "MSG-2"}


class _Delegate:
    def __init__(self) -> None:
        self.delivered: list[str] = []

    def deliver(self, content: str) -> None:
        self.delivered.append(content)


class _ForegroundDelegate(_Delegate):
    def wants_foreground_delivery(self) -> bool:
        return True


class _Presenter:
    def __init__(self) -> None:
        self.messages: list[str] = []

    def present(self, message: str) -> None:
        self.messages.append(message)


class _Harness:
    def __init__(self, *, show_alert: bool = False, analytics: bool = True) -> None:
        self.facts: list[SyncFact] = []
        self.messages: list[PushMessage] = []
        self.urls: list[str] = []
        self.presenter = _Presenter()
        self.router = NotificationRouter(
            on_fact=self.facts.append,
            on_message=self.messages.append,
            analytics_enabled=analytics,
            show_alert_on_foreground=show_alert,
            alert_presenter=self.presenter,
            url_handler=self.urls.append,
        )

    def route(self, payload: dict[str, object], state: ApplicationState) -> RoutingOutcome:
        return self.router.route(PushMessage.from_payload(payload), state)


class TestPushMessage:
    def test_parses_platform_payload(self) -> None:
        message = PushMessage.from_payload(OD_PAYLOAD)
        assert message.message_id == "MSG-1"
        assert message.alert == "Flash sale"
        assert message.badge == 2
        assert message.open_direct == "app://offers/42"
        assert message.open_direct_is_url
        assert message.raw == OD_PAYLOAD

    def test_alert_dictionary_uses_body(self) -> None:
        message = PushMessage.from_payload(PLAIN_PAYLOAD)
        assert message.alert == "World"
        assert message.open_direct is None

    def test_missing_aps_is_tolerated(self) -> None:
        message = PushMessage.from_payload({"_od": "   "})
        assert message.alert is None
        assert message.open_direct is None

    def test_custom_keys_matching_field_names_stay_in_raw(self) -> None:
        payload = {"aps": {"alert": "Hi"}, "_m": "MID1", "_od": "app://offers", "raw": "custom", "is_local": "yes"}
        message = PushMessage.from_payload(payload)
        assert message.message_id == "MID1"
        assert message.alert == "Hi"
        assert message.open_direct == "app://offers"
        assert message.is_local is False
        assert message.raw["raw"] == "custom"


class TestRouting:
    @pytest.mark.parametrize("state", [ApplicationState.BACKGROUND, ApplicationState.NOT_RUNNING])
    def test_delegate_receives_content_when_not_foreground(self, state: ApplicationState) -> None:
        harness = _Harness(show_alert=True)
        delegate = _Delegate()
        harness.router.set_delegate(delegate)

        assert harness.route(OD_PAYLOAD, state) == RoutingOutcome.DELEGATED
        assert delegate.delivered == ["app://offers/42"]
        # URL handling is suppressed while a delegate is registered.
        assert harness.urls == []

    def test_foreground_without_opt_in_falls_back_to_alert(self) -> None:
        harness = _Harness(show_alert=True)
        delegate = _Delegate()
        harness.router.set_delegate(delegate)

        assert harness.route(OD_PAYLOAD, ApplicationState.FOREGROUND) == RoutingOutcome.ALERT_PRESENTED
        assert delegate.delivered == []
        assert harness.presenter.messages == ["Flash sale"]

    def test_foreground_opt_in_delivers(self) -> None:
        harness = _Harness(show_alert=True)
        delegate = _ForegroundDelegate()
        harness.router.set_delegate(delegate)

        assert harness.route(OD_PAYLOAD, ApplicationState.FOREGROUND) == RoutingOutcome.DELEGATED
        assert delegate.delivered == ["app://offers/42"]
        assert harness.presenter.messages == []

    def test_foreground_without_delegate_compensates_with_alert(self) -> None:
        harness = _Harness(show_alert=True)
        assert harness.route(PLAIN_PAYLOAD, ApplicationState.FOREGROUND) == RoutingOutcome.ALERT_PRESENTED
        assert harness.presenter.messages == ["World"]

    def test_foreground_alert_disabled(self) -> None:
        harness = _Harness(show_alert=False)
        assert harness.route(PLAIN_PAYLOAD, ApplicationState.FOREGROUND) == RoutingOutcome.NONE
        assert harness.presenter.messages == []

    def test_background_url_goes_to_url_handler_without_delegate(self) -> None:
        harness = _Harness()
        assert harness.route(OD_PAYLOAD, ApplicationState.BACKGROUND) == RoutingOutcome.URL_OPENED
        assert harness.urls == ["app://offers/42"]

    def test_failing_delegate_does_not_break_routing(self) -> None:
        class _Broken:
            def deliver(self, content: str) -> None:
                raise RuntimeError("host bug")

        harness = _Harness()
        harness.router.set_delegate(_Broken())
        assert harness.route(OD_PAYLOAD, ApplicationState.BACKGROUND) == RoutingOutcome.DELEGATED
        assert len(harness.facts) == 1

    def test_delegate_must_implement_deliver(self) -> None:
        harness = _Harness()
        with pytest.raises(TypeError):
            harness.router.set_delegate(object())  # type: ignore[arg-type]

    def test_every_arrival_records_a_fact(self) -> None:
        harness = _Harness()
        harness.route(OD_PAYLOAD, ApplicationState.FOREGROUND)
        harness.route(PLAIN_PAYLOAD, ApplicationState.BACKGROUND)

        assert [fact.kind for fact in harness.facts] == [FactKind.MESSAGE_RECEIVED] * 2
        assert [fact.message_id for fact in harness.facts] == ["MSG-1", "MSG-2"]
        assert harness.facts[0].data["app_state"] == "foreground"
        assert [m.message_id for m in harness.messages] == ["MSG-1", "MSG-2"]

    def test_analytics_disabled_records_nothing(self) -> None:
        harness = _Harness(analytics=False)
        harness.route(OD_PAYLOAD, ApplicationState.BACKGROUND)
        assert harness.facts == []


@pytest.mark.asyncio
async def test_message_fact_rides_along_with_next_sync(client: PushClient, transport: FakeSyncTransport) -> None:
    outcome = client.handle_notification(PLAIN_PAYLOAD, "background")
    assert outcome == RoutingOutcome.NONE
    assert client.session.current_message_id == "MSG-2"
    await client.wait_for_sync()
    # Arrival alone does not trigger a sync.
    assert transport.sent == []

    client.add_tag("reader")
    await client.wait_for_sync()
    assert len(transport.sent) == 1
    facts = transport.sent[0].facts
    assert [fact.kind for fact in facts] == [FactKind.MESSAGE_RECEIVED]
    assert facts[0].message_id == "MSG-2"


@pytest.mark.asyncio
async def test_set_alert_on_foreground_push(transport: FakeSyncTransport) -> None:
    presenter = _Presenter()
    async with PushClient(
        make_config(), store=MemoryStateStore(), sync_transport=transport, alert_presenter=presenter
    ) as push_client:
        assert push_client.handle_notification(PLAIN_PAYLOAD, ApplicationState.FOREGROUND) == RoutingOutcome.NONE
        push_client.set_alert_on_foreground_push(True)
        assert (
            push_client.handle_local_notification({"aps": {"alert": "Local"}}) == RoutingOutcome.ALERT_PRESENTED
        )
    assert presenter.messages == ["Local"]


@pytest.mark.asyncio
async def test_payload_with_custom_raw_key_is_routed_and_recorded(transport: FakeSyncTransport) -> None:
    delegate = _Delegate()
    async with PushClient(
        make_config(), store=MemoryStateStore(), sync_transport=transport, open_direct_delegate=delegate
    ) as push_client:
        outcome = push_client.handle_notification(
            {"aps": {"alert": "Hi"}, "_m": "MID1", "_od": "app://offers", "raw": "custom"},
            ApplicationState.BACKGROUND,
        )
        assert outcome == RoutingOutcome.DELEGATED
        assert delegate.delivered == ["app://offers"]
        pending = push_client._coordinator.pending_facts  # type: ignore[union-attr]  # noqa: SLF001
        assert [(fact.kind, fact.message_id) for fact in pending] == [(FactKind.MESSAGE_RECEIVED, "MID1")]
