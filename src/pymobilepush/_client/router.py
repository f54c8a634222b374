"""Notification routing.

Classifies an incoming push or local notification by application state and
hands it to exactly one host hook: the OpenDirect delegate, the alert
presenter or the URL handler. Presentation and deep-link handling stay with
the host.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime
from typing import Protocol, runtime_checkable

from pymobilepush.models._base import utcnow
from pymobilepush.models.notification import ApplicationState, PushMessage, RoutingOutcome
from pymobilepush.models.sync import FactKind, SyncFact

_logger = logging.getLogger(__name__)


@runtime_checkable
class OpenDirectDelegate(Protocol):
    """Receives OpenDirect content strings.

    Implementations may also define ``wants_foreground_delivery() -> bool``
    to receive content while the app is in the foreground; without it,
    foreground delivery is off.
    """

    def deliver(self, content: str) -> None:
        ...


class AlertPresenter(Protocol):
    def present(self, message: str) -> None:
        ...


def wants_foreground_delivery(delegate: OpenDirectDelegate) -> bool:
    capability = getattr(delegate, "wants_foreground_delivery", None)
    if capability is None:
        return False
    return bool(capability())


class NotificationRouter:
    def __init__(
        self,
        *,
        on_fact: Callable[[SyncFact], None],
        on_message: Callable[[PushMessage], None],
        analytics_enabled: bool = True,
        show_alert_on_foreground: bool = False,
        alert_presenter: AlertPresenter | None = None,
        url_handler: Callable[[str], None] | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._on_fact = on_fact
        self._on_message = on_message
        self._analytics_enabled = analytics_enabled
        self._show_alert = show_alert_on_foreground
        self._alert_presenter = alert_presenter
        self._url_handler = url_handler
        self._delegate: OpenDirectDelegate | None = None
        self._clock = clock

    # ------------------------------------------------------------------
    # Configuration
    # ------------------------------------------------------------------

    @property
    def delegate(self) -> OpenDirectDelegate | None:
        return self._delegate

    def set_delegate(self, delegate: OpenDirectDelegate | None) -> None:
        if delegate is not None and not isinstance(delegate, OpenDirectDelegate):
            raise TypeError("OpenDirect delegate must define deliver(content)")
        self._delegate = delegate

    @property
    def show_alert_on_foreground(self) -> bool:
        return self._show_alert

    def set_show_alert_on_foreground(self, enabled: bool) -> None:
        self._show_alert = bool(enabled)

    # ------------------------------------------------------------------
    # Routing
    # ------------------------------------------------------------------

    def route(self, message: PushMessage, state: ApplicationState) -> RoutingOutcome:
        """Dispatch *message* and record that it arrived."""
        self._on_message(message)
        if self._analytics_enabled:
            self._on_fact(
                SyncFact(
                    kind=FactKind.MESSAGE_RECEIVED,
                    occurred_at=self._clock(),
                    message_id=message.message_id,
                    data={"app_state": state.value, "local": message.is_local},
                )
            )

        outcome = self._dispatch(message, state)
        _logger.debug(
            "Notification routed message_id=%s state=%s outcome=%s",
            message.message_id,
            state,
            outcome,
        )
        return outcome

    def _dispatch(self, message: PushMessage, state: ApplicationState) -> RoutingOutcome:
        foreground = state == ApplicationState.FOREGROUND
        delegate = self._delegate

        if delegate is not None and message.open_direct is not None:
            if not foreground or wants_foreground_delivery(delegate):
                try:
                    delegate.deliver(message.open_direct)
                except Exception:
                    _logger.warning("OpenDirect delegate failed", exc_info=True)
                # A registered delegate owns the content; never auto-open its URLs.
                return RoutingOutcome.DELEGATED

        if foreground:
            # The platform shows no banner for a running app; compensate if asked to.
            if self._show_alert and self._alert_presenter is not None and message.alert:
                try:
                    self._alert_presenter.present(message.alert)
                except Exception:
                    _logger.warning("Alert presenter failed", exc_info=True)
                return RoutingOutcome.ALERT_PRESENTED
            return RoutingOutcome.NONE

        if delegate is None and message.open_direct_is_url and self._url_handler is not None:
            assert message.open_direct is not None  # noqa: S101
            try:
                self._url_handler(message.open_direct)
            except Exception:
                _logger.warning("URL handler failed", exc_info=True)
            return RoutingOutcome.URL_OPENED

        return RoutingOutcome.NONE
