"""Incoming notification payload model."""

from __future__ import annotations

from collections.abc import Mapping
from enum import StrEnum
from typing import Any

from pydantic import ConfigDict, Field

from pymobilepush._constants import PAYLOAD_APS, PAYLOAD_MESSAGE_ID, PAYLOAD_OPEN_DIRECT
from pymobilepush.models._base import PushBaseModel


class ApplicationState(StrEnum):
    """Application state at payload arrival."""

    FOREGROUND = "foreground"
    BACKGROUND = "background"
    NOT_RUNNING = "not_running"


class RoutingOutcome(StrEnum):
    """What the router did with a payload."""

    DELEGATED = "delegated"
    ALERT_PRESENTED = "alert_presented"
    URL_OPENED = "url_opened"
    NONE = "none"


def _alert_text(alert: Any) -> str | None:
    if isinstance(alert, str):
        return alert or None
    if isinstance(alert, Mapping):
        body = alert.get("body")
        if isinstance(body, str) and body:
            return body
        title = alert.get("title")
        if isinstance(title, str) and title:
            return title
    return None


class PushMessage(PushBaseModel):
    """A push or local notification payload.

    Built from the raw platform dictionary with :meth:`from_payload`, e.g.::

        {"aps": {"alert": "Hi", "badge": 1}, "_m": "MTQ6MTE0OjA", "_od": "app://offers"}

    Payload keys are never mapped onto fields directly; custom keys of any
    name stay in ``raw``.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    message_id: str | None = None
    alert: str | None = None
    badge: int | None = None
    sound: str | None = None
    open_direct: str | None = None
    is_local: bool = False
    raw: dict[str, Any] = Field(default_factory=dict)
    """Original payload as received."""

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any], *, is_local: bool = False) -> PushMessage:
        """Parse a platform notification dictionary."""
        aps = payload.get(PAYLOAD_APS)
        aps = aps if isinstance(aps, Mapping) else {}
        badge = aps.get("badge")
        sound = aps.get("sound")
        message_id = payload.get(PAYLOAD_MESSAGE_ID)
        open_direct = payload.get(PAYLOAD_OPEN_DIRECT)
        return cls(
            message_id=str(message_id) if message_id not in (None, "") else None,
            alert=_alert_text(aps.get("alert")),
            badge=badge if isinstance(badge, int) and not isinstance(badge, bool) else None,
            sound=sound if isinstance(sound, str) and sound else None,
            open_direct=open_direct if isinstance(open_direct, str) and open_direct.strip() else None,
            is_local=is_local,
            raw=dict(payload),
        )

    @property
    def open_direct_is_url(self) -> bool:
        if self.open_direct is None:
            return False
        return "://" in self.open_direct
