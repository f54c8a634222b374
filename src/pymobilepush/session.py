"""Ephemeral app session state."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from pymobilepush.models._base import utcnow


class Session(BaseModel):
    """Current app session.

    Parameters
    ----------
    started_at : datetime
        When the session started (UTC).
    current_message_id : str or None
        Id of the last notification processed in this session.

    Sessions are never persisted. A new one is created on every app launch
    and on every processed notification.
    """

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
        validate_default=True,
        str_strip_whitespace=True,
    )

    started_at: datetime = Field(default_factory=utcnow)
    current_message_id: str | None = None

    def age(self, now: datetime | None = None) -> float:
        """Seconds since the session started."""
        return ((now or utcnow()) - self.started_at).total_seconds()
