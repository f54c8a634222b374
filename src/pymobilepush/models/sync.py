"""Sync state, outgoing facts and the composed snapshot."""

from __future__ import annotations

from enum import StrEnum
from typing import Any

from pydantic import ConfigDict, Field, field_validator

from pymobilepush.models._base import PushBaseModel, UtcDatetime, utcnow


class SyncTrigger(StrEnum):
    """What asked the coordinator for a sync."""

    MUTATION = "mutation"
    MANUAL = "manual"
    RETRY = "retry"
    LIFECYCLE = "lifecycle"
    FOLLOW_UP = "follow_up"

    @property
    def is_explicit(self) -> bool:
        """Explicit triggers resume a sync pipeline suspended by a permanent failure."""
        return self in (SyncTrigger.MUTATION, SyncTrigger.MANUAL)


class FactKind(StrEnum):
    MESSAGE_RECEIVED = "message_received"
    PUSH_DISABLED = "push_disabled"
    BADGE_RESET = "badge_reset"
    APP_OPEN = "app_open"
    TIME_IN_APP = "time_in_app"


class SyncFact(PushBaseModel):
    """A one-shot outgoing fact delivered with the next snapshot."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    kind: FactKind
    occurred_at: UtcDatetime = Field(default_factory=utcnow)
    message_id: str | None = None
    data: dict[str, Any] = Field(default_factory=dict)

    @property
    def is_analytic(self) -> bool:
        return self.kind in (FactKind.MESSAGE_RECEIVED, FactKind.APP_OPEN, FactKind.TIME_IN_APP)


class SyncState(PushBaseModel):
    """Mutable sync bookkeeping owned by the coordinator.

    ``dirty`` is set by any mutation of the registration, identity, tags or
    attributes and cleared only when a send is confirmed (it is cleared
    optimistically at send time and re-set on failure).
    """

    model_config = ConfigDict(extra="ignore", validate_assignment=True)

    dirty: bool = False
    in_flight: bool = False
    last_attempt: UtcDatetime = None
    last_success: UtcDatetime = None
    retry_count: int = 0
    last_error: str | None = None

    @field_validator("retry_count")
    @classmethod
    def _non_negative(cls, value: int) -> int:
        if value < 0:
            raise ValueError("retry_count must be >= 0")
        return value


class SyncSnapshot(PushBaseModel):
    """Full composed state sent in one sync payload."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    device_id: str
    token: str | None = None
    push_enabled: bool = False
    subscriber_key: str | None = None
    tags: tuple[str, ...] = ()
    attributes: dict[str, str] = Field(default_factory=dict)
    facts: tuple[SyncFact, ...] = ()
    hardware_id: str = ""
    platform: str = ""
    platform_version: str = ""
    app_version: str = ""
    locale: str = ""
    time_zone: str = ""
    location_enabled: bool = False
    cloud_pages_enabled: bool = False
    composed_at: UtcDatetime = Field(default_factory=utcnow)

    @field_validator("tags", mode="before")
    @classmethod
    def _sort_tags(cls, value: Any) -> Any:
        if isinstance(value, (set, frozenset, list, tuple)):
            return tuple(sorted(value))
        return value

    def has_fact(self, kind: FactKind) -> bool:
        return any(fact.kind == kind for fact in self.facts)


class SyncAck(PushBaseModel):
    """Successful transport acknowledgement; carries no required fields."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    status_code: int | None = None
    raw: dict[str, Any] = Field(default_factory=dict)
    # Analytic facts the server refused outright; they are not retried.
    dropped_facts: int = 0
