"""Data models for registration, sync and notifications."""

from pymobilepush.models._base import PushBaseModel, UtcDatetime, utcnow
from pymobilepush.models.notification import ApplicationState, PushMessage, RoutingOutcome
from pymobilepush.models.registration import DeviceRegistration
from pymobilepush.models.sync import (
    FactKind,
    SyncAck,
    SyncFact,
    SyncSnapshot,
    SyncState,
    SyncTrigger,
)

__all__ = [
    "ApplicationState",
    "DeviceRegistration",
    "FactKind",
    "PushBaseModel",
    "PushMessage",
    "RoutingOutcome",
    "SyncAck",
    "SyncFact",
    "SyncSnapshot",
    "SyncState",
    "SyncTrigger",
    "UtcDatetime",
    "utcnow",
]
