"""pymobilepush - Async Python client for mobile push registration and state sync."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("pymobilepush")
except PackageNotFoundError:
    __version__ = "0+local"
from pymobilepush._api.registration import RegistrationApi, SyncTransport
from pymobilepush._client.router import AlertPresenter, OpenDirectDelegate
from pymobilepush.client import PushClient
from pymobilepush.config import DeviceProfile, PushConfig
from pymobilepush.exceptions import (
    PushAuthenticationError,
    PushConfigError,
    PushError,
    PushPermanentSyncError,
    PushRetryableSyncError,
    PushSyncError,
    PushTransportError,
    PushValidationError,
)
from pymobilepush.models import (
    ApplicationState,
    DeviceRegistration,
    FactKind,
    PushMessage,
    RoutingOutcome,
    SyncAck,
    SyncFact,
    SyncSnapshot,
    SyncState,
    SyncTrigger,
)
from pymobilepush.session import Session
from pymobilepush.state import (
    JsonFileStateStore,
    LifecycleEvent,
    LifecycleKind,
    MemoryStateStore,
    PersistentStateStore,
)

__all__ = [
    "__version__",
    "AlertPresenter",
    "ApplicationState",
    "DeviceProfile",
    "DeviceRegistration",
    "FactKind",
    "JsonFileStateStore",
    "LifecycleEvent",
    "LifecycleKind",
    "MemoryStateStore",
    "OpenDirectDelegate",
    "PersistentStateStore",
    "PushAuthenticationError",
    "PushClient",
    "PushConfig",
    "PushConfigError",
    "PushError",
    "PushMessage",
    "PushPermanentSyncError",
    "PushRetryableSyncError",
    "PushSyncError",
    "PushTransportError",
    "PushValidationError",
    "RegistrationApi",
    "RoutingOutcome",
    "Session",
    "SyncAck",
    "SyncFact",
    "SyncSnapshot",
    "SyncState",
    "SyncTrigger",
    "SyncTransport",
]
