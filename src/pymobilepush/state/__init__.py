"""State layer.

Durable storage, lifecycle events and the pure retry/failure policy the
sync engine is built on.
"""

from pymobilepush.state.events import LifecycleEvent, LifecycleKind
from pymobilepush.state.store import JsonFileStateStore, MemoryStateStore, PersistentStateStore

__all__ = [
    "JsonFileStateStore",
    "LifecycleEvent",
    "LifecycleKind",
    "MemoryStateStore",
    "PersistentStateStore",
]
