"""Durable key-value stores for registration and sync state.

The client rehydrates from a store at start-up and writes to it after
every mutation and every sync state transition. Values must be JSON
compatible (``None``, bool, numbers, strings, lists and dicts).
"""

from __future__ import annotations

import copy
import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Protocol

from pymobilepush.exceptions import PushConfigError

_logger = logging.getLogger(__name__)


class PersistentStateStore(Protocol):
    """Structural store interface.

    Both methods are synchronous and ``set`` must be durable once it returns.
    """

    def get(self, key: str) -> Any | None:
        ...

    def set(self, key: str, value: Any) -> None:
        ...


class MemoryStateStore:
    """Process-local store; state does not survive a restart."""

    def __init__(self, initial: dict[str, Any] | None = None) -> None:
        self._data: dict[str, Any] = copy.deepcopy(initial) if initial else {}

    def get(self, key: str) -> Any | None:
        return copy.deepcopy(self._data.get(key))

    def set(self, key: str, value: Any) -> None:
        self._data[key] = copy.deepcopy(value)

    def snapshot(self) -> dict[str, Any]:
        return copy.deepcopy(self._data)


class JsonFileStateStore:
    """Store backed by a single JSON document on disk.

    Every ``set`` rewrites the document through a temporary file and
    ``os.replace`` so a crash never leaves a half-written file behind.
    """

    def __init__(self, path: str | os.PathLike[str]) -> None:
        self._path = Path(path)
        self._data: dict[str, Any] = self._load()

    @property
    def path(self) -> Path:
        return self._path

    def _load(self) -> dict[str, Any]:
        try:
            text = self._path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return {}
        except OSError as exc:
            raise PushConfigError(f"Cannot read state file {self._path}: {exc}") from exc

        if not text.strip():
            return {}
        try:
            data = json.loads(text)
        except json.JSONDecodeError:
            # A corrupt file must not brick the client; start over and let the
            # next sync re-register everything.
            _logger.warning("State file %s is not valid JSON; starting with empty state", self._path)
            return {}
        if not isinstance(data, dict):
            _logger.warning("State file %s does not hold an object; starting with empty state", self._path)
            return {}
        return data

    def get(self, key: str) -> Any | None:
        return copy.deepcopy(self._data.get(key))

    def set(self, key: str, value: Any) -> None:
        self._data[key] = copy.deepcopy(value)
        self._flush()

    def _flush(self) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(prefix=f".{self._path.name}.", dir=self._path.parent)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump(self._data, handle, separators=(",", ":"), sort_keys=True)
                handle.flush()
                os.fsync(handle.fileno())
            os.replace(tmp_name, self._path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise
