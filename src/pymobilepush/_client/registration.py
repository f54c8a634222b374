"""Device token lifecycle.

Accepts tokens and registration failures from the platform collaborator and
decides whether the server has to be told about them. Platform-level
registration is never retried here; only reporting to the server is, through
the regular sync path.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime

from pymobilepush._constants import KEY_REGISTRATION
from pymobilepush.exceptions import PushValidationError
from pymobilepush.models._base import utcnow
from pymobilepush.models.registration import DeviceRegistration
from pymobilepush.models.sync import FactKind, SyncFact
from pymobilepush.state.store import PersistentStateStore

_logger = logging.getLogger(__name__)


def format_token(token: bytes | bytearray | str) -> str:
    """Hex string for an opaque platform token."""
    if isinstance(token, (bytes, bytearray)):
        if not token:
            raise PushValidationError("device token must be non-empty")
        return bytes(token).hex()
    if isinstance(token, str):
        cleaned = token.strip().strip("<>").replace(" ", "").lower()
        if not cleaned:
            raise PushValidationError("device token must be non-empty")
        return cleaned
    raise PushValidationError(f"device token must be bytes or str, got {type(token).__name__}")


class RegistrationEngine:
    def __init__(
        self,
        store: PersistentStateStore,
        *,
        on_change: Callable[[], None],
        on_push_disabled: Callable[[SyncFact], None],
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._store = store
        self._on_change = on_change
        self._on_push_disabled = on_push_disabled
        self._clock = clock

        raw = store.get(KEY_REGISTRATION)
        self._registration = DeviceRegistration.model_validate(raw) if isinstance(raw, dict) else DeviceRegistration()

    @property
    def registration(self) -> DeviceRegistration:
        return self._registration

    def current_token(self) -> str | None:
        return self._registration.token

    def _supersede(self, **changes: object) -> None:
        self._registration = self._registration.model_copy(update=changes)
        self._store.set(KEY_REGISTRATION, self._registration.model_dump(mode="json"))

    def on_token_received(self, token: bytes | bytearray | str) -> bool:
        """Store *token* and request a sync. Returns False if nothing changed."""
        hex_token = format_token(token)
        current = self._registration
        if hex_token == current.token and current.push_enabled:
            _logger.debug("Device token unchanged; no sync needed")
            return False

        self._supersede(
            token=hex_token,
            registered_at=self._clock(),
            last_error=None,
            push_enabled=True,
        )
        _logger.debug("Device token %s", "refreshed" if current.token else "registered")
        self._on_change()
        return True

    def on_registration_failed(self, error: BaseException | str) -> bool:
        """Record a platform registration failure.

        Does not mark state dirty. If push was enabled for a previously
        registered token, a one-shot ``push_disabled`` fact is queued so the
        server learns push is off. Returns True if that fact was queued.
        """
        message = str(error) or type(error).__name__
        was_enabled = self._registration.is_registered and self._registration.push_enabled
        self._supersede(last_error=message, push_enabled=False)
        _logger.warning("Push registration failed: %s", message)

        if not was_enabled:
            return False
        self._on_push_disabled(SyncFact(kind=FactKind.PUSH_DISABLED, occurred_at=self._clock()))
        return True
