"""Device registration model."""

from __future__ import annotations

from pydantic import ConfigDict, Field

from pymobilepush.models._base import PushBaseModel, UtcDatetime


class DeviceRegistration(PushBaseModel):
    """Push registration of this installation.

    Instances are frozen; every token refresh or registration failure
    supersedes the previous value via ``model_copy(update=...)``.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    token: str | None = None
    """Hex representation of the opaque platform token."""

    registered_at: UtcDatetime = None
    """When the current token was received."""

    last_error: str | None = None
    """Description of the most recent platform registration failure."""

    push_enabled: bool = Field(default=False)
    """Whether the platform currently issues a token for this installation."""

    @property
    def is_registered(self) -> bool:
        return self.token is not None
