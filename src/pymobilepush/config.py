"""Client configuration for pymobilepush."""

from __future__ import annotations

import dataclasses
import os
from typing import Any

from pymobilepush._constants import BASE_URL
from pymobilepush.exceptions import PushConfigError


def _env_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "y", "on"}:
        return True
    if normalized in {"0", "false", "no", "n", "off"}:
        return False
    return default


@dataclasses.dataclass(frozen=True)
class DeviceProfile:
    """Device metadata sent with every registration.

    ``device_id`` may be left empty; the client then derives a stable
    identifier once and keeps it in the persistent store.
    """

    device_id: str = ""
    hardware_id: str = "iPhone7,2"
    platform: str = "iPhone OS"
    platform_version: str = "9.3"
    locale: str = "en_US"
    time_zone: str = "America/Indianapolis"
    app_version: str = "1.0"


@dataclasses.dataclass(frozen=True)
class PushConfig:
    """Client configuration.

    Parameters
    ----------
    app_id : str
        Application id issued by the push platform.
    access_token : str
        API access token paired with ``app_id``.
    base_url : str
        API base URL.
    analytics_enabled : bool
        Send analytic facts (message received, app open, time in app).
    location_enabled : bool
        Report location services as enabled in the registration.
    cloud_pages_enabled : bool
        Report cloud pages as enabled in the registration.
    show_alert_on_foreground : bool
        Ask the host to present an alert when a push arrives while the
        app is in the foreground.  Can be changed at runtime via
        ``PushClient.set_alert_on_foreground_push``.
    retry_base_delay : float
        Seconds to wait before the first retry of a failed sync.
    retry_max_delay : float
        Ceiling for the exponential backoff in seconds.
    retry_jitter : float
        Fraction (0..1) of the backoff delay added as random jitter.
    request_timeout : float
        Total timeout in seconds for a single HTTP request.
    max_pending_facts : int
        Upper bound on queued one-shot facts.  When full, the oldest
        analytic facts are dropped first.
    storage_path : str or None
        JSON file used for durable state.  ``None`` keeps state in memory.
    api_trace_enabled : bool
        Log redacted request/response bodies at DEBUG level.
    device : DeviceProfile
        Device metadata.
    """

    app_id: str
    access_token: str
    base_url: str = BASE_URL
    analytics_enabled: bool = True
    location_enabled: bool = False
    cloud_pages_enabled: bool = False
    show_alert_on_foreground: bool = False
    retry_base_delay: float = 2.0
    retry_max_delay: float = 600.0
    retry_jitter: float = 0.2
    request_timeout: float = 30.0
    max_pending_facts: int = 100
    storage_path: str | None = None
    api_trace_enabled: bool = False
    device: DeviceProfile = dataclasses.field(default_factory=DeviceProfile)

    def __post_init__(self) -> None:
        if not self.app_id or not self.app_id.strip():
            raise PushConfigError("app_id must be non-empty")
        if not self.access_token or not self.access_token.strip():
            raise PushConfigError("access_token must be non-empty")
        if self.retry_base_delay <= 0:
            raise PushConfigError(f"retry_base_delay must be positive, got {self.retry_base_delay}")
        if self.retry_max_delay < self.retry_base_delay:
            raise PushConfigError(
                f"retry_max_delay ({self.retry_max_delay}) must be >= retry_base_delay ({self.retry_base_delay})"
            )
        if not 0.0 <= self.retry_jitter <= 1.0:
            raise PushConfigError(f"retry_jitter must be between 0 and 1, got {self.retry_jitter}")
        if self.request_timeout <= 0:
            raise PushConfigError(f"request_timeout must be positive, got {self.request_timeout}")
        if self.max_pending_facts < 1:
            raise PushConfigError(f"max_pending_facts must be at least 1, got {self.max_pending_facts}")

    @classmethod
    def from_env(cls, **overrides: Any) -> PushConfig:
        """Create configuration from environment variables.

        Reads ``PUSH_APP_ID``, ``PUSH_ACCESS_TOKEN`` and optional ``PUSH_*``
        variables. Explicit keyword arguments override environment values.

        Parameters
        ----------
        **overrides
            Explicit field values that take precedence over env vars.

        Returns
        -------
        PushConfig
            Populated configuration.
        """
        env = os.environ

        device_kwargs: dict[str, str] = {}
        _ENV_DEVICE_MAP = {
            "PUSH_DEVICE_ID": "device_id",
            "PUSH_HARDWARE_ID": "hardware_id",
            "PUSH_PLATFORM": "platform",
            "PUSH_PLATFORM_VERSION": "platform_version",
            "PUSH_LOCALE": "locale",
            "PUSH_TIME_ZONE": "time_zone",
            "PUSH_APP_VERSION": "app_version",
        }
        for env_key, field_name in _ENV_DEVICE_MAP.items():
            val = env.get(env_key)
            if val is not None:
                device_kwargs[field_name] = val

        device_overrides = overrides.pop("device", None)
        if isinstance(device_overrides, dict):
            device_kwargs.update(device_overrides)
        elif isinstance(device_overrides, DeviceProfile):
            device_kwargs = dataclasses.asdict(device_overrides)

        device = DeviceProfile(**device_kwargs) if device_kwargs else DeviceProfile()

        _ENV_CONFIG_MAP = {
            "PUSH_APP_ID": "app_id",
            "PUSH_ACCESS_TOKEN": "access_token",
            "PUSH_BASE_URL": "base_url",
            "PUSH_STORAGE_PATH": "storage_path",
        }
        config_kwargs: dict[str, Any] = {"device": device}
        for env_key, field_name in _ENV_CONFIG_MAP.items():
            val = env.get(env_key)
            if val is not None:
                config_kwargs[field_name] = val

        _ENV_BOOL_MAP = {
            "PUSH_ANALYTICS_ENABLED": ("analytics_enabled", True),
            "PUSH_LOCATION_ENABLED": ("location_enabled", False),
            "PUSH_CLOUD_PAGES_ENABLED": ("cloud_pages_enabled", False),
            "PUSH_SHOW_ALERT": ("show_alert_on_foreground", False),
            "PUSH_API_TRACE_ENABLED": ("api_trace_enabled", False),
        }
        for env_key, (field_name, default) in _ENV_BOOL_MAP.items():
            if field_name not in overrides:
                config_kwargs[field_name] = _env_bool(env.get(env_key), default)

        _ENV_FLOAT_MAP = {
            "PUSH_RETRY_BASE_DELAY": "retry_base_delay",
            "PUSH_RETRY_MAX_DELAY": "retry_max_delay",
            "PUSH_RETRY_JITTER": "retry_jitter",
            "PUSH_REQUEST_TIMEOUT": "request_timeout",
        }
        for env_key, field_name in _ENV_FLOAT_MAP.items():
            val = env.get(env_key)
            if val is not None and field_name not in overrides:
                try:
                    config_kwargs[field_name] = float(val)
                except ValueError as exc:
                    raise PushConfigError(f"{env_key} must be numeric, got {val!r}") from exc

        val = env.get("PUSH_MAX_PENDING_FACTS")
        if val is not None and "max_pending_facts" not in overrides:
            try:
                config_kwargs["max_pending_facts"] = int(val)
            except ValueError as exc:
                raise PushConfigError(f"PUSH_MAX_PENDING_FACTS must be an integer, got {val!r}") from exc

        config_kwargs.update(overrides)
        config_kwargs.setdefault("app_id", "")
        config_kwargs.setdefault("access_token", "")

        return cls(**config_kwargs)
